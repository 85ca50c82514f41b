import os
from pathlib import Path
from uuid import uuid4

import pytest
import pytest_asyncio
from dotenv import load_dotenv

# Tests never touch the configured PostgreSQL database
os.environ.setdefault("DATABASE_URL", "sqlite://")

backend_dir = Path(__file__).parent.parent
env_file = backend_dir / ".env.test"
if env_file.exists():
    load_dotenv(env_file, override=False)

from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from ruleflow.core.automation.action_registry import ActionRegistry  # noqa: E402
from ruleflow.core.automation.collaborators import (  # noqa: E402
    EmailTemplateCatalog,
    EntityStatusRegistry,
)
from ruleflow.core.automation.engine import AutomationConfig, AutomationEngine  # noqa: E402
from ruleflow.core.automation.handlers import build_default_registry  # noqa: E402
from ruleflow.core.config_file import get_settings  # noqa: E402
from ruleflow.core.db.session import Base  # noqa: E402
from tests.helpers import FakeMailTransport, WebhookRecorder  # noqa: E402


@pytest.fixture
def db_engine():
    """In-memory SQLite engine shared by every session of a test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return sessionmaker(
        autocommit=False, autoflush=False, expire_on_commit=False, bind=db_engine
    )


@pytest.fixture
def db_session(session_factory):
    """Create a database session for a test."""
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def tenant_id():
    return uuid4()


@pytest.fixture
def mail_transport():
    return FakeMailTransport()


@pytest.fixture
def webhook():
    """Recording webhook endpoint answering 200 by default."""
    return WebhookRecorder()


@pytest.fixture
def status_registry():
    return EntityStatusRegistry()


@pytest.fixture
def registry(session_factory, mail_transport, webhook, status_registry) -> ActionRegistry:
    """Built-in handlers wired to in-process fakes."""
    return build_default_registry(
        session_factory,
        get_settings(),
        mail_transport=mail_transport,
        email_templates=EmailTemplateCatalog({"order_confirmation": "Hi {{customer.name}}"}),
        status_updater=status_registry,
        webhook_transport=webhook.transport,
    )


@pytest.fixture
def automation_config():
    return AutomationConfig(max_retries=3, backoff_base_ms=0, max_queue_depth=100)


@pytest.fixture
def automation_engine(session_factory, registry, automation_config):
    """Create AutomationEngine instance."""
    return AutomationEngine(session_factory, registry, automation_config)


@pytest_asyncio.fixture
async def running_engine(automation_engine):
    """AutomationEngine that accepts events; stopped after the test."""
    await automation_engine.start()
    yield automation_engine
    await automation_engine.stop()


@pytest.fixture
def client(session_factory, automation_engine):
    """Test client whose lifespan starts and stops the engine."""
    from ruleflow.main import create_app

    app = create_app(session_factory=session_factory, automation_engine=automation_engine)
    with TestClient(app) as test_client:
        yield test_client
