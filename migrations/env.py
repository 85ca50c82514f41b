from logging.config import fileConfig

from alembic import context
from sqlalchemy import create_engine, pool

from ruleflow.core.config_file import get_settings
from ruleflow.core.db.session import Base, build_engine

# Import all models so Alembic can detect them
from ruleflow.models import (  # noqa: F401
    AutomationExecution,
    AutomationNotification,
    AutomationTask,
    Rule,
    RuleVersion,
)

# this is the Alembic Config object
config = context.config

# Interpret the config file for Python logging.
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

# Get database URL from settings
settings = get_settings()
config.set_main_option("sqlalchemy.url", settings.database_url.replace("%", "%%"))

target_metadata = Base.metadata


def run_migrations_offline() -> None:
    """Run migrations in 'offline' mode, emitting SQL to the script output."""
    context.configure(
        url=settings.database_url,
        target_metadata=target_metadata,
        literal_binds=True,
        compare_type=True,
        dialect_opts={"paramstyle": "named"},
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Run migrations in 'online' mode against the configured database."""
    if settings.database_url.startswith("sqlite"):
        connectable = build_engine(settings.database_url)
    else:
        connectable = create_engine(
            settings.database_url,
            poolclass=pool.NullPool,
            future=True,
            connect_args={"options": "-c client_encoding=utf8"},
        )

    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            compare_type=True,
        )

        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
