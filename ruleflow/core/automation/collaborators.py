"""Collaborator interfaces used by the built-in action handlers.

The engine never talks to notification channels, mail servers, task queues
or domain entities directly; each built-in handler goes through one of the
interfaces below. Default implementations persist to the automation tables
or use SMTP, and can be swapped when the engine is built.
"""

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Any, Protocol
from uuid import UUID

import aiosmtplib
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ruleflow.core.automation.errors import ActionExecutionError, TransientActionError
from ruleflow.core.config_file import Settings
from ruleflow.repositories.automation_repository import AutomationRepository

logger = logging.getLogger(__name__)

SessionFactory = Callable[[], Session]


class NotificationSink(Protocol):
    async def send(
        self,
        *,
        tenant_id: UUID | None,
        rule_id: UUID,
        title: str,
        message: str,
        notification_type: str,
        recipient: str | None = None,
    ) -> str: ...


class TaskQueue(Protocol):
    async def create_task(
        self,
        *,
        tenant_id: UUID | None,
        rule_id: UUID,
        title: str,
        assignee: str,
        description: str | None = None,
    ) -> str: ...


class StatusUpdater(Protocol):
    async def update_status(
        self,
        *,
        tenant_id: UUID | None,
        entity: str,
        entity_id: str | None,
        status: str,
    ) -> dict[str, Any] | None: ...


class MailTransport(Protocol):
    async def send(self, *, to: str, subject: str, body: str) -> None: ...


class DatabaseNotificationSink:
    """Stores in-app notifications in the automation_notifications table."""

    def __init__(self, session_factory: SessionFactory):
        self.session_factory = session_factory

    async def send(
        self,
        *,
        tenant_id: UUID | None,
        rule_id: UUID,
        title: str,
        message: str,
        notification_type: str,
        recipient: str | None = None,
    ) -> str:
        try:
            with self.session_factory() as db:
                notification = AutomationRepository(db).create_notification(
                    {
                        "tenant_id": tenant_id,
                        "rule_id": rule_id,
                        "recipient": recipient,
                        "title": title,
                        "message": message,
                        "notification_type": notification_type,
                    }
                )
                return str(notification.id)
        except SQLAlchemyError as e:
            raise ActionExecutionError(f"Notification sink unreachable: {e}") from e


class DatabaseTaskQueue:
    """Stores work items in the automation_tasks table."""

    def __init__(self, session_factory: SessionFactory):
        self.session_factory = session_factory

    async def create_task(
        self,
        *,
        tenant_id: UUID | None,
        rule_id: UUID,
        title: str,
        assignee: str,
        description: str | None = None,
    ) -> str:
        try:
            with self.session_factory() as db:
                task = AutomationRepository(db).create_task(
                    {
                        "tenant_id": tenant_id,
                        "rule_id": rule_id,
                        "title": title,
                        "assignee": assignee,
                        "description": description,
                    }
                )
                return str(task.id)
        except SQLAlchemyError as e:
            raise ActionExecutionError(f"Task queue unreachable: {e}") from e


StatusCallback = Callable[..., Any | Awaitable[Any]]


class EntityStatusRegistry:
    """Routes status transitions to the service owning each entity type.

    Domain modules register a callback per entity type (``order``,
    ``customer``, ...). Callbacks receive ``tenant_id``, ``entity_id`` and
    ``status`` as keyword arguments and may be sync or async.
    """

    def __init__(self) -> None:
        self._callbacks: dict[str, StatusCallback] = {}

    def register(self, entity: str, callback: StatusCallback) -> None:
        self._callbacks[entity.lower()] = callback

    def entities(self) -> list[str]:
        return sorted(self._callbacks)

    async def update_status(
        self,
        *,
        tenant_id: UUID | None,
        entity: str,
        entity_id: str | None,
        status: str,
    ) -> dict[str, Any] | None:
        callback = self._callbacks.get(entity.lower())
        if callback is None:
            raise ActionExecutionError(f"No status updater registered for entity '{entity}'")
        result = callback(tenant_id=tenant_id, entity_id=entity_id, status=status)
        if inspect.isawaitable(result):
            result = await result
        return result if isinstance(result, dict) else None


class EmailTemplateCatalog:
    """Named email body templates with {{variables}}."""

    def __init__(self, templates: dict[str, str] | None = None):
        self._templates: dict[str, str] = dict(templates or {})

    def register(self, name: str, body: str) -> None:
        self._templates[name] = body

    def resolve(self, template: str) -> str:
        """Return the body registered under ``template``, or the text itself."""
        return self._templates.get(template, template)


class SMTPMailTransport:
    """Mail transport delivering through SMTP with aiosmtplib."""

    def __init__(self, settings: Settings):
        self.settings = settings

    async def send(self, *, to: str, subject: str, body: str) -> None:
        settings = self.settings
        if not settings.SMTP_HOST:
            raise ActionExecutionError(
                "SMTP is not configured. Set SMTP_HOST, SMTP_PORT, SMTP_USER, SMTP_PASSWORD."
            )

        message = MIMEMultipart("alternative")
        message["From"] = settings.SMTP_FROM
        message["To"] = to
        message["Subject"] = subject
        message.attach(MIMEText(body, "html" if "<html>" in body.lower() else "plain"))

        try:
            await aiosmtplib.send(
                message,
                hostname=settings.SMTP_HOST,
                port=settings.SMTP_PORT,
                username=settings.SMTP_USER or None,
                password=settings.SMTP_PASSWORD or None,
                start_tls=settings.SMTP_USE_TLS,
                timeout=settings.SMTP_TIMEOUT_SECONDS,
            )
        except (
            aiosmtplib.SMTPConnectError,
            aiosmtplib.SMTPServerDisconnected,
            aiosmtplib.SMTPTimeoutError,
            asyncio.TimeoutError,
        ) as e:
            raise TransientActionError(f"SMTP delivery to {to} failed: {e}") from e
        except aiosmtplib.SMTPResponseException as e:
            # 4xx replies are temporary by definition
            if 400 <= e.code < 500:
                raise TransientActionError(f"SMTP server deferred mail to {to}: {e}") from e
            raise ActionExecutionError(f"SMTP server rejected mail to {to}: {e}") from e
        except aiosmtplib.SMTPException as e:
            raise ActionExecutionError(f"SMTP delivery to {to} failed: {e}") from e

        logger.info(f"Email sent successfully to {to}")
