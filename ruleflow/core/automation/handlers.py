"""Built-in action handlers and their typed configs."""

import hashlib
import hmac
import json
import logging
from typing import Literal

import httpx
from pydantic import BaseModel, ConfigDict, Field

from ruleflow.core.automation.action_registry import (
    ActionContext,
    ActionHandler,
    ActionRegistry,
    ActionResult,
)
from ruleflow.core.automation.collaborators import (
    DatabaseNotificationSink,
    DatabaseTaskQueue,
    EmailTemplateCatalog,
    EntityStatusRegistry,
    MailTransport,
    NotificationSink,
    SessionFactory,
    SMTPMailTransport,
    StatusUpdater,
    TaskQueue,
)
from ruleflow.core.automation.errors import ActionExecutionError, TransientActionError
from ruleflow.core.automation.templating import lookup_path, render_template
from ruleflow.core.config_file import Settings, get_settings

logger = logging.getLogger(__name__)

SEND_NOTIFICATION = "SEND_NOTIFICATION"
SEND_EMAIL = "SEND_EMAIL"
UPDATE_STATUS = "UPDATE_STATUS"
CREATE_TASK = "CREATE_TASK"
TRIGGER_WEBHOOK = "TRIGGER_WEBHOOK"


class _ActionConfig(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class NotificationConfig(_ActionConfig):
    title: str = Field(..., min_length=1)
    message: str = Field(..., min_length=1)
    notification_type: Literal["info", "success", "warning", "error"] = Field(
        default="info", alias="notificationType"
    )
    recipient: str | None = None


class EmailConfig(_ActionConfig):
    subject: str = Field(..., min_length=1)
    template: str = Field(..., min_length=1, description="Template name or template text")
    to: str | None = Field(default=None, description="Recipient; defaults to payload 'email'")


class StatusConfig(_ActionConfig):
    entity: str = Field(..., min_length=1, description="Entity type, e.g. 'order'")
    status: str = Field(..., min_length=1)
    entity_id: str | None = Field(default=None, alias="entityId")


class TaskConfig(_ActionConfig):
    title: str = Field(..., min_length=1)
    assignee: str = Field(..., min_length=1, description="Role or queue name")
    description: str | None = None


class WebhookConfig(_ActionConfig):
    url: str = Field(..., min_length=1)
    method: Literal["POST", "PUT", "PATCH"] = "POST"
    headers: dict[str, str] = Field(default_factory=dict)
    secret: str | None = Field(default=None, description="HMAC-SHA256 signing secret")


class SendNotificationHandler(ActionHandler):
    """Delivers an in-app notification."""

    config_model = NotificationConfig

    def __init__(self, sink: NotificationSink):
        self.sink = sink

    async def execute(self, config: NotificationConfig, context: ActionContext) -> ActionResult:
        notification_id = await self.sink.send(
            tenant_id=context.tenant_id,
            rule_id=context.rule_id,
            title=config.title,
            message=config.message,
            notification_type=config.notification_type,
            recipient=config.recipient,
        )
        return ActionResult.ok(
            notification_id=notification_id, title=config.title, message=config.message
        )


class SendEmailHandler(ActionHandler):
    """Renders an email template and hands it to the mail transport."""

    config_model = EmailConfig
    retryable = True

    def __init__(self, transport: MailTransport, templates: EmailTemplateCatalog | None = None):
        self.transport = transport
        self.templates = templates or EmailTemplateCatalog()

    async def execute(self, config: EmailConfig, context: ActionContext) -> ActionResult:
        recipient = config.to or lookup_path(context.payload, "email", default=None)
        if not recipient:
            raise ActionExecutionError("Email action has no recipient ('to' or payload 'email')")

        body = render_template(self.templates.resolve(config.template), context.payload)
        await self.transport.send(to=str(recipient), subject=config.subject, body=body)
        return ActionResult.ok(to=str(recipient), subject=config.subject)


class UpdateStatusHandler(ActionHandler):
    """Applies a status transition to an external entity."""

    config_model = StatusConfig

    def __init__(self, updater: StatusUpdater):
        self.updater = updater

    async def execute(self, config: StatusConfig, context: ActionContext) -> ActionResult:
        result = await self.updater.update_status(
            tenant_id=context.tenant_id,
            entity=config.entity,
            entity_id=config.entity_id,
            status=config.status,
        )
        output = {"entity": config.entity, "entity_id": config.entity_id, "status": config.status}
        if result:
            output["result"] = result
        return ActionResult.ok(**output)


class CreateTaskHandler(ActionHandler):
    """Creates a work item for a role or queue."""

    config_model = TaskConfig

    def __init__(self, queue: TaskQueue):
        self.queue = queue

    async def execute(self, config: TaskConfig, context: ActionContext) -> ActionResult:
        task_id = await self.queue.create_task(
            tenant_id=context.tenant_id,
            rule_id=context.rule_id,
            title=config.title,
            assignee=config.assignee,
            description=config.description,
        )
        return ActionResult.ok(task_id=task_id, assignee=config.assignee)


class TriggerWebhookHandler(ActionHandler):
    """Calls an external webhook with the event context as JSON body."""

    config_model = WebhookConfig
    retryable = True

    def __init__(self, timeout: float = 10.0, transport: httpx.AsyncBaseTransport | None = None):
        self.timeout = timeout
        self.transport = transport

    async def execute(self, config: WebhookConfig, context: ActionContext) -> ActionResult:
        body = context.to_json_body()
        content = json.dumps(body, default=str).encode()

        headers = dict(config.headers)
        headers["Content-Type"] = "application/json"
        headers["X-Automation-Rule-Id"] = str(context.rule_id)
        headers["X-Automation-Event-Id"] = context.event_id
        if config.secret:
            signature = hmac.new(config.secret.encode(), content, hashlib.sha256).hexdigest()
            headers["X-Webhook-Signature"] = f"sha256={signature}"

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.request(
                    config.method, config.url, content=content, headers=headers
                )
        except httpx.TimeoutException as e:
            raise TransientActionError(f"Webhook {config.url} timed out") from e
        except httpx.UnsupportedProtocol as e:
            raise ActionExecutionError(f"Invalid webhook URL {config.url!r}: {e}") from e
        except httpx.TransportError as e:
            raise TransientActionError(f"Webhook {config.url} unreachable: {e}") from e
        except httpx.InvalidURL as e:
            raise ActionExecutionError(f"Invalid webhook URL {config.url!r}: {e}") from e

        if response.status_code >= 500:
            raise TransientActionError(
                f"Webhook {config.url} failed with status {response.status_code}"
            )
        if response.status_code >= 400:
            raise ActionExecutionError(
                f"Webhook {config.url} rejected request with status {response.status_code}"
            )

        logger.info(f"Webhook {config.url} delivered successfully")
        return ActionResult.ok(status_code=response.status_code)


def build_default_registry(
    session_factory: SessionFactory,
    settings: Settings | None = None,
    *,
    notification_sink: NotificationSink | None = None,
    mail_transport: MailTransport | None = None,
    email_templates: EmailTemplateCatalog | None = None,
    status_updater: StatusUpdater | None = None,
    task_queue: TaskQueue | None = None,
    webhook_transport: httpx.AsyncBaseTransport | None = None,
) -> ActionRegistry:
    """Create a registry with the five built-in action types."""
    settings = settings or get_settings()
    registry = ActionRegistry()
    registry.register(
        SEND_NOTIFICATION,
        SendNotificationHandler(notification_sink or DatabaseNotificationSink(session_factory)),
    )
    registry.register(
        SEND_EMAIL,
        SendEmailHandler(mail_transport or SMTPMailTransport(settings), email_templates),
    )
    registry.register(UPDATE_STATUS, UpdateStatusHandler(status_updater or EntityStatusRegistry()))
    registry.register(CREATE_TASK, CreateTaskHandler(task_queue or DatabaseTaskQueue(session_factory)))
    registry.register(
        TRIGGER_WEBHOOK,
        TriggerWebhookHandler(timeout=settings.WEBHOOK_TIMEOUT_SECONDS, transport=webhook_transport),
    )
    return registry
