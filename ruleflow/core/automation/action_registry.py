"""Registry mapping action types to typed handlers."""

import logging
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, ClassVar
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from ruleflow.core.automation.errors import ActionHandlerNotFoundError

logger = logging.getLogger(__name__)


class ActionContext(BaseModel):
    """Data available to an action handler while it runs."""

    model_config = ConfigDict(frozen=True)

    payload: dict[str, Any] = Field(default_factory=dict)
    event_id: str
    event_type: str
    occurred_at: datetime | None = None
    tenant_id: UUID | None = None
    rule_id: UUID
    rule_name: str = ""

    def to_json_body(self) -> dict[str, Any]:
        """Event context as sent to outbound integrations."""
        return {
            "event": {
                "event_id": self.event_id,
                "event_type": self.event_type,
                "tenant_id": str(self.tenant_id) if self.tenant_id else None,
                "occurred_at": self.occurred_at.isoformat() if self.occurred_at else None,
                "payload": self.payload,
            },
            "rule": {"rule_id": str(self.rule_id), "name": self.rule_name},
        }


class ActionResult(BaseModel):
    """Outcome of a single action execution."""

    success: bool
    output: dict[str, Any] | None = None
    error: str | None = None

    @classmethod
    def ok(cls, **output: Any) -> "ActionResult":
        return cls(success=True, output=output or None)

    @classmethod
    def failed(cls, error: str) -> "ActionResult":
        return cls(success=False, error=error)


class ActionHandler(ABC):
    """Base class for action handlers.

    Subclasses declare the pydantic model of their config and whether
    transient failures may be retried.
    """

    config_model: ClassVar[type[BaseModel]]
    retryable: ClassVar[bool] = False

    def parse_config(self, config: dict[str, Any]) -> BaseModel:
        """Build the typed config for this handler.

        Raises:
            pydantic.ValidationError: If the config does not match the model
        """
        return self.config_model.model_validate(config)

    @abstractmethod
    async def execute(self, config: Any, context: ActionContext) -> ActionResult:
        """Run the action.

        Raises:
            ActionExecutionError: On failure (TransientActionError if retryable)
        """


class ActionRegistry:
    """Registry of action handlers keyed by action type name."""

    def __init__(self) -> None:
        self._handlers: dict[str, ActionHandler] = {}

    def register(self, action_type: str, handler: ActionHandler) -> None:
        """Register (or replace) the handler for an action type."""
        if action_type in self._handlers:
            logger.info(f"Replacing handler for action type {action_type}")
        self._handlers[action_type] = handler

    def unregister(self, action_type: str) -> None:
        self._handlers.pop(action_type, None)

    def resolve(self, action_type: str) -> ActionHandler:
        """Get the handler for an action type.

        Raises:
            ActionHandlerNotFoundError: If the type is not registered
        """
        try:
            return self._handlers[action_type]
        except KeyError:
            raise ActionHandlerNotFoundError(action_type) from None

    def __contains__(self, action_type: object) -> bool:
        return action_type in self._handlers

    def action_types(self) -> list[str]:
        return sorted(self._handlers)

    def describe(self) -> list[dict[str, Any]]:
        """Describe registered action types with their config JSON schema."""
        return [
            {
                "type": action_type,
                "retryable": handler.retryable,
                "config_schema": handler.config_model.model_json_schema(),
            }
            for action_type, handler in sorted(self._handlers.items())
        ]
