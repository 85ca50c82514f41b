"""Action executor for automation rules."""

import logging
from typing import Any

from pydantic import ValidationError as PydanticValidationError
from pydantic_core import to_jsonable_python

from ruleflow.core.automation.action_registry import ActionContext, ActionRegistry, ActionResult
from ruleflow.core.automation.errors import ActionExecutionError, ActionHandlerNotFoundError
from ruleflow.core.automation.retry import RetryHandler
from ruleflow.core.automation.snapshot import ActionSpec
from ruleflow.core.automation.templating import interpolate

logger = logging.getLogger(__name__)


class ActionExecutor:
    """Executes one action of a chain and turns every failure into a result."""

    def __init__(self, registry: ActionRegistry, max_retries: int = 3, backoff_base_ms: int = 500):
        """Initialize action executor.

        Args:
            registry: Action handler registry
            max_retries: Maximum attempts for retryable action types
            backoff_base_ms: Base delay for exponential backoff between attempts
        """
        self.registry = registry
        self.retry_handler = RetryHandler(max_attempts=max_retries, backoff_base_ms=backoff_base_ms)

    async def execute(self, index: int, action: ActionSpec, context: ActionContext) -> dict[str, Any]:
        """Execute a single action.

        Args:
            index: Position of the action in its chain
            action: Action to execute
            context: Triggering event and rule metadata

        Returns:
            Per-action result dictionary with 'index', 'type', 'status',
            'attempts' and either 'output' or 'error'
        """
        attempts = 0

        def count_attempt(number: int) -> None:
            nonlocal attempts
            attempts = number

        try:
            result = await self._execute_action(action, context, count_attempt)
        except ActionExecutionError as e:
            result = ActionResult.failed(str(e))
        except Exception as e:
            logger.error(f"Failed to execute action {action.type}: {e}", exc_info=True)
            result = ActionResult.failed(f"Unexpected error: {e}")

        record: dict[str, Any] = {
            "index": index,
            "type": action.type,
            "status": "SUCCESS" if result.success else "FAILURE",
            "attempts": attempts,
        }
        if result.success:
            # Handlers may return datetimes, UUIDs or models; the record is stored as JSON
            record["output"] = to_jsonable_python(result.output, fallback=str)
        else:
            record["error"] = result.error or "Action failed"
            logger.warning(
                f"Action {index} ({action.type}) of rule {context.rule_id} failed: {record['error']}"
            )
        return record

    async def _execute_action(self, action: ActionSpec, context: ActionContext, on_attempt) -> ActionResult:
        """Resolve, configure and run an action.

        Raises:
            ActionExecutionError: If the type is unknown, the config is
                invalid, or the handler fails
        """
        try:
            handler = self.registry.resolve(action.type)
        except ActionHandlerNotFoundError as e:
            raise ActionExecutionError(str(e)) from e

        try:
            config = handler.parse_config(interpolate(action.config, context.payload))
        except PydanticValidationError as e:
            raise ActionExecutionError(f"Invalid config for {action.type}: {e}") from e

        if not handler.retryable:
            on_attempt(1)
            return await handler.execute(config, context)

        return await self.retry_handler.retry_with_backoff(
            lambda: handler.execute(config, context),
            operation_name=f"{action.type} action of rule {context.rule_id}",
            on_attempt=on_attempt,
        )
