"""Custom exceptions for the automation engine."""

from typing import Any


class AutomationError(Exception):
    """Base exception for automation errors."""

    pass


class ValidationError(AutomationError):
    """Raised when a rule definition or event is malformed."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class RuleNotFoundError(AutomationError):
    """Raised when an operation references a rule that does not exist."""

    def __init__(self, rule_id: Any):
        super().__init__(f"Rule {rule_id} not found")
        self.rule_id = rule_id


class ConditionEvaluationError(AutomationError):
    """Raised when a condition cannot be evaluated (e.g. unknown operator)."""

    pass


class ActionExecutionError(AutomationError):
    """Raised by action handlers when an action fails."""

    pass


class TransientActionError(ActionExecutionError):
    """Action failure that may succeed if retried (timeouts, 5xx)."""

    pass


class ActionHandlerNotFoundError(AutomationError, LookupError):
    """Raised when no handler is registered for an action type."""

    def __init__(self, action_type: str):
        super().__init__(f"No handler registered for action type '{action_type}'")
        self.action_type = action_type
