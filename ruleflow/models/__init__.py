from ruleflow.core.db.session import Base
from ruleflow.models.automation import (
    AutomationExecution,
    AutomationNotification,
    AutomationTask,
    Rule,
    RuleVersion,
)

__all__ = [
    "AutomationExecution",
    "AutomationNotification",
    "AutomationTask",
    "Base",
    "Rule",
    "RuleVersion",
]
