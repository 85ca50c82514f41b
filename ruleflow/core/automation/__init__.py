"""Automation module for rule-based automation engine."""

from ruleflow.core.automation.action_executor import ActionExecutor
from ruleflow.core.automation.action_registry import (
    ActionContext,
    ActionHandler,
    ActionRegistry,
    ActionResult,
)
from ruleflow.core.automation.condition_evaluator import ConditionEvaluator
from ruleflow.core.automation.engine import AutomationConfig, AutomationEngine
from ruleflow.core.automation.events import KNOWN_EVENT_TYPES, Event
from ruleflow.core.automation.handlers import build_default_registry
from ruleflow.core.automation.recorder import ExecutionRecorder
from ruleflow.core.automation.rule_parser import RuleParser
from ruleflow.core.automation.scheduler import ExecutionScheduler
from ruleflow.core.automation.service import AutomationService

__all__ = [
    "KNOWN_EVENT_TYPES",
    "ActionContext",
    "ActionExecutor",
    "ActionHandler",
    "ActionRegistry",
    "ActionResult",
    "AutomationConfig",
    "AutomationEngine",
    "AutomationService",
    "ConditionEvaluator",
    "Event",
    "ExecutionRecorder",
    "ExecutionScheduler",
    "RuleParser",
    "build_default_registry",
]
