"""Automation engine: event dispatch entry point."""

import logging
from collections.abc import Callable, Mapping
from typing import Any
from uuid import UUID, uuid4

from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from ruleflow.core.automation.action_executor import ActionExecutor
from ruleflow.core.automation.action_registry import ActionRegistry
from ruleflow.core.automation.condition_evaluator import ConditionEvaluator
from ruleflow.core.automation.errors import ConditionEvaluationError, ValidationError
from ruleflow.core.automation.events import Event
from ruleflow.core.automation.handlers import build_default_registry
from ruleflow.core.automation.recorder import ExecutionRecorder
from ruleflow.core.automation.scheduler import ExecutionScheduler
from ruleflow.core.automation.service import AutomationService
from ruleflow.core.automation.snapshot import RuleSnapshot
from ruleflow.core.config_file import Settings, get_settings
from ruleflow.models.automation import AutomationExecution

logger = logging.getLogger(__name__)


class AutomationConfig(BaseModel):
    """Runtime options of the automation engine."""

    max_retries: int = Field(default=3, ge=1, description="Total attempts for retryable actions")
    backoff_base_ms: int = Field(default=500, ge=0)
    max_queue_depth: int = Field(default=1000, ge=1, description="Maximum chains in flight")
    shutdown_timeout_seconds: float = Field(default=30.0, ge=0)

    @classmethod
    def from_settings(cls, settings: Settings) -> "AutomationConfig":
        return cls(
            max_retries=settings.AUTOMATION_MAX_RETRIES,
            backoff_base_ms=settings.AUTOMATION_BACKOFF_BASE_MS,
            max_queue_depth=settings.AUTOMATION_MAX_QUEUE_DEPTH,
            shutdown_timeout_seconds=settings.AUTOMATION_SHUTDOWN_TIMEOUT_SECONDS,
        )


class AutomationEngine:
    """Engine matching events to rules and scheduling their action chains."""

    def __init__(
        self,
        session_factory: Callable[[], Session],
        registry: ActionRegistry | None = None,
        config: AutomationConfig | None = None,
    ):
        """Initialize automation engine.

        Args:
            session_factory: Callable returning a new database session
            registry: Action handler registry (built-ins when omitted)
            config: Engine options (defaults when omitted)
        """
        self.session_factory = session_factory
        self.config = config or AutomationConfig()
        self.registry = registry or build_default_registry(session_factory)
        self.condition_evaluator = ConditionEvaluator()
        self.recorder = ExecutionRecorder(session_factory)
        self.action_executor = ActionExecutor(
            self.registry,
            max_retries=self.config.max_retries,
            backoff_base_ms=self.config.backoff_base_ms,
        )
        self.scheduler = ExecutionScheduler(
            self.action_executor, self.recorder, max_queue_depth=self.config.max_queue_depth
        )

    @classmethod
    def from_settings(
        cls,
        session_factory: Callable[[], Session],
        settings: Settings | None = None,
        **registry_options: Any,
    ) -> "AutomationEngine":
        """Build an engine configured from application settings."""
        settings = settings or get_settings()
        registry = build_default_registry(session_factory, settings, **registry_options)
        return cls(session_factory, registry, AutomationConfig.from_settings(settings))

    def _active_rules(self, event: Event) -> list[RuleSnapshot]:
        with self.session_factory() as db:
            return AutomationService(db).get_active_rules_for_event(
                event.event_type, event.tenant_id
            )

    def _matches(self, rule: RuleSnapshot, event: Event) -> bool:
        try:
            return self.condition_evaluator.evaluate(rule.conditions, event.payload)
        except ConditionEvaluationError as e:
            logger.error(f"Skipping rule {rule.id} for event {event.event_id}: {e}")
            return False

    async def dispatch(self, event: Event) -> list[UUID]:
        """Schedule every active rule matching an event.

        Returns as soon as the chains are scheduled; their outcomes appear
        in the execution history.

        Args:
            event: Event to process

        Returns:
            IDs of the executions scheduled, in priority order

        Raises:
            ValidationError: If the event has no event type
        """
        if not event.event_type or not event.event_type.strip():
            raise ValidationError("event_type must be a non-empty string", {"event_type": ["required"]})

        execution_ids = []
        for rule in self._active_rules(event):
            if not self._matches(rule, event):
                logger.debug(f"Conditions not met for rule {rule.id} with event {event.event_id}")
                continue

            execution_id = self.recorder.create_pending(rule, event)
            if execution_id is None:
                logger.info(f"Event {event.event_id} already processed by rule {rule.id}, skipping")
                continue

            self.scheduler.submit(rule, event, execution_id)
            execution_ids.append(execution_id)

        logger.debug(
            f"Event {event.event_id} ({event.event_type}) scheduled {len(execution_ids)} executions"
        )
        return execution_ids

    async def emit(self, event: Event | Mapping[str, Any]) -> list[UUID]:
        """Ingestion point for domain code; accepts an Event or its dict form."""
        if not isinstance(event, Event):
            event = Event.model_validate(event)
        return await self.dispatch(event)

    async def test_rule(
        self,
        rule_id: UUID,
        payload: dict[str, Any] | None = None,
        event_type: str | None = None,
        tenant_id: UUID | None = None,
    ) -> AutomationExecution | None:
        """Run one rule against a synthetic event and wait for the outcome.

        The rule runs even when inactive. Conditions are still evaluated.

        Returns:
            The completed execution, or None if the conditions did not match

        Raises:
            RuleNotFoundError: If the rule does not exist
            ConditionEvaluationError: If the rule has a malformed condition
        """
        with self.session_factory() as db:
            rule = RuleSnapshot.from_rule(AutomationService(db).require_rule(rule_id))

        event = Event(
            event_id=f"test-{uuid4()}",
            event_type=event_type or rule.event_type,
            tenant_id=tenant_id or rule.tenant_id,
            payload=payload or {},
        )
        if not self.condition_evaluator.evaluate(rule.conditions, event.payload):
            return None

        execution_id = self.recorder.create_pending(rule, event)
        await self.scheduler.run_chain(rule, event, execution_id)
        return self.recorder.get_execution(execution_id)

    def get_stats(self, tenant_id: UUID | None = None) -> dict[str, Any]:
        stats = self.recorder.get_stats(tenant_id)
        stats["is_running"] = self.scheduler.is_running
        stats["in_flight"] = self.scheduler.in_flight
        return stats

    async def start(self) -> None:
        await self.scheduler.start()
        logger.info("Automation engine started")

    async def drain(self) -> None:
        """Wait for every scheduled chain to finish."""
        await self.scheduler.drain()

    async def stop(self) -> None:
        await self.scheduler.stop(timeout=self.config.shutdown_timeout_seconds)
        logger.info("Automation engine stopped")
