"""Scheduler running matched rules' action chains as background tasks."""

import asyncio
import logging
from typing import Any
from uuid import UUID

from ruleflow.core.automation.action_executor import ActionExecutor
from ruleflow.core.automation.action_registry import ActionContext
from ruleflow.core.automation.events import Event
from ruleflow.core.automation.recorder import ExecutionRecorder, summarize_outcome
from ruleflow.core.automation.snapshot import RuleSnapshot
from ruleflow.models.automation import AutomationExecutionStatus

logger = logging.getLogger(__name__)


class ExecutionScheduler:
    """Runs action chains.

    Every chain is an independent asyncio task, so chains of different rules
    run concurrently while the actions inside one chain run strictly in order.
    """

    def __init__(
        self,
        action_executor: ActionExecutor,
        recorder: ExecutionRecorder,
        max_queue_depth: int = 1000,
    ):
        """Initialize scheduler.

        Args:
            action_executor: Executor for single actions
            recorder: Execution recorder
            max_queue_depth: Maximum number of chains in flight
        """
        self.action_executor = action_executor
        self.recorder = recorder
        self.max_queue_depth = max_queue_depth
        self._tasks: set[asyncio.Task] = set()
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    def submit(self, rule: RuleSnapshot, event: Event, execution_id: UUID) -> asyncio.Task | None:
        """Schedule a rule's chain without waiting for it.

        Must be called from a running event loop. When the scheduler is
        stopped or the queue is full the execution is recorded as FAILURE
        instead of being scheduled.

        Returns:
            The task running the chain, or None if rejected
        """
        if not self._running:
            self.recorder.record_rejected(execution_id, "engine stopped")
            return None

        if len(self._tasks) >= self.max_queue_depth:
            self.recorder.record_rejected(
                execution_id, f"queue full ({self.max_queue_depth} chains in flight)"
            )
            return None

        task = asyncio.create_task(
            self._guarded_run(rule, event, execution_id),
            name=f"automation-{rule.id}-{event.event_id}",
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _guarded_run(self, rule: RuleSnapshot, event: Event, execution_id: UUID) -> None:
        results: list[dict[str, Any]] = []
        try:
            await self.run_chain(rule, event, execution_id, results)
        except Exception as e:
            logger.error(
                f"Chain of rule {rule.id} for event {event.event_id} crashed: {e}", exc_info=True
            )
            self.recorder.record_rejected(execution_id, f"Unexpected error: {e}", results)

    async def run_chain(
        self,
        rule: RuleSnapshot,
        event: Event,
        execution_id: UUID,
        results: list[dict[str, Any]] | None = None,
    ) -> AutomationExecutionStatus:
        """Run every action of a rule in order and record the outcome.

        Args:
            rule: Snapshot of the matched rule
            event: Triggering event
            execution_id: PENDING execution record to complete
            results: List collecting per-action results as they complete

        Returns:
            Final execution status
        """
        started_at = self.recorder.mark_running(execution_id)
        context = ActionContext(
            payload=event.payload,
            event_id=event.event_id,
            event_type=event.event_type,
            occurred_at=event.occurred_at,
            tenant_id=event.tenant_id if event.tenant_id else rule.tenant_id,
            rule_id=rule.id,
            rule_name=rule.name,
        )

        if results is None:
            results = []
        for index, action in enumerate(rule.actions):
            if action.delay_ms > 0:
                await asyncio.sleep(action.delay_ms / 1000)
            results.append(await self.action_executor.execute(index, action, context))

        outcome = summarize_outcome(results)
        self.recorder.record_outcome(execution_id, outcome, results, started_at=started_at)
        return outcome

    async def start(self) -> None:
        """Start the scheduler."""
        self._running = True
        logger.info("Execution scheduler started")

    async def drain(self) -> None:
        """Wait until every in-flight chain has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def stop(self, timeout: float | None = None) -> None:
        """Stop the scheduler, waiting up to ``timeout`` seconds for chains.

        Chains still running after the timeout are cancelled; their
        executions stay PENDING/RUNNING in the history.
        """
        self._running = False
        if self._tasks:
            try:
                await asyncio.wait_for(self.drain(), timeout)
            except asyncio.TimeoutError:
                logger.warning(f"Cancelling {len(self._tasks)} unfinished action chains")
                for task in list(self._tasks):
                    task.cancel()
                await asyncio.gather(*list(self._tasks), return_exceptions=True)
        self._tasks.clear()
        logger.info("Execution scheduler stopped")
