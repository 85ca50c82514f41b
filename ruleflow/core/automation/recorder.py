"""Execution recorder: persists execution outcomes and usage counters."""

import logging
from collections.abc import Callable, Sequence
from datetime import UTC, datetime
from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from ruleflow.core.automation.events import Event
from ruleflow.core.automation.snapshot import RuleSnapshot
from ruleflow.core.logging import log_execution_finished
from ruleflow.models.automation import AutomationExecution, AutomationExecutionStatus
from ruleflow.repositories.automation_repository import AutomationRepository

logger = logging.getLogger(__name__)


def summarize_outcome(results: Sequence[dict[str, Any]]) -> AutomationExecutionStatus:
    """Derive the execution outcome from per-action results."""
    succeeded = sum(1 for result in results if result.get("status") == "SUCCESS")
    if results and succeeded == len(results):
        return AutomationExecutionStatus.SUCCESS
    if succeeded:
        return AutomationExecutionStatus.PARTIAL_FAILURE
    return AutomationExecutionStatus.FAILURE


class ExecutionRecorder:
    """Records execution lifecycle transitions.

    Each method opens its own short-lived session, so the recorder can be
    shared by concurrently running action chains.
    """

    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory

    def create_pending(self, rule: RuleSnapshot, event: Event) -> UUID | None:
        """Insert a PENDING execution for (rule, event).

        Returns:
            The execution ID, or None if the pair was already recorded
        """
        with self.session_factory() as db:
            repository = AutomationRepository(db)
            if repository.get_execution_by_rule_and_event(rule.id, event.event_id):
                return None
            # The unique index still catches concurrent duplicates
            execution = repository.create_execution(
                {
                    "rule_id": rule.id,
                    "event_id": event.event_id,
                    "event_type": event.event_type,
                    "tenant_id": event.tenant_id if event.tenant_id else rule.tenant_id,
                    "status": AutomationExecutionStatus.PENDING.value,
                }
            )
            return execution.id if execution else None

    def mark_running(self, execution_id: UUID) -> datetime:
        """Move an execution to RUNNING and stamp its start time."""
        started_at = datetime.now(UTC)
        with self.session_factory() as db:
            if not AutomationRepository(db).mark_execution_running(execution_id, started_at):
                logger.warning(f"Execution {execution_id} was not pending when started")
        return started_at

    def record_outcome(
        self,
        execution_id: UUID,
        outcome: AutomationExecutionStatus,
        per_action_results: Sequence[dict[str, Any]],
        started_at: datetime | None = None,
    ) -> bool:
        """Persist the final record and bump the rule's execution counter.

        Both writes happen in one transaction. The counter uses an atomic
        ``execution_count = execution_count + 1`` update, and only the first
        final write for an execution counts.

        Returns:
            True if the outcome was recorded, False if the execution was
            missing or already final
        """
        finished_at = datetime.now(UTC)
        errors = [
            f"{result['type']}: {result['error']}"
            for result in per_action_results
            if result.get("error")
        ]
        values: dict[str, Any] = {
            "status": AutomationExecutionStatus(outcome).value,
            "action_results": list(per_action_results),
            "error_message": "; ".join(errors) or None,
            "finished_at": finished_at,
        }
        if started_at is not None:
            values["duration_ms"] = int((finished_at - started_at).total_seconds() * 1000)

        with self.session_factory() as db:
            repository = AutomationRepository(db)
            execution = repository.get_execution(execution_id)
            if execution is None:
                logger.warning(f"Execution {execution_id} no longer exists, outcome dropped")
                return False
            rule_id, event_id = execution.rule_id, execution.event_id
            if not repository.finish_execution(execution_id, values):
                db.rollback()
                logger.warning(f"Execution {execution_id} already final, outcome ignored")
                return False
            repository.increment_execution_count(rule_id)
            db.commit()

        log_execution_finished(
            str(execution_id),
            str(rule_id),
            event_id,
            values["status"],
            values.get("duration_ms"),
        )
        return True

    def record_rejected(
        self,
        execution_id: UUID,
        reason: str,
        action_results: Sequence[dict[str, Any]] | None = None,
    ) -> bool:
        """Mark an execution as FAILURE when its chain could not complete.

        ``action_results`` holds the results collected before the chain
        stopped. When any action was attempted the rule's execution counter
        is bumped as for a recorded outcome.
        """
        values: dict[str, Any] = {
            "status": AutomationExecutionStatus.FAILURE.value,
            "error_message": reason,
            "finished_at": datetime.now(UTC),
        }
        if action_results:
            values["action_results"] = list(action_results)

        with self.session_factory() as db:
            repository = AutomationRepository(db)
            execution = repository.get_execution(execution_id)
            recorded = execution is not None and repository.finish_execution(execution_id, values)
            if recorded and action_results:
                repository.increment_execution_count(execution.rule_id)
            db.commit()
        if recorded:
            logger.warning(f"Execution {execution_id} rejected: {reason}")
        return recorded

    def get_execution(self, execution_id: UUID) -> AutomationExecution | None:
        with self.session_factory() as db:
            return AutomationRepository(db).get_execution(execution_id)

    def get_history(
        self,
        rule_id: UUID | None = None,
        limit: int = 20,
        offset: int = 0,
        *,
        tenant_id: UUID | None = None,
        status: AutomationExecutionStatus | None = None,
        since: datetime | None = None,
    ) -> list[AutomationExecution]:
        """Get execution history, newest first.

        Args:
            rule_id: Restrict to one rule (all rules when None)
            limit: Page size
            offset: Number of executions to skip
            tenant_id: Restrict to one tenant
            status: Restrict to one execution status
            since: Only executions created at or after this time
        """
        with self.session_factory() as db:
            return AutomationRepository(db).get_executions(
                rule_id=rule_id, tenant_id=tenant_id, status=status, since=since, skip=offset, limit=limit
            )

    def count_history(
        self,
        rule_id: UUID | None = None,
        *,
        tenant_id: UUID | None = None,
        status: AutomationExecutionStatus | None = None,
        since: datetime | None = None,
    ) -> int:
        with self.session_factory() as db:
            return AutomationRepository(db).count_executions(
                rule_id=rule_id, tenant_id=tenant_id, status=status, since=since
            )

    def get_stats(self, tenant_id: UUID | None = None) -> dict[str, Any]:
        """Aggregate rule and execution statistics for dashboards."""
        with self.session_factory() as db:
            repository = AutomationRepository(db)
            by_status = repository.count_executions_by_status(tenant_id)
            total_rules = repository.count_all_rules(tenant_id=tenant_id)
            active_rules = repository.count_active_rules(tenant_id)
            average_duration = repository.average_execution_duration(tenant_id)

        total = sum(by_status.values())
        successful = by_status.get(AutomationExecutionStatus.SUCCESS.value, 0)
        finished = total - sum(
            by_status.get(status.value, 0)
            for status in (AutomationExecutionStatus.PENDING, AutomationExecutionStatus.RUNNING)
        )
        return {
            "total_rules": total_rules,
            "active_rules": active_rules,
            "total_executions": total,
            "successful_executions": successful,
            "partial_failures": by_status.get(AutomationExecutionStatus.PARTIAL_FAILURE.value, 0),
            "failed_executions": by_status.get(AutomationExecutionStatus.FAILURE.value, 0),
            "pending_executions": by_status.get(AutomationExecutionStatus.PENDING.value, 0)
            + by_status.get(AutomationExecutionStatus.RUNNING.value, 0),
            "success_rate": round(successful / finished * 100, 2) if finished else 0.0,
            "average_duration_ms": round(average_duration, 2) if average_duration is not None else None,
        }
