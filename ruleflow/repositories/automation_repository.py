"""Automation repository for data access operations."""

from datetime import UTC, datetime
from typing import Any
from uuid import UUID

from sqlalchemy import func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ruleflow.models.automation import (
    AutomationExecution,
    AutomationExecutionStatus,
    AutomationNotification,
    AutomationTask,
    Rule,
    RuleScope,
    RuleVersion,
)

_OPEN_STATUSES = (
    AutomationExecutionStatus.PENDING.value,
    AutomationExecutionStatus.RUNNING.value,
)


class AutomationRepository:
    """Repository for automation data access."""

    def __init__(self, db: Session):
        """Initialize repository with database session."""
        self.db = db

    # Rule operations
    def create_rule(self, rule_data: dict) -> Rule:
        """Create a new rule."""
        rule = Rule(**rule_data)
        self.db.add(rule)
        self.db.commit()
        self.db.refresh(rule)
        return rule

    def get_rule_by_id(self, rule_id: UUID) -> Rule | None:
        """Get rule by ID."""
        return self.db.get(Rule, rule_id)

    def _filtered_rules(
        self,
        tenant_id: UUID | None = None,
        scope: RuleScope | None = None,
        is_active: bool | None = None,
        event_type: str | None = None,
        search: str | None = None,
    ):
        query = select(Rule)
        if tenant_id is not None:
            # A tenant sees its own rules plus the global ones
            query = query.where(
                or_(Rule.tenant_id == tenant_id, Rule.scope == RuleScope.GLOBAL.value)
            )
        if scope is not None:
            query = query.where(Rule.scope == RuleScope(scope).value)
        if is_active is not None:
            query = query.where(Rule.is_active.is_(is_active))
        if event_type:
            query = query.where(Rule.event_type == event_type)
        if search:
            query = query.where(Rule.name.ilike(f"%{search}%"))
        return query

    def get_all_rules(
        self,
        tenant_id: UUID | None = None,
        scope: RuleScope | None = None,
        is_active: bool | None = None,
        event_type: str | None = None,
        search: str | None = None,
        skip: int = 0,
        limit: int = 100,
    ) -> list[Rule]:
        """Get rules matching the filters with pagination."""
        query = (
            self._filtered_rules(tenant_id, scope, is_active, event_type, search)
            .order_by(Rule.priority.asc(), Rule.id.asc())
            .offset(skip)
            .limit(limit)
        )
        return list(self.db.scalars(query).all())

    def count_all_rules(
        self,
        tenant_id: UUID | None = None,
        scope: RuleScope | None = None,
        is_active: bool | None = None,
        event_type: str | None = None,
        search: str | None = None,
    ) -> int:
        """Count rules matching the filters."""
        subquery = self._filtered_rules(tenant_id, scope, is_active, event_type, search).subquery()
        return self.db.scalar(select(func.count()).select_from(subquery)) or 0

    def get_active_rules_for_event(self, event_type: str, tenant_id: UUID | None) -> list[Rule]:
        """Get active rules triggered by an event type, in execution order.

        Global rules always apply; tenant rules only when the tenant matches.
        """
        scope_filter = Rule.scope == RuleScope.GLOBAL.value
        if tenant_id is not None:
            scope_filter = or_(
                scope_filter,
                (Rule.scope == RuleScope.TENANT.value) & (Rule.tenant_id == tenant_id),
            )
        query = (
            select(Rule)
            .where(Rule.event_type == event_type, Rule.is_active.is_(True), scope_filter)
            .order_by(Rule.priority.asc(), Rule.id.asc())
        )
        return list(self.db.scalars(query).all())

    def update_rule(self, rule_id: UUID, rule_data: dict) -> Rule | None:
        """Update a rule."""
        rule = self.get_rule_by_id(rule_id)
        if not rule:
            return None
        for key, value in rule_data.items():
            setattr(rule, key, value)
        self.db.commit()
        self.db.refresh(rule)
        return rule

    def delete_rule(self, rule_id: UUID) -> bool:
        """Delete a rule."""
        rule = self.get_rule_by_id(rule_id)
        if not rule:
            return False
        self.db.delete(rule)
        self.db.commit()
        return True

    def increment_execution_count(self, rule_id: UUID) -> None:
        """Atomically bump a rule's execution counter (caller commits)."""
        now = datetime.now(UTC)
        self.db.execute(
            update(Rule)
            .where(Rule.id == rule_id)
            .values(execution_count=Rule.execution_count + 1, last_executed_at=now, updated_at=now)
        )

    def count_active_rules(self, tenant_id: UUID | None = None) -> int:
        """Count active rules visible to a tenant (all rules when tenant is None)."""
        return self.count_all_rules(tenant_id=tenant_id, is_active=True)

    # RuleVersion operations
    def create_rule_version(self, version_data: dict) -> RuleVersion:
        """Create a new rule version."""
        version = RuleVersion(**version_data)
        self.db.add(version)
        self.db.commit()
        self.db.refresh(version)
        return version

    def get_rule_versions(self, rule_id: UUID) -> list[RuleVersion]:
        """Get all versions for a rule."""
        return list(
            self.db.scalars(
                select(RuleVersion)
                .where(RuleVersion.rule_id == rule_id)
                .order_by(RuleVersion.version.desc())
            ).all()
        )

    def get_latest_version(self, rule_id: UUID) -> RuleVersion | None:
        """Get the latest version for a rule."""
        return self.db.scalars(
            select(RuleVersion)
            .where(RuleVersion.rule_id == rule_id)
            .order_by(RuleVersion.version.desc())
            .limit(1)
        ).first()

    # AutomationExecution operations
    def create_execution(self, execution_data: dict) -> AutomationExecution | None:
        """Create a new automation execution record.

        Returns None when an execution already exists for the same
        (rule_id, event_id) pair.
        """
        execution = AutomationExecution(**execution_data)
        self.db.add(execution)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            return None
        self.db.refresh(execution)
        return execution

    def get_execution(self, execution_id: UUID) -> AutomationExecution | None:
        """Get execution by ID."""
        return self.db.get(AutomationExecution, execution_id)

    def get_execution_by_rule_and_event(
        self, rule_id: UUID, event_id: str
    ) -> AutomationExecution | None:
        """Get execution by dedup key (for idempotency check)."""
        return self.db.scalars(
            select(AutomationExecution).where(
                AutomationExecution.rule_id == rule_id,
                AutomationExecution.event_id == event_id,
            )
        ).first()

    def mark_execution_running(self, execution_id: UUID, started_at: datetime) -> bool:
        """Move a pending execution to RUNNING."""
        result = self.db.execute(
            update(AutomationExecution)
            .where(
                AutomationExecution.id == execution_id,
                AutomationExecution.status == AutomationExecutionStatus.PENDING.value,
            )
            .values(status=AutomationExecutionStatus.RUNNING.value, started_at=started_at)
        )
        self.db.commit()
        return result.rowcount == 1

    def finish_execution(self, execution_id: UUID, values: dict[str, Any]) -> bool:
        """Write the final state of an open execution (caller commits).

        Only PENDING or RUNNING executions are updated, so a final record is
        never overwritten.
        """
        result = self.db.execute(
            update(AutomationExecution)
            .where(
                AutomationExecution.id == execution_id,
                AutomationExecution.status.in_(_OPEN_STATUSES),
            )
            .values(**values)
        )
        return result.rowcount == 1

    def _filter_executions(
        self,
        query,
        rule_id: UUID | None = None,
        tenant_id: UUID | None = None,
        status: str | None = None,
        since: datetime | None = None,
    ):
        if rule_id is not None:
            query = query.where(AutomationExecution.rule_id == rule_id)
        if tenant_id is not None:
            query = query.where(AutomationExecution.tenant_id == tenant_id)
        if status is not None:
            query = query.where(AutomationExecution.status == AutomationExecutionStatus(status).value)
        if since is not None:
            if since.tzinfo is not None:
                since = since.astimezone(UTC)
            query = query.where(AutomationExecution.created_at >= since)
        return query

    def get_executions(
        self,
        rule_id: UUID | None = None,
        tenant_id: UUID | None = None,
        status: str | None = None,
        since: datetime | None = None,
        skip: int = 0,
        limit: int = 100,
    ) -> list[AutomationExecution]:
        """Get executions, newest first, optionally filtered by rule, tenant, status and age."""
        query = self._filter_executions(
            select(AutomationExecution), rule_id, tenant_id, status, since
        )
        return list(
            self.db.scalars(
                query.order_by(AutomationExecution.created_at.desc(), AutomationExecution.id.desc())
                .offset(skip)
                .limit(limit)
            ).all()
        )

    def count_executions(
        self,
        rule_id: UUID | None = None,
        tenant_id: UUID | None = None,
        status: str | None = None,
        since: datetime | None = None,
    ) -> int:
        """Count executions matching the same filters as get_executions."""
        query = self._filter_executions(
            select(func.count(AutomationExecution.id)), rule_id, tenant_id, status, since
        )
        return self.db.scalar(query) or 0

    def count_executions_by_status(self, tenant_id: UUID | None = None) -> dict[str, int]:
        """Count executions grouped by status."""
        query = select(AutomationExecution.status, func.count(AutomationExecution.id)).group_by(
            AutomationExecution.status
        )
        if tenant_id is not None:
            query = query.where(AutomationExecution.tenant_id == tenant_id)
        return {status: count for status, count in self.db.execute(query).all()}

    def average_execution_duration(self, tenant_id: UUID | None = None) -> float | None:
        """Average duration in milliseconds of finished executions."""
        query = select(func.avg(AutomationExecution.duration_ms)).where(
            AutomationExecution.duration_ms.is_not(None)
        )
        if tenant_id is not None:
            query = query.where(AutomationExecution.tenant_id == tenant_id)
        value = self.db.scalar(query)
        return float(value) if value is not None else None

    # Action side-effect sinks
    def create_notification(self, notification_data: dict) -> AutomationNotification:
        """Store an in-app notification."""
        notification = AutomationNotification(**notification_data)
        self.db.add(notification)
        self.db.commit()
        self.db.refresh(notification)
        return notification

    def create_task(self, task_data: dict) -> AutomationTask:
        """Store a work item."""
        task = AutomationTask(**task_data)
        self.db.add(task)
        self.db.commit()
        self.db.refresh(task)
        return task
