"""Automation models for rule-based automation engine."""

from datetime import UTC, datetime
from enum import Enum
from uuid import uuid4

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    Uuid,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship

from ruleflow.core.db.session import Base

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")


def utcnow() -> datetime:
    return datetime.now(UTC)


class RuleScope(str, Enum):
    """Visibility of an automation rule."""

    TENANT = "TENANT"
    GLOBAL = "GLOBAL"


class AutomationExecutionStatus(str, Enum):
    """Status of automation execution."""

    PENDING = "PENDING"
    RUNNING = "RUNNING"
    SUCCESS = "SUCCESS"
    PARTIAL_FAILURE = "PARTIAL_FAILURE"
    FAILURE = "FAILURE"

    @property
    def is_final(self) -> bool:
        return self not in (
            AutomationExecutionStatus.PENDING,
            AutomationExecutionStatus.RUNNING,
        )


class Rule(Base):
    """Rule model for automation rules."""

    __tablename__ = "rules"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    tenant_id = Column(Uuid(as_uuid=True), nullable=True, index=True)  # NULL for GLOBAL rules
    scope = Column(String(20), nullable=False, default=RuleScope.TENANT.value)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    event_type = Column(String(100), nullable=False, index=True)
    conditions = Column(JSONType, nullable=False, default=dict)  # field path -> comparison
    actions = Column(JSONType, nullable=False, default=list)  # [{type, config, delay_ms}]
    priority = Column(Integer, nullable=False, default=1)
    is_active = Column(Boolean, default=True, nullable=False, index=True)
    execution_count = Column(Integer, nullable=False, default=0)
    last_executed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
        nullable=False,
    )

    # Relationships
    versions = relationship("RuleVersion", back_populates="rule", cascade="all, delete-orphan")
    executions = relationship(
        "AutomationExecution", back_populates="rule", cascade="all, delete-orphan"
    )

    __table_args__ = (
        Index("idx_rules_event_active", "event_type", "is_active"),
        Index("idx_rules_tenant_active", "tenant_id", "is_active"),
    )

    @property
    def trigger(self) -> dict:
        return {"event_type": self.event_type, "conditions": self.conditions or {}}


class RuleVersion(Base):
    """Rule version model for versioning automation rules."""

    __tablename__ = "rule_versions"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    rule_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("rules.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    version = Column(Integer, nullable=False)
    definition = Column(JSONType, nullable=False)  # Full rule definition snapshot
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    # Relationships
    rule = relationship("Rule", back_populates="versions")

    __table_args__ = (
        Index("idx_rule_versions_rule_version", "rule_id", "version", unique=True),
    )


class AutomationExecution(Base):
    """Automation execution model for tracking rule executions."""

    __tablename__ = "automation_executions"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    rule_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("rules.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    event_id = Column(String(255), nullable=False)
    event_type = Column(String(100), nullable=False)
    tenant_id = Column(Uuid(as_uuid=True), nullable=True)
    status = Column(
        String(20),
        nullable=False,
        default=AutomationExecutionStatus.PENDING.value,
        index=True,
    )
    action_results = Column(JSONType, nullable=False, default=list)
    error_message = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False, index=True)
    started_at = Column(DateTime(timezone=True), nullable=True)
    finished_at = Column(DateTime(timezone=True), nullable=True)
    duration_ms = Column(Integer, nullable=True)

    # Relationships
    rule = relationship("Rule", back_populates="executions")

    __table_args__ = (
        # Dedup key: one execution per (rule, event)
        Index("idx_automation_executions_rule_event", "rule_id", "event_id", unique=True),
        Index("idx_automation_executions_rule_status", "rule_id", "status"),
        Index("idx_automation_executions_tenant_created", "tenant_id", "created_at"),
    )


class AutomationNotification(Base):
    """In-app notification created by a SEND_NOTIFICATION action."""

    __tablename__ = "automation_notifications"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    tenant_id = Column(Uuid(as_uuid=True), nullable=True, index=True)
    rule_id = Column(Uuid(as_uuid=True), nullable=True)
    recipient = Column(String(255), nullable=True)
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    notification_type = Column(String(20), nullable=False, default="info")
    is_read = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)


class AutomationTask(Base):
    """Work item created by a CREATE_TASK action."""

    __tablename__ = "automation_tasks"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    tenant_id = Column(Uuid(as_uuid=True), nullable=True, index=True)
    rule_id = Column(Uuid(as_uuid=True), nullable=True)
    title = Column(String(255), nullable=False)
    assignee = Column(String(255), nullable=False, index=True)  # Role or queue name
    description = Column(Text, nullable=True)
    status = Column(String(20), nullable=False, default="open")
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
