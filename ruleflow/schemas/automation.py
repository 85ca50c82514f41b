"""Automation schemas for API requests and responses."""

from datetime import datetime, timedelta
from enum import Enum
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from ruleflow.models.automation import RuleScope


class TriggerSchema(BaseModel):
    """Trigger schema for automation rules."""

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "event_type": "ORDER_PLACED",
                "conditions": {"amount": {"operator": "greaterThan", "value": 100}},
            }
        }
    )

    event_type: str = Field(..., description="Event type that triggers the rule")
    conditions: dict[str, Any] = Field(
        default_factory=dict,
        description="Field path -> comparison ({operator, value} or a bare value for equals)",
    )


class TriggerUpdateSchema(BaseModel):
    """Partial trigger for rule updates."""

    event_type: str | None = Field(None, description="New event type")
    conditions: dict[str, Any] | None = Field(None, description="New conditions (replaces all)")


class ActionSchema(BaseModel):
    """Action schema for automation rules."""

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "type": "SEND_NOTIFICATION",
                "config": {"title": "New order", "message": "Order {{orderId}} placed"},
                "delay_ms": 0,
            }
        }
    )

    type: str = Field(..., description="Action type, e.g. 'SEND_EMAIL', 'TRIGGER_WEBHOOK'")
    config: dict[str, Any] = Field(default_factory=dict, description="Handler configuration")
    delay_ms: int = Field(default=0, description="Delay before the action runs (ms)")


class RuleBase(BaseModel):
    """Base schema for automation rules."""

    name: str = Field(..., description="Rule name", min_length=1, max_length=255)
    description: str | None = Field(None, description="Rule description")
    scope: RuleScope = Field(default=RuleScope.TENANT, description="TENANT or GLOBAL")
    tenant_id: UUID | None = Field(None, description="Owning tenant (required for TENANT scope)")
    trigger: TriggerSchema = Field(..., description="Trigger configuration")
    actions: list[ActionSchema] = Field(default_factory=list, description="Ordered action chain")
    priority: int = Field(default=1, description="Execution order, lower runs first")
    is_active: bool = Field(default=True, description="Whether rule is active")


class RuleCreate(RuleBase):
    """Schema for creating a rule."""

    pass


class RuleUpdate(BaseModel):
    """Schema for updating a rule."""

    name: str | None = Field(None, description="Rule name", min_length=1, max_length=255)
    description: str | None = Field(None, description="Rule description")
    scope: RuleScope | None = Field(None, description="TENANT or GLOBAL")
    tenant_id: UUID | None = Field(None, description="Owning tenant")
    trigger: TriggerUpdateSchema | None = Field(None, description="Trigger configuration")
    actions: list[ActionSchema] | None = Field(None, description="Ordered action chain")
    priority: int | None = Field(None, description="Execution order")
    is_active: bool | None = Field(None, description="Whether rule is active")


class RuleResponse(BaseModel):
    """Schema for rule response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    tenant_id: UUID | None
    scope: RuleScope
    name: str
    description: str | None
    trigger: dict[str, Any]
    actions: list[dict[str, Any]]
    priority: int
    is_active: bool
    execution_count: int
    last_executed_at: datetime | None = None
    created_at: datetime
    updated_at: datetime


class RuleVersionResponse(BaseModel):
    """Schema for rule version response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    rule_id: UUID
    version: int
    definition: dict[str, Any]
    created_at: datetime


class ExecutionPeriod(str, Enum):
    """Relative time windows for execution history."""

    LAST_DAY = "1d"
    LAST_WEEK = "7d"
    LAST_MONTH = "30d"

    @property
    def window(self) -> timedelta:
        return timedelta(days=int(self.value[:-1]))


class AutomationExecutionResponse(BaseModel):
    """Schema for automation execution response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    rule_id: UUID
    event_id: str
    event_type: str
    tenant_id: UUID | None
    status: str
    action_results: list[dict[str, Any]]
    error_message: str | None
    created_at: datetime
    started_at: datetime | None
    finished_at: datetime | None
    duration_ms: int | None


class EventEmitRequest(BaseModel):
    """Schema for emitting a domain event."""

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "event_id": "evt-1",
                "event_type": "ORDER_PLACED",
                "tenant_id": "00000000-0000-0000-0000-000000000001",
                "payload": {"orderId": "X123", "amount": 250},
            }
        }
    )

    event_id: str | None = Field(None, min_length=1, max_length=255, description="Idempotency key")
    event_type: str = Field(..., description="Event type")
    tenant_id: UUID | None = Field(None, description="Tenant ID")
    payload: dict[str, Any] = Field(default_factory=dict, description="Event data")
    occurred_at: datetime | None = Field(None, description="Event timestamp")


class EventEmitResponse(BaseModel):
    """Schema for the result of emitting an event."""

    event_id: str
    execution_ids: list[UUID]


class RuleTestRequest(BaseModel):
    """Schema for a manual rule test."""

    payload: dict[str, Any] = Field(default_factory=dict, description="Sample event payload")
    event_type: str | None = Field(None, description="Override the rule's event type")
    tenant_id: UUID | None = Field(None, description="Override the tenant")


class RuleTestResponse(BaseModel):
    """Schema for a manual rule test result."""

    matched: bool = Field(..., description="Whether the conditions matched the payload")
    execution: AutomationExecutionResponse | None = None


class StatsResponse(BaseModel):
    """Schema for automation statistics."""

    total_rules: int
    active_rules: int
    total_executions: int
    successful_executions: int
    partial_failures: int
    failed_executions: int
    pending_executions: int
    success_rate: float
    average_duration_ms: float | None
    is_running: bool
    in_flight: int


class CatalogResponse(BaseModel):
    """Schema for the authoring catalog."""

    event_types: dict[str, str]
    action_types: list[dict[str, Any]]
