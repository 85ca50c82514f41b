"""Pydantic models for domain events consumed by the automation engine."""

from datetime import datetime, timezone
from typing import Any
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

# Event types the authoring surface offers out of the box. Rules may use
# any other non-empty event type as well.
KNOWN_EVENT_TYPES: dict[str, str] = {
    "ORDER_PLACED": "When a new order is created",
    "ORDER_STATUS_CHANGED": "When order status is updated",
    "ORDER_DELAYED": "When order is delayed beyond expected time",
    "ORDER_COMPLETED": "When order is marked as completed",
    "PAYMENT_RECEIVED": "When payment is successfully processed",
    "PAYMENT_FAILED": "When payment processing fails",
    "PAYMENT_OVERDUE": "When payment is overdue",
    "USER_REGISTERED": "When a new user signs up",
    "USER_INACTIVE": "When user hasn't been active for a period",
}


class Event(BaseModel):
    """Domain event handed to the engine by producers."""

    event_id: str = Field(
        default_factory=lambda: str(uuid4()),
        min_length=1,
        max_length=255,
        description="Unique event identifier (idempotency key)",
    )
    event_type: str = Field(..., description="Event type, e.g. 'ORDER_PLACED'")
    tenant_id: UUID | None = Field(default=None, description="Tenant ID (None for platform events)")
    payload: dict[str, Any] = Field(default_factory=dict, description="Event data")
    occurred_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc), description="Event timestamp (UTC)"
    )
