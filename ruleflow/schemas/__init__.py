"""Pydantic schemas for API requests and responses."""

from ruleflow.schemas.automation import (
    ActionSchema,
    AutomationExecutionResponse,
    CatalogResponse,
    EventEmitRequest,
    EventEmitResponse,
    ExecutionPeriod,
    RuleCreate,
    RuleResponse,
    RuleTestRequest,
    RuleTestResponse,
    RuleUpdate,
    RuleVersionResponse,
    StatsResponse,
    TriggerSchema,
    TriggerUpdateSchema,
)
from ruleflow.schemas.common import (
    ErrorDetail,
    ErrorResponse,
    PaginationMeta,
    StandardListResponse,
    StandardResponse,
)

__all__ = [
    "ActionSchema",
    "AutomationExecutionResponse",
    "CatalogResponse",
    "ErrorDetail",
    "ErrorResponse",
    "EventEmitRequest",
    "EventEmitResponse",
    "ExecutionPeriod",
    "PaginationMeta",
    "RuleCreate",
    "RuleResponse",
    "RuleTestRequest",
    "RuleTestResponse",
    "RuleUpdate",
    "RuleVersionResponse",
    "StandardListResponse",
    "StandardResponse",
    "StatsResponse",
    "TriggerSchema",
    "TriggerUpdateSchema",
]
