"""Automation router for rule management and event ingestion."""

from datetime import UTC, datetime
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.orm import Session

from ruleflow.core.automation.engine import AutomationEngine
from ruleflow.core.automation.errors import (
    ConditionEvaluationError,
    RuleNotFoundError,
    ValidationError,
)
from ruleflow.core.automation.events import KNOWN_EVENT_TYPES, Event
from ruleflow.core.automation.service import AutomationService
from ruleflow.core.db.deps import get_db
from ruleflow.core.exceptions import raise_bad_request, raise_not_found
from ruleflow.models.automation import AutomationExecutionStatus, RuleScope
from ruleflow.schemas.automation import (
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
)
from ruleflow.schemas.common import PaginationMeta, StandardListResponse, StandardResponse

router = APIRouter()


def get_automation_engine(request: Request) -> AutomationEngine:
    """Dependency to get the application's AutomationEngine."""
    return request.app.state.automation_engine


def get_automation_service(
    db: Annotated[Session, Depends(get_db)],
    engine: Annotated[AutomationEngine, Depends(get_automation_engine)],
) -> AutomationService:
    """Dependency to get AutomationService."""
    return AutomationService(db, engine.registry)


def _rule_not_found(rule_id: UUID) -> None:
    raise_not_found("Automation rule", str(rule_id))


@router.post(
    "/rules",
    response_model=StandardResponse[RuleResponse],
    status_code=status.HTTP_201_CREATED,
    summary="Create automation rule",
    description="Create a new automation rule. The definition is validated before storing.",
)
async def create_rule(
    rule_data: RuleCreate,
    service: Annotated[AutomationService, Depends(get_automation_service)],
) -> StandardResponse[RuleResponse]:
    """Create a new automation rule."""
    try:
        rule = service.create_rule(rule_data.model_dump(mode="json"))
    except ValidationError as e:
        raise_bad_request("AUTOMATION_RULE_INVALID", e.message, e.details)

    return StandardResponse(data=RuleResponse.model_validate(rule))


@router.get(
    "/rules",
    response_model=StandardListResponse[RuleResponse],
    status_code=status.HTTP_200_OK,
    summary="List automation rules",
    description="List automation rules in execution order.",
)
async def list_rules(
    service: Annotated[AutomationService, Depends(get_automation_service)],
    page: int = Query(default=1, ge=1, description="Page number"),
    page_size: int = Query(default=20, ge=1, le=100, description="Page size"),
    tenant_id: UUID | None = Query(default=None, description="Rules visible to this tenant"),
    scope: RuleScope | None = Query(default=None, description="Filter by scope"),
    is_active: bool | None = Query(default=None, description="Filter by active flag"),
    event_type: str | None = Query(default=None, description="Filter by event type"),
    search: str | None = Query(default=None, description="Search in rule names"),
) -> StandardListResponse[RuleResponse]:
    """List automation rules."""
    filters = {
        "tenant_id": tenant_id,
        "scope": scope,
        "is_active": is_active,
        "event_type": event_type,
        "search": search,
    }
    skip = (page - 1) * page_size
    rules = service.get_all_rules(**filters, skip=skip, limit=page_size)
    total = service.count_rules(**filters)

    return StandardListResponse(
        data=[RuleResponse.model_validate(rule) for rule in rules],
        meta=PaginationMeta.build(total, page, page_size),
    )


@router.get(
    "/rules/{rule_id}",
    response_model=StandardResponse[RuleResponse],
    status_code=status.HTTP_200_OK,
    summary="Get automation rule",
)
async def get_rule(
    rule_id: UUID,
    service: Annotated[AutomationService, Depends(get_automation_service)],
) -> StandardResponse[RuleResponse]:
    """Get a specific automation rule."""
    rule = service.get_rule(rule_id)
    if not rule:
        _rule_not_found(rule_id)

    return StandardResponse(data=RuleResponse.model_validate(rule))


@router.put(
    "/rules/{rule_id}",
    response_model=StandardResponse[RuleResponse],
    status_code=status.HTTP_200_OK,
    summary="Update automation rule",
    description="Update an automation rule. Omitted fields keep their value.",
)
async def update_rule(
    rule_id: UUID,
    rule_data: RuleUpdate,
    service: Annotated[AutomationService, Depends(get_automation_service)],
) -> StandardResponse[RuleResponse]:
    """Update an automation rule."""
    try:
        rule = service.update_rule(rule_id, rule_data.model_dump(mode="json", exclude_unset=True))
    except RuleNotFoundError:
        _rule_not_found(rule_id)
    except ValidationError as e:
        raise_bad_request("AUTOMATION_RULE_INVALID", e.message, e.details)

    return StandardResponse(data=RuleResponse.model_validate(rule))


@router.delete(
    "/rules/{rule_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete automation rule",
    description="Delete an automation rule. Deleting an absent rule succeeds.",
)
async def delete_rule(
    rule_id: UUID,
    service: Annotated[AutomationService, Depends(get_automation_service)],
) -> None:
    """Delete an automation rule."""
    service.delete_rule(rule_id)


@router.post(
    "/rules/{rule_id}/toggle",
    response_model=StandardResponse[RuleResponse],
    status_code=status.HTTP_200_OK,
    summary="Toggle automation rule",
    description="Activate an inactive rule or deactivate an active one.",
)
async def toggle_rule(
    rule_id: UUID,
    service: Annotated[AutomationService, Depends(get_automation_service)],
) -> StandardResponse[RuleResponse]:
    """Toggle an automation rule."""
    try:
        rule = service.toggle_rule(rule_id)
    except RuleNotFoundError:
        _rule_not_found(rule_id)
    except ValidationError as e:
        raise_bad_request("AUTOMATION_RULE_INVALID", e.message, e.details)

    return StandardResponse(data=RuleResponse.model_validate(rule))


@router.post(
    "/rules/{rule_id}/test",
    response_model=StandardResponse[RuleTestResponse],
    status_code=status.HTTP_200_OK,
    summary="Test automation rule",
    description="Run a rule against a sample payload and wait for the outcome.",
)
async def test_rule(
    rule_id: UUID,
    test_data: RuleTestRequest,
    engine: Annotated[AutomationEngine, Depends(get_automation_engine)],
) -> StandardResponse[RuleTestResponse]:
    """Execute an automation rule manually."""
    try:
        execution = await engine.test_rule(
            rule_id, test_data.payload, test_data.event_type, test_data.tenant_id
        )
    except RuleNotFoundError:
        _rule_not_found(rule_id)
    except ConditionEvaluationError as e:
        raise_bad_request("AUTOMATION_CONDITION_INVALID", str(e))

    return StandardResponse(
        data=RuleTestResponse(
            matched=execution is not None,
            execution=AutomationExecutionResponse.model_validate(execution) if execution else None,
        )
    )


@router.get(
    "/rules/{rule_id}/versions",
    response_model=StandardResponse[list[RuleVersionResponse]],
    status_code=status.HTTP_200_OK,
    summary="Get rule versions",
)
async def get_rule_versions(
    rule_id: UUID,
    service: Annotated[AutomationService, Depends(get_automation_service)],
) -> StandardResponse[list[RuleVersionResponse]]:
    """Get the definition history of a rule."""
    try:
        versions = service.get_rule_versions(rule_id)
    except RuleNotFoundError:
        _rule_not_found(rule_id)

    return StandardResponse(data=[RuleVersionResponse.model_validate(v) for v in versions])


def _history_since(since: datetime | None, period: ExecutionPeriod | None) -> datetime | None:
    """Resolve the history lower bound; an explicit ``since`` wins over ``period``."""
    if since is not None or period is None:
        return since
    return datetime.now(UTC) - period.window


@router.get(
    "/rules/{rule_id}/executions",
    response_model=StandardListResponse[AutomationExecutionResponse],
    status_code=status.HTTP_200_OK,
    summary="Get rule execution history",
    description="Get execution history for a rule, newest first, optionally filtered by status and age.",
)
async def get_rule_executions(
    rule_id: UUID,
    service: Annotated[AutomationService, Depends(get_automation_service)],
    engine: Annotated[AutomationEngine, Depends(get_automation_engine)],
    page: int = Query(default=1, ge=1, description="Page number"),
    page_size: int = Query(default=20, ge=1, le=100, description="Page size"),
    execution_status: AutomationExecutionStatus | None = Query(
        default=None, alias="status", description="Filter by execution status"
    ),
    since: datetime | None = Query(default=None, description="Only executions created at or after"),
    period: ExecutionPeriod | None = Query(default=None, description="Relative window: 1d, 7d or 30d"),
) -> StandardListResponse[AutomationExecutionResponse]:
    """Get execution history for a rule."""
    # Verify rule exists
    if not service.get_rule(rule_id):
        _rule_not_found(rule_id)

    skip = (page - 1) * page_size
    filters = {"status": execution_status, "since": _history_since(since, period)}
    executions = engine.recorder.get_history(rule_id, limit=page_size, offset=skip, **filters)
    total = engine.recorder.count_history(rule_id, **filters)

    return StandardListResponse(
        data=[AutomationExecutionResponse.model_validate(ex) for ex in executions],
        meta=PaginationMeta.build(total, page, page_size),
    )


@router.get(
    "/executions",
    response_model=StandardListResponse[AutomationExecutionResponse],
    status_code=status.HTTP_200_OK,
    summary="List executions",
    description="Execution history across rules, newest first.",
)
async def list_executions(
    engine: Annotated[AutomationEngine, Depends(get_automation_engine)],
    page: int = Query(default=1, ge=1, description="Page number"),
    page_size: int = Query(default=20, ge=1, le=100, description="Page size"),
    tenant_id: UUID | None = Query(default=None, description="Restrict to one tenant"),
    rule_id: UUID | None = Query(default=None, description="Restrict to one rule"),
    execution_status: AutomationExecutionStatus | None = Query(
        default=None, alias="status", description="Filter by execution status"
    ),
    since: datetime | None = Query(default=None, description="Only executions created at or after"),
    period: ExecutionPeriod | None = Query(default=None, description="Relative window: 1d, 7d or 30d"),
) -> StandardListResponse[AutomationExecutionResponse]:
    """List executions of every rule, filtered by tenant, rule, status and age."""
    skip = (page - 1) * page_size
    filters = {
        "tenant_id": tenant_id,
        "status": execution_status,
        "since": _history_since(since, period),
    }
    executions = engine.recorder.get_history(rule_id, limit=page_size, offset=skip, **filters)
    total = engine.recorder.count_history(rule_id, **filters)

    return StandardListResponse(
        data=[AutomationExecutionResponse.model_validate(ex) for ex in executions],
        meta=PaginationMeta.build(total, page, page_size),
    )


@router.post(
    "/events",
    response_model=StandardResponse[EventEmitResponse],
    status_code=status.HTTP_202_ACCEPTED,
    summary="Emit event",
    description="Hand a domain event to the engine. Matching rules run in the background.",
)
async def emit_event(
    event_data: EventEmitRequest,
    engine: Annotated[AutomationEngine, Depends(get_automation_engine)],
) -> StandardResponse[EventEmitResponse]:
    """Emit a domain event."""
    event = Event.model_validate(event_data.model_dump(exclude_none=True))
    try:
        execution_ids = await engine.emit(event)
    except ValidationError as e:
        raise_bad_request("AUTOMATION_EVENT_INVALID", e.message, e.details)

    return StandardResponse(
        data=EventEmitResponse(event_id=event.event_id, execution_ids=execution_ids)
    )


@router.get(
    "/stats",
    response_model=StandardResponse[StatsResponse],
    status_code=status.HTTP_200_OK,
    summary="Get automation statistics",
)
async def get_stats(
    engine: Annotated[AutomationEngine, Depends(get_automation_engine)],
    tenant_id: UUID | None = Query(default=None, description="Restrict to one tenant"),
) -> StandardResponse[StatsResponse]:
    """Get rule and execution statistics."""
    return StandardResponse(data=StatsResponse(**engine.get_stats(tenant_id)))


@router.get(
    "/catalog",
    response_model=StandardResponse[CatalogResponse],
    status_code=status.HTTP_200_OK,
    summary="Get authoring catalog",
    description="Known event types and registered action types with their config schema.",
)
async def get_catalog(
    engine: Annotated[AutomationEngine, Depends(get_automation_engine)],
) -> StandardResponse[CatalogResponse]:
    """Get the event and action type catalog."""
    return StandardResponse(
        data=CatalogResponse(
            event_types=KNOWN_EVENT_TYPES,
            action_types=engine.registry.describe(),
        )
    )
