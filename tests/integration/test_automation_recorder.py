"""Integration tests for ExecutionRecorder."""

from datetime import UTC, datetime, timedelta
from uuid import uuid4

import pytest
from sqlalchemy import select, update

from ruleflow.core.automation.events import Event
from ruleflow.core.automation.recorder import ExecutionRecorder, summarize_outcome
from ruleflow.core.automation.service import AutomationService
from ruleflow.core.automation.snapshot import RuleSnapshot
from ruleflow.models.automation import AutomationExecution, AutomationExecutionStatus, Rule
from ruleflow.repositories.automation_repository import AutomationRepository
from tests.helpers import rule_definition


@pytest.fixture
def recorder(session_factory):
    return ExecutionRecorder(session_factory)


@pytest.fixture
def rule(session_factory, registry, tenant_id) -> RuleSnapshot:
    with session_factory() as db:
        return RuleSnapshot.from_rule(AutomationService(db, registry).create_rule(rule_definition(tenant_id)))


def _count(session_factory, rule_id) -> int:
    with session_factory() as db:
        return db.get(Rule, rule_id).execution_count


SUCCESS = {"index": 0, "type": "SEND_NOTIFICATION", "status": "SUCCESS", "attempts": 1}
FAILURE = {"index": 1, "type": "TRIGGER_WEBHOOK", "status": "FAILURE", "attempts": 3, "error": "503"}


def test_summarize_outcome():
    assert summarize_outcome([SUCCESS]) == AutomationExecutionStatus.SUCCESS
    assert summarize_outcome([SUCCESS, FAILURE]) == AutomationExecutionStatus.PARTIAL_FAILURE
    assert summarize_outcome([FAILURE]) == AutomationExecutionStatus.FAILURE


def test_create_pending_dedups_on_rule_and_event(recorder, rule, tenant_id):
    event = Event(event_id="evt-1", event_type="ORDER_PLACED", tenant_id=tenant_id)

    first = recorder.create_pending(rule, event)
    second = recorder.create_pending(rule, event)

    assert first is not None
    assert second is None
    assert recorder.get_execution(first).status == AutomationExecutionStatus.PENDING.value


def test_full_lifecycle(recorder, rule, session_factory, tenant_id):
    execution_id = recorder.create_pending(rule, Event(event_type="ORDER_PLACED", tenant_id=tenant_id))

    started_at = recorder.mark_running(execution_id)
    assert recorder.get_execution(execution_id).status == AutomationExecutionStatus.RUNNING.value

    recorded = recorder.record_outcome(
        execution_id, AutomationExecutionStatus.PARTIAL_FAILURE, [SUCCESS, FAILURE], started_at
    )

    execution = recorder.get_execution(execution_id)
    assert recorded is True
    assert execution.status == AutomationExecutionStatus.PARTIAL_FAILURE.value
    assert execution.action_results == [SUCCESS, FAILURE]
    assert execution.error_message == "TRIGGER_WEBHOOK: 503"
    assert execution.duration_ms >= 0
    assert _count(session_factory, rule.id) == 1
    with session_factory() as db:
        assert db.get(Rule, rule.id).last_executed_at is not None


def test_final_record_is_never_overwritten(recorder, rule, session_factory, tenant_id):
    execution_id = recorder.create_pending(rule, Event(event_type="ORDER_PLACED", tenant_id=tenant_id))
    recorder.record_outcome(execution_id, AutomationExecutionStatus.SUCCESS, [SUCCESS])

    assert recorder.record_outcome(execution_id, AutomationExecutionStatus.FAILURE, [FAILURE]) is False
    assert recorder.record_rejected(execution_id, "queue full") is False
    assert recorder.get_execution(execution_id).status == AutomationExecutionStatus.SUCCESS.value
    assert _count(session_factory, rule.id) == 1


def test_record_rejected(recorder, rule, session_factory, tenant_id):
    execution_id = recorder.create_pending(rule, Event(event_type="ORDER_PLACED", tenant_id=tenant_id))

    assert recorder.record_rejected(execution_id, "queue full") is True

    execution = recorder.get_execution(execution_id)
    assert execution.status == AutomationExecutionStatus.FAILURE.value
    assert execution.error_message == "queue full"
    assert _count(session_factory, rule.id) == 0


def test_history_is_newest_first(recorder, rule, tenant_id):
    ids = [
        recorder.create_pending(rule, Event(event_id=f"evt-{n}", event_type="ORDER_PLACED", tenant_id=tenant_id))
        for n in range(3)
    ]

    history = recorder.get_history(rule.id, limit=2)

    assert [execution.id for execution in history] == [ids[2], ids[1]]
    assert [e.id for e in recorder.get_history(rule.id, limit=2, offset=2)] == [ids[0]]
    assert recorder.count_history(rule.id) == 3


def test_unique_index_catches_duplicate_missed_by_lookup(recorder, rule, session_factory, tenant_id, monkeypatch):
    # Both inserts race past the existence check
    monkeypatch.setattr(AutomationRepository, "get_execution_by_rule_and_event", lambda self, rule_id, event_id: None)
    event = Event(event_id="evt-race", event_type="ORDER_PLACED", tenant_id=tenant_id)

    first = recorder.create_pending(rule, event)
    second = recorder.create_pending(rule, event)

    assert first is not None
    assert second is None
    with session_factory() as db:
        executions = db.scalars(select(AutomationExecution).where(AutomationExecution.rule_id == rule.id)).all()
    assert [execution.id for execution in executions] == [first]


def test_record_rejected_keeps_partial_results(recorder, rule, session_factory, tenant_id):
    execution_id = recorder.create_pending(rule, Event(event_type="ORDER_PLACED", tenant_id=tenant_id))
    recorder.mark_running(execution_id)

    assert recorder.record_rejected(execution_id, "Unexpected error: boom", [SUCCESS]) is True

    execution = recorder.get_execution(execution_id)
    assert execution.status == AutomationExecutionStatus.FAILURE.value
    assert execution.action_results == [SUCCESS]
    assert _count(session_factory, rule.id) == 1


def test_history_filters(recorder, rule, session_factory, tenant_id):
    other_tenant = uuid4()
    done = recorder.create_pending(rule, Event(event_id="evt-done", event_type="ORDER_PLACED", tenant_id=tenant_id))
    recorder.record_outcome(done, AutomationExecutionStatus.SUCCESS, [SUCCESS])
    old = recorder.create_pending(rule, Event(event_id="evt-old", event_type="ORDER_PLACED", tenant_id=tenant_id))
    foreign = recorder.create_pending(
        rule, Event(event_id="evt-foreign", event_type="ORDER_PLACED", tenant_id=other_tenant)
    )
    with session_factory() as db:
        db.execute(
            update(AutomationExecution)
            .where(AutomationExecution.id == old)
            .values(created_at=datetime.now(UTC) - timedelta(days=10))
        )
        db.commit()

    successes = recorder.get_history(rule.id, status=AutomationExecutionStatus.SUCCESS)
    recent = recorder.get_history(rule.id, since=datetime.now(UTC) - timedelta(days=7))
    tenant_wide = recorder.get_history(tenant_id=tenant_id)

    assert [e.id for e in successes] == [done]
    assert {e.id for e in recent} == {done, foreign}
    assert {e.id for e in tenant_wide} == {done, old}
    assert recorder.count_history(tenant_id=other_tenant) == 1
    assert recorder.count_history(rule.id, status=AutomationExecutionStatus.PENDING) == 2
