"""Integration tests for AutomationService (the rule store)."""

from uuid import uuid4

import pytest

from ruleflow.core.automation.errors import RuleNotFoundError, ValidationError
from ruleflow.core.automation.service import AutomationService
from tests.helpers import rule_definition, webhook_action


@pytest.fixture
def service(db_session, registry):
    return AutomationService(db_session, registry)


def test_create_rule(service, tenant_id):
    rule = service.create_rule(
        rule_definition(tenant_id, conditions={"amount": {"operator": ">", "value": 10}})
    )

    assert rule.id is not None
    assert rule.tenant_id == tenant_id
    assert rule.execution_count == 0
    assert rule.trigger == {
        "event_type": "ORDER_PLACED",
        "conditions": {"amount": {"operator": ">", "value": 10}},
    }
    versions = service.get_rule_versions(rule.id)
    assert [v.version for v in versions] == [1]
    assert versions[0].definition["tenant_id"] == str(tenant_id)


def test_create_rule_rejects_unknown_action_type(service, tenant_id):
    with pytest.raises(ValidationError):
        service.create_rule(rule_definition(tenant_id, actions=[{"type": "SEND_FAX"}]))


def test_get_rule(service, tenant_id):
    rule = service.create_rule(rule_definition(tenant_id))
    assert service.get_rule(rule.id).name == "Test Rule"
    assert service.get_rule(uuid4()) is None


def test_update_rule_partial_trigger(service, tenant_id):
    rule = service.create_rule(rule_definition(tenant_id, conditions={"status": "paid"}))

    updated = service.update_rule(rule.id, {"trigger": {"event_type": "ORDER_COMPLETED"}})

    assert updated.event_type == "ORDER_COMPLETED"
    assert updated.conditions == {"status": "paid"}
    assert [v.version for v in service.get_rule_versions(rule.id)] == [2, 1]


def test_update_rule_name_only_keeps_version(service, tenant_id):
    rule = service.create_rule(rule_definition(tenant_id))

    updated = service.update_rule(rule.id, {"name": "Renamed"})

    assert updated.name == "Renamed"
    assert len(service.get_rule_versions(rule.id)) == 1


def test_update_rule_validates_merged_definition(service, tenant_id):
    rule = service.create_rule(rule_definition(tenant_id))

    with pytest.raises(ValidationError):
        service.update_rule(rule.id, {"actions": [webhook_action(url="")]})

    assert service.get_rule(rule.id).actions[0]["type"] == "SEND_NOTIFICATION"


def test_update_missing_rule(service):
    with pytest.raises(RuleNotFoundError):
        service.update_rule(uuid4(), {"name": "x"})


def test_toggle_rule(service, tenant_id):
    rule = service.create_rule(rule_definition(tenant_id))

    assert service.toggle_rule(rule.id).is_active is False
    assert service.toggle_rule(rule.id).is_active is True


def test_activation_requires_actions(service, tenant_id):
    rule = service.create_rule(rule_definition(tenant_id, actions=[], is_active=False))

    with pytest.raises(ValidationError):
        service.set_active(rule.id, True)


def test_delete_rule_is_idempotent(service, tenant_id):
    rule = service.create_rule(rule_definition(tenant_id))

    assert service.delete_rule(rule.id) is True
    assert service.delete_rule(rule.id) is False
    assert service.get_rule(rule.id) is None


def test_get_active_rules_for_event_orders_by_priority(service, tenant_id):
    late = service.create_rule(rule_definition(tenant_id, name="late", priority=5))
    early = service.create_rule(rule_definition(tenant_id, name="early", priority=1))
    service.create_rule(rule_definition(tenant_id, name="inactive", is_active=False))
    service.create_rule(rule_definition(tenant_id, name="other event", event_type="USER_REGISTERED"))
    service.create_rule(rule_definition(uuid4(), name="other tenant"))
    global_rule = service.create_rule(rule_definition(None, name="global", priority=3))

    snapshots = service.get_active_rules_for_event("ORDER_PLACED", tenant_id)

    assert [s.id for s in snapshots] == [early.id, global_rule.id, late.id]


def test_list_and_count_rules_with_filters(service, tenant_id):
    service.create_rule(rule_definition(tenant_id, name="Welcome email"))
    service.create_rule(rule_definition(tenant_id, name="Late order", is_active=False))
    service.create_rule(rule_definition(None, name="Platform audit"))
    service.create_rule(rule_definition(uuid4(), name="Foreign"))

    assert service.count_rules(tenant_id=tenant_id) == 3
    assert service.count_rules(tenant_id=tenant_id, is_active=False) == 1
    assert service.count_rules(scope="GLOBAL") == 1
    assert [r.name for r in service.get_all_rules(search="order")] == ["Late order"]
    assert len(service.get_all_rules(skip=1, limit=2)) == 2
