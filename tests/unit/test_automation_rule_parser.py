"""Unit tests for RuleParser."""

from uuid import UUID, uuid4

import pytest

from ruleflow.core.automation.errors import ValidationError
from ruleflow.core.automation.rule_parser import RuleParser
from tests.helpers import rule_definition, webhook_action


def test_parse_valid_rule():
    """Test parsing a valid rule."""
    tenant_id = uuid4()
    parsed = RuleParser.parse(
        rule_definition(
            tenant_id,
            conditions={"amount": {"operator": "greaterThan", "value": 100}},
            actions=[webhook_action(), {"type": "SEND_NOTIFICATION", "config": {}, "delay_ms": 50}],
            priority=5,
        )
    )

    assert parsed["scope"] == "TENANT"
    assert parsed["tenant_id"] == tenant_id
    assert parsed["event_type"] == "ORDER_PLACED"
    assert parsed["conditions"] == {"amount": {"operator": "greaterThan", "value": 100}}
    assert parsed["actions"][1] == {"type": "SEND_NOTIFICATION", "config": {}, "delay_ms": 50}
    assert parsed["actions"][0]["delay_ms"] == 0
    assert parsed["priority"] == 5


def test_parse_string_tenant_id():
    tenant_id = uuid4()
    parsed = RuleParser.parse(rule_definition(str(tenant_id)))
    assert parsed["tenant_id"] == tenant_id
    assert isinstance(parsed["tenant_id"], UUID)


def test_global_rule_has_no_tenant():
    parsed = RuleParser.parse({**rule_definition(None), "tenant_id": uuid4()})
    assert parsed["scope"] == "GLOBAL"
    assert parsed["tenant_id"] is None


def test_parse_missing_name():
    """Test parsing rule without name."""
    with pytest.raises(ValidationError) as exc_info:
        RuleParser.parse(rule_definition(uuid4(), name="  "))
    assert "name" in exc_info.value.details


def test_tenant_rule_requires_tenant():
    with pytest.raises(ValidationError) as exc_info:
        RuleParser.parse(rule_definition(None, scope="TENANT"))
    assert "tenant_id" in exc_info.value.details


def test_parse_empty_event_type():
    with pytest.raises(ValidationError) as exc_info:
        RuleParser.parse(rule_definition(uuid4(), event_type=""))
    assert "trigger.event_type" in exc_info.value.details


def test_active_rule_needs_actions():
    with pytest.raises(ValidationError) as exc_info:
        RuleParser.parse(rule_definition(uuid4(), actions=[]))
    assert "actions" in exc_info.value.details


def test_inactive_rule_may_have_no_actions():
    parsed = RuleParser.parse(rule_definition(uuid4(), actions=[], is_active=False))
    assert parsed["actions"] == []
    assert parsed["is_active"] is False


def test_unknown_operator_is_rejected():
    with pytest.raises(ValidationError) as exc_info:
        RuleParser.parse(
            rule_definition(uuid4(), conditions={"amount": {"operator": "between", "value": 1}})
        )
    assert "trigger.conditions.amount" in exc_info.value.details


def test_exists_with_string_value_is_rejected():
    with pytest.raises(ValidationError) as exc_info:
        RuleParser.parse(
            rule_definition(uuid4(), conditions={"customer.phone": {"operator": "exists", "value": "false"}})
        )
    assert "trigger.conditions.customer.phone" in exc_info.value.details


def test_negative_delay_is_rejected():
    with pytest.raises(ValidationError) as exc_info:
        RuleParser.parse(
            rule_definition(uuid4(), actions=[{"type": "SEND_NOTIFICATION", "delay_ms": -1}])
        )
    assert "actions.0.delay_ms" in exc_info.value.details


def test_unknown_action_type_with_registry(registry):
    with pytest.raises(ValidationError) as exc_info:
        RuleParser.parse(rule_definition(uuid4(), actions=[{"type": "SEND_FAX"}]), registry)
    assert "actions.0.type" in exc_info.value.details


def test_unknown_action_type_without_registry_is_accepted():
    parsed = RuleParser.parse(rule_definition(uuid4(), actions=[{"type": "SEND_FAX"}]))
    assert parsed["actions"][0]["type"] == "SEND_FAX"


def test_action_config_is_checked_against_handler(registry):
    with pytest.raises(ValidationError) as exc_info:
        RuleParser.parse(
            rule_definition(uuid4(), actions=[{"type": "TRIGGER_WEBHOOK", "config": {}}]),
            registry,
        )
    assert "actions.0.config.url" in exc_info.value.details


def test_validate_returns_bool():
    assert RuleParser.validate(rule_definition(uuid4())) is True
    assert RuleParser.validate(rule_definition(uuid4(), priority="high")) is False


def test_errors_are_collected():
    with pytest.raises(ValidationError) as exc_info:
        RuleParser.parse({"trigger": {}, "actions": "nope"})
    assert {"name", "tenant_id", "trigger.event_type", "actions"} <= set(exc_info.value.details)
