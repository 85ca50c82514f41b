"""Rule parser for automation rules."""

import logging
from collections.abc import Mapping
from typing import Any
from uuid import UUID

from pydantic import ValidationError as PydanticValidationError

from ruleflow.core.automation.action_registry import ActionRegistry
from ruleflow.core.automation.condition_evaluator import normalize_comparison
from ruleflow.core.automation.errors import ConditionEvaluationError, ValidationError
from ruleflow.models.automation import RuleScope

logger = logging.getLogger(__name__)


class RuleParser:
    """Parser and validator for automation rule definitions."""

    @staticmethod
    def parse(
        rule_definition: Mapping[str, Any], registry: ActionRegistry | None = None
    ) -> dict[str, Any]:
        """Parse a rule definition into the stored representation.

        Args:
            rule_definition: Rule definition dictionary
            registry: Action registry used to check action types and configs

        Returns:
            Parsed rule dictionary (column name -> value)

        Raises:
            ValidationError: If rule definition is invalid; ``details`` maps
                each offending field to its messages
        """
        errors: dict[str, list[str]] = {}

        def fail(field: str, message: str) -> None:
            errors.setdefault(field, []).append(message)

        name = rule_definition.get("name")
        if not isinstance(name, str) or not name.strip():
            fail("name", "name is required")
        elif len(name) > 255:
            fail("name", "name must be at most 255 characters")

        # Scope / tenant consistency
        scope_value = rule_definition.get("scope", RuleScope.TENANT)
        tenant_id = rule_definition.get("tenant_id")
        try:
            scope = RuleScope(scope_value)
        except ValueError:
            fail("scope", f"scope must be one of {[s.value for s in RuleScope]}")
            scope = None
        if scope is RuleScope.TENANT:
            if tenant_id is None:
                fail("tenant_id", "tenant_id is required for TENANT scoped rules")
            elif not isinstance(tenant_id, UUID):
                try:
                    tenant_id = UUID(str(tenant_id))
                except ValueError:
                    fail("tenant_id", "tenant_id must be a UUID")
        elif scope is RuleScope.GLOBAL:
            tenant_id = None

        # Trigger
        trigger = rule_definition.get("trigger") or {}
        if not isinstance(trigger, Mapping):
            fail("trigger", "trigger must be a dictionary")
            trigger = {}
        event_type = trigger.get("event_type")
        if not isinstance(event_type, str) or not event_type.strip():
            fail("trigger.event_type", "event_type must be a non-empty string")
        else:
            event_type = event_type.strip()

        conditions = trigger.get("conditions") or {}
        if not isinstance(conditions, Mapping):
            fail("trigger.conditions", "conditions must be a mapping of field path to comparison")
            conditions = {}
        for field_path, comparison in conditions.items():
            if not isinstance(field_path, str) or not field_path:
                fail("trigger.conditions", "condition field paths must be non-empty strings")
                continue
            try:
                normalize_comparison(field_path, comparison)
            except ConditionEvaluationError as e:
                fail(f"trigger.conditions.{field_path}", str(e))

        # Actions
        is_active = rule_definition.get("is_active", True)
        if not isinstance(is_active, bool):
            fail("is_active", "is_active must be a boolean")
        actions = rule_definition.get("actions") or []
        if not isinstance(actions, list):
            fail("actions", "actions must be a list")
            actions = []
        if is_active is True and not actions:
            fail("actions", "an active rule needs at least one action")
        parsed_actions = []
        for index, action in enumerate(actions):
            parsed = RuleParser._parse_action(index, action, registry, fail)
            if parsed is not None:
                parsed_actions.append(parsed)

        priority = rule_definition.get("priority", 1)
        if isinstance(priority, bool) or not isinstance(priority, int):
            fail("priority", "priority must be an integer")

        if errors:
            raise ValidationError("Invalid rule definition", details=errors)

        return {
            "name": name.strip(),
            "description": rule_definition.get("description"),
            "scope": scope.value,
            "tenant_id": tenant_id,
            "event_type": event_type,
            "conditions": dict(conditions),
            "actions": parsed_actions,
            "priority": priority,
            "is_active": is_active,
        }

    @staticmethod
    def _parse_action(index, action, registry, fail) -> dict[str, Any] | None:
        field = f"actions.{index}"
        if not isinstance(action, Mapping):
            fail(field, "Each action must be a dictionary")
            return None

        action_type = action.get("type")
        if not isinstance(action_type, str) or not action_type:
            fail(f"{field}.type", "Each action must have a 'type' field")
            return None

        config = action.get("config") or {}
        if not isinstance(config, Mapping):
            fail(f"{field}.config", "config must be a dictionary")
            return None

        delay_ms = action.get("delay_ms", 0)
        if isinstance(delay_ms, bool) or not isinstance(delay_ms, int) or delay_ms < 0:
            fail(f"{field}.delay_ms", "delay_ms must be a non-negative integer")
            return None

        if registry is not None:
            if action_type not in registry:
                fail(f"{field}.type", f"Unknown action type: {action_type}")
                return None
            try:
                registry.resolve(action_type).parse_config(dict(config))
            except PydanticValidationError as e:
                for error in e.errors():
                    location = ".".join(str(part) for part in error["loc"])
                    fail(f"{field}.config.{location}", error["msg"])
                return None

        return {"type": action_type, "config": dict(config), "delay_ms": delay_ms}

    @staticmethod
    def validate(
        rule_definition: Mapping[str, Any], registry: ActionRegistry | None = None
    ) -> bool:
        """Validate a rule definition.

        Args:
            rule_definition: Rule definition dictionary
            registry: Action registry used to check action types and configs

        Returns:
            True if valid, False otherwise
        """
        try:
            RuleParser.parse(rule_definition, registry)
            return True
        except ValidationError as e:
            logger.warning(f"Invalid rule definition: {e.details}")
            return False
