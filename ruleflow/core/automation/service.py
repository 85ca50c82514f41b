"""Automation service for rule management."""

import logging
from collections.abc import Mapping
from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from ruleflow.core.automation.action_registry import ActionRegistry
from ruleflow.core.automation.errors import RuleNotFoundError
from ruleflow.core.automation.rule_parser import RuleParser
from ruleflow.core.automation.snapshot import RuleSnapshot
from ruleflow.core.logging import log_rule_change
from ruleflow.models.automation import Rule, RuleScope, RuleVersion
from ruleflow.repositories.automation_repository import AutomationRepository

logger = logging.getLogger(__name__)

_DEFINITION_FIELDS = (
    "name",
    "description",
    "scope",
    "tenant_id",
    "trigger",
    "actions",
    "priority",
    "is_active",
)


def rule_definition(rule: Rule) -> dict[str, Any]:
    """Authoring representation of a stored rule."""
    return {
        "name": rule.name,
        "description": rule.description,
        "scope": rule.scope,
        "tenant_id": rule.tenant_id,
        "trigger": rule.trigger,
        "actions": list(rule.actions or []),
        "priority": rule.priority,
        "is_active": rule.is_active,
    }


def _version_definition(parsed: dict[str, Any]) -> dict[str, Any]:
    definition = dict(parsed)
    if definition.get("tenant_id") is not None:
        definition["tenant_id"] = str(definition["tenant_id"])
    return definition


class AutomationService:
    """Service for automation rule management (the rule store)."""

    def __init__(self, db: Session, registry: ActionRegistry | None = None):
        """Initialize service with database session.

        Args:
            db: Database session
            registry: Action registry used to validate action configs
        """
        self.db = db
        self.registry = registry
        self.repository = AutomationRepository(db)

    def create_rule(self, definition: Mapping[str, Any]) -> Rule:
        """Create a new automation rule.

        Args:
            definition: Rule definition (name, description, scope, tenant_id,
                trigger, actions, priority, is_active)

        Returns:
            Created rule

        Raises:
            ValidationError: If the definition is invalid
        """
        parsed = RuleParser.parse(definition, self.registry)
        rule = self.repository.create_rule(parsed)

        # Create initial version
        self.repository.create_rule_version(
            {"rule_id": rule.id, "version": 1, "definition": _version_definition(parsed)}
        )

        logger.info(f"Created rule '{rule.name}' (ID: {rule.id}) for event {rule.event_type}")
        log_rule_change(
            "created",
            str(rule.id),
            str(rule.tenant_id) if rule.tenant_id else None,
            {"scope": rule.scope, "event_type": rule.event_type},
        )
        return rule

    def get_rule(self, rule_id: UUID) -> Rule | None:
        """Get a rule by ID.

        Args:
            rule_id: Rule ID

        Returns:
            Rule or None if not found
        """
        return self.repository.get_rule_by_id(rule_id)

    def require_rule(self, rule_id: UUID) -> Rule:
        rule = self.repository.get_rule_by_id(rule_id)
        if rule is None:
            raise RuleNotFoundError(rule_id)
        return rule

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
        """Get rules, optionally filtered.

        Args:
            tenant_id: Only rules visible to this tenant (its own plus global)
            scope: Only rules with this scope
            is_active: Only active (True) or inactive (False) rules
            event_type: Only rules triggered by this event type
            search: Case-insensitive substring of the rule name
            skip: Pagination offset
            limit: Pagination limit

        Returns:
            List of rules in execution order
        """
        return self.repository.get_all_rules(
            tenant_id, scope, is_active, event_type, search, skip, limit
        )

    def count_rules(
        self,
        tenant_id: UUID | None = None,
        scope: RuleScope | None = None,
        is_active: bool | None = None,
        event_type: str | None = None,
        search: str | None = None,
    ) -> int:
        return self.repository.count_all_rules(tenant_id, scope, is_active, event_type, search)

    def get_active_rules_for_event(
        self, event_type: str, tenant_id: UUID | None
    ) -> list[RuleSnapshot]:
        """Get snapshots of the active rules an event triggers.

        Args:
            event_type: Event type
            tenant_id: Tenant of the event (None for platform events)

        Returns:
            Snapshots ordered by priority, ties broken by rule ID
        """
        rules = self.repository.get_active_rules_for_event(event_type, tenant_id)
        snapshots = [RuleSnapshot.from_rule(rule) for rule in rules]
        return sorted(snapshots, key=lambda snapshot: snapshot.sort_key)

    def update_rule(self, rule_id: UUID, changes: Mapping[str, Any]) -> Rule:
        """Update a rule.

        Only the supplied fields change; the merged definition is validated
        like a new rule. The execution counter is never reset.

        Args:
            rule_id: Rule ID
            changes: Fields to change

        Returns:
            Updated rule

        Raises:
            RuleNotFoundError: If the rule does not exist
            ValidationError: If the merged definition is invalid
        """
        rule = self.require_rule(rule_id)
        current = rule_definition(rule)

        merged = dict(current)
        for key in _DEFINITION_FIELDS:
            if key in changes and changes[key] is not None:
                merged[key] = changes[key]
        if "description" in changes:
            merged["description"] = changes["description"]
        if isinstance(changes.get("trigger"), Mapping):
            # Allow changing only the event type or only the conditions
            merged["trigger"] = {**current["trigger"], **{
                key: value for key, value in changes["trigger"].items() if value is not None
            }}

        parsed = RuleParser.parse(merged, self.registry)
        definition_changed = any(
            parsed[key] != getattr(rule, key) for key in ("event_type", "conditions", "actions")
        )
        updated_rule = self.repository.update_rule(rule_id, parsed)

        # Create new version if rule definition changed
        if definition_changed:
            latest_version = self.repository.get_latest_version(rule_id)
            new_version = (latest_version.version + 1) if latest_version else 1
            self.repository.create_rule_version(
                {
                    "rule_id": rule_id,
                    "version": new_version,
                    "definition": _version_definition(parsed),
                }
            )

        logger.info(f"Updated rule {rule_id}")
        log_rule_change(
            "updated",
            str(rule_id),
            str(updated_rule.tenant_id) if updated_rule.tenant_id else None,
            {"fields": sorted(key for key in changes if key in _DEFINITION_FIELDS)},
        )
        return updated_rule

    def toggle_rule(self, rule_id: UUID) -> Rule:
        """Flip a rule between active and inactive.

        Raises:
            RuleNotFoundError: If the rule does not exist
            ValidationError: If the rule cannot be activated
        """
        rule = self.require_rule(rule_id)
        return self.set_active(rule_id, not rule.is_active)

    def set_active(self, rule_id: UUID, is_active: bool) -> Rule:
        """Activate or deactivate a rule.

        Raises:
            RuleNotFoundError: If the rule does not exist
            ValidationError: If the rule cannot be activated
        """
        rule = self.require_rule(rule_id)
        if is_active:
            # Activation re-checks the invariants an active rule must hold
            RuleParser.parse({**rule_definition(rule), "is_active": True}, self.registry)
        updated_rule = self.repository.update_rule(rule_id, {"is_active": is_active})
        log_rule_change(
            "activated" if is_active else "deactivated",
            str(rule_id),
            str(updated_rule.tenant_id) if updated_rule.tenant_id else None,
        )
        return updated_rule

    def delete_rule(self, rule_id: UUID) -> bool:
        """Delete a rule. Deleting an absent rule is not an error.

        Args:
            rule_id: Rule ID

        Returns:
            True if a rule was deleted, False if it did not exist
        """
        result = self.repository.delete_rule(rule_id)
        if result:
            logger.info(f"Deleted rule {rule_id}")
            log_rule_change("deleted", str(rule_id))
        return result

    def get_rule_versions(self, rule_id: UUID) -> list[RuleVersion]:
        """Get the stored definition versions of a rule, newest first.

        Raises:
            RuleNotFoundError: If the rule does not exist
        """
        self.require_rule(rule_id)
        return self.repository.get_rule_versions(rule_id)
