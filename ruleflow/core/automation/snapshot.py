"""Immutable rule snapshots taken when an event is evaluated."""

import copy
from dataclasses import dataclass
from typing import Any
from uuid import UUID

from ruleflow.models.automation import Rule


@dataclass(frozen=True)
class ActionSpec:
    type: str
    config: dict[str, Any]
    delay_ms: int = 0


@dataclass(frozen=True)
class RuleSnapshot:
    """Read-only copy of a rule; later edits to the rule do not affect it."""

    id: UUID
    name: str
    scope: str
    tenant_id: UUID | None
    event_type: str
    conditions: dict[str, Any]
    actions: tuple[ActionSpec, ...]
    priority: int

    @classmethod
    def from_rule(cls, rule: Rule) -> "RuleSnapshot":
        return cls(
            id=rule.id,
            name=rule.name,
            scope=rule.scope,
            tenant_id=rule.tenant_id,
            event_type=rule.event_type,
            conditions=copy.deepcopy(rule.conditions or {}),
            actions=tuple(
                ActionSpec(
                    type=action.get("type", ""),
                    config=copy.deepcopy(action.get("config") or {}),
                    delay_ms=int(action.get("delay_ms") or 0),
                )
                for action in (rule.actions or [])
            ),
            priority=rule.priority,
        )

    @property
    def sort_key(self) -> tuple[int, str]:
        return (self.priority, str(self.id))
