"""Condition evaluator for automation rules."""

import logging
from collections.abc import Mapping
from typing import Any

from ruleflow.core.automation.errors import ConditionEvaluationError
from ruleflow.core.automation.templating import lookup_path

logger = logging.getLogger(__name__)

_MISSING = object()

OPERATOR_ALIASES = {
    "==": "equals",
    "!=": "notEquals",
    ">": "greaterThan",
    "<": "lessThan",
    ">=": "greaterThanOrEqual",
    "<=": "lessThanOrEqual",
}

SUPPORTED_OPERATORS = frozenset(
    {
        "equals",
        "notEquals",
        "greaterThan",
        "lessThan",
        "greaterThanOrEqual",
        "lessThanOrEqual",
        "in",
        "notIn",
        "contains",
        "exists",
    }
)

# Operators that hold when the field is absent from the payload
NEGATIVE_OPERATORS = frozenset({"notEquals", "notIn"})


def normalize_operator(operator: Any) -> str:
    """Map an operator name or symbol to its canonical name.

    Raises:
        ConditionEvaluationError: If the operator is not supported
    """
    name = OPERATOR_ALIASES.get(operator, operator)
    if name not in SUPPORTED_OPERATORS:
        raise ConditionEvaluationError(f"Unknown operator: {operator}")
    return name


def normalize_comparison(field_path: str, comparison: Any) -> tuple[str, Any]:
    """Return (operator, value) for a condition entry.

    A bare value is shorthand for ``{"operator": "equals", "value": ...}``.
    """
    if not isinstance(comparison, Mapping):
        return "equals", comparison
    if "operator" not in comparison:
        raise ConditionEvaluationError(f"Condition on '{field_path}' has no operator")
    operator = normalize_operator(comparison["operator"])
    if operator == "exists":
        expected = comparison.get("value", True)
        if not isinstance(expected, bool):
            raise ConditionEvaluationError(f"Condition on '{field_path}': exists expects true or false")
        return operator, expected
    return operator, comparison.get("value")


class ConditionEvaluator:
    """Evaluator for rule conditions."""

    def evaluate(self, conditions: Mapping[str, Any] | None, payload: Mapping[str, Any]) -> bool:
        """Evaluate conditions against an event payload.

        Args:
            conditions: Mapping of field path to comparison
            payload: Event payload to evaluate against

        Returns:
            True if all conditions are met (or there are none), False otherwise

        Raises:
            ConditionEvaluationError: If a condition is malformed
        """
        if not conditions:
            return True
        if not isinstance(conditions, Mapping):
            raise ConditionEvaluationError("conditions must be a mapping of field path to comparison")

        # Validate every entry up front so a malformed rule never half-matches
        normalized = [
            (field_path, *normalize_comparison(field_path, comparison))
            for field_path, comparison in conditions.items()
        ]

        for field_path, operator, expected_value in normalized:
            if not self._evaluate_condition(field_path, operator, expected_value, payload):
                return False

        return True

    def _evaluate_condition(
        self, field_path: str, operator: str, expected_value: Any, payload: Mapping[str, Any]
    ) -> bool:
        """Evaluate a single condition.

        Args:
            field_path: Dot-separated path into the payload
            operator: Canonical operator name
            expected_value: Value to compare against
            payload: Event payload

        Returns:
            True if condition is met, False otherwise
        """
        actual_value = lookup_path(payload, field_path, default=_MISSING)

        if operator == "exists":
            return (actual_value is not _MISSING) == expected_value

        if actual_value is _MISSING:
            return operator in NEGATIVE_OPERATORS

        try:
            if operator == "equals":
                return actual_value == expected_value
            elif operator == "notEquals":
                return actual_value != expected_value
            elif operator == "greaterThan":
                return actual_value > expected_value
            elif operator == "lessThan":
                return actual_value < expected_value
            elif operator == "greaterThanOrEqual":
                return actual_value >= expected_value
            elif operator == "lessThanOrEqual":
                return actual_value <= expected_value
            elif operator in ("in", "notIn"):
                if not isinstance(expected_value, (list, tuple, set, frozenset)):
                    logger.warning(
                        f"Operator '{operator}' on '{field_path}' expects a list, "
                        f"got {type(expected_value).__name__}"
                    )
                    return False
                found = actual_value in expected_value
                return found if operator == "in" else not found
            else:  # contains
                if isinstance(actual_value, str) and isinstance(expected_value, str):
                    return expected_value in actual_value
                if isinstance(actual_value, (list, tuple, dict)):
                    return expected_value in actual_value
                return False
        except TypeError as e:
            logger.warning(f"Error evaluating condition on '{field_path}' ({operator}): {e}")
            return False
