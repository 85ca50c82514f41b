"""Field path lookup and {{placeholder}} interpolation for event payloads."""

import re
from typing import Any

PLACEHOLDER_PATTERN = re.compile(r"\{\{\s*([^{}]+?)\s*\}\}")

_MISSING = object()


def lookup_path(payload: Any, field_path: str, default: Any = _MISSING) -> Any:
    """Get a value from a payload using a dot-separated field path.

    Path segments descend into mappings by key and into lists by index
    (``items.0.sku``).

    Args:
        payload: Event payload (nested mappings / lists)
        field_path: Dot-separated field path (e.g., 'customer.address.city')
        default: Value returned when the path does not resolve

    Returns:
        Field value, or ``default`` if not found

    Raises:
        KeyError: If the path does not resolve and no default was given
    """
    if not field_path:
        if default is _MISSING:
            raise KeyError(field_path)
        return default

    value: Any = payload
    for part in field_path.split("."):
        if isinstance(value, dict) and part in value:
            value = value[part]
        elif isinstance(value, (list, tuple)) and part.lstrip("-").isdigit():
            index = int(part)
            if -len(value) <= index < len(value):
                value = value[index]
            else:
                break
        else:
            break
    else:
        return value

    if default is _MISSING:
        raise KeyError(field_path)
    return default


def render_template(template: str, payload: dict[str, Any]) -> str:
    """Render a template with {{fieldPath}} variables.

    Missing fields render as an empty string.

    Args:
        template: Template string with {{variables}}
        payload: Data dictionary

    Returns:
        Rendered template
    """

    def _replace(match: re.Match) -> str:
        value = lookup_path(payload, match.group(1), default=None)
        return "" if value is None else str(value)

    return PLACEHOLDER_PATTERN.sub(_replace, template)


def interpolate(value: Any, payload: dict[str, Any]) -> Any:
    """Interpolate placeholders in every string of a config structure."""
    if isinstance(value, str):
        return render_template(value, payload)
    if isinstance(value, dict):
        return {key: interpolate(item, payload) for key, item in value.items()}
    if isinstance(value, list):
        return [interpolate(item, payload) for item in value]
    return value
