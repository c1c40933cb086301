"""Pre-execution validation of pipeline input against a JSON-schema-like mapping.

Accepted schema shapes:
    {"required": ["topic"], "properties": {"topic": {"type": "string"}}}
    {"topic": {"type": "string", "required": True}}
"""

from collections.abc import Mapping
from typing import Any

from prompt_templates_core.utils import TYPE_CHECKS


def _normalize(schema: Mapping[str, Any]) -> tuple[list[str], dict[str, Mapping[str, Any]]]:
    if "properties" in schema or isinstance(schema.get("required"), list):
        properties = dict(schema.get("properties") or {})
        return list(schema.get("required") or []), properties
    properties = {name: field for name, field in schema.items() if isinstance(field, Mapping)}
    required = [name for name, field in properties.items() if field.get("required")]
    return required, properties


def validate_input(schema: Mapping[str, Any] | None, data: Mapping[str, Any]) -> list[str]:
    """Error messages for missing required fields and type mismatches. Empty when valid.

    Unknown type names are not checked. None values skip the type check.
    """
    if not schema:
        return []
    required, properties = _normalize(schema)
    errors = [f"Missing required field '{name}'" for name in required if name not in data]
    for name, field in properties.items():
        if name not in data or data[name] is None:
            continue
        expected = field.get("type")
        check = TYPE_CHECKS.get(expected) if isinstance(expected, str) else None
        if check is not None and not check(data[name]):
            errors.append(f"Field '{name}' must be of type {expected}, got {type(data[name]).__name__}")
    return errors


__all__ = ["validate_input"]
