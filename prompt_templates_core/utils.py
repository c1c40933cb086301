"""Dotted-path and value helpers shared by substitution, conditions, pipes and pipeline mapping."""

import hashlib
import json
from collections.abc import Callable, Mapping, MutableMapping, Sequence
from typing import Any

from pydantic import BaseModel


class _Missing:
    __slots__ = ()

    def __repr__(self) -> str:
        return "MISSING"


MISSING: Any = _Missing()


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


# Declared variable and input type names. Arrays are lists or tuples, objects are mappings.
TYPE_CHECKS: dict[str, Callable[[Any], bool]] = {
    "string": lambda v: isinstance(v, str),
    "int": lambda v: isinstance(v, int) and not isinstance(v, bool),
    "integer": lambda v: isinstance(v, int) and not isinstance(v, bool),
    "float": _is_number,
    "number": _is_number,
    "bool": lambda v: isinstance(v, bool),
    "boolean": lambda v: isinstance(v, bool),
    "array": lambda v: isinstance(v, (list, tuple)),
    "object": lambda v: isinstance(v, Mapping),
    "null": lambda v: v is None,
    "scalar": lambda v: isinstance(v, (str, int, float, bool)),
}


def _step(container: Any, segment: str) -> Any:
    if isinstance(container, Mapping):
        return container.get(segment, MISSING)
    if isinstance(container, Sequence) and not isinstance(container, (str, bytes)):
        if segment.lstrip("-").isdigit():
            index = int(segment)
            if -len(container) <= index < len(container):
                return container[index]
        return MISSING
    if isinstance(container, BaseModel):
        return getattr(container, segment, MISSING)
    return MISSING


def lookup(data: Any, path: str) -> Any:
    """Resolve a dotted path, returning MISSING when any segment is absent.

    A key that literally contains dots wins over nested traversal.
    """
    if isinstance(data, Mapping) and path in data:
        return data[path]
    current = data
    for segment in path.split("."):
        current = _step(current, segment)
        if current is MISSING:
            return MISSING
    return current


def data_get(data: Any, path: str, default: Any = None) -> Any:
    value = lookup(data, path)
    return default if value is MISSING else value


def data_has(data: Any, path: str) -> bool:
    return lookup(data, path) is not MISSING


def data_set(data: MutableMapping[str, Any], path: str, value: Any) -> None:
    """Set a dotted path, creating intermediate dicts as needed."""
    segments = path.split(".")
    current: MutableMapping[str, Any] = data
    for segment in segments[:-1]:
        nested = current.get(segment)
        if not isinstance(nested, MutableMapping):
            nested = {}
            current[segment] = nested
        current = nested
    current[segments[-1]] = value


def is_empty(value: Any) -> bool:
    """Emptiness in the loose sense used by the `empty` condition operator.

    None, "", "0", 0, 0.0, False and empty containers are empty.
    """
    if value is None or value is False:
        return True
    if isinstance(value, str):
        return value in ("", "0")
    if isinstance(value, (int, float)):
        return value == 0
    if isinstance(value, (Mapping, Sequence, set, frozenset)):
        return len(value) == 0
    return False


def to_jsonable(value: Any) -> Any:
    """Convert pydantic models (recursively inside containers) to plain data."""
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if isinstance(value, Mapping):
        return {str(k): to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_jsonable(v) for v in value]
    return value


def stable_hash(value: Any) -> str:
    """SHA256 of the canonical JSON form of a value."""
    encoded = json.dumps(to_jsonable(value), sort_keys=True, default=str, ensure_ascii=False)
    return hashlib.sha256(encoded.encode("utf-8")).hexdigest()


__all__ = [
    "MISSING",
    "TYPE_CHECKS",
    "data_get",
    "data_has",
    "data_set",
    "is_empty",
    "lookup",
    "stable_hash",
    "to_jsonable",
]
