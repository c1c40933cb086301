"""Declarative condition evaluation for components and pipeline steps.

A condition is `{field, operator, value, allow_missing}`. `field` is a dotted path
into the evaluated data. All conditions of a list must pass.

Equality operators are loose: numeric strings compare equal to numbers and
booleans compare by truthiness. Unknown operators pass and log a warning.
"""

import re
from collections.abc import Callable, Iterable, Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict

from prompt_templates_core.logging import get_pipeline_logger
from prompt_templates_core.utils import MISSING, is_empty, lookup

logger = get_pipeline_logger(__name__)

_NUMERIC = re.compile(r"^\s*[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?\s*$")


class Condition(BaseModel):
    """A single declarative condition."""

    model_config = ConfigDict(frozen=True)

    field: str | None = None
    operator: str = "=="
    value: Any = None
    allow_missing: bool = True


def _as_number(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str) and _NUMERIC.match(value):
        return float(value)
    return None


def loose_equals(left: Any, right: Any) -> bool:
    if isinstance(left, bool) or isinstance(right, bool):
        return (not is_empty(left)) == (not is_empty(right))
    if left is None or right is None:
        return left in (None, "") and right in (None, "")
    left_num, right_num = _as_number(left), _as_number(right)
    if left_num is not None and right_num is not None:
        return left_num == right_num
    return left == right


def strict_equals(left: Any, right: Any) -> bool:
    return type(left) is type(right) and left == right


def _compare(left: Any, right: Any, op: Callable[[Any, Any], bool]) -> bool:
    left_num, right_num = _as_number(left), _as_number(right)
    if left_num is not None and right_num is not None:
        return op(left_num, right_num)
    try:
        return bool(op(left, right))
    except TypeError:
        return False


def _as_list(value: Any) -> list[Any]:
    if value is None:
        return []
    if isinstance(value, (list, tuple, set, frozenset)):
        return list(value)
    return [value]


def _both_strings(actual: Any, expected: Any) -> bool:
    return isinstance(actual, str) and isinstance(expected, str)


def _regex(actual: Any, pattern: Any) -> bool:
    if not isinstance(pattern, str) or actual is None:
        return False
    try:
        return re.search(pattern, str(actual)) is not None
    except re.error:
        logger.warning("Invalid regex in condition: %s", pattern)
        return False


OPERATORS: dict[str, Callable[[Any, Any], bool]] = {
    "=": loose_equals,
    "==": loose_equals,
    "===": strict_equals,
    "!=": lambda a, b: not loose_equals(a, b),
    "!==": lambda a, b: not strict_equals(a, b),
    ">": lambda a, b: _compare(a, b, lambda x, y: x > y),
    ">=": lambda a, b: _compare(a, b, lambda x, y: x >= y),
    "<": lambda a, b: _compare(a, b, lambda x, y: x < y),
    "<=": lambda a, b: _compare(a, b, lambda x, y: x <= y),
    "in": lambda a, b: any(loose_equals(a, item) for item in _as_list(b)),
    "not_in": lambda a, b: not any(loose_equals(a, item) for item in _as_list(b)),
    "contains": lambda a, b: _both_strings(a, b) and b in a,
    "not_contains": lambda a, b: _both_strings(a, b) and b not in a,
    "starts_with": lambda a, b: _both_strings(a, b) and a.startswith(b),
    "ends_with": lambda a, b: _both_strings(a, b) and a.endswith(b),
    "regex": _regex,
    "empty": lambda a, _: is_empty(a),
    "not_empty": lambda a, _: not is_empty(a),
    "is_null": lambda a, _: a is None,
    "not_null": lambda a, _: a is not None,
}

_PRESENCE_OPERATORS = {"exists", "not_exists"}


def _coerce(condition: Condition | Mapping[str, Any]) -> Condition:
    if isinstance(condition, Condition):
        return condition
    return Condition.model_validate(dict(condition))


def evaluate_condition(condition: Condition | Mapping[str, Any], data: Any) -> bool:
    """Evaluate one condition against `data`.

    A condition without a field is ignored. A missing field passes when
    `allow_missing` is set, except for `exists` which checks presence itself.
    """
    cond = _coerce(condition)
    if cond.field is None:
        return True

    actual = lookup(data, cond.field)
    if cond.operator in _PRESENCE_OPERATORS:
        present = actual is not MISSING
        return present if cond.operator == "exists" else not present

    if actual is MISSING:
        return cond.allow_missing

    operator = OPERATORS.get(cond.operator)
    if operator is None:
        logger.warning("Unknown condition operator '%s' on field '%s', treating as passed", cond.operator, cond.field)
        return True
    return operator(actual, cond.value)


def evaluate_conditions(conditions: Iterable[Condition | Mapping[str, Any]] | None, data: Any) -> bool:
    """Return True when every condition passes. An empty list passes."""
    return all(evaluate_condition(condition, data) for condition in conditions or ())


__all__ = [
    "OPERATORS",
    "Condition",
    "evaluate_condition",
    "evaluate_conditions",
    "loose_equals",
    "strict_equals",
]
