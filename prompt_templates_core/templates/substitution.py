"""Placeholder substitution with dotted-path lookup and declared defaults.

Placeholders are `{{ name }}` or `{{ user.age }}` (delimiters are configurable).
An unresolved placeholder is left in the output unchanged, so a later pass with
more variables can still fill it.
"""

import json
import re
from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel

from prompt_templates_core.settings import settings
from prompt_templates_core.utils import MISSING, lookup, to_jsonable

VariableSchema = Mapping[str, Mapping[str, Any]]


def format_value(value: Any) -> str:
    """Render a resolved value inline: containers as JSON, booleans as true/false."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (Mapping, list, tuple, BaseModel)):
        return json.dumps(to_jsonable(value), ensure_ascii=False)
    return str(value)


class VariableSubstitutor:
    """Substitutes placeholders delimited by `start` and `end`."""

    def __init__(self, start: str = "{{", end: str = "}}") -> None:
        if not start or not end:
            raise ValueError("Placeholder delimiters must be non-empty")
        self.start = start
        self.end = end
        self.pattern = re.compile(re.escape(start) + r"\s*([\w.]+)\s*" + re.escape(end))

    @staticmethod
    def with_defaults(variables: Mapping[str, Any], expected: VariableSchema | None) -> dict[str, Any]:
        """Copy of `variables` with declared defaults filled in for absent names."""
        merged = dict(variables)
        for name, definition in (expected or {}).items():
            if name not in merged and isinstance(definition, Mapping) and "default" in definition:
                merged[name] = definition["default"]
        return merged

    def substitute(self, content: str, variables: Mapping[str, Any], expected: VariableSchema | None = None) -> str:
        values = self.with_defaults(variables, expected)

        def replace(match: re.Match[str]) -> str:
            value = lookup(values, match.group(1))
            if value is MISSING or value is None:
                return match.group(0)
            return format_value(value)

        return self.pattern.sub(replace, content)

    def find_placeholders(self, content: str | None) -> list[str]:
        """Unique placeholder names in order of first appearance."""
        if not content:
            return []
        return list(dict.fromkeys(self.pattern.findall(content)))

    def extract_used(self, original: str | None, variables: Mapping[str, Any]) -> dict[str, Any]:
        """Variables referenced by placeholders of the original (unsubstituted) text."""
        used: dict[str, Any] = {}
        for name in self.find_placeholders(original):
            value = lookup(variables, name)
            if value is not MISSING:
                used[name] = value
        return used

    def expected_variables(self, contents: list[str | None], declared: VariableSchema | None = None) -> dict[str, dict[str, Any]]:
        """Declared schema plus detected placeholders as optional strings."""
        expected = {name: dict(definition) for name, definition in (declared or {}).items()}
        for content in contents:
            for name in self.find_placeholders(content):
                root = name.split(".", 1)[0]
                expected.setdefault(root, {"type": "string", "required": False})
        return expected


def default_substitutor() -> VariableSubstitutor:
    return VariableSubstitutor(settings.variable_start, settings.variable_end)


def substitute(content: str, variables: Mapping[str, Any], expected: VariableSchema | None = None) -> str:
    return default_substitutor().substitute(content, variables, expected)


def extract_used(original: str, variables: Mapping[str, Any]) -> dict[str, Any]:
    return default_substitutor().extract_used(original, variables)


__all__ = [
    "VariableSchema",
    "VariableSubstitutor",
    "default_substitutor",
    "extract_used",
    "format_value",
    "substitute",
]
