"""Version resolution strategies.

Each strategy picks one TemplateVersion from the template's stored versions for
a RenderContext. The resolver decides which strategy applies.
"""

import re
from collections.abc import Sequence
from typing import Any, Protocol, runtime_checkable

from prompt_templates_core.exceptions import VersionNotFoundError
from prompt_templates_core.logging import get_pipeline_logger
from prompt_templates_core.templates.models import PromptTemplate, TemplateVersion
from prompt_templates_core.templates.rendered import RenderContext

logger = get_pipeline_logger(__name__)

_OPERATOR_PATTERN = re.compile(r"^(>=|<=|>|<|=|!=)(.+)$")
_SEGMENT_SPLIT = re.compile(r"[.\-_+]")


@runtime_checkable
class VersionStrategy(Protocol):
    def resolve(self, template: PromptTemplate, versions: Sequence[TemplateVersion], context: RenderContext) -> TemplateVersion: ...


def find_version(versions: Sequence[TemplateVersion], number: int) -> TemplateVersion | None:
    return next((version for version in versions if version.version_number == number), None)


class SpecificVersionStrategy:
    """The exact version number requested in the context."""

    def resolve(self, template: PromptTemplate, versions: Sequence[TemplateVersion], context: RenderContext) -> TemplateVersion:
        if context.version is None:
            raise ValueError("Specific version strategy requires a version in the render context")
        version = find_version(versions, context.version)
        if version is None:
            raise VersionNotFoundError(template.slug, context.version)
        return version


class LatestVersionStrategy:
    """The template's current version, else the highest version number."""

    def resolve(self, template: PromptTemplate, versions: Sequence[TemplateVersion], context: RenderContext) -> TemplateVersion:
        if template.current_version_id is not None:
            current = next((version for version in versions if version.id == template.current_version_id), None)
            if current is not None:
                return current
        if not versions:
            raise VersionNotFoundError(template.slug)
        return max(versions, key=lambda version: version.version_number)


class PublishedVersionStrategy:
    """The highest published version, else the current version."""

    def resolve(self, template: PromptTemplate, versions: Sequence[TemplateVersion], context: RenderContext) -> TemplateVersion:
        published = [version for version in versions if version.is_published]
        if published:
            return max(published, key=lambda version: version.version_number)
        return LatestVersionStrategy().resolve(template, versions, context)


def _version_key(value: str) -> list[tuple[int, int | str]]:
    key: list[tuple[int, int | str]] = []
    for segment in _SEGMENT_SPLIT.split(value.strip().lstrip("vV")):
        if segment.isdigit():
            key.append((1, int(segment)))
        elif segment:
            key.append((0, segment))
    return key


def compare_versions(left: str, right: str) -> int:
    """-1, 0 or 1. Numeric segments compare numerically, missing segments count as 0."""
    a, b = _version_key(left), _version_key(right)
    width = max(len(a), len(b))
    a += [(1, 0)] * (width - len(a))
    b += [(1, 0)] * (width - len(b))
    return (a > b) - (a < b)


def matches_version_pattern(value: Any, pattern: str) -> bool:
    """Match a client version against `*`, an operator prefix, an `a-b` range or an exact value."""
    if pattern == "*":
        return True
    if value is None:
        return False
    value = str(value)

    if match := _OPERATOR_PATTERN.match(pattern):
        operator, other = match.group(1), match.group(2).strip()
        result = compare_versions(value, other)
        return {
            ">=": result >= 0,
            "<=": result <= 0,
            ">": result > 0,
            "<": result < 0,
            "=": result == 0,
            "!=": result != 0,
        }[operator]

    if "-" in pattern and not pattern.startswith("-"):
        low, high = (part.strip() for part in pattern.split("-", 1))
        return compare_versions(value, low) >= 0 and compare_versions(value, high) <= 0

    return value == pattern


class MappedVersionStrategy:
    """First matching rule of `metadata["version_mapping"]` wins, else latest.

    Mapping shape: {"field": "client_version", "rules": [{"pattern": ">=2.0", "version": 3}],
    "client_version": "2.1"}. The compared value comes from the mapping itself or,
    failing that, from the render variables.
    """

    def resolve(self, template: PromptTemplate, versions: Sequence[TemplateVersion], context: RenderContext) -> TemplateVersion:
        mapping = context.metadata.get("version_mapping") or {}
        if not mapping:
            raise ValueError("Mapped version strategy requires version_mapping in metadata")

        field = mapping.get("field", "client_version")
        value = mapping.get(field, context.variables.get(field))

        for rule in mapping.get("rules", []):
            target = rule.get("template_version", rule.get("version"))
            if target is None:
                continue
            pattern = str(rule.get(field, rule.get("pattern", "*")))
            if not matches_version_pattern(value, pattern):
                continue
            version = find_version(versions, int(target))
            if version is not None:
                return version
            logger.warning("Mapped version %s does not exist for template '%s'", target, template.slug)

        return LatestVersionStrategy().resolve(template, versions, context)


__all__ = [
    "LatestVersionStrategy",
    "MappedVersionStrategy",
    "PublishedVersionStrategy",
    "SpecificVersionStrategy",
    "VersionStrategy",
    "compare_versions",
    "find_version",
    "matches_version_pattern",
]
