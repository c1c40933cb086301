"""Content migration between template versions.

A single hop uses, in order: the source version's own mapper when it supports
the pair, the source version's declarative mapping rules, or a pass-through with
a warning. VersionMigrator.migrate() bridges distant versions by walking version
numbers one step at a time. Failures are returned as results, not raised.
"""

import threading
from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence
from typing import Any, Protocol, Self, runtime_checkable

from pydantic import BaseModel, ConfigDict, Field

from prompt_templates_core.exceptions import MappingFailedError
from prompt_templates_core.logging import get_pipeline_logger
from prompt_templates_core.templates.models import MappingRule, MappingRuleType, TemplateVersion
from prompt_templates_core.transforms import TransformRegistry, default_transforms

logger = get_pipeline_logger(__name__)

PASS_THROUGH_WARNING = "No mapper defined, content passed through unchanged."
DIFF_FIELDS = ("system_prompt", "user_prompt", "assistant_prompt", "content", "variables", "component_config")


class VersionMappingResult(BaseModel):
    """Outcome of mapping content from one version to another."""

    model_config = ConfigDict(frozen=True)

    success: bool
    content: dict[str, Any] = Field(default_factory=dict)
    variables: dict[str, Any] = Field(default_factory=dict)
    from_version: int
    to_version: int
    warnings: list[str] = Field(default_factory=list)
    transformations: list[str] = Field(default_factory=list)
    error: str | None = None

    @classmethod
    def ok(
        cls,
        content: Mapping[str, Any],
        from_version: int,
        to_version: int,
        *,
        variables: Mapping[str, Any] | None = None,
        warnings: Sequence[str] = (),
        transformations: Sequence[str] = (),
    ) -> Self:
        return cls(
            success=True,
            content=dict(content),
            variables=dict(variables or {}),
            from_version=from_version,
            to_version=to_version,
            warnings=list(warnings),
            transformations=list(transformations),
        )

    @classmethod
    def failure(cls, error: str, from_version: int, to_version: int) -> Self:
        return cls(success=False, error=error, from_version=from_version, to_version=to_version)

    def raise_for_failure(self) -> Self:
        if not self.success:
            raise MappingFailedError(self.from_version, self.to_version, self.error or "unknown error")
        return self


@runtime_checkable
class VersionMapper(Protocol):
    """Custom migration between specific version pairs."""

    def supports(self, from_version: TemplateVersion, to_version: TemplateVersion) -> bool: ...

    def map(self, from_version: TemplateVersion, to_version: TemplateVersion, content: dict[str, Any]) -> VersionMappingResult: ...


class PairVersionMapper(ABC):
    """Base for mappers bridging one fixed (source, target) pair of version numbers.

    Subclasses set source_version/target_version and implement transform().
    map_variables() reshapes the source version's variable declarations and
    defaults to returning them unchanged.
    """

    source_version: int = 1
    target_version: int = 2

    def supports(self, from_version: TemplateVersion, to_version: TemplateVersion) -> bool:
        return from_version.version_number == self.source_version and to_version.version_number == self.target_version

    @abstractmethod
    def transform(self, content: dict[str, Any]) -> dict[str, Any]: ...

    def map_variables(self, variables: dict[str, Any]) -> dict[str, Any]:
        return variables

    def map(self, from_version: TemplateVersion, to_version: TemplateVersion, content: dict[str, Any]) -> VersionMappingResult:
        return VersionMappingResult.ok(
            self.transform(dict(content)),
            from_version.version_number,
            to_version.version_number,
            variables=self.map_variables(dict(from_version.variables)),
        )

    @staticmethod
    def rename_key(content: dict[str, Any], old: str, new: str) -> dict[str, Any]:
        if content.get(old) is not None:
            content[new] = content.pop(old)
        return content

    @staticmethod
    def remove_key(content: dict[str, Any], key: str) -> dict[str, Any]:
        content.pop(key, None)
        return content

    @staticmethod
    def set_default(content: dict[str, Any], key: str, default: Any) -> dict[str, Any]:
        if content.get(key) is None:
            content[key] = default
        return content


class MapperRegistry:
    """Named VersionMapper instances. Versions reference their mapper by name."""

    def __init__(self) -> None:
        self._mappers: dict[str, VersionMapper] = {}
        self._lock = threading.Lock()

    def register(self, name: str, mapper: VersionMapper) -> None:
        if not isinstance(mapper, VersionMapper):
            raise TypeError(f"Mapper '{name}' must implement supports() and map()")
        with self._lock:
            self._mappers[name] = mapper

    def get(self, name: str | None) -> VersionMapper | None:
        if name is None:
            return None
        with self._lock:
            return self._mappers.get(name)

    def all(self) -> list[VersionMapper]:
        with self._lock:
            return list(self._mappers.values())

    def find(self, from_version: TemplateVersion, to_version: TemplateVersion) -> VersionMapper | None:
        return next((mapper for mapper in self.all() if mapper.supports(from_version, to_version)), None)


def apply_mapping_rules(
    rules: Sequence[MappingRule],
    content: Mapping[str, Any],
    transforms: TransformRegistry = default_transforms,
) -> tuple[dict[str, Any], list[str]]:
    """Apply rules in order. Returns the new content and one note per applied rule.

    Keys whose value is None count as absent.
    """
    result = dict(content)
    notes: list[str] = []
    for rule in rules:
        source, target = rule.from_, rule.to
        match rule.type:
            case MappingRuleType.RENAME:
                if source and target and result.get(source) is not None:
                    result[target] = result.pop(source)
                    notes.append(f"Renamed '{source}' to '{target}'")
            case MappingRuleType.REMOVE:
                if source and result.get(source) is not None:
                    del result[source]
                    notes.append(f"Removed '{source}'")
            case MappingRuleType.TRANSFORM:
                if source and result.get(source) is not None and rule.callback is not None:
                    value = transforms.apply(rule.callback, result[source])
                    if target and target != source:
                        del result[source]
                    result[target or source] = value
                    notes.append(f"Transformed '{source}'")
            case MappingRuleType.DEFAULT:
                if target and result.get(target) is None:
                    result[target] = rule.value
                    notes.append(f"Added default for '{target}'")
    return result, notes


class VersionMigrator:
    """Maps content between versions of one template."""

    def __init__(self, mappers: MapperRegistry | None = None, transforms: TransformRegistry | None = None) -> None:
        self.mappers = mappers or MapperRegistry()
        self.transforms = transforms or default_transforms

    @staticmethod
    def _run_mapper(mapper: VersionMapper, source: TemplateVersion, target: TemplateVersion, content: Mapping[str, Any]) -> VersionMappingResult:
        try:
            return mapper.map(source, target, dict(content))
        except Exception as e:
            logger.warning("Mapper %s failed for v%s -> v%s: %s", type(mapper).__name__, source.version_number, target.version_number, e)
            return VersionMappingResult.failure(str(e), source.version_number, target.version_number)

    def map_step(self, source: TemplateVersion, target: TemplateVersion, content: Mapping[str, Any]) -> VersionMappingResult:
        """Map across one hop using the source version's mapper, its rules, or pass-through."""
        mapper = self.mappers.get(source.mapper)
        if mapper is not None and mapper.supports(source, target):
            return self._run_mapper(mapper, source, target, content)

        if source.mapping_rules:
            try:
                mapped, notes = apply_mapping_rules(source.mapping_rules, content, self.transforms)
            except Exception as e:
                logger.warning("Mapping rules of v%s failed: %s", source.version_number, e)
                return VersionMappingResult.failure(str(e), source.version_number, target.version_number)
            return VersionMappingResult.ok(mapped, source.version_number, target.version_number, transformations=notes)

        return VersionMappingResult.ok(content, source.version_number, target.version_number, warnings=[PASS_THROUGH_WARNING])

    def migrate(
        self,
        versions: Sequence[TemplateVersion],
        source: TemplateVersion,
        target: TemplateVersion,
        content: Mapping[str, Any],
    ) -> VersionMappingResult:
        """Map content from `source` to `target`, walking intermediate versions when needed.

        `versions` are all versions of the template.
        """
        own = self.mappers.get(source.mapper)
        if own is not None and own.supports(source, target):
            return self._run_mapper(own, source, target, content)
        registered = self.mappers.find(source, target)
        if registered is not None:
            return self._run_mapper(registered, source, target, content)

        start, goal = source.version_number, target.version_number
        if start == goal:
            return VersionMappingResult.ok(content, start, goal)

        by_number = {version.version_number: version for version in versions}
        direction = 1 if goal > start else -1
        current_number = start
        current_content = dict(content)
        transformations: list[str] = []
        warnings: list[str] = []
        variables: dict[str, Any] = {}

        while current_number != goal:
            next_number = current_number + direction
            current, following = by_number.get(current_number), by_number.get(next_number)
            if current is None or following is None:
                return VersionMappingResult.failure(f"Cannot find version {next_number} in migration path", start, goal)

            hop = self.map_step(current, following, current_content)
            if not hop.success:
                return VersionMappingResult.failure(hop.error or f"Mapping v{current_number} to v{next_number} failed", start, goal)

            current_content = hop.content
            transformations.extend(hop.transformations)
            warnings.extend(hop.warnings)
            variables = hop.variables or variables
            current_number = next_number

        logger.debug("Migrated content v%s -> v%s in %s hops", start, goal, abs(goal - start))
        return VersionMappingResult.ok(current_content, start, goal, variables=variables, warnings=warnings, transformations=transformations)


def diff_versions(version_a: TemplateVersion, version_b: TemplateVersion) -> dict[str, dict[str, Any]]:
    """Fields that differ between two versions as {field: {"from": a, "to": b}}."""
    changes: dict[str, dict[str, Any]] = {}
    for name in DIFF_FIELDS:
        value_a, value_b = getattr(version_a, name), getattr(version_b, name)
        if value_a != value_b:
            changes[name] = {"from": value_a, "to": value_b}
    return changes


__all__ = [
    "DIFF_FIELDS",
    "PASS_THROUGH_WARNING",
    "MapperRegistry",
    "PairVersionMapper",
    "VersionMapper",
    "VersionMappingResult",
    "VersionMigrator",
    "apply_mapping_rules",
    "diff_versions",
]
