"""Tests for content migration between versions."""

from typing import Any

import pytest

from prompt_templates_core.exceptions import MappingFailedError
from prompt_templates_core.templates.models import MappingRule, TemplateVersion
from prompt_templates_core.versioning import (
    PASS_THROUGH_WARNING,
    MapperRegistry,
    PairVersionMapper,
    VersionMigrator,
    apply_mapping_rules,
    diff_versions,
)


def rule(**data: Any) -> MappingRule:
    return MappingRule.model_validate(data)


def version(number: int, rules: list[MappingRule] | None = None, **fields: Any) -> TemplateVersion:
    return TemplateVersion(id=number, template_id=1, version_number=number, mapping_rules=rules or [], **fields)


class WidenMapper(PairVersionMapper):
    source_version = 1
    target_version = 3

    def transform(self, content: dict[str, Any]) -> dict[str, Any]:
        content = self.rename_key(content, "content", "user_prompt")
        return self.set_default(content, "system_prompt", "Be helpful.")


class StrictMapper(PairVersionMapper):
    source_version = 2
    target_version = 3

    def transform(self, content: dict[str, Any]) -> dict[str, Any]:
        content["user_prompt"] = content.pop("system_prompt")
        return content


class RenamingVariablesMapper(WidenMapper):
    def map_variables(self, variables: dict[str, Any]) -> dict[str, Any]:
        return self.rename_key(variables, "topic", "subject")


# ---------------------------------------------------------------------------
# Declarative rules
# ---------------------------------------------------------------------------


class TestMappingRules:
    def test_rename(self):
        content, notes = apply_mapping_rules([rule(type="rename", **{"from": "old_key"}, to="new_key")], {"old_key": "x"})
        assert content == {"new_key": "x"}
        assert notes == ["Renamed 'old_key' to 'new_key'"]

    def test_remove_transform_default(self):
        rules = [
            rule(type="remove", **{"from": "drop"}),
            rule(type="transform", **{"from": "name"}, callback="upper"),
            rule(type="transform", **{"from": "raw"}, to="cooked", callback=lambda v: v * 2),
            rule(type="default", to="tone", value="friendly"),
            rule(type="default", to="name", value="ignored"),
        ]
        content, notes = apply_mapping_rules(rules, {"drop": 1, "name": "ada", "raw": "ab"})
        assert content == {"name": "ADA", "cooked": "abab", "tone": "friendly"}
        assert notes == ["Removed 'drop'", "Transformed 'name'", "Transformed 'raw'", "Added default for 'tone'"]

    def test_absent_source_is_skipped(self):
        content, notes = apply_mapping_rules([rule(type="rename", **{"from": "missing"}, to="x")], {"a": None})
        assert content == {"a": None}
        assert notes == []


# ---------------------------------------------------------------------------
# Migrator
# ---------------------------------------------------------------------------


class TestVersionMigrator:
    def test_single_hop_with_rules(self):
        v1 = version(1, [rule(type="rename", **{"from": "old_key"}, to="new_key")])
        result = VersionMigrator().map_step(v1, version(2), {"old_key": "x"})
        assert result.success
        assert result.content == {"new_key": "x"}
        assert result.transformations == ["Renamed 'old_key' to 'new_key'"]

    def test_pass_through_warns(self):
        result = VersionMigrator().map_step(version(1), version(2), {"content": "x"})
        assert result.success
        assert result.content == {"content": "x"}
        assert result.warnings == [PASS_THROUGH_WARNING]

    def test_walks_intermediate_versions(self):
        v1 = version(1, [rule(type="rename", **{"from": "old_key"}, to="mid_key")])
        v2 = version(2, [rule(type="rename", **{"from": "mid_key"}, to="new_key")])
        v3 = version(3)
        result = VersionMigrator().migrate([v1, v2, v3], v1, v3, {"old_key": "x"})
        assert result.success
        assert (result.from_version, result.to_version) == (1, 3)
        assert result.content == {"new_key": "x"}
        assert result.transformations == ["Renamed 'old_key' to 'mid_key'", "Renamed 'mid_key' to 'new_key'"]

    def test_walks_backwards(self):
        v3 = version(3, [rule(type="remove", **{"from": "extra"})])
        v2 = version(2)
        result = VersionMigrator().migrate([v2, v3], v3, v2, {"extra": 1, "content": "x"})
        assert result.content == {"content": "x"}

    def test_same_version(self):
        v1 = version(1)
        result = VersionMigrator().migrate([v1], v1, v1, {"content": "x"})
        assert result.success
        assert result.warnings == []

    def test_gap_in_path_fails(self):
        v1, v3 = version(1), version(3)
        result = VersionMigrator().migrate([v1, v3], v1, v3, {})
        assert not result.success
        assert result.error == "Cannot find version 2 in migration path"
        with pytest.raises(MappingFailedError):
            result.raise_for_failure()

    def test_failing_rule_becomes_failure(self):
        v1 = version(1, [rule(type="transform", **{"from": "a"}, callback="no_such_transform")])
        result = VersionMigrator().migrate([v1, version(2)], v1, version(2), {"a": "x"})
        assert not result.success
        assert "no_such_transform" in (result.error or "")

    def test_named_mapper_on_version(self):
        mappers = MapperRegistry()
        mappers.register("widen", WidenMapper())
        v1, v3 = version(1, mapper="widen"), version(3)
        result = VersionMigrator(mappers).migrate([v1, v3], v1, v3, {"content": "hi"})
        assert result.success
        assert result.content == {"user_prompt": "hi", "system_prompt": "Be helpful."}

    def test_registered_mapper_found_by_pair(self):
        mappers = MapperRegistry()
        mappers.register("widen", WidenMapper())
        v1, v3 = version(1), version(3)
        assert VersionMigrator(mappers).migrate([v1, v3], v1, v3, {"content": "hi"}).content["user_prompt"] == "hi"

    def test_mapper_error_mid_walk_becomes_failure(self):
        mappers = MapperRegistry()
        mappers.register("strict", StrictMapper())
        v1, v2, v3 = version(1), version(2, mapper="strict"), version(3)
        result = VersionMigrator(mappers).migrate([v1, v2, v3], v1, v3, {"content": "hi"})
        assert not result.success
        assert "system_prompt" in (result.error or "")
        assert (result.from_version, result.to_version) == (1, 3)

    def test_direct_mapper_error_becomes_failure(self):
        mappers = MapperRegistry()
        mappers.register("strict", StrictMapper())
        v2, v3 = version(2), version(3)
        result = VersionMigrator(mappers).migrate([v2, v3], v2, v3, {"content": "hi"})
        assert not result.success
        assert result.content == {}

    def test_mapper_maps_variables(self):
        mappers = MapperRegistry()
        mappers.register("widen", RenamingVariablesMapper())
        v1 = version(1, mapper="widen", variables={"topic": {"type": "string"}})
        v3 = version(3)
        result = VersionMigrator(mappers).migrate([v1, v3], v1, v3, {"content": "hi"})
        assert result.success
        assert result.variables == {"subject": {"type": "string"}}

    def test_pair_mapper_requires_transform(self):
        with pytest.raises(TypeError):
            PairVersionMapper()  # type: ignore[abstract]

    def test_registry_rejects_non_mapper(self):
        with pytest.raises(TypeError):
            MapperRegistry().register("bad", object())  # type: ignore[arg-type]


class TestDiffVersions:
    def test_reports_changed_fields(self):
        a = version(1, content="old", variables={"x": {"type": "string"}})
        b = version(2, content="new", variables={"x": {"type": "string"}}, system_prompt="S")
        assert diff_versions(a, b) == {
            "system_prompt": {"from": None, "to": "S"},
            "content": {"from": "old", "to": "new"},
        }
