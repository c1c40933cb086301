"""Tests for variable pipes."""

import pytest

from prompt_templates_core.exceptions import InvalidContextError
from prompt_templates_core.pipeline.validation import validate_input
from prompt_templates_core.templates.pipes import (
    apply_pipes,
    check_variables,
    inject_metadata,
    sanitize_variables,
    transform_variables,
    validate_variables,
    when,
)
from prompt_templates_core.templates.rendered import RenderContext


class TestSanitize:
    def test_trims_recursively(self):
        context = RenderContext(variables={"a": "  x  ", "nested": {"b": [" y "]}, "n": 5})
        result = sanitize_variables()(context)
        assert result.variables == {"a": "x", "nested": {"b": ["y"]}, "n": 5}
        assert context.variables["a"] == "  x  "

    def test_escape_and_truncate(self):
        pipe = sanitize_variables(escape_html=True, max_length=8)
        result = pipe(RenderContext(variables={"html": "<b>bold</b>"}))
        assert result.variables["html"] == "&lt;b&gt..."


class TestTransform:
    def test_exact_and_glob_keys(self):
        pipe = transform_variables({"name": str.upper, "user_*": str.strip})
        result = pipe(RenderContext(variables={"name": "ada", "user_city": " Paris ", "other": " x "}))
        assert result.variables == {"name": "ADA", "user_city": "Paris", "other": " x "}

    def test_absent_key_ignored(self):
        result = transform_variables({"missing": str.upper})(RenderContext(variables={"a": "b"}))
        assert result.variables == {"a": "b"}


class TestValidate:
    def test_check_variables_messages(self):
        errors = check_variables(
            {"empty": "", "count": "3", "flag": True},
            required=["missing", "empty"],
            types={"count": "int", "flag": "bool", "x": "string", "empty": "weird"},
        )
        assert errors == [
            "Missing required variable: missing",
            "Required variable is empty: empty",
            "Variable 'count' should be int, got str",
            "Variable 'empty' has unknown type 'weird'",
        ]

    def test_bool_is_not_int(self):
        assert check_variables({"n": True}, types={"n": "int"}) == ["Variable 'n' should be int, got bool"]

    def test_array_and_object_agree_with_pipeline_validation(self):
        variables = {"tags": {"a": 1}, "meta": {"a": 1}}
        assert check_variables(variables, types={"tags": "array", "meta": "object"}) == ["Variable 'tags' should be array, got dict"]
        assert validate_input({"tags": {"type": "array"}, "meta": {"type": "object"}}, variables) == [
            "Field 'tags' must be of type array, got dict"
        ]

    def test_lenient_records_errors(self):
        result = validate_variables(["name"])(RenderContext())
        assert result.metadata["validation_errors"] == ["Missing required variable: name"]

    def test_strict_raises(self):
        with pytest.raises(InvalidContextError):
            validate_variables(["name"], strict=True)(RenderContext())

    def test_valid_context_passes_through(self):
        context = RenderContext(variables={"name": "x"})
        assert validate_variables(["name"], {"name": "string"})(context) is context


class TestCombinators:
    def test_when_branches(self):
        upper = transform_variables({"v": str.upper})
        pipe = when(lambda c: c.variables.get("shout", False), upper)
        assert pipe(RenderContext(variables={"v": "a", "shout": True})).variables["v"] == "A"
        assert pipe(RenderContext(variables={"v": "a"})).variables["v"] == "a"

    def test_when_otherwise(self):
        pipe = when(lambda c: False, transform_variables({"v": str.upper}), transform_variables({"v": str.title}))
        assert pipe(RenderContext(variables={"v": "ab"})).variables["v"] == "Ab"

    def test_inject_metadata_with_timestamp(self):
        result = inject_metadata({"source": "test"}, timestamp=True)(RenderContext())
        assert result.metadata["source"] == "test"
        assert "processed_at" in result.metadata

    def test_apply_pipes_runs_left_to_right(self):
        pipes = [transform_variables({"v": lambda v: v + "1"}), transform_variables({"v": lambda v: v + "2"})]
        assert apply_pipes(RenderContext(variables={"v": "0"}), pipes).variables["v"] == "012"
