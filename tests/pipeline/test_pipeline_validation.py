"""Tests for pipeline input validation."""

import pytest

from prompt_templates_core.pipeline import validate_input


class TestValidateInput:
    def test_empty_schema(self):
        assert validate_input(None, {}) == []
        assert validate_input({}, {"a": 1}) == []

    def test_json_schema_shape(self):
        schema = {"required": ["topic", "count"], "properties": {"topic": {"type": "string"}, "count": {"type": "integer"}}}
        assert validate_input(schema, {"topic": 5}) == [
            "Missing required field 'count'",
            "Field 'topic' must be of type string, got int",
        ]

    def test_flat_shape(self):
        schema = {"topic": {"type": "string", "required": True}, "tags": {"type": "array"}}
        assert validate_input(schema, {"tags": "x"}) == [
            "Missing required field 'topic'",
            "Field 'tags' must be of type array, got str",
        ]

    @pytest.mark.parametrize(
        "type_name,value",
        [("integer", True), ("number", "1"), ("boolean", 1), ("object", []), ("array", {"a": 1})],
    )
    def test_type_mismatch(self, type_name, value):
        assert validate_input({"x": {"type": type_name}}, {"x": value}) != []

    def test_none_and_unknown_types_not_checked(self):
        schema = {"a": {"type": "string"}, "b": {"type": "uuid"}}
        assert validate_input(schema, {"a": None, "b": 5}) == []
