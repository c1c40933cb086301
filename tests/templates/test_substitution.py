"""Tests for placeholder substitution."""

import pytest

from prompt_templates_core.templates.substitution import VariableSubstitutor, format_value, substitute


@pytest.fixture
def substitutor() -> VariableSubstitutor:
    return VariableSubstitutor()


class TestSubstitute:
    def test_simple_placeholder(self, substitutor: VariableSubstitutor):
        assert substitutor.substitute("Hello, {{ name }}!", {"name": "World"}) == "Hello, World!"

    def test_whitespace_inside_delimiters_is_optional(self, substitutor: VariableSubstitutor):
        assert substitutor.substitute("{{name}} and {{   name   }}", {"name": "x"}) == "x and x"

    def test_dotted_lookup(self, substitutor: VariableSubstitutor):
        assert substitutor.substitute("Age: {{ user.age }}", {"user": {"age": 30}}) == "Age: 30"

    def test_absent_placeholder_left_unchanged(self, substitutor: VariableSubstitutor):
        content = "Hi {{ name }}, your id is {{  user.id }}."
        assert substitutor.substitute(content, {}) == content

    def test_none_value_left_unchanged(self, substitutor: VariableSubstitutor):
        assert substitutor.substitute("{{ a }}", {"a": None}) == "{{ a }}"

    def test_idempotent(self, substitutor: VariableSubstitutor):
        content = "{{ greeting }}, {{ who.name }} ({{ missing }})"
        variables = {"greeting": "Hi", "who": {"name": "Ada"}}
        first = substitutor.substitute(content, variables)
        assert first == substitutor.substitute(content, variables)
        assert first == "Hi, Ada ({{ missing }})"

    def test_declared_default_fills_absent_variable(self, substitutor: VariableSubstitutor):
        expected = {"tone": {"type": "string", "default": "friendly"}}
        assert substitutor.substitute("Be {{ tone }}", {}, expected) == "Be friendly"
        assert substitutor.substitute("Be {{ tone }}", {"tone": "formal"}, expected) == "Be formal"

    def test_custom_delimiters(self):
        substitutor = VariableSubstitutor("[[", "]]")
        assert substitutor.substitute("[[ a ]] {{ a }}", {"a": 1}) == "1 {{ a }}"

    def test_empty_delimiters_rejected(self):
        with pytest.raises(ValueError):
            VariableSubstitutor("", "}}")

    def test_module_level_helper_uses_default_delimiters(self):
        assert substitute("{{ x }}", {"x": "y"}) == "y"


class TestFormatValue:
    def test_booleans(self):
        assert format_value(True) == "true"
        assert format_value(False) == "false"

    def test_containers_are_json(self):
        assert format_value({"a": 1}) == '{"a": 1}'
        assert format_value(["é", 2]) == '["é", 2]'

    def test_scalars(self):
        assert format_value(3.5) == "3.5"
        assert format_value(0) == "0"


class TestPlaceholders:
    def test_find_placeholders_unique_in_order(self, substitutor: VariableSubstitutor):
        assert substitutor.find_placeholders("{{ b }} {{ a }} {{ b }}") == ["b", "a"]
        assert substitutor.find_placeholders(None) == []

    def test_extract_used_reads_original_text(self, substitutor: VariableSubstitutor):
        used = substitutor.extract_used("{{ name }} {{ user.age }} {{ gone }}", {"name": "A", "user": {"age": 3}, "extra": 1})
        assert used == {"name": "A", "user.age": 3}

    def test_expected_variables_merges_declared_and_detected(self, substitutor: VariableSubstitutor):
        expected = substitutor.expected_variables(
            ["{{ user.name }} {{ topic }}", None],
            {"topic": {"type": "string", "required": True}},
        )
        assert expected["topic"] == {"type": "string", "required": True}
        assert expected["user"] == {"type": "string", "required": False}
