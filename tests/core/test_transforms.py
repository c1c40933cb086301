"""Tests for the named transform registry."""

import pytest

from prompt_templates_core.transforms import TransformRegistry, default_transforms


class TestBuiltins:
    @pytest.mark.parametrize(
        "name,value,expected",
        [
            ("upper", "abc", "ABC"),
            ("lower", "ABC", "abc"),
            ("strip", "  x ", "x"),
            ("json", {"a": [1]}, '{"a": [1]}'),
            ("string", None, ""),
            ("int", "7", 7),
            ("float", "1.5", 1.5),
            ("bool", 0, False),
        ],
    )
    def test_builtin(self, name, value, expected):
        assert default_transforms.apply(name, value) == expected


class TestRegistry:
    def test_register_and_resolve(self):
        registry = TransformRegistry(builtins=False)
        registry.register("double", lambda v: v * 2)
        assert registry.has("double")
        assert not registry.has("upper")
        assert registry.apply("double", 3) == 6

    def test_callable_passes_through(self):
        assert TransformRegistry().apply(len, "abcd") == 4

    def test_unknown_name(self):
        with pytest.raises(KeyError, match="Unknown transform 'nope'"):
            TransformRegistry().get("nope")

    def test_register_rejects_non_callable(self):
        with pytest.raises(TypeError):
            TransformRegistry().register("bad", "not callable")  # type: ignore[arg-type]
