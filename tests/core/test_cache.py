"""Tests for the memory cache and key helpers."""

from unittest.mock import patch

from prompt_templates_core import cache as cache_module
from prompt_templates_core.cache import MemoryTemplateCache, TemplateCache, render_key, render_prefix, template_key


class TestMemoryTemplateCache:
    def test_satisfies_protocol(self):
        assert isinstance(MemoryTemplateCache(), TemplateCache)

    def test_set_get_delete(self):
        cache = MemoryTemplateCache()
        cache.set("a", 1)
        assert cache.get("a") == 1
        cache.delete("a")
        assert cache.get("a") is None
        cache.delete("a")

    def test_expiry(self):
        cache = MemoryTemplateCache()
        with patch.object(cache_module.time, "monotonic", return_value=100.0):
            cache.set("a", 1, ttl=10)
        with patch.object(cache_module.time, "monotonic", return_value=109.0):
            assert cache.get("a") == 1
        with patch.object(cache_module.time, "monotonic", return_value=110.0):
            assert cache.get("a") is None
        assert len(cache) == 0

    def test_non_positive_ttl_never_expires(self):
        cache = MemoryTemplateCache(default_ttl=0)
        with patch.object(cache_module.time, "monotonic", return_value=0.0):
            cache.set("a", 1)
        with patch.object(cache_module.time, "monotonic", return_value=1e9):
            assert cache.get("a") == 1

    def test_clear_by_prefix(self):
        cache = MemoryTemplateCache()
        cache.set("p.render.1.x", 1)
        cache.set("p.render.2.x", 2)
        cache.set("q.other", 3)
        cache.clear("p.render.1.")
        assert cache.get("p.render.1.x") is None
        assert cache.get("p.render.2.x") == 2
        cache.clear()
        assert len(cache) == 0


class TestKeys:
    def test_template_key(self):
        assert template_key("pt", "greeting") == "pt.template.greeting"

    def test_render_key_shape(self):
        key = render_key("pt", 7, None, {"a": 1}, {})
        assert key.startswith(render_prefix("pt", 7) + "current.")

    def test_render_key_ignores_dict_order(self):
        assert render_key("pt", 1, 2, {"a": 1, "b": 2}, {}) == render_key("pt", 1, 2, {"b": 2, "a": 1}, {})

    def test_render_key_varies_with_inputs(self):
        base = render_key("pt", 1, 2, {"a": 1}, {})
        assert render_key("pt", 1, 3, {"a": 1}, {}) != base
        assert render_key("pt", 1, 2, {"a": 2}, {}) != base
        assert render_key("pt", 1, 2, {"a": 1}, {"strict": True}) != base
