"""Tests for Settings."""

import pytest
from pydantic import ValidationError

from prompt_templates_core.settings import Settings


class TestSettings:
    def test_defaults(self):
        settings = Settings()
        assert settings.variable_start == "{{"
        assert settings.variable_end == "}}"
        assert settings.pipeline_max_depth == 10
        assert settings.cache_enabled is True
        assert settings.soft_deletes is True

    def test_environment_override(self, monkeypatch):
        monkeypatch.setenv("PROMPT_TEMPLATES_PIPELINE_MAX_DEPTH", "3")
        monkeypatch.setenv("PROMPT_TEMPLATES_CACHE_ENABLED", "false")
        settings = Settings()
        assert settings.pipeline_max_depth == 3
        assert settings.cache_enabled is False

    def test_frozen(self):
        settings = Settings()
        with pytest.raises(ValidationError):
            settings.cache_ttl = 5  # type: ignore[misc]
