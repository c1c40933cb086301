"""Common test fixtures for prompt template tests."""

import pytest

from prompt_templates_core.cache import MemoryTemplateCache
from prompt_templates_core.manager import PromptManager
from prompt_templates_core.settings import Settings
from prompt_templates_core.store import MemoryTemplateStore, set_template_store


@pytest.fixture(autouse=True)
def reset_global_store():
    """Ensure no test leaks a process-global template store into another."""
    set_template_store(None)
    yield
    set_template_store(None)


@pytest.fixture
def test_settings() -> Settings:
    """Settings with no retry back-off so failing steps retry instantly."""
    return Settings(pipeline_retry_base_delay=0.0)


@pytest.fixture
def store() -> MemoryTemplateStore:
    return MemoryTemplateStore()


@pytest.fixture
def cache() -> MemoryTemplateCache:
    return MemoryTemplateCache()


@pytest.fixture
def manager(store: MemoryTemplateStore, cache: MemoryTemplateCache, test_settings: Settings) -> PromptManager:
    return PromptManager(store=store, cache=cache, settings=test_settings)
