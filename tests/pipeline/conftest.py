"""Fixtures for pipeline tests: a scripted template renderer and an executor over a memory store."""

from collections.abc import Callable, Mapping
from typing import Any

import pytest

from prompt_templates_core.pipeline import PipelineExecutor
from prompt_templates_core.store import MemoryTemplateStore
from prompt_templates_core.templates.rendered import RenderedPrompt


class ScriptedRenderer:
    """Renders each template id or slug with a scripted function of the variables."""

    def __init__(self) -> None:
        self.scripts: dict[Any, Callable[[dict[str, Any]], str]] = {}
        self.calls: list[tuple[Any, dict[str, Any]]] = []

    def script(self, identifier: Any, render: Callable[[dict[str, Any]], str]) -> None:
        self.scripts[identifier] = render

    async def render_template(
        self,
        identifier: Any,
        variables: Mapping[str, Any] | None = None,
        options: Mapping[str, Any] | None = None,
    ) -> RenderedPrompt:
        variables = dict(variables or {})
        self.calls.append((identifier, variables))
        render = self.scripts.get(identifier, lambda _: str(identifier))
        return RenderedPrompt(content=render(variables), template_slug=str(identifier), metadata={"options": dict(options or {})})


@pytest.fixture
def renderer() -> ScriptedRenderer:
    return ScriptedRenderer()


@pytest.fixture
def pipeline_store() -> MemoryTemplateStore:
    return MemoryTemplateStore()


@pytest.fixture
def executor(renderer: ScriptedRenderer, pipeline_store: MemoryTemplateStore) -> PipelineExecutor:
    return PipelineExecutor(renderer, pipeline_store, retry_base_delay=0.0)
