"""Execution of a single pipeline step against a PipelineContext.

A step computes its variables from the context (input mapping and overrides),
produces a RenderedPrompt through a registered handler or its template, then
records the result and copies selected result fields back into the context.
"""

import inspect
import threading
from collections.abc import Awaitable, Callable, Mapping
from typing import Any, Protocol, runtime_checkable

from prompt_templates_core.templates.conditions import evaluate_conditions
from prompt_templates_core.templates.rendered import RenderedPrompt
from prompt_templates_core.transforms import TransformRegistry, default_transforms

from .context import PipelineContext
from .models import InputMapping, Pipeline, PipelineStep

StepHandler = Callable[[PipelineContext, dict[str, Any], dict[str, Any]], RenderedPrompt | str | None | Awaitable[RenderedPrompt | str | None]]


@runtime_checkable
class TemplateRenderer(Protocol):
    """Anything that renders a template by id or slug; PromptManager implements it."""

    async def render_template(
        self,
        identifier: Any,
        variables: Mapping[str, Any] | None = None,
        options: Mapping[str, Any] | None = None,
    ) -> RenderedPrompt: ...


@runtime_checkable
class PipelineStore(Protocol):
    """The part of TemplateStore that pipelines read and write."""

    async def get_pipeline(self, pipeline_id: int) -> Pipeline | None: ...

    async def get_pipeline_by_slug(self, slug: str) -> Pipeline | None: ...

    async def save_pipeline(self, pipeline: Pipeline) -> Pipeline: ...

    async def list_steps(self, pipeline_id: int) -> list[PipelineStep]: ...

    async def save_step(self, step: PipelineStep) -> PipelineStep: ...


class StepHandlerRegistry:
    """Custom step handlers by name. Handlers may be sync or async."""

    def __init__(self) -> None:
        self._handlers: dict[str, StepHandler] = {}
        self._lock = threading.Lock()

    def register(self, name: str, handler: StepHandler) -> None:
        if not callable(handler):
            raise TypeError(f"Step handler '{name}' must be callable")
        with self._lock:
            self._handlers[name] = handler

    def get(self, name: str) -> StepHandler:
        with self._lock:
            handler = self._handlers.get(name)
        if handler is None:
            raise KeyError(f"Step handler '{name}' is not registered")
        return handler

    def has(self, name: str) -> bool:
        with self._lock:
            return name in self._handlers


class StepRunner:
    """Runs one step. Exceptions propagate; retries belong to the executor."""

    def __init__(
        self,
        renderer: TemplateRenderer,
        handlers: StepHandlerRegistry | None = None,
        transforms: TransformRegistry | None = None,
    ) -> None:
        self.renderer = renderer
        self.handlers = handlers or StepHandlerRegistry()
        self.transforms = transforms or default_transforms

    @staticmethod
    def should_execute(step: PipelineStep, context: PipelineContext) -> bool:
        if not step.is_enabled:
            return False
        return evaluate_conditions(step.conditions, context.all())

    def map_input(self, step: PipelineStep, context: PipelineContext) -> dict[str, Any]:
        """Variables for the step: the whole context data, or only the mapped paths."""
        if not step.input_mapping:
            variables = dict(context.all())
        else:
            variables = {}
            for name, source in step.input_mapping.items():
                if isinstance(source, str):
                    variables[name] = context.get(source)
                    continue
                variables[name] = self._resolve_mapping(name, source, context)
        return {**variables, **step.variable_overrides}

    def _resolve_mapping(self, name: str, mapping: InputMapping, context: PipelineContext) -> Any:
        value = context.get(mapping.from_ or name)
        if mapping.transform is not None and value is not None:
            value = self.transforms.apply(mapping.transform, value)
        if value is None:
            value = mapping.default
        return value

    async def produce(self, step: PipelineStep, context: PipelineContext, variables: dict[str, Any]) -> RenderedPrompt | None:
        result: Any = None
        if step.handler is not None:
            result = self.handlers.get(step.handler)(context, variables, dict(step.config))
            if inspect.isawaitable(result):
                result = await result
            if isinstance(result, str):
                result = RenderedPrompt.from_completion(result)
        if result is None and step.template is not None:
            result = await self.renderer.render_template(step.template, variables, step.config)
        return result if isinstance(result, RenderedPrompt) else None

    @staticmethod
    def map_output(step: PipelineStep, context: PipelineContext, result: RenderedPrompt) -> None:
        for path, field in step.output_mapping.items():
            context.set(path, result.get_field(field))

    async def handle(self, step: PipelineStep, context: PipelineContext) -> PipelineContext:
        variables = self.map_input(step, context)
        result = await self.produce(step, context, variables)
        if result is not None:
            context.add_result(step.name, result)
            self.map_output(step, context, result)
        return context


__all__ = ["PipelineStore", "StepHandler", "StepHandlerRegistry", "StepRunner", "TemplateRenderer"]
