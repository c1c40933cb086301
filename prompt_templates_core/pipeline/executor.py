"""Pipeline execution: step loop with retries, depth guard, chaining and parallel runs.

Nesting depth lives in a ContextVar, so every asyncio task (and every
independent caller) sees its own depth and concurrent runs never trip each
other's limit. The depth is restored on exit even when execution raises.
"""

import asyncio
import copy
from collections.abc import Iterator, Mapping, Sequence
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any

from prompt_templates_core.exceptions import (
    PipelineDepthExceededError,
    PipelineInputInvalidError,
    PipelineNotFoundError,
)
from prompt_templates_core.logging import get_pipeline_logger
from prompt_templates_core.settings import Settings
from prompt_templates_core.settings import settings as default_settings
from prompt_templates_core.templates.models import PromptTemplate
from prompt_templates_core.transforms import TransformRegistry

from .context import PipelineContext
from .models import Pipeline, PipelineStep
from .step import PipelineStore, StepHandlerRegistry, StepRunner, TemplateRenderer
from .validation import validate_input

logger = get_pipeline_logger(__name__)

_pipeline_depth: ContextVar[int] = ContextVar("_pipeline_depth", default=0)

PipelineRef = Pipeline | str | int


def current_depth() -> int:
    """Nesting depth of pipeline executions in the current logical call stack."""
    return _pipeline_depth.get()


@contextmanager
def _enter_pipeline(max_depth: int) -> Iterator[int]:
    depth = _pipeline_depth.get() + 1
    if depth > max_depth:
        raise PipelineDepthExceededError(max_depth)
    token = _pipeline_depth.set(depth)
    try:
        yield depth
    finally:
        _pipeline_depth.reset(token)


class PipelineExecutor:
    """Runs pipelines step by step against a fresh PipelineContext.

    Step failures are retried with exponential back-off
    (`retry_base_delay * 2 ** (attempt - 1)`), then recorded in the context.
    Only entry-gate failures (depth, input schema, unknown pipeline) raise.
    """

    def __init__(
        self,
        renderer: TemplateRenderer,
        store: PipelineStore,
        *,
        max_depth: int | None = None,
        retry_base_delay: float | None = None,
        step_handlers: StepHandlerRegistry | None = None,
        transforms: TransformRegistry | None = None,
        settings: Settings | None = None,
    ) -> None:
        cfg = settings or default_settings
        self.renderer = renderer
        self.store = store
        self.max_depth = cfg.pipeline_max_depth if max_depth is None else max_depth
        self.retry_base_delay = cfg.pipeline_retry_base_delay if retry_base_delay is None else retry_base_delay
        self.step_handlers = step_handlers or StepHandlerRegistry()
        self.runner = StepRunner(renderer, self.step_handlers, transforms)

    async def load_pipeline(self, pipeline: PipelineRef) -> Pipeline:
        if isinstance(pipeline, Pipeline):
            return pipeline
        found = await self.store.get_pipeline(pipeline) if isinstance(pipeline, int) else await self.store.get_pipeline_by_slug(pipeline)
        if found is None or found.deleted_at is not None:
            raise PipelineNotFoundError(pipeline)
        return found

    async def execute(
        self,
        pipeline: PipelineRef,
        input: Mapping[str, Any] | None = None,
        options: Mapping[str, Any] | None = None,
    ) -> PipelineContext:
        """Run every enabled step in order and return the resulting context.

        Raises:
            PipelineDepthExceededError: Nested executions exceed max_depth.
            PipelineInputInvalidError: Input fails the pipeline's input schema.
        """
        return await self.run(pipeline, None, input, options)

    async def run(
        self,
        pipeline: PipelineRef,
        steps: Sequence[PipelineStep] | None,
        input: Mapping[str, Any] | None = None,
        options: Mapping[str, Any] | None = None,
    ) -> PipelineContext:
        """Like execute(), with explicit steps instead of the stored ones when given."""
        with _enter_pipeline(self.max_depth) as depth:
            resolved = await self.load_pipeline(pipeline)
            data = dict(input or {})
            errors = validate_input(resolved.input_schema, data)
            if errors:
                raise PipelineInputInvalidError(errors)

            context = PipelineContext(data, {**resolved.config, **(options or {})})
            if steps is None:
                steps = await self.store.list_steps(resolved.id)
            ordered = sorted((step for step in steps if step.is_enabled), key=lambda step: step.order)
            logger.debug("Executing pipeline '%s' (%d steps, depth %d)", resolved.slug, len(ordered), depth)

            for step in ordered:
                if not context.should_continue:
                    break
                await self.execute_step(step, context)
            return context

    async def execute_step(self, step: PipelineStep, context: PipelineContext) -> PipelineContext:
        if not self.runner.should_execute(step, context):
            logger.debug("Skipping step '%s'", step.name)
            return context

        max_attempts = step.retry_attempts + 1
        attempts = 0
        last_error: Exception | None = None
        while attempts < max_attempts:
            try:
                return await self.runner.handle(step, context)
            except PipelineDepthExceededError:
                raise
            except Exception as e:
                last_error = e
                attempts += 1
                if attempts >= max_attempts:
                    break
                delay = self.retry_base_delay * 2 ** (attempts - 1)
                logger.warning("Step '%s' failed (attempt %d/%d), retrying in %.2fs: %s", step.name, attempts, max_attempts, delay, e)
                await asyncio.sleep(delay)

        logger.error("Step '%s' failed after %d attempts: %s", step.name, attempts, last_error)
        context.add_error(
            step.name,
            str(last_error) if last_error else "Unknown error",
            {"attempts": attempts, "exception": type(last_error).__name__ if last_error else None},
        )
        if not step.continue_on_failure:
            context.stop()
        return context

    async def chain(self, pipelines: Sequence[PipelineRef], input: Mapping[str, Any] | None = None) -> PipelineContext:
        """Run pipelines in sequence, feeding each the accumulated data.

        Results and errors are merged under `<pipeline slug>.<step name>`.
        """
        context = PipelineContext(input)
        for ref in pipelines:
            if not context.should_continue:
                break
            pipeline = await self.load_pipeline(ref)
            sub = await self.execute(pipeline, context.all())
            for name, result in sub.results.items():
                context.add_result(f"{pipeline.slug}.{name}", result)
            for name, error in sub.errors.items():
                context.add_error(f"{pipeline.slug}.{name}", error["message"], error["context"])
            context.merge({key: value for key, value in sub.all().items() if key != "results"})
            if not sub.should_continue:
                context.stop()
        return context

    async def parallel(self, pipelines: Mapping[str, PipelineRef], input: Mapping[str, Any] | None = None) -> dict[str, PipelineContext]:
        """Run pipelines concurrently, each on its own copy of the input.

        A pipeline that fails at its entry gate yields a stopped context holding
        the error; the others are unaffected.
        """
        names = list(pipelines)
        data = dict(input or {})
        outcomes = await asyncio.gather(
            *(self.execute(pipelines[name], copy.deepcopy(data)) for name in names),
            return_exceptions=True,
        )
        contexts: dict[str, PipelineContext] = {}
        for name, outcome in zip(names, outcomes):
            if isinstance(outcome, PipelineContext):
                contexts[name] = outcome
                continue
            if not isinstance(outcome, Exception):
                raise outcome
            logger.warning("Parallel pipeline '%s' failed: %s", name, outcome)
            failed = PipelineContext(data)
            failed.add_error(name, str(outcome), {"exception": type(outcome).__name__})
            contexts[name] = failed.stop()
        return contexts

    async def from_templates(self, templates: Sequence[PromptTemplate | str | int], input: Mapping[str, Any] | None = None) -> PipelineContext:
        """Render templates in order as steps `step_<i>`, exposing each result as `last_result`.

        The first failure is recorded and halts the remaining templates.
        """
        context = PipelineContext(input)
        with _enter_pipeline(self.max_depth):
            for index, template in enumerate(templates):
                if not context.should_continue:
                    break
                name = f"step_{index}"
                try:
                    result = await self.renderer.render_template(template, dict(context.all()))
                except PipelineDepthExceededError:
                    raise
                except Exception as e:
                    logger.warning("Template step '%s' failed: %s", name, e)
                    context.add_error(name, str(e), {"exception": type(e).__name__})
                    context.stop()
                    continue
                context.add_result(name, result)
                context.merge({"last_result": result.to_string()})
        return context


__all__ = ["PipelineExecutor", "PipelineRef", "current_depth"]
