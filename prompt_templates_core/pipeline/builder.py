"""Fluent construction of pipelines.

    >>> builder = (
    ...     PipelineBuilder("Summarize then title")
    ...     .add_template("summarize", output_mapping={"summary": "content"})
    ...     .add_template("title", input_mapping={"text": "summary"})
    ... )
    >>> pipeline = await builder.save(store)
"""

from collections.abc import Mapping, Sequence
from typing import Any, Self

from prompt_templates_core.templates.conditions import Condition

from .context import PipelineContext
from .executor import PipelineExecutor
from .models import InputMapping, Pipeline, PipelineStep
from .step import PipelineStore


class PipelineBuilder:
    """Collects steps in insertion order; `order` is the step's position."""

    def __init__(self, name: str | None = None) -> None:
        self._name = name
        self._slug: str | None = None
        self._description = ""
        self._config: dict[str, Any] = {}
        self._input_schema: dict[str, Any] = {}
        self._steps: list[dict[str, Any]] = []

    def name(self, name: str) -> Self:
        self._name = name
        return self

    def slug(self, slug: str) -> Self:
        self._slug = slug
        return self

    def description(self, description: str) -> Self:
        self._description = description
        return self

    def config(self, config: Mapping[str, Any]) -> Self:
        self._config.update(config)
        return self

    def input_schema(self, schema: Mapping[str, Any]) -> Self:
        self._input_schema = dict(schema)
        return self

    def add_template(
        self,
        template: int | str,
        name: str | None = None,
        *,
        input_mapping: Mapping[str, str | InputMapping | Mapping[str, Any]] | None = None,
        output_mapping: Mapping[str, str] | None = None,
        config: Mapping[str, Any] | None = None,
        **options: Any,
    ) -> Self:
        step_name = name or (template if isinstance(template, str) else f"step_{len(self._steps)}")
        return self._add(step_name, template=template, input_mapping=input_mapping, output_mapping=output_mapping, config=config, **options)

    def add_handler(
        self,
        handler: str,
        name: str | None = None,
        *,
        input_mapping: Mapping[str, str | InputMapping | Mapping[str, Any]] | None = None,
        output_mapping: Mapping[str, str] | None = None,
        config: Mapping[str, Any] | None = None,
        **options: Any,
    ) -> Self:
        step_name = name or f"handler_{len(self._steps)}"
        return self._add(step_name, handler=handler, input_mapping=input_mapping, output_mapping=output_mapping, config=config, **options)

    def add_conditional(
        self,
        conditions: Sequence[Condition | Mapping[str, Any]],
        template: int | str,
        name: str | None = None,
        **options: Any,
    ) -> Self:
        step_name = name or (template if isinstance(template, str) else f"conditional_{len(self._steps)}")
        return self._add(step_name, template=template, conditions=list(conditions), **options)

    def _add(self, name: str, **fields: Any) -> Self:
        self._steps.append({"name": name, **{key: value for key, value in fields.items() if value is not None}})
        return self

    def _pipeline(self) -> Pipeline:
        name = self._name or "Pipeline"
        slug = self._slug or name.lower().replace(" ", "-")
        return Pipeline(slug=slug, name=name, description=self._description, config=self._config, input_schema=self._input_schema)

    def build(self) -> tuple[Pipeline, list[PipelineStep]]:
        """Unsaved pipeline and steps (ids are 0)."""
        pipeline = self._pipeline()
        steps = [PipelineStep.model_validate({**step, "order": order}) for order, step in enumerate(self._steps)]
        return pipeline, steps

    async def save(self, store: PipelineStore) -> Pipeline:
        pipeline, steps = self.build()
        saved = await store.save_pipeline(pipeline)
        for step in steps:
            await store.save_step(step.model_copy(update={"pipeline_id": saved.id}))
        return saved

    async def execute(self, executor: PipelineExecutor, input: Mapping[str, Any] | None = None) -> PipelineContext:
        """Run the built steps without saving them."""
        pipeline, steps = self.build()
        return await executor.run(pipeline, steps, input)


__all__ = ["PipelineBuilder"]
