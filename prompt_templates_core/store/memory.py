"""In-memory template store.

Dict-based storage implementing the full TemplateStore protocol. Ids come from
per-entity counters. All data is lost when the process exits.
"""

import itertools
from collections.abc import Callable, Iterator
from typing import Generic, TypeVar

from pydantic import BaseModel

from prompt_templates_core.pipeline.models import Pipeline, PipelineStep
from prompt_templates_core.templates.models import (
    ComponentAttachment,
    PromptComponent,
    PromptExecution,
    PromptTemplate,
    PromptType,
    TemplateVersion,
    utcnow,
)

_M = TypeVar("_M", bound=BaseModel)


class _Table(Generic[_M]):
    """Id-keyed rows with an auto-incrementing id sequence."""

    def __init__(self) -> None:
        self.rows: dict[int, _M] = {}
        self._ids = itertools.count(1)

    def save(self, row: _M) -> _M:
        row_id = getattr(row, "id", 0)
        if not row_id:
            row_id = next(self._ids)
            row = row.model_copy(update={"id": row_id})
        self.rows[row_id] = row
        return row

    def get(self, row_id: int) -> _M | None:
        return self.rows.get(row_id)

    def where(self, predicate: Callable[[_M], bool]) -> Iterator[_M]:
        return (row for row in self.rows.values() if predicate(row))

    def delete(self, row_id: int) -> bool:
        return self.rows.pop(row_id, None) is not None


class MemoryTemplateStore:
    """Dict-based template store for tests and embedded use."""

    def __init__(self) -> None:
        self._templates: _Table[PromptTemplate] = _Table()
        self._versions: _Table[TemplateVersion] = _Table()
        self._components: _Table[PromptComponent] = _Table()
        self._attachments: _Table[ComponentAttachment] = _Table()
        self._pipelines: _Table[Pipeline] = _Table()
        self._steps: _Table[PipelineStep] = _Table()
        self._prompt_types: _Table[PromptType] = _Table()
        self._executions: _Table[PromptExecution] = _Table()

    # -- templates ----------------------------------------------------------

    async def get_template(self, template_id: int, *, include_deleted: bool = False) -> PromptTemplate | None:
        template = self._templates.get(template_id)
        if template is None or (template.is_deleted and not include_deleted):
            return None
        return template

    async def get_template_by_slug(self, slug: str, *, include_deleted: bool = False) -> PromptTemplate | None:
        matches = [t for t in self._templates.where(lambda t: t.slug == slug) if include_deleted or not t.is_deleted]
        # A live template wins over tombstones sharing its slug
        matches.sort(key=lambda t: (t.is_deleted, -t.id))
        return matches[0] if matches else None

    async def list_templates(self, *, type: str | None = None, search: str | None = None, include_deleted: bool = False) -> list[PromptTemplate]:
        needle = search.lower() if search else None

        def keep(template: PromptTemplate) -> bool:
            if template.is_deleted and not include_deleted:
                return False
            if type is not None and template.type != type:
                return False
            if needle is not None:
                haystack = f"{template.slug} {template.name} {template.description}".lower()
                return needle in haystack
            return True

        return sorted(self._templates.where(keep), key=lambda t: t.id)

    async def save_template(self, template: PromptTemplate) -> PromptTemplate:
        return self._templates.save(template)

    async def delete_template(self, template_id: int, *, soft: bool = True) -> bool:
        template = self._templates.get(template_id)
        if template is None:
            return False
        if soft:
            self._templates.save(template.model_copy(update={"deleted_at": utcnow()}))
            return True
        for version in list(self._versions.where(lambda v: v.template_id == template_id)):
            self._versions.delete(version.id)
        for attachment in list(self._attachments.where(lambda a: a.template_id == template_id)):
            self._attachments.delete(attachment.id)
        for component in list(self._components.where(lambda c: c.template_id == template_id)):
            self._components.delete(component.id)
        return self._templates.delete(template_id)

    # -- versions -----------------------------------------------------------

    async def list_versions(self, template_id: int) -> list[TemplateVersion]:
        return sorted(self._versions.where(lambda v: v.template_id == template_id), key=lambda v: v.version_number)

    async def get_version(self, version_id: int) -> TemplateVersion | None:
        return self._versions.get(version_id)

    async def save_version(self, version: TemplateVersion) -> TemplateVersion:
        clash = next(
            self._versions.where(lambda v: v.template_id == version.template_id and v.version_number == version.version_number and v.id != version.id),
            None,
        )
        if clash is not None:
            raise ValueError(f"Version {version.version_number} already exists for template {version.template_id}")
        return self._versions.save(version)

    # -- components ---------------------------------------------------------

    async def get_component(self, component_id: int) -> PromptComponent | None:
        component = self._components.get(component_id)
        return None if component is None or component.deleted_at is not None else component

    async def get_component_by_key(self, key: str) -> PromptComponent | None:
        return next(self._components.where(lambda c: c.key == key and c.deleted_at is None), None)

    async def list_components(self, *, template_id: int | None = None) -> list[PromptComponent]:
        return sorted(
            self._components.where(lambda c: c.template_id == template_id and c.deleted_at is None),
            key=lambda c: c.id,
        )

    async def save_component(self, component: PromptComponent) -> PromptComponent:
        return self._components.save(component)

    async def delete_component(self, component_id: int, *, soft: bool = True) -> bool:
        component = self._components.get(component_id)
        if component is None:
            return False
        if soft:
            self._components.save(component.model_copy(update={"deleted_at": utcnow()}))
            return True
        for attachment in list(self._attachments.where(lambda a: a.component_id == component_id)):
            self._attachments.delete(attachment.id)
        return self._components.delete(component_id)

    async def list_attachments(self, template_id: int) -> list[ComponentAttachment]:
        return sorted(self._attachments.where(lambda a: a.template_id == template_id), key=lambda a: (a.order, a.id))

    async def save_attachment(self, attachment: ComponentAttachment) -> ComponentAttachment:
        return self._attachments.save(attachment)

    async def delete_attachment(self, attachment_id: int) -> bool:
        return self._attachments.delete(attachment_id)

    # -- pipelines ----------------------------------------------------------

    async def get_pipeline(self, pipeline_id: int) -> Pipeline | None:
        pipeline = self._pipelines.get(pipeline_id)
        return None if pipeline is None or pipeline.deleted_at is not None else pipeline

    async def get_pipeline_by_slug(self, slug: str) -> Pipeline | None:
        return next(self._pipelines.where(lambda p: p.slug == slug and p.deleted_at is None), None)

    async def save_pipeline(self, pipeline: Pipeline) -> Pipeline:
        return self._pipelines.save(pipeline)

    async def delete_pipeline(self, pipeline_id: int, *, soft: bool = True) -> bool:
        pipeline = self._pipelines.get(pipeline_id)
        if pipeline is None:
            return False
        if soft:
            self._pipelines.save(pipeline.model_copy(update={"deleted_at": utcnow()}))
            return True
        for step in list(self._steps.where(lambda s: s.pipeline_id == pipeline_id)):
            self._steps.delete(step.id)
        return self._pipelines.delete(pipeline_id)

    async def list_steps(self, pipeline_id: int) -> list[PipelineStep]:
        return sorted(self._steps.where(lambda s: s.pipeline_id == pipeline_id), key=lambda s: (s.order, s.id))

    async def save_step(self, step: PipelineStep) -> PipelineStep:
        return self._steps.save(step)

    async def delete_step(self, step_id: int) -> bool:
        return self._steps.delete(step_id)

    # -- prompt types and executions ----------------------------------------

    async def get_prompt_type(self, slug: str) -> PromptType | None:
        return next(self._prompt_types.where(lambda t: t.slug == slug), None)

    async def list_prompt_types(self) -> list[PromptType]:
        return sorted(self._prompt_types.rows.values(), key=lambda t: t.id)

    async def save_prompt_type(self, prompt_type: PromptType) -> PromptType:
        existing = await self.get_prompt_type(prompt_type.slug)
        if existing is not None and not prompt_type.id:
            prompt_type = prompt_type.model_copy(update={"id": existing.id})
        return self._prompt_types.save(prompt_type)

    async def add_execution(self, execution: PromptExecution) -> PromptExecution:
        return self._executions.save(execution.model_copy(update={"id": 0}))

    async def list_executions(self, *, template_id: int | None = None) -> list[PromptExecution]:
        rows = self._executions.where(lambda e: template_id is None or e.template_id == template_id)
        return sorted(rows, key=lambda e: e.id)


__all__ = ["MemoryTemplateStore"]
