"""Template store protocol and singleton management.

Defines the TemplateStore protocol that storage backends implement, along with
get/set helpers for the process-global instance. Entities reference each other
by integer id; a backend assigns the id when an entity with id 0 is saved.
"""

from typing import Protocol, runtime_checkable

from prompt_templates_core.pipeline.models import Pipeline, PipelineStep
from prompt_templates_core.templates.models import (
    ComponentAttachment,
    PromptComponent,
    PromptExecution,
    PromptTemplate,
    PromptType,
    TemplateVersion,
)


@runtime_checkable
class TemplateStore(Protocol):
    """Protocol for template storage backends.

    Implementations: MemoryTemplateStore (testing and embedded use).
    """

    # -- templates ----------------------------------------------------------

    async def get_template(self, template_id: int, *, include_deleted: bool = False) -> PromptTemplate | None:
        """Template by id. Soft-deleted templates are hidden unless include_deleted."""
        ...

    async def get_template_by_slug(self, slug: str, *, include_deleted: bool = False) -> PromptTemplate | None:
        """Template by slug. Soft-deleted templates are hidden unless include_deleted."""
        ...

    async def list_templates(self, *, type: str | None = None, search: str | None = None, include_deleted: bool = False) -> list[PromptTemplate]:
        """Templates ordered by id, optionally filtered by type or a case-insensitive search over slug, name and description."""
        ...

    async def save_template(self, template: PromptTemplate) -> PromptTemplate:
        """Insert (id 0) or replace a template. Returns the stored entity."""
        ...

    async def delete_template(self, template_id: int, *, soft: bool = True) -> bool:
        """Tombstone or remove a template. Hard deletes cascade to versions and attachments."""
        ...

    # -- versions -----------------------------------------------------------

    async def list_versions(self, template_id: int) -> list[TemplateVersion]:
        """Versions of a template ordered by version_number."""
        ...

    async def get_version(self, version_id: int) -> TemplateVersion | None: ...

    async def save_version(self, version: TemplateVersion) -> TemplateVersion:
        """Insert or replace a version. A version_number must be unique within its template."""
        ...

    # -- components ---------------------------------------------------------

    async def get_component(self, component_id: int) -> PromptComponent | None: ...

    async def get_component_by_key(self, key: str) -> PromptComponent | None: ...

    async def list_components(self, *, template_id: int | None = None) -> list[PromptComponent]:
        """Live components; global ones when template_id is None, otherwise that template's scoped ones."""
        ...

    async def save_component(self, component: PromptComponent) -> PromptComponent: ...

    async def delete_component(self, component_id: int, *, soft: bool = True) -> bool: ...

    async def list_attachments(self, template_id: int) -> list[ComponentAttachment]:
        """Attachments of a template ordered by (order, id)."""
        ...

    async def save_attachment(self, attachment: ComponentAttachment) -> ComponentAttachment: ...

    async def delete_attachment(self, attachment_id: int) -> bool: ...

    # -- pipelines ----------------------------------------------------------

    async def get_pipeline(self, pipeline_id: int) -> Pipeline | None: ...

    async def get_pipeline_by_slug(self, slug: str) -> Pipeline | None: ...

    async def save_pipeline(self, pipeline: Pipeline) -> Pipeline: ...

    async def delete_pipeline(self, pipeline_id: int, *, soft: bool = True) -> bool:
        """Tombstone or remove a pipeline. Hard deletes cascade to steps."""
        ...

    async def list_steps(self, pipeline_id: int) -> list[PipelineStep]:
        """Steps ordered by order, ties broken by insertion."""
        ...

    async def save_step(self, step: PipelineStep) -> PipelineStep: ...

    async def delete_step(self, step_id: int) -> bool: ...

    # -- prompt types and executions ----------------------------------------

    async def get_prompt_type(self, slug: str) -> PromptType | None: ...

    async def list_prompt_types(self) -> list[PromptType]: ...

    async def save_prompt_type(self, prompt_type: PromptType) -> PromptType: ...

    async def add_execution(self, execution: PromptExecution) -> PromptExecution:
        """Append an execution record. Records are never updated."""
        ...

    async def list_executions(self, *, template_id: int | None = None) -> list[PromptExecution]: ...


_template_store: TemplateStore | None = None


def get_template_store() -> TemplateStore | None:
    """Return the process-global template store, or None if not configured."""
    return _template_store


def set_template_store(store: TemplateStore | None) -> None:
    """Set the process-global template store. Pass None to clear."""
    global _template_store
    _template_store = store


__all__ = ["TemplateStore", "get_template_store", "set_template_store"]
