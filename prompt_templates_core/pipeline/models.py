"""Stored pipeline entities."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

from prompt_templates_core.templates.conditions import Condition
from prompt_templates_core.templates.models import utcnow


class InputMapping(BaseModel):
    """Object form of an input mapping: read `from`, apply `transform`, fall back to `default`."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    from_: str | None = Field(default=None, alias="from")
    transform: str | None = None
    default: Any = None


class Pipeline(BaseModel):
    """Named, ordered collection of steps. `config` is merged into every execution's context config."""

    model_config = ConfigDict(frozen=True)

    id: int = 0
    slug: str
    name: str
    description: str = ""
    config: dict[str, Any] = Field(default_factory=dict)
    input_schema: dict[str, Any] = Field(default_factory=dict)
    output_schema: dict[str, Any] = Field(default_factory=dict)
    is_active: bool = True
    created_at: datetime = Field(default_factory=utcnow)
    deleted_at: datetime | None = None


class PipelineStep(BaseModel):
    """One step of a pipeline.

    `template` is a template id or slug. `handler` names a registered step handler
    and takes precedence over the template. `output_mapping` maps context paths to
    result fields.
    """

    model_config = ConfigDict(frozen=True)

    id: int = 0
    pipeline_id: int = 0
    name: str
    order: int = 0
    template: int | str | None = None
    handler: str | None = None
    input_mapping: dict[str, str | InputMapping] = Field(default_factory=dict)
    output_mapping: dict[str, str] = Field(default_factory=dict)
    conditions: list[Condition] = Field(default_factory=list)
    continue_on_failure: bool = False
    retry_attempts: int = Field(default=0, ge=0)
    config: dict[str, Any] = Field(default_factory=dict)
    variable_overrides: dict[str, Any] = Field(default_factory=dict)
    is_enabled: bool = True

    @model_validator(mode="after")
    def _requires_target(self) -> "PipelineStep":
        if self.template is None and self.handler is None:
            raise ValueError(f"Step '{self.name}' needs a template or a handler")
        return self


__all__ = ["InputMapping", "Pipeline", "PipelineStep"]
