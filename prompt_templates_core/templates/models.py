"""Stored entities: templates, versions, components, attachments, prompt types, executions.

Entities reference each other by integer id only. A template's current version is
a nullable id resolved through the store, never an embedded object.
"""

from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from .conditions import Condition

SECTION_NAMES = ("system_prompt", "user_prompt", "assistant_prompt", "content")


def utcnow() -> datetime:
    return datetime.now(UTC)


class MappingRuleType(StrEnum):
    """Kind of declarative mapping rule."""

    RENAME = "rename"
    REMOVE = "remove"
    TRANSFORM = "transform"
    DEFAULT = "default"


class MappingRule(BaseModel):
    """Declarative content transformation applied when migrating to another version.

    `callback` names an entry in the transform registry; callables are accepted too
    but are not serializable.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    type: MappingRuleType
    from_: str | None = Field(default=None, alias="from")
    to: str | None = None
    value: Any = None
    callback: Any = None


class PromptTemplate(BaseModel):
    """A named prompt definition. Content lives in its versions."""

    model_config = ConfigDict(frozen=True)

    id: int = 0
    slug: str
    name: str
    description: str = ""
    type: str = "default"
    metadata: dict[str, Any] = Field(default_factory=dict)
    is_active: bool = True
    current_version_id: int | None = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    deleted_at: datetime | None = None

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None


class TemplateVersion(BaseModel):
    """Immutable content snapshot of a template.

    Only the publish, stability and deprecation flags change after creation.
    """

    model_config = ConfigDict(frozen=True)

    id: int = 0
    template_id: int
    version_number: int
    system_prompt: str | None = None
    user_prompt: str | None = None
    assistant_prompt: str | None = None
    content: str | None = None
    variables: dict[str, dict[str, Any]] = Field(default_factory=dict)
    component_config: dict[str, Any] = Field(default_factory=dict)
    mapping_rules: list[MappingRule] = Field(default_factory=list)
    mapper: str | None = None
    is_published: bool = False
    published_at: datetime | None = None
    is_stable: bool = False
    is_deprecated: bool = False
    deprecated_at: datetime | None = None
    created_by: str | None = None
    change_summary: str | None = None
    created_at: datetime = Field(default_factory=utcnow)

    def sections(self) -> dict[str, str | None]:
        return {name: getattr(self, name) for name in SECTION_NAMES}

    def content_dict(self) -> dict[str, Any]:
        """Non-empty sections, the shape mapping rules operate on."""
        return {name: value for name, value in self.sections().items() if value is not None}


class PromptComponent(BaseModel):
    """Reusable text fragment. `template_id` is set for template-scoped components."""

    model_config = ConfigDict(frozen=True)

    id: int = 0
    key: str
    name: str = ""
    content: str
    description: str = ""
    position: str = "append"
    is_default_enabled: bool = True
    conditions: list[Condition] = Field(default_factory=list)
    variables: dict[str, Any] = Field(default_factory=dict)
    template_id: int | None = None
    is_active: bool = True
    created_at: datetime = Field(default_factory=utcnow)
    deleted_at: datetime | None = None


class ComponentAttachment(BaseModel):
    """Join record between a template and a component.

    A record with `user_id` set overrides the shared record for that user only.
    """

    model_config = ConfigDict(frozen=True)

    id: int = 0
    template_id: int
    component_id: int
    order: int = 0
    is_enabled: bool = True
    target: str | None = None
    position: str | None = None
    user_id: str | None = None
    conditions: list[Condition] = Field(default_factory=list)
    variable_overrides: dict[str, Any] = Field(default_factory=dict)
    config: dict[str, Any] = Field(default_factory=dict)


class PromptType(BaseModel):
    """Binds a type slug to a registered handler key plus optional schema and config."""

    model_config = ConfigDict(frozen=True)

    id: int = 0
    slug: str
    name: str = ""
    handler: str
    variable_schema: dict[str, dict[str, Any]] = Field(default_factory=dict)
    config: dict[str, Any] = Field(default_factory=dict)
    is_system: bool = False
    is_active: bool = True


class PromptExecution(BaseModel):
    """Append-only audit record of one render."""

    model_config = ConfigDict(frozen=True)

    id: int = 0
    template_id: int
    version_id: int
    input_variables: dict[str, Any] = Field(default_factory=dict)
    enabled_components: list[str] = Field(default_factory=list)
    rendered_output: dict[str, Any] = Field(default_factory=dict)
    pipeline_chain: list[str] | None = None
    execution_time_ms: float = 0.0
    user_id: str | None = None
    created_at: datetime = Field(default_factory=utcnow)


__all__ = [
    "SECTION_NAMES",
    "ComponentAttachment",
    "MappingRule",
    "MappingRuleType",
    "PromptComponent",
    "PromptExecution",
    "PromptTemplate",
    "PromptType",
    "TemplateVersion",
    "utcnow",
]
