"""Render inputs and outputs: RenderContext and RenderedPrompt."""

from collections.abc import Iterable
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class RenderContext(BaseModel):
    """Everything a render needs besides the template itself.

    `metadata` may carry `version_mapping` and `version_strategy` hints for
    version resolution. `previous_result` is exposed to the template as the
    `previous_result` variable.
    """

    model_config = ConfigDict(frozen=True)

    variables: dict[str, Any] = Field(default_factory=dict)
    enabled_components: tuple[str, ...] = ()
    disabled_components: tuple[str, ...] = ()
    version: int | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    user_id: str | None = None
    with_components: bool = True
    strict: bool = False
    previous_result: str | None = None

    @classmethod
    def from_options(cls, variables: dict[str, Any] | None = None, options: dict[str, Any] | None = None) -> "RenderContext":
        """Build a context from a variables dict and a loose options dict.

        Unknown option keys are kept in metadata.
        """
        options = dict(options or {})
        known = {name: options.pop(name) for name in list(options) if name in cls.model_fields and name not in ("metadata", "variables")}
        metadata = {**options.pop("metadata", {}), **options}
        return cls(variables=dict(variables or {}), metadata=metadata, **known)

    def render_variables(self) -> dict[str, Any]:
        if self.previous_result is None:
            return dict(self.variables)
        return {"previous_result": self.previous_result, **self.variables}

    def with_variables(self, variables: dict[str, Any]) -> "RenderContext":
        return self.model_copy(update={"variables": {**self.variables, **variables}})

    def with_version(self, version: int | None) -> "RenderContext":
        return self.model_copy(update={"version": version})

    def with_metadata(self, metadata: dict[str, Any]) -> "RenderContext":
        return self.model_copy(update={"metadata": {**self.metadata, **metadata}})

    def enable_components(self, keys: Iterable[str]) -> "RenderContext":
        return self.model_copy(update={"enabled_components": (*self.enabled_components, *keys)})

    def disable_components(self, keys: Iterable[str]) -> "RenderContext":
        return self.model_copy(update={"disabled_components": (*self.disabled_components, *keys)})


class RenderedPrompt(BaseModel):
    """Structured output of a type handler."""

    model_config = ConfigDict(frozen=True)

    system_prompt: str | None = None
    user_prompt: str | None = None
    assistant_prompt: str | None = None
    content: str | None = None
    messages: list[dict[str, str]] = Field(default_factory=list)
    metadata: dict[str, Any] = Field(default_factory=dict)
    template_id: int | None = None
    template_slug: str | None = None
    version: int | None = None
    used_variables: dict[str, Any] = Field(default_factory=dict)
    used_components: tuple[str, ...] = ()

    @classmethod
    def from_chat(cls, messages: list[dict[str, str]], **kwargs: Any) -> "RenderedPrompt":
        by_role: dict[str, str] = {}
        for message in messages:
            by_role.setdefault(message.get("role", ""), message.get("content", ""))
        return cls(
            system_prompt=by_role.get("system"),
            user_prompt=by_role.get("user"),
            assistant_prompt=by_role.get("assistant"),
            messages=list(messages),
            **kwargs,
        )

    @classmethod
    def from_completion(cls, content: str, **kwargs: Any) -> "RenderedPrompt":
        return cls(content=content, **kwargs)

    def to_messages(self) -> list[dict[str, str]]:
        """Messages if the handler built them, otherwise one message per non-empty role."""
        if self.messages:
            return [dict(message) for message in self.messages]
        messages = []
        for role, text in (("system", self.system_prompt), ("user", self.user_prompt), ("assistant", self.assistant_prompt)):
            if text:
                messages.append({"role": role, "content": text})
        return messages

    def to_string(self) -> str:
        """Content if set, otherwise the non-empty role prompts joined by a blank line."""
        if self.content is not None:
            return self.content
        return "\n\n".join(part for part in (self.system_prompt, self.user_prompt, self.assistant_prompt) if part)

    def __str__(self) -> str:
        return self.to_string()

    def get_field(self, name: str) -> Any:
        """Result field by name, falling back to a metadata key."""
        if name in ("string", "to_string"):
            return self.to_string()
        if name in ("system_prompt", "user_prompt", "assistant_prompt", "content", "messages", "metadata"):
            return getattr(self, name)
        return self.metadata.get(name)

    def merge(self, other: "RenderedPrompt") -> "RenderedPrompt":
        """Fields of `other` win when set; messages, metadata and used variables are combined."""
        return self.model_copy(
            update={
                "system_prompt": other.system_prompt if other.system_prompt is not None else self.system_prompt,
                "user_prompt": other.user_prompt if other.user_prompt is not None else self.user_prompt,
                "assistant_prompt": other.assistant_prompt if other.assistant_prompt is not None else self.assistant_prompt,
                "content": other.content if other.content is not None else self.content,
                "messages": [*self.messages, *other.messages],
                "metadata": {**self.metadata, **other.metadata},
                "used_variables": {**self.used_variables, **other.used_variables},
                "used_components": tuple(dict.fromkeys((*self.used_components, *other.used_components))),
            }
        )

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json")


__all__ = ["RenderContext", "RenderedPrompt"]
