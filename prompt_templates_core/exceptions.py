"""Exception hierarchy for Prompt Templates Core.

All exceptions inherit from PromptTemplatesError. Lookup errors surface to the
caller immediately; errors raised inside pipeline steps are recorded in the
PipelineContext instead of propagating (see PipelineContext.raise_for_errors).
"""

from typing import Any


class PromptTemplatesError(Exception):
    """Base exception for all Prompt Templates Core errors."""


class TemplateNotFoundError(PromptTemplatesError):
    """Raised when a template cannot be found by id or slug."""

    def __init__(self, identifier: int | str) -> None:
        self.identifier = identifier
        super().__init__(f"Template '{identifier}' not found")


class DuplicateTemplateError(PromptTemplatesError):
    """Raised when a slug is already used by a live template."""

    def __init__(self, slug: str) -> None:
        self.slug = slug
        super().__init__(f"Template with slug '{slug}' already exists")


class VersionNotFoundError(PromptTemplatesError):
    """Raised when a specific version is missing, or when a template has no versions at all."""

    def __init__(self, template: str, version: int | None = None) -> None:
        self.template = template
        self.version = version
        if version is None:
            message = f"Template '{template}' has no versions"
        else:
            message = f"Version {version} not found for template '{template}'"
        super().__init__(message)

    @property
    def no_versions(self) -> bool:
        return self.version is None


class ComponentNotFoundError(PromptTemplatesError):
    """Raised when a component cannot be found by id or key, or is not attached where expected."""

    def __init__(self, identifier: int | str, template: str | None = None) -> None:
        self.identifier = identifier
        self.template = template
        if template is None:
            message = f"Component '{identifier}' not found"
        else:
            message = f"Component '{identifier}' is not attached to template '{template}'"
        super().__init__(message)


class InvalidTypeError(PromptTemplatesError):
    """Raised when a prompt type is not registered or its handler binding is malformed."""

    def __init__(self, type_key: str, reason: str = "is not registered") -> None:
        self.type_key = type_key
        super().__init__(f"Prompt type '{type_key}' {reason}")


class RenderingFailedError(PromptTemplatesError):
    """Raised when rendering a template fails. The underlying error is chained as __cause__."""

    def __init__(self, template: str, message: str) -> None:
        self.template = template
        super().__init__(f"Failed to render template '{template}': {message}")


class InvalidContextError(PromptTemplatesError):
    """Raised when a render context fails handler validation."""

    def __init__(self, template: str, errors: list[str]) -> None:
        self.template = template
        self.errors = list(errors)
        super().__init__(f"Invalid context for template '{template}': {'; '.join(self.errors)}")


class MappingFailedError(PromptTemplatesError):
    """Raised when content cannot be migrated between two template versions."""

    def __init__(self, from_version: int, to_version: int, reason: str) -> None:
        self.from_version = from_version
        self.to_version = to_version
        self.reason = reason
        super().__init__(f"Failed to map from version {from_version} to {to_version}: {reason}")


class PipelineError(PromptTemplatesError):
    """Base exception for pipeline execution errors."""


class PipelineNotFoundError(PipelineError):
    """Raised when a pipeline cannot be found by id or slug."""

    def __init__(self, identifier: int | str) -> None:
        self.identifier = identifier
        super().__init__(f"Pipeline '{identifier}' not found")


class PipelineDepthExceededError(PipelineError):
    """Raised on pipeline entry when nested executions exceed the configured depth."""

    def __init__(self, max_depth: int) -> None:
        self.max_depth = max_depth
        super().__init__(f"Maximum pipeline depth of {max_depth} exceeded")


class PipelineStepFailedError(PipelineError):
    """Raised for a step that exhausted its retries, when the caller asks for exceptions."""

    def __init__(self, step: str, reason: str, context: dict[str, Any] | None = None) -> None:
        self.step = step
        self.reason = reason
        self.context = context or {}
        super().__init__(f"Pipeline step '{step}' failed: {reason}")


class PipelineInputInvalidError(PipelineError):
    """Raised on pipeline entry when the input fails the pipeline's input schema."""

    def __init__(self, errors: list[str]) -> None:
        self.errors = list(errors)
        super().__init__(f"Invalid pipeline input: {'; '.join(self.errors)}")


__all__ = [
    "ComponentNotFoundError",
    "DuplicateTemplateError",
    "InvalidContextError",
    "InvalidTypeError",
    "MappingFailedError",
    "PipelineDepthExceededError",
    "PipelineError",
    "PipelineInputInvalidError",
    "PipelineNotFoundError",
    "PipelineStepFailedError",
    "PromptTemplatesError",
    "RenderingFailedError",
    "TemplateNotFoundError",
    "VersionNotFoundError",
]
