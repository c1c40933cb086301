"""Base class for prompt type handlers.

A handler turns a resolved template version, its attached components and a
RenderContext into a RenderedPrompt. Handlers are synchronous and hold no
per-render state; configuration is merged with set_config().
"""

from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping, Sequence
from typing import Any, ClassVar, Self

from prompt_templates_core.exceptions import InvalidContextError, PromptTemplatesError, RenderingFailedError
from prompt_templates_core.logging import get_pipeline_logger
from prompt_templates_core.templates.composition import DEFAULT_SEPARATOR, ComposedSections, ResolvedComponent, compose, concat_components
from prompt_templates_core.templates.models import PromptTemplate, TemplateVersion
from prompt_templates_core.templates.rendered import RenderContext, RenderedPrompt
from prompt_templates_core.templates.substitution import VariableSubstitutor, default_substitutor

logger = get_pipeline_logger(__name__)


class TypeHandler(ABC):
    """Renders one prompt type.

    Subclasses implement render() and may override validate() and
    variable_schema(). Calling the handler runs validation first and wraps
    unexpected failures in RenderingFailedError.
    """

    key: ClassVar[str]
    default_config: ClassVar[dict[str, Any]] = {}

    def __init__(self, config: Mapping[str, Any] | None = None, *, substitutor: VariableSubstitutor | None = None) -> None:
        self.config: dict[str, Any] = {**self.default_config, **(config or {})}
        self.substitutor = substitutor or default_substitutor()

    def set_config(self, config: Mapping[str, Any]) -> Self:
        """Merge `config` into the current configuration."""
        self.config.update(config)
        return self

    def get_config(self) -> dict[str, Any]:
        return dict(self.config)

    def configured(self, config: Mapping[str, Any] | None) -> Self:
        """Copy of this handler with `config` merged in. The original is left untouched."""
        clone = type(self)(self.config, substitutor=self.substitutor)
        if config:
            clone.set_config(config)
        return clone

    def variable_schema(self) -> dict[str, dict[str, Any]]:
        """Variables this prompt type understands on top of the template's own."""
        return {}

    def validate(self, version: TemplateVersion) -> list[str]:
        """Structural problems of the version for this type. Empty when valid."""
        return []

    @abstractmethod
    def render(
        self,
        template: PromptTemplate,
        version: TemplateVersion,
        components: Sequence[ResolvedComponent],
        context: RenderContext,
    ) -> RenderedPrompt: ...

    def __call__(
        self,
        template: PromptTemplate,
        version: TemplateVersion,
        components: Sequence[ResolvedComponent] = (),
        context: RenderContext | None = None,
    ) -> RenderedPrompt:
        context = context or RenderContext()
        errors = self.validate(version)
        if context.strict:
            errors.extend(self.missing_required(version, context.render_variables()))
        if errors:
            raise InvalidContextError(template.slug, errors)

        try:
            rendered = self.render(template, version, components, context)
        except PromptTemplatesError:
            raise
        except Exception as e:
            raise RenderingFailedError(template.slug, str(e)) from e

        logger.debug("Rendered %s v%s with %s handler", template.slug, version.version_number, self.key)
        return rendered

    # -- helpers for subclasses -------------------------------------------

    def expected_variables(self, version: TemplateVersion) -> dict[str, dict[str, Any]]:
        declared = {**self.variable_schema(), **version.variables}
        return self.substitutor.expected_variables(list(version.sections().values()), declared)

    @staticmethod
    def missing_required(version: TemplateVersion, variables: Mapping[str, Any]) -> list[str]:
        return [
            f"Missing required variable '{name}'"
            for name, definition in version.variables.items()
            if definition.get("required") and name not in variables and "default" not in definition
        ]

    def render_sections(
        self,
        version: TemplateVersion,
        names: Iterable[str],
        variables: Mapping[str, Any],
    ) -> tuple[dict[str, str | None], dict[str, Any]]:
        """Substitute the named sections. Returns (sections, used variables)."""
        expected = self.expected_variables(version)
        values = self.substitutor.with_defaults(variables, expected)
        sections: dict[str, str | None] = {}
        used: dict[str, Any] = {}
        for name in names:
            original = getattr(version, name)
            if not original:
                sections[name] = None
                continue
            sections[name] = self.substitutor.substitute(original, values)
            used.update(self.substitutor.extract_used(original, values))
        return sections, used

    def component_variables(self, version: TemplateVersion, context: RenderContext) -> dict[str, Any]:
        return self.substitutor.with_defaults(context.render_variables(), self.expected_variables(version))

    def apply_components(
        self,
        sections: Mapping[str, str | None],
        components: Sequence[ResolvedComponent],
        version: TemplateVersion,
        context: RenderContext,
    ) -> ComposedSections:
        if not context.with_components:
            return ComposedSections(sections=dict(sections), applied=())
        return compose(
            sections,
            components,
            self.component_variables(version, context),
            substitutor=self.substitutor,
            enabled=context.enabled_components,
            disabled=context.disabled_components,
            separator=self.config.get("component_separator", DEFAULT_SEPARATOR),
        )

    def component_text(
        self,
        components: Sequence[ResolvedComponent],
        version: TemplateVersion,
        context: RenderContext,
    ) -> tuple[str | None, tuple[str, ...]]:
        """Selected components rendered and joined, for formats that build one string."""
        if not context.with_components:
            return None, ()
        composed = concat_components(
            components,
            self.component_variables(version, context),
            substitutor=self.substitutor,
            enabled=context.enabled_components,
            disabled=context.disabled_components,
            separator=self.config.get("component_separator", DEFAULT_SEPARATOR),
        )
        return composed.sections["content"], composed.applied

    def base_metadata(self, template: PromptTemplate, version: TemplateVersion, fmt: str) -> dict[str, Any]:
        return {**template.metadata, "format": fmt, "template_id": template.id, "version": version.version_number}
