"""Default handler: renders every section independently and composes components per section."""

from collections.abc import Sequence

from prompt_templates_core.templates.composition import ResolvedComponent
from prompt_templates_core.templates.models import SECTION_NAMES, PromptTemplate, TemplateVersion
from prompt_templates_core.templates.rendered import RenderContext, RenderedPrompt

from .base import TypeHandler


class DefaultTypeHandler(TypeHandler):
    key = "default"

    def render(
        self,
        template: PromptTemplate,
        version: TemplateVersion,
        components: Sequence[ResolvedComponent],
        context: RenderContext,
    ) -> RenderedPrompt:
        sections, used = self.render_sections(version, SECTION_NAMES, context.render_variables())
        composed = self.apply_components(sections, components, version, context)
        return RenderedPrompt(
            **composed.sections,
            metadata=self.base_metadata(template, version, "default"),
            template_id=template.id,
            template_slug=template.slug,
            version=version.version_number,
            used_variables=used,
            used_components=composed.applied,
        )
