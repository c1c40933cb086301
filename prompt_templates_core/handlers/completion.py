"""Completion handler: joins system, content, user and component text into one string."""

from collections.abc import Sequence

from prompt_templates_core.templates.composition import ResolvedComponent
from prompt_templates_core.templates.models import PromptTemplate, TemplateVersion
from prompt_templates_core.templates.rendered import RenderContext, RenderedPrompt

from .base import TypeHandler

_COMPLETION_SECTIONS = ("system_prompt", "content", "user_prompt")


class CompletionTypeHandler(TypeHandler):
    """Config keys: `separator` (default blank line) and optional `suffix`."""

    key = "completion"
    default_config = {"separator": "\n\n"}

    def validate(self, version: TemplateVersion) -> list[str]:
        if version.content is None and version.user_prompt is None:
            return ["Completion templates require content or a user prompt"]
        return []

    def render(
        self,
        template: PromptTemplate,
        version: TemplateVersion,
        components: Sequence[ResolvedComponent],
        context: RenderContext,
    ) -> RenderedPrompt:
        sections, used = self.render_sections(version, _COMPLETION_SECTIONS, context.render_variables())
        parts = [sections[name] for name in _COMPLETION_SECTIONS]
        component_text, applied = self.component_text(components, version, context)
        parts.append(component_text)

        content = self.config.get("separator", "\n\n").join(part for part in parts if part)
        if suffix := self.config.get("suffix"):
            content += suffix

        return RenderedPrompt.from_completion(
            content,
            metadata=self.base_metadata(template, version, "completion"),
            template_id=template.id,
            template_slug=template.slug,
            version=version.version_number,
            used_variables=used,
            used_components=applied,
        )
