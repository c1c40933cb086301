"""Chat handler: builds a role-tagged message list.

Messages are ordered [system?, *history, user?, assistant?]. History comes from
the optional `_messages` variable; entries without both role and content are dropped.
"""

from collections.abc import Sequence
from typing import Any

from prompt_templates_core.templates.composition import ResolvedComponent
from prompt_templates_core.templates.models import PromptTemplate, TemplateVersion
from prompt_templates_core.templates.rendered import RenderContext, RenderedPrompt

from .base import TypeHandler

HISTORY_VARIABLE = "_messages"
_CHAT_SECTIONS = ("system_prompt", "user_prompt", "assistant_prompt")


def _history(value: Any) -> list[dict[str, str]]:
    if not isinstance(value, list):
        return []
    return [
        {"role": str(message["role"]), "content": str(message["content"])}
        for message in value
        if isinstance(message, dict) and "role" in message and "content" in message
    ]


class ChatTypeHandler(TypeHandler):
    key = "chat"

    def variable_schema(self) -> dict[str, dict[str, Any]]:
        return {
            HISTORY_VARIABLE: {
                "type": "array",
                "description": "Optional conversation history to include",
                "required": False,
            },
        }

    def validate(self, version: TemplateVersion) -> list[str]:
        if version.system_prompt is None and version.user_prompt is None:
            return ["Chat templates require a system prompt or a user prompt"]
        return []

    def render(
        self,
        template: PromptTemplate,
        version: TemplateVersion,
        components: Sequence[ResolvedComponent],
        context: RenderContext,
    ) -> RenderedPrompt:
        variables = context.render_variables()
        sections, used = self.render_sections(version, _CHAT_SECTIONS, variables)
        composed = self.apply_components(sections, components, version, context)
        system, user, assistant = (composed.sections.get(name) for name in _CHAT_SECTIONS)

        messages: list[dict[str, str]] = []
        if system is not None:
            messages.append({"role": "system", "content": system})
        messages.extend(_history(variables.get(HISTORY_VARIABLE)))
        if user is not None:
            messages.append({"role": "user", "content": user})
        if assistant is not None:
            messages.append({"role": "assistant", "content": assistant})

        return RenderedPrompt(
            system_prompt=system,
            user_prompt=user,
            assistant_prompt=assistant,
            messages=messages,
            metadata={**self.base_metadata(template, version, "chat"), "message_count": len(messages)},
            template_id=template.id,
            template_slug=template.slug,
            version=version.version_number,
            used_variables=used,
            used_components=composed.applied,
        )
