"""Instruction handler: Alpaca-style `### Instruction / ### Input / ### Response` blocks.

The system prompt is the instruction and the user prompt the input. A pre-filled
assistant prompt is appended directly to the response prefix.
"""

from collections.abc import Sequence
from typing import Any

from prompt_templates_core.templates.composition import ResolvedComponent
from prompt_templates_core.templates.models import PromptTemplate, TemplateVersion
from prompt_templates_core.templates.rendered import RenderContext, RenderedPrompt

from .base import TypeHandler

_INSTRUCTION_SECTIONS = ("system_prompt", "user_prompt", "assistant_prompt")


class InstructionTypeHandler(TypeHandler):
    key = "instruction"
    default_config = {
        "instruction_prefix": "### Instruction:\n",
        "input_prefix": "### Input:\n",
        "response_prefix": "### Response:\n",
        "include_input_section": True,
        "separator": "\n\n",
    }

    def variable_schema(self) -> dict[str, dict[str, Any]]:
        return {
            "instruction": {"type": "string", "description": "The instruction/task to perform", "required": False},
            "input": {"type": "string", "description": "The input data to process", "required": False},
        }

    def validate(self, version: TemplateVersion) -> list[str]:
        if version.system_prompt is None:
            return ["Instruction templates require a system prompt"]
        return []

    def render(
        self,
        template: PromptTemplate,
        version: TemplateVersion,
        components: Sequence[ResolvedComponent],
        context: RenderContext,
    ) -> RenderedPrompt:
        sections, used = self.render_sections(version, _INSTRUCTION_SECTIONS, context.render_variables())
        instruction, user_input, response = (sections[name] for name in _INSTRUCTION_SECTIONS)

        parts: list[str | None] = []
        if instruction:
            parts.append(self.config["instruction_prefix"] + instruction)
        if user_input:
            prefix = self.config["input_prefix"] if self.config.get("include_input_section", True) else ""
            parts.append(prefix + user_input)
        component_text, applied = self.component_text(components, version, context)
        parts.append(component_text)
        parts.append(self.config["response_prefix"] + (response or ""))

        return RenderedPrompt(
            content=self.config.get("separator", "\n\n").join(part for part in parts if part),
            system_prompt=instruction,
            user_prompt=user_input,
            assistant_prompt=response,
            metadata=self.base_metadata(template, version, "instruction"),
            template_id=template.id,
            template_slug=template.slug,
            version=version.version_number,
            used_variables=used,
            used_components=applied,
        )
