"""Template entities and the pure rendering engines (substitution, conditions, composition)."""

from .composition import (
    ComposedSections,
    ResolvedComponent,
    apply_component,
    compose,
    concat_components,
    parse_position,
    replace_marker,
    select_components,
)
from .conditions import Condition, evaluate_condition, evaluate_conditions
from .models import (
    SECTION_NAMES,
    ComponentAttachment,
    MappingRule,
    MappingRuleType,
    PromptComponent,
    PromptExecution,
    PromptTemplate,
    PromptType,
    TemplateVersion,
)
from .rendered import RenderContext, RenderedPrompt
from .substitution import VariableSubstitutor, default_substitutor, extract_used, substitute

__all__ = [
    "SECTION_NAMES",
    "ComponentAttachment",
    "ComposedSections",
    "Condition",
    "MappingRule",
    "MappingRuleType",
    "PromptComponent",
    "PromptExecution",
    "PromptTemplate",
    "PromptType",
    "RenderContext",
    "RenderedPrompt",
    "ResolvedComponent",
    "TemplateVersion",
    "VariableSubstitutor",
    "apply_component",
    "compose",
    "concat_components",
    "default_substitutor",
    "evaluate_condition",
    "evaluate_conditions",
    "extract_used",
    "parse_position",
    "replace_marker",
    "select_components",
    "substitute",
]
