"""Component composition: splices enabled components into prompt sections.

Components are applied in ascending `order`. Each one is skipped when it is in
the disabled set, included when it is in the enabled set, and otherwise included
only when it is enabled by default and its conditions pass.
"""

import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from .conditions import Condition, evaluate_conditions
from .models import SECTION_NAMES, ComponentAttachment, PromptComponent
from .substitution import VariableSubstitutor, default_substitutor

DEFAULT_SEPARATOR = "\n\n"
DEFAULT_TARGET = "user_prompt"


@dataclass(frozen=True, slots=True)
class ResolvedComponent:
    """A component merged with the attachment that binds it to a template."""

    key: str
    content: str
    order: int = 0
    position: str = "append"
    target: str = DEFAULT_TARGET
    is_default_enabled: bool = True
    conditions: tuple[Condition, ...] = ()
    variable_overrides: Mapping[str, Any] = field(default_factory=dict)
    component_id: int | None = None

    @classmethod
    def from_attachment(cls, component: PromptComponent, attachment: ComponentAttachment | None = None) -> "ResolvedComponent":
        if attachment is None:
            return cls(
                key=component.key,
                content=component.content,
                position=component.position,
                is_default_enabled=component.is_default_enabled,
                conditions=tuple(component.conditions),
                variable_overrides=dict(component.variables),
                component_id=component.id,
            )
        return cls(
            key=component.key,
            content=component.content,
            order=attachment.order,
            position=attachment.position or component.position,
            target=attachment.target or DEFAULT_TARGET,
            is_default_enabled=component.is_default_enabled and attachment.is_enabled,
            conditions=(*component.conditions, *attachment.conditions),
            variable_overrides={**component.variables, **attachment.variable_overrides},
            component_id=component.id,
        )


@dataclass(frozen=True, slots=True)
class ComposedSections:
    sections: dict[str, str | None]
    applied: tuple[str, ...]


def parse_position(position: str | None) -> tuple[str, str | None]:
    """Split `replace:<marker>` into ("replace", marker); other values have no marker."""
    if not position:
        return "append", None
    kind, sep, marker = position.partition(":")
    if sep and kind == "replace":
        return "replace", marker.strip() or None
    return kind, None


def marker_spellings(marker: str) -> list[str]:
    return [
        "{" + marker + "}",
        "{ " + marker + " }",
        "{{" + marker + "}}",
        "{{{" + marker + "}}}",
        "<!--" + marker + "-->",
        "<!-- " + marker + " -->",
    ]


def _spelling_pattern(spelling: str) -> re.Pattern[str]:
    # Brace spellings only match whole, so `{m}` never matches inside `{{m}}`
    pattern = re.escape(spelling)
    if spelling.startswith("{"):
        pattern = r"(?<!\{)" + pattern + r"(?!\})"
    return re.compile(pattern)


def replace_marker(content: str, marker: str, replacement: str) -> str:
    """Replace the first marker spelling found in content; no spelling found leaves it unchanged."""
    for spelling in marker_spellings(marker):
        pattern = _spelling_pattern(spelling)
        if pattern.search(content):
            return pattern.sub(lambda _: replacement, content)
    return content


def apply_component(current: str | None, text: str, position: str | None, separator: str = DEFAULT_SEPARATOR) -> str:
    """Place `text` into `current` according to `position`."""
    if current is None:
        return text
    kind, marker = parse_position(position)
    if kind == "replace" and marker is not None:
        return replace_marker(current, marker, text)
    if kind == "prepend":
        return f"{text}{separator}{current}"
    if kind == "replace":
        return text
    return f"{current}{separator}{text}"


def select_components(
    components: Iterable[ResolvedComponent],
    variables: Mapping[str, Any],
    enabled: Iterable[str] = (),
    disabled: Iterable[str] = (),
) -> list[ResolvedComponent]:
    """Components to apply, in ascending order (ties keep input order)."""
    enabled_keys = set(enabled)
    disabled_keys = set(disabled)
    selected = []
    for component in sorted(components, key=lambda c: c.order):
        if component.key in disabled_keys:
            continue
        if component.key in enabled_keys:
            selected.append(component)
            continue
        if component.is_default_enabled and evaluate_conditions(component.conditions, variables):
            selected.append(component)
    return selected


def render_component(component: ResolvedComponent, variables: Mapping[str, Any], substitutor: VariableSubstitutor | None = None) -> str:
    substitutor = substitutor or default_substitutor()
    return substitutor.substitute(component.content, {**variables, **component.variable_overrides})


def compose(
    sections: Mapping[str, str | None],
    components: Iterable[ResolvedComponent],
    variables: Mapping[str, Any],
    *,
    substitutor: VariableSubstitutor | None = None,
    enabled: Iterable[str] = (),
    disabled: Iterable[str] = (),
    separator: str = DEFAULT_SEPARATOR,
) -> ComposedSections:
    """Apply selected components to their target sections.

    A section that was None becomes the first applied component verbatim.
    Unknown targets fall back to the user prompt.
    """
    result: dict[str, str | None] = {name: sections.get(name) for name in SECTION_NAMES}
    applied: list[str] = []
    for component in select_components(components, variables, enabled, disabled):
        target = component.target if component.target in SECTION_NAMES else DEFAULT_TARGET
        text = render_component(component, variables, substitutor)
        result[target] = apply_component(result[target], text, component.position, separator)
        applied.append(component.key)
    return ComposedSections(sections=result, applied=tuple(applied))


def concat_components(
    components: Iterable[ResolvedComponent],
    variables: Mapping[str, Any],
    *,
    substitutor: VariableSubstitutor | None = None,
    enabled: Iterable[str] = (),
    disabled: Iterable[str] = (),
    separator: str = DEFAULT_SEPARATOR,
) -> ComposedSections:
    """Rendered text of the selected components joined by `separator`, under the `content` key."""
    selected = select_components(components, variables, enabled, disabled)
    texts = [render_component(component, variables, substitutor) for component in selected]
    joined = separator.join(text for text in texts if text) or None
    return ComposedSections(sections={"content": joined}, applied=tuple(c.key for c in selected))


__all__ = [
    "DEFAULT_SEPARATOR",
    "ComposedSections",
    "ResolvedComponent",
    "apply_component",
    "compose",
    "concat_components",
    "marker_spellings",
    "parse_position",
    "replace_marker",
    "select_components",
]
