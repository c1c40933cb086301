"""Variable pipes: small RenderContext -> RenderContext steps run before rendering.

Pipes compose left to right with `apply_pipes`. Each factory returns a plain
callable, so any function with the same signature is a pipe too.
"""

import fnmatch
import html
from collections.abc import Callable, Iterable, Mapping
from datetime import UTC, datetime
from typing import Any

from prompt_templates_core.exceptions import InvalidContextError
from prompt_templates_core.utils import TYPE_CHECKS

from .rendered import RenderContext

Pipe = Callable[[RenderContext], RenderContext]
VariableTransformer = Callable[[Any], Any]

TRUNCATION_SUFFIX = "..."


def _replace_variables(context: RenderContext, variables: dict[str, Any]) -> RenderContext:
    return context.model_copy(update={"variables": variables})


def sanitize_variables(*, trim: bool = True, escape_html: bool = False, max_length: int = 0) -> Pipe:
    """Clean every string value, recursing into dicts and lists.

    Strings longer than max_length (when positive) are cut and suffixed with "...".
    """

    def clean(value: Any) -> Any:
        if isinstance(value, Mapping):
            return {key: clean(item) for key, item in value.items()}
        if isinstance(value, list):
            return [clean(item) for item in value]
        if not isinstance(value, str):
            return value
        if trim:
            value = value.strip()
        if escape_html:
            value = html.escape(value, quote=True)
        if max_length > 0 and len(value) > max_length:
            value = value[:max_length] + TRUNCATION_SUFFIX
        return value

    def pipe(context: RenderContext) -> RenderContext:
        return _replace_variables(context, clean(context.variables))

    return pipe


def transform_variables(transformers: Mapping[str, VariableTransformer]) -> Pipe:
    """Apply a function per variable. Keys are exact names or fnmatch globs (`*`, `user_*`)."""

    def pipe(context: RenderContext) -> RenderContext:
        variables = dict(context.variables)
        for pattern, transformer in transformers.items():
            if "*" in pattern or "?" in pattern:
                for name in [n for n in variables if fnmatch.fnmatchcase(n, pattern)]:
                    variables[name] = transformer(variables[name])
            elif pattern in variables:
                variables[pattern] = transformer(variables[pattern])
        return _replace_variables(context, variables)

    return pipe


def check_variables(variables: Mapping[str, Any], required: Iterable[str] = (), types: Mapping[str, str] | None = None) -> list[str]:
    errors: list[str] = []
    for name in required:
        if name not in variables:
            errors.append(f"Missing required variable: {name}")
        elif variables[name] is None or variables[name] == "":
            errors.append(f"Required variable is empty: {name}")
    for name, type_name in (types or {}).items():
        if name not in variables:
            continue
        check = TYPE_CHECKS.get(type_name)
        if check is None:
            errors.append(f"Variable '{name}' has unknown type '{type_name}'")
        elif not check(variables[name]):
            errors.append(f"Variable '{name}' should be {type_name}, got {type(variables[name]).__name__}")
    return errors


def validate_variables(required: Iterable[str] = (), types: Mapping[str, str] | None = None, *, strict: bool = False) -> Pipe:
    """Check presence and types of variables.

    Strict mode raises InvalidContextError; otherwise the errors are recorded in
    `metadata["validation_errors"]` and rendering proceeds.
    """
    required = tuple(required)

    def pipe(context: RenderContext) -> RenderContext:
        errors = check_variables(context.variables, required, types)
        if not errors:
            return context
        if strict:
            raise InvalidContextError("pipeline", errors)
        return context.with_metadata({"validation_errors": errors})

    return pipe


def when(predicate: Callable[[RenderContext], bool], then: Pipe, otherwise: Pipe | None = None) -> Pipe:
    def pipe(context: RenderContext) -> RenderContext:
        if predicate(context):
            return then(context)
        return otherwise(context) if otherwise is not None else context

    return pipe


def inject_metadata(metadata: Mapping[str, Any] | None = None, *, timestamp: bool = False) -> Pipe:
    def pipe(context: RenderContext) -> RenderContext:
        extra = dict(metadata or {})
        if timestamp:
            extra["processed_at"] = datetime.now(UTC).isoformat()
        return context.with_metadata(extra)

    return pipe


def apply_pipes(context: RenderContext, pipes: Iterable[Pipe]) -> RenderContext:
    for pipe in pipes:
        context = pipe(context)
    return context


__all__ = [
    "Pipe",
    "apply_pipes",
    "check_variables",
    "inject_metadata",
    "sanitize_variables",
    "transform_variables",
    "validate_variables",
    "when",
]
