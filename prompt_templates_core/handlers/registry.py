"""Thread-safe registry mapping prompt type keys to handler instances.

Handlers are registered once at startup. The four built-in types are
registered by default_handler_registry().
"""

import threading
from collections.abc import Iterator
from contextlib import contextmanager

from prompt_templates_core.exceptions import InvalidTypeError
from prompt_templates_core.templates.models import PromptType

from .base import TypeHandler
from .chat import ChatTypeHandler
from .completion import CompletionTypeHandler
from .default import DefaultTypeHandler
from .instruction import InstructionTypeHandler

BUILTIN_HANDLERS: tuple[type[TypeHandler], ...] = (
    DefaultTypeHandler,
    ChatTypeHandler,
    CompletionTypeHandler,
    InstructionTypeHandler,
)


class HandlerRegistry:
    """Maps type keys to TypeHandler instances."""

    def __init__(self) -> None:
        self._handlers: dict[str, TypeHandler] = {}
        self._lock = threading.Lock()

    def register(self, key: str, handler: TypeHandler) -> None:
        if not isinstance(handler, TypeHandler):
            raise InvalidTypeError(key, f"handler must be a TypeHandler, got {type(handler).__name__}")
        with self._lock:
            self._handlers[key] = handler

    def unregister(self, key: str) -> None:
        with self._lock:
            self._handlers.pop(key, None)

    def get(self, key: str) -> TypeHandler:
        with self._lock:
            handler = self._handlers.get(key)
        if handler is None:
            raise InvalidTypeError(key)
        return handler

    def has(self, key: str) -> bool:
        with self._lock:
            return key in self._handlers

    def keys(self) -> list[str]:
        with self._lock:
            return list(self._handlers)

    def for_prompt_type(self, prompt_type: PromptType) -> TypeHandler:
        """Handler bound by a PromptType, with the type's config merged into a copy."""
        if not prompt_type.is_active:
            raise InvalidTypeError(prompt_type.slug, "is not active")
        return self.get(prompt_type.handler).configured(prompt_type.config)

    @contextmanager
    def temporary(self, key: str, handler: TypeHandler) -> Iterator[TypeHandler]:
        """Register a handler for the duration of the block, restoring the previous one after."""
        with self._lock:
            previous = self._handlers.get(key)
        self.register(key, handler)
        try:
            yield handler
        finally:
            with self._lock:
                if previous is None:
                    self._handlers.pop(key, None)
                else:
                    self._handlers[key] = previous


def default_handler_registry() -> HandlerRegistry:
    registry = HandlerRegistry()
    for handler_cls in BUILTIN_HANDLERS:
        registry.register(handler_cls.key, handler_cls())
    return registry


__all__ = ["BUILTIN_HANDLERS", "HandlerRegistry", "default_handler_registry"]
