"""Prompt type handlers and their registry."""

from .base import TypeHandler
from .chat import ChatTypeHandler
from .completion import CompletionTypeHandler
from .default import DefaultTypeHandler
from .instruction import InstructionTypeHandler
from .registry import BUILTIN_HANDLERS, HandlerRegistry, default_handler_registry

__all__ = [
    "BUILTIN_HANDLERS",
    "ChatTypeHandler",
    "CompletionTypeHandler",
    "DefaultTypeHandler",
    "HandlerRegistry",
    "InstructionTypeHandler",
    "TypeHandler",
    "default_handler_registry",
]
