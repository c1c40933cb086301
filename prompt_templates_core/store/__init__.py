"""Template storage backends."""

from .memory import MemoryTemplateStore
from .protocol import TemplateStore, get_template_store, set_template_store

__all__ = ["MemoryTemplateStore", "TemplateStore", "get_template_store", "set_template_store"]
