"""Render and lookup cache.

PromptManager memoizes slug lookups and rendered prompts through a
TemplateCache. Keys are namespaced by a prefix so a whole family can be
dropped with `clear(prefix)`.
"""

import threading
import time
from typing import Any, Protocol, runtime_checkable

from prompt_templates_core.utils import stable_hash


@runtime_checkable
class TemplateCache(Protocol):
    """Protocol for cache backends."""

    def get(self, key: str) -> Any | None: ...

    def set(self, key: str, value: Any, ttl: float | None = None) -> None: ...

    def delete(self, key: str) -> None: ...

    def clear(self, prefix: str | None = None) -> None:
        """Drop every key starting with prefix, or everything when prefix is None."""
        ...


class MemoryTemplateCache:
    """Process-local cache with per-entry expiry on the monotonic clock."""

    def __init__(self, default_ttl: float | None = None) -> None:
        self.default_ttl = default_ttl
        self._entries: dict[str, tuple[Any, float | None]] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Any | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            value, expires_at = entry
            if expires_at is not None and time.monotonic() >= expires_at:
                del self._entries[key]
                return None
            return value

    def set(self, key: str, value: Any, ttl: float | None = None) -> None:
        ttl = self.default_ttl if ttl is None else ttl
        expires_at = time.monotonic() + ttl if ttl is not None and ttl > 0 else None
        with self._lock:
            self._entries[key] = (value, expires_at)

    def delete(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def clear(self, prefix: str | None = None) -> None:
        with self._lock:
            if prefix is None:
                self._entries.clear()
                return
            for key in [k for k in self._entries if k.startswith(prefix)]:
                del self._entries[key]

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


def template_key(prefix: str, slug: str) -> str:
    return f"{prefix}.template.{slug}"


def render_prefix(prefix: str, template_id: int) -> str:
    return f"{prefix}.render.{template_id}."


def render_key(prefix: str, template_id: int, version: int | None, variables: Any, options: Any) -> str:
    """Key of one rendered prompt. Variables and options are hashed as canonical JSON."""
    version_part = "current" if version is None else str(version)
    return f"{render_prefix(prefix, template_id)}{version_part}.{stable_hash(variables)}.{stable_hash(options)}"


__all__ = ["MemoryTemplateCache", "TemplateCache", "render_key", "render_prefix", "template_key"]
