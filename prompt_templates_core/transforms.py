"""Named value transforms used by mapping rules and pipeline input mappings.

Rules and step mappings are stored as data, so they reference transforms by name.
Callables are accepted wherever a name is.
"""

import json
import threading
from collections.abc import Callable
from typing import Any

Transform = Callable[[Any], Any]


def _to_json(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False, default=str)


def _to_string(value: Any) -> str:
    return "" if value is None else str(value)


class TransformRegistry:
    """Thread-safe name → callable mapping, seeded with the built-in transforms."""

    def __init__(self, *, builtins: bool = True) -> None:
        self._lock = threading.Lock()
        self._transforms: dict[str, Transform] = {}
        if builtins:
            self._transforms.update(
                {
                    "upper": lambda v: str(v).upper(),
                    "lower": lambda v: str(v).lower(),
                    "strip": lambda v: str(v).strip(),
                    "json": _to_json,
                    "string": _to_string,
                    "int": int,
                    "float": float,
                    "bool": bool,
                }
            )

    def register(self, name: str, transform: Transform) -> None:
        if not callable(transform):
            raise TypeError(f"Transform '{name}' must be callable, got {type(transform).__name__}")
        with self._lock:
            self._transforms[name] = transform

    def get(self, name: str) -> Transform:
        with self._lock:
            transform = self._transforms.get(name)
        if transform is None:
            raise KeyError(f"Unknown transform '{name}'")
        return transform

    def has(self, name: str) -> bool:
        with self._lock:
            return name in self._transforms

    def resolve(self, transform: str | Transform) -> Transform:
        return transform if callable(transform) else self.get(transform)

    def apply(self, transform: str | Transform, value: Any) -> Any:
        return self.resolve(transform)(value)


default_transforms = TransformRegistry()

__all__ = ["Transform", "TransformRegistry", "default_transforms"]
