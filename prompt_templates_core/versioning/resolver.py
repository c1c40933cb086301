"""Chooses the version strategy for a render.

Priority: explicit version, then mapping rules, then a registered
`metadata["version_strategy"]` hint, then the default strategy.
"""

import threading
from collections.abc import Sequence

from prompt_templates_core.logging import get_pipeline_logger
from prompt_templates_core.templates.models import PromptTemplate, TemplateVersion
from prompt_templates_core.templates.rendered import RenderContext

from .strategies import (
    LatestVersionStrategy,
    MappedVersionStrategy,
    PublishedVersionStrategy,
    SpecificVersionStrategy,
    VersionStrategy,
)

logger = get_pipeline_logger(__name__)


class VersionResolver:
    """Registry of named strategies plus the selection policy."""

    def __init__(self, default_strategy: str = "latest") -> None:
        self._lock = threading.Lock()
        self._strategies: dict[str, VersionStrategy] = {
            "specific": SpecificVersionStrategy(),
            "mapped": MappedVersionStrategy(),
            "published": PublishedVersionStrategy(),
            "latest": LatestVersionStrategy(),
        }
        self._default = "latest"
        self.set_default_strategy(default_strategy)

    @property
    def default_strategy(self) -> str:
        return self._default

    def add_strategy(self, name: str, strategy: VersionStrategy) -> None:
        with self._lock:
            self._strategies[name] = strategy

    def remove_strategy(self, name: str) -> None:
        with self._lock:
            if name == self._default:
                raise ValueError(f"Cannot remove the default strategy '{name}'")
            self._strategies.pop(name, None)

    def has_strategy(self, name: str) -> bool:
        with self._lock:
            return name in self._strategies

    def get_strategy(self, name: str) -> VersionStrategy | None:
        with self._lock:
            return self._strategies.get(name)

    def set_default_strategy(self, name: str) -> None:
        with self._lock:
            if name not in self._strategies:
                raise ValueError(f"Strategy '{name}' is not registered")
            self._default = name

    def select(self, context: RenderContext) -> str:
        """Name of the strategy that applies to this context."""
        if context.version is not None:
            return "specific"
        if context.metadata.get("version_mapping") and self.has_strategy("mapped"):
            return "mapped"
        hint = context.metadata.get("version_strategy")
        if hint and self.has_strategy(hint):
            return hint
        return self._default

    def resolve(self, template: PromptTemplate, versions: Sequence[TemplateVersion], context: RenderContext) -> TemplateVersion:
        """Resolve with the selected strategy.

        Raises:
            ValueError: The selected strategy is not registered (an explicit
                        version was requested after "specific" was removed).
        """
        name = self.select(context)
        strategy = self.get_strategy(name)
        if strategy is None:
            raise ValueError(f"Strategy '{name}' is not registered")
        version = strategy.resolve(template, versions, context)
        logger.debug("Resolved %s to v%s using '%s' strategy", template.slug, version.version_number, name)
        return version


__all__ = ["VersionResolver"]
