"""Mutable execution state threaded through the steps of a pipeline run.

A context is never persisted and never shared between runs. Chained and
parallel executions copy or merge contexts explicitly.
"""

import copy
from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any, Self

from prompt_templates_core.exceptions import PipelineStepFailedError
from prompt_templates_core.templates.rendered import RenderedPrompt
from prompt_templates_core.utils import data_get, data_has, data_set


class PipelineContext:
    """Dot-path key-value data, per-step results and per-step errors.

    `should_continue` starts True; any step may clear it with stop() to halt
    the remaining steps.
    """

    def __init__(self, initial_input: Mapping[str, Any] | None = None, config: Mapping[str, Any] | None = None) -> None:
        self.initial_input: dict[str, Any] = dict(initial_input or {})
        self.config: dict[str, Any] = dict(config or {})
        self._data: dict[str, Any] = copy.deepcopy(self.initial_input)
        self._results: dict[str, RenderedPrompt] = {}
        self._errors: dict[str, dict[str, Any]] = {}
        self._should_continue = True

    # -- data ---------------------------------------------------------------

    def get(self, key: str, default: Any = None) -> Any:
        return data_get(self._data, key, default)

    def set(self, key: str, value: Any) -> Self:
        data_set(self._data, key, value)
        return self

    def has(self, key: str) -> bool:
        return data_has(self._data, key)

    def all(self) -> dict[str, Any]:
        return self._data

    def merge(self, data: Mapping[str, Any]) -> Self:
        """Shallow merge at the top level."""
        self._data.update(data)
        return self

    # -- results ------------------------------------------------------------

    def add_result(self, step: str, result: RenderedPrompt) -> Self:
        """Record a step result, also exposing it as `results.<step>` in the data."""
        self._results[step] = result
        results = self._data.setdefault("results", {})
        if not isinstance(results, dict):
            results = {}
            self._data["results"] = results
        results[step] = result.to_dict()
        return self

    def get_result(self, step: str) -> RenderedPrompt | None:
        return self._results.get(step)

    @property
    def results(self) -> dict[str, RenderedPrompt]:
        return dict(self._results)

    @property
    def last_result(self) -> RenderedPrompt | None:
        if not self._results:
            return None
        return next(reversed(self._results.values()))

    # -- errors -------------------------------------------------------------

    def add_error(self, step: str, message: str, context: Mapping[str, Any] | None = None) -> Self:
        self._errors[step] = {
            "message": message,
            "context": dict(context or {}),
            "timestamp": datetime.now(UTC).isoformat(),
        }
        return self

    @property
    def errors(self) -> dict[str, dict[str, Any]]:
        return dict(self._errors)

    @property
    def has_errors(self) -> bool:
        return bool(self._errors)

    def raise_for_errors(self) -> None:
        """Raise PipelineStepFailedError for the first recorded error, if any."""
        for step, error in self._errors.items():
            raise PipelineStepFailedError(step, error["message"], error["context"])

    # -- flow control -------------------------------------------------------

    def stop(self) -> Self:
        self._should_continue = False
        return self

    @property
    def should_continue(self) -> bool:
        return self._should_continue

    def with_input(self, data: Mapping[str, Any]) -> "PipelineContext":
        """New context carrying this one's state plus `data`."""
        new = PipelineContext({**self.initial_input, **data}, self.config)
        new._data = {**copy.deepcopy(self._data), **data}
        new._results = dict(self._results)
        new._errors = copy.deepcopy(self._errors)
        new._should_continue = self._should_continue
        return new

    def to_dict(self) -> dict[str, Any]:
        return {
            "data": self._data,
            "results": {step: result.to_dict() for step, result in self._results.items()},
            "errors": self._errors,
            "should_continue": self._should_continue,
        }

    def __repr__(self) -> str:
        return f"PipelineContext(results={list(self._results)}, errors={list(self._errors)}, should_continue={self._should_continue})"


__all__ = ["PipelineContext"]
