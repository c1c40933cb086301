"""Pipelines: ordered render steps sharing a mutable execution context."""

from .builder import PipelineBuilder
from .context import PipelineContext
from .executor import PipelineExecutor, PipelineRef, current_depth
from .models import InputMapping, Pipeline, PipelineStep
from .step import PipelineStore, StepHandler, StepHandlerRegistry, StepRunner, TemplateRenderer
from .validation import validate_input

__all__ = [
    "InputMapping",
    "Pipeline",
    "PipelineBuilder",
    "PipelineContext",
    "PipelineExecutor",
    "PipelineRef",
    "PipelineStore",
    "PipelineStep",
    "StepHandler",
    "StepHandlerRegistry",
    "StepRunner",
    "TemplateRenderer",
    "current_depth",
    "validate_input",
]
