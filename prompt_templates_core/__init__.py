"""Prompt Templates Core - versioned prompt templates, composable components and render pipelines.

@public

Templates hold their content in immutable versions. Rendering resolves a
version (explicit number, client-version mapping, published or latest),
substitutes `{{ variable }}` placeholders with dotted-path lookup, composes
reusable components into the prompt sections, and hands the result to a type
handler that shapes it for chat, completion or instruction-style models.
Pipelines chain renders through a shared context with retries and a nesting
depth guard.

Core Capabilities:
    - **Templates and Versions**: Publish, stabilize, deprecate and migrate content
    - **Components**: Conditional prepend/append/marker-replace fragments with per-user overrides
    - **Type Handlers**: default, chat, completion and instruction output shapes
    - **Pipelines**: Ordered steps with input/output mapping, retries and back-off
    - **Storage and Cache**: Async store protocol with an in-memory implementation

Quick Start:
    >>> from prompt_templates_core import PromptManager
    >>>
    >>> manager = PromptManager()
    >>> await manager.create_template("greeting", "Greeting", content="Hello, {{ name }}!")
    >>> result = await manager.render_template("greeting", {"name": "World"})
    >>> result.to_string()
    'Hello, World!'

Optional Environment Variables:
    - PROMPT_TEMPLATES_CACHE_ENABLED: Memoize lookups and renders (default true)
    - PROMPT_TEMPLATES_PIPELINE_MAX_DEPTH: Nested pipeline limit (default 10)
    - PROMPT_TEMPLATES_LOGGING_CONFIG: Path to a YAML logging configuration
"""

from .cache import MemoryTemplateCache, TemplateCache
from .exceptions import (
    ComponentNotFoundError,
    DuplicateTemplateError,
    InvalidContextError,
    InvalidTypeError,
    MappingFailedError,
    PipelineDepthExceededError,
    PipelineError,
    PipelineInputInvalidError,
    PipelineNotFoundError,
    PipelineStepFailedError,
    PromptTemplatesError,
    RenderingFailedError,
    TemplateNotFoundError,
    VersionNotFoundError,
)
from .handlers import (
    ChatTypeHandler,
    CompletionTypeHandler,
    DefaultTypeHandler,
    HandlerRegistry,
    InstructionTypeHandler,
    TypeHandler,
)
from .logging import LoggingConfig, get_pipeline_logger, setup_logging
from .logging import get_pipeline_logger as get_logger
from .manager import PromptManager
from .pipeline import Pipeline, PipelineBuilder, PipelineContext, PipelineExecutor, PipelineStep
from .settings import Settings, settings
from .store import MemoryTemplateStore, TemplateStore, get_template_store, set_template_store
from .templates import (
    ComponentAttachment,
    Condition,
    MappingRule,
    PromptComponent,
    PromptExecution,
    PromptTemplate,
    PromptType,
    RenderContext,
    RenderedPrompt,
    TemplateVersion,
    VariableSubstitutor,
)
from .templates.pipes import apply_pipes, sanitize_variables, transform_variables, validate_variables
from .versioning import VersionMappingResult, VersionMigrator, VersionResolver

__version__ = "0.1.0"

__all__ = [
    # Config/Settings
    "Settings",
    "settings",
    # Logging
    "get_logger",
    "get_pipeline_logger",
    "LoggingConfig",
    "setup_logging",
    # Facade
    "PromptManager",
    # Entities
    "ComponentAttachment",
    "Condition",
    "MappingRule",
    "PromptComponent",
    "PromptExecution",
    "PromptTemplate",
    "PromptType",
    "TemplateVersion",
    # Rendering
    "RenderContext",
    "RenderedPrompt",
    "VariableSubstitutor",
    "apply_pipes",
    "sanitize_variables",
    "transform_variables",
    "validate_variables",
    # Type handlers
    "ChatTypeHandler",
    "CompletionTypeHandler",
    "DefaultTypeHandler",
    "HandlerRegistry",
    "InstructionTypeHandler",
    "TypeHandler",
    # Versioning
    "VersionMappingResult",
    "VersionMigrator",
    "VersionResolver",
    # Pipelines
    "Pipeline",
    "PipelineBuilder",
    "PipelineContext",
    "PipelineExecutor",
    "PipelineStep",
    # Storage and cache
    "MemoryTemplateCache",
    "MemoryTemplateStore",
    "TemplateCache",
    "TemplateStore",
    "get_template_store",
    "set_template_store",
    # Errors
    "ComponentNotFoundError",
    "DuplicateTemplateError",
    "InvalidContextError",
    "InvalidTypeError",
    "MappingFailedError",
    "PipelineDepthExceededError",
    "PipelineError",
    "PipelineInputInvalidError",
    "PipelineNotFoundError",
    "PipelineStepFailedError",
    "PromptTemplatesError",
    "RenderingFailedError",
    "TemplateNotFoundError",
    "VersionNotFoundError",
]
