"""Core configuration settings for prompt template rendering.

@public

Settings are loaded from environment variables prefixed with
PROMPT_TEMPLATES_ and from a .env file via pydantic-settings.

Environment variables:
    PROMPT_TEMPLATES_VARIABLE_START: Opening placeholder delimiter (default "{{")
    PROMPT_TEMPLATES_VARIABLE_END: Closing placeholder delimiter (default "}}")
    PROMPT_TEMPLATES_DEFAULT_TYPE: Handler key for templates without a type
    PROMPT_TEMPLATES_CACHE_ENABLED: Memoize template lookups and renders
    PROMPT_TEMPLATES_CACHE_TTL: Cache TTL in seconds
    PROMPT_TEMPLATES_CACHE_PREFIX: Cache key namespace
    PROMPT_TEMPLATES_PIPELINE_MAX_DEPTH: Maximum nested pipeline depth
    PROMPT_TEMPLATES_PIPELINE_RETRY_BASE_DELAY: First retry delay in seconds
    PROMPT_TEMPLATES_TRACK_EXECUTIONS: Write an audit record per render
    PROMPT_TEMPLATES_AUTO_PUBLISH: Publish new versions on creation
    PROMPT_TEMPLATES_COMPONENTS_DEFAULT_ENABLED: Default enabled flag for attachments
    PROMPT_TEMPLATES_SOFT_DELETES: Tombstone deleted templates instead of removing them

Example:
    >>> from prompt_templates_core.settings import settings
    >>> settings.pipeline_max_depth
    10

Note:
    Settings are frozen. Services accept an explicit Settings instance,
    which is the way to use different values in tests.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Configuration for template rendering, caching and pipeline execution.

    @public

    Attributes:
        variable_start: Opening delimiter of a placeholder.
        variable_end: Closing delimiter of a placeholder.
        default_type: Prompt type used when a template declares none.
        cache_enabled: Whether PromptManager memoizes lookups and renders.
        cache_ttl: Seconds a cached entry stays valid.
        cache_prefix: Namespace prepended to every cache key.
        pipeline_max_depth: Nested pipeline executions allowed before
                            PipelineDepthExceededError is raised.
        pipeline_retry_base_delay: Delay before the first retry of a step;
                                   doubled for each further retry.
        track_executions: Append a PromptExecution record for each render.
        auto_publish: Mark new versions as published when created.
        components_default_enabled: Enabled flag for new attachments.
        soft_deletes: Tombstone templates on delete (recoverable).
    """

    model_config = SettingsConfigDict(
        env_prefix="PROMPT_TEMPLATES_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    # Substitution
    variable_start: str = "{{"
    variable_end: str = "}}"
    default_type: str = "default"

    # Cache
    cache_enabled: bool = True
    cache_ttl: int = 3600
    cache_prefix: str = "prompt_templates"

    # Pipelines
    pipeline_max_depth: int = 10
    pipeline_retry_base_delay: float = 0.1

    # Lifecycle
    track_executions: bool = False
    auto_publish: bool = False
    components_default_enabled: bool = True
    soft_deletes: bool = True


settings = Settings()
"""Global settings instance.

@public
"""
