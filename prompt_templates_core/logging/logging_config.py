"""Centralized logging configuration for Prompt Templates Core.

@public

Loggers are Prefect loggers configured through logging.config.dictConfig,
either from a YAML file or from a built-in console configuration.

Environment variables:
    PROMPT_TEMPLATES_LOGGING_CONFIG: Path to custom logging.yml
    PROMPT_TEMPLATES_LOG_LEVEL: Level for the prompt_templates_core logger
    PREFECT_LOGGING_SETTINGS_PATH: Alternative config path
"""

import logging.config
import os
from pathlib import Path
from typing import Any

import yaml
from prefect.logging import get_logger

DEFAULT_LOG_LEVELS = {
    "prompt_templates_core": "INFO",
    "prompt_templates_core.pipeline": "INFO",
    "prompt_templates_core.versioning": "INFO",
}


class LoggingConfig:
    """Loads and applies the logging configuration.

    @public

    Configuration precedence:
        1. Explicit config_path parameter
        2. PROMPT_TEMPLATES_LOGGING_CONFIG environment variable
        3. PREFECT_LOGGING_SETTINGS_PATH environment variable
        4. Default configuration

    The configuration is loaded lazily and cached on the instance.
    """

    def __init__(self, config_path: Path | None = None):
        self.config_path = config_path or self._get_default_config_path()
        self._config: dict[str, Any] | None = None

    @staticmethod
    def _get_default_config_path() -> Path | None:
        if env_path := os.environ.get("PROMPT_TEMPLATES_LOGGING_CONFIG"):
            return Path(env_path)

        if prefect_path := os.environ.get("PREFECT_LOGGING_SETTINGS_PATH"):
            return Path(prefect_path)

        return None

    def load_config(self) -> dict[str, Any]:
        """Return the dictConfig mapping, reading the YAML file once if it exists."""
        if self._config is None:
            if self.config_path and self.config_path.exists():
                with open(self.config_path, "r") as f:
                    self._config = yaml.safe_load(f)
            else:
                self._config = self._get_default_config()
        assert self._config is not None
        return self._config

    @staticmethod
    def _get_default_config() -> dict[str, Any]:
        """Console configuration used when no file is found.

        Format: "HH:MM:SS.mmm | LEVEL | logger.name - message"
        """
        return {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "standard": {
                    "format": "%(asctime)s.%(msecs)03d | %(levelname)-7s | %(name)s - %(message)s",
                    "datefmt": "%H:%M:%S",
                },
            },
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "formatter": "standard",
                    "stream": "ext://sys.stdout",
                },
            },
            "loggers": {
                "prompt_templates_core": {
                    "level": os.environ.get("PROMPT_TEMPLATES_LOG_LEVEL", "INFO"),
                    "handlers": ["console"],
                    "propagate": False,
                },
            },
            "root": {
                "level": "WARNING",
                "handlers": ["console"],
            },
        }

    def apply(self):
        """Apply the configuration with dictConfig.

        Sets PREFECT_LOGGING_LEVEL when the configuration defines a prefect logger.
        """
        config = self.load_config()
        logging.config.dictConfig(config)

        if "prefect" in config.get("loggers", {}):
            prefect_level = config["loggers"]["prefect"].get("level", "INFO")
            os.environ.setdefault("PREFECT_LOGGING_LEVEL", prefect_level)


_logging_config: LoggingConfig | None = None


def setup_logging(config_path: Path | None = None, level: str | None = None):
    """Configure logging for the library.

    @public

    Args:
        config_path: Optional YAML dictConfig file.
        level: Optional level applied to every library logger, overriding the file.

    Example:
        >>> setup_logging(level="DEBUG")
    """
    global _logging_config

    _logging_config = LoggingConfig(config_path)
    _logging_config.apply()

    if level:
        for logger_name in DEFAULT_LOG_LEVELS:
            logger = get_logger(logger_name)
            logger.setLevel(level)

        os.environ["PREFECT_LOGGING_LEVEL"] = level


def get_pipeline_logger(name: str):
    """Get a Prefect-integrated logger, configuring logging on first use.

    @public

    Example:
        >>> logger = get_pipeline_logger(__name__)
        >>> logger.info("Template %s rendered", "welcome")
    """
    if _logging_config is None:
        setup_logging()

    return get_logger(name)
