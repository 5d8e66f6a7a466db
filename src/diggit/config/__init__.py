"""
Diggit Configuration Management

This module provides:
- Tool settings (logging, git) loaded from YAML with environment overrides
- Environment variable handling via python-dotenv
- The plugin roster (enabled analyses and joins)
"""

from diggit.config.environment import ensure_dotenv_loaded, get_env, reset_environment
from diggit.config.loader import (
    ENV_VAR_OVERRIDES,
    SettingsLoader,
    coerce_type,
    dump_yaml_document,
    load_yaml_document,
    substitute_env_vars,
)
from diggit.config.models import DiggitSettings, LoggingConfig, LogLevel
from diggit.config.roster import Config

__all__ = [
    # Settings models
    "DiggitSettings",
    "LoggingConfig",
    "LogLevel",
    # Loader
    "SettingsLoader",
    "ENV_VAR_OVERRIDES",
    "load_yaml_document",
    "dump_yaml_document",
    "substitute_env_vars",
    "coerce_type",
    # Environment
    "ensure_dotenv_loaded",
    "get_env",
    "reset_environment",
    # Roster
    "Config",
]
