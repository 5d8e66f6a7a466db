"""
Settings Loader.

Loads and validates diggit settings from YAML files with environment
variable substitution, and provides the YAML helpers used for the other
structured documents of a project (roster, options).
"""

import os
import re
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from diggit.config.environment import ensure_dotenv_loaded
from diggit.config.models import DiggitSettings
from diggit.errors import ConfigurationError

# Environment variable overrides for settings
# Maps env var name to settings path (dot-separated)
ENV_VAR_OVERRIDES = {
    "DIGGIT_LOG_LEVEL": "logging.level",
    "DIGGIT_LOG_FILE": "logging.file",
    "DIGGIT_GIT": "git_executable",
    "DIGGIT_CLONE_TIMEOUT": "clone_timeout",
    "DIGGIT_SKIP_PERFORMED_JOINS": "skip_performed_joins",
}

# Matches: ${VAR_NAME} or ${VAR_NAME:-default_value} or ${VAR_NAME:default_value}
ENV_PATTERN = re.compile(r"\$\{(\w+)(?::-?([^}]*))?\}")


def load_yaml_document(path: Path) -> Any:
    """Load a YAML document.

    Args:
        path: File to read

    Returns:
        Parsed document (None for an empty file)

    Raises:
        FileNotFoundError: If the file doesn't exist
        ConfigurationError: If the YAML is invalid
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"File not found: {path}")

    try:
        with open(path, encoding="utf-8") as f:
            return yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML: {e}", path=path)


def dump_yaml_document(data: Any) -> str:
    """Serialize a document as block-style YAML, keeping key order."""
    return yaml.safe_dump(data, default_flow_style=False, sort_keys=False, allow_unicode=True)


def coerce_type(value: str) -> Any:
    """Coerce a string value to the appropriate Python type.

    Args:
        value: String value to coerce

    Returns:
        Coerced value (bool, int, float, None, or original string)
    """
    if value == "":
        return None

    lower_value = value.lower()
    if lower_value in ("true", "yes", "on"):
        return True
    if lower_value in ("false", "no", "off"):
        return False

    try:
        if "." not in value and "e" not in lower_value:
            return int(value)
        return float(value)
    except ValueError:
        pass

    return value


def substitute_string(value: str) -> Any:
    """Substitute environment variables in a string.

    A string consisting of a single reference is replaced by the coerced
    value; references embedded in longer strings are replaced textually.
    Unresolvable references are left as they are.
    """
    full_match = ENV_PATTERN.fullmatch(value)
    if full_match:
        env_value = os.environ.get(full_match.group(1))
        resolved = env_value if env_value is not None else full_match.group(2)
        if resolved is not None:
            return coerce_type(resolved)
        return value

    def replace(match: re.Match[str]) -> str:
        env_value = os.environ.get(match.group(1))
        if env_value is not None:
            return env_value
        if match.group(2) is not None:
            return match.group(2)
        return match.group(0)

    return ENV_PATTERN.sub(replace, value)


def substitute_env_vars(data: Any) -> Any:
    """Recursively substitute environment variables in a document.

    Supports ``${VAR}``, ``${VAR:default}`` and ``${VAR:-default}``.
    """
    if isinstance(data, dict):
        return {k: substitute_env_vars(v) for k, v in data.items()}
    elif isinstance(data, list):
        return [substitute_env_vars(item) for item in data]
    elif isinstance(data, str):
        return substitute_string(data)
    else:
        return data


class SettingsLoader:
    """Loads diggit settings from a YAML file.

    Supports:
    - Environment variable substitution (${VAR} and ${VAR:-default} syntax)
    - DIGGIT_* environment overrides
    - Validation via Pydantic

    A missing settings file is not an error: defaults are used.

    Usage:
        loader = SettingsLoader(Path(".dgit/settings.yaml"))
        settings = loader.load()
    """

    def __init__(
        self,
        settings_path: str | Path | None = None,
        env_file: str = ".env",
    ) -> None:
        """Initialize the settings loader.

        Args:
            settings_path: Path to the YAML settings file (optional)
            env_file: Name of the .env file to load first
        """
        self._settings_path = Path(settings_path) if settings_path else None
        self._env_file = env_file
        self._settings: DiggitSettings | None = None

    @property
    def settings_path(self) -> Path | None:
        """Get settings file path."""
        return self._settings_path

    @property
    def settings(self) -> DiggitSettings | None:
        """Get loaded settings, None if not loaded yet."""
        return self._settings

    def load(self) -> DiggitSettings:
        """Load and validate settings.

        Returns:
            Validated DiggitSettings

        Raises:
            ConfigurationError: If the settings are invalid
        """
        folder = self._settings_path.parent.parent if self._settings_path else None
        ensure_dotenv_loaded(self._env_file, folder)

        raw: Any = {}
        if self._settings_path is not None and self._settings_path.exists():
            raw = load_yaml_document(self._settings_path) or {}
        if not isinstance(raw, dict):
            raise ConfigurationError(
                "Settings must be a mapping",
                path=self._settings_path,
            )

        processed = substitute_env_vars(raw)
        processed = self._apply_env_overrides(processed)
        # YAML parses empty sections as None; drop them so defaults apply
        processed = self._clean_none_values(processed)

        try:
            self._settings = DiggitSettings(**processed)
        except ValidationError as e:
            raise ConfigurationError(
                f"Settings validation failed: {e.error_count()} errors",
                errors=e.errors(),
                path=self._settings_path,
            )

        return self._settings

    def _clean_none_values(self, data: Any) -> Any:
        """Recursively remove None values from nested dicts."""
        if isinstance(data, dict):
            return {k: self._clean_none_values(v) for k, v in data.items() if v is not None}
        elif isinstance(data, list):
            return [self._clean_none_values(item) for item in data]
        else:
            return data

    def _apply_env_overrides(self, settings_dict: dict[str, Any]) -> dict[str, Any]:
        """Apply DIGGIT_* environment overrides, which win over the file."""
        for env_var, path in ENV_VAR_OVERRIDES.items():
            env_value = os.environ.get(env_var)
            if env_value is not None:
                self._set_nested_value(settings_dict, path, coerce_type(env_value))
        return settings_dict

    def _set_nested_value(self, data: dict[str, Any], path: str, value: Any) -> None:
        """Set a nested value using dot notation (e.g. "logging.level")."""
        parts = path.split(".")
        current = data
        for part in parts[:-1]:
            if not isinstance(current.get(part), dict):
                current[part] = {}
            current = current[part]
        current[parts[-1]] = value

    def save(self, path: str | Path | None = None) -> None:
        """Save the loaded settings to a YAML file.

        Raises:
            ValueError: If no settings are loaded or no path is known
        """
        if self._settings is None:
            raise ValueError("No settings loaded")

        save_path = Path(path) if path else self._settings_path
        if save_path is None:
            raise ValueError("No path specified for saving")

        save_path.write_text(dump_yaml_document(self._settings.to_yaml_dict()), encoding="utf-8")
