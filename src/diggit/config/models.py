"""
Settings Data Models.

Tool-level settings (as opposed to the plugin roster and the plugin
options), validated with Pydantic.
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, field_validator


class LogLevel(str, Enum):
    """Logging verbosity."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class LoggingConfig(BaseModel):
    """Configuration for logging.

    Attributes:
        level: Level of the ``diggit`` logger
        file: Optional log file, relative to the project folder
        format: Log record format
    """

    level: LogLevel = Field(
        default=LogLevel.WARNING,
        description="Log level",
    )
    file: str | None = Field(
        default=None,
        description="Log file (None = stderr only)",
    )
    format: str = Field(
        default="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        description="Log record format",
    )

    @field_validator("level", mode="before")
    @classmethod
    def upper_level(cls, v: Any) -> Any:
        """Accept lowercase level names."""
        if isinstance(v, str):
            return v.upper()
        return v


class DiggitSettings(BaseModel):
    """Root settings of a diggit project.

    Attributes:
        logging: Logging configuration
        git_executable: git binary used to clone sources
        clone_timeout: Maximum seconds a clone may take
        skip_performed_joins: Skip joins already performed in run mode
    """

    logging: LoggingConfig = Field(
        default_factory=LoggingConfig,
        description="Logging configuration",
    )
    git_executable: str = Field(
        default="git",
        description="git executable",
    )
    clone_timeout: int = Field(
        default=3600,
        ge=1,
        description="Clone timeout in seconds",
    )
    skip_performed_joins: bool = Field(
        default=False,
        description="Skip joins already performed when running in run mode",
    )

    def to_yaml_dict(self) -> dict[str, Any]:
        """Convert to YAML-friendly dictionary."""
        return self.model_dump(mode="json", exclude_none=True)
