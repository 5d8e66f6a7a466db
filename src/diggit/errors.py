"""
Diggit Error Taxonomy.

Fatal errors (ConfigurationError, NotFoundError and their subclasses)
propagate to the caller and abort the invocation. Non-fatal errors
(TransportError, PluginExecutionError) are captured as ErrorRecord
entries on the source or workspace they belong to.
"""

import traceback as tb
from pathlib import Path

from pydantic import BaseModel, Field


class DiggitError(Exception):
    """Base class for all diggit errors."""


class ConfigurationError(DiggitError):
    """Raised when configuration or persisted state is invalid."""

    def __init__(
        self,
        message: str,
        errors: list[dict] | None = None,
        path: Path | None = None,
    ) -> None:
        """Initialize configuration error.

        Args:
            message: Error message
            errors: List of validation errors (from Pydantic)
            path: Path to the file that caused the error
        """
        super().__init__(message)
        self.errors = errors or []
        self.path = path

    def __str__(self) -> str:
        """Format error message with details."""
        msg = super().__str__()
        if self.path:
            msg = f"{msg} (file: {self.path})"
        if self.errors:
            error_details = []
            for err in self.errors[:5]:  # Show first 5 errors
                loc = ".".join(str(x) for x in err.get("loc", []))
                error_msg = err.get("msg", "Unknown error")
                error_details.append(f"  - {loc}: {error_msg}")
            if len(self.errors) > 5:
                error_details.append(f"  ... and {len(self.errors) - 5} more errors")
            msg = f"{msg}\n" + "\n".join(error_details)
        return msg


class InvalidPluginKindError(ConfigurationError, ValueError):
    """Raised when a plugin is requested with an unknown kind."""

    def __init__(self, kind: object) -> None:
        super().__init__(f"Unknown plugin kind: {kind}")
        self.kind = kind


class SourceIdCollisionError(ConfigurationError):
    """Raised when two distinct urls derive the same source id."""

    def __init__(self, url: str, existing_url: str, source_id: str) -> None:
        super().__init__(
            f"Source {url} collides with {existing_url} (both map to id '{source_id}')"
        )
        self.url = url
        self.existing_url = existing_url
        self.source_id = source_id


class NotFoundError(DiggitError, LookupError):
    """Raised when a requested entity does not exist."""


class PluginNotFoundError(NotFoundError):
    """Raised when a plugin cannot be resolved."""

    def __init__(self, name: str, kind: str) -> None:
        super().__init__(f"Plugin {name} ({kind}) not found")
        self.name = name
        self.kind = kind


class SourceIndexError(NotFoundError, IndexError):
    """Raised when a source index is out of range."""

    def __init__(self, index: int, count: int) -> None:
        super().__init__(f"No such source index {index} (journal has {count} sources)")
        self.index = index
        self.count = count


class SourceStateError(DiggitError):
    """Raised when an operation needs a source in another state."""


class TransportError(DiggitError):
    """Raised by the VCS collaborator when a fetch or open fails.

    Attributes:
        url: Remote url involved (if any)
        folder: Local folder involved
        stderr: Captured stderr of the failing command
    """

    def __init__(
        self,
        message: str,
        url: str | None = None,
        folder: Path | None = None,
        stderr: str = "",
    ) -> None:
        super().__init__(message)
        self.url = url
        self.folder = folder
        self.stderr = stderr


class PluginExecutionError(DiggitError):
    """Wraps an exception raised by a plugin's run() or clean().

    Attributes:
        plugin: Plugin name
        action: Lifecycle method that failed ("run" or "clean")
        target: Source url, or "workspace" for joins
        cause: Original exception
    """

    def __init__(self, plugin: str, action: str, target: str, cause: BaseException) -> None:
        super().__init__(
            f"{action} of {plugin} failed on {target}: {type(cause).__name__}: {cause}"
        )
        self.plugin = plugin
        self.action = action
        self.target = target
        self.cause = cause


class ErrorRecord(BaseModel):
    """Structured, persistable record of a non-fatal error.

    Attributes:
        kind: Exception class name
        message: Exception message
        trace: Formatted traceback lines
    """

    kind: str
    message: str = ""
    trace: list[str] = Field(default_factory=list)

    @classmethod
    def from_exception(cls, error: BaseException) -> "ErrorRecord":
        """Build a record from an exception.

        For a PluginExecutionError the trace is taken from the wrapped
        cause, since that is where the plugin actually failed.
        """
        origin = error.cause if isinstance(error, PluginExecutionError) else error
        trace = tb.format_exception(type(origin), origin, origin.__traceback__)
        return cls(
            kind=type(error).__name__,
            message=str(error),
            trace=[line.rstrip("\n") for line in trace],
        )
