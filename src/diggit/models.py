"""
Persisted State Models.

Enumerations and pydantic models describing what diggit writes to the
``.dgit`` folder: per-source journal entries, the workspace entry and
the plugin roster.
"""

from enum import Enum

from pydantic import BaseModel, Field, field_validator

from diggit.errors import ErrorRecord


class SourceState(str, Enum):
    """Clone state of a source."""

    NEW = "new"
    CLONED = "cloned"


class RunMode(str, Enum):
    """How the coordinator treats already touched work."""

    RUN = "run"  # Do new work only
    CLEAN = "clean"  # Undo existing work only
    RERUN = "rerun"  # Undo then redo

    @property
    def cleans(self) -> bool:
        """Whether this mode cleans existing work."""
        return self in (RunMode.CLEAN, RunMode.RERUN)

    @property
    def runs(self) -> bool:
        """Whether this mode performs new work."""
        return self in (RunMode.RUN, RunMode.RERUN)


class PluginKind(str, Enum):
    """Capability kind of a plugin."""

    ADDON = "addon"
    ANALYSIS = "analysis"
    JOIN = "join"


def _dedupe(values: list[str]) -> list[str]:
    return list(dict.fromkeys(values))


class SourceEntry(BaseModel):
    """Journal entry for one source.

    Attributes:
        state: Clone state
        performed_analyses: Analyses that completed successfully
        ongoing_analyses: Analyses started but not completed
        last_error: Last recorded error, None when clean
    """

    state: SourceState = SourceState.NEW
    performed_analyses: list[str] = Field(default_factory=list)
    ongoing_analyses: list[str] = Field(default_factory=list)
    last_error: ErrorRecord | None = None

    @field_validator("performed_analyses", "ongoing_analyses")
    @classmethod
    def dedupe_names(cls, v: list[str]) -> list[str]:
        """Keep the first occurrence of each name."""
        return _dedupe(v)

    @field_validator("last_error", mode="before")
    @classmethod
    def empty_error_is_none(cls, v):
        """Treat an empty mapping as no error."""
        if v == {}:
            return None
        return v


class WorkspaceEntry(BaseModel):
    """Journal entry for cross-source (join) progress."""

    performed_joins: list[str] = Field(default_factory=list)
    last_error: ErrorRecord | None = None

    @field_validator("performed_joins")
    @classmethod
    def dedupe_names(cls, v: list[str]) -> list[str]:
        """Keep the first occurrence of each name."""
        return _dedupe(v)

    @field_validator("last_error", mode="before")
    @classmethod
    def empty_error_is_none(cls, v):
        """Treat an empty mapping as no error."""
        if v == {}:
            return None
        return v


class JournalDocument(BaseModel):
    """Detail blob persisted in ``.dgit/journal``."""

    sources: dict[str, SourceEntry] = Field(default_factory=dict)
    workspace: WorkspaceEntry = Field(default_factory=WorkspaceEntry)

    @field_validator("sources", "workspace", mode="before")
    @classmethod
    def none_is_empty(cls, v, info):
        if v is None:
            return {} if info.field_name == "sources" else WorkspaceEntry()
        return v


class ConfigEntry(BaseModel):
    """Plugin roster persisted in ``.dgit/config``."""

    analyses: list[str] = Field(default_factory=list)
    joins: list[str] = Field(default_factory=list)

    @field_validator("analyses", "joins", mode="before")
    @classmethod
    def none_is_empty(cls, v):
        return v or []

    @field_validator("analyses", "joins")
    @classmethod
    def dedupe_names(cls, v: list[str]) -> list[str]:
        """Keep the first occurrence of each name."""
        return _dedupe(v)
