"""
Diggit: resumable analysis of collections of source repositories.

Diggit clones a list of repositories, applies analysis plugins to each
of them and join plugins over the ones sharing completed analyses. All
progress is journaled in the project folder so that every invocation
resumes where the previous one stopped.

Example:
    from diggit import Coordinator, RunMode, Session

    session = Session.open("my-study")
    coordinator = Coordinator(session)
    coordinator.clone()
    coordinator.analyze(analyses=["file_count"])
    coordinator.join(mode=RunMode.RUN)
"""

from diggit.coordinator import Coordinator, RunReport
from diggit.errors import (
    ConfigurationError,
    DiggitError,
    ErrorRecord,
    NotFoundError,
    PluginExecutionError,
    PluginNotFoundError,
    SourceIndexError,
    TransportError,
)
from diggit.journal import Journal, Source
from diggit.models import PluginKind, RunMode, SourceState
from diggit.plugins import Addon, Analysis, Join
from diggit.session import Session
from diggit.store import ProjectStore
from diggit.version import __version__

__all__ = [
    "__version__",
    # Orchestration
    "Session",
    "Coordinator",
    "RunReport",
    "ProjectStore",
    # State
    "Journal",
    "Source",
    "SourceState",
    "RunMode",
    # Plugins
    "PluginKind",
    "Addon",
    "Analysis",
    "Join",
    # Errors
    "DiggitError",
    "ConfigurationError",
    "NotFoundError",
    "PluginNotFoundError",
    "SourceIndexError",
    "TransportError",
    "PluginExecutionError",
    "ErrorRecord",
]
