"""
Source Journal.

Tracks every source of a project and its progress:

- Source: one repository, its clone state and analysis bookkeeping
- Journal: ordered collection of sources plus the workspace entry
  recording cross-source (join) progress

The journal persists itself through a save callback after every
state-changing operation.
"""

import logging
from collections.abc import Callable, Iterable
from pathlib import Path
from typing import Optional

from diggit.errors import (
    ConfigurationError,
    ErrorRecord,
    NotFoundError,
    SourceIdCollisionError,
    SourceIndexError,
    SourceStateError,
)
from diggit.models import JournalDocument, SourceEntry, SourceState, WorkspaceEntry
from diggit.naming import source_id
from diggit.vcs import GitClient, Repository

logger = logging.getLogger(__name__)

JournalSaver = Callable[["Journal"], None]


class Source:
    """A tracked repository and its per-source progress.

    Attributes:
        url: Identity of the repository
        entry: Persisted journal entry
        folder: Local clone folder
        repository: Opened repository, set by load_repository()
    """

    def __init__(
        self,
        url: str,
        folder: Path,
        entry: SourceEntry | None = None,
    ) -> None:
        self.url = url
        self.folder = Path(folder)
        self.entry = entry if entry is not None else SourceEntry()
        self.repository: Repository | None = None

    @property
    def id(self) -> str:
        """Filesystem-safe identity derived from the url."""
        return source_id(self.url)

    # -- state --------------------------------------------------------------

    @property
    def state(self) -> SourceState:
        return self.entry.state

    @state.setter
    def state(self, state: SourceState) -> None:
        self.entry.state = state

    @property
    def is_new(self) -> bool:
        return self.entry.state is SourceState.NEW

    @property
    def is_cloned(self) -> bool:
        return self.entry.state is SourceState.CLONED

    # -- errors -------------------------------------------------------------

    @property
    def error(self) -> ErrorRecord | None:
        """Last recorded error, None when clean."""
        return self.entry.last_error

    @error.setter
    def error(self, error: ErrorRecord | None) -> None:
        self.entry.last_error = error

    @property
    def has_error(self) -> bool:
        return self.entry.last_error is not None

    def record_error(self, error: BaseException) -> None:
        """Store an exception as the last error."""
        self.entry.last_error = ErrorRecord.from_exception(error)

    # -- analyses -----------------------------------------------------------

    @property
    def performed_analyses(self) -> list[str]:
        return list(self.entry.performed_analyses)

    @property
    def ongoing_analyses(self) -> list[str]:
        return list(self.entry.ongoing_analyses)

    def analysis_performed(self, name: str) -> bool:
        return name in self.entry.performed_analyses

    def analyses_performed(self, *names: str) -> bool:
        """Check that every name is a performed analysis."""
        return set(names).issubset(self.entry.performed_analyses)

    def analysis_ongoing(self, name: str) -> bool:
        return name in self.entry.ongoing_analyses

    def has_analysis(self, name: str) -> bool:
        """Check whether an analysis was touched (performed or ongoing)."""
        return self.analysis_performed(name) or self.analysis_ongoing(name)

    def add_ongoing_analysis(self, name: str) -> None:
        if name not in self.entry.ongoing_analyses:
            self.entry.ongoing_analyses.append(name)

    def complete_analysis(self, name: str) -> None:
        """Move an analysis from ongoing to performed."""
        self._discard(self.entry.ongoing_analyses, name)
        if name not in self.entry.performed_analyses:
            self.entry.performed_analyses.append(name)

    def del_analysis(self, name: str) -> None:
        """Forget an analysis entirely."""
        self._discard(self.entry.ongoing_analyses, name)
        self._discard(self.entry.performed_analyses, name)

    @staticmethod
    def _discard(names: list[str], name: str) -> None:
        names[:] = [n for n in names if n != name]

    # -- repository ---------------------------------------------------------

    def clone(self, vcs: GitClient) -> bool:
        """Fetch the repository, or open it if the folder already exists.

        Failures are recorded on the source and never raised; the source
        stays NEW and can be retried.

        Args:
            vcs: Version control collaborator

        Returns:
            True if the source is now cloned
        """
        try:
            if self.folder.exists():
                self.repository = vcs.open(self.folder)
            else:
                self.repository = vcs.clone(self.url, self.folder)
        except Exception as e:
            logger.error(f"Error cloning {self.url}: {e}")
            self.record_error(e)
            return False

        self.entry.state = SourceState.CLONED
        self.entry.last_error = None
        return True

    def load_repository(self, vcs: GitClient) -> Repository:
        """Open the local clone.

        Raises:
            SourceStateError: If the source was never cloned
        """
        if self.is_new:
            raise SourceStateError(f"Source not cloned {self.url}")
        self.repository = vcs.open(self.folder)
        return self.repository

    def __repr__(self) -> str:
        return f"Source(url={self.url!r}, state={self.state.value})"


class Journal:
    """Ordered collection of sources plus workspace progress.

    Sources keep the order in which their urls were first registered.
    Index-based addressing refers to positions in that order.

    Usage:
        journal = Journal(["https://github.com/foo/bar.git"], JournalDocument(), Path("sources"))
        for source in journal.sources_by_state(SourceState.NEW):
            ...
    """

    def __init__(
        self,
        urls: Iterable[str],
        document: JournalDocument,
        sources_folder: Path,
        saver: Optional[JournalSaver] = None,
    ) -> None:
        """Rebuild a journal from persisted state.

        Args:
            urls: Registered urls, in registration order
            document: Persisted detail blob
            sources_folder: Folder holding one clone folder per source
            saver: Callback persisting the journal

        Raises:
            SourceIdCollisionError: If two urls derive the same id
        """
        self._sources_folder = Path(sources_folder)
        self._saver = saver
        self._sources: dict[str, Source] = {}
        self._ids: dict[str, str] = {}

        for url in urls:
            if url in self._sources:
                continue
            entry = document.sources.get(url)
            self._register(url, entry.model_copy(deep=True) if entry else None)

        self._workspace = document.workspace.model_copy(deep=True)

    def _register(self, url: str, entry: SourceEntry | None = None) -> Source:
        sid = source_id(url)
        existing = self._ids.get(sid)
        if existing is not None and existing != url:
            raise SourceIdCollisionError(url, existing, sid)
        source = Source(url, self._sources_folder / sid, entry)
        self._sources[url] = source
        self._ids[sid] = url
        return source

    def save(self) -> None:
        """Persist the journal through the save callback."""
        if self._saver is not None:
            self._saver(self)

    # -- sources ------------------------------------------------------------

    @property
    def urls(self) -> list[str]:
        return list(self._sources)

    def sources(self) -> list[Source]:
        """All sources in registration order."""
        return list(self._sources.values())

    def sources_by_state(self, state: SourceState, has_error: bool = False) -> list[Source]:
        """Sources in ``state`` whose error flag equals ``has_error``."""
        return [s for s in self._sources.values() if s.state == state and s.has_error == has_error]

    def sources_by_ids(self, *ids: int) -> list[Source]:
        """Resolve source indexes against the current order.

        No ids means every source.

        Raises:
            SourceIndexError: If an index is out of range
        """
        sources = self.sources()
        if not ids:
            return sources
        result = []
        for index in ids:
            if index < 0 or index >= len(sources):
                raise SourceIndexError(index, len(sources))
            result.append(sources[index])
        return result

    def get_source(self, url: str) -> Source:
        """Look up a source by url.

        Raises:
            NotFoundError: If the url is not registered
        """
        try:
            return self._sources[url]
        except KeyError:
            raise NotFoundError(f"No such source {url}") from None

    def add_source(self, url: str) -> Source:
        """Register a url, appending it to the journal.

        Already registered urls are left untouched.

        Raises:
            ConfigurationError: If the url is blank
            SourceIdCollisionError: If the url derives the id of another source
        """
        url = url.strip()
        if not url:
            raise ConfigurationError("Source url must not be empty")
        source = self._sources.get(url)
        if source is None:
            source = self._register(url)
            logger.info(f"Added source {url}")
        self.save()
        return source

    def update_source(self, source: Source) -> None:
        """Replace a registered source.

        Raises:
            NotFoundError: If the source url is not registered
        """
        if source.url not in self._sources:
            raise NotFoundError(f"No such source {source.url}")
        self._sources[source.url] = source
        self.save()

    # -- workspace ----------------------------------------------------------

    @property
    def workspace(self) -> WorkspaceEntry:
        return self._workspace

    @property
    def performed_joins(self) -> list[str]:
        return list(self._workspace.performed_joins)

    def join_performed(self, name: str) -> bool:
        return name in self._workspace.performed_joins

    def add_join(self, name: str) -> None:
        if name not in self._workspace.performed_joins:
            self._workspace.performed_joins.append(name)
        self.save()

    def del_join(self, name: str) -> None:
        self._workspace.performed_joins = [
            j for j in self._workspace.performed_joins if j != name
        ]
        self.save()

    @property
    def join_error(self) -> ErrorRecord | None:
        return self._workspace.last_error

    @property
    def has_join_error(self) -> bool:
        return self._workspace.last_error is not None

    def set_join_error(self, error: BaseException) -> None:
        """Record a join failure on the workspace and persist."""
        self._workspace.last_error = ErrorRecord.from_exception(error)
        self.save()

    def clear_join_error(self) -> None:
        self._workspace.last_error = None
        self.save()

    # -- serialization ------------------------------------------------------

    def to_document(self) -> JournalDocument:
        """Build the detail blob to persist."""
        return JournalDocument(
            sources={url: s.entry.model_copy(deep=True) for url, s in self._sources.items()},
            workspace=self._workspace.model_copy(deep=True),
        )

    def __len__(self) -> int:
        return len(self._sources)
