"""
Plugin Capability Contract.

Defines the base classes every diggit plugin derives from:

- Addon: shared helper instantiated once per session (e.g. an output folder)
- Analysis: work performed on exactly one source
- Join: work performed on a cohort of sources sharing completed analyses

Plugins are constructed with the project options, which are passed
verbatim and interpreted only by plugins themselves.
"""

from abc import ABC, abstractmethod
from collections.abc import Mapping
from pathlib import Path
from typing import TYPE_CHECKING, Any, ClassVar

from diggit.models import PluginKind
from diggit.naming import underscore

if TYPE_CHECKING:
    from diggit.journal import Source
    from diggit.vcs import Repository


class Plugin(ABC):
    """Base class of all plugins.

    Subclasses get a ``name`` derived from their class name
    (``FileCount`` -> ``file_count``) unless they set one explicitly.

    Attributes:
        kind: Capability kind, set by the capability base classes
        name: Stable plugin name used in rosters and the journal
        required_addons: Names of addons the plugin needs
    """

    kind: ClassVar[PluginKind]
    name: ClassVar[str]
    required_addons: ClassVar[tuple[str, ...]] = ()

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        if "name" not in cls.__dict__:
            cls.name = underscore(cls.__name__)

    def __init__(
        self,
        options: Mapping[str, Any],
        addons: Mapping[str, "Addon"] | None = None,
        project_folder: Path | None = None,
    ) -> None:
        """Initialize the plugin.

        Args:
            options: Project options, passed verbatim
            addons: Instantiated addons keyed by name
            project_folder: Folder of the diggit project (defaults to cwd)
        """
        self.options = options
        self.addons = dict(addons or {})
        self.project_folder = Path(project_folder) if project_folder else Path.cwd()

    @classmethod
    def qualified_path(cls) -> str:
        """Fully-qualified location of the class, used to order candidates."""
        return f"{cls.__module__}:{cls.__qualname__}"

    def addon(self, name: str) -> "Addon":
        """Get a required addon by name.

        Raises:
            KeyError: If the addon was not declared in required_addons
        """
        try:
            return self.addons[name]
        except KeyError:
            raise KeyError(f"Addon {name} not available to plugin {self.name}") from None

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"


class Addon(Plugin):
    """Helper shared by the plugins of one session."""

    kind = PluginKind.ADDON


class Analysis(Plugin):
    """Plugin operating on exactly one source.

    The coordinator binds the source and its repository before calling
    run() or clean().
    """

    kind = PluginKind.ANALYSIS

    def __init__(
        self,
        options: Mapping[str, Any],
        addons: Mapping[str, Addon] | None = None,
        project_folder: Path | None = None,
    ) -> None:
        super().__init__(options, addons, project_folder)
        self.source: "Source | None" = None
        self.repository: "Repository | None" = None

    def bind(self, source: "Source", repository: "Repository") -> None:
        """Bind the plugin to a source and its opened repository."""
        self.source = source
        self.repository = repository

    @abstractmethod
    def run(self) -> None:
        """Perform the analysis on the bound source."""

    @abstractmethod
    def clean(self) -> None:
        """Undo the externally visible effects of run(); must be idempotent."""


class Join(Plugin):
    """Plugin operating on a cohort of sources.

    Attributes:
        required_analyses: Analyses every cohort member must have performed
    """

    kind = PluginKind.JOIN
    required_analyses: ClassVar[tuple[str, ...]] = ()

    def __init__(
        self,
        options: Mapping[str, Any],
        addons: Mapping[str, Addon] | None = None,
        project_folder: Path | None = None,
    ) -> None:
        super().__init__(options, addons, project_folder)
        self.sources: list["Source"] = []

    def bind(self, sources: list["Source"]) -> None:
        """Bind the whole cohort to the plugin."""
        self.sources = list(sources)

    @abstractmethod
    def run(self) -> None:
        """Perform the join over the bound cohort."""

    @abstractmethod
    def clean(self) -> None:
        """Undo the cohort-level effects of run(); must be idempotent."""


CAPABILITIES: dict[PluginKind, type[Plugin]] = {
    PluginKind.ADDON: Addon,
    PluginKind.ANALYSIS: Analysis,
    PluginKind.JOIN: Join,
}
