"""
Diggit Session.

Explicit per-invocation context. A Session is built once for a project
folder and handed to every component that needs project state; nothing
is kept in module-level globals.
"""

import logging
from pathlib import Path
from typing import Any, Optional, TypeVar

from diggit.config.loader import SettingsLoader
from diggit.config.models import DiggitSettings
from diggit.config.roster import Config
from diggit.journal import Journal
from diggit.models import PluginKind
from diggit.plugins.base import Addon, Plugin
from diggit.plugins.registry import PluginRegistry
from diggit.store import ProjectStore
from diggit.vcs import GitClient

logger = logging.getLogger(__name__)

P = TypeVar("P", bound=Plugin)


class Session:
    """Loaded state of one diggit project.

    Attributes:
        store: On-disk layout of the project
        settings: Tool settings
        options: Plugin options, passed verbatim to plugin constructors
        registry: Plugin registry (its cache lives as long as the session)
        config: Plugin roster
        journal: Source journal
        vcs: Version control collaborator

    Usage:
        session = Session.open(Path("my-study"))
        session.journal.add_source("https://github.com/foo/bar.git")
        session.config.add_analysis("file_count")
    """

    def __init__(
        self,
        store: ProjectStore,
        settings: Optional[DiggitSettings] = None,
        registry: Optional[PluginRegistry] = None,
        vcs: Optional[GitClient] = None,
    ) -> None:
        """Load options, roster and journal of a project.

        Args:
            store: Project store
            settings: Tool settings (loaded from the project if None)
            registry: Plugin registry (project / home / bundled if None)
            vcs: Version control collaborator (git CLI if None)

        Raises:
            ConfigurationError: If persisted state is malformed
            PluginNotFoundError: If the roster names an unknown plugin
        """
        self.store = store
        self.settings = settings or SettingsLoader(store.settings_path).load()
        self.registry = registry or PluginRegistry.for_project(store.folder)
        self.vcs = vcs or GitClient(
            self.settings.git_executable,
            timeout=self.settings.clone_timeout,
        )
        self.options: dict[str, Any] = store.load_options()
        self._addons: dict[str, Addon] = {}

        self.config = Config(
            store.load_config(),
            self.registry,
            saver=lambda config: store.save_config(config.to_entry()),
        )
        urls, document = store.load_journal()
        self.journal = Journal(
            urls,
            document,
            store.sources_folder,
            saver=store.save_journal,
        )
        logger.debug(
            f"Opened {store.folder}: {len(self.journal)} sources, "
            f"{len(self.config.analyses)} analyses, {len(self.config.joins)} joins"
        )

    @classmethod
    def open(cls, folder: str | Path = ".", **kwargs: Any) -> "Session":
        """Open the project in ``folder``."""
        return cls(ProjectStore(folder), **kwargs)

    @property
    def folder(self) -> Path:
        return self.store.folder

    def save_journal(self) -> None:
        self.store.save_journal(self.journal)

    def save_config(self) -> None:
        self.store.save_config(self.config.to_entry())

    def addon(self, name: str) -> Addon:
        """Get the session-wide instance of an addon.

        Raises:
            PluginNotFoundError: If the addon cannot be resolved
        """
        if name not in self._addons:
            addon_cls = self.registry.resolve(name, PluginKind.ADDON)
            self._addons[name] = self.instantiate(addon_cls)
        return self._addons[name]

    def instantiate(self, plugin_cls: type[P]) -> P:
        """Construct a plugin with the options and its required addons."""
        addons = {name: self.addon(name) for name in plugin_cls.required_addons}
        return plugin_cls(self.options, addons, project_folder=self.folder)
