"""
Plugin Roster.

Ordered, name-deduplicated lists of the analyses and joins enabled in a
project. Every name is resolved through the plugin registry before it is
accepted, so the roster never references an unresolvable plugin.
"""

import logging
from collections.abc import Callable
from typing import Optional

from diggit.errors import PluginNotFoundError
from diggit.models import ConfigEntry, PluginKind
from diggit.naming import underscore
from diggit.plugins.base import Analysis, Join, Plugin
from diggit.plugins.registry import PluginRegistry

logger = logging.getLogger(__name__)

ConfigSaver = Callable[["Config"], None]


class Config:
    """Analysis and join rosters of a project.

    Usage:
        config = Config(ConfigEntry(analyses=["file_count"]), registry)
        config.add_join("file_count_summary")
        for analysis_cls in config.get_analyses():
            ...
    """

    def __init__(
        self,
        entry: ConfigEntry,
        registry: PluginRegistry,
        saver: Optional[ConfigSaver] = None,
    ) -> None:
        """Build the rosters from persisted names.

        Args:
            entry: Persisted roster
            registry: Registry used to resolve plugin names
            saver: Callback persisting the roster

        Raises:
            PluginNotFoundError: If a persisted name cannot be resolved
        """
        self._registry = registry
        self._saver = saver
        self._analyses: list[type[Analysis]] = []
        self._joins: list[type[Join]] = []
        for name in entry.analyses:
            self._load(self._analyses, name, PluginKind.ANALYSIS)
        for name in entry.joins:
            self._load(self._joins, name, PluginKind.JOIN)

    def _load(self, roster: list, name: str, kind: PluginKind) -> bool:
        plugin_cls = self._registry.resolve(name, kind)
        if any(p.name == plugin_cls.name for p in roster):
            return False
        roster.append(plugin_cls)
        return True

    def save(self) -> None:
        """Persist the roster through the save callback."""
        if self._saver is not None:
            self._saver(self)

    @property
    def analyses(self) -> list[type[Analysis]]:
        return list(self._analyses)

    @property
    def joins(self) -> list[type[Join]]:
        return list(self._joins)

    def add_analysis(self, name: str) -> type[Analysis]:
        """Enable an analysis and persist.

        Raises:
            PluginNotFoundError: If the analysis cannot be resolved
        """
        if self._load(self._analyses, name, PluginKind.ANALYSIS):
            logger.info(f"Enabled analysis {name}")
        self.save()
        return self._find(self._analyses, name, PluginKind.ANALYSIS)

    def del_analysis(self, name: str) -> None:
        """Disable an analysis and persist. Unknown names are ignored."""
        self._analyses = [a for a in self._analyses if underscore(a.name) != underscore(name)]
        self.save()

    def get_analyses(self, *names: str) -> list[type[Analysis]]:
        """Enabled analyses in roster order, filtered by ``names`` if given.

        Raises:
            PluginNotFoundError: If a requested name is not enabled
        """
        return self._select(self._analyses, names, PluginKind.ANALYSIS)

    def add_join(self, name: str) -> type[Join]:
        """Enable a join and persist.

        Raises:
            PluginNotFoundError: If the join cannot be resolved
        """
        if self._load(self._joins, name, PluginKind.JOIN):
            logger.info(f"Enabled join {name}")
        self.save()
        return self._find(self._joins, name, PluginKind.JOIN)

    def del_join(self, name: str) -> None:
        """Disable a join and persist. Unknown names are ignored."""
        self._joins = [j for j in self._joins if underscore(j.name) != underscore(name)]
        self.save()

    def get_joins(self, *names: str) -> list[type[Join]]:
        """Enabled joins in roster order, filtered by ``names`` if given.

        Raises:
            PluginNotFoundError: If a requested name is not enabled
        """
        return self._select(self._joins, names, PluginKind.JOIN)

    def _find(self, roster: list, name: str, kind: PluginKind) -> type[Plugin]:
        plugin_cls = self._registry.resolve(name, kind)
        return next(p for p in roster if p.name == plugin_cls.name)

    @staticmethod
    def _select(roster: list, names: tuple[str, ...], kind: PluginKind) -> list:
        if not names:
            return list(roster)
        enabled = {underscore(p.name) for p in roster}
        wanted = set()
        for name in names:
            if underscore(name) not in enabled:
                raise PluginNotFoundError(name, kind.value)
            wanted.add(underscore(name))
        return [p for p in roster if underscore(p.name) in wanted]

    def to_entry(self) -> ConfigEntry:
        """Build the persisted form (names only)."""
        return ConfigEntry(
            analyses=[a.name for a in self._analyses],
            joins=[j.name for j in self._joins],
        )
