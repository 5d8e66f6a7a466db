"""
Plugin Registry.

Resolves a (name, kind) pair to a plugin class. Plugins are registered
explicitly into PluginSource collections; the registry consults the
sources in precedence order (project, user home, bundled) and caches
each resolution for the lifetime of the session.

Plugin files found in a plugin directory must expose a module-level
``register(source)`` hook:

    # <project>/.dgit/plugins/analysis/line_count.py
    from diggit.plugins import Analysis

    class LineCount(Analysis):
        def run(self): ...
        def clean(self): ...

    def register(source):
        source.register(LineCount)
"""

import importlib.util
import inspect
import logging
import sys
import warnings
from collections.abc import Iterable
from importlib import metadata as importlib_metadata
from pathlib import Path
from typing import Optional

from diggit.errors import ConfigurationError, InvalidPluginKindError, PluginNotFoundError
from diggit.models import PluginKind
from diggit.naming import underscore
from diggit.plugins.base import CAPABILITIES, Plugin

logger = logging.getLogger(__name__)

DGIT_FOLDER = ".dgit"
PLUGINS_FOLDER = "plugins"
ENTRY_POINT_GROUP = "diggit.plugins"


class AmbiguousPluginWarning(UserWarning):
    """Emitted when several plugins match the same name and kind."""


def _coerce_kind(kind: PluginKind | str) -> PluginKind:
    try:
        return PluginKind(kind)
    except ValueError:
        raise InvalidPluginKindError(kind) from None


def conforms(plugin_cls: type, kind: PluginKind) -> bool:
    """Check that a class implements the capability contract of ``kind``.

    Args:
        plugin_cls: Candidate class
        kind: Requested capability kind

    Returns:
        True if the class can be used as a plugin of that kind
    """
    base = CAPABILITIES[kind]
    if not (isinstance(plugin_cls, type) and issubclass(plugin_cls, base)):
        return False
    if inspect.isabstract(plugin_cls):
        return False
    if not isinstance(getattr(plugin_cls, "name", None), str):
        return False
    if kind is not PluginKind.ADDON:
        for method in ("run", "clean"):
            if not callable(getattr(plugin_cls, method, None)):
                return False
    if kind is PluginKind.JOIN:
        required = getattr(plugin_cls, "required_analyses", None)
        if not isinstance(required, (list, tuple)):
            return False
    return True


class PluginSource:
    """A named collection of explicitly registered plugin classes.

    Usage:
        source = PluginSource("bundled")

        @source.register
        class MyAnalysis(Analysis):
            ...

        source.candidates("my_analysis", PluginKind.ANALYSIS)
    """

    def __init__(self, name: str) -> None:
        self.name = name
        self._plugins: list[type[Plugin]] = []
        self._loaded = False

    def register(self, plugin_cls: type[Plugin]) -> type[Plugin]:
        """Register a plugin class. Usable as a class decorator.

        Raises:
            TypeError: If the object is not a Plugin subclass
        """
        if not (isinstance(plugin_cls, type) and issubclass(plugin_cls, Plugin)):
            raise TypeError(f"{plugin_cls!r} is not a diggit plugin class")
        if plugin_cls not in self._plugins:
            self._plugins.append(plugin_cls)
            logger.debug(f"Registered plugin {plugin_cls.qualified_path()} in {self.name}")
        return plugin_cls

    def plugins(self) -> list[type[Plugin]]:
        """All registered plugin classes."""
        self._ensure_loaded()
        return list(self._plugins)

    def candidates(self, name: str, kind: PluginKind) -> list[type[Plugin]]:
        """List conforming plugins of ``kind`` matching ``name``.

        Candidates are ordered by fully-qualified path so that picking
        the first one is deterministic.
        """
        wanted = underscore(name)
        matches = [
            p
            for p in self.plugins()
            if underscore(p.name) == wanted and conforms(p, kind)
        ]
        return sorted(matches, key=lambda p: p.qualified_path())

    def _ensure_loaded(self) -> None:
        if self._loaded:
            return
        registered = list(self._plugins)
        try:
            self._load()
        except Exception:
            # Drop the partial load so the next lookup retries from scratch
            self._plugins = registered
            raise
        self._loaded = True

    def _load(self) -> None:
        """Populate the source on first use. Plain sources are filled by hand."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.name!r})"


class DirectoryPluginSource(PluginSource):
    """Plugins declared as python files below ``<root>/<kind>/``.

    Each file is imported once and its ``register(source)`` hook called.
    """

    def __init__(self, name: str, root: Path) -> None:
        super().__init__(name)
        self.root = Path(root)

    def _load(self) -> None:
        if not self.root.is_dir():
            return
        for kind in PluginKind:
            kind_dir = self.root / kind.value
            if not kind_dir.is_dir():
                continue
            for path in sorted(kind_dir.glob("*.py")):
                self._load_file(path, kind)

    def _load_file(self, path: Path, kind: PluginKind) -> None:
        module_name = f"diggit_plugins_{underscore(self.name)}_{kind.value}_{path.stem}"
        spec = importlib.util.spec_from_file_location(module_name, path)
        if spec is None or spec.loader is None:
            raise ConfigurationError(f"Cannot import plugin file {path}", path=path)
        module = importlib.util.module_from_spec(spec)
        sys.modules[module_name] = module
        try:
            spec.loader.exec_module(module)
        except Exception as e:
            sys.modules.pop(module_name, None)
            raise ConfigurationError(f"Failed to import plugin file: {e}", path=path) from e

        hook = getattr(module, "register", None)
        if not callable(hook):
            logger.warning(f"Plugin file {path} has no register() hook, skipping")
            return
        hook(self)


class BundledPluginSource(PluginSource):
    """Plugins shipped with diggit plus those exposed through entry points.

    Entry points in the ``diggit.plugins`` group may reference either a
    plugin class or a ``register(source)`` callable.
    """

    def __init__(self, name: str = "bundled", group: str = ENTRY_POINT_GROUP) -> None:
        super().__init__(name)
        self._group = group

    def _load(self) -> None:
        from diggit.plugins.builtin import register

        register(self)

        for entry_point in importlib_metadata.entry_points(group=self._group):
            try:
                target = entry_point.load()
            except Exception as e:
                raise ConfigurationError(
                    f"Failed to load plugin entry point {entry_point.name}: {e}"
                ) from e
            if isinstance(target, type) and issubclass(target, Plugin):
                self.register(target)
            elif callable(target):
                target(self)
            else:
                logger.warning(f"Ignoring entry point {entry_point.name}: not a plugin")


class PluginRegistry:
    """Resolves plugin names to classes across prioritized sources.

    Resolution order:
    1. Session cache (stable for the registry lifetime)
    2. The first source, in precedence order, that has at least one
       matching candidate; lower-precedence sources are not consulted

    Usage:
        registry = PluginRegistry.for_project(Path("."))
        plugin_cls = registry.resolve("file_count", PluginKind.ANALYSIS)
    """

    def __init__(self, sources: Iterable[PluginSource]) -> None:
        """Initialize the registry.

        Args:
            sources: Plugin sources, highest precedence first
        """
        self._sources = list(sources)
        self._cache: dict[tuple[PluginKind, str], type[Plugin]] = {}

    @classmethod
    def for_project(
        cls,
        project_folder: Path,
        home: Optional[Path] = None,
    ) -> "PluginRegistry":
        """Build the standard project / user home / bundled registry.

        Args:
            project_folder: Folder containing the ``.dgit`` folder
            home: Home directory (defaults to the current user's)

        Returns:
            Configured PluginRegistry
        """
        home = Path.home() if home is None else Path(home)
        return cls(
            [
                DirectoryPluginSource(
                    "project", Path(project_folder) / DGIT_FOLDER / PLUGINS_FOLDER
                ),
                DirectoryPluginSource("home", home / DGIT_FOLDER / PLUGINS_FOLDER),
                BundledPluginSource(),
            ]
        )

    @property
    def sources(self) -> list[PluginSource]:
        """Plugin sources, highest precedence first."""
        return list(self._sources)

    def resolve(self, name: str, kind: PluginKind | str) -> type[Plugin]:
        """Resolve a plugin class.

        Args:
            name: Plugin name (snake_case or CamelCase)
            kind: Capability kind

        Returns:
            The plugin class

        Raises:
            InvalidPluginKindError: If ``kind`` is not a known kind
            PluginNotFoundError: If no source provides the plugin
        """
        kind = _coerce_kind(kind)
        key = (kind, name)
        if key in self._cache:
            return self._cache[key]

        for source in self._sources:
            candidates = source.candidates(name, kind)
            if not candidates:
                continue
            if len(candidates) > 1:
                paths = ", ".join(c.qualified_path() for c in candidates)
                message = (
                    f"Plugin {name} ({kind.value}) is ambiguous in {source.name}: "
                    f"{paths}; using {candidates[0].qualified_path()}"
                )
                logger.warning(message)
                warnings.warn(message, AmbiguousPluginWarning, stacklevel=2)
            plugin_cls = candidates[0]
            logger.debug(f"Resolved {name} ({kind.value}) to {plugin_cls.qualified_path()}")
            self._cache[key] = plugin_cls
            return plugin_cls

        raise PluginNotFoundError(name, kind.value)

    def is_cached(self, name: str, kind: PluginKind | str) -> bool:
        """Check whether a resolution is cached."""
        return (_coerce_kind(kind), name) in self._cache

    def clear_cache(self) -> None:
        """Forget all resolutions (mainly for testing)."""
        self._cache.clear()

