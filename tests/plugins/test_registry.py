"""Tests for plugin registration and resolution.

Tests cover:
- Name derivation and capability conformance
- Precedence across sources and the resolution cache
- Ambiguity handling
- Directory based plugin sources
"""

import pickle
import sys
import textwrap
from pathlib import Path

import pytest

from diggit.errors import ConfigurationError, InvalidPluginKindError, PluginNotFoundError
from diggit.models import PluginKind
from diggit.plugins import (
    AmbiguousPluginWarning,
    Analysis,
    BundledPluginSource,
    DirectoryPluginSource,
    Join,
    PluginRegistry,
    PluginSource,
    conforms,
)
from diggit.plugins.builtin import FileCount, FileCountSummary, Out


class LineCount(Analysis):
    def run(self):
        pass

    def clean(self):
        pass


class OtherLineCount(Analysis):
    name = "line_count"

    def run(self):
        pass

    def clean(self):
        pass


class HalfDone(Analysis):
    def run(self):
        pass


class Churn(Join):
    required_analyses = ("line_count",)

    def run(self):
        pass

    def clean(self):
        pass


class BrokenJoin(Join):
    required_analyses = "line_count"

    def run(self):
        pass

    def clean(self):
        pass


class SpySource(PluginSource):
    """Plugin source counting lookups."""

    def __init__(self, name: str, *plugins) -> None:
        super().__init__(name)
        self.lookups = 0
        for plugin_cls in plugins:
            self.register(plugin_cls)

    def candidates(self, name, kind):
        self.lookups += 1
        return super().candidates(name, kind)


class TestPluginNames:
    """Tests for name derivation."""

    def test_name_from_class_name(self):
        assert LineCount.name == "line_count"
        assert FileCountSummary.name == "file_count_summary"

    def test_explicit_name_wins(self):
        assert OtherLineCount.name == "line_count"

    def test_kind_from_base(self):
        assert LineCount.kind is PluginKind.ANALYSIS
        assert Churn.kind is PluginKind.JOIN
        assert Out.kind is PluginKind.ADDON


class TestConforms:
    """Tests for the capability check."""

    def test_complete_analysis(self):
        assert conforms(LineCount, PluginKind.ANALYSIS)

    def test_wrong_kind(self):
        """Test an analysis never satisfies a join lookup."""
        assert not conforms(LineCount, PluginKind.JOIN)
        assert not conforms(Churn, PluginKind.ANALYSIS)

    def test_abstract_class(self):
        assert not conforms(HalfDone, PluginKind.ANALYSIS)

    def test_join_needs_sequence_of_analyses(self):
        assert conforms(Churn, PluginKind.JOIN)
        assert not conforms(BrokenJoin, PluginKind.JOIN)

    def test_non_class(self):
        assert not conforms(object(), PluginKind.ADDON)


class TestPluginSource:
    """Tests for PluginSource."""

    def test_register_as_decorator(self):
        source = PluginSource("local")

        @source.register
        class Sloc(Analysis):
            def run(self):
                pass

            def clean(self):
                pass

        assert Sloc.name == "sloc"
        assert source.plugins() == [Sloc]

    def test_register_twice_is_noop(self):
        source = PluginSource("local")
        source.register(LineCount)
        source.register(LineCount)
        assert source.plugins() == [LineCount]

    def test_register_rejects_non_plugin(self):
        with pytest.raises(TypeError):
            PluginSource("local").register(dict)

    def test_candidates_filter_by_kind(self):
        source = SpySource("local", LineCount, Churn)
        assert source.candidates("line_count", PluginKind.ANALYSIS) == [LineCount]
        assert source.candidates("line_count", PluginKind.JOIN) == []

    def test_candidates_accept_camel_case(self):
        source = SpySource("local", LineCount)
        assert source.candidates("LineCount", PluginKind.ANALYSIS) == [LineCount]


class TestPluginRegistry:
    """Tests for PluginRegistry.resolve()."""

    def test_resolve(self):
        registry = PluginRegistry([SpySource("local", LineCount)])
        assert registry.resolve("line_count", PluginKind.ANALYSIS) is LineCount

    def test_resolve_accepts_kind_string(self):
        registry = PluginRegistry([SpySource("local", Churn)])
        assert registry.resolve("churn", "join") is Churn

    def test_higher_source_wins(self):
        """Test the first source with a match shadows the others."""
        high = SpySource("project", OtherLineCount)
        low = SpySource("home", LineCount)
        registry = PluginRegistry([high, low])

        assert registry.resolve("line_count", PluginKind.ANALYSIS) is OtherLineCount
        assert low.lookups == 0

    def test_falls_through_to_lower_source(self):
        high = SpySource("project", Churn)
        low = SpySource("home", LineCount)
        registry = PluginRegistry([high, low])

        assert registry.resolve("line_count", PluginKind.ANALYSIS) is LineCount
        assert high.lookups == 1

    def test_resolution_is_cached(self):
        """Test later registrations do not change a cached answer."""
        low = SpySource("home", LineCount)
        high = SpySource("project")
        registry = PluginRegistry([high, low])

        first = registry.resolve("line_count", PluginKind.ANALYSIS)
        high.register(OtherLineCount)
        assert registry.is_cached("line_count", PluginKind.ANALYSIS)
        assert registry.resolve("line_count", PluginKind.ANALYSIS) is first
        assert low.lookups == 1

        registry.clear_cache()
        assert registry.resolve("line_count", PluginKind.ANALYSIS) is OtherLineCount

    def test_cache_is_per_kind(self):
        registry = PluginRegistry([SpySource("local", LineCount)])
        registry.resolve("line_count", PluginKind.ANALYSIS)
        assert not registry.is_cached("line_count", PluginKind.JOIN)
        with pytest.raises(PluginNotFoundError):
            registry.resolve("line_count", PluginKind.JOIN)

    def test_not_found(self):
        registry = PluginRegistry([SpySource("local", LineCount)])
        with pytest.raises(PluginNotFoundError) as exc_info:
            registry.resolve("missing", PluginKind.ANALYSIS)
        assert str(exc_info.value) == "Plugin missing (analysis) not found"

    def test_invalid_kind_fails_before_lookup(self):
        source = SpySource("local", LineCount)
        registry = PluginRegistry([source])
        with pytest.raises(InvalidPluginKindError):
            registry.resolve("line_count", "widget")
        assert source.lookups == 0

    def test_ambiguous_name_warns_and_picks_first_path(self):
        """Test two matches in one source resolve deterministically."""
        source = SpySource("local", OtherLineCount, LineCount)
        registry = PluginRegistry([source])
        with pytest.warns(AmbiguousPluginWarning):
            resolved = registry.resolve("line_count", PluginKind.ANALYSIS)
        assert resolved is LineCount

    def test_bundled_plugins(self):
        registry = PluginRegistry([BundledPluginSource()])
        assert registry.resolve("file_count", PluginKind.ANALYSIS) is FileCount
        assert registry.resolve("file_count_summary", PluginKind.JOIN) is FileCountSummary
        assert registry.resolve("out", PluginKind.ADDON) is Out


PLUGIN_FILE = textwrap.dedent(
    """
    from diggit.plugins import Analysis


    class Sloc(Analysis):
        def run(self):
            pass

        def clean(self):
            pass


    def register(source):
        source.register(Sloc)
    """
)


class TestDirectoryPluginSource:
    """Tests for plugins declared as files in a plugin folder."""

    def write_plugin(self, root: Path, kind: str, filename: str, content: str) -> None:
        folder = root / kind
        folder.mkdir(parents=True, exist_ok=True)
        (folder / filename).write_text(content, encoding="utf-8")

    def test_loads_register_hook(self, tmp_path):
        self.write_plugin(tmp_path, "analysis", "sloc.py", PLUGIN_FILE)
        source = DirectoryPluginSource("project", tmp_path)
        plugins = source.plugins()
        assert [p.name for p in plugins] == ["sloc"]
        assert conforms(plugins[0], PluginKind.ANALYSIS)

    def test_missing_folder_is_empty(self, tmp_path):
        assert DirectoryPluginSource("home", tmp_path / "nowhere").plugins() == []

    def test_file_without_hook_is_skipped(self, tmp_path):
        self.write_plugin(tmp_path, "analysis", "helpers.py", "VALUE = 1\n")
        assert DirectoryPluginSource("project", tmp_path).plugins() == []

    def test_broken_file_is_configuration_error(self, tmp_path):
        self.write_plugin(tmp_path, "join", "broken.py", "def oops(:\n")
        with pytest.raises(ConfigurationError):
            DirectoryPluginSource("project", tmp_path).plugins()

    def test_project_folder_shadows_bundled(self, tmp_path):
        """Test a project plugin takes precedence over a bundled one."""
        project = tmp_path / "study"
        plugin = PLUGIN_FILE.replace("class Sloc", "class FileCount").replace(
            "register(Sloc)", "register(FileCount)"
        )
        self.write_plugin(project / ".dgit" / "plugins", "analysis", "fc.py", plugin)

        registry = PluginRegistry.for_project(project, home=tmp_path / "home")
        resolved = registry.resolve("file_count", PluginKind.ANALYSIS)
        assert resolved is not FileCount
        assert resolved.name == "file_count"

    def test_for_project_source_order(self, tmp_path):
        registry = PluginRegistry.for_project(tmp_path, home=tmp_path / "home")
        assert [s.name for s in registry.sources] == ["project", "home", "bundled"]


DATACLASS_PLUGIN_FILE = textwrap.dedent(
    """
    from __future__ import annotations

    from dataclasses import dataclass

    from diggit.plugins import Analysis


    @dataclass
    class Churn:
        path: str
        commits: int


    class ChurnCount(Analysis):
        def run(self):
            pass

        def clean(self):
            pass


    def register(source):
        source.register(ChurnCount)
    """
)


class TestDirectoryPluginModules:
    """Tests for how plugin files are imported."""

    @pytest.fixture(autouse=True)
    def forget_plugin_modules(self):
        yield
        for name in [n for n in sys.modules if n.startswith("diggit_plugins_")]:
            del sys.modules[name]

    def write_plugin(self, root: Path, filename: str, content: str) -> None:
        folder = root / "analysis"
        folder.mkdir(parents=True, exist_ok=True)
        (folder / filename).write_text(content, encoding="utf-8")

    def test_module_is_importable_by_name(self, tmp_path):
        """Test dataclasses and pickle can find the plugin module."""
        self.write_plugin(tmp_path, "churn.py", DATACLASS_PLUGIN_FILE)
        (plugin_cls,) = DirectoryPluginSource("project", tmp_path).plugins()

        module = sys.modules[plugin_cls.__module__]
        churn = module.Churn("src/a.py", 3)
        assert pickle.loads(pickle.dumps(churn)) == churn

    def test_failed_import_is_not_registered(self, tmp_path):
        self.write_plugin(tmp_path, "explodes.py", "raise RuntimeError('boom')\n")
        with pytest.raises(ConfigurationError):
            DirectoryPluginSource("project", tmp_path).plugins()
        assert not [n for n in sys.modules if n.endswith("_analysis_explodes")]

    def test_failed_load_leaves_source_empty(self, tmp_path):
        """Test a broken file fails every lookup instead of hiding its siblings."""
        self.write_plugin(tmp_path, "a_sloc.py", PLUGIN_FILE)
        self.write_plugin(tmp_path, "b_broken.py", "def oops(:\n")
        source = DirectoryPluginSource("project", tmp_path)

        for _ in range(2):
            with pytest.raises(ConfigurationError):
                source.plugins()

        self.write_plugin(tmp_path, "b_broken.py", "def register(source):\n    pass\n")
        assert [p.name for p in source.plugins()] == ["sloc"]
