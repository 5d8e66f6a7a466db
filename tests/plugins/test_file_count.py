"""Tests for the bundled out addon and file count plugins."""

import json
from pathlib import Path

import pytest

from diggit.journal import Source
from diggit.models import SourceEntry, SourceState
from diggit.plugins.builtin import FileCount, FileCountSummary, Out
from diggit.plugins.builtin.file_count import count_files
from diggit.vcs import Repository

from conftest import URL_X, URL_Y


def make_tree(root: Path, files: list[str]) -> None:
    for name in files:
        path = root / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text("x", encoding="utf-8")


@pytest.fixture
def out(tmp_path) -> Out:
    return Out({}, project_folder=tmp_path)


def cloned_source(tmp_path: Path, url: str, files: list[str]) -> Source:
    source = Source(url, tmp_path / "sources" / url.rsplit("/", 1)[-1])
    source.entry = SourceEntry(state=SourceState.CLONED)
    make_tree(source.folder, files)
    return source


class TestOut:
    """Tests for the Out addon."""

    def test_default_folder(self, out, tmp_path):
        assert out.folder == tmp_path / "out"
        assert out.folder.is_dir()

    def test_relative_option(self, tmp_path):
        addon = Out({"out": "results"}, project_folder=tmp_path)
        assert addon.folder == tmp_path / "results"

    def test_absolute_option(self, tmp_path):
        target = tmp_path / "elsewhere"
        addon = Out({"out": str(target)}, project_folder=tmp_path / "study")
        assert addon.folder == target

    def test_path_creates_parent(self, out):
        path = out.path("a", "b.json")
        assert path.parent.is_dir()
        assert not path.exists()

    def test_remove(self, out):
        out.path("a", "b.json").write_text("{}", encoding="utf-8")
        out.remove("a", "b.json")
        assert not (out.folder / "a" / "b.json").exists()
        out.remove("a", "b.json")
        out.remove("a")
        assert not (out.folder / "a").exists()


class TestCountFiles:
    def test_counts_by_suffix(self, tmp_path):
        make_tree(tmp_path, ["a.py", "b.PY", "doc/readme.md", "Makefile"])
        assert count_files(tmp_path) == {"": 1, ".md": 1, ".py": 2}

    def test_ignores_vcs_folders(self, tmp_path):
        make_tree(tmp_path, ["a.py", ".git/config", ".git/objects/ab.pack"])
        assert count_files(tmp_path) == {".py": 1}


class TestFileCountPlugins:
    """Tests for FileCount and FileCountSummary."""

    def run_analysis(self, source: Source, out: Out) -> FileCount:
        analysis = FileCount({}, {"out": out}, project_folder=out.project_folder)
        analysis.bind(source, Repository(source.folder))
        analysis.run()
        return analysis

    def test_analysis_writes_result(self, tmp_path, out):
        source = cloned_source(tmp_path, URL_X, ["a.py", "b.py", "c.txt"])
        self.run_analysis(source, out)

        result = json.loads((out.folder / "file_count" / f"{source.id}.json").read_text())
        assert result == {"url": URL_X, "counts": {".py": 2, ".txt": 1}}

    def test_analysis_clean_is_idempotent(self, tmp_path, out):
        source = cloned_source(tmp_path, URL_X, ["a.py"])
        analysis = self.run_analysis(source, out)
        analysis.clean()
        analysis.clean()
        assert not (out.folder / "file_count" / f"{source.id}.json").exists()

    def test_summary_over_cohort(self, tmp_path, out):
        x = cloned_source(tmp_path, URL_X, ["a.py", "b.py"])
        y = cloned_source(tmp_path, URL_Y, ["c.py", "d.md"])
        self.run_analysis(x, out)
        self.run_analysis(y, out)

        summary = FileCountSummary({}, {"out": out}, project_folder=out.project_folder)
        summary.bind([x, y])
        summary.run()

        result = json.loads((out.folder / "file_count_summary.json").read_text())
        assert result == {
            "sources": [URL_X, URL_Y],
            "counts": {".md": 1, ".py": 3},
            "total": 4,
        }

        summary.clean()
        assert not (out.folder / "file_count_summary.json").exists()

    def test_summary_requires_file_count(self):
        assert FileCountSummary.required_analyses == ("file_count",)
