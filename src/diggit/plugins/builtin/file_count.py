"""
File Count Plugins.

FileCount counts the files of each source by extension; FileCountSummary
aggregates those counts over every source that performed FileCount.
Results are written as JSON documents in the ``out`` addon folder:

    out/file_count/<source id>.json
    out/file_count_summary.json
"""

import json
import logging
from collections import Counter
from pathlib import Path

from diggit.plugins.base import Analysis, Join

logger = logging.getLogger(__name__)

RESULT_FOLDER = "file_count"
SUMMARY_FILE = "file_count_summary.json"

# Folders that never hold tracked content
IGNORED_DIRS = {".git", ".hg", ".svn"}


def count_files(root: Path) -> dict[str, int]:
    """Count files below ``root`` by lowercase extension.

    Files without an extension are counted under ``""``.
    """
    counts: Counter[str] = Counter()
    for path in root.rglob("*"):
        if any(part in IGNORED_DIRS for part in path.relative_to(root).parts):
            continue
        if path.is_file():
            counts[path.suffix.lower()] += 1
    return dict(sorted(counts.items()))


class FileCount(Analysis):
    """Counts the files of a source by extension."""

    required_addons = ("out",)

    def _result_name(self) -> str:
        return f"{self.source.id}.json"

    def run(self) -> None:
        counts = count_files(self.repository.path)
        target = self.addon("out").path(RESULT_FOLDER, self._result_name())
        target.write_text(
            json.dumps({"url": self.source.url, "counts": counts}, indent=2),
            encoding="utf-8",
        )
        logger.info(f"Counted {sum(counts.values())} files in {self.source.url}")

    def clean(self) -> None:
        self.addon("out").remove(RESULT_FOLDER, self._result_name())


class FileCountSummary(Join):
    """Sums the per-source file counts over the cohort."""

    required_analyses = ("file_count",)
    required_addons = ("out",)

    def run(self) -> None:
        out = self.addon("out")
        totals: Counter[str] = Counter()
        for source in self.sources:
            result = out.path(RESULT_FOLDER, f"{source.id}.json")
            data = json.loads(result.read_text(encoding="utf-8"))
            totals.update(data["counts"])

        summary = {
            "sources": [s.url for s in self.sources],
            "counts": dict(sorted(totals.items())),
            "total": sum(totals.values()),
        }
        out.path(SUMMARY_FILE).write_text(json.dumps(summary, indent=2), encoding="utf-8")

    def clean(self) -> None:
        self.addon("out").remove(SUMMARY_FILE)
