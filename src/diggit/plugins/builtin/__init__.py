"""Plugins bundled with diggit."""

from diggit.plugins.builtin.file_count import FileCount, FileCountSummary
from diggit.plugins.builtin.out import Out

__all__ = ["Out", "FileCount", "FileCountSummary", "register"]


def register(source) -> None:
    """Register the bundled plugins into a plugin source."""
    source.register(Out)
    source.register(FileCount)
    source.register(FileCountSummary)
