"""
Diggit Plugin System.

Plugins come in three kinds:
- Analysis: runs on one cloned source
- Join: runs on the cohort of sources that performed its required analyses
- Addon: helper shared by the plugins of a session

Usage:
    from diggit.plugins import Analysis, PluginKind, PluginRegistry

    registry = PluginRegistry.for_project(Path("."))
    analysis_cls = registry.resolve("file_count", PluginKind.ANALYSIS)
"""

from diggit.models import PluginKind
from diggit.plugins.base import CAPABILITIES, Addon, Analysis, Join, Plugin
from diggit.plugins.registry import (
    AmbiguousPluginWarning,
    BundledPluginSource,
    DirectoryPluginSource,
    PluginRegistry,
    PluginSource,
    conforms,
)

__all__ = [
    # Capability contract
    "Plugin",
    "Addon",
    "Analysis",
    "Join",
    "PluginKind",
    "CAPABILITIES",
    # Resolution
    "PluginRegistry",
    "PluginSource",
    "DirectoryPluginSource",
    "BundledPluginSource",
    "AmbiguousPluginWarning",
    "conforms",
]
