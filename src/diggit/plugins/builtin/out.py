"""
Output Folder Addon.

Gives plugins a per-project folder to write their results into. The
folder is taken from the ``out`` option, relative to the project folder
when not absolute, and defaults to ``<project>/out``.
"""

import logging
import shutil
from pathlib import Path

from diggit.plugins.base import Addon

logger = logging.getLogger(__name__)


class Out(Addon):
    """Shared output folder."""

    def __init__(self, options, addons=None, project_folder=None) -> None:
        super().__init__(options, addons, project_folder)
        out = Path(str(options.get("out", "out")))
        self._folder = out if out.is_absolute() else self.project_folder / out
        self._folder.mkdir(parents=True, exist_ok=True)

    @property
    def folder(self) -> Path:
        """Root of the output folder."""
        return self._folder

    def path(self, *parts: str) -> Path:
        """Return a path below the output folder, creating its parent."""
        target = self._folder.joinpath(*parts)
        target.parent.mkdir(parents=True, exist_ok=True)
        return target

    def remove(self, *parts: str) -> None:
        """Delete a file or folder below the output folder if present."""
        target = self._folder.joinpath(*parts)
        if target.is_dir():
            shutil.rmtree(target)
        elif target.exists():
            target.unlink()
        else:
            return
        logger.debug(f"Removed {target}")
