"""
Version Control Collaborator.

Thin wrapper around the ``git`` executable used to fetch sources and
open existing local clones. Failures surface as TransportError.
"""

import logging
import subprocess
from pathlib import Path

from diggit.errors import TransportError

logger = logging.getLogger(__name__)


class Repository:
    """Handle on a local clone.

    Attributes:
        path: Working tree of the clone
    """

    def __init__(self, path: Path, git_executable: str = "git") -> None:
        self.path = Path(path)
        self._git = git_executable

    def git(self, *args: str, timeout: int = 600) -> str:
        """Run a git command inside the clone and return its stdout.

        Raises:
            TransportError: If the command cannot be run or exits non-zero
        """
        cmd = [self._git, "-C", str(self.path), *args]
        try:
            result = subprocess.run(cmd, text=True, capture_output=True, timeout=timeout)
        except (OSError, subprocess.SubprocessError) as e:
            raise TransportError(f"Could not run {' '.join(cmd)}: {e}", folder=self.path)
        if result.returncode != 0:
            raise TransportError(
                f"git {' '.join(args)} failed in {self.path}",
                folder=self.path,
                stderr=result.stderr.strip(),
            )
        return result.stdout

    def head(self) -> str:
        """Return the commit id checked out in the clone."""
        return self.git("rev-parse", "HEAD").strip()

    def __repr__(self) -> str:
        return f"Repository({str(self.path)!r})"


class GitClient:
    """Clones and opens repositories with the git command line.

    Usage:
        client = GitClient()
        repo = client.clone("https://github.com/foo/bar.git", Path("sources/bar"))
        repo = client.open(Path("sources/bar"))
    """

    def __init__(self, git_executable: str = "git", timeout: int = 3600) -> None:
        """Initialize the client.

        Args:
            git_executable: Name or path of the git binary
            timeout: Maximum seconds a clone may take
        """
        self._git = git_executable
        self._timeout = timeout

    def clone(self, url: str, folder: Path) -> Repository:
        """Clone ``url`` into ``folder``.

        Raises:
            TransportError: If git is missing or the clone fails
        """
        folder = Path(folder)
        folder.parent.mkdir(parents=True, exist_ok=True)
        cmd = [self._git, "clone", "--quiet", url, str(folder)]
        logger.info(f"Cloning {url} into {folder}")
        try:
            result = subprocess.run(
                cmd,
                text=True,
                capture_output=True,
                timeout=self._timeout,
            )
        except (OSError, subprocess.SubprocessError) as e:
            raise TransportError(f"Could not run git clone for {url}: {e}", url=url, folder=folder)
        if result.returncode != 0:
            raise TransportError(
                f"git clone failed for {url}: {result.stderr.strip()}",
                url=url,
                folder=folder,
                stderr=result.stderr.strip(),
            )
        return Repository(folder, self._git)

    def open(self, folder: Path) -> Repository:
        """Open an existing clone.

        Raises:
            TransportError: If ``folder`` is not the top of a git working tree
        """
        repo = Repository(Path(folder), self._git)
        if not repo.path.is_dir():
            raise TransportError(f"No clone at {repo.path}", folder=repo.path)
        # git searches parent folders, so a folder nested in another work tree passes rev-parse
        toplevel = Path(repo.git("rev-parse", "--show-toplevel").strip())
        if toplevel.resolve() != repo.path.resolve():
            raise TransportError(
                f"No clone at {repo.path} (inside work tree {toplevel})",
                folder=repo.path,
            )
        return repo
