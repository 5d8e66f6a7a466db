"""
Environment Variable Handling.

Loads ``.env`` files into the process environment using python-dotenv so
that ``${VAR}`` references and ``DIGGIT_*`` overrides can be resolved.

Call ensure_dotenv_loaded() early in application startup, before
settings are loaded.
"""

import os
from pathlib import Path

from dotenv import load_dotenv

# Track whether dotenv has been loaded
_dotenv_loaded: bool = False


def ensure_dotenv_loaded(env_file: str = ".env", folder: Path | None = None) -> bool:
    """Ensure a .env file is loaded into os.environ.

    Args:
        env_file: Name or path of the .env file
        folder: Project folder searched after the current directory

    Returns:
        True if a .env file was found and loaded, False otherwise
    """
    global _dotenv_loaded

    if _dotenv_loaded:
        return True

    env_paths = [Path(env_file), Path.cwd() / env_file]
    if folder is not None:
        env_paths.append(Path(folder) / env_file)

    _dotenv_loaded = True
    for env_path in env_paths:
        if env_path.exists():
            # Variables already set in the real environment win
            load_dotenv(env_path, override=False)
            return True

    return False


def get_env(name: str, default: str | None = None) -> str | None:
    """Get an environment variable after making sure .env is loaded."""
    ensure_dotenv_loaded()
    return os.environ.get(name, default)


def reset_environment() -> None:
    """Forget that .env was loaded (mainly for testing)."""
    global _dotenv_loaded
    _dotenv_loaded = False
