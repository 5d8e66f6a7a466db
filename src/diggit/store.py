"""
Project Store.

Owns the on-disk layout of a diggit project:

    <project>/.dgit/sources        newline-delimited urls, in registration order
    <project>/.dgit/journal        JSON detail blob {sources, workspace}
    <project>/.dgit/config         YAML roster {analyses, joins}
    <project>/.dgit/options        YAML options passed verbatim to plugins
    <project>/.dgit/settings.yaml  optional tool settings
    <project>/.dgit/plugins/       project-local plugins
    <project>/sources/<id>/        clones

All writes use a temp file + rename so a crash never leaves a partially
written file behind.
"""

import json
import logging
import os
from pathlib import Path
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from diggit.config.loader import dump_yaml_document, load_yaml_document, substitute_env_vars
from diggit.errors import ConfigurationError
from diggit.models import ConfigEntry, JournalDocument, PluginKind

if TYPE_CHECKING:
    from diggit.journal import Journal

logger = logging.getLogger(__name__)

DGIT_FOLDER = ".dgit"
DGIT_SOURCES = "sources"
DGIT_JOURNAL = "journal"
DGIT_CONFIG = "config"
DGIT_OPTIONS = "options"
DGIT_SETTINGS = "settings.yaml"
DGIT_PLUGINS = "plugins"
SOURCES_FOLDER = "sources"


class ProjectStore:
    """Reads and writes the persisted state of one project folder.

    Usage:
        ProjectStore.init_dir(Path("my-study"))
        store = ProjectStore(Path("my-study"))
        urls, document = store.load_journal()
    """

    def __init__(self, folder: str | Path = ".") -> None:
        """Open an existing project folder.

        Raises:
            ConfigurationError: If the folder is not a diggit folder
        """
        self._folder = Path(folder).resolve()
        if not self.dgit_folder.is_dir():
            raise ConfigurationError(f"Folder {self._folder} is not a diggit folder")

    @classmethod
    def init_dir(cls, folder: str | Path = ".") -> "ProjectStore":
        """Turn a folder into a diggit folder with empty state.

        Raises:
            ConfigurationError: If the folder already is a diggit folder
        """
        folder = Path(folder)
        dgit_folder = folder / DGIT_FOLDER
        if dgit_folder.exists():
            raise ConfigurationError(f"Folder {folder.resolve()} is already a diggit folder")

        dgit_folder.mkdir(parents=True)
        (folder / SOURCES_FOLDER).mkdir(exist_ok=True)
        for kind in PluginKind:
            (dgit_folder / DGIT_PLUGINS / kind.value).mkdir(parents=True, exist_ok=True)

        store = cls(folder)
        store.save_sources([])
        store.save_journal_document(JournalDocument())
        store.save_config(ConfigEntry())
        store.save_options({})
        logger.info(f"Initialized diggit folder {store.folder}")
        return store

    # -- paths --------------------------------------------------------------

    @property
    def folder(self) -> Path:
        return self._folder

    @property
    def dgit_folder(self) -> Path:
        return self._folder / DGIT_FOLDER

    @property
    def sources_folder(self) -> Path:
        return self._folder / SOURCES_FOLDER

    @property
    def settings_path(self) -> Path:
        return self.config_path(DGIT_SETTINGS)

    def config_path(self, name: str) -> Path:
        """Path of a file inside the ``.dgit`` folder."""
        return self.dgit_folder / name

    def file_path(self, name: str) -> Path:
        """Path of a file inside the project folder."""
        return self._folder / name

    # -- journal ------------------------------------------------------------

    def load_sources(self) -> list[str]:
        """Read the url list, ignoring blank lines."""
        path = self.config_path(DGIT_SOURCES)
        if not path.exists():
            return []
        lines = path.read_text(encoding="utf-8").splitlines()
        return [line.strip() for line in lines if line.strip()]

    def save_sources(self, urls: list[str]) -> None:
        content = "".join(f"{url}\n" for url in urls)
        self._atomic_write(self.config_path(DGIT_SOURCES), content)

    def load_journal_document(self) -> JournalDocument:
        """Read the journal detail blob.

        A missing or empty file yields an empty document.

        Raises:
            ConfigurationError: If the document is malformed
        """
        path = self.config_path(DGIT_JOURNAL)
        if not path.exists():
            return JournalDocument()
        text = path.read_text(encoding="utf-8").strip()
        if not text:
            return JournalDocument()
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Invalid journal: {e}", path=path)
        if not isinstance(data, dict):
            raise ConfigurationError("Journal must be a JSON object", path=path)
        try:
            return JournalDocument.model_validate(data)
        except ValidationError as e:
            raise ConfigurationError(
                f"Journal validation failed: {e.error_count()} errors",
                errors=e.errors(),
                path=path,
            )

    def save_journal_document(self, document: JournalDocument) -> None:
        content = document.model_dump_json(indent=2)
        self._atomic_write(self.config_path(DGIT_JOURNAL), content + "\n")

    def load_journal(self) -> tuple[list[str], JournalDocument]:
        """Read the url list and the detail blob."""
        return self.load_sources(), self.load_journal_document()

    def save_journal(self, journal: "Journal") -> None:
        """Persist a Journal: url list first, then the detail blob."""
        self.save_sources(journal.urls)
        self.save_journal_document(journal.to_document())

    # -- roster -------------------------------------------------------------

    def load_config(self) -> ConfigEntry:
        """Read the plugin roster.

        Raises:
            ConfigurationError: If the roster is malformed
        """
        path = self.config_path(DGIT_CONFIG)
        data = load_yaml_document(path) if path.exists() else None
        if data is None:
            return ConfigEntry()
        if not isinstance(data, dict):
            raise ConfigurationError("Config must be a mapping", path=path)
        try:
            return ConfigEntry.model_validate(data)
        except ValidationError as e:
            raise ConfigurationError(
                f"Config validation failed: {e.error_count()} errors",
                errors=e.errors(),
                path=path,
            )

    def save_config(self, entry: ConfigEntry) -> None:
        self._atomic_write(self.config_path(DGIT_CONFIG), dump_yaml_document(entry.model_dump()))

    # -- options ------------------------------------------------------------

    def load_options(self) -> dict[str, Any]:
        """Read the plugin options, substituting ${VAR} references.

        Raises:
            ConfigurationError: If the options are not a mapping
        """
        path = self.config_path(DGIT_OPTIONS)
        data = load_yaml_document(path) if path.exists() else None
        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigurationError("Options must be a mapping", path=path)
        return substitute_env_vars(data)

    def save_options(self, options: dict[str, Any]) -> None:
        self._atomic_write(self.config_path(DGIT_OPTIONS), dump_yaml_document(options))

    # -- io -----------------------------------------------------------------

    def _atomic_write(self, path: Path, content: str) -> None:
        """Atomically write content to a file.

        Uses tmp file + rename pattern for crash safety.
        """
        tmp_path = path.with_name(path.name + ".tmp")
        try:
            tmp_path.write_text(content, encoding="utf-8")
            os.replace(tmp_path, path)
        except OSError as e:
            tmp_path.unlink(missing_ok=True)
            logger.error(f"Failed to write {path}: {e}")
            raise
