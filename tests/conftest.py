"""
Diggit Test Configuration and Fixtures

All fixtures work on temporary project folders and never touch the
network: cloning goes through FakeVCS, and the plugins used by the
coordinator tests record their lifecycle calls into a Recorder.

Fixture Categories:
- Projects: initialized diggit folders and sessions on them
- VCS: a fake clone/open collaborator with injectable failures
- Plugins: recording analyses and joins registered in a test source
"""

from pathlib import Path

import pytest

import diggit.config.environment as env_module
from diggit.config.models import DiggitSettings
from diggit.errors import TransportError
from diggit.plugins import Analysis, BundledPluginSource, Join, PluginRegistry, PluginSource
from diggit.session import Session
from diggit.store import ProjectStore
from diggit.vcs import Repository

URL_X = "https://example.org/team/x.git"
URL_Y = "https://example.org/team/y.git"
URL_Z = "https://example.org/team/z.git"


# =============================================================================
# Environment
# =============================================================================


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch):
    """Keep .env files and DIGGIT_* variables out of the tests."""
    monkeypatch.setattr(env_module, "_dotenv_loaded", True)
    for var in (
        "DIGGIT_LOG_LEVEL",
        "DIGGIT_LOG_FILE",
        "DIGGIT_GIT",
        "DIGGIT_CLONE_TIMEOUT",
        "DIGGIT_SKIP_PERFORMED_JOINS",
    ):
        monkeypatch.delenv(var, raising=False)


# =============================================================================
# Fake VCS
# =============================================================================


class FakeVCS:
    """Clone/open collaborator that creates folders instead of fetching.

    Attributes:
        fail_urls: Urls whose clone raises TransportError
        cloned: Urls passed to clone(), in call order
        opened: Folders passed to open(), in call order
    """

    def __init__(self) -> None:
        self.fail_urls: set[str] = set()
        self.cloned: list[str] = []
        self.opened: list[Path] = []

    def clone(self, url: str, folder: Path) -> Repository:
        self.cloned.append(url)
        if url in self.fail_urls:
            raise TransportError(f"git clone failed for {url}", url=url, folder=folder)
        folder.mkdir(parents=True)
        (folder / "README.md").write_text(f"# {url}\n", encoding="utf-8")
        return Repository(folder)

    def open(self, folder: Path) -> Repository:
        self.opened.append(folder)
        if not folder.is_dir():
            raise TransportError(f"No clone at {folder}", folder=folder)
        return Repository(folder)


# =============================================================================
# Recording plugins
# =============================================================================


class Recorder:
    """Collects plugin lifecycle calls and injects failures.

    Events are (plugin, action, target) triples, where target is the
    source url for analyses and the tuple of cohort urls for joins.
    """

    def __init__(self) -> None:
        self.events: list[tuple] = []
        self._failures: dict[tuple, Exception] = {}

    def fail(self, plugin: str, action: str, target=None, error: Exception | None = None) -> None:
        """Make a call raise. ``target=None`` matches every target."""
        self._failures[(plugin, action, target)] = error or RuntimeError(f"{plugin} {action} boom")

    def heal(self) -> None:
        self._failures.clear()

    def record(self, plugin: str, action: str, target) -> None:
        self.events.append((plugin, action, target))
        error = self._failures.get((plugin, action, target)) or self._failures.get(
            (plugin, action, None)
        )
        if error is not None:
            raise error

    def calls(self, plugin: str, action: str) -> list:
        """Targets of the recorded calls of one plugin action."""
        return [t for p, a, t in self.events if p == plugin and a == action]


class RecordingAnalysis(Analysis):
    """Analysis reporting its calls to options["recorder"]."""

    def run(self) -> None:
        self.options["recorder"].record(self.name, "run", self.source.url)

    def clean(self) -> None:
        self.options["recorder"].record(self.name, "clean", self.source.url)


class AlphaAnalysis(RecordingAnalysis):
    name = "alpha"


class BetaAnalysis(RecordingAnalysis):
    name = "beta"


class RecordingJoin(Join):
    """Join reporting its calls to options["recorder"]."""

    def run(self) -> None:
        self.options["recorder"].record(self.name, "run", tuple(s.url for s in self.sources))

    def clean(self) -> None:
        self.options["recorder"].record(self.name, "clean", "workspace")


class AlphaJoin(RecordingJoin):
    name = "alpha_join"
    required_analyses = ("alpha",)


class AlphaBetaJoin(RecordingJoin):
    name = "alpha_beta_join"
    required_analyses = ("alpha", "beta")


# =============================================================================
# Project Fixtures
# =============================================================================


@pytest.fixture
def project_dir(tmp_path: Path) -> Path:
    """An initialized, empty diggit folder."""
    folder = tmp_path / "study"
    ProjectStore.init_dir(folder)
    return folder


@pytest.fixture
def store(project_dir: Path) -> ProjectStore:
    return ProjectStore(project_dir)


@pytest.fixture
def fake_vcs() -> FakeVCS:
    return FakeVCS()


@pytest.fixture
def recorder() -> Recorder:
    return Recorder()


@pytest.fixture
def test_plugins() -> PluginSource:
    """Plugin source holding the recording plugins."""
    source = PluginSource("test")
    for plugin_cls in (AlphaAnalysis, BetaAnalysis, AlphaJoin, AlphaBetaJoin):
        source.register(plugin_cls)
    return source


@pytest.fixture
def registry(test_plugins: PluginSource) -> PluginRegistry:
    return PluginRegistry([test_plugins, BundledPluginSource()])


@pytest.fixture
def open_session(store, registry, fake_vcs, recorder):
    """Factory opening a fresh Session on the project, as a new invocation would."""

    def _open(**settings) -> Session:
        session = Session(
            store,
            settings=DiggitSettings(**settings),
            registry=registry,
            vcs=fake_vcs,
        )
        session.options["recorder"] = recorder
        return session

    return _open


@pytest.fixture
def session(open_session) -> Session:
    return open_session()


@pytest.fixture
def populated_session(session: Session) -> Session:
    """Session with sources X and Y, analyses alpha and beta, join alpha_join."""
    session.journal.add_source(URL_X)
    session.journal.add_source(URL_Y)
    session.config.add_analysis("alpha")
    session.config.add_analysis("beta")
    session.config.add_join("alpha_join")
    return session
