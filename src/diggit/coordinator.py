"""
Diggit Coordinator.

Drives the three operations of a project:

- clone: fetch every NEW source
- analyze: run, clean or rerun analyses on every CLONED source
- join: run, clean or rerun joins over the cohort of eligible sources

Fatal errors (unknown source index, unknown plugin, invalid kind) are
raised before any state is touched. Failures of a single unit of work
(one clone, one analysis on one source, one join) are recorded on the
source or workspace and the operation carries on with the next unit.
The journal is persisted after every unit.

Mode semantics:

    | mode  | clean when already touched | run when not yet performed |
    |-------|----------------------------|----------------------------|
    | run   | no                         | yes                        |
    | clean | yes                        | no                         |
    | rerun | yes                        | yes (clean, then run)      |
"""

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Optional

from diggit.errors import ConfigurationError, PluginExecutionError, TransportError
from diggit.journal import Source
from diggit.models import RunMode
from diggit.plugins.base import Analysis, Join, Plugin
from diggit.session import Session

logger = logging.getLogger(__name__)

WORKSPACE = "workspace"


def coerce_mode(mode: RunMode | str) -> RunMode:
    """Convert a mode name into a RunMode.

    Raises:
        ConfigurationError: If the mode is unknown
    """
    try:
        return RunMode(mode)
    except ValueError:
        raise ConfigurationError(f"Unknown run mode: {mode}") from None


@dataclass
class RunReport:
    """Outcome of one coordinator operation.

    Each entry is a (unit, target) pair: the plugin name (or "clone") and
    the source url (or "workspace" for joins).
    """

    operation: str
    mode: RunMode = RunMode.RUN
    performed: list[tuple[str, str]] = field(default_factory=list)
    cleaned: list[tuple[str, str]] = field(default_factory=list)
    failed: list[tuple[str, str]] = field(default_factory=list)
    skipped: list[tuple[str, str]] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        """True if no unit failed."""
        return not self.failed


class Coordinator:
    """Sequences clone, analysis and join work for a session.

    Work is strictly sequential: sources in journal order, and for each
    source analyses in roster order.

    Usage:
        session = Session.open(".")
        coordinator = Coordinator(session)
        coordinator.clone()
        coordinator.analyze(analyses=["file_count"])
        coordinator.join(mode=RunMode.RERUN)
    """

    def __init__(
        self,
        session: Session,
        skip_performed_joins: Optional[bool] = None,
    ) -> None:
        """Initialize the coordinator.

        Args:
            session: Loaded project session
            skip_performed_joins: Skip joins already performed in run mode.
                Defaults to the session settings.
        """
        self._session = session
        if skip_performed_joins is None:
            skip_performed_joins = session.settings.skip_performed_joins
        self._skip_performed_joins = skip_performed_joins

    @property
    def session(self) -> Session:
        return self._session

    # -- clone --------------------------------------------------------------

    def clone(self, *ids: int) -> RunReport:
        """Clone the NEW sources among ``ids`` (all sources if empty).

        Raises:
            SourceIndexError: If an index is out of range
        """
        journal = self._session.journal
        sources = journal.sources_by_ids(*ids)
        report = RunReport("clone")
        try:
            for source in sources:
                if not source.is_new:
                    report.skipped.append(("clone", source.url))
                    continue
                if source.clone(self._session.vcs):
                    logger.info(f"Cloned {source.url}")
                    report.performed.append(("clone", source.url))
                else:
                    report.failed.append(("clone", source.url))
        finally:
            journal.save()
        return report

    # -- analyses -----------------------------------------------------------

    def analyze(
        self,
        ids: Iterable[int] = (),
        analyses: Iterable[str] = (),
        mode: RunMode | str = RunMode.RUN,
    ) -> RunReport:
        """Apply analyses to the CLONED sources among ``ids``.

        Args:
            ids: Source indexes (empty = all sources)
            analyses: Analysis names (empty = every enabled analysis)
            mode: Run mode

        Raises:
            SourceIndexError: If an index is out of range
            PluginNotFoundError: If an analysis is not enabled
            ConfigurationError: If the mode is unknown
        """
        mode = coerce_mode(mode)
        sources = self._session.journal.sources_by_ids(*ids)
        analysis_classes = self._session.config.get_analyses(*analyses)
        self._prepare_addons(analysis_classes)

        report = RunReport("analyze", mode)
        for source in sources:
            if not source.is_cloned:
                continue
            try:
                repository = source.load_repository(self._session.vcs)
            except TransportError as e:
                logger.error(f"Cannot open clone of {source.url}: {e}")
                source.record_error(e)
                self._session.journal.save()
                report.failed.extend((a.name, source.url) for a in analysis_classes)
                continue

            for analysis_cls in analysis_classes:
                analysis = self._session.instantiate(analysis_cls)
                analysis.bind(source, repository)
                self._apply_analysis(source, analysis, mode, report)
        return report

    def _apply_analysis(
        self,
        source: Source,
        analysis: Analysis,
        mode: RunMode,
        report: RunReport,
    ) -> None:
        if mode.cleans and source.has_analysis(analysis.name):
            if not self._clean_analysis(source, analysis, report):
                return
        if mode.runs:
            if source.analysis_performed(analysis.name):
                report.skipped.append((analysis.name, source.url))
            else:
                self._run_analysis(source, analysis, report)

    def _clean_analysis(self, source: Source, analysis: Analysis, report: RunReport) -> bool:
        try:
            analysis.clean()
        except Exception as e:
            error = PluginExecutionError(analysis.name, "clean", source.url, e)
            logger.error(f"Error cleaning analysis {analysis.name} on {source.url}: {e}")
            source.record_error(error)
            report.failed.append((analysis.name, source.url))
            return False
        else:
            source.del_analysis(analysis.name)
            report.cleaned.append((analysis.name, source.url))
            return True
        finally:
            self._session.journal.save()

    def _run_analysis(self, source: Source, analysis: Analysis, report: RunReport) -> None:
        source.add_ongoing_analysis(analysis.name)
        # The ongoing marker must reach disk before run() so an interrupted
        # run is visible to the next invocation
        self._session.journal.save()
        try:
            analysis.run()
        except Exception as e:
            error = PluginExecutionError(analysis.name, "run", source.url, e)
            logger.error(f"Error applying analysis {analysis.name} on {source.url}: {e}")
            source.record_error(error)
            report.failed.append((analysis.name, source.url))
        else:
            source.complete_analysis(analysis.name)
            report.performed.append((analysis.name, source.url))
        finally:
            self._session.journal.save()

    # -- joins --------------------------------------------------------------

    def join(
        self,
        ids: Iterable[int] = (),
        joins: Iterable[str] = (),
        mode: RunMode | str = RunMode.RUN,
    ) -> RunReport:
        """Apply joins to the cohort of eligible sources among ``ids``.

        The cohort of a join is every CLONED source that performed all of
        the join's required analyses. An empty cohort skips the run.

        Args:
            ids: Source indexes (empty = all sources)
            joins: Join names (empty = every enabled join)
            mode: Run mode

        Raises:
            SourceIndexError: If an index is out of range
            PluginNotFoundError: If a join is not enabled
            ConfigurationError: If the mode is unknown
        """
        mode = coerce_mode(mode)
        journal = self._session.journal
        join_classes = self._session.config.get_joins(*joins)
        sources = journal.sources_by_ids(*ids)
        self._prepare_addons(join_classes)

        report = RunReport("join", mode)
        for join_cls in join_classes:
            join = self._session.instantiate(join_cls)
            try:
                if mode.cleans and not self._clean_join(join, report):
                    continue
                if not mode.runs:
                    continue
                if (
                    mode is RunMode.RUN
                    and self._skip_performed_joins
                    and journal.join_performed(join.name)
                ):
                    logger.info(f"Join {join.name} already performed, skipping")
                    report.skipped.append((join.name, WORKSPACE))
                    continue

                cohort = [
                    s
                    for s in sources
                    if s.is_cloned and s.analyses_performed(*join_cls.required_analyses)
                ]
                if not cohort:
                    logger.info(f"No eligible source for join {join.name}")
                    report.skipped.append((join.name, WORKSPACE))
                    continue
                self._run_join(join, cohort, report)
            finally:
                journal.save()
        return report

    def _clean_join(self, join: Join, report: RunReport) -> bool:
        journal = self._session.journal
        try:
            join.clean()
        except Exception as e:
            logger.error(f"Error cleaning join {join.name}: {e}")
            journal.set_join_error(PluginExecutionError(join.name, "clean", WORKSPACE, e))
            report.failed.append((join.name, WORKSPACE))
            return False
        journal.del_join(join.name)
        report.cleaned.append((join.name, WORKSPACE))
        return True

    def _run_join(self, join: Join, cohort: list[Source], report: RunReport) -> None:
        journal = self._session.journal
        join.bind(cohort)
        try:
            join.run()
        except Exception as e:
            logger.error(f"Error applying join {join.name}: {e}")
            journal.set_join_error(PluginExecutionError(join.name, "run", WORKSPACE, e))
            report.failed.append((join.name, WORKSPACE))
        else:
            journal.add_join(join.name)
            report.performed.append((join.name, WORKSPACE))

    # -- helpers ------------------------------------------------------------

    def _prepare_addons(self, plugin_classes: Iterable[type[Plugin]]) -> None:
        """Resolve every required addon up front so a missing one aborts early."""
        for plugin_cls in plugin_classes:
            for name in plugin_cls.required_addons:
                self._session.addon(name)
