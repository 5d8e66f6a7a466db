"""
Diggit Command Line Interface.

This module provides the ``diggit`` command. Every subcommand opens a
Session on the project folder, performs its operation and reports the
result; fatal errors are printed and exit with status 1.
"""

import sys
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from diggit.config.loader import SettingsLoader
from diggit.coordinator import Coordinator, RunReport
from diggit.errors import DiggitError, ErrorRecord
from diggit.logging_setup import configure_logging
from diggit.models import RunMode, SourceState
from diggit.session import Session
from diggit.store import DGIT_SETTINGS, ProjectStore
from diggit.version import __version__

console = Console()

MODES = [m.value for m in RunMode]


def _fail(error: Exception, verbose: bool = False) -> None:
    console.print(f"[red]Error:[/red] {error}")
    if verbose:
        console.print_exception()
    sys.exit(1)


def _session(ctx: click.Context) -> Session:
    """Open (once) the session of the selected project folder."""
    if "session" not in ctx.obj:
        folder = Path(ctx.obj["folder"])
        try:
            settings = SettingsLoader(folder / ".dgit" / DGIT_SETTINGS).load()
            configure_logging(settings.logging, verbose=ctx.obj["verbose"], folder=folder)
            ctx.obj["session"] = Session.open(folder, settings=settings)
        except DiggitError as e:
            _fail(e, ctx.obj["verbose"])
    return ctx.obj["session"]


def _print_report(report: RunReport) -> None:
    for unit, target in report.performed:
        console.print(f"[green]✓[/green] {unit} [dim]{target}[/dim]")
    for unit, target in report.cleaned:
        console.print(f"[yellow]↺[/yellow] {unit} cleaned [dim]{target}[/dim]")
    for unit, target in report.failed:
        console.print(f"[red]✗[/red] {unit} failed [dim]{target}[/dim]")
    console.print(
        f"[bold]{report.operation}[/bold] ({report.mode.value}): "
        f"{len(report.performed)} performed, {len(report.cleaned)} cleaned, "
        f"{len(report.failed)} failed, {len(report.skipped)} skipped"
    )


@click.group()
@click.version_option(version=__version__, prog_name="diggit")
@click.option(
    "--folder",
    "-C",
    type=click.Path(file_okay=False),
    default=".",
    help="Project folder (default: current directory)",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output")
@click.pass_context
def main(ctx: click.Context, folder: str, verbose: bool) -> None:
    """Diggit: resumable analysis of collections of git repositories."""
    ctx.ensure_object(dict)
    ctx.obj["folder"] = folder
    ctx.obj["verbose"] = verbose


@main.command()
@click.pass_context
def init(ctx: click.Context) -> None:
    """Turn the project folder into a diggit folder."""
    try:
        store = ProjectStore.init_dir(ctx.obj["folder"])
    except DiggitError as e:
        _fail(e, ctx.obj["verbose"])
    console.print(f"Initialized diggit folder [cyan]{store.folder}[/cyan]")


# -- sources ----------------------------------------------------------------


@main.group()
def sources() -> None:
    """Manage the tracked repositories."""


@sources.command("add")
@click.argument("urls", nargs=-1, required=True)
@click.pass_context
def sources_add(ctx: click.Context, urls: tuple[str, ...]) -> None:
    """Track one or more repository urls."""
    session = _session(ctx)
    try:
        for url in urls:
            session.journal.add_source(url)
    except DiggitError as e:
        _fail(e, ctx.obj["verbose"])
    console.print(f"{len(session.journal)} sources tracked")


@sources.command("import")
@click.argument("url_file", type=click.Path(exists=True, dir_okay=False))
@click.pass_context
def sources_import(ctx: click.Context, url_file: str) -> None:
    """Track every url listed (one per line) in URL_FILE."""
    session = _session(ctx)
    lines = Path(url_file).read_text(encoding="utf-8").splitlines()
    try:
        for line in lines:
            if line.strip() and not line.lstrip().startswith("#"):
                session.journal.add_source(line.strip())
    except DiggitError as e:
        _fail(e, ctx.obj["verbose"])
    console.print(f"{len(session.journal)} sources tracked")


@sources.command("list")
@click.pass_context
def sources_list(ctx: click.Context) -> None:
    """List tracked repositories with their index and progress."""
    session = _session(ctx)
    table = Table(title="Sources")
    table.add_column("#", justify="right", style="cyan")
    table.add_column("URL")
    table.add_column("State")
    table.add_column("Performed", style="green")
    table.add_column("Ongoing", style="yellow")
    table.add_column("Error", style="red")
    for index, source in enumerate(session.journal.sources()):
        state = source.state.value
        if source.is_cloned:
            state = f"[green]{state}[/green]"
        table.add_row(
            str(index),
            source.url,
            state,
            ", ".join(source.performed_analyses),
            ", ".join(source.ongoing_analyses),
            source.error.kind if source.error else "",
        )
    console.print(table)


# -- rosters ----------------------------------------------------------------


def _roster_group(kind: str) -> click.Group:
    @click.group(name=f"{kind}s", help=f"Manage the enabled {kind}s.")
    def group() -> None:
        pass

    @group.command("add")
    @click.argument("names", nargs=-1, required=True)
    @click.pass_context
    def add(ctx: click.Context, names: tuple[str, ...]) -> None:
        """Enable plugins."""
        session = _session(ctx)
        adder = session.config.add_analysis if kind == "analysis" else session.config.add_join
        try:
            for name in names:
                adder(name)
        except DiggitError as e:
            _fail(e, ctx.obj["verbose"])

    @group.command("del")
    @click.argument("names", nargs=-1, required=True)
    @click.pass_context
    def delete(ctx: click.Context, names: tuple[str, ...]) -> None:
        """Disable plugins."""
        session = _session(ctx)
        deleter = session.config.del_analysis if kind == "analysis" else session.config.del_join
        for name in names:
            deleter(name)

    @group.command("list")
    @click.pass_context
    def list_(ctx: click.Context) -> None:
        """List enabled plugins."""
        session = _session(ctx)
        roster = session.config.analyses if kind == "analysis" else session.config.joins
        table = Table(title=f"{kind.capitalize()}s")
        table.add_column("Name", style="cyan")
        table.add_column("Class")
        if kind == "join":
            table.add_column("Requires")
        for plugin_cls in roster:
            row = [plugin_cls.name, plugin_cls.qualified_path()]
            if kind == "join":
                row.append(", ".join(plugin_cls.required_analyses))
            table.add_row(*row)
        console.print(table)

    return group


main.add_command(_roster_group("analysis"), "analyses")
main.add_command(_roster_group("join"), "joins")


# -- operations -------------------------------------------------------------


@main.command()
@click.argument("ids", nargs=-1, type=int)
@click.pass_context
def clone(ctx: click.Context, ids: tuple[int, ...]) -> None:
    """Clone the NEW sources with index IDS (all if omitted)."""
    coordinator = Coordinator(_session(ctx))
    try:
        report = coordinator.clone(*ids)
    except DiggitError as e:
        _fail(e, ctx.obj["verbose"])
    _print_report(report)


@main.command()
@click.option("--source", "-s", "ids", type=int, multiple=True, help="Source index")
@click.option("--analysis", "-a", "names", multiple=True, help="Analysis name")
@click.option("--mode", "-m", type=click.Choice(MODES), default=RunMode.RUN.value)
@click.pass_context
def analyze(ctx: click.Context, ids: tuple[int, ...], names: tuple[str, ...], mode: str) -> None:
    """Run, clean or rerun analyses on cloned sources."""
    coordinator = Coordinator(_session(ctx))
    try:
        report = coordinator.analyze(ids, names, RunMode(mode))
    except DiggitError as e:
        _fail(e, ctx.obj["verbose"])
    _print_report(report)


@main.command()
@click.option("--source", "-s", "ids", type=int, multiple=True, help="Source index")
@click.option("--join", "-j", "names", multiple=True, help="Join name")
@click.option("--mode", "-m", type=click.Choice(MODES), default=RunMode.RUN.value)
@click.pass_context
def join(ctx: click.Context, ids: tuple[int, ...], names: tuple[str, ...], mode: str) -> None:
    """Run, clean or rerun joins over eligible sources."""
    coordinator = Coordinator(_session(ctx))
    try:
        report = coordinator.join(ids, names, RunMode(mode))
    except DiggitError as e:
        _fail(e, ctx.obj["verbose"])
    _print_report(report)


# -- reporting --------------------------------------------------------------


@main.command()
@click.pass_context
def status(ctx: click.Context) -> None:
    """Summarize project progress."""
    session = _session(ctx)
    journal = session.journal

    table = Table(show_header=False, box=None)
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Folder", str(session.folder))
    table.add_row("Sources", str(len(journal)))
    for state in SourceState:
        table.add_row(
            f"  {state.value}",
            f"{len(journal.sources_by_state(state))} ok, "
            f"{len(journal.sources_by_state(state, has_error=True))} in error",
        )
    table.add_row("Analyses", ", ".join(a.name for a in session.config.analyses) or "-")
    table.add_row("Joins", ", ".join(j.name for j in session.config.joins) or "-")
    table.add_row("Performed joins", ", ".join(journal.performed_joins) or "-")
    if journal.join_error:
        table.add_row("Join error", f"[red]{journal.join_error.message}[/red]")
    console.print(table)


def _print_error(title: str, error: ErrorRecord, verbose: bool) -> None:
    console.print(f"[bold]{title}[/bold]: [red]{error.kind}[/red] {error.message}")
    if verbose:
        for line in error.trace:
            console.print(f"  {line}", style="dim", markup=False, highlight=False)


@main.command()
@click.pass_context
def errors(ctx: click.Context) -> None:
    """Show the last recorded error of every source and of the workspace."""
    session = _session(ctx)
    verbose = ctx.obj["verbose"]
    found = False
    for index, source in enumerate(session.journal.sources()):
        if source.error:
            found = True
            _print_error(f"[{index}] {source.url}", source.error, verbose)
    if session.journal.join_error:
        found = True
        _print_error("workspace", session.journal.join_error, verbose)
    if not found:
        console.print("[green]No errors recorded.[/green]")
