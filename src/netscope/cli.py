"""netscope CLI
-------------
Entry-point for the netscope tool.
Provides the interactive menu shell plus one-shot Typer commands.
Data goes to stdout; progress, narration and logs go to stderr.
"""

from datetime import timedelta

import typer
from rich.console import Console
from typer import BadParameter

from .config import Settings
from .core.models import InvalidSelectionError, MissingDependencyError, NetscopeError
from .core.session import Session, check_dependencies
from .discovery.hosts import validate_target
from .discovery.subnets import SubnetDiscovery
from .pipeline.analysis import HostAnalysis
from .pipeline.phases import parse_selection
from .reports.store import ReportStore, human_size
from .ui.menus import Shell
from .utils.log import configure_logging, err_console

# ─────────────────────────────────────────────────────────────────────────────
# Globals & singletons
# ─────────────────────────────────────────────────────────────────────────────

app: typer.Typer = typer.Typer(add_completion=False, rich_markup_mode="rich")
console: Console = Console()

_options = {"verbose": False}

# ─────────────────────────────────────────────────────────────────────────────
# Helper functions (not exposed as CLI commands)
# ─────────────────────────────────────────────────────────────────────────────


def _session(ui_console: Console, require_tools: bool = True) -> Session:
    settings = Settings.from_env()
    configure_logging(settings.log_level, _options["verbose"])
    if require_tools:
        try:
            check_dependencies()
        except MissingDependencyError as exc:
            err_console.print(f"[bold red]{exc}[/]")
            raise typer.Exit(1)
    return Session(settings, console=ui_console)

# ─────────────────────────────────────────────────────────────────────────────
# Typer commands (one-shot mode)
# ─────────────────────────────────────────────────────────────────────────────


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging on stderr.")) -> None:
    """Interactive network discovery and host analysis (wraps nmap)."""
    _options["verbose"] = verbose


@app.command()
def discover() -> None:
    """Discover candidate subnets; prints one CIDR per line."""
    session = _session(err_console)
    for subnet in SubnetDiscovery(session).discover():
        typer.echo(subnet.cidr)


@app.command()
def analyze(
    target: str = typer.Argument(..., help="Host address to analyze."),
    preset: str = typer.Option("all", "--preset", "-p", help="all | fast | security-focus (or a/f/s)."),
    phases: str = typer.Option(None, "--phases", help="Explicit phase ids, e.g. '1,3,5'."),
    save: bool = typer.Option(False, "--save", help="Save the report into the working directory."),
) -> None:
    """Run the phased analysis against TARGET and print the report."""
    try:
        target = validate_target(target)
        selected = parse_selection(phases if phases else preset)
    except InvalidSelectionError as exc:
        raise BadParameter(str(exc))

    session = _session(err_console)
    known = session.registry.by_address(target)
    analysis = HostAnalysis(session)
    report = analysis.run(target, known.hostname if known else "Unknown", selected)
    typer.echo(report.render(), nl=False)
    if save:
        saved = analysis.save(report, ReportStore(session.workdir))
        err_console.print(f"[green]Report saved to {saved.path}[/]")


@app.command()
def reports(
    name: str = typer.Argument(None, help="Print this report instead of listing them."),
) -> None:
    """List saved reports, newest first, or print one of them."""
    session = _session(err_console, require_tools=False)
    store = ReportStore(session.workdir)
    if name:
        try:
            typer.echo(store.load(name).text(), nl=False)
        except NetscopeError as exc:
            err_console.print(f"[bold red]{exc}[/]")
            raise typer.Exit(1)
        return
    found = store.list()
    if not found:
        err_console.print("[yellow]No reports found.[/]")
        return
    for r in found:
        typer.echo(f"{r.name}\t{r.kind}\t{human_size(r.size)}\t{r.modified:%Y-%m-%d %H:%M}")


@app.command()
def purge(
    days: float = typer.Option(None, "--days", help="Delete reports older than this many days."),
    everything: bool = typer.Option(False, "--all", help="Delete every report."),
) -> None:
    """Delete old reports from the working directory."""
    if days is None and not everything:
        raise BadParameter("give --days N or --all")
    session = _session(err_console, require_tools=False)
    removed = ReportStore(session.workdir).purge(None if everything else timedelta(days=days))
    err_console.print(f"[green]Deleted {removed} report(s)[/]")

# ─────────────────────────────────────────────────────────────────────────────
# Interactive menu shell
# ─────────────────────────────────────────────────────────────────────────────


@app.command()
def shell() -> None:
    """Start the interactive menu (choose 0 or press Ctrl-D to quit)."""
    session = _session(console)
    try:
        Shell(session, console).run()
    except (EOFError, KeyboardInterrupt):
        console.print("\n[green]Exiting...[/]")


if __name__ == "__main__":
    app()
