"""
Interactive menus.

``Shell.run`` is the only top-level recovery boundary: any error raised by a
sub-operation is reported and the menu comes back.
"""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Callable

from rich.console import Console
from rich.panel import Panel
from rich.prompt import Prompt, Confirm
from rich.table import Table

from ..core.models import HostRecord, NetscopeError, InvalidSelectionError, PhaseResult, PhaseStatus, Subnet
from ..core.registry import category_counts
from ..core.session import Session
from ..discovery.hosts import HostDiscovery, validate_subnet
from ..discovery.subnets import SubnetDiscovery, subnet_label
from ..pipeline.analysis import HostAnalysis
from ..pipeline.phases import PHASES, parse_selection
from ..pipeline.scans import HostScans
from ..reports.overview import NetworkOverview
from ..reports.store import ReportStore, REPORT_KINDS, human_size
from ..reports.viewer import CATEGORIES, filter_lines
from . import pager

log = logging.getLogger("netscope.ui")

HOST_PREVIEW = 10


def _ordinal(choice: str, count: int) -> int | None:
    """The 1-based number typed at a prompt, or None when it is not one of 1..count."""
    if not choice.isdecimal():
        return None
    n = int(choice)
    return n if 1 <= n <= count else None


class Shell:
    def __init__(self, session: Session, console: Console) -> None:
        self.session = session
        self.console = console
        self.store = ReportStore(session.workdir)
        self.page_size = session.settings.page_size
        self._subnets: list[Subnet] | None = None

    # ------------- plumbing -------------

    def _guard(self, action: Callable[[], object]) -> None:
        try:
            action()
        except (NetscopeError, OSError) as exc:
            log.debug("operation failed", exc_info=True)
            self.console.print(f"[bold red]{exc}[/]")
        except Exception as exc:
            log.exception("unexpected failure")
            self.console.print(f"[bold red]Operation failed: {exc!r}[/]")

    def _header(self, title: str, style: str = "cyan") -> None:
        self.console.print(Panel(title, style=style))

    def _menu(self, options: dict[str, str], default: str = "0") -> str:
        for key, label in options.items():
            self.console.print(f"[yellow]{key})[/] {label}")
        return Prompt.ask("Select option", choices=list(options), default=default, show_choices=False)

    # ------------- main menu -------------

    def run(self) -> None:
        while True:
            self._header("INTERACTIVE NETWORK SECURITY SCANNER")
            if self.session.elevated:
                self.console.print(f"[green]Status: elevated privileges ({self.session.privilege.value})[/]")
            else:
                self.console.print("[yellow]Status: limited privileges (some scans run in reduced mode)[/]")
            choice = self._menu({
                "1": "Network Discovery & Host Analysis",
                "2": "Quick Network Overview",
                "3": "Report Management",
                "4": "Export All Results",
                "0": "Exit",
            })
            match choice:
                case "1":
                    self._guard(self.discovery_menu)
                case "2":
                    self._guard(self.quick_overview)
                case "3":
                    self._guard(self.report_management)
                case "4":
                    self._guard(self.export_all)
                case "0":
                    self.console.print("[green]Exiting...[/]")
                    return

    # ------------- discovery -------------

    def discovery_menu(self) -> None:
        while True:
            self._header("NETWORK DISCOVERY & HOST ANALYSIS")
            count = len(self.session.registry)
            if count:
                self.console.print(f"[green]Current status: {count} hosts discovered[/]")
            else:
                self.console.print("[yellow]No hosts discovered yet - start with network discovery[/]")
            options = {
                "1": "Quick host discovery (choose subnet)",
                "2": "Detailed host discovery (OS detection, needs root)",
                "3": "Stealth host discovery (needs root)",
                "4": "Custom subnet discovery",
                "5": "Multi-subnet discovery (all routed subnets)",
            }
            if count:
                options["6"] = "Analyze discovered hosts"
            options["0"] = "Back to main menu"

            choice = self._menu(options)
            discovery = HostDiscovery(self.session)
            match choice:
                case "1":
                    self._discover(lambda: self._with_subnet(discovery.quick))
                case "2":
                    self._discover(lambda: self._privileged_mode("Detailed", discovery.detailed, discovery.quick))
                case "3":
                    self._discover(lambda: self._privileged_mode("Stealth", discovery.stealth, discovery.quick))
                case "4":
                    self._discover(lambda: discovery.custom(self._ask_custom_subnets()))
                case "5":
                    self._discover(discovery.multi)
                case "6":
                    self._guard(self.host_menu)
                case "0":
                    return

    def _discover(self, run: Callable[[], list[HostRecord] | None]) -> None:
        try:
            records = run()
        except (NetscopeError, OSError) as exc:
            self.console.print(f"[red]{exc}[/]")
            return
        if records:
            self.show_hosts(records)
            if Confirm.ask("Analyze discovered hosts now?", default=True):
                self.host_menu()

    def _with_subnet(self, mode: Callable[[str], list[HostRecord]]) -> list[HostRecord] | None:
        subnet = self.select_subnet()
        if subnet is None:
            self.console.print("[yellow]Discovery cancelled[/]")
            return None
        return mode(subnet)

    def _privileged_mode(self, name: str, mode, fallback) -> list[HostRecord] | None:
        if not self.session.elevated:
            self.console.print(f"[yellow]{name} discovery requires root privileges[/]")
            if not (Confirm.ask("Continue with sudo?", default=False) and self.session.elevate()):
                self.console.print("[blue]Falling back to quick discovery[/]")
                return self._with_subnet(fallback)
        return self._with_subnet(mode)

    def _ask_custom_subnets(self) -> list[str]:
        self.console.print("[cyan]Enter subnets one per line (e.g. 192.168.1.0/24); empty line to finish[/]")
        subnets = []
        while True:
            entry = Prompt.ask("Subnet", default="", show_default=False).strip()
            if not entry:
                return subnets
            try:
                subnets.append(validate_subnet(entry))
            except InvalidSelectionError as exc:
                self.console.print(f"[red]{exc}[/]")

    def select_subnet(self) -> str | None:
        if self._subnets is None:
            self.console.print("[yellow]Discovering available subnets...[/]")
            self._subnets = SubnetDiscovery(self.session).discover()
        while True:
            table = Table(title="Available subnets", show_lines=False)
            table.add_column("#", justify="right")
            table.add_column("Subnet")
            table.add_column("Type")
            table.add_column("Source")
            for n, s in enumerate(self._subnets, 1):
                table.add_row(str(n), s.cidr, subnet_label(s.cidr), s.source.value)
            self.console.print(table)
            self.console.print("[yellow]c)[/] Custom subnet   [yellow]r)[/] Rescan   [yellow]0)[/] Cancel")
            choice = Prompt.ask("Select subnet", default="1").strip().lower()
            if choice == "0":
                return None
            if choice == "r":
                self._subnets = SubnetDiscovery(self.session).discover()
                continue
            if choice == "c":
                try:
                    return validate_subnet(Prompt.ask("Enter subnet (CIDR)"))
                except InvalidSelectionError as exc:
                    self.console.print(f"[red]{exc}[/]")
                    continue
            n = _ordinal(choice, len(self._subnets))
            if n is not None:
                return self._subnets[n - 1].cidr
            self.console.print("[red]Invalid selection[/]")

    def show_hosts(self, records: list[HostRecord]) -> None:
        table = Table(title=f"Discovered hosts ({len(records)})")
        for col in ("No.", "IP Address", "Hostname", "Status", "Info"):
            table.add_column(col)
        for n, r in enumerate(records, 1):
            table.add_row(str(n), r.ip, r.hostname, r.status, r.info)
        self.console.print(table)
        counts = category_counts(records)
        self.console.print("[cyan]Host categories:[/] " + ", ".join(f"{k}: {v}" for k, v in counts.items()))

    # ------------- hosts -------------

    def host_menu(self) -> None:
        while True:
            records = self.session.registry.records()
            if not records:
                self.console.print("[red]No hosts available for analysis[/]")
                return
            self._header("HOST ANALYSIS MENU")
            for n, r in enumerate(records[:HOST_PREVIEW], 1):
                self.console.print(f"[yellow]{n})[/] {r.ip} [blue]({r.hostname})[/] - {r.status}")
            if len(records) > HOST_PREVIEW:
                self.console.print(f"[blue]... and {len(records) - HOST_PREVIEW} more hosts[/]")
            self.console.print("[yellow]s)[/] Show all hosts   [yellow]a)[/] Auto-analyze all hosts   [yellow]0)[/] Back")
            choice = Prompt.ask("Select host number or option", default="0").strip().lower()
            if choice == "0":
                return
            if choice == "s":
                self.show_hosts(records)
            elif choice == "a":
                self._guard(lambda: self.auto_analyze(records))
            elif (n := _ordinal(choice, len(records))) is not None:
                record = self.session.registry.by_ordinal(n)
                self._guard(lambda: self.host_detail(record))
            else:
                self.console.print("[red]Invalid host number[/]")

    def host_detail(self, record: HostRecord) -> None:
        scans = HostScans(self.session, self.store)
        while True:
            self._header(f"HOST ANALYSIS: {record.ip} ({record.hostname})")
            choice = self._menu({
                "1": "Custom scan (choose phases)",
                "2": "Port scan",
                "3": "Service enumeration",
                "4": "Vulnerability scan",
                "5": "Network trace",
                "6": "View previous results",
                "0": "Back to host list",
            })
            match choice:
                case "1":
                    self._guard(lambda: self.analyze(record))
                case "2":
                    self._guard(lambda: self._single_scan(scans.port_scan, record))
                case "3":
                    self._guard(lambda: self._single_scan(scans.service_scan, record))
                case "4":
                    self._guard(lambda: self._single_scan(scans.vuln_scan, record))
                case "5":
                    self._guard(lambda: self._single_scan(scans.trace, record))
                case "6":
                    self._guard(lambda: self.previous_results(record))
                case "0":
                    return

    def _single_scan(self, scan, record: HostRecord) -> None:
        report, stats = scan(record.ip, record.hostname)
        self.console.print("[green]Scan completed[/]")
        for label, value in stats.items():
            self.console.print(f"[blue]   {label.capitalize()}: {value}[/]")
        self.console.print(f"[green]Saved to {report.path}[/]")
        if Confirm.ask("View full results interactively?", default=False):
            pager.report_menu(self.console, self.store, report.lines(), report.title, self.page_size)

    def select_phases(self, record: HostRecord) -> tuple[int, ...] | None:
        self._header(f"SELECT ANALYSIS PHASES: {record.ip} ({record.hostname})")
        for phase in PHASES.values():
            self.console.print(f"[blue]{phase.id})[/] {phase.name} ({phase.expected})")
        self.console.print("[green]a)[/] Run all phases\n[green]f)[/] Fast scan (1,2,3)\n"
                           "[green]s)[/] Security focus (1,3,5)\n[yellow]0)[/] Back")
        while True:
            raw = Prompt.ask("Enter phase numbers (e.g. 1,3,5) or preset (a/f/s/0)", default="0")
            if raw.strip() == "0":
                return None
            try:
                return parse_selection(raw)
            except InvalidSelectionError as exc:
                self.console.print(f"[red]{exc}[/]")

    def analyze(self, record: HostRecord) -> None:
        phases = self.select_phases(record)
        if phases is None:
            return

        def report_phase(result: PhaseResult) -> None:
            phase = PHASES[result.phase_id]
            if result.status is PhaseStatus.TIMED_OUT:
                self.console.print(
                    f"[red][{phase.id}/6] {phase.name}: timed out after {result.elapsed:.0f}s (partial output kept)[/]"
                )
            else:
                self.console.print(f"[green][{phase.id}/6] {phase.name}: done ({result.elapsed:.0f}s)[/]")

        analysis = HostAnalysis(self.session)
        self.console.print("[yellow]Running selected analysis phases...[/]")
        report = analysis.run(record.ip, record.hostname, phases, on_phase=report_phase)
        self.console.print("[green]Analysis finished[/]")
        pager.page(self.console, report.render().splitlines(), f"COMPLETE ANALYSIS: {record.ip}", self.page_size)
        if Confirm.ask("Save this analysis report?", default=False):
            saved = analysis.save(report, self.store)
            self.console.print(f"[green]Analysis saved to: {saved.path}[/]")

    def auto_analyze(self, records: list[HostRecord]) -> None:
        self.console.print(f"[blue]This will run a quick port scan on all {len(records)} discovered hosts[/]")
        if not Confirm.ask("Continue?", default=False):
            return
        for record, open_ports in HostScans(self.session, self.store).auto_analyze(records):
            self.console.print(f"  {record.ip} ({record.hostname}): found {open_ports} open ports")
        self.console.print("[green]Auto-analysis completed; use Report Management to view results[/]")

    def previous_results(self, record: HostRecord) -> None:
        reports = self.store.for_host(record.ip)
        if not reports:
            self.console.print("[red]No previous results found for this host.[/]")
            return
        for n, r in enumerate(reports, 1):
            self.console.print(f"[yellow]{n})[/] {r.name} [blue]({human_size(r.size)}, {r.modified:%Y-%m-%d %H:%M:%S})[/]")
        choice = Prompt.ask("Select report to view (0 to go back)", default="0")
        n = _ordinal(choice, len(reports))
        if n is not None:
            r = reports[n - 1]
            pager.report_menu(self.console, self.store, r.lines(), r.name, self.page_size)
        elif choice != "0":
            self.console.print("[red]Invalid selection[/]")

    # ------------- overview / export -------------

    def quick_overview(self) -> None:
        pager.page(self.console, NetworkOverview(self.session).document(), "QUICK NETWORK OVERVIEW", self.page_size)

    def export_all(self) -> None:
        saved = NetworkOverview(self.session).export_all(self.store)
        self.console.print(f"[green]Complete report exported to: {saved.path}[/]")

    # ------------- report management -------------

    def report_management(self) -> None:
        while True:
            self._header("REPORT MANAGEMENT")
            choice = self._menu({
                "1": "View all reports",
                "2": "Search reports",
                "3": "Clean old reports",
                "4": "Report statistics",
                "0": "Back to main menu",
            })
            match choice:
                case "1":
                    self._guard(self.view_all_reports)
                case "2":
                    self._guard(self.search_reports)
                case "3":
                    self._guard(self.clean_reports)
                case "4":
                    self._guard(self.report_statistics)
                case "0":
                    return

    def view_all_reports(self) -> None:
        reports = self.store.list()
        if not reports:
            self.console.print("[red]No reports found.[/]")
            return
        table = Table(title=f"Reports in {self.store.root}")
        for col in ("#", "Name", "Type", "Size", "Modified"):
            table.add_column(col)
        for n, r in enumerate(reports, 1):
            table.add_row(str(n), r.name, REPORT_KINDS.get(r.kind, r.kind), human_size(r.size), f"{r.modified:%Y-%m-%d %H:%M}")
        self.console.print(table)
        choice = Prompt.ask("Select report number, [s] for summaries, or 0 to go back", default="0").strip().lower()
        if choice == "s":
            pager.page(self.console, self.report_summaries(), "ALL REPORT SUMMARIES", self.page_size)
        elif (n := _ordinal(choice, len(reports))) is not None:
            r = reports[n - 1]
            pager.report_menu(self.console, self.store, r.lines(), r.title, self.page_size)
        elif choice != "0":
            self.console.print("[red]Invalid selection[/]")

    def report_summaries(self) -> list[str]:
        out = []
        for n, r in enumerate(self.store.list(), 1):
            lines = r.lines()
            out += [
                f"[{n}] {r.name} ({human_size(r.size)}, {len(lines)} lines)",
                f"    Open ports: {len(filter_lines(lines, CATEGORIES['open']))}",
                f"    Vulnerabilities: {len(filter_lines(lines, CATEGORIES['vulns']))}",
                f"    Services: {len(filter_lines(lines, CATEGORIES['services']))}",
                "",
            ]
        return out

    def search_reports(self) -> None:
        term = Prompt.ask("Enter search term", default="", show_default=False)
        if not term:
            return
        hits = self.store.search(term)
        if not hits:
            self.console.print(f"[red]No matches found for '{term}'.[/]")
            return
        doc = [f"=== GLOBAL SEARCH RESULTS ===", f"Search term: {term}", ""]
        current = None
        for report, n, line in hits:
            if report.name != current:
                current = report.name
                doc += ["", f"=== {report.name} ==="]
            doc.append(f"{n}:{line}")
        self.console.print(f"[green]Found {len(hits)} matches across all reports.[/]")
        pager.report_menu(self.console, self.store, doc, f"Global Search Results: {term}", self.page_size)

    def clean_reports(self) -> None:
        reports = self.store.list()
        day, week = timedelta(days=1), timedelta(days=7)
        self.console.print(f"[blue]Total reports: {len(reports)}[/]")
        choice = self._menu({
            "1": "Delete reports older than 1 day",
            "2": "Delete reports older than 1 week",
            "3": f"Delete ALL reports ({len(reports)} files)",
            "0": "Cancel",
        })
        match choice:
            case "1":
                self.console.print(f"[green]Deleted {self.store.purge(day)} reports older than 1 day[/]")
            case "2":
                self.console.print(f"[green]Deleted {self.store.purge(week)} reports older than 1 week[/]")
            case "3":
                self.console.print("[red]WARNING: this will delete ALL reports![/]")
                if Prompt.ask("Type 'DELETE' to confirm", default="", show_default=False) == "DELETE":
                    self.console.print(f"[green]Deleted {self.store.purge()} reports[/]")
                else:
                    self.console.print("[yellow]Cancelled - confirmation text did not match[/]")
            case "0":
                self.console.print("[yellow]Cleanup cancelled[/]")

    def report_statistics(self) -> None:
        stats = self.store.statistics()
        table = Table(title="Report statistics")
        table.add_column("Type")
        table.add_column("Count", justify="right")
        for kind, label in REPORT_KINDS.items():
            table.add_row(label, str(stats.get(kind, 0)))
        table.add_row("[bold]Total[/]", f"[bold]{sum(stats.values())}[/]")
        self.console.print(table)
        self.console.print(f"[green]Total size: {human_size(self.store.total_size())}[/]")
        recent = self.store.list()[:5]
        if recent:
            self.console.print("[yellow]Recent activity:[/]")
            for r in recent:
                self.console.print(f"  {r.modified:%Y-%m-%d %H:%M}  {r.name}")
