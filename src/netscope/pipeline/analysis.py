"""
Phased host analysis.

Selected phases run one at a time in ascending id order through the session's
supervisor, each under its own timeout.  A phase that runs out of time still
gets its section (marked as timed out, with whatever it printed); a phase that
was not selected gets no section at all.
"""

from __future__ import annotations

import re, socket, logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable

import nmap

from ..core.models import PhaseResult, PhaseStatus
from ..core.session import Session
from ..reports.store import Report, ReportStore
from ..scanners import network, nmap as nmap_cmd
from ..utils.io import safe_name
from .phases import PHASES, SECTION_BUILDERS, phase_commands, describe_depth

log = logging.getLogger("netscope.analysis")

BANNER = "=" * 79
RULE = "-" * 79
PARTIAL_TAIL = 10


@dataclass
class AnalysisReport:
    target: str
    hostname: str
    selected: tuple[int, ...]
    scanning_from: str
    started: datetime = field(default_factory=datetime.now)
    finished: datetime | None = None
    results: list[PhaseResult] = field(default_factory=list)

    def section_ids(self) -> list[int]:
        return [r.phase_id for r in self.results if r.status is not PhaseStatus.SKIPPED]

    def timed_out(self) -> list[int]:
        return [r.phase_id for r in self.results if r.status is PhaseStatus.TIMED_OUT]

    def render(self) -> str:
        out = [
            BANNER,
            "COMPLETE HOST ANALYSIS REPORT".center(79).rstrip(),
            BANNER,
            "",
            f"TARGET: {self.target} ({self.hostname})",
            f"SCAN DATE: {self.started:%c}",
            f"SCANNING FROM: {self.scanning_from}",
        ]
        for result in self.results:
            if result.status is PhaseStatus.SKIPPED:
                continue
            phase = PHASES[result.phase_id]
            out += ["", RULE, f"[{phase.id}] {phase.title}", RULE]
            if result.status is PhaseStatus.TIMED_OUT:
                out.append(
                    f"!! Phase timed out after {result.timeout:.0f}s; partial output follows"
                )
            out += result.lines or ["(no output)"]

        finished = self.finished or datetime.now()
        timed_out = self.timed_out()
        out += [
            "",
            BANNER,
            "SCAN SUMMARY",
            BANNER,
            f"Scan completed: {finished:%c}",
            f"Target: {self.target} ({self.hostname})",
            f"Scanning from: {self.scanning_from}",
            f"Analysis Level: {describe_depth(self.selected)}",
            f"Phases run: {', '.join(map(str, self.section_ids())) or 'none'}",
        ]
        if timed_out:
            out.append(f"Phases timed out: {', '.join(map(str, timed_out))}")
        out.append("Note: this scan may have triggered security alerts on the target system")
        return "\n".join(out) + "\n"


class HostAnalysis:
    def __init__(self, session: Session) -> None:
        self.session = session
        self.supervisor = session.supervisor

    def run(
        self,
        target: str,
        hostname: str = "Unknown",
        phases: tuple[int, ...] = tuple(PHASES),
        on_phase: Callable[[PhaseResult], None] | None = None,
    ) -> AnalysisReport:
        selected = tuple(sorted(set(phases)))
        report = AnalysisReport(target, hostname, selected, self.scanning_from())
        for phase_id in PHASES:
            if phase_id not in selected:
                report.results.append(PhaseResult(phase_id, PhaseStatus.SKIPPED))
                continue
            result = self.run_phase(phase_id, target)
            report.results.append(result)
            if on_phase is not None:
                on_phase(result)
        report.finished = datetime.now()
        return report

    def run_phase(self, phase_id: int, target: str) -> PhaseResult:
        phase = PHASES[phase_id]
        elevated = self.session.elevated
        timeout = self.session.settings.phase_timeout(phase_id, elevated)

        xml_path = self.session.path(f".phase3_{safe_name(target)}.xml") if phase_id == 3 else None
        if xml_path is not None:
            xml_path.unlink(missing_ok=True)

        commands = [
            self.session.command(cmd, privileged=phase.privileged)
            for cmd in phase_commands(phase_id, target, elevated, str(xml_path) if xml_path else None)
        ]
        log.info("phase %d (%s) on %s, timeout %.0fs", phase_id, phase.name, target, timeout)
        units = self.supervisor.run_many(
            commands, timeout, f"[green][{phase_id}/6] {phase.name}...[/]"
        )

        timed_out = any(u.timed_out for u in units)
        outputs = [u.output for u in units]
        lines = SECTION_BUILDERS[phase_id](units)
        if timed_out:
            tail = [l for o in outputs for l in o.splitlines()][-PARTIAL_TAIL:]
            lines = lines + ["", "Partial output (last lines before the timeout):"] + (tail or ["(none)"])

        if xml_path is not None:
            if not timed_out:
                summary = self._port_summary(xml_path)
                if summary:
                    lines = [summary] + lines
            xml_path.unlink(missing_ok=True)

        return PhaseResult(
            phase_id,
            PhaseStatus.TIMED_OUT if timed_out else PhaseStatus.DONE,
            elapsed=max((u.elapsed for u in units), default=0.0),
            output="\n".join(outputs),
            timeout=timeout,
            lines=lines,
        )

    def scanning_from(self) -> str:
        result = self.supervisor.run(network.source_address(), 3.0)
        m = re.search(r"\bsrc (\S+)", result.output)
        return f"{socket.gethostname()} ({m.group(1) if m else 'unknown'})"

    def save(self, report: AnalysisReport, store: ReportStore) -> Report:
        return store.save("host_analysis", report.render(), target=report.target)

    @staticmethod
    def _port_summary(xml_path) -> str | None:
        if not xml_path.exists():
            return None
        try:
            ports = nmap_cmd.parse_open_ports(xml_path.read_text(errors="replace"))
        except nmap.PortScannerError as exc:
            log.warning("could not parse port scan XML: %s", exc)
            return None
        return nmap_cmd.summarize_ports(ports)
