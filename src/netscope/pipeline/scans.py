"""Single-operation host scans, each saved as its own report."""

from __future__ import annotations

import re, logging
from datetime import datetime

from ..core.models import HostRecord, EmptyResultError
from ..core.session import Session
from ..reports.store import Report, ReportStore
from ..scanners import network, nmap as nmap_cmd

log = logging.getLogger("netscope.scans")

RULE = "=" * 39
AUTO_SCAN_TIMEOUT = 120.0
TRACE_PORTS = (22, 80, 443)

_OPEN_PORT = re.compile(r"^\d+/(?:tcp|udp)\s+open\b", re.MULTILINE)


def _count(pattern: str, text: str, flags: int = 0) -> int:
    rx = re.compile(pattern, flags)
    return sum(1 for l in text.splitlines() if rx.search(l))


def count_open_ports(text: str) -> int:
    return len(_OPEN_PORT.findall(text))


class HostScans:
    """Port scan, service enumeration, vulnerability scan and network trace for one host."""

    def __init__(self, session: Session, store: ReportStore) -> None:
        self.session = session
        self.store = store
        self.settings = session.settings

    def port_scan(self, ip: str, hostname: str = "Unknown") -> tuple[Report, dict[str, int]]:
        elevated = self.session.elevated
        cmd = self.session.command(nmap_cmd.port_scan(ip, elevated), privileged=True)
        method = "SYN scan" if elevated else "TCP connect scan"
        sections = [(f"PORT SCAN ({method}, 1000 common ports)", cmd)]
        text = self._run_sections("PORT SCAN REPORT", ip, hostname, sections, self.settings.phase_timeout(3, elevated))
        stats = {
            "open ports": _count(r"open", text),
            "filtered ports": _count(r"filtered", text),
            "services detected": _count(r"service", text),
        }
        return self.store.save("scan", text, target=ip), stats

    def service_scan(self, ip: str, hostname: str = "Unknown") -> tuple[Report, dict[str, int]]:
        timeout = self.settings.phase_timeout(4, self.session.elevated)
        text = self._run_sections(
            "SERVICE ENUMERATION REPORT", ip, hostname, nmap_cmd.service_report_scans(ip), timeout
        )
        stats = {
            "services detected": _count(r"service", text, re.IGNORECASE),
            "open ports": _count(r"open", text),
            "http services": _count(r"http", text, re.IGNORECASE),
        }
        return self.store.save("service", text, target=ip), stats

    def vuln_scan(self, ip: str, hostname: str = "Unknown") -> tuple[Report, dict[str, int]]:
        timeout = self.settings.phase_timeout(5, self.session.elevated)
        text = self._run_sections(
            "VULNERABILITY SCAN REPORT", ip, hostname, nmap_cmd.vuln_report_scans(ip), timeout
        )
        stats = {
            "vulnerabilities found": _count(r"vulnerable", text, re.IGNORECASE),
            "CVEs identified": _count(r"cve", text, re.IGNORECASE),
            "security issues": _count(r"security|risk|exploit", text, re.IGNORECASE),
        }
        return self.store.save("vuln", text, target=ip), stats

    def trace(self, ip: str, hostname: str = "Unknown") -> tuple[Report, dict[str, int]]:
        timeout = self.settings.phase_timeout(6, self.session.elevated)
        sections = [
            ("TRACEROUTE", network.traceroute(ip, max_hops=30)),
            ("PING STATISTICS", network.ping(ip, count=10)),
        ]
        sections += [(f"PORT {p} CONNECTIVITY", network.port_probe(ip, p)) for p in TRACE_PORTS]
        text = self._run_sections("NETWORK TRACE REPORT", ip, hostname, sections, timeout)
        avg = re.search(r"= [\d.]+/([\d.]+)/", text)
        stats = {
            "hops to target": _count(r"^\s*\d+\s.*ms", text),
            "ping average (ms)": round(float(avg.group(1))) if avg else 0,
        }
        return self.store.save("trace", text, target=ip), stats

    def auto_analyze(self, records: list[HostRecord]) -> list[tuple[HostRecord, int]]:
        """Top-100 port scan of every host; returns (host, open port count) pairs."""
        if not records:
            raise EmptyResultError("No hosts to analyze")
        results = []
        elevated = self.session.elevated
        for n, record in enumerate(records, 1):
            cmd = self.session.command(nmap_cmd.quick_port_scan(record.ip, elevated), privileged=True)
            unit = self.session.supervisor.run(
                cmd, AUTO_SCAN_TIMEOUT, f"[blue][{n}/{len(records)}] Analyzing {record.ip} ({record.hostname})[/]"
            )
            self.store.save("auto_scan", unit.output, target=record.ip)
            results.append((record, count_open_ports(unit.output)))
        return results

    # ------------- helpers -------------

    def _run_sections(
        self, title: str, ip: str, hostname: str, sections: list[tuple[str, list[str]]], timeout: float
    ) -> str:
        out = [f"=== {title} ===", f"Target: {ip} ({hostname})", f"Date: {datetime.now():%c}", RULE]
        for heading, cmd in sections:
            unit = self.session.supervisor.run(cmd, timeout, f"[yellow]{heading.title()}[/]")
            out += ["", f"=== {heading} ==="]
            if unit.timed_out:
                log.warning("%s against %s timed out after %.0fs", heading, ip, timeout)
                out.append(f"!! timed out after {timeout:.0f}s; partial output follows")
            out.append(unit.output.rstrip() or "(no output)")
        return "\n".join(out) + "\n"
