"""Host discovery: sweep a subnet with nmap and fill the session's host registry."""

from __future__ import annotations

import re, ipaddress, logging
from typing import Iterator

from ..core.models import HostRecord, EmptyResultError, InvalidSelectionError
from ..core.session import Session
from ..scanners import network, nmap as nmap_cmd
from .subnets import parse_routes

log = logging.getLogger("netscope.hosts")

_REPORT = re.compile(r"^Nmap scan report for (\S+)(?: \(([^)]+)\))?")
_OPEN_PORT = re.compile(r"^\d+/(?:tcp|udp)\s+open\b")
_LABEL = re.compile(r"[A-Za-z0-9](?:[A-Za-z0-9-]{0,61}[A-Za-z0-9])?")

DETAILED_TIMEOUT = 600.0
STEALTH_TIMEOUT = 600.0


def sweep_timeout(cidr: str) -> float:
    """Seconds allowed for a ping sweep, scaled by prefix length."""
    try:
        prefix = int(cidr.rsplit("/", 1)[1])
    except (IndexError, ValueError):
        return 60.0
    if prefix == 8:
        return 300.0
    if prefix == 16:
        return 180.0
    if prefix < 24:
        return 120.0
    return 60.0


def validate_subnet(text: str) -> str:
    try:
        ipaddress.ip_network(text.strip(), strict=False)
    except ValueError as exc:
        raise InvalidSelectionError(f"Invalid subnet {text!r}: {exc}") from exc
    return text.strip()


def validate_target(text: str) -> str:
    """An IP address or a DNS hostname; anything else is rejected."""
    target = text.strip()
    try:
        ipaddress.ip_address(target)
        return target
    except ValueError:
        pass
    if len(target) <= 253 and all(_LABEL.fullmatch(p) for p in target.rstrip(".").split(".")):
        return target
    raise InvalidSelectionError(f"Invalid target {text!r}: expected an IP address or hostname")


# ------------- parsers -------------

def _blocks(text: str) -> Iterator[tuple[str, str, list[str]]]:
    """Split nmap normal output into (ip, hostname, body lines) per host."""
    ip = hostname = ""
    body: list[str] = []
    for line in text.splitlines():
        m = _REPORT.match(line.strip())
        if m:
            if ip:
                yield ip, hostname, body
            name, addr = m.groups()
            ip, hostname = (addr, name) if addr else (name, "Unknown")
            body = []
        elif ip:
            body.append(line.strip())
    if ip:
        yield ip, hostname, body


def parse_sweep(text: str) -> list[HostRecord]:
    return [HostRecord(ip, hostname) for ip, hostname, _ in _blocks(text)]


def parse_detailed(text: str) -> list[HostRecord]:
    records = []
    for ip, hostname, body in _blocks(text):
        os_info = next(
            (l.split(":", 1)[1].strip() for l in body if l.startswith("OS details")), "unknown"
        )
        records.append(HostRecord(ip, hostname, "up", os_info or "unknown"))
    return records


def parse_stealth(text: str) -> list[HostRecord]:
    """Only hosts with at least one open port are kept."""
    records = []
    for ip, hostname, body in _blocks(text):
        count = sum(1 for l in body if _OPEN_PORT.match(l))
        if count:
            records.append(HostRecord(ip, hostname, "up", f"{count} open ports"))
    return records


# ------------- engine -------------

class HostDiscovery:
    def __init__(self, session: Session) -> None:
        self.session = session
        self.registry = session.registry

    def quick(self, subnet: str) -> list[HostRecord]:
        self.registry.reset()
        self._sweep(subnet)
        return self._finish()

    def detailed(self, subnet: str) -> list[HostRecord]:
        if not self.session.elevated:
            log.warning("detailed discovery needs elevated privilege, falling back to quick sweep")
            return self.quick(subnet)
        self.registry.reset()
        cmd = self.session.command(nmap_cmd.detailed_sweep(subnet), privileged=True)
        result = self.session.supervisor.run(
            cmd, DETAILED_TIMEOUT, f"[yellow]Detailed discovery of {subnet}[/]"
        )
        self._store(parse_detailed(result.output))
        return self._finish()

    def stealth(self, subnet: str) -> list[HostRecord]:
        if not self.session.elevated:
            log.warning("stealth discovery needs elevated privilege, falling back to quick sweep")
            return self.quick(subnet)
        self.registry.reset()
        cmd = self.session.command(nmap_cmd.stealth_sweep(subnet), privileged=True)
        result = self.session.supervisor.run(
            cmd, STEALTH_TIMEOUT, f"[yellow]Stealth scan of {subnet}[/]"
        )
        self._store(parse_stealth(result.output))
        return self._finish()

    def custom(self, subnets: list[str]) -> list[HostRecord]:
        targets = [validate_subnet(s) for s in subnets if s.strip()]
        if not targets:
            raise InvalidSelectionError("No subnets given")
        self.registry.reset()
        for subnet in targets:
            self._sweep(subnet)
        return self._finish()

    def multi(self) -> list[HostRecord]:
        result = self.session.supervisor.run(network.ip_route(), 5.0)
        subnets = parse_routes(result.output)
        if not subnets:
            raise EmptyResultError("No routed subnets found")
        self.registry.reset()
        for subnet in subnets:
            self._sweep(subnet)
        return self._finish()

    # ------------- helpers -------------

    def _sweep(self, subnet: str) -> None:
        timeout = sweep_timeout(subnet)
        result = self.session.supervisor.run(
            nmap_cmd.ping_sweep(subnet), timeout, f"[yellow]Scanning {subnet} for active hosts[/]"
        )
        if result.timed_out:
            log.warning("sweep of %s cut off after %.0fs, keeping partial results", subnet, timeout)
        self._store(parse_sweep(result.output))

    def _store(self, records: list[HostRecord]) -> None:
        for r in records:
            self.registry.append(r.ip, r.hostname, r.status, r.info)

    def _finish(self) -> list[HostRecord]:
        records = self.registry.records()
        if not records:
            raise EmptyResultError("No hosts discovered")
        log.info("%d host(s) discovered", len(records))
        return records
