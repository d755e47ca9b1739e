"""The six host-analysis phases: commands, report sections and selection presets."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable

from ..core.models import InvalidSelectionError
from ..core.supervisor import UnitResult
from ..scanners import network, nmap as nmap_cmd


@dataclass(frozen=True)
class Phase:
    id: int
    name: str
    title: str
    expected: str
    privileged: bool = False    # runs through sudo when credentials are cached


PHASES: dict[int, Phase] = {
    1: Phase(1, "Connectivity test", "CONNECTIVITY", "3-5 seconds"),
    2: Phase(2, "OS detection", "OPERATING SYSTEM DETECTION", "30-90 seconds", privileged=True),
    3: Phase(3, "Port scanning", "PORT SCAN RESULTS", "45-120 seconds", privileged=True),
    4: Phase(4, "Service enumeration", "SERVICE ENUMERATION", "2-5 minutes"),
    5: Phase(5, "Vulnerability assessment", "SECURITY ASSESSMENT", "2-8 minutes", privileged=True),
    6: Phase(6, "Network path analysis", "NETWORK INFORMATION", "15-30 seconds"),
}

PRESETS: dict[str, tuple[int, ...]] = {
    "all": (1, 2, 3, 4, 5, 6),
    "fast": (1, 2, 3),
    "security-focus": (1, 3, 5),
}
PRESET_ALIASES = {"a": "all", "f": "fast", "s": "security-focus"}


def parse_selection(text: str) -> tuple[int, ...]:
    """
    Turn operator input into sorted, unique phase ids.

    Accepts a preset name or alias (``all``/``a``, ``fast``/``f``,
    ``security-focus``/``s``) or a comma/space separated list of ids 1-6.
    """
    raw = text.strip().lower()
    if not raw:
        raise InvalidSelectionError("No phases selected")
    preset = PRESET_ALIASES.get(raw, raw)
    if preset in PRESETS:
        return PRESETS[preset]

    tokens = [t for t in re.split(r"[,\s]+", raw) if t]
    ids = set()
    for token in tokens:
        if not token.isdigit() or int(token) not in PHASES:
            raise InvalidSelectionError(f"Invalid phase {token!r}: use 1-6 or a/f/s")
        ids.add(int(token))
    return tuple(sorted(ids))


def describe_depth(selected: tuple[int, ...]) -> str:
    for name, ids in PRESETS.items():
        if selected == ids:
            return "Comprehensive" if name == "all" else f"{name} (phases {', '.join(map(str, ids))})"
    return f"custom (phases {', '.join(map(str, selected))})"


# ------------- commands -------------

def phase_commands(phase_id: int, target: str, elevated: bool, xml_out: str | None = None) -> list[list[str]]:
    """Commands for one phase; phase 6 has two that run together."""
    match phase_id:
        case 1:
            return [network.ping(target)]
        case 2:
            return [nmap_cmd.os_fingerprint(target, elevated)]
        case 3:
            return [nmap_cmd.port_scan(target, elevated, xml_out=xml_out)]
        case 4:
            return [nmap_cmd.service_enum(target)]
        case 5:
            return [nmap_cmd.vuln_scan(target, elevated)]
        case 6:
            return [network.traceroute(target), network.nslookup(target)]
    raise InvalidSelectionError(f"Unknown phase {phase_id}")


# ------------- report sections -------------

def _grep(pattern: str, text: str, limit: int | None = None, flags: int = 0) -> list[str]:
    rx = re.compile(pattern, flags)
    hits = [l for l in text.splitlines() if rx.search(l)]
    return hits[:limit] if limit else hits


def _connectivity(units: list[UnitResult]) -> list[str]:
    ping = units[0]
    replies = _grep(r"time=", ping.output)
    if ping.ok or replies:
        lines = ["Connectivity: ONLINE"]
        if replies:
            lines.append(f"Ping Response: {replies[-1]}")
        return lines
    if ping.timed_out:
        return ["Connectivity: no reply before the phase timed out"]
    return ["Connectivity: OFFLINE or FILTERED"]


def _os_detection(units: list[UnitResult]) -> list[str]:
    return _grep(r"OS|Service|Device", units[0].output, 10)


def _ports(units: list[UnitResult]) -> list[str]:
    return _grep(r"open|filtered|closed", units[0].output)


def _services(units: list[UnitResult]) -> list[str]:
    return _grep(r"open|Service|Version|title|ssl|ssh|banner", units[0].output, 20)


def _vulns(units: list[UnitResult]) -> list[str]:
    return _grep(r"VULNERABLE|CVE|exploit|risk", units[0].output, 10)


def _path(units: list[UnitResult]) -> list[str]:
    trace, lookup = ([u.output for u in units] + ["", ""])[:2]
    return (
        ["Network path to target:"]
        + trace.splitlines()[:15]
        + ["", "DNS Information:"]
        + _grep(r"name|Name", lookup, 5)
    )


SECTION_BUILDERS: dict[int, Callable[[list[UnitResult]], list[str]]] = {
    1: _connectivity,
    2: _os_detection,
    3: _ports,
    4: _services,
    5: _vulns,
    6: _path,
}
