"""
Report files on disk.

Every report is a plain-text file named ``<kind>_<target>_<YYYYMMDD_HHMMSS>.txt``
inside the working directory (exports are ``export_<YYYYMMDD_HHMMSS>.txt``).
A name already taken within the same second gets a ``-2``, ``-3``, ... suffix.
Writes go through ``atomic_write`` so a report is either absent or complete.
"""

from __future__ import annotations

import re, time, logging
from collections import Counter
from dataclasses import dataclass
from datetime import datetime, timedelta
from pathlib import Path
from typing import Iterator

from ..core.models import NetscopeError
from ..utils.io import atomic_write, safe_name, timestamp

log = logging.getLogger("netscope.reports")

# longest prefix first so "host_analysis" wins over anything shorter
REPORT_KINDS: dict[str, str] = {
    "host_analysis": "Host analysis",
    "auto_scan": "Auto scan",
    "service": "Service enumeration",
    "export": "Export",
    "trace": "Network trace",
    "scan": "Port scan",
    "vuln": "Vulnerability scan",
}

_NAME = re.compile(
    r"^(?P<kind>" + "|".join(REPORT_KINDS) + r")_(?:(?P<target>.+)_)?(?P<ts>\d{8}_\d{6})(?:-\d+)?\.txt$"
)


@dataclass(frozen=True)
class Report:
    path: Path

    @property
    def name(self) -> str:
        return self.path.name

    @property
    def kind(self) -> str:
        m = _NAME.match(self.name)
        return m.group("kind") if m else "other"

    @property
    def target(self) -> str | None:
        m = _NAME.match(self.name)
        return m.group("target") if m else None

    @property
    def size(self) -> int:
        return self.path.stat().st_size

    @property
    def modified(self) -> datetime:
        return datetime.fromtimestamp(self.path.stat().st_mtime)

    @property
    def title(self) -> str:
        label = REPORT_KINDS.get(self.kind, "Report")
        return f"{label}: {self.target}" if self.target else f"{label} ({self.name})"

    def text(self) -> str:
        return self.path.read_text(encoding="utf-8", errors="replace")

    def lines(self) -> list[str]:
        return self.text().splitlines()


def human_size(n: int) -> str:
    size = float(n)
    for unit in ("B", "K", "M", "G"):
        if size < 1024 or unit == "G":
            return f"{size:.0f}{unit}" if unit == "B" else f"{size:.1f}{unit}"
        size /= 1024
    return f"{n}B"


class ReportStore:
    def __init__(self, root: Path) -> None:
        self.root = root

    # ------------- write -------------

    def save(self, kind: str, text: str, target: str | None = None, now: datetime | None = None) -> Report:
        if kind not in REPORT_KINDS:
            raise NetscopeError(f"Unknown report kind: {kind}")
        stem = f"{kind}_{safe_name(target)}_{timestamp(now)}" if target else f"{kind}_{timestamp(now)}"
        path = self.root / f"{stem}.txt"
        n = 1
        while path.exists():
            n += 1
            path = self.root / f"{stem}-{n}.txt"
        atomic_write(path, text if text.endswith("\n") else text + "\n")
        log.info("report saved: %s", path)
        return Report(path)

    # ------------- read -------------

    def list(self) -> list[Report]:
        """All reports, newest first."""
        reports = [Report(p) for p in self.root.glob("*.txt") if _NAME.match(p.name)]
        return sorted(reports, key=lambda r: r.path.stat().st_mtime, reverse=True)

    def __iter__(self) -> Iterator[Report]:
        return iter(self.list())

    def load(self, name: str) -> Report:
        path = self.root / Path(name).name
        if not path.is_file():
            raise NetscopeError(f"No such report: {name}")
        return Report(path)

    def for_host(self, ip: str) -> list[Report]:
        return [r for r in self if r.target == safe_name(ip)]

    def search(self, term: str) -> list[tuple[Report, int, str]]:
        """Case-insensitive literal search across every report: (report, line number, line)."""
        needle = term.lower()
        hits = []
        for report in self:
            for n, line in enumerate(report.lines(), 1):
                if needle in line.lower():
                    hits.append((report, n, line))
        return hits

    def statistics(self) -> Counter:
        return Counter(r.kind for r in self.list())

    def total_size(self) -> int:
        return sum(r.size for r in self.list())

    # ------------- retention -------------

    def purge(self, older_than: timedelta | None = None, now: float | None = None) -> int:
        """Delete reports older than ``older_than``; ``None`` deletes them all."""
        cutoff = (now or time.time()) - older_than.total_seconds() if older_than else None
        removed = 0
        for report in self.list():
            if cutoff is None or report.path.stat().st_mtime < cutoff:
                report.path.unlink(missing_ok=True)
                removed += 1
        log.info("purged %d report(s)", removed)
        return removed
