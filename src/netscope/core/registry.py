"""Per-run ordered store of discovered hosts, one ``ip|hostname|status|info`` record per line."""

import re, logging
from collections import Counter
from pathlib import Path
from typing import Iterator

from .models import HostRecord

log = logging.getLogger("netscope.registry")

_ROUTER = re.compile(r"router|gateway|gw")
_SERVER = re.compile(r"server|srv|nas")
_WORKSTATION = re.compile(r"pc|desktop|laptop|workstation")


class HostRegistry:
    def __init__(self, path: Path) -> None:
        self.path = path

    def reset(self) -> None:
        log.debug("resetting host registry at %s", self.path)
        self.path.write_text("")

    def append(self, ip: str, hostname: str = "Unknown", status: str = "up", info: str = "unknown") -> HostRecord:
        record = HostRecord(ip, hostname or "Unknown", status, info)
        with self.path.open("a", encoding="utf-8") as fh:
            fh.write(record.to_line() + "\n")
        return record

    def records(self) -> list[HostRecord]:
        if not self.path.exists():
            return []
        with self.path.open(encoding="utf-8") as fh:
            return [HostRecord.from_line(line) for line in fh if line.strip()]

    def by_ordinal(self, n: int) -> HostRecord | None:
        """1-based lookup; None when ``n`` is out of range."""
        records = self.records()
        if 1 <= n <= len(records):
            return records[n - 1]
        return None

    def by_address(self, ip: str) -> HostRecord | None:
        return next((r for r in self.records() if r.ip == ip), None)

    def __len__(self) -> int:
        return len(self.records())

    def __iter__(self) -> Iterator[HostRecord]:
        return iter(self.records())


def categorize(record: HostRecord) -> str:
    if _ROUTER.search(record.hostname) or record.ip.endswith(".1"):
        return "Routers/Gateways"
    if _SERVER.search(record.hostname):
        return "Servers"
    if _WORKSTATION.search(record.hostname):
        return "Workstations"
    return "Others"


def category_counts(records: list[HostRecord]) -> Counter:
    counts = Counter({"Routers/Gateways": 0, "Servers": 0, "Workstations": 0, "Others": 0})
    counts.update(categorize(r) for r in records)
    return counts
