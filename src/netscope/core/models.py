from dataclasses import dataclass, field
from enum import Enum
from typing import List


class NetscopeError(Exception):
    """Base class for errors surfaced to the operator."""


class MissingDependencyError(NetscopeError):
    pass


class InvalidSelectionError(NetscopeError):
    pass


class EmptyResultError(NetscopeError):
    pass


class SubnetSource(str, Enum):
    INTERFACE      = "interface"
    ROUTE          = "route"
    NEIGHBOR_CACHE = "neighbor-cache"
    PROBE          = "heuristic-probe"
    VIRTUAL        = "virtualization-catalogue"
    PEER           = "connection-peer"
    LEASE_FILE     = "lease-file"
    FALLBACK       = "fallback"


class PhaseStatus(str, Enum):
    SKIPPED   = "skipped"
    DONE      = "done"
    TIMED_OUT = "timed-out"


@dataclass(frozen=True)
class Subnet:
    cidr: str
    source: SubnetSource


@dataclass
class HostRecord:
    ip: str
    hostname: str = "Unknown"
    status: str = "up"
    info: str = "unknown"

    def to_line(self) -> str:
        # '|' is the field separator on disk
        fields = (self.ip, self.hostname or "Unknown", self.status, self.info)
        return "|".join(f.replace("|", "/") for f in fields)

    @classmethod
    def from_line(cls, line: str) -> "HostRecord":
        parts = line.rstrip("\n").split("|", 3)
        parts += [""] * (4 - len(parts))
        ip, hostname, status, info = parts
        return cls(ip, hostname or "Unknown", status or "up", info or "unknown")


@dataclass
class PhaseResult:
    phase_id: int
    status: PhaseStatus
    elapsed: float = 0.0
    output: str = ""
    timeout: float = 0.0
    lines: List[str] = field(default_factory=list)   # report section body
