"""
Subnet discovery.

Candidate network ranges are collected from several read-only heuristics,
consulted in a fixed priority order.  The first source to report a CIDR wins;
later duplicates are dropped.  A missing tool turns its source into a no-op.
Only when every source comes back empty is the fixed list of common private
ranges returned.

Narration goes to the session console / logger.  The return value of
``SubnetDiscovery.discover`` is the only data channel.
"""

from __future__ import annotations

import re, time, logging
from typing import Callable, Iterable

from ..core.models import Subnet, SubnetSource
from ..core.session import Session
from ..scanners import network, nmap as nmap_cmd
from ..utils.io import tool_exists, read_if_readable

log = logging.getLogger("netscope.discovery")

QUERY_TIMEOUT = 5.0
SWEEP_THIRD_OCTETS = (0, 1, 10, 87, 100, 122)
SWEEP_CAP = 0.5
CATALOGUE_CAP = 0.3
NEIGHBOR_SAMPLE = 20
PEER_SAMPLE = 5
LEASE_SAMPLE = 10

VIRTUAL_CATALOGUE = (
    "172.17.0.0/16",     # Docker default bridge
    "172.18.0.0/16",
    "172.19.0.0/16",
    "172.20.0.0/16",
    "192.168.122.0/24",  # libvirt default
    "192.168.99.0/24",   # Docker Machine
    "10.0.2.0/24",       # VirtualBox NAT
    "192.168.56.0/24",   # VirtualBox host-only
)

LEASE_FILES = (
    "/var/lib/dhcp/dhcpd.leases",
    "/var/lib/dhcpcd5/dhcpcd.leases",
    "/tmp/dhcp.leases",
)

FALLBACK_SUBNETS = (
    "192.168.1.0/24",
    "192.168.0.0/24",
    "192.168.87.0/24",
    "10.0.0.0/24",
    "172.16.0.0/24",
)

_IPV4 = re.compile(r"\b(\d{1,3}\.\d{1,3}\.\d{1,3}\.\d{1,3})\b")
_CIDR = re.compile(r"^(\d{1,3}\.\d{1,3}\.\d{1,3}\.\d{1,3}/\d{1,2})\b")
_IFACE_HEADER = re.compile(r"^\d+:\s*([^:\s]+):.*\bstate ([A-Z]+)")
_INET = re.compile(r"^\s*inet (\d+\.\d+\.\d+\.\d+)/(\d+)")


# ------------- parsers (pure) -------------

def zero_host_octet(ip: str, prefix: int | str) -> str:
    """'10.1.2.3', 16 -> '10.1.2.0/16'.  Only the last octet is cleared whatever the prefix."""
    return f"{ip.rsplit('.', 1)[0]}.0/{prefix}"


def to_slash24(ip: str) -> str:
    return zero_host_octet(ip, 24)


def extract_ipv4(text: str, exclude_loopback: bool = True) -> list[str]:
    found = []
    for ip in _IPV4.findall(text):
        if exclude_loopback and ip.startswith("127."):
            continue
        if all(0 <= int(o) <= 255 for o in ip.split(".")):
            found.append(ip)
    return found


def parse_interfaces(text: str) -> list[tuple[str, str, str]]:
    """``ip addr show`` -> [(interface, state, 'a.b.c.0/n')] for every IPv4 address."""
    rows: list[tuple[str, str, str]] = []
    iface, state = "", ""
    for line in text.splitlines():
        header = _IFACE_HEADER.match(line)
        if header:
            iface, state = header.group(1).split("@")[0], header.group(2)
            continue
        inet = _INET.match(line)
        if inet and iface:
            ip, prefix = inet.groups()
            if not ip.startswith("127."):
                rows.append((iface, state, zero_host_octet(ip, prefix)))
    return rows


def parse_routes(text: str) -> list[str]:
    routes = []
    for line in text.splitlines():
        m = _CIDR.match(line.strip())
        if m and not m.group(1).startswith("169.254"):
            routes.append(m.group(1))
    return routes


def parse_default_interface(route_text: str) -> str | None:
    for line in route_text.splitlines():
        if line.startswith("default"):
            m = re.search(r"\bdev (\S+)", line)
            if m:
                return m.group(1)
    return None


def parse_first_inet(addr_text: str) -> str | None:
    for line in addr_text.splitlines():
        m = _INET.match(line)
        if m and m.group(1) != "127.0.0.1":
            return m.group(1)
    return None


def parse_established_peers(ss_text: str, limit: int = PEER_SAMPLE) -> list[str]:
    peers = set()
    for line in ss_text.splitlines():
        cols = line.split()
        if len(cols) >= 5 and cols[0] == "ESTAB":
            host = cols[4].rsplit(":", 1)[0]
            if _IPV4.fullmatch(host) and not host.startswith("127."):
                peers.add(host)
    return sorted(peers)[:limit]


def subnet_label(cidr: str) -> str:
    if cidr.startswith("192.168.122."):
        return "Virtual/KVM"
    if re.match(r"^172\.(1[7-9]|2[0-9])\.", cidr):
        return "Docker"
    if re.match(r"^192\.168\.[01]\.", cidr):
        return "Home Router"
    if cidr.startswith("10."):
        return "Corporate"
    return "Private"


# ------------- engine -------------

class SubnetDiscovery:
    def __init__(self, session: Session, deadline: float | None = None) -> None:
        self.session = session
        self.console = session.console
        self.budget = deadline if deadline is not None else session.settings.discovery_timeout
        self._stop_at = 0.0

    def discover(self) -> list[Subnet]:
        start = time.monotonic()
        self._stop_at = start + self.budget
        found: dict[str, Subnet] = {}

        for source, title, collect in self._sources():
            if self._remaining() <= 0:
                self._narrate(f"[yellow]Discovery budget of {self.budget:.0f}s used up, skipping {title}[/]")
                break
            self._narrate(f"[blue]  • {title}...[/]")
            added = 0
            for cidr in collect():
                if cidr not in found:
                    found[cidr] = Subnet(cidr, source)
                    added += 1
            log.info("%s: %d new subnet(s)", source.value, added)

        if not found:
            self._narrate("[yellow]  • No networks detected, using common ranges...[/]")
            return [Subnet(c, SubnetSource.FALLBACK) for c in FALLBACK_SUBNETS]

        self._narrate(
            f"[green]Network discovery complete: found {len(found)} subnets "
            f"in {time.monotonic() - start:.0f}s[/]"
        )
        return list(found.values())

    def _sources(self) -> list[tuple[SubnetSource, str, Callable[[], Iterable[str]]]]:
        return [
            (SubnetSource.INTERFACE, "Checking local interfaces", self.from_interfaces),
            (SubnetSource.ROUTE, "Analyzing routing table", self.from_routes),
            (SubnetSource.NEIGHBOR_CACHE, "Scanning ARP table", self.from_neighbor_cache),
            (SubnetSource.PROBE, "Sweeping common ranges", self.from_sweep),
            (SubnetSource.VIRTUAL, "Checking virtualization networks", self.from_catalogue),
            (SubnetSource.PEER, "Analyzing network connections", self.from_peers),
            (SubnetSource.LEASE_FILE, "Checking DHCP information", self.from_leases),
        ]

    # ------------- sources -------------

    def from_interfaces(self) -> list[str]:
        subnets = []
        for iface, state, cidr in parse_interfaces(self._query(network.ip_addr())):
            if state == "UP":
                self._narrate(f"[green]    ✓ {cidr} from interface {iface} (UP)[/]")
                subnets.append(cidr)
            elif state == "DOWN":
                self._narrate(f"[yellow]    ⚠ skipping {cidr} on {iface} (DOWN)[/]")
        return subnets

    def from_routes(self) -> list[str]:
        return parse_routes(self._query(network.ip_route()))

    def from_neighbor_cache(self) -> list[str]:
        ips = extract_ipv4(self._query(network.arp_cache()))[:NEIGHBOR_SAMPLE]
        return [to_slash24(ip) for ip in ips]

    def from_sweep(self) -> list[str]:
        iface = parse_default_interface(self._query(network.ip_route()))
        if not iface:
            return []
        primary_ip = parse_first_inet(self._query(network.ip_addr(iface)))
        if not primary_ip:
            return []
        base = ".".join(primary_ip.split(".")[:2])
        live = []
        for octet in SWEEP_THIRD_OCTETS:
            candidate = f"{base}.{octet}.0/24"
            if self._probe(candidate, nmap_cmd.SWEEP_HOST_TIMEOUT, SWEEP_CAP):
                self._narrate(f"[blue]    ↳ found active network {candidate}[/]")
                live.append(candidate)
        return live

    def from_catalogue(self) -> list[str]:
        live = []
        for candidate in VIRTUAL_CATALOGUE:
            if self._probe(candidate, nmap_cmd.CATALOGUE_HOST_TIMEOUT, CATALOGUE_CAP):
                self._narrate(f"[blue]    ↳ found active virtual network {candidate}[/]")
                live.append(candidate)
        return live

    def from_peers(self) -> list[str]:
        return [to_slash24(ip) for ip in parse_established_peers(self._query(network.established_tcp()))]

    def from_leases(self) -> list[str]:
        subnets = []
        for path in LEASE_FILES:
            text = read_if_readable(path)
            if text:
                self._narrate(f"[blue]    ↳ reading {path}[/]")
                subnets.extend(to_slash24(ip) for ip in extract_ipv4(text, exclude_loopback=False)[:LEASE_SAMPLE])
        return subnets

    # ------------- helpers -------------

    def _remaining(self) -> float:
        return self._stop_at - time.monotonic()

    def _query(self, command: list[str], timeout: float = QUERY_TIMEOUT) -> str:
        if not tool_exists(command[0]):
            log.debug("%s not available, source skipped", command[0])
            return ""
        budget = min(timeout, max(self._remaining(), 0.0))
        if budget <= 0:
            return ""
        return self.session.supervisor.run(command, budget).output

    def _probe(self, network_cidr: str, host_timeout: str, cap: float) -> bool:
        return "Host is up" in self._query(nmap_cmd.fast_probe(network_cidr, host_timeout), cap)

    def _narrate(self, message: str) -> None:
        if self.console is not None:
            self.console.print(message, highlight=False)
        else:
            log.info(re.sub(r"\[/?[a-z ]*\]", "", message))
