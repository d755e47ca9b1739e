"""Whole-network documents: the quick overview and the export-all report."""

from __future__ import annotations

import socket
from datetime import datetime

from ..core.session import Session
from ..scanners import network
from .store import Report, ReportStore

QUERY_TIMEOUT = 5.0
LISTEN_LIMIT = 20
CONNECTION_LIMIT = 15


def _service_name(port: int, proto: str) -> str:
    try:
        return socket.getservbyport(port, proto)
    except (OSError, OverflowError):
        return "unknown"


def parse_listening(ss_text: str) -> list[tuple[int, str]]:
    """``ss -tuln`` -> [(port, protocol)] for listening sockets."""
    found = []
    for line in ss_text.splitlines():
        cols = line.split()
        if len(cols) >= 5 and cols[1] == "LISTEN":
            port = cols[4].rsplit(":", 1)[-1]
            if port.isdigit():
                found.append((int(port), cols[0]))
    return found


def parse_connections(ss_text: str) -> list[tuple[str, str]]:
    """``ss -tn`` -> [(remote address, remote port)] for established connections."""
    found = []
    for line in ss_text.splitlines():
        cols = line.split()
        if len(cols) >= 5 and cols[0] == "ESTAB":
            host, _, port = cols[4].rpartition(":")
            found.append((host, port))
    return found


class NetworkOverview:
    def __init__(self, session: Session) -> None:
        self.session = session

    def _query(self, command: list[str]) -> str:
        return self.session.supervisor.run(command, QUERY_TIMEOUT).output

    def document(self) -> list[str]:
        records = self.session.registry.records()
        listening = parse_listening(self._query(network.listening_sockets()))
        connections = parse_connections(self._query(network.established_tcp()))
        interfaces = self._query(network.ip_addr()).count("inet ")

        out = ["QUICK NETWORK OVERVIEW", ""]
        if records:
            out.append("Discovered Hosts:")
            out += [f"  {r.ip} ({r.hostname})" for r in records]
        else:
            out.append("No hosts discovered yet. Run a host discovery first.")
        out += ["", "Local Listening Ports:"]
        out += [f"  {port}/{proto} ({_service_name(port, proto)})" for port, proto in listening[:LISTEN_LIMIT]]
        out += ["", "Active Connections:"]
        out += [f"  {host}:{port} (tcp)" for host, port in connections[:CONNECTION_LIMIT]]
        out += [
            "",
            "Summary Statistics:",
            f"  Discovered hosts: {len(records)}",
            f"  Listening ports: {len(listening)}",
            f"  Active connections: {len(connections)}",
            f"  Network interfaces: {interfaces}",
        ]
        return out

    def export_all(self, store: ReportStore) -> Report:
        addresses = [
            l.strip() for l in self._query(network.ip_addr()).splitlines()
            if l.strip().startswith("inet ") and "127.0.0.1" not in l
        ]
        records = self.session.registry.records()
        sockets = self._query(network.listening_sockets())
        established = self._query(network.established_tcp())
        out = [
            "Complete Network Security Assessment",
            f"Generated: {datetime.now():%c}",
            "=" * 39,
            "",
            "NETWORK OVERVIEW:",
            *addresses,
            "",
            "DISCOVERED HOSTS:",
            *([r.to_line() for r in records] or ["No hosts discovered"]),
            "",
            "LOCAL SERVICES:",
            *[l for l in sockets.splitlines() if "LISTEN" in l],
            "",
            "ACTIVE CONNECTIONS:",
            *[l for l in established.splitlines() if l.startswith("ESTAB")],
        ]
        return store.save("export", "\n".join(out), target="network")
