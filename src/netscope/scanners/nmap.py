"""nmap command lines for every scan the tool runs, plus XML parsing via python-nmap."""

from typing import Any
import logging

import nmap

log = logging.getLogger("netscope.nmap")

SWEEP_HOST_TIMEOUT = "100ms"
CATALOGUE_HOST_TIMEOUT = "50ms"


# ------------- discovery -------------

def fast_probe(network: str, host_timeout: str = SWEEP_HOST_TIMEOUT) -> list[str]:
    return ["nmap", "-sn", "-PE", "--max-retries", "0", "--host-timeout", host_timeout, network]


def ping_sweep(subnet: str) -> list[str]:
    return ["nmap", "-sn", subnet]


def detailed_sweep(subnet: str) -> list[str]:
    return ["nmap", "-sn", "-O", "--osscan-guess", subnet]


def stealth_sweep(subnet: str) -> list[str]:
    return ["nmap", "-sS", "-Pn", "--top-ports", "100", subnet]


# ------------- per-host phases -------------

def os_fingerprint(target: str, elevated: bool) -> list[str]:
    if elevated:
        return ["nmap", "-O", "-sV", "--version-intensity", "5", "--osscan-guess", target]
    return ["nmap", "-sV", "--version-intensity", "5", target]


def port_scan(target: str, elevated: bool, top_ports: int = 1000, xml_out: str | None = None) -> list[str]:
    args = ["nmap", "-sS" if elevated else "-sT", "-sV", "--version-intensity", "5",
            "--top-ports", str(top_ports)]
    if xml_out:
        args += ["-oX", xml_out]
    return args + [target]


def quick_port_scan(target: str, elevated: bool) -> list[str]:
    return ["nmap", "-sS" if elevated else "-sT", "--top-ports", "100", target]


def service_enum(target: str) -> list[str]:
    return ["nmap", "-sV", "--version-all", "--script=banner,http-title,ssh-hostkey,ssl-cert", target]


def vuln_scan(target: str, elevated: bool) -> list[str]:
    if elevated:
        return ["nmap", "--script", "vuln", "--script-args=unsafe=1", target]
    return ["nmap", "--script", "vuln", target]


# ------------- standalone report scans -------------

def service_report_scans(target: str) -> list[tuple[str, list[str]]]:
    return [
        ("DETAILED SERVICE SCAN",
         ["nmap", "-sV", "-sC", "--script=banner,http-title,ftp-anon,smb-os-discovery", target]),
        ("HTTP SERVICE ENUMERATION",
         ["nmap", "--script", "http-enum", "-p", "80,443,8080,8443", target]),
        ("FTP ENUMERATION",
         ["nmap", "--script", "ftp-anon,ftp-bounce,ftp-proftpd-backdoor", "-p", "21", target]),
        ("SMB ENUMERATION",
         ["nmap", "--script", "smb-enum-shares,smb-enum-users,smb-os-discovery", "-p", "445", target]),
    ]


def vuln_report_scans(target: str) -> list[tuple[str, list[str]]]:
    return [
        ("GENERAL VULNERABILITIES", ["nmap", "--script", "vuln", target]),
        ("SSL/TLS SECURITY CHECK", ["nmap", "--script", "ssl-enum-ciphers", "-p", "443,8443", target]),
        ("SMB SECURITY CHECK", ["nmap", "--script", "smb-vuln-*", "-p", "445", target]),
        ("HTTP VULNERABILITIES", ["nmap", "--script", "http-vuln-*", "-p", "80,443,8080,8443", target]),
    ]


# ------------- parsing -------------

def parse_open_ports(xml_text: str) -> list[dict[str, Any]]:
    """
    Open ports from an nmap ``-oX`` document.  Raises ``nmap.PortScannerError``
    when the XML is incomplete (e.g. the scan was cut short).
    """
    scanner = nmap.PortScanner()
    try:
        scanner.analyse_nmap_xml_scan(xml_text)
    except (AttributeError, TypeError, ValueError) as exc:
        log.debug("nmap XML rejected: %s", exc)
        # well-formed XML that is missing runstats/host elements
        raise nmap.PortScannerError(f"incomplete nmap XML: {exc}") from exc

    ports: list[dict[str, Any]] = []
    for h in scanner.all_hosts():
        for proto in scanner[h].all_protocols():
            for p in sorted(scanner[h][proto].keys()):
                info = scanner[h][proto][p]
                if info.get("state") == "open":
                    ports.append({
                        "port": int(p),
                        "protocol": proto,
                        "service": info.get("name", ""),
                        "product": " ".join(
                            x for x in (info.get("product", ""), info.get("version", "")) if x
                        ),
                    })
    return ports


def summarize_ports(ports: list[dict[str, Any]]) -> str:
    if not ports:
        return "Open ports: 0"
    listed = ", ".join(f"{p['port']}/{p['protocol']} {p['service']}".strip() for p in ports)
    return f"Open ports: {len(ports)} ({listed})"
