# System network-introspection and path utilities.

def ping(target: str, count: int = 3) -> list[str]:
    return ["ping", "-c", str(count), "-W", "2", target]


def traceroute(target: str, max_hops: int = 10) -> list[str]:
    return ["traceroute", "-m", str(max_hops), target]


def nslookup(target: str) -> list[str]:
    return ["nslookup", target]


def ip_addr(interface: str | None = None) -> list[str]:
    return ["ip", "addr", "show"] + ([interface] if interface else [])


def ip_route() -> list[str]:
    return ["ip", "route"]


def arp_cache() -> list[str]:
    return ["arp", "-a"]


def established_tcp() -> list[str]:
    return ["ss", "-tn"]


def listening_sockets() -> list[str]:
    return ["ss", "-tuln"]


def port_probe(target: str, port: int, wait: int = 3) -> list[str]:
    return ["nc", "-zv", "-w", str(wait), target, str(port)]


def source_address(probe: str = "8.8.8.8") -> list[str]:
    return ["ip", "route", "get", probe]
