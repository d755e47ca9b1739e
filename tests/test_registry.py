from netscope.core.models import HostRecord
from netscope.core.registry import HostRegistry, categorize, category_counts


def test_two_hosts_by_ordinal(tmp_path):
    registry = HostRegistry(tmp_path / "discovered_hosts.txt")
    registry.reset()
    registry.append("192.168.1.10", "nas.local")
    registry.append("192.168.1.20")

    assert len(registry) == 2
    assert registry.by_ordinal(2).ip == "192.168.1.20"
    assert registry.by_ordinal(2).hostname == "Unknown"
    assert registry.by_ordinal(0) is None
    assert registry.by_ordinal(3) is None


def test_file_format(tmp_path):
    registry = HostRegistry(tmp_path / "hosts.txt")
    registry.reset()
    registry.append("10.0.0.5", "web|01", "up", "2 open ports")
    assert (tmp_path / "hosts.txt").read_text() == "10.0.0.5|web/01|up|2 open ports\n"


def test_by_address_and_reset(tmp_path):
    registry = HostRegistry(tmp_path / "hosts.txt")
    registry.reset()
    registry.append("10.0.0.5", "db")
    assert registry.by_address("10.0.0.5").hostname == "db"
    assert registry.by_address("10.0.0.6") is None
    registry.reset()
    assert registry.records() == []


def test_missing_file_is_empty(tmp_path):
    assert list(HostRegistry(tmp_path / "nope.txt")) == []


def test_short_lines_are_padded():
    assert HostRecord.from_line("10.0.0.1\n") == HostRecord("10.0.0.1", "Unknown", "up", "unknown")


def test_categories():
    records = [
        HostRecord("10.0.0.1"),
        HostRecord("10.0.0.7", "core-gw"),
        HostRecord("10.0.0.8", "backup-nas"),
        HostRecord("10.0.0.9", "alice-laptop"),
        HostRecord("10.0.0.10", "printer"),
    ]
    assert categorize(records[0]) == "Routers/Gateways"
    counts = category_counts(records)
    assert counts == {"Routers/Gateways": 2, "Servers": 1, "Workstations": 1, "Others": 1}
