import os, time
from datetime import datetime, timedelta

import pytest

from netscope.core.models import NetscopeError
from netscope.reports.store import ReportStore, human_size


@pytest.fixture
def store(tmp_path):
    return ReportStore(tmp_path)


def _age(report, days):
    old = time.time() - days * 86400
    os.utime(report.path, (old, old))


def test_save_names_and_parses(store):
    report = store.save("vuln", "=== VULNERABILITY SCAN REPORT ===", target="10.0.0.5",
                        now=datetime(2026, 1, 2, 3, 4, 5))
    assert report.name == "vuln_10.0.0.5_20260102_030405.txt"
    assert report.kind == "vuln"
    assert report.target == "10.0.0.5"
    assert report.text().endswith("\n")


def test_host_analysis_kind_wins_over_shorter_prefixes(store):
    report = store.save("host_analysis", "x", target="10.0.0.5")
    assert report.kind == "host_analysis"
    assert report.target == "10.0.0.5"


def test_unknown_kind_rejected(store):
    with pytest.raises(NetscopeError):
        store.save("bogus", "x")


def test_list_ignores_other_files_and_sorts_newest_first(store, tmp_path):
    (tmp_path / "discovered_hosts.txt").write_text("10.0.0.1|Unknown|up|unknown\n")
    old = store.save("scan", "a", target="10.0.0.1", now=datetime(2026, 1, 1))
    new = store.save("trace", "b", target="10.0.0.2", now=datetime(2026, 1, 2))
    _age(old, 3)
    assert [r.name for r in store.list()] == [new.name, old.name]


def test_atomic_save_leaves_no_temp_files(store, tmp_path):
    store.save("scan", "a", target="10.0.0.1")
    assert [p.name for p in tmp_path.iterdir() if p.name.startswith(".")] == []


def test_for_host_and_search(store):
    store.save("scan", "22/tcp open ssh\n80/tcp closed http", target="10.0.0.1")
    store.save("service", "Service Info: OS: Linux", target="10.0.0.2")
    assert [r.target for r in store.for_host("10.0.0.1")] == ["10.0.0.1"]

    hits = store.search("OPEN")
    assert [(r.target, n, line) for r, n, line in hits] == [("10.0.0.1", 1, "22/tcp open ssh")]


def test_statistics(store):
    store.save("scan", "a", target="10.0.0.1", now=datetime(2026, 1, 1))
    store.save("scan", "a", target="10.0.0.2", now=datetime(2026, 1, 1))
    store.save("export", "a", now=datetime(2026, 1, 1))
    assert store.statistics() == {"scan": 2, "export": 1}


def test_purge_by_age_and_all(store):
    fresh = store.save("scan", "a", target="10.0.0.1", now=datetime(2026, 1, 1))
    stale = store.save("scan", "a", target="10.0.0.2", now=datetime(2026, 1, 2))
    ancient = store.save("vuln", "a", target="10.0.0.3", now=datetime(2026, 1, 3))
    _age(stale, 2)
    _age(ancient, 10)

    assert store.purge(timedelta(days=7)) == 1
    assert store.purge(timedelta(days=1)) == 1
    assert [r.name for r in store.list()] == [fresh.name]
    assert store.purge() == 1
    assert store.list() == []


def test_load_missing_report(store):
    with pytest.raises(NetscopeError):
        store.load("scan_nothing_20260101_000000.txt")


def test_human_size():
    assert human_size(512) == "512B"
    assert human_size(2048) == "2.0K"


def test_same_second_saves_do_not_overwrite(store):
    when = datetime(2026, 1, 1, 12, 0, 0)
    first = store.save("export", "first", now=when)
    second = store.save("export", "second", now=when)
    assert first.name == "export_20260101_120000.txt"
    assert second.name == "export_20260101_120000-2.txt"
    assert first.text() == "first\n"
    assert second.kind == "export"
    assert len(store.list()) == 2


def test_target_is_made_safe_for_file_names(store, tmp_path):
    report = store.save("scan", "x", target="10.0.0.0/24", now=datetime(2026, 1, 1))
    assert report.path.parent == tmp_path
    assert report.name == "scan_10.0.0.0-24_20260101_000000.txt"
    assert store.for_host("10.0.0.0/24") == [report]
