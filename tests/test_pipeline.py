import re

import pytest

from netscope.core.models import InvalidSelectionError, PhaseStatus
from netscope.core.session import PrivilegeLevel
from netscope.pipeline.analysis import HostAnalysis
from netscope.pipeline.phases import parse_selection, phase_commands, describe_depth
from netscope.reports.store import ReportStore

from conftest import unit

PING = """\
PING 10.0.0.5 (10.0.0.5) 56(84) bytes of data.
64 bytes from 10.0.0.5: icmp_seq=1 ttl=64 time=0.412 ms
64 bytes from 10.0.0.5: icmp_seq=3 ttl=64 time=0.388 ms
"""

PORTS = """\
PORT    STATE  SERVICE VERSION
22/tcp  open   ssh     OpenSSH 9.6
80/tcp  closed http
"""


def _responder(timeouts=()):
    def respond(cmd, label):
        if cmd[:3] == ["ip", "route", "get"]:
            return unit(cmd, "8.8.8.8 via 10.0.0.1 dev eth0 src 10.0.0.9 uid 1000")
        phase = int(re.search(r"\[(\d)/6\]", label).group(1)) if label else 0
        if phase in timeouts:
            return unit(cmd, "Starting Nmap 7.94\n", timed_out=True, elapsed=90)
        return unit(cmd, {1: PING, 3: PORTS}.get(phase, ""))
    return respond


@pytest.mark.parametrize("text,expected", [
    ("all", (1, 2, 3, 4, 5, 6)),
    ("a", (1, 2, 3, 4, 5, 6)),
    ("fast", (1, 2, 3)),
    ("F", (1, 2, 3)),
    ("security-focus", (1, 3, 5)),
    ("s", (1, 3, 5)),
    ("5,1 3", (1, 3, 5)),
    ("2, 2", (2,)),
])
def test_parse_selection(text, expected):
    assert parse_selection(text) == expected


@pytest.mark.parametrize("text", ["", "7", "0", "1,x", "fastest"])
def test_parse_selection_rejects(text):
    with pytest.raises(InvalidSelectionError):
        parse_selection(text)


def test_fast_preset_with_timed_out_phase(session, fake_supervisor):
    fake_supervisor.responder = _responder(timeouts={2})
    report = HostAnalysis(session).run("10.0.0.5", "db", parse_selection("fast"))

    assert report.section_ids() == [1, 2, 3]
    assert [r.status for r in report.results] == [
        PhaseStatus.DONE, PhaseStatus.TIMED_OUT, PhaseStatus.DONE,
        PhaseStatus.SKIPPED, PhaseStatus.SKIPPED, PhaseStatus.SKIPPED,
    ]

    text = report.render()
    assert re.findall(r"^\[(\d)\] ", text, re.MULTILINE) == ["1", "2", "3"]
    phase2 = text.split("[2] ")[1].split("[3] ")[0]
    assert "timed out" in phase2
    assert "Starting Nmap" in phase2
    assert "Connectivity: ONLINE" in text
    assert "22/tcp  open   ssh" in text
    assert "SCANNING FROM: " in text and "(10.0.0.9)" in text
    assert "SCAN SUMMARY" in text


def test_phases_run_in_ascending_order(session, fake_supervisor):
    fake_supervisor.responder = _responder()
    HostAnalysis(session).run("10.0.0.5", phases=(6, 1, 3))
    labels = [label for _, _, label in fake_supervisor.calls if label]
    order = [int(re.search(r"\[(\d)/6\]", l).group(1)) for l in labels]
    assert order == sorted(order)
    # phase 6 is two units awaited together
    assert order.count(6) == 2


def test_phase_timeouts_follow_privilege(session, fake_supervisor):
    fake_supervisor.responder = _responder()
    HostAnalysis(session).run("10.0.0.5", phases=(3,))
    assert fake_supervisor.calls[-1][1] == 150

    session.privilege = PrivilegeLevel.ROOT
    HostAnalysis(session).run("10.0.0.5", phases=(3,))
    assert fake_supervisor.calls[-1][1] == 120


def test_cached_sudo_prefixes_privileged_phases(session, fake_supervisor):
    session.privilege = PrivilegeLevel.SUDO
    fake_supervisor.responder = _responder()
    HostAnalysis(session).run("10.0.0.5", phases=(1, 3))
    commands = [cmd for cmd, _, label in fake_supervisor.calls if label]
    assert commands[0][0] == "ping"
    assert commands[1][:4] == ["sudo", "-n", "nmap", "-sS"]


def test_capability_gated_commands():
    assert phase_commands(3, "t", elevated=False)[0][1] == "-sT"
    assert phase_commands(3, "t", elevated=True)[0][1] == "-sS"
    assert "-O" in phase_commands(2, "t", elevated=True)[0]
    assert "-O" not in phase_commands(2, "t", elevated=False)[0]
    assert "--script-args=unsafe=1" in phase_commands(5, "t", elevated=True)[0]
    assert len(phase_commands(6, "t", elevated=False)) == 2


def test_describe_depth():
    assert describe_depth((1, 2, 3, 4, 5, 6)) == "Comprehensive"
    assert describe_depth((1, 2, 3)).startswith("fast")
    assert describe_depth((2, 4)).startswith("custom")


def test_saved_report_name(session, fake_supervisor):
    fake_supervisor.responder = _responder()
    analysis = HostAnalysis(session)
    report = analysis.run("10.0.0.5", phases=(1,))
    saved = analysis.save(report, ReportStore(session.workdir))
    assert re.fullmatch(r"host_analysis_10\.0\.0\.5_\d{8}_\d{6}\.txt", saved.name)
    assert saved.kind == "host_analysis"
    assert "COMPLETE HOST ANALYSIS REPORT" in saved.text()


def test_timed_out_connectivity_keeps_partial_replies(session, fake_supervisor):
    def respond(cmd, label):
        if cmd[0] == "ping":
            return unit(cmd, PING, timed_out=True, elapsed=10)
        return unit(cmd, "")

    fake_supervisor.responder = respond
    report = HostAnalysis(session).run("10.0.0.5", phases=(1,))
    text = report.render()
    section = text.split("[1] ")[1].split("SCAN SUMMARY")[0]
    assert "timed out" in section
    assert "icmp_seq=1" in section
    assert "OFFLINE" not in section


def test_silent_timeout_is_not_reported_offline(session, fake_supervisor):
    fake_supervisor.responder = lambda cmd, label: unit(cmd, "", timed_out=True)
    text = HostAnalysis(session).run("10.0.0.5", phases=(1,)).render()
    assert "no reply before the phase timed out" in text
    assert "OFFLINE" not in text


def test_unselected_phases_are_recorded_as_skipped(session, fake_supervisor):
    fake_supervisor.responder = _responder()
    seen = []
    report = HostAnalysis(session).run("10.0.0.5", phases=(3, 1), on_phase=seen.append)
    assert [(r.phase_id, r.status) for r in report.results if r.status is PhaseStatus.SKIPPED] == [
        (2, PhaseStatus.SKIPPED), (4, PhaseStatus.SKIPPED), (5, PhaseStatus.SKIPPED), (6, PhaseStatus.SKIPPED),
    ]
    assert [r.phase_id for r in seen] == [1, 3]
    assert report.section_ids() == [1, 3]
    assert "Phases run: 1, 3" in report.render()
