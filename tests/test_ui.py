import io
from unittest import mock

import pytest
from rich.console import Console
from rich.prompt import Prompt, IntPrompt

from netscope.core.models import NetscopeError, Subnet, SubnetSource
from netscope.ui import pager
from netscope.ui.menus import Shell

REPORT = [
    "Starting Nmap 7.94",
    "22/tcp open ssh OpenSSH 9.6",
    "80/tcp open http nginx 1.24",
]


@pytest.fixture
def console():
    return Console(file=io.StringIO(), width=120, color_system=None)


def _output(console):
    return console.file.getvalue()


@pytest.fixture
def shell(session, console):
    return Shell(session, console)


# ------------- pager -------------

def test_filter_without_matches_never_opens_viewer(console):
    with mock.patch.object(Prompt, "ask", return_value="v"), \
         mock.patch.object(pager, "page") as viewer:
        pager.filter_report(console, REPORT, "scan")
    assert not viewer.called
    assert "No vulnerabilities found in this report" in _output(console)


def test_filter_with_matches_opens_viewer(console):
    with mock.patch.object(Prompt, "ask", return_value="p"), \
         mock.patch.object(pager, "page") as viewer:
        pager.filter_report(console, REPORT, "scan")
    lines = viewer.call_args.args[1]
    assert lines == ["22/tcp open ssh OpenSSH 9.6", "80/tcp open http nginx 1.24"]


def test_goto_outside_range_is_refused(console):
    with mock.patch.object(Prompt, "ask", side_effect=["g", "", "q"]), \
         mock.patch.object(IntPrompt, "ask", return_value=9):
        pager.page(console, REPORT, "scan", page_size=2)
    assert "Invalid page number" in _output(console)
    assert "Page 1 of 2" in _output(console)


def test_unknown_page_command(console):
    with mock.patch.object(Prompt, "ask", side_effect=["x", "n", "q"]):
        pager.page(console, REPORT, "scan", page_size=2)
    out = _output(console)
    assert "Invalid command" in out
    assert "Page 2 of 2" in out


# ------------- menus -------------

def test_host_menu_reprompts_on_bad_number(shell, session, console):
    session.registry.append("10.0.0.1", "router")
    with mock.patch.object(Prompt, "ask", side_effect=["²", "7", "0"]), \
         mock.patch.object(Shell, "host_detail") as detail:
        shell.host_menu()
    assert not detail.called
    assert _output(console).count("Invalid host number") == 2


def test_host_menu_opens_selected_host(shell, session):
    session.registry.append("10.0.0.1", "router")
    session.registry.append("10.0.0.2", "nas")
    with mock.patch.object(Prompt, "ask", side_effect=["2", "0"]), \
         mock.patch.object(Shell, "host_detail") as detail:
        shell.host_menu()
    assert detail.call_args.args[0].ip == "10.0.0.2"


def test_select_subnet_reprompts_until_valid(shell, console):
    shell._subnets = [
        Subnet("192.168.1.0/24", SubnetSource.INTERFACE),
        Subnet("172.17.0.0/16", SubnetSource.VIRTUAL),
    ]
    with mock.patch.object(Prompt, "ask", side_effect=["x", "5", "³", "2"]):
        assert shell.select_subnet() == "172.17.0.0/16"
    assert _output(console).count("Invalid selection") == 3


def test_select_subnet_cancel(shell):
    shell._subnets = [Subnet("10.0.0.0/24", SubnetSource.FALLBACK)]
    with mock.patch.object(Prompt, "ask", return_value="0"):
        assert shell.select_subnet() is None


@pytest.mark.parametrize("failure", [NetscopeError("nmap went away"), RuntimeError("boom")])
def test_main_menu_survives_failed_operation(shell, console, failure):
    with mock.patch.object(Prompt, "ask", side_effect=["2", "0"]), \
         mock.patch.object(Shell, "quick_overview", side_effect=failure) as overview:
        shell.run()
    assert overview.called
    out = _output(console)
    assert str(failure.args[0]) in out
    assert "Exiting..." in out
