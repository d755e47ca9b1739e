from typing import Callable

import pytest

from netscope.config import Settings
from netscope.core.session import Session, PrivilegeLevel
from netscope.core.supervisor import UnitResult


class FakeSupervisor:
    """Stands in for Supervisor; ``responder(command, label)`` returns the UnitResult."""

    def __init__(self, responder: Callable[[list[str], str | None], UnitResult] | None = None) -> None:
        self.responder = responder or (lambda cmd, label: UnitResult(cmd, 0, "", 0.0))
        self.calls: list[tuple[list[str], float, str | None]] = []

    def run(self, command, timeout, label=None):
        return self.run_many([command], timeout, label)[0]

    def run_many(self, commands, timeout, label=None):
        results = []
        for cmd in commands:
            self.calls.append((list(cmd), timeout, label))
            results.append(self.responder(list(cmd), label))
        return results


def unit(command, output="", returncode=0, timed_out=False, elapsed=0.1) -> UnitResult:
    return UnitResult(list(command), None if timed_out else returncode, output, elapsed, timed_out)


@pytest.fixture
def settings(tmp_path):
    return Settings(workdir=tmp_path / "work", poll_interval=0.02)


@pytest.fixture
def session(settings):
    return Session(settings, console=None, privilege=PrivilegeLevel.STANDARD)


@pytest.fixture
def fake_supervisor(session):
    fake = FakeSupervisor()
    session.supervisor = fake
    return fake
