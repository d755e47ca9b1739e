from pathlib import Path

from netscope.config import Settings, DEFAULT_WORKDIR_NAME, MIN_POLL_INTERVAL
from netscope.core.session import Session, PrivilegeLevel, prepare_workdir


def test_defaults(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    for var in ("NETSCOPE_WORKDIR", "NETSCOPE_PAGE_SIZE", "NETSCOPE_TIMEOUT_PHASE2"):
        monkeypatch.delenv(var, raising=False)
    settings = Settings.from_env()
    assert settings.workdir == tmp_path / DEFAULT_WORKDIR_NAME
    assert settings.page_size == 20
    assert settings.phase_timeout(2, elevated=True) == 120
    assert settings.phase_timeout(2, elevated=False) == 90


def test_environment_overrides(monkeypatch, tmp_path):
    monkeypatch.setenv("NETSCOPE_WORKDIR", str(tmp_path / "w"))
    monkeypatch.setenv("NETSCOPE_PAGE_SIZE", "5")
    monkeypatch.setenv("NETSCOPE_TIMEOUT_PHASE2", "7")
    monkeypatch.setenv("NETSCOPE_POLL_INTERVAL", "not-a-number")
    settings = Settings.from_env()
    assert settings.workdir == tmp_path / "w"
    assert settings.page_size == 5
    assert settings.phase_timeout(2, elevated=True) == 7
    assert settings.poll_interval == 0.1


def test_unusable_workdir_falls_back_to_cwd(monkeypatch, tmp_path):
    blocker = tmp_path / "file"
    blocker.write_text("")
    monkeypatch.chdir(tmp_path)
    assert prepare_workdir(blocker / "sub") == Path.cwd()


def test_sudo_prefix_only_for_privileged_commands(settings):
    session = Session(settings, privilege=PrivilegeLevel.SUDO)
    assert session.elevated
    assert session.command(["nmap", "-sS", "t"], privileged=True) == ["sudo", "-n", "nmap", "-sS", "t"]
    assert session.command(["ping", "t"]) == ["ping", "t"]

    root = Session(settings, privilege=PrivilegeLevel.ROOT)
    assert root.command(["nmap", "-sS", "t"], privileged=True) == ["nmap", "-sS", "t"]


def test_poll_interval_has_a_floor(monkeypatch, tmp_path):
    monkeypatch.setenv("NETSCOPE_WORKDIR", str(tmp_path))
    monkeypatch.setenv("NETSCOPE_POLL_INTERVAL", "-1")
    assert Settings.from_env().poll_interval == MIN_POLL_INTERVAL
