from __future__ import annotations

import os, subprocess, logging
from enum import Enum
from pathlib import Path

from rich.console import Console

from ..config import Settings
from ..utils.io import tool_exists
from .models import MissingDependencyError
from .registry import HostRegistry
from .supervisor import Supervisor

log = logging.getLogger("netscope.session")

REQUIRED_TOOLS = ("nmap",)


class PrivilegeLevel(str, Enum):
    ROOT     = "root"
    SUDO     = "sudo"        # credentials cached once with operator consent
    STANDARD = "standard"


def detect_privilege() -> PrivilegeLevel:
    return PrivilegeLevel.ROOT if os.geteuid() == 0 else PrivilegeLevel.STANDARD


def prepare_workdir(preferred: Path) -> Path:
    """Create and write-test ``preferred``; fall back to the current directory."""
    try:
        preferred.mkdir(parents=True, exist_ok=True)
        probe = preferred / "test_write.tmp"
        probe.touch()
        probe.unlink()
        return preferred
    except OSError as exc:
        log.warning("working directory %s unusable (%s), using current directory", preferred, exc)
        return Path.cwd()


class Session:
    """
    Everything one run of the tool owns: working directory, host registry,
    supervisor and the privilege level decided at start-up.  Built once and
    handed to every component.
    """

    def __init__(
        self,
        settings: Settings,
        console: Console | None = None,
        privilege: PrivilegeLevel | None = None,
    ) -> None:
        self.settings = settings
        self.console = console
        self.workdir = prepare_workdir(settings.workdir)
        self.privilege = privilege or detect_privilege()
        self.registry = HostRegistry(self.workdir / "discovered_hosts.txt")
        self.supervisor = Supervisor(self.workdir, console, settings.poll_interval)

    # ------------- public API -------------

    @property
    def elevated(self) -> bool:
        return self.privilege in (PrivilegeLevel.ROOT, PrivilegeLevel.SUDO)

    def command(self, args: list[str], privileged: bool = False) -> list[str]:
        """Prefix ``args`` with non-interactive sudo when it needs the cached credentials."""
        if privileged and self.privilege is PrivilegeLevel.SUDO:
            return ["sudo", "-n", *args]
        return list(args)

    def elevate(self) -> bool:
        """Validate sudo credentials once (operator types the password here)."""
        if self.privilege is not PrivilegeLevel.STANDARD:
            return True
        if not tool_exists("sudo"):
            log.warning("sudo not available; staying unprivileged")
            return False
        result = subprocess.run(["sudo", "-v"], check=False)
        if result.returncode != 0:
            log.warning("sudo validation failed (exit %d)", result.returncode)
            return False
        self.privilege = PrivilegeLevel.SUDO
        return True

    def path(self, name: str) -> Path:
        return self.workdir / name


def check_dependencies(tools: tuple[str, ...] = REQUIRED_TOOLS) -> None:
    missing = [t for t in tools if not tool_exists(t)]
    if missing:
        raise MissingDependencyError(
            f"Missing dependencies: {' '.join(missing)} "
            f"(Debian/Ubuntu: sudo apt install {' '.join(missing)})"
        )
