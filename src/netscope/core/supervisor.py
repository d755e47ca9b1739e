"""
Supervised units of work.

Every slow external command (probe, sweep, fingerprint, port scan, service
enumeration, vulnerability check, path trace, name lookup) runs through
``Supervisor``: the command is started as its own process group with output
captured to a file, liveness is polled at a short fixed interval while a
spinner and elapsed time are drawn, and a unit that outlives its budget has
its whole process group terminated.  Whatever the command had written before
that point is returned.
"""

from __future__ import annotations

import os, signal, shutil, subprocess, tempfile, time, logging
from contextlib import nullcontext
from dataclasses import dataclass
from pathlib import Path
from typing import IO, Sequence

from rich.console import Console

log = logging.getLogger("netscope.supervisor")

NOT_FOUND = 127


@dataclass
class UnitResult:
    command: list[str]
    returncode: int | None
    output: str
    elapsed: float
    timed_out: bool = False

    @property
    def ok(self) -> bool:
        return not self.timed_out and self.returncode == 0


@dataclass
class _Unit:
    command: list[str]
    proc: subprocess.Popen
    capture: Path
    handle: IO[bytes]
    killed: bool = False
    collected: bool = False


class Supervisor:
    def __init__(
        self,
        workdir: Path,
        console: Console | None = None,
        poll_interval: float = 0.1,
        kill_grace: float = 0.5,
    ) -> None:
        self.workdir = workdir
        self.console = console
        self.poll_interval = poll_interval
        self.kill_grace = kill_grace

    # ------------- public API -------------

    def run(self, command: Sequence[str], timeout: float, label: str | None = None) -> UnitResult:
        return self.run_many([command], timeout, label)[0]

    def run_many(
        self, commands: Sequence[Sequence[str]], timeout: float, label: str | None = None
    ) -> list[UnitResult]:
        """Start all commands together and wait for them as one unit under one deadline."""
        start = time.monotonic()
        slots: list[_Unit | UnitResult] = []
        try:
            for cmd in commands:
                slots.append(self._start(list(cmd)))
            units = [u for u in slots if isinstance(u, _Unit)]

            status_ctx = (
                self.console.status(label, spinner="dots")
                if (label and self.console is not None)
                else nullcontext()
            )
            with status_ctx as status:
                while any(u.proc.poll() is None for u in units):
                    elapsed = time.monotonic() - start
                    if elapsed >= timeout:
                        log.warning("timeout after %.1fs: %s", elapsed, self._describe(units))
                        for unit in units:
                            if unit.proc.poll() is None:
                                self._terminate(unit)
                        break
                    if status is not None:
                        status.update(f"{label} [cyan]({elapsed:.0f}s)[/]")
                    time.sleep(self.poll_interval)

            elapsed = time.monotonic() - start
            return [
                slot if isinstance(slot, UnitResult) else self._collect(slot, elapsed)
                for slot in slots
            ]
        finally:
            # early exit (Ctrl-C, error): children run in their own sessions
            for slot in slots:
                if isinstance(slot, _Unit) and not slot.collected:
                    self._abandon(slot)

    # ------------- internals -------------

    def _start(self, command: list[str]) -> _Unit | UnitResult:
        if not command or shutil.which(command[0]) is None:
            name = command[0] if command else "<empty>"
            log.info("not found: %s", name)
            return UnitResult(command, NOT_FOUND, f"command not found: {name}\n", 0.0)

        fd, capture = tempfile.mkstemp(dir=self.workdir, prefix=".unit-", suffix=".out")
        handle = os.fdopen(fd, "wb")
        log.debug("exec: %s", " ".join(command))
        try:
            proc = subprocess.Popen(
                command,
                stdout=handle,
                stderr=subprocess.STDOUT,
                stdin=subprocess.DEVNULL,
                start_new_session=True,
            )
        except OSError as exc:
            handle.close()
            Path(capture).unlink(missing_ok=True)
            log.warning("failed to start %s: %s", command[0], exc)
            return UnitResult(command, NOT_FOUND, f"{exc}\n", 0.0)
        return _Unit(command, proc, Path(capture), handle)

    def _terminate(self, unit: _Unit) -> None:
        unit.killed = True
        for sig in (signal.SIGTERM, signal.SIGKILL):
            try:
                os.killpg(unit.proc.pid, sig)
            except ProcessLookupError:
                return
            except PermissionError:
                # elevated children (sudo) may refuse a group signal
                unit.proc.send_signal(sig)
            try:
                unit.proc.wait(timeout=self.kill_grace)
                return
            except subprocess.TimeoutExpired:
                continue

    def _collect(self, unit: _Unit, elapsed: float) -> UnitResult:
        unit.proc.wait()
        unit.collected = True
        unit.handle.close()
        output = unit.capture.read_bytes().decode("utf-8", errors="replace")
        unit.capture.unlink(missing_ok=True)
        if unit.proc.returncode not in (0, None) and not unit.killed:
            log.info("non-zero exit (%d) from %s", unit.proc.returncode, unit.command[0])
        return UnitResult(unit.command, unit.proc.returncode, output, elapsed, unit.killed)

    def _abandon(self, unit: _Unit) -> None:
        log.debug("abandoning %s", " ".join(unit.command))
        unit.collected = True
        if unit.proc.poll() is None:
            self._terminate(unit)
        unit.handle.close()
        unit.capture.unlink(missing_ok=True)

    @staticmethod
    def _describe(units: list[_Unit]) -> str:
        return "; ".join(" ".join(u.command) for u in units)
