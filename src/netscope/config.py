"""Runtime settings, read from the environment (and a ``.env`` file if present)."""

import os, logging
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

log = logging.getLogger("netscope.config")

DEFAULT_WORKDIR_NAME = ".network_scanner_temp"
MIN_POLL_INTERVAL = 0.01

# phase id -> (elevated timeout, standard timeout), seconds
DEFAULT_PHASE_TIMEOUTS: dict[int, tuple[float, float]] = {
    1: (10, 10),
    2: (120, 90),
    3: (120, 150),
    4: (300, 300),
    5: (480, 360),
    6: (45, 45),
}


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        log.warning("ignoring %s=%r (not a number)", name, raw)
        return default


@dataclass
class Settings:
    workdir: Path = field(default_factory=lambda: Path.cwd() / DEFAULT_WORKDIR_NAME)
    page_size: int = 20
    poll_interval: float = 0.1
    log_level: str = "WARNING"
    discovery_timeout: float = 60.0
    phase_timeouts: dict[int, tuple[float, float]] = field(
        default_factory=lambda: dict(DEFAULT_PHASE_TIMEOUTS)
    )

    def phase_timeout(self, phase_id: int, elevated: bool) -> float:
        privileged, standard = self.phase_timeouts[phase_id]
        return privileged if elevated else standard

    @classmethod
    def from_env(cls) -> "Settings":
        load_dotenv()
        settings = cls()
        workdir = os.getenv("NETSCOPE_WORKDIR")
        if workdir:
            settings.workdir = Path(workdir).expanduser()
        settings.page_size = max(1, int(_env_float("NETSCOPE_PAGE_SIZE", settings.page_size)))
        settings.poll_interval = max(MIN_POLL_INTERVAL, _env_float("NETSCOPE_POLL_INTERVAL", settings.poll_interval))
        settings.log_level = os.getenv("NETSCOPE_LOG_LEVEL", settings.log_level).upper()
        settings.discovery_timeout = _env_float("NETSCOPE_DISCOVERY_TIMEOUT", settings.discovery_timeout)
        for phase_id, (privileged, standard) in DEFAULT_PHASE_TIMEOUTS.items():
            override = os.getenv(f"NETSCOPE_TIMEOUT_PHASE{phase_id}")
            if override:
                value = _env_float(f"NETSCOPE_TIMEOUT_PHASE{phase_id}", standard)
                settings.phase_timeouts[phase_id] = (value, value)
        return settings
