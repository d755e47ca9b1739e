import os, re, shutil, logging, tempfile
from datetime import datetime
from pathlib import Path

log = logging.getLogger("netscope")

TS_FORMAT = "%Y%m%d_%H%M%S"


def tool_exists(name: str) -> bool:
    return shutil.which(name) is not None


def timestamp(now: datetime | None = None) -> str:
    return (now or datetime.now()).strftime(TS_FORMAT)


def read_if_readable(path: str | Path) -> str:
    """Return the file's text, or '' when it is missing or unreadable."""
    try:
        return Path(path).read_text(errors="ignore")
    except OSError as exc:
        log.debug("skip %s: %s", path, exc)
        return ""


def atomic_write(path: Path, text: str) -> Path:
    """Write via a sibling temp file and os.replace so readers never see a partial file."""
    fd, tmp = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            fh.write(text)
        os.replace(tmp, path)
    except BaseException:
        Path(tmp).unlink(missing_ok=True)
        raise
    return path


def safe_name(text: str) -> str:
    """``text`` reduced to characters that are safe inside a single file name."""
    return re.sub(r"[^A-Za-z0-9._-]", "-", text).strip(".") or "-"
