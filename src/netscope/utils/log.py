import logging

from rich.console import Console
from rich.logging import RichHandler

# Narration, progress and logs all go to stderr; stdout carries data only.
err_console: Console = Console(stderr=True)


def configure_logging(level: str = "WARNING", verbose: bool = False) -> None:
    root = logging.getLogger("netscope")
    root.setLevel(logging.DEBUG if verbose else getattr(logging, level, logging.WARNING))
    for handler in list(root.handlers):
        root.removeHandler(handler)
    root.addHandler(RichHandler(console=err_console, show_path=False, markup=False))
    root.propagate = False
