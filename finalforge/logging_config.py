"""Logging setup for the finalforge CLI.

Usage:
    from finalforge.logging_config import setup_logging

    setup_logging("DEBUG")  # Call once at startup
    logger = logging.getLogger(__name__)
"""

from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler

_HANDLER_NAME = "finalforge-rich"


def setup_logging(level: str = "INFO") -> None:
    """Route ``finalforge.*`` loggers to a stderr ``RichHandler``.

    Idempotent: calling again only changes the level.
    """
    numeric = logging.getLevelName(level.upper())
    if not isinstance(numeric, int):
        raise ValueError(f"Unknown log level: {level!r}")

    root = logging.getLogger("finalforge")
    root.setLevel(numeric)
    if not any(h.get_name() == _HANDLER_NAME for h in root.handlers):
        handler = RichHandler(
            console=Console(stderr=True),
            show_path=False,
            rich_tracebacks=False,
        )
        handler.set_name(_HANDLER_NAME)
        handler.setFormatter(logging.Formatter("%(message)s"))
        root.addHandler(handler)
