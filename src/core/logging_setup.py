"""Logging configuration for CLI entry-points.

Library modules only create `logging.getLogger(__name__)`; handlers are
installed here, once, by whoever owns the process.
"""

from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler

_CONFIGURED = False


def configure_logging(level: str | int = "WARNING", *, console: Console | None = None) -> None:
    global _CONFIGURED

    root = logging.getLogger()
    root.setLevel(level if isinstance(level, int) else level.upper())
    if _CONFIGURED:
        return

    handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=False,
        rich_tracebacks=True,
    )
    handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))
    root.addHandler(handler)
    # httpx logs every request at INFO.
    logging.getLogger("httpx").setLevel(logging.WARNING)
    _CONFIGURED = True
