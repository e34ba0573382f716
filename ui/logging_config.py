"""
Logging setup for the CLI.

Log records go through ``rich``'s handler on stderr so they never tangle
with the dashboard or with ``--json`` output on stdout.
"""
from __future__ import annotations

import logging
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler


def setup_logging(level: str = "WARNING", console: Optional[Console] = None) -> logging.Logger:
    """Configure the root logger; replaces any handlers already installed."""
    logger = logging.getLogger()
    logger.setLevel(level.upper())

    if logger.hasHandlers():
        logger.handlers.clear()

    handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=False,
        rich_tracebacks=True,
        log_time_format="%H:%M:%S",
    )
    handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))
    logger.addHandler(handler)

    # aiohttp's access/client chatter is noise at DEBUG for a one-shot check
    logging.getLogger("aiohttp").setLevel(max(logger.level, logging.INFO))
    return logger
