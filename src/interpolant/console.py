"""Shared console and logging setup for the CLI"""

from __future__ import annotations

import logging
import os

from rich.console import Console
from rich.logging import RichHandler

console = Console()
err_console = Console(stderr=True)

DEBUG_ENV = "INTERPOLANT_DEBUG"


def setup_logging(verbose: bool = False) -> None:
    """Configure logging for the interpolant CLI.

    Log levels:
    - Normal: Only warnings/errors shown
    - Verbose (-v): INFO level - shows partial loading, capture writes
    - Debug (INTERPOLANT_DEBUG=1): DEBUG level - cache and lookup details
    """
    debug = bool(os.environ.get(DEBUG_ENV))
    if debug:
        level = logging.DEBUG
    elif verbose:
        level = logging.INFO
    else:
        level = logging.WARNING

    handler = RichHandler(
        console=err_console,
        show_time=verbose,
        show_path=debug,
        rich_tracebacks=True,
    )
    handler.setFormatter(logging.Formatter("%(message)s"))

    logger = logging.getLogger("interpolant")
    logger.setLevel(level)
    logger.handlers = [handler]
    logger.propagate = False
