"""Logging setup for the command line."""

from __future__ import annotations

import logging

from rich.console import Console as RichConsole
from rich.logging import RichHandler


def configure_logging(verbose: bool = False) -> logging.Logger:
    """Attach a Rich handler to the ``primpact`` logger.

    Library code only creates loggers; handlers are installed here, once, by
    the CLI entry point.
    """
    logger = logging.getLogger("primpact")
    logger.setLevel(logging.DEBUG if verbose else logging.WARNING)
    if not any(isinstance(h, RichHandler) for h in logger.handlers):
        handler = RichHandler(
            console=RichConsole(stderr=True),
            show_path=False,
            rich_tracebacks=verbose,
        )
        handler.setFormatter(logging.Formatter("%(message)s"))
        logger.addHandler(handler)
    return logger
