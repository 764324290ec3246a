"""Logging setup for the vibesprint command line."""

import logging

from rich.console import Console
from rich.logging import RichHandler

LOGGER_NAME = "vibesprint"


def configure_logging(verbose: bool = False) -> None:
    """Route the vibesprint logger to a rich handler on stderr. Safe to call more than once."""
    logger = logging.getLogger(LOGGER_NAME)
    logger.propagate = False
    logger.handlers.clear()

    handler = RichHandler(
        console=Console(stderr=True),
        show_path=verbose,
        rich_tracebacks=True,
        markup=False,
    )
    handler.setFormatter(logging.Formatter("%(message)s", datefmt="[%X]"))
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)
