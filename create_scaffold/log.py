"""Logger configuration for create-scaffold.

Operational messages (cache hits, file copies, setup-script output) go
through the ``create_scaffold`` logger; user-facing status lines use the
Rich console helpers in :mod:`create_scaffold.utils`.
"""

from __future__ import annotations

import logging
from typing import Final

from rich.logging import RichHandler

from create_scaffold.utils import console

LOGGER_NAME: Final[str] = "create_scaffold"


def setup_logger(verbose: bool = False) -> logging.Logger:
    """Attach a Rich handler to the package logger and return it.

    Calling this repeatedly replaces the previous handler rather than
    stacking duplicates.
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)

    for handler in list(logger.handlers):
        handler.close()
    logger.handlers.clear()

    handler = RichHandler(console=console, show_path=False, markup=False)
    handler.setLevel(logging.DEBUG if verbose else logging.INFO)
    logger.addHandler(handler)
    return logger


def get_logger(name: str | None = None) -> logging.Logger:
    """Return the package logger or one of its children."""
    if not name:
        return logging.getLogger(LOGGER_NAME)
    return logging.getLogger(f"{LOGGER_NAME}.{name}")


__all__ = ["LOGGER_NAME", "setup_logger", "get_logger"]
