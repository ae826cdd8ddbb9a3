"""Logging setup for docvault entry points.

Library modules only ever call ``logging.getLogger(__name__)``. Handlers are
installed here, by the CLI or by an embedding application that wants
docvault's output formatted the same way.
"""

from __future__ import annotations

import logging
import sys
import threading

from rich.console import Console
from rich.logging import RichHandler

ROOT_LOGGER = "docvault"

_PLAIN_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"

_handler: logging.Handler | None = None
_lock = threading.Lock()


def parse_level(level: int | str) -> int:
    """Convert a level name such as ``"debug"`` to its numeric value.

    Raises:
        ValueError: If the name is not a logging level.
    """
    if isinstance(level, int):
        return level
    value = logging.getLevelName(level.upper())
    if not isinstance(value, int):
        raise ValueError(f"Unknown log level: {level}")
    return value


def configure_logging(
    level: int | str = logging.WARNING,
    *,
    rich: bool = True,
    console: Console | None = None,
) -> logging.Handler:
    """Attach a single handler to the ``docvault`` logger.

    Calling this again replaces the previously installed handler.

    Args:
        level: Log level for the ``docvault`` logger.
        rich: Render records with :class:`rich.logging.RichHandler`; otherwise
            use a plain stream handler on stderr.
        console: Console for the rich handler (defaults to stderr).

    Returns:
        The installed handler.
    """
    global _handler

    numeric = parse_level(level)
    if rich:
        handler: logging.Handler = RichHandler(
            console=console or Console(stderr=True),
            show_path=False,
            rich_tracebacks=True,
            markup=False,
        )
        handler.setFormatter(logging.Formatter("%(message)s"))
    else:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(_PLAIN_FORMAT))

    logger = logging.getLogger(ROOT_LOGGER)
    with _lock:
        if _handler is not None:
            logger.removeHandler(_handler)
        logger.addHandler(handler)
        logger.setLevel(numeric)
        _handler = handler
    return handler


def reset_logging() -> None:
    """Remove the handler installed by :func:`configure_logging`."""
    global _handler

    logger = logging.getLogger(ROOT_LOGGER)
    with _lock:
        if _handler is not None:
            logger.removeHandler(_handler)
            _handler = None
        logger.setLevel(logging.NOTSET)
