"""Logging helpers for mailcraft.

Modules log through ``logging.getLogger(__name__)``. This module registers
an extra ``TRACE`` level below ``DEBUG`` used for verbose protocol output
(charset decisions, envelope details, SMTP conversations), and offers
:func:`init_logging` to attach a Rich console handler.

Examples:
    >>> import logging
    >>> from mailcraft.logging import TRACE_LEVEL
    >>> logging.getLevelName(TRACE_LEVEL)
    'TRACE'
"""

from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler

#: Numeric value of the TRACE level (below DEBUG=10).
TRACE_LEVEL = 5

logging.addLevelName(TRACE_LEVEL, "TRACE")

_LEVELS = {
    "TRACE": TRACE_LEVEL,
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}


def resolve_level(level: int | str) -> int:
    """Return the numeric logging level for a name or number.

    Args:
        level: Level name (case-insensitive) or numeric level.

    Returns:
        The numeric level.

    Raises:
        ValueError: If the name is not a known level.

    Examples:
        >>> resolve_level("trace")
        5
        >>> resolve_level(20)
        20
    """
    if isinstance(level, int):
        return level
    try:
        return _LEVELS[level.strip().upper()]
    except KeyError:
        raise ValueError(f"Unknown log level {level!r} (expected one of {', '.join(_LEVELS)})") from None


def init_logging(
    level: int | str = "INFO",
    *,
    console: Console | None = None,
    show_path: bool = False,
) -> logging.Logger:
    """Attach a Rich handler to the ``mailcraft`` logger.

    Calling it again replaces the handler installed by a previous call, so
    the function is safe to use from CLI entry points and tests.

    Args:
        level: Log level name or number.
        console: Rich console to write to (defaults to stderr).
        show_path: Whether Rich should print the emitting source path.

    Returns:
        The configured package logger.
    """
    logger = logging.getLogger("mailcraft")
    for handler in list(logger.handlers):
        if getattr(handler, "_mailcraft_handler", False):
            logger.removeHandler(handler)

    handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=show_path,
        rich_tracebacks=True,
        markup=False,
    )
    handler._mailcraft_handler = True  # type: ignore[attr-defined]
    handler.setFormatter(logging.Formatter("%(message)s", datefmt="[%X]"))
    logger.addHandler(handler)
    logger.setLevel(resolve_level(level))
    return logger


__all__ = [
    "TRACE_LEVEL",
    "init_logging",
    "resolve_level",
]
