"""Logging helpers for mailcraft.

Modules inside the package log through standard ``logging.getLogger(__name__)``
loggers under the ``mailcraft`` namespace. :func:`init_logging` attaches the
handlers of a :class:`LogManager` to that namespace so library output
(including TRACE-level SMTP diagnostics) becomes visible.

Examples:
    >>> from mailcraft.logging import init_logging
    >>> log = init_logging(config={"console": {"level": "TRACE"}})  # doctest: +SKIP
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from mailcraft.logging.manager import SUCCESS_LEVEL, TRACE_LEVEL, LogManager

_ROOT_NAME = "mailcraft"
_root_logger: LogManager | None = None


def init_logging(
    *,
    preset: str | None = None,
    config: Mapping[str, Any] | None = None,
) -> LogManager:
    """Create the package-wide LogManager and wire it to ``mailcraft.*`` loggers.

    Args:
        preset: Optional preset name (``dev``, ``prod``, ``debug``).
        config: Optional explicit logging configuration.

    Returns:
        The root LogManager.
    """
    global _root_logger  # pylint: disable=global-statement

    manager = LogManager(name=_ROOT_NAME, preset=preset, config=config)

    std_logger = logging.getLogger(_ROOT_NAME)
    std_logger.setLevel(TRACE_LEVEL)
    for handler in list(std_logger.handlers):
        std_logger.removeHandler(handler)
    for handler in manager.handlers:
        std_logger.addHandler(handler)
    std_logger.propagate = False

    _root_logger = manager
    return manager


def get_logger(name: str | None = None) -> logging.Logger:
    """Return a logger in the ``mailcraft`` namespace.

    Args:
        name: Logger name. ``None`` returns the root LogManager when
            :func:`init_logging` has run, otherwise the standard
            ``mailcraft`` logger.

    Examples:
        >>> get_logger("mail.builder").name
        'mailcraft.mail.builder'
    """
    if name is None:
        return _root_logger if _root_logger is not None else logging.getLogger(_ROOT_NAME)
    if name == _ROOT_NAME or name.startswith(f"{_ROOT_NAME}."):
        return logging.getLogger(name)
    return logging.getLogger(f"{_ROOT_NAME}.{name}")


__all__ = [
    "SUCCESS_LEVEL",
    "TRACE_LEVEL",
    "LogManager",
    "get_logger",
    "init_logging",
]
