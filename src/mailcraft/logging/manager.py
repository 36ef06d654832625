"""Logger with presets, rich console output and structured context.

``LogManager`` is a :class:`logging.Logger` subclass. The logger itself
accepts every level down to ``TRACE``; handlers decide what is emitted.

Two custom levels are registered:

- ``TRACE`` (5): wire-level diagnostics such as the SMTP dialogue.
- ``SUCCESS`` (25): positive outcomes, between INFO and WARNING.

Examples:
    >>> logger = LogManager(name="demo", preset="dev")  # doctest: +SKIP
    >>> logger.info("Message built", recipients=3)  # doctest: +SKIP
"""

from __future__ import annotations

import copy
import logging
import logging.handlers
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from rich.console import Console
from rich.logging import RichHandler

from mailcraft.config import get_config
from mailcraft.config.exceptions import ConfigNotLoadedError
from mailcraft.config.loader import deep_merge

TRACE_LEVEL = 5
SUCCESS_LEVEL = 25

logging.addLevelName(TRACE_LEVEL, "TRACE")
logging.addLevelName(SUCCESS_LEVEL, "SUCCESS")

# Keyword arguments understood by logging.Logger._log
_LOG_KWARGS = frozenset({"exc_info", "extra", "stack_info", "stacklevel"})

DEFAULT_CONFIG: dict[str, Any] = {
    "output": "console",
    "console": {
        "level": "INFO",
        "show_path": False,
    },
    "file": {
        "log_path": ".",
        "log_dir": "logs",
        "log_name": "mailcraft.log",
        "level": "DEBUG",
        "max_bytes": 5 * 1024 * 1024,
        "backup_count": 3,
    },
    "icons": {
        "show": True,
        "TRACE": "🔬",
        "DEBUG": "🐛",
        "INFO": "ℹ️",
        "SUCCESS": "✅",
        "WARNING": "⚠️",
        "ERROR": "❌",
        "CRITICAL": "🔥",
    },
}

PRESETS: dict[str, dict[str, Any]] = {
    "dev": {
        "output": "console",
        "console": {"level": "DEBUG", "show_path": True},
    },
    "prod": {
        "output": "file",
        "file": {"level": "INFO"},
        "icons": {"show": False},
    },
    "debug": {
        "output": "both",
        "console": {"level": "TRACE", "show_path": True},
        "file": {"level": "TRACE"},
    },
}


def _resolve_level(value: Any, fallback: int = logging.INFO) -> int:
    """Translate a level name or number into a logging level."""
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        level = logging.getLevelName(value.upper())
        if isinstance(level, int):
            return level
    return fallback


def _global_logger_config() -> Mapping[str, Any]:
    """Return ``logger.defaults`` from the loaded configuration, if any."""
    try:
        config = get_config()
    except ConfigNotLoadedError:
        return {}
    section = config.get("logger") or {}
    merged: dict[str, Any] = dict(section.get("defaults") or {})
    if section.get("icons"):
        merged["icons"] = dict(section["icons"])
    return merged


class LogManager(logging.Logger):
    """Logger configured from presets, global config and explicit overrides.

    Configuration layers, later ones winning: built-in defaults, the
    ``logger`` section of ``mailcraft.conf.yml``, the preset, and the
    ``config`` argument.

    Args:
        name: Logger name.
        preset: One of ``dev``, ``prod`` or ``debug``. Unknown presets are
            ignored.
        config: Explicit configuration overrides.
    """

    def __init__(
        self,
        name: str = "mailcraft",
        *,
        preset: str | None = None,
        config: Mapping[str, Any] | None = None,
    ) -> None:
        super().__init__(name, TRACE_LEVEL)
        self._config = self._build_config(preset, config)
        self._setup_handlers()

    @staticmethod
    def _build_config(preset: str | None, config: Mapping[str, Any] | None) -> dict[str, Any]:
        merged = copy.deepcopy(DEFAULT_CONFIG)
        merged = deep_merge(merged, _global_logger_config())
        if preset:
            merged = deep_merge(merged, PRESETS.get(preset, {}))
        if config:
            merged = deep_merge(merged, config)
        return merged

    def _setup_handlers(self) -> None:
        output = self._config.get("output", "console")
        if output in ("console", "both"):
            self.addHandler(self._console_handler())
        if output in ("file", "both"):
            self.addHandler(self._file_handler())

    def _console_handler(self) -> logging.Handler:
        console_cfg = self._config.get("console", {})
        handler = RichHandler(
            console=Console(stderr=True),
            show_path=bool(console_cfg.get("show_path", False)),
            rich_tracebacks=True,
        )
        handler.setLevel(_resolve_level(console_cfg.get("level")))
        return handler

    def _file_handler(self) -> logging.Handler:
        file_cfg = self._config.get("file", {})
        log_dir = Path(file_cfg.get("log_path", ".")) / file_cfg.get("log_dir", "logs")
        log_dir.mkdir(parents=True, exist_ok=True)
        handler = logging.handlers.RotatingFileHandler(
            log_dir / file_cfg.get("log_name", "mailcraft.log"),
            maxBytes=int(file_cfg.get("max_bytes", 0)),
            backupCount=int(file_cfg.get("backup_count", 0)),
            encoding="utf-8",
        )
        handler.setFormatter(logging.Formatter("%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"))
        handler.setLevel(_resolve_level(file_cfg.get("level"), logging.DEBUG))
        return handler

    def _format_with_icon(self, level_name: str, message: str) -> str:
        icons = self._config.get("icons", {})
        if not icons.get("show", False):
            return message
        icon = icons.get(level_name)
        if not icon:
            return message
        return f"{icon} {message}"

    def _log_with_context(self, level: int, msg: object, args: tuple[Any, ...], kwargs: dict[str, Any]) -> None:
        if not self.isEnabledFor(level):
            return
        log_kwargs = {key: kwargs.pop(key) for key in list(kwargs) if key in _LOG_KWARGS}
        text = str(msg)
        if kwargs:
            context = " ".join(f"{key}={value!r}" for key, value in kwargs.items())
            text = f"{text} | {context}"
        text = self._format_with_icon(logging.getLevelName(level), text)
        log_kwargs.setdefault("stacklevel", 3)
        self._log(level, text, args, **log_kwargs)

    def trace(self, msg: object, *args: Any, **kwargs: Any) -> None:
        """Log at TRACE level."""
        self._log_with_context(TRACE_LEVEL, msg, args, kwargs)

    def debug(self, msg: object, *args: Any, **kwargs: Any) -> None:
        """Log at DEBUG level with optional ``key=value`` context."""
        self._log_with_context(logging.DEBUG, msg, args, kwargs)

    def info(self, msg: object, *args: Any, **kwargs: Any) -> None:
        """Log at INFO level with optional ``key=value`` context."""
        self._log_with_context(logging.INFO, msg, args, kwargs)

    def success(self, msg: object, *args: Any, **kwargs: Any) -> None:
        """Log at SUCCESS level."""
        self._log_with_context(SUCCESS_LEVEL, msg, args, kwargs)

    def warning(self, msg: object, *args: Any, **kwargs: Any) -> None:
        """Log at WARNING level with optional ``key=value`` context."""
        self._log_with_context(logging.WARNING, msg, args, kwargs)

    def error(self, msg: object, *args: Any, **kwargs: Any) -> None:
        """Log at ERROR level with optional ``key=value`` context."""
        self._log_with_context(logging.ERROR, msg, args, kwargs)

    def critical(self, msg: object, *args: Any, **kwargs: Any) -> None:
        """Log at CRITICAL level with optional ``key=value`` context."""
        self._log_with_context(logging.CRITICAL, msg, args, kwargs)

    def traceback(self, exc: BaseException) -> None:
        """Log an exception with its traceback at ERROR level."""
        self._log_with_context(logging.ERROR, f"{type(exc).__name__}: {exc}", (), {"exc_info": exc})


__all__ = ["DEFAULT_CONFIG", "PRESETS", "SUCCESS_LEVEL", "TRACE_LEVEL", "LogManager"]
