"""Config-driven defaults for mail sessions.

Default values are exposed as named constants and resolved into the frozen
:class:`SessionDefaults` struct by :func:`get_session_defaults`. Values read
from configuration are clamped to hard bounds; values that cannot be parsed
fall back to the defaults.

Configuration section::

    mail:
      session:
        host: smtp.example.com
        smtp_port: 25
        ssl_smtp_port: 465
        socket_connection_timeout: 60000
        socket_timeout: 60000
        charset: utf-8
"""

from __future__ import annotations

import codecs
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from mailcraft.config import get_config
from mailcraft.config.exceptions import ConfigNotLoadedError

log = logging.getLogger(__name__)

#: Default socket connect timeout in milliseconds.
DEFAULT_SOCKET_CONNECTION_TIMEOUT = 60_000

#: Default socket read timeout in milliseconds.
DEFAULT_SOCKET_TIMEOUT = 60_000

#: Default plain SMTP port.
DEFAULT_SMTP_PORT = 25

#: Default SMTP-over-SSL port.
DEFAULT_SSL_SMTP_PORT = 465

#: Charset used for text bodies when none is set.
DEFAULT_CHARSET = "utf-8"

#: Hard bounds for configured timeouts (milliseconds).
HARD_MIN_SOCKET_TIMEOUT = 0
HARD_MAX_SOCKET_TIMEOUT = 10 * 60 * 1000

#: Valid TCP port range.
HARD_MIN_PORT = 1
HARD_MAX_PORT = 65_535


@dataclass(frozen=True, slots=True)
class SessionDefaults:
    """Default session parameters applied to new builders.

    Attributes:
        host: Fallback SMTP host name, ``None`` when not configured.
        smtp_port: Plain SMTP port.
        ssl_smtp_port: Port used when SSL-on-connect is enabled.
        socket_connection_timeout: Connect timeout in milliseconds.
        socket_timeout: Read timeout in milliseconds.
        charset: Charset for text bodies.

    Examples:
        >>> defaults = SessionDefaults()
        >>> defaults.socket_connection_timeout
        60000
    """

    host: str | None = None
    smtp_port: int = DEFAULT_SMTP_PORT
    ssl_smtp_port: int = DEFAULT_SSL_SMTP_PORT
    socket_connection_timeout: int = DEFAULT_SOCKET_CONNECTION_TIMEOUT
    socket_timeout: int = DEFAULT_SOCKET_TIMEOUT
    charset: str = DEFAULT_CHARSET


def _resolve_config(config: Mapping[str, Any] | None) -> Mapping[str, Any]:
    """Return the explicit config, or the global one when loaded."""
    if config is not None:
        return config
    try:
        return get_config()
    except ConfigNotLoadedError:
        return {}


def _session_section(config: Mapping[str, Any]) -> Mapping[str, Any]:
    mail = config.get("mail")
    if not isinstance(mail, Mapping):
        return {}
    section = mail.get("session")
    # Box(default_box=True) answers missing keys with empty boxes
    return dict(section) if isinstance(section, Mapping) else {}


def _clamped_int(value: Any, default: int, minimum: int, maximum: int) -> int:
    """Parse ``value`` as int clamped to ``[minimum, maximum]``.

    Examples:
        >>> _clamped_int("70000", 60000, 0, 65535)
        65535
        >>> _clamped_int("nope", 25, 1, 65535)
        25
    """
    if value is None:
        return default
    try:
        number = int(value)
    except (TypeError, ValueError):
        log.warning("Invalid integer %r in mail session config, using %d", value, default)
        return default
    return max(minimum, min(number, maximum))


def _valid_charset(value: Any) -> str:
    if not isinstance(value, str) or not value:
        return DEFAULT_CHARSET
    try:
        codecs.lookup(value)
    except LookupError:
        log.warning("Unknown charset %r in mail session config, using %s", value, DEFAULT_CHARSET)
        return DEFAULT_CHARSET
    return value


def get_session_defaults(config: Mapping[str, Any] | None = None) -> SessionDefaults:
    """Resolve session defaults from configuration.

    Args:
        config: Configuration mapping. ``None`` uses the global configuration
            when one has been loaded, else built-in defaults.

    Returns:
        Frozen session defaults.

    Examples:
        >>> get_session_defaults(config={}).smtp_port
        25
        >>> get_session_defaults(config={"mail": {"session": {"socket_timeout": 1000}}}).socket_timeout
        1000
    """
    section = _session_section(_resolve_config(config))
    host = section.get("host")

    return SessionDefaults(
        host=str(host) if host else None,
        smtp_port=_clamped_int(section.get("smtp_port"), DEFAULT_SMTP_PORT, HARD_MIN_PORT, HARD_MAX_PORT),
        ssl_smtp_port=_clamped_int(section.get("ssl_smtp_port"), DEFAULT_SSL_SMTP_PORT, HARD_MIN_PORT, HARD_MAX_PORT),
        socket_connection_timeout=_clamped_int(
            section.get("socket_connection_timeout"),
            DEFAULT_SOCKET_CONNECTION_TIMEOUT,
            HARD_MIN_SOCKET_TIMEOUT,
            HARD_MAX_SOCKET_TIMEOUT,
        ),
        socket_timeout=_clamped_int(
            section.get("socket_timeout"),
            DEFAULT_SOCKET_TIMEOUT,
            HARD_MIN_SOCKET_TIMEOUT,
            HARD_MAX_SOCKET_TIMEOUT,
        ),
        charset=_valid_charset(section.get("charset")),
    )


__all__ = [
    "DEFAULT_CHARSET",
    "DEFAULT_SMTP_PORT",
    "DEFAULT_SOCKET_CONNECTION_TIMEOUT",
    "DEFAULT_SOCKET_TIMEOUT",
    "DEFAULT_SSL_SMTP_PORT",
    "HARD_MAX_PORT",
    "HARD_MAX_SOCKET_TIMEOUT",
    "HARD_MIN_PORT",
    "HARD_MIN_SOCKET_TIMEOUT",
    "SessionDefaults",
    "get_session_defaults",
]
