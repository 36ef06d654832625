"""Exception hierarchy shared across mailcraft.

``MailcraftError`` is the root of every exception raised by the package so
callers can catch library failures with a single ``except`` clause.

Exception hierarchy::

    MailcraftError
        ConfigError
            ConfigFileNotFoundError
            ConfigFormatError
            ConfigNotLoadedError
"""

from __future__ import annotations


class MailcraftError(Exception):
    """Base exception for all mailcraft errors."""


class ConfigError(MailcraftError):
    """Base exception for configuration loading problems."""


class ConfigFileNotFoundError(ConfigError, FileNotFoundError):
    """A requested configuration file does not exist."""


class ConfigFormatError(ConfigError, ValueError):
    """A configuration file could not be parsed or has the wrong shape."""


class ConfigNotLoadedError(ConfigError):
    """The global configuration was requested before ``load_config()``."""


__all__ = [
    "ConfigError",
    "ConfigFileNotFoundError",
    "ConfigFormatError",
    "ConfigNotLoadedError",
    "MailcraftError",
]
