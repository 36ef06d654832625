"""Configuration loading for mailcraft.

Examples:
    >>> from mailcraft.config import load_config, get_config
    >>> load_config("mailcraft.conf.yml")  # doctest: +SKIP
    >>> get_config().mail.session.host  # doctest: +SKIP
"""

from mailcraft.config.exceptions import (
    ConfigError,
    ConfigFileNotFoundError,
    ConfigFormatError,
    ConfigNotLoadedError,
    MailcraftError,
)
from mailcraft.config.loader import (
    CONFIG_ENV_VAR,
    CONFIG_FILENAME,
    clear_config,
    deep_merge,
    get_config,
    load_config,
    load_from_file,
)

__all__ = [
    "CONFIG_ENV_VAR",
    "CONFIG_FILENAME",
    "ConfigError",
    "ConfigFileNotFoundError",
    "ConfigFormatError",
    "ConfigNotLoadedError",
    "MailcraftError",
    "clear_config",
    "deep_merge",
    "get_config",
    "load_config",
    "load_from_file",
]
