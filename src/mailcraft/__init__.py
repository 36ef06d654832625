"""mailcraft: validated MIME message composition with SMTP session configuration."""

from mailcraft.config import (
    ConfigError,
    ConfigFileNotFoundError,
    ConfigFormatError,
    ConfigNotLoadedError,
    MailcraftError,
    clear_config,
    get_config,
    load_config,
    load_from_file,
)
from mailcraft.logging import LogManager, get_logger, init_logging
from mailcraft.mail import (
    BuiltMessage,
    DefaultAuthenticator,
    MailBuilder,
    MailError,
    MailSession,
    SMTPTransport,
)
from mailcraft.meta import __version__

__all__ = [
    "BuiltMessage",
    "ConfigError",
    "ConfigFileNotFoundError",
    "ConfigFormatError",
    "ConfigNotLoadedError",
    "DefaultAuthenticator",
    "LogManager",
    "MailBuilder",
    "MailError",
    "MailSession",
    "MailcraftError",
    "SMTPTransport",
    "__version__",
    "clear_config",
    "get_config",
    "get_logger",
    "init_logging",
    "load_config",
    "load_from_file",
]
