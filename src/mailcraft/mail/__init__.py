"""Message composition and delivery.

Examples:
    >>> from mailcraft.mail import MailBuilder
    >>> builder = MailBuilder().set_from("sender@example.com").add_cc("team@example.org")
    >>> len(builder.cc_addresses)
    1
"""

from mailcraft.mail.builder import RESERVED_HEADERS, MailBuilder
from mailcraft.mail.exceptions import (
    AlreadyBuiltError,
    InvalidAddressError,
    InvalidCharsetError,
    InvalidContentTypeError,
    InvalidHeaderError,
    MailConfigurationError,
    MailError,
    MailTransportError,
    MailValidationError,
    MissingHostError,
    MissingRecipientError,
    MissingSenderError,
    SessionAlreadyInitializedError,
)
from mailcraft.mail.message import BuiltMessage
from mailcraft.mail.session import (
    Authenticator,
    Credentials,
    DefaultAuthenticator,
    MailSession,
    PopBeforeSmtp,
)
from mailcraft.mail.transport import MailTransport
from mailcraft.mail.transports import SMTPTransport

__all__ = [
    "RESERVED_HEADERS",
    "AlreadyBuiltError",
    "Authenticator",
    "BuiltMessage",
    "Credentials",
    "DefaultAuthenticator",
    "InvalidAddressError",
    "InvalidCharsetError",
    "InvalidContentTypeError",
    "InvalidHeaderError",
    "MailBuilder",
    "MailConfigurationError",
    "MailError",
    "MailSession",
    "MailTransport",
    "MailTransportError",
    "MailValidationError",
    "MissingHostError",
    "MissingRecipientError",
    "MissingSenderError",
    "PopBeforeSmtp",
    "SMTPTransport",
    "SessionAlreadyInitializedError",
]
