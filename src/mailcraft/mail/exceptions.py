"""Exceptions raised by the mailcraft.mail module.

Exception hierarchy::

    MailcraftError
        MailError (base for all mail errors)
            MailValidationError (invalid composition input, also ValueError)
                InvalidAddressError
                InvalidHeaderError
                InvalidContentTypeError
                InvalidCharsetError
                MissingSenderError
                MissingRecipientError
            MailConfigurationError (session / transport setup)
                MissingHostError
                SessionAlreadyInitializedError
            AlreadyBuiltError (mutation after build, also RuntimeError)
            MailTransportError (delivery failure)
"""

from __future__ import annotations

from mailcraft.config.exceptions import MailcraftError


class MailError(MailcraftError):
    """Base exception for all mail module errors."""


class MailValidationError(MailError, ValueError):
    """Composition input is invalid."""


class InvalidAddressError(MailValidationError):
    """An email address failed validation.

    Attributes:
        address: The offending input string.
        reason: Why the address was rejected.
    """

    def __init__(self, address: object, reason: str) -> None:
        """Initialize InvalidAddressError.

        Args:
            address: The offending input.
            reason: Why the address was rejected.
        """
        super().__init__(f"Invalid email address {address!r}: {reason}")
        self.address = address
        self.reason = reason


class InvalidHeaderError(MailValidationError):
    """A custom header name or value is missing or malformed.

    Attributes:
        name: Header name as given (may be ``None``).
    """

    def __init__(self, name: str | None, reason: str) -> None:
        """Initialize InvalidHeaderError.

        Args:
            name: Header name as given.
            reason: Why the header was rejected.
        """
        super().__init__(reason)
        self.name = name


class InvalidContentTypeError(MailValidationError):
    """Content type is malformed or the content cannot be encoded with it.

    Attributes:
        content_type: The rejected content type.
    """

    def __init__(self, content_type: str | None, reason: str) -> None:
        """Initialize InvalidContentTypeError.

        Args:
            content_type: The rejected content type.
            reason: Why it was rejected.
        """
        super().__init__(f"Invalid content type {content_type!r}: {reason}")
        self.content_type = content_type


class InvalidCharsetError(MailValidationError):
    """A charset name does not map to a known codec."""


class MissingSenderError(MailValidationError):
    """``build()`` was called without a From address."""


class MissingRecipientError(MailValidationError):
    """``build()`` was called without any To, Cc or Bcc address."""


class MailConfigurationError(MailError):
    """Mail session or transport configuration is invalid."""


class MissingHostError(MailConfigurationError):
    """No SMTP host name is available to derive a mail session."""


class SessionAlreadyInitializedError(MailConfigurationError):
    """A session parameter was changed after the session was derived."""


class AlreadyBuiltError(MailError, RuntimeError):
    """The builder was mutated after its message had been built."""


class MailTransportError(MailError):
    """Delivering a message through a transport failed."""


__all__ = [
    "AlreadyBuiltError",
    "InvalidAddressError",
    "InvalidCharsetError",
    "InvalidContentTypeError",
    "InvalidHeaderError",
    "MailConfigurationError",
    "MailError",
    "MailTransportError",
    "MailValidationError",
    "MissingHostError",
    "MissingRecipientError",
    "MissingSenderError",
    "SessionAlreadyInitializedError",
]
