"""Tests for the mail exception hierarchy."""

from __future__ import annotations

import pytest

from mailcraft.config import MailcraftError
from mailcraft.mail import (
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


@pytest.mark.parametrize(
    "exc_type",
    [
        InvalidCharsetError,
        MissingSenderError,
        MissingRecipientError,
    ],
)
def test_validation_errors_are_value_errors(exc_type: type[Exception]) -> None:
    """Composition errors can be caught as ValueError."""
    assert issubclass(exc_type, MailValidationError)
    assert issubclass(exc_type, ValueError)


@pytest.mark.parametrize(
    "exc_type",
    [MissingHostError, SessionAlreadyInitializedError],
)
def test_configuration_errors(exc_type: type[Exception]) -> None:
    """Session errors derive from MailConfigurationError."""
    assert issubclass(exc_type, MailConfigurationError)


def test_everything_derives_from_root() -> None:
    """All mail errors share the package root exception."""
    for exc_type in (MailValidationError, MailConfigurationError, AlreadyBuiltError, MailTransportError):
        assert issubclass(exc_type, MailError)
        assert issubclass(exc_type, MailcraftError)


def test_already_built_is_runtime_error() -> None:
    """Mutating a built builder is a RuntimeError."""
    assert issubclass(AlreadyBuiltError, RuntimeError)


def test_invalid_address_carries_details() -> None:
    """The offending address and reason are kept."""
    error = InvalidAddressError("bad", "missing @")
    assert error.address == "bad"
    assert error.reason == "missing @"
    assert "bad" in str(error)


def test_invalid_header_carries_name() -> None:
    """The header name is kept."""
    error = InvalidHeaderError("X-Test", "empty value")
    assert error.name == "X-Test"
    assert str(error) == "empty value"


def test_invalid_content_type_carries_type() -> None:
    """The rejected content type is kept."""
    error = InvalidContentTypeError("nope", "not type/subtype")
    assert error.content_type == "nope"
    assert "nope" in str(error)
