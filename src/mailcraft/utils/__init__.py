"""Utility helpers shared across mailcraft."""

from mailcraft.utils.validators import (
    EmailAddress,
    ValidationError,
    normalize_address_list,
    parse_email_address,
    split_content_type,
    validate_charset,
    validate_header,
)

__all__ = [
    "EmailAddress",
    "ValidationError",
    "normalize_address_list",
    "parse_email_address",
    "split_content_type",
    "validate_charset",
    "validate_header",
]
