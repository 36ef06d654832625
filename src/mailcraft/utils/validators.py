"""Validation helpers for addresses, header fields, content types and charsets.

These helpers raise :class:`ValidationError`, a plain ``ValueError``
subclass. Higher layers translate it into their own exception types (the
mail builder re-raises it as ``InvalidAddressError``, ``InvalidHeaderError``
and so on).
"""

from __future__ import annotations

import codecs
import re
from collections.abc import Iterable
from dataclasses import dataclass
from email.utils import formataddr, parseaddr

#: RFC 5321 size limits.
MAX_LOCAL_PART_LENGTH = 64
MAX_DOMAIN_LENGTH = 255
MIN_TLD_LENGTH = 2

#: Maximum header field name length accepted by the builder.
MAX_HEADER_NAME_LENGTH = 128

_LOCAL_PART_PATTERN = re.compile(r"^[A-Za-z0-9!#$%&'*+/=?^_`{|}~.-]+$")
_DOMAIN_LABEL_PATTERN = re.compile(r"^[A-Za-z0-9](?:[A-Za-z0-9-]*[A-Za-z0-9])?$")
_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f]")

# RFC 5322 field-name: printable US-ASCII except colon
_HEADER_NAME_PATTERN = re.compile(r"^[\x21-\x39\x3b-\x7e]+$")

# type "/" subtype *( ";" parameter )
_TOKEN = r"[A-Za-z0-9!#$&^_.+-]+"
_CONTENT_TYPE_PATTERN = re.compile(rf"^\s*({_TOKEN})/({_TOKEN})\s*(;.*)?$", re.DOTALL)


class ValidationError(ValueError):
    """Raised when a value fails validation."""


@dataclass(frozen=True, slots=True)
class EmailAddress:
    """A validated mailbox with an optional display name.

    Attributes:
        name: Display name, empty when absent.
        address: The ``local-part@domain`` mailbox.

    Examples:
        >>> EmailAddress(name="Ada", address="ada@example.org").formatted
        'Ada <ada@example.org>'
    """

    name: str
    address: str

    @property
    def formatted(self) -> str:
        """Return the address rendered for a header, with a sanitized name."""
        display = _CONTROL_CHARS.sub("", self.name).replace('"', "'").strip()
        if not display:
            return self.address
        return formataddr((display, self.address))

    @property
    def normalized(self) -> str:
        """Return the mailbox with the domain lower-cased."""
        local, _, domain = self.address.rpartition("@")
        return f"{local}@{domain.lower()}"

    def __str__(self) -> str:
        return self.formatted


def _validate_local_part(local: str, raw: str) -> None:
    if not local or len(local) > MAX_LOCAL_PART_LENGTH:
        raise ValidationError(f"Invalid local part in email address: {raw!r}")
    if local.startswith(".") or local.endswith(".") or ".." in local:
        raise ValidationError(f"Invalid dots in local part of email address: {raw!r}")
    if not _LOCAL_PART_PATTERN.match(local):
        raise ValidationError(f"Invalid characters in email address: {raw!r}")


def _validate_domain(domain: str, raw: str) -> None:
    if not domain or len(domain) > MAX_DOMAIN_LENGTH:
        raise ValidationError(f"Invalid domain in email address: {raw!r}")
    labels = domain.split(".")
    if len(labels) < 2:
        raise ValidationError(f"Domain must contain a top-level domain: {raw!r}")
    for label in labels:
        if not label or not _DOMAIN_LABEL_PATTERN.match(label):
            raise ValidationError(f"Invalid domain label in email address: {raw!r}")
    if len(labels[-1]) < MIN_TLD_LENGTH:
        raise ValidationError(f"Top-level domain too short in email address: {raw!r}")


def parse_email_address(value: str, name: str | None = None) -> EmailAddress:
    """Parse and validate a single address.

    Args:
        value: ``user@example.com`` or ``Display Name <user@example.com>``.
        name: Display name overriding the one embedded in ``value``.

    Returns:
        The parsed address.

    Raises:
        ValidationError: If the address is empty or malformed.

    Examples:
        >>> parse_email_address("Grace Hopper <grace@example.org>").name
        'Grace Hopper'
        >>> parse_email_address("ab@bc.com").address
        'ab@bc.com'
    """
    if not isinstance(value, str) or not value.strip():
        raise ValidationError("Email address cannot be empty")
    if _CONTROL_CHARS.search(value):
        raise ValidationError(f"Email address contains control characters: {value!r}")

    raw = value.strip()
    display, mailbox = parseaddr(raw)
    if not mailbox or "@" not in mailbox or any(ch.isspace() for ch in mailbox):
        raise ValidationError(f"Invalid email address: {value!r}")
    # parseaddr silently drops trailing garbage such as "a@b.com junk"
    well_formed = raw.endswith(">") if "<" in raw else raw == mailbox
    if not well_formed:
        raise ValidationError(f"Invalid email address: {value!r}")

    local, _, domain = mailbox.rpartition("@")
    _validate_local_part(local, value)
    _validate_domain(domain, value)

    return EmailAddress(name=name if name is not None else display, address=mailbox)


def normalize_address_list(values: Iterable[str]) -> list[EmailAddress]:
    """Parse every entry of ``values``, failing on the first invalid one.

    Examples:
        >>> [a.address for a in normalize_address_list(["a@example.org", "B <b@example.org>"])]
        ['a@example.org', 'b@example.org']
    """
    return [parse_email_address(value) for value in values]


def validate_header(name: str | None, value: str | None) -> tuple[str, str]:
    """Validate a custom header field.

    Args:
        name: Header field name.
        value: Header field value.

    Returns:
        The ``(name, value)`` pair unchanged.

    Raises:
        ValidationError: If either part is missing, empty or would allow
            header injection.

    Examples:
        >>> validate_header("X-Mailer", "mailcraft")
        ('X-Mailer', 'mailcraft')
    """
    if not name:
        raise ValidationError("Header name cannot be null or empty")
    if not value:
        raise ValidationError(f"Header value for {name!r} cannot be null or empty")
    if len(name) > MAX_HEADER_NAME_LENGTH:
        raise ValidationError(f"Header name too long (max {MAX_HEADER_NAME_LENGTH} chars): {name[:32]!r}...")
    if not _HEADER_NAME_PATTERN.match(name):
        raise ValidationError(f"Invalid header name: {name!r}")
    if "\r" in value or "\n" in value:
        raise ValidationError(f"Header value for {name!r} cannot contain line breaks")
    return name, value


def split_content_type(content_type: str) -> tuple[str, str, str]:
    """Split a content type into ``(maintype, subtype, parameters)``.

    Raises:
        ValidationError: If ``content_type`` is not ``type/subtype[; params]``.

    Examples:
        >>> split_content_type("text/plain; charset=utf-8")
        ('text', 'plain', '; charset=utf-8')
    """
    match = _CONTENT_TYPE_PATTERN.match(content_type or "")
    if match is None:
        raise ValidationError(f"Invalid content type: {content_type!r}")
    return match.group(1).lower(), match.group(2).lower(), (match.group(3) or "").strip()


def validate_charset(charset: str) -> str:
    """Return ``charset`` if Python knows a codec for it.

    Examples:
        >>> validate_charset("UTF-8")
        'UTF-8'
    """
    if not charset:
        raise ValidationError("Charset cannot be empty")
    try:
        codecs.lookup(charset)
    except LookupError as e:
        raise ValidationError(f"Unknown charset: {charset!r}") from e
    return charset


__all__ = [
    "MAX_DOMAIN_LENGTH",
    "MAX_HEADER_NAME_LENGTH",
    "MAX_LOCAL_PART_LENGTH",
    "MIN_TLD_LENGTH",
    "EmailAddress",
    "ValidationError",
    "normalize_address_list",
    "parse_email_address",
    "split_content_type",
    "validate_charset",
    "validate_header",
]
