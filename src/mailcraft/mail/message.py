"""Immutable result of :meth:`MailBuilder.build`."""

from __future__ import annotations

import copy
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from email.message import Message
from email.policy import SMTP
from types import MappingProxyType

from mailcraft.mail.session import MailSession
from mailcraft.utils.validators import EmailAddress


@dataclass(frozen=True, slots=True)
class BuiltMessage:
    """Transport-ready message produced exactly once per builder.

    The MIME document is kept private; :meth:`to_mime` hands out copies so
    callers can never alter the built message in place.

    Attributes:
        sender: The From address.
        to: To recipients in insertion order.
        cc: Cc recipients in insertion order.
        bcc: Bcc recipients (never rendered as a header).
        reply_to: Reply-To addresses.
        subject: Subject line, ``None`` when omitted.
        sent_date: Value of the Date header.
        headers: Custom headers, read-only.
        charset: Charset used for text content.
        content_type: Content type of the top-level body.
        message_id: Generated Message-ID header value.
        session: Session the message was built for.
    """

    sender: EmailAddress
    to: tuple[EmailAddress, ...]
    cc: tuple[EmailAddress, ...]
    bcc: tuple[EmailAddress, ...]
    reply_to: tuple[EmailAddress, ...]
    subject: str | None
    sent_date: datetime
    headers: Mapping[str, str]
    charset: str
    content_type: str
    message_id: str
    session: MailSession
    _mime: Message = field(repr=False, compare=False)

    def __post_init__(self) -> None:
        if not isinstance(self.headers, MappingProxyType):
            object.__setattr__(self, "headers", MappingProxyType(dict(self.headers)))

    @property
    def recipients(self) -> list[str]:
        """Return every To, Cc and Bcc mailbox, in that order."""
        return [address.address for address in (*self.to, *self.cc, *self.bcc)]

    @property
    def envelope_sender(self) -> str:
        """Return the ``MAIL FROM`` address: bounce address, else From."""
        return self.session.bounce_address or self.sender.address

    def to_mime(self) -> Message:
        """Return a deep copy of the MIME document."""
        return copy.deepcopy(self._mime)

    def as_bytes(self) -> bytes:
        """Serialize the message with CRLF line endings for SMTP."""
        return self._mime.as_bytes(policy=SMTP)

    def as_string(self) -> str:
        """Serialize the message as text."""
        return self._mime.as_string()


__all__ = ["BuiltMessage"]
