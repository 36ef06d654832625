"""Fluent builder assembling MIME messages and their SMTP session.

A :class:`MailBuilder` accumulates recipients, headers, subject, content and
session parameters, then :meth:`MailBuilder.build` turns them into a frozen
:class:`~mailcraft.mail.message.BuiltMessage`. The builder has two states:

- *Composing*: every setter is available, validation is fail-fast and a
  failed call leaves the builder unchanged.
- *Built*: reached after the first successful ``build()``. Further
  ``build()`` calls return the cached message, every mutator raises
  :class:`~mailcraft.mail.exceptions.AlreadyBuiltError`.

The SMTP session is derived lazily from the builder fields on first access
(or injected with :meth:`MailBuilder.set_mail_session`). Once it exists,
setters that would change it raise
:class:`~mailcraft.mail.exceptions.SessionAlreadyInitializedError`.

Examples:
    >>> message = (
    ...     MailBuilder()
    ...     .set_host_name("smtp.example.com")
    ...     .set_from("sender@example.com", "Sender")
    ...     .add_to("ada@example.org", "Grace <grace@example.org>")
    ...     .set_subject("Hello")
    ...     .set_content("Hi there", "text/plain")
    ...     .build()
    ... )
    >>> message.recipients
    ['ada@example.org', 'grace@example.org']
"""

from __future__ import annotations

import codecs
import copy
import logging
import re
from collections.abc import Iterable, Mapping
from datetime import datetime, timezone
from email.message import EmailMessage, Message
from email.parser import BytesParser
from email.policy import default as default_policy
from email.utils import format_datetime, make_msgid
from typing import TYPE_CHECKING, Any, cast

from mailcraft.limits import HARD_MAX_PORT, HARD_MIN_PORT, get_session_defaults
from mailcraft.mail.exceptions import (
    AlreadyBuiltError,
    InvalidAddressError,
    InvalidCharsetError,
    InvalidContentTypeError,
    InvalidHeaderError,
    MailConfigurationError,
    MailValidationError,
    MissingHostError,
    MissingRecipientError,
    MissingSenderError,
    SessionAlreadyInitializedError,
)
from mailcraft.mail.message import BuiltMessage
from mailcraft.mail.session import (
    MISSING_HOST_MESSAGE,
    Authenticator,
    DefaultAuthenticator,
    MailSession,
    PopBeforeSmtp,
)
from mailcraft.utils.validators import (
    EmailAddress,
    ValidationError,
    parse_email_address,
    split_content_type,
    validate_charset,
    validate_header,
)

if TYPE_CHECKING:
    from mailcraft.mail.transport import MailTransport

__all__ = ["RESERVED_HEADERS", "MailBuilder"]

log = logging.getLogger(__name__)

#: Headers the builder writes itself; ``add_header`` rejects them.
RESERVED_HEADERS = frozenset(
    name.lower()
    for name in (
        "From",
        "To",
        "Cc",
        "Bcc",
        "Reply-To",
        "Subject",
        "Date",
        "Message-ID",
        "MIME-Version",
        "Content-Type",
        "Content-Transfer-Encoding",
    )
)

_CHARSET_MARKER = "; charset="
_CHARSET_END = re.compile(r"[;\s]")


def _parse_params(raw: str) -> dict[str, str]:
    """Parse ``; key=value`` content-type parameters, minus the charset."""
    params: dict[str, str] = {}
    for item in raw.split(";"):
        key, sep, value = item.partition("=")
        key = key.strip().lower()
        if key and sep and key != "charset":
            params[key] = value.strip().strip('"')
    return params


class MailBuilder:
    """Accumulate message state and assemble it into a :class:`BuiltMessage`.

    Every mutator returns the builder so calls chain fluently.

    Args:
        config: Configuration mapping used for session defaults (host,
            ports, timeouts, charset). ``None`` uses the global configuration
            when loaded, else built-in defaults.
    """

    def __init__(self, *, config: Mapping[str, Any] | None = None) -> None:
        self._defaults = get_session_defaults(config)

        self._from: EmailAddress | None = None
        self._to: list[EmailAddress] = []
        self._cc: list[EmailAddress] = []
        self._bcc: list[EmailAddress] = []
        self._reply_to: list[EmailAddress] = []
        self._headers: dict[str, str] = {}
        self._subject: str | None = None
        self._charset: str | None = None
        self._content: object | None = None
        self._content_type: str | None = None
        self._body: Message | None = None
        self._sent_date: datetime | None = None
        self._pop_before_smtp: PopBeforeSmtp | None = None

        self._host_name: str | None = None
        self._smtp_port = self._defaults.smtp_port
        self._ssl_smtp_port = self._defaults.ssl_smtp_port
        self._ssl_on_connect = False
        self._start_tls_enabled = False
        self._start_tls_required = False
        self._ssl_check_server_identity = False
        self._bounce_address: str | None = None
        self._authenticator: Authenticator | None = None
        self._debug = False
        self._socket_connection_timeout = self._defaults.socket_connection_timeout
        self._socket_timeout = self._defaults.socket_timeout

        self._session: MailSession | None = None
        self._session_derived = False
        self._message: BuiltMessage | None = None

    # ------------------------------------------------------------------
    # State guards
    # ------------------------------------------------------------------
    def _ensure_composing(self) -> None:
        if self._message is not None:
            raise AlreadyBuiltError("Message has already been built; create a new MailBuilder")

    def _ensure_session_mutable(self) -> None:
        self._ensure_composing()
        if self._session is not None:
            raise SessionAlreadyInitializedError(
                "The mail session is already initialized; session properties can no longer be changed"
            )

    # ------------------------------------------------------------------
    # Addresses
    # ------------------------------------------------------------------
    @staticmethod
    def _coerce_address(value: str | EmailAddress, name: str | None = None) -> EmailAddress:
        if isinstance(value, EmailAddress):
            return value if name is None else EmailAddress(name=name, address=value.address)
        try:
            return parse_email_address(value, name)
        except ValidationError as e:
            raise InvalidAddressError(value, str(e)) from e

    def _coerce_addresses(self, field: str, emails: Iterable[str | EmailAddress]) -> list[EmailAddress]:
        parsed = [self._coerce_address(email) for email in emails]
        if not parsed:
            log.debug("No %s addresses given, keeping current list", field)
        return parsed

    def add_to(self, *emails: str | EmailAddress) -> MailBuilder:
        """Append one or more To recipients.

        Args:
            *emails: ``user@example.com`` or ``Name <user@example.com>``
                strings, or :class:`EmailAddress` instances.

        Raises:
            InvalidAddressError: If any address is invalid. Nothing is
                added in that case.
        """
        self._ensure_composing()
        self._to.extend(self._coerce_addresses("To", emails))
        return self

    def add_cc(self, *emails: str | EmailAddress) -> MailBuilder:
        """Append one or more Cc recipients."""
        self._ensure_composing()
        self._cc.extend(self._coerce_addresses("Cc", emails))
        return self

    def add_bcc(self, *emails: str | EmailAddress) -> MailBuilder:
        """Append one or more Bcc recipients."""
        self._ensure_composing()
        self._bcc.extend(self._coerce_addresses("Bcc", emails))
        return self

    def add_reply_to(self, email: str | EmailAddress, name: str | None = None) -> MailBuilder:
        """Append a Reply-To address with an optional display name."""
        self._ensure_composing()
        self._reply_to.append(self._coerce_address(email, name))
        return self

    def _replace(
        self,
        field: str,
        target: list[EmailAddress],
        emails: str | EmailAddress | Iterable[str | EmailAddress],
    ) -> None:
        # a single address is not an iterable of addresses
        if isinstance(emails, (str, EmailAddress)):
            emails = [emails]
        parsed = self._coerce_addresses(field, emails)
        if parsed:
            target[:] = parsed

    def set_to(self, emails: str | EmailAddress | Iterable[str | EmailAddress]) -> MailBuilder:
        """Replace the To list with one address or an iterable of them.

        An empty iterable leaves the list untouched.
        """
        self._ensure_composing()
        self._replace("To", self._to, emails)
        return self

    def set_cc(self, emails: str | EmailAddress | Iterable[str | EmailAddress]) -> MailBuilder:
        """Replace the Cc list with one address or an iterable of them.

        An empty iterable leaves the list untouched.
        """
        self._ensure_composing()
        self._replace("Cc", self._cc, emails)
        return self

    def set_bcc(self, emails: str | EmailAddress | Iterable[str | EmailAddress]) -> MailBuilder:
        """Replace the Bcc list with one address or an iterable of them.

        An empty iterable leaves the list untouched.
        """
        self._ensure_composing()
        self._replace("Bcc", self._bcc, emails)
        return self

    def set_reply_to(self, emails: str | EmailAddress | Iterable[str | EmailAddress]) -> MailBuilder:
        """Replace the Reply-To list with one address or an iterable of them.

        An empty iterable leaves the list untouched.
        """
        self._ensure_composing()
        self._replace("Reply-To", self._reply_to, emails)
        return self

    def set_from(self, email: str | EmailAddress, name: str | None = None) -> MailBuilder:
        """Set the sender address.

        Args:
            email: Sender address, optionally with an embedded display name.
            name: Display name overriding the embedded one.

        Raises:
            InvalidAddressError: If the address is invalid.
        """
        self._ensure_composing()
        self._from = self._coerce_address(email, name)
        return self

    # ------------------------------------------------------------------
    # Headers
    # ------------------------------------------------------------------
    @staticmethod
    def _validated_header(name: str | None, value: str | None) -> tuple[str, str]:
        try:
            name, value = validate_header(name, value)
        except ValidationError as e:
            raise InvalidHeaderError(name, str(e)) from e
        if name.lower() in RESERVED_HEADERS:
            raise InvalidHeaderError(name, f"Header {name!r} is managed by the builder")
        return name, value

    def add_header(self, name: str | None, value: str | None) -> MailBuilder:
        """Add or replace a custom header.

        Raises:
            InvalidHeaderError: If the name or value is missing, malformed or
                reserved. The header map is unchanged in that case.
        """
        self._ensure_composing()
        name, value = self._validated_header(name, value)
        self._headers[name] = value
        return self

    def set_headers(self, headers: Mapping[str, str]) -> MailBuilder:
        """Replace all custom headers with ``headers``.

        Every pair is validated before the current map is touched.
        """
        self._ensure_composing()
        validated = dict(self._validated_header(name, value) for name, value in headers.items())
        self._headers = validated
        return self

    # ------------------------------------------------------------------
    # Subject, charset, content
    # ------------------------------------------------------------------
    def set_subject(self, subject: str | None) -> MailBuilder:
        """Set the subject line. ``None`` omits the Subject header."""
        self._ensure_composing()
        if subject is not None and ("\r" in subject or "\n" in subject):
            raise InvalidHeaderError("Subject", "Subject cannot contain line breaks")
        self._subject = subject
        return self

    def set_charset(self, charset: str) -> MailBuilder:
        """Set the charset used for text content.

        Raises:
            InvalidCharsetError: If Python has no codec for ``charset``.
        """
        self._ensure_composing()
        try:
            self._charset = validate_charset(charset)
        except ValidationError as e:
            raise InvalidCharsetError(str(e)) from e
        return self

    def set_content(self, content: object, content_type: str | None) -> MailBuilder:
        """Set a single-part payload and its content type.

        The payload and type are checked when the message is built.
        """
        self._ensure_composing()
        self._content = content
        self.update_content_type(content_type)
        return self

    def set_body(self, body: Message) -> MailBuilder:
        """Set a pre-built multipart body, taking precedence over content.

        Raises:
            InvalidContentTypeError: If ``body`` is not a multipart message.
        """
        self._ensure_composing()
        if not isinstance(body, Message):
            raise InvalidContentTypeError(None, f"body must be an email Message, got {type(body).__name__}")
        if body.get_content_maintype() != "multipart":
            raise InvalidContentTypeError(body.get_content_type(), "body must be a multipart message")
        self._body = body
        return self

    def update_content_type(self, content_type: str | None) -> MailBuilder:
        """Set the content type, syncing it with the charset.

        A ``; charset=`` parameter is extracted into :attr:`charset`. A
        ``text/*`` type without one gets the current charset appended.
        ``None`` or an empty string clears the content type. An unknown
        charset is logged and leaves :attr:`charset` unchanged, while the
        content type is still stored as given.

        Examples:
            >>> MailBuilder().update_content_type("; charset=TEST_CHARSET").content_type
            '; charset=TEST_CHARSET'
            >>> MailBuilder().set_charset("utf-8").update_content_type("text/html").content_type
            'text/html; charset=utf-8'
        """
        self._ensure_composing()
        if not content_type:
            self._content_type = None
            return self

        position = content_type.lower().find(_CHARSET_MARKER)
        if position != -1:
            value = content_type[position + len(_CHARSET_MARKER) :]
            charset = _CHARSET_END.split(value, maxsplit=1)[0].strip("\"'")
            try:
                codecs.lookup(charset)
            except LookupError:
                log.warning("Unknown charset %r in content type, keeping %r", charset, self._charset)
            else:
                self._charset = charset
        elif content_type.startswith("text/") and self._charset:
            content_type = f"{content_type}{_CHARSET_MARKER}{self._charset}"
        self._content_type = content_type
        return self

    def set_sent_date(self, sent_date: datetime) -> MailBuilder:
        """Set the Date header value. Naive datetimes are taken as local time."""
        self._ensure_composing()
        if not isinstance(sent_date, datetime):
            raise MailValidationError(f"Sent date must be a datetime, got {type(sent_date).__name__}")
        self._sent_date = sent_date if sent_date.tzinfo is not None else sent_date.astimezone()
        return self

    def set_pop_before_smtp(self, enabled: bool, host: str = "", username: str = "", password: str = "") -> MailBuilder:
        """Record POP-before-SMTP settings for the transport layer."""
        self._ensure_composing()
        self._pop_before_smtp = PopBeforeSmtp(enabled=enabled, host=host, username=username, password=password)
        return self

    # ------------------------------------------------------------------
    # Session parameters
    # ------------------------------------------------------------------
    def set_host_name(self, host_name: str) -> MailBuilder:
        """Set the SMTP host name."""
        self._ensure_session_mutable()
        if not host_name or not host_name.strip():
            raise MailConfigurationError("Host name cannot be empty")
        self._host_name = host_name.strip()
        return self

    @staticmethod
    def _validated_port(port: int) -> int:
        if isinstance(port, bool) or not isinstance(port, int) or not HARD_MIN_PORT <= port <= HARD_MAX_PORT:
            raise MailConfigurationError(f"Port must be between {HARD_MIN_PORT} and {HARD_MAX_PORT}, got {port!r}")
        return port

    def set_smtp_port(self, port: int) -> MailBuilder:
        """Set the plain SMTP port."""
        self._ensure_session_mutable()
        self._smtp_port = self._validated_port(port)
        return self

    def set_ssl_smtp_port(self, port: int) -> MailBuilder:
        """Set the port used when SSL-on-connect is enabled."""
        self._ensure_session_mutable()
        self._ssl_smtp_port = self._validated_port(port)
        return self

    def set_ssl_on_connect(self, enabled: bool) -> MailBuilder:
        """Connect with implicit TLS on the SSL port."""
        self._ensure_session_mutable()
        self._ssl_on_connect = bool(enabled)
        return self

    def set_start_tls_enabled(self, enabled: bool) -> MailBuilder:
        """Upgrade plain connections with STARTTLS when offered."""
        self._ensure_session_mutable()
        self._start_tls_enabled = bool(enabled)
        return self

    def set_start_tls_required(self, required: bool) -> MailBuilder:
        """Refuse to send when STARTTLS is unavailable."""
        self._ensure_session_mutable()
        self._start_tls_required = bool(required)
        return self

    def set_ssl_check_server_identity(self, enabled: bool) -> MailBuilder:
        """Verify the server certificate host name (SSL or STARTTLS only)."""
        self._ensure_session_mutable()
        self._ssl_check_server_identity = bool(enabled)
        return self

    def set_bounce_address(self, email: str | None) -> MailBuilder:
        """Set the envelope sender used for bounces. ``None`` clears it."""
        self._ensure_session_mutable()
        self._bounce_address = None if email is None else self._coerce_address(email).address
        return self

    def set_authenticator(self, authenticator: Authenticator | None) -> MailBuilder:
        """Install a credential supplier, ``None`` for anonymous sessions."""
        self._ensure_session_mutable()
        if authenticator is not None and not callable(authenticator):
            raise MailConfigurationError("Authenticator must be callable")
        self._authenticator = authenticator
        return self

    def set_authentication(self, username: str, password: str) -> MailBuilder:
        """Shortcut installing a :class:`DefaultAuthenticator`."""
        return self.set_authenticator(DefaultAuthenticator(username, password))

    def set_debug(self, debug: bool) -> MailBuilder:
        """Log the SMTP dialogue at TRACE level when sending."""
        self._ensure_session_mutable()
        self._debug = bool(debug)
        return self

    @staticmethod
    def _validated_timeout(timeout: int) -> int:
        if isinstance(timeout, bool) or not isinstance(timeout, int) or timeout < 0:
            raise MailConfigurationError(f"Socket timeout must be a non-negative integer, got {timeout!r}")
        return timeout

    def set_socket_connection_timeout(self, timeout: int) -> MailBuilder:
        """Set the socket connect timeout in milliseconds (0 disables it)."""
        self._ensure_session_mutable()
        self._socket_connection_timeout = self._validated_timeout(timeout)
        return self

    def set_socket_timeout(self, timeout: int) -> MailBuilder:
        """Set the socket read timeout in milliseconds (0 disables it)."""
        self._ensure_session_mutable()
        self._socket_timeout = self._validated_timeout(timeout)
        return self

    def set_mail_session(self, session: MailSession) -> MailBuilder:
        """Inject a pre-built session instead of deriving one.

        Raises:
            SessionAlreadyInitializedError: If a session was already derived
                from the builder fields.
        """
        self._ensure_composing()
        if not isinstance(session, MailSession):
            raise MailConfigurationError(f"Expected a MailSession, got {type(session).__name__}")
        if self._session_derived:
            raise SessionAlreadyInitializedError("The mail session is already initialized")
        self._session = session
        return self

    def _derive_session(self) -> MailSession:
        host = self._host_name or self._defaults.host
        if not host:
            raise MissingHostError(MISSING_HOST_MESSAGE)
        secured = self._ssl_on_connect or self._start_tls_enabled
        return MailSession(
            host=host,
            port=self._ssl_smtp_port if self._ssl_on_connect else self._smtp_port,
            ssl_on_connect=self._ssl_on_connect,
            start_tls_enabled=self._start_tls_enabled,
            start_tls_required=self._start_tls_required,
            check_server_identity=self._ssl_check_server_identity and secured,
            bounce_address=self._bounce_address,
            connection_timeout=self._socket_connection_timeout,
            timeout=self._socket_timeout,
            authenticator=self._authenticator,
            debug=self._debug,
        )

    def get_mail_session(self) -> MailSession:
        """Return the injected session, or derive and memoize one.

        Raises:
            MissingHostError: If neither a host name nor a session is set.
        """
        if self._session is None:
            self._session = self._derive_session()
            self._session_derived = True
            log.debug("Derived mail session for %s:%d", self._session.host, self._session.port)
        return self._session

    # ------------------------------------------------------------------
    # Read access
    # ------------------------------------------------------------------
    @property
    def to_addresses(self) -> list[EmailAddress]:
        """Return a copy of the To list."""
        return list(self._to)

    @property
    def cc_addresses(self) -> list[EmailAddress]:
        """Return a copy of the Cc list."""
        return list(self._cc)

    @property
    def bcc_addresses(self) -> list[EmailAddress]:
        """Return a copy of the Bcc list."""
        return list(self._bcc)

    @property
    def reply_to_addresses(self) -> list[EmailAddress]:
        """Return a copy of the Reply-To list."""
        return list(self._reply_to)

    @property
    def from_address(self) -> EmailAddress | None:
        return self._from

    @property
    def headers(self) -> dict[str, str]:
        """Return a copy of the custom headers."""
        return dict(self._headers)

    @property
    def subject(self) -> str | None:
        return self._subject

    @property
    def charset(self) -> str | None:
        return self._charset

    @property
    def content(self) -> object | None:
        return self._content

    @property
    def content_type(self) -> str | None:
        return self._content_type

    @property
    def sent_date(self) -> datetime:
        """Return the sent date, or the current UTC time when unset."""
        return self._sent_date if self._sent_date is not None else datetime.now(timezone.utc)

    @property
    def pop_before_smtp(self) -> PopBeforeSmtp | None:
        return self._pop_before_smtp

    @property
    def host_name(self) -> str | None:
        """Return the session host, else the configured host, else ``None``."""
        if self._session is not None:
            return self._session.host
        return self._host_name or self._defaults.host

    @property
    def smtp_port(self) -> int:
        return self._smtp_port

    @property
    def ssl_smtp_port(self) -> int:
        return self._ssl_smtp_port

    @property
    def ssl_on_connect(self) -> bool:
        return self._ssl_on_connect

    @property
    def start_tls_enabled(self) -> bool:
        return self._start_tls_enabled

    @property
    def start_tls_required(self) -> bool:
        return self._start_tls_required

    @property
    def ssl_check_server_identity(self) -> bool:
        return self._ssl_check_server_identity

    @property
    def bounce_address(self) -> str | None:
        return self._bounce_address

    @property
    def socket_connection_timeout(self) -> int:
        """Socket connect timeout in milliseconds."""
        return self._socket_connection_timeout

    @property
    def socket_timeout(self) -> int:
        """Socket read timeout in milliseconds."""
        return self._socket_timeout

    @property
    def message(self) -> BuiltMessage | None:
        """Return the built message, ``None`` before :meth:`build`."""
        return self._message

    @property
    def is_built(self) -> bool:
        return self._message is not None

    # ------------------------------------------------------------------
    # Assembly
    # ------------------------------------------------------------------
    def _effective_charset(self) -> str:
        return self._charset or self._defaults.charset

    def _body_message(self, body: Message) -> EmailMessage:
        if self._content is not None:
            log.debug("Multipart body set, ignoring single-part content")
        # Re-parse so the body adopts the modern email policy
        parsed = cast(EmailMessage, BytesParser(policy=default_policy).parsebytes(copy.deepcopy(body).as_bytes()))
        for name in RESERVED_HEADERS - {"content-type", "content-transfer-encoding", "mime-version"}:
            del parsed[name]
        if self._content_type:
            try:
                maintype, subtype, _ = split_content_type(self._content_type)
            except ValidationError:
                maintype, subtype = "", ""
            if maintype == "multipart":
                parsed.set_type(f"multipart/{subtype}")
            else:
                log.warning(
                    "Ignoring content type %r for multipart body, keeping %s",
                    self._content_type,
                    parsed.get_content_type(),
                )
        if "MIME-Version" not in parsed:
            parsed["MIME-Version"] = "1.0"
        return parsed

    def _apply_content(self, mime: EmailMessage, charset: str) -> None:
        content = self._content
        content_type = self._content_type
        if content_type is None:
            content_type = "text/plain" if isinstance(content, str) else "application/octet-stream"
        try:
            maintype, subtype, raw_params = split_content_type(content_type)
        except ValidationError as e:
            raise InvalidContentTypeError(content_type, str(e)) from e
        if maintype == "multipart":
            raise InvalidContentTypeError(content_type, "multipart content requires set_body()")
        params = _parse_params(raw_params)

        try:
            if isinstance(content, str) and maintype == "text":
                mime.set_content(content, subtype=subtype, charset=charset, params=params)
            elif isinstance(content, str):
                mime.set_content(content.encode(charset), maintype, subtype, params=params)
            elif isinstance(content, (bytes, bytearray)):
                mime.set_content(bytes(content), maintype, subtype, params=params)
            else:
                raise InvalidContentTypeError(content_type, f"cannot encode content of type {type(content).__name__}")
        except (LookupError, UnicodeError) as e:
            raise InvalidContentTypeError(content_type, f"cannot encode content as {charset}: {e}") from e

    def _apply_empty_body(self, mime: EmailMessage, charset: str) -> None:
        try:
            mime.set_content("", charset=charset)
        except LookupError as e:
            raise InvalidCharsetError(f"Unknown charset: {charset!r}") from e

    def _apply_envelope(
        self, mime: EmailMessage, sender: EmailAddress, session: MailSession, sent_date: datetime
    ) -> str:
        mime["From"] = sender.formatted
        if self._reply_to:
            mime["Reply-To"] = ", ".join(address.formatted for address in self._reply_to)
        if self._to:
            mime["To"] = ", ".join(address.formatted for address in self._to)
        if self._cc:
            mime["Cc"] = ", ".join(address.formatted for address in self._cc)
        if self._subject is not None:
            mime["Subject"] = self._subject
        mime["Date"] = format_datetime(sent_date)
        message_id = make_msgid(domain=session.host or None)
        mime["Message-ID"] = message_id
        for name, value in self._headers.items():
            mime[name] = value
        return message_id

    def build(self) -> BuiltMessage:
        """Assemble the message.

        The first successful call moves the builder to the built state;
        later calls return the same :class:`BuiltMessage`.

        Raises:
            MissingSenderError: If no From address is set.
            MissingRecipientError: If To, Cc and Bcc are all empty.
            MissingHostError: If no session can be derived.
            InvalidContentTypeError: If the content cannot be encoded with
                its content type.
            InvalidCharsetError: If the charset has no codec.
        """
        if self._message is not None:
            return self._message

        if self._from is None:
            raise MissingSenderError("From address required")
        if not (self._to or self._cc or self._bcc):
            raise MissingRecipientError("At least one receiver address required")

        session = self._session if self._session is not None else self._derive_session()
        charset = self._effective_charset()
        sent_date = self.sent_date

        if self._body is not None:
            mime = self._body_message(self._body)
        else:
            mime = EmailMessage()
            if self._content is not None:
                self._apply_content(mime, charset)
            else:
                self._apply_empty_body(mime, charset)
        message_id = self._apply_envelope(mime, self._from, session, sent_date)

        message = BuiltMessage(
            sender=self._from,
            to=tuple(self._to),
            cc=tuple(self._cc),
            bcc=tuple(self._bcc),
            reply_to=tuple(self._reply_to),
            subject=self._subject,
            sent_date=sent_date,
            headers=dict(self._headers),
            charset=charset,
            content_type=mime.get_content_type(),
            message_id=message_id,
            session=session,
            _mime=mime,
        )
        if self._session is None:
            self._session = session
            self._session_derived = True
        self._message = message
        log.debug(
            "Built message %s for %d recipient(s)",
            message_id,
            len(message.recipients),
        )
        return message

    def send(self, transport: MailTransport | None = None) -> BuiltMessage:
        """Build the message and deliver it.

        Args:
            transport: Delivery backend. ``None`` uses an
                :class:`~mailcraft.mail.transports.smtp.SMTPTransport` over
                the message session.

        Raises:
            MailTransportError: If delivery fails.
        """
        message = self.build()
        if transport is None:
            from mailcraft.mail.transports.smtp import SMTPTransport

            transport = SMTPTransport(message.session)
        transport.send(message)
        return message
