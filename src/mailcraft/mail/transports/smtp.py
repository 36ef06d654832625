"""SMTP transport built on :mod:`smtplib`.

The transport reads every connection parameter from a
:class:`~mailcraft.mail.session.MailSession`: implicit TLS or STARTTLS,
certificate host name checking, socket timeouts, credentials and the
bounce address used as envelope sender.

When the ``mailcraft.mail.transports.smtp`` logger is enabled for TRACE (or
the session has ``debug`` set), the SMTP dialogue and TLS details are logged.

Examples:
    Deliver through a STARTTLS relay::

        session = MailSession(
            host="smtp.example.com",
            port=587,
            start_tls_enabled=True,
            authenticator=DefaultAuthenticator("user", "secret"),
        )
        SMTPTransport(session).send(message)
"""

from __future__ import annotations

import contextlib
import io
import logging
import smtplib
import ssl
import sys
from collections.abc import Iterator
from typing import TYPE_CHECKING, Any

from mailcraft.logging import TRACE_LEVEL
from mailcraft.mail.exceptions import MailConfigurationError, MailTransportError
from mailcraft.mail.transport import MailTransport

if TYPE_CHECKING:
    from mailcraft.mail.message import BuiltMessage
    from mailcraft.mail.session import MailSession

__all__ = ["SMTPTransport"]

log = logging.getLogger(__name__)


@contextlib.contextmanager
def _capture_smtp_debug() -> Iterator[io.StringIO]:
    """Redirect stderr, where smtplib prints its debug output."""
    buffer = io.StringIO()
    original = sys.stderr
    sys.stderr = buffer
    try:
        yield buffer
    finally:
        sys.stderr = original


def _first_common_name(entries: Any) -> str | None:
    """Return the first ``commonName`` of a ``getpeercert()`` subject/issuer."""
    try:
        for rdn in entries:
            for key, value in rdn:
                if key == "commonName":
                    return str(value)
    except (TypeError, ValueError):
        return None
    return None


def _extract_ssl_info(sock: ssl.SSLSocket | None) -> dict[str, Any]:
    """Collect TLS version, cipher and peer certificate details for logging."""
    if sock is None:
        return {}

    info: dict[str, Any] = {}
    try:
        info["version"] = sock.version() or "unknown"
    except Exception:  # pylint: disable=broad-except
        info["version"] = "unknown"

    try:
        cipher = sock.cipher()
    except Exception:  # pylint: disable=broad-except
        cipher = None
    if cipher:
        info["cipher_name"], info["cipher_protocol"], info["cipher_bits"] = cipher

    try:
        cert = sock.getpeercert()
    except Exception:  # pylint: disable=broad-except
        cert = None
    if cert:
        peer_cn = _first_common_name(cert.get("subject", ()))
        if peer_cn:
            info["peer_cn"] = peer_cn
        issuer_cn = _first_common_name(cert.get("issuer", ()))
        if issuer_cn:
            info["issuer_cn"] = issuer_cn
        if "notBefore" in cert:
            info["valid_from"] = cert["notBefore"]
        if "notAfter" in cert:
            info["valid_until"] = cert["notAfter"]
    return info


def _log_ssl_info(prefix: str, sock: Any) -> None:
    """Log the negotiated TLS parameters at TRACE level."""
    info = _extract_ssl_info(sock)
    if not info:
        return
    log.log(
        TRACE_LEVEL,
        "[SMTP] %s: %s %s (%s bits)",
        prefix,
        info.get("version", "unknown"),
        info.get("cipher_name", "-"),
        info.get("cipher_bits", "-"),
    )
    if "peer_cn" in info:
        log.log(TRACE_LEVEL, "[SMTP] Certificate: CN=%s, issuer=%s", info["peer_cn"], info.get("issuer_cn", "-"))


def _log_smtp_debug_output(buffer: io.StringIO) -> None:
    """Forward captured smtplib debug lines to the TRACE logger."""
    if not log.isEnabledFor(TRACE_LEVEL):
        return
    for raw in buffer.getvalue().splitlines():
        line = raw.strip()
        if not line:
            continue
        if line.startswith("send:"):
            log.log(TRACE_LEVEL, "[SMTP] >>> %s", line[len("send:") :].strip())
        elif line.startswith("reply:"):
            log.log(TRACE_LEVEL, "[SMTP] <<< %s", line[len("reply:") :].strip())
        else:
            log.log(TRACE_LEVEL, "[SMTP] %s", line)


class SMTPTransport(MailTransport):
    """Send messages over SMTP according to a :class:`MailSession`.

    Args:
        session: Connection settings. Must carry a host name.

    Raises:
        MailConfigurationError: If the session has no host.
    """

    def __init__(self, session: MailSession) -> None:
        if not session.host:
            raise MailConfigurationError("SMTP transport requires a session with a host name")
        self._session = session

    @property
    def session(self) -> MailSession:
        return self._session

    def _ssl_context(self) -> ssl.SSLContext:
        context = ssl.create_default_context()
        if not self._session.check_server_identity:
            context.check_hostname = False
        return context

    def _connect(self, context: ssl.SSLContext) -> smtplib.SMTP:
        session = self._session
        kwargs: dict[str, Any] = {
            "host": session.host,
            "port": session.port,
            "timeout": session.connection_timeout_seconds,
        }
        log.log(TRACE_LEVEL, "[SMTP] Connecting to %s:%d", session.host, session.port)
        if session.ssl_on_connect:
            client: smtplib.SMTP = smtplib.SMTP_SSL(context=context, **kwargs)
        else:
            client = smtplib.SMTP(**kwargs)
        return client

    def _apply_read_timeout(self, client: smtplib.SMTP) -> None:
        sock = getattr(client, "sock", None)
        if sock is not None and hasattr(sock, "settimeout"):
            sock.settimeout(self._session.timeout_seconds)

    def _negotiate(self, client: smtplib.SMTP, context: ssl.SSLContext) -> None:
        session = self._session
        client.ehlo()
        if session.ssl_on_connect:
            _log_ssl_info("SSL", getattr(client, "sock", None))
            return
        if not (session.start_tls_enabled or session.start_tls_required):
            return
        if client.has_extn("STARTTLS"):
            log.log(TRACE_LEVEL, "[SMTP] STARTTLS")
            client.starttls(context=context)
            client.ehlo()
            _log_ssl_info("TLS", getattr(client, "sock", None))
        elif session.start_tls_required:
            raise MailTransportError(f"STARTTLS is required but not supported by {session.host}")
        else:
            log.debug("Server %s does not offer STARTTLS, continuing without TLS", session.host)

    def _authenticate(self, client: smtplib.SMTP) -> None:
        credentials = self._session.credentials()
        if credentials is None:
            return
        log.log(TRACE_LEVEL, "[SMTP] Authenticating as: %s", credentials.username)
        client.login(credentials.username, credentials.password)
        log.log(TRACE_LEVEL, "[SMTP] Authentication successful")

    def _deliver(self, message: BuiltMessage, context: ssl.SSLContext) -> None:
        with self._connect(context) as client:
            if self._session.debug or log.isEnabledFor(TRACE_LEVEL):
                client.set_debuglevel(1)
            self._apply_read_timeout(client)
            self._negotiate(client, context)
            self._authenticate(client)

            recipients = message.recipients
            log.log(TRACE_LEVEL, "[SMTP] MAIL FROM: <%s>", message.envelope_sender)
            for recipient in recipients:
                log.log(TRACE_LEVEL, "[SMTP] RCPT TO: <%s>", recipient)
            client.send_message(message.to_mime(), from_addr=message.envelope_sender, to_addrs=recipients)
            log.log(TRACE_LEVEL, "[SMTP] Message sent successfully: %s", message.message_id)

    def send(self, message: BuiltMessage) -> None:
        """Deliver ``message`` to its To, Cc and Bcc recipients.

        Raises:
            MailTransportError: If connecting, negotiating TLS,
                authenticating or sending fails.
        """
        context = self._ssl_context()
        capture = self._session.debug or log.isEnabledFor(TRACE_LEVEL)
        try:
            if capture:
                with _capture_smtp_debug() as buffer:
                    try:
                        self._deliver(message, context)
                    finally:
                        _log_smtp_debug_output(buffer)
            else:
                self._deliver(message, context)
        except MailTransportError:
            raise
        except (smtplib.SMTPException, OSError) as e:
            log.error("SMTP delivery to %s failed: %s", self._session.host, e)
            raise MailTransportError(str(e)) from e
        log.info("Sent message %s to %d recipient(s)", message.message_id, len(message.recipients))
