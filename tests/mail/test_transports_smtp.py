"""Tests for the SMTP transport backend."""

from __future__ import annotations

import io
import logging
import sys
from email.message import Message
from smtplib import SMTPException
from typing import Any, ClassVar

import pytest

from mailcraft.logging import TRACE_LEVEL
from mailcraft.mail import (
    BuiltMessage,
    Credentials,
    DefaultAuthenticator,
    MailBuilder,
    MailConfigurationError,
    MailSession,
    MailTransportError,
    SMTPTransport,
)
from mailcraft.mail.transports.smtp import (
    _capture_smtp_debug,
    _extract_ssl_info,
    _log_smtp_debug_output,
)

SMTP_LOGGER = "mailcraft.mail.transports.smtp"


class DummySMTP:
    """Minimal SMTP client capturing invocations."""

    created: ClassVar[list[DummySMTP]] = []
    last_instance: ClassVar[DummySMTP | None] = None
    supports_starttls: ClassVar[bool] = True

    def __init__(self, **kwargs: Any) -> None:
        """Capture constructor kwargs and initialise tracking state."""
        self.kwargs = kwargs
        self.ehlo_called = 0
        self.starttls_called = False
        self.starttls_context: Any | None = None
        self.login_calls: list[tuple[str, str]] = []
        self.sent: list[tuple[Message, str, list[str]]] = []
        self.debug_level = 0
        self.closed = False
        DummySMTP.created.append(self)

    def __enter__(self) -> DummySMTP:
        """Register instance as the last active client."""
        DummySMTP.last_instance = self
        return self

    def __exit__(self, exc_type: Any, exc: Any, tb: Any) -> None:
        """Mark the client as closed when leaving the context manager."""
        self.closed = True

    def ehlo(self) -> None:
        """Record EHLO invocations."""
        self.ehlo_called += 1

    def has_extn(self, name: str) -> bool:
        """Report supported SMTP extensions."""
        return name == "STARTTLS" and self.supports_starttls

    def starttls(self, *, context: Any) -> None:
        """Flag that STARTTLS was invoked and capture its context."""
        self.starttls_called = True
        self.starttls_context = context

    def login(self, username: str, password: str) -> None:
        """Track login attempts."""
        self.login_calls.append((username, password))

    def send_message(self, message: Message, from_addr: str, to_addrs: list[str]) -> None:
        """Collect outgoing messages for later inspection."""
        self.sent.append((message, from_addr, to_addrs))

    def set_debuglevel(self, level: int) -> None:
        """Accept debug level setting (used by TRACE logging)."""
        self.debug_level = level


class ExplodingSMTP(DummySMTP):
    """Dummy SMTP client that raises on send."""

    def send_message(self, message: Message, from_addr: str, to_addrs: list[str]) -> None:
        """Always raise an SMTPException to simulate transport errors."""
        raise SMTPException("boom")


class MockSSLSocket:
    """Mock SSL socket for testing _extract_ssl_info."""

    def __init__(
        self,
        *,
        version: str | None = "TLSv1.3",
        cipher: tuple[str, str, int] | None = ("TLS_AES_256_GCM_SHA384", "TLSv1.3", 256),
        peer_cert: dict[str, Any] | None = None,
        raise_on_version: bool = False,
        raise_on_cipher: bool = False,
        raise_on_cert: bool = False,
    ) -> None:
        """Configure mock SSL socket behavior."""
        self._version = version
        self._cipher = cipher
        self._peer_cert = peer_cert
        self._raise_on_version = raise_on_version
        self._raise_on_cipher = raise_on_cipher
        self._raise_on_cert = raise_on_cert
        self.timeout: float | None = -1.0

    def version(self) -> str | None:
        """Return mock TLS version."""
        if self._raise_on_version:
            raise RuntimeError("version error")
        return self._version

    def cipher(self) -> tuple[str, str, int] | None:
        """Return mock cipher info."""
        if self._raise_on_cipher:
            raise RuntimeError("cipher error")
        return self._cipher

    def getpeercert(self) -> dict[str, Any] | None:
        """Return mock peer certificate."""
        if self._raise_on_cert:
            raise RuntimeError("cert error")
        return self._peer_cert

    def settimeout(self, value: float | None) -> None:
        """Record the socket read timeout."""
        self.timeout = value


class DummySMTPWithSSL(DummySMTP):
    """Dummy SMTP client with mock SSL socket."""

    def __init__(self, **kwargs: Any) -> None:
        """Initialize with mock SSL socket."""
        super().__init__(**kwargs)
        self.sock = MockSSLSocket(
            peer_cert={
                "subject": ((("commonName", "smtp.example.com"),),),
                "issuer": ((("commonName", "Test CA"),),),
            }
        )


@pytest.fixture(autouse=True)
def _reset_dummy() -> None:
    """Reset dummy class state between tests."""
    DummySMTP.created.clear()
    DummySMTP.last_instance = None
    DummySMTP.supports_starttls = True


@pytest.fixture(name="built_message")
def _built_message() -> BuiltMessage:
    return (
        MailBuilder(config={})
        .set_host_name("smtp.example.com")
        .set_from("sender@example.com")
        .add_to("user@example.com")
        .add_bcc("hidden@example.com")
        .set_subject("Hello")
        .set_content("Hello", "text/plain")
        .build()
    )


class TestSMTPTransport:
    """Delivery through smtplib doubles."""

    def test_plain_delivery(self, monkeypatch: pytest.MonkeyPatch, built_message: BuiltMessage) -> None:
        """Connect, send to every recipient and close."""
        monkeypatch.setattr("mailcraft.mail.transports.smtp.smtplib.SMTP", DummySMTP)

        SMTPTransport(MailSession(host="smtp.example.com", connection_timeout=2000)).send(built_message)

        client = DummySMTP.last_instance
        assert client is not None
        assert client.kwargs == {"host": "smtp.example.com", "port": 25, "timeout": 2.0}
        assert client.starttls_called is False
        assert client.login_calls == []
        ((mime, from_addr, to_addrs),) = client.sent
        assert from_addr == "sender@example.com"
        assert to_addrs == ["user@example.com", "hidden@example.com"]
        assert mime["Subject"] == "Hello"
        assert client.closed is True

    def test_starttls_and_login(self, monkeypatch: pytest.MonkeyPatch, built_message: BuiltMessage) -> None:
        """Upgrade to STARTTLS and authenticate before sending."""
        monkeypatch.setattr("mailcraft.mail.transports.smtp.smtplib.SMTP", DummySMTP)

        session = MailSession(
            host="smtp.example.com",
            port=587,
            start_tls_enabled=True,
            authenticator=DefaultAuthenticator("user", "pass"),
        )
        SMTPTransport(session).send(built_message)

        client = DummySMTP.last_instance
        assert client is not None
        assert client.starttls_called is True
        assert client.ehlo_called == 2  # once before and once after STARTTLS
        assert client.login_calls == [("user", "pass")]

    def test_identity_check_controls_hostname_verification(
        self, monkeypatch: pytest.MonkeyPatch, built_message: BuiltMessage
    ) -> None:
        """The SSL context checks host names only when requested."""
        monkeypatch.setattr("mailcraft.mail.transports.smtp.smtplib.SMTP", DummySMTP)

        SMTPTransport(MailSession(host="smtp.example.com", start_tls_enabled=True)).send(built_message)
        assert DummySMTP.created[-1].starttls_context.check_hostname is False

        SMTPTransport(
            MailSession(host="smtp.example.com", start_tls_enabled=True, check_server_identity=True)
        ).send(built_message)
        assert DummySMTP.created[-1].starttls_context.check_hostname is True

    def test_starttls_optional_when_unsupported(
        self, monkeypatch: pytest.MonkeyPatch, built_message: BuiltMessage
    ) -> None:
        """Enabled but unsupported STARTTLS falls back to plain text."""
        DummySMTP.supports_starttls = False
        monkeypatch.setattr("mailcraft.mail.transports.smtp.smtplib.SMTP", DummySMTP)

        SMTPTransport(MailSession(host="smtp.example.com", start_tls_enabled=True)).send(built_message)

        client = DummySMTP.last_instance
        assert client is not None
        assert client.starttls_called is False
        assert len(client.sent) == 1

    def test_starttls_required_when_unsupported(
        self, monkeypatch: pytest.MonkeyPatch, built_message: BuiltMessage
    ) -> None:
        """Required STARTTLS fails when the server lacks it."""
        DummySMTP.supports_starttls = False
        monkeypatch.setattr("mailcraft.mail.transports.smtp.smtplib.SMTP", DummySMTP)

        transport = SMTPTransport(MailSession(host="smtp.example.com", start_tls_required=True))
        with pytest.raises(MailTransportError, match="STARTTLS is required"):
            transport.send(built_message)
        assert DummySMTP.created[-1].sent == []

    def test_ssl_on_connect_prefers_smtps(
        self, monkeypatch: pytest.MonkeyPatch, built_message: BuiltMessage
    ) -> None:
        """Select SMTP_SSL when SSL-on-connect is requested."""

        class ForbiddenSMTP(DummySMTP):
            """Fail if the plain SMTP client is initialised."""

            def __init__(self, **kwargs: Any) -> None:
                super().__init__(**kwargs)
                pytest.fail("Plain SMTP client must not be initialised with ssl_on_connect")

        monkeypatch.setattr("mailcraft.mail.transports.smtp.smtplib.SMTP", ForbiddenSMTP)
        monkeypatch.setattr("mailcraft.mail.transports.smtp.smtplib.SMTP_SSL", DummySMTPWithSSL)

        session = MailSession(host="smtp.example.com", port=465, ssl_on_connect=True, start_tls_enabled=True, timeout=0)
        SMTPTransport(session).send(built_message)

        client = DummySMTP.last_instance
        assert isinstance(client, DummySMTPWithSSL)
        assert client.kwargs["port"] == 465
        assert "context" in client.kwargs
        assert client.starttls_called is False
        assert client.ehlo_called == 1
        assert client.sock.timeout is None

    def test_bounce_address_is_envelope_sender(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """The bounce address is used for MAIL FROM."""
        monkeypatch.setattr("mailcraft.mail.transports.smtp.smtplib.SMTP", DummySMTP)
        message = (
            MailBuilder(config={})
            .set_host_name("smtp.example.com")
            .set_bounce_address("bounce@example.com")
            .set_from("sender@example.com")
            .add_to("user@example.com")
            .build()
        )

        SMTPTransport(message.session).send(message)

        client = DummySMTP.last_instance
        assert client is not None
        assert client.sent[0][1] == "bounce@example.com"

    def test_authenticator_returning_none_skips_login(
        self, monkeypatch: pytest.MonkeyPatch, built_message: BuiltMessage
    ) -> None:
        """No credentials means no login."""
        monkeypatch.setattr("mailcraft.mail.transports.smtp.smtplib.SMTP", DummySMTP)

        SMTPTransport(MailSession(host="smtp.example.com", authenticator=lambda: None)).send(built_message)

        client = DummySMTP.last_instance
        assert client is not None
        assert client.login_calls == []

    def test_wraps_smtplib_errors(self, monkeypatch: pytest.MonkeyPatch, built_message: BuiltMessage) -> None:
        """Translate smtplib exceptions into MailTransportError."""
        monkeypatch.setattr("mailcraft.mail.transports.smtp.smtplib.SMTP", ExplodingSMTP)

        with pytest.raises(MailTransportError, match="boom"):
            SMTPTransport(MailSession(host="smtp.example.com")).send(built_message)

    def test_wraps_connection_errors(self, monkeypatch: pytest.MonkeyPatch, built_message: BuiltMessage) -> None:
        """OS-level errors are wrapped too."""

        def refuse(**kwargs: Any) -> DummySMTP:
            raise ConnectionRefusedError("refused")

        monkeypatch.setattr("mailcraft.mail.transports.smtp.smtplib.SMTP", refuse)

        with pytest.raises(MailTransportError, match="refused"):
            SMTPTransport(MailSession(host="smtp.example.com")).send(built_message)

    def test_requires_host(self) -> None:
        """A hostless session is rejected up front."""
        with pytest.raises(MailConfigurationError):
            SMTPTransport(MailSession())

    def test_builder_send_defaults_to_smtp(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """MailBuilder.send delivers over SMTP when no transport is given."""
        monkeypatch.setattr("mailcraft.mail.transports.smtp.smtplib.SMTP", DummySMTP)
        builder = (
            MailBuilder(config={})
            .set_host_name("smtp.example.com")
            .set_smtp_port(2525)
            .set_authenticator(lambda: Credentials(username="u", password="p"))
            .set_from("sender@example.com")
            .add_to("user@example.com")
        )

        message = builder.send()

        client = DummySMTP.last_instance
        assert client is not None
        assert client.kwargs["port"] == 2525
        assert client.login_calls == [("u", "p")]
        assert client.sent[0][0]["Message-ID"] == message.message_id


class TestTraceLogging:
    """TRACE-level diagnostics."""

    def test_logs_envelope(
        self,
        monkeypatch: pytest.MonkeyPatch,
        built_message: BuiltMessage,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        """Log MAIL FROM, RCPT TO and the outcome."""
        monkeypatch.setattr("mailcraft.mail.transports.smtp.smtplib.SMTP", DummySMTP)

        with caplog.at_level(TRACE_LEVEL, logger=SMTP_LOGGER):
            SMTPTransport(MailSession(host="smtp.example.com")).send(built_message)

        log_messages = [r.message for r in caplog.records]
        assert any("Connecting to smtp.example.com:25" in m for m in log_messages)
        assert any("MAIL FROM:" in m for m in log_messages)
        assert sum("RCPT TO:" in m for m in log_messages) == 2
        assert any("Message sent successfully" in m for m in log_messages)
        assert DummySMTP.last_instance is not None
        assert DummySMTP.last_instance.debug_level == 1

    def test_logs_authentication(
        self,
        monkeypatch: pytest.MonkeyPatch,
        built_message: BuiltMessage,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        """Log authentication steps without the password."""
        monkeypatch.setattr("mailcraft.mail.transports.smtp.smtplib.SMTP", DummySMTP)
        session = MailSession(host="smtp.example.com", authenticator=DefaultAuthenticator("user@example.com", "pw1"))

        with caplog.at_level(TRACE_LEVEL, logger=SMTP_LOGGER):
            SMTPTransport(session).send(built_message)

        log_messages = [r.message for r in caplog.records]
        assert any("Authenticating as: user@example.com" in m for m in log_messages)
        assert any("Authentication successful" in m for m in log_messages)
        assert not any("pw1" in m for m in log_messages)

    def test_logs_ssl_details(
        self,
        monkeypatch: pytest.MonkeyPatch,
        built_message: BuiltMessage,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        """Log negotiated TLS parameters for SMTPS."""
        monkeypatch.setattr("mailcraft.mail.transports.smtp.smtplib.SMTP_SSL", DummySMTPWithSSL)

        with caplog.at_level(TRACE_LEVEL, logger=SMTP_LOGGER):
            SMTPTransport(MailSession(host="smtp.example.com", port=465, ssl_on_connect=True)).send(built_message)

        log_messages = [r.message for r in caplog.records]
        assert any("SSL: TLSv1.3" in m for m in log_messages)
        assert any("CN=smtp.example.com" in m for m in log_messages)

    def test_logs_starttls_details(
        self,
        monkeypatch: pytest.MonkeyPatch,
        built_message: BuiltMessage,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        """Log TLS info after the STARTTLS upgrade."""

        class DummySMTPWithStartTLS(DummySMTP):
            """Dummy SMTP that gains an SSL socket after STARTTLS."""

            def starttls(self, *, context: Any) -> None:
                super().starttls(context=context)
                self.sock = MockSSLSocket()

        monkeypatch.setattr("mailcraft.mail.transports.smtp.smtplib.SMTP", DummySMTPWithStartTLS)

        with caplog.at_level(TRACE_LEVEL, logger=SMTP_LOGGER):
            SMTPTransport(MailSession(host="smtp.example.com", start_tls_enabled=True)).send(built_message)

        log_messages = [r.message for r in caplog.records]
        assert any("STARTTLS" in m for m in log_messages)
        assert any("TLS:" in m for m in log_messages)

    def test_no_debug_without_trace(
        self,
        monkeypatch: pytest.MonkeyPatch,
        built_message: BuiltMessage,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        """smtplib debugging stays off at normal levels."""
        monkeypatch.setattr("mailcraft.mail.transports.smtp.smtplib.SMTP", DummySMTP)

        with caplog.at_level(logging.INFO, logger=SMTP_LOGGER):
            SMTPTransport(MailSession(host="smtp.example.com")).send(built_message)

        assert DummySMTP.last_instance is not None
        assert DummySMTP.last_instance.debug_level == 0
        assert any("Sent message" in r.message for r in caplog.records)


class TestCaptureSmtpDebug:
    """stderr capture helper."""

    def test_captures_stderr(self) -> None:
        """Context manager captures stderr output."""
        with _capture_smtp_debug() as buffer:
            print("debug output", file=sys.stderr)
        assert "debug output" in buffer.getvalue()

    def test_restores_stderr(self) -> None:
        """Context manager restores original stderr after exit."""
        original_stderr = sys.stderr
        with _capture_smtp_debug():
            pass
        assert sys.stderr is original_stderr


class TestExtractSslInfo:
    """TLS detail extraction."""

    def test_returns_empty_for_none(self) -> None:
        """Return empty dict when socket is None."""
        assert _extract_ssl_info(None) == {}

    def test_basic(self) -> None:
        """Extract version and cipher from SSL socket."""
        result = _extract_ssl_info(MockSSLSocket())  # type: ignore[arg-type]
        assert result["version"] == "TLSv1.3"
        assert result["cipher_name"] == "TLS_AES_256_GCM_SHA384"
        assert result["cipher_protocol"] == "TLSv1.3"
        assert result["cipher_bits"] == 256

    def test_with_peer_cert(self) -> None:
        """Extract peer certificate CN, issuer and validity."""
        peer_cert = {
            "subject": ((("commonName", "mail.example.com"),),),
            "issuer": ((("commonName", "Let's Encrypt"),),),
            "notBefore": "Jan  1 00:00:00 2024 GMT",
            "notAfter": "Dec 31 23:59:59 2024 GMT",
        }
        result = _extract_ssl_info(MockSSLSocket(peer_cert=peer_cert))  # type: ignore[arg-type]
        assert result["peer_cn"] == "mail.example.com"
        assert result["issuer_cn"] == "Let's Encrypt"
        assert result["valid_from"] == "Jan  1 00:00:00 2024 GMT"
        assert result["valid_until"] == "Dec 31 23:59:59 2024 GMT"

    def test_handles_errors(self) -> None:
        """Socket errors degrade to partial information."""
        sock = MockSSLSocket(raise_on_version=True, raise_on_cipher=True, raise_on_cert=True)
        result = _extract_ssl_info(sock)  # type: ignore[arg-type]
        assert result == {"version": "unknown"}

    def test_malformed_issuer(self) -> None:
        """Malformed issuer data is skipped."""
        peer_cert = {"subject": ((("commonName", "example.com"),),), "issuer": "not a tuple"}
        result = _extract_ssl_info(MockSSLSocket(peer_cert=peer_cert))  # type: ignore[arg-type]
        assert result["peer_cn"] == "example.com"
        assert "issuer_cn" not in result


class TestLogSmtpDebugOutput:
    """Forwarding of smtplib debug lines."""

    def test_skips_if_trace_disabled(self, caplog: pytest.LogCaptureFixture) -> None:
        """Skip logging when TRACE level is not enabled."""
        with caplog.at_level(logging.WARNING, logger=SMTP_LOGGER):
            _log_smtp_debug_output(io.StringIO("send: 'EHLO example.com'\n"))
        assert len(caplog.records) == 0

    def test_parses_send_and_reply_lines(self, caplog: pytest.LogCaptureFixture) -> None:
        """Prefix client and server lines."""
        buffer = io.StringIO("send: 'EHLO example.com'\nreply: retcode (250); Msg: b'OK'\n\n   \nother line\n")
        with caplog.at_level(TRACE_LEVEL, logger=SMTP_LOGGER):
            _log_smtp_debug_output(buffer)
        messages = [r.message for r in caplog.records]
        assert len(messages) == 3
        assert "[SMTP] >>>" in messages[0] and "EHLO example.com" in messages[0]
        assert messages[1].startswith("[SMTP] <<<")
        assert messages[2] == "[SMTP] other line"
