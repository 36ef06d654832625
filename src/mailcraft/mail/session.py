"""Mail session configuration shared between builders and transports.

A :class:`MailSession` is a frozen snapshot of everything a transport needs
to reach an SMTP server: host, port, SSL/STARTTLS policy, bounce address,
socket timeouts and an optional authenticator. Builders derive one lazily
from their own fields, or callers inject a pre-built session that several
builders can share read-only.

Examples:
    Share one session between builders::

        session = MailSession(host="smtp.example.com", port=587, start_tls_enabled=True)
        builder = MailBuilder().set_mail_session(session)
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

from mailcraft.limits import (
    DEFAULT_SMTP_PORT,
    DEFAULT_SOCKET_CONNECTION_TIMEOUT,
    DEFAULT_SOCKET_TIMEOUT,
    get_session_defaults,
)
from mailcraft.mail.exceptions import MailConfigurationError, MissingHostError

MISSING_HOST_MESSAGE = "Cannot find valid hostname for mail session"


@dataclass(frozen=True, slots=True)
class Credentials:
    """Username/password pair returned by an authenticator.

    Attributes:
        username: Login name.
        password: Secret, masked in ``repr``.
    """

    username: str
    password: str

    def __repr__(self) -> str:
        return f"Credentials(username={self.username!r}, password='***')"


@runtime_checkable
class Authenticator(Protocol):
    """Capability that supplies credentials when the transport needs them.

    Any zero-argument callable returning :class:`Credentials` (or ``None``
    when no credentials are available) satisfies this protocol, including
    plain functions and lambdas.
    """

    def __call__(self) -> Credentials | None:
        """Return the credentials to log in with."""
        ...


class DefaultAuthenticator:
    """Authenticator holding a fixed username and password.

    Examples:
        >>> auth = DefaultAuthenticator("user", "secret")
        >>> auth().username
        'user'
    """

    def __init__(self, username: str, password: str) -> None:
        if not username:
            raise MailConfigurationError("Authenticator username cannot be empty")
        self._credentials = Credentials(username=username, password=password)

    def __call__(self) -> Credentials:
        return self._credentials

    def __repr__(self) -> str:
        return f"DefaultAuthenticator(username={self._credentials.username!r})"


@dataclass(frozen=True, slots=True)
class PopBeforeSmtp:
    """POP-before-SMTP pre-authentication settings.

    Stored for the transport layer; mailcraft never opens the POP3
    connection itself.

    Attributes:
        enabled: Whether pre-authentication is requested.
        host: POP3 server host name.
        username: POP3 login.
        password: POP3 secret, masked in ``repr``.
    """

    enabled: bool
    host: str
    username: str
    password: str

    def __post_init__(self) -> None:
        """Validate that an enabled step has a host and username.

        Raises:
            MailConfigurationError: If enabled without host or username.
        """
        if self.enabled and not self.host:
            raise MailConfigurationError("POP-before-SMTP requires a POP3 host name")
        if self.enabled and not self.username:
            raise MailConfigurationError("POP-before-SMTP requires a POP3 username")

    def __repr__(self) -> str:
        return f"PopBeforeSmtp(enabled={self.enabled!r}, host={self.host!r}, username={self.username!r}, password='***')"


@dataclass(frozen=True, slots=True)
class MailSession:
    """Immutable SMTP session configuration.

    Attributes:
        host: SMTP server host name. May be ``None`` for sessions injected
            without a host.
        port: Port to connect to (already switched to the SSL port when
            ``ssl_on_connect`` is set).
        ssl_on_connect: Open an implicit TLS connection (SMTPS).
        start_tls_enabled: Upgrade a plain connection with STARTTLS when the
            server offers it.
        start_tls_required: Fail delivery if STARTTLS is unavailable.
        check_server_identity: Verify the server certificate host name.
        bounce_address: Envelope sender (Return-Path) for bounces.
        connection_timeout: Socket connect timeout in milliseconds.
        timeout: Socket read timeout in milliseconds.
        authenticator: Credential supplier, ``None`` for anonymous sessions.
        debug: Log the SMTP dialogue at TRACE level.

    Examples:
        >>> session = MailSession(host="smtp.example.com")
        >>> session.port, session.auth_required
        (25, False)
    """

    host: str | None = None
    port: int = DEFAULT_SMTP_PORT
    ssl_on_connect: bool = False
    start_tls_enabled: bool = False
    start_tls_required: bool = False
    check_server_identity: bool = False
    bounce_address: str | None = None
    connection_timeout: int = DEFAULT_SOCKET_CONNECTION_TIMEOUT
    timeout: int = DEFAULT_SOCKET_TIMEOUT
    authenticator: Authenticator | None = None
    debug: bool = False

    @property
    def auth_required(self) -> bool:
        """Return True when the session carries an authenticator."""
        return self.authenticator is not None

    @property
    def connection_timeout_seconds(self) -> float | None:
        """Connect timeout in seconds, ``None`` when disabled (0)."""
        return self.connection_timeout / 1000 if self.connection_timeout > 0 else None

    @property
    def timeout_seconds(self) -> float | None:
        """Read timeout in seconds, ``None`` when disabled (0)."""
        return self.timeout / 1000 if self.timeout > 0 else None

    def credentials(self) -> Credentials | None:
        """Invoke the authenticator, if any, and return its credentials."""
        if self.authenticator is None:
            return None
        return self.authenticator()

    def require_host(self) -> str:
        """Return the host name or raise when the session has none.

        Raises:
            MissingHostError: If ``host`` is empty.
        """
        if not self.host:
            raise MissingHostError(MISSING_HOST_MESSAGE)
        return self.host

    def properties(self) -> dict[str, str]:
        """Render the session as ``mail.smtp.*`` style properties.

        Useful for diagnostics and for handing the configuration to tools
        that speak the JavaMail property vocabulary.

        Examples:
            >>> MailSession(host="mx.example.com", timeout=0).properties()["mail.smtp.host"]
            'mx.example.com'
        """
        props = {
            "mail.transport.protocol": "smtps" if self.ssl_on_connect else "smtp",
            "mail.smtp.port": str(self.port),
            "mail.debug": str(self.debug).lower(),
            "mail.smtp.starttls.enable": str(self.start_tls_enabled).lower(),
            "mail.smtp.starttls.required": str(self.start_tls_required).lower(),
        }
        if self.host:
            props["mail.smtp.host"] = self.host
        if self.auth_required:
            props["mail.smtp.auth"] = "true"
        if self.ssl_on_connect:
            props["mail.smtp.ssl.enable"] = "true"
        if self.check_server_identity:
            props["mail.smtp.ssl.checkserveridentity"] = "true"
        if self.bounce_address:
            props["mail.smtp.from"] = self.bounce_address
        if self.timeout > 0:
            props["mail.smtp.timeout"] = str(self.timeout)
        if self.connection_timeout > 0:
            props["mail.smtp.connectiontimeout"] = str(self.connection_timeout)
        return props

    @classmethod
    def from_config(cls, config: Mapping[str, Any] | None = None, **overrides: Any) -> MailSession:
        """Create a session from the ``mail.session`` configuration section.

        Args:
            config: Configuration mapping, ``None`` for the global config.
            **overrides: Field values taking precedence over configuration.

        Raises:
            MissingHostError: If neither configuration nor overrides supply
                a host.
        """
        defaults = get_session_defaults(config)
        ssl_on_connect = bool(overrides.pop("ssl_on_connect", False))
        values: dict[str, Any] = {
            "host": defaults.host,
            "port": defaults.ssl_smtp_port if ssl_on_connect else defaults.smtp_port,
            "ssl_on_connect": ssl_on_connect,
            "connection_timeout": defaults.socket_connection_timeout,
            "timeout": defaults.socket_timeout,
        }
        values.update(overrides)
        session = cls(**values)
        session.require_host()
        return session


__all__ = [
    "MISSING_HOST_MESSAGE",
    "Authenticator",
    "Credentials",
    "DefaultAuthenticator",
    "MailSession",
    "PopBeforeSmtp",
]
