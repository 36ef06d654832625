"""Concrete mail transports."""

from mailcraft.mail.transports.smtp import SMTPTransport

__all__ = ["SMTPTransport"]
