#!/usr/bin/env python3
"""Demonstrate SMTP TRACE-level logging for debugging.

This example shows the SMTP dialogue and TLS details logged when TRACE
logging is enabled. Useful for debugging connection issues, STARTTLS
negotiation and authentication problems.

Setup:
    export SMTP_HOST="smtp.example.com"
    export SMTP_USER="user@example.com"
    export SMTP_PASS="secret"
    export SMTP_TO="recipient@example.com"

Usage:
    python examples/mail/smtp_trace.py
"""

from __future__ import annotations

import os
import sys

from mailcraft.logging import init_logging
from mailcraft.mail import MailBuilder, MailError

STARTTLS_PORT = 587


def main() -> None:
    """Send a message with TRACE logging enabled."""
    host = os.getenv("SMTP_HOST")
    user = os.getenv("SMTP_USER")
    password = os.getenv("SMTP_PASS")
    recipient = os.getenv("SMTP_TO")
    if not all((host, user, password, recipient)):
        print("Set SMTP_HOST, SMTP_USER, SMTP_PASS and SMTP_TO first.")
        sys.exit(1)

    log = init_logging(config={"console": {"level": "TRACE"}})
    log.info("TRACE logging enabled", host=host, port=STARTTLS_PORT)

    builder = (
        MailBuilder()
        .set_host_name(host)
        .set_smtp_port(STARTTLS_PORT)
        .set_start_tls_required(True)
        .set_authentication(user, password)
        .set_socket_connection_timeout(30_000)
        .set_from(user)
        .add_to(recipient)
        .set_subject("mailcraft SMTP trace demo")
        .set_content("Sent with TRACE logging enabled.", "text/plain")
    )

    try:
        message = builder.send()
    except MailError as e:
        log.traceback(e)
        sys.exit(1)
    log.success("Delivered", message_id=message.message_id)


if __name__ == "__main__":  # pragma: no cover - manual example
    main()
