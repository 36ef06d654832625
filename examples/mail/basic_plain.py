"""Plain-text message composition using :class:`mailcraft.mail.MailBuilder`."""

from __future__ import annotations

from mailcraft.mail import MailBuilder


def build_plain_message() -> None:
    """Construct a plain-text message and print the RFC 5322 payload."""
    builder = (
        MailBuilder()
        .set_host_name("smtp.example.com")
        .set_from("sender@example.com", "Sender")
        .add_to("user@example.com", "Grace <grace@example.org>")
        .add_bcc("audit@example.com")
        .set_subject("Plain Greetings")
        .set_charset("utf-8")
        .set_content("Hello from mailcraft!\nThis message uses text/plain.", "text/plain")
        .add_header("X-Mailer", "mailcraft")
    )
    message = builder.build()
    print(message.as_string())
    print("Envelope recipients:", ", ".join(message.recipients))


if __name__ == "__main__":  # pragma: no cover - manual example
    build_plain_message()
