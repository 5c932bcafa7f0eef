"""
Outgoing mail over SMTP, plus an in-memory outbox for tests.
"""

from __future__ import annotations

import logging
import smtplib
from dataclasses import dataclass, field
from email.message import EmailMessage
from typing import Optional, Protocol

logger = logging.getLogger(__name__)


class Mailer(Protocol):
    def send(
        self, to: str, subject: str, text: str, html: Optional[str] = None
    ) -> None:
        ...


@dataclass
class InMemoryMailer:
    """Collects messages instead of sending them."""

    sender: str = "noreply@example.test"
    outbox: list[dict] = field(default_factory=list)

    def send(
        self, to: str, subject: str, text: str, html: Optional[str] = None
    ) -> None:
        self.outbox.append(
            {"from": self.sender, "to": to, "subject": subject, "text": text, "html": html}
        )


@dataclass
class SmtpMailer:
    """SMTP client using STARTTLS and login, one connection per message."""

    host: str
    port: int
    username: str
    password: str
    use_tls: bool = True
    sender: Optional[str] = None
    timeout: int = 30

    def _build_message(
        self, to: str, subject: str, text: str, html: Optional[str]
    ) -> EmailMessage:
        message = EmailMessage()
        message["From"] = self.sender or self.username
        message["To"] = to
        message["Subject"] = subject
        message.set_content(text)
        if html:
            message.add_alternative(html, subtype="html")
        return message

    def send(
        self, to: str, subject: str, text: str, html: Optional[str] = None
    ) -> None:
        message = self._build_message(to, subject, text, html)
        with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as server:
            if self.use_tls:
                server.starttls()
            server.login(self.username, self.password)
            server.send_message(message)
        logger.info("Sent mail to %s: %s", to, subject)
