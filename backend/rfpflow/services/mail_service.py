"""
Outbound mail collaborator for vendor invitations.
SMTP when SMTP_HOST is configured; otherwise messages are only logged (no email sent),
which keeps local development usable without a mail server.
"""
import logging
import os
import smtplib
from dataclasses import dataclass
from email.message import EmailMessage
from typing import Protocol

from rfpflow.errors import MailDeliveryError

_SMTP_TIMEOUT_SEC = 30

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OutgoingMessage:
    to: str
    subject: str
    body: str


class Mailer(Protocol):
    def send(self, message: OutgoingMessage) -> None:
        ...


class SmtpMailer:
    def __init__(
        self,
        host: str,
        port: int = 587,
        username: str | None = None,
        password: str | None = None,
        sender: str | None = None,
    ):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.sender = sender or username or "no-reply@localhost"

    def _build(self, message: OutgoingMessage) -> EmailMessage:
        email = EmailMessage()
        email["From"] = self.sender
        email["To"] = message.to
        email["Subject"] = message.subject
        email.set_content(message.body)
        return email

    def send(self, message: OutgoingMessage) -> None:
        try:
            with smtplib.SMTP(self.host, self.port, timeout=_SMTP_TIMEOUT_SEC) as smtp:
                smtp.ehlo()
                # Plain relays (local dev, internal port 25) do not offer TLS.
                if smtp.has_extn("starttls"):
                    smtp.starttls()
                    smtp.ehlo()
                if self.username:
                    smtp.login(self.username, self.password or "")
                smtp.send_message(self._build(message))
        except (smtplib.SMTPException, OSError) as e:
            raise MailDeliveryError(f"Could not send email to {message.to}: {e}") from e
        logger.info("Sent email to %s subject=%r", message.to, message.subject)


class LogOnlyMailer:
    def send(self, message: OutgoingMessage) -> None:
        logger.info(
            "SMTP_HOST not set, email not sent: to=%s subject=%r body_len=%s",
            message.to,
            message.subject,
            len(message.body),
        )


def mailer_kind() -> str:
    return "smtp" if os.getenv("SMTP_HOST", "").strip() else "log-only"


def get_mailer() -> Mailer:
    host = os.getenv("SMTP_HOST", "").strip()
    if not host:
        return LogOnlyMailer()
    return SmtpMailer(
        host=host,
        port=int(os.getenv("SMTP_PORT", "").strip() or 587),
        username=os.getenv("SMTP_USER", "").strip() or None,
        password=os.getenv("SMTP_PASS") or None,
        sender=os.getenv("FROM_EMAIL", "").strip() or None,
    )
