from __future__ import annotations

import logging
import smtplib
from email.message import EmailMessage

from ops360.config import SETTINGS, Settings

logger = logging.getLogger(__name__)


class LogSink:
    """Writes messages to the log instead of sending them."""

    def send(self, address: str, subject: str, body: str) -> bool:
        logger.info("Mail to %s: %s\n%s", address, subject, body)
        return True


class SmtpSink:
    def __init__(self, settings: Settings = SETTINGS, timeout: float = 10.0) -> None:
        self._settings = settings
        self._timeout = timeout

    def send(self, address: str, subject: str, body: str) -> bool:
        message = EmailMessage()
        message["From"] = self._settings.mail_from
        message["To"] = address
        message["Subject"] = subject
        message.set_content(body)

        try:
            with smtplib.SMTP(self._settings.smtp_host, self._settings.smtp_port, timeout=self._timeout) as smtp:
                if self._settings.smtp_use_tls:
                    smtp.starttls()
                if self._settings.smtp_user:
                    smtp.login(self._settings.smtp_user, self._settings.smtp_password or "")
                smtp.send_message(message)
        except (OSError, smtplib.SMTPException) as exc:
            logger.error("Error sending email to %s: %s", address, exc)
            return False
        return True


def build_sink(settings: Settings = SETTINGS):
    if settings.mail_backend == "smtp":
        return SmtpSink(settings)
    if settings.mail_backend != "log":
        logger.warning("Unknown MAIL_BACKEND %r, falling back to log", settings.mail_backend)
    return LogSink()
