"""Operator email notifications."""

import asyncio
import smtplib
from email.message import EmailMessage

import structlog

from featured_image_helper.core.config import Settings, settings

logger = structlog.get_logger()


class NotificationError(Exception):
    """Sending a notification failed."""


class EmailNotifier:
    """Notifier that delivers plain-text email over SMTP."""

    def __init__(self, app_settings: Settings | None = None) -> None:
        self.settings = app_settings or settings

    def _build_message(self, to: str, subject: str, body: str) -> EmailMessage:
        message = EmailMessage()
        message["From"] = self.settings.mail_from
        message["To"] = to
        message["Subject"] = subject
        message.set_content(body)
        return message

    def _send(self, message: EmailMessage) -> None:
        host = self.settings.smtp_host
        if not host:
            raise NotificationError("SMTP host is not configured")

        with smtplib.SMTP(host, self.settings.smtp_port, timeout=30) as smtp:
            if self.settings.smtp_use_tls:
                smtp.starttls()
            if self.settings.smtp_username and self.settings.smtp_password:
                smtp.login(self.settings.smtp_username, self.settings.smtp_password)
            smtp.send_message(message)

    async def send_email(self, to: str, subject: str, body: str) -> None:
        """Send an email.

        Raises:
            NotificationError: SMTP is not configured or delivery failed
        """
        message = self._build_message(to, subject, body)
        try:
            await asyncio.to_thread(self._send, message)
        except (smtplib.SMTPException, OSError) as e:
            logger.error("Failed to send email", to=to, subject=subject, error=str(e))
            raise NotificationError(f"Failed to send email: {e}") from e

        logger.info("Email sent", to=to, subject=subject)
