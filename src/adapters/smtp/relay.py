"""
SMTP email sender adapter - Implements EmailSender protocol over smtplib.

Each send opens its own connection and closes it when done, so the
sender holds no connection state and is safe to share between threads.
"""

import logging
import smtplib
import ssl
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

from src.config.settings import Settings
from src.domain.messages import strip_html

logger = logging.getLogger(__name__)


class SmtpEmailSender:
    """Implements EmailSender protocol via an SMTP relay."""

    def __init__(self, settings: Settings) -> None:
        self._settings = settings

    def _create_message(
        self, to: str, subject: str, html_body: str, text_body: str
    ) -> MIMEMultipart:
        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = f'"{self._settings.smtp_from_name}" <{self._settings.smtp_from_email}>'
        msg["To"] = to
        msg.attach(MIMEText(text_body, "plain"))
        msg.attach(MIMEText(html_body, "html"))
        return msg

    def _connect(self) -> smtplib.SMTP:
        settings = self._settings
        if settings.smtp_use_tls and not settings.smtp_starttls:
            # Implicit TLS (port 465)
            server: smtplib.SMTP = smtplib.SMTP_SSL(
                settings.smtp_host,
                settings.smtp_port,
                timeout=settings.smtp_timeout_seconds,
                context=ssl.create_default_context(),
            )
        else:
            # STARTTLS (port 587) or plain
            server = smtplib.SMTP(
                settings.smtp_host, settings.smtp_port, timeout=settings.smtp_timeout_seconds
            )
            if settings.smtp_starttls:
                server.starttls(context=ssl.create_default_context())

        if settings.smtp_user:
            password = settings.smtp_password.get_secret_value() if settings.smtp_password else ""
            server.login(settings.smtp_user, password)
        return server

    def send(
        self, to: str, subject: str, html_body: str, text_body: str | None = None
    ) -> bool:
        """
        Deliver one message.

        Returns:
            True if the relay accepted it, False on any SMTP or network error
        """
        if not self._settings.smtp_host:
            logger.error("SMTP host not configured, email to %s not sent", to)
            return False

        message = self._create_message(
            to, subject, html_body, text_body if text_body is not None else strip_html(html_body)
        )
        try:
            with self._connect() as server:
                server.send_message(message)
        except (smtplib.SMTPException, OSError) as e:
            logger.error("Failed to send email to %s: %s", to, e)
            return False

        logger.info("Email sent to %s", to)
        return True

    def verify_connection(self) -> bool:
        """Open and close one authenticated connection to check the relay settings."""
        if not self._settings.smtp_host:
            logger.error("SMTP host not configured")
            return False
        try:
            with self._connect() as server:
                server.noop()
        except (smtplib.SMTPException, OSError) as e:
            logger.error("SMTP connection failed: %s", e)
            return False
        logger.info("SMTP connection verified")
        return True
