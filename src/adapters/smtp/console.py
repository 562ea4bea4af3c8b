"""
Console email sender adapter - Implements EmailSender protocol.

This module provides a console-based implementation of the domain's
email sender port, logging messages to stdout for development.
"""

import logging

from src.domain.messages import strip_html

logger = logging.getLogger(__name__)


class ConsoleEmailSender:
    """
    Implements EmailSender protocol via console logging.

    Uses structural subtyping - no explicit inheritance from Protocol.
    For development purposes - the plain-text body (including any
    verification or reset link) is written to the log.
    """

    def send(
        self, to: str, subject: str, html_body: str, text_body: str | None = None
    ) -> bool:
        """
        Log the message (simulates email delivery).

        The message is logged at INFO level to be visible in container logs.

        Returns:
            Always True
        """
        body = text_body if text_body is not None else strip_html(html_body)
        logger.info("[EMAIL] To: %s Subject: %s\n%s", to, subject, body)
        return True
