"""
Background email dispatcher - Implements EmailDispatcher protocol.

Sends run on a process-owned thread pool so the request that triggered
them never waits for the mail relay. The pool is created at startup and
shut down in the application lifespan.
"""

import logging
from concurrent.futures import ThreadPoolExecutor

from src.domain.models import EmailMessage
from src.domain.ports import EmailSender

logger = logging.getLogger(__name__)


class BackgroundEmailDispatcher:
    """
    Implements EmailDispatcher protocol on a ThreadPoolExecutor.

    Uses structural subtyping - no explicit inheritance from Protocol.
    """

    def __init__(self, sender: EmailSender, max_workers: int = 4) -> None:
        self._sender = sender
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="email")

    def dispatch(self, message: EmailMessage) -> None:
        """Queue message for delivery and return immediately."""
        try:
            self._executor.submit(self._deliver, message)
        except RuntimeError:
            # Executor already shut down
            logger.error("Email dispatcher is closed, dropping email to %s", message.to)

    def _deliver(self, message: EmailMessage) -> None:
        try:
            delivered = self._sender.send(
                message.to, message.subject, message.html_body, message.text_body
            )
        except Exception:
            logger.exception("Email sender raised while sending to %s", message.to)
            return
        if not delivered:
            logger.warning("Email to %s (%s) was not delivered", message.to, message.subject)

    def shutdown(self, wait: bool = True) -> None:
        """Stop accepting messages; with wait=True, finish the queued ones first."""
        self._executor.shutdown(wait=wait)
