"""
Notification policy - Throttled security emails on login.

A login triggers a "new login" email at most once per interval per
account. The decision is a pure function of the stored timestamp; the
side effects (dispatch, timestamp update) never fail the login.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta

from .messages import MessageComposer
from .models import Account, ClientInfo
from .ports import AccountRepository, EmailDispatcher

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL = timedelta(hours=1)


def should_notify(
    last_notified_at: datetime | None,
    now: datetime,
    interval: timedelta = DEFAULT_INTERVAL,
) -> bool:
    """Notify if never notified, or strictly more than interval ago."""
    return last_notified_at is None or now - last_notified_at > interval


@dataclass
class LoginNotifier:
    """Applies should_notify and performs the notification side effects."""

    repository: AccountRepository
    dispatcher: EmailDispatcher
    composer: MessageComposer
    interval: timedelta = DEFAULT_INTERVAL

    def on_login(self, account: Account, client: ClientInfo | None, now: datetime) -> bool:
        """
        Notify the account owner of a login if the throttle allows.

        Returns:
            True if a notification was dispatched
        """
        if not should_notify(account.last_login_notification_at, now, self.interval):
            return False

        message = self.composer.login_notification(account, client or ClientInfo(), now)
        try:
            self.dispatcher.dispatch(message)
        except Exception:
            logger.exception("Login notification dispatch failed for account %s", account.id)

        try:
            self.repository.update(account.id, last_login_notification_at=now)
        except Exception:
            logger.exception("Could not record login notification for account %s", account.id)
        return True
