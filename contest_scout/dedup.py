"""
Reminder deduplication.

A reminder is a duplicate when the store already holds a SENT reminder for the
same (subscriber, contest) created inside the window. The check and the later
write are not atomic, so two concurrent scans can both pass the guard; that gap
is accepted.
"""

from datetime import datetime, timedelta

from contest_scout.store.base import Store
from contest_scout.utils.logging import get_logger

logger = get_logger(__name__)


class DedupGuard:
    def __init__(self, store: Store, window_hours: int = 12):
        self.store = store
        self.window = timedelta(hours=window_hours)

    async def already_notified(self, subscriber_id: str, contest_id: str, now: datetime) -> bool:
        duplicate = await self.store.has_sent_reminder(subscriber_id, contest_id, now - self.window)
        if duplicate:
            logger.info(
                "reminder_duplicate_skipped",
                subscriber_id=subscriber_id,
                contest_id=contest_id,
            )
        return duplicate
