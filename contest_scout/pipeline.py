"""
Match -> Dedup -> Dispatch pipeline for contest reminders and digests.

Each subscriber is handled independently; a failure for one never stops the
scan for the others.
"""

from collections import Counter
from datetime import datetime, timedelta
from typing import Callable

from contest_scout.dedup import DedupGuard
from contest_scout.errors import (
    DependentRecordMissingError,
    NotificationNotFoundError,
    NotificationNotRetryableError,
)
from contest_scout.matcher import NotificationMatcher, contests_for_digest
from contest_scout.models import (
    AlertCadence,
    Channel,
    ContestPhase,
    ContestSummary,
    NotificationKind,
    NotificationPayload,
    NotificationRecord,
    NotificationStatus,
    PersistedContest,
    SubscriberPreference,
    utcnow,
)
from contest_scout.notifier import ChannelDispatcher
from contest_scout.store.base import Store
from contest_scout.templates import (
    digest_message,
    digest_title,
    reminder_message,
    reminder_title,
)
from contest_scout.utils.logging import get_logger

logger = get_logger(__name__)

_DIGEST_KINDS = {
    AlertCadence.DAILY: NotificationKind.DAILY_DIGEST,
    AlertCadence.WEEKLY: NotificationKind.WEEKLY_DIGEST,
}


class NotificationPipeline:
    def __init__(
        self,
        store: Store,
        dispatcher: ChannelDispatcher,
        dedup: DedupGuard,
        digest_horizons: dict[AlertCadence, int] | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.dispatcher = dispatcher
        self.dedup = dedup
        self.matcher = NotificationMatcher(store)
        self.digest_horizons = digest_horizons or {
            AlertCadence.DAILY: 24,
            AlertCadence.WEEKLY: 168,
        }
        self.clock = clock

    # ------------------------------------------------------------------ #
    # Reminders
    # ------------------------------------------------------------------ #

    def build_reminder(
        self, subscriber: SubscriberPreference, contest: PersistedContest, now: datetime
    ) -> NotificationPayload:
        summary = ContestSummary.from_contest(contest, now)
        return NotificationPayload(
            kind=NotificationKind.CONTEST_REMINDER,
            title=reminder_title(contest, summary.hours_until_start),
            message=reminder_message(summary),
            subscriber_id=subscriber.subscriber_id,
            contest_id=contest.id,
            contests=[summary],
        )

    async def notify_subscriber(
        self, subscriber: SubscriberPreference, contest: PersistedContest, now: datetime | None = None
    ) -> NotificationRecord | None:
        """Send one reminder unless a SENT one already exists inside the dedup window."""
        now = now or self.clock()
        if await self.dedup.already_notified(subscriber.subscriber_id, contest.id, now):
            return None
        payload = self.build_reminder(subscriber, contest, now)
        return await self.dispatcher.dispatch(subscriber, payload)

    async def notify_upcoming_contests(
        self, contests: list[PersistedContest], now: datetime | None = None
    ) -> dict:
        now = now or self.clock()
        summary = {"contests": len(contests), "eligible": 0, "notified": 0, "skipped": 0, "failed": 0}

        for contest in contests:
            try:
                subscribers = await self.matcher.eligible_subscribers(contest, now)
            except Exception as exc:
                logger.error("reminder_match_failed", contest_id=contest.id, error=str(exc))
                summary["failed"] += 1
                continue

            summary["eligible"] += len(subscribers)
            any_sent = False
            for subscriber in subscribers:
                try:
                    record = await self.notify_subscriber(subscriber, contest, now)
                except Exception as exc:
                    logger.error(
                        "reminder_failed",
                        contest_id=contest.id,
                        subscriber_id=subscriber.subscriber_id,
                        error=str(exc),
                    )
                    summary["failed"] += 1
                    continue

                if record is None:
                    summary["skipped"] += 1
                elif record.status == NotificationStatus.SENT:
                    summary["notified"] += 1
                    any_sent = True
                else:
                    summary["failed"] += 1

            if any_sent and not contest.notified:
                await self.store.mark_contest_notified(contest.id)
                contest.notified = True

        logger.info("reminder_run_complete", **summary)
        return summary

    async def scan_upcoming(self, window_hours: int = 24, now: datetime | None = None) -> dict:
        """Remind about active contests that have not started and begin inside the window."""
        now = now or self.clock()
        candidates = await self.store.contests_starting_between(now, now + timedelta(hours=window_hours))
        contests = [c for c in candidates if c.phase == ContestPhase.BEFORE and c.active]
        logger.info("upcoming_scan_started", window_hours=window_hours, contests=len(contests))
        return await self.notify_upcoming_contests(contests, now)

    # ------------------------------------------------------------------ #
    # Digests
    # ------------------------------------------------------------------ #

    async def send_digest(
        self,
        subscriber: SubscriberPreference,
        contests: list[PersistedContest],
        cadence: AlertCadence,
        now: datetime | None = None,
    ) -> NotificationRecord | None:
        if not contests:
            return None
        now = now or self.clock()
        kind = _DIGEST_KINDS[cadence]
        summaries = [ContestSummary.from_contest(c, now) for c in contests]
        payload = NotificationPayload(
            kind=kind,
            title=digest_title(kind, len(summaries)),
            message=digest_message(summaries),
            subscriber_id=subscriber.subscriber_id,
            contests=summaries,
        )
        return await self.dispatcher.dispatch(subscriber, payload, only={Channel.EMAIL})

    async def run_digest(self, cadence: AlertCadence, now: datetime | None = None) -> dict:
        now = now or self.clock()
        horizon = self.digest_horizons[cadence]
        summary = {"cadence": cadence.value, "subscribers": 0, "sent": 0, "skipped": 0, "failed": 0}

        subscribers = await self.matcher.digest_subscribers(cadence)
        upcoming = [
            c
            for c in await self.store.contests_starting_between(now, now + timedelta(hours=horizon))
            if c.phase == ContestPhase.BEFORE
        ]
        summary["subscribers"] = len(subscribers)

        for subscriber in subscribers:
            picked = contests_for_digest(subscriber, upcoming, horizon, now)
            try:
                record = await self.send_digest(subscriber, picked, cadence, now)
            except Exception as exc:
                logger.error(
                    "digest_failed",
                    cadence=cadence.value,
                    subscriber_id=subscriber.subscriber_id,
                    error=str(exc),
                )
                summary["failed"] += 1
                continue

            if record is None:
                summary["skipped"] += 1
            elif record.status == NotificationStatus.SENT:
                summary["sent"] += 1
            else:
                summary["failed"] += 1

        logger.info("digest_run_complete", **summary)
        return summary

    # ------------------------------------------------------------------ #
    # Retry, cleanup, read state
    # ------------------------------------------------------------------ #

    async def retry_notification(self, notification_id: str) -> NotificationRecord:
        record = await self.store.get_notification(notification_id)
        if record is None:
            raise NotificationNotFoundError(notification_id)
        if not record.can_retry:
            raise NotificationNotRetryableError(
                notification_id,
                f"status {record.status.value}, {record.retry_count}/{record.max_retries} retries used",
            )

        subscriber = await self.store.get_subscriber(record.subscriber_id)
        if subscriber is None:
            raise DependentRecordMissingError(f"subscriber '{record.subscriber_id}' not found")

        now = self.clock()
        if record.kind == NotificationKind.CONTEST_REMINDER:
            contest = await self.store.get_contest(record.contest_id) if record.contest_id else None
            if contest is None:
                raise DependentRecordMissingError(f"contest '{record.contest_id}' not found")
            payload = self.build_reminder(subscriber, contest, now)
            only = None
        else:
            payload = NotificationPayload(
                kind=record.kind,
                title=record.title,
                message=record.message,
                subscriber_id=record.subscriber_id,
                contest_id=record.contest_id,
                contests=[ContestSummary.from_dict(c) for c in record.payload.get("contests", [])],
            )
            only = {Channel.EMAIL} if record.kind in _DIGEST_KINDS.values() else None

        record.retry_count += 1
        record.status = NotificationStatus.RETRYING
        record.last_retry_at = now
        await self.store.update_notification(record)
        logger.info(
            "notification_retry",
            notification_id=record.id,
            retry_count=record.retry_count,
            max_retries=record.max_retries,
        )

        result = await self.dispatcher.dispatch(subscriber, payload, only=only, record=record)
        if result is None:
            record.status = NotificationStatus.FAILED
            record.failed_at = self.clock()
            record.error_history.append(
                {
                    "timestamp": record.failed_at.isoformat(),
                    "channel": None,
                    "error": "no deliverable channel",
                    "retry_count": record.retry_count,
                }
            )
            await self.store.update_notification(record)
            return record
        return result

    async def cleanup_notifications(self, retention_days: int = 90) -> int:
        now = self.clock()
        deleted = await self.store.delete_notifications_before(now - timedelta(days=retention_days), now)
        logger.info("notification_cleanup_complete", deleted=deleted)
        return deleted

    async def mark_read(self, notification_id: str) -> NotificationRecord:
        record = await self.store.get_notification(notification_id)
        if record is None:
            raise NotificationNotFoundError(notification_id)
        if not record.is_read:
            record.is_read = True
            record.read_at = self.clock()
            await self.store.update_notification(record)
        return record

    async def mark_all_read(self, subscriber_id: str) -> int:
        now = self.clock()
        count = 0
        for record in await self.store.list_notifications(subscriber_id):
            if record.is_read:
                continue
            record.is_read = True
            record.read_at = now
            await self.store.update_notification(record)
            count += 1
        return count

    async def notification_stats(self, subscriber_id: str | None = None) -> dict:
        records = await self.store.list_notifications(subscriber_id)
        total = len(records)
        sent = sum(1 for r in records if r.status == NotificationStatus.SENT)
        by_channel: Counter = Counter()
        for record in records:
            by_channel.update(c.value for c in record.channels)
        return {
            "total": total,
            "sent": sent,
            "failed": sum(1 for r in records if r.status == NotificationStatus.FAILED),
            "pending": sum(1 for r in records if r.status == NotificationStatus.PENDING),
            "by_channel": dict(by_channel),
            "by_kind": dict(Counter(r.kind.value for r in records)),
            "success_rate": round(sent / total * 100, 2) if total else 0.0,
        }
