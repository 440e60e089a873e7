from datetime import datetime

from contest_scout.errors import DuplicateContestError
from contest_scout.models import (
    AlertCadence,
    CanonicalContest,
    ContestPhase,
    NotificationKind,
    NotificationRecord,
    NotificationStatus,
    PersistedContest,
    Provider,
    SubscriberPreference,
)
from contest_scout.store.base import Store


class InMemoryStore(Store):
    """Process-local store. Used when Supabase is not configured, and in tests."""

    def __init__(self, subscribers: list[SubscriberPreference] | None = None):
        self.contests: dict[str, PersistedContest] = {}
        self._contest_keys: dict[tuple[Provider, str], str] = {}
        self.subscribers: dict[str, SubscriberPreference] = {
            s.subscriber_id: s for s in subscribers or []
        }
        self.notifications: dict[str, NotificationRecord] = {}

    def add_subscriber(self, subscriber: SubscriberPreference) -> None:
        self.subscribers[subscriber.subscriber_id] = subscriber

    # Contests

    async def find_contest(self, provider, provider_contest_id):
        contest_id = self._contest_keys.get((Provider(provider), provider_contest_id))
        return self.contests.get(contest_id) if contest_id else None

    async def get_contest(self, contest_id):
        return self.contests.get(contest_id)

    async def insert_contest(self, contest: CanonicalContest, synced_at: datetime):
        if contest.key in self._contest_keys:
            raise DuplicateContestError(contest.provider.value, contest.provider_contest_id)
        persisted = PersistedContest.from_canonical(contest, synced_at)
        self.contests[persisted.id] = persisted
        self._contest_keys[contest.key] = persisted.id
        return persisted

    async def update_contest(self, contest_id, contest, synced_at):
        persisted = self.contests[contest_id]
        old_key = persisted.key
        persisted.apply(contest, synced_at)
        if persisted.key != old_key:
            self._contest_keys.pop(old_key, None)
            self._contest_keys[persisted.key] = contest_id
        return persisted

    async def list_contests(self):
        return sorted(self.contests.values(), key=lambda c: c.start_time)

    async def contests_starting_between(self, start, end):
        return [c for c in await self.list_contests() if start <= c.start_time <= end]

    async def mark_contest_notified(self, contest_id):
        if contest_id in self.contests:
            self.contests[contest_id].notified = True

    async def delete_finished_before(self, cutoff):
        doomed = [
            c for c in self.contests.values()
            if c.phase == ContestPhase.FINISHED and c.end_time < cutoff
        ]
        for contest in doomed:
            del self.contests[contest.id]
            self._contest_keys.pop(contest.key, None)
        return len(doomed)

    # Subscribers

    async def get_subscriber(self, subscriber_id):
        return self.subscribers.get(subscriber_id)

    async def list_subscribers(self, cadence: AlertCadence | None = None):
        return [s for s in self.subscribers.values() if cadence is None or s.cadence == cadence]

    # Notifications

    async def insert_notification(self, record):
        self.notifications[record.id] = record
        return record

    async def update_notification(self, record):
        self.notifications[record.id] = record
        return record

    async def get_notification(self, notification_id):
        return self.notifications.get(notification_id)

    async def has_sent_reminder(self, subscriber_id, contest_id, since):
        return any(
            r.subscriber_id == subscriber_id
            and r.contest_id == contest_id
            and r.kind == NotificationKind.CONTEST_REMINDER
            and r.status == NotificationStatus.SENT
            and r.created_at >= since
            for r in self.notifications.values()
        )

    async def list_notifications(self, subscriber_id=None):
        records = [
            r for r in self.notifications.values()
            if subscriber_id is None or r.subscriber_id == subscriber_id
        ]
        return sorted(records, key=lambda r: r.created_at, reverse=True)

    async def delete_notifications_before(self, cutoff, now):
        doomed = [
            r.id for r in self.notifications.values()
            if (r.created_at < cutoff and r.status != NotificationStatus.PENDING)
            or (r.expires_at is not None and r.expires_at < now)
        ]
        for notification_id in doomed:
            del self.notifications[notification_id]
        return len(doomed)
