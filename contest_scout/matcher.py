"""Who should hear about which contest. Pure selection; no I/O beyond the store read."""

from datetime import datetime, timedelta

from contest_scout.models import (
    AlertCadence,
    ContestPhase,
    PersistedContest,
    SubscriberPreference,
)
from contest_scout.store.base import Store


def is_eligible_for_reminder(
    subscriber: SubscriberPreference, contest: PersistedContest, now: datetime
) -> bool:
    if not subscriber.active or subscriber.cadence != AlertCadence.IMMEDIATE:
        return False
    if contest.provider not in subscriber.providers:
        return False
    hours = contest.hours_until_start(now)
    return 0 < hours <= subscriber.lead_time_hours


def contests_for_digest(
    subscriber: SubscriberPreference,
    contests: list[PersistedContest],
    horizon_hours: int,
    now: datetime,
) -> list[PersistedContest]:
    horizon = now + timedelta(hours=horizon_hours)
    picked = [
        c
        for c in contests
        if c.provider in subscriber.providers
        and c.phase == ContestPhase.BEFORE
        and now < c.start_time <= horizon
        and c.hours_until_start(now) <= subscriber.lead_time_hours
    ]
    return sorted(picked, key=lambda c: c.start_time)


class NotificationMatcher:
    def __init__(self, store: Store):
        self.store = store

    async def eligible_subscribers(
        self, contest: PersistedContest, now: datetime
    ) -> list[SubscriberPreference]:
        subscribers = await self.store.list_subscribers(AlertCadence.IMMEDIATE)
        return [s for s in subscribers if is_eligible_for_reminder(s, contest, now)]

    async def digest_subscribers(self, cadence: AlertCadence) -> list[SubscriberPreference]:
        if cadence == AlertCadence.IMMEDIATE:
            raise ValueError("immediate subscribers do not receive digests")
        return [s for s in await self.store.list_subscribers(cadence) if s.active]
