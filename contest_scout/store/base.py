from abc import ABC, abstractmethod
from datetime import datetime

from contest_scout.models import (
    AlertCadence,
    CanonicalContest,
    NotificationRecord,
    PersistedContest,
    Provider,
    SubscriberPreference,
)


class Store(ABC):
    """
    Persistence contract shared by the sync engine and the notification side.

    Contests are unique on (provider, provider_contest_id); ``insert_contest``
    raises DuplicateContestError when the pair already exists.
    """

    # Contests

    @abstractmethod
    async def find_contest(
        self, provider: Provider, provider_contest_id: str
    ) -> PersistedContest | None: ...

    @abstractmethod
    async def get_contest(self, contest_id: str) -> PersistedContest | None: ...

    @abstractmethod
    async def insert_contest(
        self, contest: CanonicalContest, synced_at: datetime
    ) -> PersistedContest: ...

    @abstractmethod
    async def update_contest(
        self, contest_id: str, contest: CanonicalContest, synced_at: datetime
    ) -> PersistedContest: ...

    @abstractmethod
    async def list_contests(self) -> list[PersistedContest]: ...

    @abstractmethod
    async def contests_starting_between(
        self, start: datetime, end: datetime
    ) -> list[PersistedContest]:
        """Contests whose start time falls in [start, end], ordered by start time."""

    @abstractmethod
    async def mark_contest_notified(self, contest_id: str) -> None: ...

    @abstractmethod
    async def delete_finished_before(self, cutoff: datetime) -> int:
        """Delete FINISHED contests that ended before ``cutoff``. Returns the count."""

    # Subscribers

    @abstractmethod
    async def get_subscriber(self, subscriber_id: str) -> SubscriberPreference | None: ...

    @abstractmethod
    async def list_subscribers(
        self, cadence: AlertCadence | None = None
    ) -> list[SubscriberPreference]: ...

    # Notifications

    @abstractmethod
    async def insert_notification(self, record: NotificationRecord) -> NotificationRecord: ...

    @abstractmethod
    async def update_notification(self, record: NotificationRecord) -> NotificationRecord: ...

    @abstractmethod
    async def get_notification(self, notification_id: str) -> NotificationRecord | None: ...

    @abstractmethod
    async def has_sent_reminder(
        self, subscriber_id: str, contest_id: str, since: datetime
    ) -> bool: ...

    @abstractmethod
    async def list_notifications(
        self, subscriber_id: str | None = None
    ) -> list[NotificationRecord]: ...

    @abstractmethod
    async def delete_notifications_before(self, cutoff: datetime, now: datetime) -> int:
        """Delete non-PENDING records created before ``cutoff`` plus anything expired."""
