"""
Shared data shapes.

Adapters emit ``CanonicalContest``; the store persists ``PersistedContest``
and ``NotificationRecord``; channels receive ``NotificationPayload`` and answer
with ``DeliveryResult``. ``SubscriberPreference`` is read-only input owned by
the account side of the product.
"""

from dataclasses import dataclass, field, fields
from datetime import datetime, timedelta, timezone
from enum import Enum
from uuid import uuid4

Scalar = str | int | float | bool


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Naive datetimes are taken to be UTC; aware ones are converted."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class Provider(str, Enum):
    CODEFORCES = "codeforces"
    LEETCODE = "leetcode"
    CODECHEF = "codechef"
    ATCODER = "atcoder"


class ContestPhase(str, Enum):
    BEFORE = "BEFORE"
    CODING = "CODING"
    PENDING_SYSTEM_TEST = "PENDING_SYSTEM_TEST"
    SYSTEM_TEST = "SYSTEM_TEST"
    FINISHED = "FINISHED"


ACTIVE_PHASES = frozenset({ContestPhase.BEFORE, ContestPhase.CODING})


class ContestType(str, Enum):
    # Codeforces
    CF = "CF"
    IOI = "IOI"
    ICPC = "ICPC"
    # LeetCode
    WEEKLY = "WEEKLY"
    BIWEEKLY = "BIWEEKLY"
    # CodeChef
    LONG = "LONG"
    COOK_OFF = "COOK_OFF"
    LUNCH_TIME = "LUNCH_TIME"
    STARTERS = "STARTERS"
    # AtCoder
    ABC = "ABC"
    ARC = "ARC"
    AGC = "AGC"
    AHC = "AHC"


class Difficulty(str, Enum):
    BEGINNER = "BEGINNER"
    EASY = "EASY"
    MEDIUM = "MEDIUM"
    HARD = "HARD"
    EXPERT = "EXPERT"


class AlertCadence(str, Enum):
    IMMEDIATE = "immediate"
    DAILY = "daily"
    WEEKLY = "weekly"


class Channel(str, Enum):
    EMAIL = "email"
    WHATSAPP = "whatsapp"
    PUSH = "push"


class NotificationKind(str, Enum):
    CONTEST_REMINDER = "CONTEST_REMINDER"
    CONTEST_STARTING = "CONTEST_STARTING"
    CONTEST_ENDING = "CONTEST_ENDING"
    DAILY_DIGEST = "DAILY_DIGEST"
    WEEKLY_DIGEST = "WEEKLY_DIGEST"
    SYSTEM_ALERT = "SYSTEM_ALERT"


class NotificationStatus(str, Enum):
    PENDING = "PENDING"
    SENT = "SENT"
    FAILED = "FAILED"
    RETRYING = "RETRYING"


def _scalar_metadata(raw: dict | None) -> dict[str, Scalar]:
    """Drop null values and stringify anything that is not a plain scalar."""
    cleaned: dict[str, Scalar] = {}
    for key, value in (raw or {}).items():
        if value is None:
            continue
        if isinstance(value, (str, int, float, bool)):
            cleaned[str(key)] = value
        else:
            cleaned[str(key)] = str(value)
    return cleaned


# --------------------------------------------------------------------------- #
# Contests
# --------------------------------------------------------------------------- #


@dataclass
class CanonicalContest:
    """A contest as reported by one provider, already normalized."""
    provider_contest_id: str
    name: str
    provider: Provider
    phase: ContestPhase
    contest_type: ContestType
    start_time: datetime
    end_time: datetime
    duration_minutes: int | None = None   # None -> derived from start/end
    website_url: str | None = None
    description: str | None = None
    difficulty: Difficulty | None = None
    participant_count: int = 0
    problem_count: int = 0
    country: str | None = None
    city: str | None = None
    metadata: dict[str, Scalar] = field(default_factory=dict)

    def __post_init__(self):
        self.start_time = as_utc(self.start_time)
        self.end_time = as_utc(self.end_time)
        if self.end_time <= self.start_time:
            raise ValueError(
                f"contest {self.provider.value}:{self.provider_contest_id} "
                f"ends at or before its start"
            )
        if self.duration_minutes is None:
            seconds = (self.end_time - self.start_time).total_seconds()
            self.duration_minutes = round(seconds / 60)
        self.metadata = _scalar_metadata(self.metadata)

    @property
    def key(self) -> tuple[Provider, str]:
        return (self.provider, self.provider_contest_id)

    @property
    def active(self) -> bool:
        return self.phase in ACTIVE_PHASES

    def is_upcoming(self, now: datetime) -> bool:
        return self.start_time > now

    def is_running(self, now: datetime) -> bool:
        return self.start_time <= now <= self.end_time

    def hours_until_start(self, now: datetime) -> float:
        return (self.start_time - now).total_seconds() / 3600


_CANONICAL_FIELDS = tuple(f.name for f in fields(CanonicalContest))


@dataclass
class PersistedContest(CanonicalContest):
    id: str = field(default_factory=lambda: uuid4().hex)
    created_at: datetime = field(default_factory=utcnow)
    last_synced_at: datetime | None = None
    notified: bool = False

    @classmethod
    def from_canonical(
        cls, contest: CanonicalContest, synced_at: datetime, contest_id: str | None = None
    ) -> "PersistedContest":
        values = {name: getattr(contest, name) for name in _CANONICAL_FIELDS}
        values["metadata"] = dict(contest.metadata)
        persisted = cls(**values, created_at=synced_at, last_synced_at=synced_at)
        if contest_id:
            persisted.id = contest_id
        return persisted

    def apply(self, contest: CanonicalContest, synced_at: datetime) -> None:
        """Overwrite the provider-owned fields in place, keeping identity."""
        for name in _CANONICAL_FIELDS:
            value = getattr(contest, name)
            setattr(self, name, dict(value) if name == "metadata" else value)
        self.last_synced_at = synced_at


# --------------------------------------------------------------------------- #
# Subscribers
# --------------------------------------------------------------------------- #


def _default_providers() -> list[Provider]:
    return [Provider.CODEFORCES, Provider.LEETCODE]


def _default_channels() -> dict[Channel, bool]:
    return {Channel.EMAIL: True, Channel.WHATSAPP: True, Channel.PUSH: False}


@dataclass
class SubscriberPreference:
    subscriber_id: str
    providers: list[Provider] = field(default_factory=_default_providers)
    lead_time_hours: int = 24
    cadence: AlertCadence = AlertCadence.IMMEDIATE
    channels: dict[Channel, bool] = field(default_factory=_default_channels)
    contacts: dict[Channel, str] = field(default_factory=dict)
    active: bool = True
    name: str | None = None

    def wants_channel(self, channel: Channel) -> bool:
        return bool(self.channels.get(channel)) and bool(self.contacts.get(channel))

    def contact_for(self, channel: Channel) -> str | None:
        return self.contacts.get(channel) or None


# --------------------------------------------------------------------------- #
# Notifications
# --------------------------------------------------------------------------- #


@dataclass
class DeliveryResult:
    """Outcome of one channel send. Channels return this instead of raising."""
    success: bool
    channel: Channel
    message_id: str | None = None
    error: str | None = None


@dataclass
class ChannelDelivery:
    channel: Channel
    status: NotificationStatus = NotificationStatus.PENDING
    sent_at: datetime | None = None
    failed_at: datetime | None = None
    error: str | None = None
    message_id: str | None = None
    retry_count: int = 0


@dataclass
class ContestSummary:
    contest_id: str
    name: str
    provider: Provider
    start_time: datetime
    hours_until_start: float
    website_url: str | None = None

    @classmethod
    def from_contest(cls, contest: PersistedContest, now: datetime) -> "ContestSummary":
        return cls(
            contest_id=contest.id,
            name=contest.name,
            provider=contest.provider,
            start_time=contest.start_time,
            hours_until_start=round(contest.hours_until_start(now), 1),
            website_url=contest.website_url,
        )

    @classmethod
    def from_dict(cls, data: dict) -> "ContestSummary":
        return cls(
            contest_id=data["contest_id"],
            name=data["name"],
            provider=Provider(data["provider"]),
            start_time=datetime.fromisoformat(data["start_time"]),
            hours_until_start=data["hours_until_start"],
            website_url=data.get("website_url"),
        )

    def to_dict(self) -> dict:
        return {
            "contest_id": self.contest_id,
            "name": self.name,
            "provider": self.provider.value,
            "start_time": self.start_time.isoformat(),
            "hours_until_start": self.hours_until_start,
            "website_url": self.website_url,
        }


@dataclass
class NotificationPayload:
    kind: NotificationKind
    title: str
    message: str
    subscriber_id: str
    contest_id: str | None = None
    contests: list[ContestSummary] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {"contests": [c.to_dict() for c in self.contests]}


NOTIFICATION_TTL = timedelta(days=90)
DEFAULT_MAX_RETRIES = 3


@dataclass
class NotificationRecord:
    subscriber_id: str
    kind: NotificationKind
    title: str
    message: str
    contest_id: str | None = None
    id: str = field(default_factory=lambda: uuid4().hex)
    payload: dict = field(default_factory=dict)
    channels: list[Channel] = field(default_factory=list)
    deliveries: list[ChannelDelivery] = field(default_factory=list)
    status: NotificationStatus = NotificationStatus.PENDING
    created_at: datetime = field(default_factory=utcnow)
    sent_at: datetime | None = None
    failed_at: datetime | None = None
    retry_count: int = 0
    max_retries: int = DEFAULT_MAX_RETRIES
    last_retry_at: datetime | None = None
    error_history: list[dict] = field(default_factory=list)
    is_read: bool = False
    read_at: datetime | None = None
    expires_at: datetime | None = None

    def __post_init__(self):
        if self.expires_at is None:
            self.expires_at = self.created_at + NOTIFICATION_TTL

    def derive_status(self) -> NotificationStatus:
        statuses = [d.status for d in self.deliveries]
        if NotificationStatus.SENT in statuses:
            return NotificationStatus.SENT
        if NotificationStatus.FAILED in statuses:
            return NotificationStatus.FAILED
        return NotificationStatus.PENDING

    @property
    def can_retry(self) -> bool:
        return self.retry_count < self.max_retries and self.status in (
            NotificationStatus.FAILED,
            NotificationStatus.RETRYING,
        )

    def record_results(self, results: list[DeliveryResult], now: datetime) -> None:
        """Fold channel outcomes into the per-channel deliveries and overall status."""
        self.deliveries = []
        for result in results:
            delivery = ChannelDelivery(channel=result.channel, retry_count=self.retry_count)
            if result.success:
                delivery.status = NotificationStatus.SENT
                delivery.sent_at = now
                delivery.message_id = result.message_id
            else:
                delivery.status = NotificationStatus.FAILED
                delivery.failed_at = now
                delivery.error = result.error
                self.error_history.append(
                    {
                        "timestamp": now.isoformat(),
                        "channel": result.channel.value,
                        "error": result.error or "unknown error",
                        "retry_count": self.retry_count,
                    }
                )
            self.deliveries.append(delivery)

        self.status = self.derive_status()
        if self.status == NotificationStatus.SENT:
            self.sent_at = now
        elif self.status == NotificationStatus.FAILED:
            self.failed_at = now
