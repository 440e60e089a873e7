"""
Supabase-backed store.

Schema (create once):

    CREATE TABLE contests (
      id TEXT PRIMARY KEY,
      provider TEXT NOT NULL,
      provider_contest_id TEXT NOT NULL,
      name TEXT NOT NULL,
      phase TEXT NOT NULL,
      contest_type TEXT NOT NULL,
      start_time TIMESTAMPTZ NOT NULL,
      end_time TIMESTAMPTZ NOT NULL,
      duration_minutes INTEGER NOT NULL,
      website_url TEXT,
      description TEXT,
      difficulty TEXT,
      participant_count INTEGER DEFAULT 0,
      problem_count INTEGER DEFAULT 0,
      country TEXT,
      city TEXT,
      metadata JSONB DEFAULT '{}',
      notified BOOLEAN DEFAULT false,
      last_synced_at TIMESTAMPTZ,
      created_at TIMESTAMPTZ DEFAULT now(),
      UNIQUE(provider, provider_contest_id)
    );

    CREATE TABLE subscribers (
      id TEXT PRIMARY KEY,
      name TEXT,
      providers TEXT[] DEFAULT '{codeforces,leetcode}',
      lead_time_hours INTEGER DEFAULT 24,
      cadence TEXT DEFAULT 'immediate',
      channels JSONB DEFAULT '{"email": true, "whatsapp": true, "push": false}',
      email TEXT,
      phone_number TEXT,
      device_token TEXT,
      active BOOLEAN DEFAULT true
    );

    CREATE TABLE notifications (
      id TEXT PRIMARY KEY,
      subscriber_id TEXT NOT NULL,
      contest_id TEXT,
      kind TEXT NOT NULL,
      title TEXT NOT NULL,
      message TEXT NOT NULL,
      payload JSONB DEFAULT '{}',
      channels TEXT[] DEFAULT '{}',
      deliveries JSONB DEFAULT '[]',
      status TEXT NOT NULL,
      created_at TIMESTAMPTZ DEFAULT now(),
      sent_at TIMESTAMPTZ,
      failed_at TIMESTAMPTZ,
      retry_count INTEGER DEFAULT 0,
      max_retries INTEGER DEFAULT 3,
      last_retry_at TIMESTAMPTZ,
      error_history JSONB DEFAULT '[]',
      is_read BOOLEAN DEFAULT false,
      read_at TIMESTAMPTZ,
      expires_at TIMESTAMPTZ
    );
    CREATE INDEX ON notifications (subscriber_id, contest_id, status, created_at);
"""

from datetime import datetime

from postgrest.exceptions import APIError

from contest_scout.errors import DuplicateContestError
from contest_scout.models import (
    AlertCadence,
    CanonicalContest,
    Channel,
    ChannelDelivery,
    ContestPhase,
    ContestType,
    Difficulty,
    NotificationKind,
    NotificationRecord,
    NotificationStatus,
    PersistedContest,
    Provider,
    SubscriberPreference,
)
from contest_scout.store.base import Store
from contest_scout.utils.logging import get_logger

logger = get_logger(__name__)

_UNIQUE_VIOLATION = "23505"

_CONTACT_COLUMNS = {
    Channel.EMAIL: "email",
    Channel.WHATSAPP: "phone_number",
    Channel.PUSH: "device_token",
}


def _ts(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _parse_ts(value: str | None) -> datetime | None:
    if not value:
        return None
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def contest_to_row(contest: PersistedContest) -> dict:
    return {
        "id": contest.id,
        "provider": contest.provider.value,
        "provider_contest_id": contest.provider_contest_id,
        "name": contest.name,
        "phase": contest.phase.value,
        "contest_type": contest.contest_type.value,
        "start_time": _ts(contest.start_time),
        "end_time": _ts(contest.end_time),
        "duration_minutes": contest.duration_minutes,
        "website_url": contest.website_url,
        "description": contest.description,
        "difficulty": contest.difficulty.value if contest.difficulty else None,
        "participant_count": contest.participant_count,
        "problem_count": contest.problem_count,
        "country": contest.country,
        "city": contest.city,
        "metadata": contest.metadata,
        "notified": contest.notified,
        "last_synced_at": _ts(contest.last_synced_at),
        "created_at": _ts(contest.created_at),
    }


def contest_from_row(row: dict) -> PersistedContest:
    return PersistedContest(
        id=row["id"],
        provider_contest_id=row["provider_contest_id"],
        name=row["name"],
        provider=Provider(row["provider"]),
        phase=ContestPhase(row["phase"]),
        contest_type=ContestType(row["contest_type"]),
        start_time=_parse_ts(row["start_time"]),
        end_time=_parse_ts(row["end_time"]),
        duration_minutes=row.get("duration_minutes"),
        website_url=row.get("website_url"),
        description=row.get("description"),
        difficulty=Difficulty(row["difficulty"]) if row.get("difficulty") else None,
        participant_count=row.get("participant_count") or 0,
        problem_count=row.get("problem_count") or 0,
        country=row.get("country"),
        city=row.get("city"),
        metadata=row.get("metadata") or {},
        notified=bool(row.get("notified")),
        last_synced_at=_parse_ts(row.get("last_synced_at")),
        created_at=_parse_ts(row.get("created_at")),
    )


def subscriber_from_row(row: dict) -> SubscriberPreference:
    channels = row.get("channels") or {}
    return SubscriberPreference(
        subscriber_id=row["id"],
        name=row.get("name"),
        providers=[Provider(p) for p in row.get("providers") or []],
        lead_time_hours=row.get("lead_time_hours") or 24,
        cadence=AlertCadence(row.get("cadence") or AlertCadence.IMMEDIATE.value),
        channels={Channel(k): bool(v) for k, v in channels.items()},
        contacts={
            channel: row[column]
            for channel, column in _CONTACT_COLUMNS.items()
            if row.get(column)
        },
        active=row.get("active", True),
    )


def notification_to_row(record: NotificationRecord) -> dict:
    return {
        "id": record.id,
        "subscriber_id": record.subscriber_id,
        "contest_id": record.contest_id,
        "kind": record.kind.value,
        "title": record.title,
        "message": record.message,
        "payload": record.payload,
        "channels": [c.value for c in record.channels],
        "deliveries": [
            {
                "channel": d.channel.value,
                "status": d.status.value,
                "sent_at": _ts(d.sent_at),
                "failed_at": _ts(d.failed_at),
                "error": d.error,
                "message_id": d.message_id,
                "retry_count": d.retry_count,
            }
            for d in record.deliveries
        ],
        "status": record.status.value,
        "created_at": _ts(record.created_at),
        "sent_at": _ts(record.sent_at),
        "failed_at": _ts(record.failed_at),
        "retry_count": record.retry_count,
        "max_retries": record.max_retries,
        "last_retry_at": _ts(record.last_retry_at),
        "error_history": record.error_history,
        "is_read": record.is_read,
        "read_at": _ts(record.read_at),
        "expires_at": _ts(record.expires_at),
    }


def notification_from_row(row: dict) -> NotificationRecord:
    return NotificationRecord(
        id=row["id"],
        subscriber_id=row["subscriber_id"],
        contest_id=row.get("contest_id"),
        kind=NotificationKind(row["kind"]),
        title=row["title"],
        message=row["message"],
        payload=row.get("payload") or {},
        channels=[Channel(c) for c in row.get("channels") or []],
        deliveries=[
            ChannelDelivery(
                channel=Channel(d["channel"]),
                status=NotificationStatus(d["status"]),
                sent_at=_parse_ts(d.get("sent_at")),
                failed_at=_parse_ts(d.get("failed_at")),
                error=d.get("error"),
                message_id=d.get("message_id"),
                retry_count=d.get("retry_count", 0),
            )
            for d in row.get("deliveries") or []
        ],
        status=NotificationStatus(row["status"]),
        created_at=_parse_ts(row["created_at"]),
        sent_at=_parse_ts(row.get("sent_at")),
        failed_at=_parse_ts(row.get("failed_at")),
        retry_count=row.get("retry_count") or 0,
        max_retries=row.get("max_retries") or 3,
        last_retry_at=_parse_ts(row.get("last_retry_at")),
        error_history=row.get("error_history") or [],
        is_read=bool(row.get("is_read")),
        read_at=_parse_ts(row.get("read_at")),
        expires_at=_parse_ts(row.get("expires_at")),
    )


class SupabaseStore(Store):
    """Store over the Supabase REST client. Queries run on the shared sync client."""

    def __init__(self, client):
        self.client = client

    # Contests

    async def find_contest(self, provider, provider_contest_id):
        result = (
            self.client.table("contests")
            .select("*")
            .eq("provider", Provider(provider).value)
            .eq("provider_contest_id", provider_contest_id)
            .limit(1)
            .execute()
        )
        return contest_from_row(result.data[0]) if result.data else None

    async def get_contest(self, contest_id):
        result = self.client.table("contests").select("*").eq("id", contest_id).limit(1).execute()
        return contest_from_row(result.data[0]) if result.data else None

    async def insert_contest(self, contest: CanonicalContest, synced_at: datetime):
        persisted = PersistedContest.from_canonical(contest, synced_at)
        try:
            self.client.table("contests").insert(contest_to_row(persisted)).execute()
        except APIError as exc:
            if exc.code == _UNIQUE_VIOLATION:
                raise DuplicateContestError(
                    contest.provider.value, contest.provider_contest_id
                ) from exc
            raise
        return persisted

    async def update_contest(self, contest_id, contest, synced_at):
        existing = await self.get_contest(contest_id)
        if existing is None:
            raise KeyError(contest_id)
        existing.apply(contest, synced_at)
        row = contest_to_row(existing)
        del row["id"], row["created_at"], row["notified"]
        self.client.table("contests").update(row).eq("id", contest_id).execute()
        return existing

    async def list_contests(self):
        result = self.client.table("contests").select("*").order("start_time").execute()
        return [contest_from_row(row) for row in result.data]

    async def contests_starting_between(self, start, end):
        result = (
            self.client.table("contests")
            .select("*")
            .gte("start_time", _ts(start))
            .lte("start_time", _ts(end))
            .order("start_time")
            .execute()
        )
        return [contest_from_row(row) for row in result.data]

    async def mark_contest_notified(self, contest_id):
        self.client.table("contests").update({"notified": True}).eq("id", contest_id).execute()

    async def delete_finished_before(self, cutoff):
        result = (
            self.client.table("contests")
            .delete()
            .eq("phase", ContestPhase.FINISHED.value)
            .lt("end_time", _ts(cutoff))
            .execute()
        )
        return len(result.data or [])

    # Subscribers

    async def get_subscriber(self, subscriber_id):
        result = (
            self.client.table("subscribers").select("*").eq("id", subscriber_id).limit(1).execute()
        )
        return subscriber_from_row(result.data[0]) if result.data else None

    async def list_subscribers(self, cadence=None):
        query = self.client.table("subscribers").select("*")
        if cadence is not None:
            query = query.eq("cadence", AlertCadence(cadence).value)
        return [subscriber_from_row(row) for row in query.execute().data]

    # Notifications

    async def insert_notification(self, record):
        self.client.table("notifications").insert(notification_to_row(record)).execute()
        return record

    async def update_notification(self, record):
        row = notification_to_row(record)
        del row["id"]
        self.client.table("notifications").update(row).eq("id", record.id).execute()
        return record

    async def get_notification(self, notification_id):
        result = (
            self.client.table("notifications")
            .select("*")
            .eq("id", notification_id)
            .limit(1)
            .execute()
        )
        return notification_from_row(result.data[0]) if result.data else None

    async def has_sent_reminder(self, subscriber_id, contest_id, since):
        result = (
            self.client.table("notifications")
            .select("id")
            .eq("subscriber_id", subscriber_id)
            .eq("contest_id", contest_id)
            .eq("kind", NotificationKind.CONTEST_REMINDER.value)
            .eq("status", NotificationStatus.SENT.value)
            .gte("created_at", _ts(since))
            .limit(1)
            .execute()
        )
        return bool(result.data)

    async def list_notifications(self, subscriber_id=None):
        query = self.client.table("notifications").select("*")
        if subscriber_id is not None:
            query = query.eq("subscriber_id", subscriber_id)
        result = query.order("created_at", desc=True).execute()
        return [notification_from_row(row) for row in result.data]

    async def delete_notifications_before(self, cutoff, now):
        aged = (
            self.client.table("notifications")
            .delete()
            .lt("created_at", _ts(cutoff))
            .neq("status", NotificationStatus.PENDING.value)
            .execute()
        )
        expired = self.client.table("notifications").delete().lt("expires_at", _ts(now)).execute()
        deleted = len(aged.data or []) + len(expired.data or [])
        logger.info("supabase_notifications_deleted", count=deleted)
        return deleted
