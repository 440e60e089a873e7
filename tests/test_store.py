"""
Store tests: in-memory uniqueness rules, Supabase row mapping, and the
factory's fallback when no credentials are configured.
"""

from datetime import timedelta
from unittest.mock import MagicMock

import pytest

from contest_scout.models import (
    AlertCadence,
    Channel,
    DeliveryResult,
    NotificationKind,
    NotificationRecord,
    NotificationStatus,
    PersistedContest,
    Provider,
)


@pytest.mark.asyncio
async def test_memory_store_rejects_duplicate_key(now, make_contest):
    from contest_scout.errors import DuplicateContestError
    from contest_scout.store.memory import InMemoryStore

    store = InMemoryStore()
    await store.insert_contest(make_contest("1"), now)

    with pytest.raises(DuplicateContestError):
        await store.insert_contest(make_contest("1"), now)


@pytest.mark.asyncio
async def test_memory_store_window_query(now, make_contest):
    from contest_scout.store.memory import InMemoryStore

    store = InMemoryStore()
    for cid, hours in (("a", 1), ("b", 30), ("c", -2)):
        await store.insert_contest(make_contest(cid, starts_in_hours=hours), now)

    found = await store.contests_starting_between(now, now + timedelta(hours=24))

    assert [c.provider_contest_id for c in found] == ["a"]


def test_get_store_falls_back_to_memory():
    from contest_scout.config import Settings
    from contest_scout.store.factory import get_store
    from contest_scout.store.memory import InMemoryStore

    assert isinstance(get_store(Settings(supabase_url="", supabase_key="")), InMemoryStore)


def test_contest_row_round_trip_keeps_enums(now, make_contest):
    from contest_scout.models import Difficulty
    from contest_scout.store.supabase_store import contest_from_row, contest_to_row

    persisted = PersistedContest.from_canonical(
        make_contest("9", difficulty=Difficulty.HARD, metadata={"frozen": False}), now
    )
    row = contest_to_row(persisted)

    assert row["provider"] == "codeforces"
    assert row["phase"] == "BEFORE"
    assert row["difficulty"] == "HARD"
    assert row["start_time"] == persisted.start_time.isoformat()

    restored = contest_from_row(row)
    assert restored.id == persisted.id
    assert restored.start_time == persisted.start_time
    assert restored.difficulty == Difficulty.HARD
    assert restored.metadata == {"frozen": False}


def test_subscriber_row_mapping():
    from contest_scout.store.supabase_store import subscriber_from_row

    subscriber = subscriber_from_row(
        {
            "id": "u1",
            "name": "Ada",
            "providers": ["codeforces", "atcoder"],
            "lead_time_hours": 6,
            "cadence": "weekly",
            "channels": {"email": True, "whatsapp": False, "push": True},
            "email": "ada@example.com",
            "phone_number": None,
            "device_token": "tok",
            "active": True,
        }
    )

    assert subscriber.providers == [Provider.CODEFORCES, Provider.ATCODER]
    assert subscriber.cadence == AlertCadence.WEEKLY
    assert subscriber.contacts == {Channel.EMAIL: "ada@example.com", Channel.PUSH: "tok"}
    assert subscriber.wants_channel(Channel.PUSH) is True
    assert subscriber.wants_channel(Channel.WHATSAPP) is False


def test_notification_row_mapping(now):
    from contest_scout.store.supabase_store import notification_from_row, notification_to_row

    record = NotificationRecord(
        subscriber_id="u1",
        contest_id="c1",
        kind=NotificationKind.CONTEST_REMINDER,
        title="t",
        message="m",
        channels=[Channel.EMAIL],
        created_at=now,
    )
    record.record_results([DeliveryResult(success=True, channel=Channel.EMAIL, message_id="e1")], now)

    restored = notification_from_row(notification_to_row(record))

    assert restored.status == NotificationStatus.SENT
    assert restored.deliveries[0].message_id == "e1"
    assert restored.expires_at == now + timedelta(days=90)


@pytest.mark.asyncio
async def test_supabase_find_contest_queries_by_key(now, make_contest):
    from contest_scout.store.supabase_store import SupabaseStore, contest_to_row

    row = contest_to_row(PersistedContest.from_canonical(make_contest("5"), now))
    client = MagicMock()
    query = client.table.return_value.select.return_value
    query.eq.return_value = query
    query.limit.return_value = query
    query.execute.return_value = MagicMock(data=[row])

    found = await SupabaseStore(client).find_contest(Provider.CODEFORCES, "5")

    client.table.assert_called_with("contests")
    query.eq.assert_any_call("provider", "codeforces")
    query.eq.assert_any_call("provider_contest_id", "5")
    assert found.provider_contest_id == "5"


@pytest.mark.asyncio
async def test_supabase_unique_violation_maps_to_duplicate(now, make_contest):
    from postgrest.exceptions import APIError

    from contest_scout.errors import DuplicateContestError
    from contest_scout.store.supabase_store import SupabaseStore

    client = MagicMock()
    client.table.return_value.insert.return_value.execute.side_effect = APIError(
        {"message": "duplicate key value", "code": "23505", "hint": None, "details": None}
    )

    with pytest.raises(DuplicateContestError):
        await SupabaseStore(client).insert_contest(make_contest("5"), now)
