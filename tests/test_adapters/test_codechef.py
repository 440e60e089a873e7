import json
from datetime import datetime, timezone
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

FIXTURE = json.loads(
    (Path(__file__).parent.parent / "fixtures" / "codechef_contests.json").read_text()
)


def _mock_response(data, status_code: int = 200):
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = data
    return response


def _mock_client(mock_client_class, response):
    mock_client = AsyncMock()
    mock_client.__aenter__ = AsyncMock(return_value=mock_client)
    mock_client.__aexit__ = AsyncMock(return_value=False)
    mock_client.get = AsyncMock(return_value=response)
    mock_client_class.return_value = mock_client
    return mock_client


def _make_adapter(now, past_limit: int | None = None):
    from contest_scout.adapters.codechef import CodeChefAdapter

    adapter = CodeChefAdapter(clock=lambda: now)
    if past_limit is not None:
        adapter.past_limit = past_limit
    return adapter


async def _fetch(adapter, payload=FIXTURE):
    with patch("httpx.AsyncClient") as mock_client_class:
        _mock_client(mock_client_class, _mock_response(payload))
        return await adapter.fetch_all()


@pytest.mark.asyncio
async def test_flattens_all_buckets(now):
    contests = await _fetch(_make_adapter(now))

    assert [c.provider_contest_id for c in contests] == [
        "LONG0124", "START120", "COOK160", "LTIME120", "START110", "DEC23",
    ]


@pytest.mark.asyncio
async def test_past_contests_are_limited(now):
    contests = await _fetch(_make_adapter(now, past_limit=1))

    codes = [c.provider_contest_id for c in contests]
    assert "LTIME120" in codes
    assert "START110" not in codes
    assert "DEC23" not in codes


@pytest.mark.asyncio
async def test_phase_type_and_difficulty(now):
    from contest_scout.models import ContestPhase, ContestType, Difficulty

    contests = {c.provider_contest_id: c for c in await _fetch(_make_adapter(now))}

    assert contests["LONG0124"].phase == ContestPhase.CODING
    assert contests["LONG0124"].contest_type == ContestType.LONG
    assert contests["LONG0124"].difficulty == Difficulty.HARD

    assert contests["START120"].phase == ContestPhase.BEFORE
    assert contests["START120"].contest_type == ContestType.STARTERS
    assert contests["START120"].difficulty == Difficulty.BEGINNER

    assert contests["COOK160"].contest_type == ContestType.COOK_OFF
    assert contests["COOK160"].difficulty == Difficulty.MEDIUM

    assert contests["LTIME120"].phase == ContestPhase.FINISHED
    assert contests["LTIME120"].contest_type == ContestType.LUNCH_TIME
    assert contests["LTIME120"].difficulty == Difficulty.MEDIUM

    assert contests["DEC23"].contest_type == ContestType.LONG


@pytest.mark.asyncio
async def test_times_are_converted_to_utc(now):
    contests = {c.provider_contest_id: c for c in await _fetch(_make_adapter(now))}
    starters = contests["START120"]

    assert starters.start_time == datetime(2030, 1, 3, 14, 30, tzinfo=timezone.utc)
    assert starters.duration_minutes == 120
    assert starters.website_url == "https://www.codechef.com/START120"
    assert starters.metadata == {
        "contest_code": "START120",
        "contest_type": "rated",
        "distinct_users": 0,
    }


@pytest.mark.asyncio
async def test_participant_count_from_distinct_users(now):
    contests = {c.provider_contest_id: c for c in await _fetch(_make_adapter(now))}

    assert contests["START110"].participant_count == 20115


@pytest.mark.asyncio
async def test_non_success_status_returns_empty(now):
    contests = await _fetch(_make_adapter(now), {"status": "error", "message": "maintenance"})
    assert contests == []


@pytest.mark.asyncio
async def test_bucket_that_is_not_a_list_returns_empty(now):
    payload = {**FIXTURE, "past_contests": {"x": 1}}
    assert await _fetch(_make_adapter(now), payload) == []


def test_contest_type_rules():
    from contest_scout.adapters.codechef import contest_type_for
    from contest_scout.models import ContestType

    assert contest_type_for("Starters 99", "START99") == ContestType.STARTERS
    assert contest_type_for("Lunch Time Special", "XYZ") == ContestType.LUNCH_TIME
    assert contest_type_for("Monthly Cook Off", "ABC") == ContestType.COOK_OFF
    assert contest_type_for("Some Cup", "COOKCUP") == ContestType.COOK_OFF
    assert contest_type_for("Practice Cup", "PRAC") == ContestType.LONG
