"""
Shared fixtures.

Supabase is always absent in tests (empty env vars), so services run on the
in-memory store. APP_ENV is forced to "test" before any contest_scout module
reads settings, which keeps the FastAPI lifespan from starting the scheduler.
"""

import os

os.environ["APP_ENV"] = "test"
os.environ["SUPABASE_URL"] = ""
os.environ["SUPABASE_KEY"] = ""

from datetime import datetime, timedelta, timezone  # noqa: E402

import pytest  # noqa: E402

NOW = datetime(2029, 12, 31, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def make_contest():
    from contest_scout.models import CanonicalContest, ContestPhase, ContestType, Provider

    def _make(
        provider_contest_id: str = "1900",
        provider: Provider = Provider.CODEFORCES,
        name: str = "Codeforces Round 912",
        starts_in_hours: float = 5,
        duration_minutes: int = 120,
        phase: ContestPhase = ContestPhase.BEFORE,
        contest_type: ContestType = ContestType.CF,
        **extra,
    ) -> CanonicalContest:
        start = NOW + timedelta(hours=starts_in_hours)
        return CanonicalContest(
            provider_contest_id=provider_contest_id,
            name=name,
            provider=provider,
            phase=phase,
            contest_type=contest_type,
            start_time=start,
            end_time=start + timedelta(minutes=duration_minutes),
            website_url=f"https://example.com/{provider_contest_id}",
            **extra,
        )

    return _make


@pytest.fixture
def make_subscriber():
    from contest_scout.models import AlertCadence, Channel, Provider, SubscriberPreference

    def _make(
        subscriber_id: str = "user-1",
        providers: list | None = None,
        lead_time_hours: int = 24,
        cadence: AlertCadence = AlertCadence.IMMEDIATE,
        channels: dict | None = None,
        contacts: dict | None = None,
        active: bool = True,
    ) -> SubscriberPreference:
        return SubscriberPreference(
            subscriber_id=subscriber_id,
            providers=providers if providers is not None else [Provider.CODEFORCES],
            lead_time_hours=lead_time_hours,
            cadence=cadence,
            channels=channels
            if channels is not None
            else {Channel.EMAIL: True, Channel.WHATSAPP: True, Channel.PUSH: False},
            contacts=contacts
            if contacts is not None
            else {Channel.EMAIL: f"{subscriber_id}@example.com", Channel.WHATSAPP: "+15550001111"},
            active=active,
        )

    return _make


class FakeChannel:
    """Channel double that records sends and returns a fixed outcome."""

    def __init__(self, channel, succeed: bool = True, enabled: bool = True, raises: Exception | None = None):
        self.channel = channel
        self.succeed = succeed
        self.enabled = enabled
        self.raises = raises
        self.sent: list[tuple[str, object]] = []

    def is_enabled(self) -> bool:
        return self.enabled

    async def send(self, destination, payload):
        from contest_scout.models import DeliveryResult

        self.sent.append((destination, payload))
        if self.raises is not None:
            raise self.raises
        if self.succeed:
            return DeliveryResult(success=True, channel=self.channel, message_id=f"msg-{len(self.sent)}")
        return DeliveryResult(success=False, channel=self.channel, error="provider rejected")

    async def health_check(self) -> bool:
        return self.enabled


@pytest.fixture
def fake_channel():
    return FakeChannel
