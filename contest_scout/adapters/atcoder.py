from datetime import timedelta

from contest_scout.adapters.base import ProviderAdapter, epoch_to_datetime, phase_from_clock
from contest_scout.adapters.http import RetryingFetcher
from contest_scout.config import settings
from contest_scout.models import (
    CanonicalContest,
    ContestType,
    Difficulty,
    Provider,
    utcnow,
)

_CONTEST_URL = "https://atcoder.jp/contests/{id}"

# Checked in order against the upper-cased title.
_TYPE_MARKERS = (
    (("ABC", "BEGINNER"), ContestType.ABC),
    (("ARC", "REGULAR"), ContestType.ARC),
    (("AGC", "GRAND"), ContestType.AGC),
    (("AHC", "HEURISTIC"), ContestType.AHC),
)

_DIFFICULTY = {
    ContestType.ABC: Difficulty.BEGINNER,
    ContestType.ARC: Difficulty.MEDIUM,
    ContestType.AGC: Difficulty.EXPERT,
    ContestType.AHC: Difficulty.HARD,
}


def _is_epoch(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def contest_type_for(title: str) -> ContestType:
    upper = title.upper()
    for markers, contest_type in _TYPE_MARKERS:
        if any(marker in upper for marker in markers):
            return contest_type
    return ContestType.ABC


class AtCoderAdapter(ProviderAdapter):
    """AtCoder contests via the kenkoooo community mirror (AtCoder has no public API)."""

    provider = Provider.ATCODER

    def __init__(self, fetcher: RetryingFetcher | None = None, clock=utcnow):
        super().__init__(
            fetcher
            or RetryingFetcher(self.provider.value, timeout=settings.atcoder_timeout_seconds),
            clock,
        )
        self.url = f"{settings.atcoder_api_url.rstrip('/')}/contests.json"
        self.recent_days = settings.atcoder_recent_days

    async def _fetch_raw(self) -> list[dict] | None:
        data = await self.fetcher.get_json(self.url)
        if not isinstance(data, list):
            return None

        cutoff = (self.clock() - timedelta(days=self.recent_days)).timestamp()
        return [
            item
            for item in data
            if isinstance(item, dict)
            and _is_epoch(item.get("start_epoch_second"))
            and item["start_epoch_second"] >= cutoff
        ]

    def normalize(self, raw: dict) -> CanonicalContest:
        duration_seconds = int(raw["duration_second"])
        start = epoch_to_datetime(raw["start_epoch_second"])
        end = start + timedelta(seconds=duration_seconds)
        contest_type = contest_type_for(raw["title"])

        return CanonicalContest(
            provider_contest_id=raw["id"],
            name=raw["title"],
            provider=self.provider,
            phase=phase_from_clock(start, end, self.clock()),
            contest_type=contest_type,
            start_time=start,
            end_time=end,
            duration_minutes=duration_seconds // 60,
            website_url=_CONTEST_URL.format(id=raw["id"]),
            difficulty=_DIFFICULTY[contest_type],
            metadata={
                "rate_change": raw.get("rate_change"),
                "contest_id": raw["id"],
            },
        )

    async def health_check(self) -> bool:
        return await self._probe(
            self.fetcher.get_json(self.url),
            check=lambda data: isinstance(data, list),
        )
