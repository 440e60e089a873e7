from datetime import datetime

from contest_scout.adapters.base import ProviderAdapter
from contest_scout.adapters.http import RetryingFetcher
from contest_scout.config import settings
from contest_scout.models import (
    CanonicalContest,
    ContestPhase,
    ContestType,
    Difficulty,
    Provider,
    as_utc,
    utcnow,
)

_CONTEST_URL = "https://www.codechef.com/{code}"

_BUCKETS = (
    ("present_contests", "present"),
    ("future_contests", "future"),
    ("past_contests", "past"),
)

_DIFFICULTY = {
    ContestType.STARTERS: Difficulty.BEGINNER,
    ContestType.LUNCH_TIME: Difficulty.MEDIUM,
    ContestType.COOK_OFF: Difficulty.MEDIUM,
    ContestType.LONG: Difficulty.HARD,
}


def _parse_iso(value: str) -> datetime:
    return as_utc(datetime.fromisoformat(value.replace("Z", "+00:00")))


def contest_type_for(name: str, code: str) -> ContestType:
    name = name.lower()
    code = code.lower()
    if "starters" in name or "start" in code:
        return ContestType.STARTERS
    if "lunchtime" in name or "lunch time" in name or "ltime" in code:
        return ContestType.LUNCH_TIME
    if any(token in name for token in ("cookoff", "cook-off", "cook off")) or "cook" in code:
        return ContestType.COOK_OFF
    return ContestType.LONG


class CodeChefAdapter(ProviderAdapter):
    """
    Contests from CodeChef's public list endpoint.

    The payload splits contests into present/future/past buckets; only the most
    recent past contests are kept.
    """

    provider = Provider.CODECHEF

    def __init__(self, fetcher: RetryingFetcher | None = None, clock=utcnow):
        super().__init__(
            fetcher
            or RetryingFetcher(self.provider.value, timeout=settings.codechef_timeout_seconds),
            clock,
        )
        self.url = f"{settings.codechef_api_url.rstrip('/')}/list/contests/all"
        self.past_limit = settings.codechef_past_contest_limit

    async def _fetch_raw(self) -> list[dict] | None:
        data = await self.fetcher.get_json(self.url)
        if not isinstance(data, dict) or data.get("status") != "success":
            return None

        records: list[dict] = []
        for key, bucket in _BUCKETS:
            items = data.get(key) or []
            if not isinstance(items, list):
                return None
            if bucket == "past":
                items = items[: self.past_limit]
            # bucket travels with the record so normalize() stays single-argument
            records.extend({**item, "_bucket": bucket} for item in items if isinstance(item, dict))
        return records

    def normalize(self, raw: dict) -> CanonicalContest:
        code = raw["contest_code"]
        name = raw["contest_name"]
        start = _parse_iso(raw["contest_start_date_iso"])
        end = _parse_iso(raw["contest_end_date_iso"])
        bucket = raw.get("_bucket", "future")
        now = self.clock()

        if bucket == "future" or start > now:
            phase = ContestPhase.BEFORE
        elif bucket == "present" or start <= now < end:
            phase = ContestPhase.CODING
        else:
            phase = ContestPhase.FINISHED

        contest_type = contest_type_for(name, code)
        return CanonicalContest(
            provider_contest_id=code,
            name=name,
            provider=self.provider,
            phase=phase,
            contest_type=contest_type,
            start_time=start,
            end_time=end,
            website_url=_CONTEST_URL.format(code=code),
            difficulty=_DIFFICULTY[contest_type],
            participant_count=int(raw.get("distinct_users") or 0),
            metadata={
                "contest_code": code,
                "contest_type": raw.get("contest_type"),
                "distinct_users": raw.get("distinct_users"),
            },
        )

    async def health_check(self) -> bool:
        return await self._probe(
            self.fetcher.get_json(self.url),
            check=lambda data: isinstance(data, dict) and data.get("status") == "success",
        )
