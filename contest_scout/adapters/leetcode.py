from datetime import timedelta

from contest_scout.adapters.base import ProviderAdapter, epoch_to_datetime, phase_from_clock
from contest_scout.adapters.http import RetryingFetcher
from contest_scout.config import settings
from contest_scout.models import (
    CanonicalContest,
    ContestType,
    Provider,
    utcnow,
)

_CONTEST_URL = "https://leetcode.com/contest/{slug}"

_HEADERS = {
    "Content-Type": "application/json",
    "Origin": "https://leetcode.com",
    "Referer": "https://leetcode.com",
}

_ALL_CONTESTS_QUERY = """
query allContests {
  allContests {
    title
    titleSlug
    startTime
    duration
    originStartTime
    isVirtual
    cardImg
    description
  }
}
"""

_HEALTH_QUERY = "query { allContests { title } }"


class LeetCodeAdapter(ProviderAdapter):
    """LeetCode weekly and biweekly contests via the public GraphQL endpoint."""

    provider = Provider.LEETCODE

    def __init__(self, fetcher: RetryingFetcher | None = None, clock=utcnow):
        super().__init__(
            fetcher
            or RetryingFetcher(
                self.provider.value,
                timeout=settings.leetcode_timeout_seconds,
                headers=_HEADERS,
            ),
            clock,
        )
        self.url = settings.leetcode_graphql_url

    async def _fetch_raw(self) -> list[dict] | None:
        data = await self.fetcher.post_json(self.url, {"query": _ALL_CONTESTS_QUERY})
        contests = _all_contests(data)
        return [c for c in contests if isinstance(c, dict)] if contests is not None else None

    def normalize(self, raw: dict) -> CanonicalContest:
        duration_seconds = int(raw["duration"])
        start = epoch_to_datetime(raw["startTime"])
        end = start + timedelta(seconds=duration_seconds)
        title = raw["title"]

        return CanonicalContest(
            provider_contest_id=raw["titleSlug"],
            name=title,
            provider=self.provider,
            phase=phase_from_clock(start, end, self.clock()),
            contest_type=(
                ContestType.BIWEEKLY if "biweekly" in title.lower() else ContestType.WEEKLY
            ),
            start_time=start,
            end_time=end,
            duration_minutes=duration_seconds // 60,
            website_url=_CONTEST_URL.format(slug=raw["titleSlug"]),
            description=raw.get("description") or None,
            metadata={
                "titleSlug": raw["titleSlug"],
                "isVirtual": raw.get("isVirtual", False),
                "cardImg": raw.get("cardImg"),
                "originStartTime": raw.get("originStartTime"),
            },
        )

    async def health_check(self) -> bool:
        return await self._probe(
            self.fetcher.post_json(self.url, {"query": _HEALTH_QUERY}),
            check=lambda data: _all_contests(data) is not None,
        )


def _all_contests(data) -> list | None:
    if not isinstance(data, dict):
        return None
    contests = (data.get("data") or {}).get("allContests")
    return contests if isinstance(contests, list) else None
