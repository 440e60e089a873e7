from datetime import timedelta

from contest_scout.adapters.base import ProviderAdapter, epoch_to_datetime
from contest_scout.adapters.http import RetryingFetcher
from contest_scout.config import settings
from contest_scout.models import (
    CanonicalContest,
    ContestPhase,
    ContestType,
    Provider,
    utcnow,
)

_CONTEST_URL = "https://codeforces.com/contest/{id}"

_PHASES = {
    "BEFORE": ContestPhase.BEFORE,
    "CODING": ContestPhase.CODING,
    "PENDING_SYSTEM_TEST": ContestPhase.PENDING_SYSTEM_TEST,
    "SYSTEM_TEST": ContestPhase.SYSTEM_TEST,
    "FINISHED": ContestPhase.FINISHED,
}

_TYPES = {
    "CF": ContestType.CF,
    "IOI": ContestType.IOI,
    "ICPC": ContestType.ICPC,
}


class CodeforcesAdapter(ProviderAdapter):
    """Contests from the official Codeforces ``contest.list`` endpoint."""

    provider = Provider.CODEFORCES

    def __init__(self, fetcher: RetryingFetcher | None = None, clock=utcnow):
        super().__init__(
            fetcher
            or RetryingFetcher(self.provider.value, timeout=settings.codeforces_timeout_seconds),
            clock,
        )
        self.base_url = settings.codeforces_api_url.rstrip("/")

    async def _fetch_raw(self) -> list[dict] | None:
        data = await self.fetcher.get_json(f"{self.base_url}/contest.list", params={"gym": "false"})
        if not isinstance(data, dict) or data.get("status") != "OK":
            return None
        result = data.get("result")
        return result if isinstance(result, list) else None

    def normalize(self, raw: dict) -> CanonicalContest:
        duration_seconds = int(raw["durationSeconds"])
        start_ts = raw.get("startTimeSeconds")
        start = epoch_to_datetime(start_ts) if start_ts is not None else self.clock()
        end = start + timedelta(seconds=duration_seconds)

        return CanonicalContest(
            provider_contest_id=str(raw["id"]),
            name=raw["name"],
            provider=self.provider,
            phase=_PHASES.get(raw.get("phase"), ContestPhase.BEFORE),
            contest_type=_TYPES.get(raw.get("type"), ContestType.CF),
            start_time=start,
            end_time=end,
            duration_minutes=duration_seconds // 60,
            website_url=_CONTEST_URL.format(id=raw["id"]),
            metadata={
                "frozen": raw.get("frozen", False),
                "relativeTimeSeconds": raw.get("relativeTimeSeconds"),
            },
        )

    async def health_check(self) -> bool:
        return await self._probe(
            self.fetcher.get_json(f"{self.base_url}/contest.list", params={"gym": "false"}),
            check=lambda data: isinstance(data, dict) and data.get("status") == "OK",
        )
