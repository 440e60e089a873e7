from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Callable

from contest_scout.adapters.http import RetryingFetcher
from contest_scout.errors import ProviderUnreachableError
from contest_scout.models import CanonicalContest, ContestPhase, Provider, utcnow
from contest_scout.utils.logging import get_logger

logger = get_logger(__name__)

Clock = Callable[[], datetime]


def epoch_to_datetime(seconds: float) -> datetime:
    return datetime.fromtimestamp(seconds, tz=timezone.utc)


def phase_from_clock(start: datetime, end: datetime, now: datetime) -> ContestPhase:
    if now < start:
        return ContestPhase.BEFORE
    if now < end:
        return ContestPhase.CODING
    return ContestPhase.FINISHED


class ProviderAdapter(ABC):
    """
    Abstract base for all provider adapters.

    Subclasses implement ``_fetch_raw`` (one or more fetcher calls, returning
    the raw records or None when the payload is structurally invalid) and
    ``normalize``. Everything else is shared.
    """

    provider: Provider

    def __init__(self, fetcher: RetryingFetcher, clock: Clock = utcnow):
        self.fetcher = fetcher
        self.clock = clock

    @abstractmethod
    async def _fetch_raw(self) -> list[dict] | None:
        ...

    @abstractmethod
    def normalize(self, raw: dict) -> CanonicalContest:
        """Map one provider record to the canonical shape. Raises on bad records."""
        ...

    @abstractmethod
    async def health_check(self) -> bool:
        ...

    async def fetch_all(self) -> list[CanonicalContest]:
        """
        Fetch and normalize every contest the provider reports.

        Returns [] when the payload is malformed. Raises
        ProviderUnreachableError when the provider cannot be reached.
        """
        raw_records = await self._fetch_raw()
        if raw_records is None:
            logger.warning("provider_payload_invalid", provider=self.provider.value)
            return []

        contests: list[CanonicalContest] = []
        for raw in raw_records:
            try:
                contests.append(self.normalize(raw))
            except (KeyError, TypeError, ValueError) as exc:
                logger.warning(
                    "provider_record_skipped",
                    provider=self.provider.value,
                    record_id=_record_id(raw),
                    error=str(exc),
                )

        logger.info("provider_contests_fetched", provider=self.provider.value, count=len(contests))
        return contests

    async def fetch_upcoming(self) -> list[CanonicalContest]:
        now = self.clock()
        return [c for c in await self.fetch_all() if c.is_upcoming(now)]

    async def fetch_running(self) -> list[CanonicalContest]:
        now = self.clock()
        return [c for c in await self.fetch_all() if c.is_running(now)]

    async def _probe(self, request, check: Callable[[Any], bool] | None = None) -> bool:
        """Await a minimal provider request; any failure reads as unhealthy."""
        try:
            data = await request
        except ProviderUnreachableError as exc:
            logger.warning("provider_health_check_failed", provider=self.provider.value, error=str(exc))
            return False
        except Exception as exc:
            logger.warning(
                "provider_health_check_error", provider=self.provider.value, error=repr(exc)
            )
            return False
        if check is None:
            return data is not None
        return bool(check(data))


def _record_id(raw: Any) -> Any:
    if not isinstance(raw, dict):
        return None
    for key in ("id", "contest_code", "titleSlug"):
        if key in raw:
            return raw[key]
    return None
