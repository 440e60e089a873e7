"""
Fetch -> normalize -> upsert.

Each provider syncs independently; a provider that cannot be reached reports
zero counts and the rest carry on.
"""

from collections import Counter, defaultdict
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta
from typing import Callable

from contest_scout.adapters.registry import AdapterRegistry
from contest_scout.errors import DuplicateContestError
from contest_scout.models import (
    CanonicalContest,
    ContestPhase,
    PersistedContest,
    Provider,
    utcnow,
)
from contest_scout.store.base import Store
from contest_scout.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class SyncResult:
    synced: int = 0
    updated: int = 0
    failed: int = 0

    def to_dict(self) -> dict:
        return asdict(self)


class SyncEngine:
    def __init__(
        self,
        registry: AdapterRegistry,
        store: Store,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.registry = registry
        self.store = store
        self.clock = clock

    async def sync_provider(self, provider: Provider | str) -> SyncResult:
        """
        Upsert every contest one provider reports.

        Fetch errors (including ProviderUnreachableError) propagate; per-contest
        store errors are counted as failed and the batch continues.
        """
        adapter = self.registry.get(provider)
        name = adapter.provider.value
        logger.info("provider_sync_started", provider=name)

        contests = await adapter.fetch_all()
        result = SyncResult()

        for contest in contests:
            try:
                created = await self._upsert(contest)
            except Exception as exc:
                result.failed += 1
                logger.error(
                    "contest_upsert_failed",
                    provider=name,
                    provider_contest_id=contest.provider_contest_id,
                    error=str(exc),
                )
                continue
            if created:
                result.synced += 1
            else:
                result.updated += 1

        logger.info("provider_sync_complete", provider=name, **result.to_dict())
        return result

    async def sync_all(self) -> dict[str, SyncResult]:
        """Sync every registered provider, one after another."""
        results: dict[str, SyncResult] = {}
        for provider in self.registry.providers:
            try:
                results[provider.value] = await self.sync_provider(provider)
            except Exception as exc:
                logger.error("provider_sync_failed", provider=provider.value, error=str(exc))
                results[provider.value] = SyncResult()

        logger.info(
            "sync_all_complete",
            providers=len(results),
            synced=sum(r.synced for r in results.values()),
            updated=sum(r.updated for r in results.values()),
            failed=sum(r.failed for r in results.values()),
        )
        return results

    async def _upsert(self, contest: CanonicalContest) -> bool:
        """Returns True when the contest was created, False when updated."""
        now = self.clock()
        existing = await self.store.find_contest(contest.provider, contest.provider_contest_id)
        if existing is not None:
            await self.store.update_contest(existing.id, contest, now)
            return False
        try:
            await self.store.insert_contest(contest, now)
        except DuplicateContestError:
            # lost an insert race with a concurrent sync; fall back to overwrite
            existing = await self.store.find_contest(contest.provider, contest.provider_contest_id)
            if existing is None:
                raise
            await self.store.update_contest(existing.id, contest, now)
            return False
        return True

    async def create_contest(self, contest: CanonicalContest) -> PersistedContest:
        """Administrative insert. Raises DuplicateContestError if the key exists."""
        existing = await self.store.find_contest(contest.provider, contest.provider_contest_id)
        if existing is not None:
            raise DuplicateContestError(contest.provider.value, contest.provider_contest_id)
        persisted = await self.store.insert_contest(contest, self.clock())
        logger.info(
            "contest_created",
            provider=contest.provider.value,
            provider_contest_id=contest.provider_contest_id,
            contest_id=persisted.id,
        )
        return persisted

    async def cleanup_finished(self, retention_days: int = 90) -> int:
        cutoff = self.clock() - timedelta(days=retention_days)
        deleted = await self.store.delete_finished_before(cutoff)
        logger.info("contest_cleanup_complete", deleted=deleted, cutoff=cutoff.isoformat())
        return deleted

    async def stats(self) -> dict:
        """Counts by lifecycle, provider, type and difficulty, plus per-provider averages."""
        now = self.clock()
        contests = await self.store.list_contests()

        by_provider: dict[str, list[PersistedContest]] = defaultdict(list)
        for contest in contests:
            by_provider[contest.provider.value].append(contest)

        return {
            "total": len(contests),
            "upcoming": sum(
                1 for c in contests if c.phase == ContestPhase.BEFORE and c.start_time > now
            ),
            "running": sum(1 for c in contests if c.phase == ContestPhase.CODING),
            "finished": sum(1 for c in contests if c.phase == ContestPhase.FINISHED),
            "by_provider": {p: len(cs) for p, cs in by_provider.items()},
            "by_type": dict(Counter(c.contest_type.value for c in contests)),
            "by_difficulty": dict(
                Counter(c.difficulty.value for c in contests if c.difficulty is not None)
            ),
            "providers": {
                p: _provider_stats(cs, now) for p, cs in by_provider.items()
            },
        }


def _provider_stats(contests: list[PersistedContest], now: datetime) -> dict:
    synced = [c.last_synced_at for c in contests if c.last_synced_at is not None]
    return {
        "total": len(contests),
        "upcoming": sum(1 for c in contests if c.phase == ContestPhase.BEFORE and c.start_time > now),
        "running": sum(1 for c in contests if c.phase == ContestPhase.CODING),
        "finished": sum(1 for c in contests if c.phase == ContestPhase.FINISHED),
        "avg_duration_minutes": round(
            sum(c.duration_minutes for c in contests) / len(contests)
        ),
        "avg_participants": round(
            sum(c.participant_count for c in contests) / len(contests)
        ),
        "last_synced_at": max(synced).isoformat() if synced else None,
    }
