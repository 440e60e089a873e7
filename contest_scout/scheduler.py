"""
APScheduler wiring.

Five independent jobs: provider sync (cron), finished-contest cleanup (daily
02:00 UTC), upcoming-contest reminder scan (interval), daily digest and weekly
digest. Each job checks its enable flag when it fires, so flags can be flipped
without rebuilding the scheduler. The scheduler is started/stopped as part of
the FastAPI lifespan.

CLI usage (sync every provider once, log results, exit):
    python -m contest_scout.scheduler --run-now
"""

import asyncio
import sys

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from contest_scout.app_context import AppContext
from contest_scout.config import settings
from contest_scout.models import AlertCadence
from contest_scout.utils.logging import get_logger, setup_logging

logger = get_logger(__name__)


async def run_contest_sync(ctx: AppContext) -> dict | None:
    if not ctx.settings.contest_sync_enabled:
        logger.info("job_skipped_disabled", job="contest_sync")
        return None
    try:
        results = await ctx.sync_engine.sync_all()
    except Exception as exc:
        logger.error("job_failed", job="contest_sync", error=str(exc))
        return None
    return {provider: r.to_dict() for provider, r in results.items()}


async def run_contest_cleanup(ctx: AppContext) -> int | None:
    if not ctx.settings.contest_cleanup_enabled:
        logger.info("job_skipped_disabled", job="contest_cleanup")
        return None
    try:
        deleted = await ctx.sync_engine.cleanup_finished(ctx.settings.contest_cleanup_days)
        await ctx.pipeline.cleanup_notifications(ctx.settings.notification_retention_days)
    except Exception as exc:
        logger.error("job_failed", job="contest_cleanup", error=str(exc))
        return None
    return deleted


async def run_upcoming_scan(ctx: AppContext) -> dict | None:
    if not ctx.settings.notifications_enabled:
        logger.info("job_skipped_disabled", job="upcoming_scan")
        return None
    try:
        return await ctx.pipeline.scan_upcoming(ctx.settings.notification_window_hours)
    except Exception as exc:
        logger.error("job_failed", job="upcoming_scan", error=str(exc))
        return None


async def run_digest(ctx: AppContext, cadence: AlertCadence) -> dict | None:
    job = f"{cadence.value}_digest"
    if not ctx.settings.notifications_enabled:
        logger.info("job_skipped_disabled", job=job)
        return None
    try:
        return await ctx.pipeline.run_digest(cadence)
    except Exception as exc:
        logger.error("job_failed", job=job, error=str(exc))
        return None


def create_scheduler(ctx: AppContext) -> AsyncIOScheduler:
    """Create and configure the APScheduler instance (not yet started)."""
    cfg = ctx.settings
    scheduler = AsyncIOScheduler(timezone="UTC")
    common = {"max_instances": 1, "coalesce": True, "args": [ctx]}

    scheduler.add_job(
        run_contest_sync,
        CronTrigger.from_crontab(cfg.contest_sync_cron, timezone="UTC"),
        id="contest_sync",
        **common,
    )
    scheduler.add_job(
        run_contest_cleanup,
        CronTrigger(hour=2, minute=0, timezone="UTC"),
        id="contest_cleanup",
        **common,
    )
    scheduler.add_job(
        run_upcoming_scan,
        "interval",
        minutes=cfg.upcoming_scan_interval_minutes,
        id="upcoming_scan",
        **common,
    )
    scheduler.add_job(
        run_digest,
        CronTrigger(hour=cfg.digest_hour_utc, minute=0, timezone="UTC"),
        id="daily_digest",
        max_instances=1,
        coalesce=True,
        args=[ctx, AlertCadence.DAILY],
    )
    scheduler.add_job(
        run_digest,
        CronTrigger(day_of_week="mon", hour=cfg.digest_hour_utc, minute=0, timezone="UTC"),
        id="weekly_digest",
        max_instances=1,
        coalesce=True,
        args=[ctx, AlertCadence.WEEKLY],
    )

    return scheduler


# --------------------------------------------------------------------------- #
# CLI entry point: python -m contest_scout.scheduler --run-now
# --------------------------------------------------------------------------- #

async def _run_now() -> None:
    setup_logging()
    ctx = AppContext.build(settings)
    logger.info("run_now_started", providers=[p.value for p in ctx.registry.providers])
    results = await ctx.sync_engine.sync_all()
    for provider, result in results.items():
        logger.info("run_now_result", provider=provider, **result.to_dict())


if __name__ == "__main__":
    if "--run-now" in sys.argv:
        asyncio.run(_run_now())
    else:
        print("Usage: python -m contest_scout.scheduler --run-now")
        sys.exit(1)
