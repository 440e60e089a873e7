from contextlib import asynccontextmanager
from datetime import datetime

from fastapi import Depends, FastAPI, HTTPException, Request
from pydantic import BaseModel, Field

from contest_scout.app_context import AppContext
from contest_scout.config import settings
from contest_scout.errors import (
    AdapterNotRegisteredError,
    DependentRecordMissingError,
    DuplicateContestError,
    NotificationNotFoundError,
    NotificationNotRetryableError,
    ProviderUnreachableError,
)
from contest_scout.models import (
    CanonicalContest,
    ContestPhase,
    ContestType,
    Difficulty,
    Provider,
)
from contest_scout.utils.logging import get_logger, setup_logging

setup_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    app.state.ctx = AppContext.build(settings)

    # Only start the scheduler in non-test environments
    scheduler = None
    if settings.app_env != "test":
        from contest_scout.scheduler import create_scheduler

        scheduler = create_scheduler(app.state.ctx)
        scheduler.start()
        logger.info("scheduler_started", jobs=len(scheduler.get_jobs()))

    yield

    if scheduler is not None:
        scheduler.shutdown(wait=False)
        logger.info("scheduler_stopped")


app = FastAPI(
    title="Contest Scout",
    description=(
        "Aggregates competitive-programming contests from Codeforces, CodeChef, "
        "AtCoder and LeetCode and reminds subscribers before they start."
    ),
    version="1.0.0",
    lifespan=lifespan,
)


def get_context(request: Request) -> AppContext:
    return request.app.state.ctx


class ContestIn(BaseModel):
    provider_contest_id: str
    name: str
    provider: Provider
    phase: ContestPhase = ContestPhase.BEFORE
    contest_type: ContestType
    start_time: datetime
    end_time: datetime
    website_url: str | None = None
    description: str | None = None
    difficulty: Difficulty | None = None
    metadata: dict[str, str | int | float | bool] = Field(default_factory=dict)


@app.get("/health", tags=["Health"], openapi_extra={"security": []})
async def health():
    """Liveness probe."""
    return {
        "status": "ok",
        "service": "contest-scout",
        "environment": settings.app_env,
    }


@app.post("/admin/sync", tags=["Admin"])
async def sync_all(ctx: AppContext = Depends(get_context)):
    results = await ctx.sync_engine.sync_all()
    return {provider: r.to_dict() for provider, r in results.items()}


@app.post("/admin/sync/{provider}", tags=["Admin"])
async def sync_provider(provider: str, ctx: AppContext = Depends(get_context)):
    try:
        result = await ctx.sync_engine.sync_provider(provider)
    except AdapterNotRegisteredError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    except ProviderUnreachableError as exc:
        raise HTTPException(status_code=502, detail=str(exc))
    return {provider: result.to_dict()}


@app.post("/admin/contests", tags=["Admin"], status_code=201)
async def create_contest(body: ContestIn, ctx: AppContext = Depends(get_context)):
    try:
        contest = CanonicalContest(**body.model_dump())
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc))
    try:
        persisted = await ctx.sync_engine.create_contest(contest)
    except DuplicateContestError as exc:
        raise HTTPException(status_code=409, detail=str(exc))
    return {"id": persisted.id, "duration_minutes": persisted.duration_minutes}


@app.get("/admin/stats", tags=["Admin"])
async def stats(ctx: AppContext = Depends(get_context)):
    return {
        "contests": await ctx.sync_engine.stats(),
        "notifications": await ctx.pipeline.notification_stats(),
    }


@app.get("/admin/health/providers", tags=["Admin"])
async def provider_health(ctx: AppContext = Depends(get_context)):
    return {adapter.provider.value: await adapter.health_check() for adapter in ctx.registry}


@app.get("/admin/health/channels", tags=["Admin"])
async def channel_health(ctx: AppContext = Depends(get_context)):
    return await ctx.dispatcher.health_check()


@app.post("/admin/notifications/{notification_id}/retry", tags=["Admin"])
async def retry_notification(notification_id: str, ctx: AppContext = Depends(get_context)):
    try:
        record = await ctx.pipeline.retry_notification(notification_id)
    except NotificationNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    except NotificationNotRetryableError as exc:
        raise HTTPException(status_code=409, detail=str(exc))
    except DependentRecordMissingError as exc:
        raise HTTPException(status_code=422, detail=str(exc))
    return {
        "id": record.id,
        "status": record.status.value,
        "retry_count": record.retry_count,
    }
