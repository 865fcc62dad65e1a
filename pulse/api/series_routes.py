"""PULSE — Series API Routes."""

from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from pulse.adapters.sql_store import SqlStore
from pulse.analyzer.pipeline import SeriesEngine
from pulse.config import settings
from pulse.database import engine
from pulse.models.series_models import (
    LeaderboardEntry,
    PostSummary,
    SeriesRequest,
    SeriesResponse,
)

router = APIRouter(tags=["Series"])


def get_series_engine() -> SeriesEngine:
    """Dependency — a SeriesEngine over the SQL store."""
    store = SqlStore(engine)
    return SeriesEngine(
        posts=store,
        snapshots=store,
        archive=store,
        identities=store,
        config=settings.accounting_config(),
        mirror_youtube=settings.youtube_mirror_enabled,
        default_window_days=settings.default_window_days,
    )


def series_request(
    start: Optional[date] = Query(None, description="YYYY-MM-DD, defaults to the campaign start or a trailing window"),
    end: Optional[date] = Query(None, description="YYYY-MM-DD, defaults to the campaign end or today"),
    interval: str = Query("daily", description="daily | weekly | monthly"),
    mode: str = Query("postdate", description="postdate | accrual"),
    alignment: Optional[str] = Query(None, description="calendar | cutoff"),
    respect_hashtags: bool = Query(True),
    hashtags_in_accrual: bool = Query(False),
    snapshots_only: bool = Query(False),
    include_historical: Optional[bool] = Query(None, description="Global scope only"),
) -> SeriesRequest:
    return SeriesRequest(
        start=start,
        end=end,
        granularity=interval,
        mode=mode,
        alignment=alignment,
        respect_hashtags=respect_hashtags,
        hashtags_in_accrual=hashtags_in_accrual,
        snapshots_only=snapshots_only,
        include_historical=include_historical,
    )


# ── Endpoints ──


@router.get(
    "/series/employees/{employee_id}",
    response_model=SeriesResponse,
    response_model_exclude_none=True,
)
async def employee_series(
    employee_id: str,
    campaign_id: Optional[str] = Query(None, description="Scope handles and hashtags to a campaign"),
    request: SeriesRequest = Depends(series_request),
    series: SeriesEngine = Depends(get_series_engine),
):
    """Series for one employee, optionally within one campaign."""
    return await series.employee_series(
        employee_id, request.model_copy(update={"campaign_id": campaign_id})
    )


@router.get(
    "/series/campaigns/{campaign_id}",
    response_model=SeriesResponse,
    response_model_exclude_none=True,
)
async def campaign_series(
    campaign_id: str,
    request: SeriesRequest = Depends(series_request),
    series: SeriesEngine = Depends(get_series_engine),
):
    """Campaign totals with one series per member."""
    return await series.campaign_series(campaign_id, request)


@router.get(
    "/series/global",
    response_model=SeriesResponse,
    response_model_exclude_none=True,
)
async def global_series(
    request: SeriesRequest = Depends(series_request),
    series: SeriesEngine = Depends(get_series_engine),
):
    """All tracked accounts, spliced with the weekly archive before the cutoff."""
    return await series.global_series(request)


@router.get("/campaigns/{campaign_id}/posts", response_model=List[PostSummary])
async def campaign_posts(
    campaign_id: str,
    request: SeriesRequest = Depends(series_request),
    series: SeriesEngine = Depends(get_series_engine),
):
    """Deduplicated campaign posts, most viewed first."""
    return await series.campaign_posts(campaign_id, request)


@router.get(
    "/campaigns/{campaign_id}/leaderboard", response_model=List[LeaderboardEntry]
)
async def campaign_leaderboard(
    campaign_id: str,
    top: int = Query(20, description="Clamped to 1..100"),
    request: SeriesRequest = Depends(series_request),
    series: SeriesEngine = Depends(get_series_engine),
):
    """Campaign members ranked by views."""
    return await series.campaign_leaderboard(campaign_id, request, top=top)


@router.get("/posts/top", response_model=List[PostSummary])
async def top_posts(
    campaign_id: Optional[str] = Query(None, description="Omit to rank across every campaign"),
    platform: Optional[str] = Query(None, description="tiktok | instagram | youtube"),
    limit: int = Query(10, description="Clamped to 1..50"),
    request: SeriesRequest = Depends(series_request),
    series: SeriesEngine = Depends(get_series_engine),
):
    """Most viewed deduplicated posts."""
    return await series.top_posts(
        request.model_copy(update={"campaign_id": campaign_id}),
        limit=limit,
        platform=platform,
    )
