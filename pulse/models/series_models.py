"""PULSE — Series Request / Response Schemas."""

from datetime import date
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel

from pulse.core.metric_registry import Platform
from pulse.models.normalized_models import Metrics


class Granularity(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class WeekAlignment(str, Enum):
    """How weekly buckets are anchored."""

    CALENDAR = "calendar"  # Monday weeks
    CUTOFF = "cutoff"  # 7-day steps from the real-time cutoff


class AccountingMode(str, Enum):
    POSTDATE = "postdate"
    ACCRUAL = "accrual"


class Scope(str, Enum):
    EMPLOYEE = "employee"
    CAMPAIGN = "campaign"
    GLOBAL = "global"


# ─────────────────────────────────────────────
# REQUEST
# ─────────────────────────────────────────────


class SeriesRequest(BaseModel):
    """Parameters shared by every series scope.

    ``None`` fields are resolved by the engine: dates fall back to the
    campaign window or a trailing window ending today, ``include_historical``
    to ``True`` for global scope only, ``alignment`` to cutoff-aligned weeks
    when the archive is spliced in and calendar weeks otherwise.
    """

    start: Optional[date] = None
    end: Optional[date] = None
    granularity: str = Granularity.DAILY.value
    mode: str = AccountingMode.POSTDATE.value
    alignment: Optional[str] = None
    respect_hashtags: bool = True
    hashtags_in_accrual: bool = False
    snapshots_only: bool = False
    include_historical: Optional[bool] = None
    campaign_id: Optional[str] = None


# ─────────────────────────────────────────────
# RESPONSE
# ─────────────────────────────────────────────


class SeriesPoint(BaseModel):
    """One bucket. ``date`` is the bucket-start key."""

    date: date
    views: int = 0
    likes: int = 0
    comments: int = 0
    shares: int = 0
    saves: int = 0

    @classmethod
    def of(cls, key: date, metrics: Metrics) -> "SeriesPoint":
        return cls(date=key, **metrics.as_dict())

    @property
    def metrics(self) -> Metrics:
        return Metrics(
            views=self.views,
            likes=self.likes,
            comments=self.comments,
            shares=self.shares,
            saves=self.saves,
        )


class PlatformSeries(BaseModel):
    platform: Platform
    series: List[SeriesPoint]
    totals: Metrics


class EntitySeries(BaseModel):
    """Series for one member (campaign scope) or one campaign (global scope)."""

    entity_id: str
    name: str = ""
    series: List[SeriesPoint]
    totals: Metrics


class SeriesResponse(BaseModel):
    scope: Scope
    entity_id: Optional[str] = None
    granularity: Granularity
    mode: AccountingMode
    alignment: WeekAlignment
    range_start: date
    range_end: date
    cutoff: date
    series_total: List[SeriesPoint]
    series_per_platform: List[PlatformSeries]
    totals: Metrics
    per_entity_series: Optional[List[EntitySeries]] = None
    required_hashtags: List[str] = []
    resolved_handles: Dict[str, List[str]] = {}


class PostSummary(BaseModel):
    """A deduplicated campaign post, as listed by the posts endpoint."""

    platform: Platform
    external_id: str
    handle: str
    posted_at: str
    views: int
    likes: int
    comments: int
    shares: int
    saves: int
    text: Optional[str] = None


class LeaderboardEntry(BaseModel):
    """One campaign member ranked by views over the requested window."""

    rank: int
    entity_id: str
    name: str
    totals: Metrics
