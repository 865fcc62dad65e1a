"""PULSE — Normalized Domain Models.

Store-agnostic values handed from the adapters to the analyzer. All are
immutable; the analyzer folds over them without mutating anything.
"""

from datetime import date, datetime, timezone
from typing import Iterable, List, Optional

from pydantic import BaseModel, field_validator

from pulse.core.metric_registry import METRIC_NAMES, Platform


class Metrics(BaseModel):
    """The five engagement counters."""

    views: int = 0
    likes: int = 0
    comments: int = 0
    shares: int = 0
    saves: int = 0

    model_config = {"frozen": True}

    @classmethod
    def zero(cls) -> "Metrics":
        return cls()

    @classmethod
    def total(cls, items: Iterable["Metrics"]) -> "Metrics":
        acc = cls()
        for m in items:
            acc = acc + m
        return acc

    def __add__(self, other: "Metrics") -> "Metrics":
        return Metrics(
            **{n: getattr(self, n) + getattr(other, n) for n in METRIC_NAMES}
        )

    def delta_from(self, prev: "Metrics") -> "Metrics":
        """Per-metric ``max(0, self - prev)``."""
        return Metrics(
            **{n: max(0, getattr(self, n) - getattr(prev, n)) for n in METRIC_NAMES}
        )

    def only(self, names: Iterable[str]) -> "Metrics":
        """Keep the named metrics, zero the rest."""
        keep = set(names)
        return Metrics(**{n: getattr(self, n) for n in METRIC_NAMES if n in keep})

    def is_zero(self) -> bool:
        return all(getattr(self, n) == 0 for n in METRIC_NAMES)

    def as_dict(self) -> dict:
        return {n: getattr(self, n) for n in METRIC_NAMES}


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class RawPost(BaseModel):
    """One scraped observation of a post."""

    platform: Platform
    external_id: str
    handle: str
    posted_at: datetime
    views: int = 0
    likes: int = 0
    comments: int = 0
    shares: int = 0
    saves: int = 0
    text: Optional[str] = None

    model_config = {"frozen": True}

    @field_validator("posted_at")
    @classmethod
    def _utc(cls, v: datetime) -> datetime:
        return _as_utc(v)

    @property
    def metrics(self) -> Metrics:
        return Metrics(
            views=self.views,
            likes=self.likes,
            comments=self.comments,
            shares=self.shares,
            saves=self.saves,
        )

    @property
    def post_date(self) -> date:
        return self.posted_at.date()


class Snapshot(BaseModel):
    """Absolute cumulative counters for one user on one platform."""

    user_id: str
    platform: Platform
    captured_at: datetime
    views: int = 0
    likes: int = 0
    comments: int = 0
    shares: int = 0
    saves: int = 0

    model_config = {"frozen": True}

    @field_validator("captured_at")
    @classmethod
    def _utc(cls, v: datetime) -> datetime:
        return _as_utc(v)

    @property
    def metrics(self) -> Metrics:
        return Metrics(
            views=self.views,
            likes=self.likes,
            comments=self.comments,
            shares=self.shares,
            saves=self.saves,
        )

    @property
    def capture_date(self) -> date:
        return self.captured_at.date()


class HistoricalBucket(BaseModel):
    """Pre-aggregated weekly archive row, ``start_date``..``end_date`` inclusive."""

    platform: Platform
    start_date: date
    end_date: date
    views: int = 0
    likes: int = 0
    comments: int = 0
    shares: int = 0
    saves: int = 0

    model_config = {"frozen": True}

    @property
    def days(self) -> int:
        return max(1, (self.end_date - self.start_date).days + 1)

    @property
    def metrics(self) -> Metrics:
        return Metrics(
            views=self.views,
            likes=self.likes,
            comments=self.comments,
            shares=self.shares,
            saves=self.saves,
        )


class CampaignInfo(BaseModel):
    id: str
    name: str = ""
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    required_hashtags: List[str] = []


class UserInfo(BaseModel):
    id: str
    full_name: str = ""
    tiktok_username: Optional[str] = None
    instagram_username: Optional[str] = None
    youtube_channel_id: Optional[str] = None
