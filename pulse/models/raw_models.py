"""PULSE — Raw Data Models (Append-only).

Written by the scrapers, read by the engine. Timestamps are naive UTC.
"""

from datetime import date, datetime
from typing import Optional
from sqlmodel import SQLModel, Field


class PostRecord(SQLModel, table=True):
    """One scraped observation of a post.

    Re-scrapes append new rows, so ``(platform, external_id)`` repeats.
    """

    __tablename__ = "posts"

    id: Optional[int] = Field(default=None, primary_key=True)
    platform: str = Field(index=True, description="tiktok | instagram | youtube")
    external_id: str = Field(index=True, description="Provider post / video id")
    handle: str = Field(index=True)
    posted_at: datetime = Field(index=True)
    views: int = 0
    likes: int = 0
    comments: int = 0
    shares: int = 0
    saves: int = 0
    text: Optional[str] = Field(default=None, description="Caption or title")


class SnapshotRecord(SQLModel, table=True):
    """Absolute cumulative metrics for a user on a platform at a point in time."""

    __tablename__ = "metric_snapshots"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: str = Field(index=True)
    platform: str = Field(index=True)
    captured_at: datetime = Field(index=True)
    views: int = 0
    likes: int = 0
    comments: int = 0
    shares: int = 0
    saves: int = 0


class HistoricalWeekRecord(SQLModel, table=True):
    """Immutable pre-aggregated weekly row from before the real-time cutoff."""

    __tablename__ = "weekly_historical"

    id: Optional[int] = Field(default=None, primary_key=True)
    platform: str = Field(index=True)
    start_date: date = Field(index=True)
    end_date: date
    views: int = 0
    likes: int = 0
    comments: int = 0
    shares: int = 0
    saves: int = 0
