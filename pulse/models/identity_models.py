"""PULSE — Identity & Campaign Tables.

Read-only to the engine, apart from the YouTube channel mirror written
back into ``employee_participants`` and ``campaign_participants``.
"""

from datetime import date
from typing import List, Optional

from sqlalchemy import JSON, Column, UniqueConstraint
from sqlmodel import SQLModel, Field


class User(SQLModel, table=True):
    """An employee with optional canonical handles on their profile."""

    __tablename__ = "users"

    id: str = Field(primary_key=True)
    full_name: str = ""
    role: str = Field(default="employee", description="employee | admin")
    tiktok_username: Optional[str] = None
    instagram_username: Optional[str] = None
    youtube_channel_id: Optional[str] = None


class Campaign(SQLModel, table=True):
    __tablename__ = "campaigns"

    id: str = Field(primary_key=True)
    name: str = ""
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    required_hashtags: Optional[List[str]] = Field(
        default=None, sa_column=Column(JSON, nullable=True)
    )


class EmployeeGroup(SQLModel, table=True):
    """Campaign membership: which employees belong to a campaign."""

    __tablename__ = "employee_groups"
    __table_args__ = (UniqueConstraint("campaign_id", "employee_id"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    campaign_id: str = Field(index=True)
    employee_id: str = Field(index=True)


class EmployeeParticipant(SQLModel, table=True):
    """Per-campaign, per-employee handle assignment (resolution tier 1)."""

    __tablename__ = "employee_participants"
    __table_args__ = (
        UniqueConstraint("campaign_id", "employee_id", "platform", "handle"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    campaign_id: str = Field(index=True)
    employee_id: str = Field(index=True)
    platform: str = Field(index=True, description="tiktok | instagram | youtube")
    handle: str


class CampaignParticipant(SQLModel, table=True):
    """Campaign-wide handle list (resolution tier 2)."""

    __tablename__ = "campaign_participants"
    __table_args__ = (UniqueConstraint("campaign_id", "platform", "handle"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    campaign_id: str = Field(index=True)
    platform: str = Field(index=True)
    handle: str


class UserHandle(SQLModel, table=True):
    """Global per-user mapping, several handles per platform (tier 3)."""

    __tablename__ = "user_handles"
    __table_args__ = (UniqueConstraint("user_id", "platform", "handle"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: str = Field(index=True)
    platform: str = Field(index=True)
    handle: str
