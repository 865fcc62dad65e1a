"""PULSE — SQL Store Adapter.

Implements every store contract on top of the SQLModel tables. Each call
opens its own session and runs in a worker thread, so concurrent queries
from one request never share a connection.
"""

import asyncio
from datetime import date, datetime, time as dtime, timedelta
from typing import Callable, Dict, List, Optional, Sequence, TypeVar

from sqlalchemy import func
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from pulse.adapters.base import (
    HistoricalArchive,
    IdentityStore,
    PostStore,
    SnapshotStore,
)
from pulse.core.errors import AdapterUnavailable
from pulse.core.handles import normalize_handle, normalize_handles
from pulse.core.logging import get_logger, timed
from pulse.core.metric_registry import Platform
from pulse.models.identity_models import (
    Campaign,
    CampaignParticipant,
    EmployeeGroup,
    EmployeeParticipant,
    User,
    UserHandle,
)
from pulse.models.normalized_models import (
    CampaignInfo,
    HistoricalBucket,
    RawPost,
    Snapshot,
    UserInfo,
)
from pulse.models.raw_models import HistoricalWeekRecord, PostRecord, SnapshotRecord

logger = get_logger("adapters.sql")

T = TypeVar("T")

PROFILE_COLUMNS = {
    Platform.TIKTOK: "tiktok_username",
    Platform.INSTAGRAM: "instagram_username",
    Platform.YOUTUBE: "youtube_channel_id",
}


def _day_bounds(start: date, end: date) -> tuple[datetime, datetime]:
    """Naive UTC [start 00:00, end+1 00:00) bounds."""
    return (
        datetime.combine(start, dtime.min),
        datetime.combine(end + timedelta(days=1), dtime.min),
    )


def _user_info(u: User) -> UserInfo:
    return UserInfo(
        id=u.id,
        full_name=u.full_name,
        tiktok_username=u.tiktok_username,
        instagram_username=u.instagram_username,
        youtube_channel_id=u.youtube_channel_id,
    )


def _campaign_info(c: Campaign) -> CampaignInfo:
    return CampaignInfo(
        id=c.id,
        name=c.name,
        start_date=c.start_date,
        end_date=c.end_date,
        required_hashtags=list(c.required_hashtags or []),
    )


class SqlStore(PostStore, SnapshotStore, HistoricalArchive, IdentityStore):
    """All adapters backed by one SQLAlchemy engine."""

    def __init__(self, engine: Engine):
        self.engine = engine

    async def _run(self, name: str, fn: Callable[[Session], T]) -> T:
        return await asyncio.to_thread(self._run_sync, name, fn)

    def _run_sync(self, name: str, fn: Callable[[Session], T]) -> T:
        try:
            with timed(logger, f"{name} query ok"):
                with Session(self.engine) as session:
                    return fn(session)
        except SQLAlchemyError as e:
            logger.error(
                f"❌ {name} query failed: {e}",
                extra={"kind": AdapterUnavailable.kind.value},
            )
            raise AdapterUnavailable(name, str(e)) from e

    # ── Posts ──

    async def query_posts(
        self,
        platform: Platform,
        handles: Sequence[str],
        start: date,
        end: date,
    ) -> List[RawPost]:
        wanted = normalize_handles(platform, handles)
        if not wanted:
            return []
        lo, hi = _day_bounds(start, end)

        def q(session: Session) -> List[RawPost]:
            handle_col = (
                PostRecord.handle
                if platform == Platform.YOUTUBE
                else func.lower(PostRecord.handle)
            )
            rows = session.exec(
                select(PostRecord)
                .where(
                    PostRecord.platform == platform.value,
                    handle_col.in_(wanted),
                    PostRecord.posted_at >= lo,
                    PostRecord.posted_at < hi,
                )
                .order_by(PostRecord.views.desc(), PostRecord.id)
            ).all()
            return [
                RawPost(
                    platform=platform,
                    external_id=r.external_id,
                    handle=normalize_handle(platform, r.handle),
                    posted_at=r.posted_at,
                    views=r.views,
                    likes=r.likes,
                    comments=r.comments,
                    shares=r.shares,
                    saves=r.saves,
                    text=r.text,
                )
                for r in rows
            ]

        return await self._run("posts", q)

    # ── Snapshots ──

    async def query_snapshots(
        self,
        user_ids: Sequence[str],
        platform: Platform,
        start: date,
        end: date,
    ) -> List[Snapshot]:
        if not user_ids:
            return []
        lo, hi = _day_bounds(start, end)

        def q(session: Session) -> List[Snapshot]:
            rows = session.exec(
                select(SnapshotRecord)
                .where(
                    SnapshotRecord.user_id.in_(list(user_ids)),
                    SnapshotRecord.platform == platform.value,
                    SnapshotRecord.captured_at >= lo,
                    SnapshotRecord.captured_at < hi,
                )
                .order_by(SnapshotRecord.user_id, SnapshotRecord.captured_at)
            ).all()
            return [
                Snapshot(
                    user_id=r.user_id,
                    platform=platform,
                    captured_at=r.captured_at,
                    views=r.views,
                    likes=r.likes,
                    comments=r.comments,
                    shares=r.shares,
                    saves=r.saves,
                )
                for r in rows
            ]

        return await self._run("snapshots", q)

    # ── Historical archive ──

    async def query_historical(
        self, platform: Platform, start: date, end: date
    ) -> List[HistoricalBucket]:
        def q(session: Session) -> List[HistoricalBucket]:
            rows = session.exec(
                select(HistoricalWeekRecord)
                .where(
                    HistoricalWeekRecord.platform == platform.value,
                    HistoricalWeekRecord.end_date >= start,
                    HistoricalWeekRecord.start_date <= end,
                )
                .order_by(HistoricalWeekRecord.start_date)
            ).all()
            return [
                HistoricalBucket(
                    platform=platform,
                    start_date=r.start_date,
                    end_date=r.end_date,
                    views=r.views,
                    likes=r.likes,
                    comments=r.comments,
                    shares=r.shares,
                    saves=r.saves,
                )
                for r in rows
            ]

        return await self._run("historical", q)

    # ── Identity ──

    async def campaign_assignments(
        self, campaign_id: str, employee_id: str, platform: Platform
    ) -> List[str]:
        def q(session: Session) -> List[str]:
            rows = session.exec(
                select(EmployeeParticipant.handle).where(
                    EmployeeParticipant.campaign_id == campaign_id,
                    EmployeeParticipant.employee_id == employee_id,
                    EmployeeParticipant.platform == platform.value,
                )
            ).all()
            return normalize_handles(platform, rows)

        return await self._run("employee_participants", q)

    async def campaign_participants(
        self, campaign_id: str, platform: Platform
    ) -> List[str]:
        def q(session: Session) -> List[str]:
            rows = session.exec(
                select(CampaignParticipant.handle).where(
                    CampaignParticipant.campaign_id == campaign_id,
                    CampaignParticipant.platform == platform.value,
                )
            ).all()
            return normalize_handles(platform, rows)

        return await self._run("campaign_participants", q)

    async def user_handles(self, user_id: str, platform: Platform) -> List[str]:
        def q(session: Session) -> List[str]:
            rows = session.exec(
                select(UserHandle.handle).where(
                    UserHandle.user_id == user_id,
                    UserHandle.platform == platform.value,
                )
            ).all()
            return normalize_handles(platform, rows)

        return await self._run("user_handles", q)

    async def profile_handle(self, user_id: str, platform: Platform) -> Optional[str]:
        def q(session: Session) -> Optional[str]:
            user = session.get(User, user_id)
            if user is None:
                return None
            return normalize_handle(platform, getattr(user, PROFILE_COLUMNS[platform])) or None

        return await self._run("users", q)

    async def campaign_members(self, campaign_id: str) -> List[str]:
        def q(session: Session) -> List[str]:
            grouped = session.exec(
                select(EmployeeGroup.employee_id)
                .where(EmployeeGroup.campaign_id == campaign_id)
                .order_by(EmployeeGroup.id)
            ).all()
            assigned = session.exec(
                select(EmployeeParticipant.employee_id)
                .where(EmployeeParticipant.campaign_id == campaign_id)
                .order_by(EmployeeParticipant.id)
            ).all()
            return list(dict.fromkeys([*grouped, *assigned]))

        return await self._run("employee_groups", q)

    async def get_campaign(self, campaign_id: str) -> Optional[CampaignInfo]:
        def q(session: Session) -> Optional[CampaignInfo]:
            c = session.get(Campaign, campaign_id)
            return _campaign_info(c) if c else None

        return await self._run("campaigns", q)

    async def list_campaigns(self) -> List[CampaignInfo]:
        def q(session: Session) -> List[CampaignInfo]:
            rows = session.exec(select(Campaign).order_by(Campaign.name, Campaign.id)).all()
            return [_campaign_info(c) for c in rows]

        return await self._run("campaigns", q)

    async def get_users(self, user_ids: Sequence[str]) -> Dict[str, UserInfo]:
        if not user_ids:
            return {}

        def q(session: Session) -> Dict[str, UserInfo]:
            rows = session.exec(select(User).where(User.id.in_(list(user_ids)))).all()
            return {u.id: _user_info(u) for u in rows}

        return await self._run("users", q)

    async def all_user_ids(self) -> List[str]:
        def q(session: Session) -> List[str]:
            return list(session.exec(select(User.id).order_by(User.id)).all())

        return await self._run("users", q)

    async def all_handles(self, platform: Platform) -> List[str]:
        def q(session: Session) -> List[str]:
            mapped = session.exec(
                select(UserHandle.handle).where(UserHandle.platform == platform.value)
            ).all()
            column = getattr(User, PROFILE_COLUMNS[platform])
            profiles = session.exec(select(column).where(column.is_not(None))).all()
            return normalize_handles(platform, [*mapped, *profiles])

        return await self._run("all_handles", q)

    async def mirror_youtube_channels(
        self, campaign_id: str, employee_id: str, channel_ids: Sequence[str]
    ) -> None:
        channels = normalize_handles(Platform.YOUTUBE, channel_ids)
        if not channels:
            return

        def q(session: Session) -> int:
            written = 0
            for channel in channels:
                existing = session.exec(
                    select(EmployeeParticipant).where(
                        EmployeeParticipant.campaign_id == campaign_id,
                        EmployeeParticipant.employee_id == employee_id,
                        EmployeeParticipant.platform == Platform.YOUTUBE.value,
                        EmployeeParticipant.handle == channel,
                    )
                ).first()
                if not existing:
                    session.add(
                        EmployeeParticipant(
                            campaign_id=campaign_id,
                            employee_id=employee_id,
                            platform=Platform.YOUTUBE.value,
                            handle=channel,
                        )
                    )
                    written += 1
            session.commit()
            return written

        written = await self._run("youtube_mirror", q)
        logger.info(
            f"🔁 Mirrored {len(channels)} YouTube channel(s), {written} new row(s)",
            extra={"entity_id": employee_id, "platform": Platform.YOUTUBE.value},
        )
