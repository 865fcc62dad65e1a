from datetime import date, datetime, timezone
from typing import Dict, List, Optional, Sequence

import pytest
from sqlalchemy.pool import StaticPool
from sqlmodel import create_engine

from pulse.adapters.base import HistoricalArchive, IdentityStore, PostStore, SnapshotStore
from pulse.config import AccountingConfig
from pulse.core.errors import AdapterUnavailable
from pulse.core.handles import normalize_handles
from pulse.core.metric_registry import Platform
from pulse.database import init_db
from pulse.models.normalized_models import (
    CampaignInfo,
    HistoricalBucket,
    RawPost,
    Snapshot,
    UserInfo,
)

PROFILE_ATTRS = {
    Platform.TIKTOK: "tiktok_username",
    Platform.INSTAGRAM: "instagram_username",
    Platform.YOUTUBE: "youtube_channel_id",
}


def utc(y, m, d, h=12):
    return datetime(y, m, d, h, tzinfo=timezone.utc)


def post(platform, external_id, handle, day, views=0, likes=0, comments=0, shares=0, saves=0, text=None):
    return RawPost(
        platform=platform,
        external_id=external_id,
        handle=handle,
        posted_at=datetime.combine(day, datetime.min.time(), tzinfo=timezone.utc).replace(hour=12),
        views=views,
        likes=likes,
        comments=comments,
        shares=shares,
        saves=saves,
        text=text,
    )


def snap(user_id, platform, day, views=0, likes=0, hour=12):
    return Snapshot(
        user_id=user_id,
        platform=platform,
        captured_at=datetime.combine(day, datetime.min.time(), tzinfo=timezone.utc).replace(hour=hour),
        views=views,
        likes=likes,
    )


class InMemoryStore(PostStore, SnapshotStore, HistoricalArchive, IdentityStore):
    """Dict-backed store implementing every adapter contract."""

    def __init__(self):
        self.posts: List[RawPost] = []
        self.snapshots: List[Snapshot] = []
        self.historical: List[HistoricalBucket] = []
        self.campaigns: Dict[str, CampaignInfo] = {}
        self.users: Dict[str, UserInfo] = {}
        self.members: Dict[str, List[str]] = {}
        self.assignments: Dict[tuple, List[str]] = {}
        self.participants: Dict[tuple, List[str]] = {}
        self.mappings: Dict[tuple, List[str]] = {}
        self.mirrored: List[tuple] = []
        self.fail_posts = False
        self.fail_mirror = False
        self.calls: List[str] = []

    async def query_posts(self, platform, handles, start, end):
        self.calls.append("posts")
        if self.fail_posts:
            raise AdapterUnavailable("posts", "connection refused")
        wanted = set(normalize_handles(platform, handles))
        rows = [
            p
            for p in self.posts
            if p.platform == platform
            and p.handle in wanted
            and start <= p.post_date <= end
        ]
        return sorted(rows, key=lambda p: -p.views)

    async def query_snapshots(self, user_ids, platform, start, end):
        self.calls.append("snapshots")
        rows = [
            s
            for s in self.snapshots
            if s.user_id in user_ids
            and s.platform == platform
            and start <= s.capture_date <= end
        ]
        return sorted(rows, key=lambda s: (s.user_id, s.captured_at))

    async def query_historical(self, platform, start, end):
        self.calls.append("historical")
        return [
            b
            for b in self.historical
            if b.platform == platform and b.end_date >= start and b.start_date <= end
        ]

    async def campaign_assignments(self, campaign_id, employee_id, platform):
        return list(self.assignments.get((campaign_id, employee_id, platform), []))

    async def campaign_participants(self, campaign_id, platform):
        return list(self.participants.get((campaign_id, platform), []))

    async def user_handles(self, user_id, platform):
        return list(self.mappings.get((user_id, platform), []))

    async def profile_handle(self, user_id, platform) -> Optional[str]:
        user = self.users.get(user_id)
        return getattr(user, PROFILE_ATTRS[platform]) if user else None

    async def campaign_members(self, campaign_id):
        return list(self.members.get(campaign_id, []))

    async def get_campaign(self, campaign_id):
        return self.campaigns.get(campaign_id)

    async def list_campaigns(self):
        return list(self.campaigns.values())

    async def get_users(self, user_ids: Sequence[str]):
        return {u: self.users[u] for u in user_ids if u in self.users}

    async def all_user_ids(self):
        return sorted(self.users)

    async def all_handles(self, platform):
        mapped = [h for (u, p), hs in self.mappings.items() if p == platform for h in hs]
        profiles = [getattr(u, PROFILE_ATTRS[platform]) for u in self.users.values()]
        return normalize_handles(platform, [*mapped, *profiles])

    async def mirror_youtube_channels(self, campaign_id, employee_id, channel_ids):
        if self.fail_mirror:
            raise AdapterUnavailable("youtube_mirror", "read-only replica")
        self.mirrored.append((campaign_id, employee_id, tuple(channel_ids)))
        key = (campaign_id, employee_id, Platform.YOUTUBE)
        self.assignments[key] = list(dict.fromkeys([*self.assignments.get(key, []), *channel_ids]))


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def config():
    return AccountingConfig(
        realtime_cutoff=date(2026, 2, 5),
        accrual_start_cutoff=date(2024, 1, 1),
        historical_archive_end=date(2026, 2, 4),
        lookback_days=30,
    )


@pytest.fixture
def sql_engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(engine)
    return engine
