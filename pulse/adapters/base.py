"""PULSE — Abstract Store Adapters.

The analyzer only talks to these interfaces. Implementations own their
timeouts; the engine never retries a failed query.
"""

from abc import ABC, abstractmethod
from datetime import date
from typing import Dict, List, Optional, Sequence

from pulse.core.metric_registry import Platform
from pulse.models.normalized_models import (
    CampaignInfo,
    HistoricalBucket,
    RawPost,
    Snapshot,
    UserInfo,
)


class PostStore(ABC):
    @abstractmethod
    async def query_posts(
        self,
        platform: Platform,
        handles: Sequence[str],
        start: date,
        end: date,
    ) -> List[RawPost]:
        """Raw posts by ``handles`` published within ``start``..``end`` (UTC days).

        Rows are ordered by view count descending. Duplicates are returned
        as stored.
        """
        ...


class SnapshotStore(ABC):
    @abstractmethod
    async def query_snapshots(
        self,
        user_ids: Sequence[str],
        platform: Platform,
        start: date,
        end: date,
    ) -> List[Snapshot]:
        """Snapshots captured within ``start``..``end``, ordered by (user_id, captured_at)."""
        ...


class HistoricalArchive(ABC):
    @abstractmethod
    async def query_historical(
        self, platform: Platform, start: date, end: date
    ) -> List[HistoricalBucket]:
        """Archive rows whose ``start_date``..``end_date`` overlaps ``start``..``end``."""
        ...


class IdentityStore(ABC):
    """Lookups behind the identity resolution chain, plus campaign metadata."""

    @abstractmethod
    async def campaign_assignments(
        self, campaign_id: str, employee_id: str, platform: Platform
    ) -> List[str]:
        """Handles assigned to the employee for this campaign."""
        ...

    @abstractmethod
    async def campaign_participants(
        self, campaign_id: str, platform: Platform
    ) -> List[str]:
        ...

    @abstractmethod
    async def user_handles(self, user_id: str, platform: Platform) -> List[str]:
        ...

    @abstractmethod
    async def profile_handle(self, user_id: str, platform: Platform) -> Optional[str]:
        ...

    @abstractmethod
    async def campaign_members(self, campaign_id: str) -> List[str]:
        """Employee ids assigned to the campaign."""
        ...

    @abstractmethod
    async def get_campaign(self, campaign_id: str) -> Optional[CampaignInfo]:
        ...

    @abstractmethod
    async def list_campaigns(self) -> List[CampaignInfo]:
        ...

    @abstractmethod
    async def get_users(self, user_ids: Sequence[str]) -> Dict[str, UserInfo]:
        ...

    @abstractmethod
    async def all_user_ids(self) -> List[str]:
        ...

    @abstractmethod
    async def all_handles(self, platform: Platform) -> List[str]:
        """Every handle known for the platform, from mappings and profiles."""
        ...

    @abstractmethod
    async def mirror_youtube_channels(
        self, campaign_id: str, employee_id: str, channel_ids: Sequence[str]
    ) -> None:
        """Upsert channel ids into this employee's campaign assignments only."""
        ...
