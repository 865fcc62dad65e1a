"""PULSE — Identity Resolver.

Maps an employee (optionally inside a campaign) to platform handles by
walking an ordered chain of lookup strategies:

  1. per-campaign, per-employee assignment
  2. campaign-wide participant list
  3. global per-user mapping
  4. canonical handle on the user profile

The first strategy that yields handles wins, unless ``merge=True``, in
which case every tier is unioned in chain order.

A YouTube channel found through a user-owned tier (3 or 4) while resolving
inside a campaign is mirrored back into tiers 1 and 2.
"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Dict, List, Optional, Sequence

from pydantic import BaseModel

from pulse.adapters.base import IdentityStore
from pulse.core.concurrency import gather_all
from pulse.core.errors import AdapterUnavailable, ErrorKind
from pulse.core.handles import normalize_handles
from pulse.core.logging import get_logger
from pulse.core.metric_registry import ALL_PLATFORMS, Platform

logger = get_logger("analyzer.identity")


class ResolutionSource(str, Enum):
    CAMPAIGN_ASSIGNMENT = "campaign_assignment"
    CAMPAIGN_PARTICIPANTS = "campaign_participants"
    USER_MAPPING = "user_mapping"
    USER_PROFILE = "user_profile"
    NONE = "none"


USER_OWNED_SOURCES = (ResolutionSource.USER_MAPPING, ResolutionSource.USER_PROFILE)


class StrategyResult(BaseModel):
    handles: List[str] = []
    found: bool = False


class PlatformResolution(BaseModel):
    platform: Platform
    handles: List[str] = []
    source: ResolutionSource = ResolutionSource.NONE


class IdentityResolution(BaseModel):
    employee_id: str
    campaign_id: Optional[str] = None
    platforms: Dict[Platform, PlatformResolution] = {}

    @property
    def handles(self) -> Dict[Platform, List[str]]:
        return {p: r.handles for p, r in self.platforms.items()}

    def is_empty(self) -> bool:
        return not any(r.handles for r in self.platforms.values())


class CampaignResolution(BaseModel):
    campaign_id: str
    handles: Dict[Platform, List[str]] = {}
    members: Dict[str, IdentityResolution] = {}


# ── Strategies ──


class ResolverStrategy(ABC):
    source: ResolutionSource

    @abstractmethod
    async def lookup(
        self,
        store: IdentityStore,
        employee_id: str,
        campaign_id: Optional[str],
        platform: Platform,
    ) -> StrategyResult:
        ...

    @staticmethod
    def _result(platform: Platform, raws: Sequence[Optional[str]]) -> StrategyResult:
        handles = normalize_handles(platform, raws)
        return StrategyResult(handles=handles, found=bool(handles))


class CampaignAssignmentStrategy(ResolverStrategy):
    source = ResolutionSource.CAMPAIGN_ASSIGNMENT

    async def lookup(self, store, employee_id, campaign_id, platform):
        if not campaign_id:
            return StrategyResult()
        raws = await store.campaign_assignments(campaign_id, employee_id, platform)
        return self._result(platform, raws)


class CampaignParticipantsStrategy(ResolverStrategy):
    """Whole-campaign fallback: the employee inherits the campaign's list."""

    source = ResolutionSource.CAMPAIGN_PARTICIPANTS

    async def lookup(self, store, employee_id, campaign_id, platform):
        if not campaign_id:
            return StrategyResult()
        raws = await store.campaign_participants(campaign_id, platform)
        return self._result(platform, raws)


class UserMappingStrategy(ResolverStrategy):
    source = ResolutionSource.USER_MAPPING

    async def lookup(self, store, employee_id, campaign_id, platform):
        raws = await store.user_handles(employee_id, platform)
        return self._result(platform, raws)


class UserProfileStrategy(ResolverStrategy):
    source = ResolutionSource.USER_PROFILE

    async def lookup(self, store, employee_id, campaign_id, platform):
        raw = await store.profile_handle(employee_id, platform)
        return self._result(platform, [raw])


DEFAULT_CHAIN: List[ResolverStrategy] = [
    CampaignAssignmentStrategy(),
    CampaignParticipantsStrategy(),
    UserMappingStrategy(),
    UserProfileStrategy(),
]


class IdentityResolver:
    """Resolves employees and campaigns to handle sets."""

    def __init__(
        self,
        store: IdentityStore,
        chain: Optional[List[ResolverStrategy]] = None,
        mirror_youtube: bool = True,
    ):
        self.store = store
        self.chain = list(chain) if chain is not None else list(DEFAULT_CHAIN)
        self.mirror_youtube = mirror_youtube

    async def resolve_platform(
        self,
        employee_id: str,
        platform: Platform,
        campaign_id: Optional[str] = None,
        merge: bool = False,
    ) -> PlatformResolution:
        if merge:
            results = await gather_all(
                *(s.lookup(self.store, employee_id, campaign_id, platform) for s in self.chain)
            )
            handles: List[str] = []
            source = ResolutionSource.NONE
            for strategy, result in zip(self.chain, results):
                if result.found and source == ResolutionSource.NONE:
                    source = strategy.source
                handles.extend(h for h in result.handles if h not in handles)
            resolution = PlatformResolution(platform=platform, handles=handles, source=source)
        else:
            resolution = PlatformResolution(platform=platform)
            for strategy in self.chain:
                result = await strategy.lookup(self.store, employee_id, campaign_id, platform)
                if result.found:
                    resolution = PlatformResolution(
                        platform=platform, handles=result.handles, source=strategy.source
                    )
                    break

        if resolution.source == ResolutionSource.NONE:
            logger.info(
                f"No {platform.value} handle for employee {employee_id}",
                extra={
                    "kind": ErrorKind.IDENTITY_NOT_FOUND.value,
                    "entity_id": employee_id,
                    "platform": platform.value,
                },
            )
        elif (
            platform == Platform.YOUTUBE
            and campaign_id
            and self.mirror_youtube
            and resolution.source in USER_OWNED_SOURCES
        ):
            await self._mirror(campaign_id, employee_id, resolution.handles)
        return resolution

    async def _mirror(self, campaign_id: str, employee_id: str, channels: List[str]) -> None:
        try:
            await self.store.mirror_youtube_channels(campaign_id, employee_id, channels)
        except AdapterUnavailable as e:
            logger.warning(
                f"⚠️ YouTube mirror failed for employee {employee_id}: {e.message}",
                extra={"kind": e.kind.value, "entity_id": employee_id},
            )

    async def resolve(
        self,
        employee_id: str,
        campaign_id: Optional[str] = None,
        merge: bool = False,
    ) -> IdentityResolution:
        """Resolve every platform for one employee, platforms in parallel."""
        results = await gather_all(
            *(
                self.resolve_platform(employee_id, p, campaign_id, merge)
                for p in ALL_PLATFORMS
            )
        )
        return IdentityResolution(
            employee_id=employee_id,
            campaign_id=campaign_id,
            platforms={r.platform: r for r in results},
        )

    async def resolve_campaign(self, campaign_id: str) -> CampaignResolution:
        """Campaign-wide handles plus each member's own resolution."""
        member_ids = await self.store.campaign_members(campaign_id)
        participant_lists = await gather_all(
            *(self.store.campaign_participants(campaign_id, p) for p in ALL_PLATFORMS)
        )
        member_resolutions = await gather_all(
            *(self.resolve(m, campaign_id) for m in member_ids)
        )

        handles: Dict[Platform, List[str]] = {}
        for platform, raws in zip(ALL_PLATFORMS, participant_lists):
            merged = normalize_handles(platform, raws)
            for res in member_resolutions:
                merged.extend(h for h in res.handles.get(platform, []) if h not in merged)
            handles[platform] = merged

        return CampaignResolution(
            campaign_id=campaign_id,
            handles=handles,
            members={r.employee_id: r for r in member_resolutions},
        )

    async def resolve_all(self) -> Dict[Platform, List[str]]:
        """Every known handle per platform, for global scope."""
        lists = await gather_all(*(self.store.all_handles(p) for p in ALL_PLATFORMS))
        return {p: normalize_handles(p, raws) for p, raws in zip(ALL_PLATFORMS, lists)}
