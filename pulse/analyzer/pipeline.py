"""PULSE — Series Pipeline Orchestrator.

Runs the full data flow for one request:
  resolve identities → query stores → dedup + hashtag filter
  → post-date sums or accrual deltas → bucket → splice archive
  → zero-fill + combine platforms → totals

Leaderboards and top-post listings reuse the same steps.

``now`` and the cutoffs are captured once per request in a
``RequestContext`` and threaded through every step.
"""

import time
from datetime import date, datetime, timedelta, timezone
from typing import Dict, List, Optional, Sequence, Tuple

from pydantic import BaseModel

from pulse.adapters.base import HistoricalArchive, IdentityStore, PostStore, SnapshotStore
from pulse.analyzer.accrual import accrual_by_user, mask_before, posts_daily, sum_daily
from pulse.analyzer.bucketing import (
    bucket_keys,
    parse_alignment,
    parse_granularity,
    parse_mode,
    rebucket,
    to_utc_date,
    validate_range,
)
from pulse.analyzer.dedup import dedupe_posts
from pulse.analyzer.hashtag_filter import filter_posts, normalize_hashtags
from pulse.analyzer.historical import (
    archive_window,
    historical_partials,
    realtime_window,
    seam_bucket,
    splice,
)
from pulse.analyzer.identity_resolver import IdentityResolver
from pulse.analyzer.merge import (
    add_partials,
    build_platform_series,
    combine_platforms,
    compute_totals,
)
from pulse.config import AccountingConfig
from pulse.core.concurrency import gather_all
from pulse.core.errors import EntityNotFound
from pulse.core.logging import elapsed_ms, get_logger
from pulse.core.metric_registry import ALL_PLATFORMS, Platform, parse_platform
from pulse.models.normalized_models import CampaignInfo, Metrics, RawPost
from pulse.models.series_models import (
    AccountingMode,
    EntitySeries,
    Granularity,
    LeaderboardEntry,
    PlatformSeries,
    PostSummary,
    Scope,
    SeriesPoint,
    SeriesRequest,
    SeriesResponse,
    WeekAlignment,
)

logger = get_logger("analyzer.pipeline")

Partials = Dict[Platform, Dict[date, Metrics]]

LEADERBOARD_MAX = 100
TOP_POSTS_MAX = 50


class RequestContext(BaseModel):
    """Everything fixed for the lifetime of one request."""

    scope: Scope
    now: datetime
    start: date
    end: date
    granularity: Granularity
    mode: AccountingMode
    alignment: WeekAlignment
    config: AccountingConfig
    include_historical: bool
    respect_hashtags: bool = True
    hashtags_in_accrual: bool = False
    snapshots_only: bool = False
    keys: List[date] = []
    realtime: Optional[Tuple[date, date]] = None
    archive: Optional[Tuple[date, date]] = None

    model_config = {"frozen": True}

    @property
    def cutoff(self) -> date:
        return self.config.realtime_cutoff


class SeriesEngine:
    """Builds employee, campaign and global series from the store adapters."""

    def __init__(
        self,
        posts: PostStore,
        snapshots: SnapshotStore,
        archive: HistoricalArchive,
        identities: IdentityStore,
        config: AccountingConfig,
        mirror_youtube: bool = True,
        default_window_days: int = 30,
    ):
        self.posts = posts
        self.snapshots = snapshots
        self.archive = archive
        self.identities = identities
        self.config = config
        self.default_window_days = default_window_days
        self.resolver = IdentityResolver(identities, mirror_youtube=mirror_youtube)

    # ─────────────────────────────────────────────
    # Request preparation
    # ─────────────────────────────────────────────

    def _resolve_dates(
        self, request: SeriesRequest, today: date, campaign: Optional[CampaignInfo]
    ) -> Tuple[date, date]:
        span = timedelta(days=self.default_window_days - 1)
        start = request.start or (campaign.start_date if campaign else None)
        end = request.end or (campaign.end_date if campaign else None)
        if start is None and end is None:
            end = today
            start = today - span
        elif start is None:
            start = end - span
        elif end is None:
            end = today if today >= start else start + span
        return start, end

    def prepare(
        self,
        scope: Scope,
        request: SeriesRequest,
        now: Optional[datetime] = None,
        campaign: Optional[CampaignInfo] = None,
    ) -> RequestContext:
        """Validate the request and pin its dates, cutoff and bucket keys."""
        now = now or datetime.now(timezone.utc)
        granularity = parse_granularity(request.granularity)
        mode = parse_mode(request.mode)
        start, end = self._resolve_dates(request, to_utc_date(now), campaign)
        validate_range(start, end)

        # The archive is a platform-wide aggregate; it only means something globally
        include_historical = scope == Scope.GLOBAL and request.include_historical is not False
        if request.alignment:
            alignment = parse_alignment(request.alignment)
        elif include_historical:
            alignment = WeekAlignment.CUTOFF
        else:
            alignment = WeekAlignment.CALENDAR

        if include_historical:
            realtime = realtime_window(start, end, self.config)
            archive = archive_window(start, end, self.config)
        else:
            realtime, archive = (start, end), None

        return RequestContext(
            scope=scope,
            now=now,
            start=start,
            end=end,
            granularity=granularity,
            mode=mode,
            alignment=alignment,
            config=self.config,
            include_historical=include_historical,
            respect_hashtags=request.respect_hashtags,
            hashtags_in_accrual=request.hashtags_in_accrual,
            snapshots_only=request.snapshots_only,
            keys=bucket_keys(start, end, granularity, alignment, self.config.realtime_cutoff),
            realtime=realtime,
            archive=archive,
        )

    async def _campaign(self, campaign_id: str) -> CampaignInfo:
        campaign = await self.identities.get_campaign(campaign_id)
        if campaign is None:
            raise EntityNotFound(f"Campaign {campaign_id} not found")
        return campaign

    # ─────────────────────────────────────────────
    # Per-platform daily values (real-time window only)
    # ─────────────────────────────────────────────

    async def _clean_posts(
        self,
        ctx: RequestContext,
        platform: Platform,
        handles: Sequence[str],
        hashtags: Sequence[str],
        apply_hashtags: bool,
    ) -> List[RawPost]:
        if not handles or ctx.realtime is None:
            return []
        rs, re_ = ctx.realtime
        raw = await self.posts.query_posts(platform, handles, rs, re_)
        posts = dedupe_posts(raw)
        if apply_hashtags:
            posts = filter_posts(posts, hashtags)
        return posts

    async def _postdate_daily(
        self,
        ctx: RequestContext,
        platform: Platform,
        handles: Sequence[str],
        hashtags: Sequence[str],
    ) -> Dict[date, Metrics]:
        posts = await self._clean_posts(ctx, platform, handles, hashtags, ctx.respect_hashtags)
        return posts_daily(posts)

    async def _accrual_daily(
        self,
        ctx: RequestContext,
        platform: Platform,
        user_handles: Dict[str, List[str]],
        hashtags: Sequence[str],
    ) -> Dict[date, Metrics]:
        """Snapshot deltas summed over users.

        A user whose deltas sum to zero is recomputed from their posts,
        masked before the accrual start cutoff, unless ``snapshots_only``.
        """
        if not user_handles or ctx.realtime is None:
            return {}
        rs, re_ = ctx.realtime
        lookback = ctx.config.lookback_days
        snaps = await self.snapshots.query_snapshots(
            list(user_handles), platform, rs - timedelta(days=lookback), re_
        )
        per_user = accrual_by_user(
            snaps, rs, re_, ctx.config.accrual_start_cutoff, lookback
        )

        fallback_users = []
        if not ctx.snapshots_only:
            fallback_users = [
                uid
                for uid, handles in user_handles.items()
                if handles and Metrics.total(per_user.get(uid, {}).values()).is_zero()
            ]
        apply_hashtags = ctx.respect_hashtags and ctx.hashtags_in_accrual
        fallback_posts = await gather_all(
            *(
                self._clean_posts(ctx, platform, user_handles[uid], hashtags, apply_hashtags)
                for uid in fallback_users
            )
        )
        for uid, posts in zip(fallback_users, fallback_posts):
            if posts:
                logger.debug(
                    f"Accrual fallback to posts for {uid}",
                    extra={"entity_id": uid, "platform": platform.value},
                )
                per_user[uid] = mask_before(
                    posts_daily(posts), ctx.config.accrual_start_cutoff
                )
        return sum_daily(per_user.values())

    async def _entity_partials(
        self,
        ctx: RequestContext,
        handles: Dict[Platform, List[str]],
        user_handles: Dict[Platform, Dict[str, List[str]]],
        hashtags: Sequence[str],
    ) -> Partials:
        """Bucketed real-time partials for every platform, queried in parallel."""
        if ctx.mode == AccountingMode.ACCRUAL:
            dailies = await gather_all(
                *(
                    self._accrual_daily(ctx, p, user_handles.get(p, {}), hashtags)
                    for p in ALL_PLATFORMS
                )
            )
        else:
            dailies = await gather_all(
                *(
                    self._postdate_daily(ctx, p, handles.get(p, []), hashtags)
                    for p in ALL_PLATFORMS
                )
            )
        return {p: self._bucketed(ctx, d) for p, d in zip(ALL_PLATFORMS, dailies)}

    def _bucketed(self, ctx: RequestContext, daily: Dict[date, Metrics]) -> Dict[date, Metrics]:
        return rebucket(daily, ctx.granularity, ctx.alignment, ctx.cutoff)

    async def _historical(self, ctx: RequestContext) -> Partials:
        if ctx.archive is None:
            return {}
        a_start, a_end = ctx.archive
        rows = await gather_all(
            *(self.archive.query_historical(p, a_start, a_end) for p in ALL_PLATFORMS)
        )
        return {
            p: historical_partials(
                buckets, ctx.start, ctx.end, ctx.granularity, ctx.alignment, ctx.cutoff
            )
            for p, buckets in zip(ALL_PLATFORMS, rows)
        }

    # ─────────────────────────────────────────────
    # Assembly
    # ─────────────────────────────────────────────

    def _assemble(
        self, ctx: RequestContext, partials: Partials
    ) -> Tuple[List[SeriesPoint], List[PlatformSeries], Metrics]:
        per_platform = build_platform_series(partials, ctx.keys)
        series_total = combine_platforms(
            {ps.platform: ps.series for ps in per_platform}, ctx.keys
        )
        return series_total, per_platform, compute_totals(series_total)

    def _entity_series(
        self, ctx: RequestContext, entity_id: str, name: str, partials: Partials
    ) -> EntitySeries:
        series, _, totals = self._assemble(ctx, partials)
        return EntitySeries(entity_id=entity_id, name=name, series=series, totals=totals)

    def _response(
        self,
        ctx: RequestContext,
        entity_id: Optional[str],
        partials: Partials,
        handles: Dict[Platform, List[str]],
        hashtags: Sequence[str],
        per_entity: Optional[List[EntitySeries]],
        t0: float,
    ) -> SeriesResponse:
        series_total, per_platform, totals = self._assemble(ctx, partials)
        duration_ms = elapsed_ms(t0)
        logger.info(
            f"📈 {ctx.scope.value} series ready: {len(ctx.keys)} {ctx.granularity.value} "
            f"buckets, {ctx.mode.value}, views={totals.views}",
            extra={
                "scope": ctx.scope.value,
                "entity_id": entity_id,
                "duration_ms": duration_ms,
            },
        )
        return SeriesResponse(
            scope=ctx.scope,
            entity_id=entity_id,
            granularity=ctx.granularity,
            mode=ctx.mode,
            alignment=ctx.alignment,
            range_start=ctx.start,
            range_end=ctx.end,
            cutoff=ctx.cutoff,
            series_total=series_total,
            series_per_platform=per_platform,
            totals=totals,
            per_entity_series=per_entity,
            required_hashtags=list(hashtags),
            resolved_handles={p.value: list(hs) for p, hs in handles.items()},
        )

    # ─────────────────────────────────────────────
    # Scopes
    # ─────────────────────────────────────────────

    async def employee_series(
        self,
        employee_id: str,
        request: SeriesRequest,
        now: Optional[datetime] = None,
    ) -> SeriesResponse:
        """Series for one employee, optionally restricted to a campaign's handles and hashtags."""
        t0 = time.monotonic()
        campaign = await self._campaign(request.campaign_id) if request.campaign_id else None
        ctx = self.prepare(Scope.EMPLOYEE, request, now, campaign)
        hashtags = normalize_hashtags(campaign.required_hashtags if campaign else None)

        resolution = await self.resolver.resolve(employee_id, request.campaign_id)
        handles = resolution.handles
        user_handles = {p: {employee_id: hs} for p, hs in handles.items()}
        partials = await self._entity_partials(ctx, handles, user_handles, hashtags)
        return self._response(ctx, employee_id, partials, handles, hashtags, None, t0)

    async def campaign_series(
        self,
        campaign_id: str,
        request: SeriesRequest,
        now: Optional[datetime] = None,
    ) -> SeriesResponse:
        """Campaign totals plus one series per member.

        Post-date totals count the union of every handle once. Accrual totals
        are the sum of the members' snapshot deltas.
        """
        t0 = time.monotonic()
        campaign = await self._campaign(campaign_id)
        ctx = self.prepare(Scope.CAMPAIGN, request, now, campaign)
        hashtags = normalize_hashtags(campaign.required_hashtags)

        resolution = await self.resolver.resolve_campaign(campaign_id)
        member_ids = list(resolution.members)
        users = await self.identities.get_users(member_ids)

        member_partials = await gather_all(
            *(
                self._entity_partials(
                    ctx,
                    resolution.members[m].handles,
                    {p: {m: hs} for p, hs in resolution.members[m].handles.items()},
                    hashtags,
                )
                for m in member_ids
            )
        )
        per_entity = [
            self._entity_series(ctx, m, users[m].full_name if m in users else "", partials)
            for m, partials in zip(member_ids, member_partials)
        ]

        if ctx.mode == AccountingMode.ACCRUAL:
            partials = {
                p: add_partials(*(mp.get(p, {}) for mp in member_partials))
                for p in ALL_PLATFORMS
            }
        else:
            partials = await self._entity_partials(ctx, resolution.handles, {}, hashtags)
        return self._response(
            ctx, campaign_id, partials, resolution.handles, hashtags, per_entity, t0
        )

    async def global_series(
        self,
        request: SeriesRequest,
        now: Optional[datetime] = None,
    ) -> SeriesResponse:
        """Everything tracked, with the weekly archive spliced in before the cutoff."""
        t0 = time.monotonic()
        ctx = self.prepare(Scope.GLOBAL, request, now)

        handles, user_ids, campaigns = await gather_all(
            self.resolver.resolve_all(),
            self.identities.all_user_ids(),
            self.identities.list_campaigns(),
        )
        # Users are accrued without post fallback here; handles are not per user
        user_handles = {p: {u: [] for u in user_ids} for p in ALL_PLATFORMS}

        realtime, historical = await gather_all(
            self._entity_partials(ctx, handles, user_handles, []),
            self._historical(ctx),
        )
        partials = {
            p: splice(historical.get(p, {}), realtime.get(p, {})) for p in ALL_PLATFORMS
        }
        seam = seam_bucket(ctx.granularity, ctx.alignment, ctx.cutoff)
        if ctx.include_historical and seam is not None and ctx.start <= seam <= ctx.end:
            logger.debug(f"Seam bucket {seam} combines archive and real-time values")

        per_entity = await gather_all(
            *(self._campaign_entity(ctx, c) for c in campaigns)
        )
        return self._response(ctx, None, partials, handles, [], per_entity, t0)

    async def _campaign_entity(self, ctx: RequestContext, campaign: CampaignInfo) -> EntitySeries:
        resolution = await self.resolver.resolve_campaign(campaign.id)
        hashtags = normalize_hashtags(campaign.required_hashtags)
        user_handles = {
            p: {m: r.handles.get(p, []) for m, r in resolution.members.items()}
            for p in ALL_PLATFORMS
        }
        partials = await self._entity_partials(ctx, resolution.handles, user_handles, hashtags)
        return self._entity_series(ctx, campaign.id, campaign.name, partials)

    # ─────────────────────────────────────────────
    # Rankings and post listing
    # ─────────────────────────────────────────────

    async def campaign_leaderboard(
        self,
        campaign_id: str,
        request: SeriesRequest,
        now: Optional[datetime] = None,
        top: int = 20,
    ) -> List[LeaderboardEntry]:
        """Campaign members ranked by total views, ties broken by id."""
        top = max(1, min(LEADERBOARD_MAX, top))
        response = await self.campaign_series(campaign_id, request, now)
        ranked = sorted(
            response.per_entity_series or [],
            key=lambda e: (-e.totals.views, e.entity_id),
        )
        return [
            LeaderboardEntry(rank=i, entity_id=e.entity_id, name=e.name, totals=e.totals)
            for i, e in enumerate(ranked[:top], start=1)
        ]

    async def _campaign_post_rows(
        self, ctx: RequestContext, campaign: CampaignInfo
    ) -> List[RawPost]:
        hashtags = normalize_hashtags(campaign.required_hashtags)
        resolution = await self.resolver.resolve_campaign(campaign.id)
        lists = await gather_all(
            *(
                self._clean_posts(
                    ctx, p, resolution.handles.get(p, []), hashtags, ctx.respect_hashtags
                )
                for p in ALL_PLATFORMS
            )
        )
        return [p for batch in lists for p in batch]

    async def campaign_posts(
        self,
        campaign_id: str,
        request: SeriesRequest,
        now: Optional[datetime] = None,
    ) -> List[PostSummary]:
        """Deduplicated, hashtag-filtered posts of a campaign, most viewed first."""
        campaign = await self._campaign(campaign_id)
        ctx = self.prepare(Scope.CAMPAIGN, request, now, campaign)
        posts = await self._campaign_post_rows(ctx, campaign)
        return [_summary(p) for p in sorted(posts, key=_most_viewed)]

    async def top_posts(
        self,
        request: SeriesRequest,
        now: Optional[datetime] = None,
        limit: int = 10,
        platform: Optional[str] = None,
    ) -> List[PostSummary]:
        """Most viewed posts of one campaign, or of every campaign together.

        Each campaign's posts are filtered by that campaign's hashtags before
        the lists are merged, so a post counts once however many campaigns
        it qualifies for.
        """
        limit = max(1, min(TOP_POSTS_MAX, limit))
        only = parse_platform(platform) if platform else None
        if request.campaign_id:
            campaigns = [await self._campaign(request.campaign_id)]
            ctx = self.prepare(Scope.CAMPAIGN, request, now, campaigns[0])
        else:
            campaigns = await self.identities.list_campaigns()
            ctx = self.prepare(Scope.CAMPAIGN, request, now)

        lists = await gather_all(*(self._campaign_post_rows(ctx, c) for c in campaigns))
        posts = dedupe_posts([p for batch in lists for p in batch])
        if only is not None:
            posts = [p for p in posts if p.platform == only]
        posts.sort(key=_most_viewed)
        logger.info(
            f"🏆 Top posts: {min(limit, len(posts))} of {len(posts)} across "
            f"{len(campaigns)} campaign(s)",
            extra={"entity_id": request.campaign_id},
        )
        return [_summary(p) for p in posts[:limit]]


def _most_viewed(p: RawPost) -> Tuple[int, str, str]:
    return (-p.views, p.platform.value, p.external_id)


def _summary(p: RawPost) -> PostSummary:
    return PostSummary(
        platform=p.platform,
        external_id=p.external_id,
        handle=p.handle,
        posted_at=p.posted_at.isoformat(),
        views=p.views,
        likes=p.likes,
        comments=p.comments,
        shares=p.shares,
        saves=p.saves,
        text=p.text,
    )
