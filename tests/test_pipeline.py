from datetime import date

import pytest

from pulse.analyzer.pipeline import SeriesEngine
from pulse.core.errors import AdapterUnavailable, EntityNotFound, InvalidRange
from pulse.core.metric_registry import Platform
from pulse.models.normalized_models import CampaignInfo, HistoricalBucket, UserInfo
from pulse.models.series_models import (
    AccountingMode,
    Granularity,
    Scope,
    SeriesRequest,
    WeekAlignment,
)

from conftest import post, snap, utc

TT = Platform.TIKTOK
IG = Platform.INSTAGRAM
NOW = utc(2024, 1, 20)


def engine_for(store, config):
    return SeriesEngine(store, store, store, store, config)


@pytest.fixture
def campaign_store(store):
    store.campaigns["c1"] = CampaignInfo(
        id="c1", name="Launch", start_date=date(2024, 1, 1), end_date=date(2024, 1, 14)
    )
    store.members["c1"] = ["E"]
    store.users["E"] = UserInfo(id="E", full_name="Erin")
    store.assignments[("c1", "E", TT)] = ["alice"]
    store.assignments[("c1", "E", IG)] = ["alice_ig"]
    for _ in range(2):
        store.posts.append(post(TT, "tt1", "alice", date(2024, 1, 3), views=1000, likes=50))
    store.posts.append(post(IG, "ig1", "alice_ig", date(2024, 1, 10), views=200))
    return store


@pytest.mark.asyncio
async def test_employee_postdate_daily_series(campaign_store, config):
    resp = await engine_for(campaign_store, config).employee_series(
        "E", SeriesRequest(campaign_id="c1"), now=NOW
    )
    points = {p.date: p.views for p in resp.series_total}
    assert len(resp.series_total) == 14
    assert points[date(2024, 1, 3)] == 1000
    assert points[date(2024, 1, 10)] == 200
    assert sum(1 for v in points.values() if v == 0) == 12
    assert resp.totals.views == 1200
    assert resp.totals.likes == 50
    assert resp.scope == Scope.EMPLOYEE
    assert resp.per_entity_series is None
    assert resp.resolved_handles == {"tiktok": ["alice"], "instagram": ["alice_ig"], "youtube": []}


@pytest.mark.asyncio
async def test_totals_match_series_for_every_granularity(campaign_store, config):
    series = engine_for(campaign_store, config)
    for g in ("daily", "weekly", "monthly"):
        resp = await series.employee_series(
            "E", SeriesRequest(campaign_id="c1", granularity=g), now=NOW
        )
        assert resp.totals.views == sum(p.views for p in resp.series_total) == 1200
        for ps in resp.series_per_platform:
            assert ps.totals.views == sum(p.views for p in ps.series)
            assert len(ps.series) == len(resp.series_total)


@pytest.mark.asyncio
async def test_required_hashtags_filter_postdate(campaign_store, config):
    campaign_store.campaigns["c1"] = campaign_store.campaigns["c1"].model_copy(
        update={"required_hashtags": ["#Launch"]}
    )
    campaign_store.posts.append(
        post(TT, "tt2", "alice", date(2024, 1, 4), views=5, text="day two #launch")
    )
    series = engine_for(campaign_store, config)
    filtered = await series.employee_series("E", SeriesRequest(campaign_id="c1"), now=NOW)
    assert filtered.totals.views == 5
    assert filtered.required_hashtags == ["launch"]

    unfiltered = await series.employee_series(
        "E", SeriesRequest(campaign_id="c1", respect_hashtags=False), now=NOW
    )
    assert unfiltered.totals.views == 1205


@pytest.mark.asyncio
async def test_campaign_series_has_member_rows(campaign_store, config):
    campaign_store.members["c1"] = ["E", "F"]
    campaign_store.assignments[("c1", "F", TT)] = ["bob", "alice"]
    campaign_store.posts.append(post(TT, "tt9", "bob", date(2024, 1, 5), views=30))
    resp = await engine_for(campaign_store, config).campaign_series("c1", SeriesRequest(), now=NOW)

    # shared handle counted once in the campaign total
    assert resp.totals.views == 1230
    rows = {e.entity_id: e for e in resp.per_entity_series}
    assert rows["E"].name == "Erin"
    assert rows["E"].totals.views == 1200
    assert rows["F"].totals.views == 1030
    assert all(len(e.series) == 14 for e in rows.values())


@pytest.mark.asyncio
async def test_accrual_employee_series(store, config):
    store.mappings[("U", TT)] = ["u_tt"]
    store.snapshots += [
        snap("U", TT, date(2024, 1, 4), views=500),
        snap("U", TT, date(2024, 1, 5), views=500),
        snap("U", TT, date(2024, 1, 6), views=300),
        snap("U", TT, date(2024, 1, 7), views=900),
    ]
    req = SeriesRequest(start=date(2024, 1, 5), end=date(2024, 1, 7), mode="accrual")
    resp = await engine_for(store, config).employee_series("U", req, now=NOW)
    assert resp.mode == AccountingMode.ACCRUAL
    assert [p.views for p in resp.series_total] == [0, 0, 600]
    assert resp.totals.views == 600


@pytest.mark.asyncio
async def test_accrual_falls_back_to_posts_unless_snapshots_only(store, config):
    store.mappings[("U", TT)] = ["u_tt"]
    store.posts.append(post(TT, "p1", "u_tt", date(2024, 1, 6), views=70))
    series = engine_for(store, config)
    req = SeriesRequest(start=date(2024, 1, 5), end=date(2024, 1, 7), mode="accrual")

    resp = await series.employee_series("U", req, now=NOW)
    assert resp.totals.views == 70

    strict = await series.employee_series(
        "U", req.model_copy(update={"snapshots_only": True}), now=NOW
    )
    assert strict.totals.views == 0


@pytest.mark.asyncio
async def test_accrual_fallback_masked_before_accrual_cutoff(store, config):
    store.mappings[("U", TT)] = ["u_tt"]
    store.posts.append(post(TT, "p1", "u_tt", date(2023, 12, 30), views=70))
    req = SeriesRequest(start=date(2023, 12, 28), end=date(2024, 1, 3), mode="accrual")
    resp = await engine_for(store, config).employee_series("U", req, now=NOW)
    assert resp.totals.views == 0


@pytest.mark.asyncio
async def test_global_series_splices_archive(store, config):
    store.users["U"] = UserInfo(id="U", tiktok_username="u_tt")
    store.historical.append(
        HistoricalBucket(
            platform=TT, start_date=date(2026, 2, 2), end_date=date(2026, 2, 4), views=300
        )
    )
    store.posts.append(post(TT, "p1", "u_tt", date(2026, 2, 6), views=40))
    # posts before the cutoff are the archive's job
    store.posts.append(post(TT, "p0", "u_tt", date(2026, 2, 3), views=999))

    req = SeriesRequest(start=date(2026, 2, 2), end=date(2026, 2, 11), granularity="weekly")
    resp = await engine_for(store, config).global_series(req, now=utc(2026, 2, 12))

    assert resp.alignment == WeekAlignment.CUTOFF
    assert resp.granularity == Granularity.WEEKLY
    assert [(p.date, p.views) for p in resp.series_total] == [
        (date(2026, 2, 2), 300),
        (date(2026, 2, 5), 40),
    ]
    assert resp.totals.views == 340
    assert resp.per_entity_series == []


@pytest.mark.asyncio
async def test_global_series_per_campaign_rows(campaign_store, config):
    resp = await engine_for(campaign_store, config).global_series(
        SeriesRequest(start=date(2024, 1, 1), end=date(2024, 1, 14), include_historical=False),
        now=NOW,
    )
    assert [e.entity_id for e in resp.per_entity_series] == ["c1"]
    assert resp.per_entity_series[0].totals.views == 1200


@pytest.mark.asyncio
async def test_defaults_to_trailing_window(store, config):
    resp = await engine_for(store, config).employee_series("nobody", SeriesRequest(), now=NOW)
    assert resp.range_end == date(2024, 1, 20)
    assert resp.range_start == date(2023, 12, 22)
    assert len(resp.series_total) == 30
    assert resp.totals.is_zero()


@pytest.mark.asyncio
async def test_invalid_range_raised_before_any_query(store, config):
    req = SeriesRequest(start=date(2024, 1, 10), end=date(2024, 1, 1))
    with pytest.raises(InvalidRange):
        await engine_for(store, config).employee_series("E", req, now=NOW)
    with pytest.raises(InvalidRange):
        await engine_for(store, config).employee_series(
            "E", SeriesRequest(granularity="hourly"), now=NOW
        )
    assert store.calls == []


@pytest.mark.asyncio
async def test_adapter_failure_aborts_request(campaign_store, config):
    campaign_store.fail_posts = True
    with pytest.raises(AdapterUnavailable):
        await engine_for(campaign_store, config).employee_series(
            "E", SeriesRequest(campaign_id="c1"), now=NOW
        )


@pytest.mark.asyncio
async def test_unknown_campaign(store, config):
    with pytest.raises(EntityNotFound):
        await engine_for(store, config).campaign_series("missing", SeriesRequest(), now=NOW)


@pytest.mark.asyncio
async def test_campaign_posts_listing(campaign_store, config):
    campaign_store.posts.append(post(TT, "tt3", "alice", date(2024, 1, 8), views=400))
    posts = await engine_for(campaign_store, config).campaign_posts("c1", SeriesRequest(), now=NOW)
    assert [(p.external_id, p.views) for p in posts] == [("tt1", 1000), ("tt3", 400), ("ig1", 200)]


@pytest.mark.asyncio
async def test_archive_row_overlapping_range_start_is_counted(store, config):
    store.historical.append(
        HistoricalBucket(
            platform=TT, start_date=date(2026, 1, 5), end_date=date(2026, 1, 11), views=700
        )
    )
    series = engine_for(store, config)

    daily = await series.global_series(
        SeriesRequest(start=date(2026, 1, 7), end=date(2026, 1, 11)), now=utc(2026, 1, 20)
    )
    assert daily.totals.views == 500
    assert [p.views for p in daily.series_total] == [100] * 5

    weekly = await series.global_series(
        SeriesRequest(
            start=date(2026, 1, 7), end=date(2026, 1, 11), granularity="weekly", alignment="calendar"
        ),
        now=utc(2026, 1, 20),
    )
    assert [(p.date, p.views) for p in weekly.series_total] == [(date(2026, 1, 5), 700)]


@pytest.fixture
def ranked_store(campaign_store):
    campaign_store.members["c1"] = ["E", "F", "G"]
    campaign_store.users["F"] = UserInfo(id="F", full_name="Faye")
    campaign_store.users["G"] = UserInfo(id="G", full_name="Gus")
    campaign_store.assignments[("c1", "F", TT)] = ["bob"]
    campaign_store.posts.append(post(TT, "tt9", "bob", date(2024, 1, 5), views=3000))
    return campaign_store


@pytest.mark.asyncio
async def test_campaign_leaderboard_ranks_members_by_views(ranked_store, config):
    board = await engine_for(ranked_store, config).campaign_leaderboard(
        "c1", SeriesRequest(), now=NOW
    )
    assert [(e.rank, e.entity_id, e.totals.views) for e in board] == [
        (1, "F", 3000),
        (2, "E", 1200),
        (3, "G", 0),
    ]
    assert board[0].name == "Faye"


@pytest.mark.asyncio
async def test_campaign_leaderboard_top_is_clamped(ranked_store, config):
    series = engine_for(ranked_store, config)
    assert [e.entity_id for e in await series.campaign_leaderboard("c1", SeriesRequest(), now=NOW, top=2)] == ["F", "E"]
    assert len(await series.campaign_leaderboard("c1", SeriesRequest(), now=NOW, top=0)) == 1
    with pytest.raises(EntityNotFound):
        await series.campaign_leaderboard("missing", SeriesRequest(), now=NOW)


@pytest.mark.asyncio
async def test_top_posts_across_campaigns_counts_shared_posts_once(ranked_store, config):
    ranked_store.campaigns["c2"] = CampaignInfo(
        id="c2",
        name="Promo",
        start_date=date(2024, 1, 1),
        end_date=date(2024, 1, 14),
        required_hashtags=["#promo"],
    )
    ranked_store.members["c2"] = ["F"]
    ranked_store.assignments[("c2", "F", TT)] = ["bob"]
    ranked_store.posts.append(post(TT, "tt10", "bob", date(2024, 1, 6), views=50, text="#promo"))

    req = SeriesRequest(start=date(2024, 1, 1), end=date(2024, 1, 14))
    top = await engine_for(ranked_store, config).top_posts(req, now=NOW)
    # tt9 and tt10 qualify for c1 (no hashtags); only tt10 also qualifies for c2
    assert [p.external_id for p in top] == ["tt9", "tt1", "ig1", "tt10"]


@pytest.mark.asyncio
async def test_top_posts_limit_and_platform(ranked_store, config):
    series = engine_for(ranked_store, config)
    scoped = SeriesRequest(campaign_id="c1")
    assert [p.external_id for p in await series.top_posts(scoped, now=NOW, limit=1)] == ["tt9"]
    assert [p.external_id for p in await series.top_posts(scoped, now=NOW, limit=0)] == ["tt9"]
    assert [p.external_id for p in await series.top_posts(scoped, now=NOW, platform="Instagram")] == ["ig1"]
    with pytest.raises(InvalidRange):
        await series.top_posts(scoped, now=NOW, platform="myspace")
