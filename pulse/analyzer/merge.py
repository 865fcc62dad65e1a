"""PULSE — Merge & Totals Engine.

Every emitted series is zero-filled over the full bucket range, and every
total is summed from the filled series it accompanies.
"""

from collections import defaultdict
from datetime import date
from typing import Dict, Iterable, List, Mapping

from pulse.core.metric_registry import ALL_PLATFORMS, Platform, reported_metrics
from pulse.models.normalized_models import Metrics
from pulse.models.series_models import PlatformSeries, SeriesPoint


def fill_series(partial: Mapping[date, Metrics], keys: List[date]) -> List[SeriesPoint]:
    """One point per key, in key order. Values outside ``keys`` are ignored."""
    return [SeriesPoint.of(k, partial.get(k, Metrics.zero())) for k in keys]


def add_partials(*partials: Mapping[date, Metrics]) -> Dict[date, Metrics]:
    out: Dict[date, Metrics] = defaultdict(Metrics.zero)
    for partial in partials:
        for k, m in partial.items():
            out[k] = out[k] + m
    return dict(out)


def compute_totals(series: Iterable[SeriesPoint]) -> Metrics:
    return Metrics.total(p.metrics for p in series)


def combine_platforms(
    per_platform: Mapping[Platform, List[SeriesPoint]], keys: List[date]
) -> List[SeriesPoint]:
    """Cross-platform series: each metric summed over the platforms that report it.

    Shares and saves are only reported by TikTok, so they pass through
    from the TikTok series unchanged.
    """
    combined = {k: Metrics.zero() for k in keys}
    for platform, series in per_platform.items():
        reported = reported_metrics(platform)
        for point in series:
            if point.date in combined:
                combined[point.date] = combined[point.date] + point.metrics.only(reported)
    return [SeriesPoint.of(k, combined[k]) for k in keys]


def build_platform_series(
    partials: Mapping[Platform, Mapping[date, Metrics]], keys: List[date]
) -> List[PlatformSeries]:
    out: List[PlatformSeries] = []
    for platform in ALL_PLATFORMS:
        series = fill_series(partials.get(platform, {}), keys)
        out.append(
            PlatformSeries(platform=platform, series=series, totals=compute_totals(series))
        )
    return out
