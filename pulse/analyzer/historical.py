"""PULSE — Historical / Real-time Splice.

Before the real-time cutoff, values come from the weekly archive; on and
after it, from the live computation. A bucket touched by both gets the sum.
"""

from datetime import date, timedelta
from typing import Dict, Iterable, Optional, Tuple

from pulse.analyzer.bucketing import bucket_key, iter_days, rebucket
from pulse.analyzer.merge import add_partials
from pulse.config import AccountingConfig
from pulse.core.metric_registry import METRIC_NAMES
from pulse.models.normalized_models import HistoricalBucket, Metrics
from pulse.models.series_models import Granularity, WeekAlignment


def archive_window(
    start: date, end: date, config: AccountingConfig
) -> Optional[Tuple[date, date]]:
    """Part of ``start``..``end`` served by the archive, or None."""
    if start >= config.realtime_cutoff:
        return None
    last = min(end, config.historical_archive_end)
    if last < start:
        return None
    return start, last


def realtime_window(
    start: date, end: date, config: AccountingConfig
) -> Optional[Tuple[date, date]]:
    """Part of ``start``..``end`` computed live, or None."""
    if end < config.realtime_cutoff:
        return None
    return max(start, config.realtime_cutoff), end


def distribute_weekly(
    bucket: HistoricalBucket, start: date, end: date
) -> Dict[date, Metrics]:
    """Spread a weekly row evenly over its days, clipped to ``start``..``end``.

    Each day receives ``value // days``; the remainder is dropped.
    """
    days = bucket.days
    per_day = Metrics(
        **{n: getattr(bucket, n) // days for n in METRIC_NAMES}
    )
    lo = max(bucket.start_date, start)
    hi = min(bucket.end_date, end)
    return {d: per_day for d in iter_days(lo, hi)}


def historical_partials(
    buckets: Iterable[HistoricalBucket],
    start: date,
    end: date,
    granularity: Granularity,
    alignment: WeekAlignment,
    cutoff: date,
) -> Dict[date, Metrics]:
    """Archive rows mapped onto the requested bucket keys.

    Weekly output assigns each row whole to the bucket of its first day
    inside the range. Daily and monthly output distribute first, then
    re-bucket.
    """
    if granularity == Granularity.WEEKLY:
        out: Dict[date, Metrics] = {}
        for b in buckets:
            k = bucket_key(max(b.start_date, start), granularity, alignment, cutoff)
            out[k] = out.get(k, Metrics.zero()) + b.metrics
        return out

    daily = add_partials(*(distribute_weekly(b, start, end) for b in buckets))
    return rebucket(daily, granularity, alignment, cutoff)


def splice(
    historical: Dict[date, Metrics], realtime: Dict[date, Metrics]
) -> Dict[date, Metrics]:
    """Merge both sides; a shared bucket key gets the sum of the two."""
    return add_partials(historical, realtime)


def seam_bucket(
    granularity: Granularity, alignment: WeekAlignment, cutoff: date
) -> Optional[date]:
    """Bucket key holding the day before the cutoff, if it also spans the cutoff."""
    before = bucket_key(cutoff - timedelta(days=1), granularity, alignment, cutoff)
    at = bucket_key(cutoff, granularity, alignment, cutoff)
    return before if before == at else None
