"""PULSE — Accrual Calculator.

Turns absolute cumulative snapshots into non-negative per-day deltas.

  1. Collapse same-day snapshots to the last one of that day.
  2. Baseline ``prev`` = last snapshot before the range, at most
     ``lookback_days`` back.
  3. Each day with a snapshot yields ``max(0, cur - prev)`` per metric,
     provided a ``prev`` exists and the day is on/after the accrual start
     cutoff. ``prev`` then moves to that snapshot either way.
"""

from collections import defaultdict
from datetime import date, timedelta
from typing import Dict, Iterable, List, Optional

from pulse.analyzer.bucketing import iter_days
from pulse.core.errors import ErrorKind
from pulse.core.logging import get_logger
from pulse.models.normalized_models import Metrics, RawPost, Snapshot

logger = get_logger("analyzer.accrual")


def collapse_daily(snapshots: Iterable[Snapshot]) -> Dict[date, Metrics]:
    """Last snapshot per capture day, keyed in chronological order."""
    snaps = list(snapshots)
    out_of_order = any(
        b.captured_at < a.captured_at for a, b in zip(snaps, snaps[1:])
    )
    if out_of_order:
        logger.warning(
            "Snapshots not in capture order; re-sorting",
            extra={
                "kind": ErrorKind.INCONSISTENT_SNAPSHOT_ORDER.value,
                "entity_id": snaps[0].user_id,
                "platform": snaps[0].platform.value,
            },
        )
        snaps = sorted(snaps, key=lambda s: s.captured_at)

    daily: Dict[date, Metrics] = {}
    for s in snaps:
        daily[s.capture_date] = s.metrics
    return dict(sorted(daily.items()))


def find_baseline(
    daily: Dict[date, Metrics], range_start: date, lookback_days: int
) -> Optional[Metrics]:
    """Nearest collapsed snapshot strictly before ``range_start``."""
    for back in range(1, lookback_days + 1):
        d = range_start - timedelta(days=back)
        if d in daily:
            return daily[d]
    return None


def compute_accrual(
    snapshots: Iterable[Snapshot],
    range_start: date,
    range_end: date,
    accrual_cutoff: date,
    lookback_days: int = 30,
) -> Dict[date, Metrics]:
    """Per-day deltas for one (user, platform) over ``range_start``..``range_end``."""
    daily = collapse_daily(snapshots)
    prev = find_baseline(daily, range_start, lookback_days)

    out: Dict[date, Metrics] = {}
    for d in iter_days(range_start, range_end):
        cur = daily.get(d)
        if cur is not None and prev is not None and d >= accrual_cutoff:
            out[d] = cur.delta_from(prev)
        else:
            out[d] = Metrics.zero()
        if cur is not None:
            prev = cur
    return out


def accrual_by_user(
    snapshots: Iterable[Snapshot],
    range_start: date,
    range_end: date,
    accrual_cutoff: date,
    lookback_days: int = 30,
) -> Dict[str, Dict[date, Metrics]]:
    """Split a multi-user snapshot stream and accrue each user separately."""
    grouped: Dict[str, List[Snapshot]] = defaultdict(list)
    for s in snapshots:
        grouped[s.user_id].append(s)
    return {
        user_id: compute_accrual(
            snaps, range_start, range_end, accrual_cutoff, lookback_days
        )
        for user_id, snaps in grouped.items()
    }


def sum_daily(maps: Iterable[Dict[date, Metrics]]) -> Dict[date, Metrics]:
    out: Dict[date, Metrics] = defaultdict(Metrics.zero)
    for m in maps:
        for d, v in m.items():
            out[d] = out[d] + v
    return dict(out)


def posts_daily(posts: Iterable[RawPost]) -> Dict[date, Metrics]:
    """Post-date attribution: each post's counters on its publish day."""
    out: Dict[date, Metrics] = defaultdict(Metrics.zero)
    for p in posts:
        out[p.post_date] = out[p.post_date] + p.metrics
    return dict(out)


def mask_before(daily: Dict[date, Metrics], cutoff: date) -> Dict[date, Metrics]:
    """Zero every day before ``cutoff``."""
    return {d: (m if d >= cutoff else Metrics.zero()) for d, m in daily.items()}
