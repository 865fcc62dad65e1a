"""PULSE — Time Bucketer.

Maps UTC days to bucket-start keys (daily, monthly, calendar week, or
week aligned on the real-time cutoff) and enumerates the keys of a range.
"""

from collections import defaultdict
from datetime import date, datetime, timedelta, timezone
from typing import Dict, Iterator, List, Optional

from pulse.core.errors import InvalidRange
from pulse.models.normalized_models import Metrics
from pulse.models.series_models import AccountingMode, Granularity, WeekAlignment


def to_utc_date(value: datetime | date) -> date:
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value.date()
    return value


def iter_days(start: date, end: date) -> Iterator[date]:
    d = start
    while d <= end:
        yield d
        d += timedelta(days=1)


def monday_of(d: date) -> date:
    return d - timedelta(days=d.weekday())


def month_start(d: date) -> date:
    return d.replace(day=1)


def bucket_key(
    d: date,
    granularity: Granularity,
    alignment: WeekAlignment = WeekAlignment.CALENDAR,
    cutoff: Optional[date] = None,
) -> date:
    """Bucket-start key for day ``d``.

    Cutoff-aligned weeks step 7 days from ``cutoff`` for days on or after it;
    earlier days keep calendar Mondays, so the week holding the cutoff may
    be shorter than seven days.
    """
    if granularity == Granularity.DAILY:
        return d
    if granularity == Granularity.MONTHLY:
        return month_start(d)
    if alignment == WeekAlignment.CUTOFF and cutoff is not None and d >= cutoff:
        return cutoff + timedelta(days=7 * ((d - cutoff).days // 7))
    return monday_of(d)


def bucket_keys(
    start: date,
    end: date,
    granularity: Granularity,
    alignment: WeekAlignment = WeekAlignment.CALENDAR,
    cutoff: Optional[date] = None,
) -> List[date]:
    """Distinct bucket keys touched by every day in ``start``..``end``, in order."""
    keys: List[date] = []
    for d in iter_days(start, end):
        k = bucket_key(d, granularity, alignment, cutoff)
        if not keys or keys[-1] != k:
            keys.append(k)
    return keys


def rebucket(
    daily: Dict[date, Metrics],
    granularity: Granularity,
    alignment: WeekAlignment = WeekAlignment.CALENDAR,
    cutoff: Optional[date] = None,
) -> Dict[date, Metrics]:
    """Group a per-day map into bucket keys."""
    out: Dict[date, Metrics] = defaultdict(Metrics.zero)
    for d, m in daily.items():
        k = bucket_key(d, granularity, alignment, cutoff)
        out[k] = out[k] + m
    return dict(out)


# ── Request parsing ──


def parse_granularity(value: str | Granularity) -> Granularity:
    try:
        return Granularity(str(getattr(value, "value", value)).lower())
    except ValueError:
        raise InvalidRange(f"Unsupported granularity: {value!r}")


def parse_mode(value: str | AccountingMode) -> AccountingMode:
    try:
        return AccountingMode(str(getattr(value, "value", value)).lower())
    except ValueError:
        raise InvalidRange(f"Unsupported accounting mode: {value!r}")


def parse_alignment(value: str | WeekAlignment) -> WeekAlignment:
    try:
        return WeekAlignment(str(getattr(value, "value", value)).lower())
    except ValueError:
        raise InvalidRange(f"Unsupported week alignment: {value!r}")


def validate_range(start: date, end: date) -> None:
    if end < start:
        raise InvalidRange(f"Range end {end} is before start {start}")
