"""PULSE — Unified Metric Registry.

Defines the canonical engagement metrics and which platforms report them.
The merge engine combines platforms by consulting this table, so adding a
platform or a metric is a registry change, not an engine change.
"""

from enum import Enum
from typing import Dict, Tuple

from pulse.core.errors import InvalidRange


class Platform(str, Enum):
    """Supported social platforms."""

    TIKTOK = "tiktok"
    INSTAGRAM = "instagram"
    YOUTUBE = "youtube"


# ─────────────────────────────────────────────
# ENGAGEMENT METRICS — Canonical Registry
# ─────────────────────────────────────────────

METRIC_NAMES: Tuple[str, ...] = ("views", "likes", "comments", "shares", "saves")

PLATFORM_METRICS: Dict[Platform, Tuple[str, ...]] = {
    Platform.TIKTOK: ("views", "likes", "comments", "shares", "saves"),
    Platform.INSTAGRAM: ("views", "likes", "comments"),
    Platform.YOUTUBE: ("views", "likes", "comments"),
}

ALL_PLATFORMS: Tuple[Platform, ...] = tuple(Platform)


def platform_reports(platform: Platform, metric: str) -> bool:
    """True if the platform contributes ``metric`` to combined totals."""
    return metric in PLATFORM_METRICS[platform]


def reported_metrics(platform: Platform) -> Tuple[str, ...]:
    return tuple(m for m in METRIC_NAMES if platform_reports(platform, m))


def parse_platform(value: str) -> Platform:
    """Parse a platform name case-insensitively."""
    try:
        return Platform(value.strip().lower())
    except ValueError:
        raise InvalidRange(f"Unsupported platform: {value!r}")
