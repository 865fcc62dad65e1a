"""PULSE — Post Deduplicator.

One row per ``(platform, external_id)``.

TikTok / Instagram keep the first occurrence in descending-views order.
YouTube keeps the earliest-published occurrence, higher views breaking ties.
Winners with all-zero engagement are dropped.
"""

from typing import Dict, Iterable, List, Tuple

from pulse.core.logging import get_logger
from pulse.core.metric_registry import Platform
from pulse.models.normalized_models import RawPost

logger = get_logger("analyzer.dedup")


def _youtube_rank(p: RawPost) -> tuple:
    return (p.post_date, -p.views)


def dedupe_posts(posts: Iterable[RawPost]) -> List[RawPost]:
    """Collapse re-scraped duplicates. Idempotent."""
    posts = list(posts)
    # sorted() is stable, so equal-view duplicates keep store order
    ordered = sorted(posts, key=lambda p: -p.views)

    winners: Dict[Tuple[Platform, str], RawPost] = {}
    for p in ordered:
        key = (p.platform, p.external_id)
        current = winners.get(key)
        if current is None:
            winners[key] = p
        elif p.platform == Platform.YOUTUBE and _youtube_rank(p) < _youtube_rank(current):
            winners[key] = p

    kept = [p for p in winners.values() if not p.metrics.is_zero()]
    kept.sort(key=lambda p: (p.platform.value, p.posted_at, p.external_id))

    dropped = len(posts) - len(kept)
    if dropped:
        logger.debug(f"Dedup: {len(posts)} rows → {len(kept)} posts")
    return kept
