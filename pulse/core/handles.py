"""PULSE — Handle Normalization."""

from typing import Iterable, List, Optional

from pulse.core.metric_registry import Platform


def normalize_handle(platform: Platform, raw: Optional[str]) -> str:
    """Normalize a platform account identifier.

    TikTok and Instagram usernames are trimmed, stripped of leading ``@``
    and lower-cased. YouTube channel ids are opaque and only trimmed.
    Returns ``""`` for missing input.
    """
    if raw is None:
        return ""
    value = str(raw).strip()
    if platform == Platform.YOUTUBE:
        return value
    return value.lstrip("@").strip().lower()


def normalize_handles(platform: Platform, raws: Iterable[Optional[str]]) -> List[str]:
    """Normalize, drop empties, de-duplicate preserving first-seen order."""
    seen = set()
    out: List[str] = []
    for raw in raws:
        h = normalize_handle(platform, raw)
        if h and h not in seen:
            seen.add(h)
            out.append(h)
    return out
