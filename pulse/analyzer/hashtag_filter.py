"""PULSE — Required Hashtag Filter."""

import re
from typing import Iterable, List, Optional, Sequence

from pulse.models.normalized_models import RawPost

HASHTAG_RE = re.compile(r"#\w+")


def normalize_hashtags(tags: Optional[Iterable[str]]) -> List[str]:
    """Lower-case, strip leading ``#``, drop blanks, keep first-seen order."""
    out: List[str] = []
    for t in tags or []:
        tag = str(t).strip().lstrip("#").strip().lower()
        if tag and tag not in out:
            out.append(tag)
    return out


def matches(text: Optional[str], required_hashtags: Optional[Sequence[str]]) -> bool:
    """True if ``text`` carries any required tag.

    A tag matches as a ``#tag`` substring or as the bare word on word
    boundaries, case-insensitively. An empty requirement passes everything;
    a missing text fails a non-empty requirement.
    """
    tags = normalize_hashtags(required_hashtags)
    if not tags:
        return True
    if not text:
        return False
    lowered = text.lower()
    for tag in tags:
        if f"#{tag}" in lowered:
            return True
        if re.search(rf"\b{re.escape(tag)}\b", lowered):
            return True
    return False


def extract_hashtags(text: Optional[str]) -> List[str]:
    if not text:
        return []
    return [m.lower() for m in HASHTAG_RE.findall(text)]


def filter_posts(
    posts: Iterable[RawPost], required_hashtags: Optional[Sequence[str]]
) -> List[RawPost]:
    tags = normalize_hashtags(required_hashtags)
    if not tags:
        return list(posts)
    return [p for p in posts if matches(p.text, tags)]
