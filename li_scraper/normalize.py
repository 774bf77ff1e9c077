from __future__ import annotations

import math
from datetime import datetime
from typing import Any, Mapping

from .post import CanonicalPost


def _coerce_str(value: Any) -> str | None:
    if isinstance(value, str):
        s = value.strip()
        return s if s else None
    return None


def _coerce_id(value: Any) -> str | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, str):
        v = value.strip()
        return v if v else None
    if isinstance(value, int):
        return str(value)
    return None


def _coerce_count(value: Any) -> int:
    """Engagement counters degrade to 0 instead of failing on odd provider values."""
    if isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return max(0, value)
    if isinstance(value, float):
        if not math.isfinite(value):
            return 0
        return max(0, int(value))
    if isinstance(value, str):
        s = value.strip().replace(",", "")
        if s.isdigit():
            return int(s)
    return 0


def _coerce_mapping(value: Any) -> Mapping[str, Any]:
    if isinstance(value, Mapping):
        return value
    return {}


def _coerce_iso_date(value: Any) -> str | None:
    s = _coerce_str(value)
    if s is None:
        return None
    try:
        parsed = datetime.fromisoformat(s)
    except ValueError:
        return None
    return parsed.isoformat()


def _posted_at(item: Mapping[str, Any]) -> str | None:
    posted = item.get("postedAt")
    if not isinstance(posted, Mapping):
        return None
    return _coerce_iso_date(posted.get("date"))


def _image_count(item: Mapping[str, Any]) -> int:
    images = item.get("postImages")
    if isinstance(images, list):
        return len(images)
    return 0


def canonical_post_from_apify_item(item: Any) -> CanonicalPost:
    """
    Build a CanonicalPost from a LinkedIn profile-posts dataset item.

    Never raises: missing or malformed fields fall back to their defaults.
    """
    raw = _coerce_mapping(item)

    external_id = _coerce_id(raw.get("id")) or ""

    url = (
        _coerce_str(raw.get("linkedinUrl"))
        or _coerce_str(raw.get("url"))
        or _coerce_str(raw.get("postUrl"))
        or ""
    )

    content = raw.get("content")
    if not isinstance(content, str):
        content = raw.get("text")
    if not isinstance(content, str):
        content = ""

    engagement = _coerce_mapping(raw.get("engagement"))
    image_count = _image_count(raw)

    return CanonicalPost(
        external_id=external_id,
        url=url,
        content=content,
        posted_at=_posted_at(raw),
        likes=_coerce_count(engagement.get("likes")),
        comments=_coerce_count(engagement.get("comments")),
        reposts=_coerce_count(engagement.get("shares")),
        has_images=image_count > 0,
        image_count=image_count,
    )
