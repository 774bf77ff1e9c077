from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable

import pandas as pd

from .errors import ExportError
from .stats import summarize_posts
from .storage import SQLiteProfileStore, StoredPost

_EXCEL_FORMULA_PREFIXES = ("=", "+", "-", "@")

POST_COLUMNS: tuple[str, ...] = (
    "post_id",
    "linkedin_post_id",
    "linkedin_url",
    "posted_at",
    "scraped_at",
    "likes",
    "comments",
    "reposts",
    "has_images",
    "num_images",
    "hook",
    "word_count",
    "has_list_format",
    "topic_category",
    "companies_mentioned",
    "cta",
    "content",
)

TOP_HOOK_COLUMNS: tuple[str, ...] = (
    "rank",
    "hook",
    "likes",
    "comments",
    "engagement_score",
    "topic_category",
)


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _safe_excel_text(value: Any) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        return str(value)
    if value.startswith(_EXCEL_FORMULA_PREFIXES):
        return "'" + value
    return value


def _fmt_pipe_join(values: Iterable[str]) -> str:
    return " | ".join(t for t in ((v or "").strip() for v in values) if t)


def _post_row(stored: StoredPost) -> dict[str, Any]:
    post = stored.post
    analysis = stored.analysis

    return {
        "post_id": stored.id,
        "linkedin_post_id": _safe_excel_text(post.external_id),
        "linkedin_url": _safe_excel_text(post.url),
        "posted_at": _safe_excel_text(post.posted_at),
        "scraped_at": _safe_excel_text(stored.scraped_at),
        "likes": post.likes,
        "comments": post.comments,
        "reposts": post.reposts,
        "has_images": post.has_images,
        "num_images": post.image_count,
        "hook": _safe_excel_text(analysis.hook) if analysis else None,
        "word_count": analysis.word_count if analysis else None,
        "has_list_format": analysis.has_list_format if analysis else None,
        "topic_category": analysis.topic_category if analysis else None,
        "companies_mentioned": (
            _safe_excel_text(_fmt_pipe_join(analysis.mentioned_companies)) if analysis else None
        ),
        "cta": _safe_excel_text(analysis.call_to_action) if analysis else None,
        "content": _safe_excel_text(post.content),
    }


def export_profile_workbook(
    store: SQLiteProfileStore,
    profile_id: str,
    out_path: str | Path,
) -> Path:
    """
    Write a profile's scraped posts and their analysis to an .xlsx workbook.

    Sheets: posts (one row per post), topics (category counts), top_hooks
    (most engaging hooks) and profile.
    """
    profile = store.get_profile(profile_id)
    if profile is None:
        raise ExportError(f"Profile not found: {profile_id}")

    out = Path(out_path)
    out.parent.mkdir(parents=True, exist_ok=True)

    posts = store.posts_with_analysis(profile.id)
    stats = summarize_posts(posts)

    post_rows = [_post_row(p) for p in posts]
    topic_rows = [
        {"topic_category": topic, "count": count} for topic, count in stats.topic_counts.items()
    ]
    hook_rows = [
        {
            "rank": i,
            "hook": _safe_excel_text(h.hook),
            "likes": h.likes,
            "comments": h.comments,
            "engagement_score": h.engagement_score,
            "topic_category": h.topic_category,
        }
        for i, h in enumerate(stats.top_hooks, start=1)
    ]
    profile_rows: list[dict[str, Any]] = [
        {"key": "profile_id", "value": _safe_excel_text(profile.id)},
        {"key": "linkedin_url", "value": _safe_excel_text(profile.linkedin_url)},
        {"key": "full_name", "value": _safe_excel_text(profile.full_name)},
        {"key": "headline", "value": _safe_excel_text(profile.headline)},
        {"key": "scrape_status", "value": _safe_excel_text(profile.scrape_status)},
        {"key": "last_scraped_at", "value": _safe_excel_text(profile.last_scraped_at)},
        {"key": "exported_at_utc", "value": _safe_excel_text(_utc_now_iso())},
        {"key": "stats.total_posts", "value": stats.total_posts},
        {"key": "stats.avg_likes", "value": stats.avg_likes},
        {"key": "stats.avg_comments", "value": stats.avg_comments},
        {"key": "stats.avg_word_count", "value": stats.avg_word_count},
        {"key": "stats.with_images", "value": stats.with_images},
        {"key": "stats.with_lists", "value": stats.with_lists},
    ]

    df_posts = pd.DataFrame(post_rows, columns=list(POST_COLUMNS))
    df_topics = pd.DataFrame(topic_rows, columns=["topic_category", "count"])
    df_hooks = pd.DataFrame(hook_rows, columns=list(TOP_HOOK_COLUMNS))
    df_profile = pd.DataFrame(profile_rows, columns=["key", "value"])

    try:
        with pd.ExcelWriter(out, engine="openpyxl") as writer:
            df_posts.to_excel(writer, sheet_name="posts", index=False)
            df_topics.to_excel(writer, sheet_name="topics", index=False)
            df_hooks.to_excel(writer, sheet_name="top_hooks", index=False)
            df_profile.to_excel(writer, sheet_name="profile", index=False)

            for name in ("posts", "topics", "top_hooks", "profile"):
                writer.book[name].freeze_panes = "A2"
    except Exception as e:
        raise ExportError(f"Failed to write workbook: {out}: {e}") from e

    return out
