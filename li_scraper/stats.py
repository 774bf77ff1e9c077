from __future__ import annotations

import math
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Sequence

from .post import TOPIC_CATEGORIES
from .storage import SQLiteProfileStore, StoredPost

TOP_HOOKS_LIMIT = 10

# A comment is weighted as five likes when ranking hooks.
COMMENT_WEIGHT = 5


@dataclass(frozen=True)
class TopHook:
    hook: str
    likes: int
    comments: int
    topic_category: str

    @property
    def engagement_score(self) -> int:
        return self.likes + self.comments * COMMENT_WEIGHT

    def to_dict(self) -> dict[str, Any]:
        return {
            "hook": self.hook,
            "likes": self.likes,
            "comments": self.comments,
            "topicCategory": self.topic_category,
        }


@dataclass(frozen=True)
class ProfileStats:
    total_posts: int
    avg_likes: int
    avg_comments: int
    avg_word_count: int
    with_images: int
    with_lists: int
    topic_counts: dict[str, int] = field(default_factory=dict)
    top_hooks: tuple[TopHook, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalPosts": self.total_posts,
            "avgLikes": self.avg_likes,
            "avgComments": self.avg_comments,
            "avgWordCount": self.avg_word_count,
            "withImages": self.with_images,
            "withLists": self.with_lists,
            "topicCounts": dict(self.topic_counts),
            "topHooks": [h.to_dict() for h in self.top_hooks],
        }


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _average(total: int, n: int) -> int:
    if n <= 0:
        return 0
    return _round_half_up(total / n)


def top_hooks(posts: Sequence[StoredPost], *, limit: int = TOP_HOOKS_LIMIT) -> tuple[TopHook, ...]:
    """
    Hooks of the most engaging posts, best first.

    Posts without a hook are skipped; ties keep the input order.
    """
    candidates = [
        TopHook(
            hook=p.analysis.hook,
            likes=p.post.likes,
            comments=p.post.comments,
            topic_category=p.analysis.topic_category,
        )
        for p in posts
        if p.analysis is not None and p.analysis.hook
    ]
    candidates.sort(key=lambda h: h.engagement_score, reverse=True)
    return tuple(candidates[: max(0, int(limit))])


def summarize_posts(posts: Sequence[StoredPost]) -> ProfileStats:
    n = len(posts)

    topic_counts: Counter[str] = Counter()
    for p in posts:
        topic = p.analysis.topic_category if p.analysis is not None else "unknown"
        topic_counts[topic] += 1

    # Known categories first in declaration order, then anything unexpected.
    ordered: dict[str, int] = {t: topic_counts[t] for t in TOPIC_CATEGORIES if topic_counts[t]}
    for topic, count in sorted(topic_counts.items()):
        if topic not in ordered:
            ordered[topic] = count

    return ProfileStats(
        total_posts=n,
        avg_likes=_average(sum(p.post.likes for p in posts), n),
        avg_comments=_average(sum(p.post.comments for p in posts), n),
        avg_word_count=_average(
            sum(p.analysis.word_count for p in posts if p.analysis is not None), n
        ),
        with_images=sum(1 for p in posts if p.post.has_images),
        with_lists=sum(1 for p in posts if p.analysis is not None and p.analysis.has_list_format),
        topic_counts=ordered,
        top_hooks=top_hooks(posts),
    )


def profile_stats(store: SQLiteProfileStore, profile_id: str) -> ProfileStats:
    return summarize_posts(store.posts_with_analysis(profile_id))
