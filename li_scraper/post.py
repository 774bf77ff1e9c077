from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, Sequence

TopicCategory = Literal[
    "company_breakdown",
    "announcement",
    "insight",
    "case_study",
    "tips",
    "personal",
    "general",
    "unknown",
]

TOPIC_CATEGORIES: tuple[str, ...] = (
    "company_breakdown",
    "announcement",
    "insight",
    "case_study",
    "tips",
    "personal",
    "general",
    "unknown",
)


@dataclass(frozen=True)
class CanonicalPost:
    """A stable post record derived 1:1 from a scraped provider item."""

    external_id: str = ""
    url: str = ""
    content: str = ""
    posted_at: str | None = None

    likes: int = 0
    comments: int = 0
    reposts: int = 0

    has_images: bool = False
    image_count: int = 0

    def __post_init__(self) -> None:
        for name in ("likes", "comments", "reposts", "image_count"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must be >= 0")
        if self.has_images != (self.image_count > 0):
            raise ValueError("has_images must match image_count > 0")


@dataclass(frozen=True)
class PostAnalysis:
    hook: str = ""
    word_count: int = 0
    has_list_format: bool = False
    topic_category: TopicCategory = "unknown"
    mentioned_companies: Sequence[str] = ()
    call_to_action: str = ""
