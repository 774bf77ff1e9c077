from __future__ import annotations

import re

from .post import PostAnalysis, TopicCategory

HOOK_MAX_CHARS = 200
HOOK_ELLIPSIS = "..."

CTA_SCAN_LINES = 3

# Declaration order is the tie-break: the first topic with any keyword hit wins.
TOPIC_KEYWORDS: tuple[tuple[TopicCategory, tuple[str, ...]], ...] = (
    ("company_breakdown", ("here's what stands out", "breakdown", "what they do", "playbook")),
    ("announcement", ("congrats", "announcing", "excited to", "launched", "raised", "funding")),
    ("insight", ("here's why", "the truth", "hot take", "unpopular opinion", "most people")),
    ("case_study", ("case study", "results", "how they", "what happened")),
    ("tips", ("tips", "how to", "ways to", "steps to", "mistakes")),
    ("personal", ("i learned", "my experience", "when i", "my journey")),
)

CTA_PHRASES: tuple[str, ...] = (
    "follow",
    "comment",
    "share",
    "check out",
    "link in",
    "dm me",
    "reach out",
    "subscribe",
    "join",
    "learn more",
    "what do you think",
    "agree?",
    "thoughts?",
)

BULLET_GLYPHS = "-•→✓✅⚡\U0001f525"

_NUMBERED_LINE_RE = re.compile(r"\n\d+[.)][ \t]")
_BULLET_LINE_RE = re.compile("\\n[" + re.escape(BULLET_GLYPHS) + "][ \\t]")

# TODO: fill from the item's contentAttributes company entries once the
# analyzer receives the raw attachment metadata instead of just the text.
COMPANY_MENTIONS_SUPPORTED = False

EMPTY_ANALYSIS = PostAnalysis()


def extract_hook(content: str | None) -> str:
    if not content:
        return ""
    first_line = content.split("\n", 1)[0].strip()
    if len(first_line) > HOOK_MAX_CHARS:
        return first_line[:HOOK_MAX_CHARS] + HOOK_ELLIPSIS
    return first_line


def count_words(content: str | None) -> int:
    if not content:
        return 0
    return len(content.split())


def has_list_format(content: str | None) -> bool:
    """
    Detect numbered ("1. ", "2) ") or bulleted ("- ", "• ", "→ ", ...) lines.

    Only lines that follow a newline count, so hyphenated words never match.
    """
    if not content:
        return False
    return bool(_NUMBERED_LINE_RE.search(content) or _BULLET_LINE_RE.search(content))


def categorize_topic(content: str | None) -> TopicCategory:
    if not content:
        return "unknown"

    lower = content.lower()
    for topic, keywords in TOPIC_KEYWORDS:
        for keyword in keywords:
            if keyword in lower:
                return topic
    return "general"


def extract_call_to_action(content: str | None) -> str:
    if not content:
        return ""

    lines = [ln for ln in content.strip().split("\n") if ln.strip()]
    for line in lines[-CTA_SCAN_LINES:]:
        lower = line.lower()
        for phrase in CTA_PHRASES:
            if phrase in lower:
                return line.strip()
    return ""


def extract_mentioned_companies(content: str | None) -> tuple[str, ...]:
    _ = content
    return ()


def analyze_post(content: str | None) -> PostAnalysis:
    """
    Derive the content signals stored alongside each scraped post.

    Pure and total: empty or missing content yields the empty analysis.
    """
    if not content:
        return EMPTY_ANALYSIS

    return PostAnalysis(
        hook=extract_hook(content),
        word_count=count_words(content),
        has_list_format=has_list_format(content),
        topic_category=categorize_topic(content),
        mentioned_companies=extract_mentioned_companies(content),
        call_to_action=extract_call_to_action(content),
    )
