from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Sequence

from .apify_client import JobStatus

_DEFAULT_OFFLINE_ITEMS: list[dict[str, Any]] = [
    {
        "id": "offline-1",
        "content": "Here's why most founders fail.\n\nDM me for more.",
        "linkedinUrl": "https://www.linkedin.com/posts/offline-1",
        "postedAt": {"date": "2025-01-01T09:00:00.000Z"},
        "engagement": {"likes": 10, "comments": 2, "shares": 0},
        "postImages": [],
    },
    {
        "id": "offline-2",
        "content": (
            "5 mistakes I made hiring my first engineers:\n"
            "1. Hiring for speed\n"
            "2. Skipping references\n"
            "3. No written scorecard\n"
            "\nWhat do you think?"
        ),
        "linkedinUrl": "https://www.linkedin.com/posts/offline-2",
        "postedAt": {"date": "2025-01-03T09:00:00.000Z"},
        "engagement": {"likes": 42, "comments": 7, "shares": 3},
        "postImages": [{"url": "https://example.com/img/1.png"}],
    },
    {
        "id": "offline-3",
        "content": "Congrats to the team on our seed round. Excited to build what's next.",
        "linkedinUrl": "https://www.linkedin.com/posts/offline-3",
        "postedAt": {"date": "2025-01-05T09:00:00.000Z"},
        "engagement": {"likes": 120, "comments": 31, "shares": 4},
        "postImages": [{"url": "https://example.com/img/2.png"}, {"url": "https://example.com/img/3.png"}],
    },
    {
        "id": "offline-4",
        "content": "",
        "linkedinUrl": "https://www.linkedin.com/posts/offline-4",
        "postedAt": "not-a-date-object",
    },
]


@dataclass
class OfflineLinkedInPostScraper:
    """
    Network-free provider for smoke runs.

    Every job succeeds on the first poll and yields a fixed set of items.
    """

    items: Sequence[dict[str, Any]] = field(default_factory=lambda: list(_DEFAULT_OFFLINE_ITEMS))
    submitted: list[tuple[str, int]] = field(default_factory=list)

    async def submit_job(self, profile_url: str, max_posts: int) -> str | None:
        self.submitted.append((profile_url, int(max_posts)))
        return f"offline_job_{len(self.submitted)}"

    async def poll_job(self, job_id: str) -> JobStatus:
        return JobStatus(status="SUCCEEDED", dataset_id=f"{job_id}_dataset")

    async def fetch_results(self, dataset_id: str) -> list[dict[str, Any]]:
        _ = dataset_id
        limit = self.submitted[-1][1] if self.submitted else len(self.items)
        return list(self.items)[:limit]
