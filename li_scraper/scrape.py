from __future__ import annotations

import asyncio
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Protocol, Sequence

from .analyze import analyze_post
from .apify_client import JobStatus, PostScraper
from .config_schema import ScrapeConfig
from .errors import (
    ApifyError,
    JobFailedError,
    JobStartError,
    JobTimeoutError,
    ScrapeInProgressError,
    StorageError,
)
from .normalize import canonical_post_from_apify_item
from .post import CanonicalPost, PostAnalysis
from .retry import SleepFn
from .run_log import RunLogger

ClockFn = Callable[[], datetime]


class ScrapeStore(Protocol):
    """What a scrape run writes: the profile status, posts and their analyses."""

    def claim_profile_run(
        self,
        profile_id: str,
        *,
        run_token: str,
        stale_after_seconds: float | None = None,
    ) -> None: ...

    def finish_profile_run(
        self,
        profile_id: str,
        *,
        run_token: str,
        status: str,
        last_scraped_at: str | None = None,
    ) -> bool: ...

    def touch_profile_run(self, profile_id: str, *, run_token: str) -> bool: ...

    def insert_post(
        self,
        profile_id: str,
        post: CanonicalPost,
        analysis: PostAnalysis | None = None,
    ) -> int: ...

    def has_external_id(self, profile_id: str, external_id: str) -> bool: ...


@dataclass(frozen=True)
class ScrapeResult:
    profile_id: str
    job_id: str
    dataset_id: str
    posts_scraped: int
    posts_stored: int
    duplicates_skipped: int = 0

    def to_response(self) -> dict[str, Any]:
        return {
            "success": True,
            "postsScraped": self.posts_scraped,
            "postsStored": self.posts_stored,
        }


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


async def wait_for_job(
    scraper: PostScraper,
    job_id: str,
    *,
    poll_interval_seconds: float,
    max_poll_attempts: int,
    sleep_fn: SleepFn,
    logger: RunLogger,
    heartbeat: Callable[[], None] | None = None,
) -> JobStatus:
    """
    Poll a submitted job until it leaves the running states.

    Each poll is preceded by a cooperative sleep. Raises JobTimeoutError when
    the attempt budget runs out, JobFailedError on any other non-success end.
    heartbeat, when given, runs after every poll.
    """
    status = JobStatus(status="RUNNING")
    attempts = 0

    while status.is_running and attempts < max_poll_attempts:
        await sleep_fn(poll_interval_seconds)
        status = await scraper.poll_job(job_id)
        attempts += 1
        logger.info("job_polled", attempt=attempts, status=status.status)
        if heartbeat is not None:
            heartbeat()

    if status.is_running:
        raise JobTimeoutError(
            status.status,
            f"Scrape timed out after {attempts} polls with status: {status.status}",
        )
    if not status.succeeded or not status.dataset_id:
        raise JobFailedError(status.status)
    return status


def ingest_items(
    store: ScrapeStore,
    profile_id: str,
    items: Sequence[Any],
    *,
    dedupe_by_external_id: bool,
    logger: RunLogger,
) -> tuple[int, int]:
    """
    Normalize, analyze and store each item in provider order.

    A StorageError only drops the post it happened on. Returns
    (stored, duplicates_skipped).
    """
    stored = 0
    duplicates = 0

    for index, item in enumerate(items):
        post = canonical_post_from_apify_item(item)
        analysis = analyze_post(post.content)

        try:
            if dedupe_by_external_id and store.has_external_id(profile_id, post.external_id):
                duplicates += 1
                logger.info("duplicate_post_skipped", index=index, external_id=post.external_id)
                continue

            store.insert_post(profile_id, post, analysis)
        except StorageError as e:
            logger.exception(
                "post_store_failed",
                exc=e,
                index=index,
                external_id=post.external_id,
            )
            continue

        stored += 1

    return stored, duplicates


async def _scrape_claimed_profile(
    profile_id: str,
    profile_url: str,
    max_posts: int,
    *,
    run_token: str,
    scraper: PostScraper,
    store: ScrapeStore,
    config: ScrapeConfig,
    sleep_fn: SleepFn,
    logger: RunLogger,
) -> ScrapeResult:
    try:
        job_id = await scraper.submit_job(profile_url, max_posts)
    except ApifyError as e:
        raise JobStartError() from e
    if not job_id:
        raise JobStartError()

    log = logger.bind(job_id=job_id)
    log.info("job_submitted", profile_url=profile_url, max_posts=max_posts)

    def _heartbeat() -> None:
        if not store.touch_profile_run(profile_id, run_token=run_token):
            log.error("profile_run_lost")
            raise ScrapeInProgressError(profile_id)

    status = await wait_for_job(
        scraper,
        job_id,
        poll_interval_seconds=config.poll_interval_seconds,
        max_poll_attempts=config.max_poll_attempts,
        sleep_fn=sleep_fn,
        logger=log,
        heartbeat=_heartbeat,
    )
    dataset_id = status.dataset_id or ""
    log.info("job_finished", status=status.status, dataset_id=dataset_id)

    items = await scraper.fetch_results(dataset_id)
    _heartbeat()
    stored, duplicates = ingest_items(
        store,
        profile_id,
        items,
        dedupe_by_external_id=config.dedupe_by_external_id,
        logger=log,
    )

    return ScrapeResult(
        profile_id=profile_id,
        job_id=job_id,
        dataset_id=dataset_id,
        posts_scraped=len(items),
        posts_stored=stored,
        duplicates_skipped=duplicates,
    )


def _mark_failed(store: ScrapeStore, profile_id: str, run_token: str, logger: RunLogger) -> None:
    try:
        store.finish_profile_run(profile_id, run_token=run_token, status="failed")
    except StorageError as e:
        logger.exception("profile_status_update_failed", exc=e, status="failed")


async def run_scrape(
    profile_id: str,
    profile_url: str,
    max_posts: int | None = None,
    *,
    scraper: PostScraper,
    store: ScrapeStore,
    config: ScrapeConfig | None = None,
    logger: RunLogger | None = None,
    sleep_fn: SleepFn | None = None,
    clock: ClockFn | None = None,
) -> ScrapeResult:
    """
    Scrape one profile end to end: submit, poll, fetch, then store posts.

    The profile moves pending -> scraping -> completed | failed. Every exit
    after the claim, including errors and cancellation, writes a terminal
    status and releases the profile's run token.
    """
    cfg = config or ScrapeConfig()
    pid = (profile_id or "").strip()
    url = (profile_url or "").strip()
    if not pid or not url:
        raise ValueError("profile_id and profile_url must be non-empty")

    limit = cfg.default_max_posts if max_posts is None else int(max_posts)
    if limit < 1:
        raise ValueError("max_posts must be >= 1")

    sleeper = sleep_fn or asyncio.sleep
    now = clock or _utc_now
    log = (logger or RunLogger.null()).bind(profile_id=pid)

    run_token = uuid.uuid4().hex
    store.claim_profile_run(pid, run_token=run_token, stale_after_seconds=cfg.stale_run_after_seconds)
    log.info("scrape_started", profile_url=url, max_posts=limit)

    try:
        result = await _scrape_claimed_profile(
            pid,
            url,
            limit,
            run_token=run_token,
            scraper=scraper,
            store=store,
            config=cfg,
            sleep_fn=sleeper,
            logger=log,
        )
        store.finish_profile_run(
            pid,
            run_token=run_token,
            status="completed",
            last_scraped_at=now().isoformat(),
        )
    except BaseException as e:
        _mark_failed(store, pid, run_token, log)
        log.exception("scrape_failed", exc=e)
        raise

    log.info(
        "scrape_completed",
        job_id=result.job_id,
        posts_scraped=result.posts_scraped,
        posts_stored=result.posts_stored,
        duplicates_skipped=result.duplicates_skipped,
    )
    return result
