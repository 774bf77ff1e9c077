from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol

from apify_client import ApifyClientAsync
from apify_client.errors import ApifyApiError

from .config_schema import ApifyConfig
from .errors import ApifyError
from .retry import OnRetryFn, RetryConfig, SleepFn, call_with_retries, is_retryable_apify_exception

STATUS_SUCCEEDED = "SUCCEEDED"
RUNNING_STATUSES: frozenset[str] = frozenset({"READY", "RUNNING"})

_DEFAULT_APIFY_RETRY = RetryConfig(
    # Roughly the Apify client's own default: 8 retries after the first attempt.
    max_attempts=9,
    base_delay_seconds=0.5,
    max_delay_seconds=20.0,
    jitter_ratio=0.0,
)


@dataclass(frozen=True)
class JobStatus:
    status: str
    dataset_id: str | None = None
    finished_at: str | None = None

    @property
    def is_running(self) -> bool:
        return self.status in RUNNING_STATUSES

    @property
    def succeeded(self) -> bool:
        return self.status == STATUS_SUCCEEDED


class PostScraper(Protocol):
    """The three calls a scrape run needs from a scraping provider."""

    async def submit_job(self, profile_url: str, max_posts: int) -> str | None: ...

    async def poll_job(self, job_id: str) -> JobStatus: ...

    async def fetch_results(self, dataset_id: str) -> list[dict[str, Any]]: ...


def _field(obj: Any, *names: str) -> Any:
    # Run payloads are plain dicts in older clients and models in newer ones.
    for name in names:
        if isinstance(obj, dict):
            value = obj.get(name)
        else:
            value = getattr(obj, name, None)
        if value is not None:
            return value
    return None


def _clean_str(value: Any) -> str | None:
    if value is None:
        return None
    s = str(value).strip()
    return s or None


class LinkedInPostScraper:
    """
    Async wrapper around an Apify LinkedIn profile-posts actor.

    Each provider call is retried on rate limits, 5xx and network errors;
    anything left over surfaces as ApifyError.
    """

    def __init__(
        self,
        token: str,
        *,
        apify: ApifyConfig | None = None,
        client: ApifyClientAsync | None = None,
        retry: RetryConfig | None = None,
        on_retry: OnRetryFn | None = None,
        sleep_fn: SleepFn | None = None,
    ) -> None:
        self._apify = apify or ApifyConfig()
        self._retry = retry or _DEFAULT_APIFY_RETRY
        self._on_retry = on_retry
        self._sleep_fn = sleep_fn

        if client is not None:
            self._client = client
        else:
            # Client-level retries off so one policy applies to every call.
            self._client = ApifyClientAsync(token=token, max_retries=0)

    @property
    def actor_id(self) -> str:
        return self._apify.profile_posts_actor

    async def _call(self, fn: Any, *, operation: str, failure: str) -> Any:
        try:
            return await call_with_retries(
                fn,
                cfg=self._retry,
                is_retryable=is_retryable_apify_exception,
                operation=operation,
                on_retry=self._on_retry,
                sleep_fn=self._sleep_fn,
            )
        except ApifyApiError as e:
            raise ApifyError(f"{failure}: {e}") from e
        except Exception as e:
            raise ApifyError(f"Unexpected error: {failure}: {e}") from e

    async def submit_job(self, profile_url: str, max_posts: int) -> str | None:
        """Start the actor for one profile; returns the run id or None."""
        url = (profile_url or "").strip()
        if not url:
            raise ApifyError("profile_url must be a non-empty string")

        run_input: dict[str, Any] = {
            "profileUrls": [url],
            "maxPosts": int(max_posts),
            "includeReposts": self._apify.include_reposts,
        }

        async def _do_start() -> Any:
            return await self._client.actor(self.actor_id).start(run_input=run_input)

        run = await self._call(
            _do_start,
            operation=f"apify.actor.start:{self.actor_id}",
            failure=f"Apify actor start failed ({self.actor_id})",
        )
        if run is None:
            return None
        return _clean_str(_field(run, "id"))

    async def poll_job(self, job_id: str) -> JobStatus:
        rid = (job_id or "").strip()
        if not rid:
            raise ApifyError("job_id must be a non-empty string")

        async def _do_get() -> Any:
            return await self._client.run(rid).get()

        run = await self._call(
            _do_get,
            operation=f"apify.run.get:{rid}",
            failure=f"Failed to read actor run ({rid})",
        )
        if run is None:
            raise ApifyError(f"Actor run not found: {rid}")

        return JobStatus(
            status=(_clean_str(_field(run, "status")) or "UNKNOWN").upper(),
            dataset_id=_clean_str(_field(run, "defaultDatasetId", "default_dataset_id")),
            finished_at=_clean_str(_field(run, "finishedAt", "finished_at")),
        )

    async def fetch_results(self, dataset_id: str) -> list[dict[str, Any]]:
        ds = (dataset_id or "").strip()
        if not ds:
            raise ApifyError("dataset_id must be a non-empty string")

        async def _do_fetch() -> list[dict[str, Any]]:
            return [
                item
                async for item in self._client.dataset(ds).iterate_items(
                    clean=self._apify.clean_items
                )
            ]

        return await self._call(
            _do_fetch,
            operation=f"apify.dataset.iterate_items:{ds}",
            failure=f"Failed to read dataset items ({ds})",
        )
