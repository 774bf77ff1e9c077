from __future__ import annotations

import asyncio
import random
from dataclasses import dataclass
from typing import Awaitable, Callable, TypeVar

from apify_client.errors import ApifyApiError

T = TypeVar("T")


@dataclass(frozen=True)
class RetryConfig:
    """
    Exponential backoff retry policy.

    - max_attempts counts the initial attempt (max_attempts=3 => 1 try + 2 retries).
    - base_delay_seconds is the first delay after the first failure.
    - jitter_ratio adds multiplicative jitter in [1-jitter, 1+jitter].
    """

    max_attempts: int = 6
    base_delay_seconds: float = 0.5
    max_delay_seconds: float = 20.0
    jitter_ratio: float = 0.25

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.base_delay_seconds < 0:
            raise ValueError("base_delay_seconds must be >= 0")
        if self.max_delay_seconds < self.base_delay_seconds:
            raise ValueError("max_delay_seconds must be >= base_delay_seconds")
        if not (0.0 <= self.jitter_ratio <= 1.0):
            raise ValueError("jitter_ratio must be between 0 and 1")


@dataclass(frozen=True)
class RetryEvent:
    operation: str
    failure_attempt: int
    next_attempt: int
    max_attempts: int

    delay_seconds: float
    reason: str | None

    error_type: str
    error_message: str


IsRetryableFn = Callable[[BaseException], tuple[bool, str | None]]
OnRetryFn = Callable[[RetryEvent], None]
SleepFn = Callable[[float], Awaitable[None]]


def backoff_seconds(failure_attempt: int, cfg: RetryConfig) -> float:
    # failure_attempt=1 => base delay.
    exponent = max(0, int(failure_attempt) - 1)
    delay = min(cfg.max_delay_seconds, cfg.base_delay_seconds * (2**exponent))
    if delay <= 0 or cfg.jitter_ratio <= 0:
        return max(0.0, float(delay))
    return max(0.0, delay * random.uniform(1.0 - cfg.jitter_ratio, 1.0 + cfg.jitter_ratio))


def _status_code(exc: BaseException) -> int | None:
    val = getattr(exc, "status_code", None)
    if val is None:
        return None
    try:
        return int(val)
    except (TypeError, ValueError):
        return None


def is_retryable_apify_exception(exc: BaseException) -> tuple[bool, str | None]:
    """
    Retry HTTP 429, HTTP 5xx and network/timeout failures; everything else is final.
    """
    if isinstance(exc, ApifyApiError):
        code = _status_code(exc)
        reason = f"http_{code}" if code is not None else "http_status"
        return (code == 429 or (code is not None and code >= 500)), reason

    if isinstance(exc, (ConnectionError, TimeoutError, asyncio.TimeoutError)):
        return True, "network_error"

    name = type(exc).__name__.casefold()
    if "timeout" in name or "connect" in name:
        return True, "network_error"

    return False, None


async def call_with_retries(
    fn: Callable[[], Awaitable[T]],
    *,
    cfg: RetryConfig,
    is_retryable: IsRetryableFn,
    operation: str,
    on_retry: OnRetryFn | None = None,
    sleep_fn: SleepFn | None = None,
) -> T:
    """
    Await fn() and retry retryable failures with exponential backoff.

    The last failure is re-raised once max_attempts is reached.
    """
    op = (operation or "").strip() or "operation"
    sleeper = sleep_fn or asyncio.sleep

    attempt = 1
    while True:
        try:
            return await fn()
        except Exception as exc:
            retryable, reason = is_retryable(exc)
            if not retryable or attempt >= cfg.max_attempts:
                raise

            delay = backoff_seconds(attempt, cfg)
            if on_retry is not None:
                on_retry(
                    RetryEvent(
                        operation=op,
                        failure_attempt=attempt,
                        next_attempt=attempt + 1,
                        max_attempts=cfg.max_attempts,
                        delay_seconds=delay,
                        reason=reason,
                        error_type=type(exc).__name__,
                        error_message=(str(exc) or "").strip(),
                    )
                )
            if delay > 0:
                await sleeper(delay)
            attempt += 1
