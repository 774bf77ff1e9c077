from __future__ import annotations

import unittest

from li_scraper.retry import (
    RetryConfig,
    RetryEvent,
    backoff_seconds,
    call_with_retries,
    is_retryable_apify_exception,
)


class _HTTPError(Exception):
    def __init__(self, status_code: int) -> None:
        super().__init__(f"HTTP {status_code}")
        self.status_code = status_code


class ReadTimeoutError(Exception):
    pass


class TestRetryConfig(unittest.TestCase):
    def test_rejects_invalid_values(self) -> None:
        with self.assertRaises(ValueError):
            RetryConfig(max_attempts=0)
        with self.assertRaises(ValueError):
            RetryConfig(base_delay_seconds=-1)
        with self.assertRaises(ValueError):
            RetryConfig(base_delay_seconds=5, max_delay_seconds=1)
        with self.assertRaises(ValueError):
            RetryConfig(jitter_ratio=1.5)

    def test_backoff_is_exponential_and_capped(self) -> None:
        cfg = RetryConfig(base_delay_seconds=0.5, max_delay_seconds=3.0, jitter_ratio=0)
        self.assertEqual(
            [backoff_seconds(n, cfg) for n in range(1, 6)],
            [0.5, 1.0, 2.0, 3.0, 3.0],
        )

    def test_backoff_jitter_stays_in_range(self) -> None:
        cfg = RetryConfig(base_delay_seconds=1.0, max_delay_seconds=1.0, jitter_ratio=0.25)
        for _ in range(50):
            delay = backoff_seconds(1, cfg)
            self.assertGreaterEqual(delay, 0.75)
            self.assertLessEqual(delay, 1.25)


class TestIsRetryable(unittest.TestCase):
    def test_network_errors_are_retryable(self) -> None:
        self.assertEqual(is_retryable_apify_exception(ConnectionError("x")), (True, "network_error"))
        self.assertEqual(is_retryable_apify_exception(TimeoutError()), (True, "network_error"))
        self.assertEqual(is_retryable_apify_exception(ReadTimeoutError()), (True, "network_error"))

    def test_other_errors_are_final(self) -> None:
        self.assertEqual(is_retryable_apify_exception(ValueError("x")), (False, None))
        # Status codes only count on Apify API errors.
        self.assertEqual(is_retryable_apify_exception(_HTTPError(503)), (False, None))


class TestCallWithRetries(unittest.IsolatedAsyncioTestCase):
    async def test_retries_until_success(self) -> None:
        calls = 0
        sleeps: list[float] = []
        events: list[RetryEvent] = []

        async def _fn() -> str:
            nonlocal calls
            calls += 1
            if calls < 3:
                raise ConnectionError("reset")
            return "ok"

        async def _sleep(seconds: float) -> None:
            sleeps.append(seconds)

        cfg = RetryConfig(max_attempts=5, base_delay_seconds=0.5, max_delay_seconds=20, jitter_ratio=0)
        result = await call_with_retries(
            _fn,
            cfg=cfg,
            is_retryable=is_retryable_apify_exception,
            operation="op",
            on_retry=events.append,
            sleep_fn=_sleep,
        )

        self.assertEqual(result, "ok")
        self.assertEqual(calls, 3)
        self.assertEqual(sleeps, [0.5, 1.0])
        self.assertEqual([e.failure_attempt for e in events], [1, 2])
        self.assertEqual([e.next_attempt for e in events], [2, 3])
        self.assertEqual(events[0].error_type, "ConnectionError")
        self.assertEqual(events[0].error_message, "reset")
        self.assertEqual(events[0].operation, "op")

    async def test_reraises_after_max_attempts(self) -> None:
        calls = 0

        async def _fn() -> None:
            nonlocal calls
            calls += 1
            raise ConnectionError("down")

        async def _sleep(seconds: float) -> None:
            _ = seconds

        with self.assertRaises(ConnectionError):
            await call_with_retries(
                _fn,
                cfg=RetryConfig(max_attempts=3, base_delay_seconds=0, max_delay_seconds=0, jitter_ratio=0),
                is_retryable=is_retryable_apify_exception,
                operation="op",
                sleep_fn=_sleep,
            )
        self.assertEqual(calls, 3)

    async def test_non_retryable_fails_immediately(self) -> None:
        calls = 0

        async def _fn() -> None:
            nonlocal calls
            calls += 1
            raise ValueError("bad")

        with self.assertRaises(ValueError):
            await call_with_retries(
                _fn,
                cfg=RetryConfig(),
                is_retryable=is_retryable_apify_exception,
                operation="op",
            )
        self.assertEqual(calls, 1)


if __name__ == "__main__":
    unittest.main()
