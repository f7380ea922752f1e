"""Tests for the fixed-window rate limiter and its cleanup task."""

import asyncio
import threading
from unittest.mock import Mock

import pytest

from lingoguard.app.middleware.rate_limit import (
    InMemoryRateLimiter,
    RateLimitCleanupTask,
    RateLimitResult,
    get_client_ip,
    rate_limit_headers,
)

WINDOW = 15 * 60
MAX_REQUESTS = 100


class FakeClock:
    """Manually advanced time source."""

    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def limiter(clock):
    return InMemoryRateLimiter(
        window_seconds=WINDOW,
        max_requests=MAX_REQUESTS,
        clock=clock,
    )


class TestInMemoryRateLimiter:
    """Tests for in-memory rate limiter."""

    def test_first_request_opens_window(self, limiter, clock):
        result = limiter.check_limit("login-1.2.3.4")

        assert result.allowed is True
        assert result.remaining == MAX_REQUESTS - 1
        assert result.limit == MAX_REQUESTS
        assert result.reset_time == clock.now + WINDOW
        assert result.retry_after is None

    def test_max_requests_allowed_then_denied(self, limiter):
        """Exactly max calls pass; the next one is denied."""
        for i in range(MAX_REQUESTS):
            result = limiter.check_limit("login-1.2.3.4")
            assert result.allowed is True
            assert result.remaining == MAX_REQUESTS - (i + 1)

        result = limiter.check_limit("login-1.2.3.4")
        assert result.allowed is False
        assert result.remaining == 0

    def test_denied_check_does_not_increment(self, limiter):
        for _ in range(MAX_REQUESTS):
            limiter.check_limit("key")

        for _ in range(5):
            assert limiter.check_limit("key").allowed is False

        assert limiter._entries["key"].count == MAX_REQUESTS

    def test_denied_result_reports_window_reset(self, limiter, clock):
        first = limiter.check_limit("key")
        for _ in range(MAX_REQUESTS - 1):
            limiter.check_limit("key")

        clock.advance(60)
        denied = limiter.check_limit("key")

        assert denied.allowed is False
        assert denied.reset_time == first.reset_time
        assert denied.retry_after == WINDOW - 60

    def test_window_resets_after_expiry(self, limiter, clock):
        """Scenario: 100 calls allowed, 101st denied, allowed again after the window."""
        for _ in range(MAX_REQUESTS):
            assert limiter.check_limit("login-1.2.3.4").allowed is True
        denied = limiter.check_limit("login-1.2.3.4")
        assert denied.allowed is False
        assert denied.remaining == 0

        clock.advance(WINDOW + 0.001)
        result = limiter.check_limit("login-1.2.3.4")

        assert result.allowed is True
        assert result.remaining == MAX_REQUESTS - 1
        assert result.reset_time == clock.now + WINDOW

    def test_window_still_open_at_exact_reset_time(self, limiter, clock):
        for _ in range(MAX_REQUESTS):
            limiter.check_limit("key")

        clock.advance(WINDOW)
        assert limiter.check_limit("key").allowed is False

    def test_different_keys_independent(self, limiter):
        for _ in range(MAX_REQUESTS):
            limiter.check_limit("login-1.1.1.1")

        assert limiter.check_limit("login-1.1.1.1").allowed is False
        assert limiter.check_limit("login-2.2.2.2").allowed is True

    def test_empty_identifier_is_a_valid_key(self, limiter):
        result = limiter.check_limit("")

        assert result.allowed is True
        assert "" in limiter._entries

    def test_defaults_come_from_settings(self):
        from lingoguard.app.core.config import settings

        limiter = InMemoryRateLimiter()

        assert limiter.window_seconds == settings.rate_limit_window_seconds
        assert limiter.max_requests == settings.rate_limit_max_requests

    def test_concurrent_threads_never_exceed_limit(self, clock):
        limiter = InMemoryRateLimiter(window_seconds=WINDOW, max_requests=50, clock=clock)
        allowed = []
        allowed_lock = threading.Lock()

        def worker():
            for _ in range(20):
                if limiter.check_limit("shared").allowed:
                    with allowed_lock:
                        allowed.append(1)

        threads = [threading.Thread(target=worker) for _ in range(10)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(allowed) == 50
        assert limiter._entries["shared"].count == 50


class TestCleanup:
    """Tests for expired entry removal."""

    def test_cleanup_removes_only_expired_entries(self, limiter, clock):
        limiter.check_limit("old")
        clock.advance(WINDOW / 2)
        limiter.check_limit("fresh")
        assert len(limiter) == 2

        clock.advance(WINDOW / 2 + 1)
        removed = limiter.cleanup()

        assert removed == 1
        assert len(limiter) == 1
        assert "fresh" in limiter._entries
        assert "old" not in limiter._entries

    def test_cleanup_keeps_entry_at_exact_reset_time(self, limiter, clock):
        limiter.check_limit("key")
        clock.advance(WINDOW)

        assert limiter.cleanup() == 0
        assert len(limiter) == 1

    def test_cleanup_on_empty_limiter(self, limiter):
        assert limiter.cleanup() == 0

    def test_entry_recreated_after_cleanup(self, limiter, clock):
        for _ in range(MAX_REQUESTS):
            limiter.check_limit("key")
        clock.advance(WINDOW + 1)
        limiter.cleanup()

        result = limiter.check_limit("key")
        assert result.allowed is True
        assert result.remaining == MAX_REQUESTS - 1


class TestRateLimitCleanupTask:
    """Tests for the periodic sweeper."""

    @pytest.mark.asyncio
    async def test_task_sweeps_periodically(self):
        limiter = Mock()
        task = RateLimitCleanupTask(limiter, interval_seconds=0.01)

        task.start()
        try:
            await asyncio.sleep(0.1)
            assert task.running is True
        finally:
            await task.stop()

        assert limiter.cleanup.call_count >= 2
        assert task.running is False

    @pytest.mark.asyncio
    async def test_stop_before_interval_skips_sweep(self):
        limiter = Mock()
        task = RateLimitCleanupTask(limiter, interval_seconds=3600)

        task.start()
        await asyncio.sleep(0)
        await task.stop()

        limiter.cleanup.assert_not_called()

    @pytest.mark.asyncio
    async def test_sweep_errors_do_not_stop_task(self):
        limiter = Mock()
        limiter.cleanup.side_effect = RuntimeError("boom")
        task = RateLimitCleanupTask(limiter, interval_seconds=0.01)

        task.start()
        try:
            await asyncio.sleep(0.1)
            assert task.running is True
        finally:
            await task.stop()

        assert limiter.cleanup.call_count >= 2

    @pytest.mark.asyncio
    async def test_start_is_idempotent(self):
        task = RateLimitCleanupTask(Mock(), interval_seconds=3600)

        task.start()
        first = task._task
        task.start()
        try:
            assert task._task is first
        finally:
            await task.stop()

    @pytest.mark.asyncio
    async def test_sweeps_real_limiter(self, clock):
        limiter = InMemoryRateLimiter(window_seconds=1, max_requests=5, clock=clock)
        limiter.check_limit("key")
        clock.advance(2)

        task = RateLimitCleanupTask(limiter, interval_seconds=0.01)
        task.start()
        try:
            await asyncio.sleep(0.05)
        finally:
            await task.stop()

        assert len(limiter) == 0


class TestClientIp:
    """Tests for identifier address extraction."""

    def test_uses_first_forwarded_hop(self):
        request = Mock()
        request.headers = {"X-Forwarded-For": "10.0.0.1, 192.168.1.1"}
        request.client.host = "127.0.0.1"

        assert get_client_ip(request) == "10.0.0.1"

    def test_falls_back_to_peer(self):
        request = Mock()
        request.headers = {}
        request.client.host = "192.168.1.1"

        assert get_client_ip(request) == "192.168.1.1"

    def test_unknown_without_client(self):
        request = Mock()
        request.headers = {}
        request.client = None

        assert get_client_ip(request) == "unknown"


def test_rate_limit_headers():
    allowed = RateLimitResult(allowed=True, limit=100, remaining=42, reset_time=1234.5)
    denied = RateLimitResult(
        allowed=False, limit=100, remaining=0, reset_time=1234.5, retry_after=30
    )

    assert rate_limit_headers(allowed) == {
        "X-RateLimit-Limit": "100",
        "X-RateLimit-Remaining": "42",
        "X-RateLimit-Reset": "1234",
    }
    assert rate_limit_headers(denied)["Retry-After"] == "30"
