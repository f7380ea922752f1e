"""Fixed-window rate limiting.

This module bounds how many operations an identifier (typically
``"<feature>-<client-ip>"``) may perform per window. State lives in an
explicit limiter object that the application stores on ``app.state``, so tests
and alternative backends can swap it without touching call sites.
"""

import asyncio
import math
import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from fastapi import Request

from lingoguard.app.core.config import settings
from lingoguard.app.core.logging import get_logger

logger = get_logger(__name__)

Clock = Callable[[], float]


@dataclass
class RateLimitResult:
    """Result of a rate limit check."""
    allowed: bool
    limit: int
    remaining: int
    reset_time: float
    retry_after: Optional[int] = None


@dataclass
class RateWindowEntry:
    """Counter state for one identifier."""
    count: int
    reset_time: float


class RateLimitBackend(ABC):
    """Abstract base class for rate limit backends."""

    @abstractmethod
    def check_limit(self, identifier: str) -> RateLimitResult:
        """Count a request for ``identifier`` and report whether it is allowed."""

    @abstractmethod
    def cleanup(self) -> int:
        """Remove expired entries and return how many were removed."""


class InMemoryRateLimiter(RateLimitBackend):
    """Process-local fixed-window rate limiter.

    One entry per identifier. The first request, or the first request after
    ``reset_time`` has passed, starts a fresh window with ``count=1``.
    Requests inside the window increment the count until it reaches
    ``max_requests``; denied checks do not increment.

    A single lock guards the map. The critical section has no await points,
    so it is atomic both on an event loop and across worker threads.

    Suitable for single-instance deployments; counters are not shared
    between processes.
    """

    def __init__(
        self,
        window_seconds: Optional[float] = None,
        max_requests: Optional[int] = None,
        clock: Clock = time.time,
    ):
        """Initialize rate limiter.

        Args:
            window_seconds: Window length, defaults to settings
            max_requests: Maximum requests per window, defaults to settings
            clock: Returns the current time in seconds
        """
        self.window_seconds = (
            window_seconds if window_seconds is not None else settings.rate_limit_window_seconds
        )
        self.max_requests = (
            max_requests if max_requests is not None else settings.rate_limit_max_requests
        )
        self._clock = clock
        self._entries: Dict[str, RateWindowEntry] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._entries)

    def check_limit(self, identifier: str) -> RateLimitResult:
        with self._lock:
            now = self._clock()
            entry = self._entries.get(identifier)

            if entry is None or now > entry.reset_time:
                entry = RateWindowEntry(count=1, reset_time=now + self.window_seconds)
                self._entries[identifier] = entry
                return RateLimitResult(
                    allowed=True,
                    limit=self.max_requests,
                    remaining=self.max_requests - 1,
                    reset_time=entry.reset_time,
                )

            if entry.count >= self.max_requests:
                return RateLimitResult(
                    allowed=False,
                    limit=self.max_requests,
                    remaining=0,
                    reset_time=entry.reset_time,
                    retry_after=max(1, math.ceil(entry.reset_time - now)),
                )

            entry.count += 1
            return RateLimitResult(
                allowed=True,
                limit=self.max_requests,
                remaining=self.max_requests - entry.count,
                reset_time=entry.reset_time,
            )

    def cleanup(self) -> int:
        """Drop entries whose window has fully expired.

        The clock is read under the lock, so an entry created or reset by a
        concurrent ``check_limit`` always has a future ``reset_time`` here.
        """
        with self._lock:
            now = self._clock()
            expired = [
                key for key, entry in self._entries.items()
                if now > entry.reset_time
            ]
            for key in expired:
                del self._entries[key]
        if expired:
            logger.debug(f"Rate limiter cleanup removed {len(expired)} entries")
        return len(expired)


class RateLimitCleanupTask:
    """Background task that periodically sweeps a limiter's expired entries.

    Example:
        task = RateLimitCleanupTask(limiter, interval_seconds=3600)
        task.start()
        ...
        await task.stop()
    """

    def __init__(
        self,
        limiter: RateLimitBackend,
        interval_seconds: Optional[float] = None,
    ):
        self.limiter = limiter
        self.interval_seconds = (
            interval_seconds
            if interval_seconds is not None
            else settings.rate_limit_cleanup_interval_seconds
        )
        self._task: Optional[asyncio.Task] = None
        self._shutdown_event = asyncio.Event()

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start the sweep loop on the running event loop."""
        if self.running:
            return
        self._shutdown_event.clear()
        self._task = asyncio.create_task(self._run())
        logger.debug("Rate limit cleanup task started")

    async def stop(self) -> None:
        """Stop the sweep loop and wait for it to exit."""
        self._shutdown_event.set()
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.debug("Rate limit cleanup task stopped")

    async def _run(self) -> None:
        while not self._shutdown_event.is_set():
            try:
                await asyncio.wait_for(
                    self._shutdown_event.wait(),
                    timeout=self.interval_seconds,
                )
            except asyncio.TimeoutError:
                pass

            if self._shutdown_event.is_set():
                break

            try:
                self.limiter.cleanup()
            except Exception:
                logger.exception("Rate limit cleanup failed")


def get_client_ip(request: Request) -> str:
    """Client address for rate limit identifiers.

    Uses the first X-Forwarded-For hop when present, otherwise the socket
    peer, otherwise ``"unknown"``.
    """
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        client_ip = forwarded.split(",")[0].strip()
        if client_ip:
            return client_ip
    return request.client.host if request.client else "unknown"


def get_rate_limiter(request: Request) -> RateLimitBackend:
    """Limiter owned by the running application."""
    return request.app.state.rate_limiter


def rate_limit_headers(result: RateLimitResult) -> Dict[str, str]:
    headers = {
        "X-RateLimit-Limit": str(result.limit),
        "X-RateLimit-Remaining": str(result.remaining),
        "X-RateLimit-Reset": str(int(result.reset_time)),
    }
    if result.retry_after is not None:
        headers["Retry-After"] = str(result.retry_after)
    return headers
