"""Middleware package for LingoGuard."""

from lingoguard.app.middleware.auth import require_user
from lingoguard.app.middleware.rate_limit import (
    InMemoryRateLimiter,
    RateLimitCleanupTask,
    RateLimitResult,
)
from lingoguard.app.middleware.request_id import RequestIdMiddleware, get_request_id
from lingoguard.app.middleware.security_headers import (
    RequestGuardMiddleware,
    SecurityHeadersMiddleware,
)

__all__ = [
    "require_user",
    "InMemoryRateLimiter",
    "RateLimitCleanupTask",
    "RateLimitResult",
    "RequestIdMiddleware",
    "get_request_id",
    "RequestGuardMiddleware",
    "SecurityHeadersMiddleware",
]
