"""API endpoints package for LingoGuard."""

from lingoguard.app.api.security import router as security_router

__all__ = [
    "security_router",
]
