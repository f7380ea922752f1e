"""Core utilities for the security layer."""

from lingoguard.app.core.config import settings
from lingoguard.app.core.logging import get_logger, setup_logging
from lingoguard.app.core.passwords import (
    PasswordStrengthResult,
    hash_password,
    validate_password_strength,
    verify_password,
)

__all__ = [
    "settings",
    "get_logger",
    "setup_logging",
    "PasswordStrengthResult",
    "hash_password",
    "validate_password_strength",
    "verify_password",
]
