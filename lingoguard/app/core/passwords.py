"""Password hashing and strength scoring."""

import base64
import hashlib
import re
from dataclasses import dataclass, field

import bcrypt

from lingoguard.app.core.config import settings

MIN_PASSWORD_LENGTH = 8
VALID_SCORE_THRESHOLD = 4
COMMON_PASSWORD_PENALTY = 2

SPECIAL_CHARACTERS = '!@#$%^&*(),.?":{}|<>'

COMMON_PASSWORDS = frozenset({
    "password", "123456", "123456789", "qwerty", "abc123",
    "password123", "admin", "letmein", "welcome", "monkey",
})

_UPPERCASE_RE = re.compile(r"[A-Z]")
_LOWERCASE_RE = re.compile(r"[a-z]")
_DIGIT_RE = re.compile(r"[0-9]")
_SPECIAL_RE = re.compile("[" + re.escape(SPECIAL_CHARACTERS) + "]")


@dataclass(frozen=True)
class PasswordStrengthResult:
    """Outcome of a strength check. ``feedback`` is ordered as the checks ran."""
    is_valid: bool
    score: int
    feedback: tuple[str, ...] = field(default_factory=tuple)


def _prehash(password: str) -> bytes:
    # bcrypt only reads 72 bytes and rejects NUL bytes; a base64 SHA-256
    # digest is always 44 printable bytes.
    digest = hashlib.sha256(password.encode("utf-8", "surrogatepass")).digest()
    return base64.b64encode(digest)


def hash_password(password: str, rounds: int | None = None) -> str:
    """Hash a password with bcrypt.

    Args:
        password: The plain text password
        rounds: bcrypt cost factor, defaults to ``settings.bcrypt_rounds``

    Returns:
        The bcrypt hash as a string
    """
    salt = bcrypt.gensalt(rounds=rounds or settings.bcrypt_rounds)
    return bcrypt.hashpw(_prehash(password), salt).decode("ascii")


def verify_password(password: str, hashed: str) -> bool:
    """Check a password against a hash produced by :func:`hash_password`.

    Malformed hashes verify as False rather than raising.
    """
    try:
        return bcrypt.checkpw(_prehash(password), hashed.encode("utf-8"))
    except (ValueError, TypeError):
        return False


def validate_password_strength(password: str) -> PasswordStrengthResult:
    """Score a password against five criteria and a common-password denylist.

    One point each for length, uppercase, lowercase, digit and special
    character. Denylisted passwords lose two points, so they can never reach
    the validity threshold. A valid password needs a score of at least 4 and
    the minimum length. Validity is decided on the unclamped score; the
    reported score is clamped at zero.
    """
    feedback: list[str] = []
    score = 0
    long_enough = len(password) >= MIN_PASSWORD_LENGTH

    if not long_enough:
        feedback.append(f"Password is too short: use at least {MIN_PASSWORD_LENGTH} characters")
    else:
        score += 1

    if not _UPPERCASE_RE.search(password):
        feedback.append("Password must contain at least one uppercase letter")
    else:
        score += 1

    if not _LOWERCASE_RE.search(password):
        feedback.append("Password must contain at least one lowercase letter")
    else:
        score += 1

    if not _DIGIT_RE.search(password):
        feedback.append("Password must contain at least one digit")
    else:
        score += 1

    if not _SPECIAL_RE.search(password):
        feedback.append("Password must contain at least one special character")
    else:
        score += 1

    if password.lower() in COMMON_PASSWORDS:
        feedback.append("Password is too common")
        score -= COMMON_PASSWORD_PENALTY

    return PasswordStrengthResult(
        is_valid=long_enough and score >= VALID_SCORE_THRESHOLD,
        score=max(0, score),
        feedback=tuple(feedback),
    )
