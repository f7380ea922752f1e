"""JWT issuance and verification, CSRF tokens and session helpers."""

import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Protocol

import jwt

from lingoguard.app.core.config import settings
from lingoguard.app.core.encryption import hash_data
from lingoguard.app.core.logging import get_logger
from lingoguard.app.exceptions import InvalidTokenError

logger = get_logger(__name__)

TOKEN_BYTES = 32


# ============================================
# JWT
# ============================================


def generate_token(
    payload: dict[str, Any],
    expires_in: timedelta | None = None,
) -> str:
    """Sign a payload with the server secret.

    Args:
        payload: Claims to embed; ``iat`` and ``exp`` are added
        expires_in: Token lifetime, defaults to ``settings.jwt_expires_in``

    Returns:
        Encoded JWT string
    """
    now = datetime.now(timezone.utc)
    claims = dict(payload)
    claims["iat"] = now
    if expires_in is None:
        expires_in = settings.jwt_expires_delta
    claims["exp"] = now + expires_in
    return jwt.encode(claims, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def verify_token(token: str) -> dict[str, Any]:
    """Verify a JWT and return its payload.

    Raises:
        InvalidTokenError: If the signature is invalid, the token is
            malformed or it has expired
    """
    try:
        return jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
        )
    except jwt.ExpiredSignatureError as e:
        raise InvalidTokenError("Token has expired") from e
    except jwt.InvalidTokenError as e:
        raise InvalidTokenError("Invalid token") from e


def decode_token(token: str) -> dict[str, Any] | None:
    """Decode a JWT WITHOUT verifying it. For inspection only, never for auth.

    Returns:
        The payload, or None if the token cannot be decoded
    """
    try:
        return jwt.decode(token, options={"verify_signature": False})
    except jwt.InvalidTokenError:
        return None


# ============================================
# CSRF
# ============================================


def generate_csrf_token() -> str:
    """Generate a 64 hex character CSRF token."""
    return secrets.token_hex(TOKEN_BYTES)


def validate_csrf_token(token: str | None, expected: str | None) -> bool:
    """Compare a submitted CSRF token to the session's in constant time."""
    if not token or not expected:
        return False
    return secrets.compare_digest(token.encode("utf-8"), expected.encode("utf-8"))


# ============================================
# Sessions
# ============================================


class SessionStore(Protocol):
    """Storage that owns session records (database, cache, ...)."""

    def invalidate(self, session_id: str) -> None: ...


def generate_session_id() -> str:
    """Generate a 64 hex character session identifier."""
    return secrets.token_hex(TOKEN_BYTES)


def validate_session(session_id: str | None, user_id: str | None) -> bool:
    """Presence check only; the session store does the real validation."""
    return bool(session_id and user_id)


def invalidate_session(session_id: str, store: SessionStore | None = None) -> None:
    """Ask the session store to drop a session."""
    if store is not None:
        store.invalidate(session_id)
    logger.info(
        "Session invalidated",
        extra={"session_fingerprint": hash_data(session_id)[:12]},
    )
