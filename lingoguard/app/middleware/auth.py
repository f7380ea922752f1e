from typing import Any, Dict

from fastapi import Request

from lingoguard.app.core.security import verify_token
from lingoguard.app.exceptions import AuthenticationError

AUTH_COOKIE_NAME = "auth-token"
MAX_TOKEN_LENGTH = 4096


def get_bearer_token(request: Request) -> str | None:
    """Extract Bearer token from Authorization header.

    Args:
        request: The incoming request

    Returns:
        The token string if present, None otherwise
    """
    auth = request.headers.get("Authorization", "")
    if not auth.startswith("Bearer "):
        return None
    return auth.replace("Bearer ", "", 1).strip() or None


def get_auth_token(request: Request) -> str | None:
    """Session token from the Authorization header or the auth cookie."""
    return get_bearer_token(request) or request.cookies.get(AUTH_COOKIE_NAME)


async def require_user(request: Request) -> Dict[str, Any]:
    """Resolve the authenticated user from the session JWT.

    The verified claims are returned with ``id`` normalised from ``userId``
    or ``sub``.

    Raises:
        AuthenticationError: 401 if no token is present or it names no user
        InvalidTokenError: 401 if the token fails verification
    """
    token = get_auth_token(request)
    if not token:
        raise AuthenticationError()

    # Reject oversized tokens before doing any crypto on them
    if len(token) > MAX_TOKEN_LENGTH:
        raise AuthenticationError()

    claims = verify_token(token)
    user_id = claims.get("userId") or claims.get("sub")
    if not user_id:
        raise AuthenticationError()

    request.state.user_id = str(user_id)
    return {**claims, "id": str(user_id)}
