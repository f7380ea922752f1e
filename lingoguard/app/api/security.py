"""Account security endpoints: password change, 2FA toggle and CSRF tokens."""

import re
from typing import Any, Dict

from fastapi import APIRouter, Depends, Request, Response
from pydantic import BaseModel, ConfigDict, Field
from starlette.concurrency import run_in_threadpool

from lingoguard.app.api.dependencies import AuditDep, UserDep, enforce_rate_limit
from lingoguard.app.core.logging import get_logger
from lingoguard.app.core.passwords import (
    hash_password,
    validate_password_strength,
    verify_password,
)
from lingoguard.app.core.security import (
    generate_csrf_token,
    invalidate_session,
    validate_csrf_token,
)
from lingoguard.app.exceptions import ValidationError
from lingoguard.app.middleware.rate_limit import get_client_ip, rate_limit_headers

logger = get_logger(__name__)

router = APIRouter(prefix="/api/security", tags=["security"])

CSRF_COOKIE_NAME = "csrf-token"
CSRF_HEADER_NAME = "X-CSRF-Token"

TWO_FACTOR_ACTIONS = ("enable", "disable")
_TWO_FACTOR_CODE_RE = re.compile(r"[0-9]{6}")


async def require_csrf_token(request: Request) -> None:
    """Double-submit check: the header must match the CSRF cookie.

    Skipped unless ``csrf_protection_enabled`` is set.
    """
    if not request.app.state.settings.csrf_protection_enabled:
        return
    if not validate_csrf_token(
        request.headers.get(CSRF_HEADER_NAME),
        request.cookies.get(CSRF_COOKIE_NAME),
    ):
        raise ValidationError("Invalid CSRF token")


class ChangePasswordRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    current_password: str = Field(default="", alias="currentPassword")
    new_password: str = Field(default="", alias="newPassword")


class TwoFactorRequest(BaseModel):
    # Clients may send the code as a JSON number
    model_config = ConfigDict(coerce_numbers_to_str=True)

    action: str = ""
    code: str = ""


@router.get("/csrf-token")
async def issue_csrf_token(response: Response) -> Dict[str, str]:
    """Issue a CSRF token as both a cookie and a response field."""
    token = generate_csrf_token()
    response.set_cookie(CSRF_COOKIE_NAME, token, httponly=False, samesite="strict")
    return {"csrfToken": token}


@router.post("/change-password", dependencies=[Depends(require_csrf_token)])
async def change_password(
    body: ChangePasswordRequest,
    request: Request,
    response: Response,
    user: UserDep,
    audit: AuditDep,
) -> Dict[str, Any]:
    """Change the current user's password.

    Weak passwords are rejected with the strength feedback so the user can
    correct them. When a credential store is configured the current password
    is verified and the new hash stored; when a session store is configured
    the session named in the token is invalidated.
    """
    user_id = user["id"]
    client_ip = get_client_ip(request)

    result = enforce_rate_limit(request, "password-change", audit, user_id=user_id)
    response.headers.update(rate_limit_headers(result))

    if not body.current_password or not body.new_password:
        raise ValidationError("Missing required fields")

    strength = validate_password_strength(body.new_password)
    if not strength.is_valid:
        audit.log_security_event(
            "WEAK_PASSWORD_ATTEMPT",
            {"ip": client_ip, "userId": user_id, "score": strength.score},
            "medium",
        )
        raise ValidationError("Password too weak", feedback=list(strength.feedback))

    credential_store = request.app.state.credential_store
    try:
        if credential_store is not None:
            stored_hash = credential_store.get_password_hash(user_id)
            if stored_hash is None or not await run_in_threadpool(
                verify_password, body.current_password, stored_hash
            ):
                audit.log_security_event(
                    "INVALID_CURRENT_PASSWORD",
                    {"ip": client_ip, "userId": user_id},
                    "medium",
                )
                raise ValidationError("Current password is incorrect")

        new_hash = await run_in_threadpool(hash_password, body.new_password)

        if credential_store is not None:
            credential_store.set_password_hash(user_id, new_hash)
    except ValidationError:
        raise
    except Exception as e:
        audit.log_security_event(
            "PASSWORD_CHANGE_ERROR",
            {"ip": client_ip, "userId": user_id, "error": str(e)},
            "high",
        )
        raise

    session_store = request.app.state.session_store
    session_id = user.get("sid")
    if session_store is not None and session_id:
        invalidate_session(str(session_id), session_store)

    audit.log_security_event(
        "PASSWORD_CHANGED",
        {
            "ip": client_ip,
            "userId": user_id,
            "userAgent": request.headers.get("user-agent"),
        },
        "medium",
    )

    return {"success": True, "message": "Password changed successfully"}


@router.post("/two-factor", dependencies=[Depends(require_csrf_token)])
async def toggle_two_factor(
    body: TwoFactorRequest,
    request: Request,
    response: Response,
    user: UserDep,
    audit: AuditDep,
) -> Dict[str, Any]:
    """Enable or disable two-factor authentication.

    Only the code format is checked here; TOTP verification belongs to the
    authentication provider.
    """
    user_id = user["id"]
    client_ip = get_client_ip(request)

    result = enforce_rate_limit(request, "2fa", audit, user_id=user_id)
    response.headers.update(rate_limit_headers(result))

    if not body.action or not body.code:
        raise ValidationError("Missing required fields")

    if body.action not in TWO_FACTOR_ACTIONS:
        raise ValidationError("Invalid action")

    if not _TWO_FACTOR_CODE_RE.fullmatch(body.code):
        audit.log_security_event(
            "INVALID_2FA_CODE",
            {"ip": client_ip, "userId": user_id, "action": body.action},
            "medium",
        )
        raise ValidationError("Invalid 2FA code")

    audit.log_security_event(
        "2FA_TOGGLED",
        {
            "ip": client_ip,
            "userId": user_id,
            "action": body.action,
            "userAgent": request.headers.get("user-agent"),
        },
        "medium",
    )

    enabled = body.action == "enable"
    return {
        "success": True,
        "message": f"2FA {'enabled' if enabled else 'disabled'} successfully",
        "twoFactorEnabled": enabled,
    }
