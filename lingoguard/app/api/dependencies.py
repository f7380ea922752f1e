"""FastAPI dependencies shared by the API routers.

Usage:
    from lingoguard.app.api.dependencies import AuditDep, UserDep

    @router.post("/items")
    async def create_item(request: Request, user: UserDep, audit: AuditDep):
        enforce_rate_limit(request, "create-item", audit, user_id=user["id"])
"""

from typing import Annotated, Any, Dict, Optional

from fastapi import Depends, Request

from lingoguard.app.exceptions import RateLimitExceededError
from lingoguard.app.middleware.auth import require_user
from lingoguard.app.middleware.rate_limit import (
    RateLimitResult,
    get_client_ip,
    get_rate_limiter,
)
from lingoguard.app.services.audit import SecurityAudit, Severity


def get_security_audit(request: Request) -> SecurityAudit:
    """Audit service owned by the running application."""
    return request.app.state.security_audit


AuditDep = Annotated[SecurityAudit, Depends(get_security_audit)]
UserDep = Annotated[Dict[str, Any], Depends(require_user)]


def rate_limit_event_name(feature: str) -> str:
    """``"password-change"`` -> ``"PASSWORD_CHANGE_RATE_LIMIT"``."""
    return f"{feature.upper().replace('-', '_')}_RATE_LIMIT"


def enforce_rate_limit(
    request: Request,
    feature: str,
    audit: SecurityAudit,
    user_id: Optional[str] = None,
    severity: Severity = Severity.HIGH,
) -> RateLimitResult:
    """Count this request against ``"<feature>-<client-ip>"``.

    Returns:
        The allowing result, for rate limit response headers

    Raises:
        RateLimitExceededError: If the identifier is over its limit; the
            denial is audited first
    """
    client_ip = get_client_ip(request)
    result = get_rate_limiter(request).check_limit(f"{feature}-{client_ip}")

    if not result.allowed:
        details: Dict[str, Any] = {"ip": client_ip}
        if user_id is not None:
            details["userId"] = user_id
        audit.log_security_event(rate_limit_event_name(feature), details, severity)
        raise RateLimitExceededError(
            limit=result.limit,
            reset_time=result.reset_time,
            retry_after=result.retry_after or 0,
        )

    return result
