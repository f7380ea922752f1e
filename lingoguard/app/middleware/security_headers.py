"""Security response headers and request screening for API routes."""

from urllib.parse import unquote

from fastapi import Request, Response
from fastapi.responses import PlainTextResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from lingoguard.app.core.logging import get_log_context, get_logger
from lingoguard.app.middleware.rate_limit import get_client_ip

logger = get_logger(__name__)

CONTENT_SECURITY_POLICY = " ".join([
    "default-src 'self';",
    "script-src 'self' 'unsafe-inline' 'unsafe-eval';",
    "style-src 'self' 'unsafe-inline';",
    "img-src 'self' data: https:;",
    "font-src 'self' data:;",
    "connect-src 'self' https://api.firebase.com https://*.googleapis.com;",
    "frame-src 'none';",
])

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "X-XSS-Protection": "1; mode=block",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "Permissions-Policy": "camera=(), microphone=(), geolocation=()",
    "Strict-Transport-Security": "max-age=31536000; includeSubDomains",
    "Content-Security-Policy": CONTENT_SECURITY_POLICY,
}

SUSPICIOUS_URL_MARKERS = ("..", "<script", "javascript:")
BODY_METHODS = frozenset({"POST", "PUT", "PATCH"})


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add the standard security headers to every response."""

    def __init__(self, app, headers: dict[str, str] | None = None):
        super().__init__(app)
        self.headers = headers if headers is not None else SECURITY_HEADERS

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint
    ) -> Response:
        response = await call_next(request)
        for name, value in self.headers.items():
            response.headers.setdefault(name, value)
        return response


class RequestGuardMiddleware(BaseHTTPMiddleware):
    """Reject obviously hostile or malformed API requests early.

    Only paths under ``path_prefix`` are screened:
    - 403 when the raw URL carries path traversal or script markers
    - 400 when a body-carrying method does not send JSON
    """

    def __init__(self, app, path_prefix: str = "/api/"):
        super().__init__(app)
        self.path_prefix = path_prefix

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint
    ) -> Response:
        if not request.url.path.startswith(self.path_prefix):
            return await call_next(request)

        target = unquote(f"{request.url.path}?{request.url.query}").lower()

        if any(marker in target for marker in SUSPICIOUS_URL_MARKERS):
            logger.warning(
                "Blocked suspicious request URL",
                extra=get_log_context(
                    client_ip=get_client_ip(request),
                    path=request.url.path,
                    method=request.method,
                ),
            )
            return PlainTextResponse("Forbidden", status_code=403)

        if request.method in BODY_METHODS:
            content_type = request.headers.get("content-type", "")
            if "application/json" not in content_type:
                return PlainTextResponse("Invalid Content-Type", status_code=400)

        return await call_next(request)
