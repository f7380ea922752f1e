from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from lingoguard.app.api.security import router as security_router
from lingoguard.app.core.config import Settings, settings
from lingoguard.app.core.logging import get_log_context, get_logger, setup_logging
from lingoguard.app.core.security import SessionStore
from lingoguard.app.exceptions import (
    AuthenticationError,
    DecryptionError,
    RateLimitExceededError,
    ValidationError,
)
from lingoguard.app.middleware.rate_limit import (
    InMemoryRateLimiter,
    RateLimitBackend,
    RateLimitCleanupTask,
    get_client_ip,
)
from lingoguard.app.middleware.request_id import RequestIdMiddleware, get_request_id
from lingoguard.app.middleware.security_headers import (
    RequestGuardMiddleware,
    SecurityHeadersMiddleware,
)
from lingoguard.app.services.audit import SecurityAudit, create_security_audit
from lingoguard.app.services.credentials import CredentialStore


def create_app(
    config: Optional[Settings] = None,
    rate_limiter: Optional[RateLimitBackend] = None,
    security_audit: Optional[SecurityAudit] = None,
    credential_store: Optional[CredentialStore] = None,
    session_store: Optional[SessionStore] = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Collaborators default to the in-process implementations built from
    ``config``; tests and deployments pass their own.

    Returns:
        Configured FastAPI application instance
    """
    if config is None:
        config = settings

    setup_logging()
    logger = get_logger(__name__)

    limiter = rate_limiter
    if limiter is None:
        limiter = InMemoryRateLimiter(
            window_seconds=config.rate_limit_window_seconds,
            max_requests=config.rate_limit_max_requests,
        )
    audit = security_audit if security_audit is not None else create_security_audit(config)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Start the rate limit sweeper and audit delivery; stop both on shutdown."""
        cleanup_task = RateLimitCleanupTask(
            limiter, interval_seconds=config.rate_limit_cleanup_interval_seconds
        )
        cleanup_task.start()
        app.state.cleanup_task = cleanup_task

        sink = audit.sink
        if sink is not None and hasattr(sink, "start"):
            sink.start()

        logger.info(
            "Application startup complete",
            extra={
                "environment": config.environment,
                "rate_limit_window_seconds": config.rate_limit_window_seconds,
                "rate_limit_max_requests": config.rate_limit_max_requests,
            },
        )

        yield

        await cleanup_task.stop()

        if sink is not None and hasattr(sink, "close"):
            sink.close()

        logger.info("Application shutdown complete")

    app = FastAPI(
        title="LingoGuard",
        description="Security layer: input sanitization, rate limiting, token and audit services",
        version="1.0.0",
        lifespan=lifespan,
    )

    app.state.settings = config
    app.state.rate_limiter = limiter
    app.state.security_audit = audit
    app.state.credential_store = credential_store
    app.state.session_store = session_store

    # Add middleware (order matters: last added = first executed)
    app.add_middleware(RequestGuardMiddleware)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials="*" not in config.cors_origins,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "X-RateLimit-Limit", "X-RateLimit-Remaining", "X-RateLimit-Reset"],
        max_age=600,
    )

    app.include_router(security_router)

    @app.get("/health")
    async def health(request: Request) -> dict[str, Any]:
        """Health check with rate limiter and audit sink status."""
        cleanup_task = getattr(request.app.state, "cleanup_task", None)
        components: dict[str, Any] = {
            "rate_limiter": {
                "status": "ok",
                "entries": len(limiter) if hasattr(limiter, "__len__") else None,
                "cleanup_running": bool(cleanup_task and cleanup_task.running),
            },
            "audit": {
                "status": "ok",
                "sink": type(audit.sink).__name__ if audit.sink is not None else None,
            },
        }
        return {"status": "ok", "components": components}

    @app.exception_handler(RateLimitExceededError)
    async def rate_limit_handler(request: Request, exc: RateLimitExceededError) -> JSONResponse:
        """Handle RateLimitExceededError and return HTTP 429 response."""
        return JSONResponse(
            status_code=exc.status_code,
            content=exc.to_response(),
            headers={"Retry-After": str(exc.retry_after)} if exc.retry_after else None,
        )

    @app.exception_handler(AuthenticationError)
    async def auth_error_handler(request: Request, exc: AuthenticationError) -> JSONResponse:
        """Handle AuthenticationError and InvalidTokenError with HTTP 401."""
        return JSONResponse(status_code=exc.status_code, content={"error": "Unauthorized"})

    @app.exception_handler(ValidationError)
    async def validation_error_handler(request: Request, exc: ValidationError) -> JSONResponse:
        """Handle ValidationError and return HTTP 400 response."""
        content: dict[str, Any] = {"error": exc.message}
        if exc.feedback:
            content["feedback"] = exc.feedback
        return JSONResponse(status_code=exc.status_code, content=content)

    @app.exception_handler(DecryptionError)
    async def decryption_error_handler(request: Request, exc: DecryptionError) -> JSONResponse:
        """Handle DecryptionError without revealing why decryption failed."""
        return JSONResponse(status_code=exc.status_code, content={"error": "Invalid payload"})

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Global exception handler for unhandled exceptions.

        Never returns a traceback to the client; full details are logged
        server-side. Debug mode adds the exception message and type.
        """
        request_id = get_request_id(request)

        logger.exception(
            f"Unhandled exception [request_id={request_id}]",
            extra=get_log_context(
                request_id=request_id,
                client_ip=get_client_ip(request),
                path=request.url.path,
                method=request.method,
                exception_type=type(exc).__name__,
            ),
        )

        content: dict[str, Any] = {
            "error": "Internal server error",
            "request_id": request_id,
        }
        if config.debug:
            content["message"] = str(exc)
            content["exception_type"] = type(exc).__name__
        return JSONResponse(status_code=500, content=content)

    return app


# Create the application instance
app = create_app()
