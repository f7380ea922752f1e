"""Custom exceptions for LingoGuard."""


class LingoGuardException(Exception):
    """Base class for LingoGuard exceptions with HTTP status code.

    All custom exceptions should inherit from this class and define
    their specific status_code for consistent HTTP response handling.
    """
    status_code: int = 500

    def __init__(self, message: str = "Security layer error"):
        self.message = message
        super().__init__(message)


class ValidationError(LingoGuardException):
    """Raised by request handlers when client input is unusable.

    Sanitizers and validators themselves never raise; they return cleaned
    strings or booleans and the handler decides.
    Maps to HTTP 400 Bad Request.
    """
    status_code = 400

    def __init__(self, message: str = "Invalid request", feedback: list[str] | None = None):
        self.feedback = feedback or []
        super().__init__(message)


class AuthenticationError(LingoGuardException):
    """Raised when no authenticated user could be resolved.

    Maps to HTTP 401 Unauthorized.
    """
    status_code = 401

    def __init__(self, detail: str = "Unauthorized"):
        self.detail = detail
        super().__init__(detail)


class InvalidTokenError(AuthenticationError):
    """Raised when a JWT has a bad signature, is malformed or has expired."""

    def __init__(self, detail: str = "Invalid token"):
        super().__init__(detail)


class DecryptionError(LingoGuardException):
    """Raised when an encrypted payload cannot be decrypted under the server key.

    Maps to HTTP 400 Bad Request.
    """
    status_code = 400

    def __init__(self, detail: str = "Unable to decrypt payload"):
        self.detail = detail
        super().__init__(detail)


class RateLimitExceededError(LingoGuardException):
    """Raised by request handlers after a denied rate limit check.

    The limiter itself only reports ``allowed=False``; handlers raise this
    to surface the rejection. Maps to HTTP 429 Too Many Requests.
    """
    status_code = 429

    def __init__(self, limit: int, reset_time: float, retry_after: int = 0):
        self.limit = limit
        self.reset_time = reset_time
        self.retry_after = retry_after
        super().__init__("Too many requests")

    def to_response(self) -> dict:
        """Public response body; internal limiter state is never exposed."""
        return {"error": "Too many requests"}
