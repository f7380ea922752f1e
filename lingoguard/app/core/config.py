import json
import re
from datetime import timedelta
from typing import Annotated, Any

from pydantic import field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

_DURATION_UNITS = {
    "ms": 0.001,
    "s": 1,
    "m": 60,
    "h": 3600,
    "d": 86400,
    "w": 604800,
}

_DURATION_RE = re.compile(r"^(\d+)\s*(ms|s|m|h|d|w)?$", re.IGNORECASE)


def parse_duration(raw: Any) -> timedelta:
    """Parse a duration such as ``"7d"``, ``"15m"`` or ``"3600"`` (seconds)."""
    if isinstance(raw, timedelta):
        return raw
    if isinstance(raw, (int, float)):
        return timedelta(seconds=raw)

    match = _DURATION_RE.match(str(raw).strip())
    if not match:
        raise ValueError(f"Invalid duration: {raw!r}")
    amount, unit = match.groups()
    return timedelta(seconds=int(amount) * _DURATION_UNITS[(unit or "s").lower()])


def _parse_cors_origins(raw: Any) -> list[str]:
    if raw is None:
        return []
    if isinstance(raw, list):
        items = [str(v).strip() for v in raw]
        return [v for v in items if v]

    raw = str(raw).strip()
    if not raw or raw == "[]":
        return []

    if raw.startswith("["):
        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError:
            parsed = None
        if isinstance(parsed, list):
            return [str(v).strip() for v in parsed if str(v).strip()]

    parts = [p for p in re.split(r"[,\s]+", raw) if p]
    if "*" in parts:
        return ["*"]
    # Deduplicate while preserving order.
    return list(dict.fromkeys(parts))


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    All settings can be configured via environment variables or .env file.
    """

    # Debug mode - enables detailed error responses
    debug: bool = False

    # development | production
    environment: str = "development"

    # Logging settings
    log_level: str = "INFO"
    log_format: str = "text"  # text | structured | json

    # JWT settings
    jwt_secret: str = "lingoguard-development-secret-change-me-in-production"
    jwt_algorithm: str = "HS256"
    jwt_expires_in: str = "7d"

    # Password hashing
    bcrypt_rounds: int = 12

    # Symmetric encryption key, 32 bytes hex encoded
    encryption_key: str = ""

    # Rate limiting settings
    rate_limit_window_seconds: int = 15 * 60
    rate_limit_max_requests: int = 100
    rate_limit_cleanup_interval_seconds: int = 60 * 60

    # Double-submit CSRF check on state-changing security routes
    csrf_protection_enabled: bool = False

    # Security monitoring service (audit events are posted here in production)
    audit_sink_url: str = ""
    audit_sink_timeout: float = 2.0
    audit_sink_queue_size: int = 1000

    # CORS settings
    cors_origins: Annotated[list[str], NoDecode] = ["*"]

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    @property
    def jwt_expires_delta(self) -> timedelta:
        return parse_duration(self.jwt_expires_in)

    @field_validator("cors_origins", mode="before")
    @classmethod
    def decode_cors_origins(cls, v: Any) -> list[str]:
        return _parse_cors_origins(v)

    @field_validator("jwt_expires_in")
    @classmethod
    def validate_jwt_expires_in(cls, v: str) -> str:
        """Validate the JWT expiry is a positive duration."""
        if parse_duration(v).total_seconds() <= 0:
            raise ValueError("jwt_expires_in must be a positive duration")
        return v

    @field_validator("bcrypt_rounds")
    @classmethod
    def validate_bcrypt_rounds(cls, v: int) -> int:
        """bcrypt only accepts cost factors between 4 and 31."""
        if not 4 <= v <= 31:
            raise ValueError("bcrypt_rounds must be between 4 and 31")
        return v

    @field_validator("encryption_key")
    @classmethod
    def validate_encryption_key(cls, v: str) -> str:
        v = v.strip()
        if v and not re.fullmatch(r"[0-9a-fA-F]{64}", v):
            raise ValueError("encryption_key must be 64 hex characters (32 bytes)")
        return v

    @field_validator(
        "rate_limit_window_seconds",
        "rate_limit_max_requests",
        "rate_limit_cleanup_interval_seconds",
        "audit_sink_queue_size",
    )
    @classmethod
    def validate_positive(cls, v: int) -> int:
        """Validate rate limit and queue values are positive."""
        if v < 1:
            raise ValueError("value must be at least 1")
        return v

    @field_validator("audit_sink_timeout")
    @classmethod
    def validate_timeout_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("audit_sink_timeout must be positive")
        return v

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


# Global settings instance
settings = Settings()
