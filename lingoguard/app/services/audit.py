"""Security audit logging and suspicious activity heuristics.

Every security-relevant outcome (rate limit hits, weak password attempts,
password changes, ...) is recorded through :class:`SecurityAudit`. Entries go
to the ``lingoguard.audit`` logger and, when configured, to an external
monitoring sink. Recording an event never raises into the request path.
"""

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional, Protocol

from lingoguard.app.core.config import Settings
from lingoguard.app.core.logging import AUDIT_LOGGER_NAME, get_logger

logger = get_logger(AUDIT_LOGGER_NAME)


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


_LOG_LEVELS = {
    Severity.LOW: logging.INFO,
    Severity.MEDIUM: logging.WARNING,
    Severity.HIGH: logging.ERROR,
}

SUSPICIOUS_PATTERNS = [
    re.compile(r"admin", re.IGNORECASE),
    re.compile(r"drop\s+table", re.IGNORECASE),
    re.compile(r"delete\s+from", re.IGNORECASE),
    re.compile(r"union\s+select", re.IGNORECASE),
    re.compile(r"script", re.IGNORECASE),
    re.compile(r"javascript", re.IGNORECASE),
]


@dataclass
class SecurityEvent:
    """A structured, severity-tagged audit record."""
    timestamp: str
    event: str
    severity: str
    ip: str = "unknown"
    user_agent: str = "unknown"
    details: Dict[str, Any] = field(default_factory=dict)


class AuditSink(Protocol):
    """External destination for audit events (monitoring service)."""

    def emit(self, event: SecurityEvent) -> None: ...


def _coerce_severity(severity: Any) -> Severity:
    try:
        return Severity(str(getattr(severity, "value", severity)).lower())
    except ValueError:
        return Severity.MEDIUM


class SecurityAudit:
    """Records security events and flags suspicious activity.

    Example:
        audit = SecurityAudit()
        audit.log_security_event(
            "PASSWORD_CHANGED",
            {"ip": "1.2.3.4", "userId": "user-1"},
            severity="medium",
        )
    """

    def __init__(self, sink: Optional[AuditSink] = None):
        self.sink = sink

    def log_security_event(
        self,
        event: str,
        details: Optional[Dict[str, Any]] = None,
        severity: Any = Severity.MEDIUM,
    ) -> Optional[SecurityEvent]:
        """Record a security event.

        Args:
            event: Event name, e.g. ``"PASSWORD_CHANGE_RATE_LIMIT"``
            details: Context such as ``ip``, ``userId`` and ``userAgent``
            severity: ``low``, ``medium`` or ``high``; unknown values count
                as ``medium``

        Returns:
            The recorded event, or None if it could not be built
        """
        try:
            details = dict(details or {})
            level = _coerce_severity(severity)
            entry = SecurityEvent(
                timestamp=datetime.now(timezone.utc).isoformat(),
                event=event,
                severity=level.value,
                ip=str(details.get("ip") or "unknown"),
                user_agent=str(details.get("userAgent") or details.get("user_agent") or "unknown"),
                details=details,
            )
        except Exception:
            logger.warning(f"Could not build security event {event!r}", exc_info=True)
            return None

        logger.log(
            _LOG_LEVELS[level],
            f"[SECURITY {level.value.upper()}] {event}",
            extra={
                "event": event,
                "severity": level.value,
                "client_ip": entry.ip,
                "user_agent": entry.user_agent,
                "user_id": details.get("userId"),
                "details": details,
            },
        )

        if self.sink is not None:
            try:
                self.sink.emit(entry)
            except Exception:
                logger.warning(f"Audit sink rejected event {event!r}", exc_info=True)

        return entry

    def detect_suspicious_activity(self, user_id: str, activity: str) -> bool:
        """Heuristic denylist match; not a complete attack detector."""
        for pattern in SUSPICIOUS_PATTERNS:
            if pattern.search(activity):
                logger.debug(
                    f"Suspicious activity matched {pattern.pattern!r}",
                    extra={"user_id": user_id},
                )
                return True
        return False


def create_security_audit(config: Settings) -> SecurityAudit:
    """Build the audit service for the given settings.

    Events are forwarded to the monitoring service only in production and
    only when ``audit_sink_url`` is configured.
    """
    sink = None
    if config.is_production and config.audit_sink_url:
        from lingoguard.app.services.audit_sink import HttpAuditSink

        sink = HttpAuditSink(
            config.audit_sink_url,
            timeout=config.audit_sink_timeout,
            max_queue_size=config.audit_sink_queue_size,
        )
    return SecurityAudit(sink=sink)
