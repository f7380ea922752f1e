"""Logging setup for LingoGuard.

Application logs and security audit logs share one ``dictConfig``. The
``lingoguard.audit`` logger gets its own handler so audit events at INFO
(low severity) are still written when the application runs at WARNING.
"""

import json
import logging
import logging.config
import sys
import traceback
from datetime import datetime
from typing import Any, Dict, Optional

from lingoguard.app.core.config import settings

AUDIT_LOGGER_NAME = "lingoguard.audit"

# Attributes every LogRecord carries; anything else came in through ``extra``.
_RESERVED_ATTRS = frozenset((
    "name", "msg", "args", "levelname", "levelno", "pathname",
    "filename", "module", "exc_info", "exc_text", "stack_info",
    "lineno", "funcName", "created", "msecs", "relativeCreated",
    "thread", "threadName", "processName", "process", "message",
    "asctime", "taskName",
))


class JSONFormatter(logging.Formatter):
    """One JSON object per record, for log shippers and the SIEM.

    Known context fields are lifted to the top level; any other ``extra``
    attributes are nested under ``"extra"``.
    """

    CONTEXT_FIELDS = [
        "request_id",    # X-Request-ID of the request being served
        "user_id",       # Authenticated user, when known
        "client_ip",     # Address used in rate limit identifiers
        "user_agent",
        "path",
        "method",
        "event",         # Audit event name, e.g. PASSWORD_CHANGED
        "severity",      # low | medium | high
    ]

    def format(self, record: logging.LogRecord) -> str:
        record.message = record.getMessage()

        log_data: Dict[str, Any] = {
            "timestamp": datetime.now().astimezone().isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.message,
            "source": {
                "file": record.pathname,
                "line": record.lineno,
                "function": record.funcName,
            },
        }

        for field in self.CONTEXT_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                log_data[field] = value

        extra = {
            key: value
            for key, value in record.__dict__.items()
            if key not in _RESERVED_ATTRS and key not in self.CONTEXT_FIELDS
        }
        if extra:
            log_data["extra"] = extra

        if record.exc_info and record.exc_info != (None, None, None):
            log_data["exception"] = traceback.format_exception(*record.exc_info)

        return json.dumps(log_data, default=str, ensure_ascii=False)


class ContextFilter(logging.Filter):
    """Default every context field to None.

    The structured text format interpolates ``%(request_id)s`` and friends,
    which would fail on records logged without them.
    """

    CONTEXT_DEFAULTS = {field: None for field in JSONFormatter.CONTEXT_FIELDS}

    def filter(self, record: logging.LogRecord) -> bool:
        for field, default in self.CONTEXT_DEFAULTS.items():
            if not hasattr(record, field):
                setattr(record, field, default)
        return True


_TEXT_FORMATS = {
    "standard": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    "structured": (
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        " - request_id=%(request_id)s - user_id=%(user_id)s - client_ip=%(client_ip)s"
    ),
}


def _stream_handler(level: str, formatter: str, stream) -> Dict[str, Any]:
    return {
        "class": "logging.StreamHandler",
        "level": level,
        "formatter": formatter,
        "stream": stream,
        "filters": ["context"],
    }


def get_logging_config() -> Dict[str, Any]:
    """Build the ``dictConfig`` for the configured format and level.

    ``log_format`` is ``text``, ``structured`` or ``json``; anything else
    falls back to ``text``.
    """
    log_format = getattr(settings, "log_format", "text").lower()
    log_level = getattr(settings, "log_level", "INFO").upper()
    audit_level = "DEBUG" if log_level == "DEBUG" else "INFO"

    formatters: Dict[str, Any] = {
        name: {"format": fmt} for name, fmt in _TEXT_FORMATS.items()
    }
    if log_format == "json":
        formatters["json"] = {"()": "lingoguard.app.core.logging.JSONFormatter"}
        formatter = "json"
    elif log_format == "structured":
        formatter = "structured"
    else:
        formatter = "standard"

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": formatters,
        "filters": {
            "context": {"()": "lingoguard.app.core.logging.ContextFilter"},
        },
        "handlers": {
            "console": _stream_handler(log_level, formatter, sys.stdout),
            "error_console": _stream_handler("ERROR", formatter, sys.stderr),
            "audit_console": _stream_handler(audit_level, formatter, sys.stdout),
        },
        "loggers": {
            "lingoguard": {
                "level": log_level,
                "handlers": ["console", "error_console"],
                "propagate": False,
            },
            AUDIT_LOGGER_NAME: {
                "level": audit_level,
                "handlers": ["audit_console", "error_console"],
                "propagate": False,
            },
            "uvicorn": {
                "level": log_level,
                "handlers": ["console"],
                "propagate": False,
            },
        },
        "root": {
            "level": log_level,
            "handlers": ["console"],
        },
    }


def setup_logging() -> None:
    """Apply :func:`get_logging_config` and quiet chatty libraries."""
    logging.config.dictConfig(get_logging_config())

    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


def get_logger(name: str = "lingoguard") -> logging.Logger:
    return logging.getLogger(name)


def get_log_context(
    request_id: Optional[str] = None,
    user_id: Optional[str] = None,
    client_ip: Optional[str] = None,
    **extra
) -> Dict[str, Any]:
    """Build an ``extra`` mapping, dropping fields that are None.

    Example:
        >>> logger.info(
        ...     "Password changed",
        ...     extra=get_log_context(user_id="user-1", client_ip="1.2.3.4")
        ... )
    """
    context = {
        "request_id": request_id,
        "user_id": user_id,
        "client_ip": client_ip,
        **extra,
    }
    return {k: v for k, v in context.items() if v is not None}
