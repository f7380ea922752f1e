"""Input sanitization and format validation.

All helpers here are pure: they return cleaned strings or booleans and never
raise on string input. ``sanitize_html`` is a best-effort denylist and does
not guarantee safety against every XSS vector.
"""

import re

_ANGLE_BRACKETS_RE = re.compile(r"[<>]")
_JS_PROTOCOL_RE = re.compile(r"javascript:", re.IGNORECASE)
_EVENT_HANDLER_RE = re.compile(r"on\w+=", re.IGNORECASE)

_SCRIPT_BLOCK_RE = re.compile(
    r"<script\b[^<]*(?:(?!</script>)<[^<]*)*</script>", re.IGNORECASE
)
_IFRAME_BLOCK_RE = re.compile(
    r"<iframe\b[^<]*(?:(?!</iframe>)<[^<]*)*</iframe>", re.IGNORECASE
)
_QUOTED_EVENT_HANDLER_RE = re.compile(
    r"\s*(?<![\w-])on\w+\s*=\s*(?:\"[^\"]*\"|'[^']*')", re.IGNORECASE
)

_EMAIL_RE = re.compile(r"[^\s@]+@[^\s@]+\.[^\s@]+")
_PHONE_RE = re.compile(r"\+?[1-9][0-9]{0,15}")
_PHONE_SEPARATORS_RE = re.compile(r"[\s\-()]")


def _sanitize_once(value: str) -> str:
    value = value.strip()
    value = _ANGLE_BRACKETS_RE.sub("", value)
    value = _JS_PROTOCOL_RE.sub("", value)
    return _EVENT_HANDLER_RE.sub("", value)


def sanitize_string(value: str) -> str:
    """Strip markup characters, ``javascript:`` and inline handlers.

    Removing one pattern can splice together another (``javajavascript:script:``),
    so passes repeat until nothing changes. Every pass that changes the
    string shortens it, which bounds the loop and makes the result idempotent.
    """
    previous = None
    while value != previous:
        previous = value
        value = _sanitize_once(value)
    return value


def sanitize_email(email: str) -> str:
    return email.lower().strip()


def sanitize_html(html: str) -> str:
    """Remove script and iframe blocks, quoted inline handlers and ``javascript:``."""
    html = _SCRIPT_BLOCK_RE.sub("", html)
    html = _IFRAME_BLOCK_RE.sub("", html)
    html = _QUOTED_EVENT_HANDLER_RE.sub("", html)
    return _JS_PROTOCOL_RE.sub("", html)


def validate_email(email: str) -> bool:
    return _EMAIL_RE.fullmatch(email) is not None


def validate_phone_number(phone: str) -> bool:
    """Accept up to 16 digits with an optional leading ``+``.

    Spaces, dashes and parentheses are ignored.
    """
    return _PHONE_RE.fullmatch(_PHONE_SEPARATORS_RE.sub("", phone)) is not None
