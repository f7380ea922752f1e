"""Services package for LingoGuard.

This package provides:
- Security audit logging and suspicious activity detection
- Fire-and-forget delivery of audit events to a monitoring service
- Collaborator protocols for credential and session storage
"""

from lingoguard.app.services.audit import (
    SecurityAudit,
    SecurityEvent,
    Severity,
    create_security_audit,
)
from lingoguard.app.services.audit_sink import HttpAuditSink

__all__ = [
    "SecurityAudit",
    "SecurityEvent",
    "Severity",
    "create_security_audit",
    "HttpAuditSink",
]
