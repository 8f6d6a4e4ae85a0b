"""
Authorization audit package.
"""

from .types import AuditEvent, AuditEventType, AuditSeverity
from .logger import AuditLogger, AuditSink, audit_logger

__all__ = [
    "AuditEvent",
    "AuditEventType",
    "AuditSeverity",
    "AuditLogger",
    "AuditSink",
    "audit_logger",
]
