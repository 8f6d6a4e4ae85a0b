"""
Type definitions for authorization audit events.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from django.utils import timezone as django_timezone


class AuditEventType(Enum):
    """Kinds of authorization audit events."""
    AUTHORIZATION_CHECK = "authorization_check"
    ACCESS_FORBIDDEN = "access_forbidden"
    POLICY_DENIED = "policy_denied"
    AUTHORIZATION_ERROR = "authorization_error"


class AuditSeverity(Enum):
    """Severity levels of audit events."""
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


@dataclass
class AuditEvent:
    """One authorization decision as written to the audit log."""
    event_type: AuditEventType
    severity: AuditSeverity
    timestamp: Optional[datetime] = None
    user_id: Optional[str] = None
    tenant_id: Optional[str] = None
    action: Optional[str] = None
    subject: Optional[str] = None
    allowed: Optional[bool] = None
    reason: Optional[str] = None
    details: Optional[dict[str, Any]] = None
    risk_score: Optional[int] = None

    def __post_init__(self):
        if self.timestamp is None: self.timestamp = django_timezone.now()
        if self.details is None: self.details = {}
