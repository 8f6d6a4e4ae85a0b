"""
AuditLogger implementation.

Writes one JSON record per authorization decision to the ``audit`` logger.
Sinks are fire-and-forget: the facade never waits on or depends on them.
"""

import json
import logging
from dataclasses import asdict
from enum import Enum
from typing import Any, Callable, Optional, Protocol

from django.core.serializers.json import DjangoJSONEncoder

from lingo_authz.config_proxy import get_authorization_setting

from .types import AuditEvent, AuditEventType, AuditSeverity

logger = logging.getLogger(__name__)

MASK = "***MASKED***"


class AuditSink(Protocol):
    """Receiver of authorization audit events."""

    def log_check(
        self,
        user_id: Optional[str],
        tenant_id: Optional[str],
        action: str,
        subject: str,
        allowed: bool,
        metadata: Optional[dict[str, Any]] = None,
    ) -> None: ...

    def log_denial(
        self,
        user_id: Optional[str],
        tenant_id: Optional[str],
        action: str,
        subject: str,
        reason: str,
        metadata: Optional[dict[str, Any]] = None,
    ) -> None: ...


def _json_safe(value: Any) -> Any:
    if isinstance(value, Enum): return value.value
    if isinstance(value, dict): return {k: _json_safe(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)): return [_json_safe(i) for i in value]
    return value


class AuditLogger:
    """Authorization audit log writer."""

    def __init__(self, logger_name: str = "audit"):
        self.logger = logging.getLogger(logger_name)
        self._event_handlers: dict[AuditEventType, list[Callable[[AuditEvent], None]]] = {}

    @property
    def sensitive_fields(self) -> set[str]:
        fields = get_authorization_setting("audit_sensitive_fields", []) or []
        return {str(f).lower() for f in fields}

    def log_check(self, user_id, tenant_id, action, subject, allowed, metadata=None) -> None:
        self.log_event(AuditEvent(
            event_type=AuditEventType.AUTHORIZATION_CHECK,
            severity=AuditSeverity.INFO if allowed else AuditSeverity.WARNING,
            user_id=user_id, tenant_id=tenant_id or "unknown",
            action=action, subject=subject, allowed=allowed,
            details=dict(metadata or {}),
        ))

    def log_denial(self, user_id, tenant_id, action, subject, reason, metadata=None) -> None:
        details = dict(metadata or {})
        event_type = AuditEventType.ACCESS_FORBIDDEN
        if details.get("policy"):
            event_type = AuditEventType.POLICY_DENIED
        elif details.get("internal_error"):
            event_type = AuditEventType.AUTHORIZATION_ERROR
        self.log_event(AuditEvent(
            event_type=event_type,
            severity=AuditSeverity.ERROR if event_type == AuditEventType.AUTHORIZATION_ERROR else AuditSeverity.WARNING,
            user_id=user_id, tenant_id=tenant_id or "unknown",
            action=action, subject=subject, allowed=False, reason=reason,
            details=details,
        ))

    def log_event(self, event: AuditEvent) -> None:
        if event.risk_score is None: event.risk_score = self._calculate_risk_score(event)
        if event.details: event.details = self._mask_sensitive(event.details)
        log_data = _json_safe(asdict(event))
        log_data["timestamp"] = event.timestamp.isoformat()
        payload = json.dumps(log_data, cls=DjangoJSONEncoder)
        if event.severity == AuditSeverity.CRITICAL: self.logger.critical(payload)
        elif event.severity == AuditSeverity.ERROR: self.logger.error(payload)
        elif event.severity == AuditSeverity.WARNING: self.logger.warning(payload)
        else: self.logger.info(payload)
        self._execute_event_handlers(event)

    def _mask_sensitive(self, data: dict) -> dict:
        sensitive = self.sensitive_fields
        masked = {}
        for key, value in data.items():
            if str(key).lower() in sensitive: masked[key] = MASK
            elif isinstance(value, dict): masked[key] = self._mask_sensitive(value)
            elif isinstance(value, list): masked[key] = [self._mask_sensitive(i) if isinstance(i, dict) else i for i in value]
            else: masked[key] = value
        return masked

    def _calculate_risk_score(self, event: AuditEvent) -> int:
        score = {AuditSeverity.INFO: 10, AuditSeverity.WARNING: 30, AuditSeverity.ERROR: 60, AuditSeverity.CRITICAL: 90}.get(event.severity, 10)
        if event.event_type in (AuditEventType.ACCESS_FORBIDDEN, AuditEventType.POLICY_DENIED): score += 20
        if event.tenant_id in (None, "unknown"): score += 10
        return min(score, 100)

    def register_event_handler(self, event_type: AuditEventType, handler: Callable[[AuditEvent], None]) -> None:
        self._event_handlers.setdefault(event_type, []).append(handler)

    def _execute_event_handlers(self, event: AuditEvent) -> None:
        for handler in self._event_handlers.get(event.event_type, []):
            try: handler(event)
            except Exception as exc: logger.error("Audit event handler failed: %s", exc)


audit_logger = AuditLogger()

__all__ = ["AuditLogger", "AuditSink", "audit_logger"]
