"""
Unit tests for the audit logger.
"""

import json
import logging

import pytest

from lingo_authz.config_proxy import configure_runtime_settings
from lingo_authz.security.audit import AuditEvent, AuditEventType, AuditLogger, AuditSeverity
from lingo_authz.security.audit.logger import MASK

pytestmark = pytest.mark.unit


@pytest.fixture
def audit(caplog):
    caplog.set_level(logging.INFO, logger="test.audit")
    return AuditLogger(logger_name="test.audit")


def records(caplog):
    return [json.loads(record.getMessage()) for record in caplog.records if record.name == "test.audit"]


def test_allowed_check_is_logged_as_info(audit, caplog):
    audit.log_check("u1", "t1", "read", "Lesson", True, {"user_roles": ["student"]})

    (entry,) = records(caplog)
    assert entry["event_type"] == "authorization_check"
    assert entry["severity"] == "info"
    assert entry["allowed"] is True
    assert entry["details"] == {"user_roles": ["student"]}
    assert entry["risk_score"] == 10
    assert [r.levelno for r in caplog.records if r.name == "test.audit"] == [logging.INFO]


def test_denial_is_logged_as_forbidden(audit, caplog):
    audit.log_denial("u1", None, "delete", "Lesson", "Insufficient permissions")

    (entry,) = records(caplog)
    assert entry["event_type"] == "access_forbidden"
    assert entry["tenant_id"] == "unknown"
    assert entry["reason"] == "Insufficient permissions"
    assert entry["risk_score"] == 60


def test_policy_denial_event_type(audit, caplog):
    audit.log_denial("u1", "t1", "read", "Lesson", "Access denied by policy", {"policy": "freeze"})

    assert records(caplog)[0]["event_type"] == "policy_denied"


def test_internal_error_event_type(audit, caplog):
    audit.log_denial("u1", "t1", "read", "Lesson", "Authorization check failed", {"internal_error": "KeyError"})

    (entry,) = records(caplog)
    assert entry["event_type"] == "authorization_error"
    assert entry["severity"] == "error"


def test_sensitive_details_are_masked(audit, caplog):
    configure_runtime_settings(authorization_settings__audit_sensitive_fields=["token"])

    audit.log_check("u1", "t1", "read", "Lesson", True, {"Token": "abc", "nested": {"token": "x", "ok": 1}})

    details = records(caplog)[0]["details"]
    assert details["Token"] == MASK
    assert details["nested"] == {"token": MASK, "ok": 1}


def test_event_handlers_receive_events(audit):
    received = []
    audit.register_event_handler(AuditEventType.POLICY_DENIED, received.append)

    audit.log_denial("u1", "t1", "read", "Lesson", "Access denied by policy", {"policy": "freeze"})
    audit.log_check("u1", "t1", "read", "Lesson", True)

    assert [event.event_type for event in received] == [AuditEventType.POLICY_DENIED]


def test_failing_handler_does_not_break_logging(audit, caplog):
    def handler(event):
        raise RuntimeError("handler down")

    audit.register_event_handler(AuditEventType.AUTHORIZATION_CHECK, handler)

    audit.log_check("u1", "t1", "read", "Lesson", True)

    assert len(records(caplog)) == 1


def test_explicit_risk_score_is_kept(audit, caplog):
    audit.log_event(
        AuditEvent(event_type=AuditEventType.AUTHORIZATION_CHECK, severity=AuditSeverity.CRITICAL, risk_score=5)
    )

    (entry,) = records(caplog)
    assert entry["risk_score"] == 5
    assert entry["timestamp"]
