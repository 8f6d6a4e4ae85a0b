import pytest

from lingo_authz.config_proxy import clear_runtime_settings
from lingo_authz.security.rbac.cache import reset_ability_cache


@pytest.fixture(autouse=True)
def _isolate_authorization_state():
    clear_runtime_settings()
    reset_ability_cache()
    yield
    clear_runtime_settings()
    reset_ability_cache()


class RecordingAuditSink:
    def __init__(self):
        self.checks = []
        self.denials = []

    def log_check(self, user_id, tenant_id, action, subject, allowed, metadata=None):
        self.checks.append(
            {
                "user_id": user_id,
                "tenant_id": tenant_id,
                "action": action,
                "subject": subject,
                "allowed": allowed,
                "metadata": metadata or {},
            }
        )

    def log_denial(self, user_id, tenant_id, action, subject, reason, metadata=None):
        self.denials.append(
            {
                "user_id": user_id,
                "tenant_id": tenant_id,
                "action": action,
                "subject": subject,
                "reason": reason,
                "metadata": metadata or {},
            }
        )

    @property
    def events(self):
        return self.checks + self.denials


@pytest.fixture
def audit_sink():
    return RecordingAuditSink()
