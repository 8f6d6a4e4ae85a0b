"""
Authorization engine.

- Role-Based Access Control (compiled, cached abilities)
- Deny-first resource policies (ABAC overlay)
- Authorization facade and audit logging
"""

from .audit import AuditLogger, AuditSink, audit_logger
from .authorization import Authorizer, authorize, authorizer, check_rbac
from .context import get_user_context, user_context_from_claims
from .exceptions import (
    AuthorizationError,
    InvalidRuleError,
    PolicyStoreError,
    PolicyStoreTimeout,
    PolicyStoreUnavailable,
)
from .policies import (
    DjangoPolicyStore,
    InMemoryPolicyStore,
    PolicyEffect,
    PolicyEvaluator,
    PolicyRecord,
    PolicyStore,
)
from .rbac import (
    Action,
    AuthorizationDecision,
    RequiredRule,
    Rule,
    Subject,
    UserContext,
    require_abilities,
    role_catalog,
)

__all__ = [
    # Facade
    "authorize",
    "check_rbac",
    "Authorizer",
    "authorizer",
    # Types
    "Action",
    "Subject",
    "Rule",
    "RequiredRule",
    "UserContext",
    "AuthorizationDecision",
    "role_catalog",
    "require_abilities",
    # Context
    "get_user_context",
    "user_context_from_claims",
    # Policies
    "PolicyEffect",
    "PolicyRecord",
    "PolicyStore",
    "PolicyEvaluator",
    "DjangoPolicyStore",
    "InMemoryPolicyStore",
    # Audit
    "AuditLogger",
    "AuditSink",
    "audit_logger",
    # Errors
    "AuthorizationError",
    "InvalidRuleError",
    "PolicyStoreError",
    "PolicyStoreTimeout",
    "PolicyStoreUnavailable",
]
