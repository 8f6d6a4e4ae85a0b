"""
Authorization facade.

Single entry point used by request handlers::

    from lingo_authz.security import authorize

    decision = authorize([{"action": "read", "subject": "Lesson"}], user_context)
    if not decision.allowed:
        return JsonResponse({"error": decision.error}, status=403)

The pipeline is RBAC guard -> deny-first policy overlay -> one audit event.
Every failure collapses into a denied ``AuthorizationDecision``; no exception
reaches the caller.
"""

import logging
from typing import Any, Optional, Sequence

import sentry_sdk

from lingo_authz.config_proxy import get_authorization_setting

from .audit import AuditSink, audit_logger
from .policies import PolicyEvaluator, PolicyOutcome
from .rbac.guard import GuardResult, RbacGuard, is_valid_user
from .rbac.types import AuthorizationDecision, RequiredRule, UserContext

logger = logging.getLogger(__name__)

NO_RULES_ERROR = "No authorization rules provided"
INVALID_USER_ERROR = "Invalid user context"
INSUFFICIENT_PERMISSIONS_ERROR = "Insufficient permissions"
CHECK_FAILED_ERROR = "Authorization check failed"


def _describe(rules: Any) -> tuple[str, str]:
    """Comma-joined actions and subjects of ``rules`` for audit records."""
    actions: list[str] = []
    subjects: list[str] = []
    if isinstance(rules, (list, tuple)):
        for raw_rule in rules:
            try:
                rule = RequiredRule.coerce(raw_rule)
            except TypeError:
                continue
            actions.append(str(getattr(rule.action, "value", rule.action)))
            subjects.append(str(getattr(rule.subject, "value", rule.subject)))
    return ", ".join(actions) or "unknown", ", ".join(subjects) or "unknown"


class Authorizer:
    """Combines the RBAC guard and the policy overlay into one decision."""

    def __init__(
        self,
        guard: Optional[RbacGuard] = None,
        policy_evaluator: Optional[PolicyEvaluator] = None,
        audit_sink: Optional[AuditSink] = None,
    ):
        self.guard = guard or RbacGuard()
        self.policy_evaluator = policy_evaluator or PolicyEvaluator()
        self.audit_sink = audit_sink if audit_sink is not None else audit_logger

    # --- Public API ---

    def authorize(
        self,
        rules: Sequence[Any],
        user: Optional[UserContext],
        *,
        timeout: Optional[float] = None,
    ) -> AuthorizationDecision:
        """
        Decide whether ``user`` satisfies every rule in ``rules``.

        Args:
            rules: RequiredRule instances or mappings (action, subject, conditions, reason)
            user: Caller context, or None for unauthenticated callers
            timeout: Time budget in seconds for the policy store

        Returns:
            AuthorizationDecision
        """
        return self._run(rules, user, use_policies=True, timeout=timeout)

    def check_rbac(self, rules: Sequence[Any], user: Optional[UserContext]) -> AuthorizationDecision:
        """Same contract as ``authorize`` without the policy overlay."""
        return self._run(rules, user, use_policies=False, timeout=None)

    # --- Pipeline ---

    def _run(self, rules, user, *, use_policies: bool, timeout: Optional[float]) -> AuthorizationDecision:
        try:
            decision = self._decide(rules, user, use_policies=use_policies, timeout=timeout)
        except Exception as exc:
            logger.exception("Authorization check failed")
            if get_authorization_setting("report_errors_to_sentry", True):
                sentry_sdk.capture_exception(exc)
            decision = AuthorizationDecision(
                allowed=False,
                error=CHECK_FAILED_ERROR,
                metadata={"internal_error": exc.__class__.__name__},
            )
        self._audit(rules, user, decision)
        return decision

    def _decide(self, rules, user, *, use_policies: bool, timeout: Optional[float]) -> AuthorizationDecision:
        if not isinstance(rules, (list, tuple)) or not rules:
            return AuthorizationDecision(allowed=False, error=NO_RULES_ERROR)
        if not is_valid_user(user):
            return AuthorizationDecision(allowed=False, error=INVALID_USER_ERROR)

        result: GuardResult = self.guard.check(rules, user)
        if not result.allowed:
            return AuthorizationDecision(
                allowed=False,
                failed_rules=result.failed_rules,
                error=INSUFFICIENT_PERMISSIONS_ERROR,
            )
        if not use_policies:
            return AuthorizationDecision(allowed=True)

        outcome: PolicyOutcome = self.policy_evaluator.evaluate(rules, user, timeout=timeout)
        if not outcome.allowed:
            return AuthorizationDecision(
                allowed=False,
                failed_rules=[RequiredRule.coerce(rule) for rule in rules],
                error=outcome.error,
                policy=outcome.policy.name if outcome.policy else None,
                metadata={"policy_id": outcome.policy.id if outcome.policy else None},
            )
        decision = AuthorizationDecision(allowed=True)
        if outcome.skipped:
            decision.metadata["policies_skipped"] = outcome.reason
        return decision

    # --- Audit ---

    def _audit(self, rules, user, decision: AuthorizationDecision) -> None:
        if self.audit_sink is None or not get_authorization_setting("enable_audit", True):
            return
        if decision.allowed and not get_authorization_setting("audit_log_all", True):
            return
        if not decision.allowed and not get_authorization_setting("audit_log_denies", True):
            return

        user_id = getattr(user, "user_id", None)
        tenant_id = getattr(user, "tenant_id", None)
        actions, subjects = _describe(rules)
        metadata: dict[str, Any] = {
            "user_roles": list(getattr(user, "roles", ()) or ()),
            "failed_rules_count": len(decision.failed_rules or ()),
        }
        metadata.update({k: v for k, v in decision.metadata.items() if v is not None})
        try:
            if decision.allowed:
                self.audit_sink.log_check(user_id, tenant_id, actions, subjects, True, metadata)
                return
            reason = decision.error or INSUFFICIENT_PERMISSIONS_ERROR
            if decision.failed_rules:
                first = decision.failed_rules[0]
                if isinstance(first, RequiredRule):
                    actions = str(getattr(first.action, "value", first.action))
                    subjects = str(getattr(first.subject, "value", first.subject))
                    if decision.error == INSUFFICIENT_PERMISSIONS_ERROR:
                        reason = first.reason or reason
            if decision.policy:
                metadata["policy"] = decision.policy
            self.audit_sink.log_denial(user_id, tenant_id, actions, subjects, reason, metadata)
        except Exception as exc:
            logger.warning("Audit sink failed: %s", exc)


# Global facade instance
authorizer = Authorizer()


def authorize(
    rules: Sequence[Any], user: Optional[UserContext], *, timeout: Optional[float] = None
) -> AuthorizationDecision:
    """Authorize ``rules`` for ``user`` with the global facade."""
    return authorizer.authorize(rules, user, timeout=timeout)


def check_rbac(rules: Sequence[Any], user: Optional[UserContext]) -> AuthorizationDecision:
    """RBAC-only check with the global facade."""
    return authorizer.check_rbac(rules, user)


__all__ = [
    "Authorizer",
    "authorizer",
    "authorize",
    "check_rbac",
    "NO_RULES_ERROR",
    "INVALID_USER_ERROR",
    "INSUFFICIENT_PERMISSIONS_ERROR",
    "CHECK_FAILED_ERROR",
]
