"""
Unit tests for the authorization facade.
"""

import pytest

from lingo_authz.config_proxy import configure_runtime_settings
from lingo_authz.security import authorization
from lingo_authz.security.authorization import (
    CHECK_FAILED_ERROR,
    INSUFFICIENT_PERMISSIONS_ERROR,
    INVALID_USER_ERROR,
    NO_RULES_ERROR,
    Authorizer,
    authorize,
    check_rbac,
)
from lingo_authz.security.context import user_context_from_claims
from lingo_authz.security.policies import (
    POLICY_DENIED_ERROR,
    InMemoryPolicyStore,
    PolicyEffect,
    PolicyEvaluator,
    PolicyRecord,
)
from lingo_authz.security.rbac import (
    DEFAULT_ROLE_RULES,
    AbilityCache,
    RbacGuard,
    RequiredRule,
    UserContext,
    interpolate_condition,
)

pytestmark = pytest.mark.unit


@pytest.fixture
def cache():
    return AbilityCache()


@pytest.fixture
def store():
    return InMemoryPolicyStore()


@pytest.fixture
def authorizer(cache, store, audit_sink):
    return Authorizer(
        guard=RbacGuard(cache),
        policy_evaluator=PolicyEvaluator(store=store),
        audit_sink=audit_sink,
    )


@pytest.fixture
def student():
    return UserContext("u1", "t1", ("student",))


def tenant_deny(resource="Lesson", **kwargs):
    return PolicyRecord(
        id=kwargs.pop("id", 1),
        name=kwargs.pop("name", "lesson-freeze"),
        resource=resource,
        effect=PolicyEffect.DENY,
        conditions={"tenantId": "${ctx.tenantId}"},
        priority=100,
        **kwargs,
    )


class TestDecisions:
    def test_student_reads_lessons(self, authorizer, student):
        decision = authorizer.authorize([{"action": "read", "subject": "Lesson"}], student)

        assert decision.allowed is True
        assert decision.error is None
        assert decision.failed_rules is None

    def test_student_cannot_delete_lessons(self, authorizer, student):
        decision = authorizer.authorize([{"action": "delete", "subject": "Lesson"}], student)

        assert decision.allowed is False
        assert decision.error == INSUFFICIENT_PERMISSIONS_ERROR
        assert decision.failed_rules == [RequiredRule("delete", "Lesson")]

    def test_tenant_deny_policy_overrides_role_grant(self, authorizer, store, student):
        store.add(tenant_deny(id=9))

        decision = authorizer.authorize([{"action": "read", "subject": "Lesson"}], student)

        assert decision.allowed is False
        assert decision.error == POLICY_DENIED_ERROR
        assert decision.policy == "lesson-freeze"
        assert decision.metadata["policy_id"] == 9
        assert decision.failed_rules == [RequiredRule("read", "Lesson")]

    def test_policy_is_not_consulted_when_rbac_denies(self, authorizer, store, student):
        store.add(tenant_deny())

        decision = authorizer.authorize([{"action": "delete", "subject": "Lesson"}], student)

        assert decision.error == INSUFFICIENT_PERMISSIONS_ERROR

    def test_check_rbac_skips_policies(self, authorizer, store, student):
        store.add(tenant_deny())

        decision = authorizer.check_rbac([{"action": "read", "subject": "Lesson"}], student)

        assert decision.allowed is True

    @pytest.mark.parametrize("rules", [[], None, "read"])
    def test_missing_rules(self, authorizer, student, rules):
        decision = authorizer.authorize(rules, student)

        assert decision.allowed is False
        assert decision.error == NO_RULES_ERROR

    @pytest.mark.parametrize("user", [None, UserContext("", "t1", ("student",))])
    def test_invalid_user(self, authorizer, user):
        decision = authorizer.authorize([{"action": "read", "subject": "Lesson"}], user)

        assert decision.allowed is False
        assert decision.error == INVALID_USER_ERROR

    def test_no_tenant_is_denied(self, authorizer):
        user = UserContext("u1", None, ("org_admin",))

        decision = authorizer.authorize([{"action": "read", "subject": "Lesson"}], user)

        assert decision.error == INSUFFICIENT_PERMISSIONS_ERROR

    def test_super_admin_without_tenant(self, authorizer):
        user = UserContext("root", None, ("super_admin",))

        decision = authorizer.authorize([{"action": "delete", "subject": "Tenant"}], user)

        assert decision.allowed is True

    def test_skipped_overlay_is_reported_in_metadata(self, cache, audit_sink, student):
        authorizer = Authorizer(
            guard=RbacGuard(cache),
            policy_evaluator=PolicyEvaluator(store=None),
            audit_sink=audit_sink,
        )

        decision = authorizer.authorize([{"action": "read", "subject": "Lesson"}], student)

        assert decision.allowed is True
        assert decision.metadata["policies_skipped"] == "store_unavailable"

    def test_repeated_calls_reuse_the_compiled_ability(self, authorizer, cache, student):
        rules = [{"action": "read", "subject": "Lesson"}]

        first = authorizer.authorize(rules, student)
        second = authorizer.authorize(rules, student)

        assert first.allowed == second.allowed
        assert cache.compile_count == 1

    def test_decision_serializes_failed_rules(self, authorizer, student):
        decision = authorizer.authorize(
            [{"action": "publish", "subject": "Lesson", "reason": "Only leads publish"}], student
        )

        assert decision.to_dict() == {
            "allowed": False,
            "failedRules": [{"action": "publish", "subject": "Lesson", "reason": "Only leads publish"}],
            "error": INSUFFICIENT_PERMISSIONS_ERROR,
        }


class ExplodingGuard:
    def check(self, rules, user):
        raise RuntimeError("boom")


class TestUnexpectedErrors:
    def test_internal_errors_become_a_denial(self, store, audit_sink, student):
        authorizer = Authorizer(
            guard=ExplodingGuard(),
            policy_evaluator=PolicyEvaluator(store=store),
            audit_sink=audit_sink,
        )

        decision = authorizer.authorize([{"action": "read", "subject": "Lesson"}], student)

        assert decision.allowed is False
        assert decision.error == CHECK_FAILED_ERROR
        assert decision.metadata["internal_error"] == "RuntimeError"
        assert audit_sink.denials[0]["metadata"]["internal_error"] == "RuntimeError"

    def test_internal_errors_are_reported_to_sentry(self, monkeypatch, store, student):
        captured = []
        monkeypatch.setattr(authorization.sentry_sdk, "capture_exception", captured.append)
        configure_runtime_settings(authorization_settings__report_errors_to_sentry=True)
        authorizer = Authorizer(guard=ExplodingGuard(), policy_evaluator=PolicyEvaluator(store=store))

        authorizer.authorize([{"action": "read", "subject": "Lesson"}], student)

        assert len(captured) == 1
        assert isinstance(captured[0], RuntimeError)

    def test_sentry_reporting_can_be_disabled(self, monkeypatch, store, student):
        captured = []
        monkeypatch.setattr(authorization.sentry_sdk, "capture_exception", captured.append)
        configure_runtime_settings(authorization_settings__report_errors_to_sentry=False)
        authorizer = Authorizer(guard=ExplodingGuard(), policy_evaluator=PolicyEvaluator(store=store))

        authorizer.authorize([{"action": "read", "subject": "Lesson"}], student)

        assert captured == []

    def test_failing_audit_sink_does_not_change_the_decision(self, cache, store, student):
        class BrokenSink:
            def log_check(self, *args, **kwargs):
                raise OSError("disk full")

            log_denial = log_check

        authorizer = Authorizer(
            guard=RbacGuard(cache), policy_evaluator=PolicyEvaluator(store=store), audit_sink=BrokenSink()
        )

        decision = authorizer.authorize([{"action": "read", "subject": "Lesson"}], student)

        assert decision.allowed is True


class TestAudit:
    def test_allowed_call_emits_one_check_event(self, authorizer, audit_sink, student):
        authorizer.authorize(
            [{"action": "read", "subject": "Lesson"}, {"action": "read", "subject": "Story"}], student
        )

        assert len(audit_sink.events) == 1
        event = audit_sink.checks[0]
        assert event["allowed"] is True
        assert event["action"] == "read, read"
        assert event["subject"] == "Lesson, Story"
        assert event["tenant_id"] == "t1"
        assert event["metadata"]["user_roles"] == ["student"]

    def test_denied_call_emits_one_denial_event(self, authorizer, audit_sink, student):
        authorizer.authorize(
            [
                {"action": "read", "subject": "Lesson"},
                {"action": "delete", "subject": "Story", "reason": "Creators delete drafts"},
                {"action": "delete", "subject": "Lesson"},
            ],
            student,
        )

        assert len(audit_sink.events) == 1
        event = audit_sink.denials[0]
        assert (event["action"], event["subject"]) == ("delete", "Story")
        assert event["reason"] == "Creators delete drafts"
        assert event["metadata"]["failed_rules_count"] == 2

    def test_policy_denial_is_audited_with_the_policy(self, authorizer, store, audit_sink, student):
        store.add(tenant_deny(name="exam-lockdown"))

        authorizer.authorize([{"action": "read", "subject": "Lesson", "reason": "ignored"}], student)

        event = audit_sink.denials[0]
        assert event["reason"] == POLICY_DENIED_ERROR
        assert event["metadata"]["policy"] == "exam-lockdown"

    def test_invalid_input_is_audited(self, authorizer, audit_sink):
        authorizer.authorize([], None)

        assert audit_sink.denials[0]["reason"] == NO_RULES_ERROR
        assert audit_sink.denials[0]["subject"] == "unknown"

    def test_audit_can_be_disabled(self, authorizer, audit_sink, student):
        configure_runtime_settings(authorization_settings__enable_audit=False)

        authorizer.authorize([{"action": "read", "subject": "Lesson"}], student)

        assert audit_sink.events == []

    def test_allowed_checks_can_be_left_out(self, authorizer, audit_sink, student):
        configure_runtime_settings(authorization_settings__audit_log_all=False)

        authorizer.authorize([{"action": "read", "subject": "Lesson"}], student)
        authorizer.authorize([{"action": "delete", "subject": "Lesson"}], student)

        assert audit_sink.checks == []
        assert len(audit_sink.denials) == 1

    def test_denials_can_be_left_out(self, authorizer, audit_sink, student):
        configure_runtime_settings(authorization_settings__audit_log_denies=False)

        authorizer.authorize([{"action": "delete", "subject": "Lesson"}], student)

        assert audit_sink.events == []


def test_module_level_shortcuts_use_the_global_facade(monkeypatch, audit_sink, student):
    configure_runtime_settings(authorization_settings__policy_store=None)
    monkeypatch.setattr(authorization.authorizer, "audit_sink", audit_sink)

    allowed = authorize([{"action": "read", "subject": "Lesson"}], student)
    rbac_only = check_rbac([{"action": "read", "subject": "Lesson"}], student)

    assert allowed.allowed is True
    assert allowed.metadata["policies_skipped"] == "store_unavailable"
    assert rbac_only.allowed is True
    assert len(audit_sink.checks) == 2


def test_numeric_tenant_claims_do_not_bypass_deny_policies(authorizer, store):
    store.add(tenant_deny(tenant_id="5", name="tenant-freeze"))
    user = user_context_from_claims({"sub": "u1", "tenantId": 5, "roles": ["student"]})

    decision = authorizer.authorize([{"action": "read", "subject": "Lesson"}], user)

    assert decision.allowed is False
    assert decision.error == POLICY_DENIED_ERROR


def test_numeric_tenant_claims_match_global_deny_policies(authorizer, store):
    store.add(tenant_deny(name="global-freeze"))
    user = user_context_from_claims({"sub": "u1", "tenantId": 5, "roles": ["student"]})

    decision = authorizer.authorize([{"action": "read", "subject": "Lesson"}], user)

    assert decision.policy == "global-freeze"


def test_broken_policy_store_leaves_the_role_decision(monkeypatch, cache, audit_sink, student):
    class UnreachableStore:
        def __init__(self):
            raise ConnectionError("policy backend unreachable")

    monkeypatch.setattr("lingo_authz.security.policies.import_string", lambda path: UnreachableStore)
    configure_runtime_settings(authorization_settings__policy_store="policy.backend.Store")
    authorizer = Authorizer(guard=RbacGuard(cache), policy_evaluator=PolicyEvaluator(), audit_sink=audit_sink)

    decision = authorizer.authorize([{"action": "read", "subject": "Lesson"}], student)

    assert decision.allowed is True
    assert decision.metadata["policies_skipped"] == "store_unavailable"


def _instance_for(condition):
    instance = {}
    for name, expected in condition.items():
        if isinstance(expected, dict) and "in" in expected:
            instance[name] = expected["in"][0]
        elif isinstance(expected, dict):
            instance[name] = _instance_for(expected)
        else:
            instance[name] = expected
    return instance


def _role_rule_cases():
    cases = []
    for role, rules in sorted(DEFAULT_ROLE_RULES.items()):
        for index, rule in enumerate(rules):
            if rule.inverted:
                continue
            for action in sorted(rule.actions):
                for subject in sorted(rule.subjects):
                    cases.append(
                        pytest.param(role, action, subject, rule.condition, id=f"{role}-{index}-{action}-{subject}")
                    )
    return cases


@pytest.mark.parametrize("role, action, subject, condition", _role_rule_cases())
def test_every_role_rule_is_bound_to_the_instance_tenant(authorizer, role, action, subject, condition):
    user = UserContext("u1", "t1", (role,))
    instance = _instance_for(interpolate_condition(condition, "u1", "t1") or {})

    allowed = authorizer.authorize([{"action": action, "subject": subject, "conditions": instance}], user)
    assert allowed.allowed is True

    if "tenantId" not in instance:
        return
    other_tenant = dict(instance, tenantId="t-other")
    denied = authorizer.authorize([{"action": action, "subject": subject, "conditions": other_tenant}], user)
    assert denied.allowed is False
    assert denied.error == INSUFFICIENT_PERMISSIONS_ERROR
