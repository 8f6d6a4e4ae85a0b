"""
Deny-first policy overlay (ABAC).

Runs after the RBAC guard has allowed a request and can only take access
away. Policies come from a policy store ordered by priority (highest first);
the first eligible ``deny`` policy wins. A policy is eligible only when its
resolved conditions can be decided from the caller's identity alone
("context-only"): every key is ``tenantId`` or ``userId`` and matches the
caller. The evaluator never sees the resource instance.

If the store is missing or fails, the overlay is skipped and the RBAC result
stands.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, List, Mapping, Optional, Protocol, Sequence

from django.apps import apps
from django.db import DatabaseError, connections, router, transaction
from django.db.models import Q
from django.utils.module_loading import import_string

from lingo_authz.config_proxy import get_authorization_setting

from .exceptions import PolicyStoreError, PolicyStoreTimeout, PolicyStoreUnavailable
from .rbac.interpolation import ConditionInterpolator
from .rbac.types import RequiredRule, UserContext

logger = logging.getLogger(__name__)

POLICY_DENIED_ERROR = "Access denied by policy"

TENANT_KEYS = frozenset(["tenantId", "tenant_id"])
USER_KEYS = frozenset(["userId", "user_id"])


class PolicyEffect(Enum):
    ALLOW = "allow"
    DENY = "deny"


@dataclass(frozen=True)
class PolicyRecord:
    """Read-only view of a stored resource policy."""

    resource: str
    effect: PolicyEffect
    conditions: Optional[Any] = None
    priority: int = 0
    tenant_id: Optional[str] = None
    is_active: bool = True
    action: Optional[str] = None
    name: str = ""
    id: Optional[Any] = None

    @classmethod
    def from_instance(cls, instance: Any) -> "PolicyRecord":
        effect = getattr(instance, "effect", PolicyEffect.ALLOW.value)
        return cls(
            id=getattr(instance, "pk", getattr(instance, "id", None)),
            name=str(getattr(instance, "name", "") or ""),
            resource=str(getattr(instance, "resource", "")),
            action=getattr(instance, "action", None) or None,
            effect=_coerce_effect(effect),
            conditions=getattr(instance, "conditions", None),
            priority=int(getattr(instance, "priority", 0) or 0),
            tenant_id=_optional_str(getattr(instance, "tenant_id", None)),
            is_active=bool(getattr(instance, "is_active", True)),
        )

    @property
    def is_deny(self) -> bool:
        return self.effect == PolicyEffect.DENY


def _optional_str(value: Any) -> Optional[str]:
    if value is None or value == "":
        return None
    return str(value)


def _coerce_effect(value: Any) -> PolicyEffect:
    if isinstance(value, PolicyEffect):
        return value
    try:
        return PolicyEffect(str(value).lower())
    except ValueError:
        # Unknown effects never deny.
        return PolicyEffect.ALLOW


class PolicyStore(Protocol):
    """Query interface of the resource policy store."""

    def fetch_active_policies(
        self,
        resource: str,
        tenant_id: Optional[str],
        limit: int,
        timeout: Optional[float] = None,
    ) -> Sequence[PolicyRecord]:
        """Active policies for ``resource`` that are global or belong to ``tenant_id``,
        highest priority first, at most ``limit`` of them."""
        ...


class DjangoPolicyStore:
    """Policy store backed by the ``ResourcePolicy`` model."""

    model_label = "lingo_authz.ResourcePolicy"

    def __init__(self, model: Any = None, using: Optional[str] = None):
        self._model = model
        self._using = using

    def get_model(self):
        if self._model is not None:
            return self._model
        try:
            return apps.get_model(self.model_label)
        except (LookupError, ValueError) as exc:
            raise PolicyStoreUnavailable(f"{self.model_label} is not installed") from exc

    def fetch_active_policies(
        self,
        resource: str,
        tenant_id: Optional[str],
        limit: int,
        timeout: Optional[float] = None,
    ) -> List[PolicyRecord]:
        model = self.get_model()
        alias = self._using or router.db_for_read(model)

        tenant_filter = Q(tenant_id__isnull=True)
        if tenant_id:
            tenant_filter |= Q(tenant_id=tenant_id)
        queryset = (
            model._default_manager.using(alias)
            .filter(tenant_filter, is_active=True, resource=str(resource))
            .order_by("-priority", "-created_at")[: int(limit)]
        )

        try:
            with transaction.atomic(using=alias):
                self._apply_statement_timeout(alias, timeout)
                rows = list(queryset)
        except DatabaseError as exc:
            raise PolicyStoreError(f"Could not load policies for {resource}: {exc}") from exc
        return [PolicyRecord.from_instance(row) for row in rows]

    def _apply_statement_timeout(self, alias: str, timeout: Optional[float]) -> None:
        if timeout is None:
            return
        connection = connections[alias]
        if connection.vendor != "postgresql":
            return
        milliseconds = max(1, int(timeout * 1000))
        with connection.cursor() as cursor:
            cursor.execute(f"SET LOCAL statement_timeout = {milliseconds}")


class InMemoryPolicyStore:
    """Policy store holding records in process memory (tests, fixtures)."""

    def __init__(self, policies: Iterable[Any] = ()):
        self._policies: list[PolicyRecord] = []
        for policy in policies:
            self.add(policy)

    def add(self, policy: Any) -> PolicyRecord:
        record = policy if isinstance(policy, PolicyRecord) else PolicyRecord.from_instance(policy)
        self._policies.append(record)
        return record

    def clear(self) -> None:
        self._policies = []

    def fetch_active_policies(
        self,
        resource: str,
        tenant_id: Optional[str],
        limit: int,
        timeout: Optional[float] = None,
    ) -> List[PolicyRecord]:
        matches = [
            policy
            for policy in self._policies
            if policy.is_active
            and policy.resource == resource
            and (policy.tenant_id is None or (tenant_id and policy.tenant_id == tenant_id))
        ]
        matches.sort(key=lambda policy: -policy.priority)
        return matches[: int(limit)]


def load_policy_store() -> Optional[PolicyStore]:
    """Instantiate the store named by ``authorization_settings.policy_store``."""
    if not get_authorization_setting("enable_policy_engine", True):
        return None
    store_path = get_authorization_setting("policy_store")
    if not store_path:
        return None
    if not isinstance(store_path, str):
        return store_path
    try:
        store_class = import_string(store_path)
    except ImportError as exc:
        logger.warning("Policy store %s could not be imported: %s", store_path, exc)
        return None
    return store_class()


def _value_matches(value: Any, expected: Optional[str]) -> bool:
    if not expected:
        return False
    if isinstance(value, str):
        return value == expected
    if isinstance(value, Mapping):
        candidates = value.get("in")
        if isinstance(candidates, (list, tuple)):
            return expected in candidates
    return False


def is_context_only(conditions: Any, user: UserContext) -> bool:
    """
    True when ``conditions`` only constrain who is asking and match the caller.

    Conditions referencing any other field are not eligible; such policies are
    silently ignored by the overlay.
    """
    if not isinstance(conditions, Mapping):
        return False
    for key, value in conditions.items():
        if key in TENANT_KEYS:
            if not _value_matches(value, user.tenant_id):
                return False
        elif key in USER_KEYS:
            if not _value_matches(value, user.user_id):
                return False
        else:
            return False
    return True


def distinct_subjects(rules: Iterable[Any]) -> list[str]:
    subjects: list[str] = []
    for raw_rule in rules:
        rule = RequiredRule.coerce(raw_rule)
        subject = getattr(rule.subject, "value", rule.subject)
        if subject not in subjects:
            subjects.append(subject)
    return subjects


@dataclass
class PolicyOutcome:
    allowed: bool
    error: Optional[str] = None
    policy: Optional[PolicyRecord] = None
    skipped: bool = False
    reason: Optional[str] = None


_UNSET = object()


class PolicyEvaluator:
    """Applies deny-first resource policies on top of an RBAC allow."""

    def __init__(
        self,
        store: Any = _UNSET,
        page_size: Optional[int] = None,
        timeout_seconds: Optional[float] = None,
        public_tenant_id: Optional[str] = None,
        clock=time.monotonic,
    ):
        self._store = store
        self._page_size = page_size
        self._timeout_seconds = timeout_seconds
        self._public_tenant_id = public_tenant_id
        self._clock = clock

    @property
    def store(self) -> Optional[PolicyStore]:
        if self._store is _UNSET:
            return load_policy_store()
        return self._store

    @property
    def page_size(self) -> int:
        if self._page_size is not None:
            return int(self._page_size)
        return int(get_authorization_setting("policy_page_size", 50))

    @property
    def timeout_seconds(self) -> Optional[float]:
        if self._timeout_seconds is not None:
            return float(self._timeout_seconds)
        value = get_authorization_setting("policy_fetch_timeout_seconds", None)
        return float(value) if value else None

    def evaluate(
        self, rules: Sequence[Any], user: UserContext, timeout: Optional[float] = None
    ) -> PolicyOutcome:
        """
        Evaluate policies for the subjects named in ``rules``.

        Args:
            rules: Required rules that RBAC already allowed
            user: Caller context
            timeout: Time budget in seconds for all policy fetches

        Returns:
            PolicyOutcome; ``skipped`` is set when the overlay could not run
        """
        try:
            store = self.store
        except Exception as exc:
            logger.warning("Policy store could not be created; skipping policy evaluation: %s", exc)
            return PolicyOutcome(allowed=True, skipped=True, reason="store_unavailable")
        if store is None:
            logger.warning("Policy store not configured; skipping policy evaluation")
            return PolicyOutcome(allowed=True, skipped=True, reason="store_unavailable")
        try:
            return self._evaluate(store, rules, user, timeout)
        except Exception as exc:
            logger.warning("Policy evaluation failed, continuing with RBAC result: %s", exc)
            return PolicyOutcome(allowed=True, skipped=True, reason="evaluation_failed")

    def _evaluate(
        self, store: PolicyStore, rules: Sequence[Any], user: UserContext, timeout: Optional[float]
    ) -> PolicyOutcome:
        budget = timeout if timeout is not None else self.timeout_seconds
        deadline = self._clock() + budget if budget else None
        interpolate = ConditionInterpolator(user.user_id, user.tenant_id, self._public_tenant_id)

        for subject in distinct_subjects(rules):
            remaining = None
            if deadline is not None:
                remaining = deadline - self._clock()
                if remaining <= 0:
                    raise PolicyStoreTimeout(f"Policy fetch for {subject} exceeded {budget}s")

            policies = store.fetch_active_policies(
                subject, user.tenant_id, self.page_size, timeout=remaining
            )
            for policy in policies:
                if not isinstance(policy, PolicyRecord):
                    policy = PolicyRecord.from_instance(policy)
                if not policy.is_active or not policy.is_deny:
                    continue
                if policy.tenant_id is not None and policy.tenant_id != user.tenant_id:
                    continue
                if is_context_only(interpolate(policy.conditions), user):
                    logger.info(
                        "Policy %s (%s) denies %s for user %s",
                        policy.id,
                        policy.name,
                        subject,
                        user.user_id,
                    )
                    return PolicyOutcome(
                        allowed=False,
                        error=POLICY_DENIED_ERROR,
                        policy=policy,
                        reason="policy_deny",
                    )

        return PolicyOutcome(allowed=True)


__all__ = [
    "POLICY_DENIED_ERROR",
    "PolicyEffect",
    "PolicyRecord",
    "PolicyStore",
    "DjangoPolicyStore",
    "InMemoryPolicyStore",
    "PolicyEvaluator",
    "PolicyOutcome",
    "distinct_subjects",
    "is_context_only",
    "load_policy_store",
]
