"""
Ability compilation and querying.

A compiled ability is the materialized permission set of one
(roles, user_id, tenant_id) context. It is a pure function of those three
inputs, which is what makes caching it sound.
"""

import logging
import re
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Optional

from lingo_authz.config_proxy import get_authorization_setting

from .catalog import RoleRuleCatalog, role_catalog
from .interpolation import ConditionInterpolator
from .types import Action, Subject, normalize_names

logger = logging.getLogger(__name__)

MANAGE = Action.MANAGE.value
ALL = Subject.ALL.value

_MISSING = object()
_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")


def _snake_case(name: str) -> str:
    return _CAMEL_BOUNDARY.sub("_", name).lower()


def get_field_value(instance: Any, name: str) -> Any:
    """
    Read ``name`` from a mapping or an object.

    Condition templates use camelCase keys (``tenantId``); Django model
    instances expose snake_case attributes (``tenant_id``), so the snake_case
    spelling is tried when the literal one is absent.
    """
    candidates = (name,) if _snake_case(name) == name else (name, _snake_case(name))
    for candidate in candidates:
        if isinstance(instance, Mapping):
            value = instance.get(candidate, _MISSING)
        else:
            value = getattr(instance, candidate, _MISSING)
        if value is not _MISSING:
            return value
    return None


def condition_matches(condition: Mapping[str, Any], instance: Any) -> bool:
    """Equality, ``{"in": [...]}`` membership and nested field maps."""
    for name, expected in condition.items():
        actual = get_field_value(instance, name)
        if isinstance(expected, Mapping):
            if "in" in expected:
                candidates = expected.get("in")
                if not isinstance(candidates, (list, tuple)) or actual not in candidates:
                    return False
                continue
            if actual is None or not condition_matches(expected, actual):
                return False
        elif actual != expected:
            return False
    return True


@dataclass(frozen=True)
class CompiledRule:
    """One (actions, subjects, resolved condition) triple of an ability."""

    actions: frozenset[str]
    subjects: frozenset[str]
    condition: Optional[Mapping[str, Any]] = None
    inverted: bool = False
    reason: Optional[str] = None

    def applies_to(self, action: str, subject: str) -> bool:
        action_ok = action in self.actions or MANAGE in self.actions
        subject_ok = subject in self.subjects or ALL in self.subjects
        return action_ok and subject_ok

    def matches_instance(self, instance: Any) -> bool:
        if self.condition is None:
            return True
        if instance is None:
            # Type-level checks: a conditional grant may apply to some
            # instance, a conditional denial cannot be proven.
            return not self.inverted
        return condition_matches(self.condition, instance)


class CompiledAbility:
    """Queryable permission set for one user/tenant context."""

    def __init__(self, rules: Iterable[CompiledRule] = ()):
        self._rules = tuple(rules)
        self._has_inverted = any(rule.inverted for rule in self._rules)

    @property
    def rules(self) -> tuple[CompiledRule, ...]:
        return self._rules

    def can(self, action: Any, subject: Any, instance: Any = None) -> bool:
        """
        Return True if ``action`` on ``subject`` is allowed.

        An applicable inverted rule denies. Otherwise the first matching grant
        allows; ``manage`` and ``all`` are expanded here rather than at
        compile time.
        """
        action_name = getattr(action, "value", action)
        subject_name = getattr(subject, "value", subject)
        granted = False
        for rule in self._rules:
            if not rule.applies_to(action_name, subject_name):
                continue
            if not rule.matches_instance(instance):
                continue
            if rule.inverted:
                return False
            if not self._has_inverted:
                return True
            granted = True
        return granted

    def cannot(self, action: Any, subject: Any, instance: Any = None) -> bool:
        return not self.can(action, subject, instance)

    def rules_for(self, action: Any, subject: Any) -> list[CompiledRule]:
        """List every rule whose action and subject match (diagnostics)."""
        action_name = getattr(action, "value", action)
        subject_name = getattr(subject, "value", subject)
        return [rule for rule in self._rules if rule.applies_to(action_name, subject_name)]

    def __len__(self) -> int:
        return len(self._rules)

    def __repr__(self) -> str:
        return f"CompiledAbility(rules={len(self._rules)})"


def deny_all_ability() -> CompiledAbility:
    """Ability used for callers without a tenant context."""
    return CompiledAbility(
        [
            CompiledRule(
                actions=frozenset([Action.READ.value]),
                subjects=frozenset([ALL]),
                inverted=True,
                reason="tenant_context_required",
            )
        ]
    )


def compile_ability(
    roles: Iterable[str],
    user_id: Optional[str],
    tenant_id: Optional[str],
    catalog: Optional[RoleRuleCatalog] = None,
    super_admin_role: Optional[str] = None,
) -> CompiledAbility:
    """
    Expand the catalog rules of ``roles`` into a compiled ability.

    Callers without a tenant are denied everything unless they hold the super
    admin role.
    """
    catalog = catalog or role_catalog
    roles = list(roles or ())
    if super_admin_role is None:
        super_admin_role = get_authorization_setting("super_admin_role", "super_admin")

    if not tenant_id and super_admin_role not in roles:
        logger.debug("No tenant context for user %s; denying all", user_id)
        return deny_all_ability()

    interpolate = ConditionInterpolator(user_id, tenant_id)
    compiled: list[CompiledRule] = []
    for role_name in roles:
        for rule in catalog.rules_for(role_name):
            compiled.append(
                CompiledRule(
                    actions=normalize_names(rule.action),
                    subjects=normalize_names(rule.subject),
                    condition=interpolate(rule.condition),
                    inverted=rule.inverted,
                    reason=rule.reason,
                )
            )
    return CompiledAbility(compiled)


__all__ = [
    "CompiledAbility",
    "CompiledRule",
    "compile_ability",
    "condition_matches",
    "deny_all_ability",
    "get_field_value",
]
