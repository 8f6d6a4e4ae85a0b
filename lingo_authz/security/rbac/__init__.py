"""
Role-Based Access Control (RBAC) package.

This package provides:
- A role rule catalog with tenant/user placeholders
- Ability compilation and a TTL ability cache
- A guard that checks required rules and reports every failure
- A Django view decorator

Quick Start:
    >>> from lingo_authz.security.rbac import UserContext, check_abilities
    >>>
    >>> user = UserContext(user_id="u1", tenant_id="t1", roles=("student",))
    >>> check_abilities([{"action": "read", "subject": "Lesson"}], user).allowed
    True
"""

from .ability import CompiledAbility, CompiledRule, compile_ability
from .cache import AbilityCache, get_ability_cache, reset_ability_cache
from .catalog import DEFAULT_ROLE_RULES, RoleRuleCatalog, role_catalog
from .decorators import require_abilities
from .guard import GuardResult, RbacGuard, check_abilities
from .interpolation import ConditionInterpolator, interpolate_condition
from .types import (
    Action,
    AuthorizationDecision,
    RequiredRule,
    Rule,
    Subject,
    UserContext,
)

__all__ = [
    # Types
    "Action",
    "Subject",
    "Rule",
    "RequiredRule",
    "UserContext",
    "AuthorizationDecision",
    # Catalog
    "DEFAULT_ROLE_RULES",
    "RoleRuleCatalog",
    "role_catalog",
    # Compilation
    "ConditionInterpolator",
    "interpolate_condition",
    "CompiledAbility",
    "CompiledRule",
    "compile_ability",
    "AbilityCache",
    "get_ability_cache",
    "reset_ability_cache",
    # Guard
    "GuardResult",
    "RbacGuard",
    "check_abilities",
    # Decorators
    "require_abilities",
]
