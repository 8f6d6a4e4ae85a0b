"""
RBAC guard.

Evaluates required rules against the caller's compiled ability and reports
every failing rule. Any malformed input or internal error fails closed.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Optional, Sequence

from .cache import AbilityCache, get_ability_cache
from .types import RequiredRule, UserContext

logger = logging.getLogger(__name__)


@dataclass
class GuardResult:
    allowed: bool
    failed_rules: list[Any] = field(default_factory=list)


def is_valid_user(user: Any) -> bool:
    return user is not None and bool(getattr(user, "user_id", None))


class RbacGuard:
    """Checks a batch of required rules against one user's ability."""

    def __init__(self, cache: Optional[AbilityCache] = None):
        self._cache = cache

    @property
    def cache(self) -> AbilityCache:
        return self._cache if self._cache is not None else get_ability_cache()

    def check(self, rules: Sequence[Any], user: UserContext) -> GuardResult:
        """
        Check every rule; never short-circuits so callers get the full failure set.

        Args:
            rules: RequiredRule instances or mappings with action/subject/conditions
            user: Caller context

        Returns:
            GuardResult with ``allowed`` True only when no rule failed
        """
        if not isinstance(rules, (list, tuple)):
            logger.error("Rules must be a list of required rules, got %s", type(rules).__name__)
            return GuardResult(allowed=False, failed_rules=[] if rules is None else [rules])
        if not rules:
            return GuardResult(allowed=False, failed_rules=[])
        if not is_valid_user(user):
            logger.error("User context must have a valid user id")
            return GuardResult(allowed=False, failed_rules=list(rules))

        try:
            ability = self.cache.get_ability(user)
        except Exception:
            logger.exception("Could not compile ability for user %s", user.user_id)
            return GuardResult(allowed=False, failed_rules=list(rules))

        failed: list[Any] = []
        for raw_rule in rules:
            try:
                rule = RequiredRule.coerce(raw_rule)
                if not rule.is_well_formed():
                    raise ValueError("Invalid rule: action and subject are required")
                if not ability.can(rule.action, rule.subject, rule.conditions):
                    failed.append(rule)
            except Exception as exc:
                logger.error("Error checking rule %r: %s", raw_rule, exc)
                failed.append(raw_rule)

        return GuardResult(allowed=not failed, failed_rules=failed)


def check_abilities(
    rules: Sequence[Any], user: UserContext, cache: Optional[AbilityCache] = None
) -> GuardResult:
    """Module-level shortcut for ``RbacGuard(cache).check(rules, user)``."""
    return RbacGuard(cache).check(rules, user)


__all__ = ["GuardResult", "RbacGuard", "check_abilities", "is_valid_user"]
