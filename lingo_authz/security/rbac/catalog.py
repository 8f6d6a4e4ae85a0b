"""
Role rule catalog.

Maps role names to the ordered rules they grant. The built-in table covers the
platform roles; installed apps may add roles through ``roles.json`` files at
startup (see ``lingo_authz.security.role_loader``). Unknown role names simply
contribute no rules.
"""

import logging
from typing import Iterable, Mapping, Optional

from .types import Action, Rule, Subject

logger = logging.getLogger(__name__)

A = Action
S = Subject

TENANT = {"tenantId": "${ctx.tenantId}"}
OWN_TENANT_CONTENT = (S.COURSE, S.UNIT, S.LESSON, S.STORY, S.STORY_VERSION, S.EXERCISE)
PUBLISHED_CONTENT = (
    S.COURSE,
    S.UNIT,
    S.LESSON,
    S.STORY,
    S.STORY_VERSION,
    S.EXERCISE,
    S.AUDIO_ASSET,
    S.QUIZ,
)

_MENTOR_RULES = (
    Rule(
        A.READ,
        PUBLISHED_CONTENT,
        {"tenantId": "${ctx.tenantId}", "status": {"in": ["published", "ready"]}},
    ),
    Rule(A.ASSIGN, S.LESSON, TENANT),
    Rule(A.GRADE, S.QUIZ_RESULT, TENANT),
    Rule(A.EXPORT, S.QUIZ_RESULT, TENANT),
)

DEFAULT_ROLE_RULES: dict[str, tuple[Rule, ...]] = {
    "super_admin": (Rule(A.MANAGE, S.ALL),),
    "admin": (Rule(A.MANAGE, S.ALL),),
    "org_admin": (
        Rule(A.MANAGE, S.USER, TENANT),
        Rule(A.MANAGE, S.ROLE, {"tenantScope": "tenant"}),
        *(
            Rule(A.MANAGE, subject, TENANT)
            for subject in (
                S.COURSE,
                S.UNIT,
                S.LESSON,
                S.STORY,
                S.STORY_VERSION,
                S.EXERCISE,
                S.AUDIO_ASSET,
                S.QUIZ,
            )
        ),
        Rule(A.READ, S.QUIZ_RESULT, TENANT),
        Rule(A.APPROVE, (S.STORY_VERSION, S.LESSON), TENANT),
        Rule(
            A.PUBLISH,
            (S.STORY_VERSION, S.LESSON),
            {"tenantId": "${ctx.tenantId}", "isApproved": True},
        ),
    ),
    "curriculum_lead": (
        Rule((A.CREATE, A.READ, A.UPDATE), OWN_TENANT_CONTENT, TENANT),
        Rule(A.APPROVE, (S.STORY_VERSION, S.LESSON), TENANT),
        Rule(
            A.PUBLISH,
            (S.STORY_VERSION, S.LESSON),
            {"tenantId": "${ctx.tenantId}", "isApproved": True},
        ),
        Rule(
            A.DELETE,
            (S.STORY, S.EXERCISE),
            {"tenantId": "${ctx.tenantId}", "status": {"in": ["draft"]}},
        ),
        Rule(A.ASSIGN, S.LESSON, TENANT),
    ),
    "content_creator": (
        Rule(
            (A.CREATE, A.READ, A.UPDATE),
            (S.STORY, S.STORY_VERSION, S.CLOZE_CONFIG, S.EXERCISE, S.QUESTION),
            {"tenantId": "${ctx.tenantId}", "ownerId": "${ctx.userId}"},
        ),
        Rule(A.READ, (S.COURSE, S.UNIT, S.LESSON), TENANT),
        Rule(A.REMIX, S.STORY_VERSION, TENANT),
        Rule(
            A.DELETE,
            (S.STORY_VERSION, S.EXERCISE),
            {"tenantId": "${ctx.tenantId}", "ownerId": "${ctx.userId}", "status": "draft"},
        ),
    ),
    "instructor": _MENTOR_RULES,
    "coach": _MENTOR_RULES,
    "voice_artist": (
        Rule(
            (A.CREATE, A.READ, A.UPDATE),
            S.AUDIO_ASSET,
            {"tenantId": "${ctx.tenantId}", "ownerId": "${ctx.userId}"},
        ),
        Rule(A.READ, (S.LESSON, S.STORY), TENANT),
    ),
    "qa": (
        Rule(A.READ, (S.LESSON, S.STORY_VERSION, S.EXERCISE, S.AUDIO_ASSET), TENANT),
        Rule(
            A.UPDATE,
            (S.STORY_VERSION, S.EXERCISE, S.AUDIO_ASSET),
            {"tenantId": "${ctx.tenantId}", "status": "in_review"},
        ),
    ),
    "student": (
        Rule(A.READ, PUBLISHED_CONTENT, {"tenantId": "${ctx.tenantId}", "status": "published"}),
        Rule(
            (A.CREATE, A.READ, A.UPDATE),
            S.USER_PROGRESS,
            {"tenantId": "${ctx.tenantId}", "userId": "${ctx.userId}"},
        ),
        Rule(
            (A.CREATE, A.READ),
            S.QUIZ_RESULT,
            {"tenantId": "${ctx.tenantId}", "userId": "${ctx.userId}"},
        ),
        Rule(A.REMIX, S.STORY_VERSION, {"tenantId": "${ctx.tenantId}", "isPublished": True}),
    ),
    "guest": (
        Rule(A.READ, S.LESSON, {"status": "published", "tenantId": "${publicTenantId}"}),
    ),
}


class RoleRuleCatalog:
    """
    Registry of role name -> rules.

    Roles are registered at process start; request handling only reads.
    """

    def __init__(self, roles: Optional[Mapping[str, Iterable[Rule]]] = None):
        self._roles: dict[str, tuple[Rule, ...]] = {}
        self._version = 0
        for name, rules in (roles if roles is not None else DEFAULT_ROLE_RULES).items():
            self.register(name, rules)

    def register(self, role_name: str, rules: Iterable[Rule], *, replace: bool = False) -> None:
        """Register the rules of a role. Existing roles are kept unless ``replace``."""
        if role_name in self._roles and not replace:
            logger.debug("Role '%s' is already registered", role_name)
            return
        self._roles[role_name] = tuple(rules)
        self._version += 1
        logger.debug("Role '%s' registered with %s rules", role_name, len(self._roles[role_name]))

    def rules_for(self, role_name: str) -> tuple[Rule, ...]:
        return self._roles.get(role_name, ())

    def role_names(self) -> list[str]:
        return sorted(self._roles)

    def get_version(self) -> int:
        return self._version

    def __contains__(self, role_name: object) -> bool:
        return role_name in self._roles

    def __len__(self) -> int:
        return len(self._roles)


# Global catalog instance
role_catalog = RoleRuleCatalog()

__all__ = ["DEFAULT_ROLE_RULES", "RoleRuleCatalog", "role_catalog"]
