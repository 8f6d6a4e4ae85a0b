"""
Type definitions for the authorization engine.

This module contains enums and dataclasses used throughout the RBAC package:
- Action: Closed set of actions; ``manage`` is the action wildcard
- Subject: Closed set of domain nouns; ``all`` is the subject wildcard
- Rule: A role catalog entry (actions, subjects, condition template)
- RequiredRule: What a request handler asks to be allowed
- UserContext: Identity of the caller, produced by the authentication layer
- AuthorizationDecision: Output contract of the authorization facade
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping, Optional, Sequence, Union


class Action(str, Enum):
    """Actions a rule can grant."""

    MANAGE = "manage"  # wildcard: any action
    CREATE = "create"
    READ = "read"
    UPDATE = "update"
    DELETE = "delete"
    PUBLISH = "publish"
    APPROVE = "approve"
    ASSIGN = "assign"
    GRADE = "grade"
    REMIX = "remix"
    EXPORT = "export"


class Subject(str, Enum):
    """Domain nouns a rule can apply to."""

    TENANT = "Tenant"
    USER = "User"
    ROLE = "Role"
    COURSE = "Course"
    UNIT = "Unit"
    LESSON = "Lesson"
    STORY = "Story"
    STORY_VERSION = "StoryVersion"
    CLOZE_CONFIG = "ClozeConfig"
    AUDIO_ASSET = "AudioAsset"
    EXERCISE = "Exercise"
    QUESTION = "Question"
    CHOICE = "Choice"
    QUIZ = "Quiz"
    QUIZ_RESULT = "QuizResult"
    TAG = "Tag"
    REMIX_JOB = "RemixJob"
    USER_PROGRESS = "UserProgress"
    APPROVAL = "Approval"
    ALL = "all"  # wildcard: any subject


ActionSpec = Union[Action, str, Sequence[Union[Action, str]]]
SubjectSpec = Union[Subject, str, Sequence[Union[Subject, str]]]
ConditionTemplate = Mapping[str, Any]


def _as_value(item: Any) -> str:
    return item.value if isinstance(item, Enum) else str(item)


def normalize_names(value: Any) -> frozenset[str]:
    """Turn a single action/subject or a sequence of them into a set of names."""
    if isinstance(value, (str, Enum)):
        return frozenset([_as_value(value)])
    return frozenset(_as_value(item) for item in value)


@dataclass(frozen=True)
class Rule:
    """A single grant (or explicit denial when ``inverted``) in a role's catalog entry."""

    action: ActionSpec
    subject: SubjectSpec
    condition: Optional[ConditionTemplate] = None
    inverted: bool = False
    reason: Optional[str] = None

    @property
    def actions(self) -> frozenset[str]:
        return normalize_names(self.action)

    @property
    def subjects(self) -> frozenset[str]:
        return normalize_names(self.subject)


@dataclass(frozen=True)
class RequiredRule:
    """
    A rule a caller must satisfy.

    ``conditions`` describes the resource instance being acted upon (for
    example ``{"tenantId": "t1", "status": "published"}``); it is matched
    against the condition of the granting rule.
    """

    action: str
    subject: str
    conditions: Optional[Mapping[str, Any]] = None
    reason: Optional[str] = None

    @classmethod
    def coerce(cls, value: Any) -> "RequiredRule":
        """Build a RequiredRule from an instance or a mapping."""
        if isinstance(value, cls):
            return value
        if isinstance(value, Mapping):
            return cls(
                action=value.get("action"),
                subject=value.get("subject"),
                conditions=value.get("conditions"),
                reason=value.get("reason"),
            )
        raise TypeError(f"Unsupported rule type: {type(value).__name__}")

    def is_well_formed(self) -> bool:
        return bool(self.action) and bool(self.subject) and (
            self.conditions is None or isinstance(self.conditions, Mapping)
        )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "action": _as_value(self.action) if self.action else self.action,
            "subject": _as_value(self.subject) if self.subject else self.subject,
        }
        if self.conditions is not None:
            data["conditions"] = dict(self.conditions)
        if self.reason:
            data["reason"] = self.reason
        return data


@dataclass(frozen=True)
class UserContext:
    """Identity of the caller as established by the authentication layer."""

    user_id: str
    tenant_id: Optional[str] = None
    roles: tuple[str, ...] = ()

    def __post_init__(self):
        for name in ("user_id", "tenant_id"):
            value = getattr(self, name)
            if value is not None and not isinstance(value, str):
                object.__setattr__(self, name, str(value))
        if not isinstance(self.roles, tuple):
            object.__setattr__(self, "roles", tuple(self.roles or ()))

    def has_role(self, role: str) -> bool:
        return role in self.roles


@dataclass
class AuthorizationDecision:
    """Result of an authorization check."""

    allowed: bool
    failed_rules: Optional[list[Any]] = None
    error: Optional[str] = None
    policy: Optional[str] = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def __bool__(self) -> bool:
        return self.allowed

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"allowed": self.allowed}
        if self.failed_rules is not None:
            data["failedRules"] = [
                rule.to_dict() if isinstance(rule, RequiredRule) else rule
                for rule in self.failed_rules
            ]
        if self.error:
            data["error"] = self.error
        return data


__all__ = [
    "Action",
    "Subject",
    "Rule",
    "RequiredRule",
    "UserContext",
    "AuthorizationDecision",
    "ConditionTemplate",
    "normalize_names",
]
