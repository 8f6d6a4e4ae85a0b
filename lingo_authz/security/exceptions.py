"""
Exceptions raised inside the authorization engine.

None of them escape ``lingo_authz.security.authorization.authorize``; they
exist so the layers below the facade can signal distinct failure modes.
"""


class AuthorizationError(Exception):
    """Base class for authorization engine errors."""


class InvalidRuleError(AuthorizationError, ValueError):
    """A required rule or role file entry is malformed."""


class PolicyStoreError(AuthorizationError):
    """The policy store could not be queried."""


class PolicyStoreUnavailable(PolicyStoreError):
    """The policy store is not provisioned (model not installed, no backend)."""


class PolicyStoreTimeout(PolicyStoreError):
    """The policy fetch exceeded its time budget."""


__all__ = [
    "AuthorizationError",
    "InvalidRuleError",
    "PolicyStoreError",
    "PolicyStoreUnavailable",
    "PolicyStoreTimeout",
]
