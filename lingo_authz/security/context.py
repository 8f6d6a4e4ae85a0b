"""
User context resolution.

The authentication layer (JWT or session middleware) decides who is calling;
this module only turns what it left on the request into a ``UserContext``.
"""

from typing import Any, Mapping, Optional

from django.http import HttpRequest

from lingo_authz.config_proxy import get_authorization_setting

from .rbac.types import UserContext

USER_CONTEXT_ATTR = "user_context"


def _optional_str(value: Any) -> Optional[str]:
    if value is None or value == "":
        return None
    return str(value)


def user_context_from_claims(claims: Optional[Mapping[str, Any]]) -> Optional[UserContext]:
    """
    Map already-verified token claims to a UserContext.

    Accepts ``userId`` or ``sub`` for the user, ``tenantId`` for the tenant and
    either a single ``role`` or a ``roles`` list.
    """
    if not claims:
        return None
    user_id = claims.get("userId") or claims.get("sub")
    if not user_id:
        return None
    roles = claims.get("roles")
    if roles is None:
        role = claims.get("role")
        roles = [role] if role else []
    elif isinstance(roles, str):
        roles = [roles]
    return UserContext(
        user_id=str(user_id),
        tenant_id=_optional_str(claims.get("tenantId")),
        roles=tuple(str(role) for role in roles),
    )


def _tenant_for(user: Any, request: Any) -> Optional[str]:
    for source in (user, request):
        value = getattr(source, "tenant_id", None)
        if value not in (None, ""):
            return str(value)
        tenant = getattr(source, "tenant", None)
        if tenant not in (None, ""):
            return str(getattr(tenant, "pk", tenant))
    return None


def user_context_from_django_user(user: Any, request: Any = None) -> Optional[UserContext]:
    """Build a UserContext from an authenticated Django user (groups become roles)."""
    if not user or not getattr(user, "is_authenticated", False):
        return None
    if getattr(user, "pk", None) is None:
        return None
    roles = list(user.groups.values_list("name", flat=True))
    if getattr(user, "is_superuser", False):
        roles.append(get_authorization_setting("super_admin_role", "super_admin"))
    return UserContext(
        user_id=str(user.pk),
        tenant_id=_tenant_for(user, request),
        roles=tuple(dict.fromkeys(roles)),
    )


def get_user_context(request: HttpRequest) -> Optional[UserContext]:
    """
    Return the caller's UserContext, or None when unauthenticated.

    ``request.user_context`` (set by the authentication layer) wins over the
    Django session user.
    """
    if request is None:
        return None
    attached = getattr(request, USER_CONTEXT_ATTR, None)
    if isinstance(attached, UserContext):
        return attached
    if isinstance(attached, Mapping):
        return user_context_from_claims(attached)
    return user_context_from_django_user(getattr(request, "user", None), request)


__all__ = [
    "get_user_context",
    "user_context_from_claims",
    "user_context_from_django_user",
    "USER_CONTEXT_ATTR",
]
