"""
Authorization decorators for Django views.

This module provides a decorator enforcing required rules on function-based
views (and ``method_decorator``-wrapped class-based views).
"""

from functools import wraps
from typing import Any, Callable

from django.http import JsonResponse

from .types import RequiredRule


def _get_authorizer():
    """Lazy import to avoid circular imports."""
    from ..authorization import authorizer
    return authorizer


def _get_user_context(request):
    from ..context import get_user_context
    return get_user_context(request)


def require_abilities(*rules: Any, use_policies: bool = True):
    """
    Decorator to require rules for a Django view.

    Args:
        *rules: RequiredRule instances or mappings with action/subject/conditions.
        use_policies: Apply the policy overlay after RBAC (default True).

    Returns:
        401 JSON response without a user context, 403 JSON response when
        denied; otherwise the view's response. The decision is available as
        ``request.authorization`` inside the view.
    """
    required = [RequiredRule.coerce(rule) for rule in rules]

    def decorator(view_func: Callable) -> Callable:
        @wraps(view_func)
        def wrapper(request, *args, **kwargs):
            user = _get_user_context(request)
            if user is None:
                return JsonResponse({"error": "Unauthorized"}, status=401)

            authorizer = _get_authorizer()
            if use_policies:
                decision = authorizer.authorize(required, user)
            else:
                decision = authorizer.check_rbac(required, user)
            if not decision.allowed:
                return JsonResponse({"error": decision.error or "Forbidden"}, status=403)

            request.authorization = decision
            return view_func(request, *args, **kwargs)
        return wrapper
    return decorator


__all__ = ["require_abilities"]
