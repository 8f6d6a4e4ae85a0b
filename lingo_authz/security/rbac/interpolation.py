"""
Condition template interpolation.

Substitutes the caller's identity into condition templates by walking the
structure and rewriting string leaves only. Keys, numbers, booleans and
``None`` are returned unchanged; missing context values become ``""``.
"""

import re
from typing import Any, Mapping, Optional

from lingo_authz.config_proxy import get_authorization_setting

USER_ID_PLACEHOLDER = "${ctx.userId}"
TENANT_ID_PLACEHOLDER = "${ctx.tenantId}"
PUBLIC_TENANT_PLACEHOLDER = "${publicTenantId}"

_PLACEHOLDER_RE = re.compile(r"\$\{(ctx\.userId|ctx\.tenantId|publicTenantId)\}")


def get_public_tenant_id() -> str:
    return str(get_authorization_setting("public_tenant_id", "public"))


class ConditionInterpolator:
    """Resolves placeholders for one (user_id, tenant_id) context."""

    def __init__(
        self,
        user_id: Optional[str],
        tenant_id: Optional[str],
        public_tenant_id: Optional[str] = None,
    ):
        self._values = {
            "ctx.userId": "" if user_id is None else str(user_id),
            "ctx.tenantId": "" if tenant_id is None else str(tenant_id),
            "publicTenantId": (
                get_public_tenant_id() if public_tenant_id is None else public_tenant_id
            ),
        }

    def __call__(self, template: Any) -> Any:
        return self.interpolate(template)

    def interpolate(self, template: Any) -> Any:
        if template is None:
            return None
        if isinstance(template, str):
            return self._substitute(template)
        if isinstance(template, Mapping):
            return {key: self.interpolate(value) for key, value in template.items()}
        if isinstance(template, (list, tuple)):
            return [self.interpolate(item) for item in template]
        return template

    def _substitute(self, value: str) -> str:
        if "${" not in value:
            return value
        return _PLACEHOLDER_RE.sub(lambda match: self._values[match.group(1)], value)


def interpolate_condition(
    template: Any,
    user_id: Optional[str],
    tenant_id: Optional[str],
    public_tenant_id: Optional[str] = None,
) -> Any:
    """Return a copy of ``template`` with placeholders resolved."""
    return ConditionInterpolator(user_id, tenant_id, public_tenant_id).interpolate(template)


__all__ = [
    "ConditionInterpolator",
    "interpolate_condition",
    "get_public_tenant_id",
    "USER_ID_PLACEHOLDER",
    "TENANT_ID_PLACEHOLDER",
    "PUBLIC_TENANT_PLACEHOLDER",
]
