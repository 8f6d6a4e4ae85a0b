"""
Default configuration for the lingo-authz library.

Every setting the authorization engine consumes lives here. Projects override
values through the ``LINGO_AUTHZ`` Django setting, for example::

    LINGO_AUTHZ = {
        "authorization_settings": {
            "ability_cache_ttl_seconds": 60,
            "policy_store": None,
        }
    }
"""

from __future__ import annotations

from typing import Any

# --------------------------------------------------------------------------- #
# Library-wide defaults (grouped by feature area)
# --------------------------------------------------------------------------- #
LIBRARY_DEFAULTS: dict[str, Any] = {
    "authorization_settings": {
        # Ability cache
        "ability_cache_ttl_seconds": 300,
        "ability_cache_sweep_threshold": 100,
        # Roles
        "super_admin_role": "super_admin",
        "public_tenant_id": "public",
        "load_role_files": True,
        # Policy overlay
        "enable_policy_engine": True,
        "policy_store": "lingo_authz.security.policies.DjangoPolicyStore",
        "policy_page_size": 50,
        "policy_fetch_timeout_seconds": 2.0,
        # Audit
        "enable_audit": True,
        "audit_log_all": True,
        "audit_log_denies": True,
        "audit_sensitive_fields": [
            "password",
            "token",
            "secret",
            "authorization",
            "cookie",
        ],
        # Error reporting
        "report_errors_to_sentry": True,
    },
}

__all__ = ["LIBRARY_DEFAULTS"]
