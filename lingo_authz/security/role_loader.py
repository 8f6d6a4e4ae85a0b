"""
Role definition loader for roles.json files.

This module scans installed Django apps for roles.json files and registers
their rules with the role rule catalog. Expected shape::

    {
        "roles": [
            {
                "name": "librarian",
                "rules": [
                    {"action": ["read", "update"], "subject": "Story",
                     "conditions": {"tenantId": "${ctx.tenantId}"}}
                ]
            }
        ]
    }
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Iterable, Optional

from django.apps import apps

from .exceptions import InvalidRuleError
from .rbac.cache import get_ability_cache
from .rbac.catalog import RoleRuleCatalog, role_catalog
from .rbac.types import Action, Rule, Subject

logger = logging.getLogger(__name__)

_ACTIONS = {action.value for action in Action}
_SUBJECTS = {subject.value for subject in Subject}


def load_app_role_definitions(
    app_configs: Optional[Iterable[object]] = None,
    catalog: Optional[RoleRuleCatalog] = None,
) -> int:
    """
    Load roles.json files from installed apps and register their rules.

    Args:
        app_configs: Optional iterable of Django app configs. Defaults to all
            installed apps.
        catalog: Catalog to register into. Defaults to the global catalog.

    Returns:
        Number of roles registered from role files.
    """
    if app_configs is None:
        app_configs = apps.get_app_configs()
    catalog = catalog or role_catalog

    registered_count = 0
    for app_config in app_configs:
        app_path = getattr(app_config, "path", None)
        if not app_path:
            continue
        roles_path = Path(app_path) / "roles.json"
        if not roles_path.exists():
            continue
        try:
            content = roles_path.read_text(encoding="utf-8").strip()
        except OSError as exc:
            logger.warning("Could not read roles file %s: %s", roles_path, exc)
            continue
        if not content:
            logger.debug("Skipping empty roles file %s", roles_path)
            continue
        try:
            payload = json.loads(content)
        except json.JSONDecodeError as exc:
            logger.warning("Invalid JSON in roles file %s: %s", roles_path, exc)
            continue

        for role_data in _extract_roles(payload, roles_path):
            name = role_data.get("name")
            if not name or not isinstance(name, str):
                logger.warning("Role entry missing name in %s", roles_path)
                continue
            rules = _build_rules(name, role_data.get("rules"), roles_path)
            if name in catalog:
                logger.warning("Role '%s' from %s is already defined; skipped", name, roles_path)
                continue
            catalog.register(name, rules)
            registered_count += 1

    if registered_count:
        get_ability_cache().clear()
    return registered_count


def _extract_roles(payload: object, roles_path: Path) -> list[dict[str, object]]:
    if isinstance(payload, dict):
        roles = payload.get("roles", [])
    else:
        roles = payload
    if roles is None:
        return []
    if not isinstance(roles, list):
        logger.warning("Roles file %s must define a list of roles", roles_path)
        return []
    normalized: list[dict[str, object]] = []
    for entry in roles:
        if not isinstance(entry, dict):
            logger.warning("Role entry in %s must be an object", roles_path)
            continue
        normalized.append(entry)
    return normalized


def _build_rules(role_name: str, raw_rules: object, roles_path: Path) -> list[Rule]:
    if not isinstance(raw_rules, list):
        logger.warning("Role %s in %s has no rules list", role_name, roles_path)
        return []
    rules: list[Rule] = []
    for raw_rule in raw_rules:
        try:
            rules.append(build_rule(raw_rule))
        except InvalidRuleError as exc:
            logger.warning("Skipping rule of role %s in %s: %s", role_name, roles_path, exc)
    return rules


def build_rule(raw_rule: object) -> Rule:
    """Validate one rule entry against the action and subject enums."""
    if not isinstance(raw_rule, dict):
        raise InvalidRuleError("rule must be an object")
    actions = _coerce_names(raw_rule.get("action"), _ACTIONS, "action")
    subjects = _coerce_names(raw_rule.get("subject"), _SUBJECTS, "subject")
    conditions = raw_rule.get("conditions")
    if conditions is not None and not isinstance(conditions, dict):
        raise InvalidRuleError("conditions must be an object")
    return Rule(
        action=actions[0] if len(actions) == 1 else tuple(actions),
        subject=subjects[0] if len(subjects) == 1 else tuple(subjects),
        condition=conditions,
        inverted=bool(raw_rule.get("inverted", False)),
        reason=raw_rule.get("reason"),
    )


def _coerce_names(value: object, allowed: set[str], label: str) -> list[str]:
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, list) or not value:
        raise InvalidRuleError(f"{label} is required")
    unknown = [item for item in value if item not in allowed]
    if unknown:
        raise InvalidRuleError(f"unknown {label}: {', '.join(map(str, unknown))}")
    return [str(item) for item in value]
