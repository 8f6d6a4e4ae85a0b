"""
Unit tests for the role rule catalog.
"""

import pytest

from lingo_authz.security.rbac import DEFAULT_ROLE_RULES, RoleRuleCatalog, Rule, UserContext, role_catalog

pytestmark = pytest.mark.unit


def test_global_catalog_holds_the_platform_roles():
    assert set(DEFAULT_ROLE_RULES) <= set(role_catalog.role_names())
    assert "student" in role_catalog


def test_unknown_role_has_no_rules():
    assert RoleRuleCatalog().rules_for("astronaut") == ()


def test_register_keeps_existing_roles_unless_replaced():
    catalog = RoleRuleCatalog({"reader": [Rule("read", "Lesson")]})
    version = catalog.get_version()

    catalog.register("reader", [Rule("manage", "all")])
    assert catalog.rules_for("reader") == (Rule("read", "Lesson"),)
    assert catalog.get_version() == version

    catalog.register("reader", [Rule("manage", "all")], replace=True)
    assert catalog.rules_for("reader") == (Rule("manage", "all"),)
    assert catalog.get_version() == version + 1


def test_empty_catalog():
    catalog = RoleRuleCatalog({})

    assert len(catalog) == 0
    assert catalog.role_names() == []


def test_user_context_normalizes_roles():
    user = UserContext("u1", "t1", ["student", "coach"])

    assert user.roles == ("student", "coach")
    assert user.has_role("coach") is True
    assert user.has_role("admin") is False


def test_user_context_stores_identifiers_as_strings():
    user = UserContext(7, 5, ("student",))

    assert user.user_id == "7"
    assert user.tenant_id == "5"
    assert UserContext("u1").tenant_id is None
