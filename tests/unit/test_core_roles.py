"""Unit tests for role requirement tables."""
import pytest

from idp_wizard.core import roles
from idp_wizard.core.exceptions import ConfigurationError
from idp_wizard.core.roles import PrivilegeTier, RoleScope, TenancyMode


def test_registry_is_valid():
    roles.validate_registry()


@pytest.mark.parametrize("scope", list(RoleScope))
@pytest.mark.parametrize("tier", list(PrivilegeTier))
def test_every_pair_has_roles(scope, tier):
    required = roles.required_roles(scope, tier)
    assert required
    assert len(set(required)) == len(required)


def test_organization_admin_roles():
    assert roles.required_roles(RoleScope.ORGANIZATION, PrivilegeTier.ADMIN) == (
        "view-organization",
        "manage-organization",
        "view-identity-providers",
        "manage-identity-providers",
    )


def test_realm_resource_roles_include_idp_management():
    required = roles.required_roles("realm", "resource")
    assert "view-identity-providers" in required
    assert "manage-identity-providers" in required
    assert "manage-realm" in required


def test_unknown_pair_raises_configuration_error():
    with pytest.raises(ConfigurationError):
        roles.required_roles("tenant", "admin")
    with pytest.raises(ConfigurationError):
        roles.required_roles(RoleScope.REALM, "superuser")


def test_scope_for_mode():
    assert roles.scope_for_mode(TenancyMode.CLOUD) is RoleScope.ORGANIZATION
    assert roles.scope_for_mode("onprem") is RoleScope.REALM


def test_scope_for_unknown_mode():
    with pytest.raises(ConfigurationError):
        roles.scope_for_mode("hybrid")


def test_validate_registry_detects_duplicates(monkeypatch):
    patched = dict(roles._REGISTRY)
    patched[(RoleScope.REALM, PrivilegeTier.ADMIN)] = ("view-realm", "view-realm")
    monkeypatch.setattr(roles, "_REGISTRY", patched)

    with pytest.raises(ConfigurationError, match="duplicate"):
        roles.validate_registry()


def test_validate_registry_detects_empty_set(monkeypatch):
    patched = dict(roles._REGISTRY)
    patched[(RoleScope.ORGANIZATION, PrivilegeTier.RESOURCE)] = ()
    monkeypatch.setattr(roles, "_REGISTRY", patched)

    with pytest.raises(ConfigurationError, match="empty"):
        roles.validate_registry()
