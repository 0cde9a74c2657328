"""Role requirement tables for identity provider management.

Each (scope, tier) pair maps to the role names an operator must hold.
Cloud deployments check organization-scoped roles, on-prem deployments
check realm resource roles.
"""
from __future__ import annotations
from enum import Enum

from .exceptions import ConfigurationError


class TenancyMode(str, Enum):
    CLOUD = "cloud"
    ONPREM = "onprem"


class RoleScope(str, Enum):
    ORGANIZATION = "organization"
    REALM = "realm"


class PrivilegeTier(str, Enum):
    ADMIN = "admin"
    RESOURCE = "resource"


REQUIRED_ORGANIZATION_ADMIN_ROLES = (
    "view-organization",
    "manage-organization",
    "view-identity-providers",
    "manage-identity-providers",
)

REQUIRED_ORGANIZATION_RESOURCE_ROLES = (
    "view-identity-providers",
    "manage-identity-providers",
    "query-users",
    "view-users",
    "view-events",
    "view-realm",
    "manage-realm",
)

REQUIRED_REALM_ADMIN_ROLES = (
    "view-organizations",
    "manage-organizations",
    "view-identity-providers",
    "manage-identity-providers",
)

REQUIRED_REALM_RESOURCE_ROLES = (
    "view-identity-providers",
    "manage-identity-providers",
    "query-users",
    "view-users",
    "view-events",
    "view-realm",
    "manage-realm",
)

_REGISTRY: dict[tuple[RoleScope, PrivilegeTier], tuple[str, ...]] = {
    (RoleScope.ORGANIZATION, PrivilegeTier.ADMIN): REQUIRED_ORGANIZATION_ADMIN_ROLES,
    (RoleScope.ORGANIZATION, PrivilegeTier.RESOURCE): REQUIRED_ORGANIZATION_RESOURCE_ROLES,
    (RoleScope.REALM, PrivilegeTier.ADMIN): REQUIRED_REALM_ADMIN_ROLES,
    (RoleScope.REALM, PrivilegeTier.RESOURCE): REQUIRED_REALM_RESOURCE_ROLES,
}

_MODE_SCOPES = {
    TenancyMode.CLOUD: RoleScope.ORGANIZATION,
    TenancyMode.ONPREM: RoleScope.REALM,
}


def scope_for_mode(mode: TenancyMode | str) -> RoleScope:
    """Return the role scope checked in the given tenancy mode."""
    try:
        return _MODE_SCOPES[TenancyMode(mode)]
    except ValueError as exc:
        raise ConfigurationError(f"Unknown tenancy mode: {mode!r}") from exc


def required_roles(scope: RoleScope | str, tier: PrivilegeTier | str) -> tuple[str, ...]:
    """Return the role names required for a (scope, tier) pair.

    Raises:
        ConfigurationError: If the pair is not one of the four known combinations
    """
    try:
        key = (RoleScope(scope), PrivilegeTier(tier))
    except ValueError as exc:
        raise ConfigurationError(f"Unknown role requirement: ({scope!r}, {tier!r})") from exc
    try:
        return _REGISTRY[key]
    except KeyError as exc:
        raise ConfigurationError(f"No role requirement registered for {key}") from exc


def validate_registry() -> None:
    """Fail fast if any role requirement set is empty or has duplicates."""
    for scope in RoleScope:
        for tier in PrivilegeTier:
            roles = required_roles(scope, tier)
            if not roles:
                raise ConfigurationError(f"Role requirement ({scope.value}, {tier.value}) is empty")
            if len(set(roles)) != len(roles):
                raise ConfigurationError(
                    f"Role requirement ({scope.value}, {tier.value}) contains duplicate roles"
                )
