"""Keycloak Admin API client library.

Architecture:
- client.py: HTTP client with bearer authentication and per-call deadlines
- identity_providers.py: identity provider import/create, LDAP user federation
- exceptions.py: Typed exceptions for error handling

Usage:
    from idp_wizard.core.keycloak import KeycloakClient, KeycloakFederationGateway

    client = KeycloakClient("http://keycloak:8080", token=operator_access_token)
    gateway = KeycloakFederationGateway(client)
    metadata = gateway.import_from_url(url, ProviderKind.SAML, "demo", timeout=10)
"""
from .client import KeycloakClient, REQUEST_TIMEOUT
from .exceptions import KeycloakError, KeycloakAPIError
from .identity_providers import KeycloakFederationGateway, USER_STORAGE_PROVIDER_TYPE

__all__ = [
    "KeycloakClient",
    "REQUEST_TIMEOUT",
    "KeycloakError",
    "KeycloakAPIError",
    "KeycloakFederationGateway",
    "USER_STORAGE_PROVIDER_TYPE",
]
