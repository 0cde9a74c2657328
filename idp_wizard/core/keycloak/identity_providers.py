"""Keycloak identity provider and user federation operations.

KeycloakFederationGateway is the production FederationGateway used by the
wizard engine. All transport and HTTP errors leave this module as
GatewayFault.
"""
from __future__ import annotations
import json
import logging
from contextlib import contextmanager
from typing import Any, Iterator, Optional

import requests

from ..exceptions import GatewayFault
from ..gateway import FederationConfig, ProviderKind
from .client import KeycloakClient
from .exceptions import KeycloakAPIError

logger = logging.getLogger(__name__)

USER_STORAGE_PROVIDER_TYPE = "org.keycloak.storage.UserStorageProvider"


def _describe(exc: KeycloakAPIError) -> str:
    """Extract Keycloak's error message from a JSON error body when present."""
    try:
        body = json.loads(exc.message)
    except (TypeError, ValueError):
        return exc.message or f"HTTP {exc.status_code}"
    if isinstance(body, dict):
        for key in ("errorMessage", "error_description", "error"):
            if body.get(key):
                return str(body[key])
    return exc.message


@contextmanager
def _gateway_faults(action: str, timeout: Optional[float]) -> Iterator[None]:
    try:
        yield
    except requests.Timeout as exc:
        raise GatewayFault(f"{action} timed out after {timeout}s") from exc
    except KeycloakAPIError as exc:
        raise GatewayFault(f"{action} rejected: {_describe(exc)}", exc.status_code) from exc
    except requests.RequestException as exc:
        raise GatewayFault(f"{action} failed: {exc}") from exc


def _component_config(config: dict[str, Any]) -> dict[str, list[str]]:
    """Keycloak component configs are multi-valued string maps."""
    result = {}
    for key, value in config.items():
        if isinstance(value, (list, tuple)):
            result[key] = [str(item) for item in value]
        elif isinstance(value, bool):
            result[key] = ["true" if value else "false"]
        else:
            result[key] = [str(value)]
    return result


class KeycloakFederationGateway:
    """Identity provider import/create over the Keycloak Admin REST API."""

    def __init__(self, client: KeycloakClient):
        """Initialize the gateway.

        Args:
            client: Keycloak client carrying the operator's access token
        """
        self.client = client

    def import_from_url(
        self,
        url: str,
        provider_kind: ProviderKind,
        tenant: str,
        timeout: Optional[float] = None,
    ) -> dict[str, Any]:
        """Fetch and parse IdP metadata through Keycloak's import-config endpoint.

        Args:
            url: Metadata (SAML) or discovery (OIDC) document URL
            provider_kind: Provider protocol
            tenant: Realm the provider will live in
            timeout: Deadline for the call in seconds

        Returns:
            Provider config map as parsed by Keycloak

        Raises:
            GatewayFault: On any transport or API error
        """
        payload = {"fromUrl": url, "providerId": ProviderKind(provider_kind).value}
        with _gateway_faults("Metadata import", timeout):
            resp = self.client.post(
                f"/admin/realms/{tenant}/identity-provider/import-config",
                json=payload,
                timeout=timeout,
            )
            config = resp.json()
        if not isinstance(config, dict) or not config:
            raise GatewayFault("Metadata import returned no configuration")
        logger.info("Imported %s metadata for realm %s from %s", payload["providerId"], tenant, url)
        return config

    def create(self, config: FederationConfig, tenant: str, timeout: Optional[float] = None) -> str:
        """Persist the provider in Keycloak.

        SAML and OIDC providers become identity provider instances; LDAP
        becomes a user storage component followed by a full user sync.

        Returns:
            Provider alias, or the created component id for LDAP

        Raises:
            GatewayFault: On any transport or API error
        """
        if ProviderKind(config.kind) is ProviderKind.LDAP:
            return self._create_user_federation(config, tenant, timeout)
        return self._create_identity_provider(config, tenant, timeout)

    def _create_identity_provider(self, config: FederationConfig, tenant: str, timeout: Optional[float]) -> str:
        payload = {
            "alias": config.alias,
            "displayName": config.display_name,
            "providerId": ProviderKind(config.kind).value,
            "enabled": True,
            "config": dict(config.config),
        }
        with _gateway_faults("Identity provider creation", timeout):
            self.client.post(
                f"/admin/realms/{tenant}/identity-provider/instances",
                json=payload,
                timeout=timeout,
            )
        logger.info("Created identity provider '%s' in realm %s", config.alias, tenant)
        return config.alias

    def _existing_component_id(self, config: FederationConfig, tenant: str, parent_id: str, timeout: Optional[float]) -> str:
        """Id of a user storage component left by an earlier attempt, or ''."""
        resp = self.client.get(
            f"/admin/realms/{tenant}/components",
            params={"parent": parent_id, "type": USER_STORAGE_PROVIDER_TYPE, "name": config.display_name},
            timeout=timeout,
        )
        for component in resp.json() or []:
            if component.get("name") == config.display_name and component.get("providerId") == ProviderKind.LDAP.value:
                return component.get("id", "")
        return ""

    def _create_user_federation(self, config: FederationConfig, tenant: str, timeout: Optional[float]) -> str:
        # The display name carries the unique alias, so a component created
        # by a previous call whose sync failed is reused instead of duplicated.
        with _gateway_faults("User federation creation", timeout):
            realm = self.client.get(f"/admin/realms/{tenant}", timeout=timeout).json()
            parent_id = realm.get("id") or tenant
            component_id = self._existing_component_id(config, tenant, parent_id, timeout)
            if component_id:
                logger.info("Reusing user federation '%s' (%s) in realm %s", config.alias, component_id, tenant)
            else:
                payload = {
                    "name": config.display_name,
                    "providerId": ProviderKind.LDAP.value,
                    "providerType": USER_STORAGE_PROVIDER_TYPE,
                    "parentId": parent_id,
                    "config": _component_config(config.config),
                }
                resp = self.client.post(f"/admin/realms/{tenant}/components", json=payload, timeout=timeout)
                location = resp.headers.get("Location", "")
                component_id = location.rstrip("/").rsplit("/", 1)[-1] if location else ""

        if not component_id:
            raise GatewayFault("User federation created but Keycloak returned no component id")

        with _gateway_faults("User sync", timeout):
            self.client.post(
                f"/admin/realms/{tenant}/user-storage/{component_id}/sync",
                params={"action": "triggerFullSync"},
                timeout=timeout,
            )
        logger.info("Created user federation '%s' (%s) in realm %s and synced users", config.alias, component_id, tenant)
        return component_id
