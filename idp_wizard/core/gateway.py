"""Federation gateway contract used by the wizard engine.

The engine only needs two calls: import metadata from a URL, and create the
provider. Both are fallible and network bound; implementations raise
GatewayFault on any failure.
"""
from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Protocol


class ProviderKind(str, Enum):
    SAML = "saml"
    OIDC = "oidc"
    LDAP = "ldap"


@dataclass
class FederationConfig:
    """Provider configuration handed to FederationGateway.create.

    `config` is provider specific and passed through unchanged.
    """
    kind: ProviderKind
    alias: str
    display_name: str
    config: dict[str, Any] = field(default_factory=dict)


class FederationGateway(Protocol):
    def import_from_url(
        self,
        url: str,
        provider_kind: ProviderKind,
        tenant: str,
        timeout: Optional[float] = None,
    ) -> dict[str, Any]:
        ...

    def create(
        self,
        config: FederationConfig,
        tenant: str,
        timeout: Optional[float] = None,
    ) -> str:
        ...
