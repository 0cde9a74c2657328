"""Step definition sets for the supported identity providers.

Each WizardDefinition fixes the ordered steps of one wizard and knows how to
turn the collected wizard state into a FederationConfig. Step content
(instructions, screenshots) lives in the UI and is not modelled here.
"""
from __future__ import annotations
import secrets
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping

from ..exceptions import NavigationRejected
from ..gateway import FederationConfig, ProviderKind
from .state import StepDescriptor, StepKind, WizardState

SAML_IDP_DEFAULTS: dict[str, str] = {
    "allowCreate": "true",
    "nameIDPolicyFormat": "urn:oasis:names:tc:SAML:1.1:nameid-format:emailAddress",
    "principalType": "SUBJECT",
    "postBindingAuthnRequest": "true",
    "postBindingResponse": "true",
    "postBindingLogout": "true",
    "wantAuthnRequestsSigned": "false",
    "validateSignature": "false",
    "syncMode": "IMPORT",
}


@dataclass(frozen=True)
class WizardDefinition:
    key: str
    common_name: str
    kind: ProviderKind
    alias_preface: str
    display_prefix: str
    steps: tuple[StepDescriptor, ...]
    build_config: Callable[["WizardDefinition", str, WizardState], FederationConfig]
    config_defaults: Mapping[str, Any] = field(default_factory=dict)
    confirmation: Mapping[str, str] = field(default_factory=dict)

    @property
    def validation_step(self) -> StepDescriptor | None:
        for step in self.steps:
            if step.kind is StepKind.VALIDATION:
                return step
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "key": self.key,
            "name": self.common_name,
            "protocol": self.kind.value,
            "steps": [step.to_dict() for step in self.steps],
            "confirmation": dict(self.confirmation),
        }


def make_alias(preface: str) -> str:
    """Generate a unique provider alias, e.g. okta-saml-1a2b3c."""
    return f"{preface}-{secrets.token_hex(3)}"


def service_provider_urls(
    definition: WizardDefinition,
    server_url: str,
    realm: str,
    alias: str,
    auth_realm: str,
) -> dict[str, str]:
    """URLs the operator copies into the IdP's admin console."""
    server = server_url.rstrip("/")
    console = f"{server}/admin/{auth_realm}/console/#/realms/{realm}"
    if definition.kind is ProviderKind.LDAP:
        return {"admin_link": f"{console}/user-federation"}
    return {
        "sso_url": f"{server}/realms/{realm}/broker/{alias}/endpoint",
        "audience_uri": f"{server}/realms/{realm}",
        "admin_link": f"{console}/identity-provider-settings/provider/{definition.kind.value}/{alias}",
    }


def _metadata_config(definition: WizardDefinition, alias: str, state: WizardState) -> FederationConfig:
    if not state.pending_config:
        raise NavigationRejected(f"{definition.common_name} metadata has not been validated")
    return FederationConfig(
        kind=definition.kind,
        alias=alias,
        display_name=f"{definition.display_prefix} {alias}",
        config=dict(state.pending_config),
    )


def _okta_ldap_config(definition: WizardDefinition, alias: str, state: WizardState) -> FederationConfig:
    customer = state.inputs.get("customer_identifier")
    username = state.inputs.get("username")
    password = state.inputs.get("password")
    if not customer:
        raise NavigationRejected("Okta customer identifier has not been provided")
    if not username or not password:
        raise NavigationRejected("LDAP credentials have not been provided")

    base_dn = f"dc={customer},dc=okta,dc=com"
    config = {
        "enabled": True,
        "vendor": "other",
        "connectionUrl": f"ldaps://{customer}.ldap.okta.com",
        "authType": "simple",
        "bindDn": f"uid={username},{base_dn}",
        "bindCredential": password,
        "usersDn": f"ou=users,{base_dn}",
        "editMode": "READ_ONLY",
        "usernameLDAPAttribute": "uid",
        "rdnLDAPAttribute": "uid",
        "uuidLDAPAttribute": "uid",
        "userObjectClasses": "inetOrgPerson, organizationalPerson",
        "searchScope": "1",
        "pagination": True,
        "importEnabled": True,
        "syncRegistrations": False,
    }
    config.update(definition.config_defaults)
    return FederationConfig(
        kind=ProviderKind.LDAP,
        alias=alias,
        display_name=f"{definition.display_prefix} {alias}",
        config=config,
    )


OKTA_LDAP = WizardDefinition(
    key="okta-ldap",
    common_name="Okta LDAP",
    kind=ProviderKind.LDAP,
    alias_preface="okta-ldap",
    display_prefix="Okta LDAP",
    steps=(
        StepDescriptor(1, "Enable LDAP Interface"),
        StepDescriptor(2, "LDAP Authentication"),
        StepDescriptor(3, "Group Mapping", requires_validation=False),
        StepDescriptor(4, "Confirmation", kind=StepKind.CONFIRMATION),
    ),
    build_config=_okta_ldap_config,
    confirmation={
        "title": "LDAP Configuration Complete",
        "message": "Your users can now sign-in with Okta.",
        "button": "Test Sign-On",
    },
)

OKTA_SAML = WizardDefinition(
    key="okta-saml",
    common_name="Okta SAML IdP",
    kind=ProviderKind.SAML,
    alias_preface="okta-saml",
    display_prefix="Okta SAML Single Sign-on",
    steps=(
        StepDescriptor(1, "Add a SAML Application", requires_validation=False),
        StepDescriptor(2, "Enter Service Provider Details", requires_validation=False),
        StepDescriptor(3, "Configure Attribute Mapping", requires_validation=False),
        StepDescriptor(4, "Complete Feedback Section", requires_validation=False),
        StepDescriptor(5, "Assign People and Groups", requires_validation=False),
        StepDescriptor(6, "Upload Okta IdP Information", kind=StepKind.VALIDATION),
        StepDescriptor(7, "Confirmation", kind=StepKind.CONFIRMATION),
    ),
    build_config=_metadata_config,
    config_defaults=SAML_IDP_DEFAULTS,
    confirmation={
        "title": "SSO Configuration Complete",
        "message": "Your users can now sign-in with Okta SAML.",
        "button": "Create Okta SAML IdP in Keycloak",
    },
)

ONELOGIN_SAML = WizardDefinition(
    key="onelogin-saml",
    common_name="OneLogin SAML IdP",
    kind=ProviderKind.SAML,
    alias_preface="onelogin-saml",
    display_prefix="OneLogin SAML Single Sign-on",
    steps=(
        StepDescriptor(1, "Add a SAML Application", requires_validation=False),
        StepDescriptor(2, "Enter Service Provider Details", requires_validation=False),
        StepDescriptor(3, "Assign Users", requires_validation=False),
        StepDescriptor(4, "Upload OneLogin IdP Information", kind=StepKind.VALIDATION),
        StepDescriptor(5, "Confirmation", kind=StepKind.CONFIRMATION),
    ),
    build_config=_metadata_config,
    config_defaults=SAML_IDP_DEFAULTS,
    confirmation={
        "title": "SSO Configuration Complete",
        "message": "Your users can now sign-in with OneLogin SAML.",
        "button": "Create OneLogin SAML IdP in Keycloak",
    },
)

DEFINITIONS: dict[str, WizardDefinition] = {
    definition.key: definition
    for definition in (OKTA_LDAP, OKTA_SAML, ONELOGIN_SAML)
}


def get_definition(key: str) -> WizardDefinition:
    """Return the wizard definition for a provider key.

    Raises:
        KeyError: If no wizard exists for the key
    """
    return DEFINITIONS[key]
