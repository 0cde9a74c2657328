"""Identity provider onboarding wizard: state, step definitions, engine."""
from .state import (
    StepDescriptor,
    StepKind,
    OperationOutcome,
    OutcomeState,
    ValidationResult,
    WizardState,
)
from .providers import (
    WizardDefinition,
    DEFINITIONS,
    OKTA_LDAP,
    OKTA_SAML,
    ONELOGIN_SAML,
    SAML_IDP_DEFAULTS,
    get_definition,
    make_alias,
    service_provider_urls,
)
from .engine import WizardEngine, validate_steps
from .registry import WizardRegistry

__all__ = [
    "StepDescriptor",
    "StepKind",
    "OperationOutcome",
    "OutcomeState",
    "ValidationResult",
    "WizardState",
    "WizardDefinition",
    "DEFINITIONS",
    "OKTA_LDAP",
    "OKTA_SAML",
    "ONELOGIN_SAML",
    "SAML_IDP_DEFAULTS",
    "get_definition",
    "make_alias",
    "service_provider_urls",
    "WizardEngine",
    "validate_steps",
    "WizardRegistry",
]
