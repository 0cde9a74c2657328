"""Core Business Logic Module

Framework-independent pieces of the identity provider wizard.

Module Structure:
    - roles.py      : Role requirement tables per scope and privilege tier
    - access.py     : Access gate (AccessContext -> AccessDecision) and guards
    - gateway.py    : FederationGateway protocol and FederationConfig
    - wizard/       : Wizard state, provider step definitions, engine, registry
    - keycloak/     : Keycloak Admin API client and federation gateway
    - rbac.py       : Token claims helpers for Flask sessions
    - exceptions.py : Wizard error hierarchy

Usage Pattern:
    Import explicitly when needed:
        from idp_wizard.core.access import AccessContext, evaluate
        from idp_wizard.core.wizard import WizardEngine, OKTA_SAML
"""
