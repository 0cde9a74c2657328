"""Identity provider onboarding wizard.

To use the Flask app:
    from idp_wizard.flask_app import app

To drive a wizard without HTTP:
    from idp_wizard.core.wizard import WizardEngine, get_definition
    from idp_wizard.core.keycloak import KeycloakClient, KeycloakFederationGateway
"""
# Note: flask_app is not imported here so the core package stays usable
# without building the Flask application.
