"""Tests for health check endpoints."""
import pytest
from flask import Flask

from idp_wizard.api.health import bp as health_bp
from idp_wizard.core.wizard import WizardRegistry


@pytest.fixture()
def app():
    app = Flask(__name__)
    app.register_blueprint(health_bp)
    return app


def test_health_check(app):
    response = app.test_client().get("/health")
    assert response.status_code == 200
    assert response.data == b"ok"
    assert response.content_type.startswith("text/plain")


def test_readiness_without_registry(app):
    response = app.test_client().get("/ready")
    assert response.status_code == 503


def test_readiness_reports_open_wizards(app):
    app.extensions["idp_wizard_registry"] = WizardRegistry()
    response = app.test_client().get("/ready")
    assert response.status_code == 200
    assert response.get_json() == {"status": "ready", "open_wizards": 0}
