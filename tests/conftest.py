"""Pytest shared fixtures."""
import os
import pathlib
import sys
import json
from typing import Optional

# Add project root to Python path
ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

# Configure test environment BEFORE any app imports
os.environ.setdefault("DEMO_MODE", "true")
os.environ.setdefault("API_MODE", "onprem")
os.environ.setdefault("FLASK_SESSION_COOKIE_SECURE", "false")

import pytest
import requests

from idp_wizard.api import decorators, wizard as wizard_api
from idp_wizard.core.exceptions import GatewayFault
from idp_wizard.core.roles import REQUIRED_REALM_RESOURCE_ROLES
from idp_wizard.flask_app import create_app
from scripts import audit


# ─────────────────────────────────────────────────────────────────────────────
# Network Guard Rails
# ─────────────────────────────────────────────────────────────────────────────
@pytest.fixture(autouse=True)
def _block_network(monkeypatch, request):
    """
    Prevent unit tests from hitting Keycloak.

    Integration tests are explicitly marked with @pytest.mark.integration and
    are allowed to perform real HTTP calls by skipping this fixture.
    """
    if request.node.get_closest_marker("integration"):
        return

    def _stub_post(url, *args, **kwargs):
        raise RuntimeError(f"Unexpected HTTP POST in unit test: {url}")

    def _stub_get(url, *args, **kwargs):
        if url.endswith("/protocol/openid-connect/certs"):
            return _StubResponse({"keys": []})
        raise RuntimeError(f"Unexpected HTTP GET in unit test: {url}")

    monkeypatch.setattr(requests, "post", _stub_post)
    monkeypatch.setattr(requests, "get", _stub_get)


@pytest.fixture(autouse=True)
def _isolated_audit_log(monkeypatch, tmp_path):
    """Keep audit events out of the working tree."""
    audit_dir = tmp_path / "audit"
    monkeypatch.setattr(audit, "AUDIT_LOG_DIR", audit_dir)
    monkeypatch.setattr(audit, "AUDIT_LOG_FILE", audit_dir / "federation-events.jsonl")
    monkeypatch.setenv("AUDIT_LOG_SIGNING_KEY", "test-signing-key-for-audit-trail")
    return audit_dir / "federation-events.jsonl"


class _StubResponse:
    def __init__(self, payload, status_code: int = 200, headers: Optional[dict] = None, url: str = ""):
        self._payload = payload
        self.status_code = status_code
        self.headers = headers or {}
        self.url = url
        self.text = json.dumps(payload) if payload is not None else ""

    def json(self):
        return self._payload

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(response=self)


@pytest.fixture()
def stub_response():
    """Factory for fake requests.Response objects."""
    return _StubResponse


# ─────────────────────────────────────────────────────────────────────────────
# Federation Gateway Double
# ─────────────────────────────────────────────────────────────────────────────
class FakeGateway:
    """In-memory FederationGateway recording every call."""

    def __init__(self, metadata: Optional[dict] = None, created_id: str = "created"):
        self.metadata = metadata if metadata is not None else {"singleSignOnServiceUrl": "https://idp.example.com/sso"}
        self.created_id = created_id
        self.import_fault: Optional[Exception] = None
        self.create_fault: Optional[Exception] = None
        self.import_calls = []
        self.create_calls = []

    def import_from_url(self, url, provider_kind, tenant, timeout=None):
        self.import_calls.append((url, provider_kind, tenant, timeout))
        if self.import_fault is not None:
            raise self.import_fault
        return dict(self.metadata)

    def create(self, config, tenant, timeout=None):
        self.create_calls.append((config, tenant, timeout))
        if self.create_fault is not None:
            raise self.create_fault
        return self.created_id


@pytest.fixture()
def gateway():
    return FakeGateway()


@pytest.fixture()
def failing_gateway():
    fake = FakeGateway()
    fake.import_fault = GatewayFault("Metadata import rejected: Could not fetch metadata", 400)
    fake.create_fault = GatewayFault("Identity provider creation rejected: Conflict", 409)
    return fake


# ─────────────────────────────────────────────────────────────────────────────
# Flask Test Client
# ─────────────────────────────────────────────────────────────────────────────
@pytest.fixture()
def flask_app(gateway):
    """Application wired to the in-memory gateway."""
    app = create_app()
    app.config.update(TESTING=True)
    app.config[wizard_api.GATEWAY_FACTORY_KEY] = lambda token: gateway
    return app


@pytest.fixture()
def client(flask_app):
    with flask_app.test_client() as client:
        yield client


def make_claims(
    roles=REQUIRED_REALM_RESOURCE_ROLES,
    scope: str = "realm-management",
    issuer: str = "http://localhost:8080/realms/demo",
    sub: str = "operator-1",
    organizations: Optional[dict] = None,
) -> dict:
    """Token claims as Keycloak issues them."""
    claims = {
        "iss": issuer,
        "sub": sub,
        "preferred_username": "alice",
        "resource_access": {scope: {"roles": list(roles)}} if scope else {},
    }
    if organizations is not None:
        claims["organizations"] = organizations
    return claims


@pytest.fixture()
def bearer(monkeypatch):
    """Authenticate Bearer requests with the given claims.

    Usage:
        headers = bearer(make_claims())
        client.get("/demo/idp/", headers=headers)
    """
    def _authenticate(claims: dict) -> dict:
        monkeypatch.setattr(decorators, "validate_jwt_token", lambda token: claims)
        return {"Authorization": "Bearer test-token"}

    return _authenticate


# ─────────────────────────────────────────────────────────────────────────────
# Pytest Configuration
# ─────────────────────────────────────────────────────────────────────────────
def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests (requires running stack)"
    )
