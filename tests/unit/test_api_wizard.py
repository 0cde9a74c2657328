"""HTTP tests for the identity provider wizard routes."""
import json

import pytest

from idp_wizard.core.exceptions import GatewayFault
from tests.conftest import make_claims


@pytest.fixture()
def auth(bearer):
    return bearer(make_claims())


def start(client, auth, kind="okta-saml", realm="demo"):
    resp = client.post(f"/{realm}/idp/{kind}/wizards", headers=auth)
    assert resp.status_code == 201
    return resp.get_json()


def post(client, auth, path, body=None):
    return client.post(path, headers=auth, data=json.dumps(body or {}), content_type="application/json")


def advance_to(client, auth, wizard_id, step_id, realm="demo"):
    for target in range(2, step_id + 1):
        resp = post(client, auth, f"/{realm}/idp/wizards/{wizard_id}/steps/{target}")
        assert resp.status_code == 200, resp.get_json()


def read_audit(audit_file):
    if not audit_file.exists():
        return []
    return [json.loads(line) for line in audit_file.read_text().splitlines() if line.strip()]


def test_list_wizards(client, auth):
    resp = client.get("/demo/idp/", headers=auth)
    assert resp.status_code == 200
    keys = {w["key"] for w in resp.get_json()["wizards"]}
    assert keys == {"okta-ldap", "okta-saml", "onelogin-saml"}


def test_start_wizard_returns_state_and_urls(client, auth):
    body = start(client, auth)

    assert body["provider"]["key"] == "okta-saml"
    assert body["alias"].startswith("okta-saml-")
    assert body["state"]["current_step_id"] == 1
    assert body["urls"]["sso_url"] == f"http://127.0.0.1:8080/realms/demo/broker/{body['alias']}/endpoint"
    assert "/admin/demo/console/" in body["urls"]["admin_link"]


def test_unknown_wizard_kind(client, auth):
    assert client.post("/demo/idp/azure-ad/wizards", headers=auth).status_code == 404


def test_unknown_wizard_id(client, auth):
    assert client.get("/demo/idp/wizards/does-not-exist", headers=auth).status_code == 404


def test_wizard_not_visible_in_other_realm(client, auth):
    wizard_id = start(client, auth)["wizard_id"]
    assert client.get(f"/other/idp/wizards/{wizard_id}", headers=auth).status_code in (403, 404)


def test_wizard_not_visible_to_other_operator(client, bearer):
    wizard_id = start(client, bearer(make_claims(sub="alice")))["wizard_id"]
    other = bearer(make_claims(sub="bob"))
    assert client.get(f"/demo/idp/wizards/{wizard_id}", headers=other).status_code == 404


def test_skipping_ahead_is_conflict(client, auth):
    wizard_id = start(client, auth)["wizard_id"]
    resp = post(client, auth, f"/demo/idp/wizards/{wizard_id}/steps/3")
    assert resp.status_code == 409
    assert resp.get_json()["error"] == "Navigation Rejected"


def test_okta_saml_happy_path(client, auth, gateway, _isolated_audit_log):
    wizard_id = start(client, auth)["wizard_id"]
    advance_to(client, auth, wizard_id, 6)

    resp = post(client, auth, f"/demo/idp/wizards/{wizard_id}/validate", {"url": "https://acme.okta.com/metadata"})
    assert resp.status_code == 200
    assert resp.get_json()["validation"]["status"] == "success"

    advance_to_confirmation = post(client, auth, f"/demo/idp/wizards/{wizard_id}/steps/7")
    assert advance_to_confirmation.get_json()["state"]["current_step_id"] == 7

    resp = post(client, auth, f"/demo/idp/wizards/{wizard_id}/finalize")
    body = resp.get_json()
    assert resp.status_code == 200
    assert body["outcome"]["state"] == "succeeded"
    assert body["state"]["finish_enabled"] is True
    assert gateway.create_calls[0][1] == "demo"

    resp = post(client, auth, f"/demo/idp/wizards/{wizard_id}/finalize")
    assert resp.status_code == 409

    resp = post(client, auth, f"/demo/idp/wizards/{wizard_id}/steps/8")
    assert resp.get_json() == {"wizard_id": wizard_id, "completed": True, "location": "/demo/idp/"}
    assert client.get(f"/demo/idp/wizards/{wizard_id}", headers=auth).status_code == 404

    events = [e["event_type"] for e in read_audit(_isolated_audit_log)]
    assert events == ["idp_validate", "idp_create"]


def test_failed_validation_keeps_step_invalid(client, auth, gateway):
    gateway.import_fault = GatewayFault("Metadata import rejected: bad metadata", 400)
    wizard_id = start(client, auth)["wizard_id"]
    advance_to(client, auth, wizard_id, 6)

    resp = post(client, auth, f"/demo/idp/wizards/{wizard_id}/validate", {"url": "https://bad.example.com"})
    body = resp.get_json()
    assert resp.status_code == 200
    assert body["validation"]["status"] == "error"
    assert body["state"]["current_step_valid"] is False

    assert post(client, auth, f"/demo/idp/wizards/{wizard_id}/steps/7").status_code == 409


def test_validate_requires_url(client, auth):
    wizard_id = start(client, auth)["wizard_id"]
    resp = post(client, auth, f"/demo/idp/wizards/{wizard_id}/validate", {})
    assert resp.status_code == 400


def test_report_validity_and_inputs(client, auth):
    wizard_id = start(client, auth, kind="okta-ldap")["wizard_id"]

    resp = post(client, auth, f"/demo/idp/wizards/{wizard_id}/steps/1/inputs", {"customer_identifier": "acme"})
    assert resp.get_json()["accepted"] is True

    resp = post(client, auth, f"/demo/idp/wizards/{wizard_id}/steps/2/validity", {"valid": True})
    assert resp.get_json()["accepted"] is False

    resp = post(client, auth, f"/demo/idp/wizards/{wizard_id}/steps/1/validity", {"valid": True})
    assert resp.get_json()["state"]["current_step_valid"] is True


def test_report_validity_requires_boolean(client, auth):
    wizard_id = start(client, auth, kind="okta-ldap")["wizard_id"]
    resp = post(client, auth, f"/demo/idp/wizards/{wizard_id}/steps/1/validity", {"valid": "yes"})
    assert resp.status_code == 400


def test_okta_ldap_finalize_creates_federation(client, auth, gateway):
    wizard_id = start(client, auth, kind="okta-ldap")["wizard_id"]
    base = f"/demo/idp/wizards/{wizard_id}"
    post(client, auth, f"{base}/steps/1/inputs", {"customer_identifier": "acme"})
    post(client, auth, f"{base}/steps/1/validity", {"valid": True})
    post(client, auth, f"{base}/steps/2")
    post(client, auth, f"{base}/steps/2/inputs", {"username": "svc", "password": "pw"})
    post(client, auth, f"{base}/steps/2/validity", {"valid": True})
    post(client, auth, f"{base}/steps/3")
    post(client, auth, f"{base}/steps/4")

    resp = post(client, auth, f"{base}/finalize")

    assert resp.get_json()["outcome"]["state"] == "succeeded"
    config = gateway.create_calls[0][0]
    assert config.config["connectionUrl"] == "ldaps://acme.ldap.okta.com"
    assert "pw" not in resp.get_data(as_text=True)


def test_default_okta_customer_identifier(flask_app, client, auth):
    flask_app.config["APP_CONFIG"].okta_default_customer_identifier = "acme"
    try:
        wizard_id = start(client, auth, kind="okta-ldap")["wizard_id"]
        engine = flask_app.extensions["idp_wizard_registry"].get(wizard_id, "operator-1")
        assert engine.snapshot().inputs == {"customer_identifier": "acme"}
    finally:
        flask_app.config["APP_CONFIG"].okta_default_customer_identifier = ""


def test_close_wizard(client, auth):
    wizard_id = start(client, auth)["wizard_id"]

    resp = client.delete(f"/demo/idp/wizards/{wizard_id}", headers=auth)
    assert resp.status_code == 204
    assert client.get(f"/demo/idp/wizards/{wizard_id}", headers=auth).status_code == 404
    # Closing twice is harmless
    assert client.delete(f"/demo/idp/wizards/{wizard_id}", headers=auth).status_code == 204


def test_denied_operator_gets_403_with_location(client, bearer):
    headers = bearer(make_claims(roles=["view-users"]))
    resp = client.post("/demo/idp/okta-saml/wizards", headers=headers)

    assert resp.status_code == 403
    assert resp.get_json()["location"] == "/demo/access-denied"


def test_unauthenticated_request(client):
    resp = client.get("/demo/idp/", headers={"Accept": "application/json"})
    assert resp.status_code == 401
