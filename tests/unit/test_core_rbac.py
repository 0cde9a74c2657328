import time
from types import SimpleNamespace

import pytest
import requests
from authlib.jose import JsonWebKey, jwt as authlib_jwt
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from flask import Flask, session

from idp_wizard.core import rbac
from idp_wizard.core.roles import TenancyMode

ISSUER = "https://localhost/realms/demo"
JWKS_URI = f"{ISSUER}/protocol/openid-connect/certs"


@pytest.fixture(scope="module")
def rsa_key():
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture()
def jwks(monkeypatch, rsa_key, stub_response):
    public_pem = rsa_key.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )
    jwk = JsonWebKey.import_key(public_pem, {"kty": "RSA"}).as_dict()
    jwk.update({"kid": "test-key", "use": "sig", "alg": "RS256"})
    fetches = []

    def _get(url, *args, **kwargs):
        fetches.append(url)
        return stub_response({"keys": [jwk]})

    monkeypatch.setattr(requests, "get", _get)
    return fetches


def sign(rsa_key, **overrides):
    now = int(time.time())
    payload = {"iss": ISSUER, "sub": "operator-1", "iat": now, "exp": now + 300}
    payload.update(overrides)
    token = authlib_jwt.encode({"alg": "RS256", "kid": "test-key"}, payload, rsa_key)
    return token.decode("utf-8") if isinstance(token, bytes) else token


@pytest.fixture()
def app_ctx():
    app = Flask(__name__)
    app.secret_key = "test-secret"
    app.config["APP_CONFIG"] = SimpleNamespace(
        keycloak_server_url=ISSUER,
        keycloak_issuer=ISSUER,
    )
    with app.test_request_context():
        yield app


@pytest.fixture(autouse=True)
def reset_jwks_cache():
    rbac._JWKS_CACHE = None
    yield
    rbac._JWKS_CACHE = None


def test_claims_snapshot_onprem_reads_resource_access():
    claims = {
        "resource_access": {"realm-management": {"roles": ["view-realm", "manage-realm"]}},
        "organizations": {"org-42": {"roles": ["manage-organization"]}},
    }
    extra = {"resource_access": {"realm-management": {"roles": ["view-users"]}}}

    snapshot = rbac.claims_snapshot(claims, extra)

    assert snapshot == {"realm-management": frozenset({"view-realm", "manage-realm", "view-users"})}


def test_claims_snapshot_cloud_reads_organizations():
    claims = {
        "resource_access": {"realm-management": {"roles": ["view-realm"]}},
        "organizations": {"org-42": {"roles": ["manage-organization"]}},
    }

    snapshot = rbac.claims_snapshot(claims, mode=TenancyMode.CLOUD)

    assert snapshot == {"org-42": frozenset({"manage-organization"})}


def test_claims_snapshot_org_named_like_client_does_not_merge():
    claims = {
        "resource_access": {"realm-management": {"roles": ["view-identity-providers"]}},
        "organizations": {"realm-management": {"roles": ["manage-identity-providers"]}},
    }

    assert rbac.claims_snapshot(claims) == {"realm-management": frozenset({"view-identity-providers"})}
    assert rbac.claims_snapshot(claims, mode=TenancyMode.CLOUD) == {
        "realm-management": frozenset({"manage-identity-providers"}),
    }


def test_claims_snapshot_none_without_claims():
    assert rbac.claims_snapshot({}, None) is None


def test_claims_snapshot_ignores_malformed_entries():
    claims = {"resource_access": {"broken": "yes", "ok": {"roles": ["view-realm", 7]}}}
    assert rbac.claims_snapshot(claims) == {"ok": frozenset({"view-realm"})}


@pytest.mark.parametrize(
    "issuer,expected",
    [
        ("https://kc.example.com/realms/master", "master"),
        ("https://kc.example.com/realms/corp/", "corp"),
        ("https://kc.example.com/auth", ""),
        ("", ""),
    ],
)
def test_realm_from_issuer(issuer, expected):
    assert rbac.realm_from_issuer(issuer) == expected


def test_decode_access_token_valid(app_ctx, jwks, rsa_key):
    token = sign(rsa_key, resource_access={"realm-management": {"roles": ["view-realm"]}})

    claims = rbac.decode_access_token(token, ISSUER, JWKS_URI)

    assert claims["sub"] == "operator-1"
    assert claims["resource_access"]["realm-management"]["roles"] == ["view-realm"]


def test_decode_access_token_caches_jwks(app_ctx, jwks, rsa_key):
    rbac.decode_access_token(sign(rsa_key), ISSUER, JWKS_URI)
    rbac.decode_access_token(sign(rsa_key), ISSUER, JWKS_URI)
    assert jwks == [JWKS_URI]


def test_decode_access_token_wrong_issuer(app_ctx, jwks, rsa_key):
    token = sign(rsa_key, iss="https://evil.example.com/realms/demo")
    assert rbac.decode_access_token(token, ISSUER, JWKS_URI) == {}


def test_decode_access_token_expired(app_ctx, jwks, rsa_key):
    token = sign(rsa_key, exp=int(time.time()) - 60)
    assert rbac.decode_access_token(token, ISSUER, JWKS_URI) == {}


def test_decode_access_token_empty(app_ctx):
    assert rbac.decode_access_token("", ISSUER, JWKS_URI) == {}


def test_session_helpers(app_ctx, jwks, rsa_key):
    assert rbac.is_authenticated() is False
    assert rbac.session_token_claims() == {}

    session["token"] = {"access_token": sign(rsa_key)}

    assert rbac.is_authenticated() is True
    assert rbac.session_token_claims()["sub"] == "operator-1"
