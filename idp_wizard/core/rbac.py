"""Role claims helpers for browser sessions.

The SSO front end stores the operator's token in the Flask session; this
module decodes it and turns role claims into the per-scope snapshot the
access gate consumes.
"""
from __future__ import annotations
from typing import Optional

from flask import session, current_app
from authlib.jose import JsonWebKey, jwt
import requests

from .roles import TenancyMode

# Claim holding the role scopes the gate checks in each mode
SCOPE_CLAIMS = {
    TenancyMode.CLOUD: "organizations",
    TenancyMode.ONPREM: "resource_access",
}


# JWKS Cache
_JWKS_CACHE: Optional[JsonWebKey] = None


def claims_snapshot(*sources, mode: TenancyMode = TenancyMode.ONPREM) -> Optional[dict[str, frozenset[str]]]:
    """Build {scope: roles} from the role claim of the given tenancy mode.

    Cloud scopes are organization ids from `organizations`; on-prem scopes
    are client ids from `resource_access`. The two never share a map, so an
    organization named like a client cannot lend it roles.

    Returns None when no source holds any claims at all.
    """
    claim = SCOPE_CLAIMS[TenancyMode(mode)]
    snapshot: dict[str, set[str]] = {}
    seen_claims = False
    for source in sources:
        if not isinstance(source, dict) or not source:
            continue
        seen_claims = True
        scopes = source.get(claim)
        if not isinstance(scopes, dict):
            continue
        for scope, access in scopes.items():
            if not isinstance(access, dict):
                continue
            roles = access.get("roles") or []
            snapshot.setdefault(scope, set()).update(r for r in roles if isinstance(r, str))
    if not seen_claims:
        return None
    return {scope: frozenset(roles) for scope, roles in snapshot.items()}


def realm_from_issuer(issuer: str) -> str:
    """Return the realm name from an issuer like https://kc/realms/master."""
    if not issuer or "/realms/" not in issuer:
        return ""
    return issuer.rstrip("/").rsplit("/realms/", 1)[-1].split("/", 1)[0]


def decode_access_token(access_token: str, issuer: str, jwks_uri: str) -> dict:
    """Decode and validate access token JWT. Returns {} when invalid."""
    global _JWKS_CACHE

    if not access_token:
        return {}

    try:
        if _JWKS_CACHE is None:
            resp = requests.get(jwks_uri, timeout=5)
            resp.raise_for_status()
            _JWKS_CACHE = JsonWebKey.import_key_set(resp.json())

        claims = jwt.decode(
            access_token,
            key=_JWKS_CACHE,
            claims_options={"iss": {"values": [issuer]}},
        )
        claims.validate()
        return dict(claims)
    except Exception as exc:
        current_app.logger.warning("Session access token rejected: %s", exc)
        return {}


def is_authenticated() -> bool:
    """Check if the browser session carries a token."""
    return bool(session.get("token"))


def session_access_token() -> str:
    token = session.get("token") or {}
    return token.get("access_token", "") if isinstance(token, dict) else ""


def session_token_claims() -> dict:
    """Decoded access token claims of the browser session ({} if none/invalid)."""
    cfg = current_app.config["APP_CONFIG"]
    access_token = session_access_token()
    if not access_token:
        return {}
    jwks_uri = f"{cfg.keycloak_server_url}/protocol/openid-connect/certs"
    return decode_access_token(access_token, cfg.keycloak_issuer, jwks_uri)
