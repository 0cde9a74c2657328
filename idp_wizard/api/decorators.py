"""
Flask decorators for authentication and the identity provider access gate.

Operators reach the wizard either with a Bearer token (API clients) or with
the token stored in their browser session by the SSO front end. Either way
the token's role claims are turned into an AccessContext and evaluated by
the access gate before any wizard route runs.
"""

import logging
from functools import wraps
from typing import Optional, Dict

import jwt
from jwt import PyJWKClient
from jwt.exceptions import (
    ExpiredSignatureError,
    InvalidIssuerError,
    InvalidSignatureError,
    DecodeError,
)
from flask import request, jsonify, current_app, g, session, redirect, url_for

from idp_wizard.api.errors import _wants_json
from idp_wizard.core import rbac
from idp_wizard.core.access import AccessContext, AccessDecision, SessionAccessGuard
from idp_wizard.core.roles import TenancyMode
from scripts import audit

logger = logging.getLogger(__name__)

CURRENT_ORG_KEY = "current_org"

# Global JWKS client (cached singleton)
_jwks_client: Optional[PyJWKClient] = None


class TokenValidationError(Exception):
    """Exception raised when JWT token validation fails."""
    pass


def get_jwks_client() -> PyJWKClient:
    """
    Get cached JWKS client (singleton pattern).

    Keys are cached and refreshed every hour; the kid from the JWT header
    selects the signing key.
    """
    global _jwks_client

    if _jwks_client is None:
        cfg = current_app.config["APP_CONFIG"]
        jwks_url = f"{cfg.keycloak_server_url}/protocol/openid-connect/certs"

        logger.info(f"Initializing JWKS client for: {jwks_url}")

        _jwks_client = PyJWKClient(
            jwks_url,
            cache_keys=True,
            max_cached_keys=16,
            lifespan=3600,
            headers={"User-Agent": "IdP-Wizard/1.0"},
        )

    return _jwks_client


def validate_jwt_token(token: str) -> Dict[str, any]:
    """
    Validate JWT Bearer token (signature, expiry, issuer).

    Args:
        token: JWT token string (without "Bearer " prefix)

    Returns:
        dict: Validated token claims

    Raises:
        TokenValidationError: If any validation fails
    """
    cfg = current_app.config["APP_CONFIG"]

    try:
        jwks_client = get_jwks_client()
        signing_key = jwks_client.get_signing_key_from_jwt(token)

        claims = jwt.decode(
            token,
            signing_key.key,
            algorithms=['RS256'],
            issuer=cfg.keycloak_issuer,
            options={
                'verify_signature': True,
                'verify_exp': True,
                'verify_nbf': True,
                'verify_iss': True,
                'verify_aud': False,        # Admin console tokens carry no fixed audience
                'require_exp': True,
                'require_iat': True,
            },
            leeway=5,
        )
        logger.debug(f"JWT validated for subject: {claims.get('sub')}")
        return claims

    except ExpiredSignatureError:
        raise TokenValidationError("Token expired (exp claim)")
    except InvalidIssuerError as e:
        raise TokenValidationError(f"Invalid issuer (token from wrong Keycloak realm): {e}")
    except InvalidSignatureError:
        raise TokenValidationError("Invalid signature (token tampered or wrong key)")
    except DecodeError as e:
        raise TokenValidationError(f"Token decode error (malformed JWT): {e}")
    except Exception as e:
        logger.error(f"JWT validation failed: {e}")
        raise TokenValidationError(f"Token validation failed: {e}")


def bearer_token() -> str:
    """Return the Bearer token from the Authorization header ('' if absent)."""
    auth_header = request.headers.get("Authorization", "")
    if not auth_header.startswith("Bearer "):
        return ""
    return auth_header[7:].strip()


def current_access_token() -> str:
    """Operator access token used for Keycloak Admin API calls."""
    return bearer_token() or rbac.session_access_token()


def current_token_claims() -> Optional[dict]:
    """
    Claims of the operator's token.

    Returns:
        dict of claims ({} when a session token could not be decoded),
        or None when the request carries no token at all

    Raises:
        TokenValidationError: If a Bearer token is present but invalid
    """
    token = bearer_token()
    if token:
        return validate_jwt_token(token)
    if rbac.is_authenticated():
        return rbac.session_token_claims()
    return None


def build_access_context(claims: dict, realm: str) -> AccessContext:
    """Assemble the gate input for the current request."""
    cfg = current_app.config["APP_CONFIG"]
    return AccessContext(
        mode=cfg.api_mode,
        current_org=session.get(CURRENT_ORG_KEY),
        home_realm=rbac.realm_from_issuer(claims.get("iss", "")) or cfg.keycloak_realm,
        target_realm=realm,
        claims=rbac.claims_snapshot(claims, mode=cfg.api_mode),
    )


def operator_id(claims: Optional[dict] = None) -> str:
    claims = claims if claims is not None else g.get("token_claims") or {}
    return claims.get("sub") or claims.get("preferred_username") or "anonymous"


def _record_denial(context: AccessContext) -> None:
    audit.safe_log_federation_event(
        "access_denied",
        context.current_org or "-",
        operator=operator_id(),
        realm=context.target_realm,
        details={"mode": TenancyMode(context.mode).value},
        success=False,
    )


BEARER_ACCESS_EXTENSION = "idp_wizard_bearer_access"


def access_guard(claims: dict) -> SessionAccessGuard:
    """Guard whose memory follows the caller.

    Browser operators keep it in their session. Bearer clients send no
    cookie, so their memory is kept per token subject in the app.
    """
    if not bearer_token():
        return SessionAccessGuard(session, on_denied=_record_denial)
    memory = current_app.extensions.setdefault(BEARER_ACCESS_EXTENSION, {})
    return SessionAccessGuard(memory.setdefault(operator_id(claims), {}), on_denied=_record_denial)


def _deny(realm: str):
    location = url_for("access.access_denied", realm=realm)
    if _wants_json():
        return jsonify({
            "error": "Forbidden",
            "message": "Insufficient permissions to manage identity providers",
            "location": location,
        }), 403
    return redirect(location, code=302)


def require_idp_access(fn):
    """
    Decorator gating identity provider management routes.

    Requires a `realm` route parameter. Denied operators are redirected to
    the access-denied page; the denial is audited once per transition.

    Raises:
        401 Unauthorized: Missing or invalid token
    """
    @wraps(fn)
    def wrapper(*args, **kwargs):
        try:
            claims = current_token_claims()
        except TokenValidationError as e:
            logger.warning(f"Bearer token rejected: {e}")
            return jsonify({"error": "Unauthorized", "message": str(e)}), 401

        if claims is None:
            return jsonify({"error": "Unauthorized", "message": "Authentication required"}), 401

        realm = kwargs.get("realm", "")
        g.token_claims = claims
        context = build_access_context(claims, realm)
        decision = access_guard(claims).observe(context)
        g.access_decision = decision

        if decision is not AccessDecision.GRANTED:
            return _deny(realm)

        g.access_context = context
        return fn(*args, **kwargs)

    return wrapper
