"""Access gate endpoints: current decision, tenant switch, access-denied page."""
from __future__ import annotations

from flask import Blueprint, jsonify, request, session, abort, current_app, g

from idp_wizard.api.decorators import (
    CURRENT_ORG_KEY,
    TokenValidationError,
    access_guard,
    build_access_context,
    current_token_claims,
)
from idp_wizard.api.errors import _wants_json
from idp_wizard.core.access import resolve_scope
from idp_wizard.core.roles import PrivilegeTier, TenancyMode, required_roles, scope_for_mode

bp = Blueprint("access", __name__)


def _evaluate(realm: str, reset: bool = False):
    try:
        claims = current_token_claims()
    except TokenValidationError as e:
        return jsonify({"error": "Unauthorized", "message": str(e)}), 401
    if claims is None:
        abort(401)

    g.token_claims = claims
    context = build_access_context(claims, realm)
    guard = access_guard(claims)
    if reset:
        guard.reset()
    decision = guard.observe(context)
    mode = TenancyMode(context.mode)
    tier = PrivilegeTier.ADMIN if mode is TenancyMode.CLOUD else PrivilegeTier.RESOURCE
    return jsonify({
        "decision": decision.value,
        "mode": mode.value,
        "current_org": context.current_org,
        "scope": resolve_scope(context),
        "required_roles": list(required_roles(scope_for_mode(mode), tier)),
    })


@bp.route("/<realm>/access")
def access_decision(realm: str):
    """Evaluate the gate for the current operator and tenant."""
    return _evaluate(realm)


@bp.route("/<realm>/organization", methods=["POST"])
def select_organization(realm: str):
    """Switch the current organization; the gate is re-evaluated immediately."""
    payload = request.get_json(silent=True) or {}
    org = payload.get("org")
    if org is not None and (not isinstance(org, str) or not org.strip()):
        abort(400, description="org must be a non-empty string or null")

    if org is None:
        session.pop(CURRENT_ORG_KEY, None)
    else:
        session[CURRENT_ORG_KEY] = org.strip()
    current_app.logger.info("Organization switched to %s for realm %s", org, realm)
    return _evaluate(realm, reset=True)


@bp.route("/<realm>/access-denied")
def access_denied(realm: str):
    message = "You do not have permission to manage identity providers in this realm."
    if _wants_json():
        return jsonify({"error": "Forbidden", "message": message, "realm": realm}), 403
    return (message, 403, {"Content-Type": "text/plain"})
