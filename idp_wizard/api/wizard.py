"""Identity provider wizard routes.

Every route sits behind the access gate. Wizards are kept in the
in-process registry and are only visible to the operator who started them.
"""
from __future__ import annotations

from flask import Blueprint, abort, current_app, g, jsonify, request, url_for

from idp_wizard.api.decorators import current_access_token, operator_id, require_idp_access
from idp_wizard.core import rbac
from idp_wizard.core.gateway import ProviderKind
from idp_wizard.core.keycloak import KeycloakClient, KeycloakFederationGateway
from idp_wizard.core.wizard import (
    DEFINITIONS,
    OutcomeState,
    WizardEngine,
    WizardRegistry,
    service_provider_urls,
)
from scripts import audit

bp = Blueprint("wizard", __name__)

REGISTRY_EXTENSION = "idp_wizard_registry"
GATEWAY_FACTORY_KEY = "FEDERATION_GATEWAY_FACTORY"


def keycloak_gateway_factory(access_token: str) -> KeycloakFederationGateway:
    """Default gateway: Keycloak Admin API acting with the operator's token."""
    cfg = current_app.config["APP_CONFIG"]
    client = KeycloakClient(cfg.keycloak_url, token=access_token, timeout=cfg.gateway_timeout)
    return KeycloakFederationGateway(client)


def _registry() -> WizardRegistry:
    return current_app.extensions[REGISTRY_EXTENSION]


def _engine(realm: str, wizard_id: str) -> WizardEngine:
    try:
        engine = _registry().get(wizard_id, operator_id())
    except KeyError:
        abort(404)
    if engine.tenant != realm:
        abort(404)
    return engine


def _view(wizard_id: str, engine: WizardEngine) -> dict:
    cfg = current_app.config["APP_CONFIG"]
    claims = g.get("token_claims") or {}
    auth_realm = rbac.realm_from_issuer(claims.get("iss", "")) or cfg.keycloak_realm
    definition = engine.definition
    return {
        "wizard_id": wizard_id,
        "provider": {
            "key": definition.key,
            "name": definition.common_name,
            "protocol": definition.kind.value,
            "confirmation": dict(definition.confirmation),
        },
        "alias": engine.alias,
        "urls": service_provider_urls(definition, cfg.keycloak_url, engine.tenant, engine.alias, auth_realm),
        "state": engine.snapshot().to_dict(),
    }


def _json_body() -> dict:
    payload = request.get_json(silent=True)
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        abort(400, description="Request body must be a JSON object")
    return payload


# ─────────────────────────────────────────────────────────────────────────────
# Routes
# ─────────────────────────────────────────────────────────────────────────────
@bp.route("/<realm>/idp/")
@require_idp_access
def list_wizards(realm: str):
    """Identity provider selector."""
    return jsonify({"realm": realm, "wizards": [d.to_dict() for d in DEFINITIONS.values()]})


@bp.route("/<realm>/idp/<kind>/wizards", methods=["POST"])
@require_idp_access
def start_wizard(realm: str, kind: str):
    definition = DEFINITIONS.get(kind)
    if definition is None:
        abort(404)

    cfg = current_app.config["APP_CONFIG"]
    factory = current_app.config.get(GATEWAY_FACTORY_KEY, keycloak_gateway_factory)
    engine = WizardEngine(definition, factory(current_access_token()), realm, timeout=cfg.gateway_timeout)
    if definition.kind is ProviderKind.LDAP and cfg.okta_default_customer_identifier:
        engine.record_inputs(
            engine.snapshot().current_step_id,
            customer_identifier=cfg.okta_default_customer_identifier,
        )

    wizard_id = _registry().add(operator_id(), engine)
    current_app.logger.info("Started %s wizard %s in realm %s", definition.key, wizard_id, realm)
    return jsonify(_view(wizard_id, engine)), 201


@bp.route("/<realm>/idp/wizards/<wizard_id>")
@require_idp_access
def get_wizard(realm: str, wizard_id: str):
    return jsonify(_view(wizard_id, _engine(realm, wizard_id)))


@bp.route("/<realm>/idp/wizards/<wizard_id>/steps/<int:step_id>", methods=["POST"])
@require_idp_access
def advance(realm: str, wizard_id: str, step_id: int):
    engine = _engine(realm, wizard_id)
    engine.advance(step_id)
    if engine.completed:
        _registry().discard(wizard_id)
        return jsonify({
            "wizard_id": wizard_id,
            "completed": True,
            "location": url_for("wizard.list_wizards", realm=realm),
        })
    return jsonify(_view(wizard_id, engine))


@bp.route("/<realm>/idp/wizards/<wizard_id>/steps/<int:step_id>/validity", methods=["POST"])
@require_idp_access
def report_validity(realm: str, wizard_id: str, step_id: int):
    valid = _json_body().get("valid")
    if not isinstance(valid, bool):
        abort(400, description="valid must be a boolean")
    engine = _engine(realm, wizard_id)
    accepted = engine.report_validity(step_id, valid)
    return jsonify(dict(_view(wizard_id, engine), accepted=accepted))


@bp.route("/<realm>/idp/wizards/<wizard_id>/steps/<int:step_id>/inputs", methods=["POST"])
@require_idp_access
def record_inputs(realm: str, wizard_id: str, step_id: int):
    values = _json_body()
    if not values or not all(isinstance(v, str) for v in values.values()):
        abort(400, description="inputs must be a non-empty object of strings")
    engine = _engine(realm, wizard_id)
    accepted = engine.record_inputs(step_id, **values)
    return jsonify(dict(_view(wizard_id, engine), accepted=accepted))


@bp.route("/<realm>/idp/wizards/<wizard_id>/validate", methods=["POST"])
@require_idp_access
def validate_metadata(realm: str, wizard_id: str):
    url = _json_body().get("url")
    if not isinstance(url, str) or not url.strip():
        abort(400, description="url is required")

    engine = _engine(realm, wizard_id)
    result = engine.submit_external_validation(url.strip())
    audit.safe_log_federation_event(
        "idp_validate",
        engine.alias,
        operator=operator_id(),
        realm=realm,
        details={"url": url.strip(), "message": result.message},
        success=result.ok,
    )
    if engine.closed:
        return jsonify({"wizard_id": wizard_id, "validation": result.to_dict()}), 410
    return jsonify(dict(_view(wizard_id, engine), validation=result.to_dict()))


@bp.route("/<realm>/idp/wizards/<wizard_id>/finalize", methods=["POST"])
@require_idp_access
def finalize(realm: str, wizard_id: str):
    engine = _engine(realm, wizard_id)
    outcome = engine.finalize()
    audit.safe_log_federation_event(
        "idp_create",
        engine.alias,
        operator=operator_id(),
        realm=realm,
        details={"provider": engine.definition.key, "message": outcome.message},
        success=outcome.state is OutcomeState.SUCCEEDED,
    )
    if engine.closed:
        return jsonify({"wizard_id": wizard_id, "outcome": outcome.to_dict()}), 410
    return jsonify(dict(_view(wizard_id, engine), outcome=outcome.to_dict()))


@bp.route("/<realm>/idp/wizards/<wizard_id>", methods=["DELETE"])
@require_idp_access
def close_wizard(realm: str, wizard_id: str):
    _registry().close(wizard_id, operator_id())
    return ("", 204)
