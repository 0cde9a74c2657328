"""Health check endpoints."""
from flask import Blueprint, current_app, jsonify

from idp_wizard.core.roles import validate_registry

bp = Blueprint("health", __name__)


@bp.route("/health")
def health_check():
    """Basic health check endpoint."""
    return ("ok", 200, {"Content-Type": "text/plain"})


@bp.route("/ready")
def readiness_check():
    """Readiness: role tables are consistent and the wizard registry is up."""
    validate_registry()
    registry = current_app.extensions.get("idp_wizard_registry")
    if registry is None:
        return ("wizard registry not initialised", 503, {"Content-Type": "text/plain"})
    return jsonify({"status": "ready", "open_wizards": len(registry)})
