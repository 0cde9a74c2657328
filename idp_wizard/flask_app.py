"""Flask application factory and bootstrap.

This module provides the create_app() factory function for initializing
the Flask application with all blueprints, middleware, and configuration.
"""
from __future__ import annotations
import ipaddress
import hmac
import os
import secrets
from tempfile import gettempdir

from flask import Flask, session, request, g, abort
from flask_session import Session
from werkzeug.middleware.proxy_fix import ProxyFix

from idp_wizard.config import load_settings
from idp_wizard.core.roles import validate_registry
from idp_wizard.core.wizard import WizardRegistry


# ─────────────────────────────────────────────────────────────────────────────
# Application Factory
# ─────────────────────────────────────────────────────────────────────────────
def create_app() -> Flask:
    """Create and configure Flask application."""
    cfg = load_settings()

    # Fail fast on inconsistent role tables
    validate_registry()

    app = Flask(__name__)
    app.config["APP_CONFIG"] = cfg

    # Flask session configuration
    app.config["SECRET_KEY"] = cfg.secret_key
    app.config["SESSION_TYPE"] = os.environ.get("FLASK_SESSION_TYPE", "filesystem")
    if app.config["SESSION_TYPE"] == "filesystem":
        session_dir = os.environ.get("FLASK_SESSION_DIR") or os.path.join(gettempdir(), "idp_wizard_flask_session")
        os.makedirs(session_dir, exist_ok=True)
        app.config["SESSION_FILE_DIR"] = session_dir

    app.config["SESSION_COOKIE_HTTPONLY"] = True
    app.config["SESSION_COOKIE_SAMESITE"] = "Lax"
    app.config["SESSION_COOKIE_SECURE"] = cfg.session_cookie_secure

    Session(app)

    # Trust X-Forwarded-* headers from proxy (nginx)
    app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1)  # type: ignore

    trusted_proxy_networks = []
    for entry in cfg.trusted_proxy_ips.split(","):
        entry = entry.strip()
        if not entry:
            continue
        try:
            trusted_proxy_networks.append(ipaddress.ip_network(entry, strict=False))
        except ValueError:
            print(f"[flask_app] Ignoring invalid TRUSTED_PROXY_IPS entry: {entry}")

    app.config["TRUSTED_PROXY_NETWORKS"] = trusted_proxy_networks
    app.config["CSRF_SESSION_KEY"] = "_csrf_token"

    # Open wizard sessions (process-local)
    from idp_wizard.api import wizard
    app.extensions[wizard.REGISTRY_EXTENSION] = WizardRegistry(max_age=cfg.wizard_max_age)

    # Register blueprints
    from idp_wizard.api import health, errors, access

    app.register_blueprint(health.bp)
    app.register_blueprint(access.bp)
    app.register_blueprint(wizard.bp)

    errors.register_error_handlers(app)
    _register_middleware(app, trusted_proxy_networks)

    mode_label = "DEMO" if cfg.demo_mode else "PRODUCTION"
    print(f"[flask_app] Mode={mode_label}")
    print(f"[flask_app] Identity provider wizard registered at /<realm>/idp (api_mode={cfg.api_mode.value})")

    if cfg.demo_mode:
        print("[flask_app] WARNING: Demo mode active - do not deploy with demo credentials")

    return app


def _register_middleware(app: Flask, trusted_proxy_networks: list):
    """Register before_request middleware."""

    @app.before_request
    def enforce_proxy_headers() -> None:
        """Validate proxy headers from trusted sources only."""
        original_remote = request.environ.get("werkzeug.proxy_fix.orig_remote_addr")
        if original_remote:
            try:
                address = ipaddress.ip_address(original_remote)
                if not any(address in network for network in trusted_proxy_networks):
                    abort(400, description="Untrusted proxy")
            except ValueError:
                abort(400, description="Invalid proxy address")

        forwarded_proto = request.headers.get("X-Forwarded-Proto")
        if forwarded_proto and forwarded_proto != "https":
            abort(400, description="Invalid forwarded protocol")

        forwarded_for = request.headers.get("X-Forwarded-For")
        if forwarded_for and "," in forwarded_for:
            abort(400, description="Multiple forwarded clients not permitted")

        g.csrf_token = _generate_csrf_token()

    @app.before_request
    def enforce_csrf() -> None:
        """Validate CSRF token for state-changing requests.

        Note: Bearer-authenticated API calls carry no cookies and skip CSRF.
        """
        if request.method not in {"POST", "PUT", "PATCH", "DELETE"}:
            return

        if request.headers.get("Authorization", "").startswith("Bearer "):
            return

        submitted_token = (
            request.form.get("csrf_token")
            if not request.is_json
            else request.headers.get("X-CSRF-Token", "")
        )
        if not submitted_token:
            submitted_token = request.headers.get("X-CSRF-Token", "")

        csrf_session_key = app.config["CSRF_SESSION_KEY"]
        session_token = session.get(csrf_session_key, "")

        if not session_token or not submitted_token or not hmac.compare_digest(session_token, submitted_token):
            abort(400, description="CSRF validation failed")

    @app.after_request
    def expose_csrf_token(response):
        """Hand the session's CSRF token to browser clients."""
        token = g.get("csrf_token")
        if token:
            response.headers["X-CSRF-Token"] = token
        return response


# ─────────────────────────────────────────────────────────────────────────────
# Helper Functions
# ─────────────────────────────────────────────────────────────────────────────
def _generate_csrf_token() -> str:
    """Generate or retrieve CSRF token for current session."""
    csrf_session_key = "_csrf_token"
    token = session.get(csrf_session_key)
    if not token:
        token = secrets.token_urlsafe(32)
        session[csrf_session_key] = token
    return token


# ─────────────────────────────────────────────────────────────────────────────
# Application Instance (for Gunicorn)
# ─────────────────────────────────────────────────────────────────────────────
app = create_app()


if __name__ == "__main__":
    app.run(host="0.0.0.0", port=5000, debug=True)
