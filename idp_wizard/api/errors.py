"""Error handlers for the application."""
from flask import jsonify, request
from werkzeug.exceptions import HTTPException

from idp_wizard.core.exceptions import (
    ConfigurationError,
    NavigationRejected,
    OperationInProgress,
    WizardClosed,
)


def register_error_handlers(app):
    """Register error handlers with the Flask app."""

    @app.errorhandler(NavigationRejected)
    def navigation_rejected(error):
        """Operator stays on the current step."""
        return jsonify({"error": "Navigation Rejected", "message": str(error)}), 409

    @app.errorhandler(OperationInProgress)
    def operation_in_progress(error):
        """Duplicate submission."""
        return jsonify({"error": "Operation In Progress", "message": str(error)}), 409

    @app.errorhandler(WizardClosed)
    def wizard_closed(error):
        return jsonify({"error": "Gone", "message": str(error)}), 410

    @app.errorhandler(400)
    def bad_request(error):
        """Handle 400 Bad Request errors."""
        message = getattr(error, "description", None) or str(error)
        if _wants_json():
            return jsonify({"error": "Bad Request", "message": message}), 400
        return (f"Bad Request: {message}", 400, {"Content-Type": "text/plain"})

    @app.errorhandler(401)
    def unauthorized(error):
        """Handle 401 Unauthorized errors."""
        if _wants_json():
            return jsonify({"error": "Unauthorized", "message": "Authentication required"}), 401
        return ("Authentication required", 401, {"Content-Type": "text/plain"})

    @app.errorhandler(403)
    def forbidden(error):
        """Handle 403 Forbidden errors."""
        if _wants_json():
            return jsonify({"error": "Forbidden", "message": "Insufficient permissions"}), 403
        return ("Forbidden", 403, {"Content-Type": "text/plain"})

    @app.errorhandler(404)
    def not_found(error):
        """Handle 404 Not Found errors."""
        if _wants_json():
            return jsonify({"error": "Not Found", "message": "Resource not found"}), 404
        return ("Not Found", 404, {"Content-Type": "text/plain"})

    @app.errorhandler(500)
    def internal_error(error):
        """Handle 500 Internal Server Error."""
        app.logger.error(f"Internal error: {error}", exc_info=True)
        if _wants_json():
            return jsonify({"error": "Internal Server Error", "message": "An unexpected error occurred"}), 500
        return ("Internal Server Error", 500, {"Content-Type": "text/plain"})

    @app.errorhandler(Exception)
    def handle_exception(error):
        """Handle uncaught exceptions."""
        if isinstance(error, HTTPException):
            return error

        if isinstance(error, ConfigurationError):
            app.logger.critical(f"Configuration error: {error}", exc_info=True)
        else:
            app.logger.error(f"Unhandled exception: {error}", exc_info=True)

        if _wants_json():
            return jsonify({"error": "Internal Server Error", "message": "An unexpected error occurred"}), 500
        return ("Internal Server Error", 500, {"Content-Type": "text/plain"})


def _wants_json():
    """Check if the client wants a JSON response."""
    if request.headers.get("Authorization", "").startswith("Bearer ") or request.is_json:
        return True
    return request.accept_mimetypes.accept_json and \
           not request.accept_mimetypes.accept_html
