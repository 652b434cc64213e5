"""
Global error handlers for the Flask application.
Domain errors map to client/gateway statuses; anything else is logged as a 500.
"""
from flask import jsonify, request
import logging

from hifz_tracker.middleware.logging import log_error
from hifz_tracker.utils.errors import ContentFetchError, ValidationError

logger = logging.getLogger(__name__)


def register_error_handlers(app):
    """Register global error handlers for the Flask app."""

    @app.errorhandler(ValidationError)
    def validation_error(e):
        app.logger.warning(f"400 Validation error: {request.method} {request.path} - {e}")
        return jsonify({
            "error": "Bad request",
            "message": str(e)
        }), 400

    @app.errorhandler(ContentFetchError)
    def content_fetch_error(e):
        app.logger.error(f"502 Content provider error: {request.method} {request.path} - {e}")
        return jsonify({
            "error": "Content provider unavailable",
            "message": str(e)
        }), 502

    @app.errorhandler(404)
    def not_found(e):
        app.logger.warning(f"404 Not Found: {request.method} {request.path}")
        return jsonify({
            "error": "Not found",
            "message": f"The requested URL {request.path} was not found"
        }), 404

    @app.errorhandler(400)
    def bad_request(e):
        app.logger.warning(f"400 Bad Request: {request.method} {request.path} - {e}")
        return jsonify({
            "error": "Bad request",
            "message": str(e)
        }), 400

    @app.errorhandler(405)
    def method_not_allowed(e):
        app.logger.warning(f"405 Method Not Allowed: {request.method} {request.path}")
        return jsonify({
            "error": "Method not allowed",
            "message": f"Method {request.method} not allowed for this endpoint"
        }), 405

    @app.errorhandler(Exception)
    def handle_exception(e):
        """Handle all unhandled exceptions."""
        log_error(app.logger, f"Unhandled exception: {e}",
                  method=request.method, path=request.path, query_args=dict(request.args))
        return jsonify({
            "error": "Internal server error",
            "message": str(e) if app.debug else "An error occurred"
        }), 500

    app.logger.info("Global error handlers registered")
