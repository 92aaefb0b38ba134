"""Application factory for the MediHealth site."""
from __future__ import annotations

import logging

from flask import Flask, jsonify
from flask_cors import CORS
from werkzeug.exceptions import HTTPException

from medihealth.config import get_config
from medihealth.app.middleware import register_audit_middleware


def create_app(config_name: str | None = None) -> Flask:
    """Create and configure the Flask application."""

    app = Flask(__name__)
    config_cls = get_config(config_name or app.config.get("ENV"))
    app.config.from_object(config_cls)

    register_blueprints(app)
    register_error_handlers(app)
    register_audit_middleware(app)

    if app.config.get("DEBUG"):
        logging.getLogger("medihealth").setLevel(logging.DEBUG)

    CORS(app)
    return app


def register_blueprints(app: Flask) -> None:
    """Register application blueprints."""

    from medihealth.app.api import api_bp
    from medihealth.app.frontend import frontend_bp

    app.register_blueprint(api_bp, url_prefix="/api")
    app.register_blueprint(frontend_bp)


def register_error_handlers(app: Flask) -> None:
    """Keep API failures as JSON messages so the page stays usable."""

    @app.errorhandler(Exception)
    def _handle_unexpected(exc: Exception):
        if isinstance(exc, HTTPException):
            return exc
        app.logger.exception("Unhandled error while serving request")
        return jsonify(status="error", message="An unexpected error occurred."), 500
