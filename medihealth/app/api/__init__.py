"""API blueprint registration."""
from flask import Blueprint

api_bp = Blueprint("api", __name__)

# Import endpoints to ensure they are registered with the blueprint.
from . import auth, connection  # noqa: E402,F401
from .appointments import appointments_bp  # noqa: E402,F401
from .tips import tips_bp  # noqa: E402,F401

api_bp.register_blueprint(appointments_bp, url_prefix="/appointments")
api_bp.register_blueprint(tips_bp, url_prefix="/tips")
