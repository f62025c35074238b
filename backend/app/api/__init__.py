"""API blueprint registration."""
from flask import Blueprint

api_bp = Blueprint("api", __name__)

# Import endpoints to ensure they are registered with the blueprint.
from . import auth  # noqa: E402,F401
from .access import access_bp  # noqa: E402,F401
from .clients import clients_bp  # noqa: E402,F401
from .onboarding import onboarding_bp  # noqa: E402,F401

api_bp.register_blueprint(onboarding_bp, url_prefix="/onboarding")
api_bp.register_blueprint(clients_bp, url_prefix="/clients")
api_bp.register_blueprint(access_bp, url_prefix="/access")
