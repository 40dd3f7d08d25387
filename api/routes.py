"""
Flask API routes for MIXCALC.

Shared endpoints live here; each registered service mounts its own
namespaced endpoints through register_routes().

Endpoints:
  GET  /api/services   - list registered services
  (service-owned)      - see mixcalc.services.*
"""

from flask import Blueprint, jsonify


def create_api_blueprint(registry):
    """
    Build the API blueprint for a service registry.

    Parameters
    ----------
    registry : ServiceRegistry
        Populated registry; every service's routes are mounted.

    Returns
    -------
    flask.Blueprint
    """
    api = Blueprint("api", __name__, url_prefix="/api")

    @api.route("/services", methods=["GET"])
    def list_services():
        """Return metadata for every registered service."""
        return jsonify(registry.list_all())

    for service in registry:
        service.register_routes(api)

    return api
