"""
Property Solver Service.

Inverts two measured properties (ABV, Brix, density, sugar g/L, each at
its own temperature) into an ethanol/sugar composition and reports
every derived property at a chosen report temperature. Also serves
direct forward calculation from a known composition and the
single-measurement edge solves on ABM = 0 / SBM = 0.

Endpoints:
  POST /api/solve         - solve one request (output record)
  GET  /api/solver/grid   - measurement grid coverage summary

IMPORTANT: No unicode characters allowed (Windows charmap constraint).
"""

import logging

from flask import jsonify, request

from mixcalc.request import normalize_payload
from mixcalc.results import InvalidRequest
from mixcalc.services import MixService

log = logging.getLogger(__name__)


class SolverService(MixService):
    """
    HTTP face of a MixEngine.

    Parameters
    ----------
    engine : MixEngine
        Built once per application and shared by every request.
    """

    id = "solver"
    name = "Mixture Property Solver"
    description = "Ethanol/sugar composition from two measured properties"
    category = "calculator"
    route = "/api/solve"

    def __init__(self, engine):
        self.engine = engine

    def validate(self, config):
        """Normalize a raw payload into a SolveRequest."""
        if config is None:
            raise ValueError("Request body must be a JSON object")
        return normalize_payload(config)

    def compute(self, config):
        """Solve a normalized request; returns the tagged SolveResult."""
        return self.engine.solve(config)

    def grid_summary(self):
        summary = self.engine.grid.summary()
        summary["settings"] = self.engine.settings.to_dict()
        return summary

    def register_routes(self, bp):
        """Register solver API endpoints on the given blueprint."""
        service = self

        @bp.route("/solve", methods=["POST"])
        def solve():
            data = request.get_json(silent=True)
            if data is None and request.form:
                data = request.form.to_dict()
            try:
                config = service.validate(data)
            except ValueError as e:
                return jsonify({"ok": False, "where": "validate_body",
                                "error": str(e), "missing": []}), 400

            try:
                result = service.compute(config)
            except Exception:
                log.exception("Solver failed for mode %s", config.mode)
                return jsonify({"ok": False, "where": "solver_solve",
                                "error": "Internal solver error"}), 500

            if isinstance(result, InvalidRequest):
                return jsonify(result.to_dict()), 400
            return jsonify(result.to_dict())

        @bp.route("/solver/grid", methods=["GET"])
        def solver_grid():
            return jsonify(service.grid_summary())
