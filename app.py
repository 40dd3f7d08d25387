"""
MIXCALC - Ethanol/Sugar Mixture Property Calculator
Flask application factory.

Serves the REST API for the property solver via registered MixService
instances. The measurement grid is loaded once per app from the CSV
named by the TABLE config key (env: MIXCALC_TABLE).

Usage:
    MIXCALC_TABLE=mix_data.csv python app.py   # http://localhost:5000
    MIXCALC_TABLE=mix_data.csv flask run       # Same, via Flask CLI
"""

__version__ = "0.1.0"

import logging

from flask import Flask

from mixcalc.engine import MixEngine
from mixcalc.grid import MixGrid
from mixcalc.services import ServiceRegistry
from mixcalc.services.solver import SolverService
from mixcalc.settings import SolverSettings

log = logging.getLogger(__name__)


def create_engine(config):
    """Build the MixEngine described by an app config."""
    settings = SolverSettings(**(config.get("SOLVER_SETTINGS") or {}))
    table = config.get("TABLE")
    if table:
        return MixEngine.from_csv(table, settings=settings)
    log.warning("No measurement table configured (MIXCALC_TABLE); "
                "every solve will report no coverage")
    return MixEngine(MixGrid([]), settings=settings)


def create_registry(engine):
    """Build and populate the service registry."""
    registry = ServiceRegistry()
    registry.register(SolverService(engine))
    return registry


def create_app(config=None, engine=None):
    """
    Application factory for the MIXCALC Flask app.

    Parameters
    ----------
    config : dict, optional
        Overrides applied after MIXCALC_* environment variables.
    engine : MixEngine, optional
        Prebuilt engine; skips table loading.
    """
    app = Flask(__name__)
    app.config.from_prefixed_env("MIXCALC")
    if config:
        app.config.update(config)

    if engine is None:
        engine = create_engine(app.config)
    app.extensions["mixcalc_engine"] = engine

    # Build service registry
    registry = create_registry(engine)

    # Create and register API blueprint (shared + service-owned routes)
    from api.routes import create_api_blueprint
    api = create_api_blueprint(registry)
    app.register_blueprint(api)

    return app


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO,
                        format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    app = create_app()
    app.run(debug=True, host="127.0.0.1", port=5000)
