"""
MIXCALC: property inversion for aqueous ethanol/sugar mixtures.

Given two measured properties (ABV, refractometer Brix, density,
dissolved sugar g/L), each taken at its own temperature, find the
composition (alcohol and sugar by mass) that explains both and report
every derived property at a chosen temperature.

Typical use:

    from mixcalc import MixEngine, normalize_payload
    engine = MixEngine.from_csv("mix_data.csv")
    result = engine.solve(normalize_payload({"mode": "abv_brix", ...}))

IMPORTANT: No unicode characters allowed (Windows charmap constraint).
"""

from mixcalc.engine import MixEngine
from mixcalc.grid import MixGrid
from mixcalc.request import Measurement, SolveRequest, normalize_payload
from mixcalc.results import Solved, Infeasible, NoCoverage, InvalidRequest
from mixcalc.settings import SolverSettings

__all__ = [
    "MixEngine",
    "MixGrid",
    "Measurement",
    "SolveRequest",
    "normalize_payload",
    "Solved",
    "Infeasible",
    "NoCoverage",
    "InvalidRequest",
    "SolverSettings",
]
