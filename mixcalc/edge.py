"""
Edge solver: single-measurement inversion on ABM = 0 or SBM = 0.

With one composition coordinate pinned to zero, a single measured
property determines the other coordinate:

    ABM = 0 edge: free variable SBM
    SBM = 0 edge: free variable ABM

The free axis is scanned at its discrete values, the best point is
bracketed by its neighbours, and a ternary search narrows the bracket.

IMPORTANT: No unicode characters allowed (Windows charmap constraint).
"""

import logging
import math

import numpy as np

from mixcalc.constants import ABM, SBM
from mixcalc.objective import EdgeObjective

log = logging.getLogger(__name__)

NO_EDGE_COVERAGE = "No coverage on edge for this temperature/property."


class EdgeSolution:
    """Composition found on an edge, with its normalized error."""

    def __init__(self, abm, sbm, norm_err, prediction):
        self.abm = abm
        self.sbm = sbm
        self.norm_err = norm_err
        self.prediction = prediction


def solve_edge(interpolator, measurement, alcohol_zero, settings):
    """
    Invert one measurement along a composition edge.

    Parameters
    ----------
    interpolator : TrilinearInterpolator
    measurement : Measurement
        Complete measurement.
    alcohol_zero : bool
        True for the ABM = 0 edge, False for SBM = 0.
    settings : SolverSettings
        Supplies sigma and edge_iterations.

    Returns
    -------
    EdgeSolution or None
        None when no point on the free axis has a finite prediction.
    """
    objective = EdgeObjective(interpolator, measurement, alcohol_zero, settings)
    axis = np.asarray(interpolator.grid.axis(SBM if alcohol_zero else ABM),
                      dtype=float)
    if axis.size == 0:
        return None

    norm, _ = objective.evaluate(axis)
    if not np.any(np.isfinite(norm)):
        log.info("No edge coverage for %s @ %s", measurement.prop,
                 measurement.temperature)
        return None

    best = int(np.argmin(norm))
    lo = float(axis[max(0, best - 1)])
    hi = float(axis[min(axis.size - 1, best + 1)])

    for _ in range(settings.edge_iterations):
        m1 = lo + (hi - lo) / 3.0
        m2 = hi - (hi - lo) / 3.0
        if objective(m1) > objective(m2):
            lo = m1
        else:
            hi = m2
    x = (lo + hi) * 0.5

    final_norm, pred = objective.evaluate(x)
    final_norm = float(final_norm)
    pred = float(pred)
    abm, sbm = (0.0, x) if alcohol_zero else (x, 0.0)
    log.debug("Edge solve %s: x=%.4f norm=%.4g", measurement.prop, x, final_norm)
    return EdgeSolution(abm, sbm, final_norm,
                        pred if math.isfinite(pred) else None)
