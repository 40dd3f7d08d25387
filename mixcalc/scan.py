"""
Coarse scan: exhaustive evaluation over the discrete composition axes.

Every (ABM, SBM) pair present on the grid axes is scored with the pair
objective; pairs where either prediction is non-finite are skipped. The
k best survive as seeds for the local refiner. An empty result means
the model has no coverage for the requested properties/temperatures.

IMPORTANT: No unicode characters allowed (Windows charmap constraint).
"""

import numpy as np

from mixcalc.constants import ABM, SBM


class Candidate:
    """
    One scored grid composition.

    Parameters
    ----------
    abm, sbm : float
        Grid composition.
    pred1, pred2 : float
        Predicted first/second measured properties.
    residuals : dict
        Signed residual per measured property.
    norm_err : float
        Normalized squared error.
    """

    def __init__(self, abm, sbm, pred1, pred2, residuals, norm_err):
        self.abm = abm
        self.sbm = sbm
        self.pred1 = pred1
        self.pred2 = pred2
        self.residuals = residuals
        self.norm_err = norm_err

    def to_dict(self):
        return {
            "abm": self.abm,
            "sbm": self.sbm,
            "pred1": self.pred1,
            "pred2": self.pred2,
            "err": dict(self.residuals),
            "norm_err": self.norm_err,
        }


def coarse_scan(objective, grid, keep=5):
    """
    Score every discrete (ABM, SBM) axis pair.

    Parameters
    ----------
    objective : PairObjective
        Scores compositions against the two measurements.
    grid : MixGrid
        Supplies the discrete ABM and SBM axes.
    keep : int
        Number of best candidates to return (at least 1).

    Returns
    -------
    list of Candidate
        Ascending by norm_err. Empty when no pair yields two finite
        predictions.
    """
    axis_a = np.asarray(grid.axis(ABM), dtype=float)
    axis_s = np.asarray(grid.axis(SBM), dtype=float)
    if axis_a.size == 0 or axis_s.size == 0:
        return []

    A, S = np.meshgrid(axis_a, axis_s, indexing="ij")
    A = A.ravel()
    S = S.ravel()
    norm, p1, p2 = objective.evaluate(A, S)

    valid = np.flatnonzero(np.isfinite(norm))
    if valid.size == 0:
        return []
    # Stable sort keeps scan order (ABM outer, SBM inner) among ties
    order = valid[np.argsort(norm[valid], kind="stable")][:max(1, int(keep))]

    return [
        Candidate(
            abm=float(A[i]),
            sbm=float(S[i]),
            pred1=float(p1[i]),
            pred2=float(p2[i]),
            residuals=objective.residuals(p1[i], p2[i]),
            norm_err=float(norm[i]),
        )
        for i in order
    ]
