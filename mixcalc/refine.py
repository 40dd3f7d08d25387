"""
Local refinement: shrinking-box continuous search around a seed.

The objective is built from tri-linear interpolation of sparse
empirical data, so it is piecewise-linear and not reliably
differentiable. Instead of a gradient method the refiner samples a
regular sub-grid inside a box, moves to the best sample, halves the
box and repeats:

    Pass k:  half-width h_k = h_0 / 2^k
             step = max(h_k / steps, min_step)
             samples = centre + step * {-m..m} per axis, m = floor(h_k / step)
    Stop when h_k <= tol.

The current centre is always one of the samples, so the best error
never increases from one pass to the next. Every sample is clamped
into the composition domain before evaluation.

IMPORTANT: No unicode characters allowed (Windows charmap constraint).
"""

import math

import numpy as np


class Refinement:
    """
    Converged composition from refine_around().

    Parameters
    ----------
    abm, sbm : float
        Refined composition.
    norm_err : float
        Normalized squared error (inf when no sample was finite).
    residuals : dict
        Signed residual per measured property (None when not finite).
    passes : int
        Number of box-halving passes performed.
    """

    def __init__(self, abm, sbm, norm_err, residuals, passes):
        self.abm = abm
        self.sbm = sbm
        self.norm_err = norm_err
        self.residuals = residuals
        self.passes = passes

    @property
    def converged(self):
        return math.isfinite(self.norm_err)


def _axis_samples(centre, half_width, step, lo, hi):
    m = int(math.floor(half_width / step + 1e-9))
    offsets = step * np.arange(-m, m + 1, dtype=float)
    return np.unique(np.clip(centre + offsets, lo, hi))


def refine_around(objective, abm, sbm, bounds, settings):
    """
    Minimize the pair objective near a seed composition.

    Parameters
    ----------
    objective : PairObjective
    abm, sbm : float
        Seed composition (usually the best coarse-scan candidate).
    bounds : tuple
        ((abm_min, abm_max), (sbm_min, sbm_max)) composition domain.
    settings : SolverSettings
        refine_box, refine_tol, refine_steps, refine_min_step.

    Returns
    -------
    Refinement
    """
    (a_lo, a_hi), (s_lo, s_hi) = bounds
    a = min(max(float(abm), a_lo), a_hi)
    s = min(max(float(sbm), s_lo), s_hi)

    best_norm = math.inf
    best_preds = None
    box = float(settings.refine_box)
    passes = 0

    while box > settings.refine_tol:
        step = max(box / settings.refine_steps, settings.refine_min_step)
        a_vals = _axis_samples(a, box, step, a_lo, a_hi)
        s_vals = _axis_samples(s, box, step, s_lo, s_hi)
        A, S = np.meshgrid(a_vals, s_vals, indexing="ij")
        A = A.ravel()
        S = S.ravel()

        norm, p1, p2 = objective.evaluate(A, S)
        i = int(np.argmin(norm))
        if math.isfinite(norm[i]) and norm[i] <= best_norm:
            best_norm = float(norm[i])
            best_preds = (p1[i], p2[i])
            a = float(A[i])
            s = float(S[i])

        box *= 0.5
        passes += 1

    if best_preds is None:
        residuals = {objective.first.prop: None, objective.second.prop: None}
    else:
        residuals = objective.residuals(*best_preds)

    return Refinement(abm=a, sbm=s, norm_err=best_norm,
                      residuals=residuals, passes=passes)
