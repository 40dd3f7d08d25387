"""
Normalized squared-error objectives shared by the scan, refine and
edge stages.

    norm = ((pred1 - v1) / sigma1)^2 + ((pred2 - v2) / sigma2)^2

A composition whose prediction is not finite scores +inf, so it can
never be selected as a best fit.

IMPORTANT: No unicode characters allowed (Windows charmap constraint).
"""

import numpy as np


class PairObjective:
    """
    Objective for a two-measurement inversion.

    Parameters
    ----------
    interpolator : TrilinearInterpolator
    first, second : Measurement
        The two measured (property, value, temperature) triples.
    settings : SolverSettings
        Supplies the per-property sigma weights.
    """

    def __init__(self, interpolator, first, second, settings):
        self.interpolator = interpolator
        self.first = first
        self.second = second
        self.sigma1 = settings.sigma_for(first.prop)
        self.sigma2 = settings.sigma_for(second.prop)

    def predict(self, abm, sbm):
        """Predicted (first, second) property values at the compositions."""
        p1 = self.interpolator.interpolate(
            self.first.prop, self.first.temperature, abm, sbm)
        p2 = self.interpolator.interpolate(
            self.second.prop, self.second.temperature, abm, sbm)
        return np.asarray(p1, dtype=float), np.asarray(p2, dtype=float)

    def evaluate(self, abm, sbm):
        """
        Score compositions.

        Returns
        -------
        (norm, pred1, pred2) : tuple of ndarray
            norm is +inf wherever either prediction is non-finite.
        """
        p1, p2 = self.predict(abm, sbm)
        e1 = (p1 - self.first.value) / self.sigma1
        e2 = (p2 - self.second.value) / self.sigma2
        ok = np.isfinite(p1) & np.isfinite(p2)
        norm = np.where(ok, e1 * e1 + e2 * e2, np.inf)
        return norm, p1, p2

    def residuals(self, pred1, pred2):
        """Signed residuals (prediction - measurement) keyed by property."""
        return {
            self.first.prop: float(pred1) - self.first.value,
            self.second.prop: float(pred2) - self.second.value,
        }


class EdgeObjective:
    """
    Single-measurement objective along a composition edge.

    On the ABM = 0 edge the free variable is SBM; on the SBM = 0 edge
    it is ABM.
    """

    def __init__(self, interpolator, measurement, alcohol_zero, settings):
        self.interpolator = interpolator
        self.measurement = measurement
        self.alcohol_zero = alcohol_zero
        self.sigma = settings.sigma_for(measurement.prop)

    def composition(self, x):
        """Map the free variable to (abm, sbm)."""
        if self.alcohol_zero:
            return np.zeros_like(np.asarray(x, dtype=float)), x
        return x, np.zeros_like(np.asarray(x, dtype=float))

    def evaluate(self, x):
        """(norm, prediction); norm is +inf where prediction is non-finite."""
        abm, sbm = self.composition(x)
        pred = np.asarray(self.interpolator.interpolate(
            self.measurement.prop, self.measurement.temperature, abm, sbm),
            dtype=float)
        e = (pred - self.measurement.value) / self.sigma
        norm = np.where(np.isfinite(pred), e * e, np.inf)
        return norm, pred

    def __call__(self, x):
        norm, _ = self.evaluate(x)
        return float(norm)
