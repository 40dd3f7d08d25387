"""
Feasibility and range diagnostics.

Before the inversion runs, each measured property is checked against
the range the other measurement allows:

    1. Envelope: over every discrete (ABM, SBM) axis pair whose
       prediction of the FIXED property lies within band of its
       measured value, take min/max of the OTHER property's prediction.
       band = max(sigma, range_band_floor)
    2. Inconsistency: an empty match in either direction adds a warning.
    3. Gate: compare each measured value with its envelope.
       soft = max(band, soft_margin_floor)   -> warning only
       hard = hard_factor * soft             -> solve aborts

The wide floors keep edge compositions (e.g. Sugar_WV = 0) from being
excluded by tight sigma weights.

IMPORTANT: No unicode characters allowed (Windows charmap constraint).
"""

import logging
import math

import numpy as np

from mixcalc.constants import (
    ABM, SBM, SUGAR_WV, LABELS, RANGE_PRECISION, fmt, fmt_t,
)

log = logging.getLogger(__name__)

INCONSISTENT_WARNING = (
    "Inputs appear physically inconsistent for the specified temperatures."
)

# Values within this distance of a range edge count as inside it
_RANGE_EPS = 1e-6


# =============================================================================
# ENVELOPE
# =============================================================================

class Envelope:
    """
    Min/max of one property over compositions matching another.

    Attributes
    ----------
    count : int
        Matched compositions with a finite prediction of the property.
    minimum, maximum : float or None
        None when nothing matched.
    band : float
        Tolerance band used for the match.
    """

    def __init__(self, count, minimum, maximum, band):
        self.count = count
        self.minimum = minimum
        self.maximum = maximum
        self.band = band

    @property
    def matched(self):
        return self.count > 0

    def to_dict(self):
        return {
            "matched": self.matched,
            "band_used": self.band,
            "count": self.count,
            "min": self.minimum,
            "max": self.maximum,
        }


def envelope(interpolator, fixed, var_prop, var_t, band):
    """
    Envelope of var_prop at var_t over compositions matching `fixed`.

    Parameters
    ----------
    interpolator : TrilinearInterpolator
    fixed : Measurement
        Complete measurement used for the match.
    var_prop : str
        Property whose range is wanted.
    var_t : float
        Temperature at which var_prop is evaluated.
    band : float
        Absolute match tolerance on the fixed property.

    Returns
    -------
    Envelope
        Unrounded min/max.
    """
    grid = interpolator.grid
    axis_a = np.asarray(grid.axis(ABM), dtype=float)
    axis_s = np.asarray(grid.axis(SBM), dtype=float)
    if axis_a.size == 0 or axis_s.size == 0:
        return Envelope(0, None, None, band)

    A, S = np.meshgrid(axis_a, axis_s, indexing="ij")
    A = A.ravel()
    S = S.ravel()

    pf = np.asarray(interpolator.interpolate(fixed.prop, fixed.temperature, A, S))
    hit = np.isfinite(pf)
    hit[hit] = np.abs(pf[hit] - fixed.value) <= band
    if not np.any(hit):
        return Envelope(0, None, None, band)

    pv = np.asarray(interpolator.interpolate(var_prop, var_t, A[hit], S[hit]))
    pv = pv[np.isfinite(pv)]
    if pv.size == 0:
        return Envelope(0, None, None, band)
    return Envelope(int(pv.size), float(pv.min()), float(pv.max()), band)


def range_key(var_prop, fixed_prop):
    return "range_for_{}_given_{}".format(var_prop, fixed_prop)


def _rounded_range(env, prop):
    lo, hi = env.minimum, env.maximum
    # Sugar cannot be negative
    if prop == SUGAR_WV and lo is not None:
        lo = max(0.0, lo)
    places = RANGE_PRECISION.get(prop, 2)
    return {
        "matched": env.matched,
        "min": None if lo is None else round(lo, places),
        "max": None if hi is None else round(hi, places),
    }


def range_diagnostics(interpolator, first, second, settings):
    """
    Feasible range of each measured property given the other.

    Returns
    -------
    (ranges, inconsistent) : (dict, bool)
        ranges maps range_key(var, fixed) -> {matched, min, max}, rounded
        to the range precision; inconsistent is True when either
        direction matched nothing.
    """
    ranges = {}
    inconsistent = False
    for var, fixed in ((first, second), (second, first)):
        env = envelope(interpolator, fixed, var.prop, var.temperature,
                       settings.band_for(fixed.prop))
        ranges[range_key(var.prop, fixed.prop)] = _rounded_range(env, var.prop)
        if not env.matched:
            inconsistent = True
    return ranges, inconsistent


# =============================================================================
# SOFT / HARD GATE
# =============================================================================

class FeasibilityReport:
    """
    Outcome of the pre-inversion feasibility check.

    Attributes
    ----------
    ranges : dict
        range_key -> {matched, min, max}.
    warnings : list of str
        Inconsistency and soft-gate messages, in that order.
    hard_block : bool
        True when a measured value lies beyond the hard margin.
    """

    def __init__(self, ranges, warnings, hard_block):
        self.ranges = ranges
        self.warnings = list(warnings)
        self.hard_block = hard_block

    def to_dict(self):
        out = dict(self.ranges)
        if self.warnings:
            out["warning"] = " ".join(self.warnings)
        return out


def _describe(measured, fixed, lo, hi, where):
    return "{}={} @ {} is {} feasible range [{}, {}] for {}={} @ {}.".format(
        LABELS[measured.prop], fmt(measured.value, measured.prop),
        fmt_t(measured.temperature), where, lo, hi,
        LABELS[fixed.prop], fmt(fixed.value, fixed.prop), fmt_t(fixed.temperature),
    )


def check_feasibility(interpolator, first, second, settings):
    """
    Range diagnostics plus the soft/hard gate for a measurement pair.

    Parameters
    ----------
    interpolator : TrilinearInterpolator
    first, second : Measurement
        Complete, temperature-clamped measurements.
    settings : SolverSettings

    Returns
    -------
    FeasibilityReport
    """
    ranges, inconsistent = range_diagnostics(interpolator, first, second, settings)
    warnings = [INCONSISTENT_WARNING] if inconsistent else []
    hard_block = False

    for measured, fixed in ((second, first), (first, second)):
        rng = ranges[range_key(measured.prop, fixed.prop)]
        if not rng["matched"] or rng["min"] is None or rng["max"] is None:
            continue
        lo, hi = rng["min"], rng["max"]
        hard = settings.hard_margin(measured.prop)
        v = measured.value
        if v < lo - hard or v > hi + hard:
            hard_block = True
            warnings.append(_describe(measured, fixed, lo, hi, "far outside"))
        elif v < lo - _RANGE_EPS or v > hi + _RANGE_EPS:
            warnings.append(_describe(measured, fixed, lo, hi, "just outside"))

    if hard_block:
        log.info("Hard feasibility gate: %s", " ".join(warnings))
    return FeasibilityReport(ranges, warnings, hard_block)


def finite_or_none(value):
    """JSON-safe float: None for NaN/inf."""
    if value is None:
        return None
    value = float(value)
    return value if math.isfinite(value) else None
