"""
Tri-linear interpolation over (temperature, ABM, SBM).

    value(T, A, S) = sum_c w_c * v_c / sum_c w_c
    w_c = wT * wA * wS   over the 8 cube corners {T0,T1}x{A0,A1}x{S0,S1}

Corners that were never measured are dropped from both the numerator
and the weight total, so a sparse neighbourhood still yields a value.
When every weighted corner is missing the interpolator falls back to
the nearest corner by axis proximity, then to the closest measured
corner of the cube by Manhattan distance, and finally to NaN. NaN is
returned, never raised: callers test with a finiteness check.

All functions accept scalars or numpy arrays (broadcast together); the
coarse scan, refiner and diagnostics evaluate whole sample grids in one
call.

IMPORTANT: No unicode characters allowed (Windows charmap constraint).
"""

import math

import numpy as np

from mixcalc.constants import (
    T_C, ABM, SBM, ABV, SUGAR_WV, DENSITY, BRIX, ND, PRECISION,
)


def bracket(axis, x):
    """
    Bracket x between two adjacent axis values.

    Parameters
    ----------
    axis : sequence of float
        Sorted, deduplicated, non-empty axis.
    x : float or ndarray
        Coordinates, already clamped into [axis[0], axis[-1]].

    Returns
    -------
    (i0, i1, alpha)
        Lower index, upper index and fractional position in [0, 1].
        alpha is 0 at or below the first axis value and 1 at or above
        the last; in both cases i0 == i1.
    """
    axis = np.asarray(axis, dtype=float)
    x = np.asarray(x, dtype=float)
    n = axis.size
    if n == 1:
        zero = np.zeros(x.shape, dtype=int)
        return zero, zero, np.zeros(x.shape, dtype=float)

    # Binary search: axis[i0] <= x < axis[i1]
    i1 = np.clip(np.searchsorted(axis, x, side="right"), 1, n - 1)
    i0 = i1 - 1
    x0 = axis[i0]
    x1 = axis[i1]
    alpha = (x - x0) / (x1 - x0)

    below = x <= axis[0]
    above = x >= axis[-1]
    i0 = np.where(below, 0, np.where(above, n - 1, i0))
    i1 = np.where(below, 0, np.where(above, n - 1, i1))
    alpha = np.where(below, 0.0, np.where(above, 1.0, alpha))
    return i0, i1, alpha


class TrilinearInterpolator:
    """
    Interpolator bound to one MixGrid.

    Parameters
    ----------
    grid : MixGrid
        The immutable measurement grid.
    """

    def __init__(self, grid):
        self.grid = grid
        self._axes = tuple(np.asarray(grid.axis(d), dtype=float)
                           for d in (T_C, ABM, SBM))

    @property
    def composition_bounds(self):
        """((abm_min, abm_max), (sbm_min, sbm_max)), or None when empty."""
        if self.grid.is_empty:
            return None
        return self.grid.bounds(ABM), self.grid.bounds(SBM)

    def temperature_bounds(self):
        return self.grid.bounds(T_C)

    def interpolate(self, prop, t, a, s):
        """
        Interpolate a property at (T, A, S).

        Parameters
        ----------
        prop : str
            Property column (abv, sugar_wv, nd, density, brix).
        t, a, s : float or ndarray
            Temperature, ABM and SBM; broadcast together.

        Returns
        -------
        float or ndarray
            Interpolated value(s); NaN where no data is reachable.
        """
        values, mask = self.grid.arrays(prop)
        t, a, s = np.broadcast_arrays(
            np.asarray(t, dtype=float),
            np.asarray(a, dtype=float),
            np.asarray(s, dtype=float),
        )
        scalar = t.ndim == 0

        if values.size == 0:
            out = np.full(t.shape, np.nan)
            return float(out) if scalar else out

        finite = np.isfinite(t) & np.isfinite(a) & np.isfinite(s)
        axT, axA, axS = self._axes
        # Clamp: extrapolation outside the covered domain is disallowed
        t = np.clip(np.where(finite, t, axT[0]), axT[0], axT[-1])
        a = np.clip(np.where(finite, a, axA[0]), axA[0], axA[-1])
        s = np.clip(np.where(finite, s, axS[0]), axS[0], axS[-1])

        it0, it1, aT = bracket(axT, t)
        ia0, ia1, aA = bracket(axA, a)
        is0, is1, aS = bracket(axS, s)

        num = np.zeros(t.shape, dtype=float)
        den = np.zeros(t.shape, dtype=float)
        corners = []
        for ti, wt in ((it0, 1.0 - aT), (it1, aT)):
            for ai, wa in ((ia0, 1.0 - aA), (ia1, aA)):
                for si, ws in ((is0, 1.0 - aS), (is1, aS)):
                    w = wt * wa * ws
                    present = mask[ti, ai, si]
                    v = values[ti, ai, si]
                    use = present & (w > 0)
                    num += np.where(use, v * w, 0.0)
                    den += np.where(use, w, 0.0)
                    corners.append((ti, ai, si, present, v))

        covered = den > 0
        out = np.where(covered, num / np.where(covered, den, 1.0), np.nan)

        gaps = finite & ~covered
        if np.any(gaps):
            out = np.where(gaps, self._fallback(t, a, s, corners,
                                                (it0, it1), (ia0, ia1), (is0, is1),
                                                prop), out)
        out = np.where(finite, out, np.nan)
        return float(out) if scalar else out

    def _fallback(self, t, a, s, corners, t_idx, a_idx, s_idx, prop):
        """Nearest-corner, then Manhattan-closest corner, then NaN."""
        values, mask = self.grid.arrays(prop)
        axT, axA, axS = self._axes

        def nearest(axis, x, pair):
            i0, i1 = pair
            return np.where(np.abs(x - axis[i0]) <= np.abs(x - axis[i1]), i0, i1)

        tn = nearest(axT, t, t_idx)
        an = nearest(axA, a, a_idx)
        sn = nearest(axS, s, s_idx)
        near_present = mask[tn, an, sn]
        near_value = values[tn, an, sn]

        # Last resort: closest measured corner of the bracketing cube
        dist = np.stack([
            np.where(present,
                     np.abs(t - axT[ti]) + np.abs(a - axA[ai]) + np.abs(s - axS[si]),
                     np.inf)
            for ti, ai, si, present, _ in corners
        ])
        cube = np.stack([v for _, _, _, _, v in corners])
        best = np.argmin(dist, axis=0)
        best_dist = np.take_along_axis(dist, best[np.newaxis], axis=0)[0]
        best_value = np.take_along_axis(cube, best[np.newaxis], axis=0)[0]
        scanned = np.where(np.isfinite(best_dist), best_value, np.nan)

        return np.where(near_present, near_value, scanned)

    def predict_all(self, abm, sbm, t):
        """
        Every reported property at one composition and temperature.

        Values are rounded to the reporting precision; a property with no
        reachable data is reported as None rather than NaN.

        Returns
        -------
        dict
            Keys t_c, abv, sugar_wv, density, brix, nd.
        """
        out = {T_C: round(float(t), PRECISION[T_C])}
        for prop in (ABV, SUGAR_WV, DENSITY, BRIX, ND):
            v = self.interpolate(prop, t, abm, sbm)
            out[prop] = round(v, PRECISION[prop]) if math.isfinite(v) else None
        return out
