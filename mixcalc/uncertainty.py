"""
Monte Carlo uncertainty propagation.

Each trial perturbs the request's measured values and temperatures by
independent normal draws scaled by the caller's sigma maps, re-runs the
whole solve with propagation disabled, and records the composition and
outputs of successful trials:

    x_i = x + sigma_x * N(0, 1)          (Box-Muller)
    sd  = sqrt(sum (y_i - mean)^2 / (n - 1)),  undefined for n < 2

The trial count is clamped to the configured range and the run stops
early once the wall-clock deadline passes (checked every few trials).
Failed trials are dropped, never retried.

IMPORTANT: No unicode characters allowed (Windows charmap constraint).
"""

import logging
import math
import random
import time

import numpy as np

from mixcalc.constants import ABM, SBM, ABV, SUGAR_WV, DENSITY, BRIX, ND
from mixcalc.results import Solved

log = logging.getLogger(__name__)

OUTPUT_PROPERTIES = (ABV, SUGAR_WV, DENSITY, BRIX, ND)


def randn(rng):
    """Standard normal draw from two uniforms (Box-Muller)."""
    u = 0.0
    while u == 0.0:
        u = rng.random()
    v = 0.0
    while v == 0.0:
        v = rng.random()
    return math.sqrt(-2.0 * math.log(u)) * math.cos(2.0 * math.pi * v)


def sample_stddev(values):
    """Bessel-corrected standard deviation, or None for fewer than 2 values."""
    if len(values) < 2:
        return None
    return float(np.std(np.asarray(values, dtype=float), ddof=1))


class UncertaintyReport:
    """
    Standard deviations of composition and outputs across trials.

    Attributes
    ----------
    abm, sbm : float or None
    outputs : dict
        Property -> standard deviation (None below two samples).
    count : int
        Successful trials.
    total : int
        Attempted trials.
    requested : int
        Trial count after clamping.
    elapsed : float
        Seconds.
    """

    def __init__(self, abm, sbm, outputs, count, total, requested, elapsed):
        self.abm = abm
        self.sbm = sbm
        self.outputs = outputs
        self.count = count
        self.total = total
        self.requested = requested
        self.elapsed = elapsed

    def to_dict(self):
        return {
            "abm": self.abm,
            "sbm": self.sbm,
            "outputs": dict(self.outputs),
            "samples": {
                "count": self.count,
                "total": self.total,
                "requested": self.requested,
                "time_s": round(self.elapsed, 3),
            },
        }


class MonteCarloPropagator:
    """
    Repeated perturbed solves.

    Parameters
    ----------
    settings : SolverSettings
        Trial limits and deadline.
    rng : random.Random, optional
        Uniform source; pass a seeded instance for reproducible runs.
    clock : callable, optional
        Returns seconds; defaults to time.monotonic.
    """

    def __init__(self, settings, rng=None, clock=None):
        self.settings = settings
        self.rng = rng if rng is not None else random.Random()
        self.clock = clock if clock is not None else time.monotonic

    def _jitter(self, value, sigma):
        if value is None or sigma is None or sigma <= 0:
            return value
        return value + randn(self.rng) * sigma

    def perturb(self, request):
        """One perturbed copy of the request."""
        measurements = []
        for m in request.measurements:
            measurements.append(m.replace(
                value=self._jitter(m.value, request.sigma.get(m.prop)),
                temperature=self._jitter(m.temperature, request.sigma_t.get(m.prop)),
            ))
        changes = {"measurements": measurements}
        if request.is_direct:
            changes[ABM] = self._jitter(request.abm, request.sigma.get(ABM))
            changes[SBM] = self._jitter(request.sbm, request.sigma.get(SBM))
        return request.replace(**changes)

    def propagate(self, request, solve):
        """
        Run the Monte Carlo trials.

        Parameters
        ----------
        request : SolveRequest
            The unperturbed request.
        solve : callable
            solve(request, propagate=False) -> SolveResult.

        Returns
        -------
        UncertaintyReport
        """
        settings = self.settings
        requested = settings.clamp_samples(request.unc_samples)
        collected = {key: [] for key in (ABM, SBM) + OUTPUT_PROPERTIES}
        start = self.clock()
        attempted = 0

        for i in range(requested):
            if i % settings.mc_check_every == 0 and self.clock() - start > settings.mc_deadline:
                log.debug("Monte Carlo deadline reached after %d trials", i)
                break
            attempted += 1
            result = solve(self.perturb(request), propagate=False)
            if not isinstance(result, Solved):
                continue
            if result.abm is not None:
                collected[ABM].append(result.abm)
            if result.sbm is not None:
                collected[SBM].append(result.sbm)
            for prop in OUTPUT_PROPERTIES:
                value = (result.outputs or {}).get(prop)
                if value is not None:
                    collected[prop].append(value)

        elapsed = self.clock() - start
        log.debug("Monte Carlo: %d/%d trials succeeded in %.3fs",
                  len(collected[ABM]), attempted, elapsed)
        return UncertaintyReport(
            abm=sample_stddev(collected[ABM]),
            sbm=sample_stddev(collected[SBM]),
            outputs={p: sample_stddev(collected[p]) for p in OUTPUT_PROPERTIES},
            count=len(collected[ABM]),
            total=attempted,
            requested=requested,
            elapsed=elapsed,
        )
