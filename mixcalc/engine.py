"""
MixEngine: the solve pipeline.

    request -> validation -> mode selection
      pair mode:  feasibility gate -> coarse scan -> local refine
                  -> quality thresholds -> outputs at report_t
      abm_sbm:    outputs at report_t (no scan, no refine)
      edge:       single-measurement edge solve -> outputs at report_t
    -> optional Monte Carlo uncertainty (successful results only)

solve() never raises for expected outcomes; it returns one of the
tagged results in mixcalc.results.

IMPORTANT: No unicode characters allowed (Windows charmap constraint).
"""

import logging

from mixcalc.constants import (
    EDGE_MODE, DEFAULT_REPORT_T, COMPOSITION_PRECISION, LABELS, fmt_t,
)
from mixcalc.diagnostics import check_feasibility, finite_or_none
from mixcalc.edge import solve_edge, NO_EDGE_COVERAGE
from mixcalc.interp import TrilinearInterpolator
from mixcalc.objective import PairObjective
from mixcalc.refine import refine_around
from mixcalc.request import validate_request
from mixcalc.results import Solved, Infeasible, NoCoverage
from mixcalc.scan import coarse_scan
from mixcalc.settings import SolverSettings
from mixcalc.table import load_grid
from mixcalc.uncertainty import MonteCarloPropagator

log = logging.getLogger(__name__)

DIRECT_NOTE = "Direct forward calculation (no inversion)."
RESIDUAL_WARNING = "Inputs are difficult to reconcile; returning closest-fit solution."
RESIDUAL_ERROR = "Inputs cannot be reconciled within model tolerances."


def _composition(value):
    return round(float(value), COMPOSITION_PRECISION)


class MixEngine:
    """
    Inversion engine bound to one measurement grid.

    Parameters
    ----------
    grid : MixGrid
        Immutable measurement grid; may be shared between engines.
    settings : SolverSettings, optional
        Weights, bands and limits; defaults to SolverSettings().
    rng : random.Random, optional
        Uniform source for the Monte Carlo propagator.
    clock : callable, optional
        Time source for the Monte Carlo deadline.
    """

    def __init__(self, grid, settings=None, rng=None, clock=None):
        self.grid = grid
        self.settings = settings if settings is not None else SolverSettings()
        self.interpolator = TrilinearInterpolator(grid)
        self.propagator = MonteCarloPropagator(self.settings, rng=rng, clock=clock)

    @classmethod
    def from_csv(cls, path, **kwargs):
        return cls(load_grid(path), **kwargs)

    # =========================================================================
    # PUBLIC API
    # =========================================================================

    def forward(self, abm, sbm, report_t=DEFAULT_REPORT_T):
        """Every reported property at a known composition."""
        return self.interpolator.predict_all(abm, sbm, report_t)

    def solve(self, request, propagate=True):
        """
        Solve one request.

        Parameters
        ----------
        request : SolveRequest
        propagate : bool
            Run Monte Carlo uncertainty when the request carries sigma
            maps. The propagator itself calls solve() with False.

        Returns
        -------
        SolveResult
            Solved, Infeasible, NoCoverage or InvalidRequest.
        """
        invalid = validate_request(request)
        if invalid is not None:
            log.debug("Rejected request (%s): %s", invalid.where, invalid.error)
            return invalid

        if self.grid.is_empty:
            log.info("Solve requested against an empty measurement grid")
            return NoCoverage(mode=request.mode, inputs=request.echo(),
                              report_t=request.report_t)

        clamped = self._clamp_temperatures(request)
        complete = clamped.complete_measurements()

        if request.is_direct:
            result = self._solve_direct(clamped)
        elif request.edge_requested and len(complete) == 1:
            result = self._solve_edge(clamped, complete[0])
        else:
            result = self._solve_pair(clamped)

        if propagate and request.wants_uncertainty and isinstance(result, Solved):
            report = self.propagator.propagate(request, self.solve)
            result.uncertainty = report.to_dict()
        return result

    # =========================================================================
    # MODES
    # =========================================================================

    def _clamp_temperatures(self, request):
        t_min, t_max = self.interpolator.temperature_bounds()
        measurements = [
            m if m.temperature is None else
            m.replace(temperature=min(max(m.temperature, t_min), t_max))
            for m in request.measurements
        ]
        return request.replace(measurements=measurements)

    def _solve_direct(self, request):
        log.debug("Direct forward calculation at ABM=%s SBM=%s",
                  request.abm, request.sbm)
        return Solved(
            mode=request.mode,
            inputs=request.echo(),
            abm=_composition(request.abm),
            sbm=_composition(request.sbm),
            report_t=request.report_t,
            outputs=self.forward(request.abm, request.sbm, request.report_t),
            diagnostics={"note": DIRECT_NOTE},
        )

    def _solve_edge(self, request, measurement):
        edge_label = "ABM=0" if request.alcohol_zero else "SBM=0"
        inputs = {
            measurement.value_key: measurement.value,
            measurement.temperature_key: measurement.temperature,
        }
        solution = solve_edge(self.interpolator, measurement,
                              request.alcohol_zero, self.settings)
        if solution is None:
            return NoCoverage(mode=EDGE_MODE, inputs=inputs,
                              report_t=request.report_t, error=NO_EDGE_COVERAGE)

        note = "Single-input edge solve with {} using {} @ {}".format(
            edge_label, LABELS[measurement.prop], fmt_t(measurement.temperature))
        return Solved(
            mode=EDGE_MODE,
            inputs=inputs,
            abm=_composition(solution.abm),
            sbm=_composition(solution.sbm),
            report_t=request.report_t,
            outputs=self.forward(solution.abm, solution.sbm, request.report_t),
            diagnostics={
                "note": note,
                "best_norm_error": finite_or_none(solution.norm_err),
            },
        )

    def _solve_pair(self, request):
        first, second = request.measurements
        inputs = request.echo()
        settings = self.settings

        feasibility = check_feasibility(self.interpolator, first, second, settings)
        if feasibility.hard_block:
            return Infeasible(mode=request.mode, inputs=inputs,
                              report_t=request.report_t,
                              diagnostics=feasibility.to_dict())

        objective = PairObjective(self.interpolator, first, second, settings)
        candidates = coarse_scan(objective, self.grid, keep=settings.coarse_keep)
        if not candidates:
            log.info("No coverage for %s at %s / %s", request.mode,
                     first.temperature, second.temperature)
            return NoCoverage(mode=request.mode, inputs=inputs,
                              report_t=request.report_t,
                              diagnostics=feasibility.to_dict())

        seed = candidates[0]
        refined = refine_around(objective, seed.abm, seed.sbm,
                                self.interpolator.composition_bounds, settings)
        log.debug("%s: seed (%.2f, %.2f) -> refined (%.4f, %.4f) norm=%.4g in %d passes",
                  request.mode, seed.abm, seed.sbm, refined.abm, refined.sbm,
                  refined.norm_err, refined.passes)

        diagnostics = {
            "best_error": {k: finite_or_none(v) for k, v in refined.residuals.items()},
            "best_norm_error": finite_or_none(refined.norm_err),
            "best_candidates": [c.to_dict() for c in candidates],
        }
        diagnostics.update(feasibility.ranges)

        if not refined.converged:
            return NoCoverage(mode=request.mode, inputs=inputs,
                              report_t=request.report_t, diagnostics=diagnostics)

        abm = _composition(refined.abm)
        sbm = _composition(refined.sbm)

        warnings = list(feasibility.warnings)
        if refined.norm_err >= settings.fail_norm:
            log.info("%s: best fit norm %.4g exceeds fail threshold",
                     request.mode, refined.norm_err)
            if warnings:
                diagnostics["warning"] = " ".join(warnings)
            return Infeasible(mode=request.mode, inputs=inputs, abm=abm, sbm=sbm,
                              report_t=request.report_t, diagnostics=diagnostics,
                              error=RESIDUAL_ERROR)
        if refined.norm_err >= settings.warn_norm:
            warnings.insert(0, RESIDUAL_WARNING)
        if warnings:
            diagnostics["warning"] = " ".join(warnings)

        return Solved(
            mode=request.mode,
            inputs=inputs,
            abm=abm,
            sbm=sbm,
            report_t=request.report_t,
            outputs=self.forward(refined.abm, refined.sbm, request.report_t),
            diagnostics=diagnostics,
        )
