"""
Tests for the MixEngine solve pipeline.

Verifies:
  1. Pair inversions recover known compositions (forward then inverse).
  2. Direct composition mode is a pure forward calculation.
  3. Feasibility outcomes: hard gate, residual fail/warn thresholds.
  4. Edge solves and their validation.
  5. Coverage failures and temperature clamping.
  6. Uncertainty attached only on request.
"""

import random

import pytest

from mixcalc import engine as engine_module
from mixcalc.constants import T_C, ABV, BRIX, DENSITY, SUGAR_WV, ND
from mixcalc.engine import MixEngine, RESIDUAL_ERROR, RESIDUAL_WARNING
from mixcalc.grid import MixGrid
from mixcalc.request import normalize_payload
from mixcalc.results import Infeasible, InvalidRequest, NoCoverage, Solved
from mixcalc.settings import SolverSettings

PAIR_FIELDS = {
    ABV: ("abv", "abv_t"),
    BRIX: ("brix", "brix_t"),
    DENSITY: ("density", "density_t"),
    SUGAR_WV: ("sugar_wv", "sugar_wv_t"),
}


def _payload(mode, truth, a, s, temps, report_t=20.0, **extra):
    props = {
        "abv_brix": (ABV, BRIX),
        "abv_density": (ABV, DENSITY),
        "brix_density": (BRIX, DENSITY),
        "abv_sugarwv": (ABV, SUGAR_WV),
    }[mode]
    payload = {"mode": mode, "report_t": report_t}
    for prop, t in zip(props, temps):
        value_key, temp_key = PAIR_FIELDS[prop]
        payload[value_key] = truth(prop, t, a, s)
        payload[temp_key] = t
    payload.update(extra)
    return payload


# -----------------------------------------------------------------------
# Round trips
# -----------------------------------------------------------------------
class TestRoundTrip:

    @pytest.mark.parametrize("mode", ["abv_brix", "abv_density", "brix_density", "abv_sugarwv"])
    def test_every_pair_mode(self, engine, truth, mode):
        """Forward then inverse recovers the composition in every pair mode."""
        result = engine.solve(normalize_payload(
            _payload(mode, truth, 12.3, 17.8, (20.0, 20.0))))
        assert isinstance(result, Solved)
        assert result.ok
        assert result.abm == pytest.approx(12.3, abs=0.05)
        assert result.sbm == pytest.approx(17.8, abs=0.05)

    @pytest.mark.parametrize("a,s,temps", [
        (5.5, 44.4, (12.0, 27.0)),
        (38.2, 8.1, (30.0, 10.0)),
        (21.0, 30.0, (17.5, 22.5)),
    ])
    def test_mixed_temperatures(self, engine, truth, a, s, temps):
        """Each measurement may be taken at its own temperature."""
        result = engine.solve(normalize_payload(
            _payload("abv_density", truth, a, s, temps)))
        assert isinstance(result, Solved)
        assert result.abm == pytest.approx(a, abs=0.05)
        assert result.sbm == pytest.approx(s, abs=0.05)

    def test_default_bands_narrower_than_grid_step(self, grid, truth, settings):
        """
        The envelope only looks at table nodes. With the default ABV band
        of 0.5 on a 1 % ABM grid, a composition can fall between matched
        nodes and an exact measurement is hard-blocked. Band floors that
        span one grid step solve the same input.
        """
        payload = normalize_payload(
            _payload("abv_density", truth, 5.5, 44.4, (12.0, 27.0)))

        narrow = MixEngine(grid, settings=SolverSettings(), rng=random.Random(1))
        result = narrow.solve(payload)
        assert isinstance(result, Infeasible)
        assert result.ok
        assert result.outputs is None
        warning = result.diagnostics["warning"]
        assert "Density=" in warning
        assert "far outside feasible range" in warning

        wide = MixEngine(grid, settings=settings, rng=random.Random(1))
        result = wide.solve(payload)
        assert isinstance(result, Solved)
        assert result.abm == pytest.approx(5.5, abs=0.05)

    def test_outputs_at_report_temperature(self, engine, truth):
        """Outputs are evaluated at report_t, not at the measurement temperatures."""
        result = engine.solve(normalize_payload(
            _payload("abv_brix", truth, 10.0, 20.0, (20.0, 20.0), report_t=25.0)))
        out = result.outputs
        assert out[T_C] == 25.0
        assert out[DENSITY] == pytest.approx(truth(DENSITY, 25.0, 10.0, 20.0), abs=2e-4)
        assert out[ND] == pytest.approx(truth(ND, 25.0, 10.0, 20.0), abs=1e-4)

    def test_diagnostics_detail(self, engine, truth):
        """Pair solves expose residuals, candidates and both range entries."""
        result = engine.solve(normalize_payload(
            _payload("abv_brix", truth, 12.3, 17.8, (20.0, 20.0))))
        diag = result.diagnostics
        assert set(diag["best_error"]) == {ABV, BRIX}
        assert diag["best_norm_error"] < 25.0
        assert 1 <= len(diag["best_candidates"]) <= 8
        assert "range_for_abv_given_brix" in diag
        assert "range_for_brix_given_abv" in diag
        assert "warning" not in diag

    def test_inputs_echoed(self, engine, truth):
        """The inputs block echoes the measurement pairs as received."""
        result = engine.solve(normalize_payload(
            _payload("abv_brix", truth, 12.3, 17.8, (20.0, 15.0))))
        assert set(result.inputs) == {"abv", "abv_t", "brix", "brix_t"}
        assert result.inputs["brix_t"] == 15.0


# -----------------------------------------------------------------------
# Direct composition
# -----------------------------------------------------------------------
class TestDirectMode:

    def test_forward_only(self, engine, truth, monkeypatch):
        """Direct mode is a pure forward calculation, with no scan or refine."""
        def forbidden(*args, **kwargs):
            raise AssertionError("direct mode must not search")

        monkeypatch.setattr(engine_module, "coarse_scan", forbidden)
        monkeypatch.setattr(engine_module, "refine_around", forbidden)

        result = engine.solve(normalize_payload({"mode": "abm_sbm", "abm": 10, "sbm": 20}))
        assert isinstance(result, Solved)
        assert result.abm == 10.0 and result.sbm == 20.0
        assert result.outputs[ABV] == round(truth(ABV, 20, 10, 20), 3)
        assert result.outputs[SUGAR_WV] == round(truth(SUGAR_WV, 20, 10, 20), 1)
        assert result.diagnostics["note"] == "Direct forward calculation (no inversion)."

    def test_missing_composition(self, engine):
        """Direct mode needs both abm and sbm."""
        result = engine.solve(normalize_payload({"mode": "abm_sbm", "abm": 10}))
        assert isinstance(result, InvalidRequest)
        assert result.error == "Missing required inputs"
        assert result.missing == ["sbm"]

    def test_composition_uncertainty(self, engine):
        """Only the composition fields with a sigma are perturbed."""
        result = engine.solve(normalize_payload({
            "mode": "abm_sbm", "abm": 10, "sbm": 20,
            "sigma": {"ABM": 0.5}, "unc_samples": 20,
        }))
        unc = result.uncertainty
        assert unc["abm"] > 0.0
        assert unc["sbm"] == 0.0
        assert unc["outputs"][ABV] > 0.0
        assert unc["samples"]["count"] == 20


# -----------------------------------------------------------------------
# Feasibility
# -----------------------------------------------------------------------
class TestFeasibility:

    def test_hard_gate(self, engine, monkeypatch):
        """The hard gate returns before any search is attempted."""
        def forbidden(*args, **kwargs):
            raise AssertionError("hard gate must skip the search")

        monkeypatch.setattr(engine_module, "coarse_scan", forbidden)
        result = engine.solve(normalize_payload({
            "mode": "abv_brix", "abv": 40, "abv_t": 20, "brix": 80, "brix_t": 20,
        }))
        assert isinstance(result, Infeasible)
        assert result.ok is True
        assert result.outputs is None
        assert result.diagnostics["warning"]
        assert "range_for_brix_given_abv" in result.diagnostics
        record = result.to_dict()
        assert record["outputs"] is None and record["error"] is None

    def test_residual_failure(self, grid, settings):
        """A best fit at or above the fail norm is reported as not ok."""
        engine = MixEngine(grid, settings=settings.replace(hard_factor=1000.0))
        result = engine.solve(normalize_payload({
            "mode": "abv_brix", "abv": 40, "abv_t": 20, "brix": 80, "brix_t": 20,
        }))
        assert isinstance(result, Infeasible)
        assert result.ok is False
        assert result.error == RESIDUAL_ERROR
        assert result.outputs is None
        assert result.diagnostics["best_norm_error"] >= 100.0

    def test_residual_warning(self, grid, truth, settings):
        """The residual warning comes first in the joined warning text."""
        engine = MixEngine(grid, settings=settings.replace(warn_norm=0.0))
        result = engine.solve(normalize_payload(
            _payload("abv_brix", truth, 12.3, 17.8, (20.0, 20.0))))
        assert isinstance(result, Solved)
        assert result.diagnostics["warning"].startswith(RESIDUAL_WARNING)

    def test_soft_warning_still_solves(self, engine, truth, monkeypatch):
        """Soft range warnings are carried on a solved result."""
        real = engine_module.check_feasibility

        def with_soft_warning(*args):
            report = real(*args)
            report.warnings.append("BrixATC=22.72 @ 20.0 C is just outside feasible range")
            return report

        monkeypatch.setattr(engine_module, "check_feasibility", with_soft_warning)
        result = engine.solve(normalize_payload(
            _payload("abv_brix", truth, 12.3, 17.8, (20.0, 20.0))))
        assert isinstance(result, Solved)
        assert "just outside feasible range" in result.diagnostics["warning"]
        assert result.outputs is not None


# -----------------------------------------------------------------------
# Edge solves
# -----------------------------------------------------------------------
class TestEdge:

    def test_sugar_only_on_alcohol_free_edge(self, engine):
        """A single sugar pair with ABM=0 is solved on the edge."""
        result = engine.solve(normalize_payload({
            "mode": "abv_sugarwv", "sugar_wv": 400, "sugar_wv_t": 20,
            "alcohol_zero": True,
        }))
        assert isinstance(result, Solved)
        assert result.mode == "edge"
        assert result.abm == 0.0
        assert result.sbm == pytest.approx(40.0, abs=1e-3)
        assert result.outputs[ABV] == 0.0
        assert result.diagnostics["note"].startswith("Single-input edge solve with ABM=0")

    def test_underdetermined(self, engine):
        """ABV alone cannot locate a point on the ABM=0 edge."""
        result = engine.solve(normalize_payload({
            "mode": "abv_brix", "abv": 10, "abv_t": 20, "alcohol_zero": True,
        }))
        assert isinstance(result, InvalidRequest)
        assert result.ok is False
        assert "underdetermined" in result.error

    def test_both_pairs_with_flag_runs_pair_inversion(self, engine, truth):
        """With both pairs complete the edge flag does not restrict the solve."""
        payload = _payload("abv_brix", truth, 12.3, 17.8, (20.0, 20.0), sugar_zero=True)
        result = engine.solve(normalize_payload(payload))
        assert result.mode == "abv_brix"
        assert result.abm == pytest.approx(12.3, abs=0.05)

    def test_edge_no_coverage(self, rows):
        """Edge solves without data report the edge coverage message."""
        for row in rows:
            row[SUGAR_WV] = None
        engine = MixEngine(MixGrid(rows))
        result = engine.solve(normalize_payload({
            "mode": "abv_sugarwv", "sugar_wv": 400, "sugar_wv_t": 20,
            "alcohol_zero": True,
        }))
        assert isinstance(result, NoCoverage)
        assert result.error == "No coverage on edge for this temperature/property."


# -----------------------------------------------------------------------
# Coverage and clamping
# -----------------------------------------------------------------------
class TestCoverage:

    def test_out_of_range_temperature_is_clamped(self, engine, truth):
        """Temperatures past the table are clamped and still solve."""
        payload = _payload("abv_brix", truth, 12.3, 17.8, (30.0, 30.0))
        payload["abv_t"] = 45.0
        payload["brix_t"] = 45.0
        result = engine.solve(normalize_payload(payload))
        assert isinstance(result, Solved)
        assert result.inputs["abv_t"] == 30.0
        assert result.abm == pytest.approx(12.3, abs=0.05)

    def test_empty_table(self):
        """Only an empty table yields the coverage error."""
        engine = MixEngine(MixGrid([]))
        result = engine.solve(normalize_payload({
            "mode": "abv_brix", "abv": 10, "abv_t": 20, "brix": 20, "brix_t": 20,
        }))
        assert isinstance(result, NoCoverage)
        assert result.ok is False
        assert result.outputs is None
        assert result.error == "Model has no coverage for these inputs at the given temperatures."

    def test_property_without_data(self, rows):
        """A property with no measured cells has no coverage."""
        for row in rows:
            row[BRIX] = None
        engine = MixEngine(MixGrid(rows))
        result = engine.solve(normalize_payload({
            "mode": "abv_brix", "abv": 10, "abv_t": 20, "brix": 20, "brix_t": 20,
        }))
        assert isinstance(result, NoCoverage)


# -----------------------------------------------------------------------
# Uncertainty wiring
# -----------------------------------------------------------------------
class TestUncertaintyWiring:

    def test_absent_without_sigma(self, engine, truth):
        """No sigma maps means no uncertainty block."""
        result = engine.solve(normalize_payload(
            _payload("abv_brix", truth, 12.3, 17.8, (20.0, 20.0))))
        assert result.uncertainty is None

    def test_propagate_false_skips(self, engine, truth):
        """propagate=False suppresses Monte Carlo even with sigma present."""
        payload = _payload("brix_density", truth, 10.0, 20.0, (20.0, 20.0),
                           sigma={"Density": 0.0005})
        result = engine.solve(normalize_payload(payload), propagate=False)
        assert result.uncertainty is None

    def test_pair_uncertainty_reproducible(self, grid, truth, settings):
        """The same seed gives identical deviations."""
        payload = _payload("brix_density", truth, 10.0, 20.0, (20.0, 20.0),
                           sigma={"Density": 0.0005}, unc_samples=15)
        a = MixEngine(grid, settings=settings, rng=random.Random(7)).solve(normalize_payload(payload))
        b = MixEngine(grid, settings=settings, rng=random.Random(7)).solve(normalize_payload(payload))
        assert a.uncertainty["abm"] == b.uncertainty["abm"]
        assert a.uncertainty["outputs"] == b.uncertainty["outputs"]
