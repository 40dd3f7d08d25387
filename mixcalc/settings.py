"""
Solver tuning parameters.

SolverSettings gathers every weight, band and threshold the inversion
pipeline uses. An instance is passed to MixEngine at construction and is
read-only afterwards; use replace() to derive an alternate regime (tests
use this to relax the Monte Carlo deadline).

The band and margin values were tuned against the reference dataset.
They are defaults, not physical constants.

IMPORTANT: No unicode characters allowed (Windows charmap constraint).
"""

from types import MappingProxyType

from mixcalc.constants import ABV, BRIX, DENSITY, SUGAR_WV


# Effective measurement uncertainty used to normalize residuals
DEFAULT_SIGMA = {
    ABV: 0.05,        # %vol
    BRIX: 0.10,       # deg Bx
    DENSITY: 0.00025,  # g/mL
    SUGAR_WV: 1.0,    # g/L
}

# Floors for the diagnostics match band so edge compositions
# (e.g. Sugar_WV = 0) are not excluded by tight sigma weights
DEFAULT_RANGE_BAND_FLOOR = {
    ABV: 0.5,
    BRIX: 0.2,
    DENSITY: 0.001,
    SUGAR_WV: 10.0,
}

# Floors for the soft feasibility margin
DEFAULT_SOFT_MARGIN_FLOOR = {
    ABV: 0.15,
    BRIX: 0.15,
    DENSITY: 0.0015,
    SUGAR_WV: 2.5,
}

_MAPPING_FIELDS = ("sigma", "range_band_floor", "soft_margin_floor")

_DEFAULTS = {
    "sigma": DEFAULT_SIGMA,
    "range_band_floor": DEFAULT_RANGE_BAND_FLOOR,
    "soft_margin_floor": DEFAULT_SOFT_MARGIN_FLOOR,
    # Soft margin multiplier giving the hard (abort) margin
    "hard_factor": 2.0,
    # Coarse scan candidates kept for diagnostics and seeding
    "coarse_keep": 8,
    # Local refiner: initial half-width, stop tolerance, steps per axis
    "refine_box": 4.0,
    "refine_tol": 0.005,
    "refine_steps": 10,
    "refine_min_step": 0.02,
    # Edge solver ternary-search iterations
    "edge_iterations": 40,
    # Normalized error thresholds (sum of squared sigma units)
    "warn_norm": 25.0,   # ~5 sigma combined
    "fail_norm": 100.0,  # ~10 sigma combined
    # Monte Carlo uncertainty
    "mc_samples": 200,
    "mc_min_samples": 10,
    "mc_max_samples": 300,
    "mc_deadline": 2.0,   # seconds
    "mc_check_every": 10,
}


class SolverSettings:
    """
    Immutable bundle of solver weights, bands and limits.

    Parameters
    ----------
    **overrides
        Any key of the defaults table. Mapping fields (sigma,
        range_band_floor, soft_margin_floor) are merged over the
        defaults, so a partial mapping only changes the listed
        properties.

    Raises
    ------
    ValueError
        On an unknown field or an out-of-range value.
    """

    def __init__(self, **overrides):
        unknown = sorted(set(overrides) - set(_DEFAULTS))
        if unknown:
            raise ValueError(
                "Unknown solver setting(s): {}".format(", ".join(unknown)))

        values = {}
        for key, default in _DEFAULTS.items():
            if key in _MAPPING_FIELDS:
                merged = dict(default)
                merged.update(overrides.get(key) or {})
                values[key] = MappingProxyType(merged)
            else:
                values[key] = overrides.get(key, default)

        _check(values)
        for key, value in values.items():
            object.__setattr__(self, key, value)

    def __setattr__(self, name, value):
        raise AttributeError("SolverSettings is read-only")

    def __delattr__(self, name):
        raise AttributeError("SolverSettings is read-only")

    def __eq__(self, other):
        if not isinstance(other, SolverSettings):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    def __hash__(self):
        return hash(repr(sorted(self.to_dict().items())))

    def __repr__(self):
        return "SolverSettings({})".format(
            ", ".join("{}={!r}".format(k, v) for k, v in self.to_dict().items()))

    def replace(self, **changes):
        """Return a copy with the given fields changed."""
        current = self.to_dict()
        for key in _MAPPING_FIELDS:
            if key in changes:
                merged = dict(current[key])
                merged.update(changes.pop(key) or {})
                current[key] = merged
        current.update(changes)
        return SolverSettings(**current)

    def to_dict(self):
        """Plain-dict view (mappings copied)."""
        out = {}
        for key in _DEFAULTS:
            value = getattr(self, key)
            out[key] = dict(value) if key in _MAPPING_FIELDS else value
        return out

    def sigma_for(self, prop):
        """Residual normalization for a property (1.0 when unlisted)."""
        return float(self.sigma.get(prop, 1.0))

    def band_for(self, prop):
        """Diagnostics match band: larger of sigma and the range floor."""
        return max(self.sigma_for(prop),
                   float(self.range_band_floor.get(prop, 0.0)))

    def soft_margin(self, prop):
        """Soft feasibility margin for a property."""
        return max(self.band_for(prop),
                   float(self.soft_margin_floor.get(prop, 0.0)))

    def hard_margin(self, prop):
        """Hard feasibility margin: soft margin times hard_factor."""
        return self.hard_factor * self.soft_margin(prop)

    def clamp_samples(self, requested=None):
        """Clamp a requested Monte Carlo trial count into the allowed range."""
        n = self.mc_samples if requested is None else int(requested)
        return max(self.mc_min_samples, min(self.mc_max_samples, n))


def _check(values):
    for prop, v in values["sigma"].items():
        if not float(v) > 0:
            raise ValueError("sigma[{}] must be positive".format(prop))
    if values["refine_box"] <= 0 or values["refine_tol"] <= 0:
        raise ValueError("refine_box and refine_tol must be positive")
    if values["refine_steps"] < 1:
        raise ValueError("refine_steps must be >= 1")
    if values["refine_min_step"] <= 0:
        raise ValueError("refine_min_step must be positive")
    if values["coarse_keep"] < 1:
        raise ValueError("coarse_keep must be >= 1")
    if values["warn_norm"] > values["fail_norm"]:
        raise ValueError("warn_norm must not exceed fail_norm")
    if values["mc_min_samples"] > values["mc_max_samples"]:
        raise ValueError("mc_min_samples must not exceed mc_max_samples")
    if values["mc_check_every"] < 1:
        raise ValueError("mc_check_every must be >= 1")
