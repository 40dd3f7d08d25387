"""
Solve requests: normalization of raw payloads and request validation.

A raw payload (JSON object or form fields) is flattened to lower-case
keys, aliases are resolved, numbers are parsed with locale tolerance
and only the measurement pairs belonging to the selected mode are
kept. The result is a SolveRequest, which the engine consumes.

Classes:
    Measurement  - One (property, value, temperature) triple
    SolveRequest - Normalized request for MixEngine.solve()

Functions:
    parse_number      - Locale-tolerant number parsing
    normalize_payload - Raw mapping -> SolveRequest
    validate_request  - SolveRequest -> InvalidRequest or None

IMPORTANT: No unicode characters allowed (Windows charmap constraint).
"""

import math
import re
from collections.abc import Mapping

from mixcalc.constants import (
    ABM, SBM, ABV, BRIX, DENSITY, SUGAR_WV, MEASURABLE, MODE_PAIRS, MODES,
    DIRECT_MODE, DEFAULT_REPORT_T, LABELS,
)
from mixcalc.results import InvalidRequest


# =============================================================================
# KEY ALIASES
# =============================================================================

VALUE_KEYS = {
    ABV: ("abv",),
    BRIX: ("brixatc", "brix_atc", "brix"),
    DENSITY: ("density", "rho"),
    SUGAR_WV: ("sugar_wv", "sugarwv", "sugar_gpl", "sugar"),
}

TEMPERATURE_KEYS = {
    ABV: ("abv_t", "t_abv", "abv_temp"),
    BRIX: ("brixatc_t", "brix_t", "t_brix", "brix_temp", "brixatc_temp"),
    DENSITY: ("density_t", "t_density", "rho_t", "density_temp"),
    SUGAR_WV: ("sugar_wv_t", "sugarwv_t", "t_sugar_wv", "sugar_temp"),
}

COMPOSITION_KEYS = {
    ABM: ("abm", "alc_mass", "alcohol_by_mass"),
    SBM: ("sbm", "sugar_mass", "sugar_by_mass"),
}

REPORT_T_KEYS = ("report_t", "report_temp", "t_report")

# Sigma map keys (case-insensitive) -> canonical names
_SIGMA_KEYS = {}
for _prop, _keys in list(VALUE_KEYS.items()) + list(COMPOSITION_KEYS.items()):
    for _key in _keys:
        _SIGMA_KEYS[_key] = _prop

# 1.234,56 style: dot thousands separators, comma decimal
_EURO_NUMBER = re.compile(r"^\d{1,3}(\.\d{3})*,\d+$")
_PLAIN_NUMBER = re.compile(r"^[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?$")

_FALSE_WORDS = ("", "0", "false", "no", "off")


# =============================================================================
# PARSING HELPERS
# =============================================================================

def parse_number(raw):
    """
    Parse a user-supplied number, or return None.

    Accepts ints/floats and strings such as "12.5", "12,5", "1.234,56"
    and "1,234.5". Spaces and non-breaking spaces are ignored. Empty,
    non-numeric and non-finite values return None.
    """
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, (int, float)):
        value = float(raw)
        return value if math.isfinite(value) else None
    if not isinstance(raw, str):
        return None

    text = raw.strip().replace("\u00a0", "").replace(" ", "")
    if not text:
        return None
    if _EURO_NUMBER.match(text):
        text = text.replace(".", "").replace(",", ".")
    else:
        if text.count(",") == 1 and "." not in text:
            text = text.replace(",", ".")
        if "," in text and "." in text:
            text = text.replace(",", "")
    if not _PLAIN_NUMBER.match(text):
        return None
    value = float(text)
    return value if math.isfinite(value) else None


def _flag(raw):
    if isinstance(raw, str):
        return raw.strip().lower() not in _FALSE_WORDS
    return bool(raw)


def _pick(flat, keys):
    """Value of the first alias present in the payload (None if none are)."""
    for key in keys:
        if key in flat:
            return flat[key]
    return None


def normalize_mode(raw):
    """'ABV-Brix' / 'abv brix' -> 'abv_brix'; None for non-strings."""
    if not isinstance(raw, str):
        return None
    return raw.strip().lower().replace("-", "_").replace(" ", "_")


def normalize_sigma(raw, temperatures=False):
    """
    Canonicalize a sigma map.

    Keys are matched case-insensitively against the property aliases
    (ABV, BrixATC, Density, Sugar_WV, and ABM/SBM for value maps).
    Temperature maps also accept a trailing '_T' (e.g. 'Density_T').
    Unknown keys and non-numeric values are dropped.
    """
    if not isinstance(raw, Mapping):
        return {}
    out = {}
    for key, value in raw.items():
        name = str(key).strip().lower()
        if temperatures and name.endswith("_t"):
            name = name[:-2]
        prop = _SIGMA_KEYS.get(name)
        if prop is None or (temperatures and prop not in MEASURABLE):
            continue
        number = parse_number(value)
        if number is not None:
            out[prop] = number
    return out


# =============================================================================
# REQUEST TYPES
# =============================================================================

class Measurement:
    """
    One measured property.

    value and temperature may be None while a request is still being
    validated; the solver only ever sees complete measurements.
    """

    def __init__(self, prop, value=None, temperature=None):
        self.prop = prop
        self.value = value
        self.temperature = temperature

    @property
    def complete(self):
        return self.value is not None and self.temperature is not None

    @property
    def value_key(self):
        return self.prop

    @property
    def temperature_key(self):
        return self.prop + "_t"

    def missing_fields(self):
        missing = []
        if self.value is None:
            missing.append(self.value_key)
        if self.temperature is None:
            missing.append(self.temperature_key)
        return missing

    def replace(self, value=None, temperature=None):
        return Measurement(
            self.prop,
            self.value if value is None else value,
            self.temperature if temperature is None else temperature,
        )

    def label(self):
        return LABELS.get(self.prop, self.prop)

    def __repr__(self):
        return "Measurement({!r}, {!r}, {!r})".format(
            self.prop, self.value, self.temperature)


class SolveRequest:
    """
    Normalized solve request.

    Parameters
    ----------
    mode : str
        One of mixcalc.constants.MODES (validated later).
    measurements : sequence of Measurement
        The mode's two properties in mode order. Absent for abm_sbm.
    report_t : float
        Report temperature in deg C.
    abm, sbm : float or None
        Composition for the direct abm_sbm mode.
    alcohol_zero, sugar_zero : bool
        Edge flags pinning ABM or SBM to 0 (mutually exclusive).
    sigma, sigma_t : dict
        Monte Carlo perturbation widths, keyed by canonical property.
    unc_samples : int or None
        Requested Monte Carlo trial count.
    """

    def __init__(self, mode, measurements=(), report_t=DEFAULT_REPORT_T,
                 abm=None, sbm=None, alcohol_zero=False, sugar_zero=False,
                 sigma=None, sigma_t=None, unc_samples=None):
        self.mode = mode
        self.measurements = tuple(measurements)
        self.report_t = DEFAULT_REPORT_T if report_t is None else float(report_t)
        self.abm = abm
        self.sbm = sbm
        self.alcohol_zero = bool(alcohol_zero)
        self.sugar_zero = bool(sugar_zero)
        self.sigma = dict(sigma or {})
        self.sigma_t = dict(sigma_t or {})
        self.unc_samples = unc_samples

    @property
    def wants_uncertainty(self):
        return bool(self.sigma) or bool(self.sigma_t)

    @property
    def is_direct(self):
        return self.mode == DIRECT_MODE

    @property
    def edge_requested(self):
        return self.alcohol_zero or self.sugar_zero

    def complete_measurements(self):
        return [m for m in self.measurements if m.complete]

    def measurement(self, prop):
        for m in self.measurements:
            if m.prop == prop:
                return m
        return None

    def replace(self, **changes):
        """Return a copy with the given attributes changed."""
        fields = {
            "mode": self.mode,
            "measurements": self.measurements,
            "report_t": self.report_t,
            "abm": self.abm,
            "sbm": self.sbm,
            "alcohol_zero": self.alcohol_zero,
            "sugar_zero": self.sugar_zero,
            "sigma": self.sigma,
            "sigma_t": self.sigma_t,
            "unc_samples": self.unc_samples,
        }
        fields.update(changes)
        return SolveRequest(**fields)

    def echo(self):
        """Inputs echoed back in the output record."""
        if self.is_direct:
            return {ABM: self.abm, SBM: self.sbm, "report_t": self.report_t}
        out = {}
        for m in self.complete_measurements():
            out[m.value_key] = m.value
            out[m.temperature_key] = m.temperature
        return out

    def __repr__(self):
        return "SolveRequest(mode={!r}, measurements={!r}, report_t={!r})".format(
            self.mode, self.measurements, self.report_t)


# =============================================================================
# NORMALIZATION + VALIDATION
# =============================================================================

def normalize_payload(payload):
    """
    Build a SolveRequest from a raw request mapping.

    Parameters
    ----------
    payload : Mapping
        Decoded JSON body or form fields.

    Returns
    -------
    SolveRequest

    Raises
    ------
    ValueError
        If payload is not a mapping.
    """
    if not isinstance(payload, Mapping):
        raise ValueError("Request body must be a JSON object")

    flat = {str(k).strip().lower(): v for k, v in payload.items()}
    mode = normalize_mode(flat.get("mode"))

    measurements = [
        Measurement(
            prop,
            parse_number(_pick(flat, VALUE_KEYS[prop])),
            parse_number(_pick(flat, TEMPERATURE_KEYS[prop])),
        )
        for prop in MODE_PAIRS.get(mode, ())
    ]

    samples = parse_number(flat.get("unc_samples"))

    return SolveRequest(
        mode=mode,
        measurements=measurements,
        report_t=parse_number(_pick(flat, REPORT_T_KEYS)),
        abm=parse_number(_pick(flat, COMPOSITION_KEYS[ABM])),
        sbm=parse_number(_pick(flat, COMPOSITION_KEYS[SBM])),
        alcohol_zero=_flag(flat.get("alcohol_zero")) or _flag(flat.get("assume_abv_zero")),
        sugar_zero=_flag(flat.get("sugar_zero")) or _flag(flat.get("assume_sugar_zero")),
        sigma=normalize_sigma(flat.get("sigma")),
        sigma_t=normalize_sigma(flat.get("sigma_t"), temperatures=True),
        unc_samples=None if samples is None else int(samples),
    )


def underdetermined_reason(prop, alcohol_zero):
    """
    Error message for an edge solve that cannot be determined, or None.

    ABV is identically 0 on the ABM = 0 edge, and Sugar_WV is identically
    0 on the SBM = 0 edge, so neither alone can locate a point there.
    """
    if alcohol_zero and prop == ABV:
        return ("ABM=0 with only ABV@T is underdetermined. "
                "Add Brix, Density, or Sugar_WV.")
    if not alcohol_zero and prop == SUGAR_WV:
        return ("SBM=0 with only Sugar_WV@T is underdetermined. "
                "Add ABV, Brix, or Density.")
    return None


def validate_request(request):
    """
    Check a request before any computation.

    Returns
    -------
    InvalidRequest or None
        None when the request can be solved.
    """
    mode = request.mode
    if mode not in MODES:
        return InvalidRequest(
            mode=mode, where="validate_mode",
            error="Valid modes: {}".format(", ".join(MODES)))

    if request.alcohol_zero and request.sugar_zero:
        return InvalidRequest(
            mode=mode, where="validate_flags",
            error="Choose only one: ABM=0 or SBM=0")

    if request.is_direct:
        missing = [k for k, v in ((ABM, request.abm), (SBM, request.sbm)) if v is None]
        if missing:
            return InvalidRequest(
                mode=mode, where="validate_inputs",
                error="Missing required inputs", missing=missing)
        return None

    complete = request.complete_measurements()

    if not request.edge_requested:
        if len(complete) < len(request.measurements):
            missing = []
            for m in request.measurements:
                missing.extend(m.missing_fields())
            return InvalidRequest(
                mode=mode, where="validate_inputs",
                error="Need value + temperature for this mode", missing=missing)
        return None

    # Edge flags: a single complete pair is enough
    if not complete:
        missing = []
        for m in request.measurements:
            if m.value is not None or m.temperature is not None:
                missing.extend(m.missing_fields())
        if not missing:
            for m in request.measurements:
                missing.extend(m.missing_fields())
        return InvalidRequest(
            mode=mode, where="validate_edge_inputs",
            error=("On ABM=0 or SBM=0 you must supply at least one complete "
                   "measurement pair (value + temperature) for this mode."),
            missing=missing)

    if len(complete) == 1:
        reason = underdetermined_reason(complete[0].prop, request.alcohol_zero)
        if reason is not None:
            return InvalidRequest(
                mode=mode, where="validate_edge_inputs", error=reason,
                missing=[])
    return None
