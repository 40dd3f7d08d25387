"""
Property names, modes and reporting constants for MIXCALC.

The measurement table is keyed by temperature (deg C), alcohol-by-mass
(ABM, % w/w) and sugar-by-mass (SBM, % w/w). Every other quantity is a
derived property looked up or interpolated from that table.

IMPORTANT: No unicode characters allowed in this file (Windows charmap constraint).
"""

# Table key dimensions
T_C = "t_c"
ABM = "abm"
SBM = "sbm"
DIMENSIONS = (T_C, ABM, SBM)

# Derived properties (table columns)
ABV = "abv"            # alcohol by volume, %vol
SUGAR_WV = "sugar_wv"  # dissolved sugar, g/L
ND = "nd"              # refractive index
DENSITY = "density"    # g/mL
BRIX = "brix"          # refractometer Brix (ATC), deg Bx
PROPERTIES = (ABV, SUGAR_WV, ND, DENSITY, BRIX)

# Properties a caller may supply as a measurement
MEASURABLE = (ABV, BRIX, DENSITY, SUGAR_WV)

# "Not measured" marker used by the source table
SENTINEL = 9999.0

# Solve modes: two-property inversions, then direct composition
MODE_PAIRS = {
    "abv_brix": (ABV, BRIX),
    "abv_density": (ABV, DENSITY),
    "brix_density": (BRIX, DENSITY),
    "abv_sugarwv": (ABV, SUGAR_WV),
}
DIRECT_MODE = "abm_sbm"
EDGE_MODE = "edge"
MODES = tuple(MODE_PAIRS) + (DIRECT_MODE,)

DEFAULT_REPORT_T = 20.0

# Reporting contract: decimals per output property
PRECISION = {
    T_C: 2,
    ABV: 3,
    SUGAR_WV: 1,
    DENSITY: 5,
    BRIX: 2,
    ND: 5,
}

# Decimals used for feasible-range bounds in diagnostics
RANGE_PRECISION = {
    ABV: 1,
    SUGAR_WV: 1,
    DENSITY: 5,
    BRIX: 2,
    ND: 5,
}

# Composition is reported to 4 decimals
COMPOSITION_PRECISION = 4

# Display labels for diagnostics messages
LABELS = {
    T_C: "T",
    ABM: "ABM",
    SBM: "SBM",
    ABV: "ABV",
    SUGAR_WV: "Sugar_WV",
    ND: "nD",
    DENSITY: "Density",
    BRIX: "BrixATC",
}


def fmt(value, prop):
    """Format a property value at its reporting precision."""
    places = PRECISION.get(prop)
    if places is None:
        return str(value)
    return "{:.{}f}".format(value, places)


def fmt_t(temperature):
    """Format a temperature for messages, e.g. '20.0 C'."""
    return "{:.1f} C".format(temperature)
