"""
Measurement table reader.

Reads the mixture measurement table from CSV into canonical row dicts
for MixGrid. Required columns (case-insensitive):

    T_C, ABM, SBM, ABV, Sugar_WV, nD, Density, BrixATC

Cells may use a comma decimal separator. Empty cells, NULL and the
9999 sentinel all mean "not measured".

IMPORTANT: No unicode characters allowed (Windows charmap constraint).
"""

import csv
import logging

from mixcalc.constants import T_C, ABM, SBM, ABV, SUGAR_WV, ND, DENSITY, BRIX
from mixcalc.grid import MixGrid, clean_value

log = logging.getLogger(__name__)

# Header (lower-cased) -> canonical key
COLUMN_ALIASES = {
    "t_c": T_C,
    "abm": ABM,
    "sbm": SBM,
    "abv": ABV,
    "sugar_wv": SUGAR_WV,
    "nd": ND,
    "density": DENSITY,
    "brixatc": BRIX,
    "brix": BRIX,
}

REQUIRED_COLUMNS = (T_C, ABM, SBM, ABV, SUGAR_WV, ND, DENSITY, BRIX)


def parse_cell(raw):
    """CSV cell -> float or None (comma decimals accepted)."""
    if raw is None:
        return None
    text = raw.strip()
    if "," in text and "." not in text:
        text = text.replace(",", ".")
    return clean_value(text)


def read_rows(path):
    """
    Read measurement rows from a CSV file.

    Parameters
    ----------
    path : str or Path
        CSV file with a header row.

    Returns
    -------
    list of dict
        Canonical keys, float-or-None values.

    Raises
    ------
    ValueError
        If a required column is missing.
    OSError
        If the file cannot be read.
    """
    with open(path, newline="", encoding="utf-8") as f:
        reader = csv.reader(f)
        try:
            header = next(reader)
        except StopIteration:
            raise ValueError("Measurement table {} is empty".format(path))

        columns = {}
        for i, name in enumerate(header):
            key = COLUMN_ALIASES.get(name.strip().lower())
            if key is not None and key not in columns:
                columns[key] = i

        missing = [c for c in REQUIRED_COLUMNS if c not in columns]
        if missing:
            raise ValueError("Measurement table {} is missing column(s): {}".format(
                path, ", ".join(missing)))

        rows = []
        for line in reader:
            if not line or not any(cell.strip() for cell in line):
                continue
            rows.append({
                key: parse_cell(line[i]) if i < len(line) else None
                for key, i in columns.items()
            })

    log.info("Read %d measurement rows from %s", len(rows), path)
    return rows


def load_grid(path):
    """Read a CSV measurement table and build the grid."""
    return MixGrid(read_rows(path))
