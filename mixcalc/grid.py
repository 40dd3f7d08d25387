"""
Grid Store: the measurement table as axis-indexed lookup structures.

The table is a partial function over a regular 3-D grid
(temperature x ABM x SBM). Not every (T, A, S) cell has every
property measured, so each property is stored as a pair of dense
arrays: the values and a boolean mask marking which cells were
actually measured. A cell holding the 9999 sentinel, NULL, or nothing
at all is simply unmasked; there is no magic number in the store.

Classes:
    MixGrid - Immutable grid built once from table rows

Functions:
    clean_value - Normalize a raw cell to float or None

IMPORTANT: No unicode characters allowed (Windows charmap constraint).
"""

import logging
import math

import numpy as np

from mixcalc.constants import DIMENSIONS, PROPERTIES, SENTINEL, T_C, ABM, SBM

log = logging.getLogger(__name__)


def clean_value(raw):
    """
    Normalize one table cell.

    Returns None for absent, NULL, non-numeric, non-finite and sentinel
    (>= 9999) cells; otherwise the float value.
    """
    if raw is None:
        return None
    if isinstance(raw, str):
        text = raw.strip()
        if not text or text.upper() == "NULL":
            return None
        try:
            raw = float(text)
        except ValueError:
            return None
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(value) or value >= SENTINEL:
        return None
    return value


def _readonly(array):
    array.flags.writeable = False
    return array


class MixGrid:
    """
    Immutable measurement grid.

    Parameters
    ----------
    rows : iterable of dict
        Table rows keyed by the canonical names in mixcalc.constants
        (t_c, abm, sbm plus any of the property columns). Rows whose
        key fields are missing or non-numeric are skipped. When the
        same (T, A, S) key appears twice the later row wins.
    """

    def __init__(self, rows):
        cells = {}
        skipped = 0
        for row in rows:
            key = tuple(clean_value(row.get(dim)) for dim in DIMENSIONS)
            if any(k is None for k in key):
                skipped += 1
                continue
            cells[key] = {p: clean_value(row.get(p)) for p in PROPERTIES}

        if skipped:
            log.warning("Skipped %d table rows with missing key fields", skipped)

        self._axes = {
            T_C: tuple(sorted({k[0] for k in cells})),
            ABM: tuple(sorted({k[1] for k in cells})),
            SBM: tuple(sorted({k[2] for k in cells})),
        }
        self._index = {
            dim: {v: i for i, v in enumerate(axis)}
            for dim, axis in self._axes.items()
        }
        self._row_count = len(cells)

        shape = tuple(len(self._axes[d]) for d in DIMENSIONS)
        self._values = {}
        self._masks = {}
        self._counts = {}
        for prop in PROPERTIES:
            values = np.zeros(shape, dtype=float)
            mask = np.zeros(shape, dtype=bool)
            for (t, a, s), props in cells.items():
                v = props[prop]
                if v is None:
                    continue
                idx = (self._index[T_C][t], self._index[ABM][a],
                       self._index[SBM][s])
                values[idx] = v
                mask[idx] = True
            self._values[prop] = _readonly(values)
            self._masks[prop] = _readonly(mask)
            self._counts[prop] = int(mask.sum())

        log.info(
            "Loaded mixture grid: %d rows, %d temperatures, %d ABM, %d SBM",
            self._row_count, shape[0], shape[1], shape[2],
        )

    def __len__(self):
        return self._row_count

    @property
    def is_empty(self):
        return self._row_count == 0

    def axis(self, dimension):
        """
        Sorted, deduplicated axis values for one dimension.

        Parameters
        ----------
        dimension : str
            One of 't_c', 'abm', 'sbm'.

        Returns
        -------
        tuple of float
        """
        try:
            return self._axes[dimension]
        except KeyError:
            raise ValueError("Unknown dimension: {}".format(dimension))

    def bounds(self, dimension):
        """(min, max) of an axis, or None for an empty grid."""
        axis = self.axis(dimension)
        if not axis:
            return None
        return axis[0], axis[-1]

    def value(self, prop, t, a, s):
        """
        Stored value at an exact grid key, or None when not measured.

        Never raises for keys outside the loaded data.
        """
        arrays = self.arrays(prop)
        try:
            idx = (self._index[T_C][float(t)], self._index[ABM][float(a)],
                   self._index[SBM][float(s)])
        except (KeyError, TypeError, ValueError):
            return None
        values, mask = arrays
        if not mask[idx]:
            return None
        return float(values[idx])

    def arrays(self, prop):
        """
        Read-only (values, mask) arrays for a property.

        Both have shape (n_T, n_ABM, n_SBM); values are meaningful only
        where mask is True.
        """
        if prop not in self._values:
            raise ValueError("Unknown property: {}".format(prop))
        return self._values[prop], self._masks[prop]

    def summary(self):
        """Coverage summary for the API and logs."""
        out = {"rows": self._row_count, "axes": {}, "measured": dict(self._counts)}
        for dim in DIMENSIONS:
            axis = self._axes[dim]
            out["axes"][dim] = {
                "count": len(axis),
                "min": axis[0] if axis else None,
                "max": axis[-1] if axis else None,
            }
        return out
