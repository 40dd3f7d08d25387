"""
Pytest fixtures for the MIXCALC test suite.

The measurement table used throughout is synthetic: every property is
multilinear in (T, ABM, SBM), so tri-linear interpolation reproduces it
exactly and inversions can be checked against known compositions.
"""

import random

import pytest

from app import create_app
from mixcalc.constants import T_C, ABM, SBM, ABV, SUGAR_WV, ND, DENSITY, BRIX
from mixcalc.engine import MixEngine
from mixcalc.grid import MixGrid
from mixcalc.settings import SolverSettings


T_AXIS = (10.0, 15.0, 20.0, 25.0, 30.0)
A_AXIS = tuple(float(a) for a in range(0, 51))
S_AXIS = tuple(float(s) for s in range(0, 61))

# Match bands wide enough to span one grid step of each property.
# ABV moves up to ~1.4 %vol per 1 % ABM, Brix ~1 per 1 % SBM and
# density ~0.004 per 1 % SBM, so the default bands can fall between
# nodes and leave the true composition out of the envelope.
GRID_BAND_FLOOR = {ABV: 1.0, BRIX: 0.6, DENSITY: 0.0025, SUGAR_WV: 10.0}


def mixture_property(prop, t, a, s):
    """Closed-form synthetic property model (multilinear in T, A, S)."""
    dt = t - 20.0
    if prop == ABV:
        return a * (1.25 + 0.002 * s) * (1.0 - 0.001 * dt)
    if prop == SUGAR_WV:
        return s * (10.0 - 0.01 * a) * (1.0 - 0.0003 * dt)
    if prop == DENSITY:
        return 0.998 - 0.0015 * a + 0.004 * s - 0.0002 * dt + 0.000005 * a * dt
    if prop == BRIX:
        return s + 0.4 * a - 0.005 * a * dt
    if prop == ND:
        return 1.333 + 0.0015 * s + 0.0007 * a - 0.0001 * dt
    raise ValueError(prop)


def synthetic_rows():
    rows = []
    for t in T_AXIS:
        for a in A_AXIS:
            for s in S_AXIS:
                row = {T_C: t, ABM: a, SBM: s}
                for prop in (ABV, SUGAR_WV, ND, DENSITY, BRIX):
                    row[prop] = mixture_property(prop, t, a, s)
                rows.append(row)
    return rows


@pytest.fixture
def truth():
    """The closed-form model behind the synthetic table."""
    return mixture_property


@pytest.fixture
def rows():
    return synthetic_rows()


@pytest.fixture(scope="session")
def grid():
    # Immutable, so one instance serves the whole session
    return MixGrid(synthetic_rows())


@pytest.fixture
def settings():
    # Generous Monte Carlo deadline so slow CI machines still finish trials
    return SolverSettings(range_band_floor=GRID_BAND_FLOOR, mc_deadline=60.0)


@pytest.fixture
def engine(grid, settings):
    return MixEngine(grid, settings=settings, rng=random.Random(1234))


@pytest.fixture
def app(engine):
    """Create application for testing."""
    app = create_app({"TESTING": True}, engine=engine)
    return app


@pytest.fixture
def client(app):
    """Flask test client."""
    return app.test_client()
