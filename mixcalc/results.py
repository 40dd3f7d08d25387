"""
Tagged solve results.

Expected outcomes (no coverage, infeasible inputs, invalid requests) are
values, not exceptions. Every variant serializes to the same output
record:

    {ok, mode, inputs, abm, sbm, report_t, outputs, diagnostics,
     uncertainty, error}

Callers must check both ok and whether outputs is present: a hard
feasibility gate returns ok = True with outputs = None.

IMPORTANT: No unicode characters allowed (Windows charmap constraint).
"""


class SolveResult:
    """
    Base output record.

    Parameters
    ----------
    mode : str
        Mode that produced the result ('edge' for single-input solves).
    inputs : dict
        Inputs echoed back (after temperature clamping).
    abm, sbm : float or None
        Resolved composition (rounded to 4 decimals).
    report_t : float or None
    outputs : dict or None
        Property vector at report_t (see TrilinearInterpolator.predict_all).
    diagnostics : dict or None
    uncertainty : dict or None
        Filled in by the Monte Carlo propagator.
    error : str or None
    """

    ok = True

    def __init__(self, mode=None, inputs=None, abm=None, sbm=None,
                 report_t=None, outputs=None, diagnostics=None,
                 uncertainty=None, error=None):
        self.mode = mode
        self.inputs = inputs or {}
        self.abm = abm
        self.sbm = sbm
        self.report_t = report_t
        self.outputs = outputs
        self.diagnostics = diagnostics or {}
        self.uncertainty = uncertainty
        self.error = error

    @property
    def warning(self):
        return self.diagnostics.get("warning")

    def to_dict(self):
        return {
            "ok": self.ok,
            "mode": self.mode,
            "inputs": dict(self.inputs),
            "abm": self.abm,
            "sbm": self.sbm,
            "report_t": self.report_t,
            "outputs": None if self.outputs is None else dict(self.outputs),
            "diagnostics": dict(self.diagnostics),
            "uncertainty": self.uncertainty,
            "error": self.error,
        }

    def __repr__(self):
        return "{}(mode={!r}, abm={!r}, sbm={!r}, error={!r})".format(
            type(self).__name__, self.mode, self.abm, self.sbm, self.error)


class Solved(SolveResult):
    """Composition resolved and outputs reported."""

    ok = True


class Infeasible(SolveResult):
    """
    Inputs inconsistent with the model.

    Two flavours: the hard feasibility gate (no error, ok stays True,
    outputs None, ranges in diagnostics) and a best fit whose normalized
    error reaches the fail threshold (ok False with an error string).
    """

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.outputs = None

    @property
    def ok(self):
        return self.error is None


class NoCoverage(SolveResult):
    """No finite model prediction for the requested inputs."""

    ok = False

    DEFAULT_ERROR = "Model has no coverage for these inputs at the given temperatures."

    def __init__(self, *args, **kwargs):
        kwargs.setdefault("error", self.DEFAULT_ERROR)
        super().__init__(*args, **kwargs)
        if self.error is None:
            self.error = self.DEFAULT_ERROR


class InvalidRequest(SolveResult):
    """
    Request rejected before any computation.

    Parameters
    ----------
    where : str
        Validation stage (validate_mode, validate_flags, validate_inputs,
        validate_edge_inputs).
    missing : list of str
        Request fields that must be supplied.
    """

    ok = False

    def __init__(self, mode=None, error=None, where=None, missing=None):
        super().__init__(mode=mode, error=error)
        self.where = where
        self.missing = list(missing or [])

    def to_dict(self):
        out = super().to_dict()
        out["where"] = self.where
        out["missing"] = list(self.missing)
        return out
