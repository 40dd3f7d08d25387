"""MIXCALC HTTP API blueprint."""
