"""Engine exceptions.

Insufficient history is never an error (features fall back to neutral
defaults) and an exhausted time budget is a normal early exit, so the only
per-instrument failure surfaced here is InstrumentComputeFailure.
"""

from __future__ import annotations


class InstrumentComputeFailure(Exception):
    """An unexpected numeric or data problem for a single instrument."""

    def __init__(self, message: str, instrument_id: str | None = None):
        super().__init__(message)
        self.instrument_id = instrument_id


class SeriesOrderError(InstrumentComputeFailure):
    """Price series dates are not strictly increasing and unique."""
