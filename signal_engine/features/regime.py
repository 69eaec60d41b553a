"""Per-instrument regime classifier: bull / chop / bear pseudo-probabilities.

Regime types:
  - BULL: trailing returns drift up clearly relative to their noise
  - BEAR: trailing returns drift down clearly relative to their noise
  - CHOP: anything in between

Rule based, not a fitted Markov model. Each rolling sub-window of the trailing
returns is labelled from its mean/stdev t-statistic and the label counts are
Laplace smoothed into probabilities, so no regime is ever exactly 0 or 1.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum

import numpy as np

from signal_engine.features.technical import daily_returns

REGIME_WINDOW = 60
REGIME_SUB_WINDOW = 20
REGIME_T_THRESHOLD = 1.0


class Regime(str, Enum):
    BULL = "bull"
    CHOP = "chop"
    BEAR = "bear"


@dataclass(frozen=True)
class RegimeProbabilities:
    bull: float
    chop: float
    bear: float

    @property
    def dominant(self) -> Regime:
        best = max((self.bull, Regime.BULL), (self.chop, Regime.CHOP), (self.bear, Regime.BEAR),
                   key=lambda pair: pair[0])
        return best[1]


NEUTRAL_REGIME = RegimeProbabilities(1 / 3, 1 / 3, 1 / 3)


def classify_returns(returns: np.ndarray, t_threshold: float = REGIME_T_THRESHOLD) -> Regime:
    """Label one window of returns from its mean/stdev t-statistic."""
    mean = float(returns.mean())
    std = float(returns.std())
    if std < 1e-12:
        # Constant growth rate: the sign of the drift decides.
        if mean > 1e-12:
            return Regime.BULL
        if mean < -1e-12:
            return Regime.BEAR
        return Regime.CHOP
    t = mean * math.sqrt(len(returns)) / std
    if t > t_threshold:
        return Regime.BULL
    if t < -t_threshold:
        return Regime.BEAR
    return Regime.CHOP


def regime_probabilities(closes: np.ndarray, window: int = REGIME_WINDOW,
                         sub_window: int = REGIME_SUB_WINDOW) -> RegimeProbabilities:
    """Laplace-smoothed label frequencies over rolling sub-windows.

    Uses the last ``window`` closes; returns the uniform 1/3 split when the
    history is too short.
    """
    closes = np.asarray(closes, dtype=float)
    if len(closes) < window:
        return NEUTRAL_REGIME

    returns = daily_returns(closes[-window:])
    if len(returns) < sub_window:
        return NEUTRAL_REGIME

    counts = {Regime.BULL: 0, Regime.CHOP: 0, Regime.BEAR: 0}
    for end in range(sub_window, len(returns) + 1):
        counts[classify_returns(returns[end - sub_window:end])] += 1

    total = sum(counts.values()) + 3
    return RegimeProbabilities(
        bull=(counts[Regime.BULL] + 1) / total,
        chop=(counts[Regime.CHOP] + 1) / total,
        bear=(counts[Regime.BEAR] + 1) / total,
    )
