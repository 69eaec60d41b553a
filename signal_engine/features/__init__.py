"""Feature extraction layer."""

from signal_engine.features.feature_set import build_feature_set
from signal_engine.features.regime import Regime, RegimeProbabilities, regime_probabilities

__all__ = [
    "Regime",
    "RegimeProbabilities",
    "build_feature_set",
    "regime_probabilities",
]
