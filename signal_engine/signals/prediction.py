"""Blended 3-month return forecast: logistic score + rule ensemble.

probability12 is the blended probability of a >12% move over three months.
Weights, blend ratio and conditional-mean returns are fixed defaults kept for
behavioural compatibility; they are not backtested constants.

Normalization (per feature, documented scaling):
  - hurst:         (H - 0.5) * 2                  -> [-1, 1]
  - fractal:       (1.5 - FD) * 2                 -> [-1, 1]  (smoother = higher)
  - trend:         min(SNR / 0.2, 1) * sign(slope) -> [-1, 1]
  - snr:           min(SNR / 0.2, 1)              -> [0, 1]
  - kama_er, trend_r2, momentum_3m, breakout      -> already [0, 1]
  - rsrs:          z / 3                          -> [-1, 1]
  - donchian:      2 * pct - 1                    -> [-1, 1]
  - vwap:          distance_atr / 3               -> [-1, 1]
  - volume:        min(ratio, 3) / 3              -> [0, 1]
  - rsi:           (RSI - 50) / 50                -> [-1, 1]
  - mom_z:         mean(z21, z42, z63) / 3        -> [-1, 1]
  - volatility:    vol% / 100                     -> [0, 1]
  - skew:          skew / 2                       -> [-1, 1]
  - kurtosis:      kurt / 10                      -> [-0.3, 1]
  - cagr:          cagr% / 30                     -> [-1, 1]
  - regime_net:    bull - bear                    -> [-1, 1]
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field

from signal_engine.models import FeatureSet, Instrument, PredictionResult
from signal_engine.signals.execution_filter import evaluate_filters

logger = logging.getLogger(__name__)

SNR_SCALE = 0.2
VOLUME_SPIKE_CAP = 3.0

DEFAULT_WEIGHTS = {
    "trend": 0.20,
    "regime_net": 0.18,
    "trend_r2": 0.12,
    "kama_er": 0.10,
    "hurst": 0.08,
    "momentum_3m": 0.08,
    "breakout": 0.06,
    "mom_z": 0.05,
    "rsrs": 0.05,
    "donchian": 0.04,
    "volume": 0.04,
    "vwap": 0.03,
    "cagr": 0.03,
    "fractal": 0.03,
    "rsi": 0.02,
    "skew": 0.01,
    "volatility": -0.05,
    "kurtosis": -0.02,
}

DEFAULT_INTERACTIONS = {
    "rsrs_x_regime_bull": 0.06,
    "snr_x_kama_er": 0.08,
}


@dataclass
class PredictionConfig:
    """Model constants. Defaults reproduce the dashboard's published numbers."""

    weights: dict[str, float] = field(default_factory=lambda: dict(DEFAULT_WEIGHTS))
    interactions: dict[str, float] = field(default_factory=lambda: dict(DEFAULT_INTERACTIONS))
    sigmoid_center: float = 0.5
    sigmoid_steepness: float = 5.0
    ensemble_base: float = 0.25
    logit_blend: float = 0.5  # ensemble gets 1 - logit_blend
    up_return_pct: float = 18.0
    down_return_pct: float = -5.0


def _clamp(x: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, x))


def normalize_features(fs: FeatureSet) -> dict[str, float]:
    """Scale each feature to roughly [-1, 1] or [0, 1] (see module docstring)."""
    snr_n = _clamp(fs.kalman_snr / SNR_SCALE, 0.0, 1.0)
    direction = 1.0 if fs.kalman_slope > 0 else -1.0 if fs.kalman_slope < 0 else 0.0
    mom_z = (fs.mom_z_21 + fs.mom_z_42 + fs.mom_z_63) / 3
    return {
        "trend": snr_n * direction,
        "snr": snr_n,
        "regime_net": _clamp(fs.regime_bull - fs.regime_bear, -1.0, 1.0),
        "regime_bull": _clamp(fs.regime_bull, 0.0, 1.0),
        "trend_r2": _clamp(fs.trend_r2, 0.0, 1.0),
        "kama_er": _clamp(fs.kama_er, 0.0, 1.0),
        "hurst": _clamp((fs.hurst - 0.5) * 2, -1.0, 1.0),
        "momentum_3m": _clamp(fs.momentum_3m, 0.0, 1.0),
        "breakout": _clamp(fs.breakout_strength, 0.0, 1.0),
        "mom_z": _clamp(mom_z / 3, -1.0, 1.0),
        "rsrs": _clamp(fs.rsrs_z / 3, -1.0, 1.0),
        "donchian": _clamp(2 * fs.donchian_pct - 1, -1.0, 1.0),
        "volume": min(max(fs.volume_spike_ratio, 0.0), VOLUME_SPIKE_CAP) / VOLUME_SPIKE_CAP,
        "vwap": _clamp(fs.vwap_distance_atr / 3, -1.0, 1.0),
        "cagr": _clamp(fs.cagr_3y / 30, -1.0, 1.0),
        "fractal": _clamp((1.5 - fs.fractal_dimension) * 2, -1.0, 1.0),
        "rsi": _clamp((fs.rsi - 50) / 50, -1.0, 1.0),
        "skew": _clamp(fs.skewness / 2, -1.0, 1.0),
        "volatility": _clamp(fs.volatility / 100, 0.0, 1.0),
        "kurtosis": _clamp(fs.kurtosis / 10, -0.3, 1.0),
    }


def logit_score(norm: dict[str, float], config: PredictionConfig | None = None) -> float:
    """Weighted linear score with two interaction terms, through a sigmoid."""
    config = config or PredictionConfig()
    z = sum(w * norm.get(name, 0.0) for name, w in config.weights.items())
    z += config.interactions.get("rsrs_x_regime_bull", 0.0) * norm["rsrs"] * norm["regime_bull"]
    z += config.interactions.get("snr_x_kama_er", 0.0) * norm["snr"] * norm["kama_er"]
    x = config.sigmoid_steepness * (z - config.sigmoid_center)
    x = _clamp(x, -60.0, 60.0)  # keep math.exp in range
    return 1.0 / (1.0 + math.exp(-x))


def ensemble_score(norm: dict[str, float], config: PredictionConfig | None = None) -> float:
    """Fixed threshold rules ("trees") adding or removing fixed increments."""
    config = config or PredictionConfig()
    score = config.ensemble_base

    # Clean, persistent uptrend
    if norm["snr"] > 0.5 and norm["trend_r2"] > 0.3 and norm["trend"] > 0:
        score += 0.15
    # Regime confirmed by high-vs-low strength
    if norm["regime_bull"] > 0.55 and norm["rsrs"] > 0.17:
        score += 0.12
    # Persistent and efficient price path
    if norm["hurst"] > 0.1 and norm["kama_er"] > 0.4:
        score += 0.10
    # Momentum backed by volume
    if norm["momentum_3m"] > 0.5 and norm["volume"] > 0.45:
        score += 0.10
    # Aligned EMA stack near the channel top
    if norm["breakout"] >= 0.8 and norm["donchian"] > 0.8:
        score += 0.10
    # Stretched: overbought and far above VWAP
    if norm["rsi"] > 0.6 and norm["vwap"] > 0.66:
        score -= 0.10
    # Bearish regime dominates
    if norm["regime_net"] < -0.3:
        score -= 0.15
    # Wild, fat-tailed tape
    if norm["volatility"] > 0.6 and norm["kurtosis"] > 0.5:
        score -= 0.08

    return _clamp(score, 0.0, 1.0)


def expected_return(probability: float, config: PredictionConfig | None = None) -> float:
    """Two-outcome conditional mean, in %, rounded to one decimal."""
    config = config or PredictionConfig()
    value = probability * config.up_return_pct + (1 - probability) * config.down_return_pct
    return round(value, 1)


def predict(instrument: Instrument, features: FeatureSet,
            config: PredictionConfig | None = None) -> PredictionResult:
    """Blend both scores into probability12 and attach the execution gate."""
    config = config or PredictionConfig()
    norm = normalize_features(features)
    p_logit = logit_score(norm, config)
    p_ensemble = ensemble_score(norm, config)
    probability = _clamp(
        config.logit_blend * p_logit + (1 - config.logit_blend) * p_ensemble, 0.0, 1.0
    )
    gate = evaluate_filters(features)

    logger.debug(
        "%s: logit=%.3f ensemble=%.3f p12=%.3f action=%s flags=%s",
        instrument.identifier, p_logit, p_ensemble, probability, gate.action.value, gate.flags,
    )

    return PredictionResult(
        instrument=instrument,
        probability12=round(probability, 4),
        expected_return=expected_return(probability, config),
        filters_pass=gate.passed,
        filter_flags=gate.flags,
        action=gate.action,
        current_price=features.close,
        volatility=round(features.volatility, 3),
        regime_bull=round(features.regime_bull, 3),
        kalman_snr=round(features.kalman_snr, 3),
        logit_score=round(p_logit, 4),
        ensemble_score=round(p_ensemble, 4),
    )
