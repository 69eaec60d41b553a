"""Assemble the full FeatureSet for one instrument's latest bar."""

from __future__ import annotations

import logging
import math
from dataclasses import astuple

import numpy as np
import pandas as pd

from signal_engine.errors import InstrumentComputeFailure
from signal_engine.features import statistical, technical
from signal_engine.features.regime import regime_probabilities
from signal_engine.history import as_arrays
from signal_engine.models import FeatureSet

logger = logging.getLogger(__name__)


def build_feature_set(df: pd.DataFrame, instrument_id: str | None = None) -> FeatureSet:
    """Compute every indicator on an OHLCV frame (oldest bar first).

    Short histories are fine: each feature falls back to its neutral value.
    Raises InstrumentComputeFailure if the frame is empty or any feature comes
    out non-finite.
    """
    if df is None or df.empty:
        raise InstrumentComputeFailure("no price history", instrument_id)

    _, highs, lows, closes, volumes = as_arrays(df)

    with np.errstate(all="ignore"):
        close = float(closes[-1])
        atr = technical.atr(highs, lows, closes)
        vwap = technical.vwap(highs, lows, closes, volumes)
        slope, snr = statistical.kalman_trend(closes)
        beta, rsrs_z = statistical.rsrs(highs, lows)
        skew, kurt = technical.skew_kurtosis(closes)
        mom_z = [technical.normalized_momentum(closes, p) for p in technical.MOMENTUM_Z_PERIODS]
        regime = regime_probabilities(closes)

        features = FeatureSet(
            bars=len(closes),
            close=close,
            ema5=technical.ema(closes, 5),
            rsi=technical.rsi(closes),
            atr=atr,
            momentum_3m=technical.momentum_3m(closes, volumes),
            volatility=technical.annualized_volatility(closes),
            cagr_3y=technical.cagr_3y(closes),
            volume_spike_ratio=technical.volume_spike_ratio(volumes),
            breakout_strength=technical.breakout_strength(closes),
            hurst=statistical.hurst_exponent(closes),
            fractal_dimension=statistical.fractal_dimension(closes),
            kalman_slope=slope,
            kalman_snr=snr,
            kama_er=statistical.kama_efficiency_ratio(closes),
            trend_r2=statistical.trend_r2(closes),
            rsrs_beta=beta,
            rsrs_z=rsrs_z,
            donchian_pct=technical.donchian_pct(closes, highs, lows),
            vwap=vwap,
            vwap_distance_atr=(close - vwap) / atr if atr > 0 else 0.0,
            mom_z_21=mom_z[0],
            mom_z_42=mom_z[1],
            mom_z_63=mom_z[2],
            skewness=skew,
            kurtosis=kurt,
            regime_bull=regime.bull,
            regime_chop=regime.chop,
            regime_bear=regime.bear,
        )

    bad = [name for name, value in zip(FeatureSet.__dataclass_fields__, astuple(features))
           if not math.isfinite(value)]
    if bad:
        raise InstrumentComputeFailure(f"non-finite features: {', '.join(bad)}", instrument_id)
    logger.debug("%s: %d bars, %s regime (bull %.2f, chop %.2f, bear %.2f)",
                 instrument_id, features.bars, regime.dominant.value,
                 regime.bull, regime.chop, regime.bear)
    return features
