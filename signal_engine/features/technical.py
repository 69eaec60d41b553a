"""Technical feature engineering: RSI, ATR, EMAs, momentum, volatility, VWAP.

Every function is total. Below its minimum length it returns a documented
neutral value instead of raising, so downstream scoring can always assume
in-range inputs even on sparse history.
"""

from __future__ import annotations

import math

import numpy as np
import pandas as pd
import pandas_ta as ta
from scipy import stats

TRADING_DAYS = 252

RSI_PERIOD = 10
ATR_PERIOD = 14
MOMENTUM_BARS = 63
MOMENTUM_VOLUME_WINDOW = 15
VOLATILITY_MIN_BARS = 20
VOLATILITY_LOOKBACK = 63
CAGR_BARS = 756
VOLUME_SHORT = 15
VOLUME_LONG = 63
BREAKOUT_MIN_BARS = 100
DONCHIAN_WINDOW = 63
VWAP_PERIOD = 20
MOMENTUM_Z_PERIODS = (21, 42, 63)
MOMENTS_MIN_BARS = 20
MOMENTS_LOOKBACK = 60


def _clamp(x: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, x))


def _above(a: float, b: float) -> bool:
    """a > b beyond float noise (EMAs of a constant series can differ by an ulp)."""
    return a - b > 1e-9 * max(abs(b), 1.0)


def daily_returns(closes: np.ndarray) -> np.ndarray:
    """Simple bar-to-bar returns; zero where the previous close is not positive."""
    closes = np.asarray(closes, dtype=float)
    if len(closes) < 2:
        return np.empty(0)
    prev = closes[:-1]
    safe_prev = np.where(prev > 0, prev, 1.0)
    return np.where(prev > 0, (closes[1:] - prev) / safe_prev, 0.0)


def rsi(closes: np.ndarray, period: int = RSI_PERIOD) -> float:
    """Simple-average RSI over the last ``period`` changes.

    50 when too short or when price did not move at all, 100 when there
    were gains but no losses.
    """
    closes = np.asarray(closes, dtype=float)
    if len(closes) < period + 1:
        return 50.0
    changes = np.diff(closes[-(period + 1):])
    avg_gain = changes[changes > 0].sum() / period
    avg_loss = -changes[changes < 0].sum() / period
    if avg_loss == 0:
        return 50.0 if avg_gain == 0 else 100.0
    rs = avg_gain / avg_loss
    return float(100.0 - 100.0 / (1.0 + rs))


def atr(highs: np.ndarray, lows: np.ndarray, closes: np.ndarray, period: int = ATR_PERIOD) -> float:
    """Mean true range over the trailing ``period`` bars (0 if too short)."""
    if len(closes) < period + 1:
        return 0.0
    tr = ta.true_range(
        pd.Series(highs, dtype=float),
        pd.Series(lows, dtype=float),
        pd.Series(closes, dtype=float),
    )
    if tr is None:
        return 0.0
    tr = tr.dropna()
    if len(tr) < period:
        return 0.0
    return float(tr.iloc[-period:].mean())


def ema(values: np.ndarray, period: int) -> float:
    """Latest EMA value, seeded with the SMA of the first ``period`` values.

    Falls back to the last value when the series is shorter than ``period``.
    """
    values = np.asarray(values, dtype=float)
    if len(values) == 0:
        return 0.0
    if len(values) < period:
        return float(values[-1])
    series = ta.ema(pd.Series(values), length=period)
    if series is None or pd.isna(series.iloc[-1]):
        return float(values[-1])
    return float(series.iloc[-1])


def momentum_3m(closes: np.ndarray, volumes: np.ndarray, bars: int = MOMENTUM_BARS,
                volume_window: int = MOMENTUM_VOLUME_WINDOW) -> float:
    """Blend of 63-bar price change (70%) and recent-vs-prior volume change (30%).

    The price leg saturates at +50%, the volume leg at +100%; declines clamp to 0.
    """
    closes = np.asarray(closes, dtype=float)
    volumes = np.asarray(volumes, dtype=float)
    if len(closes) < bars or len(volumes) < 2 * volume_window:
        return 0.0

    start = closes[-bars]
    price_change = (closes[-1] - start) / start if start > 0 else 0.0

    recent = volumes[-volume_window:].mean()
    prior = volumes[-2 * volume_window:-volume_window].mean()
    volume_change = (recent - prior) / prior if prior > 0 else 0.0

    price_leg = _clamp(price_change / 0.5, 0.0, 1.0)
    volume_leg = _clamp(volume_change / 1.0, 0.0, 1.0)
    return 0.7 * price_leg + 0.3 * volume_leg


def annualized_volatility(closes: np.ndarray, min_bars: int = VOLATILITY_MIN_BARS,
                          lookback: int = VOLATILITY_LOOKBACK) -> float:
    """Population stdev of trailing daily returns, annualized, in %."""
    if len(closes) < min_bars:
        return 0.0
    returns = daily_returns(closes)[-lookback:]
    if len(returns) < 2:
        return 0.0
    return float(np.std(returns) * math.sqrt(TRADING_DAYS) * 100)


def cagr_3y(closes: np.ndarray, bars: int = CAGR_BARS) -> float:
    """Compound annual growth over the last three years of bars, in %."""
    closes = np.asarray(closes, dtype=float)
    if len(closes) < bars:
        return 0.0
    start, end = closes[-bars], closes[-1]
    if start <= 0 or end <= 0:
        return 0.0
    return float(((end / start) ** (1 / 3) - 1) * 100)


def volume_spike_ratio(volumes: np.ndarray, short: int = VOLUME_SHORT, long: int = VOLUME_LONG) -> float:
    """mean(last ``short`` volumes) / mean(last ``long`` volumes); 1.0 if undefined."""
    volumes = np.asarray(volumes, dtype=float)
    if len(volumes) < long:
        return 1.0
    long_mean = volumes[-long:].mean()
    if long_mean <= 0:
        return 1.0
    return float(volumes[-short:].mean() / long_mean)


def breakout_strength(closes: np.ndarray, min_bars: int = BREAKOUT_MIN_BARS) -> float:
    """Weighted EMA stack alignment score in [0, 1]."""
    closes = np.asarray(closes, dtype=float)
    if len(closes) < min_bars:
        return 0.0
    e10, e20, e50, e100 = (ema(closes, p) for p in (10, 20, 50, 100))
    price = closes[-1]
    score = (
        0.3 * _above(e10, e20)
        + 0.3 * _above(e20, e50)
        + 0.2 * _above(e50, e100)
        + 0.1 * _above(price, e10)
        + 0.1 * _above(price, e20)
    )
    return _clamp(float(score), 0.0, 1.0)


def donchian_pct(closes: np.ndarray, highs: np.ndarray, lows: np.ndarray,
                 window: int = DONCHIAN_WINDOW) -> float:
    """Position of the close inside the trailing high/low channel (0.5 if flat)."""
    if len(closes) < window:
        return 0.5
    hi = float(np.max(highs[-window:]))
    lo = float(np.min(lows[-window:]))
    if hi - lo <= 0:
        return 0.5
    return _clamp((float(closes[-1]) - lo) / (hi - lo), 0.0, 1.0)


def vwap(highs: np.ndarray, lows: np.ndarray, closes: np.ndarray, volumes: np.ndarray,
         period: int = VWAP_PERIOD) -> float:
    """Volume-weighted typical price over the trailing ``period`` bars."""
    closes = np.asarray(closes, dtype=float)
    if len(closes) == 0:
        return 0.0
    if len(closes) < period:
        return float(closes[-1])
    typical = (np.asarray(highs[-period:], dtype=float)
               + np.asarray(lows[-period:], dtype=float)
               + closes[-period:]) / 3
    vol = np.asarray(volumes[-period:], dtype=float)
    total = vol.sum()
    if total <= 0:
        return float(closes[-1])
    return float((typical * vol).sum() / total)


def normalized_momentum(closes: np.ndarray, period: int) -> float:
    """z-score of the latest daily return against the last ``period`` returns."""
    if len(closes) < period + 1:
        return 0.0
    returns = daily_returns(closes)[-period:]
    std = returns.std()
    if not np.isfinite(std) or std < 1e-12:
        return 0.0
    return float((returns[-1] - returns.mean()) / std)


def skew_kurtosis(closes: np.ndarray, min_bars: int = MOMENTS_MIN_BARS,
                  lookback: int = MOMENTS_LOOKBACK) -> tuple[float, float]:
    """(skewness, excess kurtosis) of trailing daily returns; kurtosis in [-3, 10]."""
    if len(closes) < min_bars:
        return 0.0, 0.0
    returns = daily_returns(closes)[-lookback:]
    if np.var(returns) <= 1e-14:
        return 0.0, 0.0
    skew = float(stats.skew(returns))
    kurt = float(stats.kurtosis(returns))  # excess kurtosis
    return skew, _clamp(kurt, -3.0, 10.0)
