"""Statistical trend-quality estimators.

Hurst exponent (rescaled range), fractal dimension, a one-state Kalman level
filter, KAMA efficiency ratio, log-price trend R^2 and RSRS. Like the technical
features these are total functions with neutral fallbacks.
"""

from __future__ import annotations

import math

import numpy as np

HURST_MIN_BARS = 200
HURST_WINDOW = 100
FRACTAL_MIN_BARS = 50
FRACTAL_WINDOW = 100
FRACTAL_KMAX = 10
KALMAN_WINDOW = 20
KALMAN_Q = 0.01
KALMAN_R = 0.1
KALMAN_SNR_CAP = 10.0
KAMA_PERIOD = 10
TREND_R2_MIN_BARS = 63
TREND_R2_WINDOW = 50
RSRS_WINDOW = 18
RSRS_PRIOR_MEAN = 1.0
RSRS_PRIOR_STD = 0.2
RSRS_Z_CAP = 5.0


def _clamp(x: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, x))


def hurst_exponent(closes: np.ndarray, min_bars: int = HURST_MIN_BARS,
                   window: int = HURST_WINDOW) -> float:
    """Single-window R/S estimate on log returns, clamped to [0, 1].

    H = 0.5 + 0.5 * log(R/S + 1) / log(n/2). Returns 0.5 when the history is
    too short or the returns have no dispersion.
    """
    closes = np.asarray(closes, dtype=float)
    if len(closes) < min_bars:
        return 0.5
    segment = closes[-window:]
    if np.any(segment <= 0):
        return 0.5
    returns = np.diff(np.log(segment))
    n = len(returns)
    if n < 8:
        return 0.5
    s = returns.std()
    if s < 1e-12:
        return 0.5
    cumdev = np.cumsum(returns - returns.mean())
    r = cumdev.max() - cumdev.min()
    h = 0.5 + 0.5 * math.log(r / s + 1) / math.log(n / 2)
    return _clamp(float(h), 0.0, 1.0)


def fractal_dimension(closes: np.ndarray, min_bars: int = FRACTAL_MIN_BARS,
                      window: int = FRACTAL_WINDOW, kmax: int = FRACTAL_KMAX) -> float:
    """Higuchi-style fractal dimension in [1, 2].

    For each scale k the curve is subsampled at offsets m = 0..k-1 and the mean
    absolute step length is averaged over offsets. The slope of log length vs
    log k is the scaling exponent, and FD = 2 - slope. A smooth trend gives 1,
    a random walk about 1.5, pure noise 2. Returns 1.5 when undetermined.
    """
    closes = np.asarray(closes, dtype=float)
    if len(closes) < min_bars:
        return 1.5
    x = closes[-window:]

    log_k, log_len = [], []
    for k in range(1, kmax + 1):
        step_means = []
        for m in range(k):
            sub = x[m::k]
            if len(sub) >= 2:
                step_means.append(np.abs(np.diff(sub)).mean())
        if not step_means:
            continue
        length = float(np.mean(step_means))
        if length > 0:
            log_k.append(math.log(k))
            log_len.append(math.log(length))

    if len(log_k) < 3:
        return 1.5
    slope = float(np.polyfit(log_k, log_len, 1)[0])
    return _clamp(2.0 - slope, 1.0, 2.0)


def kalman_trend(closes: np.ndarray, window: int = KALMAN_WINDOW,
                 q: float = KALMAN_Q, r: float = KALMAN_R) -> tuple[float, float]:
    """(slope, snr) from a one-state Kalman level filter.

    The filter tracks level only, so velocity is not a filter state. Slope is
    read off the filtered levels: their change over the last ``window`` bars
    divided by ``window``. snr is abs(slope) over the stdev of those filtered
    levels, capped at 10.
    """
    closes = np.asarray(closes, dtype=float)
    if len(closes) < window:
        return 0.0, 0.0

    level = closes[0]
    p = 1.0
    filtered = np.empty(len(closes))
    for i, z in enumerate(closes):
        p += q
        gain = p / (p + r)
        level += gain * (z - level)
        p *= 1 - gain
        filtered[i] = level

    tail = filtered[-window:]
    slope = float((tail[-1] - tail[0]) / window)
    std = float(np.sqrt(np.var(tail)))
    if std < 1e-12:
        return slope, 0.0
    return slope, min(abs(slope) / std, KALMAN_SNR_CAP)


def kama_efficiency_ratio(closes: np.ndarray, period: int = KAMA_PERIOD) -> float:
    """abs(net change) / path length over ``period`` bars, in [0, 1]."""
    closes = np.asarray(closes, dtype=float)
    if len(closes) < period + 1:
        return 0.0
    segment = closes[-(period + 1):]
    path = np.abs(np.diff(segment)).sum()
    if path <= 0:
        return 0.0
    return _clamp(float(abs(segment[-1] - segment[0]) / path), 0.0, 1.0)


def trend_r2(closes: np.ndarray, min_bars: int = TREND_R2_MIN_BARS,
             window: int = TREND_R2_WINDOW) -> float:
    """R^2 of an OLS fit of log(price) on the bar index."""
    closes = np.asarray(closes, dtype=float)
    if len(closes) < min_bars:
        return 0.0
    segment = closes[-window:]
    if np.any(segment <= 0):
        return 0.0
    y = np.log(segment)
    ss_tot = float(((y - y.mean()) ** 2).sum())
    if ss_tot < 1e-18:
        return 0.0
    t = np.arange(len(y), dtype=float)
    slope, intercept = np.polyfit(t, y, 1)
    ss_res = float(((y - (slope * t + intercept)) ** 2).sum())
    return _clamp(1.0 - ss_res / ss_tot, 0.0, 1.0)


def rsrs(highs: np.ndarray, lows: np.ndarray, window: int = RSRS_WINDOW,
         prior_mean: float = RSRS_PRIOR_MEAN, prior_std: float = RSRS_PRIOR_STD) -> tuple[float, float]:
    """(beta, z): OLS slope of highs on lows and its z-score against a fixed prior.

    The prior (mean 1.0, std 0.2) stands in for a rolling beta history; z is
    clamped to [-5, 5]. Returns (1.0, 0.0) when undetermined.
    """
    highs = np.asarray(highs, dtype=float)
    lows = np.asarray(lows, dtype=float)
    if len(highs) < window or len(lows) < window:
        return 1.0, 0.0
    h = highs[-window:]
    lo = lows[-window:]
    var_low = float(np.var(lo))
    if var_low < 1e-12:
        return 1.0, 0.0
    beta = float(np.mean((lo - lo.mean()) * (h - h.mean())) / var_low)
    z = _clamp((beta - prior_mean) / prior_std, -RSRS_Z_CAP, RSRS_Z_CAP)
    return beta, z
