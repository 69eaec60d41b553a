"""Six-category stock screener: volume spikes, pullbacks, capitulation,
5-day decliners/climbers and tight-range breakouts.

Independent of the prediction model. Each category has its own
caller-configurable thresholds, scoring function and strategy hint.
"""

from __future__ import annotations

import logging

import numpy as np
import pandas as pd

from signal_engine.config import Thresholds
from signal_engine.features import technical
from signal_engine.history import as_arrays
from signal_engine.models import Instrument, ScreenMetrics, SignalCategory, SignalResult

logger = logging.getLogger(__name__)

FIVE_DAY_CHANGES = 5
MIN_FIVE_DAY_CHANGES = 4


def _clamp(x: float, lo: float = 0.0, hi: float = 1.0) -> float:
    return max(lo, min(hi, x))


def _positive_mean(values: np.ndarray) -> float:
    positive = values[values > 0]
    return float(positive.mean()) if len(positive) else 0.0


def compute_screen_metrics(df: pd.DataFrame) -> ScreenMetrics:
    """Derive the screener's metrics from up to a year of daily bars."""
    opens, highs, lows, closes, volumes = as_arrays(df)
    price = float(closes[-1])
    prev_close = float(closes[-2]) if len(closes) > 1 else price
    abs_move = abs(price - prev_close) / prev_close * 100 if prev_close > 0 else 0.0

    # --- Volume ---
    avg_vol_15 = _positive_mean(volumes[-15:])
    avg_vol_30 = _positive_mean(volumes[-30:-15]) if len(volumes) > 15 else 0.0
    if avg_vol_30 == 0:
        avg_vol_30 = avg_vol_15
    current_vol = float(volumes[-1])
    vol_spike = (current_vol - avg_vol_15) / avg_vol_15 * 100 if avg_vol_15 > 0 else 0.0
    vol_ratio = avg_vol_15 / avg_vol_30 if avg_vol_30 > 0 else 1.0

    # --- 52-week range ---
    high_52w = float(highs.max())
    low_52w = float(lows.min())
    pct_from_high = (price - high_52w) / high_52w * 100 if high_52w > 0 else 0.0
    pct_from_low = (price - low_52w) / low_52w * 100 if low_52w > 0 else 0.0

    # --- 5-day direction ---
    recent = closes[-(FIVE_DAY_CHANGES + 1):]
    changes = np.diff(recent)
    up_days = int((changes > 0).sum())
    down_days = int((changes < 0).sum())
    full_window = len(changes) == FIVE_DAY_CHANGES
    strictly_up = full_window and bool((changes > 0).all())
    strictly_down = full_window and bool((changes < 0).all())
    base = float(recent[0])
    return_5d = (price - base) / base * 100 if base > 0 else 0.0

    # --- Short-term position and candles ---
    high_10 = float(highs[-10:].max())
    low_10 = float(lows[-10:].min())
    oversold = (price - low_10) / (high_10 - low_10) if high_10 - low_10 > 0 else 0.5

    bar_range = float(highs[-1] - lows[-1])
    body_ratio = abs(price - float(opens[-1])) / bar_range if bar_range > 0 else 0.0
    bull_body = (price - float(opens[-1])) / bar_range if bar_range > 0 else 0.0

    # --- Breakout / range ---
    prior_highs = highs[-21:-1]
    prior_high = float(prior_highs.max()) if len(prior_highs) else price
    bo20 = (price - prior_high) / prior_high * 100 if prior_high > 0 else 0.0
    range_20 = float(highs[-20:].max() - lows[-20:].min())
    range_pct = range_20 / price * 100 if price > 0 else 100.0

    atr_value = technical.atr(highs, lows, closes)
    atr_pct = atr_value / price * 100 if price > 0 else 0.0

    # --- Accumulation / distribution over the last 7 bars ---
    acc_days = dist_days = 0
    c7, v7 = closes[-7:], volumes[-7:]
    for i in range(1, len(c7)):
        if v7[i] > v7[i - 1]:
            if c7[i] > c7[i - 1]:
                acc_days += 1
            elif c7[i] < c7[i - 1]:
                dist_days += 1

    return ScreenMetrics(
        close=price,
        prev_close=prev_close,
        abs_price_move=abs_move,
        vol_spike=vol_spike,
        avg_vol_15=avg_vol_15,
        avg_vol_30=avg_vol_30,
        vol_15d_avg_ratio=vol_ratio,
        high_52w=high_52w,
        low_52w=low_52w,
        pct_from_52w_high=pct_from_high,
        pct_from_52w_low=pct_from_low,
        return_5d=return_5d,
        up_days=up_days,
        down_days=down_days,
        strictly_ascending=strictly_up,
        strictly_descending=strictly_down,
        window_5d=len(changes),
        short_term_oversold=oversold,
        body_ratio=body_ratio,
        bull_body=bull_body,
        rsi=technical.rsi(closes[-14:]),
        bo20_score=bo20,
        range_20d_pct=range_pct,
        atr_pct=atr_pct,
        acc_days=acc_days,
        dist_days=dist_days,
        sparkline=tuple(round(float(c), 2) for c in closes[-10:]),
    )


# ── Category rules ─────────────────────────────────────────────────────────
# Each returns (score, strategy_hint) when the instrument qualifies, else None.

def score_volume_spike(m: ScreenMetrics, t: Thresholds) -> tuple[float, str] | None:
    c = t.vol_spike
    if not (m.vol_spike > c.min_vol_spike and m.abs_price_move > c.min_price_move
            and m.close > c.min_price):
        return None
    score = 0.7 * _clamp(m.vol_spike / 500) + 0.3 * _clamp(m.abs_price_move / 10)
    if m.vol_spike > 150 and m.return_5d > 5:
        hint = "High Volume + Strong 5D Up → Breakout Watch"
    else:
        hint = "Unusual Activity — Monitor for direction"
    return score, hint


def score_deep_pullback(m: ScreenMetrics, t: Thresholds) -> tuple[float, str] | None:
    c = t.pullback
    liquid = m.avg_vol_30 > c.min_vol or m.avg_vol_15 > c.min_vol
    if not (m.pct_from_52w_high <= c.max_from_high and liquid and m.close > c.min_price):
        return None
    # Lower = more oversold = ranked first
    score = m.short_term_oversold
    if score < 0.3 and m.vol_spike > 0:
        hint = "Possible Reversal Zone — Oversold + Volume Pickup"
    else:
        hint = "Long-term Value Zone — Low Trader Interest"
    return score, hint


def score_capitulated(m: ScreenMetrics, t: Thresholds) -> tuple[float, str] | None:
    c = t.cap
    if not (m.pct_from_52w_high <= c.max_from_high and m.vol_spike > c.min_vol_spike
            and m.close > c.min_price):
        return None
    score = 0.6 * _clamp(m.vol_spike / 500) + 0.4 * _clamp(abs(m.return_5d) / 20)
    if m.vol_spike > 200:
        hint = "Pump Risk / Short-term Trade Only"
    else:
        hint = "High-Risk Turnaround — Watch for Volume Confirmation"
    return score, hint


def score_five_day_decliner(m: ScreenMetrics, t: Thresholds) -> tuple[float, str] | None:
    c = t.decliner
    falling = m.strictly_descending or m.down_days >= c.min_down_days
    if not (m.window_5d >= MIN_FIVE_DAY_CHANGES and falling
            and m.return_5d < c.max_return and m.close > c.min_price):
        return None
    score = 0.6 * abs(m.return_5d) / 10 + 0.4 * min(m.vol_15d_avg_ratio, 2.0)
    if m.pct_from_52w_low < 5:
        hint = "Breakdown Risk — Avoid Fresh Longs"
    else:
        hint = "Watch for Further Breakdown / Short Setup"
    return score, hint


def score_five_day_climber(m: ScreenMetrics, t: Thresholds) -> tuple[float, str] | None:
    c = t.climber
    rising = m.strictly_ascending or m.up_days >= c.min_up_days
    if not (m.window_5d >= MIN_FIVE_DAY_CHANGES and rising
            and m.return_5d > c.min_return and m.close > c.min_price):
        return None
    bull_body = m.bull_body if m.bull_body > 0 else 0.5
    score = (0.5 * _clamp(m.return_5d / 15)
             + 0.3 * _clamp(m.vol_spike / 300)
             + 0.2 * bull_body)
    if m.vol_spike > 100 and m.return_5d > 5:
        hint = "Momentum Continuation — Strong Volume Confirmation"
    else:
        hint = "Momentum-on-the-Move — Watch for Pullback Entry"
    return score, hint


def score_tight_range_breakout(m: ScreenMetrics, t: Thresholds) -> tuple[float, str] | None:
    c = t.breakout
    if not (m.range_20d_pct < c.max_range and m.bo20_score > c.min_bo_score
            and m.vol_spike > c.min_vol_spike and m.close > c.min_price):
        return None
    tightness = _clamp((c.max_range - m.range_20d_pct) / c.max_range) if c.max_range > 0 else 0.0
    score = (0.5 * tightness
             + 0.3 * _clamp(m.bo20_score / 5)
             + 0.2 * _clamp(m.vol_spike / 200))
    return score, "Tight Range + Breakout → Potential Explosive Move"


CATEGORY_RULES = {
    SignalCategory.VOLUME_SPIKES: score_volume_spike,
    SignalCategory.DEEP_PULLBACKS: score_deep_pullback,
    SignalCategory.CAPITULATED: score_capitulated,
    SignalCategory.FIVE_DAY_DECLINERS: score_five_day_decliner,
    SignalCategory.FIVE_DAY_CLIMBERS: score_five_day_climber,
    SignalCategory.TIGHT_RANGE_BREAKOUTS: score_tight_range_breakout,
}


def screen_instrument(instrument: Instrument, metrics: ScreenMetrics,
                      thresholds: Thresholds | None = None) -> list[SignalResult]:
    """Evaluate every category; an instrument may land in several or none."""
    thresholds = thresholds or Thresholds()
    results = []
    for category, rule in CATEGORY_RULES.items():
        hit = rule(metrics, thresholds)
        if hit is None:
            continue
        score, hint = hit
        results.append(SignalResult(
            instrument=instrument,
            category=category,
            score=round(float(score), 6),
            strategy_hint=hint,
            metrics=metrics,
        ))
    if results:
        logger.debug("%s screened into %s", instrument.identifier,
                     ", ".join(r.category.value for r in results))
    return results
