"""Execution-readiness gate for a prediction.

Each rule adds a flag independently; the action label is then read off the
flags with a fixed priority cascade.
"""

from __future__ import annotations

from dataclasses import dataclass

from signal_engine.models import Action, FeatureSet

REGIME = "Regime"
TREND_QUALITY = "Trend Quality"
ENERGY = "Energy"
OVERHEAT = "Overheat"

WARNING_FLAGS = frozenset({OVERHEAT})
HARD_FAIL_FLAGS = frozenset({REGIME})

# Rule constants
MIN_REGIME_BULL = 0.55
MIN_CHOP_FOR_RSRS = 0.5
MIN_RSRS_Z_IN_CHOP = 1.0
MIN_KAMA_ER = 0.4
MIN_TREND_R2 = 0.3
MIN_VOLUME_SPIKE = 1.3
OVERHEAT_RSI = 78.0
OVERHEAT_DONCHIAN = 0.95


@dataclass(frozen=True)
class FilterResult:
    passed: bool
    flags: tuple[str, ...]
    action: Action


def action_for(flags: tuple[str, ...] | list[str]) -> Action:
    """Map flags to an action. Order matters: earlier branches win."""
    disqualifying = [f for f in flags if f not in WARNING_FLAGS]
    if any(f in HARD_FAIL_FLAGS for f in disqualifying):
        return Action.AVOID
    if len(disqualifying) >= 2:
        return Action.AVOID
    if len(disqualifying) == 1:
        return Action.WATCH
    if OVERHEAT in flags:
        return Action.WATCH_PULLBACK
    return Action.BUY


def evaluate_filters(features: FeatureSet) -> FilterResult:
    """Run the regime, trend-quality, energy and overheat rules."""
    flags: list[str] = []

    regime_ok = features.regime_bull >= MIN_REGIME_BULL or (
        features.regime_chop > MIN_CHOP_FOR_RSRS and features.rsrs_z > MIN_RSRS_Z_IN_CHOP
    )
    if not regime_ok:
        flags.append(REGIME)

    if (features.kalman_snr <= 0
            or features.kama_er < MIN_KAMA_ER
            or features.trend_r2 < MIN_TREND_R2):
        flags.append(TREND_QUALITY)

    if features.volume_spike_ratio < MIN_VOLUME_SPIKE or features.vwap_distance_atr < 0:
        flags.append(ENERGY)

    # Warning only: stretched but still tradeable on a pullback.
    if (features.rsi > OVERHEAT_RSI
            and features.donchian_pct > OVERHEAT_DONCHIAN
            and features.close >= features.ema5):
        flags.append(OVERHEAT)

    passed = all(f in WARNING_FLAGS for f in flags)
    return FilterResult(passed=passed, flags=tuple(flags), action=action_for(flags))
