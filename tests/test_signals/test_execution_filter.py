"""Tests for the execution-readiness gate and its action cascade."""

from dataclasses import replace

import pytest

from signal_engine.features import build_feature_set
from signal_engine.models import Action
from signal_engine.signals.execution_filter import (
    ENERGY,
    OVERHEAT,
    REGIME,
    TREND_QUALITY,
    action_for,
    evaluate_filters,
)


@pytest.fixture
def clean_features(flat_ohlcv):
    """Features that pass every rule."""
    return replace(
        build_feature_set(flat_ohlcv),
        regime_bull=0.7, regime_chop=0.2, regime_bear=0.1,
        kalman_snr=1.0, kama_er=0.5, trend_r2=0.5,
        volume_spike_ratio=1.5, vwap_distance_atr=0.5,
    )


def test_action_cascade():
    assert action_for(()) == Action.BUY
    assert action_for((OVERHEAT,)) == Action.WATCH_PULLBACK
    assert action_for((ENERGY,)) == Action.WATCH
    assert action_for((ENERGY, OVERHEAT)) == Action.WATCH
    assert action_for((TREND_QUALITY, ENERGY)) == Action.AVOID
    assert action_for((REGIME,)) == Action.AVOID
    assert action_for((REGIME, OVERHEAT)) == Action.AVOID


def test_clean_features_buy(clean_features):
    result = evaluate_filters(clean_features)
    assert result.flags == ()
    assert result.passed
    assert result.action == Action.BUY


def test_overheat_is_warning_only(clean_features):
    fs = replace(clean_features, rsi=80.0, donchian_pct=0.97)
    result = evaluate_filters(fs)
    assert result.flags == (OVERHEAT,)
    assert result.passed
    assert result.action == Action.WATCH_PULLBACK


def test_overheat_needs_close_above_ema5(clean_features):
    fs = replace(clean_features, rsi=80.0, donchian_pct=0.97, ema5=clean_features.close + 1)
    assert OVERHEAT not in evaluate_filters(fs).flags


def test_single_energy_flag_is_watch(clean_features):
    result = evaluate_filters(replace(clean_features, volume_spike_ratio=1.0))
    assert result.flags == (ENERGY,)
    assert not result.passed
    assert result.action == Action.WATCH


def test_negative_vwap_distance_is_energy_flag(clean_features):
    result = evaluate_filters(replace(clean_features, vwap_distance_atr=-0.1))
    assert result.flags == (ENERGY,)


def test_chop_with_strong_rsrs_passes_regime(clean_features):
    fs = replace(clean_features, regime_bull=0.2, regime_chop=0.6, regime_bear=0.2, rsrs_z=1.5)
    assert REGIME not in evaluate_filters(fs).flags


def test_regime_failure_alone_is_avoid(clean_features):
    fs = replace(clean_features, regime_bull=0.2, regime_chop=0.3, regime_bear=0.5)
    result = evaluate_filters(fs)
    assert result.flags == (REGIME,)
    assert result.action == Action.AVOID


def test_flat_series_flags(flat_ohlcv):
    result = evaluate_filters(build_feature_set(flat_ohlcv))
    assert result.flags == (REGIME, TREND_QUALITY, ENERGY)
    assert result.action == Action.AVOID
    assert not result.passed
