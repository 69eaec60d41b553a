"""Tests for the blended 3-month prediction model."""

import math
from dataclasses import replace

import pytest

from signal_engine.features import build_feature_set
from signal_engine.models import Action, Instrument
from signal_engine.signals.prediction import (
    PredictionConfig,
    ensemble_score,
    expected_return,
    logit_score,
    normalize_features,
    predict,
)

INSTRUMENT = Instrument(identifier="INE000B01001", name="Flat Co")


@pytest.fixture
def flat_features(flat_ohlcv):
    return build_feature_set(flat_ohlcv)


@pytest.fixture
def strong_features(flat_features):
    return replace(
        flat_features,
        kalman_slope=0.5, kalman_snr=2.0, trend_r2=0.9, kama_er=0.7, hurst=0.7,
        momentum_3m=0.8, breakout_strength=1.0, donchian_pct=0.95, rsrs_z=1.5,
        volume_spike_ratio=1.6, vwap_distance_atr=0.5, cagr_3y=20.0,
        regime_bull=0.8, regime_chop=0.15, regime_bear=0.05, volatility=25.0,
    )


def test_flat_baseline(flat_features):
    norm = normalize_features(flat_features)
    z = 0.04 * (1 / 3)
    expected_logit = 1 / (1 + math.exp(-5 * (z - 0.5)))

    assert logit_score(norm) == pytest.approx(expected_logit)
    assert ensemble_score(norm) == pytest.approx(0.25)

    result = predict(INSTRUMENT, flat_features)
    assert result.probability12 == pytest.approx(0.5 * expected_logit + 0.125, abs=1e-4)
    assert result.expected_return == -1.2
    assert result.action == Action.AVOID
    assert not result.filters_pass


def test_normalized_ranges(sample_ohlcv_long):
    norm = normalize_features(build_feature_set(sample_ohlcv_long))
    for name, value in norm.items():
        assert -1.0 <= value <= 1.0, name


def test_strong_setup_beats_baseline(flat_features, strong_features):
    base = predict(INSTRUMENT, flat_features)
    strong = predict(INSTRUMENT, strong_features)
    assert strong.probability12 > base.probability12
    assert strong.ensemble_score > 0.25
    assert strong.action == Action.BUY


def test_bear_regime_penalized(flat_features):
    bear = replace(flat_features, regime_bull=0.05, regime_chop=0.15, regime_bear=0.8)
    assert ensemble_score(normalize_features(bear)) == pytest.approx(0.10)


def test_probability_bounded_on_extremes(flat_features):
    extreme = replace(
        flat_features, kalman_slope=1e9, kalman_snr=1e9, rsi=100.0, volatility=1e6,
        kurtosis=10.0, cagr_3y=1e6, rsrs_z=5.0, volume_spike_ratio=1e9,
    )
    result = predict(INSTRUMENT, extreme)
    assert 0.0 <= result.probability12 <= 1.0
    assert 0.0 <= result.ensemble_score <= 1.0


def test_expected_return():
    assert expected_return(0.0) == -5.0
    assert expected_return(1.0) == 18.0
    assert expected_return(0.5) == 6.5


def test_custom_blend(flat_features):
    config = PredictionConfig(logit_blend=0.0)
    result = predict(INSTRUMENT, flat_features, config)
    assert result.probability12 == pytest.approx(0.25)
    assert result.expected_return == round(0.25 * 18 + 0.75 * -5, 1)


def test_prediction_to_dict(flat_features):
    d = predict(INSTRUMENT, flat_features).to_dict()
    assert d["isin"] == "INE000B01001"
    assert d["action"] == "Avoid"
    assert d["filter_flags"] == ["Regime", "Trend Quality", "Energy"]
