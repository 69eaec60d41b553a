"""Tests for technical feature functions and their neutral fallbacks."""

import numpy as np
import pytest

from signal_engine.features.technical import (
    annualized_volatility,
    atr,
    breakout_strength,
    cagr_3y,
    daily_returns,
    donchian_pct,
    ema,
    momentum_3m,
    normalized_momentum,
    rsi,
    skew_kurtosis,
    volume_spike_ratio,
    vwap,
)


def test_rsi_short_series_is_neutral():
    assert rsi(np.array([100.0, 101.0, 102.0])) == 50.0


def test_rsi_flat_series_is_neutral():
    assert rsi(np.full(30, 100.0)) == 50.0


def test_rsi_only_gains_is_100():
    assert rsi(np.arange(100.0, 130.0)) == 100.0


def test_rsi_only_losses_is_0():
    assert rsi(np.arange(130.0, 100.0, -1.0)) == 0.0


def test_rsi_bounded(sample_ohlcv):
    closes = sample_ohlcv["close"].to_numpy()
    for end in range(12, len(closes)):
        value = rsi(closes[:end])
        assert 0.0 <= value <= 100.0


def test_atr_short_series_is_zero():
    closes = np.full(10, 100.0)
    assert atr(closes + 1, closes - 1, closes) == 0.0


def test_atr_constant_range():
    closes = np.full(30, 100.0)
    assert atr(closes + 1, closes - 1, closes) == pytest.approx(2.0)


def test_ema_short_series_returns_last_value():
    assert ema(np.array([1.0, 2.0, 3.0]), 5) == 3.0
    assert ema(np.array([]), 5) == 0.0


def test_ema_of_constant_is_constant():
    assert ema(np.full(50, 42.0), 10) == pytest.approx(42.0)


def test_momentum_flat_is_zero(flat_ohlcv):
    assert momentum_3m(flat_ohlcv["close"].to_numpy(), flat_ohlcv["volume"].to_numpy()) == 0.0


def test_momentum_price_leg_saturates_at_fifty_percent():
    closes = np.linspace(100.0, 150.0, 63)
    volumes = np.full(63, 1000.0)
    assert momentum_3m(closes, volumes) == pytest.approx(0.7)


def test_momentum_bounded(sample_ohlcv_long):
    value = momentum_3m(sample_ohlcv_long["close"].to_numpy(), sample_ohlcv_long["volume"].to_numpy())
    assert 0.0 <= value <= 1.0


def test_volatility_short_and_flat_are_zero(flat_ohlcv):
    assert annualized_volatility(np.full(10, 100.0)) == 0.0
    assert annualized_volatility(flat_ohlcv["close"].to_numpy()) == 0.0


def test_volatility_positive_on_noise(sample_ohlcv):
    assert annualized_volatility(sample_ohlcv["close"].to_numpy()) > 0


def test_cagr_three_years():
    closes = np.linspace(100.0, 133.1, 756)
    assert cagr_3y(closes) == pytest.approx(10.0, abs=1e-6)


def test_cagr_short_series_is_zero():
    assert cagr_3y(np.linspace(100.0, 200.0, 300)) == 0.0


def test_volume_spike_ratio():
    volumes = np.concatenate([np.full(48, 1000.0), np.full(15, 2000.0)])
    assert volume_spike_ratio(volumes) == pytest.approx(2000 / (78000 / 63))


def test_volume_spike_ratio_fallbacks():
    assert volume_spike_ratio(np.full(20, 1000.0)) == 1.0
    assert volume_spike_ratio(np.zeros(100)) == 1.0


def test_breakout_strength_aligned_uptrend():
    closes = 100 * 1.01 ** np.arange(120)
    assert breakout_strength(closes) == pytest.approx(1.0)


def test_breakout_strength_flat_and_short(flat_ohlcv, rising_ohlcv):
    assert breakout_strength(flat_ohlcv["close"].to_numpy()) == 0.0
    assert breakout_strength(rising_ohlcv["close"].to_numpy()) == 0.0  # < 100 bars


def test_donchian_pct():
    closes = np.linspace(100.0, 200.0, 80)
    assert donchian_pct(closes, closes, closes) == pytest.approx(1.0)
    flat = np.full(80, 100.0)
    assert donchian_pct(flat, flat, flat) == 0.5
    assert donchian_pct(closes[:10], closes[:10], closes[:10]) == 0.5


def test_vwap_equal_volume_is_mean_typical_price():
    closes = np.arange(1.0, 21.0)
    value = vwap(closes + 1, closes - 1, closes, np.full(20, 500.0))
    assert value == pytest.approx(closes.mean())


def test_vwap_short_series_returns_last_close():
    closes = np.array([10.0, 11.0, 12.0])
    assert vwap(closes, closes, closes, np.ones(3)) == 12.0


def test_normalized_momentum_flat_is_zero(flat_ohlcv):
    assert normalized_momentum(flat_ohlcv["close"].to_numpy(), 21) == 0.0
    assert normalized_momentum(np.full(5, 1.0), 21) == 0.0


def test_skew_kurtosis_flat_and_bounds(flat_ohlcv, sample_ohlcv_long):
    assert skew_kurtosis(flat_ohlcv["close"].to_numpy()) == (0.0, 0.0)
    skew, kurt = skew_kurtosis(sample_ohlcv_long["close"].to_numpy())
    assert np.isfinite(skew)
    assert -3.0 <= kurt <= 10.0


def test_skew_kurtosis_are_population_moments(sample_ohlcv_long):
    closes = sample_ohlcv_long["close"].to_numpy()
    returns = daily_returns(closes)[-60:]
    dev = returns - returns.mean()
    m2 = np.mean(dev ** 2)
    skew, kurt = skew_kurtosis(closes)
    assert skew == pytest.approx(np.mean(dev ** 3) / m2 ** 1.5)
    assert kurt == pytest.approx(min(10.0, max(-3.0, np.mean(dev ** 4) / m2 ** 2 - 3.0)))


def test_single_jump_is_right_skewed_and_clamped():
    closes = np.array([100.0] * 20 + [110.0] * 21)
    skew, kurt = skew_kurtosis(closes)
    assert skew > 3
    assert kurt == 10.0


def test_daily_returns_skips_non_positive_base():
    returns = daily_returns(np.array([0.0, 10.0, 11.0]))
    assert returns[0] == 0.0
    assert returns[1] == pytest.approx(0.1)
