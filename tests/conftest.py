"""Shared test fixtures."""

from __future__ import annotations

from datetime import date, timedelta

import numpy as np
import pandas as pd
import pytest


def make_ohlcv(closes, volumes=None, start: date = date(2022, 1, 3),
               highs=None, lows=None, opens=None) -> pd.DataFrame:
    """Build a daily OHLCV frame; high/low/open default to the close."""
    closes = np.asarray(closes, dtype=float)
    n = len(closes)
    if volumes is None:
        volumes = np.full(n, 10_000.0)
    return pd.DataFrame({
        "date": [start + timedelta(days=i) for i in range(n)],
        "open": closes if opens is None else np.asarray(opens, dtype=float),
        "high": closes if highs is None else np.asarray(highs, dtype=float),
        "low": closes if lows is None else np.asarray(lows, dtype=float),
        "close": closes,
        "volume": np.asarray(volumes, dtype=float),
    })


def _random_ohlcv(seed: int, n: int, start: date) -> pd.DataFrame:
    np.random.seed(seed)
    dates = [start + timedelta(days=i) for i in range(n)]
    close = 100 + np.cumsum(np.random.randn(n) * 1.2)
    close = np.maximum(close, 40)
    df = pd.DataFrame({
        "date": dates,
        "open": close + np.random.randn(n) * 0.5,
        "high": close + abs(np.random.randn(n)) * 1.0,
        "low": close - abs(np.random.randn(n)) * 1.0,
        "close": close,
        "volume": np.random.randint(500_000, 5_000_000, n).astype(float),
    })
    # Ensure high >= close >= low
    df["high"] = df[["open", "high", "close"]].max(axis=1)
    df["low"] = df[["open", "low", "close"]].min(axis=1)
    return df


@pytest.fixture
def sample_ohlcv() -> pd.DataFrame:
    """100 days of synthetic OHLCV data."""
    return _random_ohlcv(42, 100, date(2025, 1, 2))


@pytest.fixture
def sample_ohlcv_long() -> pd.DataFrame:
    """800 days of synthetic OHLCV data, enough for every feature."""
    return _random_ohlcv(77, 800, date(2022, 1, 3))


@pytest.fixture
def flat_ohlcv() -> pd.DataFrame:
    """800 bars at a constant price of 100 and volume of 1000."""
    return make_ohlcv(np.full(800, 100.0), np.full(800, 1000.0))


@pytest.fixture
def rising_ohlcv() -> pd.DataFrame:
    """60 bars compounding +1% per bar."""
    closes = 100 * 1.01 ** np.arange(60)
    return make_ohlcv(closes, opens=closes / 1.005, highs=closes * 1.002, lows=closes / 1.008)


@pytest.fixture
def falling_ohlcv() -> pd.DataFrame:
    """60 bars compounding -1% per bar."""
    closes = 100 * 0.99 ** np.arange(60)
    return make_ohlcv(closes, opens=closes * 1.005, highs=closes * 1.008, lows=closes / 1.002)


@pytest.fixture
def trending_ohlcv() -> pd.DataFrame:
    """800 bars of noisy uptrend (upward drift, small noise)."""
    np.random.seed(10)
    n = 800
    log_close = np.log(50) + np.cumsum(0.002 + np.random.randn(n) * 0.002)
    close = np.exp(log_close)
    df = make_ohlcv(
        close,
        volumes=np.random.randint(800_000, 1_200_000, n).astype(float),
        opens=close * (1 - 0.001),
        highs=close * 1.004,
        lows=close * 0.994,
    )
    return df


@pytest.fixture
def ohlcv_factory():
    """The make_ohlcv builder, for tests that shape their own series."""
    return make_ohlcv
