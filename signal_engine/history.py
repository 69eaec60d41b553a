"""Price history collaborator: provider protocol plus OHLCV frame normalization.

The engine never fetches or mutates stored data itself. A provider hands it an
ordered daily series per instrument and the engine consumes whatever exists.
"""

from __future__ import annotations

import logging
from datetime import timedelta
from pathlib import Path
from typing import Protocol, Sequence

import numpy as np
import pandas as pd

from signal_engine.errors import SeriesOrderError
from signal_engine.models import Instrument, PricePoint

logger = logging.getLogger(__name__)

OHLCV_COLUMNS = ["date", "open", "high", "low", "close", "volume"]

SeriesLike = pd.DataFrame | Sequence[PricePoint] | None


class PriceHistoryProvider(Protocol):
    def get_series(self, instrument_id: str, lookback_days: int) -> SeriesLike:
        """Return up to ``lookback_days`` calendar days of daily bars, oldest first."""
        ...


def to_frame(series: SeriesLike, instrument_id: str | None = None) -> pd.DataFrame:
    """Normalize a provider result to an OHLCV DataFrame.

    Missing open/high/low fall back to close, missing volume to 0. Rows without
    a usable close are dropped, but a series whose latest bar has no usable
    close normalizes to an empty frame. Raises SeriesOrderError when dates are
    not strictly increasing.
    """
    if series is None:
        return pd.DataFrame(columns=OHLCV_COLUMNS)

    if isinstance(series, pd.DataFrame):
        df = series.copy()
    else:
        df = pd.DataFrame(
            [(p.date, p.open, p.high, p.low, p.close, p.volume) for p in series],
            columns=OHLCV_COLUMNS,
        )

    if df.empty:
        return pd.DataFrame(columns=OHLCV_COLUMNS)

    df.columns = [str(c).lower() for c in df.columns]
    if "date" not in df.columns or "close" not in df.columns:
        raise SeriesOrderError("series needs at least date and close columns", instrument_id)

    df["date"] = pd.to_datetime(df["date"])
    df["close"] = pd.to_numeric(df["close"], errors="coerce")
    latest_close = df["close"].iloc[-1]
    if pd.isna(latest_close) or latest_close <= 0:
        logger.debug("Latest bar for %s has no usable close", instrument_id)
        return pd.DataFrame(columns=OHLCV_COLUMNS)
    df = df[df["close"].notna() & (df["close"] > 0)].copy()
    for col in ("open", "high", "low"):
        if col not in df.columns:
            df[col] = df["close"]
        df[col] = pd.to_numeric(df[col], errors="coerce").fillna(df["close"])
    if "volume" not in df.columns:
        df["volume"] = 0.0
    df["volume"] = pd.to_numeric(df["volume"], errors="coerce").fillna(0.0).astype(float)

    df = df[OHLCV_COLUMNS].reset_index(drop=True)
    if len(df) > 1 and not (df["date"].diff().iloc[1:] > pd.Timedelta(0)).all():
        raise SeriesOrderError("dates are not strictly increasing", instrument_id)
    return df


def trailing_window(df: pd.DataFrame, days: int) -> pd.DataFrame:
    """Rows within ``days`` calendar days of the latest bar (inclusive)."""
    if df.empty:
        return df
    cutoff = df["date"].iloc[-1] - timedelta(days=days)
    return df[df["date"] >= cutoff].reset_index(drop=True)


class InMemoryPriceHistory:
    """Provider over pre-loaded frames, keyed by instrument id."""

    def __init__(self, frames: dict[str, pd.DataFrame] | None = None):
        self._frames: dict[str, pd.DataFrame] = {}
        for instrument_id, df in (frames or {}).items():
            self.add(instrument_id, df)

    def add(self, instrument_id: str, df: pd.DataFrame) -> None:
        self._frames[instrument_id] = to_frame(df, instrument_id)

    def get_series(self, instrument_id: str, lookback_days: int) -> pd.DataFrame | None:
        df = self._frames.get(instrument_id)
        if df is None:
            return None
        return trailing_window(df, lookback_days)


class CsvDirectoryPriceHistory:
    """Provider reading ``<instrument_id>.csv`` files with OHLCV columns."""

    def __init__(self, directory: str | Path):
        self.directory = Path(directory)

    def get_series(self, instrument_id: str, lookback_days: int) -> pd.DataFrame | None:
        path = self.directory / f"{instrument_id}.csv"
        if not path.exists():
            logger.debug("No price file for %s at %s", instrument_id, path)
            return None
        df = to_frame(pd.read_csv(path), instrument_id)
        return trailing_window(df, lookback_days)


def load_universe_csv(path: str | Path) -> list[Instrument]:
    """Read instruments from a CSV with an ``isin`` (or ``identifier``) column."""
    df = pd.read_csv(path, dtype=str).fillna("")
    df.columns = [c.strip().lower() for c in df.columns]
    id_col = "isin" if "isin" in df.columns else "identifier"
    instruments = []
    for row in df.to_dict("records"):
        identifier = row.get(id_col, "").strip()
        if not identifier:
            continue
        instruments.append(Instrument(
            identifier=identifier,
            name=row.get("name") or row.get("stockname") or identifier,
            ticker=row.get("ticker") or row.get("symbol") or "",
            sector=row.get("sector") or "Unknown",
            exchange=row.get("exchange") or "",
        ))
    logger.info("Loaded %d instruments from %s", len(instruments), path)
    return instruments


def as_arrays(df: pd.DataFrame) -> tuple[np.ndarray, np.ndarray, np.ndarray, np.ndarray, np.ndarray]:
    """(open, high, low, close, volume) as float arrays."""
    return tuple(df[c].to_numpy(dtype=float) for c in ("open", "high", "low", "close", "volume"))  # type: ignore[return-value]

