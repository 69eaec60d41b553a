"""Engine data model: reference data, per-pass snapshots and results.

Everything here is a closed, frozen record. Results are recomputed from scratch
on every orchestration pass and carry no identity between passes.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import date
from enum import Enum


class SignalCategory(str, Enum):
    VOLUME_SPIKES = "volumeSpikes"
    DEEP_PULLBACKS = "deepPullbacks"
    CAPITULATED = "capitulated"
    FIVE_DAY_DECLINERS = "fiveDayDecliners"
    FIVE_DAY_CLIMBERS = "fiveDayClimbers"
    TIGHT_RANGE_BREAKOUTS = "tightRangeBreakouts"


class Action(str, Enum):
    BUY = "Buy"
    WATCH_PULLBACK = "Watch Pullback"
    WATCH = "Watch"
    AVOID = "Avoid"


@dataclass(frozen=True)
class Instrument:
    identifier: str  # ISIN
    name: str
    ticker: str = ""
    sector: str = "Unknown"
    exchange: str = ""


@dataclass(frozen=True)
class PricePoint:
    date: date
    open: float
    high: float
    low: float
    close: float
    volume: float


@dataclass(frozen=True)
class FeatureSet:
    """All indicators for one instrument as of its latest bar."""

    bars: int
    close: float
    ema5: float
    rsi: float
    atr: float
    momentum_3m: float
    volatility: float  # annualized, %
    cagr_3y: float  # %
    volume_spike_ratio: float
    breakout_strength: float
    hurst: float
    fractal_dimension: float
    kalman_slope: float
    kalman_snr: float
    kama_er: float
    trend_r2: float
    rsrs_beta: float
    rsrs_z: float
    donchian_pct: float
    vwap: float
    vwap_distance_atr: float
    mom_z_21: float
    mom_z_42: float
    mom_z_63: float
    skewness: float
    kurtosis: float
    regime_bull: float
    regime_chop: float
    regime_bear: float

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class ScreenMetrics:
    """Simple derived metrics the screener categories are evaluated on."""

    close: float
    prev_close: float
    abs_price_move: float  # % vs previous close
    vol_spike: float  # % current volume above 15-bar mean
    avg_vol_15: float
    avg_vol_30: float
    vol_15d_avg_ratio: float
    high_52w: float
    low_52w: float
    pct_from_52w_high: float
    pct_from_52w_low: float
    return_5d: float
    up_days: int
    down_days: int
    strictly_ascending: bool
    strictly_descending: bool
    window_5d: int  # daily changes available for the 5-day checks
    short_term_oversold: float
    body_ratio: float
    bull_body: float
    rsi: float
    bo20_score: float
    range_20d_pct: float
    atr_pct: float
    acc_days: int
    dist_days: int
    sparkline: tuple[float, ...] = ()

    def to_dict(self) -> dict:
        d = asdict(self)
        d["sparkline"] = list(self.sparkline)
        return d


@dataclass(frozen=True)
class SignalResult:
    instrument: Instrument
    category: SignalCategory
    score: float
    strategy_hint: str
    metrics: ScreenMetrics

    def to_dict(self) -> dict:
        return {
            "isin": self.instrument.identifier,
            "name": self.instrument.name,
            "ticker": self.instrument.ticker,
            "sector": self.instrument.sector,
            "category": self.category.value,
            "score": self.score,
            "strategy_hint": self.strategy_hint,
            "metrics": self.metrics.to_dict(),
        }


@dataclass(frozen=True)
class PredictionResult:
    instrument: Instrument
    probability12: float
    expected_return: float  # % over 3 months
    filters_pass: bool
    filter_flags: tuple[str, ...]
    action: Action
    current_price: float
    volatility: float  # annualized, %
    regime_bull: float
    kalman_snr: float
    logit_score: float
    ensemble_score: float

    def to_dict(self) -> dict:
        return {
            "isin": self.instrument.identifier,
            "name": self.instrument.name,
            "ticker": self.instrument.ticker,
            "probability12": self.probability12,
            "expected_return": self.expected_return,
            "filters_pass": self.filters_pass,
            "filter_flags": list(self.filter_flags),
            "action": self.action.value,
            "current_price": self.current_price,
            "volatility": self.volatility,
            "regime_bull": self.regime_bull,
            "kalman_snr": self.kalman_snr,
            "logit_score": self.logit_score,
            "ensemble_score": self.ensemble_score,
        }


@dataclass(frozen=True)
class RunSummary:
    total: int
    processed: int
    skipped: int
    prediction_failures: int
    elapsed_s: float
    budget_exhausted: bool
    category_counts: dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class RunResult:
    signals: dict[SignalCategory, list[SignalResult]]
    predictions: list[PredictionResult]
    summary: RunSummary

    def to_dict(self) -> dict:
        return {
            "signals": {
                cat.value: [s.to_dict() for s in results]
                for cat, results in self.signals.items()
            },
            "predictions": [p.to_dict() for p in self.predictions],
            "summary": self.summary.to_dict(),
        }
