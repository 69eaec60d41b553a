"""Single-pass signal generation over a universe of instruments.

For each instrument: fetch one history window, screen it on the trailing year,
predict on the full window, and collect the results. The pass is synchronous;
a soft time budget is checked between instruments and, once exceeded, the
remaining instruments are skipped and the partial result is returned.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field

import pandas as pd

from signal_engine.config import Settings, Thresholds, get_settings
from signal_engine.features import build_feature_set
from signal_engine.history import PriceHistoryProvider, to_frame, trailing_window
from signal_engine.models import (
    Instrument,
    PredictionResult,
    RunResult,
    RunSummary,
    SignalCategory,
    SignalResult,
)
from signal_engine.signals.prediction import PredictionConfig, predict
from signal_engine.signals.ranker import rank_signals, sort_predictions
from signal_engine.signals.screener import compute_screen_metrics, screen_instrument

logger = logging.getLogger(__name__)


@dataclass
class RunFunnel:
    """Counts where instruments dropped out of the pass."""

    total: int = 0
    no_data: int = 0
    below_price_floor: int = 0
    failed: int = 0
    budget_cut: int = 0
    screened: int = 0
    predicted: int = 0
    screen_failures: int = 0
    prediction_failures: int = 0

    @property
    def skipped(self) -> int:
        return self.no_data + self.below_price_floor + self.failed + self.budget_cut

    @property
    def processed(self) -> int:
        return self.total - self.skipped

    def log_summary(self, elapsed_s: float) -> None:
        logger.info(
            "Run funnel: %d input → %d processed in %.1fs | "
            "no_data=%d, price_floor=%d, failed=%d, budget=%d skipped | "
            "screened=%d, predicted=%d, prediction_failures=%d",
            self.total,
            self.processed,
            elapsed_s,
            self.no_data,
            self.below_price_floor,
            self.failed,
            self.budget_cut,
            self.screened,
            self.predicted,
            self.prediction_failures,
        )


@dataclass
class InstrumentOutcome:
    signals: list[SignalResult] = field(default_factory=list)
    prediction: PredictionResult | None = None
    screen_failed: bool = False
    prediction_failed: bool = False


def _coerce_thresholds(thresholds: Thresholds | Mapping | None) -> Thresholds:
    if thresholds is None:
        return Thresholds()
    if isinstance(thresholds, Thresholds):
        return thresholds
    return Thresholds.from_mapping(thresholds)


def _screen(instrument: Instrument, df: pd.DataFrame, thresholds: Thresholds,
            settings: Settings, outcome: InstrumentOutcome) -> None:
    window = trailing_window(df, settings.screening_lookback_days)
    if len(window) < settings.min_screen_bars:
        return
    try:
        metrics = compute_screen_metrics(window)
        outcome.signals = screen_instrument(instrument, metrics, thresholds)
    except Exception:
        logger.exception("Screening failed for %s", instrument.identifier)
        outcome.screen_failed = True


def _predict(instrument: Instrument, df: pd.DataFrame, settings: Settings,
             config: PredictionConfig | None, outcome: InstrumentOutcome) -> None:
    if len(df) < settings.min_prediction_bars:
        return
    try:
        features = build_feature_set(df, instrument.identifier)
        outcome.prediction = predict(instrument, features, config)
    except Exception:
        logger.exception("Prediction failed for %s", instrument.identifier)
        outcome.prediction_failed = True


def run(
    universe: Iterable[Instrument],
    provider: PriceHistoryProvider,
    thresholds: Thresholds | Mapping | None = None,
    time_budget: float | None = None,
    *,
    settings: Settings | None = None,
    clock: Callable[[], float] = time.monotonic,
    prediction_config: PredictionConfig | None = None,
) -> RunResult:
    """Screen and predict every instrument in ``universe``.

    ``thresholds`` may be a Thresholds instance or a raw mapping; invalid keys
    raise pydantic.ValidationError before any instrument is touched.
    ``time_budget`` is in seconds and overrides ``settings.time_budget_s``.
    ``clock`` is called once at the start, once per budget checkpoint and
    once at the end.
    """
    settings = settings or get_settings()
    thresholds = _coerce_thresholds(thresholds)
    budget = settings.time_budget_s if time_budget is None else float(time_budget)
    check_every = max(1, settings.budget_check_every)
    lookback = max(settings.prediction_lookback_days, settings.screening_lookback_days)

    instruments = list(universe)
    funnel = RunFunnel(total=len(instruments))
    all_signals: list[SignalResult] = []
    predictions: list[PredictionResult] = []
    budget_exhausted = False

    start = clock()
    logger.info("Run starting: %d instruments, budget %.1fs", len(instruments), budget)

    for i, instrument in enumerate(instruments):
        if i % check_every == 0:
            elapsed = clock() - start
            if elapsed > budget:
                budget_exhausted = True
                funnel.budget_cut = len(instruments) - i
                logger.warning(
                    "Time budget exhausted after %.1fs: %d of %d instruments not admitted",
                    elapsed, funnel.budget_cut, len(instruments),
                )
                break

        try:
            df = to_frame(provider.get_series(instrument.identifier, lookback), instrument.identifier)
        except Exception:
            logger.exception("History load failed for %s", instrument.identifier)
            funnel.failed += 1
            continue

        if df.empty:
            funnel.no_data += 1
            continue
        latest = float(df["close"].iloc[-1])
        if latest < settings.min_price_floor:
            logger.debug("%s below price floor (%.2f < %.2f)",
                         instrument.identifier, latest, settings.min_price_floor)
            funnel.below_price_floor += 1
            continue

        outcome = InstrumentOutcome()
        _screen(instrument, df, thresholds, settings, outcome)
        _predict(instrument, df, settings, prediction_config, outcome)

        if outcome.screen_failed and outcome.prediction_failed:
            funnel.failed += 1
            continue

        if outcome.screen_failed:
            funnel.screen_failures += 1
        else:
            funnel.screened += 1
        if outcome.prediction_failed:
            funnel.prediction_failures += 1
        elif outcome.prediction is not None:
            funnel.predicted += 1
            predictions.append(outcome.prediction)
        all_signals.extend(outcome.signals)

    elapsed_s = clock() - start
    funnel.log_summary(elapsed_s)

    category_counts = {c.value: 0 for c in SignalCategory}
    for signal in all_signals:
        category_counts[signal.category.value] += 1

    summary = RunSummary(
        total=funnel.total,
        processed=funnel.processed,
        skipped=funnel.skipped,
        prediction_failures=funnel.prediction_failures,
        elapsed_s=round(elapsed_s, 3),
        budget_exhausted=budget_exhausted,
        category_counts=category_counts,
    )
    return RunResult(
        signals=rank_signals(all_signals, thresholds.top_n),
        predictions=sort_predictions(predictions),
        summary=summary,
    )
