"""Tests for per-category ranking and the prediction shortlist."""

import numpy as np
import pytest

from signal_engine.models import Action, Instrument, PredictionResult, SignalCategory, SignalResult
from signal_engine.signals.ranker import rank_predictions, rank_signals, sort_predictions
from signal_engine.signals.screener import compute_screen_metrics


@pytest.fixture
def metrics(ohlcv_factory):
    return compute_screen_metrics(ohlcv_factory(np.full(30, 100.0)))


def _signal(isin, category, score, metrics):
    return SignalResult(
        instrument=Instrument(identifier=isin, name=isin),
        category=category,
        score=score,
        strategy_hint="",
        metrics=metrics,
    )


def _prediction(isin, p12, exp_ret=0.0):
    return PredictionResult(
        instrument=Instrument(identifier=isin, name=isin),
        probability12=p12, expected_return=exp_ret, filters_pass=False,
        filter_flags=(), action=Action.WATCH, current_price=100.0, volatility=20.0,
        regime_bull=0.5, kalman_snr=0.0, logit_score=p12, ensemble_score=p12,
    )


def test_every_category_present_even_when_empty():
    ranked = rank_signals([])
    assert set(ranked) == set(SignalCategory)
    assert all(v == [] for v in ranked.values())


def test_descending_order_and_truncation(metrics):
    signals = [_signal(f"ID{i:02d}", SignalCategory.VOLUME_SPIKES, i / 10, metrics) for i in range(10)]
    ranked = rank_signals(signals, top_n=6)[SignalCategory.VOLUME_SPIKES]
    assert len(ranked) == 6
    assert [s.score for s in ranked] == [0.9, 0.8, 0.7, 0.6, 0.5, 0.4]


def test_deep_pullbacks_sort_ascending(metrics):
    signals = [
        _signal("A", SignalCategory.DEEP_PULLBACKS, 0.8, metrics),
        _signal("B", SignalCategory.DEEP_PULLBACKS, 0.1, metrics),
        _signal("C", SignalCategory.DEEP_PULLBACKS, 0.4, metrics),
    ]
    ranked = rank_signals(signals)[SignalCategory.DEEP_PULLBACKS]
    assert [s.instrument.identifier for s in ranked] == ["B", "C", "A"]


def test_ties_break_on_instrument_id(metrics):
    signals = [
        _signal("ZZZ", SignalCategory.CAPITULATED, 0.5, metrics),
        _signal("AAA", SignalCategory.CAPITULATED, 0.5, metrics),
        _signal("MMM", SignalCategory.CAPITULATED, 0.5, metrics),
    ]
    ranked = rank_signals(signals)[SignalCategory.CAPITULATED]
    assert [s.instrument.identifier for s in ranked] == ["AAA", "MMM", "ZZZ"]


def test_categories_ranked_independently(metrics):
    signals = [
        _signal("A", SignalCategory.FIVE_DAY_CLIMBERS, 0.3, metrics),
        _signal("A", SignalCategory.VOLUME_SPIKES, 0.9, metrics),
    ]
    ranked = rank_signals(signals)
    assert len(ranked[SignalCategory.FIVE_DAY_CLIMBERS]) == 1
    assert len(ranked[SignalCategory.VOLUME_SPIKES]) == 1


def test_sort_predictions():
    preds = [_prediction("B", 0.3), _prediction("A", 0.3), _prediction("C", 0.7)]
    assert [p.instrument.identifier for p in sort_predictions(preds)] == ["C", "A", "B"]


def test_rank_predictions_applies_min_probability():
    preds = [
        _prediction("LOW", 0.2, -1.0),
        _prediction("MID", 0.45, 5.0),
        _prediction("MID2", 0.45, 7.0),
        _prediction("HIGH", 0.8, 12.0),
    ]
    shortlist = rank_predictions(preds, min_probability=0.40)
    assert [p.instrument.identifier for p in shortlist] == ["HIGH", "MID2", "MID"]
