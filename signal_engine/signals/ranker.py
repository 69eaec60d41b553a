"""Per-category ranking and truncation, plus the prediction shortlist.

Every category sorts by score descending except Deep Pullbacks, where a lower
score means more oversold and ranks first. Ties break on instrument id so
reruns over identical inputs are byte-identical.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from signal_engine.models import PredictionResult, SignalCategory, SignalResult

logger = logging.getLogger(__name__)

DEFAULT_TOP_N = 6
ASCENDING_CATEGORIES = frozenset({SignalCategory.DEEP_PULLBACKS})


def _sort_key(category: SignalCategory):
    if category in ASCENDING_CATEGORIES:
        return lambda s: (s.score, s.instrument.identifier)
    return lambda s: (-s.score, s.instrument.identifier)


def group_by_category(signals: Iterable[SignalResult]) -> dict[SignalCategory, list[SignalResult]]:
    """Bucket signals by category; every category is present, possibly empty."""
    buckets: dict[SignalCategory, list[SignalResult]] = {c: [] for c in SignalCategory}
    for signal in signals:
        buckets[signal.category].append(signal)
    return buckets


def rank_signals(
    signals: Iterable[SignalResult],
    top_n: int = DEFAULT_TOP_N,
) -> dict[SignalCategory, list[SignalResult]]:
    """Sort each category in its own direction and keep the top N."""
    ranked = {}
    for category, bucket in group_by_category(signals).items():
        ordered = sorted(bucket, key=_sort_key(category))
        ranked[category] = ordered[:top_n]
        if len(bucket) > top_n:
            logger.debug("%s: %d hits, keeping top %d", category.value, len(bucket), top_n)
    return ranked


def sort_predictions(predictions: Iterable[PredictionResult]) -> list[PredictionResult]:
    return sorted(predictions, key=lambda p: (-p.probability12, p.instrument.identifier))


def rank_predictions(
    predictions: Iterable[PredictionResult],
    min_probability: float = 0.40,
) -> list[PredictionResult]:
    """Shortlist: probability12 >= min_probability, best first.

    Sorted by probability, then expected return, then instrument id.
    """
    shortlist = [p for p in predictions if p.probability12 >= min_probability]
    shortlist.sort(key=lambda p: (-p.probability12, -p.expected_return, p.instrument.identifier))
    logger.info("Prediction shortlist: %d candidates at p12 >= %.2f", len(shortlist), min_probability)
    return shortlist
