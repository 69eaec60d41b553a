"""Smart allocation: splits an investment amount across the best predictions.

Three strategies trade return against stability:
  - aggressive: low thresholds, mild volatility tilt
  - balanced:   middle ground (default)
  - defensive:  higher probability bar, strong low-volatility tilt

Candidates are scored with a Sharpe-like risk-adjusted score, the top three
are kept and weighted by inverse volatility. Amounts are whole units and
always sum exactly to the requested amount.
"""

from __future__ import annotations

import logging
import math
from dataclasses import asdict, dataclass, field

from signal_engine.models import PredictionResult

logger = logging.getLogger(__name__)

QUARTERLY_RISK_FREE = 0.06 / 4
MAX_POSITIONS = 3
PROJECTION_CAP = (-0.10, 0.20)
PROJECTION_THRESHOLD = 0.12
PROJECTION_DOWNSIDE_FLOOR = -0.05


class AllocationError(ValueError):
    """Raised when no valid allocation can be produced."""


@dataclass(frozen=True)
class StrategyConfig:
    """Per-strategy filters and scoring weights."""

    min_return: float           # expected 3M return, %
    min_probability: float
    return_weight: float
    risk_weight: float
    volatility_penalty: float
    risk_lambda: float          # scales the regime-uncertainty penalty
    volatility_exponent: float  # inverse-vol weighting power


STRATEGIES = {
    "aggressive": StrategyConfig(
        min_return=3.0, min_probability=0.35, return_weight=0.6, risk_weight=0.2,
        volatility_penalty=0.3, risk_lambda=0.2, volatility_exponent=0.5,
    ),
    "balanced": StrategyConfig(
        min_return=5.0, min_probability=0.45, return_weight=0.5, risk_weight=0.3,
        volatility_penalty=0.5, risk_lambda=0.5, volatility_exponent=1.0,
    ),
    "defensive": StrategyConfig(
        min_return=4.0, min_probability=0.50, return_weight=0.35, risk_weight=0.45,
        volatility_penalty=0.7, risk_lambda=0.8, volatility_exponent=1.5,
    ),
}


@dataclass
class Allocation:
    rank: int
    isin: str
    name: str
    ticker: str
    expected_return: float      # %
    probability12: float
    volatility: float           # annualized, %
    regime_bull: float
    risk_adjusted_score: float
    weight_pct: float
    amount: int
    projected_return_pct: float
    projected_value: int
    confidence: str


@dataclass
class AllocationPlan:
    strategy: str
    investment_amount: int
    allocations: list[Allocation] = field(default_factory=list)
    total_amount: int = 0
    total_projected_value: int = 0
    total_projected_return_pct: float = 0.0
    avg_volatility: float = 0.0

    def to_dict(self) -> dict:
        return asdict(self)


def risk_adjusted_score(prediction: PredictionResult, config: StrategyConfig) -> float:
    """Probability-weighted return plus a Sharpe-like term, minus risk penalties."""
    expected = prediction.expected_return / 100
    quarterly_vol = prediction.volatility / 100 / math.sqrt(4) or 0.01
    sharpe_like = (expected - QUARTERLY_RISK_FREE) / quarterly_vol
    expected_value = expected * prediction.probability12
    regime_penalty = quarterly_vol * (1 - prediction.regime_bull)
    vol_penalty = quarterly_vol * config.volatility_penalty
    return (
        expected_value * config.return_weight
        + sharpe_like * 0.3
        - config.risk_lambda * regime_penalty * config.risk_weight
        - vol_penalty * (1 - config.return_weight)
    )


def projected_return(probability: float, expected_return_pct: float) -> float:
    """Conservative 3M projection as a fraction, capped to [-10%, 20%]."""
    downside = max(PROJECTION_DOWNSIDE_FLOOR, expected_return_pct / 100 * 0.5)
    value = probability * PROJECTION_THRESHOLD + (1 - probability) * downside
    return max(PROJECTION_CAP[0], min(PROJECTION_CAP[1], value))


def confidence_label(probability: float, regime_bull: float) -> str:
    if probability > 0.75 and regime_bull > 0.65:
        return "High"
    if probability > 0.65 and regime_bull > 0.55:
        return "Strong"
    return "Medium"


def allocate(
    predictions: list[PredictionResult],
    investment_amount: float,
    strategy: str = "balanced",
) -> AllocationPlan:
    """Build a top-3 inverse-volatility allocation of ``investment_amount``.

    Raises AllocationError for a non-positive amount, an unknown strategy or
    when no prediction survives the strategy's filters.
    """
    if investment_amount is None or investment_amount <= 0:
        raise AllocationError("Investment amount must be positive")
    config = STRATEGIES.get(strategy)
    if config is None:
        raise AllocationError(f"Unknown strategy {strategy!r} (expected one of {sorted(STRATEGIES)})")
    amount_total = int(round(investment_amount))
    if amount_total <= 0:
        raise AllocationError("Investment amount rounds to zero")

    eligible = [
        p for p in predictions
        if p.volatility > 0
        and p.regime_bull > 0
        and p.expected_return > config.min_return
        and p.probability12 > config.min_probability
    ]
    scored = [(risk_adjusted_score(p, config), p) for p in eligible]
    scored = [(s, p) for s, p in scored if s > 0]
    scored.sort(key=lambda sp: (-sp[0], sp[1].instrument.identifier))
    top = scored[:MAX_POSITIONS]

    logger.info(
        "Allocation (%s): %d predictions → %d eligible → %d positive → %d picked",
        strategy, len(predictions), len(eligible), len(scored), len(top),
    )
    if not top:
        raise AllocationError("No suitable stocks found for allocation")

    inverse_vols = [(1 / (p.volatility / 100 + 0.01)) ** config.volatility_exponent for _, p in top]
    total_inv = sum(inverse_vols)

    allocations = []
    for rank, ((score, p), inv) in enumerate(zip(top, inverse_vols), start=1):
        amount = int(round(amount_total * inv / total_inv))
        proj = projected_return(p.probability12, p.expected_return)
        allocations.append(Allocation(
            rank=rank,
            isin=p.instrument.identifier,
            name=p.instrument.name,
            ticker=p.instrument.ticker,
            expected_return=p.expected_return,
            probability12=p.probability12,
            volatility=p.volatility,
            regime_bull=p.regime_bull,
            risk_adjusted_score=round(score, 4),
            weight_pct=0.0,
            amount=amount,
            projected_return_pct=round(proj * 100, 2),
            projected_value=int(round(amount * (1 + proj))),
            confidence=confidence_label(p.probability12, p.regime_bull),
        ))

    # Rounding remainder goes to the last position
    remainder = amount_total - sum(a.amount for a in allocations)
    if remainder:
        last = allocations[-1]
        last.amount += remainder
        last.projected_value = int(round(last.amount * (1 + last.projected_return_pct / 100)))

    for a in allocations:
        a.weight_pct = round(a.amount / amount_total * 100, 2)

    total_projected = sum(a.projected_value for a in allocations)
    return AllocationPlan(
        strategy=strategy,
        investment_amount=amount_total,
        allocations=allocations,
        total_amount=amount_total,
        total_projected_value=total_projected,
        total_projected_return_pct=round((total_projected - amount_total) / amount_total * 100, 2),
        avg_volatility=round(sum(a.volatility * a.weight_pct / 100 for a in allocations), 3),
    )
