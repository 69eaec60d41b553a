"""Central configuration: typed engine settings and screener thresholds.

Settings are loaded from the environment / .env for the command-line harness.
The engine entry points take thresholds and budgets as explicit arguments and
only fall back to these defaults when the caller omits them.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Mapping

import yaml
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)

# Resolve project root (parent of signal_engine/)
PROJECT_ROOT = Path(__file__).resolve().parent.parent
ENV_PATH = PROJECT_ROOT / ".env"


class Settings(BaseSettings):
    # --- Orchestration ---
    time_budget_s: float = 90.0
    budget_check_every: int = 10  # instruments between soft-budget checkpoints
    prediction_lookback_days: int = 1130  # 756 exchange bars plus holidays
    screening_lookback_days: int = 365
    min_screen_bars: int = 20
    min_prediction_bars: int = 30
    min_price_floor: float = 10.0

    # --- Logging ---
    log_level: str = "INFO"
    log_format: str = "text"  # "text" or "json"

    model_config = {
        "env_file": str(ENV_PATH),
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }


# Singleton
_settings: Settings | None = None


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


# ── Screener / quant thresholds ─────────────────────────────────────────────

class ThresholdModel(BaseModel):
    """Accepts snake_case or camelCase keys; unknown keys are rejected."""

    model_config = ConfigDict(
        extra="forbid",
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )


class VolumeSpikeThresholds(ThresholdModel):
    min_vol_spike: float = 30.0
    min_price_move: float = 0.5
    min_price: float = 30.0


class PullbackThresholds(ThresholdModel):
    max_from_high: float = -50.0
    min_vol: float = 5000.0
    min_price: float = 30.0


class CapitulationThresholds(ThresholdModel):
    max_from_high: float = -90.0
    min_vol_spike: float = 0.0
    min_price: float = 10.0


class DeclinerThresholds(ThresholdModel):
    min_down_days: int = 3
    max_return: float = -1.5
    min_price: float = 30.0


class ClimberThresholds(ThresholdModel):
    min_up_days: int = 3
    min_return: float = 1.5
    min_price: float = 30.0


class BreakoutThresholds(ThresholdModel):
    max_range: float = 15.0
    min_bo_score: float = 0.0
    min_vol_spike: float = 50.0
    min_price: float = 30.0


class QuantThresholds(ThresholdModel):
    min_probability: float = Field(default=0.40, ge=0.0, le=1.0)


class Thresholds(ThresholdModel):
    vol_spike: VolumeSpikeThresholds = Field(default_factory=VolumeSpikeThresholds)
    pullback: PullbackThresholds = Field(default_factory=PullbackThresholds)
    cap: CapitulationThresholds = Field(default_factory=CapitulationThresholds)
    decliner: DeclinerThresholds = Field(default_factory=DeclinerThresholds)
    climber: ClimberThresholds = Field(default_factory=ClimberThresholds)
    breakout: BreakoutThresholds = Field(default_factory=BreakoutThresholds)
    quant: QuantThresholds = Field(default_factory=QuantThresholds)
    top_n: int = Field(default=6, ge=1)

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any] | None) -> Thresholds:
        """Build thresholds from nested or flat dotted keys.

        ``{"volSpike.minVolSpike": 40}`` and ``{"vol_spike": {"min_vol_spike": 40}}``
        are equivalent. Omitted keys keep their defaults.
        """
        if not raw:
            return cls()

        nested: dict[str, Any] = {}
        for key, value in raw.items():
            if "." in key:
                group, name = key.split(".", 1)
                nested.setdefault(group, {})[name] = value
            elif isinstance(value, Mapping):
                nested.setdefault(key, {}).update(value)
            else:
                nested[key] = value
        return cls.model_validate(nested)

    @classmethod
    def from_yaml(cls, path: str | Path) -> Thresholds:
        """Load thresholds from a YAML file."""
        with open(path) as f:
            raw = yaml.safe_load(f) or {}
        logger.info("Loaded thresholds from %s", path)
        return cls.from_mapping(raw)
