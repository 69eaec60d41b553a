"""Command-line harness: one signal pass over a CSV universe.

Usage:
    python -m signal_engine.cli --universe universe.csv --data-dir prices/
    python -m signal_engine.cli --universe universe.csv --data-dir prices/ \\
        --thresholds thresholds.yaml --budget 60 --output result.json
    python -m signal_engine.cli --universe universe.csv --data-dir prices/ \\
        --allocate 100000 --strategy defensive
"""

from __future__ import annotations

import argparse
import json
import logging
import math
import sys
from datetime import date, datetime, timezone
from pathlib import Path

import numpy as np
import pandas as pd

from signal_engine.config import Thresholds, get_settings
from signal_engine.history import CsvDirectoryPriceHistory, load_universe_csv
from signal_engine.orchestrator import run
from signal_engine.portfolio.allocation import STRATEGIES, AllocationError, allocate
from signal_engine.signals.ranker import rank_predictions

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s [%(name)s] %(levelname)s: %(message)s"


class StructuredFormatter(logging.Formatter):
    """One JSON object per log line."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_data)


def configure_logging(level: str = "INFO", fmt: str = "text") -> None:
    if fmt == "json":
        handler = logging.StreamHandler()
        handler.setFormatter(StructuredFormatter())
        logging.basicConfig(level=level.upper(), handlers=[handler], force=True)
    else:
        logging.basicConfig(level=level.upper(), format=LOG_FORMAT, force=True)


def _json_safe(obj):
    """Recursively convert non-JSON-serializable types in a dict/list structure."""
    if isinstance(obj, dict):
        return {str(k): _json_safe(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [_json_safe(v) for v in obj]
    if isinstance(obj, pd.Timestamp):
        return obj.isoformat()
    if isinstance(obj, (date, datetime)):
        return obj.isoformat()
    if isinstance(obj, (np.integer,)):
        return int(obj)
    if isinstance(obj, (np.floating,)):
        v = float(obj)
        return None if not math.isfinite(v) else v
    if isinstance(obj, float) and not math.isfinite(obj):
        return None
    if isinstance(obj, np.ndarray):
        return [_json_safe(v) for v in obj.tolist()]
    if isinstance(obj, (np.bool_,)):
        return bool(obj)
    return obj


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Technical signal and prediction pass")
    parser.add_argument("--universe", type=str, required=True,
                        help="CSV with isin,name,ticker,sector columns")
    parser.add_argument("--data-dir", type=str, required=True,
                        help="Directory of <isin>.csv OHLCV files")
    parser.add_argument("--thresholds", type=str, help="YAML file with screener thresholds")
    parser.add_argument("--budget", type=float, help="Soft time budget in seconds")
    parser.add_argument("--output", type=str, help="Write JSON result here instead of stdout")
    parser.add_argument("--allocate", type=float, metavar="AMOUNT",
                        help="Also build a smart allocation for this amount")
    parser.add_argument("--strategy", type=str, default="balanced", choices=sorted(STRATEGIES))
    parser.add_argument("--log-level", type=str, help="Overrides LOG_LEVEL")
    parser.add_argument("--log-format", type=str, choices=["text", "json"],
                        help="Overrides LOG_FORMAT")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    settings = get_settings()
    configure_logging(args.log_level or settings.log_level, args.log_format or settings.log_format)

    thresholds = Thresholds.from_yaml(args.thresholds) if args.thresholds else Thresholds()
    universe = load_universe_csv(args.universe)
    provider = CsvDirectoryPriceHistory(args.data_dir)

    result = run(universe, provider, thresholds, args.budget, settings=settings)
    payload = result.to_dict()
    payload["shortlist"] = [
        p.instrument.identifier
        for p in rank_predictions(result.predictions, thresholds.quant.min_probability)
    ]

    exit_code = 0
    if args.allocate is not None:
        try:
            payload["allocation"] = allocate(result.predictions, args.allocate, args.strategy).to_dict()
        except AllocationError as e:
            logger.error("Allocation failed: %s", e)
            payload["allocation"] = {"error": str(e)}
            exit_code = 1

    text = json.dumps(_json_safe(payload), indent=2)
    if args.output:
        Path(args.output).write_text(text)
        logger.info("Result written to %s", args.output)
    else:
        sys.stdout.write(text + "\n")
    return exit_code


if __name__ == "__main__":
    sys.exit(main())
