"""
End-to-end survey analysis run:
load -> normalize -> coordinate extremes / geocoding (side path) -> split ->
per-target fit + evaluate -> report under reports/<run_id>/.

Fatal errors (SchemaError, FilterExhaustionError) abort the run. A ConvergenceError
only fails its own target. Geocoding failures and undefined metrics are collected as
notices and shown in the report.
"""

from dataclasses import dataclass, field
from datetime import datetime
import argparse
import logging
import warnings
from typing import Dict, List

import pandas as pd

from food_survey.config import load_config
from food_survey.data import load_raw_dataset
from food_survey.errors import ConvergenceError, MetricUndefinedWarning
from food_survey.evaluate import BinaryMetrics, ConfusionMatrix, evaluate
from food_survey.geo import RegionLookup, extremal_points, lookup_regions
from food_survey.normalize import AuditEntry, normalize
from food_survey.report import format_metric, write_report
from food_survey.split import split_dataset
from food_survey.train import LogisticModel, fit

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TargetOutcome:
    model: LogisticModel
    confusion: ConfusionMatrix
    metrics: BinaryMetrics


@dataclass
class PipelineResult:
    run_id: str
    dataset: pd.DataFrame
    audit: List[AuditEntry]
    n_train: int = 0
    n_test: int = 0
    lookups: List[RegionLookup] = field(default_factory=list)
    outcomes: Dict[str, TargetOutcome] = field(default_factory=dict)
    failures: Dict[str, str] = field(default_factory=dict)
    notices: List[str] = field(default_factory=list)


def run_target(train, test, target, positive_level, config):
    """
    Fit and evaluate one target. Returns (TargetOutcome, notices).
    ConvergenceError propagates to the caller.
    """
    model = fit(train, target, positive_level=positive_level, max_iter=config.max_iter, tol=config.tol)
    with warnings.catch_warnings(record=True) as caught:
        warnings.simplefilter("always", MetricUndefinedWarning)
        cm, metrics = evaluate(model, test, target, positive_level, threshold=config.threshold)
    notices = [
        f"{target}: {w.message}" for w in caught if issubclass(w.category, MetricUndefinedWarning)
    ]
    return TargetOutcome(model, cm, metrics), notices


def run_pipeline(config, raw=None, session=None, write=True):
    """
    Run the whole analysis once. `raw` may be passed instead of reading config.data_path;
    `session` is an optional requests-like session used for geocoding.
    """
    # microseconds keep back-to-back runs in separate directories
    run_id = datetime.now().strftime("%Y%m%d_%H%M%S_%f")
    if raw is None:
        raw = load_raw_dataset(config.data_path)

    cleaned, audit = normalize(raw)
    result = PipelineResult(run_id=run_id, dataset=cleaned, audit=audit)

    # Side path: informational only
    points = extremal_points(cleaned)
    if config.geocode:
        result.lookups, notices = lookup_regions(
            points, config.api_key, timeout=config.geocode_timeout, session=session
        )
        result.notices.extend(notices)
    else:
        result.lookups = [RegionLookup(p, error="geocoding disabled") for p in points]

    train, test = split_dataset(cleaned, ratio=config.train_ratio, seed=config.seed)
    result.n_train, result.n_test = len(train), len(test)

    for target, positive_level in config.targets.items():
        try:
            outcome, notices = run_target(train, test, target, positive_level, config)
        except ConvergenceError as e:
            logger.error("Model for %s failed: %s", target, e)
            result.failures[target] = str(e)
            continue
        result.outcomes[target] = outcome
        result.notices.extend(notices)

    if write:
        write_report(result, config.output_dir / run_id, charts=config.charts)
    return result


def main(argv=None):
    parser = argparse.ArgumentParser(description="Online food order survey analysis")
    parser.add_argument("--config", type=str, default=None, help="JSON config file")
    parser.add_argument("--data", type=str, default=None, help="Raw survey CSV (default: data/onlinefoods.csv)")
    parser.add_argument("--output-dir", type=str, default=None, help="Reports root (default: reports/)")
    parser.add_argument("--seed", type=int, default=None, help="Train/test split seed")
    parser.add_argument("--no-geocode", action="store_true", help="Skip reverse geocoding")
    parser.add_argument("--no-charts", action="store_true", help="Skip PNG charts")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    config = load_config(
        args.config,
        data_path=args.data,
        output_dir=args.output_dir,
        seed=args.seed,
        geocode=False if args.no_geocode else None,
        charts=False if args.no_charts else None,
    )
    result = run_pipeline(config)

    print(f"Run {result.run_id} | rows {len(result.dataset)} | train {result.n_train} / test {result.n_test}")
    for target, o in result.outcomes.items():
        m = o.metrics
        print(
            f"  {target}: Acc {format_metric(m.accuracy)}  "
            f"Precision {format_metric(m.precision)}  Recall {format_metric(m.recall)}"
        )
    for target, msg in result.failures.items():
        print(f"  {target}: FAILED ({msg})")
    print(f"  Artifacts: {config.output_dir / result.run_id}")
    return result


if __name__ == "__main__":
    main()
