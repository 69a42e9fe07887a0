"""CLI: estimate experiment duration for CTBA and potential loss targets."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from .calculators import BayesianCalculator, BayesianRevenueCalculator
from .metrics import MetricKind
from .utils import (
    SeedLike,
    as_report_dict,
    estimates_frame,
    fmt_float,
    fmt_int,
    get_quantiles,
    spawn_seeds,
)

logger = logging.getLogger(__name__)

DEFAULT_QUANTILES = (0.1, 0.5, 0.9)
DEFAULT_TOC_FRACTION = 0.075


def run_calculator(
    calc,
    ctba_target: float,
    toc_fraction: float = DEFAULT_TOC_FRACTION,
    n_sims: int = 1000,
    quantiles: Sequence[float] = DEFAULT_QUANTILES,
    seed: SeedLike = None,
    workers: int = 1,
) -> Dict[str, Any]:
    """
    Point estimate + simulated distribution for both metrics.

    The potential loss target (threshold of caring) is delta * toc_fraction.
    Returns a report dict; raw samples are under report["samples"].
    """
    if not (0 < ctba_target < 1):
        raise ValueError("ctba target must be in (0, 1)")
    if not toc_fraction > 0:
        raise ValueError("toc fraction must be > 0")
    if any(not (0 <= q <= 1) for q in quantiles):
        raise ValueError("quantiles must be in [0, 1]")

    targets = {
        MetricKind.CTBA: ctba_target,
        MetricKind.POTENTIAL_LOSS: calc.delta * toc_fraction,
    }
    seeds = dict(zip(targets, spawn_seeds(seed, len(targets))))
    inverter = calc.inverter()

    report: Dict[str, Any] = {
        "inputs": as_report_dict(calc),
        "quantiles": list(quantiles),
        "metrics": {},
        "samples": {},
    }
    for kind, target in targets.items():
        estimate = calc.point_estimate(target, kind)
        entry: Dict[str, Any] = as_report_dict(estimate)
        report["metrics"][kind.value] = entry
        if estimate.visitors is None:
            logger.warning("%s: no standard error reaches target %g", kind.value, target)
            continue

        entry["achieved"] = inverter.metric_value(kind, estimate.std_error)
        samples = calc.get_simulated_duration_dist(
            estimate.visitors, n_sims, target, kind, seed=seeds[kind], workers=workers
        )
        entry["n_kept"] = int(samples.size)
        entry["quantile_values"] = get_quantiles(samples, quantiles)
        report["samples"][kind.value] = samples
    return report


def print_report(report: Dict[str, Any]) -> None:
    labels = {"ctba": "Chance to beat all", "potential_loss": "Potential loss"}
    print("Inputs:", report["inputs"])
    for name, entry in report["metrics"].items():
        print()
        print(f"{labels.get(name, name)} (target {entry['target']:.6g})")
        if entry["visitors"] is None:
            print("  No standard error found in the search bracket.")
            continue
        print(f"  Estimated std error: {fmt_float(entry['std_error'], 6)}")
        print(f"  Metric at estimated std error: {fmt_float(entry['achieved'], 6)}")
        print(f"  Estimated visitors: {fmt_int(entry['visitors'])}")
        print(f"  Simulations kept: {entry['n_kept']}")
        for q, v in zip(report["quantiles"], entry["quantile_values"]):
            print(f"  p{100 * q:g}: {fmt_int(v)}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="bayes-duration",
        description="Visitors needed for a Bayesian A/B metric to reach its target.",
    )
    sub = parser.add_subparsers(dest="model", required=True)

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--cr", type=float, required=True, help="Control conversion rate (0-1)")
    common.add_argument("--improvement", type=float, required=True,
                        help="Minimum relative improvement, e.g. 0.1 for +10%%")
    common.add_argument("--variants", type=int, default=2, help="Number of variations incl. control")
    common.add_argument("--ctba", type=float, default=0.95, help="Required chance to beat all")
    common.add_argument("--toc-fraction", type=float, default=DEFAULT_TOC_FRACTION,
                        help="Threshold of caring for potential loss, as a fraction of delta")
    common.add_argument("--sims", type=int, default=1000, help="Number of simulations")
    common.add_argument("--seed", type=int, default=None)
    common.add_argument("--workers", type=int, default=1, help="Processes for the simulations")
    common.add_argument("--quantiles", type=float, nargs="+", default=list(DEFAULT_QUANTILES))
    common.add_argument("--out-json", type=str, default=None, help="Write a JSON report to this path")
    common.add_argument("--out-csv", type=str, default=None, help="Write simulated visitors to this CSV")
    common.add_argument("--log-level", type=str, default="WARNING",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"])

    sub.add_parser("conversion", parents=[common], help="Conversion rate metric")
    revenue = sub.add_parser("revenue", parents=[common], help="Revenue per visitor metric")
    revenue.add_argument("--rps", type=float, required=True, help="Control revenue per conversion")
    return parser


def write_outputs(report: Dict[str, Any], out_json: Optional[str], out_csv: Optional[str]) -> None:
    if out_json:
        path = Path(out_json)
        path.parent.mkdir(parents=True, exist_ok=True)
        payload = {k: v for k, v in report.items() if k != "samples"}
        path.write_text(json.dumps(as_report_dict(payload), indent=2), encoding="utf-8")
    if out_csv:
        path = Path(out_csv)
        path.parent.mkdir(parents=True, exist_ok=True)
        estimates_frame(report["samples"]).to_csv(path, index=False)


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    try:
        if args.model == "revenue":
            calc = BayesianRevenueCalculator(args.cr, args.rps, args.improvement, args.variants)
        else:
            calc = BayesianCalculator(args.cr, args.improvement, args.variants)
        report = run_calculator(
            calc,
            ctba_target=args.ctba,
            toc_fraction=args.toc_fraction,
            n_sims=args.sims,
            quantiles=args.quantiles,
            seed=args.seed,
            workers=args.workers,
        )
    except ValueError as exc:
        print(f"{parser.prog}: error: {exc}", file=sys.stderr)
        return 2

    print_report(report)
    write_outputs(report, args.out_json, args.out_csv)
    return 0


if __name__ == "__main__":
    sys.exit(main())
