"""
Run the reference duration scenarios and write a report.

Scenarios:
- conversion: cr=0.2, improvement=0.5, 2 variations, CTBA 0.95, quantiles 10/50/99
- revenue:    cr=0.1, rps=1e7, improvement=0.1, 2 variations, CTBA 0.99, quantiles 10/50/90

Potential loss targets are delta * 0.075 in both.

Examples:
  python scripts/run_scenarios.py
  python scripts/run_scenarios.py --sims 2000 --seed 7 --workers 4 --out-json reports/scenarios.json
"""

from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

import pandas as pd

from bayes_duration.calculators import BayesianCalculator, BayesianRevenueCalculator
from bayes_duration.cli import print_report, run_calculator
from bayes_duration.utils import as_report_dict, estimates_frame, spawn_seeds

logger = logging.getLogger("run_scenarios")

SCENARIOS = {
    "conversion": {
        "calc": BayesianCalculator(cr=0.2, improvement=0.5, n_vars=2),
        "ctba_target": 0.95,
        "quantiles": (0.1, 0.5, 0.99),
    },
    "revenue": {
        "calc": BayesianRevenueCalculator(cr=0.1, rps=10_000_000, improvement=0.1, n_vars=2),
        "ctba_target": 0.99,
        "quantiles": (0.1, 0.5, 0.9),
    },
}


def run(
    n_sims: int,
    seed: Optional[int],
    workers: int,
    out_json: Optional[Path] = None,
    out_csv: Optional[Path] = None,
) -> Dict[str, Any]:
    """
    Run every scenario. Returns a dict report keyed by scenario name.
    """
    report: Dict[str, Any] = {}
    frames = []
    for (name, scenario), child in zip(SCENARIOS.items(), spawn_seeds(seed, len(SCENARIOS))):
        logger.info("Running scenario %s", name)
        res = run_calculator(
            scenario["calc"],
            ctba_target=scenario["ctba_target"],
            n_sims=n_sims,
            quantiles=scenario["quantiles"],
            seed=child,
            workers=workers,
        )
        samples = res.pop("samples")
        report[name] = res
        frame = estimates_frame(samples)
        frame.insert(0, "scenario", name)
        frames.append(frame)

        print(f"\n=== {name} ===")
        print_report(res)

    if out_json:
        out_json.parent.mkdir(parents=True, exist_ok=True)
        out_json.write_text(json.dumps(as_report_dict(report), indent=2), encoding="utf-8")
    if out_csv:
        out_csv.parent.mkdir(parents=True, exist_ok=True)
        pd.concat(frames, ignore_index=True).to_csv(out_csv, index=False)
    return report


def main() -> None:
    parser = argparse.ArgumentParser(description="Run the reference duration scenarios.")
    parser.add_argument("--sims", type=int, default=1000, help="Simulations per metric")
    parser.add_argument("--seed", type=int, default=None)
    parser.add_argument("--workers", type=int, default=1)
    parser.add_argument("--out-json", type=str, default=None, help="Write a JSON report to this path")
    parser.add_argument("--out-csv", type=str, default=None, help="Write all simulated visitors to this CSV")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s")
    run(
        n_sims=args.sims,
        seed=args.seed,
        workers=args.workers,
        out_json=Path(args.out_json) if args.out_json else None,
        out_csv=Path(args.out_csv) if args.out_csv else None,
    )
    if args.out_json:
        print(f"\nWrote report: {args.out_json}")


if __name__ == "__main__":
    main()
