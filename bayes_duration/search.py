"""
bayes_duration/search.py

Invert a decision metric: given an effect size and a target metric value,
find the standard error at which the metric hits the target.

The metric must be monotone in the standard error over the bracket. The
direction is declared, not inferred:
  - CTBA falls towards 0.5 as the standard error grows (for delta > 0)
  - PL grows with the standard error
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Tuple

from .metrics import MetricKind, get_ctba, get_potential_loss

logger = logging.getLogger(__name__)

DEFAULT_TOLERANCE = 1e-6
DEFAULT_MAX_ITERATIONS = 200


class Monotonicity(str, Enum):
    INCREASING = "increasing"
    DECREASING = "decreasing"


@dataclass(frozen=True)
class SearchResult:
    value: Optional[float]
    converged: bool
    iterations: int


def check_within_error_bound(target: float, computed: float,
                             tolerance: float) -> Tuple[bool, bool]:
    """
    Returns (within_bound, error_is_positive) for the relative error
    (computed - target) / target. A nan error is neither.
    """
    err = (computed - target) / target
    return abs(err) < tolerance, err > 0


def bisect_metric(
    metric: Callable[[float], float],
    lo: float,
    hi: float,
    target: float,
    tolerance: float = DEFAULT_TOLERANCE,
    monotonicity: Monotonicity = Monotonicity.DECREASING,
    max_iterations: int = DEFAULT_MAX_ITERATIONS,
) -> SearchResult:
    """
    Bisection on [lo, hi] until metric(mid) is within `tolerance` (relative)
    of `target`.

    Gives up, returning a non-converged result, when the bracket is empty,
    stops shrinking in floating point, or `max_iterations` is reached.
    """
    if target == 0:
        raise ValueError("target must be non-zero (tolerance is relative)")
    if not tolerance > 0:
        raise ValueError("tolerance must be > 0")
    monotonicity = Monotonicity(monotonicity)
    move_up_when_positive = monotonicity is Monotonicity.DECREASING

    iterations = 0
    while hi >= lo and iterations < max_iterations:
        mid = (lo + hi) / 2
        iterations += 1
        within, positive = check_within_error_bound(target, metric(mid), tolerance)
        if within:
            return SearchResult(value=mid, converged=True, iterations=iterations)

        if positive == move_up_when_positive:
            if mid == lo:
                break
            lo = mid
        else:
            if mid == hi:
                break
            hi = mid

    logger.debug("No solution for target %g in [%g, %g] after %d iterations",
                 target, lo, hi, iterations)
    return SearchResult(value=None, converged=False, iterations=iterations)


@dataclass(frozen=True)
class BinarySearchMetricInverter:
    """
    effect_size: absolute uplift (delta)
    upper_bound: upper limit of the truncation window used by PL
    """
    effect_size: float
    upper_bound: float
    max_iterations: int = DEFAULT_MAX_ITERATIONS

    def __post_init__(self) -> None:
        if not self.upper_bound > 0:
            raise ValueError("upper_bound must be > 0")
        if self.max_iterations < 1:
            raise ValueError("max_iterations must be >= 1")

    def metric_value(self, kind: MetricKind, std_error: float) -> float:
        kind = MetricKind(kind)
        if kind is MetricKind.CTBA:
            return get_ctba(self.effect_size, std_error)
        return get_potential_loss(-self.effect_size, std_error, 0.0, self.upper_bound)

    def monotonicity(self, kind: MetricKind) -> Monotonicity:
        kind = MetricKind(kind)
        if kind is MetricKind.POTENTIAL_LOSS:
            return Monotonicity.INCREASING
        # CTBA = Phi(delta / std)
        return Monotonicity.DECREASING if self.effect_size >= 0 else Monotonicity.INCREASING

    def solve(self, kind: MetricKind, lo: float, hi: float, target: float,
              tolerance: float = DEFAULT_TOLERANCE) -> SearchResult:
        kind = MetricKind(kind)
        return bisect_metric(
            lambda std_error: self.metric_value(kind, std_error),
            lo, hi, target,
            tolerance=tolerance,
            monotonicity=self.monotonicity(kind),
            max_iterations=self.max_iterations,
        )

    def ctba(self, lo: float, hi: float, target: float,
             tolerance: float = DEFAULT_TOLERANCE) -> SearchResult:
        return self.solve(MetricKind.CTBA, lo, hi, target, tolerance)

    def potential_loss(self, lo: float, hi: float, target: float,
                       tolerance: float = DEFAULT_TOLERANCE) -> SearchResult:
        return self.solve(MetricKind.POTENTIAL_LOSS, lo, hi, target, tolerance)
