"""
bayes_duration/calculators.py

Experiment duration calculators for Bayesian decision metrics.

Dependencies:
  - numpy

What's included:
  - BayesianCalculator: conversion-rate metric (Bernoulli visitors)
  - BayesianRevenueCalculator: revenue per visitor (zero-inflated exponential)

Both give a point estimate of the visitors needed for CTBA / PL to reach a
target, and a simulated distribution of that estimate: run the experiment
once with the candidate traffic, re-estimate the effect from the simulated
outcome, and redo the point estimate with the re-estimated parameters.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from multiprocessing import get_context
from typing import List, Optional, Tuple

import numpy as np

from .distributions import BinomialDistribution, ExponentialDistribution
from .metrics import MetricKind
from .search import DEFAULT_TOLERANCE, BinarySearchMetricInverter, SearchResult
from .utils import SeedLike, ensure_rng, spawn_seeds

logger = logging.getLogger(__name__)

# simulated relative improvements at or below this carry no usable effect
MIN_IMPROVEMENT = 1e-6


# -------------------------
# Small helpers
# -------------------------

def _safe_rel_lift(treat: float, control: float) -> float:
    if control == 0:
        return math.inf if treat != 0 else 0.0
    return (treat - control) / control

def _check_n_vars(n_vars: int) -> None:
    if isinstance(n_vars, bool) or int(n_vars) != n_vars or n_vars < 2:
        raise ValueError("n_vars must be an integer >= 2")

def _simulate_once(task: Tuple) -> Optional[float]:
    calc, hits, target, kind, seed = task
    return calc.get_simulated_duration(hits, target, kind, rng=np.random.default_rng(seed))


@dataclass(frozen=True)
class PointEstimate:
    metric: MetricKind
    target: float
    std_error: Optional[float]
    visitors: Optional[float]
    iterations: int


# -------------------------
# Shared simulation logic
# -------------------------

class _BayesianCalculatorBase:
    """
    Subclasses provide the variance model (`pooled_sigma`), the search
    setup (`upper_bound`, `search_bounds`) and `_refit`, which simulates one
    experiment and returns a calculator built from what was observed.
    """

    n_vars: int
    delta: float

    def pooled_sigma(self) -> float:
        raise NotImplementedError

    @property
    def upper_bound(self) -> float:
        raise NotImplementedError

    def search_bounds(self, kind: MetricKind) -> Tuple[float, float]:
        raise NotImplementedError

    def _refit(self, trials: int, gen: np.random.Generator) -> Optional["_BayesianCalculatorBase"]:
        raise NotImplementedError

    def get_estimated_visitors(self, std_error: float) -> float:
        """
        Visitors across all variations for the effect estimate to reach
        `std_error`: n_vars * (pooled_sigma / std_error) ** 2.
        """
        if not std_error > 0:
            raise ValueError("std_error must be > 0")
        ratio = self.pooled_sigma() / std_error
        return self.n_vars * ratio * ratio

    def inverter(self, effect_size: Optional[float] = None) -> BinarySearchMetricInverter:
        return BinarySearchMetricInverter(
            self.delta if effect_size is None else effect_size, self.upper_bound
        )

    def point_estimate(self, target: float, kind: MetricKind = MetricKind.CTBA,
                       tolerance: float = DEFAULT_TOLERANCE) -> PointEstimate:
        """
        Standard error at which `kind` reaches `target` for the configured
        delta, and the visitors it takes. Both are None if the search fails.
        """
        kind = MetricKind(kind)
        return self._estimate(self, target, kind, tolerance)

    def _estimate(self, fitted: "_BayesianCalculatorBase", target: float,
                  kind: MetricKind, tolerance: float) -> PointEstimate:
        # search setup comes from this calculator, delta and variance from `fitted`
        lo, hi = self.search_bounds(kind)
        result: SearchResult = self.inverter(fitted.delta).solve(kind, lo, hi, target, tolerance)
        visitors = None
        if result.converged:
            visitors = fitted.get_estimated_visitors(result.value)
        return PointEstimate(
            metric=kind,
            target=target,
            std_error=result.value,
            visitors=visitors,
            iterations=result.iterations,
        )

    def get_simulated_duration(self, hits: float, target: float,
                               kind: MetricKind = MetricKind.CTBA,
                               rng: Optional[np.random.Generator] = None,
                               tolerance: float = DEFAULT_TOLERANCE) -> Optional[float]:
        """
        One draw from the distribution of required visitors: simulate the
        experiment with `hits` visitors, re-estimate, and re-solve.

        Returns None when the draw is unusable (no meaningful simulated
        effect, failed search, non-finite arithmetic).
        """
        kind = MetricKind(kind)
        if not (math.isfinite(hits) and hits > 0):
            raise ValueError("hits must be a positive finite number")
        trials = math.ceil(hits / self.n_vars)
        gen = ensure_rng(rng)

        try:
            fitted = self._refit(trials, gen)
            if fitted is None:
                return None
            estimate = self._estimate(fitted, target, kind, tolerance)
        except (ArithmeticError, ValueError) as exc:
            logger.debug("Discarding simulation: %s", exc)
            return None

        if estimate.visitors is None or not math.isfinite(estimate.visitors):
            return None
        return estimate.visitors

    def get_simulated_duration_dist(self, hits: float, n_sims: int, target: float,
                                    kind: MetricKind = MetricKind.CTBA,
                                    seed: SeedLike = None,
                                    workers: int = 1) -> np.ndarray:
        """
        Run `n_sims` independent simulations and keep the usable ones.

        Every simulation draws from its own generator spawned from `seed`,
        so a seeded run returns the same values for any `workers`.
        workers > 1 fans out over a process pool.
        """
        kind = MetricKind(kind)
        if not (math.isfinite(hits) and hits > 0):
            raise ValueError("hits must be a positive finite number")
        if isinstance(n_sims, bool) or int(n_sims) != n_sims or n_sims < 0:
            raise ValueError("n_sims must be a non-negative integer")
        if target == 0:
            raise ValueError("target must be non-zero")
        if workers < 1:
            raise ValueError("workers must be >= 1")

        tasks = [(self, hits, target, kind, s) for s in spawn_seeds(seed, int(n_sims))]
        if workers > 1 and len(tasks) > 1:
            ctx = get_context("spawn")
            chunksize = max(1, len(tasks) // (workers * 4))
            with ctx.Pool(processes=workers) as pool:
                results: List[Optional[float]] = pool.map(_simulate_once, tasks, chunksize=chunksize)
        else:
            results = [_simulate_once(t) for t in tasks]

        estimates = np.array([r for r in results if r is not None], dtype=float)
        logger.info("%s: kept %d of %d simulations", kind.value, estimates.size, len(tasks))
        return estimates


# -------------------------
# Conversion rate
# -------------------------

@dataclass(frozen=True)
class BayesianCalculator(_BayesianCalculatorBase):
    """
    cr: conversion rate of the control
    improvement: minimum relative improvement of the variation
    n_vars: number of variations, traffic split evenly
    """
    cr: float
    improvement: float
    n_vars: int = 2
    delta: float = field(init=False)

    # truncation window for PL and search brackets
    PL_UPPER_BOUND = 10.0
    CTBA_SEARCH_BOUNDS = (0.0, 1.0)

    def __post_init__(self) -> None:
        if not (0 < self.cr < 1):
            raise ValueError("cr must be in (0, 1)")
        if not self.improvement > 0:
            raise ValueError("improvement must be > 0")
        if self.cr * (1 + self.improvement) > 1:
            raise ValueError("cr * (1 + improvement) must stay <= 1")
        _check_n_vars(self.n_vars)
        object.__setattr__(self, "delta", self.cr * self.improvement)

    @staticmethod
    def get_standard_error(cr1: float, improvement: float, n_visitors: float) -> float:
        var1 = cr1 * (1 - cr1)
        cr2 = cr1 * (1 + improvement)
        var2 = cr2 * (1 - cr2)
        return math.sqrt(var1 + var2) / math.sqrt(n_visitors)

    def pooled_sigma(self) -> float:
        cr2 = self.cr + self.delta
        return math.sqrt(self.cr * (1 - self.cr) + cr2 * (1 - cr2))

    @property
    def upper_bound(self) -> float:
        return self.PL_UPPER_BOUND

    def search_bounds(self, kind: MetricKind) -> Tuple[float, float]:
        if MetricKind(kind) is MetricKind.CTBA:
            return self.CTBA_SEARCH_BOUNDS
        return (0.0, self.PL_UPPER_BOUND)

    def _refit(self, trials: int, gen: np.random.Generator) -> Optional["BayesianCalculator"]:
        convs = [
            BinomialDistribution(trials, self.cr).sample(gen),
            BinomialDistribution(trials, self.cr + self.delta).sample(gen),
        ]
        # the worse simulated arm becomes the baseline
        base_cr, variant_cr = sorted(c / trials for c in convs)
        improvement = _safe_rel_lift(variant_cr, base_cr)
        if not math.isfinite(improvement) or improvement <= MIN_IMPROVEMENT:
            return None
        return BayesianCalculator(base_cr, improvement, self.n_vars)


# -------------------------
# Revenue per visitor
# -------------------------

@dataclass(frozen=True)
class BayesianRevenueCalculator(_BayesianCalculatorBase):
    """
    cr: conversion rate (same for both arms)
    rps: revenue per conversion of the control, exponentially distributed
    improvement: minimum relative improvement in revenue per conversion
    n_vars: number of variations, traffic split evenly
    """
    cr: float
    rps: float
    improvement: float
    n_vars: int = 2
    delta: float = field(init=False)

    # search brackets and PL window scale with revenue
    UPPER_BOUND_FACTOR = 100.0

    def __post_init__(self) -> None:
        if not (0 < self.cr <= 1):
            raise ValueError("cr must be in (0, 1]")
        if not self.rps > 0:
            raise ValueError("rps must be > 0")
        if not self.improvement > 0:
            raise ValueError("improvement must be > 0")
        _check_n_vars(self.n_vars)
        object.__setattr__(
            self, "delta",
            self.get_data_mean(self.cr2, self.rps2) - self.get_data_mean(self.cr1, self.rps1),
        )

    @property
    def cr1(self) -> float:
        return self.cr

    @property
    def cr2(self) -> float:
        return self.cr

    @property
    def rps1(self) -> float:
        return self.rps

    @property
    def rps2(self) -> float:
        return self.rps * (1 + self.improvement)

    @staticmethod
    def get_data_variance(cr: float, rps: float) -> float:
        """Variance of revenue per visitor: Bernoulli(cr) times Exponential(mean=rps)."""
        return cr * rps ** 2 + cr * (1 - cr) * rps ** 2

    @staticmethod
    def get_data_mean(cr: float, rps: float) -> float:
        return cr * rps

    @classmethod
    def get_standard_error(cls, cr1: float, rps1: float, cr2: float, rps2: float,
                           n_visitors: float) -> float:
        var1 = cls.get_data_variance(cr1, rps1)
        var2 = cls.get_data_variance(cr2, rps2)
        return math.sqrt(var1 + var2) / math.sqrt(n_visitors)

    def pooled_sigma(self) -> float:
        return math.sqrt(
            self.get_data_variance(self.cr1, self.rps1) + self.get_data_variance(self.cr2, self.rps2)
        )

    @property
    def upper_bound(self) -> float:
        return self.rps2 * self.UPPER_BOUND_FACTOR

    def search_bounds(self, kind: MetricKind) -> Tuple[float, float]:
        return (0.0, self.upper_bound)

    def _refit(self, trials: int, gen: np.random.Generator) -> Optional["BayesianRevenueCalculator"]:
        convs = [
            BinomialDistribution(trials, self.cr1).sample(gen),
            BinomialDistribution(trials, self.cr2).sample(gen),
        ]
        crs = [c / trials for c in convs]
        rpss = [
            ExponentialDistribution(self.rps1).samples_avg(convs[0], gen),
            ExponentialDistribution(self.rps2).samples_avg(convs[1], gen),
        ]
        rpvs = [self.get_data_mean(cr, rps) for cr, rps in zip(crs, rpss)]
        if not all(math.isfinite(v) for v in rpvs):
            return None

        # the worse simulated arm becomes the baseline
        lo_idx, hi_idx = int(np.argmin(rpvs)), int(np.argmax(rpvs))
        base_cr, base_rpv = crs[lo_idx], rpvs[lo_idx]
        improvement = _safe_rel_lift(rpvs[hi_idx], base_rpv)
        if not math.isfinite(improvement) or improvement <= MIN_IMPROVEMENT:
            return None
        return BayesianRevenueCalculator(base_cr, base_rpv / base_cr, improvement, self.n_vars)
