"""
bayes_duration/metrics.py

Analytic Bayesian decision metrics for the difference between two arms,
with the posterior of the difference approximated by Normal(mean, std).

  - chance to beat all (CTBA): P(diff > 0)
  - potential loss (PL): E[diff | lo < diff < hi] * P(diff > 0)

For PL pass -delta as the mean: the loss of adopting the variant if the
true difference goes the other way.
"""

from __future__ import annotations

from enum import Enum

from .distributions import NormalDistribution, TruncatedNormalDistribution


class MetricKind(str, Enum):
    CTBA = "ctba"
    POTENTIAL_LOSS = "potential_loss"


def get_ctba(mean: float, std: float) -> float:
    return 1.0 - NormalDistribution(mean, std).cdf(0.0)


def get_potential_loss(mean: float, std: float, lo: float, hi: float) -> float:
    truncated = TruncatedNormalDistribution(mean, std, lo, hi)
    return truncated.mean() * (1.0 - NormalDistribution(mean, std).cdf(0.0))
