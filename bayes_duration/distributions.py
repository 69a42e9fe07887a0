"""
bayes_duration/distributions.py

Parametric distributions used as building blocks for the decision metrics
and the duration simulations.

Dependencies:
  - numpy

What's included:
  - erf: Chebyshev approximation (~1e-15), scalars or arrays
  - Normal: pdf / cdf
  - Truncated Normal: mean of a Normal restricted to [lo, hi]
  - Binomial / Exponential: sampling with an explicit numpy Generator

The Normal implementation follows jStat (MIT licensed).
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional, Union

import numpy as np

from .utils import ensure_rng

ArrayLike = Union[float, np.ndarray]

_LOG_SQRT_2PI = 0.5 * math.log(2.0 * math.pi)
_SQRT2 = math.sqrt(2.0)

_ERF_COF = (
    -1.3026537197817094, 6.4196979235649026e-1, 1.9476473204185836e-2,
    -9.561514786808631e-3, -9.46595344482036e-4, 3.66839497852761e-4,
    4.2523324806907e-5, -2.0278578112534e-5, -1.624290004647e-6,
    1.30365583558e-6, 1.5626441722e-8, -8.5238095915e-8, 6.529054439e-9,
    5.059343495e-9, -9.91364156e-10, -2.27365122e-10, 9.6467911e-11,
    2.394038e-12, -6.886027e-12, 8.94487e-13, 3.13092e-13, -1.12708e-13,
    3.81e-16, 7.106e-15, -1.523e-15, -9.4e-17, 1.21e-16, -2.8e-17,
)


# -------------------------
# Small helpers
# -------------------------

def _is_scalar(x) -> bool:
    return np.ndim(x) == 0

def _erfc_terms(z):
    """
    Clenshaw recurrence over the Chebyshev coefficients for z >= 0.
    Works elementwise on floats and numpy arrays alike.
    """
    t = 2.0 / (2.0 + z)
    ty = 4.0 * t - 2.0
    d = 0.0
    dd = 0.0
    for c in _ERF_COF[:0:-1]:
        d, dd = ty * d - dd + c, d
    return t, -z * z + 0.5 * (_ERF_COF[0] + ty * d) - dd


def erf(x: ArrayLike) -> ArrayLike:
    """
    Error function. Odd by construction: erf(-x) == -erf(x) exactly.
    """
    if _is_scalar(x):
        x = float(x)
        t, exponent = _erfc_terms(abs(x))
        res = t * math.exp(exponent)
        return res - 1.0 if x < 0 else 1.0 - res

    arr = np.asarray(x, dtype=float)
    with np.errstate(over="ignore", invalid="ignore"):
        t, exponent = _erfc_terms(np.abs(arr))
        res = t * np.exp(exponent)
    return np.where(arr < 0, res - 1.0, 1.0 - res)


# -------------------------
# Normal
# -------------------------

@dataclass(frozen=True)
class NormalDistribution:
    mean: float = 0.0
    std: float = 1.0

    def __post_init__(self) -> None:
        if not self.std > 0:
            raise ValueError("std must be > 0")

    def pdf(self, x: ArrayLike) -> ArrayLike:
        if _is_scalar(x):
            u = (float(x) - self.mean) / self.std
            return math.exp(-_LOG_SQRT_2PI - math.log(self.std) - 0.5 * u * u)
        u = (np.asarray(x, dtype=float) - self.mean) / self.std
        with np.errstate(over="ignore"):
            return np.exp(-_LOG_SQRT_2PI - math.log(self.std) - 0.5 * u * u)

    def cdf(self, x: ArrayLike) -> ArrayLike:
        x = float(x) if _is_scalar(x) else np.asarray(x, dtype=float)
        return 0.5 * (1.0 + erf((x - self.mean) / (self.std * _SQRT2)))


STANDARD_NORMAL = NormalDistribution(0.0, 1.0)


# -------------------------
# Truncated Normal
# -------------------------

@dataclass(frozen=True)
class TruncatedNormalDistribution:
    """
    Normal(mu, sigma) restricted to [lo, hi].

    Bounds are given on the original scale; the standardized bounds
    (alpha, beta) are derived here.
    """
    mu: float
    sigma: float
    lo: float
    hi: float

    def __post_init__(self) -> None:
        if not self.sigma > 0:
            raise ValueError("sigma must be > 0")
        if not self.lo < self.hi:
            raise ValueError("lo must be < hi")

    @property
    def alpha(self) -> float:
        return (self.lo - self.mu) / self.sigma

    @property
    def beta(self) -> float:
        return (self.hi - self.mu) / self.sigma

    def mean(self) -> float:
        """
        mu + sigma * (phi(alpha) - phi(beta)) / (Phi(beta) - Phi(alpha))

        Returns nan when the window carries no mass in floating point.
        """
        a, b = self.alpha, self.beta
        numerator = STANDARD_NORMAL.pdf(a) - STANDARD_NORMAL.pdf(b)
        denominator = STANDARD_NORMAL.cdf(b) - STANDARD_NORMAL.cdf(a)
        if denominator == 0:
            return float("nan")
        return self.mu + (numerator / denominator) * self.sigma


# -------------------------
# Sampling distributions
# -------------------------

@dataclass(frozen=True)
class BinomialDistribution:
    n: int
    p: float

    def __post_init__(self) -> None:
        if isinstance(self.n, bool) or int(self.n) != self.n or self.n < 0:
            raise ValueError("n must be a non-negative integer")
        if not (0.0 <= self.p <= 1.0):
            raise ValueError("p must be in [0, 1]")

    def sample(self, rng: Optional[np.random.Generator] = None) -> int:
        """Number of successes in n Bernoulli(p) trials."""
        return int(ensure_rng(rng).binomial(int(self.n), self.p))


@dataclass(frozen=True)
class ExponentialDistribution:
    # scale parameter: the mean of the distribution
    rate: float

    def __post_init__(self) -> None:
        if not self.rate > 0:
            raise ValueError("rate must be > 0")

    def sample(self, rng: Optional[np.random.Generator] = None) -> float:
        return float(ensure_rng(rng).exponential(self.rate))

    def samples_avg(self, size: int, rng: Optional[np.random.Generator] = None) -> float:
        """Mean of `size` draws; nan for size == 0."""
        if size == 0:
            return float("nan")
        return float(ensure_rng(rng).exponential(self.rate, size=int(size)).mean())
