"""
bayes_duration: experiment duration estimates for Bayesian A/B decision metrics
(chance to beat all, potential loss), with Monte Carlo uncertainty.

Public API is re-exported here for convenience.
"""

from importlib.metadata import PackageNotFoundError, version as _version

# ---- Version ----
try:
    __version__ = _version("bayes-duration")
except PackageNotFoundError:  # pragma: no cover
    __version__ = "0.0.0"

# ---- Re-exports ----
# Distributions
from .distributions import (  # noqa: F401
    erf,
    NormalDistribution,
    TruncatedNormalDistribution,
    BinomialDistribution,
    ExponentialDistribution,
)

# Metrics / search
from .metrics import (  # noqa: F401
    MetricKind,
    get_ctba,
    get_potential_loss,
)
from .search import (  # noqa: F401
    BinarySearchMetricInverter,
    Monotonicity,
    SearchResult,
    bisect_metric,
    check_within_error_bound,
)

# Calculators
from .calculators import (  # noqa: F401
    BayesianCalculator,
    BayesianRevenueCalculator,
    PointEstimate,
)

# Utilities
from .utils import (  # noqa: F401
    get_quantiles,
    estimates_frame,
)

__all__ = [
    "__version__",
    # distributions
    "erf",
    "NormalDistribution",
    "TruncatedNormalDistribution",
    "BinomialDistribution",
    "ExponentialDistribution",
    # metrics / search
    "MetricKind",
    "get_ctba",
    "get_potential_loss",
    "BinarySearchMetricInverter",
    "Monotonicity",
    "SearchResult",
    "bisect_metric",
    "check_within_error_bound",
    # calculators
    "BayesianCalculator",
    "BayesianRevenueCalculator",
    "PointEstimate",
    # utils
    "get_quantiles",
    "estimates_frame",
]
