"""
bayes_duration/utils.py

Utility functions used across the repo:
  - Reproducibility helpers (generators, seed spawning)
  - Quantile summaries of simulated distributions
  - Formatting for reports
"""

from __future__ import annotations
from dataclasses import asdict, is_dataclass
from enum import Enum
from typing import Dict, Iterable, List, Mapping, Optional, Union

import numpy as np
import pandas as pd

SeedLike = Union[None, int, np.random.SeedSequence]


# -------------------------
# Validation / coercion
# -------------------------

def _as_1d_float(x: Iterable[float]) -> np.ndarray:
    arr = np.asarray(list(x), dtype=float)
    if arr.ndim != 1:
        raise ValueError("Input must be 1D.")
    return arr


# -------------------------
# Reproducibility
# -------------------------

def rng(seed: SeedLike = None) -> np.random.Generator:
    return np.random.default_rng(seed)

def ensure_rng(gen: Optional[np.random.Generator] = None) -> np.random.Generator:
    return gen if gen is not None else np.random.default_rng()

def spawn_seeds(seed: SeedLike, n: int) -> List[np.random.SeedSequence]:
    """
    Independent child seeds, one per simulation. The same parent seed always
    yields the same children, whatever order they are consumed in.
    """
    parent = seed if isinstance(seed, np.random.SeedSequence) else np.random.SeedSequence(seed)
    return parent.spawn(n)


# -------------------------
# Quantiles
# -------------------------

def get_quantiles(samples: Iterable[float], quantiles: Iterable[float]) -> List[float]:
    """
    Linearly interpolated order statistics at rank q * (n - 1).

    The input is not modified. An empty sample set gives 0.0 for every
    requested quantile.
    """
    qs = _as_1d_float(quantiles)
    if np.any((qs < 0) | (qs > 1)):
        raise ValueError("quantiles must be in [0, 1]")

    arr = _as_1d_float(samples)
    if arr.size == 0:
        return [0.0] * len(qs)
    return [float(v) for v in np.quantile(arr, qs, method="linear")]


def estimates_frame(distributions: Mapping[str, Iterable[float]]) -> pd.DataFrame:
    """
    Long-format frame (metric, visitors) from named sample sets, e.g.
      estimates_frame({"ctba": ctba_samples, "potential_loss": pl_samples})
    """
    frames = [
        pd.DataFrame({"metric": name, "visitors": _as_1d_float(values)})
        for name, values in distributions.items()
    ]
    if not frames:
        return pd.DataFrame({"metric": pd.Series(dtype=str), "visitors": pd.Series(dtype=float)})
    return pd.concat(frames, ignore_index=True)


# -------------------------
# Reporting / formatting
# -------------------------

def as_report_dict(obj) -> Dict:
    """
    Convert dataclass or dict-like result to a plain dict for JSON/printing.
    """
    if is_dataclass(obj):
        return _plain(asdict(obj))
    if isinstance(obj, dict):
        return _plain(obj)
    raise TypeError("Expected dataclass or dict.")

def _plain(obj):
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, (np.integer, np.floating)):
        return obj.item()
    if isinstance(obj, np.ndarray):
        return obj.tolist()
    if is_dataclass(obj):
        return _plain(asdict(obj))
    if isinstance(obj, dict):
        return {str(_plain(k)): _plain(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [_plain(v) for v in obj]
    return obj

def fmt_pct(x: float, digits: int = 2) -> str:
    return f"{100.0 * x:.{digits}f}%"

def fmt_float(x: Optional[float], digits: int = 4) -> str:
    if x is None:
        return "n/a"
    return f"{x:.{digits}f}"

def fmt_int(x: Optional[float]) -> str:
    if x is None or not np.isfinite(x):
        return "n/a"
    return f"{int(round(x)):,}"
