# tests/test_metrics.py
import numpy as np
import pytest
from scipy import stats

from bayes_duration.metrics import MetricKind, get_ctba, get_potential_loss


def test_ctba_is_half_without_effect():
    assert get_ctba(0.0, 0.3) == pytest.approx(0.5, abs=1e-14)


@pytest.mark.parametrize("delta,std", [(0.1, 0.05), (0.1, 0.5), (-0.2, 0.1), (1e5, 4.3e4)])
def test_ctba_matches_normal_probability(delta, std):
    assert get_ctba(delta, std) == pytest.approx(stats.norm.cdf(delta / std), abs=1e-12)


def test_ctba_falls_towards_half_as_std_grows():
    stds = np.linspace(0.02, 2.0, 100)
    values = [get_ctba(0.1, s) for s in stds]
    assert all(a > b for a, b in zip(values, values[1:]))
    assert values[-1] > 0.5


@pytest.mark.parametrize("delta,std,hi", [(0.1, 0.05, 10.0), (0.1, 0.3, 10.0), (1e5, 6e4, 1.1e9)])
def test_potential_loss_matches_scipy(delta, std, hi):
    mean = -delta
    a, b = (0.0 - mean) / std, (hi - mean) / std
    trunc_mean = stats.truncnorm(a, b, loc=mean, scale=std).mean()
    expected = trunc_mean * stats.norm.sf(0.0, loc=mean, scale=std)
    assert get_potential_loss(mean, std, 0.0, hi) == pytest.approx(expected, rel=1e-8)


def test_potential_loss_grows_with_std():
    stds = np.linspace(0.03, 1.0, 100)
    values = [get_potential_loss(-0.1, s, 0.0, 10.0) for s in stds]
    assert all(v > 0 for v in values)
    assert all(a < b for a, b in zip(values, values[1:]))


def test_metric_kind_from_string():
    assert MetricKind("ctba") is MetricKind.CTBA
    assert MetricKind("potential_loss") is MetricKind.POTENTIAL_LOSS
    with pytest.raises(ValueError):
        MetricKind("lift")
