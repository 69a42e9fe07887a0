# tests/test_calculators.py
import math

import numpy as np
import pytest

from bayes_duration.calculators import (
    BayesianCalculator,
    BayesianRevenueCalculator,
    PointEstimate,
)
from bayes_duration.metrics import MetricKind, get_ctba, get_potential_loss


class _FixedDraws:
    """Stands in for a numpy Generator: every binomial draw returns `value`."""

    def __init__(self, value):
        self.value = value

    def binomial(self, n, p):
        return self.value

    def exponential(self, scale, size=None):
        return np.full(size, scale) if size is not None else scale


# -------------------------
# Conversion rate
# -------------------------

def test_conversion_standard_error_and_visitors_invert_each_other():
    calc = BayesianCalculator(0.2, 0.5, 2)
    assert calc.delta == pytest.approx(0.1)

    se = calc.get_standard_error(0.2, 0.5, 400)
    assert se == pytest.approx(math.sqrt(0.2 * 0.8 + 0.3 * 0.7) / 20.0)
    assert calc.get_estimated_visitors(se) == pytest.approx(2 * 400)


def test_conversion_visitors_scale_with_variations():
    two = BayesianCalculator(0.1, 0.2, 2).get_estimated_visitors(0.01)
    four = BayesianCalculator(0.1, 0.2, 4).get_estimated_visitors(0.01)
    assert four == pytest.approx(2 * two)


def test_conversion_validates_inputs():
    with pytest.raises(ValueError):
        BayesianCalculator(0.0, 0.5, 2)
    with pytest.raises(ValueError):
        BayesianCalculator(0.2, 0.0, 2)
    with pytest.raises(ValueError):
        BayesianCalculator(0.2, 0.5, 1)
    with pytest.raises(ValueError):
        BayesianCalculator(0.8, 0.5, 2)  # variant rate above 1
    with pytest.raises(ValueError):
        BayesianCalculator(0.2, 0.5, 2).get_estimated_visitors(0.0)


def test_conversion_point_estimate_ctba():
    calc = BayesianCalculator(0.2, 0.5, 2)
    est = calc.point_estimate(0.95, MetricKind.CTBA)
    assert isinstance(est, PointEstimate)
    expected_se = 0.1 / 1.6448536269514722
    assert est.std_error == pytest.approx(expected_se, rel=1e-4)
    assert est.visitors == pytest.approx(calc.get_estimated_visitors(expected_se), rel=1e-3)
    assert get_ctba(calc.delta, est.std_error) == pytest.approx(0.95, rel=1e-6)


def test_conversion_point_estimate_potential_loss():
    calc = BayesianCalculator(0.2, 0.5, 2)
    target = calc.delta * 0.075
    est = calc.point_estimate(target, "potential_loss")
    assert est.visitors is not None and est.visitors > 0
    pl = get_potential_loss(-calc.delta, est.std_error, 0.0, calc.upper_bound)
    assert pl == pytest.approx(target, rel=1e-6)


def test_point_estimate_reports_failed_search():
    est = BayesianCalculator(0.2, 0.5, 2).point_estimate(0.4, MetricKind.CTBA)
    assert est.std_error is None
    assert est.visitors is None


def test_simulated_duration_without_simulated_effect_is_discarded():
    calc = BayesianCalculator(0.2, 0.5, 2)
    # both arms convert identically
    assert calc.get_simulated_duration(200, 0.95, MetricKind.CTBA, rng=_FixedDraws(30)) is None
    # nobody converts
    assert calc.get_simulated_duration(200, 0.95, MetricKind.CTBA, rng=_FixedDraws(0)) is None


def test_simulated_duration_is_positive_or_none():
    calc = BayesianCalculator(0.2, 0.5, 2)
    rng = np.random.default_rng(0)
    for _ in range(50):
        out = calc.get_simulated_duration(200, 0.95, MetricKind.CTBA, rng=rng)
        assert out is None or (math.isfinite(out) and out > 0)


def test_simulated_duration_rejects_bad_hits():
    calc = BayesianCalculator(0.2, 0.5, 2)
    with pytest.raises(ValueError):
        calc.get_simulated_duration(0, 0.95)
    with pytest.raises(ValueError):
        calc.get_simulated_duration_dist(math.nan, 10, 0.95)


def test_simulated_dist_drops_unusable_draws():
    calc = BayesianCalculator(0.2, 0.5, 2)
    # unreachable CTBA: every search fails
    out = calc.get_simulated_duration_dist(200, 20, 0.4, MetricKind.CTBA, seed=3)
    assert out.size == 0


def test_simulated_dist_is_finite_and_reproducible():
    calc = BayesianCalculator(0.2, 0.5, 2)
    a = calc.get_simulated_duration_dist(200, 100, 0.95, MetricKind.CTBA, seed=11)
    b = calc.get_simulated_duration_dist(200, 100, 0.95, MetricKind.CTBA, seed=11)
    assert 0 < a.size <= 100
    assert np.all(np.isfinite(a))
    assert np.all(a >= 0)
    np.testing.assert_array_equal(a, b)


def test_simulated_dist_parallel_matches_sequential():
    calc = BayesianCalculator(0.2, 0.5, 2)
    seq = calc.get_simulated_duration_dist(200, 8, 0.95, MetricKind.CTBA, seed=5, workers=1)
    par = calc.get_simulated_duration_dist(200, 8, 0.95, MetricKind.CTBA, seed=5, workers=2)
    np.testing.assert_array_equal(seq, par)


def test_end_to_end_ctba_scenario():
    calc = BayesianCalculator(0.2, 0.5, 2)
    est = calc.point_estimate(0.95, MetricKind.CTBA)
    assert est.visitors is not None and math.isfinite(est.visitors) and est.visitors > 0

    samples = calc.get_simulated_duration_dist(est.visitors, 1000, 0.95, MetricKind.CTBA, seed=0)
    assert 0 < samples.size <= 1000
    median = float(np.median(samples))
    assert 0.3 * est.visitors <= median <= 3.0 * est.visitors


def test_end_to_end_potential_loss_scenario():
    calc = BayesianCalculator(0.2, 0.5, 2)
    target = calc.delta * 0.075
    est = calc.point_estimate(target, MetricKind.POTENTIAL_LOSS)
    samples = calc.get_simulated_duration_dist(est.visitors, 200, target,
                                               MetricKind.POTENTIAL_LOSS, seed=1)
    assert 0 < samples.size <= 200
    assert np.all(np.isfinite(samples))
    assert np.all(samples > 0)


# -------------------------
# Revenue per visitor
# -------------------------

def test_revenue_variance_model():
    calc = BayesianRevenueCalculator(0.1, 10.0, 0.1, 2)
    assert calc.get_data_variance(0.1, 10.0) == pytest.approx(0.1 * 100 + 0.1 * 0.9 * 100)
    assert calc.get_data_mean(0.1, 10.0) == pytest.approx(1.0)
    assert calc.rps2 == pytest.approx(11.0)
    assert calc.delta == pytest.approx(0.1)
    assert calc.upper_bound == pytest.approx(1100.0)
    assert calc.search_bounds(MetricKind.CTBA) == (0.0, calc.upper_bound)


def test_revenue_standard_error_and_visitors_invert_each_other():
    calc = BayesianRevenueCalculator(0.1, 10.0, 0.1, 3)
    se = calc.get_standard_error(calc.cr1, calc.rps1, calc.cr2, calc.rps2, 5000)
    assert calc.get_estimated_visitors(se) == pytest.approx(3 * 5000)


def test_revenue_validates_inputs():
    with pytest.raises(ValueError):
        BayesianRevenueCalculator(0.1, 0.0, 0.1, 2)
    with pytest.raises(ValueError):
        BayesianRevenueCalculator(0.0, 10.0, 0.1, 2)
    with pytest.raises(ValueError):
        BayesianRevenueCalculator(0.1, 10.0, 0.1, 2.5)


def test_revenue_simulation_without_conversions_is_discarded():
    calc = BayesianRevenueCalculator(0.1, 10.0, 0.1, 2)
    assert calc.get_simulated_duration(1000, 0.95, MetricKind.CTBA, rng=_FixedDraws(0)) is None


def test_revenue_simulation_with_equal_arms_is_discarded():
    calc = BayesianRevenueCalculator(0.1, 10.0, 0.1, 2)
    rng = _FixedDraws(50)
    # identical conversions and identical revenue per conversion draws
    rng.exponential = lambda scale, size=None: np.full(size, 10.0)
    assert calc.get_simulated_duration(1000, 0.95, MetricKind.CTBA, rng=rng) is None


def test_revenue_end_to_end():
    calc = BayesianRevenueCalculator(0.1, 10_000_000, 0.1, 2)
    est = calc.point_estimate(0.99, MetricKind.CTBA)
    assert est.visitors is not None and est.visitors > 0
    assert get_ctba(calc.delta, est.std_error) == pytest.approx(0.99, rel=1e-6)

    samples = calc.get_simulated_duration_dist(est.visitors, 200, 0.99, MetricKind.CTBA, seed=2)
    assert 0 < samples.size <= 200
    assert np.all(np.isfinite(samples))
    median = float(np.median(samples))
    assert 0.3 * est.visitors <= median <= 3.0 * est.visitors


def test_revenue_potential_loss_distribution():
    calc = BayesianRevenueCalculator(0.1, 10_000_000, 0.1, 2)
    target = calc.delta * 0.075
    est = calc.point_estimate(target, MetricKind.POTENTIAL_LOSS)
    assert est.visitors is not None
    samples = calc.get_simulated_duration_dist(est.visitors, 100, target,
                                               MetricKind.POTENTIAL_LOSS, seed=4)
    assert samples.size > 0
    assert np.all(samples > 0)
