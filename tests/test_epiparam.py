import numpy as np
import pytest
import scipy.stats

from ascertainment.epiparam import OutcomeDelay, cases_known_outcome


def lognorm_cdf(x, mean_delay=13, median_delay=9.1):
    mu = np.log(median_delay)
    sigma = np.sqrt(2 * (np.log(mean_delay) - mu))
    return scipy.stats.lognorm.cdf(x, s=sigma, scale=np.exp(mu))


def test_derived_lognormal_parameters(delay):
    assert delay.mu == pytest.approx(np.log(9.1))
    assert delay.sigma == pytest.approx(np.sqrt(2 * (np.log(13) - np.log(9.1))))


@pytest.mark.parametrize("mean_delay,median_delay", [(13, 9.1), (5, 4), (20, 2), (8.5, 8.4)])
def test_probability_non_negative_and_sums_to_at_most_one(mean_delay, median_delay):
    delay = OutcomeDelay(mean_delay, median_delay)
    probs = delay.probability(np.arange(2000))
    assert np.all(probs >= 0)
    assert np.sum(probs) <= 1 + 1e-12
    assert np.sum(probs[:10]) < np.sum(probs[:100]) <= np.sum(probs)


def test_probability_approaches_one(delay):
    assert np.sum(delay.probability(np.arange(1000))) > 0.999


def test_probability_matches_lognormal_cdf_differences(delay):
    days = np.arange(30)
    expected = lognorm_cdf(days + 1) - lognorm_cdf(days)
    np.testing.assert_allclose(delay.probability(days), expected)


def test_probability_on_day_zero_is_small_and_positive(delay):
    p0 = delay.probability(0)
    assert 0 < p0 < 0.05


def test_negative_day_raises(delay):
    with pytest.raises(ValueError):
        delay.probability(-1)


@pytest.mark.parametrize("mean_delay,median_delay", [(0, 9.1), (13, -1), (9, 9.1), (9.1, 9.1)])
def test_invalid_parameters_raise(mean_delay, median_delay):
    with pytest.raises(ValueError):
        OutcomeDelay(mean_delay, median_delay)


def test_parameters_are_read_only(delay):
    with pytest.raises(AttributeError):
        delay.mean_delay = 3


def test_single_day_mass_is_truncated_not_renormalised(delay):
    n_days = 40
    d = 7
    cases = np.zeros(n_days)
    cases[d] = 12.0
    known = cases_known_outcome(cases, delay)

    assert np.all(known[:d] == 0)
    assert np.sum(known[d:]) == pytest.approx(12.0 * lognorm_cdf(n_days - d))
    assert np.sum(known) < 12.0


def test_known_outcomes_are_causal(delay):
    rng = np.random.default_rng(1)
    cases = rng.poisson(10, size=25).astype(float)
    known = cases_known_outcome(cases, delay)

    changed = cases.copy()
    changed[15:] += 100
    known_changed = cases_known_outcome(changed, delay)

    np.testing.assert_allclose(known[:15], known_changed[:15])
    assert np.all(known_changed[15:] > known[15:])


def test_matches_truncated_convolution(delay):
    rng = np.random.default_rng(2)
    cases = rng.poisson(4, size=50).astype(float)
    expected = np.convolve(cases, delay.delay_vector(50))[:50]
    np.testing.assert_allclose(delay.cases_known_outcome(cases), expected)


def test_empty_series(delay):
    assert cases_known_outcome([], delay).size == 0


def test_single_import_scenario():
    delay = OutcomeDelay(mean_delay=13, median_delay=9.1)
    cases = [0, 0, 5, 0, 0, 0, 0, 0, 0, 0]
    known = cases_known_outcome(cases, delay)

    assert known[0] == 0 and known[1] == 0
    assert np.all(known[2:] > 0)
    # a case on day 3 can have been resolved within 8 days by day 10
    assert np.sum(known) == pytest.approx(5 * lognorm_cdf(8))
    assert 2 < np.sum(known) < 5


def test_get_parameters(delay):
    params = delay.get_parameters()
    assert params["mean_delay"] == 13
    assert params["median_delay"] == 9.1
    assert params["sigma"] == pytest.approx(delay.sigma)
