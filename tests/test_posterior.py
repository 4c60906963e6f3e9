import numpy as np
import numpyro
import pandas as pd
import pytest

from ascertainment.errors import NumericalInstabilityError
from ascertainment.models import reporting_rate_model
from ascertainment.posterior import (
    SUMMARY_COLUMNS,
    national_reporting_rate,
    national_summary,
    region_summary,
    reporting_rate_timeseries,
    smooth_reporting_rate,
    summarise_draws,
)

SAMPLED_SITES = [
    "national_v",
    "national_lengthscale",
    "national_sigma",
    "v",
    "state_lengthscale",
    "state_sigma",
    "sigma_obs",
    "baseline_cfr_perc",
]


def prior_draws(data, n_draws=4, **model_kwargs):
    """
    Stack prior draws of the model into a posterior_samples style dict.
    """
    traces = [
        numpyro.handlers.trace(numpyro.handlers.seed(reporting_rate_model, seed)).get_trace(data, **model_kwargs)
        for seed in range(n_draws)
    ]
    return {
        k: np.stack([np.asarray(t[k]["value"]) for t in traces])
        for k in SAMPLED_SITES + ["reporting_rate_smooth"]
    }


def test_summarise_draws_statistics():
    draws = np.random.default_rng(0).beta(2, 5, size=(500, 3))
    summary = summarise_draws(draws)

    assert list(summary.columns) == SUMMARY_COLUMNS
    np.testing.assert_allclose(summary["mean"], draws.mean(axis=0))
    np.testing.assert_allclose(summary["lower_50"], np.quantile(draws, 0.25, axis=0))
    np.testing.assert_allclose(summary["upper_50"], np.quantile(draws, 0.75, axis=0))
    np.testing.assert_allclose(summary["lower_95"], np.quantile(draws, 0.025, axis=0))
    np.testing.assert_allclose(summary["upper_95"], np.quantile(draws, 0.975, axis=0))


def test_summarise_draws_vector():
    draws = np.arange(101) / 100.0
    summary = summarise_draws(draws)
    assert len(summary) == 1
    assert summary["mean"].iloc[0] == pytest.approx(0.5)
    assert summary["lower_50"].iloc[0] == pytest.approx(0.25)
    assert summary["upper_95"].iloc[0] == pytest.approx(0.975)


def test_national_reporting_rate_weights():
    rng = np.random.default_rng(1)
    reporting_rate = rng.uniform(size=(10, 2, 7))
    national = national_reporting_rate(reporting_rate, [0.25, 0.75])

    assert national.shape == (10, 7)
    np.testing.assert_allclose(national, 0.25 * reporting_rate[:, 0, :] + 0.75 * reporting_rate[:, 1, :])


def test_smooth_reporting_rate_matches_model(data):
    samples = prior_draws(data)
    rr = smooth_reporting_rate(samples, data)
    assert rr.shape == (4, data.nRs, data.nDs)
    np.testing.assert_allclose(rr, samples["reporting_rate_smooth"], rtol=1e-4, atol=1e-5)


def test_smooth_reporting_rate_respects_model_kwargs(data):
    model_kwargs = {"n_inducing": 3, "jitter": 1e-5}
    samples = prior_draws(data, **model_kwargs)
    rr = smooth_reporting_rate(samples, data, model_kwargs=model_kwargs)
    np.testing.assert_allclose(rr, samples["reporting_rate_smooth"], rtol=1e-4, atol=1e-5)


def test_time_subset_matches_full_surface(data):
    samples = prior_draws(data)
    full = smooth_reporting_rate(samples, data)
    subset = smooth_reporting_rate(samples, data, time_index=[0, 10, data.nDs - 1])
    np.testing.assert_allclose(subset, full[:, :, [0, 10, data.nDs - 1]], rtol=1e-5, atol=1e-6)


def test_non_finite_rates_raise(data):
    samples = prior_draws(data)
    samples["national_lengthscale"][1] = np.nan
    with pytest.raises(NumericalInstabilityError):
        smooth_reporting_rate(samples, data)


def test_region_summary_latest(data):
    samples = prior_draws(data)
    summary = region_summary(samples, data)

    assert list(summary.columns) == ["region"] + SUMMARY_COLUMNS
    assert list(summary["region"]) == data.Rs
    np.testing.assert_allclose(summary["mean"], samples["reporting_rate_smooth"][:, :, -1].mean(axis=0), rtol=1e-4)
    assert np.all((summary[SUMMARY_COLUMNS] >= 0).values & (summary[SUMMARY_COLUMNS] <= 1).values)
    assert np.all(summary["lower_95"] <= summary["lower_50"])
    assert np.all(summary["upper_50"] <= summary["upper_95"])


def test_national_summary_is_weighted_by_known_outcomes(data):
    samples = prior_draws(data)
    summary = national_summary(samples, data, day_index=5)

    weights = data.cases_known_outcome.sum(axis=1) / data.cases_known_outcome.sum()
    national = np.einsum("sr,r->s", samples["reporting_rate_smooth"][:, :, 5], weights)

    assert isinstance(summary, pd.Series)
    assert list(summary.index) == SUMMARY_COLUMNS
    assert summary["mean"] == pytest.approx(national.mean(), rel=1e-4)


def test_reporting_rate_timeseries(data):
    samples = prior_draws(data)
    table = reporting_rate_timeseries(samples, data)

    assert len(table) == (data.nRs + 1) * data.nDs
    assert set(table["region"]) == set(data.Rs) | {"national"}
    assert list(table.columns) == ["region", "date"] + SUMMARY_COLUMNS
