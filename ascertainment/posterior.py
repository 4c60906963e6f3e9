"""
:code:`posterior.py`

Summaries of the smoothed (observation noise free) reporting rates, per region and nationally.
"""
import jax
import jax.numpy as jnp
import numpy as np
import pandas as pd

from ascertainment.errors import NumericalInstabilityError
from ascertainment.models.model_build_utils import (
    get_inducing_points,
    get_times,
    iprobit,
    latent_reporting_surface,
    resolve_gp_prior,
)

SUMMARY_COLUMNS = ["mean", "lower_50", "upper_50", "lower_95", "upper_95"]


def smooth_reporting_rate(posterior_samples, data, time_index=None, model_kwargs=None):
    """
    Recompute the smoothed reporting rate from posterior draws, at a subset of times.

    The inducing points are always those of the full time axis, so any subset gives the same values as the
    corresponding slice of the full surface.

    :param posterior_samples: dict of pooled draws
    :param data: PreprocessedData object
    :param time_index: day indices to compute at, defaults to all days
    :param model_kwargs: the model kwargs used when sampling
    :return: nS x nRs x nTs array of reporting rates
    """
    if model_kwargs is None:
        model_kwargs = {}

    national_gp_prior = resolve_gp_prior(model_kwargs.get("national_gp_prior"))
    state_gp_prior = resolve_gp_prior(model_kwargs.get("state_gp_prior"))
    jitter = model_kwargs.get("jitter", 1e-6)

    all_times = get_times(data.nDs)
    inducing_points = get_inducing_points(all_times, model_kwargs.get("n_inducing", 5))
    if time_index is None:
        times = all_times
    else:
        times = all_times[np.atleast_1d(np.asarray(time_index))]

    def draw_reporting_rate(national_v, national_lengthscale, national_sigma, v, state_lengthscale, state_sigma):
        z_smooth = latent_reporting_surface(
            times,
            inducing_points,
            national_v,
            national_lengthscale,
            national_sigma,
            v,
            state_lengthscale,
            state_sigma,
            national_intercept_variance=national_gp_prior["intercept_variance"],
            state_intercept_variance=state_gp_prior["intercept_variance"],
            obs_sigma=None,
            jitter=jitter,
        )
        return iprobit(z_smooth)

    reporting_rate = jax.vmap(draw_reporting_rate)(
        jnp.asarray(posterior_samples["national_v"]),
        jnp.asarray(posterior_samples["national_lengthscale"]),
        jnp.asarray(posterior_samples["national_sigma"]),
        jnp.asarray(posterior_samples["v"]),
        jnp.asarray(posterior_samples["state_lengthscale"]),
        jnp.asarray(posterior_samples["state_sigma"]),
    )
    reporting_rate = np.asarray(reporting_rate)

    if not np.all(np.isfinite(reporting_rate)):
        raise NumericalInstabilityError(
            "Non-finite smoothed reporting rates: inducing covariance could not be factorised",
            site="reporting_rate_smooth",
        )

    return reporting_rate


def national_reporting_rate(reporting_rate, weights):
    """
    Weighted combination of the region reporting rates.

    :param reporting_rate: nS x nRs x nTs array
    :param weights: nRs weights, summing to 1
    :return: nS x nTs array
    """
    weights = np.asarray(weights)
    # contract over the region axis (axis 1)
    return np.einsum("srt,r->st", reporting_rate, weights)


def summarise_draws(draws, index=None):
    """
    Mean, interquartile range and 95% interval of each column of draws.

    :param draws: nS or nS x nK array
    :param index: optional index labels for the nK rows of the output
    :return: DataFrame, one row per column of draws
    """
    draws = np.asarray(draws)
    if draws.ndim == 1:
        draws = draws.reshape((-1, 1))

    lower_95, lower_50, upper_50, upper_95 = np.quantile(draws, [0.025, 0.25, 0.75, 0.975], axis=0)
    return pd.DataFrame(
        {
            "mean": np.mean(draws, axis=0),
            "lower_50": lower_50,
            "upper_50": upper_50,
            "lower_95": lower_95,
            "upper_95": upper_95,
        },
        index=index,
    )


def region_summary(posterior_samples, data, day_index=-1, model_kwargs=None):
    """
    Per-region summary of the smoothed reporting rate on a single day, defaulting to the latest.
    """
    day_index = day_index % data.nDs
    reporting_rate = smooth_reporting_rate(posterior_samples, data, [day_index], model_kwargs)
    summary = summarise_draws(reporting_rate[:, :, 0])
    summary.insert(0, "region", data.Rs)
    return summary


def national_summary(posterior_samples, data, day_index=-1, model_kwargs=None):
    """
    Summary of the case weighted national reporting rate on a single day, defaulting to the latest.
    """
    day_index = day_index % data.nDs
    reporting_rate = smooth_reporting_rate(posterior_samples, data, [day_index], model_kwargs)
    national = national_reporting_rate(reporting_rate, data.known_outcome_weights())
    return summarise_draws(national[:, 0]).iloc[0]


def reporting_rate_timeseries(posterior_samples, data, model_kwargs=None, include_national=True):
    """
    Long format summaries of the smoothed reporting rate for every region and day.
    """
    reporting_rate = smooth_reporting_rate(posterior_samples, data, None, model_kwargs)

    frames = []
    for r_i, r in enumerate(data.Rs):
        summary = summarise_draws(reporting_rate[:, r_i, :])
        summary.insert(0, "date", data.Ds)
        summary.insert(0, "region", r)
        frames.append(summary)

    if include_national:
        national = national_reporting_rate(reporting_rate, data.known_outcome_weights())
        summary = summarise_draws(national)
        summary.insert(0, "date", data.Ds)
        summary.insert(0, "region", "national")
        frames.append(summary)

    return pd.concat(frames, ignore_index=True)
