import logging

import jax.numpy as jnp

import numpyro
import numpyro.distributions as dist

from ascertainment.models.model_build_utils import (
    get_inducing_points,
    get_times,
    iprobit,
    latent_reporting_surface,
    log_iprobit,
    observe_deaths,
    resolve_gp_prior,
    sample_baseline_cfr,
    sample_gp_hyperparameters,
    sample_observation_sigma,
)

log = logging.getLogger(__name__)


def reporting_rate_model(
    data,
    national_gp_prior=None,
    state_gp_prior=None,
    obs_sigma_prior=None,
    baseline_cfr_prior=None,
    n_inducing=5,
    jitter=1e-6,
    **kwargs,
):
    """
    Hierarchical Gaussian process model for the reporting rate in each region over time.

        deaths ~ Poisson(expected_deaths)
        expected_deaths = cases_known_outcome * baseline_cfr / reporting_rate

    :param data: PreprocessedData object
    :param national_gp_prior: prior dict for the national GP hyperparameters
    :param state_gp_prior: prior dict for the region GP hyperparameters
    :param obs_sigma_prior: prior dict for the observation noise (overdispersion) standard deviation
    :param baseline_cfr_prior: prior dict for the baseline CFR percentage
    :param n_inducing: number of inducing points
    :param jitter: added to inducing covariances before factorising
    """
    for k in kwargs.keys():
        log.warning(f"{k} is not being used")

    national_gp_prior = resolve_gp_prior(national_gp_prior)
    state_gp_prior = resolve_gp_prior(state_gp_prior)

    times = get_times(data.nDs)
    inducing_points = get_inducing_points(times, n_inducing)

    national_lengthscale, national_sigma = sample_gp_hyperparameters(
        "national", national_gp_prior
    )
    state_lengthscale, state_sigma = sample_gp_hyperparameters("state", state_gp_prior)
    sigma_obs = sample_observation_sigma(obs_sigma_prior)

    national_v = numpyro.sample("national_v", dist.Normal(jnp.zeros(n_inducing), 1.0))
    v = numpyro.sample("v", dist.Normal(jnp.zeros((n_inducing, data.nRs)), 1.0))

    surface_kwargs = dict(
        national_intercept_variance=national_gp_prior["intercept_variance"],
        state_intercept_variance=state_gp_prior["intercept_variance"],
        jitter=jitter,
    )

    # fitted with the observation (overdispersion) kernel
    z = latent_reporting_surface(
        times,
        inducing_points,
        national_v,
        national_lengthscale,
        national_sigma,
        v,
        state_lengthscale,
        state_sigma,
        obs_sigma=sigma_obs,
        **surface_kwargs,
    )
    # same latent draws without observation noise, for reporting
    z_smooth = latent_reporting_surface(
        times,
        inducing_points,
        national_v,
        national_lengthscale,
        national_sigma,
        v,
        state_lengthscale,
        state_sigma,
        obs_sigma=None,
        **surface_kwargs,
    )

    numpyro.deterministic("reporting_rate", iprobit(z))
    numpyro.deterministic("reporting_rate_smooth", iprobit(z_smooth))

    baseline_cfr_perc = sample_baseline_cfr(data.nRs, baseline_cfr_prior)
    log_baseline_cfr = jnp.log(baseline_cfr_perc) - jnp.log(100.0)

    observe_deaths(data, log_baseline_cfr, log_iprobit(z))
