"""
Contains a bunch of model utility functions, used to construct models while trying to minimise copy and pasteing code.

Arrays follow the data layout: regions are rows (axis 0) and days are columns (axis 1).
"""
import jax.numpy as jnp
import jax.scipy.linalg
import jax.scipy.special
import jax.scipy.stats
import numpy as np

import numpyro
import numpyro.distributions as dist

DEFAULT_GP_PRIOR = {
    "type": "lognormal",
    "lengthscale_loc": 4.0,
    "lengthscale_scale": 0.5,
    "sigma_loc": -1.0,
    "sigma_scale": 1.0,
    "intercept_variance": 0.5,
}


def resolve_gp_prior(gp_prior=None):
    if gp_prior is None:
        return dict(DEFAULT_GP_PRIOR)
    return {**DEFAULT_GP_PRIOR, **gp_prior}


def bias_kernel(X, X_prime, variance):
    return variance * jnp.ones((X.shape[0], X_prime.shape[0]))


def rbf_kernel(X, X_prime, lengthscale, variance):
    r = (X[:, None] - X_prime[None, :]) / lengthscale
    return variance * jnp.exp(-0.5 * r ** 2)


def white_kernel(X, X_prime, variance):
    # iid noise, so only coincident inputs covary
    return variance * (X[:, None] == X_prime[None, :])


def get_gp_kernel(lengthscale, sigma, intercept_variance, obs_sigma=None):
    """
    Create intercept + squared exponential kernel function, optionally plus white observation noise.

    :param lengthscale: squared exponential lengthscale
    :param sigma: squared exponential amplitude (standard deviation)
    :param intercept_variance: variance of the constant (bias) term
    :param obs_sigma: standard deviation of the white noise term. None excludes it.
    :return: kernel function K(X, X_prime)
    """

    def kernel(X, X_prime):
        K = bias_kernel(X, X_prime, intercept_variance) + rbf_kernel(
            X, X_prime, lengthscale, sigma ** 2
        )
        if obs_sigma is not None:
            K = K + white_kernel(X, X_prime, obs_sigma ** 2)
        return K

    return kernel


def get_times(nDs):
    return jnp.arange(1, nDs + 1, dtype=jnp.float32)


def get_inducing_points(times, n_inducing=5):
    """
    Space n_inducing points over the observed time range. The last is always on the most recent time point.

    :param times: increasing array of times. May be traced, so only jnp operations are used here.
    """
    if n_inducing < 1:
        raise ValueError("n_inducing must be at least 1")
    return jnp.linspace(times[0], times[-1], n_inducing + 1, dtype=jnp.float32)[1:]


def sparse_gp_projection(kernel, times, inducing_points, v, jitter=1e-6):
    """
    Subset of regressors approximation: project standard normal inducing variables onto all times.

    :param kernel: kernel function
    :param times: nTs array of times
    :param inducing_points: nIs array of inducing points
    :param v: nIs (or nIs x nGPs) array of standard normal variables
    :param jitter: added to the diagonal of the inducing covariance before factorising
    :return: nTs (or nTs x nGPs) latent values
    """
    n_inducing = inducing_points.shape[0]
    Kmm = kernel(inducing_points, inducing_points) + jitter * jnp.eye(n_inducing)
    Lm = jnp.linalg.cholesky(Kmm)
    Kmn = kernel(inducing_points, times)
    A = jax.scipy.linalg.solve_triangular(Lm, Kmn, lower=True)
    return A.T @ v


def latent_reporting_surface(
    times,
    inducing_points,
    national_v,
    national_lengthscale,
    national_sigma,
    v,
    state_lengthscale,
    state_sigma,
    national_intercept_variance=0.5,
    state_intercept_variance=0.5,
    obs_sigma=None,
    jitter=1e-6,
):
    """
    Latent (pre link function) reporting rate surface: national curve plus region deviations.

    :return: nRs x nTs array
    """
    national_kernel = get_gp_kernel(
        national_lengthscale, national_sigma, national_intercept_variance
    )
    mu = sparse_gp_projection(national_kernel, times, inducing_points, national_v, jitter)

    state_kernel = get_gp_kernel(
        state_lengthscale, state_sigma, state_intercept_variance, obs_sigma
    )
    z_state = sparse_gp_projection(state_kernel, times, inducing_points, v, jitter)

    # z_state is nTs x nRs; the national curve is added to every region (row after transposing)
    return z_state.T + mu.reshape((1, -1))


def iprobit(z):
    return jax.scipy.stats.norm.cdf(z)


def log_iprobit(z):
    return jax.scipy.special.log_ndtr(z)


def sample_gp_hyperparameters(prefix, gp_prior=None):
    gp_prior = resolve_gp_prior(gp_prior)

    if gp_prior["type"] == "lognormal":
        # lognormal prior on lengthscales to reduce prior probability of high temporal change
        lengthscale = numpyro.sample(
            f"{prefix}_lengthscale",
            dist.LogNormal(gp_prior["lengthscale_loc"], gp_prior["lengthscale_scale"]),
        )
        sigma = numpyro.sample(
            f"{prefix}_sigma",
            dist.LogNormal(gp_prior["sigma_loc"], gp_prior["sigma_scale"]),
        )
    else:
        raise ValueError("GP hyperparameter prior type must be in [lognormal]")

    return lengthscale, sigma


def sample_observation_sigma(obs_sigma_prior=None):
    if obs_sigma_prior is None:
        obs_sigma_prior = {"type": "half_normal", "scale": 0.5}

    if obs_sigma_prior["type"] == "half_normal":
        obs_sigma = numpyro.sample("sigma_obs", dist.HalfNormal(obs_sigma_prior["scale"]))
    else:
        raise ValueError("Observation noise prior type must be in [half_normal]")

    return obs_sigma


def resolve_baseline_cfr_prior(baseline_cfr_prior=None):
    # estimate from the China study. The 95% CIs are symmetric around it, so approximately Gaussian.
    if baseline_cfr_prior is None:
        baseline_cfr_prior = {"type": "trunc_normal", "mean": 1.38, "sd": 0.077}
    return baseline_cfr_prior


def sample_baseline_cfr(nRs, baseline_cfr_prior=None):
    """
    Baseline case fatality ratio, as a percentage, for each region.
    """
    baseline_cfr_prior = resolve_baseline_cfr_prior(baseline_cfr_prior)

    if baseline_cfr_prior["type"] == "trunc_normal":
        baseline_cfr_perc = numpyro.sample(
            "baseline_cfr_perc",
            dist.TruncatedNormal(
                loc=baseline_cfr_prior["mean"] * jnp.ones(nRs),
                scale=baseline_cfr_prior["sd"],
                low=0.0,
                high=100.0,
            ),
        )
    else:
        raise ValueError("Baseline CFR prior type must be in [trunc_normal]")

    return baseline_cfr_perc


def observe_deaths(data, log_baseline_cfr, log_reporting_rate):
    """
    Poisson observation model for deaths, on region/days with some cases with known outcomes.

    expected_deaths = cases_known_outcome * baseline_cfr / reporting_rate, computed on the log scale.

    :param data: PreprocessedData object
    :param log_baseline_cfr: nRs array
    :param log_reporting_rate: nRs x nDs array
    """
    some_cases_known = np.nonzero(data.cases_known_outcome > 0)

    # baseline CFR is broadcast along days (axis 1)
    log_cfr = log_baseline_cfr.reshape((data.nRs, 1)) - log_reporting_rate

    # exponentiate only where there are cases with known outcomes
    log_expected_deaths = log_cfr[some_cases_known] + np.log(
        data.cases_known_outcome[some_cases_known]
    )
    expected_deaths = numpyro.deterministic("expected_deaths", jnp.exp(log_expected_deaths))

    numpyro.sample(
        "observed_deaths",
        dist.Poisson(expected_deaths),
        obs=jnp.asarray(data.new_deaths[some_cases_known], dtype=jnp.int32),
    )


def sample_initial_values(
    rng,
    nRs,
    national_gp_prior=None,
    state_gp_prior=None,
    obs_sigma_prior=None,
    baseline_cfr_prior=None,
    n_inducing=5,
):
    """
    Draw initial values for one chain from the priors, for every latent site of the model.

    :param rng: numpy Generator, owned by the caller
    :param nRs: number of regions
    :param n_inducing: number of inducing points
    :return: dict of initial values, keyed by sample site name
    """
    inits = {}
    for prefix, gp_prior in [("national", national_gp_prior), ("state", state_gp_prior)]:
        gp_prior = resolve_gp_prior(gp_prior)
        inits[f"{prefix}_lengthscale"] = rng.lognormal(
            gp_prior["lengthscale_loc"], gp_prior["lengthscale_scale"]
        )
        inits[f"{prefix}_sigma"] = rng.lognormal(gp_prior["sigma_loc"], gp_prior["sigma_scale"])

    baseline_cfr_prior = resolve_baseline_cfr_prior(baseline_cfr_prior)
    inits["baseline_cfr_perc"] = np.clip(
        rng.normal(baseline_cfr_prior["mean"], baseline_cfr_prior["sd"], size=nRs),
        0.001,
        99.999,
    )

    if obs_sigma_prior is None:
        obs_sigma_prior = {"type": "half_normal", "scale": 0.5}
    if obs_sigma_prior["type"] == "half_normal":
        inits["sigma_obs"] = np.abs(rng.normal(0.0, obs_sigma_prior["scale"]))
    else:
        raise ValueError("Observation noise prior type must be in [half_normal]")

    inits["national_v"] = rng.standard_normal(n_inducing)
    inits["v"] = rng.standard_normal((n_inducing, nRs))

    return {k: jnp.asarray(v, dtype=jnp.float32) for k, v in inits.items()}
