import json
import logging
import time
import warnings
from datetime import datetime

import arviz as az
import jax
import jax.numpy as jnp
import numpy as np
import numpyro
from jax import random
from numpyro.infer import MCMC, NUTS
from numpyro.infer.util import unconstrain_fn

from ascertainment.errors import ConvergenceWarning, NumericalInstabilityError
from ascertainment.models.model_build_utils import sample_initial_values

log = logging.getLogger(__name__)


def get_latent_sites(model_func, data, model_kwargs=None):
    """
    Names of the unobserved sample sites of a model, i.e., the parameters that are sampled.
    """
    if model_kwargs is None:
        model_kwargs = {}
    model_trace = numpyro.handlers.trace(numpyro.handlers.seed(model_func, 0)).get_trace(
        data, **model_kwargs
    )
    return [
        name
        for name, site in model_trace.items()
        if site["type"] == "sample" and not site["is_observed"]
    ]


def generate_chain_initial_values(rng, nRs, num_chains, model_kwargs=None):
    """
    Draw initial values for every chain, in order, from a single numpy Generator.
    """
    if model_kwargs is None:
        model_kwargs = {}
    prior_kwargs = {
        k: model_kwargs.get(k)
        for k in ["national_gp_prior", "state_gp_prior", "obs_sigma_prior", "baseline_cfr_prior"]
    }
    return [
        sample_initial_values(rng, nRs, n_inducing=model_kwargs.get("n_inducing", 5), **prior_kwargs)
        for _ in range(num_chains)
    ]


def chain_init_params(model_func, data, init_values, model_kwargs=None):
    """
    Map each chain's (constrained) initial values to the unconstrained space NUTS samples in, stacked along a
    leading chain dimension.

    :param init_values: list of dicts, one per chain, with a value for every latent site
    :return: dict of arrays with shape (num_chains, ...)
    """
    if model_kwargs is None:
        model_kwargs = {}
    unconstrained = [
        unconstrain_fn(model_func, (data,), model_kwargs, values) for values in init_values
    ]
    return jax.tree_util.tree_map(lambda *xs: jnp.stack(xs), *unconstrained)


def compute_diagnostics(grouped_samples, sites):
    """
    Potential scale reduction and effective sample size for each site.

    :param grouped_samples: dict of arrays with shape (num_chains, num_samples, ...)
    :param sites: sites to compute diagnostics for
    :return: dict with per-site max R-hat and min ESS, and the overall max R-hat and min ESS
    """
    num_chains = next(iter(grouped_samples.values())).shape[0]
    diagnostics = {"rhat": {}, "ess": {}}

    for k in sites:
        ess = np.asarray(numpyro.diagnostics.effective_sample_size(grouped_samples[k]))
        diagnostics["ess"][k] = float(np.nanmin(ess))

        if num_chains > 1:
            rhat = np.asarray(numpyro.diagnostics.gelman_rubin(grouped_samples[k]))
            diagnostics["rhat"][k] = float(np.nanmax(rhat))

    diagnostics["min_ess"] = float(np.nanmin(list(diagnostics["ess"].values())))
    if num_chains > 1:
        diagnostics["max_rhat"] = float(np.nanmax(list(diagnostics["rhat"].values())))
    else:
        diagnostics["max_rhat"] = float("nan")

    return diagnostics


def check_convergence(diagnostics, max_rhat=1.1, min_ess=100.0):
    """
    Warn if the diagnostics are outside acceptable thresholds. Nothing is rerun.

    :return: True if the run looks converged
    """
    problems = []
    if not diagnostics["max_rhat"] <= max_rhat:
        worst = sorted(diagnostics["rhat"], key=lambda k: -diagnostics["rhat"][k])[:3]
        problems.append(f"max R-hat {diagnostics['max_rhat']:.3f} > {max_rhat} (worst: {worst})")

    if diagnostics["min_ess"] < min_ess:
        worst = sorted(diagnostics["ess"], key=lambda k: diagnostics["ess"][k])[:3]
        problems.append(f"min ESS {diagnostics['min_ess']:.1f} < {min_ess} (worst: {worst})")

    if problems:
        warnings.warn(
            "Sampler has not converged: "
            + "; ".join(problems)
            + ". Consider rerunning with more samples or chains.",
            ConvergenceWarning,
        )
        return False

    return True


def check_finite(samples, sites):
    for k in sites:
        if k in samples and not np.all(np.isfinite(samples[k])):
            raise NumericalInstabilityError(
                f"Non-finite values in {k}: covariance factorisation failed. Try more jitter, different inducing "
                f"points or different kernel priors.",
                site=k,
            )


def run_model(
    model_func,
    data,
    num_samples=1000,
    num_warmup=1000,
    num_chains=50,
    target_accept=0.8,
    max_tree_depth=10,
    seed=0,
    chain_method="sequential",
    model_kwargs=None,
    max_rhat=1.1,
    min_ess=100.0,
    save_results=False,
    output_fname=None,
    save_json=False,
):
    """
    Model run utility

    Each chain starts from its own draw from the priors, and chains are pooled afterwards.

    :param model_func: numpyro model
    :param data: PreprocessedData object
    :param num_samples: number of samples per chain
    :param num_warmup: number of warmup samples per chain
    :param num_chains: number of chains
    :param target_accept: target accept
    :param max_tree_depth: maximum treedepth
    :param seed: seed for both the initial values and the chain PRNG keys
    :param chain_method: Numpyro chain method to use, 'sequential' or 'parallel'. 'parallel' needs
        numpyro.set_host_device_count(num_chains) at the start of the program, otherwise numpyro falls back to
        sequential chains.
    :param model_kwargs: model kwargs -- extra arguments for the model function
    :param max_rhat: R-hat above which a ConvergenceWarning is issued
    :param min_ess: ESS below which a ConvergenceWarning is issued
    :param save_results: whether to save the grouped draws as netcdf
    :param output_fname: output filename
    :param save_json: whether to save info_dict as json next to the netcdf
    :return: posterior_samples (pooled), info_dict (dict with assorted diagnostics), grouped_samples (by chain)
    """
    if model_kwargs is None:
        model_kwargs = {}

    if chain_method not in ["sequential", "parallel"]:
        raise ValueError("chain_method must be in [sequential, parallel]")

    log.info(
        f"Running {num_chains} chains, {num_samples} per chain with {num_warmup} warmup steps"
    )

    rng = np.random.default_rng(seed)
    init_values = generate_chain_initial_values(rng, data.nRs, num_chains, model_kwargs)
    init_params = chain_init_params(model_func, data, init_values, model_kwargs)
    rng_keys = random.split(random.PRNGKey(seed), num_chains)

    if num_chains == 1:
        init_params = {k: v[0] for k, v in init_params.items()}
        rng_keys = rng_keys[0]

    nuts_kernel = NUTS(
        model_func,
        target_accept_prob=target_accept,
        max_tree_depth=max_tree_depth,
    )
    mcmc = MCMC(
        nuts_kernel,
        num_samples=num_samples,
        num_warmup=num_warmup,
        num_chains=num_chains,
        chain_method=chain_method,
        progress_bar=False,
    )

    info_dict = {
        "model_name": model_func.__name__,
        "model_kwargs": model_kwargs,
        "num_chains": num_chains,
        "num_samples": num_samples,
        "num_warmup": num_warmup,
        "seed": seed,
    }

    log.info(f"Sample Started: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
    start = time.time()
    mcmc.run(
        rng_keys, data, **model_kwargs, init_params=init_params, extra_fields=("diverging",)
    )
    end = time.time()
    log.info(f"Sample Finished: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")

    grouped_samples = {
        k: np.asarray(v) for k, v in mcmc.get_samples(group_by_chain=True).items()
    }
    posterior_samples = {
        k: v.reshape((num_chains * num_samples,) + v.shape[2:])
        for k, v in grouped_samples.items()
    }

    divergences = int(np.sum(mcmc.get_extra_fields()["diverging"]))
    info_dict["time_per_sample"] = float(end - start) / num_samples
    info_dict["total_runtime"] = float(end - start)
    info_dict["divergences"] = divergences

    log.info(f"Sampling {num_samples} samples per chain took {end - start:.2f}s")
    log.info(f"There were {divergences} divergences.")

    check_finite(posterior_samples, ["reporting_rate", "reporting_rate_smooth"])

    latent_sites = get_latent_sites(model_func, data, model_kwargs)
    diagnostics = compute_diagnostics(grouped_samples, latent_sites)
    info_dict["ess"] = diagnostics["ess"]
    info_dict["rhat"] = diagnostics["rhat"]
    info_dict["min_ess"] = diagnostics["min_ess"]
    info_dict["max_rhat"] = diagnostics["max_rhat"]

    log.info(f"Min ESS: {diagnostics['min_ess']:.2f}, Max Rhat: {diagnostics['max_rhat']:.3f}")

    info_dict["converged"] = check_convergence(diagnostics, max_rhat, min_ess)

    if save_results:
        log.info("Saving .netcdf")
        inf_data = az.from_dict(posterior=grouped_samples)

        if output_fname is None:
            output_fname = f'{model_func.__name__}-{datetime.now(tz=None).strftime("%d-%m;%H-%M-%S")}.netcdf'

        inf_data.to_netcdf(output_fname)

        if save_json:
            json_fname = output_fname.replace(".netcdf", ".json")
            log.info("Saving Json")
            with open(json_fname, "w") as f:
                json.dump(info_dict, f, ensure_ascii=False, indent=4)

    return posterior_samples, info_dict, grouped_samples
