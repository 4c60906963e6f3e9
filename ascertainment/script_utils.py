"""
:code:`script_utils.py`

Utilities to support the use of command line experiments
"""
import os

import matplotlib.pyplot as plt
import pandas as pd
import yaml

from ascertainment.epiparam import OutcomeDelay
from ascertainment.models import reporting_rate_model, run_model
from ascertainment.plotting import plot_latest_reporting_rates, plot_reporting_rate_timeseries
from ascertainment.posterior import (
    national_summary,
    region_summary,
    reporting_rate_timeseries,
    smooth_reporting_rate,
)
from ascertainment.preprocessing import preprocess_data

DEFAULT_MODEL_CONFIG_PATH = "scripts/model_configs.yaml"


def get_model_func_from_str(model_type_str):
    """
    link model function string to actual function

    :param model_type_str:
    :return: model function
    """
    if model_type_str == "default":
        return reporting_rate_model
    raise ValueError(f"Unknown model type {model_type_str}")


def add_argparse_arguments(argparse):
    """
    add argparse arguments to scripts

    :param argparse: argparse object
    """
    argparse.add_argument(
        "--model_type",
        dest="model_type",
        type=str,
        help="""model""",
        default="default",
    )
    argparse.add_argument(
        "--exp_tag", dest="exp_tag", type=str, help="experiment identification tag", default="base"
    )
    argparse.add_argument(
        "--data_path", dest="data_path", type=str, help="long format case and death counts csv",
        default=get_data_path(),
    )
    argparse.add_argument(
        "--num_chains",
        dest="num_chains",
        type=int,
        help="the number of chains to run",
        default=50,
    )
    argparse.add_argument(
        "--num_samples",
        dest="num_samples",
        type=int,
        help="the number of samples to draw per chain",
        default=1000,
    )
    argparse.add_argument(
        "--num_warmup",
        dest="num_warmup",
        type=int,
        help="the number of warmup samples to draw per chain",
        default=1000,
    )
    argparse.add_argument(
        "--max_tree_depth", dest="max_tree_depth", type=int, help="NUTS tree depth", default=10
    )
    argparse.add_argument(
        "--target_accept", dest="target_accept", type=float, help="NUTS target accept", default=0.8
    )
    argparse.add_argument("--seed", dest="seed", type=int, help="random seed", default=20200402)
    argparse.add_argument(
        "--chain_method",
        dest="chain_method",
        type=str,
        help="run chains 'sequential' or 'parallel'",
        default="sequential",
    )
    argparse.add_argument(
        "--model_config",
        dest="model_config",
        type=str,
        help="model config name, which is used for overriding default options",
        default="default",
    )
    argparse.add_argument(
        "--model_config_path",
        dest="model_config_path",
        type=str,
        help="yaml file of model configs",
        default=DEFAULT_MODEL_CONFIG_PATH,
    )
    argparse.add_argument(
        "--ignore_convergence",
        dest="ignore_convergence",
        default=False,
        action="store_true",
        help="summarise even if the sampler has not converged",
    )


def load_model_config(model_config_str, model_config_path=DEFAULT_MODEL_CONFIG_PATH):
    """
    Load a named model config. Missing sections are filled with empty dicts.

    :return: dict with epiparam_kwargs, preprocessing_kwargs and model_kwargs
    """
    with open(model_config_path, "r") as stream:
        model_configs = yaml.safe_load(stream)

    if model_config_str not in model_configs:
        raise ValueError(
            f"Model config {model_config_str} not found in {model_config_path}; "
            f"options are {list(model_configs.keys())}"
        )

    model_config = model_configs[model_config_str] or {}
    for key in ["epiparam_kwargs", "preprocessing_kwargs", "model_kwargs"]:
        if model_config.get(key) is None:
            model_config[key] = {}

    return model_config


def pprint_mb_dict(d):
    """
    pretty print dictionary

    :param d:
    :return:
    """
    print("Model Build Dict\n" "----------------")

    for k, v in d.items():
        print(f"    {k}: {v}")


def generate_base_output_dir(model_type, model_config, exp_tag):
    """
    standardise output directory

    :param model_type:
    :param model_config:
    :param exp_tag:
    :return: output directory
    """
    out_path = os.path.join(
        "sensitivity_analysis", f"{model_type}_c{model_config}", exp_tag
    )
    if not os.path.exists(out_path):
        os.makedirs(out_path)

    return out_path


def get_data_path():
    return "data/case_death_counts.csv"


def run_pipeline(args, model_config, output_dir, ts_str):
    """
    Load data, fit the model and, if the run converged (or args.ignore_convergence), write summaries.

    :param args: parsed arguments from add_argparse_arguments
    :param model_config: dict from load_model_config, possibly with overrides
    :param output_dir: directory for all outputs
    :param ts_str: timestamp string used to prefix output files
    :return: data, posterior_samples, info_dict
    """
    print("Loading Data")
    delay = OutcomeDelay(**model_config["epiparam_kwargs"])
    delay.summarise_parameters()
    data = preprocess_data(args.data_path, delay=delay, **model_config["preprocessing_kwargs"])

    model_func = get_model_func_from_str(args.model_type)
    model_kwargs = model_config["model_kwargs"]
    pprint_mb_dict(model_kwargs)

    posterior_samples, info_dict, _ = run_model(
        model_func,
        data,
        num_samples=args.num_samples,
        num_warmup=args.num_warmup,
        num_chains=args.num_chains,
        target_accept=args.target_accept,
        max_tree_depth=args.max_tree_depth,
        seed=args.seed,
        chain_method=args.chain_method,
        model_kwargs=model_kwargs,
        save_results=True,
        output_fname=os.path.join(output_dir, f"{ts_str}_full.netcdf"),
    )

    info_dict["model_config"] = args.model_config
    info_dict["exp_tag"] = args.exp_tag
    info_dict["start_dt"] = ts_str
    info_dict["delay"] = delay.get_parameters()

    if not info_dict["converged"] and not args.ignore_convergence:
        print("Sampler has not converged; not summarising. Rerun with more samples or chains, or pass "
              "--ignore_convergence.")
    else:
        save_summaries(posterior_samples, data, model_kwargs, output_dir, ts_str, info_dict)

    with open(os.path.join(output_dir, f"{ts_str}_summary.yaml"), "w") as f:
        yaml.dump(info_dict, f, sort_keys=True)

    return data, posterior_samples, info_dict


def save_summaries(posterior_samples, data, model_kwargs, output_dir, ts_str, info_dict):
    """
    Write the latest per-region and national reporting rates, the full time series, and plots.
    """
    latest = region_summary(posterior_samples, data, model_kwargs=model_kwargs)
    latest.to_csv(os.path.join(output_dir, f"{ts_str}_latest_reporting_rates.csv"), index=False)
    print(latest.round(3).to_string(index=False))

    national = national_summary(posterior_samples, data, model_kwargs=model_kwargs)
    info_dict["national_latest"] = {k: float(v) for k, v in national.items()}
    print(f"National: {national.round(3).to_dict()}")

    reporting_rate_timeseries(posterior_samples, data, model_kwargs).to_csv(
        os.path.join(output_dir, f"{ts_str}_reporting_rate_timeseries.csv"), index=False
    )

    reporting_rate = smooth_reporting_rate(posterior_samples, data, model_kwargs=model_kwargs)
    plot_reporting_rate_timeseries(reporting_rate, data)
    plt.savefig(os.path.join(output_dir, f"{ts_str}_reporting_rate_timeseries_by_region.png"))
    plt.close()

    latest_date = pd.Timestamp(data.Ds[-1]) - pd.Timedelta(days=int(round(data.delay.mean_delay)))
    plot_latest_reporting_rates(
        latest,
        title=f"estimated reporting rates for symptomatic cases\non {latest_date.date()} (the latest available data)",
    )
    plt.savefig(os.path.join(output_dir, f"{ts_str}_latest_reporting_rates.png"), bbox_inches="tight")
    plt.close()
