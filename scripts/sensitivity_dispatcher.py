"""
:code:`sensitivity_dispatcher.py`

Launch the sensitivity analysis runs listed in sensitivity_analysis.yaml as parallel processes.

Each entry of sensitivity_analysis.yaml names an experiment script, a tag and a set of arguments. List valued
arguments are swept: one run per combination of values, per requested model config.
"""
import argparse
import itertools
import shlex
import subprocess
from concurrent.futures import ThreadPoolExecutor

import yaml

SENSITIVITY_CONFIG_PATH = "scripts/sensitivity_analysis/sensitivity_analysis.yaml"
MODEL_CONFIG_PATH = "scripts/model_configs.yaml"

argparser = argparse.ArgumentParser()
argparser.add_argument(
    "--max_parallel_runs",
    dest="max_parallel_runs",
    type=int,
    default=4,
    help="Number of runs executing at once",
)
argparser.add_argument(
    "--categories", nargs="+", dest="categories", type=str, help="Run types to execute"
)
argparser.add_argument(
    "--dry_run",
    default=False,
    action="store_true",
    help="Print the commands and exit",
)
argparser.add_argument(
    "--model_type",
    default="default",
    dest="model_type",
    type=str,
    help="Model type to use for requested sensitivity analyses",
)
argparser.add_argument(
    "--model_config",
    default=["default"],
    dest="model_config",
    type=str,
    nargs="+",
    help="Model configs to run every requested analysis under. 'all' selects every non default config",
)
argparser.add_argument("--num_chains", default=50, dest="num_chains", type=int)
argparser.add_argument("--num_samples", default=1000, dest="num_samples", type=int)
argparser.add_argument("--num_warmup", default=1000, dest="num_warmup", type=int)
argparser.add_argument("--chain_method", default="parallel", dest="chain_method", type=str)


def resolve_model_configs(requested):
    if requested != ["all"]:
        return requested

    with open(MODEL_CONFIG_PATH, "r") as stream:
        config_names = list(yaml.safe_load(stream).keys())
    return [c for c in config_names if c != "default"]


def sweep_arguments(run_args):
    """
    Expand {name: value or [values]} into one list of (name, value) pairs per combination.
    """
    names = list(run_args.keys())
    values = [v if isinstance(v, list) else [v] for v in run_args.values()]
    return [list(zip(names, combination)) for combination in itertools.product(*values)]


def build_commands(args, run_options, categories, model_configs):
    commands = []
    for model_config, category in itertools.product(model_configs, categories):
        run = run_options[category]
        base = [
            "python",
            f"scripts/sensitivity_analysis/{run['experiment_file']}",
            "--model_type", args.model_type,
            "--model_config", model_config,
            "--exp_tag", run["experiment_tag"],
            "--num_chains", str(args.num_chains),
            "--num_samples", str(args.num_samples),
            "--num_warmup", str(args.num_warmup),
            "--chain_method", args.chain_method,
        ]
        for swept in sweep_arguments(run.get("args") or {}):
            commands.append(base + [t for name, value in swept for t in (f"--{name}", str(value))])
    return commands


def execute(command):
    print(f"Running {shlex.join(command)}")
    return subprocess.run(command).returncode


if __name__ == "__main__":
    args = argparser.parse_args()

    with open(SENSITIVITY_CONFIG_PATH, "r") as stream:
        run_options = yaml.safe_load(stream)

    categories = args.categories if args.categories else list(run_options.keys())
    unknown = [c for c in categories if c not in run_options]
    if unknown:
        raise ValueError(f"Unknown sensitivity categories {unknown}; options are {list(run_options.keys())}")

    commands = build_commands(args, run_options, categories, resolve_model_configs(args.model_config))

    print(
        "Running Sensitivity Analysis\n"
        "---------------------------------------\n\n"
        f"Categories: {categories}\n"
        f"You have requested {len(commands)} runs"
    )

    if args.dry_run:
        print("Performing Dry Run")
        for c in commands:
            print(shlex.join(c))
    else:
        # threads only wait on the child processes; each run samples in its own process
        with ThreadPoolExecutor(max_workers=args.max_parallel_runs) as executor:
            returncodes = list(executor.map(execute, commands))

        failed = [shlex.join(c) for c, code in zip(commands, returncodes) if code != 0]
        print(f"{len(commands) - len(failed)} of {len(commands)} runs succeeded")
        for c in failed:
            print(f"Failed: {c}")
