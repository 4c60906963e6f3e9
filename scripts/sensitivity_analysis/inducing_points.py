"""
:code:`inducing_points.py`

Vary the number of inducing points, and the jitter, of the sparse GP approximation.
"""
import sys, os

sys.path.append(os.getcwd())  # add current working directory to the path

import argparse
import numpyro
from datetime import datetime

from ascertainment.script_utils import *

argparser = argparse.ArgumentParser()
argparser.add_argument(
    "--n_inducing",
    dest="n_inducing",
    type=int,
    help="Number of inducing points",
)
argparser.add_argument(
    "--jitter",
    dest="jitter",
    type=float,
    default=1e-6,
    help="Jitter added to the inducing covariance",
)

add_argparse_arguments(argparser)
args = argparser.parse_args()
numpyro.set_host_device_count(args.num_chains)

if __name__ == "__main__":
    print(f"Running Sensitivity Analysis {__file__} with config:")
    config = load_model_config(args.model_config, args.model_config_path)
    config["model_kwargs"]["n_inducing"] = args.n_inducing
    config["model_kwargs"]["jitter"] = args.jitter
    pprint_mb_dict(config)

    base_outpath = generate_base_output_dir(args.model_type, args.model_config, args.exp_tag)
    ts_str = datetime.now().strftime("%Y-%m-%d;%H-%M-%S")
    run_pipeline(args, config, base_outpath, f"{ts_str}_inducing{args.n_inducing}")
