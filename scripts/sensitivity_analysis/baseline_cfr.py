"""
:code:`baseline_cfr.py`

Specify the prior over the baseline case fatality ratio (percentage) using command line parameters.
"""
import sys, os

sys.path.append(os.getcwd())  # add current working directory to the path

import argparse
import numpyro
from datetime import datetime

from ascertainment.script_utils import *

argparser = argparse.ArgumentParser()
argparser.add_argument(
    "--cfr_mean",
    dest="cfr_mean",
    type=float,
    help="Mean of the baseline CFR percentage prior",
)
argparser.add_argument(
    "--cfr_sd",
    dest="cfr_sd",
    type=float,
    help="Standard deviation of the baseline CFR percentage prior",
)

add_argparse_arguments(argparser)
args = argparser.parse_args()
numpyro.set_host_device_count(args.num_chains)

if __name__ == "__main__":
    print(f"Running Sensitivity Analysis {__file__} with config:")
    config = load_model_config(args.model_config, args.model_config_path)
    config["model_kwargs"]["baseline_cfr_prior"] = {
        "type": "trunc_normal",
        "mean": args.cfr_mean,
        "sd": args.cfr_sd,
    }
    pprint_mb_dict(config)

    base_outpath = generate_base_output_dir(args.model_type, args.model_config, args.exp_tag)
    ts_str = datetime.now().strftime("%Y-%m-%d;%H-%M-%S")
    run_pipeline(args, config, base_outpath, f"{ts_str}_cfr{args.cfr_mean}")
