"""
:code:`delay_params.py`

Specify the hospitalisation to outcome delay distribution using command line parameters.
"""
import sys, os

sys.path.append(os.getcwd())  # add current working directory to the path

import argparse
import numpyro
from datetime import datetime

from ascertainment.script_utils import *

argparser = argparse.ArgumentParser()
argparser.add_argument(
    "--mean_delay",
    dest="mean_delay",
    type=float,
    help="Mean of the hospitalisation to outcome delay",
)
argparser.add_argument(
    "--median_delay",
    dest="median_delay",
    type=float,
    help="Median of the hospitalisation to outcome delay",
)

add_argparse_arguments(argparser)
args = argparser.parse_args()
numpyro.set_host_device_count(args.num_chains)

if __name__ == "__main__":
    print(f"Running Sensitivity Analysis {__file__} with config:")
    config = load_model_config(args.model_config, args.model_config_path)
    config["epiparam_kwargs"]["mean_delay"] = args.mean_delay
    config["epiparam_kwargs"]["median_delay"] = args.median_delay
    pprint_mb_dict(config)

    base_outpath = generate_base_output_dir(args.model_type, args.model_config, args.exp_tag)
    ts_str = datetime.now().strftime("%Y-%m-%d;%H-%M-%S")
    run_pipeline(args, config, base_outpath, f"{ts_str}_mean{args.mean_delay}_median{args.median_delay}")
