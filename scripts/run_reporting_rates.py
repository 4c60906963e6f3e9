"""
:code:`run_reporting_rates.py`

Estimate the reporting rate of symptomatic cases for each region over time, using the latest case and death data.
"""
import sys, os

sys.path.append(os.getcwd())  # add current working directory to the path

import argparse
import numpyro
import logging
from datetime import datetime

from ascertainment.script_utils import *

argparser = argparse.ArgumentParser()
add_argparse_arguments(argparser)
argparser.add_argument(
    "--output_dir", dest="output_dir", type=str, help="output directory", default="output"
)
args = argparser.parse_args()
numpyro.set_host_device_count(args.num_chains)

if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(name)s %(levelname)s: %(message)s")

    print(f"Running {__file__} with config {args.model_config}:")
    model_config = load_model_config(args.model_config, args.model_config_path)
    pprint_mb_dict(model_config)

    if not os.path.exists(args.output_dir):
        os.makedirs(args.output_dir)

    ts_str = datetime.now().strftime("%Y-%m-%d;%H-%M-%S")
    data, samples, info = run_pipeline(args, model_config, args.output_dir, ts_str)

    print(f"Max Rhat: {info['max_rhat']:.3f}, Min ESS: {info['min_ess']:.1f}, Divergences: {info['divergences']}")
