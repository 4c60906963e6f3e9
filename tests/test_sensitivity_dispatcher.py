import argparse
import importlib.util
import os

import yaml

SCRIPTS_DIR = os.path.join(os.path.dirname(__file__), "..", "scripts")


def load_dispatcher():
    spec = importlib.util.spec_from_file_location(
        "sensitivity_dispatcher", os.path.join(SCRIPTS_DIR, "sensitivity_dispatcher.py")
    )
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def test_sweep_arguments():
    dispatcher = load_dispatcher()
    swept = dispatcher.sweep_arguments({"mean_delay": [10.0, 13.0], "median_delay": 9.1})
    assert swept == [
        [("mean_delay", 10.0), ("median_delay", 9.1)],
        [("mean_delay", 13.0), ("median_delay", 9.1)],
    ]
    assert dispatcher.sweep_arguments({}) == [[]]


def test_build_commands_for_every_config_and_value():
    dispatcher = load_dispatcher()
    with open(os.path.join(SCRIPTS_DIR, "sensitivity_analysis", "sensitivity_analysis.yaml"), "r") as stream:
        run_options = yaml.safe_load(stream)

    args = argparse.Namespace(
        model_type="default", num_chains=4, num_samples=100, num_warmup=100, chain_method="parallel"
    )
    commands = dispatcher.build_commands(args, run_options, ["inducing_points"], ["default", "vague_gp"])

    assert len(commands) == 2 * len(run_options["inducing_points"]["args"]["n_inducing"])
    for command in commands:
        assert command[1] == "scripts/sensitivity_analysis/inducing_points.py"
        assert command[command.index("--num_chains") + 1] == "4"
        assert "--n_inducing" in command
    assert {c[c.index("--model_config") + 1] for c in commands} == {"default", "vague_gp"}
