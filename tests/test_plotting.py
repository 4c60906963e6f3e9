import matplotlib

matplotlib.use("Agg")

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd

from ascertainment.plotting import plot_latest_reporting_rates, plot_reporting_rate_timeseries
from ascertainment.posterior import summarise_draws


def test_timeseries_grid(data):
    reporting_rate = np.random.default_rng(0).uniform(size=(50, data.nRs, data.nDs))
    plot_reporting_rate_timeseries(reporting_rate, data)
    assert len(plt.gcf().axes) >= data.nRs
    plt.close("all")


def test_latest_interval_plot():
    draws = np.random.default_rng(0).beta(3, 4, size=(200, 3))
    summary = summarise_draws(draws)
    summary.insert(0, "region", ["A", "B", "C"])
    plot_latest_reporting_rates(summary, title="latest")
    assert plt.gca().get_xlim() == (0, 1)
    assert [t.get_text() for t in plt.gca().get_yticklabels()] == ["A", "B", "C"]
    plt.close("all")
