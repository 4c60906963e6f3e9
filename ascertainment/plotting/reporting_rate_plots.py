import matplotlib.dates as mdates
import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
import seaborn as sns

from ascertainment.posterior import SUMMARY_COLUMNS


def plot_region_reporting_rate(region_rr_samples, Ds, death_Ds=None, title=None, color=None):
    """
    Plot one region's smoothed reporting rate, with 50% and 95% bands.

    :param region_rr_samples: nS x nTs reporting rate draws
    :param Ds: dates of the nTs columns. The first is marked as the first day with a known outcome.
    :param death_Ds: dates with at least one death, shown as a rug
    """
    if color is None:
        color = sns.color_palette("Blues", 6)[4]

    li, lq, uq, ui = np.percentile(region_rr_samples, [2.5, 25, 75, 97.5], axis=0)
    m = np.mean(region_rr_samples, axis=0)

    plt.fill_between(Ds, li, ui, color=color, alpha=0.2, linewidth=0)
    plt.fill_between(Ds, lq, uq, color=color, alpha=0.4, linewidth=0)
    plt.plot(Ds, m, color=color, linewidth=2)

    plt.axvline(Ds[0], color="tab:red", linewidth=1)
    plt.text(Ds[0], 1.05, "first case reported", color="tab:red", fontsize=6)

    if death_Ds is not None and len(death_Ds) > 0:
        plt.plot(death_Ds, np.zeros(len(death_Ds)), "|", color="k", markersize=8)

    if title is not None:
        plt.title(title, fontsize=10)

    plt.gca().xaxis.set_major_formatter(mdates.DateFormatter("%b %d"))
    plt.xticks(fontsize=8)

    plt.yticks(fontsize=8)
    plt.ylim([0, 1])
    plt.ylabel("probability of detection", fontsize=8)


def plot_reporting_rate_timeseries(reporting_rate, data, ncols=2, newfig=True):
    """
    Grid of per-region reporting rate time series, each from the region's first day with a known outcome.

    Dates are shifted back by the mean outcome delay to reflect when a symptomatic case would have been detected.

    :param reporting_rate: nS x nRs x nDs smoothed reporting rate draws
    :param data: PreprocessedData object
    """
    nrows = int(np.ceil(data.nRs / ncols))
    if newfig:
        plt.figure(figsize=(4 * ncols, 2.5 * nrows), dpi=300)

    shifted_Ds = pd.DatetimeIndex(data.Ds) - pd.Timedelta(days=int(round(data.delay.mean_delay)))

    for r_i, r in enumerate(data.Rs):
        plt.subplot(nrows, ncols, r_i + 1)
        start = data.first_known_outcome_index(r)
        if start is None:
            plt.title(f"{r} (no cases)", fontsize=10)
            continue

        death_days = data.death_day_indices(r)
        plot_region_reporting_rate(
            reporting_rate[:, r_i, start:],
            shifted_Ds[start:],
            death_Ds=shifted_Ds[death_days[death_days >= start]],
            title=r,
        )
        plt.xlim([shifted_Ds[0], shifted_Ds[-1]])
        plt.xlabel("date of symptomatic case report", fontsize=8)

    plt.tight_layout()


def plot_latest_reporting_rates(summary, title=None, newfig=True):
    """
    Interval plot of per-region reporting rate summaries.

    :param summary: DataFrame with a region column and the summary columns
    """
    if newfig:
        plt.figure(figsize=(4, 0.4 * len(summary) + 1), dpi=300)

    assert all(c in summary.columns for c in SUMMARY_COLUMNS)

    nRs = len(summary)
    y = -np.arange(nRs)
    color = sns.color_palette("Blues", 6)[4]

    for i in range(0, nRs, 2):
        plt.fill_between(
            [0, 1], [-i + 0.5, -i + 0.5], [-i - 0.5, -i - 0.5], color="k", alpha=0.05, linewidth=0
        )

    plt.hlines(y, summary["lower_95"], summary["upper_95"], color=color, alpha=0.5, linewidth=1)
    plt.hlines(y, summary["lower_50"], summary["upper_50"], color=color, linewidth=3)
    plt.scatter(summary["mean"], y, color="k", marker="|", zorder=3)

    plt.yticks(y, summary["region"])
    plt.ylim([-nRs + 0.5, 0.5])
    plt.xlim([0, 1])
    plt.xlabel("reporting rate")

    if title is not None:
        plt.title(title, fontsize=10)
