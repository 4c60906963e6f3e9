"""
:code:`preprocessing.py`

PreprocessedData Class definition, and the integrity checks run before a model is built.
"""
import logging

import numpy as np
import pandas as pd

from .epiparam import OutcomeDelay, cases_known_outcome
from .errors import AlignmentError, ConsistencyError

log = logging.getLogger(__name__)

CASE_TYPE = "confirmed"
DEATH_TYPE = "death"
REQUIRED_COLUMNS = ["region", "date", "count", "type"]


def preprocess_data(data_path, delay=None, country=None, first_day=None, last_day=None):
    """
    Process data, return PreprocessedData() object

    :param data_path: path to a long format csv (region, date, count, type), or an equivalent DataFrame
    :param delay: OutcomeDelay used to compute cases with known outcomes. Defaults to OutcomeDelay()
    :param country: if given, only keep rows whose country column matches
    :param first_day: first day of window of analysis
    :param last_day: last day of window of analysis
    :return: PreprocessedData() object with loaded data.
    """
    if isinstance(data_path, pd.DataFrame):
        df = data_path.copy()
        df["date"] = pd.to_datetime(df["date"])
    else:
        df = pd.read_csv(data_path, parse_dates=["date"])

    missing = [c for c in REQUIRED_COLUMNS if c not in df.columns]
    if missing:
        raise ValueError(f"Input data is missing columns {missing}")

    if delay is None:
        delay = OutcomeDelay()

    if country is not None:
        if "country" not in df.columns:
            raise ValueError("country filter requested, but data has no country column")
        df = df[df["country"] == country]

    if first_day is not None:
        df = df[df["date"] >= pd.to_datetime(first_day)]
    if last_day is not None:
        df = df[df["date"] <= pd.to_datetime(last_day)]

    # recovered counts are not used
    df = df[df["type"].isin([CASE_TYPE, DEATH_TYPE])]
    if df.empty:
        raise ValueError("No confirmed case or death records left after filtering")

    Rs = sorted(df["region"].unique())

    region_frames = {}
    for r in Rs:
        r_df = df[df["region"] == r].pivot_table(
            index="date", columns="type", values="count", aggfunc="sum"
        )
        region_frames[r] = r_df.reindex(columns=[CASE_TYPE, DEATH_TYPE])

    check_region_dates({r: r_df.index for r, r_df in region_frames.items()})

    # for each region, get the time series of cases, deaths, and expected number of cases with known outcomes
    # (removing any negative cases or deaths)
    timeseries = []
    for r, r_df in region_frames.items():
        if r_df.isna().any().any():
            raise AlignmentError(
                f"Region {r} is missing confirmed case or death counts on some days", regions=[r]
            )
        counts = r_df.to_numpy(dtype=float)
        if np.any(counts != np.round(counts)):
            raise ValueError(f"Region {r} has non-integer case or death counts")
        cases = np.maximum(0, r_df[CASE_TYPE].to_numpy(dtype=float))
        deaths = np.maximum(0, r_df[DEATH_TYPE].to_numpy(dtype=float))
        timeseries.append(
            pd.DataFrame(
                {
                    "region": r,
                    "date": r_df.index,
                    "cases": cases,
                    "deaths": deaths,
                    "cases_known_outcome": cases_known_outcome(cases, delay),
                }
            )
        )
    timeseries = pd.concat(timeseries, ignore_index=True)

    # wide form versions of the deaths and the cases with known outcomes. Rows are regions.
    death_table = timeseries.pivot(index="region", columns="date", values="deaths").loc[Rs]
    cases_known_table = timeseries.pivot(index="region", columns="date", values="cases_known_outcome").loc[Rs]
    cases_table = timeseries.pivot(index="region", columns="date", values="cases").loc[Rs]

    check_dates_aligned(death_table.columns, cases_known_table.columns)

    new_deaths = death_table.to_numpy()
    cases_known = cases_known_table.to_numpy()
    check_deaths_consistent(new_deaths, cases_known, Rs, list(death_table.columns))

    log.info(f"Loaded {len(Rs)} regions over {death_table.shape[1]} days")
    return PreprocessedData(
        Rs, list(death_table.columns), cases_table.to_numpy(), new_deaths, cases_known, delay
    )


def check_region_dates(region_dates):
    """
    Check every region covers the same contiguous daily date axis.

    :param region_dates: dict mapping region to its (sorted) date index
    """
    regions = list(region_dates.keys())
    if not regions:
        return

    ref_region = regions[0]
    ref_dates = pd.DatetimeIndex(region_dates[ref_region])

    gaps = np.diff(ref_dates.values).astype("timedelta64[D]")
    if np.any(gaps != np.timedelta64(1, "D")):
        raise AlignmentError(
            f"Dates for region {ref_region} are not a contiguous daily sequence", regions=[ref_region]
        )

    mismatched = [
        r for r in regions[1:] if not pd.DatetimeIndex(region_dates[r]).equals(ref_dates)
    ]
    if mismatched:
        raise AlignmentError(
            f"Dates for regions {mismatched} do not match those of {ref_region}", regions=mismatched
        )


def check_dates_aligned(death_dates, cases_known_dates):
    """
    Check the date axes of the deaths and known outcome matrices are identical.
    """
    death_dates = list(death_dates)
    cases_known_dates = list(cases_known_dates)

    if len(death_dates) != len(cases_known_dates):
        raise AlignmentError(
            f"Deaths cover {len(death_dates)} days but known outcomes cover {len(cases_known_dates)}"
        )

    for d_i, (death_date, known_date) in enumerate(zip(death_dates, cases_known_dates)):
        if death_date != known_date:
            raise AlignmentError(
                f"Date {d_i} differs between deaths ({death_date}) and known outcomes ({known_date})"
            )


def check_deaths_consistent(new_deaths, cases_known, Rs=None, Ds=None):
    """
    Check there are no deaths on days without cases that have known outcomes.

    :param new_deaths: nRs x nDs array of deaths
    :param cases_known: nRs x nDs array of cases with known outcomes
    :param Rs: region names, used in the error message
    :param Ds: dates, used in the error message
    """
    new_deaths = np.asarray(new_deaths)
    cases_known = np.asarray(cases_known)
    if new_deaths.shape != cases_known.shape:
        raise AlignmentError(
            f"Deaths have shape {new_deaths.shape} but known outcomes have shape {cases_known.shape}"
        )

    rs, ds = np.nonzero((new_deaths > 0) & (cases_known == 0))
    if rs.size > 0:
        cells = list(zip(rs.tolist(), ds.tolist()))
        r_names = [Rs[r] if Rs is not None else r for r in rs]
        d_names = [Ds[d] if Ds is not None else d for d in ds]
        examples = ", ".join(f"{r} on {d}" for r, d in list(zip(r_names, d_names))[:5])
        raise ConsistencyError(
            f"{rs.size} region/day cells have deaths but no cases with known outcomes, e.g. {examples}",
            cells=cells,
        )


class PreprocessedData(object):
    """
    PreprocessedData Class

    Class to hold data which is subsequently passed onto a numpyro model. Mostly a data wrapper, with some utility
    functions. All arrays are nRs x nDs.
    """

    def __init__(self, Rs, Ds, new_cases, new_deaths, cases_known_outcome, delay):
        """

        :param Rs: region names
        :param Ds: dates
        :param new_cases: daily confirmed cases, clamped to be non-negative
        :param new_deaths: daily deaths, clamped to be non-negative
        :param cases_known_outcome: expected cases with known outcomes
        :param delay: OutcomeDelay used to compute cases_known_outcome
        """
        super().__init__()
        self.Rs = list(Rs)
        self.Ds = list(Ds)
        self.new_cases = np.asarray(new_cases, dtype=float)
        self.new_deaths = np.asarray(new_deaths, dtype=float)
        self.cases_known_outcome = np.asarray(cases_known_outcome, dtype=float)
        self.delay = delay

    @property
    def nRs(self):
        return len(self.Rs)

    @property
    def nDs(self):
        return len(self.Ds)

    def first_known_outcome_index(self, region):
        """
        Index of the first day on which the region has any cases with known outcomes, or None.
        """
        i = self.Rs.index(region)
        nz = np.nonzero(self.cases_known_outcome[i, :] > 0)[0]
        if nz.size == 0:
            return None
        return int(nz[0])

    def death_day_indices(self, region):
        i = self.Rs.index(region)
        return np.nonzero(self.new_deaths[i, :] > 0)[0]

    def known_outcome_weights(self):
        """
        Region weights proportional to the total number of cases with known outcomes over the whole series.
        """
        totals = np.sum(self.cases_known_outcome, axis=1)
        if np.sum(totals) <= 0:
            raise ValueError("No region has any cases with known outcomes, so regions cannot be weighted")
        return totals / np.sum(totals)

    def reduce_regions_from_index(self, reduced_regions_indx):
        """
        Reduce data to only pertain to region indices given. Occurs in place.

        :param reduced_regions_indx: region indices to retain.
        """
        self.new_cases = self.new_cases[reduced_regions_indx, :]
        self.new_deaths = self.new_deaths[reduced_regions_indx, :]
        self.cases_known_outcome = self.cases_known_outcome[reduced_regions_indx, :]

    def remove_regions(self, regions_to_remove):
        """
        Remove regions in regions_to_remove. Occurs in place.
        """
        reduced_regions = []
        reduced_regions_indx = []
        for indx, r in enumerate(self.Rs):
            if r not in regions_to_remove:
                reduced_regions_indx.append(indx)
                reduced_regions.append(r)

        self.Rs = reduced_regions
        self.reduce_regions_from_index(reduced_regions_indx)

    def summary_frame(self):
        """
        Long format table of cases, deaths and cases with known outcomes.
        """
        frames = []
        for r_i, r in enumerate(self.Rs):
            frames.append(
                pd.DataFrame(
                    {
                        "region": r,
                        "date": self.Ds,
                        "cases": self.new_cases[r_i, :],
                        "deaths": self.new_deaths[r_i, :],
                        "cases_known_outcome": self.cases_known_outcome[r_i, :],
                    }
                )
            )
        return pd.concat(frames, ignore_index=True)
