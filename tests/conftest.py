import numpy as np
import numpyro
import pandas as pd
import pytest

# enough host devices for parallel chains; only takes effect before jax starts its backend
numpyro.set_host_device_count(4)

from ascertainment import OutcomeDelay, preprocess_data


def make_long_frame(region_counts, start="2020-03-01"):
    """
    Build a long format frame from {region: (cases, deaths)}.
    """
    rows = []
    for region, (cases, deaths) in region_counts.items():
        dates = pd.date_range(start, periods=len(cases), freq="D")
        for date, c, d in zip(dates, cases, deaths):
            rows.append({"country": "Australia", "region": region, "date": date, "count": c, "type": "confirmed"})
            rows.append({"country": "Australia", "region": region, "date": date, "count": d, "type": "death"})
            rows.append({"country": "Australia", "region": region, "date": date, "count": 0, "type": "recovered"})
    return pd.DataFrame(rows)


@pytest.fixture
def delay():
    return OutcomeDelay(mean_delay=13, median_delay=9.1)


@pytest.fixture
def region_counts():
    n_days = 30
    days = np.arange(n_days)
    cases_a = np.round(5 + 20 * np.exp(-0.5 * ((days - 12) / 5) ** 2)).astype(int)
    cases_b = np.round(2 + 8 * np.exp(-0.5 * ((days - 15) / 6) ** 2)).astype(int)
    deaths_a = np.zeros(n_days, dtype=int)
    deaths_b = np.zeros(n_days, dtype=int)
    deaths_a[[14, 18, 22, 25, 27]] = 1
    deaths_b[[20, 26]] = 1
    return {"A": (cases_a, deaths_a), "B": (cases_b, deaths_b)}


@pytest.fixture
def long_frame(region_counts):
    return make_long_frame(region_counts)


@pytest.fixture
def data(long_frame, delay):
    return preprocess_data(long_frame, delay=delay)
