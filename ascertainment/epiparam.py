"""
:code:`epiparam.py`

Outcome delay distribution and the expected number of cases with a known outcome.

The delay between hospitalisation and outcome (death or recovery) is log-normal, parametrised by its mean and median
(defaults from early Wuhan data: mean 13 days, median 9.1 days).
"""
import pprint

import numpy as np
import scipy.stats


class OutcomeDelay():
    """
    Outcome Delay Class
    Wrapper class around a discretised log-normal hospitalisation-to-outcome delay.
    """

    def __init__(self, mean_delay=13.0, median_delay=9.1):
        """
        Constructor

        :param mean_delay: mean of the delay in days
        :param median_delay: median of the delay in days
        """
        if mean_delay <= 0 or median_delay <= 0:
            raise ValueError("mean_delay and median_delay must be positive")

        if mean_delay <= median_delay:
            raise ValueError(
                f"mean_delay ({mean_delay}) must exceed median_delay ({median_delay}) for a log-normal delay"
            )

        self._mean_delay = float(mean_delay)
        self._median_delay = float(median_delay)

    @property
    def mean_delay(self):
        return self._mean_delay

    @property
    def median_delay(self):
        return self._median_delay

    @property
    def mu(self):
        return np.log(self._median_delay)

    @property
    def sigma(self):
        return np.sqrt(2 * (np.log(self._mean_delay) - self.mu))

    def cdf(self, day):
        """
        Probability that the outcome is known within `day` days.

        :param day: scalar or array of day offsets
        :return: log-normal CDF evaluated at day
        """
        day = np.asarray(day, dtype=float)
        return scipy.stats.lognorm.cdf(day, s=self.sigma, scale=np.exp(self.mu))

    def probability(self, day):
        """
        Probability that the delay between hospitalisation and outcome is exactly `day` days.

        :param day: non-negative integer day offset, or array of them
        :return: P(day <= delay < day + 1)
        """
        day = np.asarray(day, dtype=float)
        if np.any(day < 0):
            raise ValueError("day offsets must be non-negative")
        return self.cdf(day + 1) - self.cdf(day)

    def delay_vector(self, n_days):
        """
        Delay probabilities for offsets 0, ..., n_days - 1. Not renormalised, so sums to at most 1.
        """
        return self.probability(np.arange(n_days))

    def cases_known_outcome(self, daily_cases):
        return cases_known_outcome(daily_cases, self)

    def generate_pmf_statistics_str(self, n_days=100):
        """
        Make mean and standard deviation string of the delay, truncated to n_days.
        """
        delay_prob = self.delay_vector(n_days)
        days = np.arange(n_days)
        mean = np.sum(days * delay_prob)
        var = np.sum(days ** 2 * delay_prob) - mean ** 2
        return f"mean: {mean:.3f}, sd: {var ** 0.5:.3f}, mass: {np.sum(delay_prob):.4f}, max: {n_days}"

    def get_parameters(self):
        return {
            "mean_delay": self.mean_delay,
            "median_delay": self.median_delay,
            "mu": float(self.mu),
            "sigma": float(self.sigma),
        }

    def summarise_parameters(self):
        """
        Print summary of parameters.
        """
        print("Outcome Delay Summary\n"
              "----------------------------------\n")
        pprint.pprint(self.get_parameters())
        print(self.generate_pmf_statistics_str())
        print("----------------------------------\n")


def cases_known_outcome(daily_cases, delay):
    """
    Compute the (non-cumulative) expected number of cases whose outcome would be known on each day.

    Cases reported on day d are spread over days d, d + 1, ..., N with the delay probabilities. Mass beyond the end of
    the series is dropped, not renormalised.

    :param daily_cases: length N array of daily case counts
    :param delay: OutcomeDelay
    :return: length N array of cases with known outcomes
    """
    daily_cases = np.asarray(daily_cases, dtype=float)
    n_days = daily_cases.size
    delay_probs = delay.delay_vector(n_days)

    cases_known = np.zeros(n_days)
    for day in range(n_days):
        days_ahead = np.arange(n_days - day)
        cases_known[day + days_ahead] += daily_cases[day] * delay_probs[days_ahead]

    return cases_known
