from .reporting_rate_plots import *
