"""
:code:`errors.py`

Exceptions and warnings raised by the reporting rate pipeline. Errors are fatal, warnings are for the operator.
"""


class AscertainmentError(Exception):
    pass


class AlignmentError(AscertainmentError):
    """
    Date axes differ between regions or between the deaths and known outcome series.
    """

    def __init__(self, message, regions=None):
        super().__init__(message)
        self.regions = regions or []


class ConsistencyError(AscertainmentError):
    """
    Positive deaths recorded on a region/day where no case could yet have a known outcome.
    """

    def __init__(self, message, cells=None):
        super().__init__(message)
        # list of (region, day index) tuples
        self.cells = cells or []


class NumericalInstabilityError(AscertainmentError):
    """
    Covariance factorisation produced non-finite values, even with jitter.
    """

    def __init__(self, message, site=None):
        super().__init__(message)
        self.site = site


class ConvergenceWarning(UserWarning):
    pass
