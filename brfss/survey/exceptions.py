"""Exceptions and warnings raised by the survey estimation routines"""


class DesignError(ValueError):
    """The sampling design is malformed or inconsistent"""
    pass


class EstimationError(ValueError):
    """A subgroup or model is degenerate and no estimate can be produced"""
    pass


class ConvergenceError(RuntimeError):
    """Iteratively reweighted least squares failed to converge"""
    pass


class RecodeError(ValueError):
    """Raw survey codes could not be mapped to declared categories"""
    pass


class PrecisionWarning(UserWarning):
    """A variance estimate ignores strata with fewer than two clusters"""
    pass
