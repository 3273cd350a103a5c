"""Survey-weighted estimation for BRFSS extracts.

Design-based descriptive statistics (weighted frequencies, cross-tabulations)
and weighted logistic regression under a stratified cluster design.
"""
from brfss.survey.exceptions import (DesignError, EstimationError,
                                     ConvergenceError, RecodeError,
                                     PrecisionWarning)
from brfss.survey.design import SurveyDesign
from brfss.survey.estimators import (Percent, WeightedEstimate, summarize,
                                     estimates_to_frame)
from brfss.survey.logistic import WeightedLogisticFit, RegressionFit, fit


__version__ = "0.1.0"
