"""End to end survey analysis: recode, bind the design, tabulate and model
"""
import logging
from dataclasses import dataclass, field
from typing import Dict, Optional

import pandas as pd

from brfss.survey.config import AnalysisConfig
from brfss.survey.design import SurveyDesign
from brfss.survey.estimators import ClusterBootstrapEstimator, LinearizationEstimator
from brfss.survey.exceptions import ConvergenceError, EstimationError
from brfss.survey.guam import GUAM_2020
from brfss.survey.loaders import read_brfss
from brfss.survey.logistic import RegressionFit, WeightedLogisticFit
from brfss.survey.tables import ReportAssembler


logger = logging.getLogger(__name__)


@dataclass
class AnalysisResult:
    """Tables, model fits and isolated failures of an analysis run

    Attributes:
        design (SurveyDesign): The design the estimates were computed on
        tables (dict): ``'frequency'``, ``'crosstab'``, ``'validation'`` and
            ``'regression'`` DataFrames (a table is absent when not configured)
        fits (dict): ``'unadjusted'`` and ``'adjusted'`` regression fits
        errors (dict): Per table/model failures, keyed by what failed
    """
    design: SurveyDesign
    tables: Dict[str, pd.DataFrame] = field(default_factory=dict)
    fits: Dict[str, RegressionFit] = field(default_factory=dict)
    errors: Dict[str, Exception] = field(default_factory=dict)


def run_analysis(frame: pd.DataFrame, config: Optional[AnalysisConfig] = None) -> AnalysisResult:
    """Run the configured analysis on a raw survey extract

    Args:
        frame (pandas.DataFrame): Raw rows holding the design fields and the
            source columns of every declared variable
        config (AnalysisConfig): Analysis plan, defaults to
            :data:`brfss.survey.guam.GUAM_2020`

    Raises:
        DesignError: If the sampling design is invalid. Estimation and
            convergence failures of single variables or models are recorded
            in ``AnalysisResult.errors`` instead

    Returns:
        AnalysisResult
    """
    if config is None:
        config = GUAM_2020
    recoded = config.recoder().apply(frame)
    design = SurveyDesign.create(recoded, config.stratum, config.cluster, config.weight)
    if config.se_method == 'bootstrap':
        estimator = ClusterBootstrapEstimator(design, n_boot=config.n_boot, seed=config.seed)
    else:
        estimator = LinearizationEstimator(design)
    result = AnalysisResult(design=design)

    assembler = ReportAssembler(design, estimator=estimator)
    result.tables['frequency'] = assembler.frequency_table(config.descriptives)
    result.tables['validation'] = assembler.validation_table(config.descriptives)
    if config.by is not None:
        result.tables['crosstab'] = assembler.crosstab_table(config.descriptives, config.by,
                                                             percent=config.percent)
    result.errors.update(assembler.errors)

    if config.outcome is not None and config.exposure is not None:
        model = WeightedLogisticFit(max_iter=config.max_iter, tol=config.tol)
        specs = {'unadjusted': [config.exposure],
                 'adjusted': [config.exposure] + list(config.covariates)}
        for name, predictors in specs.items():
            try:
                result.fits[name] = model.fit(design, config.outcome, predictors,
                                              reference_levels=config.reference_levels)
            except (EstimationError, ConvergenceError) as err:
                logger.warning("Model '%s' failed: %s", name, err)
                result.errors[f"model:{name}"] = err
        result.tables['regression'] = ReportAssembler.regression_table(result.fits)
    return result


def run_file(path: str, config: Optional[AnalysisConfig] = None) -> AnalysisResult:
    """Read a BRFSS file and run the configured analysis on it"""
    if config is None:
        config = GUAM_2020
    frame = read_brfss(path, columns=config.raw_columns, state=config.state)
    return run_analysis(frame, config)
