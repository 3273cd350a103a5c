"""Declarative configuration of a survey analysis run"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from brfss.survey import loaders
from brfss.survey.recode import Recoder, Variable


SE_METHODS = ('linearization', 'bootstrap')


@dataclass
class AnalysisConfig:
    """Everything a run needs besides the data

    Args:
        variables (list): Recode declarations (see :mod:`brfss.survey.recode`)
        descriptives (list): Names of the recoded variables summarised in the
            frequency, cross-tabulation and validation tables
        by (str): Grouping variable of the cross-tabulation
        percent (str): ``'row'`` or ``'column'`` percentages in the
            cross-tabulation
        outcome (str): Binary outcome of the logistic models
        exposure (str): Predictor of the unadjusted model
        covariates (list): Additional predictors of the adjusted model
        reference_levels (dict): Reference levels of the outcome and of
            categorical predictors
        stratum, cluster, weight (str): Raw design columns
        state: FIPS code used to filter the raw file, ``None`` to keep all rows
        se_method (str): ``'linearization'`` or ``'bootstrap'``
        n_boot (int): Bootstrap replicates when ``se_method='bootstrap'``
        seed (int): Seed of the bootstrap random generator
        max_iter (int): IRLS iteration cap
        tol (float): IRLS convergence tolerance
    """
    variables: Sequence[Variable]
    descriptives: Sequence[str]
    by: Optional[str] = None
    percent: str = 'row'
    outcome: Optional[str] = None
    exposure: Optional[str] = None
    covariates: Sequence[str] = field(default_factory=list)
    reference_levels: Dict[str, Any] = field(default_factory=dict)
    stratum: str = loaders.STRATUM
    cluster: str = loaders.CLUSTER
    weight: str = loaders.WEIGHT
    state: Optional[Any] = None
    se_method: str = 'linearization'
    n_boot: int = 500
    seed: Optional[int] = None
    max_iter: int = 25
    tol: float = 1e-8

    def __post_init__(self):
        if self.se_method not in SE_METHODS:
            raise ValueError(f"Unknown se_method: {self.se_method}")
        names = [v.name for v in self.variables]
        used = list(self.descriptives) + list(self.covariates)
        used += [v for v in (self.by, self.outcome, self.exposure) if v is not None]
        undeclared = sorted(set(used) - set(names))
        if undeclared:
            raise ValueError(f"Variables used but not declared: {undeclared}")

    @property
    def design_fields(self) -> List[str]:
        return [self.stratum, self.cluster, self.weight]

    @property
    def raw_columns(self) -> List[str]:
        """Raw columns to read from the data file"""
        return list(dict.fromkeys(self.design_fields + [v.source for v in self.variables]))

    def recoder(self) -> Recoder:
        return Recoder(self.variables, keep=self.design_fields)
