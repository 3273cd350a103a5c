"""Assembly of estimates and model fits into report tables

All tables are ``pandas.DataFrame`` objects indexed by ``(variable, level)``
(or by model term for regression tables). Formatting into display strings is
kept separate (``format_table``, ``format_regression``) so that numeric tables
can be tested and exported as is.
"""
import logging
from typing import Dict, Hashable, List, Optional, Sequence, Union

import numpy as np
import pandas as pd

from brfss.survey.design import SurveyDesign
from brfss.survey.estimators import BaseEstimator, Percent, WeightedEstimate, summarize
from brfss.survey.exceptions import EstimationError
from brfss.survey.logistic import RegressionFit


logger = logging.getLogger(__name__)


def _level_index(index: List[tuple]) -> pd.MultiIndex:
    if not index:
        return pd.MultiIndex.from_arrays([[], []], names=['variable', 'level'])
    return pd.MultiIndex.from_tuples(index, names=['variable', 'level'])


class ReportAssembler(object):
    """Build the summary tables of a survey analysis

    Failures on a single variable (``EstimationError``) are logged and kept in
    ``errors`` so the other variables still make it to the tables.

    Args:
        design (SurveyDesign): Design holding the recoded variables
        estimator (BaseEstimator): Variance strategy passed to
            :func:`~brfss.survey.estimators.summarize`

    Attributes:
        errors (dict): ``{table_key: exception}`` of the skipped variables
    """
    def __init__(self, design: SurveyDesign, estimator: Optional[BaseEstimator] = None):
        self.design = design
        self.estimator = estimator
        self.errors: Dict[str, Exception] = {}

    def _summarize(self, key: str, variable: str, **kwargs) -> Optional[Dict[Hashable, WeightedEstimate]]:
        try:
            return summarize(self.design, variable, estimator=self.estimator, **kwargs)
        except EstimationError as err:
            logger.warning("Skipping %s: %s", key, err)
            self.errors[key] = err
            return None

    def frequency_table(self, variables: Sequence[str], alpha: float = 0.05) -> pd.DataFrame:
        """Unweighted counts and weighted percentages of each level"""
        index, rows = [], []
        for var in variables:
            res = self._summarize(f"frequency:{var}", var)
            if res is None:
                continue
            for level, e in res.items():
                lower, upper = e.ci(alpha)
                index.append((var, level))
                rows.append([e.n, e.weighted_count, e.percent, e.se, lower, upper])
        return pd.DataFrame(rows,
                            index=_level_index(index),
                            columns=['n', 'weighted_count', 'percent', 'se',
                                     'ci_lower', 'ci_upper'])

    def crosstab_table(self, variables: Sequence[str], by: str,
                       percent: Union[Percent, str] = Percent.ROW) -> pd.DataFrame:
        """Counts and weighted percentages of each level within the levels of ``by``

        Columns are a ``(group, statistic)`` MultiIndex with statistics ``n``,
        ``percent`` and ``se``.
        """
        groups = self.design.levels(by)
        columns = [(g, stat) for g in groups for stat in ('n', 'percent', 'se')]
        index, rows = [], []
        for var in variables:
            if var == by:
                continue
            res = self._summarize(f"crosstab:{var}", var, by=by, percent=percent)
            if res is None:
                continue
            for level in self.design.levels(var):
                row = []
                for g in groups:
                    e = res[(g, level)]
                    row.extend([e.n, e.percent, e.se])
                index.append((var, level))
                rows.append(row)
        return pd.DataFrame(rows,
                            index=_level_index(index),
                            columns=pd.MultiIndex.from_tuples(columns, names=[by, 'statistic']))

    def validation_table(self, variables: Sequence[str]) -> pd.DataFrame:
        """Compare unweighted and weighted percentages of each level"""
        index, rows = [], []
        for var in variables:
            res = self._summarize(f"validation:{var}", var)
            if res is None:
                continue
            total = sum(e.n for e in res.values())
            for level, e in res.items():
                unweighted = 100.0 * e.n / total
                index.append((var, level))
                rows.append([e.n, unweighted, e.percent, e.percent - unweighted])
        return pd.DataFrame(rows,
                            index=_level_index(index),
                            columns=['n', 'unweighted_percent', 'weighted_percent',
                                     'difference'])

    @staticmethod
    def regression_table(fits: Dict[str, RegressionFit], alpha: float = 0.05) -> pd.DataFrame:
        """Odds ratios, confidence intervals and p-values of several models side by side"""
        terms: List[str] = []
        frames = []
        for res in fits.values():
            terms.extend(t for t in res.terms if t not in terms)
            summary = res.summary_frame(alpha=alpha, exponentiate=True)
            frames.append(summary[['odds_ratio', 'lower', 'upper', 'p_value']])
        if not frames:
            return pd.DataFrame()
        return pd.concat([f.reindex(terms) for f in frames], axis=1,
                         keys=list(fits), names=['model', 'statistic'])


def _format_p(p: float) -> str:
    if np.isnan(p):
        return ''
    if p < 0.001:
        return '<0.001'
    return f"{p:.3f}"


def format_table(frame: pd.DataFrame, digits: int = 1) -> pd.DataFrame:
    """Render a frequency or cross-tabulation table as ``"n (percent%)"`` strings"""
    def _cell(n, pct):
        return f"{int(n)} ({pct:.{digits}f}%)"

    if isinstance(frame.columns, pd.MultiIndex):
        groups = list(dict.fromkeys(frame.columns.get_level_values(0)))
        out = pd.DataFrame(index=frame.index)
        for g in groups:
            out[g] = [_cell(n, pct) for n, pct in zip(frame[(g, 'n')], frame[(g, 'percent')])]
        return out
    out = pd.DataFrame(index=frame.index)
    out['n (%)'] = [_cell(n, pct) for n, pct in zip(frame['n'], frame['percent'])]
    if 'ci_lower' in frame.columns:
        out['95% CI'] = [f"{lo:.{digits}f}-{hi:.{digits}f}"
                         for lo, hi in zip(frame['ci_lower'], frame['ci_upper'])]
    return out


def format_regression(frame: pd.DataFrame, digits: int = 2) -> pd.DataFrame:
    """Render a regression table as ``"OR (lower-upper)"`` and p-value strings"""
    models = list(dict.fromkeys(frame.columns.get_level_values(0)))
    out = {}
    for model in models:
        sub = frame[model]
        out[(model, 'OR (95% CI)')] = [
            '' if np.isnan(o) else f"{o:.{digits}f} ({lo:.{digits}f}-{hi:.{digits}f})"
            for o, lo, hi in zip(sub['odds_ratio'], sub['lower'], sub['upper'])]
        out[(model, 'p-value')] = [_format_p(p) for p in sub['p_value']]
    out = pd.DataFrame(out, index=frame.index)
    out.columns.names = ['model', 'statistic']
    return out
