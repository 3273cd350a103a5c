"""
Design-based estimators of weighted frequencies and percentages.
"""
import logging
import warnings
from abc import ABC, abstractmethod
from dataclasses import dataclass, asdict
from enum import Enum
from typing import Any, Dict, Hashable, Optional, Tuple, Union

import numpy as np
import pandas as pd
from scipy.stats import norm

from brfss.survey.design import SurveyDesign
from brfss.survey.exceptions import EstimationError, PrecisionWarning


logger = logging.getLogger(__name__)


class Percent(str, Enum):
    """Normalisation axis of a cross-tabulation.

    ``COLUMN`` percentages sum to 100 over the levels of the summarised
    variable within each group; ``ROW`` percentages sum to 100 over the groups
    within each level of the summarised variable.
    """
    COLUMN = 'column'
    ROW = 'row'


@dataclass(frozen=True)
class WeightedEstimate:
    """Weighted percentage of one level of a categorical variable

    Attributes:
        variable (str): Name of the summarised variable
        level: Level of the variable
        group: Level of the grouping variable, ``None`` when ungrouped
        n (int): Unweighted number of contributing observations
        weighted_count (float): Sum of the weights of those observations
        percent (float): Weighted percentage (0 to 100)
        se (float): Standard error of the percentage, in percentage points
        percent_type (str): ``'column'`` or ``'row'``
        precision_warning (bool): True when strata with a single cluster were
            left out of the variance estimate
    """
    variable: str
    level: Any
    group: Any
    n: int
    weighted_count: float
    percent: float
    se: float
    percent_type: str = Percent.COLUMN.value
    precision_warning: bool = False

    def ci(self, alpha: float = 0.05) -> Tuple[float, float]:
        """Normal theory confidence interval of the percentage, bounded to [0, 100]"""
        z = norm.ppf(1 - alpha / 2)
        lower = max(self.percent - z * self.se, 0.0)
        upper = min(self.percent + z * self.se, 100.0)
        return lower, upper


class BaseEstimator(ABC):
    """Abstract strategy for ratio estimation under a survey design.
    """
    def __init__(self, design: SurveyDesign):
        self.design = design

    @property
    def precision_warning(self) -> bool:
        """Whether standard errors ignore strata with a single cluster"""
        return self.design.has_singleton_strata

    @abstractmethod
    def estimate_ratio(self, numerator_mask: np.ndarray,
                       denominator_mask: np.ndarray) -> Tuple[float, float]:
        """Returns (Estimate, Standard Error) for a ratio of weighted totals Y/X."""
        pass

    def estimate_mean(self, mask: np.ndarray,
                      domain: Optional[np.ndarray] = None) -> Tuple[float, float]:
        """Weighted proportion of ``mask`` within ``domain`` (all rows by default)."""
        if domain is None:
            domain = np.ones(len(self.design), dtype=bool)
        mask = np.asarray(mask, dtype=bool) & np.asarray(domain, dtype=bool)
        return self.estimate_ratio(mask, domain)

    def _totals(self, y, x):
        w = self.design.weights
        Y_hat = np.sum(y * w)
        X_hat = np.sum(x * w)
        if X_hat == 0:
            raise EstimationError("Weighted denominator is zero, ratio is undefined")
        return Y_hat, X_hat


class LinearizationEstimator(BaseEstimator):
    """Taylor series linearization of ratio estimators.

    The ratio ``R = Y/X`` of two weighted totals is linearized into the
    residual score ``w * (y - R * x) / X``, whose variance is computed with the
    stratified cluster ("ultimate cluster") formula of the design. Observations
    outside the denominator domain have a zero score but their clusters still
    count, which matches domain estimation in R's ``survey`` package.

    Examples:
        >>> import numpy as np
        >>> import pandas as pd
        >>> from brfss.survey.design import SurveyDesign
        >>> # 2 strata x 3 clusters x 4 respondents, 12 of 24 'yes'
        >>> yes_per_cluster = [3, 1, 2, 4, 0, 2]
        >>> answers = np.concatenate([['yes'] * k + ['no'] * (4 - k)
        ...                           for k in yes_per_cluster])
        >>> df = pd.DataFrame({'strat': np.repeat([1, 2], 12),
        ...                    'psu': np.repeat([1, 2, 3, 4, 5, 6], 4),
        ...                    'w': 1.0,
        ...                    'answer': answers})
        >>> design = SurveyDesign.create(df, 'strat', 'psu', 'w')
        >>> est = LinearizationEstimator(design)
        >>> prop, se = est.estimate_mean(df['answer'].to_numpy() == 'yes')
        >>> print(f"{prop:.2f}, {se:.4f}")
        0.50, 0.1614

        >>> res = summarize(design, 'answer')
        >>> print(f"{res['yes'].percent:.1f} ({res['yes'].se:.2f}), n={res['yes'].n}")
        50.0 (16.14), n=12
    """
    def estimate_ratio(self, numerator_mask: np.ndarray,
                       denominator_mask: np.ndarray) -> Tuple[float, float]:
        y = np.asarray(numerator_mask, dtype=float)
        x = np.asarray(denominator_mask, dtype=float)
        Y_hat, X_hat = self._totals(y, x)
        R_hat = Y_hat / X_hat
        # Linearized residual scores
        u = self.design.weights * (y - R_hat * x) / X_hat
        var_est = self.design.linearized_variance(u)
        return R_hat, np.sqrt(var_est)


class ClusterBootstrapEstimator(BaseEstimator):
    """Stratified cluster bootstrap of ratio estimators.

    Clusters are resampled with replacement within each stratum (as many as
    the stratum holds) and every resampled cluster brings all its
    observations along, with their weights kept as is. The standard error is
    the standard deviation of the replicate ratios.

    Args:
        design (SurveyDesign): The survey design
        n_boot (int): Number of bootstrap replicates
        seed (int): Seed of the random generator, for reproducible standard errors
    """
    def __init__(self, design: SurveyDesign, n_boot: int = 500,
                 seed: Optional[int] = None):
        super().__init__(design)
        self.n_boot = n_boot
        self.seed = seed
        # Stratum -> [cluster keys] and cluster key -> row positions
        self._psu_indices = design.groups()
        self._psus_per_stratum = {}
        for key in self._psu_indices:
            self._psus_per_stratum.setdefault(key[0], []).append(key)

    def estimate_ratio(self, numerator_mask: np.ndarray,
                       denominator_mask: np.ndarray) -> Tuple[float, float]:
        y = np.asarray(numerator_mask, dtype=float)
        x = np.asarray(denominator_mask, dtype=float)
        Y_hat, X_hat = self._totals(y, x)
        R_hat = Y_hat / X_hat
        w = self.design.weights
        rng = np.random.default_rng(self.seed)

        boot_stats = []
        for _ in range(self.n_boot):
            boot_indices = []
            for psu_list in self._psus_per_stratum.values():
                picks = rng.integers(0, len(psu_list), size=len(psu_list))
                boot_indices.extend(self._psu_indices[psu_list[i]] for i in picks)
            full_idx = np.concatenate(boot_indices)
            X_b = np.sum(x[full_idx] * w[full_idx])
            # Replicates without any denominator observation carry no information
            if X_b == 0:
                continue
            boot_stats.append(np.sum(y[full_idx] * w[full_idx]) / X_b)
        if len(boot_stats) < 2:
            raise EstimationError("Too few usable bootstrap replicates to estimate a standard error")
        se = np.std(boot_stats, ddof=1)
        return R_hat, se


def summarize(design: SurveyDesign,
              variable: str,
              by: Optional[str] = None,
              percent: Union[Percent, str] = Percent.COLUMN,
              estimator: Optional[BaseEstimator] = None) -> Dict[Hashable, WeightedEstimate]:
    """Weighted percentages of the levels of a categorical variable.

    Observations missing on ``variable`` (or on ``by``) are excluded from both
    numerators and denominators. Levels are taken in declared order (see
    :meth:`~brfss.survey.design.SurveyDesign.levels`).

    Args:
        design (SurveyDesign): The survey design holding the variables
        variable (str): Name of the variable to summarise
        by (str): Optional grouping variable
        percent (Percent or str): Normalisation of grouped percentages,
            ``'column'`` (within each group) or ``'row'`` (within each level
            of ``variable``, across groups). Ignored without ``by``
        estimator (BaseEstimator): Variance strategy, defaults to
            :class:`LinearizationEstimator`

    Raises:
        EstimationError: If the variable has no eligible observations, or if a
            group (column percentages) or a level (row percentages) has a zero
            weighted denominator

    Returns:
        dict: ``{level: WeightedEstimate}`` without grouping, ``{(group, level):
        WeightedEstimate}`` with grouping
    """
    percent = Percent(percent)
    # Ungrouped percentages are always shares of the whole column
    percent_type = percent.value if by is not None else Percent.COLUMN.value
    if estimator is None:
        estimator = LinearizationEstimator(design)
    values = design.column(variable)
    levels = design.levels(variable)
    eligible = values.notna().to_numpy()
    if by is not None:
        groups = design.column(by)
        group_levels = design.levels(by)
        eligible = eligible & groups.notna().to_numpy()
    if not eligible.any():
        raise EstimationError(f"No eligible observations for '{variable}'"
                              + (f" by '{by}'" if by is not None else ""))

    flag = estimator.precision_warning
    if flag:
        warnings.warn(f"Standard errors of '{variable}' ignore strata with a single cluster",
                      PrecisionWarning, stacklevel=2)
    w = design.weights
    level_masks = {level: eligible & (values == level).to_numpy() for level in levels}

    def _estimate(cell, denominator, level, group):
        est, se = estimator.estimate_ratio(cell, denominator)
        return WeightedEstimate(variable=variable, level=level, group=group,
                                n=int(cell.sum()),
                                weighted_count=float(w[cell].sum()),
                                percent=100 * float(est), se=100 * float(se),
                                percent_type=percent_type,
                                precision_warning=flag)

    results = {}
    if by is None:
        for level, mask in level_masks.items():
            results[level] = _estimate(mask, eligible, level, None)
        return results

    group_masks = {g: eligible & (groups == g).to_numpy() for g in group_levels}
    if percent is Percent.COLUMN:
        for g, in_group in group_masks.items():
            if not np.any(in_group):
                raise EstimationError(f"No eligible observations for '{variable}' "
                                      f"in group {by}={g!r}")
            for level, in_level in level_masks.items():
                results[(g, level)] = _estimate(in_level & in_group, in_group, level, g)
    else:
        for level, in_level in level_masks.items():
            if not np.any(in_level):
                raise EstimationError(f"No eligible observations for {variable}={level!r} "
                                      f"across '{by}'")
            for g, in_group in group_masks.items():
                results[(g, level)] = _estimate(in_level & in_group, in_level, level, g)
    return results


def estimates_to_frame(estimates: Dict[Hashable, WeightedEstimate]) -> pd.DataFrame:
    """Flatten the output of :func:`summarize` into a DataFrame, one row per estimate"""
    rows = [asdict(e) for e in estimates.values()]
    columns = [f for f in WeightedEstimate.__dataclass_fields__]
    return pd.DataFrame(rows, columns=columns)


if __name__ == "__main__":
    import doctest
    doctest.testmod(verbose=False)
