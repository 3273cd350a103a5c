"""
Stratified cluster sampling design bound to a survey dataset.

The design follows the "ultimate cluster" approach (Särndal et al., 1992):
primary sampling units are treated as if drawn with replacement within each
stratum, so the variance of any linearized statistic is obtained from the
spread of the weighted cluster totals of its score around their stratum mean.
"""
import logging
from typing import Any, Callable, Dict, List, Tuple, Union

import numpy as np
import pandas as pd

from brfss.survey.exceptions import DesignError, EstimationError


logger = logging.getLogger(__name__)


class SurveyDesign(object):
    """Read-only binding of survey rows to their stratum, cluster and weight.

    Args:
        rows (pandas.DataFrame): One row per respondent. A sequence of
            mappings is accepted and converted to a DataFrame.
        stratum (str): Name of the stratum identifier column (e.g. ``_STSTR``)
        cluster (str): Name of the primary sampling unit column (e.g. ``_PSU``)
        weight (str): Name of the final sampling weight column (e.g. ``_LLCPWT``)

    Raises:
        DesignError: If rows are empty, a design column is missing, an id is
            missing, a weight is not strictly positive and finite or a cluster
            id is found in more than one stratum.

    Examples:
        >>> import pandas as pd
        >>> df = pd.DataFrame({'strat': [1, 1, 2, 2],
        ...                    'psu': [10, 11, 20, 21],
        ...                    'w': [1.0, 2.0, 1.5, 0.5]})
        >>> design = SurveyDesign.create(df, 'strat', 'psu', 'w')
        >>> design.n_strata, design.n_clusters, design.degrees_of_freedom
        (2, 4, 2)
        >>> design.total_weight
        5.0
    """
    def __init__(self, rows: pd.DataFrame, stratum: str, cluster: str, weight: str):
        if not isinstance(rows, pd.DataFrame):
            rows = pd.DataFrame(list(rows))
        if rows.empty:
            raise DesignError("Cannot build a survey design from an empty dataset")
        missing_cols = [c for c in (stratum, cluster, weight) if c not in rows.columns]
        if missing_cols:
            raise DesignError(f"Design columns not found in dataset: {missing_cols}")
        for col in (stratum, cluster):
            n_missing = int(rows[col].isna().sum())
            if n_missing:
                raise DesignError(f"{n_missing} observation(s) have a missing '{col}' id")
        weights = pd.to_numeric(rows[weight], errors='coerce').to_numpy(dtype=float)
        invalid = ~np.isfinite(weights) | (weights <= 0)
        if np.any(invalid):
            raise DesignError(f"{int(invalid.sum())} observation(s) have a missing, "
                              f"non-finite or non-positive weight in '{weight}'")
        # A cluster id reused across strata makes the nesting ambiguous
        nesting = rows.groupby(cluster, sort=False, observed=True)[stratum].nunique()
        ambiguous = nesting[nesting > 1].index.tolist()
        if ambiguous:
            raise DesignError(f"Cluster ids found in more than one stratum: {ambiguous}")

        self.stratum = stratum
        self.cluster = cluster
        self.weight = weight
        self._data = rows.copy()
        self.strata = np.array(self._data[stratum])
        self.clusters = np.array(self._data[cluster])
        self.weights = weights.copy()
        for arr in (self.strata, self.clusters, self.weights):
            arr.setflags(write=False)
        psu = rows[[stratum, cluster]].drop_duplicates()
        self._psu_per_stratum = psu.groupby(stratum, sort=False, observed=True)[cluster].count()

    @classmethod
    def create(cls, rows: pd.DataFrame, stratum: str, cluster: str,
               weight: str) -> 'SurveyDesign':
        """Validate ``rows`` and bind them to their sampling design"""
        design = cls(rows, stratum, cluster, weight)
        logger.info("Survey design with %d observations, %d strata and %d clusters",
                    len(design), design.n_strata, design.n_clusters)
        return design

    def __len__(self):
        return len(self.weights)

    def __repr__(self):
        return (f"SurveyDesign(n={len(self)}, strata={self.n_strata}, "
                f"clusters={self.n_clusters}, weight='{self.weight}')")

    @property
    def data(self) -> pd.DataFrame:
        """A copy of the bound dataset"""
        return self._data.copy()

    @property
    def total_weight(self) -> float:
        return float(self.weights.sum())

    @property
    def n_strata(self) -> int:
        return len(self._psu_per_stratum)

    @property
    def n_clusters(self) -> int:
        return int(self._psu_per_stratum.sum())

    @property
    def degrees_of_freedom(self) -> int:
        """Design degrees of freedom (clusters minus strata)"""
        return self.n_clusters - self.n_strata

    @property
    def has_singleton_strata(self) -> bool:
        """True when at least one stratum holds a single cluster"""
        return bool((self._psu_per_stratum < 2).any())

    def groups(self) -> Dict[Tuple[Any, Any], np.ndarray]:
        """Row positions of every (stratum, cluster) pair"""
        return self._data.groupby([self.stratum, self.cluster], sort=False, observed=True).indices

    def column(self, name: str) -> pd.Series:
        """A copy of a variable column, with a positional index"""
        if name not in self._data.columns:
            raise EstimationError(f"Variable '{name}' not found in the survey data")
        return self._data[name].copy().reset_index(drop=True)

    def levels(self, name: str) -> List[Any]:
        """Levels of a variable, in declared order for categorical columns.

        Non categorical columns fall back to their sorted distinct non missing
        values.
        """
        col = self.column(name)
        if isinstance(col.dtype, pd.CategoricalDtype):
            return list(col.cat.categories)
        return sorted(col.dropna().unique().tolist())

    def subset(self, predicate: Union[Callable[[pd.DataFrame], Any], np.ndarray]) -> 'SurveyDesign':
        """Restrict the design to the rows matching ``predicate``.

        Note that estimating on a subset drops the clusters without matching
        rows. Domain estimates that keep the full design are obtained by
        passing masks to the estimators instead.

        Args:
            predicate: Boolean mask aligned with the rows, or a callable
                receiving the dataset and returning such a mask

        Returns:
            SurveyDesign: A new design bound to the matching rows
        """
        mask = predicate(self._data) if callable(predicate) else predicate
        mask = np.asarray(mask, dtype=bool)
        if mask.shape != (len(self),):
            raise ValueError(f"Mask of shape {mask.shape} does not match {len(self)} rows")
        logger.info("Subsetting design to %d of %d observations", mask.sum(), len(self))
        return SurveyDesign(self._data[mask], self.stratum, self.cluster, self.weight)

    def linearized_variance(self, scores: np.ndarray) -> Union[float, np.ndarray]:
        """Stratified cluster variance of a total of per observation scores.

        Scores are summed within every cluster, centred on their stratum mean
        and combined as ``sum_h n_h / (n_h - 1) * sum_c u_hc u_hc'``.
        Strata with fewer than two clusters cannot contribute and are skipped
        (see ``has_singleton_strata``).

        Args:
            scores (np.ndarray): 1D array (one score per row) or 2D array
                (one row of scores per observation)

        Returns:
            float for 1D scores, a square covariance matrix for 2D scores
        """
        u = np.asarray(scores, dtype=float)
        vector = u.ndim == 1
        if vector:
            u = u[:, None]
        if u.shape[0] != len(self):
            raise ValueError(f"Expected {len(self)} scores, got {u.shape[0]}")
        df = pd.DataFrame(u)
        psu_totals = df.groupby([self.strata, self.clusters], sort=False, observed=True).sum()

        var_est = np.zeros((u.shape[1], u.shape[1]))
        for _, group in psu_totals.groupby(level=0, sort=False):
            nh = len(group)
            if nh < 2:
                continue
            totals = group.to_numpy()
            centred = totals - totals.mean(axis=0)
            var_est += nh / (nh - 1.0) * centred.T @ centred
        if vector:
            return float(var_est[0, 0])
        return var_est
