"""
Survey weighted logistic regression.

Coefficients are pseudo maximum likelihood estimates: the Bernoulli score
equations are solved by iteratively reweighted least squares with every
observation scaled by its sampling weight. Standard errors use the sandwich
estimator ``B^-1 M B^-1`` where the bread ``B`` is the weighted Fisher
information and the meat ``M`` the stratified cluster covariance of the score
contributions (Binder, 1983). This is what ``svyglm(family=quasibinomial())``
computes in R's ``survey`` package.
"""
import logging
import warnings
from dataclasses import dataclass
from typing import Any, Dict, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
from pandas.api.types import is_numeric_dtype
from scipy.special import expit
from scipy.stats import t as student_t

from brfss.survey.design import SurveyDesign
from brfss.survey.exceptions import (ConvergenceError, DesignError,
                                     EstimationError, PrecisionWarning)


logger = logging.getLogger(__name__)

INTERCEPT = 'Intercept'


@dataclass(frozen=True)
class RegressionFit:
    """Immutable result of a weighted logistic regression

    Attributes:
        outcome (str): Name of the outcome variable
        event: Outcome level modelled as success (coded 1)
        terms (tuple): Names of the model terms, intercept first. Categorical
            predictors are named ``'variable[level]'``
        params (tuple): Coefficients on the log-odds scale
        bse (tuple): Design based (sandwich) standard errors
        pvalues (tuple): Two sided Wald test p-values
        df (int): Degrees of freedom of the reference t distribution
        nobs (int): Number of complete cases used in the fit
        iterations (int): Number of IRLS iterations
        log_likelihood (float): Weighted pseudo log-likelihood at convergence
        precision_warning (bool): True when strata with a single cluster were
            left out of the variance estimate
    """
    outcome: str
    event: Any
    terms: Tuple[str, ...]
    params: Tuple[float, ...]
    bse: Tuple[float, ...]
    pvalues: Tuple[float, ...]
    df: int
    nobs: int
    iterations: int
    log_likelihood: float
    precision_warning: bool = False

    @property
    def odds_ratios(self) -> pd.Series:
        return pd.Series(np.exp(self.params), index=list(self.terms), name='odds_ratio')

    def conf_int(self, alpha: float = 0.05, exponentiate: bool = False) -> pd.DataFrame:
        """Wald confidence intervals based on the t distribution with ``df`` degrees of freedom"""
        q = student_t.ppf(1 - alpha / 2, self.df)
        params = np.array(self.params)
        bse = np.array(self.bse)
        ci = pd.DataFrame({'lower': params - q * bse, 'upper': params + q * bse},
                          index=list(self.terms))
        if exponentiate:
            ci = np.exp(ci)
        return ci

    def summary_frame(self, alpha: float = 0.05, exponentiate: bool = True) -> pd.DataFrame:
        """One row per term with estimate, standard error, confidence interval and p-value"""
        frame = pd.DataFrame({'coef': self.params, 'se': self.bse},
                             index=list(self.terms))
        if exponentiate:
            frame['odds_ratio'] = np.exp(frame['coef'])
        frame = frame.join(self.conf_int(alpha=alpha, exponentiate=exponentiate))
        frame['p_value'] = self.pvalues
        return frame


def _is_categorical(col: pd.Series) -> bool:
    return isinstance(col.dtype, pd.CategoricalDtype) or not is_numeric_dtype(col)


class WeightedLogisticFit(object):
    """Binomial regression with logit link under a stratified cluster design

    Args:
        max_iter (int): Maximum number of IRLS iterations
        tol (float): Convergence tolerance on the largest coefficient change,
            relative to the size of the coefficient vector

    Examples:
        >>> import numpy as np
        >>> import pandas as pd
        >>> from brfss.survey.design import SurveyDesign
        >>> rng = np.random.default_rng(0)
        >>> n = 400
        >>> df = pd.DataFrame({'strat': np.repeat([1, 2], n // 2),
        ...                    'psu': np.repeat(np.arange(20), n // 20),
        ...                    'w': rng.uniform(1, 3, n),
        ...                    'x': rng.normal(size=n)})
        >>> df['y'] = (rng.uniform(size=n) < 1 / (1 + np.exp(-df['x']))).astype(int)
        >>> design = SurveyDesign.create(df, 'strat', 'psu', 'w')
        >>> res = WeightedLogisticFit().fit(design, 'y', ['x'])
        >>> res.terms
        ('Intercept', 'x')
        >>> res.df
        18
    """
    def __init__(self, max_iter: int = 25, tol: float = 1e-8):
        self.max_iter = max_iter
        self.tol = tol

    def fit(self, design: SurveyDesign, outcome: str, predictors: Sequence[str],
            reference_levels: Optional[Dict[str, Any]] = None) -> RegressionFit:
        """Fit ``outcome ~ predictors`` on the complete cases of the design.

        Args:
            design (SurveyDesign): The survey design holding the variables
            outcome (str): Binary outcome variable
            predictors (list): Predictor variables. Categorical (or non
                numeric) predictors are dummy coded against their reference
                level, numeric ones enter the model as is
            reference_levels (dict): Optional ``{variable: level}`` mapping.
                For the outcome it designates the level coded 0; for
                categorical predictors the omitted level. Defaults to the first
                level of each variable

        Raises:
            DesignError: If the design has no degrees of freedom left
            EstimationError: If the outcome is not binary, a reference level
                does not exist, no complete case is left or the model matrix is
                rank deficient
            ConvergenceError: If IRLS does not converge (e.g. separated data)

        Returns:
            RegressionFit
        """
        df = design.degrees_of_freedom
        if df <= 0:
            raise DesignError(f"Design has {design.n_clusters} clusters in {design.n_strata} "
                              "strata, no degrees of freedom left for Wald tests")
        X, y, complete, terms, event = self._model_matrix(design, outcome, predictors,
                                                          reference_levels or {})
        w = design.weights * complete
        beta, iterations = self._irls(X, y, w)

        eta = X @ beta
        mu = expit(eta)
        info = X.T @ ((w * mu * (1 - mu))[:, None] * X)
        bread = np.linalg.inv(info)
        scores = (w * (y - mu))[:, None] * X
        meat = design.linearized_variance(scores)
        cov = bread @ meat @ bread
        bse = np.sqrt(np.diag(cov))
        with np.errstate(divide='ignore', invalid='ignore'):
            tvalues = beta / bse
        pvalues = 2 * student_t.sf(np.abs(tvalues), df)
        log_likelihood = float(np.sum(w * (y * eta - np.logaddexp(0, eta))))

        flag = design.has_singleton_strata
        if flag:
            warnings.warn(f"Standard errors of the '{outcome}' model ignore strata "
                          "with a single cluster", PrecisionWarning, stacklevel=2)
        return RegressionFit(outcome=outcome, event=event, terms=tuple(terms),
                             params=tuple(beta.tolist()), bse=tuple(bse.tolist()),
                             pvalues=tuple(pvalues.tolist()), df=df,
                             nobs=int(complete.sum()), iterations=iterations,
                             log_likelihood=log_likelihood,
                             precision_warning=flag)

    def _irls(self, X: np.ndarray, y: np.ndarray, w: np.ndarray) -> Tuple[np.ndarray, int]:
        beta = np.zeros(X.shape[1])
        for iteration in range(1, self.max_iter + 1):
            mu = expit(X @ beta)
            info = X.T @ ((w * mu * (1 - mu))[:, None] * X)
            score = X.T @ (w * (y - mu))
            try:
                step = np.linalg.solve(info, score)
            except np.linalg.LinAlgError as err:
                raise ConvergenceError(f"Singular information matrix at iteration {iteration}") from err
            beta = beta + step
            if not np.all(np.isfinite(beta)):
                raise ConvergenceError(f"Non finite coefficients at iteration {iteration}")
            max_step = np.max(np.abs(step))
            logger.debug("IRLS iteration %d, largest coefficient change %.3g",
                         iteration, max_step)
            if max_step <= self.tol * (1 + np.max(np.abs(beta))):
                return beta, iteration
        raise ConvergenceError(f"IRLS did not converge in {self.max_iter} iterations "
                               f"(largest coefficient change {max_step:.3g}); "
                               "the outcome may be separated by the predictors")

    @staticmethod
    def _model_matrix(design, outcome, predictors, reference_levels):
        y_col = design.column(outcome)
        cols = {p: design.column(p) for p in predictors}
        complete = y_col.notna().to_numpy()
        for col in cols.values():
            complete = complete & col.notna().to_numpy()
        if not complete.any():
            raise EstimationError(f"No complete cases for '{outcome}' ~ {list(predictors)}")

        outcome_levels = design.levels(outcome)
        if len(outcome_levels) != 2:
            raise EstimationError(f"Outcome '{outcome}' must have exactly two levels, "
                                  f"found {outcome_levels}")
        reference = reference_levels.get(outcome, outcome_levels[0])
        if reference not in outcome_levels:
            raise EstimationError(f"Reference level {reference!r} is not a level of '{outcome}'")
        event = outcome_levels[1] if reference == outcome_levels[0] else outcome_levels[0]
        y = np.where(complete, (y_col == event).to_numpy(), False).astype(float)

        terms = [INTERCEPT]
        columns = [np.ones(len(design))]
        for name, col in cols.items():
            if _is_categorical(col):
                levels = design.levels(name)
                base = reference_levels.get(name, levels[0] if levels else None)
                if base not in levels:
                    raise EstimationError(f"Reference level {base!r} is not a level of '{name}'")
                for level in levels:
                    if level == base:
                        continue
                    terms.append(f"{name}[{level}]")
                    columns.append((col == level).to_numpy(dtype=float))
            else:
                terms.append(name)
                columns.append(col.to_numpy(dtype=float, na_value=np.nan))
        X = np.column_stack(columns)
        # Incomplete rows keep their clusters but contribute nothing
        X[~complete] = 0.0
        if np.linalg.matrix_rank(X[complete]) < X.shape[1]:
            raise EstimationError(f"Model matrix of '{outcome}' ~ {list(predictors)} is rank "
                                  "deficient, check for empty categories or collinear predictors")
        logger.info("Fitting '%s' (event %r) on %d complete cases with %d terms",
                    outcome, event, complete.sum(), len(terms))
        return X, y, complete, terms, event


def fit(design: SurveyDesign, outcome: str, predictors: Sequence[str],
        reference_levels: Optional[Dict[str, Any]] = None,
        max_iter: int = 25, tol: float = 1e-8) -> RegressionFit:
    """Convenience wrapper around :meth:`WeightedLogisticFit.fit`"""
    return WeightedLogisticFit(max_iter=max_iter, tol=tol).fit(
        design, outcome, predictors, reference_levels=reference_levels)
