"""Declared recoding of raw survey codes into analysis variables

Every recode is a configuration object (a mapping from raw codes to labels)
rather than inline conditionals, so mappings can be reused across variables
and tested on their own.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence, Union

import pandas as pd

from brfss.survey.exceptions import RecodeError


logger = logging.getLogger(__name__)

UNKNOWN_POLICIES = ('error', 'passthrough', 'missing')


def _code_label(code: Any) -> str:
    # Raw codes read from SAS transport files are floats
    if isinstance(code, float) and code.is_integer():
        return str(int(code))
    return str(code)


@dataclass
class CategoricalVariable:
    """Raw codes to category labels

    Args:
        name (str): Name of the recoded column
        source (str): Name of the raw column
        mapping (dict): ``{raw_code: label}``. Several codes may share a label
        levels (list): Declared level order. Defaults to the mapping labels in
            order of first appearance. The first level is the default
            reference level of regression models
        missing (list): Raw codes recoded as missing (e.g. 7 "Don't know",
            9 "Refused")
        on_unknown (str): What to do with raw codes that are neither mapped nor
            declared missing. ``'error'`` raises a ``RecodeError``,
            ``'passthrough'`` keeps them as extra categories appended after the
            declared levels, ``'missing'`` recodes them as missing

    Examples:
        >>> import pandas as pd
        >>> sex = CategoricalVariable('sex', 'SEXVAR', {1: 'Male', 2: 'Female'})
        >>> sex.recode(pd.Series([1, 2, 2, None])).tolist()
        ['Male', 'Female', 'Female', nan]
        >>> sex.recode(pd.Series([1, 3]))
        Traceback (most recent call last):
        ...
        brfss.survey.exceptions.RecodeError: Unexpected codes in 'SEXVAR' for 'sex': [3]
    """
    name: str
    source: str
    mapping: Dict[Any, str]
    levels: Optional[Sequence[str]] = None
    missing: Sequence[Any] = field(default_factory=tuple)
    on_unknown: str = 'error'

    def __post_init__(self):
        if self.on_unknown not in UNKNOWN_POLICIES:
            raise ValueError(f"Unknown on_unknown policy: {self.on_unknown}, "
                             f"expected one of {UNKNOWN_POLICIES}")
        if self.levels is None:
            self.levels = list(dict.fromkeys(self.mapping.values()))
        undeclared = set(self.mapping.values()) - set(self.levels)
        if undeclared:
            raise ValueError(f"Labels of '{self.name}' missing from its levels: {sorted(undeclared)}")

    def recode(self, raw: pd.Series) -> pd.Series:
        """Apply the mapping to a raw column, returning a categorical Series"""
        is_missing = raw.isna() | raw.isin(list(self.missing))
        unknown_mask = ~is_missing & ~raw.isin(list(self.mapping))
        unknown = sorted(pd.unique(raw[unknown_mask]).tolist())
        levels = list(self.levels)
        labels = raw.map(self.mapping)
        if unknown:
            if self.on_unknown == 'error':
                raise RecodeError(f"Unexpected codes in '{self.source}' for '{self.name}': {unknown}")
            elif self.on_unknown == 'passthrough':
                logger.warning("Passing through unexpected codes %s of '%s' as extra "
                               "categories of '%s'", unknown, self.source, self.name)
                extra = [_code_label(code) for code in unknown]
                labels = labels.where(~unknown_mask, raw.map(_code_label))
                levels = levels + [code for code in extra if code not in levels]
            else:
                logger.info("Recoding %d unexpected code(s) of '%s' as missing",
                            int(unknown_mask.sum()), self.source)
        labels = labels.where(~is_missing & (~unknown_mask | (self.on_unknown == 'passthrough')))
        return pd.Series(pd.Categorical(labels, categories=levels),
                         index=raw.index, name=self.name)


@dataclass
class NumericVariable:
    """Raw numeric column with survey missing codes blanked

    Args:
        name (str): Name of the recoded column
        source (str): Name of the raw column
        missing (list): Raw codes recoded as missing (e.g. 7777, 9999)
        scale (float): Divisor applied to the raw values (BRFSS stores
            some measures with implied decimals, e.g. BMI times 100)

    Examples:
        >>> import pandas as pd
        >>> bmi = NumericVariable('bmi', '_BMI5', scale=100)
        >>> bmi.recode(pd.Series([2450, None])).tolist()
        [24.5, nan]
    """
    name: str
    source: str
    missing: Sequence[Any] = field(default_factory=tuple)
    scale: float = 1.0

    def recode(self, raw: pd.Series) -> pd.Series:
        values = pd.to_numeric(raw, errors='coerce')
        values = values.where(~values.isin(list(self.missing)))
        return (values / self.scale).rename(self.name)


Variable = Union[CategoricalVariable, NumericVariable]


class Recoder(object):
    """Apply a set of declared recodes to a raw survey extract

    Args:
        variables (list): ``CategoricalVariable`` and ``NumericVariable``
            declarations
        keep (list): Raw columns copied unchanged into the output (typically
            the design fields)
    """
    def __init__(self, variables: Iterable[Variable], keep: Sequence[str] = ()):
        self.variables = list(variables)
        self.keep = list(keep)
        names = [v.name for v in self.variables] + self.keep
        duplicated = sorted({n for n in names if names.count(n) > 1})
        if duplicated:
            raise ValueError(f"Duplicated output columns: {duplicated}")

    def __getitem__(self, name: str) -> Variable:
        for var in self.variables:
            if var.name == name:
                return var
        raise KeyError(name)

    @property
    def names(self) -> List[str]:
        return [v.name for v in self.variables]

    def apply(self, frame: pd.DataFrame) -> pd.DataFrame:
        """Recode ``frame`` into a new DataFrame holding only declared columns"""
        required = [v.source for v in self.variables] + self.keep
        absent = sorted(set(c for c in required if c not in frame.columns))
        if absent:
            raise RecodeError(f"Raw columns not found in dataset: {absent}")
        out = {col: frame[col] for col in self.keep}
        for var in self.variables:
            out[var.name] = var.recode(frame[var.source])
        return pd.DataFrame(out, index=frame.index)
