"""Readers for BRFSS annual data files

The CDC distributes the BRFSS public use files as SAS transport (``.XPT``)
files; CSV exports of the same fixed schema are accepted too. Rows are
returned unchanged (raw codes), recoding is done by :mod:`brfss.survey.recode`.
"""
import logging
import os
from typing import Any, Optional, Sequence

import pandas as pd


logger = logging.getLogger(__name__)

# Design fields of the combined landline and cell phone data
STRATUM = '_STSTR'
CLUSTER = '_PSU'
WEIGHT = '_LLCPWT'
STATE = '_STATE'
# FIPS code of Guam
GUAM = 66


def read_brfss(path: str, columns: Optional[Sequence[str]] = None,
               state: Optional[Any] = None) -> pd.DataFrame:
    """Read a BRFSS data file

    Args:
        path (str): Path to a ``.xpt`` (SAS transport) or ``.csv`` file
        columns (list): Optional subset of columns to keep. ``_STATE`` is
            read whenever ``state`` is given
        state: Optional state FIPS code; only respondents of that state are
            kept (e.g. ``66`` for Guam)

    Returns:
        pandas.DataFrame: The raw rows, with a fresh RangeIndex
    """
    ext = os.path.splitext(path)[1].lower()
    if ext == '.xpt':
        df = pd.read_sas(path, format='xport', encoding='latin-1')
    elif ext == '.csv':
        df = pd.read_csv(path)
    else:
        raise ValueError(f"Unsupported BRFSS file format: '{ext}' (expected .xpt or .csv)")
    logger.info("Read %d rows and %d columns from %s", len(df), df.shape[1], path)
    if state is not None:
        if STATE not in df.columns:
            raise ValueError(f"Column '{STATE}' not found, cannot filter on state {state}")
        df = df[df[STATE] == state]
        logger.info("Kept %d rows of state %s", len(df), state)
    if columns is not None:
        absent = [c for c in columns if c not in df.columns]
        if absent:
            raise ValueError(f"Columns not found in {path}: {absent}")
        df = df[list(columns)]
    return df.reset_index(drop=True)
