import numpy as np
import pandas as pd
import pytest

from brfss.survey.design import SurveyDesign


def categorical(values, levels):
    return pd.Categorical(values, categories=levels)


@pytest.fixture
def even_df():
    """2 strata x 3 clusters x 4 respondents, weight 1, 12 'yes' out of 24

    Clusters are unevenly split so that the standard error is not zero.
    """
    yes_per_cluster = [3, 1, 2, 4, 0, 2]
    answers = np.concatenate([['yes'] * k + ['no'] * (4 - k) for k in yes_per_cluster])
    return pd.DataFrame({'strat': np.repeat(['A', 'B'], 12),
                         'psu': np.repeat([1, 2, 3, 4, 5, 6], 4),
                         'w': 1.0,
                         'answer': categorical(answers, ['yes', 'no'])})


@pytest.fixture
def even_design(even_df):
    return SurveyDesign.create(even_df, 'strat', 'psu', 'w')


@pytest.fixture
def survey_df():
    """4 strata x 6 clusters with unequal weights, missing values and a
    binary outcome associated with ``exposure``"""
    rng = np.random.default_rng(2020)
    n_strata, n_psu, n_per = 4, 6, 30
    n = n_strata * n_psu * n_per
    strata = np.repeat(np.arange(1, n_strata + 1), n_psu * n_per)
    psu = np.repeat(np.arange(n_strata * n_psu), n_per)
    weights = rng.uniform(50, 500, n)
    exposure = rng.choice(['low', 'mid', 'high'], size=n, p=[0.4, 0.35, 0.25])
    sex = rng.choice(['Male', 'Female'], size=n)
    age = rng.normal(45, 12, n)
    eta = -1.0 + 0.8 * (exposure == 'mid') + 1.5 * (exposure == 'high') + 0.02 * (age - 45)
    outcome = np.where(rng.uniform(size=n) < 1 / (1 + np.exp(-eta)), 'Yes', 'No')
    df = pd.DataFrame({'strat': strata, 'psu': psu, 'w': weights,
                       'exposure': categorical(exposure, ['low', 'mid', 'high']),
                       'sex': categorical(sex, ['Male', 'Female']),
                       'age': age,
                       'outcome': categorical(outcome, ['No', 'Yes'])})
    # Scatter missing values
    df.loc[rng.uniform(size=n) < 0.05, 'exposure'] = np.nan
    df.loc[rng.uniform(size=n) < 0.03, 'sex'] = np.nan
    df.loc[rng.uniform(size=n) < 0.04, 'outcome'] = np.nan
    df.loc[rng.uniform(size=n) < 0.02, 'age'] = np.nan
    return df


@pytest.fixture
def survey_design(survey_df):
    return SurveyDesign.create(survey_df, 'strat', 'psu', 'w')


def make_raw_brfss(n_strata=4, n_psu=10, n_per=40, seed=66):
    """Raw (un-recoded) BRFSS-like extract with 2020 codebook codes"""
    rng = np.random.default_rng(seed)
    n = n_strata * n_psu * n_per
    bmi = rng.choice([1, 2, 3, 4], size=n, p=[0.1, 0.3, 0.3, 0.3]).astype(float)
    age = rng.integers(1, 14, size=n)
    logit = -2.0 + 0.5 * (bmi == 3) + 1.0 * (bmi == 4) + 0.1 * (age - 7)
    diabetes = np.where(rng.uniform(size=n) < 1 / (1 + np.exp(-logit)), 1,
                        rng.choice([2, 3, 4], size=n, p=[0.05, 0.85, 0.1]))
    df = pd.DataFrame({
        '_STATE': 66,
        '_STSTR': np.repeat(np.arange(66011, 66011 + n_strata), n_psu * n_per),
        '_PSU': np.repeat(np.arange(2020000001, 2020000001 + n_strata * n_psu), n_per),
        '_LLCPWT': rng.uniform(20, 200, n),
        'SEXVAR': rng.choice([1, 2], size=n),
        '_AGEG5YR': age,
        '_EDUCAG': rng.choice([1, 2, 3, 4, 9], size=n, p=[0.2, 0.3, 0.25, 0.23, 0.02]),
        '_INCOMG': rng.choice([1, 2, 3, 4, 5, 9], size=n, p=[0.15, 0.15, 0.15, 0.15, 0.3, 0.1]),
        '_BMI5CAT': bmi,
        '_SMOKER3': rng.choice([1, 2, 3, 4, 9], size=n, p=[0.15, 0.05, 0.2, 0.58, 0.02]),
        '_TOTINDA': rng.choice([1, 2, 9], size=n, p=[0.7, 0.28, 0.02]),
        'HLTHPLN1': rng.choice([1, 2, 7, 9], size=n, p=[0.85, 0.12, 0.02, 0.01]),
        'DIABETE4': diabetes,
    })
    df.loc[rng.uniform(size=n) < 0.03, '_BMI5CAT'] = np.nan
    df.loc[rng.uniform(size=n) < 0.02, '_AGEG5YR'] = 14
    df.loc[rng.uniform(size=n) < 0.01, 'DIABETE4'] = 7
    return df


@pytest.fixture
def raw_brfss():
    return make_raw_brfss()
