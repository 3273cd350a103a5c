"""
Tests for the end to end analysis runner.
"""
import dataclasses

import numpy as np
import pandas as pd
import pytest

from brfss.survey.analysis import AnalysisResult, run_analysis, run_file
from brfss.survey.config import AnalysisConfig
from brfss.survey.exceptions import DesignError, EstimationError
from brfss.survey.guam import DIABETES, GUAM_2020, HEALTH_COVERAGE, SEX
from conftest import make_raw_brfss


def test_guam_analysis(raw_brfss):
    result = run_analysis(raw_brfss, GUAM_2020)
    assert isinstance(result, AnalysisResult)
    assert result.errors == {}
    assert set(result.tables) == {'frequency', 'validation', 'crosstab', 'regression'}
    assert len(result.design) == len(raw_brfss)
    assert result.design.n_strata == 4

    freq = result.tables['frequency']
    assert list(freq.index.get_level_values('variable').unique()) == list(GUAM_2020.descriptives)
    np.testing.assert_allclose(freq.groupby(level='variable')['percent'].sum(), 100.0)

    cross = result.tables['crosstab']
    assert list(cross.columns.get_level_values('diabetes').unique()) == ['No', 'Yes']

    assert set(result.fits) == {'unadjusted', 'adjusted'}
    assert result.fits['unadjusted'].terms[1:] == ('bmi_category[Underweight]',
                                                   'bmi_category[Overweight]',
                                                   'bmi_category[Obese]')
    assert result.fits['unadjusted'].event == 'Yes'
    assert result.fits['adjusted'].nobs < result.fits['unadjusted'].nobs
    regression = result.tables['regression']
    assert list(regression.columns.get_level_values('model').unique()) == ['unadjusted', 'adjusted']
    assert regression.loc['bmi_category[Obese]', ('unadjusted', 'odds_ratio')] > 1


def test_default_configuration(raw_brfss):
    result = run_analysis(raw_brfss)
    assert set(result.fits) == {'unadjusted', 'adjusted'}


def test_invalid_design_propagates(raw_brfss):
    raw_brfss.loc[3, '_LLCPWT'] = 0
    with pytest.raises(DesignError, match="_LLCPWT"):
        run_analysis(raw_brfss, GUAM_2020)


def test_failing_models_are_isolated(raw_brfss):
    # Nobody is uninsured: the coverage indicator cannot be estimated
    raw_brfss['HLTHPLN1'] = 1
    config = AnalysisConfig(variables=[SEX, HEALTH_COVERAGE, DIABETES],
                            descriptives=['sex', 'health_coverage'],
                            outcome='diabetes', exposure='health_coverage',
                            covariates=['sex'])
    result = run_analysis(raw_brfss, config)
    assert 'crosstab' not in result.tables
    assert result.fits == {}
    assert isinstance(result.errors['model:unadjusted'], EstimationError)
    assert isinstance(result.errors['model:adjusted'], EstimationError)
    assert result.tables['regression'].empty
    freq = result.tables['frequency']
    assert freq.loc[('health_coverage', 'Uninsured'), 'percent'] == 0.0


def test_descriptives_only(raw_brfss):
    config = AnalysisConfig(variables=[SEX, DIABETES], descriptives=['sex'],
                            by='diabetes', percent='column')
    result = run_analysis(raw_brfss, config)
    assert set(result.tables) == {'frequency', 'validation', 'crosstab'}
    pct = result.tables['crosstab'].xs('percent', axis=1, level='statistic')
    np.testing.assert_allclose(pct.sum(axis=0), 100.0)


def test_bootstrap_run(raw_brfss):
    config = dataclasses.replace(GUAM_2020, descriptives=['sex', 'bmi_category'],
                                 se_method='bootstrap', n_boot=30, seed=1)
    boot = run_analysis(raw_brfss, config)
    lin = run_analysis(raw_brfss, dataclasses.replace(config, se_method='linearization'))
    np.testing.assert_allclose(boot.tables['frequency']['percent'],
                               lin.tables['frequency']['percent'])
    assert not np.allclose(boot.tables['frequency']['se'], lin.tables['frequency']['se'])
    assert (boot.tables['frequency']['se'] > 0).all()
    # Model standard errors always come from linearization
    np.testing.assert_allclose(boot.fits['adjusted'].bse, lin.fits['adjusted'].bse)


def test_invalid_configuration():
    with pytest.raises(ValueError, match="se_method"):
        AnalysisConfig(variables=[SEX], descriptives=['sex'], se_method='jackknife')
    with pytest.raises(ValueError, match="not declared"):
        AnalysisConfig(variables=[SEX], descriptives=['sex', 'age_group'])


def test_raw_columns():
    assert GUAM_2020.raw_columns[:3] == ['_STSTR', '_PSU', '_LLCPWT']
    assert 'DIABETE4' in GUAM_2020.raw_columns
    assert len(GUAM_2020.raw_columns) == len(set(GUAM_2020.raw_columns))


def test_run_file_filters_state(tmp_path):
    guam = make_raw_brfss(n_psu=6, n_per=30)
    other = make_raw_brfss(n_strata=2, n_psu=4, n_per=20, seed=1)
    other['_STATE'] = 69
    other['_STSTR'] += 3000
    other['_PSU'] += 1000
    path = tmp_path / 'LLCP2020.csv'
    pd.concat([guam, other]).to_csv(path, index=False)

    result = run_file(str(path), GUAM_2020)
    assert len(result.design) == len(guam)
    assert result.design.n_clusters == 24
    assert set(result.fits) == {'unadjusted', 'adjusted'}
