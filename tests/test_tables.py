"""
Tests for report table assembly and formatting.
"""
import numpy as np
import pytest

from brfss.survey.design import SurveyDesign
from brfss.survey.exceptions import EstimationError
from brfss.survey.logistic import fit
from brfss.survey.tables import ReportAssembler, format_regression, format_table


@pytest.fixture
def assembler(survey_design):
    return ReportAssembler(survey_design)


def test_frequency_table(assembler):
    table = assembler.frequency_table(['exposure', 'sex'])
    assert table.index.names == ['variable', 'level']
    assert list(table.index) == [('exposure', 'low'), ('exposure', 'mid'),
                                 ('exposure', 'high'), ('sex', 'Male'), ('sex', 'Female')]
    totals = table.groupby(level='variable')['percent'].sum()
    np.testing.assert_allclose(totals, 100.0)
    assert (table['ci_lower'] <= table['percent']).all()
    assert (table['ci_upper'] >= table['percent']).all()


def test_crosstab_table_row_percent(assembler):
    table = assembler.crosstab_table(['exposure', 'sex', 'outcome'], by='outcome', percent='row')
    # The grouping variable itself is not cross-tabulated
    assert 'outcome' not in table.index.get_level_values('variable')
    assert table.columns.names == ['outcome', 'statistic']
    pct = table.xs('percent', axis=1, level='statistic')
    np.testing.assert_allclose(pct.sum(axis=1), 100.0)


def test_crosstab_table_column_percent(assembler):
    table = assembler.crosstab_table(['exposure'], by='sex', percent='column')
    pct = table.xs('percent', axis=1, level='statistic')
    np.testing.assert_allclose(pct.sum(axis=0), 100.0)


def test_validation_table_unit_weights(even_df):
    design = SurveyDesign.create(even_df, 'strat', 'psu', 'w')
    table = ReportAssembler(design).validation_table(['answer'])
    np.testing.assert_allclose(table['unweighted_percent'], [50.0, 50.0])
    np.testing.assert_allclose(table['difference'], 0.0, atol=1e-12)


def test_validation_table_weighted(survey_df, assembler):
    table = assembler.validation_table(['sex'])
    n_male = (survey_df['sex'] == 'Male').sum()
    assert table.loc[('sex', 'Male'), 'n'] == n_male
    assert table.loc[('sex', 'Male'), 'unweighted_percent'] == pytest.approx(
        100 * n_male / survey_df['sex'].notna().sum())
    diff = table['weighted_percent'] - table['unweighted_percent']
    np.testing.assert_allclose(table['difference'], diff)


def test_failures_are_isolated(survey_df):
    survey_df['empty'] = np.nan
    design = SurveyDesign.create(survey_df, 'strat', 'psu', 'w')
    assembler = ReportAssembler(design)
    table = assembler.frequency_table(['empty', 'sex'])
    assert list(table.index.get_level_values('variable').unique()) == ['sex']
    assert isinstance(assembler.errors['frequency:empty'], EstimationError)


def test_all_variables_failing_gives_empty_table(survey_df):
    survey_df['empty'] = np.nan
    design = SurveyDesign.create(survey_df, 'strat', 'psu', 'w')
    table = ReportAssembler(design).frequency_table(['empty'])
    assert table.empty
    assert table.index.names == ['variable', 'level']


def test_regression_table(survey_design):
    fits = {'unadjusted': fit(survey_design, 'outcome', ['exposure']),
            'adjusted': fit(survey_design, 'outcome', ['exposure', 'sex'])}
    table = ReportAssembler.regression_table(fits)
    assert list(table.index) == ['Intercept', 'exposure[mid]', 'exposure[high]', 'sex[Female]']
    assert list(table.columns.get_level_values('model').unique()) == ['unadjusted', 'adjusted']
    assert np.isnan(table.loc['sex[Female]', ('unadjusted', 'odds_ratio')])
    assert table.loc['exposure[high]', ('adjusted', 'odds_ratio')] > 1
    assert ReportAssembler.regression_table({}).empty


def test_format_tables(assembler, survey_design):
    freq = assembler.frequency_table(['sex'])
    text = format_table(freq)
    row = freq.loc[('sex', 'Male')]
    assert text.loc[('sex', 'Male'), 'n (%)'] == f"{int(row['n'])} ({row['percent']:.1f}%)"
    assert list(text.columns) == ['n (%)', '95% CI']

    cross = format_table(assembler.crosstab_table(['sex'], by='outcome'))
    assert list(cross.columns) == ['No', 'Yes']
    assert cross.iloc[0, 0].endswith('%)')

    reg = format_regression(ReportAssembler.regression_table(
        {'unadjusted': fit(survey_design, 'outcome', ['exposure'])}))
    assert list(reg.columns) == [('unadjusted', 'OR (95% CI)'), ('unadjusted', 'p-value')]
    assert reg.loc['exposure[high]', ('unadjusted', 'p-value')] == '<0.001'
    assert reg.loc['Intercept', ('unadjusted', 'OR (95% CI)')].count('-') == 1
