"""Declared recodes and analysis plan of the BRFSS 2020 Guam extract

Codes follow the 2020 BRFSS codebook (LLCP 2020). Analysis: prevalence of
diagnosed diabetes by respondent characteristics, and its association with
body mass index category, unadjusted and adjusted for demographics and
health behaviours.
"""
from brfss.survey import loaders
from brfss.survey.config import AnalysisConfig
from brfss.survey.recode import CategoricalVariable


SEX = CategoricalVariable('sex', 'SEXVAR', {1: 'Male', 2: 'Female'})

AGE_GROUP = CategoricalVariable(
    'age_group', '_AGEG5YR',
    {1: '18-34', 2: '18-34', 3: '18-34',
     4: '35-49', 5: '35-49', 6: '35-49',
     7: '50-64', 8: '50-64', 9: '50-64',
     10: '65+', 11: '65+', 12: '65+', 13: '65+'},
    missing=(14,))

EDUCATION = CategoricalVariable(
    'education', '_EDUCAG',
    {1: 'Less than high school', 2: 'High school graduate',
     3: 'Some college', 4: 'College graduate'},
    missing=(9,))

INCOME = CategoricalVariable(
    'income', '_INCOMG',
    {1: 'Less than $15,000', 2: '$15,000 to $24,999', 3: '$25,000 to $34,999',
     4: '$35,000 to $49,999', 5: '$50,000 or more'},
    missing=(9,))

BMI_CATEGORY = CategoricalVariable(
    'bmi_category', '_BMI5CAT',
    {1: 'Underweight', 2: 'Normal weight', 3: 'Overweight', 4: 'Obese'})

SMOKING = CategoricalVariable(
    'smoking', '_SMOKER3',
    {1: 'Current', 2: 'Current', 3: 'Former', 4: 'Never'},
    levels=['Never', 'Former', 'Current'],
    missing=(9,))

PHYSICAL_ACTIVITY = CategoricalVariable(
    'physical_activity', '_TOTINDA',
    {1: 'Active', 2: 'Inactive'},
    missing=(9,))

HEALTH_COVERAGE = CategoricalVariable(
    'health_coverage', 'HLTHPLN1',
    {1: 'Insured', 2: 'Uninsured'},
    missing=(7, 9))

# Gestational diabetes (2) and pre-diabetes (4) are counted as "No"
DIABETES = CategoricalVariable(
    'diabetes', 'DIABETE4',
    {1: 'Yes', 2: 'No', 3: 'No', 4: 'No'},
    levels=['No', 'Yes'],
    missing=(7, 9))


GUAM_2020 = AnalysisConfig(
    variables=[SEX, AGE_GROUP, EDUCATION, INCOME, BMI_CATEGORY, SMOKING,
               PHYSICAL_ACTIVITY, HEALTH_COVERAGE, DIABETES],
    descriptives=['sex', 'age_group', 'education', 'income', 'bmi_category',
                  'smoking', 'physical_activity', 'health_coverage'],
    by='diabetes',
    percent='row',
    outcome='diabetes',
    exposure='bmi_category',
    covariates=['sex', 'age_group', 'education', 'income', 'smoking',
                'physical_activity'],
    reference_levels={'diabetes': 'No', 'bmi_category': 'Normal weight'},
    state=loaders.GUAM)
