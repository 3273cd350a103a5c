"""
Weighted estimates under a stratified cluster design
====================================================

This example simulates a small BRFSS-like survey with unequal selection
probabilities, then compares unweighted and weighted prevalence estimates,
the two standard error methods available in ``brfss.survey`` and fits a
weighted logistic regression.
"""

import numpy as np
import matplotlib.pyplot as plt
import pandas as pd

from brfss.survey import SurveyDesign, summarize, fit
from brfss.survey.estimators import ClusterBootstrapEstimator
from brfss.survey.tables import ReportAssembler, format_table, format_regression

# Set random seed for reproducibility
rng = np.random.default_rng(42)

##############################################################
# Simulate a survey
# -----------------
#
# Four strata of ten clusters each. Older respondents are under-sampled in
# strata 3 and 4, which is compensated by larger weights. Diabetes prevalence
# increases with age and varies between clusters.

rows = []
for stratum in range(1, 5):
    for psu in range(10):
        cluster_effect = rng.normal(scale=0.4)
        n = rng.integers(15, 30)
        p_old = 0.5 if stratum <= 2 else 0.2
        old = rng.uniform(size=n) < p_old
        weight = np.where(old & (stratum > 2), 400.0, 150.0) * rng.uniform(0.8, 1.2, n)
        eta = -2.5 + 1.5 * old + cluster_effect
        diabetes = rng.uniform(size=n) < 1 / (1 + np.exp(-eta))
        rows.append(pd.DataFrame({'_STSTR': stratum,
                                  '_PSU': stratum * 100 + psu,
                                  '_LLCPWT': weight,
                                  'age_group': np.where(old, '65+', '18-64'),
                                  'diabetes': np.where(diabetes, 'Yes', 'No')}))
df = pd.concat(rows, ignore_index=True)
for col, levels in [('age_group', ['18-64', '65+']), ('diabetes', ['No', 'Yes'])]:
    df[col] = pd.Categorical(df[col], categories=levels)

design = SurveyDesign.create(df, '_STSTR', '_PSU', '_LLCPWT')
print(design)

##############################################################
# Unweighted versus weighted percentages
# --------------------------------------
#
# The validation table shows how far weighting moves the age distribution
# away from the raw sample composition.

assembler = ReportAssembler(design)
print(assembler.validation_table(['age_group', 'diabetes']))

##############################################################
# Linearization versus bootstrap standard errors
# ----------------------------------------------

lin = summarize(design, 'diabetes', by='age_group', percent='column')
boot = summarize(design, 'diabetes', by='age_group', percent='column',
                 estimator=ClusterBootstrapEstimator(design, n_boot=300, seed=0))

labels = [f"{g}" for g, level in lin if level == 'Yes']
pct = [lin[(g, 'Yes')].percent for g in labels]
se_lin = [lin[(g, 'Yes')].se for g in labels]
se_boot = [boot[(g, 'Yes')].se for g in labels]

x = np.arange(len(labels))
fig, ax = plt.subplots(figsize=(6, 4))
ax.bar(x - 0.15, pct, width=0.3, yerr=1.96 * np.array(se_lin), capsize=4,
       label='Linearization')
ax.bar(x + 0.15, pct, width=0.3, yerr=1.96 * np.array(se_boot), capsize=4,
       label='Cluster bootstrap')
ax.set_xticks(x)
ax.set_xticklabels(labels)
ax.set_ylabel('Diabetes prevalence (%)')
ax.legend()
plt.show()

print(format_table(assembler.crosstab_table(['diabetes'], by='age_group',
                                            percent='column')))

##############################################################
# Weighted logistic regression
# ----------------------------

res = fit(design, 'diabetes', ['age_group'],
          reference_levels={'diabetes': 'No', 'age_group': '18-64'})
print(res.summary_frame())
print(format_regression(ReportAssembler.regression_table({'unadjusted': res})))
