"""
Ready-made extra-column functions.

Extra-column functions receive the values of one variable for every leaf
stratum at once, which allows statistics that compare strata.
"""

import logging
import warnings
from collections.abc import Mapping

import numpy as np
import pandas as pd
from scipy import stats

from .stats import as_categorical, category_levels, is_continuous

logger = logging.getLogger(__name__)


def format_pvalue(p: float, digits: int = 3, eps: float = 0.001) -> str:
    """
    Format a p-value for display.

    Values below ``eps`` are shown as ``"<0.001"``; others with ``digits``
    significant digits.
    """
    if p is None or pd.isna(p):
        return ""
    if p < eps:
        return f"<{eps:g}"
    return f"{p:.{digits}g}"


def pvalue(x: Mapping[str, pd.Series], name=None, **context) -> str:
    """
    P-value comparing the distribution of a variable across strata.

    Numeric variables use Welch's t-test for two strata and a one-way ANOVA
    for more; other variables use the chi-square test of independence.
    Strata without observations are ignored. Returns an empty string when
    no test is possible.
    """
    groups = {k: v.dropna() for k, v in x.items()}
    groups = {k: v for k, v in groups.items() if len(v) > 0}
    if len(groups) < 2:
        return ""

    values = pd.concat(groups.values())
    kind = context.get("kind") or ("continuous" if is_continuous(values) else "categorical")
    try:
        with warnings.catch_warnings():
            warnings.simplefilter("ignore")
            if kind == "continuous":
                samples = [v.astype(float).to_numpy() for v in groups.values()]
                if len(samples) == 2:
                    p = stats.ttest_ind(*samples, equal_var=False).pvalue
                else:
                    p = stats.f_oneway(*samples).pvalue
            else:
                levels = context.get("levels") or category_levels(values)
                table = np.array(
                    [
                        as_categorical(v, levels).value_counts(sort=False).to_numpy()
                        for v in groups.values()
                    ]
                )
                # Levels that never occur make the expected frequencies zero
                table = table[:, table.sum(axis=0) > 0]
                if table.shape[1] < 2:
                    return ""
                p = stats.chi2_contingency(table)[1]
    except ValueError as e:
        logger.warning("Could not compute p-value for %s: %s", name, e)
        return ""
    return format_pvalue(float(p))
