"""
Summary statistics for a single variable within a single stratum.

The raw statistics are plain floats (``NaN`` where a statistic is undefined
for the data at hand). ``apply_rounding`` turns them into display strings.
"""

from collections.abc import Mapping, Sequence
from decimal import ROUND_HALF_UP, Context, Decimal, getcontext
from typing import Optional

import numpy as np
import pandas as pd

from .errors import ConfigurationError

NA_STRING = "NA"
MISSING_LABEL = "Missing"

CONTINUOUS_STATS = (
    "N",
    "NMISS",
    "SUM",
    "MEAN",
    "SD",
    "CV",
    "GMEAN",
    "GSD",
    "GCV",
    "MEDIAN",
    "MIN",
    "MAX",
    "IQR",
    "Q1",
    "Q2",
    "Q3",
)
CATEGORICAL_STATS = ("FREQ", "PCT", "N", "NMISS")

# Statistics that are counts and never rounded
COUNT_STATS = ("N", "NMISS", "FREQ")
PCT_STATS = ("PCT",)
ORDER_STATS = ("MEDIAN", "MIN", "MAX", "Q1", "Q2", "Q3")


class MissingLevelStats(dict):
    """Statistics of the missing-value pseudo-level of a categorical variable."""


def is_logical(x: pd.Series) -> bool:
    if pd.api.types.is_bool_dtype(x):
        return True
    observed = x.dropna()
    return (
        x.dtype == object
        and len(observed) > 0
        and bool(observed.map(lambda v: isinstance(v, (bool, np.bool_))).all())
    )


def is_continuous(x: pd.Series) -> bool:
    """True for numeric columns that are neither boolean nor categorical."""
    return (
        pd.api.types.is_numeric_dtype(x)
        and not pd.api.types.is_bool_dtype(x)
        and not isinstance(x.dtype, pd.CategoricalDtype)
    )


def category_levels(x: pd.Series) -> list:
    """
    Ordered levels of a categorical-like column.

    Categorical dtypes keep their declared category order, logicals become
    ``["Yes", "No"]`` and anything else uses the sorted observed values.
    """
    if isinstance(x.dtype, pd.CategoricalDtype):
        return list(x.cat.categories)
    if is_logical(x):
        return ["Yes", "No"]
    observed = pd.unique(x.dropna())
    try:
        return sorted(observed)
    except TypeError:
        return list(observed)


def as_categorical(x: pd.Series, levels: Optional[Sequence] = None) -> pd.Series:
    """Return ``x`` as a categorical Series with the given (or inferred) levels."""
    if is_logical(x) and not isinstance(x.dtype, pd.CategoricalDtype):
        x = x.map({True: "Yes", False: "No"})
        if levels is None:
            levels = ["Yes", "No"]
    if levels is None:
        levels = category_levels(x)
    return pd.Series(pd.Categorical(x, categories=list(levels)), index=x.index)


def summarize_continuous(x) -> dict:
    """
    Compute the continuous statistics battery for one stratum.

    Missing values count towards ``NMISS`` only. ``N`` is the number of
    non-missing values. Statistics that are undefined for the data (e.g. the
    SD of a single value or the geometric mean without positive values) are
    ``NaN``.
    """
    x = pd.Series(x, dtype=float)
    nmiss = int(x.isna().sum())
    x = x.dropna()
    n = len(x)

    res = dict.fromkeys(CONTINUOUS_STATS, np.nan)
    res["N"] = n
    res["NMISS"] = nmiss
    if n == 0:
        return res

    mean = x.mean()
    sd = x.std(ddof=1) if n > 1 else np.nan
    res["SUM"] = x.sum()
    res["MEAN"] = mean
    res["SD"] = sd
    res["CV"] = 100 * sd / mean if mean != 0 else np.nan

    positive = x[x > 0]
    if len(positive) > 0:
        logs = np.log(positive)
        res["GMEAN"] = float(np.exp(logs.mean()))
        if len(positive) > 1:
            log_sd = logs.std(ddof=1)
            res["GSD"] = float(np.exp(log_sd))
            res["GCV"] = float(100 * np.sqrt(np.exp(log_sd**2) - 1))

    q1, q2, q3 = x.quantile([0.25, 0.5, 0.75], interpolation="linear")
    res["MEDIAN"] = q2
    res["MIN"] = x.min()
    res["MAX"] = x.max()
    res["IQR"] = q3 - q1
    res["Q1"] = q1
    res["Q2"] = q2
    res["Q3"] = q3
    return res


def summarize_categorical(
    x, levels: Optional[Sequence] = None, include_missing: Optional[bool] = None
) -> dict:
    """
    Compute frequencies and percentages for each level of a categorical variable.

    Parameters
    ----------
    x : array-like
        Values of the variable within one stratum.
    levels : sequence, optional
        Declared level order. Levels that do not occur get a frequency of 0.
    include_missing : bool, optional
        Whether to add a trailing ``"Missing"`` pseudo-level. ``None`` adds it
        only when ``x`` has missing values. Pass an explicit value to keep the
        row structure identical across strata.

    Returns
    -------
    dict
        Mapping level -> {"FREQ", "PCT", "N", "NMISS"}. ``PCT`` is relative to
        the non-missing values of the stratum, so the level percentages add up
        to 100; the missing pseudo-level is relative to all values.
    """
    x = as_categorical(pd.Series(x), levels)
    nmiss = int(x.isna().sum())
    n = len(x) - nmiss
    counts = x.value_counts(sort=False)

    res = {}
    for level in x.cat.categories:
        freq = int(counts.get(level, 0))
        res[level] = {
            "FREQ": freq,
            "PCT": 100 * freq / n if n > 0 else np.nan,
            "N": n,
            "NMISS": nmiss,
        }
    if include_missing is None:
        include_missing = nmiss > 0
    if include_missing:
        if MISSING_LABEL in res:
            raise ConfigurationError(
                f"A level is named '{MISSING_LABEL}', which clashes with the row for "
                "missing values. Rename the level or remove the missing values."
            )
        res[MISSING_LABEL] = MissingLevelStats({
            "FREQ": nmiss,
            "PCT": 100 * nmiss / len(x) if len(x) > 0 else np.nan,
            "N": n,
            "NMISS": nmiss,
        })
    return res


def summarize_missing(x) -> dict:
    """Frequency and percentage of missing values, used for continuous variables."""
    x = pd.Series(x)
    nmiss = int(x.isna().sum())
    return {
        "FREQ": nmiss,
        "PCT": 100 * nmiss / len(x) if len(x) > 0 else np.nan,
        "N": len(x) - nmiss,
        "NMISS": nmiss,
    }


def compute_stats(
    values,
    kind: str,
    levels: Optional[Sequence] = None,
    include_missing: Optional[bool] = None,
) -> dict:
    """
    Compute the raw statistics for one variable in one stratum.

    ``kind`` is either ``"continuous"`` or ``"categorical"``.
    """
    assert kind in ["continuous", "categorical"], (
        "kind must be either 'continuous' or 'categorical'."
    )
    if kind == "continuous":
        return summarize_continuous(values)
    return summarize_categorical(values, levels, include_missing)


def signif_pad(
    x: float,
    digits: int = 3,
    round_integers: bool = False,
    na_string: str = NA_STRING,
) -> str:
    """
    Round to significant digits and keep trailing zeros.

    ``signif_pad(12.3, 4)`` gives ``"12.30"`` and ``signif_pad(0.0012345, 3)``
    gives ``"0.00123"``. Halves are rounded up. Unless ``round_integers`` is
    set, digits to the left of the decimal point are never rounded away, so
    ``signif_pad(12345.6, 3)`` gives ``"12346"`` rather than ``"12300"``.
    """
    if x is None or pd.isna(x):
        return na_string
    x = float(x)
    if not np.isfinite(x):
        return str(x)
    if x == 0:
        return f"{0:.{max(digits - 1, 0)}f}"

    d = Decimal(repr(x))
    exponent = d.adjusted()

    def _quantize(decimals):
        if not round_integers:
            decimals = max(decimals, 0)
        return decimals, _quantize_half_up(d, decimals)

    decimals, q = _quantize(digits - 1 - exponent)
    # 9.996 -> 10.00 gains a digit; drop one decimal to keep the digit count
    if q != 0 and q.adjusted() > exponent:
        decimals, q = _quantize(decimals - 1)
    return f"{q:.{max(decimals, 0)}f}"


def _quantize_half_up(d: Decimal, decimals: int) -> Decimal:
    # The default context holds 28 digits, too few for very large values
    prec = max(d.adjusted() + 1, 1) + max(decimals, 0) + 2
    return d.quantize(
        Decimal(1).scaleb(-decimals),
        rounding=ROUND_HALF_UP,
        context=Context(prec=max(prec, getcontext().prec)),
    )


def round_pad(x: float, digits: int = 1, na_string: str = NA_STRING) -> str:
    """Round to a fixed number of decimal places (halves up) and keep trailing zeros."""
    if x is None or pd.isna(x):
        return na_string
    x = float(x)
    if not np.isfinite(x):
        return str(x)
    q = _quantize_half_up(Decimal(repr(x)), digits)
    return f"{q:.{digits}f}"


def _format_count(x, na_string: str = NA_STRING) -> str:
    if x is None or pd.isna(x):
        return na_string
    return f"{int(x):d}"


def _format_raw(x, na_string: str = NA_STRING) -> str:
    if x is None or pd.isna(x):
        return na_string
    return np.format_float_positional(float(x), trim="-")


def apply_rounding(
    stats: Mapping,
    digits: int = 3,
    digits_pct: int = 1,
    round_median_min_max: bool = True,
    round_integers: bool = False,
    na_string: str = NA_STRING,
) -> dict:
    """
    Format a raw statistics mapping as strings.

    Works on both shapes returned by ``compute_stats``: a flat mapping of
    statistics (continuous) or a mapping level -> statistics (categorical).
    For the categorical shape every level additionally receives ``T1`` and
    ``T2``, the ``"FREQ (PCT%)"`` summary of the first and second level.
    """
    opts = dict(
        digits=digits,
        digits_pct=digits_pct,
        round_median_min_max=round_median_min_max,
        round_integers=round_integers,
        na_string=na_string,
    )
    if stats and all(isinstance(v, Mapping) for v in stats.values()):
        res = {level: apply_rounding(s, **opts) for level, s in stats.items()}
        # Shortcuts refer to the first two declared levels, never to the missing row
        firsts = [
            res[level] for level, s in stats.items() if not isinstance(s, MissingLevelStats)
        ][:2]
        shortcuts = {
            f"T{i + 1}": f"{s['FREQ']} ({s['PCT']}%)" for i, s in enumerate(firsts)
        }
        for s in res.values():
            s.update(shortcuts)
        return res

    res = {}
    for key, value in stats.items():
        if key in COUNT_STATS:
            res[key] = _format_count(value, na_string)
        elif key in PCT_STATS:
            res[key] = round_pad(value, digits_pct, na_string)
        elif key in ORDER_STATS and not round_median_min_max:
            res[key] = _format_raw(value, na_string)
        elif isinstance(value, str):
            res[key] = value
        else:
            res[key] = signif_pad(value, digits, round_integers, na_string)
    return res
