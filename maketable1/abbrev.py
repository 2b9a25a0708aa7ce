"""
Abbreviated render codes.

An abbreviated code is a template such as ``"Mean (SD)"`` or
``"FREQ (PCT%)"`` in which statistic keywords are replaced by the formatted
value of that statistic. Keywords are matched as whole words and without
regard to case, so ``"Median [Min, Max]"`` works as both label and code.
"""

import re
from collections.abc import Mapping, Sequence

from .errors import ConfigurationError
from .stats import NA_STRING, apply_rounding, compute_stats

KEYWORDS = (
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
    "T1",
    "T2",
    "FREQ",
    "PCT",
)

# Longest keywords first so that NMISS is not read as N followed by MISS
_KEYWORD_RE = re.compile(
    r"\b(" + "|".join(sorted(KEYWORDS, key=len, reverse=True)) + r")\b",
    re.IGNORECASE,
)

SAME_AS_CODE = "."


def substitute(code: str, stats: Mapping) -> str:
    """
    Replace every statistic keyword in ``code`` by its value in ``stats``.

    Keywords that have no value in ``stats`` (e.g. ``MEAN`` for a categorical
    level) are replaced by an empty string.

    >>> substitute("MEAN (SD)", {"MEAN": "12.30", "SD": "4.10"})
    '12.30 (4.10)'
    """
    return _KEYWORD_RE.sub(lambda m: str(stats.get(m.group(1).upper(), "")), code)


def parse_abbrev(codes) -> list[tuple[str, str]]:
    """
    Normalize an abbreviated render specification to ``(label, code)`` pairs.

    Accepted forms are a single code string, a sequence of code strings, a
    mapping label -> code or a sequence of ``(label, code)`` pairs. The label
    ``"."`` stands for the code itself.
    """
    if isinstance(codes, str):
        pairs = [(SAME_AS_CODE, codes)]
    elif isinstance(codes, Mapping):
        pairs = list(codes.items())
    elif isinstance(codes, Sequence):
        pairs = []
        for item in codes:
            if isinstance(item, str):
                pairs.append((SAME_AS_CODE, item))
            elif isinstance(item, Sequence) and len(item) == 2:
                pairs.append((item[0], item[1]))
            else:
                raise ConfigurationError(f"Invalid abbreviated render code: {item!r}")
    else:
        raise ConfigurationError(f"Invalid abbreviated render code: {codes!r}")

    res = []
    for label, code in pairs:
        if not isinstance(label, str) or not isinstance(code, str):
            raise ConfigurationError(
                f"Abbreviated render codes must be strings, got {label!r}: {code!r}"
            )
        res.append((code if label == SAME_AS_CODE else label, code))
    if not res:
        raise ConfigurationError("An abbreviated render specification needs at least one code.")
    return res


class AbbrevRender:
    """
    Render function compiled from abbreviated codes.

    Continuous variables produce one row per code. Categorical variables
    produce one row per level labelled with the level; with several codes the
    rows are labelled ``"level: label"``.

    Parameters
    ----------
    codes : str, sequence or mapping
        Abbreviated codes, see ``parse_abbrev``.
    **rounding :
        Defaults for ``apply_rounding`` (digits, digits_pct, ...). Values passed
        in the render context take precedence.
    """

    ROUNDING_KEYS = (
        "digits",
        "digits_pct",
        "round_median_min_max",
        "round_integers",
        "na_string",
    )

    def __init__(self, codes, **rounding):
        self.codes = parse_abbrev(codes)
        self.rounding = rounding

    def __repr__(self):
        return f"AbbrevRender({self.codes!r})"

    def _rounding(self, context):
        opts = dict(self.rounding)
        opts.update({k: context[k] for k in self.ROUNDING_KEYS if k in context})
        opts.setdefault("na_string", NA_STRING)
        return opts

    def __call__(self, x, name=None, kind="continuous", levels=None, missing=None, **context):
        if kind == "continuous":
            stats = apply_rounding(compute_stats(x, "continuous"), **self._rounding(context))
            return self.render_stats(stats)

        stats = apply_rounding(
            compute_stats(x, "categorical", levels, include_missing=missing),
            **self._rounding(context),
        )
        rows = []
        for level, level_stats in stats.items():
            for label, code in self.codes:
                key = str(level) if len(self.codes) == 1 else f"{level}: {label}"
                rows.append((key, substitute(code, level_stats)))
        return rows

    def render_stats(self, stats: Mapping) -> list[tuple[str, str]]:
        """Apply the codes to an already formatted statistics mapping."""
        return [(label, substitute(code, stats)) for label, code in self.codes]


def compile_abbrev(codes, **rounding) -> AbbrevRender:
    """Compile abbreviated codes into a render function."""
    return AbbrevRender(codes, **rounding)
