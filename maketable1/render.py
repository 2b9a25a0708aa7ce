import logging
from collections.abc import Callable, Mapping, Sequence
from typing import Any, Optional, Union

import pandas as pd

from .abbrev import AbbrevRender, compile_abbrev
from .errors import ConfigurationError
from .stats import MISSING_LABEL, NA_STRING, apply_rounding, summarize_missing

logger = logging.getLogger(__name__)

# A render spec is either a callable with the signature fn(x, name, **context)
# or an abbreviated code specification (see maketable1.abbrev.parse_abbrev).
RenderSpec = Union[Callable[..., Any], str, Sequence, Mapping]
Rows = list[tuple[str, str]]

KINDS = ("continuous", "categorical")


def normalize_rows(rows, name: Optional[str] = None) -> Rows:
    """
    Convert the output of a render function into ``(label, value)`` pairs.

    Render functions may return an ordered mapping label -> value, a sequence
    of ``(label, value)`` pairs or a single string. A single string is an
    unlabeled row and ends up beside the variable label.
    """
    if isinstance(rows, str):
        return [("", rows)]
    if isinstance(rows, pd.Series):
        rows = rows.to_dict()
    if isinstance(rows, Mapping):
        return [(str(k), "" if v is None else str(v)) for k, v in rows.items()]
    if isinstance(rows, Sequence):
        res = []
        for row in rows:
            if isinstance(row, Sequence) and not isinstance(row, str) and len(row) == 2:
                res.append((str(row[0]), "" if row[1] is None else str(row[1])))
            else:
                raise ConfigurationError(
                    f"Render function for '{name}' returned a row that is not a "
                    f"(label, value) pair: {row!r}"
                )
        return res
    raise ConfigurationError(
        f"Render function for '{name}' returned an unsupported type: {type(rows).__name__}"
    )


def as_render_function(spec: RenderSpec) -> Callable[..., Any]:
    """Resolve a render spec (callable or abbreviated codes) into a callable."""
    if isinstance(spec, AbbrevRender) or callable(spec):
        return spec
    return compile_abbrev(spec)


class MissingRowRender:
    """
    Wrap a kind-level render function and append a row for missing values.

    The row is added whenever the variable has missing values anywhere in the
    data, so that all strata produce the same rows.
    """

    def __init__(self, render: Callable[..., Any], missing_render: AbbrevRender):
        self.render = render
        self.missing_render = missing_render

    def __call__(self, x, name=None, kind="continuous", missing=False, **context):
        rows = normalize_rows(self.render(x, name, kind=kind, missing=missing, **context), name)
        if missing and kind == "continuous":
            stats = apply_rounding(
                summarize_missing(x),
                **self.missing_render._rounding(context),
            )
            (_, value), = self.missing_render.render_stats(stats)
            rows.append((MISSING_LABEL, value))
        return rows


class RenderDispatcher:
    """
    Decide which render function applies to a variable.

    Precedence, first match wins:

    1. a spec for this variable in the ``render`` mapping,
    2. a global ``render`` callable (used for both kinds),
    3. ``render_continuous`` / ``render_categorical``,
    4. the defaults (``DEFAULT_RENDER_CONTINUOUS`` and
       ``DEFAULT_RENDER_CATEGORICAL``).

    Kind-level and default renders get an extra ``"Missing"`` row for
    continuous variables with missing values, rendered with ``render_missing``.
    Categorical variables show missing values as a ``"Missing"`` level instead.

    Parameters
    ----------
    render : callable or dict, optional
        Either a render function used for every variable, or a dictionary
        mapping variable names to render specs (callables or abbreviated codes).
    render_continuous, render_categorical : render spec, optional
        Overrides for all continuous/categorical variables.
    render_missing : str, optional
        Abbreviated code for the missing-value row. Default ``"FREQ (PCT%)"``.
    digits : int, optional
        Significant digits for continuous statistics. Default 3.
    digits_pct : int, optional
        Decimal places for percentages. Default 1.
    round_median_min_max : bool, optional
        Whether order statistics are rounded as well. Default True.
    round_integers : bool, optional
        Whether significant-digit rounding may round integer digits. Default False.
    na_string : str, optional
        Text shown for undefined statistics. Default ``"NA"``.
    """

    DEFAULT_RENDER_CONTINUOUS = [(".", "Mean (SD)"), (".", "Median [Min, Max]")]
    DEFAULT_RENDER_CATEGORICAL = "FREQ (PCT%)"
    DEFAULT_RENDER_MISSING = "FREQ (PCT%)"
    DEFAULT_DIGITS = 3
    DEFAULT_DIGITS_PCT = 1

    def __init__(
        self,
        render: Optional[Union[Callable[..., Any], Mapping[str, RenderSpec]]] = None,
        render_continuous: Optional[RenderSpec] = None,
        render_categorical: Optional[RenderSpec] = None,
        render_missing: Optional[str] = None,
        digits: Optional[int] = None,
        digits_pct: Optional[int] = None,
        round_median_min_max: bool = True,
        round_integers: bool = False,
        na_string: str = NA_STRING,
    ):
        self.variable_renders: dict[str, Callable[..., Any]] = {}
        self.global_render = None
        if isinstance(render, Mapping):
            self.variable_renders = {
                str(var): as_render_function(spec) for var, spec in render.items()
            }
        elif render is not None:
            if not callable(render):
                raise ConfigurationError(
                    "render must be a function or a dictionary of per-variable render specs."
                )
            self.global_render = render

        self.kind_renders = {
            "continuous": as_render_function(
                self.DEFAULT_RENDER_CONTINUOUS
                if render_continuous is None
                else render_continuous
            ),
            "categorical": as_render_function(
                self.DEFAULT_RENDER_CATEGORICAL
                if render_categorical is None
                else render_categorical
            ),
        }
        self.missing_render = compile_abbrev(
            self.DEFAULT_RENDER_MISSING if render_missing is None else render_missing
        )
        if len(self.missing_render.codes) != 1:
            raise ConfigurationError("render_missing must be a single abbreviated code.")

        self.context = dict(
            digits=self.DEFAULT_DIGITS if digits is None else digits,
            digits_pct=self.DEFAULT_DIGITS_PCT if digits_pct is None else digits_pct,
            round_median_min_max=round_median_min_max,
            round_integers=round_integers,
            na_string=na_string,
        )

    def resolve(self, name: str, kind: str) -> Callable[..., Any]:
        """Return the render function for variable ``name`` of the given kind."""
        assert kind in KINDS, "kind must be either 'continuous' or 'categorical'."
        if name in self.variable_renders:
            logger.debug("Using per-variable render for %s", name)
            return self.variable_renders[name]
        if self.global_render is not None:
            return self.global_render
        return MissingRowRender(self.kind_renders[kind], self.missing_render)

    def render(
        self,
        x: pd.Series,
        name: str,
        kind: str,
        levels: Optional[Sequence] = None,
        missing: bool = False,
        **context,
    ) -> Rows:
        """Render ``x`` (the values of one variable in one stratum) into rows."""
        fn = self.resolve(name, kind)
        ctx = dict(self.context)
        ctx.update(context)
        return normalize_rows(fn(x, name, kind=kind, levels=levels, missing=missing, **ctx), name)
