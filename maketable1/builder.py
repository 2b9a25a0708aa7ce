import logging
from collections.abc import Callable, Mapping, Sequence
from typing import Any, Optional

import pandas as pd

from .errors import ConfigurationError
from .metadata import ColumnMetadata, VariableSpec, variable_spec
from .model import Header, Span, TableModel
from .render import RenderDispatcher, Rows, normalize_rows
from .strata import Strata

logger = logging.getLogger(__name__)


class TableBuilder:
    """
    Assemble rendered statistics into a ``TableModel``.

    Parameters
    ----------
    dispatcher : RenderDispatcher, optional
        Decides how each variable is rendered. Default ``RenderDispatcher()``.
    extra_col : dict, optional
        Mapping column label -> function. Each function is called once per
        variable as ``fn(x, name, **context)`` where ``x`` maps the names of the
        leaf strata to the values of the variable, and returns either a single
        value (shown on the variable's label row) or one value per row of the
        variable.
    metadata : ColumnMetadata, optional
        Labels and units. Labels stored in ``data.attrs`` are used as fallback.
    strat_template : str or None, optional
        Template for stratum headers with fields ``label`` and ``n``. ``None``
        shows the bare label. Default ``DEFAULT_STRAT_TEMPLATE``.
    variable_groups : sequence of (label, variables) pairs, optional
        Groups of variables shown under a common row-group label. Together they
        must contain each table variable exactly once; the group order
        determines the row order.
    caption, footnote, topclass : str, optional
        Passed through to the ``TableModel``.
    """

    DEFAULT_STRAT_TEMPLATE = "{label}\n(N={n})"

    def __init__(
        self,
        dispatcher: Optional[RenderDispatcher] = None,
        extra_col: Optional[Mapping[str, Callable[..., Any]]] = None,
        metadata: Optional[ColumnMetadata] = None,
        strat_template: Optional[str] = DEFAULT_STRAT_TEMPLATE,
        variable_groups: Optional[Sequence[tuple[str, Sequence[str]]]] = None,
        caption: Optional[str] = None,
        footnote: Optional[str] = None,
        topclass: Optional[str] = None,
    ):
        self.dispatcher = dispatcher or RenderDispatcher()
        self.extra_col = dict(extra_col or {})
        self.metadata = metadata
        self.strat_template = strat_template
        self.variable_groups = (
            None
            if variable_groups is None
            else [(str(label), list(vars_)) for label, vars_ in _pairs(variable_groups)]
        )
        self.caption = caption
        self.footnote = footnote
        self.topclass = topclass

        bad = [k for k, f in self.extra_col.items() if not callable(f)]
        if bad:
            raise ConfigurationError(f"Extra columns must be functions: {bad}.")

    def _check(self, data: pd.DataFrame, variables: Sequence[str], strata: Strata) -> list[str]:
        assert isinstance(data, pd.DataFrame), "data must be a pandas DataFrame."
        variables = list(variables)
        if self.variable_groups is not None:
            grouped = [v for _, vars_ in self.variable_groups for v in vars_]
            if not variables:
                variables = grouped
            if sorted(grouped) != sorted(variables) or len(set(grouped)) != len(grouped):
                raise ConfigurationError(
                    "Variable groups must contain each table variable exactly once."
                )
            variables = grouped
        if not variables:
            raise ConfigurationError("No variables given.")
        if len(set(variables)) != len(variables):
            raise ConfigurationError(f"Duplicated variables: {variables}.")
        missing = [v for v in variables if v not in data.columns]
        for s in strata:
            missing.extend(
                v for v in variables if v not in s.data.columns and v not in missing
            )
        if missing:
            raise ConfigurationError(f"Variables not found in data: {missing}.")
        return variables

    def _header(self, label: str, n: int) -> str:
        if self.strat_template is None:
            return label
        return self.strat_template.format(label=label, n=n)

    def _render_variable(self, spec: VariableSpec, data: pd.DataFrame, strata: Strata) -> list[Rows]:
        missing = bool(data[spec.name].isna().any())
        blocks = []
        for s in strata:
            try:
                rows = self.dispatcher.render(
                    s.data[spec.name],
                    spec.name,
                    spec.kind,
                    levels=spec.levels,
                    missing=missing,
                )
            except ConfigurationError as e:
                raise ConfigurationError(f"Cannot render '{spec.name}': {e}") from e
            blocks.append(rows)

        counts = {len(b) for b in blocks}
        if len(counts) > 1:
            detail = ", ".join(f"{s.name}: {len(b)}" for s, b in zip(strata, blocks))
            raise ConfigurationError(
                f"Render function for '{spec.name}' returned a different number of "
                f"rows per stratum ({detail})."
            )
        expected = [label for label, _ in blocks[0]]
        differing = [
            s.name for s, b in zip(strata, blocks) if [label for label, _ in b] != expected
        ]
        if differing:
            raise ConfigurationError(
                f"Render function for '{spec.name}' returned row labels {expected} in "
                f"stratum {strata.strata[0].name} but different labels in {differing}."
            )
        return blocks

    def _extra_values(self, label: str, fn, spec: VariableSpec, strata: Strata, nrows: int) -> list[str]:
        res = fn(
            strata.values(spec.name, leaves_only=True),
            spec.name,
            kind=spec.kind,
            levels=spec.levels,
            **self.dispatcher.context,
        )
        if res is None:
            values = [""]
        elif isinstance(res, (Mapping, pd.Series)):
            values = [v for _, v in normalize_rows(res, spec.name)]
        elif isinstance(res, Sequence) and not isinstance(res, str):
            values = ["" if v is None else str(v) for v in res]
        else:
            values = [str(res)]
        if len(values) == 1:
            return values + [""] * (nrows - 1)
        if len(values) != nrows:
            raise ConfigurationError(
                f"Extra column '{label}' returned {len(values)} rows for '{spec.name}', "
                f"which has {nrows} rows."
            )
        return values

    def build(self, data: pd.DataFrame, variables: Sequence[str], strata: Strata) -> TableModel:
        """
        Render every variable in every stratum and assemble the table.

        All configuration problems are detected before rendering starts.
        """
        variables = self._check(data, variables, strata)
        specs = [variable_spec(data, v, self.metadata) for v in variables]

        columns = [
            Header(label=self._header(s.label, s.n), kind=s.kind, n=s.n) for s in strata
        ]
        columns.extend(Header(label=str(label), kind="extra") for label in self.extra_col)
        column_groups = None
        if strata.spans is not None:
            column_groups = list(strata.spans)
            column_groups.extend(Span("", 1, spanning=False) for _ in self.extra_col)

        rows: list[Header] = []
        cells: list[list[str]] = []
        heights = {}
        for spec in specs:
            logger.debug("Rendering %s (%s) over %d strata", spec.name, spec.kind, len(strata))
            blocks = self._render_variable(spec, data, strata)
            stat_labels = [label for label, _ in blocks[0]]

            # A leading unlabeled row is shown beside the variable label
            merged = bool(stat_labels) and stat_labels[0] == ""
            label_cells = [b[0][1] for b in blocks] if merged else [""] * len(blocks)
            var_rows = [Header(label=spec.display_label, kind="variable", variable=spec.name)]
            var_cells = [label_cells]
            for i in range(1 if merged else 0, len(stat_labels)):
                var_rows.append(
                    Header(label=stat_labels[i], kind="statistic", variable=spec.name, indent=True)
                )
                var_cells.append([b[i][1] for b in blocks])

            for label, fn in self.extra_col.items():
                values = self._extra_values(label, fn, spec, strata, len(var_rows))
                for row, value in zip(var_cells, values):
                    row.append(value)

            heights[spec.name] = len(var_rows)
            rows.extend(var_rows)
            cells.extend(var_cells)

        row_groups = None
        if self.variable_groups is not None:
            row_groups = [
                Span(label, sum(heights[v] for v in vars_))
                for label, vars_ in self.variable_groups
                if vars_
            ]

        table = TableModel(
            columns=columns,
            rows=rows,
            cells=cells,
            column_groups=column_groups,
            row_groups=row_groups,
            caption=self.caption,
            footnote=self.footnote,
            topclass=self.topclass,
        )
        logger.info(
            "Built table with %d variables, %d rows and %d columns",
            len(specs),
            *table.shape,
        )
        return table


def _pairs(groups) -> list:
    if isinstance(groups, Mapping):
        return list(groups.items())
    return list(groups)
