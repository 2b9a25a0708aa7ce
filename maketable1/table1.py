import logging
from collections.abc import Callable, Mapping, Sequence
from os import PathLike
from typing import Any, Optional, Union

import pandas as pd

from .builder import TableBuilder
from .metadata import ColumnMetadata, read_data
from .model import TableModel
from .mtable import MTable
from .render import RenderDispatcher, RenderSpec
from .strata import build_strata

logger = logging.getLogger(__name__)


def table1(
    data: Union[str, PathLike[str], pd.DataFrame],
    variables: Optional[Sequence[str]] = None,
    by: Union[None, str, Sequence[str]] = None,
    *,
    overall: Union[None, bool, str] = "Overall",
    overall_position: str = "right",
    groupspan: Optional[Sequence] = None,
    strata: Optional[Mapping[str, pd.DataFrame]] = None,
    render: Optional[Union[Callable[..., Any], Mapping[str, RenderSpec]]] = None,
    render_continuous: Optional[RenderSpec] = None,
    render_categorical: Optional[RenderSpec] = None,
    render_missing: Optional[str] = None,
    digits: Optional[int] = None,
    digits_pct: Optional[int] = None,
    round_median_min_max: bool = True,
    round_integers: bool = False,
    na_string: str = "NA",
    extra_col: Optional[Mapping[str, Callable[..., Any]]] = None,
    transpose: bool = False,
    topclass: Optional[str] = None,
    caption: Optional[str] = None,
    footnote: Optional[str] = None,
    metadata: Union[None, str, PathLike[str], Mapping, ColumnMetadata] = None,
    variable_groups: Optional[Sequence] = None,
    strat_template: Optional[str] = TableBuilder.DEFAULT_STRAT_TEMPLATE,
) -> TableModel:
    """
    Build a table of descriptive statistics by strata.

    Parameters
    ----------
    data : pd.DataFrame or str
        The dataset, or a file name read with ``pandas.read_csv``.
    variables : list of str, optional
        Variables shown as rows, in order. May be omitted when
        ``variable_groups`` lists them.
    by : str or list of str, optional
        Zero, one or two grouping variables that define the columns.
    overall : str or bool, optional
        Label of the overall column; ``False`` omits it. Default "Overall".
    overall_position : str, optional
        "left" or "right" (default).
    groupspan : sequence, optional
        Column group spans for explicit ``strata``.
    strata : mapping, optional
        Explicit mapping of stratum label -> DataFrame, instead of ``by``.
    render : callable or dict, optional
        Global render function or per-variable render specs.
    render_continuous, render_categorical : render spec, optional
        Render functions or abbreviated codes per variable kind.
    render_missing : str, optional
        Abbreviated code for the missing-value row of continuous variables.
    digits, digits_pct : int, optional
        Significant digits of continuous statistics and decimals of percentages.
    round_median_min_max, round_integers : bool, optional
        Rounding switches, see ``apply_rounding``.
    na_string : str, optional
        Text for undefined statistics. Default "NA".
    extra_col : dict, optional
        Extra columns, label -> function of the values of all strata.
    transpose : bool, optional
        Put the strata in rows and the variables in columns.
    topclass, caption, footnote : str, optional
        Table class hint, caption and footnote.
    metadata : dict, ColumnMetadata or str, optional
        Labels, units and categorical level declarations, or the name of a
        YAML file holding them.
    variable_groups : sequence of (label, variables), optional
        Row groups of variables.
    strat_template : str or None, optional
        Template of the column headers with fields ``label`` and ``n``.

    Returns
    -------
    TableModel
    """
    data, meta = read_data(data, metadata, escape_html=False)
    strata_ = build_strata(
        data,
        by,
        overall=overall,
        overall_position=overall_position,
        strata=strata,
        groupspan=groupspan,
    )
    dispatcher = RenderDispatcher(
        render=render,
        render_continuous=render_continuous,
        render_categorical=render_categorical,
        render_missing=render_missing,
        digits=digits,
        digits_pct=digits_pct,
        round_median_min_max=round_median_min_max,
        round_integers=round_integers,
        na_string=na_string,
    )
    builder = TableBuilder(
        dispatcher=dispatcher,
        extra_col=extra_col,
        metadata=meta,
        strat_template=strat_template,
        variable_groups=variable_groups,
        caption=caption,
        footnote=footnote,
        topclass=topclass,
    )
    table = builder.build(data, variables or [], strata_)
    if transpose:
        table = table.transpose()
    return table


class Table1(MTable):
    """
    Table1 extends MTable with the construction of a descriptive statistics table.

    Parameters
    ----------
    data : pd.DataFrame or str
        The dataset.
    variables : list of str, optional
        Variables shown as rows.
    by : str or list of str, optional
        Grouping variables.
    notes : str, optional
        Table notes; the footnote is used when omitted.
    **kwargs :
        Options of ``table1`` and of ``MTable``.

    Examples
    --------
    >>> Table1(df, ["age", "sex"], by="arm", caption="Baseline").make("tex")
    """

    TABLE1_OPTIONS = (
        "overall",
        "overall_position",
        "groupspan",
        "strata",
        "render",
        "render_continuous",
        "render_categorical",
        "render_missing",
        "digits",
        "digits_pct",
        "round_median_min_max",
        "round_integers",
        "na_string",
        "extra_col",
        "transpose",
        "topclass",
        "caption",
        "footnote",
        "metadata",
        "variable_groups",
        "strat_template",
    )

    def __init__(
        self,
        data: Union[str, PathLike[str], pd.DataFrame],
        variables: Optional[Sequence[str]] = None,
        by: Union[None, str, Sequence[str]] = None,
        notes: Optional[str] = None,
        **kwargs,
    ):
        options = {k: kwargs.pop(k) for k in self.TABLE1_OPTIONS if k in kwargs}
        model = table1(data, variables, by, **options)
        super().__init__(model, notes=notes, **kwargs)
