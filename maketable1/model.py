from collections.abc import Sequence
from dataclasses import dataclass, replace
from typing import Optional

import pandas as pd

HEADER_KINDS = ("variable", "statistic", "stratum", "overall", "extra")


@dataclass(frozen=True)
class Header:
    """
    A leaf of either table axis.

    Before transposition rows are ``"variable"`` or ``"statistic"`` headers
    and columns are ``"stratum"``, ``"overall"`` or ``"extra"`` headers; after
    transposition the roles are swapped.
    """

    label: str
    kind: str
    n: Optional[int] = None
    variable: Optional[str] = None
    indent: bool = False


@dataclass(frozen=True)
class Span:
    """
    A header cell spanning ``width`` consecutive leaves.

    Non-spanning cells (``spanning=False``) fill the positions of leaves that
    belong to no group, e.g. the overall column.
    """

    label: str
    width: int
    spanning: bool = True


def expand_spans(spans: Sequence[Span]) -> list[str]:
    """Group label for every leaf covered by ``spans``; empty for non-spanning cells."""
    labels = []
    for span in spans:
        labels.extend([span.label if span.spanning else ""] * span.width)
    return labels


@dataclass
class TableModel:
    """
    The finished table, independent of any output format.

    Attributes
    ----------
    columns : list of Header
        Leaf column headers.
    rows : list of Header
        Row headers.
    cells : list of list of str
        Formatted cell values, ``len(rows)`` lists of ``len(columns)`` strings.
    column_groups : list of Span, optional
        Spanning header cells above the leaf columns.
    row_groups : list of Span, optional
        Spanning row-group labels over the rows.
    caption, footnote : str, optional
        Passed through to the output verbatim.
    topclass : str, optional
        Style hint (CSS class) for the outermost table element.
    transposed : bool
        Whether rows and columns have been swapped.
    """

    columns: list[Header]
    rows: list[Header]
    cells: list[list[str]]
    column_groups: Optional[list[Span]] = None
    row_groups: Optional[list[Span]] = None
    caption: Optional[str] = None
    footnote: Optional[str] = None
    topclass: Optional[str] = None
    transposed: bool = False

    def __post_init__(self):
        if len(self.cells) != len(self.rows):
            raise ValueError(
                f"Table has {len(self.rows)} rows but {len(self.cells)} rows of cells."
            )
        for i, row in enumerate(self.cells):
            if len(row) != len(self.columns):
                raise ValueError(
                    f"Row {i} has {len(row)} cells, expected {len(self.columns)}."
                )
            if not all(isinstance(c, str) for c in row):
                raise ValueError(f"Row {i} contains cells that are not strings.")
        for name, spans, leaves in (
            ("Column", self.column_groups, self.columns),
            ("Row", self.row_groups, self.rows),
        ):
            if spans is not None and sum(s.width for s in spans) != len(leaves):
                raise ValueError(
                    f"{name} groups span {sum(s.width for s in spans)} leaves, "
                    f"expected {len(leaves)}."
                )

    @property
    def shape(self) -> tuple[int, int]:
        return len(self.rows), len(self.columns)

    @property
    def header_levels(self) -> int:
        return 2 if self.column_groups is not None else 1

    def transpose(self) -> "TableModel":
        from .transform import transpose

        return transpose(self)

    def to_frame(self, indent: str = "", newline: str = " ") -> pd.DataFrame:
        """
        Convert to a DataFrame of strings.

        Row labels of indented rows are prefixed with ``indent`` and line breaks
        in row labels are replaced by ``newline``. Groups become the outer level
        of a two-level index.
        """
        row_labels = [
            (indent if h.indent else "") + h.label.replace("\n", newline)
            for h in self.rows
        ]
        col_labels = [h.label for h in self.columns]
        if self.row_groups is not None:
            index = pd.MultiIndex.from_arrays([expand_spans(self.row_groups), row_labels])
        else:
            index = pd.Index(row_labels)
        if self.column_groups is not None:
            columns = pd.MultiIndex.from_arrays(
                [expand_spans(self.column_groups), col_labels]
            )
        else:
            columns = pd.Index(col_labels)
        return pd.DataFrame(self.cells, index=index, columns=columns, dtype=object)

    def with_options(self, **kwargs) -> "TableModel":
        """Copy with caption, footnote or topclass replaced."""
        return replace(self, **kwargs)
