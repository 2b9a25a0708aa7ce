import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Optional, Union

import pandas as pd

from .errors import ConfigurationError
from .model import Span
from .stats import as_categorical

logger = logging.getLogger(__name__)

OVERALL_POSITIONS = ("left", "right")


@dataclass(eq=False)
class Stratum:
    """
    A named subset of the data that becomes one table column.

    Attributes
    ----------
    name : str or tuple
        Key of the stratum, unique within a ``Strata`` collection. Nested strata
        use the pair ``(outer level, inner level)``. Extra-column
        functions receive their data keyed by this name.
    label : str
        Display label (may contain HTML).
    data : pd.DataFrame
        The records of the stratum. Subsets taken from the input data are
        views for the duration of one build and must not be modified.
    group : str, optional
        Label of the parent group for nested stratification.
    kind : str
        ``"stratum"`` for leaf strata, ``"overall"`` for the overall column.
    """

    name: Union[str, tuple]
    label: str
    data: pd.DataFrame
    group: Optional[str] = None
    kind: str = "stratum"

    @property
    def n(self) -> int:
        return len(self.data)

    def __repr__(self):
        return f"Stratum(name={self.name!r}, n={self.n}, group={self.group!r}, kind={self.kind!r})"


@dataclass(eq=False)
class Strata:
    """Ordered strata and, for nested stratification, their group spans."""

    strata: list[Stratum]
    spans: Optional[list[Span]] = None
    by: list[str] = field(default_factory=list)

    def __post_init__(self):
        names = [s.name for s in self.strata]
        if len(set(names)) != len(names):
            raise ConfigurationError(f"Stratum names must be unique, got {names}.")
        if self.spans is not None:
            width = sum(s.width for s in self.spans)
            if width != len(self.strata):
                raise ConfigurationError(
                    f"Group spans cover {width} columns but there are {len(self.strata)} strata."
                )

    def __iter__(self):
        return iter(self.strata)

    def __len__(self):
        return len(self.strata)

    @property
    def leaves(self) -> list[Stratum]:
        """The strata that partition the data (i.e. without the overall stratum)."""
        return [s for s in self.strata if s.kind != "overall"]

    @property
    def nested(self) -> bool:
        return self.spans is not None

    def values(self, variable: str, leaves_only: bool = False) -> dict:
        """Mapping stratum name -> values of ``variable`` within the stratum."""
        strata = self.leaves if leaves_only else self.strata
        return {s.name: s.data[variable] for s in strata}


def _levels(data: pd.DataFrame, var: str) -> tuple[pd.Series, list]:
    x = as_categorical(data[var])
    return x, list(x.cat.categories)


def _normalize_spans(groupspan, n_strata: int, strata: list[Stratum]) -> list[Span]:
    spans = []
    for item in groupspan:
        if isinstance(item, Span):
            spans.append(item)
        elif isinstance(item, (int,)) and not isinstance(item, bool):
            spans.append(Span("", int(item)))
        elif isinstance(item, Sequence) and len(item) == 2:
            spans.append(Span(str(item[0]), int(item[1])))
        else:
            raise ConfigurationError(f"Invalid group span: {item!r}")
    if any(s.width < 1 for s in spans):
        raise ConfigurationError("Group span widths must be positive.")
    if sum(s.width for s in spans) != n_strata:
        raise ConfigurationError(
            f"Group spans cover {sum(s.width for s in spans)} strata but {n_strata} were given."
        )
    # Spans given as plain widths take their labels from the stratum groups
    pos = 0
    labelled = []
    for span in spans:
        if span.label == "" and strata[pos].group:
            span = Span(strata[pos].group, span.width, span.spanning)
        for s in strata[pos : pos + span.width]:
            s.group = span.label
        labelled.append(span)
        pos += span.width
    return labelled


def build_strata(
    data: pd.DataFrame,
    by: Union[None, str, Sequence[str]] = None,
    *,
    overall: Union[None, bool, str] = "Overall",
    overall_position: str = "right",
    strata: Optional[Mapping[str, pd.DataFrame]] = None,
    groupspan: Optional[Sequence] = None,
) -> Strata:
    """
    Partition the data into the strata that form the table columns.

    Parameters
    ----------
    data : pd.DataFrame
        The dataset.
    by : str or list of str, optional
        Zero, one or two grouping variables. With two, the first is the outer
        and the second the inner variable: each outer level spans one column
        per inner level.
    overall : str or bool, optional
        Label of the overall stratum containing all records. ``True`` uses
        ``"Overall"``, ``False``/``None`` omits it. Without grouping variables
        the overall stratum is always present.
    overall_position : str, optional
        ``"left"`` or ``"right"`` (default).
    strata : mapping, optional
        Explicit ordered mapping of stratum label -> DataFrame. Bypasses ``by``.
    groupspan : sequence, optional
        Group spans for explicit strata, as widths or ``(label, width)`` pairs.

    Returns
    -------
    Strata
        Leaf strata in level order (empty levels included), with the overall
        stratum at the requested edge.
    """
    assert isinstance(data, pd.DataFrame), "data must be a pandas DataFrame."
    if overall_position not in OVERALL_POSITIONS:
        raise ConfigurationError(
            f"overall_position must be one of {OVERALL_POSITIONS}, got {overall_position!r}."
        )
    if overall is True:
        overall = "Overall"

    if strata is not None:
        if by:
            raise ConfigurationError("Specify either grouping variables or explicit strata, not both.")
        leaves = [
            Stratum(name=str(name), label=str(name), data=df)
            for name, df in strata.items()
        ]
        spans = None
        if groupspan is not None:
            spans = _normalize_spans(groupspan, len(leaves), leaves)
        full = pd.concat([s.data for s in leaves]) if leaves else data
        by = []
    else:
        if groupspan is not None:
            raise ConfigurationError("groupspan can only be used together with explicit strata.")
        if by is None:
            by = []
        elif isinstance(by, str):
            by = [by]
        by = list(by)
        if len(by) > 2:
            raise ConfigurationError(
                f"At most two grouping variables are supported, got {len(by)}: {by}."
            )
        missing = [v for v in by if v not in data.columns]
        if missing:
            raise ConfigurationError(f"Grouping variables not found in data: {missing}.")
        leaves, spans = _split(data, by)
        full = data

    if not leaves and not overall:
        overall = "Overall"

    res = list(leaves)
    if overall:
        total = Stratum(name=str(overall), label=str(overall), data=full, kind="overall")
        if overall_position == "left":
            res.insert(0, total)
        else:
            res.append(total)
        if spans is not None:
            pad = Span("", 1, spanning=False)
            spans = [pad, *spans] if overall_position == "left" else [*spans, pad]

    logger.debug(
        "Built %d strata (%d leaves) from grouping %s", len(res), len(leaves), by
    )
    return Strata(strata=res, spans=spans, by=by)


def _split(data: pd.DataFrame, by: list[str]) -> tuple[list[Stratum], Optional[list[Span]]]:
    if not by:
        return [], None

    outer, outer_levels = _levels(data, by[0])
    dropped = int(outer.isna().sum())

    if len(by) == 1:
        leaves = [
            Stratum(name=str(level), label=str(level), data=data[outer == level])
            for level in outer_levels
        ]
        spans = None
    else:
        inner, inner_levels = _levels(data, by[1])
        dropped = int((outer.isna() | inner.isna()).sum())
        leaves = []
        spans = []
        for o in outer_levels:
            for i in inner_levels:
                leaves.append(
                    Stratum(
                        name=(str(o), str(i)),
                        label=str(i),
                        data=data[(outer == o) & (inner == i)],
                        group=str(o),
                    )
                )
            spans.append(Span(str(o), len(inner_levels)))

    if dropped:
        logger.warning(
            "%d records with missing values in %s are not part of any stratum", dropped, by
        )
    return leaves, spans
