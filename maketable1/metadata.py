"""
Variable labels, units and categorical level definitions.

Metadata is kept in an explicit ``ColumnMetadata`` object that travels next to
the data. For compatibility with other tools, labels and units can also be
read from and written to ``DataFrame.attrs`` (``"variable_labels"`` and
``"variable_units"``).
"""

from __future__ import annotations

import html
import logging
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from os import PathLike
from typing import Any, Optional, Union

import pandas as pd
import yaml

from .errors import ConfigurationError
from .stats import category_levels, is_continuous

logger = logging.getLogger(__name__)

LABELS_ATTR = "variable_labels"
UNITS_ATTR = "variable_units"


@dataclass
class ColumnMetadata:
    """
    Labels, units and categorical level maps for the columns of a dataset.

    Attributes
    ----------
    labels : dict
        Column name -> display label.
    units : dict
        Column name -> unit string.
    categoricals : dict
        Column name -> ordered mapping of raw value -> level label. The order
        of the mapping is the level order. A plain list of values only fixes
        the order and keeps the values as labels.
    """

    labels: dict[str, str] = field(default_factory=dict)
    units: dict[str, str] = field(default_factory=dict)
    categoricals: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Optional[Mapping]) -> ColumnMetadata:
        """Create metadata from a mapping with optional keys labels, units and categoricals."""
        data = data or {}
        return cls(
            labels={str(k): str(v) for k, v in (data.get("labels") or {}).items()},
            units={str(k): str(v) for k, v in (data.get("units") or {}).items()},
            categoricals=dict(data.get("categoricals") or {}),
        )

    @classmethod
    def from_yaml(cls, path: Union[str, PathLike[str]]) -> ColumnMetadata:
        """Read metadata from a YAML file."""
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, Mapping):
            raise ConfigurationError(f"Metadata file {path} must contain a mapping.")
        logger.info("Loaded column metadata from %s", path)
        return cls.from_dict(data)

    @classmethod
    def from_frame(cls, df: pd.DataFrame) -> ColumnMetadata:
        """Collect labels and units stored in ``df.attrs``."""
        return cls(
            labels=dict(df.attrs.get(LABELS_ATTR) or {}),
            units=dict(df.attrs.get(UNITS_ATTR) or {}),
        )

    def merge(self, other: Optional[ColumnMetadata]) -> ColumnMetadata:
        """Return new metadata where entries of ``other`` take precedence."""
        if other is None:
            return ColumnMetadata(dict(self.labels), dict(self.units), dict(self.categoricals))
        return ColumnMetadata(
            labels={**self.labels, **other.labels},
            units={**self.units, **other.units},
            categoricals={**self.categoricals, **other.categoricals},
        )

    def label(self, name: str) -> str:
        return self.labels.get(name, name)

    def unit(self, name: str) -> Optional[str]:
        return self.units.get(name)

    def level_map(self, name: str) -> Optional[dict]:
        """Ordered mapping raw value -> level label for ``name``, if declared."""
        spec = self.categoricals.get(name)
        if spec is None:
            return None
        if isinstance(spec, Mapping):
            return {k: ("" if v is None else str(v)) or str(k) for k, v in spec.items()}
        return {v: str(v) for v in spec}


@dataclass(frozen=True)
class VariableSpec:
    """A variable of the table together with everything needed to display it."""

    name: str
    kind: str
    label: str
    units: Optional[str] = None
    levels: Optional[tuple] = None

    @property
    def display_label(self) -> str:
        if self.units:
            return f"{self.label} ({self.units})"
        return self.label


def infer_kind(x: pd.Series) -> str:
    """``"continuous"`` for numeric columns, ``"categorical"`` otherwise."""
    return "continuous" if is_continuous(x) else "categorical"


def variable_spec(
    data: pd.DataFrame, name: str, metadata: Optional[ColumnMetadata] = None
) -> VariableSpec:
    """Derive the ``VariableSpec`` for column ``name`` of ``data``."""
    if name not in data.columns:
        raise ConfigurationError(f"Variable '{name}' not found in data.")
    metadata = ColumnMetadata.from_frame(data).merge(metadata)
    x = data[name]
    kind = infer_kind(x)
    levels = tuple(category_levels(x)) if kind == "categorical" else None
    return VariableSpec(
        name=name,
        kind=kind,
        label=metadata.label(name),
        units=metadata.unit(name),
        levels=levels,
    )


def apply_metadata(
    df: pd.DataFrame,
    metadata: Union[None, Mapping, ColumnMetadata],
    escape_html: bool = True,
) -> tuple[pd.DataFrame, ColumnMetadata]:
    """
    Convert declared categorical columns and attach labels and units.

    Columns listed under ``categoricals`` become ordered ``pandas.Categorical``
    columns whose categories are the level labels. Labels, units and level
    labels are HTML escaped when ``escape_html`` is set. The labels and units
    are also stored in ``df.attrs``.

    Returns
    -------
    (df, metadata) : (pandas.DataFrame, ColumnMetadata)
        A copy of the data and the (escaped) metadata.
    """
    if not isinstance(metadata, ColumnMetadata):
        metadata = ColumnMetadata.from_dict(metadata)
    esc = html.escape if escape_html else (lambda s: s)

    df = df.copy()
    unknown = (
        set(metadata.labels) | set(metadata.units) | set(metadata.categoricals)
    ) - set(df.columns)
    if unknown:
        logger.warning("Metadata refers to columns not in the data: %s", sorted(unknown))

    for var in metadata.categoricals:
        if var not in df.columns:
            continue
        level_map = metadata.level_map(var)
        labels = [esc(v) for v in level_map.values()]
        codes = _match_levels(df[var], list(level_map))
        df[var] = pd.Categorical.from_codes(codes, categories=labels, ordered=True)

    labels = {k: esc(v) for k, v in metadata.labels.items() if k in df.columns}
    units = {k: esc(v) for k, v in metadata.units.items() if k in df.columns}
    df.attrs[LABELS_ATTR] = {**df.attrs.get(LABELS_ATTR, {}), **labels}
    df.attrs[UNITS_ATTR] = {**df.attrs.get(UNITS_ATTR, {}), **units}
    return df, ColumnMetadata(labels=labels, units=units)


def _match_levels(x: pd.Series, values: Sequence) -> list[int]:
    # Raw values read from CSV or YAML may differ in type (1 vs "1")
    lookup = {}
    for i, v in enumerate(values):
        lookup.setdefault(v, i)
        lookup.setdefault(str(v), i)
    codes = []
    for v in x:
        if pd.isna(v):
            codes.append(-1)
            continue
        key = v if v in lookup else str(v)
        if key not in lookup and isinstance(v, float) and v.is_integer():
            key = str(int(v))
        codes.append(lookup.get(key, -1))
    return codes


def read_data(
    data: Union[str, PathLike[str], pd.DataFrame],
    metadata: Union[None, str, PathLike[str], Mapping, ColumnMetadata] = None,
    read_fun: Callable[..., pd.DataFrame] = pd.read_csv,
    escape_html: bool = True,
    **kwargs,
) -> tuple[pd.DataFrame, ColumnMetadata]:
    """
    Read a dataset and apply its metadata.

    Parameters
    ----------
    data : str, PathLike or pd.DataFrame
        A DataFrame or a file name that is read with ``read_fun``.
    metadata : str, PathLike, mapping or ColumnMetadata, optional
        Metadata or the name of a YAML file holding it.
    read_fun : callable, optional
        Reader for file names. Default ``pandas.read_csv``.
    escape_html : bool, optional
        Escape labels, units and level labels for HTML output. Default True.
    **kwargs :
        Passed on to ``read_fun``.
    """
    if isinstance(data, (str, PathLike)):
        data = read_fun(data, **kwargs)
    if not isinstance(data, pd.DataFrame):
        raise ConfigurationError("Unexpected data; should be a pandas DataFrame.")
    if isinstance(metadata, (str, PathLike)):
        metadata = ColumnMetadata.from_yaml(metadata)
    if metadata is None:
        return data, ColumnMetadata.from_frame(data)
    return apply_metadata(data, metadata, escape_html=escape_html)


def get_var_labels(df: pd.DataFrame) -> dict[str, str]:
    """Return the variable labels stored in ``df.attrs``, with column names as fallback."""
    labels = dict(df.attrs.get(LABELS_ATTR) or {})
    return {c: labels.get(c, c) for c in df.columns}


def set_var_labels(
    df: pd.DataFrame, labels: Mapping[str, str], units: Optional[Mapping[str, str]] = None
) -> pd.DataFrame:
    """Store variable labels (and units) in ``df.attrs``; unknown columns are ignored."""
    df.attrs[LABELS_ATTR] = {
        **df.attrs.get(LABELS_ATTR, {}),
        **{k: str(v) for k, v in labels.items() if k in df.columns},
    }
    if units:
        df.attrs[UNITS_ATTR] = {
            **df.attrs.get(UNITS_ATTR, {}),
            **{k: str(v) for k, v in units.items() if k in df.columns},
        }
    return df
