from .abbrev import AbbrevRender, compile_abbrev, parse_abbrev, substitute
from .builder import TableBuilder
from .errors import ConfigurationError
from .extra import format_pvalue, pvalue
from .metadata import (
    ColumnMetadata,
    VariableSpec,
    apply_metadata,
    get_var_labels,
    read_data,
    set_var_labels,
)
from .model import Header, Span, TableModel
from .mtable import MTable
from .render import RenderDispatcher
from .stats import apply_rounding, compute_stats, round_pad, signif_pad
from .strata import Strata, Stratum, build_strata
from .table1 import Table1, table1
from .transform import transpose

__all__ = [
    "AbbrevRender",
    "ColumnMetadata",
    "ConfigurationError",
    "Header",
    "MTable",
    "RenderDispatcher",
    "Span",
    "Strata",
    "Stratum",
    "Table1",
    "TableBuilder",
    "TableModel",
    "VariableSpec",
    "apply_metadata",
    "apply_rounding",
    "build_strata",
    "compile_abbrev",
    "compute_stats",
    "format_pvalue",
    "get_var_labels",
    "parse_abbrev",
    "pvalue",
    "read_data",
    "round_pad",
    "set_var_labels",
    "signif_pad",
    "substitute",
    "table1",
    "transpose",
]
