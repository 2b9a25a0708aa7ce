import logging
import warnings
from dataclasses import replace

from .model import TableModel

logger = logging.getLogger(__name__)


def transpose(table: TableModel) -> TableModel:
    """
    Swap the rows and columns of a table.

    Column headers become row headers and vice versa, column group spans
    become row groups and the cell matrix is transposed. Transposing twice
    gives back the original table.

    The compact transposed layout is meant for tables in which every variable
    is rendered into a single row. Tables with several rows per variable are
    transposed without loss but produce a warning.
    """
    if not table.transposed:
        variables = [h.variable for h in table.rows if h.variable is not None]
        if len(variables) != len(set(variables)):
            warnings.warn(
                "Transposing a table with several rows per variable; every row "
                "becomes a separate column.",
                UserWarning,
                stacklevel=2,
            )

    cells = [list(col) for col in zip(*table.cells)] if table.cells else []
    if not table.cells and table.columns:
        cells = [[] for _ in table.columns]
    logger.debug("Transposing table of shape %s", table.shape)
    return replace(
        table,
        columns=list(table.rows),
        rows=list(table.columns),
        cells=cells,
        column_groups=None if table.row_groups is None else list(table.row_groups),
        row_groups=None if table.column_groups is None else list(table.column_groups),
        transposed=not table.transposed,
    )
