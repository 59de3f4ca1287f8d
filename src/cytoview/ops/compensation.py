"""Spillover parsing and compensation.

The spillover matrix is stored in the header as a single comma-separated
keyword:

    n, channel_1, ..., channel_n, s_11, s_12, ..., s_nn

Compensated values are observed @ inv(S), computed for the spillover
channels of a table and written back in place.
"""

import logging
from typing import Optional

import numpy as np
import pandas as pd

from ..core.aliased_table import AliasedTable
from ..core.exceptions import FormatError, NotFoundError

logger = logging.getLogger(__name__)

# Canonical keyword names, in lookup order
SPILLOVER_KEYWORDS = ('SPILLOVER', 'SPILL', 'COMP')


def parse_spillover(text: str) -> pd.DataFrame:
    """Parse a spillover keyword value into a square DataFrame.

    Args:
        text: Keyword value, e.g. '2,FL1-A,FL2-A,1,0.1,0.05,1'

    Returns:
        DataFrame with channel names as both index and columns

    Raises:
        FormatError: If the text is not a well-formed spillover string
    """
    parts = [p.strip() for p in str(text).split(',')]
    try:
        n = int(parts[0])
    except ValueError as e:
        raise FormatError(f"Spillover must start with the channel count, got '{parts[0]}'") from e

    if n <= 0 or len(parts) != 1 + n + n * n:
        raise FormatError(
            f"Spillover for {n} channels needs {1 + n + n * n} fields, got {len(parts)}"
        )

    channels = parts[1:1 + n]
    try:
        values = np.array([float(v) for v in parts[1 + n:]]).reshape(n, n)
    except ValueError as e:
        raise FormatError(f"Non-numeric spillover coefficient: {e}") from e

    return pd.DataFrame(values, index=channels, columns=channels)


def get_spillover(table: AliasedTable) -> pd.DataFrame:
    """Return the spillover matrix stored in a table's header.

    Raises:
        NotFoundError: If no spillover keyword is present
        FormatError: If the keyword is malformed
    """
    for key in SPILLOVER_KEYWORDS:
        value = table.get_keyword(key)
        if value:
            return parse_spillover(value)
    raise NotFoundError(f"No spillover keyword ({', '.join(SPILLOVER_KEYWORDS)}) in header")


def compensate(table: AliasedTable, spillover: Optional[pd.DataFrame] = None) -> AliasedTable:
    """Compensate a table in place.

    The spillover channels' visible values are replaced by values @ inv(S)
    in the shared store; their instrument ranges are refreshed.

    Args:
        table: Table to compensate
        spillover: Square DataFrame whose columns are channel names
            (default: read from the table's header)

    Returns:
        The same table, for chaining

    Raises:
        KeyError: If a spillover channel is not in the table's view
        ValueError: If the matrix is not square or is singular
    """
    if spillover is None:
        spillover = get_spillover(table)

    matrix = np.asarray(spillover, dtype='float64')
    if matrix.ndim != 2 or matrix.shape[0] != matrix.shape[1]:
        raise ValueError(f"Spillover matrix must be square, got shape {matrix.shape}")

    channels = [str(c) for c in spillover.columns]
    table.resolve_columns(channels)

    try:
        inverse = np.linalg.inv(matrix)
    except np.linalg.LinAlgError as e:
        raise ValueError(f"Spillover matrix is singular: {e}") from e

    table.apply_transform(channels, lambda observed: observed @ inverse, name='compensate')

    logger.debug(f"Compensated {len(channels)} channels on {table.shape} events")
    return table
