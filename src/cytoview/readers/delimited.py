"""
Delimited-text reader for cytoview.

Reads exported event tables (one header row of channel names, one row per
event) with pandas.
"""

import logging
from pathlib import Path
from typing import Union

import pandas as pd

from ..core.exceptions import FormatError
from .base import BaseReader, RawRecord

logger = logging.getLogger(__name__)


class CSVReader(BaseReader):
    """Reader for CSV/TSV event exports.

    Ranges are computed from the data since text exports carry no $PnR.

    Args:
        sep: Field separator passed to pandas.read_csv
    """

    def __init__(self, sep: str = ','):
        """Initialize CSVReader."""
        self._sep = sep

    def read(self, source: Union[str, Path]) -> RawRecord:
        """Read a delimited event table.

        Raises:
            FileNotFoundError: If the file does not exist
            FormatError: If the file is empty, unparsable or non-numeric
        """
        path = Path(source)
        if not path.exists():
            raise FileNotFoundError(f"Event table not found: {path}")

        try:
            df = pd.read_csv(path, sep=self._sep)
        except (pd.errors.EmptyDataError, pd.errors.ParserError, UnicodeDecodeError) as e:
            raise FormatError(f"Cannot parse event table {path}: {e}") from e

        if df.shape[1] == 0:
            raise FormatError(f"Event table {path} has no columns")

        non_numeric = [c for c in df.columns if not pd.api.types.is_numeric_dtype(df[c])]
        if non_numeric:
            raise FormatError(f"Non-numeric columns in {path}: {non_numeric}")

        logger.debug(f"Read {df.shape} events from {path}")
        return RawRecord(
            values=df.to_numpy(dtype='float64'),
            channels=[str(c) for c in df.columns],
            header={'FIL': path.name, 'TOT': str(len(df)), 'PAR': str(df.shape[1])}
        )
