"""
In-memory record reader for cytoview.

Builds a RawRecord from a plain mapping, the shape used when tables are
constructed in code or received from another library.
"""

from typing import Any, Mapping

import numpy as np

from ..core.exceptions import FormatError
from .base import BaseReader, RawRecord, canonical_keyword


class RecordReader(BaseReader):
    """Reader for mappings of the form

        {'values': 2-D array-like,
         'channels': [...],
         'markers': [...],      # optional
         'ranges': [...],       # optional
         'header': {...}}       # optional
    """

    def read(self, source: Mapping[str, Any]) -> RawRecord:
        """Validate and convert a mapping.

        Raises:
            FormatError: On missing keys, non-numeric or non-2-D values, or
                channel/marker/range counts that do not match the columns
        """
        missing = [k for k in ('values', 'channels') if k not in source]
        if missing:
            raise FormatError(f"Record is missing required keys: {missing}")

        try:
            values = np.asarray(source['values'], dtype='float64')
        except (TypeError, ValueError) as e:
            raise FormatError(f"Record values are not numeric: {e}") from e
        if values.ndim != 2:
            raise FormatError(f"Record values must be 2-D, got {values.ndim}-D")

        n_cols = values.shape[1]
        channels = [str(c) for c in source['channels']]
        markers = list(source.get('markers') or [None] * n_cols)
        ranges = list(source.get('ranges') or [None] * n_cols)
        for label, items in (('channels', channels), ('markers', markers), ('ranges', ranges)):
            if len(items) != n_cols:
                raise FormatError(
                    f"Record has {len(items)} {label} for {n_cols} value columns"
                )

        header = {canonical_keyword(k): v for k, v in (source.get('header') or {}).items()}
        return RawRecord(values=values, channels=channels, markers=markers,
                         ranges=ranges, header=header)
