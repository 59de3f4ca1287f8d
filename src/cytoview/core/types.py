"""
Type definitions for cytoview.

Column metadata and the selector forms accepted by AliasedTable.subset().
"""

from dataclasses import dataclass, replace
from typing import Optional, Sequence, Tuple, Union

import numpy as np


# Row selectors: None (everything), position, slice, positions or a boolean mask
RowSelector = Union[None, int, slice, Sequence[int], Sequence[bool], np.ndarray]

# Column selectors additionally accept channel names (or marker labels)
ColumnSelector = Union[RowSelector, str, Sequence[str]]


@dataclass
class ColumnDescriptor:
    """Metadata attached to one channel (column) of a table.

    Attributes:
        channel_name: Instrument-assigned channel label, unique within a table
        marker_label: Optional user-assigned biological label (e.g. 'CD4')
        instrument_range: (min, max) pair describing the channel's value range
    """
    channel_name: str
    marker_label: Optional[str] = None
    instrument_range: Tuple[float, float] = (0.0, 0.0)

    def clone(self) -> 'ColumnDescriptor':
        """Return an independent copy of this descriptor."""
        return replace(self, instrument_range=tuple(self.instrument_range))


def canonical_keyword(key: str) -> str:
    """Return the canonical form of a header keyword.

    Keywords are stored upper-case without the leading '$' of standard FCS
    keywords, so '$FIL', 'fil' and 'FIL' all map to 'FIL'.
    """
    return str(key).strip().lstrip('$').upper()
