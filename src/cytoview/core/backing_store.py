"""
BackingStore - Shared event matrix with attached channel metadata

A BackingStore owns the numeric buffer that AliasedTable views index into,
together with the per-channel descriptors and the header keywords. Every
view referencing the same store observes writes, marker changes and
keyword replacement made through any other view.
"""

import logging
import weakref
from typing import Any, Dict, List, Optional

import numpy as np

from .types import ColumnDescriptor, canonical_keyword

logger = logging.getLogger(__name__)


class BackingStore:
    """Shared (events x channels) buffer plus channel and header metadata.

    Ownership is collective: the store stays alive as long as any
    AliasedTable references it and is released by the garbage collector
    once the last one goes away.

    Attributes:
        data: 2-D numpy array (events x channels)
        descriptors: One ColumnDescriptor per store column
        header: Keyword -> value mapping loaded with the data
    """

    def __init__(
        self,
        data: np.ndarray,
        descriptors: List[ColumnDescriptor],
        header: Optional[Dict[str, Any]] = None,
        dtype: str = 'float64'
    ):
        """Initialize BackingStore.

        Args:
            data: 2-D array-like of event values; always copied into a fresh buffer
            descriptors: Column descriptors in matrix column order
            header: Header keywords (copied, keys in canonical form)
            dtype: numpy dtype of the buffer

        Raises:
            ValueError: If data is not 2-D, descriptor count does not match
                the column count, or channel names are not unique
        """
        array = np.array(data, dtype=dtype, copy=True)
        if array.ndim != 2:
            raise ValueError(f"Event data must be 2-D, got {array.ndim}-D")
        if len(descriptors) != array.shape[1]:
            raise ValueError(
                f"Got {len(descriptors)} column descriptors for "
                f"{array.shape[1]} data columns"
            )
        names = [d.channel_name for d in descriptors]
        if len(set(names)) != len(names):
            raise ValueError(f"Channel names must be unique, got {names}")

        self.data = array
        self.descriptors = list(descriptors)
        self.header: Dict[str, Any] = (
            {canonical_keyword(k): v for k, v in header.items()} if header else {}
        )
        self._views = weakref.WeakSet()

    @property
    def shape(self):
        """Return the full (events, channels) shape of the buffer."""
        return self.data.shape

    @property
    def n_views(self) -> int:
        """Return the number of live tables referencing this store."""
        return len(self._views)

    def register_view(self, view) -> None:
        """Track a table that references this store."""
        self._views.add(view)

    def channel_index(self, channel_name: str) -> int:
        """Return the store column index of a channel.

        Raises:
            KeyError: If the channel is not present in the store
        """
        for i, descriptor in enumerate(self.descriptors):
            if descriptor.channel_name == channel_name:
                return i
        raise KeyError(f"Channel '{channel_name}' not found")

    def clone(self, rows: np.ndarray, cols: np.ndarray) -> 'BackingStore':
        """Allocate a new store holding only the given rows and columns.

        Args:
            rows: Store row indices to keep
            cols: Store column indices to keep, in output order

        Returns:
            Independent BackingStore sharing nothing with this one
        """
        data = self.data[np.ix_(rows, cols)]
        descriptors = [self.descriptors[c].clone() for c in cols]
        logger.debug(
            f"Cloned store {data.shape} from {self.data.shape}"
        )
        return BackingStore(data, descriptors, header=dict(self.header),
                            dtype=self.data.dtype)

    def __repr__(self) -> str:
        """Return string representation."""
        return (
            f"BackingStore("
            f"shape={self.data.shape}, "
            f"views={self.n_views})"
        )
