"""
DataModel - Parent class for data-holding objects

Base class for AliasedTable that provides the common shape and
representation helpers for an (events x channels) matrix.
"""

from abc import ABC, abstractmethod
from typing import List, Tuple


class DataModel(ABC):
    """Base class for objects exposing an (events x channels) matrix.

    Subclasses provide the shape and the channel names of what they expose;
    this class derives the convenience accessors from them.

    Design Note: Uses "event" (row) and "channel" (column) terminology from
    flow cytometry rather than generic row/column naming.
    """

    @property
    @abstractmethod
    def shape(self) -> Tuple[int, int]:
        """Return (n_events, n_channels) of the visible matrix."""

    @property
    @abstractmethod
    def channels(self) -> List[str]:
        """Return the visible channel names in column order."""

    @property
    def n_events(self) -> int:
        """Return the number of visible events (rows)."""
        return self.shape[0]

    @property
    def n_channels(self) -> int:
        """Return the number of visible channels (columns)."""
        return self.shape[1]

    def __len__(self) -> int:
        """Return the number of events."""
        return self.n_events

    def __repr__(self) -> str:
        """Return string representation."""
        return (
            f"{self.__class__.__name__}"
            f"(events={self.n_events}, "
            f"channels={self.channels})"
        )
