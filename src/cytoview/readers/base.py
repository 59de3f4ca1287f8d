"""
Base reader interface for cytoview.

This module defines the abstract base class for all event-data readers and
the RawRecord they return.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

import numpy as np

from ..core.types import canonical_keyword


@dataclass
class RawRecord:
    """Parsed contents of a persisted source, before it becomes a table.

    Attributes:
        values: 2-D array (events x channels)
        channels: Channel names, one per column
        markers: Marker labels (None where absent), one per column
        ranges: (min, max) per column, or None to compute from the data
        header: Header keywords in canonical form
    """
    values: np.ndarray
    channels: List[str]
    markers: List[Optional[str]] = field(default_factory=list)
    ranges: List[Optional[Tuple[float, float]]] = field(default_factory=list)
    header: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        n_channels = len(self.channels)
        if not self.markers:
            self.markers = [None] * n_channels
        if not self.ranges:
            self.ranges = [None] * n_channels


class BaseReader(ABC):
    """Abstract base class for event-data readers.

    All readers (FCSReader, CSVReader, RecordReader, etc.) must implement
    this interface. The `read` method takes a source and returns a RawRecord.

    Example:
        >>> class CustomReader(BaseReader):
        ...     def read(self, source) -> RawRecord:
        ...         # Custom implementation
        ...         return RawRecord(values, channels)
    """

    @abstractmethod
    def read(self, source) -> RawRecord:
        """Read a source and return its raw record.

        Args:
            source: Path or object understood by the reader

        Returns:
            RawRecord with values, channel names and header keywords

        Raises:
            FormatError: If the source is malformed
            FileNotFoundError: If a path-based source does not exist
        """
        pass
