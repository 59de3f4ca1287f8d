"""
FCS reader for cytoview.

This module reads Flow Cytometry Standard files through the flowio library.
Binary parsing is entirely delegated to flowio; this reader only maps its
output onto a RawRecord.
"""

import logging
from pathlib import Path
from typing import Union

import flowio
import numpy as np

from ..core.exceptions import FormatError
from .base import BaseReader, RawRecord, canonical_keyword

logger = logging.getLogger(__name__)


class FCSReader(BaseReader):
    """Reader for FCS 2.0/3.x files using flowio.

    Channel names come from $PnN, marker labels from $PnS (blank or equal to
    the channel name means no marker) and instrument ranges from $PnR as
    (0, PnR).

    Example:
        >>> reader = FCSReader()
        >>> record = reader.read('data/sample_01.fcs')
        >>> record.channels
        ['FSC-A', 'SSC-A', 'FL1-A']
    """

    def read(self, source: Union[str, Path]) -> RawRecord:
        """Read an FCS file.

        Args:
            source: Path to the .fcs file

        Returns:
            RawRecord with uncompensated, untransformed event values

        Raises:
            FileNotFoundError: If the file does not exist
            FormatError: If flowio cannot parse the file
        """
        path = Path(source)
        if not path.exists():
            raise FileNotFoundError(f"FCS file not found: {path}")

        try:
            flow_data = flowio.FlowData(str(path))
        except Exception as e:
            raise FormatError(f"Cannot parse FCS file {path}: {e}") from e

        header = {canonical_keyword(k): v for k, v in flow_data.text.items()}
        n_channels = int(flow_data.channel_count)

        try:
            values = flow_data.as_array(preprocess=False)
        except ValueError as e:
            raise FormatError(f"Event data in {path} does not match $PAR={n_channels}") from e

        channels, markers, ranges = [], [], []
        for i in range(1, n_channels + 1):
            name = header.get(f'P{i}N')
            if name is None:
                raise FormatError(f"{path} is missing $P{i}N")
            name = str(name).strip()
            marker = header.get(f'P{i}S')
            marker = str(marker).strip() if marker is not None else ''
            channels.append(name)
            markers.append(marker if marker and marker != name else None)
            ranges.append(_parse_range(header.get(f'P{i}R')))

        logger.debug(f"Read {values.shape} events from {path}")
        return RawRecord(
            values=np.asarray(values),
            channels=channels,
            markers=markers,
            ranges=ranges,
            header=header
        )


def _parse_range(value):
    """Convert a $PnR keyword into an instrument range, or None if unusable."""
    if value is None:
        return None
    try:
        return (0.0, float(value))
    except (TypeError, ValueError):
        return None
