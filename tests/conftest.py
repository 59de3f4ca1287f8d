"""Shared fixtures for cytoview tests."""

import numpy as np
import pandas as pd
import pytest

from cytoview.core.aliased_table import AliasedTable
from cytoview.core.aliased_collection import AliasedCollection


@pytest.fixture
def channels():
    """Channel names of the sample tables."""
    return ['FSC-A', 'SSC-A', 'FL1-A', 'FL2-A']


@pytest.fixture
def event_values():
    """Deterministic (6, 4) event matrix."""
    return np.arange(24, dtype='float64').reshape(6, 4)


@pytest.fixture
def table(event_values, channels):
    """AliasedTable with markers on the fluorescence channels."""
    return AliasedTable.from_array(
        event_values,
        channels=channels,
        markers=[None, None, 'CD4', 'CD8'],
        ranges=[(0.0, 262144.0)] * 4,
        header={'FIL': 'sample.fcs', 'CYT': 'FACSCanto'}
    )


@pytest.fixture
def make_table(channels):
    """Factory for tables whose values are offset by a per-sample constant."""
    def _make(offset: float = 0.0, n_events: int = 5):
        values = np.arange(n_events * 4, dtype='float64').reshape(n_events, 4) + offset
        return AliasedTable.from_array(
            values,
            channels=channels,
            markers=[None, None, 'CD4', 'CD8']
        )
    return _make


@pytest.fixture
def collection(make_table):
    """Collection of four samples s1..s4."""
    cs = AliasedCollection()
    for i in range(4):
        cs.add_member(f's{i + 1}', make_table(offset=100.0 * i))
    return cs


@pytest.fixture
def sample_metadata():
    """Metadata rows matching the collection fixture."""
    return pd.DataFrame(
        {'treatment': ['ctrl', 'stim', 'ctrl', 'stim'], 'donor': [1, 1, 2, 2]},
        index=['s1', 's2', 's3', 's4']
    )
