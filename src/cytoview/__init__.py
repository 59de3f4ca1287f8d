"""
cytoview - Flow cytometry event tables with view/copy semantics

cytoview holds event data the way cytoframe/cytoset do:
- Shared backing buffers with lightweight row/column views
- Channel metadata (name, marker, instrument range) and header keywords
- In-place transforms visible through every view, deep copies to isolate
- Named collections of tables with per-sample metadata
"""

from .core import (
    CytoViewError,
    FormatError,
    AmbiguousMarkerError,
    NotFoundError,
    DuplicateKeyError,
    MetadataMismatchError,
    ColumnDescriptor,
    BackingStore,
    AliasedTable,
    AliasedCollection,
    ConfigManager,
    TableLoader,
    load,
    load_collection,
)

__version__ = "0.1.0"

__all__ = [
    'CytoViewError',
    'FormatError',
    'AmbiguousMarkerError',
    'NotFoundError',
    'DuplicateKeyError',
    'MetadataMismatchError',
    'ColumnDescriptor',
    'BackingStore',
    'AliasedTable',
    'AliasedCollection',
    'ConfigManager',
    'TableLoader',
    'load',
    'load_collection',
]
