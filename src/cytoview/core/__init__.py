"""Core components for cytoview"""

from .exceptions import (
    CytoViewError,
    FormatError,
    AmbiguousMarkerError,
    NotFoundError,
    DuplicateKeyError,
    MetadataMismatchError,
)
from .types import ColumnDescriptor
from .data_model import DataModel
from .backing_store import BackingStore
from .aliased_table import AliasedTable
from .aliased_collection import AliasedCollection
from .config_manager import ConfigManager
from .loader import TableLoader, load, load_collection

__all__ = [
    'CytoViewError',
    'FormatError',
    'AmbiguousMarkerError',
    'NotFoundError',
    'DuplicateKeyError',
    'MetadataMismatchError',
    'ColumnDescriptor',
    'DataModel',
    'BackingStore',
    'AliasedTable',
    'AliasedCollection',
    'ConfigManager',
    'TableLoader',
    'load',
    'load_collection',
]
