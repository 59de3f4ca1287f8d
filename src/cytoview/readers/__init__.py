"""Readers turning persisted sources into RawRecords."""

from .base import BaseReader, RawRecord, canonical_keyword
from .fcs import FCSReader
from .delimited import CSVReader
from .record import RecordReader

__all__ = [
    'BaseReader',
    'RawRecord',
    'canonical_keyword',
    'FCSReader',
    'CSVReader',
    'RecordReader',
]
