"""
Exception taxonomy for cytoview.

Selector range errors use the builtin IndexError and unknown channel or
sample names use the builtin KeyError. The classes below cover the
remaining failure modes and double as the builtin they refine, so callers
can catch either.
"""


class CytoViewError(Exception):
    """Base class for all cytoview errors."""


class FormatError(CytoViewError, ValueError):
    """Raised when a persisted source cannot be parsed into a table."""


class AmbiguousMarkerError(CytoViewError, LookupError):
    """Raised when a marker label matches more than one channel."""


class NotFoundError(CytoViewError, KeyError):
    """Raised when a marker label or keyword matches nothing."""


class DuplicateKeyError(CytoViewError, KeyError):
    """Raised when inserting a name that is already present."""


class MetadataMismatchError(CytoViewError, ValueError):
    """Raised when sample metadata rows do not match the member names."""
