"""
AliasedTable - View over a shared event matrix with channel metadata

Core data model for cytoview. An AliasedTable never owns its numbers: it
holds a reference to a BackingStore plus the row and column indices it
exposes. This gives cytoframe-style semantics:

- subset() creates a new view on the same store (no copy)
- write_values() / apply_transform() mutate the store in place, so every
  view sharing it sees the change
- deep_copy() is the only way to obtain an independent table
"""

import logging
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence

import numpy as np
import pandas as pd

from .backing_store import BackingStore
from .data_model import DataModel
from .exceptions import AmbiguousMarkerError, DuplicateKeyError, NotFoundError
from .types import ColumnDescriptor, ColumnSelector, RowSelector, canonical_keyword

logger = logging.getLogger(__name__)


def _selector_positions(selector, n: int, axis: str) -> np.ndarray:
    """Convert a positional selector into positions within [0, n).

    Args:
        selector: None, int, slice, integer sequence or boolean mask
        n: Length of the axis being selected from
        axis: 'row' or 'column', used in error messages

    Returns:
        1-D intp array of non-negative positions

    Raises:
        IndexError: If a position is out of range or a mask has the wrong length
        TypeError: If the selector is of an unsupported type
    """
    if selector is None:
        return np.arange(n, dtype=np.intp)
    if isinstance(selector, slice):
        return np.arange(n, dtype=np.intp)[selector]
    if isinstance(selector, (int, np.integer)) and not isinstance(selector, (bool, np.bool_)):
        selector = [selector]

    arr = np.asarray(selector)
    if arr.ndim != 1:
        raise IndexError(f"{axis} selector must be 1-D, got shape {arr.shape}")
    if arr.size == 0:
        return np.array([], dtype=np.intp)

    if arr.dtype == bool:
        if len(arr) != n:
            raise IndexError(
                f"Boolean {axis} mask has length {len(arr)}, expected {n}"
            )
        return np.flatnonzero(arr)

    if not np.issubdtype(arr.dtype, np.integer):
        raise TypeError(f"Unsupported {axis} selector dtype: {arr.dtype}")

    out_of_range = (arr < -n) | (arr >= n)
    if out_of_range.any():
        raise IndexError(
            f"{axis} positions {arr[out_of_range].tolist()} out of range "
            f"for {n} {axis}s"
        )
    return np.where(arr < 0, arr + n, arr).astype(np.intp)


class AliasedTable(DataModel):
    """Events x channels table exposed as a view over a shared BackingStore.

    Column descriptors and header keywords live on the store, so marker
    labels, refreshed ranges and keyword edits made through one view are
    visible through every other view of the same store.

    Attributes:
        _store: Shared BackingStore
        _rows: Store row indices exposed by this view
        _cols: Store column indices exposed by this view (in view order)
        _history: List of operation descriptions applied to this handle
        _ignore_nonfinite: Whether range refreshes skip NaN/Inf values
    """

    def __init__(
        self,
        store: BackingStore,
        rows: Optional[np.ndarray] = None,
        cols: Optional[np.ndarray] = None,
        history: Optional[List[Dict]] = None,
        ignore_nonfinite: bool = True
    ):
        """Initialize AliasedTable.

        Args:
            store: BackingStore to reference (not copied)
            rows: Store row indices (default: all rows)
            cols: Store column indices (default: all columns)
            history: Operation history inherited from the parent handle
            ignore_nonfinite: Range refresh policy for non-finite values
        """
        n_rows, n_cols = store.shape
        self._store = store
        self._rows = (np.arange(n_rows, dtype=np.intp) if rows is None
                      else np.asarray(rows, dtype=np.intp))
        self._cols = (np.arange(n_cols, dtype=np.intp) if cols is None
                      else np.asarray(cols, dtype=np.intp))
        self._history = list(history) if history is not None else []
        self._ignore_nonfinite = ignore_nonfinite
        store.register_view(self)

    @classmethod
    def from_array(
        cls,
        values,
        channels: Sequence[str],
        markers: Optional[Sequence[Optional[str]]] = None,
        ranges: Optional[Sequence[Optional[tuple]]] = None,
        header: Optional[Mapping[str, Any]] = None,
        dtype: str = 'float64',
        ignore_nonfinite: bool = True,
        source: str = 'array'
    ) -> 'AliasedTable':
        """Build a table over a freshly allocated store.

        Args:
            values: 2-D array-like (events x channels); copied
            channels: Channel names, one per column
            markers: Optional marker labels, one per column
            ranges: Optional (min, max) per column; missing ranges are
                computed from the data
            header: Header keywords
            dtype: Storage dtype
            ignore_nonfinite: Range refresh policy for the new table
            source: Description recorded as the first history step

        Returns:
            AliasedTable viewing the whole new store
        """
        data = np.asarray(values, dtype=dtype)
        if data.ndim != 2:
            raise ValueError(f"Event data must be 2-D, got {data.ndim}-D")
        n_cols = data.shape[1]
        markers = list(markers) if markers is not None else [None] * n_cols
        ranges = list(ranges) if ranges is not None else [None] * n_cols
        if len(channels) != n_cols or len(markers) != n_cols or len(ranges) != n_cols:
            raise ValueError(
                f"channels/markers/ranges must each have {n_cols} entries"
            )

        descriptors = []
        for j, name in enumerate(channels):
            rng = ranges[j]
            if rng is None:
                rng = _column_range(data[:, j], ignore_nonfinite)
            descriptors.append(ColumnDescriptor(
                channel_name=str(name),
                marker_label=markers[j],
                instrument_range=(float(rng[0]), float(rng[1]))
            ))

        store = BackingStore(data, descriptors, header=header, dtype=dtype)
        return cls(
            store,
            history=[{'step': 0, 'op': 'load', 'expr': f'load({source})'}],
            ignore_nonfinite=ignore_nonfinite
        )

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def store(self) -> BackingStore:
        """Return the shared BackingStore."""
        return self._store

    @property
    def shape(self):
        """Return (n_events, n_channels) of the view."""
        return (len(self._rows), len(self._cols))

    @property
    def channels(self) -> List[str]:
        """Return the view's channel names in column order."""
        return [self._store.descriptors[c].channel_name for c in self._cols]

    @property
    def markers(self) -> Dict[str, str]:
        """Return channel -> marker label for labelled channels in the view."""
        result = {}
        for c in self._cols:
            descriptor = self._store.descriptors[c]
            if descriptor.marker_label is not None:
                result[descriptor.channel_name] = descriptor.marker_label
        return result

    @property
    def column_descriptors(self) -> List[ColumnDescriptor]:
        """Return copies of the view's column descriptors."""
        return [self._store.descriptors[c].clone() for c in self._cols]

    @property
    def header(self) -> Dict[str, Any]:
        """Return a copy of the header keywords."""
        return dict(self._store.header)

    @property
    def history(self) -> List[Dict]:
        """Return the operation history of this handle."""
        return list(self._history)

    def shares_store_with(self, other: 'AliasedTable') -> bool:
        """Return True if both tables reference the same BackingStore."""
        return self._store is other._store

    def resolve_columns(self, selector: ColumnSelector) -> List[str]:
        """Return the channel names a column selector picks from this view."""
        return [self._store.descriptors[c].channel_name
                for c in self._column_indices(selector)]

    # ------------------------------------------------------------------
    # Selector resolution
    # ------------------------------------------------------------------

    def _row_indices(self, selector: RowSelector) -> np.ndarray:
        """Map a row selector relative to the view onto store row indices."""
        return self._rows[_selector_positions(selector, len(self._rows), 'row')]

    def _column_indices(self, selector: ColumnSelector) -> np.ndarray:
        """Map a column selector relative to the view onto store column indices.

        Names are matched against channel names first and then, failing that,
        resolved as marker labels.

        Raises:
            KeyError: If a name is neither a channel nor a marker in the view
            IndexError: If a position is out of range
            ValueError: If the same column is selected twice
        """
        if isinstance(selector, str):
            selector = [selector]

        is_names = False
        if selector is not None and not isinstance(selector, slice):
            arr = np.asarray(selector)
            is_names = arr.ndim == 1 and arr.size > 0 and arr.dtype.kind in ('U', 'S', 'O')

        if is_names:
            channels = self.channels
            positions = []
            for name in selector:
                if name in channels:
                    positions.append(channels.index(name))
                    continue
                try:
                    positions.append(channels.index(self.resolve_channel(name)))
                except NotFoundError:
                    raise KeyError(
                        f"Channel '{name}' not found. Available channels: {channels}"
                    ) from None
            positions = np.asarray(positions, dtype=np.intp)
        else:
            positions = _selector_positions(selector, len(self._cols), 'column')

        if len(np.unique(positions)) != len(positions):
            raise ValueError("Column selector picks the same channel more than once")
        return self._cols[positions]

    # ------------------------------------------------------------------
    # Views and copies
    # ------------------------------------------------------------------

    def subset(
        self,
        row_selector: RowSelector = None,
        col_selector: ColumnSelector = None
    ) -> 'AliasedTable':
        """Return a new view sharing this table's store.

        Selectors are interpreted relative to this view, so subsets compose.
        No event data is copied.

        Args:
            row_selector: None, int, slice, positions or boolean mask
            col_selector: Same as row_selector, or channel names / marker labels

        Returns:
            AliasedTable over the same BackingStore

        Raises:
            IndexError: If a selector is out of range for this view
            KeyError: If a channel name is not in this view
        """
        rows = self._row_indices(row_selector)
        cols = self._column_indices(col_selector)
        logger.debug(f"Created view ({len(rows)}, {len(cols)}) on {self._store!r}")

        history = self._history + [{
            'step': len(self._history),
            'op': 'subset',
            'expr': f'subset(events={len(rows)}, channels={self._channel_names(cols)})'
        }]
        return AliasedTable(
            self._store, rows=rows, cols=cols, history=history,
            ignore_nonfinite=self._ignore_nonfinite
        )

    def __getitem__(self, key) -> 'AliasedTable':
        """Subset sugar: table[rows, cols], table['FSC-A'] or table[rows]."""
        if isinstance(key, tuple):
            if len(key) != 2:
                raise IndexError(f"Expected (rows, cols), got {len(key)} selectors")
            return self.subset(key[0], key[1])
        if isinstance(key, str):
            return self.subset(None, key)
        if isinstance(key, (list, tuple)) and key and all(isinstance(k, str) for k in key):
            return self.subset(None, key)
        return self.subset(key, None)

    def deep_copy(self) -> 'AliasedTable':
        """Return an independent table holding exactly the visible values.

        Column descriptors and header keywords are cloned; the result shares
        nothing with this table.
        """
        store = self._store.clone(self._rows, self._cols)
        history = self._history + [{
            'step': len(self._history),
            'op': 'deep_copy',
            'expr': 'deep_copy()'
        }]
        return AliasedTable(store, history=history,
                            ignore_nonfinite=self._ignore_nonfinite)

    def copy(self) -> 'AliasedTable':
        """Alias for deep_copy()."""
        return self.deep_copy()

    def __copy__(self) -> 'AliasedTable':
        """Shallow copy: a new view of the same store and indices."""
        return AliasedTable(self._store, rows=self._rows.copy(), cols=self._cols.copy(),
                            history=self._history,
                            ignore_nonfinite=self._ignore_nonfinite)

    def __deepcopy__(self, memo) -> 'AliasedTable':
        """Deep copy via deep_copy()."""
        return self.deep_copy()

    # ------------------------------------------------------------------
    # Values
    # ------------------------------------------------------------------

    def read_values(self) -> np.ndarray:
        """Return the visible (events x channels) matrix.

        The result is a copy, so modifying it does not touch the store.
        """
        return self._store.data[np.ix_(self._rows, self._cols)]

    def to_numpy(self) -> np.ndarray:
        """Alias for read_values()."""
        return self.read_values()

    def to_df(self) -> pd.DataFrame:
        """Return the visible values as a DataFrame with channel-name columns."""
        return pd.DataFrame(self.read_values(), columns=self.channels)

    def write_values(self, column_selector: ColumnSelector, values) -> None:
        """Overwrite the selected columns in place.

        The write goes to the shared store and is visible through every view
        referencing it. Instrument ranges are NOT recomputed; use
        apply_transform() or refresh_ranges() to keep them consistent.

        Args:
            column_selector: Columns to overwrite
            values: Array-like broadcastable to (n_events, n_selected_channels)

        Raises:
            ValueError: If values cannot be broadcast to the target shape
        """
        cols = self._column_indices(column_selector)
        target_shape = (len(self._rows), len(cols))
        values = np.asarray(values, dtype=self._store.data.dtype)
        try:
            values = np.broadcast_to(values, target_shape)
        except ValueError as e:
            raise ValueError(
                f"Cannot write values of shape {values.shape} into {target_shape}"
            ) from e

        self._store.data[np.ix_(self._rows, cols)] = values
        self._record_step('write_values', f'write_values({self._channel_names(cols)})')

    def apply_transform(
        self,
        column_selector: ColumnSelector,
        fn: Callable[[np.ndarray], np.ndarray],
        name: Optional[str] = None
    ) -> 'AliasedTable':
        """Apply fn to the selected columns in place and refresh their ranges.

        fn receives the visible values of the selected columns as a 2-D array
        and must return an array of the same shape (any element-wise numpy
        function qualifies). The result is written to the shared store and the
        instrument range of each affected channel is set to the (min, max) of
        the written values.

        Args:
            column_selector: Columns to transform
            fn: Element-wise function over a numpy array
            name: Label recorded in history (default: fn.__name__)

        Returns:
            This table (mutated in place), for chaining

        Raises:
            ValueError: If fn returns an array of a different shape
        """
        cols = self._column_indices(column_selector)
        current = self._store.data[np.ix_(self._rows, cols)]
        result = np.asarray(fn(current), dtype=self._store.data.dtype)
        if result.shape != current.shape:
            raise ValueError(
                f"Transform returned shape {result.shape}, expected {current.shape}"
            )

        self._write_and_refresh(cols, result)
        label = name or getattr(fn, '__name__', repr(fn))
        self._record_step('apply_transform', f'{label}({self._channel_names(cols)})')
        return self

    def refresh_ranges(self, column_selector: ColumnSelector = None) -> None:
        """Recompute instrument ranges from the currently visible values."""
        cols = self._column_indices(column_selector)
        values = self._store.data[np.ix_(self._rows, cols)]
        self._refresh_ranges(cols, values)

    def _write_and_refresh(self, cols: np.ndarray, values: np.ndarray) -> None:
        """Write values into the selected store columns and refresh their ranges."""
        self._store.data[np.ix_(self._rows, cols)] = values
        self._refresh_ranges(cols, values)

    def _refresh_ranges(self, cols: np.ndarray, values: np.ndarray) -> None:
        for j, c in enumerate(cols):
            descriptor = self._store.descriptors[c]
            column = values[:, j]
            if not np.isfinite(column).all():
                logger.warning(
                    f"Channel '{descriptor.channel_name}' holds non-finite values "
                    f"after transform"
                )
            descriptor.instrument_range = _column_range(column, self._ignore_nonfinite)

    def _channel_names(self, cols: Iterable[int]) -> List[str]:
        return [self._store.descriptors[c].channel_name for c in cols]

    def _record_step(self, op: str, expr: str) -> None:
        self._history.append({'step': len(self._history), 'op': op, 'expr': expr})

    # ------------------------------------------------------------------
    # Channel metadata
    # ------------------------------------------------------------------

    def set_marker_labels(self, mapping: Mapping[str, Optional[str]]) -> None:
        """Set marker labels for the named channels (None clears a label).

        The change is made on the shared store. Validation happens before any
        label changes, so a failure leaves every label untouched.

        Raises:
            KeyError: If a channel is not present in this view
        """
        channels = self.channels
        missing = [name for name in mapping if name not in channels]
        if missing:
            raise KeyError(
                f"Channels {missing} not found. Available channels: {channels}"
            )
        for name, marker in mapping.items():
            self._store.descriptors[self._store.channel_index(name)].marker_label = marker

    def resolve_channel(self, marker_label: str) -> str:
        """Return the channel carrying marker_label in this view.

        Raises:
            AmbiguousMarkerError: If more than one channel carries the label
            NotFoundError: If no channel carries the label, or the label is None
        """
        if marker_label is None:
            raise NotFoundError("Cannot resolve a channel from an empty marker label")
        matches = [
            self._store.descriptors[c].channel_name for c in self._cols
            if self._store.descriptors[c].marker_label == marker_label
        ]
        if len(matches) > 1:
            raise AmbiguousMarkerError(
                f"Marker '{marker_label}' matches channels {matches}"
            )
        if not matches:
            raise NotFoundError(f"Marker '{marker_label}' not found")
        return matches[0]

    def rename_channels(self, mapping: Mapping[str, str]) -> None:
        """Rename channels on the shared store.

        Raises:
            KeyError: If a channel is not present in this view
            DuplicateKeyError: If the renaming would produce duplicate names
        """
        channels = self.channels
        missing = [name for name in mapping if name not in channels]
        if missing:
            raise KeyError(
                f"Channels {missing} not found. Available channels: {channels}"
            )
        renamed = [mapping.get(d.channel_name, d.channel_name)
                   for d in self._store.descriptors]
        if len(set(renamed)) != len(renamed):
            raise DuplicateKeyError(f"Renaming would produce duplicate channels: {renamed}")
        for descriptor, new_name in zip(self._store.descriptors, renamed):
            descriptor.channel_name = new_name

    # ------------------------------------------------------------------
    # Header keywords
    # ------------------------------------------------------------------

    def get_keyword(self, key: str, default: Any = None) -> Any:
        """Return a header keyword, or default if absent.

        Keys are matched in canonical form, so '$FIL' and 'FIL' are the same.
        """
        return self._store.header.get(canonical_keyword(key), default)

    def replace_header(self, mapping: Mapping[str, Any]) -> None:
        """Replace all header keywords.

        Raises:
            TypeError: If a key is not a string (header left unchanged)
            DuplicateKeyError: If two keys share a canonical form
        """
        self._store.header = _canonical_header(mapping)

    def update_keywords(self, mapping: Mapping[str, Any]) -> None:
        """Insert or overwrite header keywords."""
        self._store.header.update(_canonical_header(mapping))

    def delete_keywords(self, keys: Iterable[str]) -> None:
        """Delete header keywords.

        Raises:
            KeyError: If any key is absent (nothing is deleted)
        """
        keys = [canonical_keyword(k) for k in keys]
        missing = [k for k in keys if k not in self._store.header]
        if missing:
            raise KeyError(f"Keywords {missing} not found")
        for k in dict.fromkeys(keys):
            del self._store.header[k]

    def rename_keywords(self, mapping: Mapping[str, str]) -> None:
        """Rename header keywords, keeping their values.

        Raises:
            KeyError: If a source keyword is absent
            DuplicateKeyError: If a target keyword already exists
        """
        header = self._store.header
        mapping = {canonical_keyword(k): canonical_keyword(v) for k, v in mapping.items()}
        missing = [k for k in mapping if k not in header]
        if missing:
            raise KeyError(f"Keywords {missing} not found")
        remaining = set(header) - set(mapping)
        targets = list(mapping.values())
        clashes = [t for t in targets if t in remaining]
        if clashes or len(set(targets)) != len(targets):
            raise DuplicateKeyError(f"Keyword rename collides on {clashes or targets}")
        self._store.header = {mapping.get(k, k): v for k, v in header.items()}

    def __repr__(self) -> str:
        """Return string representation."""
        return (
            f"AliasedTable("
            f"events={self.n_events}, "
            f"channels={self.channels}, "
            f"markers={self.markers}, "
            f"shared_views={self._store.n_views})"
        )


def _column_range(column: np.ndarray, ignore_nonfinite: bool = True) -> tuple:
    """Return (min, max) of a column.

    With ignore_nonfinite, NaN and +/-Inf are skipped and an all-non-finite
    (or empty) column yields (nan, nan).
    """
    if ignore_nonfinite:
        column = column[np.isfinite(column)]
    if column.size == 0:
        return (float('nan'), float('nan'))
    return (float(np.min(column)), float(np.max(column)))


def _canonical_header(mapping: Mapping[str, Any]) -> Dict[str, Any]:
    """Return mapping with keys in canonical keyword form.

    Raises:
        TypeError: If a key is not a string
        DuplicateKeyError: If two keys share a canonical form
    """
    bad = [k for k in mapping if not isinstance(k, str)]
    if bad:
        raise TypeError(f"Header keys must be strings, got {bad}")
    header = {canonical_keyword(k): v for k, v in mapping.items()}
    if len(header) != len(mapping):
        raise DuplicateKeyError(f"Header keys collide in canonical form: {list(mapping)}")
    return header
