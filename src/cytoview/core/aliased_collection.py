"""
AliasedCollection - Named set of AliasedTables with per-sample metadata

The collection stores its members by reference: adding a table, or
subsetting the collection, never copies event data. deep_copy() is the
only operation that produces members independent of the originals.
"""

import logging
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional, Union

import numpy as np
import pandas as pd

from .aliased_table import AliasedTable
from .exceptions import DuplicateKeyError, MetadataMismatchError
from .types import ColumnSelector

logger = logging.getLogger(__name__)


class AliasedCollection:
    """Ordered mapping of sample name -> AliasedTable plus sample metadata.

    Sample metadata is a DataFrame with one row per sample whose index must
    be exactly the set of member names. It is kept in member order.

    Attributes:
        _members: Insertion-ordered dict of sample name -> AliasedTable
        _sample_metadata: DataFrame indexed by sample name, or None if unset

    Example:
        >>> cs = AliasedCollection()
        >>> cs.add_member('s1', t1)
        >>> cs.add_member('s2', t2)
        >>> cs.set_sample_metadata(pd.DataFrame({'group': ['a', 'b']}, index=['s1', 's2']))
        >>> only_a = cs.subset(lambda name, row: row['group'] == 'a')
        >>> only_a['s1'] is t1
        True
    """

    def __init__(
        self,
        members: Optional[Mapping[str, AliasedTable]] = None,
        sample_metadata: Optional[pd.DataFrame] = None
    ):
        """Initialize AliasedCollection.

        Args:
            members: Optional mapping of sample name -> table, added by reference
            sample_metadata: Optional metadata, validated like set_sample_metadata()
        """
        self._members: Dict[str, AliasedTable] = {}
        self._sample_metadata: Optional[pd.DataFrame] = None

        if members:
            for name, table in members.items():
                self.add_member(name, table)
        if sample_metadata is not None:
            self.set_sample_metadata(sample_metadata)

    @classmethod
    def from_tables(cls, tables: Mapping[str, AliasedTable]) -> 'AliasedCollection':
        """Build a collection from a mapping of sample name -> table."""
        return cls(members=tables)

    # ------------------------------------------------------------------
    # Mapping protocol
    # ------------------------------------------------------------------

    @property
    def sample_names(self) -> List[str]:
        """Return member names in insertion order."""
        return list(self._members)

    def __len__(self) -> int:
        return len(self._members)

    def __iter__(self) -> Iterator[str]:
        return iter(self._members)

    def __contains__(self, sample_name) -> bool:
        return sample_name in self._members

    def __getitem__(self, sample_name: str) -> AliasedTable:
        if sample_name not in self._members:
            raise KeyError(
                f"Sample '{sample_name}' not found. Available samples: {self.sample_names}"
            )
        return self._members[sample_name]

    def items(self):
        """Return (sample name, table) pairs in insertion order."""
        return self._members.items()

    @property
    def channels(self) -> List[str]:
        """Return the channel list shared by all members.

        Raises:
            ValueError: If members expose different channel lists
        """
        channel_lists = {name: table.channels for name, table in self._members.items()}
        distinct = {tuple(c) for c in channel_lists.values()}
        if len(distinct) > 1:
            raise ValueError(f"Members have different channels: {channel_lists}")
        return list(distinct.pop()) if distinct else []

    # ------------------------------------------------------------------
    # Membership
    # ------------------------------------------------------------------

    def add_member(self, sample_name: str, table: AliasedTable) -> None:
        """Insert table under sample_name by reference.

        If sample metadata is set, an empty (NaN) row is appended for the new
        sample so the metadata index keeps matching the member names.

        Raises:
            TypeError: If sample_name is not a string or table is not an AliasedTable
            DuplicateKeyError: If sample_name is already present
        """
        if not isinstance(sample_name, str):
            raise TypeError(f"sample_name must be a string, got {type(sample_name)}")
        if not isinstance(table, AliasedTable):
            raise TypeError(f"table must be an AliasedTable, got {type(table)}")
        if sample_name in self._members:
            raise DuplicateKeyError(f"Sample '{sample_name}' already present")

        self._members[sample_name] = table
        if self._sample_metadata is not None:
            self._sample_metadata = self._sample_metadata.reindex(self.sample_names)

    def remove_member(self, sample_name: str) -> AliasedTable:
        """Remove and return a member, dropping its metadata row.

        Raises:
            KeyError: If sample_name is not present
        """
        table = self[sample_name]
        del self._members[sample_name]
        if self._sample_metadata is not None:
            self._sample_metadata = self._sample_metadata.drop(index=sample_name)
        return table

    # ------------------------------------------------------------------
    # Sample metadata
    # ------------------------------------------------------------------

    @property
    def sample_metadata(self) -> Optional[pd.DataFrame]:
        """Return a copy of the sample metadata, or None if unset."""
        if self._sample_metadata is None:
            return None
        return self._sample_metadata.copy()

    def set_sample_metadata(self, table_rows: Union[pd.DataFrame, Mapping[str, Any]]) -> None:
        """Replace the sample metadata.

        Args:
            table_rows: DataFrame indexed by sample name, or a mapping of
                sample name -> {column: value}

        Raises:
            MetadataMismatchError: If the row labels are not exactly the
                member names (the current metadata is left unchanged)
        """
        if isinstance(table_rows, pd.DataFrame):
            metadata = table_rows.copy()
        else:
            metadata = pd.DataFrame.from_dict(dict(table_rows), orient='index')

        labels = list(metadata.index)
        if len(set(labels)) != len(labels):
            raise MetadataMismatchError(f"Duplicate sample labels in metadata: {labels}")

        missing = [name for name in self._members if name not in set(labels)]
        extra = [label for label in labels if label not in self._members]
        if missing or extra:
            raise MetadataMismatchError(
                f"Metadata rows must match sample names exactly. "
                f"Missing rows: {missing}, unknown rows: {extra}"
            )

        self._sample_metadata = metadata.loc[self.sample_names]
        logger.debug(f"Set sample metadata {self._sample_metadata.shape}")

    def _metadata_row(self, sample_name: str) -> pd.Series:
        if self._sample_metadata is None:
            return pd.Series(dtype=object, name=sample_name)
        return self._sample_metadata.loc[sample_name]

    # ------------------------------------------------------------------
    # Views and copies
    # ------------------------------------------------------------------

    def subset(self, sample_predicate) -> 'AliasedCollection':
        """Return a collection holding the same table objects for selected samples.

        Args:
            sample_predicate: One of
                - callable (sample_name, metadata_row) -> bool
                - sequence of sample names (kept in the given order)
                - sequence of booleans, one per member
                - boolean pandas Series indexed by sample name

        Returns:
            AliasedCollection whose members are the original AliasedTable
            objects (views, not copies) with metadata rows filtered to match

        Raises:
            KeyError: If a named sample is not present
        """
        names = self._select(sample_predicate)

        result = AliasedCollection()
        for name in names:
            result._members[name] = self._members[name]
        if self._sample_metadata is not None:
            result._sample_metadata = self._sample_metadata.loc[names].copy()
        return result

    def _select(self, sample_predicate) -> List[str]:
        """Resolve a subset predicate into an ordered list of member names."""
        if callable(sample_predicate):
            return [name for name in self._members
                    if bool(sample_predicate(name, self._metadata_row(name)))]

        if isinstance(sample_predicate, pd.Series):
            unknown = [label for label in sample_predicate.index if label not in self._members]
            if unknown:
                raise KeyError(f"Samples {unknown} not found")
            return [name for name in self._members
                    if bool(sample_predicate.get(name, False))]

        if isinstance(sample_predicate, str):
            sample_predicate = [sample_predicate]
        selection = list(sample_predicate)
        if selection and all(isinstance(s, (bool, np.bool_)) for s in selection):
            if len(selection) != len(self._members):
                raise IndexError(
                    f"Boolean mask has length {len(selection)}, expected {len(self._members)}"
                )
            return [name for name, keep in zip(self._members, selection) if keep]

        unknown = [name for name in selection if name not in self._members]
        if unknown:
            raise KeyError(f"Samples {unknown} not found. Available samples: {self.sample_names}")
        if len(set(selection)) != len(selection):
            raise DuplicateKeyError(f"Sample names repeated in selection: {selection}")
        return selection

    def __copy__(self) -> 'AliasedCollection':
        return self.subset(self.sample_names)

    def deep_copy(self) -> 'AliasedCollection':
        """Return a collection sharing no storage with this one."""
        result = AliasedCollection()
        for name, table in self._members.items():
            result._members[name] = table.deep_copy()
        if self._sample_metadata is not None:
            result._sample_metadata = self._sample_metadata.copy(deep=True)
        return result

    def copy(self) -> 'AliasedCollection':
        """Alias for deep_copy()."""
        return self.deep_copy()

    def __deepcopy__(self, memo) -> 'AliasedCollection':
        return self.deep_copy()

    # ------------------------------------------------------------------
    # Iteration helpers
    # ------------------------------------------------------------------

    def map(self, fn: Callable[[AliasedTable], Any], simplify: bool = True):
        """Apply fn to every member in insertion order.

        Args:
            fn: Function of one AliasedTable
            simplify: Combine uniform results into a pandas object

        Returns:
            - pandas Series indexed by sample name if every result is a scalar
            - pandas DataFrame (one row per sample) if every result is a 1-D
              array of the same length or a Series with the same index
            - otherwise, or with simplify=False, a dict of sample name -> result
        """
        results = {name: fn(table) for name, table in self._members.items()}
        if not simplify or not results:
            return results

        names = list(results)
        values = list(results.values())

        if all(_is_scalar(v) for v in values):
            return pd.Series(values, index=names)

        if all(isinstance(v, pd.Series) for v in values):
            first_index = values[0].index
            if all(v.index.equals(first_index) for v in values):
                return pd.DataFrame([v.to_numpy() for v in values],
                                    index=names, columns=first_index)
            return results

        if all(isinstance(v, (np.ndarray, list, tuple)) for v in values):
            arrays = [np.asarray(v) for v in values]
            if all(a.ndim == 1 for a in arrays) and len({len(a) for a in arrays}) == 1:
                return pd.DataFrame(np.vstack(arrays), index=names)

        return results

    def apply_transform(
        self,
        column_selector: ColumnSelector,
        fn: Callable[[np.ndarray], np.ndarray],
        name: Optional[str] = None
    ) -> 'AliasedCollection':
        """Apply a transform to every member in place (insertion order).

        The column selector is resolved against every member before any
        member is transformed, so a selector missing from one member leaves
        the whole collection untouched.

        Returns:
            This collection, for chaining

        Raises:
            KeyError: If a member lacks a selected channel or marker
        """
        for table in self._members.values():
            table.resolve_columns(column_selector)
        for table in self._members.values():
            table.apply_transform(column_selector, fn, name=name)
        return self

    def __repr__(self) -> str:
        """Return string representation."""
        has_metadata = self._sample_metadata is not None
        return (
            f"AliasedCollection("
            f"samples={self.sample_names}, "
            f"metadata={has_metadata})"
        )


def _is_scalar(value) -> bool:
    """Return True for Python/numpy scalars and 0-d arrays."""
    if isinstance(value, np.ndarray):
        return value.ndim == 0
    return np.isscalar(value)
