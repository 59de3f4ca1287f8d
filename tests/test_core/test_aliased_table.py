"""Tests for AliasedTable"""

import copy

import numpy as np
import pandas as pd
import pytest

from cytoview.core.aliased_table import AliasedTable
from cytoview.core.exceptions import (
    AmbiguousMarkerError,
    DuplicateKeyError,
    NotFoundError,
)


class TestConstruction:
    """Test building tables from arrays."""

    def test_from_array_copies_input(self, event_values, channels):
        """Test from_array allocates a fresh buffer."""
        table = AliasedTable.from_array(event_values, channels=channels)
        event_values[0, 0] = 999

        assert table.read_values()[0, 0] == 0

    def test_from_array_computes_missing_ranges(self, channels):
        """Test ranges default to the data extent."""
        values = np.array([[1.0, -2.0, 3.0, 4.0], [5.0, 6.0, np.nan, 8.0]])
        table = AliasedTable.from_array(values, channels=channels)

        ranges = [d.instrument_range for d in table.column_descriptors]
        assert ranges[0] == (1.0, 5.0)
        assert ranges[1] == (-2.0, 6.0)
        assert ranges[2] == (3.0, 3.0)

    def test_from_array_rejects_channel_count_mismatch(self, event_values):
        """Test from_array validates the channel count."""
        with pytest.raises(ValueError):
            AliasedTable.from_array(event_values, channels=['A', 'B'])

    def test_from_array_rejects_duplicate_channels(self, event_values):
        """Test channel names must be unique."""
        with pytest.raises(ValueError, match="unique"):
            AliasedTable.from_array(event_values, channels=['A', 'A', 'B', 'C'])

    def test_shape_and_metadata(self, table, channels):
        """Test basic introspection."""
        assert table.shape == (6, 4)
        assert len(table) == 6
        assert table.n_channels == 4
        assert table.channels == channels
        assert table.markers == {'FL1-A': 'CD4', 'FL2-A': 'CD8'}
        assert table.get_keyword('FIL') == 'sample.fcs'
        assert table.history[0]['op'] == 'load'


class TestSubset:
    """Test view creation and selector composition."""

    def test_subset_shares_store(self, table):
        """Test subset creates a view, not a copy."""
        view = table.subset(slice(0, 3), ['FL1-A'])

        assert view.shares_store_with(table)
        assert view.store is table.store
        assert view.shape == (3, 1)
        assert table.store.n_views >= 2

    def test_subset_values(self, table, event_values):
        """Test the view exposes the selected block."""
        view = table.subset([1, 3], ['FL2-A', 'FSC-A'])

        expected = event_values[np.ix_([1, 3], [3, 0])]
        np.testing.assert_array_equal(view.read_values(), expected)
        assert view.channels == ['FL2-A', 'FSC-A']

    def test_subsets_compose(self, table, event_values):
        """Test selectors apply relative to the parent view."""
        first = table.subset(slice(2, 6), None)
        second = first.subset([0, -1], [2])

        np.testing.assert_array_equal(
            second.read_values(),
            event_values[np.ix_([2, 5], [2])]
        )

    def test_subset_by_boolean_mask(self, table, event_values):
        """Test boolean row masks."""
        mask = event_values[:, 0] > 10
        view = table.subset(mask)

        assert view.n_events == int(mask.sum())
        np.testing.assert_array_equal(view.read_values(), event_values[mask])

    def test_subset_by_marker_label(self, table):
        """Test marker labels select their channel."""
        view = table.subset(None, ['CD8'])
        assert view.channels == ['FL2-A']

    def test_subset_row_out_of_range(self, table):
        """Test out-of-range rows raise IndexError."""
        with pytest.raises(IndexError):
            table.subset([6])

    def test_subset_out_of_parent_view(self, table):
        """Test positions are checked against the parent view, not the store."""
        view = table.subset(slice(0, 2))
        with pytest.raises(IndexError):
            view.subset([3])

    def test_subset_mask_wrong_length(self, table):
        """Test boolean masks must match the view length."""
        with pytest.raises(IndexError):
            table.subset(np.array([True, False]))

    def test_subset_column_out_of_range(self, table):
        """Test out-of-range column positions raise IndexError."""
        with pytest.raises(IndexError):
            table.subset(None, [4])

    def test_subset_unknown_channel(self, table):
        """Test unknown channel names raise KeyError."""
        with pytest.raises(KeyError):
            table.subset(None, ['APC-A'])

    def test_subset_channel_outside_view(self, table):
        """Test channels dropped by the parent view cannot be selected."""
        view = table.subset(None, ['FSC-A', 'SSC-A'])
        with pytest.raises(KeyError):
            view.subset(None, ['FL1-A'])

    def test_subset_duplicate_columns(self, table):
        """Test selecting a channel twice is rejected."""
        with pytest.raises(ValueError):
            table.subset(None, ['FSC-A', 'FSC-A'])

    def test_getitem_sugar(self, table):
        """Test table[...] forms."""
        assert table[0:2, ['FSC-A']].shape == (2, 1)
        assert table['FL1-A'].channels == ['FL1-A']
        assert table[['FL1-A', 'FL2-A']].shape == (6, 2)
        assert table[[0, 1]].shape == (2, 4)


class TestAliasing:
    """Test writes through views are visible to every sharer."""

    def test_write_through_view_visible_in_parent(self, table):
        """Test write_values on a view mutates the parent."""
        view = table.subset([1, 2], ['FL1-A'])
        view.write_values('FL1-A', [[-1.0], [-2.0]])

        values = table.read_values()
        assert values[1, 2] == -1.0
        assert values[2, 2] == -2.0
        # Neighbouring cells untouched
        assert values[0, 2] == 2.0
        assert values[1, 3] == 7.0

    def test_write_through_parent_visible_in_view(self, table):
        """Test aliasing is symmetric."""
        view = table.subset(slice(0, 2), ['FSC-A'])
        table.write_values('FSC-A', 42.0)

        np.testing.assert_array_equal(view.read_values(), [[42.0], [42.0]])

    def test_write_values_broadcast_error(self, table):
        """Test mismatched shapes are rejected."""
        with pytest.raises(ValueError):
            table.write_values(['FSC-A', 'SSC-A'], np.zeros((6, 3)))

    def test_write_values_returns_none(self, table):
        """Test write_values mutates in place and returns nothing."""
        assert table.write_values('FSC-A', 0.0) is None

    def test_write_values_leaves_range_stale(self, table):
        """Test raw overwrite does not touch instrument ranges."""
        before = table.column_descriptors[0].instrument_range
        table.write_values('FSC-A', 1e9)

        assert table.column_descriptors[0].instrument_range == before

    def test_read_values_is_a_copy(self, table):
        """Test mutating the read result does not touch the store."""
        values = table.read_values()
        values[:] = -5

        assert table.read_values()[0, 0] == 0

    def test_to_df(self, table, channels):
        """Test DataFrame export."""
        df = table.to_df()
        assert isinstance(df, pd.DataFrame)
        assert list(df.columns) == channels
        assert df.shape == (6, 4)


class TestDeepCopy:
    """Test deep copies are independent."""

    def test_deep_copy_independent(self, table):
        """Test mutating the source leaves the copy unchanged."""
        clone = table.deep_copy()
        snapshot = clone.read_values()
        table.write_values(None, 0.0)

        assert not clone.shares_store_with(table)
        np.testing.assert_array_equal(clone.read_values(), snapshot)

    def test_deep_copy_of_view_holds_visible_values(self, table, event_values):
        """Test deep_copy materialises only the view."""
        view = table.subset([0, 5], ['SSC-A', 'FL2-A'])
        clone = view.deep_copy()

        assert clone.store.shape == (2, 2)
        np.testing.assert_array_equal(clone.read_values(), event_values[np.ix_([0, 5], [1, 3])])

    def test_deep_copy_clones_metadata(self, table):
        """Test descriptors and header are cloned."""
        clone = table.deep_copy()
        clone.set_marker_labels({'FL1-A': 'CD3'})
        clone.update_keywords({'FIL': 'other.fcs'})

        assert table.markers['FL1-A'] == 'CD4'
        assert table.get_keyword('FIL') == 'sample.fcs'

    def test_copy_module_integration(self, table):
        """Test copy.deepcopy and copy.copy semantics."""
        assert not copy.deepcopy(table).shares_store_with(table)
        assert copy.copy(table).shares_store_with(table)


class TestApplyTransform:
    """Test sanctioned in-place transforms."""

    def test_transform_refreshes_range(self, table):
        """Test instrument range follows the written values."""
        table.apply_transform(['FL1-A'], lambda x: x * 10)

        written = table.read_values()[:, 2]
        low, high = table.column_descriptors[2].instrument_range
        assert np.isclose(low, written.min())
        assert np.isclose(high, written.max())

    def test_transform_through_view_visible_in_parent(self, table):
        """Test transforms alias like writes."""
        view = table.subset([0, 1], ['FL2-A'])
        view.apply_transform('FL2-A', np.negative)

        values = table.read_values()
        assert values[0, 3] == -3.0
        assert values[1, 3] == -7.0
        assert values[2, 3] == 11.0

    def test_transform_range_on_shared_descriptor(self, table):
        """Test the range set through a view is seen by the parent."""
        view = table.subset([0, 1], ['FL2-A'])
        view.apply_transform('FL2-A', lambda x: x + 1)

        assert table.column_descriptors[3].instrument_range == (4.0, 8.0)

    def test_transform_returns_self(self, table):
        """Test chaining."""
        assert table.apply_transform('FSC-A', np.sqrt) is table

    def test_transform_shape_mismatch(self, table):
        """Test fn must preserve shape."""
        with pytest.raises(ValueError):
            table.apply_transform('FSC-A', lambda x: x[:2])

    def test_transform_nonfinite_ignored_in_range(self, table):
        """Test NaN/Inf do not enter the refreshed range."""
        table.apply_transform('FSC-A', lambda x: np.where(x == 0, np.nan, x))

        assert table.column_descriptors[0].instrument_range == (4.0, 20.0)

    def test_transform_all_nonfinite(self, table):
        """Test an all-NaN result yields a NaN range."""
        table.apply_transform('FSC-A', lambda x: x * np.nan)

        low, high = table.column_descriptors[0].instrument_range
        assert np.isnan(low) and np.isnan(high)

    def test_transform_nonfinite_kept_in_range(self, event_values, channels):
        """Test -inf enters the range when non-finite values are not ignored."""
        table = AliasedTable.from_array(event_values, channels=channels,
                                        ignore_nonfinite=False)
        with np.errstate(divide='ignore'):
            table.apply_transform('FSC-A', np.log)

        low, high = table.column_descriptors[0].instrument_range
        assert low == -np.inf
        assert high == pytest.approx(np.log(20.0))

    def test_transform_recorded_in_history(self, table):
        """Test history records the transform label."""
        table.apply_transform('FSC-A', np.log1p)
        assert table.history[-1]['op'] == 'apply_transform'
        assert 'log1p' in table.history[-1]['expr']

    def test_refresh_ranges(self, table):
        """Test explicit range refresh after a raw write."""
        table.write_values('SSC-A', 3.0)
        table.refresh_ranges('SSC-A')

        assert table.column_descriptors[1].instrument_range == (3.0, 3.0)


class TestMarkers:
    """Test marker labels and reverse lookup."""

    def test_set_marker_labels(self, table):
        """Test labels set through a view are visible in the parent."""
        view = table.subset(None, ['FSC-A', 'FL1-A'])
        view.set_marker_labels({'FSC-A': 'Size', 'FL1-A': None})

        assert table.markers == {'FSC-A': 'Size', 'FL2-A': 'CD8'}

    def test_set_marker_labels_unknown_channel(self, table):
        """Test unknown channels raise KeyError without partial updates."""
        with pytest.raises(KeyError):
            table.set_marker_labels({'FSC-A': 'Size', 'APC-A': 'CD19'})
        assert 'FSC-A' not in table.markers

    def test_set_marker_labels_outside_view(self, table):
        """Test channels outside the view are rejected."""
        view = table.subset(None, ['FSC-A'])
        with pytest.raises(KeyError):
            view.set_marker_labels({'FL1-A': 'CD3'})

    def test_resolve_channel(self, table):
        """Test unambiguous marker resolves to its channel."""
        assert table.resolve_channel('CD4') == 'FL1-A'

    def test_resolve_channel_ambiguous(self, table):
        """Test two channels with the same marker."""
        table.set_marker_labels({'FL2-A': 'CD4'})
        with pytest.raises(AmbiguousMarkerError):
            table.resolve_channel('CD4')

    def test_resolve_channel_ambiguity_is_per_view(self, table):
        """Test ambiguity only counts channels in the current view."""
        table.set_marker_labels({'FL2-A': 'CD4'})
        view = table.subset(None, ['FL2-A'])
        assert view.resolve_channel('CD4') == 'FL2-A'

    def test_resolve_channel_not_found(self, table):
        """Test missing marker."""
        with pytest.raises(NotFoundError):
            table.resolve_channel('CD19')

    def test_resolve_channel_none(self, table):
        """Test None is not treated as a marker shared by unlabelled channels."""
        with pytest.raises(NotFoundError):
            table.resolve_channel(None)

    def test_rename_channels(self, table):
        """Test channel renames are shared across views."""
        view = table.subset(None, ['FL1-A'])
        view.rename_channels({'FL1-A': 'FITC-A'})

        assert table.channels == ['FSC-A', 'SSC-A', 'FITC-A', 'FL2-A']

    def test_rename_channels_collision(self, table):
        """Test renames must keep names unique."""
        with pytest.raises(DuplicateKeyError):
            table.rename_channels({'FL1-A': 'FL2-A'})


class TestHeader:
    """Test header keyword management."""

    def test_header_is_a_copy(self, table):
        """Test mutating the returned header has no effect."""
        table.header['FIL'] = 'changed'
        assert table.get_keyword('FIL') == 'sample.fcs'

    def test_replace_header_shared(self, table):
        """Test header replacement is seen by views."""
        view = table.subset([0])
        table.replace_header({'TOT': '6'})

        assert view.header == {'TOT': '6'}

    def test_replace_header_rejects_non_string_keys(self, table):
        """Test invalid headers leave the original intact."""
        with pytest.raises(TypeError):
            table.replace_header({1: 'x'})
        assert table.get_keyword('CYT') == 'FACSCanto'

    def test_delete_keywords(self, table):
        """Test deletion is all-or-nothing."""
        with pytest.raises(KeyError):
            table.delete_keywords(['CYT', 'MISSING'])
        assert table.get_keyword('CYT') == 'FACSCanto'

        table.delete_keywords(['CYT'])
        assert table.get_keyword('CYT') is None

    def test_rename_keywords(self, table):
        """Test keyword rename keeps values."""
        table.rename_keywords({'CYT': 'INSTRUMENT'})
        assert table.get_keyword('INSTRUMENT') == 'FACSCanto'
        assert table.get_keyword('CYT') is None

    def test_rename_keywords_collision(self, table):
        """Test renaming onto an existing keyword."""
        with pytest.raises(DuplicateKeyError):
            table.rename_keywords({'CYT': 'FIL'})

    def test_keywords_match_in_canonical_form(self, table):
        """Test '$'-prefixed and lower-case keys address the stored keyword."""
        assert table.get_keyword('$FIL') == 'sample.fcs'
        assert table.get_keyword('cyt') == 'FACSCanto'

        table.update_keywords({'$TOT': '6'})
        assert table.header['TOT'] == '6'

        table.rename_keywords({'$TOT': '$EVENTS'})
        table.delete_keywords(['$CYT'])
        assert table.header == {'FIL': 'sample.fcs', 'EVENTS': '6'}

    def test_from_array_canonical_header(self, event_values, channels):
        """Test header keys passed at construction are canonicalised."""
        table = AliasedTable.from_array(event_values, channels=channels,
                                        header={'$FIL': 'x.fcs', 'btim': '10:00'})

        assert table.header == {'FIL': 'x.fcs', 'BTIM': '10:00'}
        assert table.get_keyword('$FIL') == 'x.fcs'

    def test_replace_header_canonical_collision(self, table):
        """Test keys that collapse to one keyword are rejected."""
        with pytest.raises(DuplicateKeyError):
            table.replace_header({'$FIL': 'a.fcs', 'FIL': 'b.fcs'})
        assert table.get_keyword('FIL') == 'sample.fcs'


class TestRepr:
    """Test string representation."""

    def test_repr(self, table):
        """Test repr mentions events and channels."""
        text = repr(table)
        assert 'AliasedTable' in text
        assert 'events=6' in text
