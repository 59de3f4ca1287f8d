"""
TableLoader - Config-driven loading of tables and collections

Selects a reader by file suffix (or by source type for in-memory records),
turns the RawRecord into an AliasedTable over a freshly allocated store,
and assembles collections from several sources.

Design:
- Depends only on: ConfigManager and the reader interface
- Readers are pluggable via register_reader()
- Every load allocates a new BackingStore; loading never aliases a live table
"""

import logging
from pathlib import Path
from typing import Dict, Iterable, Mapping, Optional, Union

from .aliased_collection import AliasedCollection
from .aliased_table import AliasedTable
from .config_manager import ConfigManager
from .exceptions import FormatError
from ..readers.base import BaseReader, canonical_keyword
from ..readers.delimited import CSVReader
from ..readers.fcs import FCSReader
from ..readers.record import RecordReader

logger = logging.getLogger(__name__)

Source = Union[str, Path, Mapping]


class TableLoader:
    """Loader for AliasedTables and AliasedCollections.

    Example:
        >>> loader = TableLoader(ConfigManager('config'))
        >>> table = loader.load('data/sample_01.fcs')
        >>> cs = loader.load_collection(['data/sample_01.fcs', 'data/sample_02.fcs'])

        >>> # Plugin registration
        >>> loader.register_reader('.lmd', LMDReader())
    """

    def __init__(self, config_manager: Optional[ConfigManager] = None):
        """Initialize TableLoader.

        Args:
            config_manager: Source of loading settings (default: ConfigManager('config'))
        """
        self._config = config_manager if config_manager is not None else ConfigManager()
        self._dtype = self._config.get_setting('loading.dtype', 'float64')
        self._ignore_nonfinite = bool(self._config.get_setting('ranges.ignore_nonfinite', True))
        csv_sep = self._config.get_setting('loading.csv_sep', ',')

        # Register core readers
        self._readers: Dict[str, BaseReader] = {
            '.fcs': FCSReader(),
            '.csv': CSVReader(sep=csv_sep),
            '.tsv': CSVReader(sep='\t'),
            '.txt': CSVReader(sep='\t'),
        }
        self._record_reader = RecordReader()

    def register_reader(self, suffix: str, reader: BaseReader):
        """Register a reader for a file suffix (e.g. '.lmd').

        Args:
            suffix: File suffix, with or without the leading dot
            reader: Reader instance implementing BaseReader
        """
        if not suffix.startswith('.'):
            suffix = '.' + suffix
        self._readers[suffix.lower()] = reader

    def list_suffixes(self):
        """List the file suffixes with a registered reader."""
        return sorted(self._readers)

    def load(self, source: Source) -> AliasedTable:
        """Load a single source into a new table.

        Args:
            source: File path, or a mapping accepted by RecordReader

        Returns:
            AliasedTable over a fresh BackingStore

        Raises:
            FormatError: If the source is malformed or has no registered reader
            FileNotFoundError: If a file path does not exist
        """
        if isinstance(source, Mapping):
            record = self._record_reader.read(source)
            label = 'record'
        else:
            path = Path(source)
            suffix = path.suffix.lower()
            if suffix not in self._readers:
                raise FormatError(
                    f"No reader registered for '{suffix}'. "
                    f"Available suffixes: {self.list_suffixes()}"
                )
            record = self._readers[suffix].read(path)
            label = path.name

        try:
            table = AliasedTable.from_array(
                record.values,
                channels=record.channels,
                markers=record.markers,
                ranges=record.ranges,
                header=record.header,
                dtype=self._dtype,
                ignore_nonfinite=self._ignore_nonfinite,
                source=label
            )
        except ValueError as e:
            raise FormatError(f"Invalid event data in {label}: {e}") from e

        logger.debug(f"Loaded {table.shape} from {label}")
        return table

    def load_collection(
        self,
        sources: Union[Iterable[Source], Mapping[str, Source]]
    ) -> AliasedCollection:
        """Load several sources into a collection.

        Args:
            sources: Either a mapping of sample name -> source, or an iterable
                of file paths named by the configured header keyword
                (loading.sample_name_keyword, default $FIL) or their file name

        Returns:
            AliasedCollection in the order the sources were given

        Raises:
            DuplicateKeyError: If two sources resolve to the same sample name
        """
        collection = AliasedCollection()

        if isinstance(sources, Mapping):
            for name, source in sources.items():
                collection.add_member(str(name), self.load(source))
        else:
            keyword = canonical_keyword(
                self._config.get_setting('loading.sample_name_keyword', '$FIL')
            )
            for source in sources:
                table = self.load(source)
                name = table.get_keyword(keyword)
                if not name:
                    if isinstance(source, Mapping):
                        raise ValueError(
                            f"Record source has no {keyword} keyword; "
                            f"pass a mapping of sample name -> source instead"
                        )
                    name = Path(source).name
                collection.add_member(str(name), table)

        logger.info(f"Loaded collection of {len(collection)} samples")
        return collection


def load(source: Source, config_path: str = 'config') -> AliasedTable:
    """Load a single source with settings from config_path."""
    return TableLoader(ConfigManager(config_path)).load(source)


def load_collection(sources, config_path: str = 'config') -> AliasedCollection:
    """Load several sources into a collection with settings from config_path."""
    return TableLoader(ConfigManager(config_path)).load_collection(sources)
