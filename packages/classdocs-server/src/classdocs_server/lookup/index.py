"""Lookup index loading and process-lifetime caching."""
import json
import logging
import threading
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Tuple

from pydantic import ValidationError

from classdocs_shared.schemas import DocumentationEntry

from ..bundle.errors import IndexCorrupt, IndexMissing, LookupIndexError

logger = logging.getLogger(__name__)


class LookupIndex:
    """Read-only mapping from fully-qualified name to documentation entry.

    Iteration follows the order of the index file. Duplicate names keep
    their first occurrence; so does the case-insensitive lookup table when
    several names fold to the same lowercase form.
    """

    def __init__(self, pairs: List[Tuple[str, DocumentationEntry]]):
        self._entries: Dict[str, DocumentationEntry] = {}
        self._folded: Dict[str, str] = {}
        self.duplicates: List[str] = []

        for name, entry in pairs:
            if name in self._entries:
                self.duplicates.append(name)
                continue
            self._entries[name] = entry
            self._folded.setdefault(name.casefold(), name)

    @classmethod
    def from_file(cls, index_file: Path) -> "LookupIndex":
        """Load an index file.

        Args:
            index_file: Path to class_lookup.json

        Returns:
            Loaded index

        Raises:
            IndexMissing: If the file does not exist
            IndexCorrupt: If the content is not a valid index
        """
        index_file = Path(index_file)
        try:
            raw = index_file.read_text(encoding="utf-8")
        except FileNotFoundError as e:
            raise IndexMissing(f"Lookup index not found: {index_file}") from e
        except (OSError, UnicodeDecodeError) as e:
            raise IndexCorrupt(f"Lookup index unreadable: {index_file}: {e}") from e

        try:
            # Keep every pair so duplicate keys resolve to the first one
            pairs = json.loads(raw, object_pairs_hook=_PairList)
        except json.JSONDecodeError as e:
            raise IndexCorrupt(f"Lookup index is not valid JSON: {e}") from e

        if not isinstance(pairs, _PairList):
            raise IndexCorrupt("Lookup index must be a JSON object")

        entries = []
        for name, data in pairs:
            if isinstance(data, _PairList):
                data = dict(data)
            try:
                entries.append((name, DocumentationEntry.model_validate(data)))
            except ValidationError as e:
                raise IndexCorrupt(f"Invalid index entry {name!r}: {e}") from e

        index = cls(entries)
        if index.duplicates:
            logger.warning(
                f"Lookup index has {len(index.duplicates)} duplicate names, "
                f"keeping first occurrence: {index.duplicates[:5]}"
            )
        return index

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, name: object) -> bool:
        return name in self._entries

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def items(self):
        return self._entries.items()

    def entries(self):
        return self._entries.values()

    def get(self, name: str) -> Optional[DocumentationEntry]:
        return self._entries.get(name)

    def get_folded(self, name: str) -> Optional[DocumentationEntry]:
        """Case-insensitive lookup, first name in file order wins."""
        key = self._folded.get(name.casefold())
        return self._entries[key] if key is not None else None


class _PairList(list):
    """JSON object decoded as an ordered list of (key, value) pairs."""


class IndexCell:
    """Loads the lookup index at most once per process.

    Concurrent first callers block on a lock and all observe the same
    outcome. Later calls return the cached index, or re-raise the cached
    load error, without touching the disk.
    """

    def __init__(self, index_file: Path):
        self.index_file = Path(index_file)
        self._lock = threading.Lock()
        self._index: Optional[LookupIndex] = None
        self._error: Optional[LookupIndexError] = None

    @property
    def is_loaded(self) -> bool:
        return self._index is not None

    def get(self) -> LookupIndex:
        """Return the index, loading it on first use.

        Raises:
            IndexMissing: If the index file is absent
            IndexCorrupt: If the index file is invalid
        """
        if self._index is None and self._error is None:
            with self._lock:
                if self._index is None and self._error is None:
                    self._load()

        if self._error is not None:
            raise self._error
        return self._index

    def _load(self) -> None:
        try:
            self._index = LookupIndex.from_file(self.index_file)
        except LookupIndexError as e:
            logger.error(f"Failed to load lookup index {self.index_file}: {e}")
            self._error = e
            return
        logger.info(f"Lookup index loaded: {len(self._index)} classes")
