"""Name search and documentation retrieval over the lookup index."""
import logging
from dataclasses import dataclass
from typing import List

from classdocs_shared.schemas import EntryKind

from ..bundle.errors import DocumentBodyMissing, EmptyName, EmptyQuery, NameNotFound
from ..bundle.store import BundleStore
from .index import IndexCell

logger = logging.getLogger(__name__)

MAX_SEARCH_RESULTS = 25


@dataclass(frozen=True)
class SearchHit:
    name: str
    kind: EntryKind


class QueryEngine:
    """Stateless queries against a shared, lazily loaded index."""

    def __init__(
        self,
        cell: IndexCell,
        store: BundleStore,
        max_results: int = MAX_SEARCH_RESULTS,
    ):
        """Initialize engine.

        Args:
            cell: Index cell shared by all queries
            store: Store holding the documentation bodies
            max_results: Cap on search results
        """
        self.cell = cell
        self.store = store
        self.max_results = max_results

    def search(self, query: str) -> List[SearchHit]:
        """Case-insensitive substring search over class names.

        Hits sharing a documentation file are reported once, under the
        first name in index order. Results past ``max_results`` are dropped.

        Args:
            query: Name fragment

        Returns:
            Matching names with their kinds, in index order

        Raises:
            EmptyQuery: If the query is blank
            LookupIndexError: If the index cannot be loaded
        """
        needle = query.strip().casefold()
        if not needle:
            raise EmptyQuery("Search query cannot be empty")

        index = self.cell.get()
        hits: List[SearchHit] = []
        seen_paths = set()

        for name, entry in index.items():
            if needle not in name.casefold() or entry.relative_path in seen_paths:
                continue
            seen_paths.add(entry.relative_path)
            hits.append(SearchHit(name=entry.full_name, kind=entry.kind))
            if len(hits) >= self.max_results:
                break

        logger.info(f"Class search for {needle!r} returned {len(hits)} results")
        return hits

    def retrieve(self, full_class_name: str) -> str:
        """Read the documentation of one class.

        Tries an exact name match first, then a case-insensitive one.

        Args:
            full_class_name: Fully-qualified class name

        Returns:
            Documentation body, unmodified

        Raises:
            EmptyName: If the name is blank
            NameNotFound: If no entry matches
            DocumentBodyMissing: If the entry's file is missing or unreadable
            LookupIndexError: If the index cannot be loaded
        """
        name = full_class_name.strip()
        if not name:
            raise EmptyName("Class name cannot be empty")

        index = self.cell.get()
        entry = index.get(name) or index.get_folded(name)
        if entry is None:
            raise NameNotFound(f'Class "{name}" not found in documentation')

        try:
            content = self.store.read_document(entry.relative_path)
        except (FileNotFoundError, IsADirectoryError, NotADirectoryError) as e:
            raise DocumentBodyMissing(
                f'Documentation file for "{entry.full_name}" is missing: '
                f"{entry.relative_path}"
            ) from e
        except (PermissionError, UnicodeDecodeError) as e:
            raise DocumentBodyMissing(
                f'Documentation file for "{entry.full_name}" is unreadable: {e}'
            ) from e

        logger.info(
            f"Read documentation for {entry.full_name} "
            f"({entry.kind.value}, {entry.relative_path})"
        )
        return content
