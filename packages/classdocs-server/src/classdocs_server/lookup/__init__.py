"""In-memory lookup index and queries."""
from .index import IndexCell, LookupIndex
from .query import MAX_SEARCH_RESULTS, QueryEngine, SearchHit

__all__ = ["IndexCell", "LookupIndex", "QueryEngine", "SearchHit", "MAX_SEARCH_RESULTS"]
