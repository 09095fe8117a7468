"""Remote-callable documentation tools.

Each tool takes one string argument and returns a ``ToolResult``. Query
errors are turned into error results here and never propagate further;
callers tell failures apart through ``ToolResult.error_kind``.
"""
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from .bundle.errors import (
    DocumentBodyMissing,
    EmptyName,
    EmptyQuery,
    LookupIndexError,
    NameNotFound,
    QueryError,
)
from .lookup.query import QueryEngine, SearchHit

logger = logging.getLogger(__name__)

NO_MATCHES = "No matches found for your search query."

SEARCH_TOOL = "search_classes"
READ_TOOL = "read_class_docs"

ERROR_EMPTY_INPUT = "empty_input"
ERROR_NOT_FOUND = "not_found"
ERROR_BODY_MISSING = "body_missing"
ERROR_INTERNAL = "internal"


@dataclass
class ToolResult:
    text: str
    error_kind: Optional[str] = None

    @property
    def is_error(self) -> bool:
        return self.error_kind is not None


TOOL_DEFINITIONS: List[Dict[str, Any]] = [
    {
        "name": SEARCH_TOOL,
        "description": (
            "Search for API classes, interfaces, and enums by name. "
            "Returns a list of matching classes with their types."
        ),
        "inputSchema": {
            "type": "object",
            "properties": {
                "query": {
                    "type": "string",
                    "description": "Search query to match against class names",
                },
            },
            "required": ["query"],
        },
    },
    {
        "name": READ_TOOL,
        "description": (
            "Read the full documentation for a specific API class, interface, "
            "or enum. Returns the complete markdown documentation."
        ),
        "inputSchema": {
            "type": "object",
            "properties": {
                "full_class_name": {
                    "type": "string",
                    "description": "The fully-qualified class name (e.g., 'com.example.ClassName')",
                },
            },
            "required": ["full_class_name"],
        },
    },
]


def render_hits(hits: List[SearchHit]) -> str:
    """Format search hits one per line, or the no-matches sentinel."""
    if not hits:
        return NO_MATCHES
    return "\n".join(f"- {hit.name} ({hit.kind.value})" for hit in hits)


def describe_error(error: Exception) -> tuple[str, str]:
    """Map an exception to an error kind and a caller-safe message."""
    if isinstance(error, (EmptyQuery, EmptyName)):
        return ERROR_EMPTY_INPUT, str(error)
    if isinstance(error, NameNotFound):
        return ERROR_NOT_FOUND, str(error)
    if isinstance(error, DocumentBodyMissing):
        return ERROR_BODY_MISSING, str(error)
    if isinstance(error, LookupIndexError):
        return ERROR_INTERNAL, f"Documentation index unavailable: {error}"
    return ERROR_INTERNAL, "Documentation service is unavailable"


def log_failure(operation: str, argument: str, error: Exception) -> None:
    if isinstance(error, QueryError):
        logger.info(f"{operation} rejected {argument!r}: {error}")
    else:
        logger.error(f"{operation} failed for {argument!r}: {error}", exc_info=error)


def _failure(tool: str, argument: str, error: Exception) -> ToolResult:
    log_failure(tool, argument, error)
    kind, message = describe_error(error)
    return ToolResult(text=f"Error [{kind}]: {message}", error_kind=kind)


def search_classes(engine: QueryEngine, query: str) -> ToolResult:
    """Search tool: name fragment in, hit list out."""
    try:
        return ToolResult(text=render_hits(engine.search(query)))
    except Exception as e:
        return _failure(SEARCH_TOOL, query, e)


def read_class_docs(engine: QueryEngine, full_class_name: str) -> ToolResult:
    """Read tool: fully-qualified name in, documentation body out."""
    try:
        return ToolResult(text=engine.retrieve(full_class_name))
    except Exception as e:
        return _failure(READ_TOOL, full_class_name, e)


# Tool name -> (handler, argument name)
TOOL_HANDLERS: Dict[str, tuple[Callable[[QueryEngine, str], ToolResult], str]] = {
    SEARCH_TOOL: (search_classes, "query"),
    READ_TOOL: (read_class_docs, "full_class_name"),
}
