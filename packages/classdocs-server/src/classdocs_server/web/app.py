"""FastAPI application exposing the documentation tools."""
import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Union

from fastapi import FastAPI, HTTPException, Request, Response
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from classdocs_shared.schemas import ServerSettings

from .. import __version__
from ..bundle.errors import LookupIndexError
from ..bundle.store import BundleStore
from ..lookup.index import IndexCell
from ..lookup.query import QueryEngine
from ..tools import (
    ERROR_BODY_MISSING,
    ERROR_EMPTY_INPUT,
    ERROR_NOT_FOUND,
    TOOL_DEFINITIONS,
    TOOL_HANDLERS,
    describe_error,
    log_failure,
    render_hits,
)

logger = logging.getLogger(__name__)

SERVICE_NAME = "classdocs-server"
PROTOCOL_VERSION = "2024-11-05"

# JSON-RPC 2.0 error codes
PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602

# A listed class whose file is gone is still a 404 for REST callers
_STATUS_BY_ERROR = {ERROR_EMPTY_INPUT: 400, ERROR_NOT_FOUND: 404, ERROR_BODY_MISSING: 404}


class SearchRequest(BaseModel):
    """Search request model."""

    query: str


class DocsRequest(BaseModel):
    """Documentation read request model."""

    full_class_name: str


class AppState:
    """Components owned by one application instance."""

    def __init__(self, settings: ServerSettings, engine: Optional[QueryEngine] = None):
        self.settings = settings
        if engine is None:
            store = BundleStore(settings.docs_dir)
            engine = QueryEngine(
                IndexCell(store.index_file),
                store,
                max_results=settings.max_search_results,
            )
        self.engine = engine


def _http_error(operation: str, argument: str, error: Exception) -> HTTPException:
    log_failure(operation, argument, error)
    kind, message = describe_error(error)
    if kind in _STATUS_BY_ERROR:
        status = _STATUS_BY_ERROR[kind]
    elif isinstance(error, LookupIndexError):
        status = 503
    else:
        status = 500
    return HTTPException(status_code=status, detail={"error": kind, "message": message})


def _rpc_result(request_id: Any, result: Dict[str, Any]) -> Dict[str, Any]:
    return {"jsonrpc": "2.0", "id": request_id, "result": result}


def _rpc_error(request_id: Any, code: int, message: str) -> Dict[str, Any]:
    return {
        "jsonrpc": "2.0",
        "id": request_id,
        "error": {"code": code, "message": message},
    }


def create_app(
    settings: Optional[ServerSettings] = None,
    engine: Optional[QueryEngine] = None,
) -> FastAPI:
    """Create FastAPI application.

    Args:
        settings: Server settings
        engine: Query engine, built from settings.docs_dir if omitted

    Returns:
        FastAPI app
    """
    state = AppState(settings or ServerSettings(), engine)
    app = FastAPI(title="classdocs", version=__version__)
    app.state.classdocs = state

    @app.get("/health")
    async def health():
        """Health check endpoint."""
        return {
            "status": "healthy",
            "service": SERVICE_NAME,
            "version": __version__,
            "docs_dir": str(state.engine.store.root),
            "index_loaded": state.engine.cell.is_loaded,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    @app.post("/api/search")
    def search(request: SearchRequest):
        """Search class names."""
        try:
            hits = state.engine.search(request.query)
        except Exception as e:
            raise _http_error("search", request.query, e) from e
        return {
            "results": [{"name": h.name, "kind": h.kind.value} for h in hits],
            "text": render_hits(hits),
        }

    @app.post("/api/docs")
    def read_docs(request: DocsRequest):
        """Read documentation of one class."""
        try:
            content = state.engine.retrieve(request.full_class_name)
        except Exception as e:
            raise _http_error("read_docs", request.full_class_name, e) from e
        return {"name": request.full_class_name.strip(), "content": content}

    @app.post("/mcp")
    async def mcp(request: Request):
        """JSON-RPC 2.0 endpoint for tool discovery and invocation."""
        try:
            payload = json.loads(await request.body())
        except (json.JSONDecodeError, UnicodeDecodeError):
            return JSONResponse(_rpc_error(None, PARSE_ERROR, "Parse error"))

        if isinstance(payload, list):
            if not payload:
                return JSONResponse(_rpc_error(None, INVALID_REQUEST, "Invalid Request"))
            replies = [r for r in (_dispatch(state, item) for item in payload) if r]
            if not replies:
                return Response(status_code=202)
            return JSONResponse(replies)

        reply = _dispatch(state, payload)
        if reply is None:
            return Response(status_code=202)
        return JSONResponse(reply)

    return app


def _dispatch(state: AppState, message: Any) -> Optional[Dict[str, Any]]:
    """Handle one JSON-RPC message; notifications return None."""
    if not isinstance(message, dict) or message.get("jsonrpc") != "2.0":
        return _rpc_error(None, INVALID_REQUEST, "Invalid Request")

    method = message.get("method")
    request_id = message.get("id")
    params = message.get("params") or {}
    is_notification = "id" not in message

    if not isinstance(method, str):
        return _rpc_error(request_id, INVALID_REQUEST, "Invalid Request")

    if method.startswith("notifications/"):
        logger.debug(f"MCP notification: {method}")
        return None

    if method == "initialize":
        client = params.get("clientInfo") if isinstance(params, dict) else None
        client_name = client.get("name", "unknown") if isinstance(client, dict) else "unknown"
        logger.info(f"Initializing MCP session with client: {client_name}")
        result = {
            "protocolVersion": PROTOCOL_VERSION,
            "capabilities": {"tools": {}},
            "serverInfo": {"name": SERVICE_NAME, "version": __version__},
        }
    elif method == "ping":
        result = {}
    elif method == "tools/list":
        result = {"tools": TOOL_DEFINITIONS}
    elif method == "tools/call":
        outcome = _call_tool(state, params)
        if isinstance(outcome, str):
            reply = _rpc_error(request_id, INVALID_PARAMS, outcome)
        else:
            reply = _rpc_result(request_id, outcome)
        return None if is_notification else reply
    else:
        logger.debug(f"Unknown MCP method: {method}")
        reply = _rpc_error(request_id, METHOD_NOT_FOUND, f"Method not found: {method}")
        return None if is_notification else reply

    # Notifications never get a reply, not even an error
    if is_notification:
        return None
    return _rpc_result(request_id, result)


def _call_tool(state: AppState, params: Any) -> Union[Dict[str, Any], str]:
    """Run a tool; a string return is an invalid-params message."""
    if not isinstance(params, dict):
        return "params must be an object"

    name = params.get("name")
    if not isinstance(name, str) or name not in TOOL_HANDLERS:
        return f"Unknown tool: {name}"

    handler, arg_name = TOOL_HANDLERS[name]
    arguments = params.get("arguments") or {}
    value = arguments.get(arg_name) if isinstance(arguments, dict) else None
    if not isinstance(value, str):
        return f"Tool {name} requires a string argument '{arg_name}'"

    result = handler(state.engine, value)
    return {
        "content": [{"type": "text", "text": result.text}],
        "isError": result.is_error,
    }
