from __future__ import annotations

import asyncio
import json
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import structlog
from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sse_starlette.sse import EventSourceResponse

from . import __version__
from .client import WeSignError
from .config import Settings, get_settings
from .errors import ResourceNotFoundError, ToolNotFoundError, ToolValidationError, WorkflowStepError
from .logging_config import configure_logging
from .resources import get_resource, list_resources, read_resource
from .tools import MCP_TOOL_NAMES, SERVER_NAME, WeSignGateway, get_gateway, tool_result_text

PROTOCOL_VERSION = "2024-11-05"

INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603

log = structlog.get_logger()


class SessionManager:
    def __init__(self) -> None:
        self._queues: Dict[str, asyncio.Queue[Dict[str, Any]]] = {}
        self._lock = asyncio.Lock()

    async def get_queue(self, session_id: str) -> asyncio.Queue[Dict[str, Any]]:
        async with self._lock:
            q = self._queues.get(session_id)
            if q is None:
                q = asyncio.Queue()
                self._queues[session_id] = q
            return q

    async def get_existing_queue(self, session_id: str) -> Optional[asyncio.Queue[Dict[str, Any]]]:
        async with self._lock:
            return self._queues.get(session_id)

    async def send(self, session_id: str, message: Dict[str, Any]) -> None:
        q = await self.get_queue(session_id)
        await q.put(message)

    async def close(self, session_id: str) -> None:
        async with self._lock:
            self._queues.pop(session_id, None)

    def count(self) -> int:
        return len(self._queues)


sessions = SessionManager()


def _cors_origins(settings: Settings) -> list[str]:
    return [o.strip() for o in (settings.cors_origin or "*").split(",") if o.strip()] or ["*"]


def create_app(
    gateway: Optional[WeSignGateway] = None,
    settings: Optional[Settings] = None,
    session_manager: Optional[SessionManager] = None,
) -> FastAPI:
    configure_logging()
    s = settings or get_settings()

    app = FastAPI(title=SERVER_NAME, version=__version__)
    app.state.gateway = gateway or get_gateway()
    app.state.settings = s
    app.state.sessions = session_manager or sessions

    origins = _cors_origins(s)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=origins != ["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    if s.api_key:

        @app.middleware("http")
        async def require_api_key(request: Request, call_next):
            if request.url.path == "/health" or request.method == "OPTIONS":
                return await call_next(request)
            if request.headers.get("x-api-key") != s.api_key:
                log.warning("http.api_key_rejected", path=request.url.path)
                return JSONResponse({"success": False, "error": "Invalid or missing API key"}, status_code=401)
            return await call_next(request)

    # ------------------
    # REST wrapper endpoint
    # ------------------
    from .rest import router as rest_router

    app.include_router(rest_router)

    @app.on_event("startup")
    async def _startup_login() -> None:
        gw: WeSignGateway = app.state.gateway
        ok = await gw.ensure_session(s)
        log.info(
            "server startup",
            version=__version__,
            tools=len(gw.list_tools()),
            credentials_configured=s.has_credentials,
            authenticated=ok,
        )

    @app.on_event("shutdown")
    async def _close_upstream() -> None:
        await app.state.gateway.aclose()
        log.info("server shutdown")

    @app.get("/health")
    async def health() -> Dict[str, Any]:
        return {
            "status": "healthy",
            "version": __version__,
            "authenticated": app.state.gateway.is_authenticated(),
            "protocol": PROTOCOL_VERSION,
            "activeSessions": app.state.sessions.count(),
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    @app.get("/")
    async def root() -> Dict[str, Any]:
        return {
            "name": SERVER_NAME,
            "version": __version__,
            "protocol": PROTOCOL_VERSION,
            "tools": len(MCP_TOOL_NAMES),
            "endpoints": {
                "health": "GET /health",
                "tools": "GET /tools",
                "jsonrpc": "POST /mcp",
                "sse": "GET /sse",
                "messages": "POST /messages",
                "rest": "POST /execute",
            },
        }

    @app.get("/tools")
    async def tools() -> Dict[str, Any]:
        catalog = app.state.gateway.list_tools()
        return {"success": True, "count": len(catalog), "tools": catalog}

    # ------------------
    # MCP JSON-RPC over plain HTTP
    # ------------------

    @app.post("/mcp")
    async def mcp(request: Request):
        try:
            payload = await request.json()
        except ValueError:
            payload = None

        if not isinstance(payload, dict):
            return JSONResponse(_error(None, INVALID_REQUEST, "Invalid Request: body must be a JSON object"))

        response = await _build_jsonrpc_response(app.state.gateway, payload)
        if response is None:
            return JSONResponse({"status": "ok"}, status_code=200)
        return JSONResponse(response, status_code=200)

    # ------------------
    # MCP over SSE transport
    # ------------------

    @app.get("/sse")
    async def sse(session_id: Optional[str] = Query(default=None)):
        sid = session_id or str(uuid.uuid4())
        manager: SessionManager = app.state.sessions
        queue = await manager.get_queue(sid)
        log.info("sse.connected", session_id=sid)

        async def event_generator():
            try:
                # Tell the client where to POST messages.
                yield {"event": "endpoint", "data": f"/messages?session_id={sid}"}

                while True:
                    try:
                        msg = await asyncio.wait_for(queue.get(), timeout=15.0)
                        yield {"event": "message", "data": json.dumps(msg, ensure_ascii=False)}
                    except asyncio.TimeoutError:
                        # keep-alive
                        yield {"event": "ping", "data": "keepalive"}
            finally:
                await manager.close(sid)
                log.info("sse.disconnected", session_id=sid)

        return EventSourceResponse(event_generator(), headers={"X-Session-Id": sid})

    @app.post("/messages")
    async def messages(request: Request, session_id: Optional[str] = Query(default=None)):
        sid = request.headers.get("x-session-id") or session_id
        if not sid:
            raise HTTPException(status_code=400, detail="Missing session id")

        manager: SessionManager = app.state.sessions
        if await manager.get_existing_queue(sid) is None:
            raise HTTPException(status_code=404, detail=f"Unknown session: {sid}")

        try:
            payload = await request.json()
        except ValueError:
            payload = None

        if not isinstance(payload, dict):
            response: Optional[Dict[str, Any]] = _error(
                None, INVALID_REQUEST, "Invalid Request: body must be a JSON object"
            )
        else:
            response = await _build_jsonrpc_response(app.state.gateway, payload)

        # Notifications (no id) do not get JSON-RPC responses.
        if response is None:
            return JSONResponse({"status": "ok"}, status_code=200)

        await manager.send(sid, response)
        return JSONResponse(response, status_code=200)

    return app


def _error(rpc_id: Any, code: int, message: str) -> Dict[str, Any]:
    return {"jsonrpc": "2.0", "id": rpc_id, "error": {"code": code, "message": message}}


def _result(rpc_id: Any, result: Dict[str, Any]) -> Dict[str, Any]:
    return {"jsonrpc": "2.0", "id": rpc_id, "result": result}


async def _build_jsonrpc_response(gateway: WeSignGateway, msg: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """Build a JSON-RPC response for an incoming message.

    Returns:
      - dict: JSON-RPC response object when the request has an `id`
      - None: for notifications (no `id`) and `initialized`
    """

    method = msg.get("method")
    rpc_id = msg.get("id", None)
    expects_response = rpc_id is not None

    if msg.get("jsonrpc") != "2.0":
        return _error(rpc_id, INVALID_REQUEST, "Invalid Request: jsonrpc must be '2.0'")

    if not isinstance(method, str) or not method.strip():
        if not expects_response:
            return None
        return _error(rpc_id, INVALID_REQUEST, "Invalid Request: missing method")

    params = msg.get("params") or {}

    try:
        if not isinstance(params, dict):
            raise ToolValidationError("params must be an object")

        if method == "initialize":
            response = _result(
                rpc_id,
                {
                    "protocolVersion": PROTOCOL_VERSION,
                    "capabilities": {"tools": {}, "resources": {}},
                    "serverInfo": {"name": SERVER_NAME, "version": __version__},
                },
            )

        elif method in ("initialized", "notifications/initialized"):
            return None

        elif method == "ping":
            response = _result(rpc_id, {})

        elif method == "tools/list":
            response = _result(rpc_id, {"tools": gateway.list_tools()})

        elif method == "tools/call":
            tool_name = params.get("name")
            tool_args = params.get("arguments") or {}

            if not isinstance(tool_name, str) or not tool_name.strip():
                raise ToolValidationError("tools/call missing params.name")
            if not isinstance(tool_args, dict):
                raise ToolValidationError("tools/call params.arguments must be an object")

            result = await gateway.call_tool(tool_name, tool_args)
            response = _result(rpc_id, {"content": [{"type": "text", "text": tool_result_text(result)}]})

        elif method == "resources/list":
            response = _result(rpc_id, {"resources": list_resources()})

        elif method == "resources/read":
            uri = params.get("uri")
            if not isinstance(uri, str) or not uri.strip():
                raise ToolValidationError("resources/read missing params.uri")
            resource = get_resource(uri)
            text = await read_resource(uri)
            response = _result(
                rpc_id, {"contents": [{"uri": uri, "mimeType": resource.mime_type, "text": text}]}
            )

        else:
            response = _error(rpc_id, METHOD_NOT_FOUND, f"Method not found: {method}")

    except ToolNotFoundError as e:
        response = _error(rpc_id, METHOD_NOT_FOUND, str(e))
    except (ToolValidationError, ResourceNotFoundError) as e:
        response = _error(rpc_id, INVALID_PARAMS, str(e))
    except (WeSignError, WorkflowStepError) as e:
        log.warning("jsonrpc tool error", method=method, error=str(e))
        response = _error(rpc_id, INTERNAL_ERROR, str(e))
    except Exception as e:
        log.exception("jsonrpc handler error", method=method, error=str(e))
        response = _error(rpc_id, INTERNAL_ERROR, str(e))

    if not expects_response:
        return None
    return response


app = create_app()
