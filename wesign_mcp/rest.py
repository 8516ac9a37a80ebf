from __future__ import annotations

from typing import Any

import structlog
from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from .client import WeSignAuthError, WeSignError
from .errors import ToolNotFoundError, ToolValidationError, WorkflowStepError
from .tools import WeSignGateway

log = structlog.get_logger()

router = APIRouter()


def status_for(exc: BaseException) -> int:
    if isinstance(exc, ToolValidationError):
        return 400
    if isinstance(exc, WeSignAuthError):
        return 401
    if isinstance(exc, ToolNotFoundError):
        return 404
    return 500


@router.post("/execute")
async def execute(request: Request) -> JSONResponse:
    """Plain REST front door: ``{"tool": ..., "parameters": {...}}`` -> ``{"success", "data"|"error"}``."""
    gateway: WeSignGateway = request.app.state.gateway

    try:
        payload: Any = await request.json()
    except ValueError:
        payload = None
    if not isinstance(payload, dict):
        return JSONResponse({"success": False, "error": "Request body must be a JSON object"}, status_code=400)

    tool = payload.get("tool")
    if not isinstance(tool, str) or not tool.strip():
        return JSONResponse({"success": False, "error": "Missing required field: tool"}, status_code=400)

    parameters = payload.get("parameters") or {}
    if not isinstance(parameters, dict):
        return JSONResponse({"success": False, "error": "parameters must be an object"}, status_code=400)

    if not gateway.is_authenticated():
        await gateway.ensure_session(request.app.state.settings)

    try:
        data = await gateway.call_tool(tool, parameters)
    except (ToolValidationError, ToolNotFoundError, WeSignError, WorkflowStepError) as e:
        status = status_for(e)
        log.warning("rest.execute failed", tool=tool, status=status, error=str(e))
        return JSONResponse({"success": False, "error": str(e)}, status_code=status)
    except Exception as e:
        log.exception("rest.execute crashed", tool=tool, error=str(e))
        return JSONResponse({"success": False, "error": "Internal server error"}, status_code=500)

    return JSONResponse({"success": True, "data": data}, status_code=200)
