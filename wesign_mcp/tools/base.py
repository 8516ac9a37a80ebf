from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Tuple, Type

from pydantic import BaseModel, ValidationError

from ..client import NotAuthenticatedError, WeSignClient, WeSignError
from ..errors import ToolNotFoundError, ToolValidationError

logger = logging.getLogger(__name__)


def _format_validation_error(e: ValidationError) -> str:
    parts: List[str] = []
    for err in e.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()) if p != "__root__")
        msg = str(err.get("msg", "invalid value"))
        if msg.startswith("Value error, "):
            msg = msg[len("Value error, "):]
        parts.append(f"{loc}: {msg}" if loc else msg)
    return "Invalid arguments: " + "; ".join(parts)


def validate_input(model: Type[BaseModel], arguments: Optional[Dict[str, Any]]) -> Any:
    if arguments is not None and not isinstance(arguments, dict):
        raise ToolValidationError("Tool arguments must be an object")
    try:
        return model.model_validate(arguments or {})
    except ValidationError as e:
        raise ToolValidationError(_format_validation_error(e)) from e


# -------------------------
# inputSchema builders
# -------------------------


def schema(properties: Optional[Dict[str, Any]] = None, required: Iterable[str] = ()) -> Dict[str, Any]:
    out: Dict[str, Any] = {"type": "object", "properties": properties or {}}
    req = list(required)
    if req:
        out["required"] = req
    return out


def string(description: str, **extra: Any) -> Dict[str, Any]:
    return {"type": "string", "description": description, **extra}


def number(description: str, **extra: Any) -> Dict[str, Any]:
    return {"type": "number", "description": description, **extra}


def integer(description: str, **extra: Any) -> Dict[str, Any]:
    return {"type": "integer", "description": description, **extra}


def boolean(description: str, **extra: Any) -> Dict[str, Any]:
    return {"type": "boolean", "description": description, **extra}


def array(items: Dict[str, Any], description: str, **extra: Any) -> Dict[str, Any]:
    return {"type": "array", "items": items, "description": description, **extra}


# -------------------------
# Tool modules
# -------------------------


@dataclass(frozen=True)
class ToolSpec:
    model: Type[BaseModel]
    handler: str
    # Used in "Failed to <action>: ..." when the upstream call fails.
    action: Optional[str]
    requires_auth: bool = True


class ToolModule:
    """A catalog of tool descriptors plus the handlers behind them.

    Subclasses declare ``TOOLS`` (what ``tools/list`` returns), ``PREFIXES``
    (name prefixes routed here) and ``SPECS`` (name -> input model + handler).
    """

    name: str = ""
    TOOLS: List[Dict[str, Any]] = []
    PREFIXES: Tuple[str, ...] = ()
    SPECS: Dict[str, ToolSpec] = {}

    def __init__(self, client: WeSignClient) -> None:
        self.client = client

    def handles(self, name: str) -> bool:
        return name in self.SPECS

    async def execute(self, name: str, arguments: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        spec = self.SPECS.get(name)
        if spec is None:
            raise ToolNotFoundError(f"Unknown {self.name} tool: {name}")

        if spec.requires_auth and not self.client.is_authenticated():
            raise NotAuthenticatedError()

        inp = validate_input(spec.model, arguments)
        handler: Callable[[Any], Awaitable[Dict[str, Any]]] = getattr(self, spec.handler)

        try:
            return await handler(inp)
        except WeSignError as e:
            logger.warning("%s failed: %s", name, e)
            if spec.action is None or e.action is not None:
                raise
            raise e.with_context(spec.action) from e
