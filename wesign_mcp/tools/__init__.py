from __future__ import annotations

"""Tool package for the WeSign MCP gateway.

Each module owns a slice of the catalog (descriptors + handlers). The
``WeSignGateway`` below ties them to one shared ``WeSignClient`` and is what
every front door (stdio, JSON-RPC, SSE, REST) calls into.
"""

import json
from functools import lru_cache
from typing import Any, Dict, List, Optional, Tuple

import structlog

from ..client import WeSignClient, WeSignError
from ..config import Settings, get_settings
from ..errors import ToolNotFoundError
from ..schemas import to_jsonable
from .auth import AuthTools
from .base import ToolModule
from .contacts import ContactTools
from .documents import DocumentTools
from .multi_party import MultiPartyTools
from .signing import SigningTools
from .smart_fields import SmartFieldTools
from .templates import TemplateAdminTools

log = structlog.get_logger()

SERVER_NAME = "wesign-mcp-gateway"

MODULE_CLASSES = (
    AuthTools,
    DocumentTools,
    SigningTools,
    TemplateAdminTools,
    MultiPartyTools,
    ContactTools,
    SmartFieldTools,
)

# Canonical list of MCP tool names exposed by this server.
MCP_TOOL_NAMES = tuple(t["name"] for cls in MODULE_CLASSES for t in cls.TOOLS)


def tool_result_text(result: Any) -> str:
    return json.dumps(to_jsonable(result), ensure_ascii=False, indent=2, default=str)


class WeSignGateway:
    def __init__(self, client: WeSignClient) -> None:
        self.client = client
        self.modules: List[ToolModule] = [cls(client) for cls in MODULE_CLASSES]
        # Longest prefix first so "wesign_add_signature_preset" beats "wesign_add_signature".
        self._routes: List[Tuple[str, ToolModule]] = sorted(
            ((p, m) for m in self.modules for p in m.PREFIXES),
            key=lambda item: len(item[0]),
            reverse=True,
        )

    def list_tools(self) -> List[Dict[str, Any]]:
        return [t for m in self.modules for t in m.TOOLS]

    def resolve(self, name: str) -> ToolModule:
        for prefix, module in self._routes:
            if name.startswith(prefix):
                if module.handles(name):
                    return module
                break
        raise ToolNotFoundError(f"Unknown tool: {name}")

    async def call_tool(self, name: str, arguments: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        module = self.resolve(name)
        log.info("tool.call", tool=name, module=module.name)
        return await module.execute(name, arguments)

    def is_authenticated(self) -> bool:
        return self.client.is_authenticated()

    async def ensure_session(self, settings: Optional[Settings] = None) -> bool:
        """Log in with configured credentials if no session is held.

        Failures are logged, not raised; the next tool call reports
        "Not authenticated" instead.
        """
        if self.client.is_authenticated():
            return True
        s = settings or get_settings()
        if not s.has_credentials:
            return False
        try:
            result = await self.client.login(s.wesign_email, s.wesign_password)
        except WeSignError as e:
            log.warning("wesign.auto_login_failed", error=str(e))
            return False
        if not result.success:
            log.warning("wesign.auto_login_failed", error=result.message)
        else:
            log.info("wesign.auto_login_ok", session_type="persistent" if s.wesign_persistent else "session")
        return result.success

    async def aclose(self) -> None:
        await self.client.aclose()


def build_gateway(settings: Optional[Settings] = None, **client_kwargs: Any) -> WeSignGateway:
    s = settings or get_settings()
    client = WeSignClient(s.wesign_api_url, timeout_s=s.request_timeout_s, **client_kwargs)
    return WeSignGateway(client)


@lru_cache(maxsize=1)
def get_gateway() -> WeSignGateway:
    return build_gateway()


__all__ = [
    "AuthTools",
    "ContactTools",
    "DocumentTools",
    "MultiPartyTools",
    "SigningTools",
    "SmartFieldTools",
    "TemplateAdminTools",
    "ToolModule",
    "WeSignGateway",
    "build_gateway",
    "get_gateway",
    "MCP_TOOL_NAMES",
    "SERVER_NAME",
    "tool_result_text",
]
