from __future__ import annotations

"""MCP over stdio, for desktop clients that spawn the gateway as a subprocess."""

import asyncio
from typing import Any, Dict, Iterable, List, Optional

import mcp.server.stdio
import mcp.types as types
import structlog
from mcp.server import NotificationOptions, Server
from mcp.server.lowlevel.helper_types import ReadResourceContents
from mcp.server.models import InitializationOptions
from mcp.shared.exceptions import McpError

from . import __version__
from .config import get_settings
from .errors import ResourceNotFoundError, ToolNotFoundError
from .logging_config import configure_logging
from .resources import RESOURCES, get_resource, read_resource
from .tools import SERVER_NAME, WeSignGateway, get_gateway, tool_result_text

log = structlog.get_logger()


def list_tool_definitions(gateway: WeSignGateway) -> List[types.Tool]:
    return [
        types.Tool(name=t["name"], description=t["description"], inputSchema=t["inputSchema"])
        for t in gateway.list_tools()
    ]


async def call_tool_text(gateway: WeSignGateway, name: str, arguments: Optional[Dict[str, Any]]) -> str:
    """Run a tool and render its result as JSON text; failures become ``McpError``."""
    try:
        result = await gateway.call_tool(name, arguments or {})
    except ToolNotFoundError as e:
        raise McpError(types.ErrorData(code=types.METHOD_NOT_FOUND, message=str(e))) from e
    except Exception as e:
        log.warning("stdio.tool_failed", tool=name, error=str(e))
        raise McpError(types.ErrorData(code=types.INTERNAL_ERROR, message=f"Tool execution failed: {e}")) from e
    return tool_result_text(result)


def build_server(gateway: WeSignGateway) -> Server:
    server = Server(SERVER_NAME)

    @server.list_tools()
    async def handle_list_tools() -> List[types.Tool]:
        return list_tool_definitions(gateway)

    @server.call_tool()
    async def handle_call_tool(name: str, arguments: Optional[Dict[str, Any]]) -> List[types.TextContent]:
        text = await call_tool_text(gateway, name, arguments)
        return [types.TextContent(type="text", text=text)]

    @server.list_resources()
    async def handle_list_resources() -> List[types.Resource]:
        return [
            types.Resource(uri=r.uri, name=r.name, description=r.description, mimeType=r.mime_type)
            for r in RESOURCES
        ]

    @server.read_resource()
    async def handle_read_resource(uri: Any) -> Iterable[ReadResourceContents]:
        try:
            resource = get_resource(str(uri))
        except ResourceNotFoundError as e:
            raise McpError(types.ErrorData(code=types.INVALID_PARAMS, message=str(e))) from e
        text = await read_resource(resource.uri)
        return [ReadResourceContents(content=text, mime_type=resource.mime_type)]

    return server


async def serve(gateway: Optional[WeSignGateway] = None) -> None:
    settings = get_settings()
    gw = gateway or get_gateway()
    server = build_server(gw)

    authenticated = await gw.ensure_session(settings)
    log.info(
        "stdio startup",
        version=__version__,
        tools=len(gw.list_tools()),
        credentials_configured=settings.has_credentials,
        authenticated=authenticated,
    )

    try:
        async with mcp.server.stdio.stdio_server() as (read_stream, write_stream):
            await server.run(
                read_stream,
                write_stream,
                InitializationOptions(
                    server_name=SERVER_NAME,
                    server_version=__version__,
                    capabilities=server.get_capabilities(
                        notification_options=NotificationOptions(),
                        experimental_capabilities={},
                    ),
                ),
            )
    finally:
        await gw.aclose()


def run() -> None:
    configure_logging()
    asyncio.run(serve())
