from __future__ import annotations

import json

import mcp.types as types
import pytest
from mcp.shared.exceptions import McpError

from wesign_mcp.errors import ResourceNotFoundError
from wesign_mcp.resources import RESOURCES, get_resource, list_resources, read_resource
from wesign_mcp.stdio import build_server, call_tool_text, list_tool_definitions
from wesign_mcp.tools import SERVER_NAME


def test_list_tool_definitions(gateway):
    tools = list_tool_definitions(gateway)
    assert len(tools) == 49
    assert all(isinstance(t, types.Tool) for t in tools)
    by_name = {t.name: t for t in tools}
    assert by_name["wesign_login"].inputSchema["required"] == ["email", "password"]


def test_build_server(gateway):
    assert build_server(gateway).name == SERVER_NAME


@pytest.mark.asyncio
async def test_call_tool_text_returns_json(gateway):
    text = await call_tool_text(gateway, "wesign_check_auth_status", None)
    assert json.loads(text)["authenticated"] is False


@pytest.mark.asyncio
async def test_call_tool_text_unknown_tool(gateway):
    with pytest.raises(McpError) as ei:
        await call_tool_text(gateway, "wesign_nonexistent", {})
    assert ei.value.error.code == types.METHOD_NOT_FOUND


@pytest.mark.asyncio
async def test_call_tool_text_wraps_failures(gateway):
    with pytest.raises(McpError) as ei:
        await call_tool_text(gateway, "wesign_list_templates", {})
    assert ei.value.error.code == types.INTERNAL_ERROR
    assert ei.value.error.message.startswith("Tool execution failed: Not authenticated")


# -------------------------
# Resources
# -------------------------


def test_list_resources():
    uris = [r["uri"] for r in list_resources()]
    assert uris == [
        "wesign://knowledge-base",
        "wesign://quick-start",
        "wesign://examples",
        "wesign://implementation-status",
    ]


@pytest.mark.asyncio
async def test_bundled_resources_are_readable():
    for r in RESOURCES:
        text = await read_resource(r.uri)
        assert text != r.fallback
        assert text.startswith("# ")


@pytest.mark.asyncio
async def test_missing_resource_file_uses_fallback(tmp_path):
    text = await read_resource("wesign://examples", docs_dir=tmp_path)
    assert text == "Examples not available"


def test_unknown_resource():
    with pytest.raises(ResourceNotFoundError):
        get_resource("wesign://does-not-exist")
