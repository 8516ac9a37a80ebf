from __future__ import annotations

import asyncio
import json

import pytest
from fastapi.testclient import TestClient

from wesign_mcp.config import Settings
from wesign_mcp.server import SessionManager, create_app

API_URL = "https://wesign.test"


@pytest.fixture
def sessions() -> SessionManager:
    return SessionManager()


@pytest.fixture
def http(gateway, settings, sessions) -> TestClient:
    return TestClient(create_app(gateway=gateway, settings=settings, session_manager=sessions))


def _rpc(http: TestClient, method: str, params=None, rpc_id=1):
    body = {"jsonrpc": "2.0", "id": rpc_id, "method": method}
    if params is not None:
        body["params"] = params
    r = http.post("/mcp", json=body)
    assert r.status_code == 200
    return r.json()


def test_health(http):
    r = http.get("/health")
    assert r.status_code == 200
    j = r.json()
    assert j["status"] == "healthy"
    assert j["authenticated"] is False
    assert j["activeSessions"] == 0


def test_tools_catalog(http):
    j = http.get("/tools").json()
    assert j["count"] == 49
    assert {t["name"] for t in j["tools"]} >= {"wesign_login", "wesign_add_signature_preset"}


def test_root_lists_endpoints(http):
    j = http.get("/").json()
    assert j["tools"] == 49
    assert j["endpoints"]["rest"] == "POST /execute"


def test_shutdown_closes_upstream_client(gateway, settings, sessions):
    app = create_app(gateway=gateway, settings=settings, session_manager=sessions)

    with TestClient(app) as http:
        assert http.get("/health").status_code == 200
        assert not gateway.client._client.is_closed

    assert gateway.client._client.is_closed


def test_initialize_and_list(http):
    init = _rpc(http, "initialize", {})
    assert init["result"]["serverInfo"]["name"] == "wesign-mcp-gateway"
    assert set(init["result"]["capabilities"]) == {"tools", "resources"}

    listed = _rpc(http, "tools/list")
    assert len(listed["result"]["tools"]) == 49


def test_invalid_envelope(http):
    r = http.post("/mcp", json={"jsonrpc": "1.0", "id": 7, "method": "tools/list"})
    assert r.status_code == 200
    assert r.json()["error"]["code"] == -32600

    r = http.post("/mcp", json=[{"jsonrpc": "2.0", "id": 1, "method": "ping"}])
    assert r.json()["error"]["code"] == -32600


def test_unknown_method_and_tool(http):
    assert _rpc(http, "prompts/list")["error"]["code"] == -32601

    j = _rpc(http, "tools/call", {"name": "wesign_nonexistent", "arguments": {}})
    assert j["error"]["code"] == -32601
    assert "wesign_nonexistent" in j["error"]["message"]


def test_tool_call_before_login_is_an_auth_error(http):
    j = _rpc(http, "tools/call", {"name": "wesign_list_templates", "arguments": {}})
    assert j["error"]["code"] == -32603
    assert "Not authenticated" in j["error"]["message"]


def test_tool_call_invalid_params(authed_gateway, settings, sessions):
    http = TestClient(create_app(gateway=authed_gateway, settings=settings, session_manager=sessions))
    j = _rpc(http, "tools/call", {"name": "wesign_merge_documents", "arguments": {"name": "m", "documentCollectionIds": ["a"]}})
    assert j["error"]["code"] == -32602

    j = _rpc(http, "tools/call", {"arguments": {}})
    assert j["error"]["code"] == -32602


def test_tool_call_success(authed_gateway, upstream, settings, sessions):
    upstream.on("GET", "/templates", (200, [{"id": "t1", "name": "NDA", "status": 1}]))
    http = TestClient(create_app(gateway=authed_gateway, settings=settings, session_manager=sessions))

    j = _rpc(http, "tools/call", {"name": "wesign_list_templates", "arguments": {}}, rpc_id="abc")

    assert j["id"] == "abc"
    content = j["result"]["content"][0]
    assert content["type"] == "text"
    assert json.loads(content["text"])["templates"][0]["statusName"] == "Active"


def test_notifications_get_no_envelope(http):
    r = http.post("/mcp", json={"jsonrpc": "2.0", "method": "notifications/initialized"})
    assert r.status_code == 200
    assert r.json() == {"status": "ok"}


def test_resources(http):
    listed = _rpc(http, "resources/list")["result"]["resources"]
    assert len(listed) == 4

    read = _rpc(http, "resources/read", {"uri": "wesign://quick-start"})
    contents = read["result"]["contents"][0]
    assert contents["mimeType"] == "text/markdown"
    assert "Quick Start" in contents["text"]

    assert _rpc(http, "resources/read", {"uri": "wesign://nope"})["error"]["code"] == -32602


# -------------------------
# REST
# -------------------------


def test_execute_requires_tool(http):
    r = http.post("/execute", json={"parameters": {}})
    assert r.status_code == 400
    assert r.json() == {"success": False, "error": "Missing required field: tool"}


@pytest.mark.parametrize(
    "content",
    [b"not json", b'[{"tool": "wesign_list_templates"}]', b'"wesign_list_templates"'],
)
def test_execute_rejects_non_object_bodies(http, content):
    r = http.post("/execute", content=content, headers={"content-type": "application/json"})

    assert r.status_code == 400
    assert r.json() == {"success": False, "error": "Request body must be a JSON object"}


def test_execute_with_empty_body(http):
    r = http.post("/execute")
    assert r.status_code == 400
    assert r.json()["success"] is False


def test_execute_before_login(http):
    r = http.post("/execute", json={"tool": "wesign_list_templates", "parameters": {}})
    assert r.status_code == 401
    assert r.json()["success"] is False


def test_execute_errors_map_to_status(authed_gateway, settings, sessions):
    http = TestClient(create_app(gateway=authed_gateway, settings=settings, session_manager=sessions))

    assert http.post("/execute", json={"tool": "wesign_nonexistent"}).status_code == 404
    r = http.post("/execute", json={"tool": "wesign_get_template", "parameters": {}})
    assert r.status_code == 400
    assert "templateId" in r.json()["error"]


def test_execute_success(authed_gateway, settings, sessions):
    http = TestClient(create_app(gateway=authed_gateway, settings=settings, session_manager=sessions))

    r = http.post("/execute", json={"tool": "wesign_check_auth_status", "parameters": {}})

    assert r.status_code == 200
    assert r.json()["success"] is True
    assert r.json()["data"]["authenticated"] is True


def test_execute_logs_in_with_configured_credentials(gateway, upstream, sessions):
    upstream.on("POST", "/users/login", (200, {"token": "a", "refreshToken": "r"}))
    upstream.on("GET", "/templates", (200, []))
    settings = Settings(WESIGN_API_URL=API_URL, WESIGN_EMAIL="bot@example.com", WESIGN_PASSWORD="pw")
    http = TestClient(create_app(gateway=gateway, settings=settings, session_manager=sessions))

    r = http.post("/execute", json={"tool": "wesign_list_templates"})

    assert r.status_code == 200
    assert len(upstream.calls("POST", "/users/login")) == 1


# -------------------------
# SSE companion endpoint
# -------------------------


def test_messages_requires_session(http):
    r = http.post("/messages", json={"jsonrpc": "2.0", "id": 1, "method": "ping"})
    assert r.status_code == 400


def test_messages_unknown_session(http):
    r = http.post("/messages", json={"jsonrpc": "2.0", "id": 1, "method": "ping"}, headers={"X-Session-Id": "ghost"})
    assert r.status_code == 404


def test_messages_publish_to_session_stream(http, sessions):
    queue = asyncio.run(sessions.get_queue("s1"))

    r = http.post("/messages", json={"jsonrpc": "2.0", "id": 3, "method": "tools/list"}, headers={"X-Session-Id": "s1"})

    assert r.status_code == 200
    assert len(r.json()["result"]["tools"]) == 49
    pushed = queue.get_nowait()
    assert pushed["id"] == 3


def test_messages_accepts_session_query_param(http, sessions):
    queue = asyncio.run(sessions.get_queue("s2"))

    r = http.post("/messages?session_id=s2", json={"jsonrpc": "2.0", "id": 4, "method": "ping"})

    assert r.status_code == 200
    assert queue.get_nowait() == {"jsonrpc": "2.0", "id": 4, "result": {}}


# -------------------------
# API key
# -------------------------


def test_api_key_guard(gateway, sessions):
    settings = Settings(WESIGN_API_URL=API_URL, API_KEY="s3cret")
    http = TestClient(create_app(gateway=gateway, settings=settings, session_manager=sessions))

    assert http.get("/health").status_code == 200
    r = http.get("/tools")
    assert r.status_code == 401
    assert r.json()["success"] is False
    assert http.get("/tools", headers={"X-API-Key": "s3cret"}).status_code == 200
