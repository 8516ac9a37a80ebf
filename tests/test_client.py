from __future__ import annotations

import httpx
import pytest

from wesign_mcp.client import (
    EMPTY_GUID,
    SessionTokens,
    WeSignAPIError,
    WeSignAuthError,
    build_template_fields_payload,
)

LOGIN_OK = {"token": "access-1", "refreshToken": "refresh-1", "authToken": "auth-1"}


def _login_tokens(client) -> None:
    client.set_tokens(SessionTokens(access_token="access-1", refresh_token="refresh-1", auth_token="auth-1"))


@pytest.mark.asyncio
async def test_login_stores_tokens(client, upstream):
    upstream.on("POST", "/users/login", (200, LOGIN_OK))

    result = await client.login("user@example.com", "secret")

    assert result.success
    assert client.is_authenticated()
    assert client.get_tokens() == SessionTokens("access-1", "refresh-1", "auth-1")
    assert upstream.body("POST", "/users/login") == {"Email": "user@example.com", "Password": "secret"}


@pytest.mark.asyncio
async def test_login_without_token_is_a_soft_failure(client, upstream):
    upstream.on("POST", "/users/login", (200, {"message": "ok"}))

    result = await client.login("user@example.com", "secret")

    assert not result.success
    assert "no token" in result.message
    assert not client.is_authenticated()


@pytest.mark.asyncio
async def test_login_rejected(client, upstream):
    upstream.on("POST", "/users/login", (401, {"message": "Invalid credentials"}))

    with pytest.raises(WeSignAuthError) as ei:
        await client.login("user@example.com", "wrong")

    assert str(ei.value) == "Login failed: Invalid credentials"
    assert not client.is_authenticated()


@pytest.mark.asyncio
async def test_bearer_header_sent(client, upstream):
    upstream.on("GET", "/templates", (200, []))
    _login_tokens(client)

    await client.get_templates()

    assert upstream.calls("GET", "/templates")[0].headers["Authorization"] == "Bearer access-1"


@pytest.mark.asyncio
async def test_401_refreshes_once_and_retries(client, upstream):
    upstream.on("GET", "/templates", (401, {"message": "expired"}), (200, [{"id": "t1"}]))
    upstream.on("POST", "/users/refresh", (200, {"token": "access-2", "refreshToken": "refresh-2"}))
    _login_tokens(client)

    templates = await client.get_templates()

    assert templates == [{"id": "t1"}]
    calls = upstream.calls("GET", "/templates")
    assert len(calls) == 2
    assert calls[1].headers["Authorization"] == "Bearer access-2"
    assert upstream.body("POST", "/users/refresh") == {
        "JwtToken": "access-1",
        "RefreshToken": "refresh-1",
        "AuthToken": "auth-1",
    }
    assert client.get_tokens().refresh_token == "refresh-2"


@pytest.mark.asyncio
async def test_second_401_is_not_retried(client, upstream):
    upstream.on("GET", "/templates", (401, {"message": "expired"}))
    upstream.on("POST", "/users/refresh", (200, {"token": "access-2"}))
    _login_tokens(client)

    with pytest.raises(WeSignAuthError):
        await client.get_templates()

    assert len(upstream.calls("POST", "/users/refresh")) == 1
    assert len(upstream.calls("GET", "/templates")) == 2


@pytest.mark.asyncio
async def test_failed_refresh_clears_session(client, upstream):
    upstream.on("GET", "/templates", (401, {"message": "expired"}))
    upstream.on("POST", "/users/refresh", (400, {"message": "refresh token revoked"}))
    _login_tokens(client)

    with pytest.raises(WeSignAuthError) as ei:
        await client.get_templates()

    assert "Token refresh failed: refresh token revoked" in str(ei.value)
    assert not client.is_authenticated()
    assert client.get_tokens() is None


@pytest.mark.asyncio
async def test_401_without_refresh_token(client, upstream):
    upstream.on("GET", "/users", (401, None))
    client.set_tokens(SessionTokens(access_token="access-1"))

    with pytest.raises(WeSignAuthError) as ei:
        await client.get_user_info()

    assert str(ei.value) == "Failed to get current user: Request failed with status code 401"
    assert upstream.calls("POST", "/users/refresh") == []


@pytest.mark.asyncio
async def test_logout_clears_tokens_even_when_unreachable(client, upstream):
    def unreachable(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    upstream.on("GET", "/users/Logout", unreachable)
    _login_tokens(client)

    await client.logout()

    assert not client.is_authenticated()


@pytest.mark.asyncio
async def test_upstream_error_message_is_extracted(client, upstream):
    upstream.on("GET", "/templates/t1", (500, {"error": {"message": "Template store unavailable"}}))
    _login_tokens(client)

    with pytest.raises(WeSignAPIError) as ei:
        await client.get_template("t1")

    assert str(ei.value) == "Failed to get template: Template store unavailable"
    assert ei.value.status_code == 500
    assert ei.value.action == "get template"


@pytest.mark.asyncio
async def test_create_template_maps_response(client, upstream):
    upstream.on(
        "POST",
        "/templates",
        (200, {"templateId": "t1", "templateName": "NDA", "creationTime": "2026-01-05T10:00:00Z"}),
    )
    _login_tokens(client)

    created = await client.create_template("NDA", "data:application/pdf;base64,AAAA", "mutual NDA")

    assert created["id"] == "t1"
    assert created["name"] == "NDA"
    assert created["status"] == 1
    assert upstream.body("POST", "/templates") == {
        "Name": "NDA",
        "Base64File": "data:application/pdf;base64,AAAA",
        "Description": "mutual NDA",
    }


@pytest.mark.asyncio
async def test_send_document_for_signature_payload(client, upstream):
    upstream.on("POST", "/documentcollections", (200, {"id": "dc1"}))
    _login_tokens(client)

    await client.send_document_for_signature(
        document_mode=1,
        document_name="Lease",
        templates=["t1"],
        signers=[{"contactName": "Dana", "contactMeans": "dana@example.com", "sendingMethod": 2}],
        redirect_url="https://example.com/done",
    )

    body = upstream.body("POST", "/documentcollections")
    assert body["DocumentMode"] == 1
    assert body["Templates"] == ["t1"]
    assert body["RediretUrl"] == "https://example.com/done"
    signer = body["Signers"][0]
    assert signer["ContactId"] == EMPTY_GUID
    assert signer["PhoneExtension"] == "+972"
    assert signer["LinkExpirationInHours"] == 168
    assert signer["ContactMeans"] == "dana@example.com"


def test_template_fields_are_normalized_to_the_page():
    body = build_template_fields_payload(
        {
            "signatureFields": [
                {"name": "Sig", "x": 306, "y": 396, "width": 1224, "height": 50, "page": 2},
            ],
            "checkBoxFields": [{"name": "Agree", "x": -10, "y": 0, "width": 20, "height": 20, "page": 1}],
        }
    )

    sig = body["Fields"]["SignatureFields"][0]
    assert sig["X"] == 0.5
    assert sig["Y"] == 0.5
    assert sig["Width"] == 1.0
    assert sig["Page"] == 2
    assert sig["SigningType"] == 3
    assert body["Fields"]["CheckBoxFields"][0]["X"] == 0.0
    assert body["Fields"]["TextFields"] == []
    assert body["Fields"]["RadioGroupFields"] == []
    assert body["Fields"]["ChoiceFields"] == []


@pytest.mark.asyncio
async def test_sign_up_posts_user(client, upstream):
    upstream.on("POST", "/users", (200, {"success": True}))

    result = await client.sign_up({"name": "Dana", "email": "dana@example.com", "password": "pw"})

    assert result == {"success": True}
    assert upstream.body("POST", "/users")["email"] == "dana@example.com"
    assert "Authorization" not in upstream.calls("POST", "/users")[0].headers
