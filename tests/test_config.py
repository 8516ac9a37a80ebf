from __future__ import annotations

import pytest
from pydantic import ValidationError

from wesign_mcp.config import Settings


def test_defaults_follow_log_level():
    s = Settings(LOG_LEVEL="debug", WESIGN_API_URL="https://wesign.test/ ")
    assert s.log_level == "DEBUG"
    assert s.uvicorn_log_level == "debug"
    assert s.wesign_api_url == "https://wesign.test"
    assert not s.has_credentials


def test_credentials_are_stripped():
    s = Settings(WESIGN_EMAIL="  bot@example.com ", WESIGN_PASSWORD="pw", API_KEY="   ")
    assert s.wesign_email == "bot@example.com"
    assert s.has_credentials
    assert s.api_key is None


@pytest.mark.parametrize("field,value", [("LOG_LEVEL", "LOUD"), ("MCP_TRANSPORT", "carrier-pigeon")])
def test_rejects_bad_values(field, value):
    with pytest.raises(ValidationError):
        Settings(**{field: value})
