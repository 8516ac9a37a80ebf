from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _s(v: Optional[str]) -> Optional[str]:
    """Strip whitespace from optional strings."""
    if v is None:
        return None
    vv = str(v).strip()
    return vv if vv else None


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_prefix="", extra="ignore", env_file=".env", env_file_encoding="utf-8")

    # -----------------
    # WeSign upstream
    # -----------------
    wesign_api_url: str = Field(default="https://wse.comsigntrust.com", alias="WESIGN_API_URL")
    wesign_email: Optional[str] = Field(default=None, alias="WESIGN_EMAIL")
    wesign_password: Optional[str] = Field(default=None, alias="WESIGN_PASSWORD")
    # Only affects how the session is reported back to the caller.
    wesign_persistent: bool = Field(default=False, alias="WESIGN_PERSISTENT")
    request_timeout_s: float = Field(default=30.0, alias="WESIGN_REQUEST_TIMEOUT")

    # -----------------
    # Server
    # -----------------
    # stdio | http
    transport: str = Field(default="stdio", alias="MCP_TRANSPORT")
    host: str = Field(default="0.0.0.0", alias="MCP_SERVER_HOST")
    port: int = Field(default=3000, alias="PORT")
    cors_origin: str = Field(default="*", alias="CORS_ORIGIN")

    # When set, HTTP callers must send a matching X-API-Key header (except /health).
    api_key: Optional[str] = Field(default=None, alias="API_KEY")

    # Allowed: CRITICAL, ERROR, WARNING, INFO, DEBUG, NOTSET
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Uvicorn log level (optional). If unset/blank, defaults to LOG_LEVEL (lower-cased).
    uvicorn_log_level: Optional[str] = Field(default=None, alias="UVICORN_LOG_LEVEL")

    @model_validator(mode="after")
    def _normalize(self) -> "Settings":
        lvl = (self.log_level or "INFO").strip().upper()
        allowed = {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG", "NOTSET"}
        if lvl not in allowed:
            raise ValueError(f"LOG_LEVEL must be one of {sorted(allowed)} (got {self.log_level!r})")
        self.log_level = lvl

        if self.uvicorn_log_level and str(self.uvicorn_log_level).strip():
            self.uvicorn_log_level = str(self.uvicorn_log_level).strip().lower()
        else:
            self.uvicorn_log_level = lvl.lower()

        transport = (self.transport or "stdio").strip().lower()
        if transport not in {"stdio", "http"}:
            raise ValueError(f"MCP_TRANSPORT must be 'stdio' or 'http' (got {self.transport!r})")
        self.transport = transport

        self.wesign_api_url = (_s(self.wesign_api_url) or "https://wse.comsigntrust.com").rstrip("/")
        self.wesign_email = _s(self.wesign_email)
        self.wesign_password = _s(self.wesign_password)
        self.api_key = _s(self.api_key)
        return self

    @property
    def has_credentials(self) -> bool:
        return bool(self.wesign_email and self.wesign_password)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
