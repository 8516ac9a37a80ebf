from __future__ import annotations

import logging
from typing import Any, Dict

from ..client import WeSignAuthError, WeSignError
from ..schemas import USER_TYPE_LABELS, EmptyInput, LoginInput, label
from .base import ToolModule, ToolSpec, boolean, schema, string

logger = logging.getLogger(__name__)

TOOLS = [
    {
        "name": "wesign_login",
        "description": "Authenticate with WeSign using email and password",
        "inputSchema": schema(
            {
                "email": string("Email address for WeSign account", format="email"),
                "password": string("Password for WeSign account"),
                "persistent": boolean("Whether to use persistent session (default: false)", default=False),
            },
            required=["email", "password"],
        ),
    },
    {
        "name": "wesign_logout",
        "description": "Logout from WeSign and clear authentication tokens",
        "inputSchema": schema(),
    },
    {
        "name": "wesign_refresh_token",
        "description": "Refresh the authentication token if expired",
        "inputSchema": schema(),
    },
]


class AuthTools(ToolModule):
    name = "auth"
    TOOLS = TOOLS
    PREFIXES = ("wesign_login", "wesign_logout", "wesign_refresh")
    SPECS = {
        "wesign_login": ToolSpec(LoginInput, "login", None, requires_auth=False),
        "wesign_logout": ToolSpec(EmptyInput, "logout", "logout", requires_auth=False),
        "wesign_refresh_token": ToolSpec(EmptyInput, "refresh_token", None),
    }

    async def login(self, inp: LoginInput) -> Dict[str, Any]:
        result = await self.client.login(inp.email, inp.password)
        if not result.success:
            raise WeSignAuthError(result.message or "Login failed")

        session_type = "persistent" if inp.persistent else "session"
        try:
            user = await self.client.get_user_info()
        except WeSignError as e:
            logger.warning("login succeeded but user lookup failed: %s", e)
            return {
                "success": True,
                "message": "Login successful, but could not retrieve user details",
                "sessionType": session_type,
                "warning": "User details unavailable",
            }

        user = user or {}
        config = user.get("userConfiguration") or {}
        program = user.get("program") or {}
        return {
            "success": True,
            "message": "Login successful",
            "user": {
                "name": user.get("name"),
                "email": user.get("email"),
                "companyName": user.get("companyName"),
                "type": label(USER_TYPE_LABELS, user.get("type")),
                "language": "English" if config.get("language") == 1 else "Hebrew",
                "remainingDocuments": program.get("remainingDocumentsForMonth"),
            },
            "sessionType": session_type,
        }

    async def logout(self, inp: EmptyInput) -> Dict[str, Any]:
        await self.client.logout()
        return {"success": True, "message": "Logout successful"}

    async def refresh_token(self, inp: EmptyInput) -> Dict[str, Any]:
        tokens = self.client.get_tokens()
        if tokens is None or not tokens.refresh_token:
            raise WeSignAuthError("Token refresh failed: No refresh token available. Please login again.")
        await self.client.refresh_token()
        return {"success": True, "message": "Token refreshed successfully"}

