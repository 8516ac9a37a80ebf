from __future__ import annotations

import uvicorn

from .config import get_settings


def main() -> None:
    settings = get_settings()
    if settings.transport == "stdio":
        from .stdio import run

        run()
        return

    uvicorn.run(
        "wesign_mcp.server:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.uvicorn_log_level,
        reload=False,
    )


if __name__ == "__main__":
    main()
