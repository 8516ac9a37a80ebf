"""WeSign MCP gateway.

Exposes the WeSign document-signing API as ``wesign_*`` tools over stdio MCP,
HTTP JSON-RPC, SSE and a plain REST endpoint.
"""

__version__ = "1.0.0"
