from __future__ import annotations

import asyncio
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional

import structlog

from .errors import ResourceNotFoundError

log = structlog.get_logger()

DOCS_DIR = Path(__file__).resolve().parent / "docs"


@dataclass(frozen=True)
class Resource:
    uri: str
    name: str
    description: str
    file_name: str
    fallback: str
    mime_type: str = "text/markdown"

    def descriptor(self) -> Dict[str, str]:
        return {"uri": self.uri, "name": self.name, "description": self.description, "mimeType": self.mime_type}


RESOURCES: List[Resource] = [
    Resource(
        uri="wesign://knowledge-base",
        name="WeSign Complete Knowledge Base",
        description="Documentation of WeSign platform concepts, APIs, workflows, and best practices",
        file_name="knowledge_base.md",
        fallback="Knowledge base not available",
    ),
    Resource(
        uri="wesign://quick-start",
        name="WeSign MCP Server Quick Start",
        description="Step-by-step guide to get started with the WeSign MCP server",
        file_name="quick_start.md",
        fallback="Quick start guide not available",
    ),
    Resource(
        uri="wesign://examples",
        name="WeSign Usage Examples",
        description="Practical tool-call examples for common WeSign operations and workflows",
        file_name="examples.md",
        fallback="Examples not available",
    ),
    Resource(
        uri="wesign://implementation-status",
        name="WeSign MCP Server Implementation Status",
        description="Technical details and implementation status of the MCP server features",
        file_name="implementation_status.md",
        fallback="Implementation status not available",
    ),
]

_BY_URI = {r.uri: r for r in RESOURCES}


def list_resources() -> List[Dict[str, str]]:
    return [r.descriptor() for r in RESOURCES]


def get_resource(uri: str) -> Resource:
    r = _BY_URI.get(uri)
    if r is None:
        raise ResourceNotFoundError(f"Unknown resource URI: {uri}")
    return r


async def read_resource(uri: str, docs_dir: Optional[Path] = None) -> str:
    """Markdown text of a bundled resource; unreadable files yield the fallback text."""
    r = get_resource(uri)
    path = (docs_dir or DOCS_DIR) / r.file_name
    try:
        return await asyncio.to_thread(path.read_text, encoding="utf-8")
    except OSError as e:
        log.warning("resource.unavailable", uri=uri, path=str(path), error=str(e))
        return r.fallback
