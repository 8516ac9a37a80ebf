from __future__ import annotations

import asyncio
import base64
import mimetypes
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import fitz  # PyMuPDF

from ..errors import ToolValidationError

_EXCEL_TYPES = {
    ".xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    ".xls": "application/vnd.ms-excel",
}


@dataclass(frozen=True)
class LoadedFile:
    path: Path
    data: bytes
    mime_type: str

    @property
    def file_name(self) -> str:
        return self.path.name

    @property
    def stem(self) -> str:
        return self.path.stem

    @property
    def size(self) -> int:
        return len(self.data)

    def data_url(self) -> str:
        encoded = base64.b64encode(self.data).decode("ascii")
        return f"data:{self.mime_type};base64,{encoded}"


def guess_mime_type(path: Path) -> str:
    suffix = path.suffix.lower()
    if suffix in _EXCEL_TYPES:
        return _EXCEL_TYPES[suffix]
    mime, _ = mimetypes.guess_type(path.name)
    return mime or "application/octet-stream"


async def read_document(file_path: str) -> LoadedFile:
    p = Path(file_path).expanduser()
    if not p.is_file():
        raise ToolValidationError(f"File not found: {file_path}")
    data = await asyncio.to_thread(p.read_bytes)
    return LoadedFile(path=p, data=data, mime_type=guess_mime_type(p))


def decode_base64_file(value: str) -> bytes:
    """Decode a base64 payload, with or without a ``data:...;base64,`` prefix."""
    payload = value.split(",", 1)[1] if value.startswith("data:") and "," in value else value
    return base64.b64decode(payload)


async def write_file(save_path: str, data: bytes) -> Path:
    p = Path(save_path).expanduser()

    def _write() -> None:
        p.parent.mkdir(parents=True, exist_ok=True)
        p.write_bytes(data)

    await asyncio.to_thread(_write)
    return p


def pdf_page_count(data: bytes) -> Optional[int]:
    """Page count of a PDF blob, or None when it is not a readable PDF."""
    try:
        with fitz.open(stream=data, filetype="pdf") as doc:
            return doc.page_count
    except (RuntimeError, ValueError):
        return None
