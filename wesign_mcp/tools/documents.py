from __future__ import annotations

import logging
import re
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from ..errors import ToolValidationError
from ..schemas import (
    SIGNER_COMPLETED,
    CreateDocumentCollectionInput,
    DocumentCollectionRef,
    DownloadDocumentInput,
    MergeDocumentsInput,
    PageInput,
    SearchDocumentsInput,
    UploadDocumentInput,
    document_status_text,
)
from ..utils.files import decode_base64_file, read_document, write_file
from .base import ToolModule, ToolSpec, array, integer, schema, string

logger = logging.getLogger(__name__)

TOOLS = [
    {
        "name": "wesign_upload_document",
        "description": (
            "Upload a document to WeSign for signing workflow. Supports PDF, Word, Excel, and image formats."
        ),
        "inputSchema": schema(
            {
                "filePath": string("Path to the document file to upload"),
                "name": string("Optional custom name for the document. If not provided, uses the filename"),
            },
            required=["filePath"],
        ),
    },
    {
        "name": "wesign_create_document_collection",
        "description": "Create a new document collection with one or more documents",
        "inputSchema": schema(
            {
                "name": string("Name for the document collection"),
                "filePaths": array(
                    {"type": "string"}, "Array of file paths to include in the collection", minItems=1
                ),
            },
            required=["name", "filePaths"],
        ),
    },
    {
        "name": "wesign_get_document_info",
        "description": "Get detailed information about a document or document collection",
        "inputSchema": schema(
            {"documentCollectionId": string("ID of the document collection")},
            required=["documentCollectionId"],
        ),
    },
    {
        "name": "wesign_list_documents",
        "description": "List user's documents with pagination",
        "inputSchema": schema(
            {
                "offset": integer("Number of records to skip (default: 0)", default=0, minimum=0),
                "limit": integer("Maximum number of records to return (default: 50)", default=50, minimum=1),
            }
        ),
    },
    {
        "name": "wesign_download_document",
        "description": "Download a signed or unsigned document",
        "inputSchema": schema(
            {
                "documentCollectionId": string("ID of the document collection"),
                "documentId": string("ID of the specific document to download"),
                "savePath": string(
                    "Optional path to save the downloaded file. If not provided, returns base64 content"
                ),
            },
            required=["documentCollectionId", "documentId"],
        ),
    },
    {
        "name": "wesign_search_documents",
        "description": "Search documents by status, date, signer name/email, or keywords in document name",
        "inputSchema": schema(
            {
                "query": string("Search query - searches in document names, signer names, and emails"),
                "status": integer(
                    "Filter by document status: 0=Draft, 1=Pending, 2=Completed, 3=Cancelled", enum=[0, 1, 2, 3]
                ),
                "fromDate": string("Filter documents created on or after this date (YYYY-MM-DD)", format="date"),
                "toDate": string("Filter documents created on or before this date (YYYY-MM-DD)", format="date"),
                "signerEmail": string("Filter by signer email address"),
                "signerName": string("Filter by signer name (partial match)"),
                "limit": integer("Maximum number of documents to scan (default: 100)", default=100, minimum=1),
            }
        ),
    },
    {
        "name": "wesign_merge_documents",
        "description": "Combine multiple existing documents into a single document collection",
        "inputSchema": schema(
            {
                "name": string("Name for the merged document collection"),
                "documentCollectionIds": array(
                    {"type": "string"}, "Array of document collection IDs to merge", minItems=2
                ),
            },
            required=["name", "documentCollectionIds"],
        ),
    },
]


def _signer_name(signer: Dict[str, Any]) -> str:
    return f"{signer.get('firstName') or ''} {signer.get('lastName') or ''}".strip()


def _completed(signers: List[Dict[str, Any]]) -> int:
    return sum(1 for s in signers if s.get("status") == SIGNER_COMPLETED)


# WeSign emits .NET timestamps with up to 7 fractional digits.
_FRACTION_RE = re.compile(r"\.(\d+)")


def _iso_text(raw: str) -> str:
    text = raw.strip().replace("Z", "+00:00")
    return _FRACTION_RE.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), text, count=1)


def _created_on(doc: Dict[str, Any]) -> Optional[date]:
    raw = doc.get("creationTime")
    if not isinstance(raw, str) or not raw:
        return None
    try:
        return datetime.fromisoformat(_iso_text(raw)).date()
    except ValueError:
        return None


def _as_list(data: Any) -> List[Dict[str, Any]]:
    if isinstance(data, list):
        return data
    if isinstance(data, dict):
        for key in ("documentCollections", "DocumentCollections", "items"):
            if isinstance(data.get(key), list):
                return data[key]
    return []


class DocumentTools(ToolModule):
    name = "document"
    TOOLS = TOOLS
    PREFIXES = (
        "wesign_upload",
        "wesign_create_document",
        "wesign_get_document",
        "wesign_list_documents",
        "wesign_download",
        "wesign_search_documents",
        "wesign_merge_documents",
    )
    SPECS = {
        "wesign_upload_document": ToolSpec(UploadDocumentInput, "upload_document", "upload document"),
        "wesign_create_document_collection": ToolSpec(
            CreateDocumentCollectionInput, "create_document_collection", "create document collection"
        ),
        "wesign_get_document_info": ToolSpec(DocumentCollectionRef, "get_document_info", "get document info"),
        "wesign_list_documents": ToolSpec(PageInput, "list_documents", "list documents"),
        "wesign_download_document": ToolSpec(DownloadDocumentInput, "download_document", "download document"),
        "wesign_search_documents": ToolSpec(SearchDocumentsInput, "search_documents", "search documents"),
        "wesign_merge_documents": ToolSpec(MergeDocumentsInput, "merge_documents", "merge documents"),
    }

    async def upload_document(self, inp: UploadDocumentInput) -> Dict[str, Any]:
        f = await read_document(inp.file_path)
        file_name = inp.name or f.file_name
        result = await self.client.create_document_collection(file_name, [f.data_url()])
        return {
            "success": True,
            "documentCollection": result,
            "message": f'Document "{file_name}" uploaded successfully',
            "documentCollectionId": (result or {}).get("id"),
            "fileName": file_name,
            "fileSize": f.size,
            "mimeType": f.mime_type,
        }

    async def create_document_collection(self, inp: CreateDocumentCollectionInput) -> Dict[str, Any]:
        files = [await read_document(p) for p in inp.file_paths]
        result = await self.client.create_document_collection(inp.name, [f.data_url() for f in files])
        return {
            "success": True,
            "documentCollection": result,
            "message": f'Document collection "{inp.name}" created with {len(files)} documents',
            "documentCollectionId": (result or {}).get("id"),
            "files": [{"name": f.file_name, "size": f.size, "type": f.mime_type} for f in files],
        }

    async def get_document_info(self, inp: DocumentCollectionRef) -> Dict[str, Any]:
        dc = await self.client.get_document_collection(inp.document_collection_id) or {}
        documents = dc.get("documents") or []
        signers = dc.get("signers") or []
        return {
            "success": True,
            "documentCollection": {
                "id": dc.get("id"),
                "name": dc.get("name"),
                "status": dc.get("status"),
                "statusText": document_status_text(dc.get("status")),
                "creationTime": dc.get("creationTime"),
                "documentsCount": len(documents),
                "documents": [
                    {
                        "id": d.get("id"),
                        "name": d.get("name"),
                        "pagesCount": d.get("pagesCount"),
                        "status": d.get("status"),
                    }
                    for d in documents
                ],
                "signersCount": len(signers),
                "signers": [
                    {
                        "id": s.get("id"),
                        "name": _signer_name(s),
                        "email": s.get("email"),
                        "phone": s.get("phone"),
                        "status": s.get("status"),
                        "signingOrder": s.get("signingOrder"),
                    }
                    for s in signers
                ],
            },
        }

    async def list_documents(self, inp: PageInput) -> Dict[str, Any]:
        collections = _as_list(await self.client.get_document_collections(inp.offset, inp.limit))
        return {
            "success": True,
            "documents": [
                {
                    "id": c.get("id"),
                    "name": c.get("name"),
                    "status": c.get("status"),
                    "statusText": document_status_text(c.get("status")),
                    "creationTime": c.get("creationTime"),
                    "documentsCount": len(c.get("documents") or []),
                    "signersCount": len(c.get("signers") or []),
                    "completedSigners": _completed(c.get("signers") or []),
                }
                for c in collections
            ],
            "pagination": {"offset": inp.offset, "limit": inp.limit, "count": len(collections)},
        }

    async def download_document(self, inp: DownloadDocumentInput) -> Dict[str, Any]:
        result = await self.client.download_document(inp.document_collection_id, inp.document_id) or {}
        base64_file = result.get("base64File") or ""
        file_name = result.get("fileName")

        if not inp.save_path:
            return {
                "success": True,
                "message": "Document downloaded successfully",
                "fileName": file_name,
                "base64File": base64_file,
                "contentLength": len(base64_file),
            }

        try:
            data = decode_base64_file(base64_file)
        except ValueError as e:
            raise ToolValidationError(f"Downloaded document is not valid base64: {e}") from e
        saved = await write_file(inp.save_path, data)
        return {
            "success": True,
            "message": f"Document downloaded and saved to {inp.save_path}",
            "filePath": str(saved),
            "fileName": file_name,
            "fileSize": len(data),
        }

    async def search_documents(self, inp: SearchDocumentsInput) -> Dict[str, Any]:
        docs = _as_list(await self.client.get_document_collections(0, inp.limit))

        if inp.status is not None:
            docs = [d for d in docs if d.get("status") == inp.status]
        if inp.from_date is not None:
            docs = [d for d in docs if (_created_on(d) or date.min) >= inp.from_date]
        if inp.to_date is not None:
            docs = [d for d in docs if (_created_on(d) or date.max) <= inp.to_date]
        if inp.signer_email:
            needle = inp.signer_email.lower()
            docs = [
                d for d in docs if any(needle in (s.get("email") or "").lower() for s in d.get("signers") or [])
            ]
        if inp.signer_name:
            needle = inp.signer_name.lower()
            docs = [d for d in docs if any(needle in _signer_name(s).lower() for s in d.get("signers") or [])]
        if inp.query:
            needle = inp.query.lower()

            def _matches(d: Dict[str, Any]) -> bool:
                if needle in (d.get("name") or "").lower():
                    return True
                return any(
                    needle in (s.get("email") or "").lower() or needle in _signer_name(s).lower()
                    for s in d.get("signers") or []
                )

            docs = [d for d in docs if _matches(d)]

        return {
            "success": True,
            "message": f"Found {len(docs)} document(s) matching criteria",
            "count": len(docs),
            "filters": {
                "query": inp.query or "none",
                "status": inp.status if inp.status is not None else "any",
                "fromDate": inp.from_date.isoformat() if inp.from_date else "none",
                "toDate": inp.to_date.isoformat() if inp.to_date else "none",
                "signerEmail": inp.signer_email or "none",
                "signerName": inp.signer_name or "none",
            },
            "documents": [
                {
                    "id": d.get("id"),
                    "name": d.get("name"),
                    "status": d.get("status"),
                    "statusText": document_status_text(d.get("status")),
                    "creationTime": d.get("creationTime"),
                    "documentsCount": len(d.get("documents") or []),
                    "signersCount": len(d.get("signers") or []),
                    "completedSigners": _completed(d.get("signers") or []),
                    "signers": [
                        {
                            "name": _signer_name(s),
                            "email": s.get("email"),
                            "phone": s.get("phone"),
                            "status": s.get("status"),
                        }
                        for s in d.get("signers") or []
                    ],
                }
                for d in docs
            ],
        }

    async def merge_documents(self, inp: MergeDocumentsInput) -> Dict[str, Any]:
        base64_files: List[str] = []
        merged: List[Dict[str, Any]] = []

        for collection_id in inp.document_collection_ids:
            collection = await self.client.get_document_collection(collection_id) or {}
            documents = collection.get("documents") or []
            if not documents:
                raise ToolValidationError(f"Document collection {collection_id} has no documents")

            for doc in documents:
                downloaded = await self.client.download_document(collection_id, doc.get("id")) or {}
                base64_files.append(downloaded.get("base64File") or "")
                merged.append(
                    {
                        "sourceCollection": collection.get("name"),
                        "sourceCollectionId": collection_id,
                        "documentName": doc.get("name"),
                        "documentId": doc.get("id"),
                        "pagesCount": doc.get("pagesCount"),
                    }
                )

        logger.info("merging %d documents from %d collections", len(base64_files), len(inp.document_collection_ids))
        result = await self.client.create_document_collection(inp.name, base64_files) or {}
        return {
            "success": True,
            "message": f'Merged {len(inp.document_collection_ids)} document collections into "{inp.name}"',
            "mergedCollectionId": result.get("id"),
            "mergedCollectionName": result.get("name"),
            "totalDocuments": len(base64_files),
            "sourceCollections": len(inp.document_collection_ids),
            "documentsDetails": merged,
        }
