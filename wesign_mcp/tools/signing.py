from __future__ import annotations

import logging
from typing import Any, Dict, List

from ..client import WeSignError
from ..schemas import (
    FIELD_TYPE_LABELS,
    SELF_SIGN_STATUS_LABELS,
    AddFieldsByPositionInput,
    AddSignatureFieldsInput,
    CompleteSigningInput,
    CreateSelfSignInput,
    DeclineDocumentInput,
    DocumentCollectionRef,
    SaveDraftInput,
    SignatureFieldInput,
    label,
)
from ..utils.files import decode_base64_file, read_document, write_file
from ..utils.position_parser import get_field_size, grid_coordinates
from .base import ToolModule, ToolSpec, array, integer, number, schema, string

logger = logging.getLogger(__name__)

# Self-sign PUT operations
SAVE = 1
DECLINE = 2
CLOSE = 3

POSITION_LABELS = {
    "top-left": "Top Left",
    "center-left": "Center Left",
    "bottom-left": "Bottom Left",
    "top-right": "Top Right",
    "center-right": "Center Right",
    "bottom-right": "Bottom Right",
}

# Field type code -> size class used for grid placement
_FIELD_KINDS = {1: "signature", 2: "initials", 3: "text", 4: "date", 5: "checkbox"}

_FIELD_TYPE_SCHEMA = integer(
    "Field type: 1=Signature, 2=Initial, 3=Text, 4=Date, 5=Checkbox", enum=[1, 2, 3, 4, 5]
)

_FIELD_ITEM = schema(
    {
        "x": number("X coordinate of the field"),
        "y": number("Y coordinate of the field"),
        "width": number("Width of the field"),
        "height": number("Height of the field"),
        "pageNumber": integer("Page number (1-based)", minimum=1),
        "fieldType": _FIELD_TYPE_SCHEMA,
    },
    required=["x", "y", "width", "height", "pageNumber", "fieldType"],
)

_DOC_REF = {
    "documentCollectionId": string("ID of the document collection"),
    "documentId": string("ID of the document"),
}

TOOLS = [
    {
        "name": "wesign_create_self_sign",
        "description": "Create a self-signing document where you are the only signer",
        "inputSchema": schema(
            {
                "filePath": string("Path to the document file to sign"),
                "name": string("Optional custom name for the document"),
                "sourceTemplateId": string("Optional template ID to use as base"),
            },
            required=["filePath"],
        ),
    },
    {
        "name": "wesign_add_signature_fields",
        "description": "Add signature fields to a self-sign document",
        "inputSchema": schema(
            {**_DOC_REF, "fields": array(_FIELD_ITEM, "Array of signature fields to add", minItems=1)},
            required=["documentCollectionId", "documentId", "fields"],
        ),
    },
    {
        "name": "wesign_add_fields_by_position",
        "description": (
            "Add signature fields using predefined positions (top-left, center-left, bottom-left, "
            "top-right, center-right, bottom-right). Specify the position and the number of pages "
            "and one field is placed on each page starting from page 1."
        ),
        "inputSchema": schema(
            {
                **_DOC_REF,
                "position": string("Predefined position on the page", enum=list(POSITION_LABELS)),
                "numPages": integer("Number of pages to add fields to (starting from page 1)", minimum=1),
                "fieldType": {**_FIELD_TYPE_SCHEMA, "default": 1},
            },
            required=["documentCollectionId", "documentId", "position", "numPages"],
        ),
    },
    {
        "name": "wesign_complete_signing",
        "description": "Complete the signing process and finalize the document",
        "inputSchema": schema(
            {**_DOC_REF, "savePath": string("Optional path to save the signed document")},
            required=["documentCollectionId", "documentId"],
        ),
    },
    {
        "name": "wesign_save_draft",
        "description": "Save document as draft without completing the signing process",
        "inputSchema": schema(
            {**_DOC_REF, "fields": array(_FIELD_ITEM, "Optional array of signature fields to save with draft")},
            required=["documentCollectionId", "documentId"],
        ),
    },
    {
        "name": "wesign_decline_document",
        "description": "Decline to sign a document",
        "inputSchema": schema(
            {**_DOC_REF, "reason": string("Optional reason for declining")},
            required=["documentCollectionId", "documentId"],
        ),
    },
    {
        "name": "wesign_get_signing_status",
        "description": "Get the current signing status of a self-sign document",
        "inputSchema": schema(
            {"documentCollectionId": string("ID of the document collection")},
            required=["documentCollectionId"],
        ),
    },
]


def _upstream_fields(fields: List[SignatureFieldInput]) -> List[Dict[str, Any]]:
    return [f.model_dump(by_alias=True) for f in fields]


def _fmt(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else str(value)


class SigningTools(ToolModule):
    name = "signing"
    TOOLS = TOOLS
    PREFIXES = (
        "wesign_create_self_sign",
        "wesign_add_signature_fields",
        "wesign_add_fields_by_position",
        "wesign_complete",
        "wesign_save",
        "wesign_decline",
        "wesign_get_signing",
    )
    SPECS = {
        "wesign_create_self_sign": ToolSpec(CreateSelfSignInput, "create_self_sign", "create self-sign document"),
        "wesign_add_signature_fields": ToolSpec(
            AddSignatureFieldsInput, "add_signature_fields", "add signature fields"
        ),
        "wesign_add_fields_by_position": ToolSpec(
            AddFieldsByPositionInput, "add_fields_by_position", "add fields by position"
        ),
        "wesign_complete_signing": ToolSpec(CompleteSigningInput, "complete_signing", "complete signing"),
        "wesign_save_draft": ToolSpec(SaveDraftInput, "save_draft", "save draft"),
        "wesign_decline_document": ToolSpec(DeclineDocumentInput, "decline_document", "decline document"),
        "wesign_get_signing_status": ToolSpec(DocumentCollectionRef, "get_signing_status", "get signing status"),
    }

    async def create_self_sign(self, inp: CreateSelfSignInput) -> Dict[str, Any]:
        f = await read_document(inp.file_path)
        doc_name = inp.name or f.stem
        result = await self.client.create_self_sign_document(doc_name, f.data_url(), inp.source_template_id) or {}
        return {
            "success": True,
            "message": f'Self-sign document "{doc_name}" created successfully',
            "documentCollectionId": result.get("documentCollectionId"),
            "documentId": result.get("documentId"),
            "name": result.get("name"),
            "pagesCount": result.get("pagesCount"),
            "originalFileName": f.file_name,
            "fileSize": f.size,
            "mimeType": f.mime_type,
        }

    async def add_signature_fields(self, inp: AddSignatureFieldsInput) -> Dict[str, Any]:
        result = await self.client.update_self_sign_document(
            inp.document_collection_id, inp.document_id, SAVE, _upstream_fields(inp.fields)
        ) or {}
        return {
            "success": result.get("success", True),
            "message": f"Added {len(inp.fields)} signature fields to document",
            "fieldsAdded": len(inp.fields),
            "fields": [
                {
                    "type": label(FIELD_TYPE_LABELS, f.field_type),
                    "position": f"({_fmt(f.x)}, {_fmt(f.y)})",
                    "size": f"{_fmt(f.width)}x{_fmt(f.height)}",
                    "page": f.page_number,
                }
                for f in inp.fields
            ],
        }

    async def add_fields_by_position(self, inp: AddFieldsByPositionInput) -> Dict[str, Any]:
        kind = _FIELD_KINDS[inp.field_type]
        x, y = grid_coordinates(inp.position, kind)
        size = get_field_size(kind)
        fields = [
            SignatureFieldInput(
                x=x, y=y, width=size.width, height=size.height, page_number=page, field_type=inp.field_type
            )
            for page in range(1, inp.num_pages + 1)
        ]

        result = await self.client.update_self_sign_document(
            inp.document_collection_id, inp.document_id, SAVE, _upstream_fields(fields)
        ) or {}

        position_label = POSITION_LABELS[inp.position]
        type_name = label(FIELD_TYPE_LABELS, inp.field_type)
        return {
            "success": result.get("success", True),
            "message": f"Added {len(fields)} {type_name.lower()} fields at {position_label} position",
            "position": position_label,
            "positionKey": inp.position,
            "coordinates": {"x": x, "y": y},
            "fieldsAdded": len(fields),
            "fieldType": type_name,
            "pages": inp.num_pages,
            "fields": [
                {
                    "type": type_name,
                    "position": f"{position_label} ({x}, {y})",
                    "size": f"{_fmt(f.width)}x{_fmt(f.height)}",
                    "page": f.page_number,
                }
                for f in fields
            ],
        }

    async def complete_signing(self, inp: CompleteSigningInput) -> Dict[str, Any]:
        result = await self.client.update_self_sign_document(inp.document_collection_id, inp.document_id, CLOSE) or {}
        response: Dict[str, Any] = {
            "success": result.get("success", True),
            "message": "Document signing completed successfully",
            "downloadLink": result.get("downloadLink"),
        }

        if inp.save_path and result.get("downloadLink"):
            # The document is already closed; a failed save is reported, not raised.
            try:
                downloaded = await self.client.download_document(inp.document_collection_id, inp.document_id) or {}
                data = decode_base64_file(downloaded.get("base64File") or "")
                await write_file(inp.save_path, data)
            except (WeSignError, OSError, ValueError) as e:
                logger.warning("signed document could not be saved to %s: %s", inp.save_path, e)
                response["downloadError"] = f"Failed to save signed document: {e}"
            else:
                response["savedPath"] = inp.save_path
                response["fileSize"] = len(data)
                response["message"] += f" and saved to {inp.save_path}"

        return response

    async def save_draft(self, inp: SaveDraftInput) -> Dict[str, Any]:
        fields = _upstream_fields(inp.fields) if inp.fields is not None else None
        result = await self.client.update_self_sign_document(
            inp.document_collection_id, inp.document_id, SAVE, fields
        ) or {}
        return {
            "success": result.get("success", True),
            "message": "Document draft saved successfully",
            "fieldsCount": len(inp.fields or []),
        }

    async def decline_document(self, inp: DeclineDocumentInput) -> Dict[str, Any]:
        result = await self.client.update_self_sign_document(
            inp.document_collection_id, inp.document_id, DECLINE
        ) or {}
        return {
            "success": result.get("success", True),
            "message": "Document declined successfully",
            "reason": inp.reason or "No reason provided",
        }

    async def get_signing_status(self, inp: DocumentCollectionRef) -> Dict[str, Any]:
        dc = await self.client.get_self_sign_document(inp.document_collection_id) or {}
        return {
            "success": True,
            "documentCollection": {
                "id": dc.get("id"),
                "name": dc.get("name"),
                "status": dc.get("status"),
                "statusName": label(SELF_SIGN_STATUS_LABELS, dc.get("status")),
                "creationTime": dc.get("creationTime"),
                "documents": [
                    {
                        "id": d.get("id"),
                        "name": d.get("name"),
                        "pagesCount": d.get("pagesCount"),
                        "status": d.get("status"),
                        "statusName": label(SELF_SIGN_STATUS_LABELS, d.get("status")),
                    }
                    for d in dc.get("documents") or []
                ],
            },
        }
