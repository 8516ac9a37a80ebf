from __future__ import annotations

import logging
from typing import Any, Dict

from ..client import WeSignError
from ..errors import WorkflowStepError
from ..schemas import (
    SENDING_METHOD_LABELS,
    SIGNER_STATUS_LABELS,
    DocumentCollectionRef,
    ReplaceSignerInput,
    ResendToSignerInput,
    SendForSignatureInput,
    SendSimpleDocumentInput,
    ShareDocumentInput,
    SignerRef,
    label,
)
from ..utils.files import read_document
from .base import ToolModule, ToolSpec, array, integer, schema, string

logger = logging.getLogger(__name__)

_SENDING_METHOD = integer("Sending method: 1=SMS, 2=Email, 3=WhatsApp", enum=[1, 2, 3])

_NEW_SIGNER = {
    "contactName": string("Full name of the signer"),
    "contactMeans": string("Email address or phone number for the signer"),
    "sendingMethod": _SENDING_METHOD,
}

_COLLECTION_ID = string("ID of the document collection")

TOOLS = [
    {
        "name": "wesign_send_for_signature",
        "description": "Send document to multiple signers for signature workflow",
        "inputSchema": schema(
            {
                "filePath": string("Path to the document file to send"),
                "documentName": string("Name for the document collection"),
                "signers": array(
                    schema(
                        {
                            **_NEW_SIGNER,
                            "linkExpirationInHours": integer(
                                "Hours until signing link expires (optional, default: 168)", default=168, minimum=1
                            ),
                            "senderNote": string("Optional personal note to this signer"),
                        },
                        required=["contactName", "contactMeans", "sendingMethod"],
                    ),
                    "Array of signers who will receive the document",
                    minItems=1,
                ),
                "senderNote": string("Optional general note from sender to all signers"),
                "redirectUrl": string("Optional URL to redirect signers after signing"),
            },
            required=["filePath", "documentName", "signers"],
        ),
    },
    {
        "name": "wesign_send_simple_document",
        "description": "Send a document using a template to a single signer (simplified workflow)",
        "inputSchema": schema(
            {
                "templateId": string("ID of the template to use"),
                "documentName": string("Name for the new document"),
                "signerName": string("Full name of the signer"),
                "signerMeans": string("Email address or phone number of the signer"),
                "redirectUrl": string("Optional URL to redirect signer after signing"),
            },
            required=["templateId", "documentName", "signerName", "signerMeans"],
        ),
    },
    {
        "name": "wesign_resend_to_signer",
        "description": "Resend document notification to a specific signer",
        "inputSchema": schema(
            {
                "documentCollectionId": _COLLECTION_ID,
                "signerId": string("ID of the signer to resend to"),
                "sendingMethod": _SENDING_METHOD,
            },
            required=["documentCollectionId", "signerId", "sendingMethod"],
        ),
    },
    {
        "name": "wesign_replace_signer",
        "description": "Replace a signer in an existing document collection",
        "inputSchema": schema(
            {
                "documentCollectionId": _COLLECTION_ID,
                "signerId": string("ID of the signer to replace"),
                "newSigner": schema(_NEW_SIGNER, required=["contactName", "contactMeans", "sendingMethod"]),
            },
            required=["documentCollectionId", "signerId", "newSigner"],
        ),
    },
    {
        "name": "wesign_cancel_document",
        "description": "Cancel a document collection and stop the signing process",
        "inputSchema": schema(
            {"documentCollectionId": string("ID of the document collection to cancel")},
            required=["documentCollectionId"],
        ),
    },
    {
        "name": "wesign_reactivate_document",
        "description": "Reactivate a cancelled or expired document collection",
        "inputSchema": schema(
            {"documentCollectionId": string("ID of the document collection to reactivate")},
            required=["documentCollectionId"],
        ),
    },
    {
        "name": "wesign_share_document",
        "description": "Share a document with additional people via email (view-only access)",
        "inputSchema": schema(
            {
                "documentCollectionId": string("ID of the document collection to share"),
                "emails": array({"type": "string"}, "Array of email addresses to share with", minItems=1),
                "message": string("Optional message to include in the share email"),
            },
            required=["documentCollectionId", "emails"],
        ),
    },
    {
        "name": "wesign_get_signer_link",
        "description": "Get a live signing link for a specific signer",
        "inputSchema": schema(
            {"documentCollectionId": _COLLECTION_ID, "signerId": string("ID of the signer to get the link for")},
            required=["documentCollectionId", "signerId"],
        ),
    },
]


def _ok(result: Any) -> bool:
    if isinstance(result, dict):
        return bool(result.get("success", True))
    return True


class MultiPartyTools(ToolModule):
    name = "multi-party"
    TOOLS = TOOLS
    PREFIXES = (
        "wesign_send_for",
        "wesign_send_simple",
        "wesign_resend",
        "wesign_replace",
        "wesign_cancel",
        "wesign_reactivate",
        "wesign_share",
        "wesign_get_signer",
    )
    SPECS = {
        "wesign_send_for_signature": ToolSpec(
            SendForSignatureInput, "send_for_signature", "send document for signature"
        ),
        "wesign_send_simple_document": ToolSpec(
            SendSimpleDocumentInput, "send_simple_document", "send simple document"
        ),
        "wesign_resend_to_signer": ToolSpec(ResendToSignerInput, "resend_to_signer", "resend to signer"),
        "wesign_replace_signer": ToolSpec(ReplaceSignerInput, "replace_signer", "replace signer"),
        "wesign_cancel_document": ToolSpec(DocumentCollectionRef, "cancel_document", "cancel document"),
        "wesign_reactivate_document": ToolSpec(DocumentCollectionRef, "reactivate_document", "reactivate document"),
        "wesign_share_document": ToolSpec(ShareDocumentInput, "share_document", "share document"),
        "wesign_get_signer_link": ToolSpec(SignerRef, "get_signer_link", "get signer link"),
    }

    async def send_for_signature(self, inp: SendForSignatureInput) -> Dict[str, Any]:
        f = await read_document(inp.file_path)

        logger.info("creating template %s for %d signers", inp.document_name, len(inp.signers))
        try:
            template = await self.client.create_template(
                inp.document_name, f.data_url(), f"Template for multi-party signing: {inp.document_name}"
            )
        except WeSignError as e:
            raise WorkflowStepError(1, "create template", e) from e

        try:
            result = await self.client.send_document_for_signature(
                document_mode=1,
                document_name=inp.document_name,
                templates=[template["id"]],
                signers=[s.model_dump(by_alias=True, exclude_none=True) for s in inp.signers],
                sender_note=inp.sender_note,
                redirect_url=inp.redirect_url,
            ) or {}
        except WeSignError as e:
            logger.warning("send stopped at step 2; template %s was left in place", template["id"])
            raise WorkflowStepError(2, "send for signature", e) from e

        return {
            "success": True,
            "message": f'Document "{inp.document_name}" sent to {len(inp.signers)} signers successfully',
            "documentCollectionId": result.get("id"),
            "documentName": result.get("name"),
            "status": result.get("status"),
            "creationTime": result.get("creationTime"),
            "templateId": template["id"],
            "templateName": template.get("name"),
            "signersCount": len(inp.signers),
            "signers": [
                {
                    "id": s.get("id"),
                    "name": f"{s.get('firstName') or ''} {s.get('lastName') or ''}".strip(),
                    "email": s.get("email"),
                    "phone": s.get("phone"),
                    "status": s.get("status"),
                    "statusName": label(SIGNER_STATUS_LABELS, s.get("status")),
                    "signingOrder": s.get("signingOrder"),
                }
                for s in result.get("signers") or []
            ],
            "originalFileName": f.file_name,
            "fileSize": f.size,
            "mimeType": f.mime_type,
            "workflow": "template-based multi-party signing",
        }

    async def send_simple_document(self, inp: SendSimpleDocumentInput) -> Dict[str, Any]:
        result = await self.client.send_simple_document(
            {
                "templateId": inp.template_id,
                "documentName": inp.document_name,
                "signerName": inp.signer_name,
                "signerMeans": inp.signer_means,
                "redirectUrl": inp.redirect_url,
            }
        ) or {}
        return {
            "success": True,
            "message": f'Simple document "{inp.document_name}" sent to {inp.signer_name} successfully',
            "documentCollectionId": result.get("id"),
            "documentName": result.get("name"),
            "status": result.get("status"),
            "creationTime": result.get("creationTime"),
            "signer": {"name": inp.signer_name, "contact": inp.signer_means},
            "templateUsed": inp.template_id,
        }

    async def resend_to_signer(self, inp: ResendToSignerInput) -> Dict[str, Any]:
        result = await self.client.resend_to_signer(inp.document_collection_id, inp.signer_id, inp.sending_method)
        method = label(SENDING_METHOD_LABELS, inp.sending_method)
        return {
            "success": _ok(result),
            "message": f"Document resent to signer successfully via {method}",
            "sendingMethod": method,
            "documentCollectionId": inp.document_collection_id,
            "signerId": inp.signer_id,
        }

    async def replace_signer(self, inp: ReplaceSignerInput) -> Dict[str, Any]:
        new = inp.new_signer
        result = await self.client.replace_signer(
            inp.document_collection_id, inp.signer_id, new.model_dump(by_alias=True)
        )
        return {
            "success": _ok(result),
            "message": "Signer replaced successfully",
            "documentCollectionId": inp.document_collection_id,
            "oldSignerId": inp.signer_id,
            "newSigner": {
                "name": new.contact_name,
                "contact": new.contact_means,
                "sendingMethod": label(SENDING_METHOD_LABELS, new.sending_method),
            },
        }

    async def cancel_document(self, inp: DocumentCollectionRef) -> Dict[str, Any]:
        result = await self.client.cancel_document(inp.document_collection_id)
        return {
            "success": _ok(result),
            "message": "Document collection cancelled successfully",
            "documentCollectionId": inp.document_collection_id,
        }

    async def reactivate_document(self, inp: DocumentCollectionRef) -> Dict[str, Any]:
        result = await self.client.reactivate_document(inp.document_collection_id)
        return {
            "success": _ok(result),
            "message": "Document collection reactivated successfully",
            "documentCollectionId": inp.document_collection_id,
        }

    async def share_document(self, inp: ShareDocumentInput) -> Dict[str, Any]:
        result = await self.client.share_document(inp.document_collection_id, inp.emails, inp.message)
        return {
            "success": _ok(result),
            "message": f"Document shared with {len(inp.emails)} recipients successfully",
            "documentCollectionId": inp.document_collection_id,
            "sharedWith": inp.emails,
            "recipientsCount": len(inp.emails),
            "shareMessage": inp.message or "No custom message",
        }

    async def get_signer_link(self, inp: SignerRef) -> Dict[str, Any]:
        result = await self.client.get_signer_link(inp.document_collection_id, inp.signer_id) or {}
        return {
            "success": True,
            "message": "Signer link retrieved successfully",
            "documentCollectionId": inp.document_collection_id,
            "signerId": inp.signer_id,
            "liveLink": result.get("liveLink"),
        }
