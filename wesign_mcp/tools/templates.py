from __future__ import annotations

import logging
import time
from typing import Any, Dict, List

from ..client import EMPTY_GUID, DEFAULT_LINK_EXPIRATION_HOURS, DEFAULT_PHONE_EXTENSION, WeSignError
from ..errors import ToolValidationError, WorkflowStepError
from ..schemas import (
    LANGUAGE_LABELS,
    SENDING_METHOD_LABELS,
    TEMPLATE_STATUS_LABELS,
    USER_STATUS_LABELS,
    USER_TYPE_LABELS,
    CreateTemplateInput,
    EmptyInput,
    ExtractSignersInput,
    PageInput,
    SendDocumentForSigningInput,
    TemplateRef,
    UpdateTemplateFieldsInput,
    UpdateUserInfoInput,
    UseTemplateInput,
    label,
)
from ..utils.files import LoadedFile, pdf_page_count, read_document
from .base import ToolModule, ToolSpec, array, boolean, integer, number, schema, string

logger = logging.getLogger(__name__)

_PAGING = {
    "offset": integer("Number of records to skip (default: 0)", default=0, minimum=0),
    "limit": integer("Maximum number of records to return (default: 50)", default=50, minimum=1),
}

TOOLS = [
    {
        "name": "wesign_create_template",
        "description": "Create a reusable document template from a file",
        "inputSchema": schema(
            {
                "filePath": string("Path to the template file"),
                "name": string("Name for the template"),
                "description": string("Optional description for the template"),
            },
            required=["filePath", "name"],
        ),
    },
    {
        "name": "wesign_list_templates",
        "description": "List available document templates",
        "inputSchema": schema(_PAGING),
    },
    {
        "name": "wesign_get_template",
        "description": "Get detailed information about a specific template",
        "inputSchema": schema({"templateId": string("ID of the template")}, required=["templateId"]),
    },
    {
        "name": "wesign_use_template",
        "description": "Create a new document from a template for self-signing",
        "inputSchema": schema(
            {
                "templateId": string("ID of the template to use"),
                "documentName": string("Name for the new document"),
            },
            required=["templateId", "documentName"],
        ),
    },
    {
        "name": "wesign_update_template_fields",
        "description": (
            "Add signature fields to a template. Use this to position fields on specific pages "
            "before sending for signature."
        ),
        "inputSchema": schema(
            {
                "templateId": string("ID of the template to update"),
                "signatureFields": array(
                    schema(
                        {
                            "name": string("Unique field name"),
                            "x": number("X coordinate"),
                            "y": number("Y coordinate"),
                            "width": number("Field width"),
                            "height": number("Field height"),
                            "page": integer("Page number (1-based)", minimum=1),
                            "mandatory": boolean("Is field required (default: true)", default=True),
                        },
                        required=["name", "x", "y", "width", "height", "page"],
                    ),
                    "Array of signature fields to add to the template",
                    minItems=1,
                ),
            },
            required=["templateId", "signatureFields"],
        ),
    },
    {
        "name": "wesign_send_document_for_signing",
        "description": (
            "Complete workflow: upload a PDF, add signature fields to all pages automatically, "
            "and send it for signature."
        ),
        "inputSchema": schema(
            {
                "filePath": string("Path to the PDF file"),
                "signerName": string("Name of the person who will sign"),
                "signerPhone": string("Phone number of the signer (for SMS delivery)"),
                "signerEmail": string("Email of the signer (optional, for email delivery)"),
                "sendingMethod": integer(
                    "How to send: 1=SMS, 2=Email, 3=WhatsApp (default: 1 for SMS)", enum=[1, 2, 3], default=1
                ),
                "fieldPosition": schema(
                    {
                        "x": number("X coordinate", default=100),
                        "y": number("Y coordinate", default=700),
                        "width": number("Field width", default=200),
                        "height": number("Field height", default=50),
                    }
                ),
                "pageCount": integer(
                    "Number of pages to place a signature field on (default: counted from the PDF)", minimum=1
                ),
            },
            required=["filePath", "signerName", "signerPhone"],
        ),
    },
    {
        "name": "wesign_get_user_info",
        "description": "Get current user information and account details",
        "inputSchema": schema(),
    },
    {
        "name": "wesign_update_user_info",
        "description": "Update current user information",
        "inputSchema": schema(
            {
                "name": string("User's full name"),
                "email": string("User's email address"),
                "phone": string("User's phone number"),
                "language": integer("User interface language: 1=English, 2=Hebrew", enum=[1, 2]),
            },
            required=["name", "email"],
        ),
    },
    {
        "name": "wesign_extract_signers_from_excel",
        "description": "Extract signer information from an Excel file for bulk distribution",
        "inputSchema": schema(
            {"filePath": string("Path to the Excel file containing signer information")}, required=["filePath"]
        ),
    },
    {
        "name": "wesign_check_auth_status",
        "description": "Check current authentication status",
        "inputSchema": schema(),
    },
]


def _template_summary(t: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "id": t.get("id"),
        "name": t.get("name"),
        "description": t.get("description"),
        "status": t.get("status"),
        "statusName": label(TEMPLATE_STATUS_LABELS, t.get("status")),
        "creationTime": t.get("creationTime"),
    }


class TemplateAdminTools(ToolModule):
    name = "template/admin"
    TOOLS = TOOLS
    PREFIXES = (
        "wesign_create_template",
        "wesign_list_templates",
        "wesign_get_template",
        "wesign_use_template",
        "wesign_update_template",
        "wesign_send_document_for_signing",
        "wesign_get_user",
        "wesign_update_user",
        "wesign_extract",
        "wesign_check_auth",
    )
    SPECS = {
        "wesign_create_template": ToolSpec(CreateTemplateInput, "create_template", "create template"),
        "wesign_list_templates": ToolSpec(PageInput, "list_templates", "list templates"),
        "wesign_get_template": ToolSpec(TemplateRef, "get_template", "get template"),
        "wesign_use_template": ToolSpec(UseTemplateInput, "use_template", "use template"),
        "wesign_update_template_fields": ToolSpec(
            UpdateTemplateFieldsInput, "update_template_fields", "update template fields"
        ),
        "wesign_send_document_for_signing": ToolSpec(
            SendDocumentForSigningInput, "send_document_for_signing", "send document for signing"
        ),
        "wesign_get_user_info": ToolSpec(EmptyInput, "get_user_info", "get user info"),
        "wesign_update_user_info": ToolSpec(UpdateUserInfoInput, "update_user_info", "update user info"),
        "wesign_extract_signers_from_excel": ToolSpec(
            ExtractSignersInput, "extract_signers_from_excel", "extract signers from Excel"
        ),
        "wesign_check_auth_status": ToolSpec(EmptyInput, "check_auth_status", None, requires_auth=False),
    }

    async def _create_template(self, f: LoadedFile, name: str, description: Any) -> Dict[str, Any]:
        result = await self.client.create_template(name, f.data_url(), description)
        return {
            "success": True,
            "message": f'Template "{name}" created successfully',
            "template": {
                "id": result.get("id"),
                "name": result.get("name"),
                "description": result.get("description"),
                "status": result.get("status"),
                "creationTime": result.get("creationTime"),
            },
            "originalFileName": f.file_name,
            "fileSize": f.size,
            "mimeType": f.mime_type,
        }

    async def create_template(self, inp: CreateTemplateInput) -> Dict[str, Any]:
        f = await read_document(inp.file_path)
        return await self._create_template(f, inp.name, inp.description)

    async def list_templates(self, inp: PageInput) -> Dict[str, Any]:
        templates = await self.client.get_templates(inp.offset, inp.limit)
        return {
            "success": True,
            "templates": [_template_summary(t) for t in templates],
            "pagination": {"offset": inp.offset, "limit": inp.limit, "count": len(templates)},
        }

    async def get_template(self, inp: TemplateRef) -> Dict[str, Any]:
        template = await self.client.get_template(inp.template_id) or {}
        return {
            "success": True,
            "template": {**_template_summary(template), "hasFile": bool(template.get("base64File"))},
        }

    async def use_template(self, inp: UseTemplateInput) -> Dict[str, Any]:
        template = await self.client.get_template(inp.template_id) or {}
        if not template.get("base64File"):
            raise ToolValidationError("Template file not available")

        result = await self.client.create_self_sign_document(
            inp.document_name, template["base64File"], inp.template_id
        ) or {}
        return {
            "success": True,
            "message": f'Document "{inp.document_name}" created from template "{template.get("name")}"',
            "documentCollectionId": result.get("documentCollectionId"),
            "documentId": result.get("documentId"),
            "documentName": result.get("name"),
            "pagesCount": result.get("pagesCount"),
            "sourceTemplate": {"id": template.get("id"), "name": template.get("name")},
        }

    async def update_template_fields(self, inp: UpdateTemplateFieldsInput) -> Dict[str, Any]:
        signature_fields = [f.model_dump(by_alias=True, exclude_none=True) for f in inp.signature_fields]
        await self.client.update_template_fields(inp.template_id, {"signatureFields": signature_fields})
        return {
            "success": True,
            "message": f"Added {len(signature_fields)} signature fields to template",
            "templateId": inp.template_id,
            "fieldsAdded": len(signature_fields),
            "fields": [
                {
                    "index": i,
                    "name": f.name,
                    "page": f.page,
                    "position": {"x": f.x, "y": f.y},
                    "size": {"width": f.width, "height": f.height},
                    "mandatory": f.mandatory,
                }
                for i, f in enumerate(inp.signature_fields, start=1)
            ],
        }

    async def send_document_for_signing(self, inp: SendDocumentForSigningInput) -> Dict[str, Any]:
        f = await read_document(inp.file_path)
        page_count = inp.page_count or pdf_page_count(f.data) or 1
        template_name = f"{f.stem}_{int(time.time() * 1000)}"
        contact = inp.signer_email or inp.signer_phone
        box = inp.field_position

        logger.info("send workflow step 1: creating template from %s", f.file_name)
        try:
            template = await self._create_template(f, template_name, "Auto-generated template for signing")
        except WeSignError as e:
            raise WorkflowStepError(1, "create template", e) from e
        template_id = template["template"]["id"]

        logger.info("send workflow step 2: adding signature fields to %d pages of %s", page_count, template_id)
        signature_fields: List[Dict[str, Any]] = [
            {
                "name": f"Signature_Page_{page}",
                "description": f"Signature field for page {page}",
                "x": box.x,
                "y": box.y,
                "width": box.width,
                "height": box.height,
                "mandatory": True,
                "page": page,
            }
            for page in range(1, page_count + 1)
        ]
        try:
            await self.client.update_template_fields(template_id, {"signatureFields": signature_fields})
        except WeSignError as e:
            logger.warning("send workflow stopped at step 2; template %s was left in place", template_id)
            raise WorkflowStepError(2, "add signature fields", e) from e

        logger.info("send workflow step 3: sending to %s", inp.signer_name)
        try:
            result = await self.client.send_document_for_signature(
                document_mode=1,
                document_name=template_name,
                templates=[template_id],
                signers=[
                    {
                        "contactId": EMPTY_GUID,
                        "contactName": inp.signer_name,
                        "contactMeans": contact,
                        "sendingMethod": inp.sending_method,
                        "phoneExtension": DEFAULT_PHONE_EXTENSION,
                        "linkExpirationInHours": DEFAULT_LINK_EXPIRATION_HOURS,
                    }
                ],
            ) or {}
        except WeSignError as e:
            logger.warning("send workflow stopped at step 3; template %s was left in place", template_id)
            raise WorkflowStepError(3, "send for signature", e) from e

        return {
            "success": True,
            "message": f"Document sent successfully to {inp.signer_name}",
            "workflow": {
                "step1_template": {
                    "templateId": template_id,
                    "templateName": template["template"]["name"],
                    "originalFile": f.file_name,
                    "fileSize": f.size,
                },
                "step2_fields": {"fieldsAdded": len(signature_fields), "pagesWithFields": page_count},
                "step3_sending": {
                    "documentCollectionId": result.get("id"),
                    "documentName": result.get("name"),
                    "status": result.get("status"),
                    "creationTime": result.get("creationTime"),
                    "signer": {
                        "name": inp.signer_name,
                        "contact": contact,
                        "sendingMethod": label(SENDING_METHOD_LABELS, inp.sending_method),
                    },
                },
            },
        }

    async def get_user_info(self, inp: EmptyInput) -> Dict[str, Any]:
        user = await self.client.get_user_info() or {}
        config = user.get("userConfiguration") or {}
        program = user.get("program") or {}
        language = config.get("language")
        return {
            "success": True,
            "user": {
                "id": user.get("id"),
                "name": user.get("name"),
                "email": user.get("email"),
                "phone": user.get("phone"),
                "companyId": user.get("companyId"),
                "companyName": user.get("companyName"),
                "groupName": user.get("groupName"),
                "type": user.get("type"),
                "typeName": label(USER_TYPE_LABELS, user.get("type")),
                "status": user.get("status"),
                "statusName": label(USER_STATUS_LABELS, user.get("status")),
                "language": language,
                "languageName": label(LANGUAGE_LABELS, language, "Hebrew"),
                "program": {
                    "expiredTime": program.get("expiredTime"),
                    "remainingDocuments": program.get("remainingDocumentsForMonth"),
                },
            },
        }

    async def update_user_info(self, inp: UpdateUserInfoInput) -> Dict[str, Any]:
        result = await self.client.update_user_info(
            {
                "name": inp.name,
                "email": inp.email,
                "phone": inp.phone,
                "userConfiguration": {"language": inp.language},
            }
        )
        ok = result.get("success", True) if isinstance(result, dict) else True
        return {
            "success": ok,
            "message": "User information updated successfully" if ok else "Failed to update user information",
            "updatedFields": {"name": inp.name, "email": inp.email, "phone": inp.phone, "language": inp.language},
        }

    async def extract_signers_from_excel(self, inp: ExtractSignersInput) -> Dict[str, Any]:
        f = await read_document(inp.file_path)
        signers = await self.client.extract_signers_from_excel(f.data_url())
        return {
            "success": True,
            "message": f"Extracted {len(signers)} signers from Excel file",
            "signersCount": len(signers),
            "signers": [
                {
                    "index": i,
                    "firstName": s.get("firstName"),
                    "lastName": s.get("lastName"),
                    "contact": s.get("email") or s.get("phone"),
                    "additionalFields": s.get("additionalFields") or [],
                }
                for i, s in enumerate(signers, start=1)
            ],
            "fileName": f.file_name,
            "fileSize": f.size,
        }

    async def check_auth_status(self, inp: EmptyInput) -> Dict[str, Any]:
        tokens = self.client.get_tokens()
        return {
            "success": True,
            "authenticated": self.client.is_authenticated(),
            "hasTokens": tokens is not None,
            "tokenInfo": None
            if tokens is None
            else {
                "hasAccessToken": bool(tokens.access_token),
                "hasRefreshToken": bool(tokens.refresh_token),
                "hasAuthToken": bool(tokens.auth_token),
            },
        }
