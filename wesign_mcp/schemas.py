from __future__ import annotations

from datetime import date
from pathlib import Path
from typing import Annotated, Any, Dict, List, Literal, Mapping, Optional

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class ToolInput(BaseModel):
    """Base for tool arguments: callers send camelCase, handlers read snake_case."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True, alias_generator=to_camel)


def _required_text(v: str) -> str:
    if not isinstance(v, str) or not v.strip():
        raise ValueError("must be a non-empty string")
    return v.strip()


NonEmptyStr = Annotated[str, AfterValidator(_required_text)]


# -------------------------
# Labels for upstream enum codes
# -------------------------

DOCUMENT_STATUS_LABELS = {0: "Draft", 1: "Pending", 2: "Completed", 3: "Cancelled"}
SELF_SIGN_STATUS_LABELS = {0: "Created", 1: "In Progress", 2: "Completed", 3: "Cancelled", 4: "Expired"}
SIGNER_STATUS_LABELS = {0: "Pending", 1: "In Progress", 2: "Completed", 3: "Declined"}
TEMPLATE_STATUS_LABELS = {1: "Active", 2: "Inactive", 3: "One Time Use"}
USER_TYPE_LABELS = {1: "Basic", 2: "Editor", 3: "Company Admin"}
USER_STATUS_LABELS = {0: "Created", 1: "Active", 2: "Inactive", 3: "Blocked"}
SENDING_METHOD_LABELS = {1: "SMS", 2: "Email", 3: "WhatsApp"}
FIELD_TYPE_LABELS = {1: "Signature", 2: "Initial", 3: "Text", 4: "Date", 5: "Checkbox"}
LANGUAGE_LABELS = {1: "English", 2: "Hebrew"}

SIGNER_COMPLETED = 2


def label(mapping: Mapping[int, str], code: Any, default: str = "Unknown") -> str:
    try:
        return mapping.get(int(code), default)
    except (TypeError, ValueError):
        return default


def document_status_text(code: Any) -> str:
    return label(DOCUMENT_STATUS_LABELS, code, f"Unknown ({code})")


def to_jsonable(obj: Any) -> Any:
    """Convert Pydantic models to JSON-serializable dicts."""

    if isinstance(obj, BaseModel):
        return obj.model_dump(mode="json", by_alias=True)
    if isinstance(obj, list):
        return [to_jsonable(x) for x in obj]
    if isinstance(obj, dict):
        return {k: to_jsonable(v) for k, v in obj.items()}
    return obj


# -------------------------
# Shared argument shapes
# -------------------------

SendingMethod = Literal[1, 2, 3]
FieldTypeCode = Literal[1, 2, 3, 4, 5]
SmartFieldKind = Literal["signature", "initials", "date", "text", "checkbox"]
PositionName = Literal["top-left", "center-left", "bottom-left", "top-right", "center-right", "bottom-right"]
PresetName = Literal[
    "signature-bottom-all-pages",
    "signature-bottom-first-page",
    "signature-bottom-last-page",
    "initials-bottom-right-all-pages",
    "signature-and-date-bottom",
    "signature-initials-date-bottom",
]


class EmptyInput(ToolInput):
    pass


class PageInput(ToolInput):
    offset: int = Field(default=0, ge=0)
    limit: int = Field(default=50, ge=1)


class DocumentCollectionRef(ToolInput):
    document_collection_id: NonEmptyStr


class DocumentRef(DocumentCollectionRef):
    document_id: NonEmptyStr


class FileInput(ToolInput):
    file_path: NonEmptyStr


# -------------------------
# Auth
# -------------------------


class LoginInput(ToolInput):
    email: NonEmptyStr
    password: str
    persistent: bool = False

    @field_validator("password")
    @classmethod
    def _v_password(cls, v: str) -> str:
        if not v:
            raise ValueError("must be a non-empty string")
        return v


# -------------------------
# Documents
# -------------------------


class UploadDocumentInput(FileInput):
    name: Optional[str] = None


class CreateDocumentCollectionInput(ToolInput):
    name: NonEmptyStr
    file_paths: List[str] = Field(min_length=1)


class DownloadDocumentInput(DocumentRef):
    save_path: Optional[str] = None


class SearchDocumentsInput(ToolInput):
    query: Optional[str] = None
    status: Optional[int] = None
    from_date: Optional[date] = None
    to_date: Optional[date] = None
    signer_email: Optional[str] = None
    signer_name: Optional[str] = None
    limit: int = Field(default=100, ge=1)


class MergeDocumentsInput(ToolInput):
    name: NonEmptyStr
    document_collection_ids: List[str]

    @field_validator("document_collection_ids")
    @classmethod
    def _at_least_two(cls, v: List[str]) -> List[str]:
        if len(v) < 2:
            raise ValueError("At least 2 document collections are required for merging")
        return v


# -------------------------
# Self-sign
# -------------------------


class CreateSelfSignInput(FileInput):
    name: Optional[str] = None
    source_template_id: Optional[str] = None


class SignatureFieldInput(ToolInput):
    x: float
    y: float
    width: float = Field(gt=0)
    height: float = Field(gt=0)
    page_number: int = Field(ge=1)
    field_type: FieldTypeCode


class AddSignatureFieldsInput(DocumentRef):
    fields: List[SignatureFieldInput] = Field(min_length=1)


class AddFieldsByPositionInput(DocumentRef):
    position: PositionName
    num_pages: int = Field(ge=1)
    field_type: FieldTypeCode = 1


class CompleteSigningInput(DocumentRef):
    save_path: Optional[str] = None


class SaveDraftInput(DocumentRef):
    fields: Optional[List[SignatureFieldInput]] = None


class DeclineDocumentInput(DocumentRef):
    reason: Optional[str] = None


# -------------------------
# Templates / admin
# -------------------------


class TemplateRef(ToolInput):
    template_id: NonEmptyStr


class CreateTemplateInput(FileInput):
    name: NonEmptyStr
    description: Optional[str] = None


class UseTemplateInput(TemplateRef):
    document_name: NonEmptyStr


class TemplateSignatureField(ToolInput):
    name: NonEmptyStr
    x: float
    y: float
    width: float = Field(gt=0)
    height: float = Field(gt=0)
    page: int = Field(ge=1)
    mandatory: bool = True
    description: Optional[str] = None
    image: Optional[str] = None
    signing_type: Optional[int] = None


class UpdateTemplateFieldsInput(TemplateRef):
    signature_fields: List[TemplateSignatureField] = Field(min_length=1)


class UpdateUserInfoInput(ToolInput):
    name: NonEmptyStr
    email: NonEmptyStr
    phone: Optional[str] = None
    language: Literal[1, 2] = 1


class ExtractSignersInput(FileInput):
    @field_validator("file_path")
    @classmethod
    def _excel_only(cls, v: str) -> str:
        if Path(v).suffix.lower() not in {".xls", ".xlsx"}:
            raise ValueError("File must be an Excel file (.xls or .xlsx)")
        return v


class FieldBox(ToolInput):
    x: float = 100
    y: float = 700
    width: float = Field(default=200, gt=0)
    height: float = Field(default=50, gt=0)


class SendDocumentForSigningInput(FileInput):
    signer_name: NonEmptyStr
    signer_phone: NonEmptyStr
    signer_email: Optional[str] = None
    sending_method: SendingMethod = 1
    field_position: FieldBox = Field(default_factory=FieldBox)
    page_count: Optional[int] = Field(default=None, ge=1)


# -------------------------
# Multi-party
# -------------------------


class NewSignerInput(ToolInput):
    contact_name: NonEmptyStr
    contact_means: NonEmptyStr
    sending_method: SendingMethod


class SignerInput(NewSignerInput):
    link_expiration_in_hours: int = Field(default=168, ge=1)
    sender_note: Optional[str] = None
    contact_id: Optional[str] = None
    phone_extension: Optional[str] = None


class SendForSignatureInput(FileInput):
    document_name: NonEmptyStr
    signers: List[SignerInput] = Field(min_length=1)
    sender_note: Optional[str] = None
    redirect_url: Optional[str] = None


class SendSimpleDocumentInput(TemplateRef):
    document_name: NonEmptyStr
    signer_name: NonEmptyStr
    signer_means: NonEmptyStr
    redirect_url: Optional[str] = None


class SignerRef(DocumentCollectionRef):
    signer_id: NonEmptyStr


class ResendToSignerInput(SignerRef):
    sending_method: SendingMethod


class ReplaceSignerInput(SignerRef):
    new_signer: NewSignerInput


class ShareDocumentInput(DocumentCollectionRef):
    emails: List[str] = Field(min_length=1)
    message: Optional[str] = None


# -------------------------
# Contacts
# -------------------------


class ContactFields(ToolInput):
    first_name: NonEmptyStr
    last_name: NonEmptyStr
    email: Optional[str] = None
    phone: Optional[str] = None
    company: Optional[str] = None
    notes: Optional[str] = None
    group_id: Optional[str] = None

    def upstream(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True, include=set(ContactFields.model_fields))


class CreateContactsBulkInput(ToolInput):
    contacts: List[ContactFields] = Field(min_length=1)


class ListContactsInput(ToolInput):
    query: Optional[str] = None
    group_id: Optional[str] = None
    offset: int = Field(default=0, ge=0)
    limit: int = Field(default=100, ge=1)


class ContactRef(ToolInput):
    contact_id: NonEmptyStr


class UpdateContactInput(ContactFields):
    contact_id: NonEmptyStr


class DeleteContactsBatchInput(ToolInput):
    contact_ids: List[str] = Field(min_length=1)


class ListContactGroupsInput(ToolInput):
    offset: int = Field(default=0, ge=0)
    limit: int = Field(default=100, ge=1)


class ContactGroupRef(ToolInput):
    group_id: NonEmptyStr


class ContactGroupFields(ToolInput):
    name: NonEmptyStr
    description: Optional[str] = None
    contact_ids: Optional[List[str]] = None

    def upstream(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True, include=set(ContactGroupFields.model_fields))


class UpdateContactGroupInput(ContactGroupFields):
    group_id: NonEmptyStr


# -------------------------
# Smart fields
# -------------------------


class SmartFieldInput(ToolInput):
    type: SmartFieldKind
    name: NonEmptyStr
    page: int = Field(ge=1)
    position: str
    reference_text: Optional[str] = None
    mandatory: bool = True
    width: Optional[float] = Field(default=None, gt=0)
    height: Optional[float] = Field(default=None, gt=0)


class AddFieldSmartInput(TemplateRef):
    fields: List[SmartFieldInput] = Field(min_length=1)


class AddSignaturePresetInput(TemplateRef):
    preset: PresetName
    page_count: int = Field(default=1, ge=1)
