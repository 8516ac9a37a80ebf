from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import httpx
import structlog

log = structlog.get_logger()

EMPTY_GUID = "00000000-0000-0000-0000-000000000000"
DEFAULT_PHONE_EXTENSION = "+972"
DEFAULT_LINK_EXPIRATION_HOURS = 168

# Template field coordinates are sent as fractions of a US-Letter page.
PAGE_WIDTH = 612
PAGE_HEIGHT = 792

NOT_AUTHENTICATED_MESSAGE = "Not authenticated. Please login first using wesign_login."


class WeSignError(RuntimeError):
    def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        # Set once the message carries a "Failed to <action>" prefix.
        self.action: Optional[str] = None

    def with_context(self, action: str) -> "WeSignError":
        err = type(self)(f"Failed to {action}: {self}", status_code=self.status_code)
        err.action = action
        return err


class WeSignAPIError(WeSignError):
    """Non-2xx upstream response or transport failure."""


class WeSignAuthError(WeSignError):
    """Session rejected upstream (401 with no usable refresh, or refresh failed)."""


class NotAuthenticatedError(WeSignAuthError):
    def __init__(self, message: str = NOT_AUTHENTICATED_MESSAGE, *, status_code: Optional[int] = None) -> None:
        super().__init__(message, status_code=status_code)


@dataclass
class SessionTokens:
    access_token: str
    refresh_token: Optional[str] = None
    auth_token: str = ""


@dataclass(frozen=True)
class LoginResult:
    success: bool
    message: str
    tokens: Optional[SessionTokens] = None


def _error_message(resp: httpx.Response) -> str:
    """Best-effort parse of the upstream error envelope."""
    try:
        j = resp.json()
    except ValueError:
        j = None

    if isinstance(j, dict):
        if isinstance(j.get("message"), str) and j["message"]:
            return j["message"]
        e = j.get("error")
        if isinstance(e, dict) and isinstance(e.get("message"), str):
            return e["message"]
        if isinstance(e, str) and e:
            return e
        if isinstance(j.get("title"), str) and j["title"]:
            return j["title"]
    return f"Request failed with status code {resp.status_code}"


def _json_or_none(resp: httpx.Response) -> Any:
    if not resp.content:
        return None
    try:
        return resp.json()
    except ValueError:
        return resp.text


def _normalize(value: Optional[float], dimension: float) -> float:
    return max(0.0, min(1.0, float(value or 0) / dimension))


def _box(f: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "Name": f.get("name"),
        "Description": f.get("description") or "",
        "X": _normalize(f.get("x"), PAGE_WIDTH),
        "Y": _normalize(f.get("y"), PAGE_HEIGHT),
        "Width": _normalize(f.get("width"), PAGE_WIDTH),
        "Height": _normalize(f.get("height"), PAGE_HEIGHT),
        "Mandatory": bool(f.get("mandatory", False)),
        "Page": f.get("page"),
    }


def build_template_fields_payload(fields: Dict[str, Any], name: str = "Updated Template") -> Dict[str, Any]:
    """Convert caller field groups (camelCase, page points) into the upstream template body."""

    def group(key: str) -> List[Dict[str, Any]]:
        return list(fields.get(key) or [])

    return {
        "Name": name,
        "Fields": {
            "TextFields": [
                {**_box(f), "Value": f.get("value") or "", "TextFieldType": f.get("textFieldType", 3)}
                for f in group("textFields")
            ],
            "SignatureFields": [
                {**_box(f), "Image": f.get("image") or "", "SigningType": f.get("signingType", 3)}
                for f in group("signatureFields")
            ],
            "RadioGroupFields": [
                {
                    "Name": g.get("name"),
                    "RadioFields": [
                        {
                            **_box(f),
                            "IsDefault": bool(f.get("isDefault", False)),
                            "Value": f.get("value") or "",
                            "GroupName": f.get("groupName") or "",
                        }
                        for f in (g.get("radioFields") or [])
                    ],
                    "SelectedRadioName": g.get("selectedRadioName") or "",
                }
                for g in group("radioGroupFields")
            ],
            "CheckBoxFields": [
                {**_box(f), "IsChecked": bool(f.get("isChecked", False))} for f in group("checkBoxFields")
            ],
            "ChoiceFields": [
                {**_box(f), "Options": list(f.get("options") or []), "SelectedOption": f.get("selectedOption") or ""}
                for f in group("choiceFields")
            ],
        },
    }


def build_signer_payload(signer: Dict[str, Any]) -> Dict[str, Any]:
    fields = signer.get("signerFields")
    return {
        "ContactId": signer.get("contactId") or EMPTY_GUID,
        "SendingMethod": signer.get("sendingMethod"),
        "ContactMeans": signer.get("contactMeans"),
        "ContactName": signer.get("contactName"),
        "PhoneExtension": signer.get("phoneExtension") or DEFAULT_PHONE_EXTENSION,
        "SignerFields": None
        if fields is None
        else [
            {
                "X": f.get("x"),
                "Y": f.get("y"),
                "Width": f.get("width"),
                "Height": f.get("height"),
                "PageNumber": f.get("pageNumber"),
                "FieldType": f.get("fieldType"),
                "SignerIndex": f.get("signerIndex"),
                "IsRequired": f.get("isRequired", True),
            }
            for f in fields
        ],
        "LinkExpirationInHours": signer.get("linkExpirationInHours") or DEFAULT_LINK_EXPIRATION_HOURS,
        "SenderNote": signer.get("senderNote"),
        "OtpIdentification": signer.get("otpIdentification"),
        "OtpMode": signer.get("otpMode"),
        "AuthenticationMode": signer.get("authenticationMode"),
    }


class WeSignClient:
    """Async client for the WeSign user API (``/userapi/v3``).

    Holds one session token set. The bearer header is computed for every
    request, so a refreshed token is used by the very next call. A 401 on an
    authenticated request triggers exactly one refresh followed by one retry.

    Concurrent requests that hit 401 together will each try to refresh; there
    is no lock serializing token mutation.
    """

    def __init__(
        self,
        api_url: str,
        *,
        timeout_s: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.api_url = (api_url or "").strip().rstrip("/")
        self._tokens: Optional[SessionTokens] = None
        self._client = httpx.AsyncClient(
            base_url=f"{self.api_url}/userapi/v3",
            timeout=timeout_s,
            headers={"Content-Type": "application/json", "Accept": "application/json"},
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    # -------------------------
    # Session state
    # -------------------------

    def is_authenticated(self) -> bool:
        return bool(self._tokens and self._tokens.access_token)

    def set_tokens(self, tokens: Optional[SessionTokens]) -> None:
        self._tokens = tokens

    def get_tokens(self) -> Optional[SessionTokens]:
        return self._tokens

    def _auth_headers(self) -> Dict[str, str]:
        if self._tokens and self._tokens.access_token:
            return {"Authorization": f"Bearer {self._tokens.access_token}"}
        return {}

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        content: Optional[str] = None,
        params: Optional[Dict[str, Any]] = None,
        refresh_on_401: bool = True,
    ) -> Any:
        retried = False
        while True:
            try:
                resp = await self._client.request(
                    method, path, json=json, content=content, params=params, headers=self._auth_headers()
                )
            except httpx.HTTPError as e:
                raise WeSignAPIError(str(e) or "Unknown error occurred") from e

            if (
                resp.status_code == 401
                and refresh_on_401
                and not retried
                and self._tokens is not None
                and self._tokens.refresh_token
            ):
                retried = True
                log.info("wesign.session_refresh", method=method, path=path)
                await self.refresh_token()
                continue

            if resp.status_code == 401:
                raise WeSignAuthError(_error_message(resp), status_code=401)
            if resp.status_code >= 400:
                raise WeSignAPIError(_error_message(resp), status_code=resp.status_code)
            return _json_or_none(resp)

    async def _call(self, action: str, method: str, path: str, **kwargs: Any) -> Any:
        try:
            return await self._request(method, path, **kwargs)
        except WeSignError as e:
            raise e.with_context(action) from e

    # -------------------------
    # Authentication
    # -------------------------

    async def login(self, email: str, password: str) -> LoginResult:
        try:
            data = await self._request(
                "POST", "/users/login", json={"Email": email, "Password": password}, refresh_on_401=False
            )
        except WeSignError as e:
            raise WeSignAuthError(f"Login failed: {e}", status_code=e.status_code) from e

        token = data.get("token") if isinstance(data, dict) else None
        if not token:
            log.warning("wesign.login_no_token")
            return LoginResult(success=False, message="Login failed: no token received")

        self._tokens = SessionTokens(
            access_token=token,
            refresh_token=data.get("refreshToken"),
            auth_token=data.get("authToken") or "",
        )
        log.info("wesign.login_ok")
        return LoginResult(success=True, message="Login successful", tokens=self._tokens)

    async def refresh_token(self) -> None:
        tokens = self._tokens
        if tokens is None or not tokens.refresh_token:
            raise WeSignAuthError("No refresh token available")

        try:
            data = await self._request(
                "POST",
                "/users/refresh",
                json={
                    "JwtToken": tokens.access_token,
                    "RefreshToken": tokens.refresh_token,
                    "AuthToken": tokens.auth_token,
                },
                refresh_on_401=False,
            )
        except WeSignError as e:
            self._tokens = None
            log.warning("wesign.session_refresh_failed", error=str(e))
            raise WeSignAuthError(f"Token refresh failed: {e}", status_code=e.status_code) from e

        if isinstance(data, dict):
            if data.get("token"):
                tokens.access_token = data["token"]
            if data.get("refreshToken"):
                tokens.refresh_token = data["refreshToken"]

    async def logout(self) -> None:
        try:
            await self._request("GET", "/users/Logout", refresh_on_401=False)
        except WeSignError as e:
            log.info("wesign.logout_notify_failed", error=str(e))
        finally:
            self._tokens = None

    # -------------------------
    # Users
    # -------------------------

    async def get_user_info(self) -> Dict[str, Any]:
        return await self._call("get current user", "GET", "/users")

    async def update_user_info(self, user: Dict[str, Any]) -> Any:
        return await self._call("update user", "PUT", "/users", json=user)

    async def sign_up(self, user: Dict[str, Any]) -> Any:
        return await self._call("sign up", "POST", "/users", json=user)

    # -------------------------
    # Self-sign
    # -------------------------

    async def create_self_sign_document(
        self, name: str, base64_file: str, source_template_id: Optional[str] = None
    ) -> Dict[str, Any]:
        body: Dict[str, Any] = {"name": name, "base64File": base64_file}
        if source_template_id:
            body["sourceTemplateId"] = source_template_id
        return await self._call("create self-sign document", "POST", "/selfsign", json=body)

    async def update_self_sign_document(
        self,
        document_collection_id: str,
        document_id: str,
        operation: int,
        fields: Optional[List[Dict[str, Any]]] = None,
    ) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "documentCollectionId": document_collection_id,
            "documentId": document_id,
            "operation": operation,
        }
        if fields is not None:
            body["fields"] = fields
        return await self._call("update self-sign document", "PUT", "/selfsign", json=body)

    async def get_self_sign_document(self, document_collection_id: str) -> Dict[str, Any]:
        return await self._call("get self-sign document", "GET", f"/selfsign/{document_collection_id}")

    # -------------------------
    # Document collections
    # -------------------------

    async def get_document_collections(self, offset: int = 0, limit: int = 50) -> Any:
        return await self._call(
            "get document collections", "GET", "/documentcollections", params={"offset": offset, "limit": limit}
        )

    async def get_document_collection(self, document_collection_id: str) -> Dict[str, Any]:
        return await self._call("get document collection", "GET", f"/documentcollections/{document_collection_id}")

    async def create_document_collection(self, name: str, base64_files: List[str]) -> Dict[str, Any]:
        return await self._call(
            "create document collection",
            "POST",
            "/documentcollections",
            json={"Name": name, "Base64Files": base64_files},
        )

    async def download_document(self, document_collection_id: str, document_id: str) -> Dict[str, Any]:
        return await self._call(
            "download document",
            "GET",
            f"/documentcollections/{document_collection_id}/documents/{document_id}/download",
        )

    async def send_document_for_signature(
        self,
        *,
        document_mode: int,
        document_name: str,
        templates: List[str],
        signers: List[Dict[str, Any]],
        sender_note: Optional[str] = None,
        redirect_url: Optional[str] = None,
        sign_using_signer1_after_flow: Optional[bool] = None,
        enable_meaning_of_signature: Optional[bool] = None,
    ) -> Dict[str, Any]:
        body = {
            "DocumentMode": document_mode,
            "DocumentName": document_name,
            "Templates": templates,
            "SenderNote": sender_note,
            # upstream field name is misspelled
            "RediretUrl": redirect_url,
            "Signers": [build_signer_payload(s) for s in signers],
            "ShouldSignUsingSigner1AfterDocumentSigningFlow": sign_using_signer1_after_flow,
            "ShouldEnableMeaningOfSignature": enable_meaning_of_signature,
        }
        return await self._call("send document for signature", "POST", "/documentcollections", json=body)

    async def send_simple_document(self, document: Dict[str, Any]) -> Dict[str, Any]:
        return await self._call("send simple document", "POST", "/documentcollections/simple", json=document)

    async def resend_to_signer(self, document_collection_id: str, signer_id: str, sending_method: int) -> Any:
        return await self._call(
            "resend document to signer",
            "GET",
            f"/documentcollections/{document_collection_id}/signers/{signer_id}/method/{sending_method}",
        )

    async def replace_signer(self, document_collection_id: str, signer_id: str, new_signer: Dict[str, Any]) -> Any:
        return await self._call(
            "replace signer",
            "PUT",
            f"/documentcollections/{document_collection_id}/signer/{signer_id}/replace",
            json=new_signer,
        )

    async def cancel_document(self, document_collection_id: str) -> Any:
        return await self._call(
            "cancel document collection", "PUT", f"/documentcollections/{document_collection_id}/cancel", content=""
        )

    async def reactivate_document(self, document_collection_id: str) -> Any:
        return await self._call(
            "reactivate document collection", "GET", f"/documentcollections/{document_collection_id}/reactivate"
        )

    async def share_document(self, document_collection_id: str, emails: List[str], message: Optional[str] = None) -> Any:
        return await self._call(
            "share document",
            "POST",
            "/documentcollections/share",
            json={"documentCollectionId": document_collection_id, "emails": emails, "message": message or ""},
        )

    async def get_signer_link(self, document_collection_id: str, signer_id: str) -> Dict[str, Any]:
        return await self._call(
            "get sender live link", "GET", f"/documentcollections/{document_collection_id}/senderLink/{signer_id}"
        )

    # -------------------------
    # Distribution
    # -------------------------

    async def extract_signers_from_excel(self, base64_file: str) -> List[Dict[str, Any]]:
        data = await self._call(
            "extract signers from Excel", "POST", "/distribution/signers", json={"Base64File": base64_file}
        )
        if isinstance(data, dict):
            return list(data.get("signers") or [])
        return []

    # -------------------------
    # Templates
    # -------------------------

    async def get_templates(self, offset: int = 0, limit: int = 50) -> List[Dict[str, Any]]:
        data = await self._call("get templates", "GET", "/templates", params={"offset": offset, "limit": limit})
        if isinstance(data, dict):
            return list(data.get("Templates") or data.get("templates") or [])
        return list(data or [])

    async def get_template(self, template_id: str) -> Dict[str, Any]:
        return await self._call("get template", "GET", f"/templates/{template_id}")

    async def create_template(self, name: str, base64_file: str, description: Optional[str] = None) -> Dict[str, Any]:
        data = await self._call(
            "create template",
            "POST",
            "/templates",
            json={"Name": name, "Base64File": base64_file, "Description": description},
        )
        data = data if isinstance(data, dict) else {}
        return {
            "id": data.get("templateId"),
            "name": data.get("templateName"),
            "description": data.get("description"),
            "status": data.get("status") or 1,
            "creationTime": data.get("creationTime"),
            "base64File": data.get("base64File"),
        }

    async def update_template_fields(self, template_id: str, fields: Dict[str, Any]) -> None:
        body = build_template_fields_payload(fields)
        log.debug(
            "wesign.update_template_fields",
            template_id=template_id,
            counts={k: len(v) for k, v in body["Fields"].items()},
        )
        await self._call("update template fields", "PUT", f"/templates/{template_id}", json=body)

    # -------------------------
    # Contacts
    # -------------------------

    async def create_contact(self, contact: Dict[str, Any]) -> Dict[str, Any]:
        return await self._call("create contact", "POST", "/contacts", json=contact)

    async def create_contacts_bulk(self, contacts: List[Dict[str, Any]]) -> Any:
        return await self._call("create contacts in bulk", "POST", "/contacts/bulk", json={"contacts": contacts})

    async def get_contacts(
        self,
        offset: int = 0,
        limit: int = 100,
        search: Optional[str] = None,
        group_id: Optional[str] = None,
    ) -> Any:
        params: Dict[str, Any] = {"offset": offset, "limit": limit}
        if search:
            params["query"] = search
        if group_id:
            params["groupId"] = group_id
        return await self._call("list contacts", "GET", "/contacts", params=params)

    async def get_contact(self, contact_id: str) -> Dict[str, Any]:
        return await self._call("get contact", "GET", f"/contacts/{contact_id}")

    async def update_contact(self, contact_id: str, contact: Dict[str, Any]) -> Dict[str, Any]:
        return await self._call("update contact", "PUT", f"/contacts/{contact_id}", json=contact)

    async def delete_contact(self, contact_id: str) -> None:
        await self._call("delete contact", "DELETE", f"/contacts/{contact_id}")

    async def delete_contacts_batch(self, contact_ids: List[str]) -> None:
        await self._call("delete contacts in batch", "POST", "/contacts/batch-delete", json={"contactIds": contact_ids})

    async def get_contact_groups(self, offset: int = 0, limit: int = 100) -> Any:
        return await self._call(
            "list contact groups", "GET", "/contacts/group", params={"offset": offset, "limit": limit}
        )

    async def get_contact_group(self, group_id: str) -> Dict[str, Any]:
        return await self._call("get contact group", "GET", f"/contacts/group/{group_id}")

    async def create_contact_group(self, group: Dict[str, Any]) -> Dict[str, Any]:
        return await self._call("create contact group", "POST", "/contacts/group", json=group)

    async def update_contact_group(self, group_id: str, group: Dict[str, Any]) -> Dict[str, Any]:
        return await self._call("update contact group", "PUT", f"/contacts/group/{group_id}", json=group)

    async def delete_contact_group(self, group_id: str) -> None:
        await self._call("delete contact group", "DELETE", f"/contacts/group/{group_id}")
