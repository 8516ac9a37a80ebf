from __future__ import annotations

from typing import Any, Dict, List

from ..schemas import (
    ContactFields,
    ContactGroupFields,
    ContactGroupRef,
    ContactRef,
    CreateContactsBulkInput,
    DeleteContactsBatchInput,
    ListContactGroupsInput,
    ListContactsInput,
    UpdateContactGroupInput,
    UpdateContactInput,
)
from .base import ToolModule, ToolSpec, array, integer, schema, string

_CONTACT_PROPERTIES = {
    "firstName": string("Contact first name"),
    "lastName": string("Contact last name"),
    "email": string("Contact email address (optional)"),
    "phone": string("Contact phone number (optional)"),
    "company": string("Company name (optional)"),
    "notes": string("Additional notes about the contact (optional)"),
    "groupId": string("Contact group ID to add this contact to (optional)"),
}

_STRING_LIST = {"type": "string"}

TOOLS = [
    {
        "name": "wesign_create_contact",
        "description": "Create a new contact in your WeSign address book",
        "inputSchema": schema(_CONTACT_PROPERTIES, required=["firstName", "lastName"]),
    },
    {
        "name": "wesign_create_contacts_bulk",
        "description": "Create multiple contacts at once from an array",
        "inputSchema": schema(
            {
                "contacts": array(
                    schema(_CONTACT_PROPERTIES, required=["firstName", "lastName"]),
                    "Array of contacts to create",
                    minItems=1,
                )
            },
            required=["contacts"],
        ),
    },
    {
        "name": "wesign_list_contacts",
        "description": "List and search contacts with optional filters",
        "inputSchema": schema(
            {
                "query": string("Search query - searches in name, email, phone, company (optional)"),
                "groupId": string("Filter by contact group ID (optional)"),
                "offset": integer("Number of records to skip (default: 0)", default=0, minimum=0),
                "limit": integer("Maximum number of contacts to return (default: 100)", default=100, minimum=1),
            }
        ),
    },
    {
        "name": "wesign_get_contact",
        "description": "Get detailed information about a specific contact",
        "inputSchema": schema({"contactId": string("ID of the contact to retrieve")}, required=["contactId"]),
    },
    {
        "name": "wesign_update_contact",
        "description": "Update an existing contact information",
        "inputSchema": schema(
            {"contactId": string("ID of the contact to update"), **_CONTACT_PROPERTIES},
            required=["contactId", "firstName", "lastName"],
        ),
    },
    {
        "name": "wesign_delete_contact",
        "description": "Delete a contact from your address book",
        "inputSchema": schema({"contactId": string("ID of the contact to delete")}, required=["contactId"]),
    },
    {
        "name": "wesign_delete_contacts_batch",
        "description": "Delete multiple contacts at once",
        "inputSchema": schema(
            {"contactIds": array(_STRING_LIST, "Array of contact IDs to delete", minItems=1)},
            required=["contactIds"],
        ),
    },
    {
        "name": "wesign_list_contact_groups",
        "description": "List all contact groups",
        "inputSchema": schema(
            {
                "offset": integer("Number of records to skip (default: 0)", default=0, minimum=0),
                "limit": integer("Maximum number of groups to return (default: 100)", default=100, minimum=1),
            }
        ),
    },
    {
        "name": "wesign_get_contact_group",
        "description": "Get detailed information about a specific contact group",
        "inputSchema": schema({"groupId": string("ID of the contact group to retrieve")}, required=["groupId"]),
    },
    {
        "name": "wesign_create_contact_group",
        "description": "Create a new contact group",
        "inputSchema": schema(
            {
                "name": string("Name for the contact group"),
                "description": string("Description of the contact group (optional)"),
                "contactIds": array(_STRING_LIST, "Array of contact IDs to add to this group (optional)"),
            },
            required=["name"],
        ),
    },
    {
        "name": "wesign_update_contact_group",
        "description": "Update an existing contact group",
        "inputSchema": schema(
            {
                "groupId": string("ID of the contact group to update"),
                "name": string("Updated name for the contact group"),
                "description": string("Updated description (optional)"),
                "contactIds": array(_STRING_LIST, "Updated array of contact IDs in this group (optional)"),
            },
            required=["groupId", "name"],
        ),
    },
    {
        "name": "wesign_delete_contact_group",
        "description": "Delete a contact group (contacts remain, only the group is deleted)",
        "inputSchema": schema({"groupId": string("ID of the contact group to delete")}, required=["groupId"]),
    },
]


def _items(data: Any, *keys: str) -> List[Any]:
    if isinstance(data, list):
        return data
    if isinstance(data, dict):
        for key in keys:
            if isinstance(data.get(key), list):
                return data[key]
    return []


class ContactTools(ToolModule):
    name = "contact"
    TOOLS = TOOLS
    # Contact-group names share the contact prefixes; exact names settle it.
    PREFIXES = (
        "wesign_create_contact",
        "wesign_list_contact",
        "wesign_get_contact",
        "wesign_update_contact",
        "wesign_delete_contact",
    )
    SPECS = {
        "wesign_create_contact": ToolSpec(ContactFields, "create_contact", "create contact"),
        "wesign_create_contacts_bulk": ToolSpec(
            CreateContactsBulkInput, "create_contacts_bulk", "create contacts in bulk"
        ),
        "wesign_list_contacts": ToolSpec(ListContactsInput, "list_contacts", "list contacts"),
        "wesign_get_contact": ToolSpec(ContactRef, "get_contact", "get contact"),
        "wesign_update_contact": ToolSpec(UpdateContactInput, "update_contact", "update contact"),
        "wesign_delete_contact": ToolSpec(ContactRef, "delete_contact", "delete contact"),
        "wesign_delete_contacts_batch": ToolSpec(DeleteContactsBatchInput, "delete_contacts_batch", "delete contacts"),
        "wesign_list_contact_groups": ToolSpec(ListContactGroupsInput, "list_contact_groups", "list contact groups"),
        "wesign_get_contact_group": ToolSpec(ContactGroupRef, "get_contact_group", "get contact group"),
        "wesign_create_contact_group": ToolSpec(ContactGroupFields, "create_contact_group", "create contact group"),
        "wesign_update_contact_group": ToolSpec(
            UpdateContactGroupInput, "update_contact_group", "update contact group"
        ),
        "wesign_delete_contact_group": ToolSpec(ContactGroupRef, "delete_contact_group", "delete contact group"),
    }

    async def create_contact(self, inp: ContactFields) -> Dict[str, Any]:
        contact = await self.client.create_contact(inp.upstream())
        return {
            "success": True,
            "message": f'Contact "{inp.first_name} {inp.last_name}" created successfully',
            "contact": contact,
        }

    async def create_contacts_bulk(self, inp: CreateContactsBulkInput) -> Dict[str, Any]:
        results = await self.client.create_contacts_bulk([c.upstream() for c in inp.contacts])
        return {
            "success": True,
            "message": f"Created {len(inp.contacts)} contact(s)",
            "totalCreated": len(inp.contacts),
            "contacts": results,
        }

    async def list_contacts(self, inp: ListContactsInput) -> Dict[str, Any]:
        data = await self.client.get_contacts(inp.offset, inp.limit, search=inp.query, group_id=inp.group_id)
        contacts = _items(data, "contacts", "Contacts")
        return {
            "success": True,
            "message": f"Found {len(contacts)} contact(s)",
            "count": len(contacts),
            "filters": {
                "query": inp.query or "none",
                "groupId": inp.group_id or "none",
                "offset": inp.offset,
                "limit": inp.limit,
            },
            "contacts": contacts,
        }

    async def get_contact(self, inp: ContactRef) -> Dict[str, Any]:
        contact = await self.client.get_contact(inp.contact_id) or {}
        full_name = f"{contact.get('firstName') or ''} {contact.get('lastName') or ''}".strip()
        return {"success": True, "message": f"Retrieved contact: {full_name}", "contact": contact}

    async def update_contact(self, inp: UpdateContactInput) -> Dict[str, Any]:
        contact = await self.client.update_contact(inp.contact_id, inp.upstream())
        return {"success": True, "message": "Contact updated successfully", "contact": contact}

    async def delete_contact(self, inp: ContactRef) -> Dict[str, Any]:
        await self.client.delete_contact(inp.contact_id)
        return {"success": True, "message": "Contact deleted successfully", "contactId": inp.contact_id}

    async def delete_contacts_batch(self, inp: DeleteContactsBatchInput) -> Dict[str, Any]:
        await self.client.delete_contacts_batch(inp.contact_ids)
        return {
            "success": True,
            "message": f"Deleted {len(inp.contact_ids)} contact(s)",
            "deletedCount": len(inp.contact_ids),
            "contactIds": inp.contact_ids,
        }

    async def list_contact_groups(self, inp: ListContactGroupsInput) -> Dict[str, Any]:
        groups = _items(await self.client.get_contact_groups(inp.offset, inp.limit), "groups", "contactGroups")
        return {
            "success": True,
            "message": f"Found {len(groups)} contact group(s)",
            "count": len(groups),
            "groups": groups,
        }

    async def get_contact_group(self, inp: ContactGroupRef) -> Dict[str, Any]:
        group = await self.client.get_contact_group(inp.group_id) or {}
        return {"success": True, "message": f"Retrieved contact group: {group.get('name')}", "group": group}

    async def create_contact_group(self, inp: ContactGroupFields) -> Dict[str, Any]:
        group = await self.client.create_contact_group(inp.upstream())
        return {"success": True, "message": f'Contact group "{inp.name}" created successfully', "group": group}

    async def update_contact_group(self, inp: UpdateContactGroupInput) -> Dict[str, Any]:
        group = await self.client.update_contact_group(inp.group_id, inp.upstream())
        return {"success": True, "message": "Contact group updated successfully", "group": group}

    async def delete_contact_group(self, inp: ContactGroupRef) -> Dict[str, Any]:
        await self.client.delete_contact_group(inp.group_id)
        return {
            "success": True,
            "message": "Contact group deleted successfully (contacts remain in address book)",
            "groupId": inp.group_id,
        }
