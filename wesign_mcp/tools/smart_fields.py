from __future__ import annotations

import logging
from typing import Any, Dict, List

from ..schemas import AddFieldSmartInput, AddSignaturePresetInput, SmartFieldInput
from ..utils.position_parser import (
    FieldSize,
    get_field_size,
    parse_natural_language,
    parse_position,
    validate_coordinates,
)
from .base import ToolModule, ToolSpec, array, boolean, integer, number, schema, string

logger = logging.getLogger(__name__)

SMART_FIELD_TYPES = ["signature", "initials", "date", "text", "checkbox"]

PRESETS = [
    "signature-bottom-all-pages",
    "signature-bottom-first-page",
    "signature-bottom-last-page",
    "initials-bottom-right-all-pages",
    "signature-and-date-bottom",
    "signature-initials-date-bottom",
]

# Upstream codes for template fields
SIGNING_TYPE_GRAPHIC = 3
TEXT_FIELD_TEXT = 3
TEXT_FIELD_DATE = 4

TOOLS = [
    {
        "name": "wesign_add_field_smart",
        "description": (
            "Add a signature/form field using natural language positioning. Examples: \"bottom left\", "
            "\"top right corner\", \"center of page\", \"below the title\", \"above signature line\"."
        ),
        "inputSchema": schema(
            {
                "templateId": string("ID of the template to add fields to"),
                "fields": array(
                    schema(
                        {
                            "type": string("Type of field to add", enum=SMART_FIELD_TYPES),
                            "name": string('Unique name for the field (e.g., "Signature_1")'),
                            "page": integer("Page number (1-based)", minimum=1),
                            "position": string(
                                'Natural language position description. Examples: "bottom center", "top right", '
                                '"lower left corner", "middle of page", "below text", "left side"'
                            ),
                            "referenceText": string(
                                'Optional: Text to position relative to (e.g., "Sign here:", "Date:")'
                            ),
                            "mandatory": boolean("Whether field is required (default: true)", default=True),
                            "width": number("Optional: Custom field width in points (default: auto based on type)"),
                            "height": number(
                                "Optional: Custom field height in points (default: auto based on type)"
                            ),
                        },
                        required=["type", "name", "page", "position"],
                    ),
                    "Array of fields to add with natural language positions",
                    minItems=1,
                ),
            },
            required=["templateId", "fields"],
        ),
    },
    {
        "name": "wesign_add_signature_preset",
        "description": "Add signature fields using common presets for quick setup",
        "inputSchema": schema(
            {
                "templateId": string("ID of the template"),
                "preset": string("Preset configuration for common signature scenarios", enum=PRESETS),
                "pageCount": integer(
                    "Total number of pages in document (for all-pages and last-page presets)", default=1, minimum=1
                ),
            },
            required=["templateId", "preset"],
        ),
    },
]


def preset_fields(preset: str, page_count: int = 1) -> List[SmartFieldInput]:
    """Expand a preset name into the smart fields it stands for."""
    pages = range(1, page_count + 1)

    def field(kind: str, name: str, page: int, position: str) -> SmartFieldInput:
        return SmartFieldInput(type=kind, name=name, page=page, position=position)

    if preset == "signature-bottom-all-pages":
        return [field("signature", f"Signature_Page_{p}", p, "bottom center") for p in pages]
    if preset == "signature-bottom-first-page":
        return [field("signature", "Signature", 1, "bottom center")]
    if preset == "signature-bottom-last-page":
        return [field("signature", "Signature", page_count, "bottom center")]
    if preset == "initials-bottom-right-all-pages":
        return [field("initials", f"Initials_Page_{p}", p, "bottom right") for p in pages]
    if preset == "signature-and-date-bottom":
        return [
            field("signature", "Signature", 1, "bottom left"),
            field("date", "Date", 1, "bottom right"),
        ]
    if preset == "signature-initials-date-bottom":
        return [
            field("signature", "Signature", 1, "bottom left"),
            field("initials", "Initials", 1, "bottom center"),
            field("date", "Date", 1, "bottom right"),
        ]
    raise ValueError(f"Unknown preset: {preset}")


def _template_field(f: SmartFieldInput, x: float, y: float, size: FieldSize) -> Dict[str, Any]:
    return {
        "name": f.name,
        "description": f"{f.type} field - {f.position}",
        "x": x,
        "y": y,
        "width": size.width,
        "height": size.height,
        "mandatory": f.mandatory,
        "page": f.page,
    }


class SmartFieldTools(ToolModule):
    name = "smart field"
    TOOLS = TOOLS
    PREFIXES = ("wesign_add_field_smart", "wesign_add_signature_preset")
    SPECS = {
        "wesign_add_field_smart": ToolSpec(AddFieldSmartInput, "add_field_smart", "add fields"),
        "wesign_add_signature_preset": ToolSpec(AddSignaturePresetInput, "add_signature_preset", "apply preset"),
    }

    async def _place_fields(self, template_id: str, fields: List[SmartFieldInput]) -> Dict[str, Any]:
        groups: Dict[str, List[Dict[str, Any]]] = {"signatureFields": [], "textFields": [], "checkBoxFields": []}
        placed: List[Dict[str, Any]] = []
        warnings: List[str] = []

        for f in fields:
            default = get_field_size(f.type)
            size = FieldSize(f.width or default.width, f.height or default.height)
            placement = parse_position(f.position, f.type, reference_text=f.reference_text)

            if not validate_coordinates(placement.x, placement.y, size):
                warnings.append(
                    f'Field "{f.name}" coordinates may be out of bounds. '
                    f"Position: {f.position}, Coordinates: ({placement.x}, {placement.y})"
                )
            if placement.confidence != "high":
                suggestion, _, alternatives = parse_natural_language(f.position)
                hint = f'; closest named position is "{suggestion.replace("-", " ")}"'
                if alternatives:
                    hint += f" (also: {', '.join(a.replace('-', ' ') for a in alternatives)})"
                warnings.append(f'Field "{f.name}": {placement.explanation}{hint}')

            entry = _template_field(f, placement.x, placement.y, size)
            if f.type in ("signature", "initials"):
                groups["signatureFields"].append({**entry, "image": "", "signingType": SIGNING_TYPE_GRAPHIC})
            elif f.type in ("text", "date"):
                text_type = TEXT_FIELD_DATE if f.type == "date" else TEXT_FIELD_TEXT
                groups["textFields"].append({**entry, "value": "", "textFieldType": text_type})
            else:
                groups["checkBoxFields"].append({**entry, "isChecked": False})

            placed.append(
                {
                    "index": len(placed) + 1,
                    "name": f.name,
                    "type": f.type,
                    "page": f.page,
                    "position": f.position,
                    "coordinates": {"x": placement.x, "y": placement.y},
                    "size": {"width": size.width, "height": size.height},
                    "confidence": placement.confidence,
                }
            )

        await self.client.update_template_fields(template_id, groups)

        if warnings:
            logger.info("placed %d fields on template %s with %d warnings", len(placed), template_id, len(warnings))

        result: Dict[str, Any] = {
            "success": True,
            "message": f"Added {len(placed)} field(s) using natural language positioning",
            "templateId": template_id,
            "fieldsAdded": len(placed),
            "fields": placed,
        }
        if warnings:
            result["warnings"] = warnings
        return result

    async def add_field_smart(self, inp: AddFieldSmartInput) -> Dict[str, Any]:
        return await self._place_fields(inp.template_id, inp.fields)

    async def add_signature_preset(self, inp: AddSignaturePresetInput) -> Dict[str, Any]:
        result = await self._place_fields(inp.template_id, preset_fields(inp.preset, inp.page_count))
        result["preset"] = inp.preset
        return result
