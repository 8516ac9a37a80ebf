"""Natural-language field placement.

Turns phrases like "bottom right", "top of the page on the left" or
"below the signature line" into page coordinates on a US-Letter reference
page (612x792 points, origin at the top-left corner).

The parser never raises. Every result carries a confidence grade so callers
can surface uncertain placements as warnings.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

Confidence = str  # "high" | "medium" | "low"


@dataclass(frozen=True)
class PageSize:
    width: float
    height: float


@dataclass(frozen=True)
class FieldSize:
    width: float
    height: float


@dataclass(frozen=True)
class FieldPlacement:
    x: float
    y: float
    width: float
    height: float
    confidence: Confidence
    explanation: str


DEFAULT_PAGE = PageSize(612, 792)
MARGIN = 50

FIELD_SIZES: Dict[str, FieldSize] = {
    "signature": FieldSize(200, 50),
    "initials": FieldSize(100, 30),
    "date": FieldSize(150, 30),
    "text": FieldSize(200, 30),
    "checkbox": FieldSize(20, 20),
}

# Grid names -> (column, row). Columns: L/C/R, rows: T/M/B.
_GRID: Dict[str, Tuple[str, str]] = {
    "top-left": ("L", "T"),
    "top-center": ("C", "T"),
    "top-centre": ("C", "T"),
    "top-middle": ("C", "T"),
    "top-right": ("R", "T"),
    "upper-left": ("L", "T"),
    "upper-center": ("C", "T"),
    "upper-right": ("R", "T"),
    "middle-left": ("L", "M"),
    "middle-center": ("C", "M"),
    "middle-centre": ("C", "M"),
    "middle-right": ("R", "M"),
    "center-left": ("L", "M"),
    "center-center": ("C", "M"),
    "center-right": ("R", "M"),
    "bottom-left": ("L", "B"),
    "bottom-center": ("C", "B"),
    "bottom-centre": ("C", "B"),
    "bottom-middle": ("C", "B"),
    "bottom-right": ("R", "B"),
    "lower-left": ("L", "B"),
    "lower-center": ("C", "B"),
    "lower-right": ("R", "B"),
    # single words only match when they are the whole phrase
    "centre": ("C", "M"),
    "center": ("C", "M"),
    "top": ("C", "T"),
    "bottom": ("C", "B"),
    "left": ("L", "M"),
    "right": ("R", "M"),
}

GRID_POSITIONS: Tuple[str, ...] = tuple(sorted(_GRID, key=len, reverse=True))

_FILLER_RE = re.compile(r"\b(?:at|in|on)\s+the\b")
_SEPARATOR_RE = re.compile(r"[^a-z0-9]+")


def get_field_size(field_type: Optional[str]) -> FieldSize:
    return FIELD_SIZES.get((field_type or "").strip().lower(), FIELD_SIZES["signature"])


def _column_x(column: str, size: FieldSize, page: PageSize) -> float:
    if column == "L":
        return MARGIN
    if column == "R":
        return page.width - MARGIN - size.width
    return (page.width - size.width) / 2


def _row_y(row: str, size: FieldSize, page: PageSize) -> float:
    if row == "T":
        return MARGIN
    if row == "B":
        return page.height - MARGIN - size.height
    return (page.height - size.height) / 2


def grid_coordinates(position: str, field_type: str = "signature", page: PageSize = DEFAULT_PAGE) -> Tuple[int, int]:
    """Exact (x, y) of a named grid position for a field type.

    Raises KeyError for names outside the grid table.
    """
    column, row = _GRID[position]
    size = get_field_size(field_type)
    return round(_column_x(column, size, page)), round(_row_y(row, size, page))


def _normalize(description: str) -> str:
    text = _FILLER_RE.sub(" ", description.lower().strip())
    return _SEPARATOR_RE.sub("-", text).strip("-")


def _match_grid(normalized: str) -> Optional[str]:
    padded = f"-{normalized}-"
    for key in GRID_POSITIONS:
        if "-" not in key:
            if normalized == key:
                return key
            continue
        if f"-{key}-" in padded:
            return key
    return None


def _relative_to_text(
    desc: str, reference_text: str, size: FieldSize, page: PageSize
) -> Optional[Tuple[float, float, str]]:
    # No text extraction happens: the reference is assumed to sit a third of
    # the way down the page, spanning the printable width.
    text_y = page.height * 0.3
    text_x = MARGIN
    text_width = page.width - 2 * MARGIN

    if any(w in desc for w in ("below", "under", "beneath")):
        return text_x, text_y + 40, f'Positioned below "{reference_text}"'
    if any(w in desc for w in ("above", "over")):
        return text_x, text_y - size.height - 20, f'Positioned above "{reference_text}"'
    if "left of" in desc or "to the left" in desc:
        return text_x - size.width - 20, text_y, f'Positioned to the left of "{reference_text}"'
    if "right of" in desc or "to the right" in desc:
        return text_x + text_width + 20, text_y, f'Positioned to the right of "{reference_text}"'
    if any(w in desc for w in ("in line with", "inline", "same line")):
        return text_x + text_width + 10, text_y, f'Positioned in line with "{reference_text}"'
    return None


def _directional(words: List[str], size: FieldSize, page: PageSize) -> Optional[Tuple[float, float]]:
    vocab = set(words)
    row: Optional[str] = None
    column: Optional[str] = None

    if vocab & {"top", "upper", "above"}:
        row = "T"
    elif vocab & {"bottom", "lower", "below"}:
        row = "B"
    elif vocab & {"middle", "center", "centre"}:
        row = "M"

    if "left" in vocab:
        column = "L"
    elif "right" in vocab:
        column = "R"
    elif vocab & {"center", "centre", "middle"}:
        column = "C"

    if row is None and column is None:
        return None
    return _column_x(column or "C", size, page), _row_y(row or "M", size, page)


def parse_position(
    description: Optional[str],
    field_type: str = "signature",
    page: PageSize = DEFAULT_PAGE,
    reference_text: Optional[str] = None,
) -> FieldPlacement:
    size = get_field_size(field_type)
    desc = (description or "").lower().strip()
    normalized = _normalize(desc)

    key = _match_grid(normalized)
    if key is not None:
        column, row = _GRID[key]
        return FieldPlacement(
            x=round(_column_x(column, size, page)),
            y=round(_row_y(row, size, page)),
            width=size.width,
            height=size.height,
            confidence="high",
            explanation=f"Positioned at {key.replace('-', ' ', 1)}",
        )

    if reference_text:
        rel = _relative_to_text(desc, reference_text, size, page)
        if rel is not None:
            x, y, explanation = rel
            return FieldPlacement(round(x), round(y), size.width, size.height, "medium", explanation)

    direction = _directional([w for w in normalized.split("-") if w], size, page)
    if direction is not None:
        x, y = direction
        return FieldPlacement(
            round(x), round(y), size.width, size.height, "medium", "Positioned using directional keywords"
        )

    return FieldPlacement(
        x=round((page.width - size.width) / 2),
        y=round(page.height - MARGIN - size.height),
        width=size.width,
        height=size.height,
        confidence="low",
        explanation="Could not parse position, using default: bottom center",
    )


def validate_coordinates(x: float, y: float, size: FieldSize, page: PageSize = DEFAULT_PAGE) -> bool:
    return x >= 0 and y >= 0 and x + size.width <= page.width and y + size.height <= page.height


def parse_natural_language(description: Optional[str]) -> Tuple[str, Confidence, List[str]]:
    """Map a phrase to the closest grid name.

    Returns (position, confidence, alternatives). Used to suggest clearer
    wording when a placement was not an exact grid match.
    """
    vocab = set(w for w in _normalize(description or "").split("-") if w)
    centered = bool(vocab & {"center", "centre", "middle"})

    if "bottom" in vocab and "left" in vocab:
        return "bottom-left", "high", ["lower-left"]
    if "bottom" in vocab and "right" in vocab:
        return "bottom-right", "high", ["lower-right"]
    if "bottom" in vocab and centered:
        return "bottom-center", "high", ["bottom-middle"]
    if "top" in vocab and "left" in vocab:
        return "top-left", "high", ["upper-left"]
    if "top" in vocab and "right" in vocab:
        return "top-right", "high", ["upper-right"]
    if "top" in vocab and centered:
        return "top-center", "high", ["top-middle", "upper-center"]

    if "bottom" in vocab:
        return "bottom-center", "medium", ["bottom"]
    if "top" in vocab:
        return "top-center", "medium", ["top"]
    if "left" in vocab:
        return "middle-left", "medium", ["left"]
    if "right" in vocab:
        return "middle-right", "medium", ["right"]
    if centered:
        return "center", "medium", ["middle-center"]

    return "bottom-center", "low", []
