from __future__ import annotations

import pytest

from wesign_mcp.utils.position_parser import (
    DEFAULT_PAGE,
    FIELD_SIZES,
    GRID_POSITIONS,
    FieldSize,
    get_field_size,
    grid_coordinates,
    parse_natural_language,
    parse_position,
    validate_coordinates,
)


def test_grid_coordinates_bottom_right_signature():
    assert grid_coordinates("bottom-right", "signature") == (362, 692)


def test_grid_coordinates_depend_on_field_size():
    assert grid_coordinates("bottom-right", "initials") == (462, 712)
    assert grid_coordinates("top-left", "checkbox") == (50, 50)


def test_grid_coordinates_unknown_name():
    with pytest.raises(KeyError):
        grid_coordinates("somewhere-nice")


def test_parse_position_grid_phrases_are_high_confidence():
    p = parse_position("bottom right")
    assert (p.x, p.y, p.width, p.height) == (362, 692, 200, 50)
    assert p.confidence == "high"

    p = parse_position("at the top left")
    assert (p.x, p.y) == (50, 50)
    assert p.confidence == "high"

    p = parse_position("Top Right corner")
    assert (p.x, p.y) == (362, 50)
    assert p.confidence == "high"


def test_parse_position_single_word_must_be_whole_phrase():
    p = parse_position("center", "initials")
    assert (p.x, p.y) == (256, 381)
    assert p.confidence == "high"

    # "left" inside a longer phrase falls through to keyword matching
    p = parse_position("somewhere on the left side please")
    assert (p.x, p.y) == (50, 371)
    assert p.confidence == "medium"


def test_parse_position_relative_to_reference_text():
    p = parse_position("below the signature line", reference_text="Sign here:")
    assert (p.x, p.y) == (50, 278)
    assert p.confidence == "medium"
    assert "Sign here:" in p.explanation


def test_parse_position_reference_text_ignored_for_grid_names():
    p = parse_position("bottom left", reference_text="Sign here:")
    assert (p.x, p.y) == (50, 692)
    assert p.confidence == "high"


def test_parse_position_never_raises():
    for description in ("", None, "wherever you like", "!!!"):
        p = parse_position(description)
        assert p.confidence == "low"
        assert (p.x, p.y) == (206, 692)


def test_field_sizes():
    assert get_field_size("Checkbox") == FieldSize(20, 20)
    assert get_field_size("date") == FIELD_SIZES["date"]
    assert get_field_size("unknown") == FIELD_SIZES["signature"]
    assert get_field_size(None) == FIELD_SIZES["signature"]


def test_validate_coordinates():
    sig = FIELD_SIZES["signature"]
    assert validate_coordinates(362, 692, sig)
    assert not validate_coordinates(500, 700, sig)
    assert not validate_coordinates(-1, 10, sig)


def test_parse_natural_language():
    assert parse_natural_language("bottom of the page, left side") == ("bottom-left", "high", ["lower-left"])
    assert parse_natural_language("near the top")[:2] == ("top-center", "medium")
    assert parse_natural_language("anywhere") == ("bottom-center", "low", [])


def _expected_xy(name: str, size: FieldSize):
    words = set(name.split("-"))
    if "left" in words:
        x = 50
    elif "right" in words:
        x = DEFAULT_PAGE.width - 50 - size.width
    else:
        x = (DEFAULT_PAGE.width - size.width) / 2
    if words & {"top", "upper"}:
        y = 50
    elif words & {"bottom", "lower"}:
        y = DEFAULT_PAGE.height - 50 - size.height
    else:
        y = (DEFAULT_PAGE.height - size.height) / 2
    return round(x), round(y)


@pytest.mark.parametrize("field_type", sorted(FIELD_SIZES))
@pytest.mark.parametrize("name", GRID_POSITIONS)
def test_every_grid_name_is_exact_and_high_confidence(name, field_type):
    expected = _expected_xy(name, FIELD_SIZES[field_type])
    assert grid_coordinates(name, field_type) == expected

    spaced = name.replace("-", " ")
    for phrase in (name, spaced, f"at the {spaced}"):
        p = parse_position(phrase, field_type)
        assert (p.x, p.y) == expected, phrase
        assert (p.width, p.height) == (FIELD_SIZES[field_type].width, FIELD_SIZES[field_type].height)
        assert p.confidence == "high", phrase


@pytest.mark.parametrize("phrase", ["left side near the top", "top of the page on the left", "upper area, left"])
def test_top_and_left_keywords_without_grid_name(phrase):
    p = parse_position(phrase)
    assert (p.x, p.y) == (50, 50)
    assert p.confidence == "medium"


@pytest.mark.parametrize("field_type", sorted(FIELD_SIZES))
def test_validate_coordinates_corners_and_centre(field_type):
    size = FIELD_SIZES[field_type]
    right = DEFAULT_PAGE.width - size.width
    bottom = DEFAULT_PAGE.height - size.height

    for x, y in ((0, 0), (right, 0), (0, bottom), (right, bottom), (right / 2, bottom / 2)):
        assert validate_coordinates(x, y, size), (x, y)

    assert not validate_coordinates(right + 1, 0, size)
    assert not validate_coordinates(0, bottom + 1, size)
    assert not validate_coordinates(0, -1, size)
