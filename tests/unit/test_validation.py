"""Unit tests for router validation helpers."""

from __future__ import annotations

import pytest

from dispute_service.exceptions import ValidationError
from dispute_service.routers.validation import (
    optional_int,
    optional_string,
    parse_json_body,
    parse_optional_json_body,
    require_non_empty_string,
)


@pytest.mark.unit
def test_parse_json_body_valid() -> None:
    """parse_json_body returns parsed object for valid JSON."""
    assert parse_json_body(b'{"content":"hello"}') == {"content": "hello"}


@pytest.mark.unit
def test_parse_json_body_invalid_json() -> None:
    """parse_json_body raises INVALID_JSON for malformed JSON."""
    with pytest.raises(ValidationError) as exc:
        parse_json_body(b"{not-json")
    assert exc.value.error == "INVALID_JSON"
    assert exc.value.status_code == 400


@pytest.mark.unit
def test_parse_json_body_not_object() -> None:
    """parse_json_body rejects non-object JSON values."""
    with pytest.raises(ValidationError) as exc:
        parse_json_body(b"[1, 2]")
    assert exc.value.error == "INVALID_JSON"


@pytest.mark.unit
def test_parse_optional_json_body_empty() -> None:
    """An empty or blank body parses as an empty object."""
    assert parse_optional_json_body(b"") == {}
    assert parse_optional_json_body(b"  \n") == {}
    assert parse_optional_json_body(b'{"reason":"done"}') == {"reason": "done"}


@pytest.mark.unit
def test_require_non_empty_string() -> None:
    """require_non_empty_string rejects missing, blank and non-string values."""
    assert require_non_empty_string({"outcome": "refund"}, "outcome") == "refund"
    for data in ({}, {"outcome": "  "}, {"outcome": 3}):
        with pytest.raises(ValidationError) as exc:
            require_non_empty_string(data, "outcome")
        assert exc.value.error == "INVALID_PAYLOAD"
        assert exc.value.details == {"field": "outcome"}


@pytest.mark.unit
def test_optional_string() -> None:
    """optional_string passes strings and None, rejects other types."""
    assert optional_string({}, "notes") is None
    assert optional_string({"notes": None}, "notes") is None
    assert optional_string({"notes": ""}, "notes") == ""
    with pytest.raises(ValidationError):
        optional_string({"notes": ["a"]}, "notes")


@pytest.mark.unit
def test_optional_int_rejects_bool_and_float() -> None:
    """optional_int accepts integers only."""
    assert optional_int({"artisan_pct": 40}, "artisan_pct") == 40
    assert optional_int({}, "artisan_pct") is None
    for value in (True, 40.5, "40"):
        with pytest.raises(ValidationError):
            optional_int({"artisan_pct": value}, "artisan_pct")
