"""Shared request validation helpers for dispute routers."""

from __future__ import annotations

import json
from typing import Any

from dispute_service.exceptions import ValidationError


def parse_json_body(raw_body: bytes) -> dict[str, Any]:
    """Parse request body as a JSON object."""
    try:
        parsed = json.loads(raw_body)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise ValidationError("INVALID_JSON", "Request body is not valid JSON") from exc
    if not isinstance(parsed, dict):
        raise ValidationError("INVALID_JSON", "Request body must be a JSON object")
    return parsed


def parse_optional_json_body(raw_body: bytes) -> dict[str, Any]:
    """Like parse_json_body, but an empty body is an empty object."""
    if raw_body.strip() == b"":
        return {}
    return parse_json_body(raw_body)


def require_non_empty_string(data: dict[str, Any], field: str) -> str:
    """Extract required non-empty string field."""
    value = data.get(field)
    if not isinstance(value, str) or value.strip() == "":
        raise ValidationError(
            "INVALID_PAYLOAD",
            f"Request body must contain {field}",
            {"field": field},
        )
    return value


def optional_string(data: dict[str, Any], field: str) -> str | None:
    """Extract an optional string field; null and absent both mean None."""
    value = data.get(field)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(
            "INVALID_PAYLOAD",
            f"{field} must be a string",
            {"field": field},
        )
    return value


def optional_int(data: dict[str, Any], field: str) -> int | None:
    """Extract an optional integer field. Booleans are rejected."""
    value = data.get(field)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(
            "INVALID_PAYLOAD",
            f"{field} must be an integer",
            {"field": field},
        )
    return value
