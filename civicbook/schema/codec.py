"""
Parse, validate, canonicalize and serialize element payloads.

Payloads are parsed once at the boundary and handed around as typed models.
Validation failures are reduced to a single ErrorKind chosen by a fixed
priority, so equivalent inputs report the same kind whatever their key order.
"""
from __future__ import annotations

import json
from collections.abc import Mapping
from typing import Any

from pydantic import ValidationError

from civicbook.errors import ErrorKind, PayloadError

from .enums import ElementType
from .payloads import PAYLOAD_MODELS, Payload

# pydantic error type -> engine error kind
_KIND_BY_ERROR_TYPE: dict[str, ErrorKind] = {
    "missing": ErrorKind.MISSING_FIELD,
    "missing_value": ErrorKind.MISSING_FIELD,
    "string_too_short": ErrorKind.MISSING_FIELD,
    "union_tag_not_found": ErrorKind.MISSING_FIELD,
    "literal_error": ErrorKind.ENUM_OUT_OF_RANGE,
    "enum": ErrorKind.ENUM_OUT_OF_RANGE,
    "union_tag_invalid": ErrorKind.ENUM_OUT_OF_RANGE,
    "reference_missing": ErrorKind.REFERENCE_MISSING,
    "cross_field_invariant": ErrorKind.CROSS_FIELD_INVARIANT,
}

# Lower wins when several problems are reported at once
_KIND_PRIORITY: dict[ErrorKind, int] = {
    ErrorKind.MISSING_FIELD: 0,
    ErrorKind.ENUM_OUT_OF_RANGE: 1,
    ErrorKind.SCHEMA_INVALID: 2,
    ErrorKind.REFERENCE_MISSING: 3,
    ErrorKind.CROSS_FIELD_INVARIANT: 4,
}


def _location(loc: tuple[Any, ...]) -> str:
    return ".".join(str(part) for part in loc) or "<root>"


def error_from_validation(exc: ValidationError, subject: str) -> PayloadError:
    """Collapse a pydantic ValidationError into one PayloadError."""
    details = []
    for error in exc.errors(include_url=False, include_input=False):
        kind = _KIND_BY_ERROR_TYPE.get(error["type"], ErrorKind.SCHEMA_INVALID)
        details.append({
            "kind": kind.value,
            "loc": _location(tuple(error["loc"])),
            "message": error["msg"],
        })
    details.sort(key=lambda d: (_KIND_PRIORITY[ErrorKind(d["kind"])], d["loc"], d["message"]))
    first = details[0]
    return PayloadError(
        f"Invalid {subject} at {first['loc']}: {first['message']}",
        kind=ErrorKind(first["kind"]),
        details=details,
    )


def coerce_element_type(element_type: str | ElementType) -> ElementType:
    try:
        return ElementType(element_type)
    except ValueError:
        raise PayloadError(
            f"Unknown element type: {element_type}",
            kind=ErrorKind.ENUM_OUT_OF_RANGE,
        ) from None


def parse_payload(element_type: str | ElementType, raw: str | bytes | Mapping[str, Any]) -> Payload:
    """
    Parse and validate a payload for the given element type.

    Args:
        element_type: Element type (enum or its string value)
        raw: JSON text or an already-decoded mapping

    Returns:
        The typed payload model

    Raises:
        PayloadError: With the ErrorKind describing the first problem
    """
    etype = coerce_element_type(element_type)
    if isinstance(raw, (str, bytes)):
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise PayloadError(f"Payload is not valid JSON: {e.msg}") from e
    else:
        data = raw
    if not isinstance(data, Mapping):
        raise PayloadError(f"Payload must be a JSON object, got {type(data).__name__}")

    model = PAYLOAD_MODELS[etype]
    try:
        return model.model_validate(dict(data))
    except ValidationError as e:
        raise error_from_validation(e, f"{etype.value} payload") from e


def canonical_dict(payload: Payload) -> dict[str, Any]:
    """Wire-form dict: camelCase keys, absent optionals dropped."""
    return payload.model_dump(mode="json", by_alias=True, exclude_none=True)


def canonicalize(payload: Payload) -> Payload:
    """Return the canonical form of a payload (normalized, optionals resolved)."""
    return type(payload).model_validate(canonical_dict(payload))


def serialize_payload(payload: Payload) -> str:
    """Serialize to canonical JSON text (sorted keys, compact)."""
    return json.dumps(canonical_dict(payload), sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def normalize_payload(element_type: str | ElementType, raw: str | bytes | Mapping[str, Any]) -> str:
    """Parse, validate and re-serialize in one step. Used before storing."""
    return serialize_payload(canonicalize(parse_payload(element_type, raw)))
