"""
Error taxonomy for the interactive element engine.

Kinds are grouped as:
- input: problems with what a client sent (payload drafts, submissions)
- data: stored rows that are missing or no longer parse
- storage: failures reported by the database layer
- render: placeholder problems, which never surface as exceptions
"""
from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorKind(str, Enum):
    """Every error kind the engine reports."""

    # Input
    SCHEMA_INVALID = "SchemaInvalid"
    MISSING_FIELD = "MissingField"
    ENUM_OUT_OF_RANGE = "EnumOutOfRange"
    CROSS_FIELD_INVARIANT = "CrossFieldInvariant"
    INVALID_SUBMISSION_SHAPE = "InvalidSubmissionShape"
    MISSING_REQUIRED = "MissingRequired"
    UNKNOWN_OPTION_ID = "UnknownOptionId"
    # Data
    NOT_FOUND = "NotFound"
    REFERENCE_MISSING = "ReferenceMissing"
    PAYLOAD_CORRUPT = "PayloadCorrupt"
    # Storage
    CONFLICT = "Conflict"
    TRANSIENT_STORAGE = "TransientStorage"
    FATAL = "Fatal"
    # Render
    PLACEHOLDER_MALFORMED = "PlaceholderMalformed"


PAYLOAD_KINDS = frozenset({
    ErrorKind.SCHEMA_INVALID,
    ErrorKind.MISSING_FIELD,
    ErrorKind.ENUM_OUT_OF_RANGE,
    ErrorKind.CROSS_FIELD_INVARIANT,
    ErrorKind.REFERENCE_MISSING,
})


class EngineError(Exception):
    """Base exception carrying an error kind and optional details."""

    kind: ErrorKind = ErrorKind.FATAL

    def __init__(
        self,
        message: str,
        kind: ErrorKind | None = None,
        details: list[dict[str, Any]] | None = None,
    ):
        super().__init__(message)
        if kind is not None:
            self.kind = kind
        self.message = message
        self.details = details or []

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind.value, "message": self.message, "details": self.details}


class PayloadError(EngineError):
    """A payload failed to parse or validate."""

    kind = ErrorKind.SCHEMA_INVALID


class NotFoundError(EngineError):
    kind = ErrorKind.NOT_FOUND


class ConflictError(EngineError):
    kind = ErrorKind.CONFLICT


class TransientStorageError(EngineError):
    """Retryable storage failure (lock timeout, serialization failure, lost connection)."""

    kind = ErrorKind.TRANSIENT_STORAGE


class FatalStorageError(EngineError):
    kind = ErrorKind.FATAL


class SubmissionRejected(EngineError):
    """The grader refused a submission; nothing was stored."""

    kind = ErrorKind.INVALID_SUBMISSION_SHAPE
