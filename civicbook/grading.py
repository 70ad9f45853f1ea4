"""
Grade a submission against an element.

grade() is pure and never raises. Rules shared by every element type:
- completion_type none: always completed with full points
- self-check: completed when the type's minimum constraints hold, else partial
- graded: delegated to the element type's handler

Problems are reported in Outcome.errors (PayloadCorrupt, InvalidSubmissionShape,
UnknownOptionId, MissingRequired).
"""
from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from loguru import logger
from pydantic import ValidationError

from civicbook.elements import get_handler
from civicbook.elements.base import Outcome
from civicbook.errors import ErrorKind, PayloadError
from civicbook.schema import CompletionType, parse_payload


def _completion_type(element: Any) -> CompletionType:
    try:
        return CompletionType(element.completion_type)
    except ValueError:
        return CompletionType.GRADED


def grade(element: Any, submission: Any) -> Outcome:
    """
    Grade a submission.

    Args:
        element: Object exposing element_type, completion_type, points_value
            and payload (canonical JSON text or a mapping)
        submission: Decoded submission body (a mapping)

    Returns:
        Outcome with score, status, points, feedback and errors
    """
    completion_type = _completion_type(element)
    if completion_type == CompletionType.NONE:
        return Outcome.completed(element.points_value)

    handler = get_handler(element.element_type)
    if handler is None:
        return Outcome.failure(ErrorKind.PAYLOAD_CORRUPT, f"Unknown element type: {element.element_type}")

    try:
        payload = parse_payload(element.element_type, element.payload)
    except PayloadError as e:
        logger.warning(f"Element {getattr(element, 'id', '?')} has a corrupt payload: {e.message}")
        return Outcome.failure(ErrorKind.PAYLOAD_CORRUPT, e.message)

    if not isinstance(submission, Mapping):
        return Outcome.failure(ErrorKind.INVALID_SUBMISSION_SHAPE, "Submission must be a JSON object")
    try:
        parsed = handler.submission_model.model_validate(dict(submission))
    except ValidationError as e:
        first = e.errors(include_url=False, include_input=False)[0]
        location = ".".join(str(part) for part in first["loc"]) or "<root>"
        return Outcome.failure(ErrorKind.INVALID_SUBMISSION_SHAPE, f"{location}: {first['msg']}")

    issues = handler.check(payload, parsed)
    if issues:
        outcome = Outcome.failure(issues[0].kind, issues[0].message)
        outcome.errors = issues
        return outcome

    if completion_type == CompletionType.SELF_CHECK:
        if handler.meets_minimum(payload, parsed):
            return Outcome.completed(element.points_value)
        return Outcome.partial(f"Minimum requirements for this {handler.label} are not met")

    return handler.grade(element, payload, parsed)
