"""
Interactive element service.

Control surface for the engine, independent of any transport:
- list_elements / get_element / create_element / update_element / delete_element
- submit_response: grade, then store the response and progress in one commit
- list_responses / get_latest_response / get_progress
- render_section

Transient storage failures are retried with exponential backoff and jitter;
every other error surfaces immediately.
"""
from __future__ import annotations

import random
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any, TypeVar

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from config import get_settings
from civicbook.db.models import ElementResponse, InteractiveElement, UserBookProgress
from civicbook.db.repository import ELEMENT_FIELDS, ElementRepository
from civicbook.elements.base import Outcome
from civicbook.errors import (
    ConflictError,
    ErrorKind,
    PayloadError,
    SubmissionRejected,
    TransientStorageError,
)
from civicbook.grading import grade
from civicbook.rendering.renderer import SectionRenderer
from civicbook.schema import (
    CompletionStatus,
    CompletionType,
    ElementType,
    coerce_element_type,
    normalize_payload,
)
from civicbook.schema.codec import error_from_validation

T = TypeVar("T")


class ElementDraft(BaseModel):
    """Input for creating an element."""

    model_config = ConfigDict(extra="forbid")

    section_id: int
    element_type: ElementType
    title: str = Field(min_length=1)
    description: str = ""
    payload: dict[str, Any] | str
    completion_type: CompletionType = CompletionType.GRADED
    points_value: int = Field(default=0, ge=0)
    required: bool = False
    position: int | None = Field(default=None, ge=0)


@dataclass
class SubmissionResult:
    outcome: Outcome
    response: ElementResponse
    progress: UserBookProgress | None
    is_new_completion: bool = False
    duplicate: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "outcome": self.outcome.to_dict(),
            "response": self.response.to_dict(),
            "progress": self.progress.to_dict() if self.progress is not None else None,
            "is_new_completion": self.is_new_completion,
            "duplicate": self.duplicate,
        }


def outcome_from_response(response: ElementResponse) -> Outcome:
    """Rebuild the outcome recorded on a stored response."""
    return Outcome(
        score=response.score,
        status=CompletionStatus(response.completion_status),
        points=response.points_awarded,
        feedback=response.feedback or {},
        time_spent_seconds=response.time_spent_seconds or 0,
    )


class InteractiveElementService:
    """Operations on interactive elements, responses and progress."""

    def __init__(
        self,
        repository: ElementRepository | None = None,
        renderer: SectionRenderer | None = None,
        grader: Callable[[Any, Any], Outcome] = grade,
        sleep: Callable[[float], None] = time.sleep,
    ):
        settings = get_settings()
        self.repository = repository or ElementRepository()
        self.renderer = renderer or SectionRenderer(self.repository, topic_url=settings.discussion_topic_url)
        self.grader = grader
        self.sleep = sleep
        retry = settings.get_retry_config()
        self.retry_attempts = int(retry["attempts"])
        self.retry_base_delay = retry["base_delay"]
        self.retry_factor = retry["factor"]
        self.retry_jitter = retry["jitter"]

    def _with_retry(self, operation: str, fn: Callable[[], T]) -> T:
        """Run fn, retrying TransientStorageError up to retry_attempts times."""
        for attempt in range(self.retry_attempts + 1):
            try:
                return fn()
            except TransientStorageError:
                if attempt >= self.retry_attempts:
                    logger.error(f"{operation}: giving up after {attempt + 1} attempts")
                    raise
                delay = self.retry_base_delay * (self.retry_factor ** attempt)
                delay *= 1 + random.uniform(-self.retry_jitter, self.retry_jitter)
                logger.warning(f"{operation}: transient failure, retrying in {delay:.3f}s (attempt {attempt + 1})")
                self.sleep(delay)
        raise AssertionError("unreachable")

    # ========================================
    # Elements
    # ========================================

    def list_elements(self, section_id: int) -> list[InteractiveElement]:
        return self._with_retry("list_elements", lambda: self.repository.get_elements_by_section(section_id))

    def get_element(self, element_id: int) -> InteractiveElement:
        return self._with_retry("get_element", lambda: self.repository.get_element(element_id))

    def create_element(self, draft: ElementDraft | Mapping[str, Any]) -> InteractiveElement:
        """
        Validate and store a new element.

        Raises:
            PayloadError: Draft or payload failed validation
            NotFoundError: Section does not exist
            ConflictError: Storage rejected the row
        """
        if not isinstance(draft, ElementDraft):
            draft = self._parse_draft(draft)
        element = InteractiveElement(
            section_id=draft.section_id,
            element_type=draft.element_type.value,
            title=draft.title,
            description=draft.description,
            payload=normalize_payload(draft.element_type, draft.payload),
            completion_type=draft.completion_type.value,
            points_value=draft.points_value,
            required=draft.required,
            position=draft.position,
        )
        return self._with_retry("create_element", lambda: self.repository.create_element(element))

    def _parse_draft(self, data: Mapping[str, Any]) -> ElementDraft:
        try:
            return ElementDraft.model_validate(dict(data))
        except ValidationError as e:
            raise error_from_validation(e, "element draft") from e

    def _create_typed(
        self,
        element_type: ElementType,
        section_id: int,
        title: str,
        payload: Mapping[str, Any] | str,
        description: str = "",
        completion_type: CompletionType | str = CompletionType.GRADED,
        points_value: int = 0,
        required: bool = False,
    ) -> InteractiveElement:
        return self.create_element({
            "section_id": section_id,
            "element_type": element_type,
            "title": title,
            "description": description,
            "payload": payload if isinstance(payload, str) else dict(payload),
            "completion_type": completion_type,
            "points_value": points_value,
            "required": required,
        })

    def create_quiz(self, section_id: int, title: str, payload: Mapping[str, Any] | str, **options: Any) -> InteractiveElement:
        """Append a quiz to the end of a section."""
        return self._create_typed(ElementType.QUIZ, section_id, title, payload, **options)

    def create_reflection(self, section_id: int, title: str, payload: Mapping[str, Any] | str, **options: Any) -> InteractiveElement:
        return self._create_typed(ElementType.REFLECTION, section_id, title, payload, **options)

    def create_call_to_action(self, section_id: int, title: str, payload: Mapping[str, Any] | str, **options: Any) -> InteractiveElement:
        return self._create_typed(ElementType.CALL_TO_ACTION, section_id, title, payload, **options)

    def create_discussion_prompt(self, section_id: int, title: str, payload: Mapping[str, Any] | str, **options: Any) -> InteractiveElement:
        return self._create_typed(ElementType.DISCUSSION_PROMPT, section_id, title, payload, **options)

    def create_poll(self, section_id: int, title: str, payload: Mapping[str, Any] | str, **options: Any) -> InteractiveElement:
        return self._create_typed(ElementType.POLL, section_id, title, payload, **options)

    def update_element(self, element_id: int, **changes: Any) -> InteractiveElement:
        """
        Update element fields. A new payload (or type) is re-validated
        against the resulting element type before anything is written.

        Raises:
            PayloadError: Unknown field or invalid value
            NotFoundError: Element does not exist
            ConflictError: Payload or type change on an element with responses
        """
        unknown = set(changes) - ELEMENT_FIELDS
        if unknown:
            raise PayloadError(
                f"Cannot update element fields: {', '.join(sorted(unknown))}",
                kind=ErrorKind.SCHEMA_INVALID,
            )
        if "element_type" in changes or "payload" in changes:
            current = self.get_element(element_id)
            element_type = coerce_element_type(changes.get("element_type", current.element_type))
            changes["element_type"] = element_type.value
            changes["payload"] = normalize_payload(element_type, changes.get("payload", current.payload))
        if "completion_type" in changes:
            try:
                changes["completion_type"] = CompletionType(changes["completion_type"]).value
            except ValueError:
                raise PayloadError(
                    f"Unknown completion type: {changes['completion_type']}",
                    kind=ErrorKind.ENUM_OUT_OF_RANGE,
                ) from None
        if "points_value" in changes:
            points = changes["points_value"]
            if isinstance(points, bool) or not isinstance(points, int) or points < 0:
                raise PayloadError(f"points_value must be an integer >= 0, got {points!r}")
        for key in ("title", "section_id"):
            if key in changes and not changes[key]:
                raise PayloadError(f"{key} is required", kind=ErrorKind.MISSING_FIELD)
        return self._with_retry("update_element", lambda: self.repository.update_element(element_id, changes))

    def delete_element(self, element_id: int) -> None:
        self._with_retry("delete_element", lambda: self.repository.delete_element(element_id))

    # ========================================
    # Submissions
    # ========================================

    def submit_response(
        self,
        user_id: int,
        element_id: int,
        submission: Any,
        nonce: str | None = None,
    ) -> SubmissionResult:
        """
        Grade a submission and record it with the updated book progress.

        Raises:
            NotFoundError: Element does not exist
            SubmissionRejected: Submission shape, option ids or stored payload
                made grading impossible; nothing was stored
            TransientStorageError: Storage kept failing after retries
        """
        if nonce:
            previous = self._with_retry(
                "submit_response", lambda: self.repository.get_response_by_nonce(user_id, nonce)
            )
            if previous is not None:
                return self._replay(previous)

        element = self.get_element(element_id)
        outcome = self.grader(element, submission)
        if outcome.rejected:
            first = outcome.errors[0]
            logger.info(f"Rejected submission from user {user_id} for element {element_id}: {first.message}")
            raise SubmissionRejected(
                first.message,
                kind=first.kind,
                details=[issue.to_dict() for issue in outcome.errors],
            )

        def save():
            response = ElementResponse(
                user_id=user_id,
                element_id=element_id,
                payload_in=submission,
                score=outcome.score,
                completion_status=outcome.status.value,
                points_awarded=outcome.points,
                feedback=outcome.feedback,
                time_spent_seconds=outcome.time_spent_seconds,
                submission_nonce=nonce,
            )
            return self.repository.save_response_and_update_progress(response)

        try:
            saved = self._with_retry("submit_response", save)
        except ConflictError:
            # Lost a race with the same nonce; the winner's response is the result
            if not nonce:
                raise
            previous = self.repository.get_response_by_nonce(user_id, nonce)
            if previous is None:
                raise
            return self._replay(previous)

        if saved.duplicate:
            return self._replay(saved)
        return SubmissionResult(
            outcome=outcome,
            response=saved.response,
            progress=saved.progress,
            is_new_completion=saved.is_new_completion,
        )

    def _replay(self, saved) -> SubmissionResult:
        logger.debug(f"Duplicate submission nonce, returning response {saved.response.id}")
        return SubmissionResult(
            outcome=outcome_from_response(saved.response),
            response=saved.response,
            progress=saved.progress,
            duplicate=True,
        )

    def list_responses(self, user_id: int, element_id: int) -> list[ElementResponse]:
        return self._with_retry("list_responses", lambda: self.repository.get_responses(user_id, element_id))

    def get_latest_response(self, user_id: int, element_id: int) -> ElementResponse:
        return self._with_retry(
            "get_latest_response", lambda: self.repository.get_latest_response(user_id, element_id)
        )

    def get_progress(self, user_id: int, book_id: int) -> UserBookProgress:
        return self._with_retry("get_progress", lambda: self.repository.get_progress(user_id, book_id))

    # ========================================
    # Rendering
    # ========================================

    def render_section(self, section_id: int, content: str | None = None, user_id: int | None = None) -> str:
        """Render a section's markup; loads the stored markup when content is None."""
        if content is None:
            content = self._with_retry("render_section", lambda: self.repository.get_section(section_id)).content
        return self.renderer.render_section(section_id, content or "", user_id)


__all__ = [
    "ElementDraft",
    "InteractiveElementService",
    "SubmissionResult",
]
