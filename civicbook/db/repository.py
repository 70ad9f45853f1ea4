"""
Element store.

Reads and writes interactive elements, responses and progress rows. Every
public method runs in its own transaction; SQLAlchemy errors are translated
into the engine's storage errors at this boundary:
- IntegrityError -> ConflictError
- lock timeouts, deadlocks, serialization failures, dropped connections
  -> TransientStorageError
- anything else -> FatalStorageError
"""
from __future__ import annotations

from collections.abc import Generator
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any

from loguru import logger
from sqlalchemy import delete, func, select
from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from civicbook.db.database import SessionLocal, session_scope
from civicbook.db.models import (
    Chapter,
    DiscussionTopic,
    ElementResponse,
    InteractiveElement,
    Section,
    UserBookProgress,
)
from civicbook.errors import (
    ConflictError,
    EngineError,
    FatalStorageError,
    NotFoundError,
    TransientStorageError,
)
from civicbook.progress import ProgressAggregator

# SQLSTATE codes worth retrying (serialization_failure, deadlock_detected, lock_not_available)
_TRANSIENT_SQLSTATES = {"40001", "40P01", "55P03"}
_TRANSIENT_MARKERS = (
    "database is locked",
    "deadlock",
    "could not serialize",
    "lock timeout",
    "server closed the connection",
    "connection reset",
)

ELEMENT_FIELDS = frozenset({
    "section_id",
    "position",
    "element_type",
    "title",
    "description",
    "payload",
    "completion_type",
    "points_value",
    "required",
})


def translate_error(error: SQLAlchemyError, operation: str) -> EngineError:
    """Map a SQLAlchemy exception onto the storage error kinds."""
    if isinstance(error, IntegrityError):
        logger.info(f"{operation}: integrity conflict: {error.orig}")
        return ConflictError(f"{operation} conflicts with existing data")

    if isinstance(error, DBAPIError):
        sqlstate = getattr(error.orig, "pgcode", None)
        message = str(error.orig).lower()
        if (
            error.connection_invalidated
            or sqlstate in _TRANSIENT_SQLSTATES
            or (isinstance(error, OperationalError) and any(m in message for m in _TRANSIENT_MARKERS))
        ):
            logger.warning(f"{operation}: transient storage failure: {error.orig}")
            return TransientStorageError(f"{operation} failed temporarily")

    logger.error(f"{operation}: storage failure: {error}")
    return FatalStorageError(f"{operation} failed: {error.__class__.__name__}")


@dataclass
class SaveResult:
    """What save_response_and_update_progress committed."""
    response: ElementResponse
    progress: UserBookProgress | None
    is_new_completion: bool = False
    duplicate: bool = False


class ElementRepository:
    """Transactional access to elements, responses and progress."""

    def __init__(
        self,
        session_factory: sessionmaker[Session] | None = None,
        aggregator: ProgressAggregator | None = None,
    ):
        self.session_factory = session_factory or SessionLocal
        self.aggregator = aggregator or ProgressAggregator()

    @contextmanager
    def transaction(self, operation: str) -> Generator[Session, None, None]:
        try:
            with session_scope(self.session_factory) as session:
                yield session
        except SQLAlchemyError as e:
            raise translate_error(e, operation) from e

    # ========================================
    # Book structure
    # ========================================

    def get_section(self, section_id: int) -> Section:
        with self.transaction("get_section") as session:
            section = session.get(Section, section_id)
            if section is None:
                raise NotFoundError(f"Section {section_id} not found")
            return section

    def get_sections_by_book(self, book_id: int) -> list[Section]:
        with self.transaction("get_sections_by_book") as session:
            stmt = (
                select(Section)
                .join(Chapter, Chapter.id == Section.chapter_id)
                .where(Chapter.book_id == book_id)
                .order_by(Chapter.number, Chapter.id, Section.number, Section.id)
            )
            return list(session.scalars(stmt))

    def get_topic(self, topic_id: int) -> DiscussionTopic | None:
        with self.transaction("get_topic") as session:
            return session.get(DiscussionTopic, topic_id)

    def _resolve_book_id(self, session: Session, section_id: int) -> int:
        book_id = session.scalar(
            select(Chapter.book_id)
            .join(Section, Section.chapter_id == Chapter.id)
            .where(Section.id == section_id)
        )
        if book_id is None:
            raise NotFoundError(f"Section {section_id} not found")
        return book_id

    # ========================================
    # Elements
    # ========================================

    def get_elements_by_section(self, section_id: int) -> list[InteractiveElement]:
        with self.transaction("get_elements_by_section") as session:
            stmt = (
                select(InteractiveElement)
                .where(InteractiveElement.section_id == section_id)
                .order_by(InteractiveElement.position, InteractiveElement.id)
            )
            return list(session.scalars(stmt))

    def get_element(self, element_id: int) -> InteractiveElement:
        with self.transaction("get_element") as session:
            element = session.get(InteractiveElement, element_id)
            if element is None:
                raise NotFoundError(f"Interactive element {element_id} not found")
            return element

    def create_element(self, element: InteractiveElement) -> InteractiveElement:
        """
        Store a new element.

        book_id is resolved from the section. Without an explicit position the
        element goes after the last one in its section.
        """
        with self.transaction("create_element") as session:
            element.book_id = self._resolve_book_id(session, element.section_id)
            if element.position is None:
                last = session.scalar(
                    select(func.max(InteractiveElement.position))
                    .where(InteractiveElement.section_id == element.section_id)
                )
                element.position = 0 if last is None else last + 1
            session.add(element)
            session.flush()
            logger.info(f"Created {element.element_type} element {element.id} in section {element.section_id}")
            return element

    def update_element(self, element_id: int, changes: dict[str, Any]) -> InteractiveElement:
        """
        Apply field changes to an element.

        Once any response references the element, its payload and type are
        frozen: changing either raises ConflictError.
        """
        unknown = set(changes) - ELEMENT_FIELDS
        if unknown:
            raise ValueError(f"Cannot update element fields: {', '.join(sorted(unknown))}")
        with self.transaction("update_element") as session:
            element = session.get(InteractiveElement, element_id)
            if element is None:
                raise NotFoundError(f"Interactive element {element_id} not found")
            frozen = [
                key for key in ("payload", "element_type")
                if key in changes and changes[key] != getattr(element, key)
            ]
            if frozen and self._has_responses(session, element_id):
                raise ConflictError(
                    f"Element {element_id} already has responses; its {' and '.join(frozen)} cannot change"
                )
            for key, value in changes.items():
                setattr(element, key, value)
            if "section_id" in changes:
                element.book_id = self._resolve_book_id(session, element.section_id)
            session.flush()
            return element

    def _has_responses(self, session: Session, element_id: int) -> bool:
        return session.scalar(
            select(ElementResponse.id).where(ElementResponse.element_id == element_id).limit(1)
        ) is not None

    def delete_element(self, element_id: int) -> None:
        """Delete an element and all of its responses in one transaction."""
        with self.transaction("delete_element") as session:
            if session.get(InteractiveElement, element_id) is None:
                raise NotFoundError(f"Interactive element {element_id} not found")
            removed = session.execute(
                delete(ElementResponse).where(ElementResponse.element_id == element_id)
            ).rowcount
            session.execute(delete(InteractiveElement).where(InteractiveElement.id == element_id))
            logger.info(f"Deleted element {element_id} and {removed} responses")

    # ========================================
    # Responses and progress
    # ========================================

    def save_response_and_update_progress(self, response: ElementResponse) -> SaveResult:
        """
        Insert a response and update the user's book progress atomically.

        A response whose (user, submission_nonce) was already stored is not
        inserted again; the stored one is returned with duplicate=True.
        """
        with self.transaction("save_response") as session:
            if response.submission_nonce:
                existing = self._find_by_nonce(session, response.user_id, response.submission_nonce)
                if existing is not None:
                    return self._duplicate(session, existing)

            element = session.get(InteractiveElement, response.element_id)
            if element is None:
                raise NotFoundError(f"Interactive element {response.element_id} not found")

            session.add(response)
            session.flush()
            update = self.aggregator.apply(session, response, element.book_id)
            return SaveResult(
                response=response,
                progress=update.progress,
                is_new_completion=update.is_new_completion,
            )

    def _duplicate(self, session: Session, existing: ElementResponse) -> SaveResult:
        book_id = session.scalar(
            select(InteractiveElement.book_id).where(InteractiveElement.id == existing.element_id)
        )
        progress = session.scalars(
            select(UserBookProgress).where(
                UserBookProgress.user_id == existing.user_id,
                UserBookProgress.book_id == book_id,
            )
        ).one_or_none()
        return SaveResult(response=existing, progress=progress, duplicate=True)

    def _find_by_nonce(self, session: Session, user_id: int, nonce: str) -> ElementResponse | None:
        return session.scalars(
            select(ElementResponse).where(
                ElementResponse.user_id == user_id,
                ElementResponse.submission_nonce == nonce,
            )
        ).one_or_none()

    def get_response_by_nonce(self, user_id: int, nonce: str) -> SaveResult | None:
        with self.transaction("get_response_by_nonce") as session:
            existing = self._find_by_nonce(session, user_id, nonce)
            if existing is None:
                return None
            return self._duplicate(session, existing)

    def get_responses(self, user_id: int, element_id: int) -> list[ElementResponse]:
        """All of a user's responses to an element, newest first."""
        with self.transaction("get_responses") as session:
            stmt = (
                select(ElementResponse)
                .where(ElementResponse.user_id == user_id, ElementResponse.element_id == element_id)
                .order_by(ElementResponse.submitted_at.desc(), ElementResponse.id.desc())
            )
            return list(session.scalars(stmt))

    def get_latest_response(self, user_id: int, element_id: int) -> ElementResponse:
        with self.transaction("get_latest_response") as session:
            stmt = (
                select(ElementResponse)
                .where(ElementResponse.user_id == user_id, ElementResponse.element_id == element_id)
                .order_by(ElementResponse.submitted_at.desc(), ElementResponse.id.desc())
                .limit(1)
            )
            response = session.scalars(stmt).first()
            if response is None:
                raise NotFoundError(f"No response from user {user_id} for element {element_id}")
            return response

    def get_progress(self, user_id: int, book_id: int) -> UserBookProgress:
        with self.transaction("get_progress") as session:
            stmt = select(UserBookProgress).where(
                UserBookProgress.user_id == user_id,
                UserBookProgress.book_id == book_id,
            )
            progress = session.scalars(stmt).one_or_none()
            if progress is None:
                raise NotFoundError(f"No progress for user {user_id} in book {book_id}")
            return progress
