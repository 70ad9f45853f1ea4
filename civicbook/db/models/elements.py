"""
Interactive element models.

Implements:
- InteractiveElement: typed element attached to a section
- ElementResponse: append-only record of one graded submission
- UserBookProgress: per-user, per-book aggregate kept in step with responses

InteractiveElement.book_id duplicates section -> chapter -> book so the
aggregate queries never join through the book structure. It is resolved
when the element is created or moved.

The payload column holds canonical JSON text for the variant named by
element_type:

Quiz:
    {"questions": [{"id": "1", "kind": "multiple-choice", "text": "...",
                    "options": [...], "correctOptionId": "a"}],
     "passScore": 75, "randomize": true}

Reflection:
    {"prompt": "...", "minResponseLength": 100, "sharingOptions": ["private"]}

Call to action:
    {"actionType": "link", "buttonText": "Join", "url": "/groups"}

Discussion prompt:
    {"topic": "...", "initialPrompt": "...", "supportingPoints": [...]}

Poll:
    {"question": "...", "options": [{"id": "a", "text": "..."}, ...]}
"""
from __future__ import annotations

from datetime import datetime
from typing import Any, List, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, utcnow


class InteractiveElement(Base):
    """An interactive widget embedded in a section via {{interactive:N}}."""

    __tablename__ = "interactive_elements"
    __table_args__ = (
        Index("ix_interactive_elements_section_position", "section_id", "position", "id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    section_id: Mapped[int] = mapped_column(ForeignKey("sections.id", ondelete="CASCADE"), nullable=False)
    book_id: Mapped[int] = mapped_column(ForeignKey("books.id", ondelete="CASCADE"), nullable=False, index=True)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    element_type: Mapped[str] = mapped_column(String(50), nullable=False)
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    description: Mapped[str] = mapped_column(Text, default="")
    payload: Mapped[str] = mapped_column(Text, nullable=False)

    completion_type: Mapped[str] = mapped_column(String(20), nullable=False, default="graded")
    points_value: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    required: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    responses: Mapped[List["ElementResponse"]] = relationship(back_populates="element")

    def __repr__(self) -> str:
        return (
            f"<InteractiveElement(id={self.id}, section_id={self.section_id}, "
            f"type='{self.element_type}', position={self.position})>"
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "section_id": self.section_id,
            "book_id": self.book_id,
            "position": self.position,
            "type": self.element_type,
            "title": self.title,
            "description": self.description,
            "payload": self.payload,
            "completion_type": self.completion_type,
            "points_value": self.points_value,
            "required": self.required,
        }


class ElementResponse(Base):
    """One user's graded submission for an element. Never updated."""

    __tablename__ = "element_responses"
    __table_args__ = (
        UniqueConstraint("user_id", "submission_nonce", name="uq_element_responses_user_nonce"),
        Index("ix_element_responses_user_element_submitted", "user_id", "element_id", "submitted_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False)
    element_id: Mapped[int] = mapped_column(
        ForeignKey("interactive_elements.id", ondelete="CASCADE"), nullable=False
    )
    submitted_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)

    payload_in: Mapped[Any] = mapped_column(JSON, nullable=False)
    score: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    completion_status: Mapped[str] = mapped_column(String(20), nullable=False)
    points_awarded: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    feedback: Mapped[Any] = mapped_column(JSON, default=dict)
    time_spent_seconds: Mapped[int] = mapped_column(Integer, default=0)
    submission_nonce: Mapped[Optional[str]] = mapped_column(String(100))

    element: Mapped["InteractiveElement"] = relationship(back_populates="responses")

    def __repr__(self) -> str:
        return (
            f"<ElementResponse(id={self.id}, user_id={self.user_id}, element_id={self.element_id}, "
            f"status='{self.completion_status}', score={self.score})>"
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "element_id": self.element_id,
            "submitted_at": self.submitted_at.isoformat() if self.submitted_at else None,
            "payload_in": self.payload_in,
            "score": self.score,
            "completion_status": self.completion_status,
            "points_awarded": self.points_awarded,
            "feedback": self.feedback,
            "time_spent_seconds": self.time_spent_seconds,
        }


class UserBookProgress(Base):
    """Aggregate of one user's interactive progress through one book."""

    __tablename__ = "user_book_progress"
    __table_args__ = (
        UniqueConstraint("user_id", "book_id", name="uq_user_book_progress_user_book"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False)
    book_id: Mapped[int] = mapped_column(ForeignKey("books.id", ondelete="CASCADE"), nullable=False)

    total_elements: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    completed_elements: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    completion_percentage: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_points_available: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_points_earned: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    avg_score_percentage: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    required_completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    def __repr__(self) -> str:
        return (
            f"<UserBookProgress(user_id={self.user_id}, book_id={self.book_id}, "
            f"{self.completed_elements}/{self.total_elements})>"
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "user_id": self.user_id,
            "book_id": self.book_id,
            "total_elements": self.total_elements,
            "completed_elements": self.completed_elements,
            "completion_percentage": self.completion_percentage,
            "total_points_available": self.total_points_available,
            "total_points_earned": self.total_points_earned,
            "avg_score_percentage": self.avg_score_percentage,
            "required_completed": self.required_completed,
        }
