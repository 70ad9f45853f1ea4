"""
Per-user, per-book progress aggregation.

Runs inside the transaction that inserts a response. The aggregate row is
created if missing (dialect upsert) and then locked, so concurrent
submissions for the same (user, book) apply one after another.

Aggregates are recomputed from the stored responses rather than incremented:
- total_elements / total_points_available: the book's current element set
- completed_elements / total_points_earned: first completion per element,
  so a re-submission never counts or awards twice
- avg_score_percentage: floor of the mean score over every response
- required_completed: every required element has a completed response
"""
from __future__ import annotations

from dataclasses import dataclass

from loguru import logger
from sqlalchemy import func, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session

from civicbook.db.models import ElementResponse, InteractiveElement, UserBookProgress
from civicbook.db.models.base import utcnow
from civicbook.schema import CompletionStatus

_UPSERT_BUILDERS = {
    "postgresql": pg_insert,
    "sqlite": sqlite_insert,
}


@dataclass
class ProgressUpdate:
    progress: UserBookProgress
    is_new_completion: bool


class ProgressAggregator:
    """Keeps UserBookProgress in step with a user's responses."""

    def lock_row(self, session: Session, user_id: int, book_id: int) -> UserBookProgress:
        """Fetch the (user, book) aggregate row, creating it if needed, and lock it."""
        builder = _UPSERT_BUILDERS.get(session.get_bind().dialect.name)
        if builder is not None:
            session.execute(
                builder(UserBookProgress)
                .values(user_id=user_id, book_id=book_id, required_completed=True, updated_at=utcnow())
                .on_conflict_do_nothing(index_elements=["user_id", "book_id"])
            )

        stmt = (
            select(UserBookProgress)
            .where(UserBookProgress.user_id == user_id, UserBookProgress.book_id == book_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        row = session.scalars(stmt).one_or_none()
        if row is None:
            row = UserBookProgress(user_id=user_id, book_id=book_id, required_completed=True)
            session.add(row)
            session.flush()
        return row

    def is_new_completion(self, session: Session, response: ElementResponse) -> bool:
        if response.completion_status != CompletionStatus.COMPLETED.value:
            return False
        earlier = session.scalar(
            select(func.count(ElementResponse.id)).where(
                ElementResponse.user_id == response.user_id,
                ElementResponse.element_id == response.element_id,
                ElementResponse.completion_status == CompletionStatus.COMPLETED.value,
                ElementResponse.id != response.id,
            )
        )
        return not earlier

    def recompute(self, session: Session, row: UserBookProgress) -> UserBookProgress:
        """Recompute every aggregate on a locked row from the stored data."""
        elements = session.execute(
            select(InteractiveElement.id, InteractiveElement.points_value, InteractiveElement.required)
            .where(InteractiveElement.book_id == row.book_id)
        ).all()
        points_by_element = {e.id: e.points_value for e in elements}
        required_ids = {e.id for e in elements if e.required}

        completions = session.execute(
            select(ElementResponse.element_id, ElementResponse.points_awarded)
            .join(InteractiveElement, InteractiveElement.id == ElementResponse.element_id)
            .where(
                ElementResponse.user_id == row.user_id,
                InteractiveElement.book_id == row.book_id,
                ElementResponse.completion_status == CompletionStatus.COMPLETED.value,
            )
            .order_by(ElementResponse.submitted_at, ElementResponse.id)
        ).all()
        first_points: dict[int, int] = {}
        for element_id, points in completions:
            if element_id not in first_points:
                first_points[element_id] = min(points, points_by_element[element_id])

        score_sum, response_count = session.execute(
            select(func.coalesce(func.sum(ElementResponse.score), 0), func.count(ElementResponse.id))
            .join(InteractiveElement, InteractiveElement.id == ElementResponse.element_id)
            .where(ElementResponse.user_id == row.user_id, InteractiveElement.book_id == row.book_id)
        ).one()

        row.total_elements = len(elements)
        row.total_points_available = sum(points_by_element.values())
        row.completed_elements = len(first_points)
        row.total_points_earned = sum(first_points.values())
        row.completion_percentage = (
            row.completed_elements * 100 // row.total_elements if row.total_elements else 0
        )
        row.avg_score_percentage = int(score_sum) // response_count if response_count else 0
        row.required_completed = required_ids.issubset(first_points)
        row.updated_at = utcnow()
        session.flush()
        return row

    def apply(self, session: Session, response: ElementResponse, book_id: int) -> ProgressUpdate:
        """Fold a freshly inserted response into the user's book aggregate."""
        row = self.lock_row(session, response.user_id, book_id)
        is_new = self.is_new_completion(session, response)
        self.recompute(session, row)
        if is_new:
            logger.debug(
                f"User {response.user_id} completed element {response.element_id} "
                f"({row.completed_elements}/{row.total_elements} in book {book_id})"
            )
        return ProgressUpdate(progress=row, is_new_completion=is_new)
