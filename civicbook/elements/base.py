"""
Base protocol and result types for element handlers.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from civicbook.errors import ErrorKind
from civicbook.rendering.html import Node
from civicbook.schema import CompletionStatus

# Outcomes carrying one of these are refused without storing a response
REJECTING_KINDS = frozenset({
    ErrorKind.INVALID_SUBMISSION_SHAPE,
    ErrorKind.UNKNOWN_OPTION_ID,
    ErrorKind.PAYLOAD_CORRUPT,
})


@dataclass
class GradingIssue:
    kind: ErrorKind
    message: str

    def to_dict(self) -> dict[str, str]:
        return {"kind": self.kind.value, "message": self.message}


@dataclass
class Outcome:
    """Result of grading one submission."""
    score: int
    status: CompletionStatus
    points: int = 0
    feedback: dict[str, Any] = field(default_factory=dict)
    errors: list[GradingIssue] = field(default_factory=list)
    time_spent_seconds: int = 0

    def __post_init__(self):
        self.score = max(0, min(100, int(self.score)))
        # Points are only ever awarded for a completion
        if self.status != CompletionStatus.COMPLETED:
            self.points = 0

    @property
    def rejected(self) -> bool:
        return any(issue.kind in REJECTING_KINDS for issue in self.errors)

    @property
    def error_kinds(self) -> list[ErrorKind]:
        return [issue.kind for issue in self.errors]

    def to_dict(self) -> dict[str, Any]:
        return {
            "score": self.score,
            "status": self.status.value,
            "points": self.points,
            "feedback": self.feedback,
            "errors": [issue.to_dict() for issue in self.errors],
            "time_spent_seconds": self.time_spent_seconds,
        }

    @classmethod
    def completed(cls, points: int, feedback: dict[str, Any] | None = None) -> "Outcome":
        return cls(score=100, status=CompletionStatus.COMPLETED, points=points, feedback=feedback or {})

    @classmethod
    def partial(cls, message: str | None = None, feedback: dict[str, Any] | None = None) -> "Outcome":
        errors = [GradingIssue(ErrorKind.MISSING_REQUIRED, message)] if message else []
        return cls(score=0, status=CompletionStatus.PARTIAL, feedback=feedback or {}, errors=errors)

    @classmethod
    def failure(cls, kind: ErrorKind, message: str) -> "Outcome":
        return cls(score=0, status=CompletionStatus.FAILED, errors=[GradingIssue(kind, message)])


class Submission(BaseModel):
    """Base for per-type submission shapes. Extra keys are ignored."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class ElementHandler(Protocol):
    """Protocol for element type handlers."""

    # Human label used in the inline error marker
    label: str
    submission_model: type[Submission]

    def render(self, element: Any, payload: Any) -> list[Node]:
        """Build the widget body for an element (wrapper excluded)."""
        ...

    def check(self, payload: Any, submission: Any) -> list[GradingIssue]:
        """Structural checks that reject a submission outright."""
        ...

    def meets_minimum(self, payload: Any, submission: Any) -> bool:
        """Minimum constraints used by self-check elements."""
        ...

    def grade(self, element: Any, payload: Any, submission: Any) -> Outcome:
        """Full grading for graded elements."""
        ...

