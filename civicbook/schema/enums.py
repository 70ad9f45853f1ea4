"""Enumerations shared by payloads, grading and storage."""
from __future__ import annotations

from enum import Enum


class ElementType(str, Enum):
    """Interactive element variants."""
    QUIZ = "quiz"
    REFLECTION = "reflection"
    CALL_TO_ACTION = "call_to_action"
    DISCUSSION_PROMPT = "discussion_prompt"
    POLL = "poll"


class CompletionType(str, Enum):
    """How a submission is turned into a completion."""
    NONE = "none"
    SELF_CHECK = "self-check"
    GRADED = "graded"

    @classmethod
    def _missing_(cls, value):
        # Rows written before the rename store "no-check"
        if value == "no-check":
            return cls.NONE
        return None


class CompletionStatus(str, Enum):
    COMPLETED = "completed"
    PARTIAL = "partial"
    FAILED = "failed"
