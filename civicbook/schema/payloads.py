"""
Typed payload variants for interactive elements.

One pydantic model per element type:
- QuizPayload: questions (multiple-choice, true-false, fill-blank, short-answer)
- ReflectionPayload: prompt, guiding questions, length bounds, sharing modes
- CallToActionPayload: action button with an optional target URL
- DiscussionPromptPayload: topic, prompt and supporting points
- PollPayload: question with two or more options

Wire keys are lowerCamelCase (``passScore``); Python names are accepted too.
Unknown keys are rejected, except inside the ``extensions`` object which is
carried through untouched for forward compatibility.
"""
from __future__ import annotations

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel
from pydantic_core import PydanticCustomError

from .enums import ElementType


def _coerce_identifier(value: Any) -> Any:
    # Older content used numeric ids
    if isinstance(value, int) and not isinstance(value, bool):
        return str(value)
    return value


Identifier = Annotated[str, BeforeValidator(_coerce_identifier), Field(min_length=1)]
NonEmptyText = Annotated[str, Field(min_length=1)]


def normalize_answer(value: str) -> str:
    """Normalize free-text answers for comparison (trim + casefold)."""
    return value.strip().casefold()


def _require_unique(ids: list[str], what: str) -> None:
    seen: set[str] = set()
    for item_id in ids:
        if item_id in seen:
            raise PydanticCustomError(
                "cross_field_invariant",
                "duplicate {what} id '{item_id}'",
                {"what": what, "item_id": item_id},
            )
        seen.add(item_id)


class PayloadModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="forbid",
    )


class MediaAttachment(PayloadModel):
    type: Literal["image", "audio", "video"]
    url: NonEmptyText
    alt: str | None = None
    caption: str | None = None


# ========================================
# Quiz
# ========================================

class QuestionOption(PayloadModel):
    id: Identifier
    text: NonEmptyText
    media: MediaAttachment | None = None


class QuestionBase(PayloadModel):
    id: Identifier
    text: NonEmptyText
    media: MediaAttachment | None = None
    difficulty: Literal["easy", "medium", "hard"] | None = None
    explanation: str | None = None
    hints: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)


class MultipleChoiceQuestion(QuestionBase):
    kind: Literal["multiple-choice"]
    options: list[QuestionOption] = Field(min_length=2)
    correct_option_id: Identifier

    @model_validator(mode="after")
    def _check_options(self) -> "MultipleChoiceQuestion":
        option_ids = [option.id for option in self.options]
        _require_unique(option_ids, "option")
        if self.correct_option_id not in option_ids:
            raise PydanticCustomError(
                "reference_missing",
                "correct option '{option_id}' is not one of the options",
                {"option_id": self.correct_option_id},
            )
        return self


class TrueFalseQuestion(QuestionBase):
    kind: Literal["true-false"]
    correct_bool: bool


class TextAnswerQuestion(QuestionBase):
    """Fill-blank and short-answer questions share a normalized answer set."""

    kind: Literal["fill-blank", "short-answer"]
    correct_answers: list[str] = Field(min_length=1)

    @field_validator("correct_answers")
    @classmethod
    def _normalize_answers(cls, answers: list[str]) -> list[str]:
        normalized = sorted({normalize_answer(a) for a in answers if a.strip()})
        if not normalized:
            raise PydanticCustomError("missing_value", "correct answers are all blank")
        return normalized


Question = Annotated[
    Union[MultipleChoiceQuestion, TrueFalseQuestion, TextAnswerQuestion],
    Field(discriminator="kind"),
]


class QuizPayload(PayloadModel):
    questions: list[Question] = Field(min_length=1)
    randomize: bool = False
    pass_score: int = Field(ge=0, le=100)
    time_limit_seconds: int | None = Field(default=None, ge=0)
    extensions: dict[str, Any] | None = None

    @model_validator(mode="after")
    def _check_question_ids(self) -> "QuizPayload":
        _require_unique([q.id for q in self.questions], "question")
        return self


# ========================================
# Reflection
# ========================================

SharingMode = Literal["private", "peers", "public"]


class ReflectionPayload(PayloadModel):
    prompt: NonEmptyText
    guiding_questions: list[str] = Field(default_factory=list)
    min_response_length: int | None = Field(default=None, ge=0)
    max_response_length: int | None = Field(default=None, ge=0)
    sharing_options: list[SharingMode] = Field(default_factory=list)
    extensions: dict[str, Any] | None = None

    @model_validator(mode="after")
    def _check_bounds(self) -> "ReflectionPayload":
        if (
            self.min_response_length is not None
            and self.max_response_length is not None
            and self.min_response_length > self.max_response_length
        ):
            raise PydanticCustomError(
                "cross_field_invariant",
                "minResponseLength {low} exceeds maxResponseLength {high}",
                {"low": self.min_response_length, "high": self.max_response_length},
            )
        _require_unique(list(self.sharing_options), "sharing option")
        return self


# ========================================
# Call to action
# ========================================

URL_ACTIONS = frozenset({"link", "external"})


class CallToActionPayload(PayloadModel):
    action_type: Literal["click", "link", "share", "external"]
    text: str = ""
    button_text: NonEmptyText
    url: str | None = None
    tracking_id: str | None = None
    secondary_text: str | None = None
    completion_message: str | None = None
    extensions: dict[str, Any] | None = None

    @field_validator("url")
    @classmethod
    def _blank_url_is_absent(cls, url: str | None) -> str | None:
        if url is not None and not url.strip():
            return None
        return url

    @model_validator(mode="after")
    def _check_url(self) -> "CallToActionPayload":
        needs_url = self.action_type in URL_ACTIONS
        if needs_url and self.url is None:
            raise PydanticCustomError(
                "cross_field_invariant",
                "actionType '{action}' requires a url",
                {"action": self.action_type},
            )
        return self


# ========================================
# Discussion prompt
# ========================================

class DiscussionPromptPayload(PayloadModel):
    topic: NonEmptyText
    initial_prompt: NonEmptyText
    supporting_points: list[str] = Field(default_factory=list)
    guidelines: str | None = None
    discussion_forum_id: int | None = Field(default=None, ge=1)
    tags: list[str] = Field(default_factory=list)
    extensions: dict[str, Any] | None = None


# ========================================
# Poll
# ========================================

class PollOption(PayloadModel):
    id: Identifier
    text: NonEmptyText
    image: str | None = None


class PollPayload(PayloadModel):
    question: NonEmptyText
    options: list[PollOption] = Field(min_length=2)
    allow_multiple: bool = False
    show_results: Literal["always", "after-vote", "after-close", "never"] = "after-vote"
    allow_comments: bool = False
    closing_date: str | None = None
    extensions: dict[str, Any] | None = None

    @model_validator(mode="after")
    def _check_option_ids(self) -> "PollPayload":
        _require_unique([option.id for option in self.options], "option")
        return self

    def option_ids(self) -> set[str]:
        return {option.id for option in self.options}


Payload = Union[
    QuizPayload,
    ReflectionPayload,
    CallToActionPayload,
    DiscussionPromptPayload,
    PollPayload,
]

PAYLOAD_MODELS: dict[ElementType, type[PayloadModel]] = {
    ElementType.QUIZ: QuizPayload,
    ElementType.REFLECTION: ReflectionPayload,
    ElementType.CALL_TO_ACTION: CallToActionPayload,
    ElementType.DISCUSSION_PROMPT: DiscussionPromptPayload,
    ElementType.POLL: PollPayload,
}
