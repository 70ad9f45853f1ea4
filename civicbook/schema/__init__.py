"""Payload schema: typed variants and their JSON codec."""
from .codec import (
    canonical_dict,
    canonicalize,
    coerce_element_type,
    normalize_payload,
    parse_payload,
    serialize_payload,
)
from .enums import CompletionStatus, CompletionType, ElementType
from .payloads import (
    PAYLOAD_MODELS,
    CallToActionPayload,
    DiscussionPromptPayload,
    MultipleChoiceQuestion,
    Payload,
    PollPayload,
    QuizPayload,
    ReflectionPayload,
    TextAnswerQuestion,
    TrueFalseQuestion,
    normalize_answer,
)

__all__ = [
    "PAYLOAD_MODELS",
    "CallToActionPayload",
    "CompletionStatus",
    "CompletionType",
    "DiscussionPromptPayload",
    "ElementType",
    "MultipleChoiceQuestion",
    "Payload",
    "PollPayload",
    "QuizPayload",
    "ReflectionPayload",
    "TextAnswerQuestion",
    "TrueFalseQuestion",
    "canonical_dict",
    "canonicalize",
    "coerce_element_type",
    "normalize_payload",
    "parse_payload",
    "serialize_payload",
]
