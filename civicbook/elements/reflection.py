"""
Reflection handler.

A reflection is complete once the trimmed response reaches the minimum
length. Responses over the maximum length are refused.
"""
from __future__ import annotations

from typing import Any

from civicbook.errors import ErrorKind
from civicbook.rendering.html import Node, tag
from civicbook.schema import ElementType, ReflectionPayload
from civicbook.schema.payloads import SharingMode

from . import register
from .base import GradingIssue, Outcome, Submission

SHARING_LABELS = {
    "private": "Keep private",
    "peers": "Share with peers",
    "public": "Share publicly",
}


class ReflectionSubmission(Submission):
    response: str
    sharing_option: SharingMode | None = None

    def length(self) -> int:
        return len(self.response.strip())


def minimum_length(payload: ReflectionPayload) -> int:
    # An empty reflection never counts, even without a configured minimum
    return max(payload.min_response_length or 0, 1)


@register(ElementType.REFLECTION)
class ReflectionHandler:
    """Handler for reflection elements."""

    label = "reflection"
    submission_model = ReflectionSubmission

    def render(self, element: Any, payload: ReflectionPayload) -> list[Node]:
        content = tag("div", tag("p", payload.prompt, class_="reflection-prompt"), class_="reflection-content")

        if payload.guiding_questions:
            questions = tag("ul")
            for question in payload.guiding_questions:
                questions.append(tag("li", question))
            content.append(tag(
                "div",
                tag("h4", "Consider these questions:"),
                questions,
                class_="guiding-questions",
            ))

        form = tag("form", class_="reflection-form", data_element_id=element.id)
        form.append(tag(
            "textarea",
            id=f"reflection-response-{element.id}",
            name="response",
            rows="6",
            minlength=payload.min_response_length,
            maxlength=payload.max_response_length,
            placeholder="Write your reflection here...",
        ))
        if payload.sharing_options:
            sharing = tag("div", tag("p", "Sharing:"), class_="sharing-options")
            for index, option in enumerate(payload.sharing_options):
                input_id = f"sharing-{element.id}-{option}"
                sharing.append(tag(
                    "div",
                    tag(
                        "input",
                        type="radio",
                        id=input_id,
                        name="sharing",
                        value=option,
                        checked=index == 0,
                    ),
                    tag("label", SHARING_LABELS[option], for_=input_id),
                    class_="sharing-option",
                ))
            form.append(sharing)
        form.append(tag("button", "Submit Reflection", type="submit", class_="reflection-submit"))
        content.append(form)
        return [content]

    def check(self, payload: ReflectionPayload, submission: ReflectionSubmission) -> list[GradingIssue]:
        issues = []
        if payload.max_response_length is not None and submission.length() > payload.max_response_length:
            issues.append(GradingIssue(
                ErrorKind.INVALID_SUBMISSION_SHAPE,
                f"Response is {submission.length()} characters, maximum is {payload.max_response_length}",
            ))
        if submission.sharing_option is not None and submission.sharing_option not in payload.sharing_options:
            issues.append(GradingIssue(
                ErrorKind.INVALID_SUBMISSION_SHAPE,
                f"Sharing option '{submission.sharing_option}' is not offered",
            ))
        return issues

    def meets_minimum(self, payload: ReflectionPayload, submission: ReflectionSubmission) -> bool:
        return submission.length() >= minimum_length(payload)

    def grade(self, element: Any, payload: ReflectionPayload, submission: ReflectionSubmission) -> Outcome:
        if not self.meets_minimum(payload, submission):
            return Outcome.partial(
                f"Response is {submission.length()} characters, minimum is {minimum_length(payload)}",
                feedback={"length": submission.length()},
            )
        return Outcome.completed(element.points_value, feedback={"length": submission.length()})
