"""
Poll handler.

Every submitted option id must belong to the poll. Single-choice polls take
exactly one option; an empty selection is recorded as partial.
"""
from __future__ import annotations

from typing import Any

from pydantic import Field, field_validator

from civicbook.errors import ErrorKind
from civicbook.rendering.html import Node, safe_url, tag
from civicbook.schema import ElementType, PollPayload
from civicbook.schema.payloads import Identifier

from . import register
from .base import GradingIssue, Outcome, Submission


class PollSubmission(Submission):
    option_ids: list[Identifier] = Field(default_factory=list)
    comment: str | None = None

    @field_validator("option_ids", mode="before")
    @classmethod
    def _single_to_list(cls, value: Any) -> Any:
        if isinstance(value, (str, int)) and not isinstance(value, bool):
            return [value]
        return value


@register(ElementType.POLL)
class PollHandler:
    """Handler for poll elements."""

    label = "poll"
    submission_model = PollSubmission

    def render(self, element: Any, payload: PollPayload) -> list[Node]:
        input_type = "checkbox" if payload.allow_multiple else "radio"
        form = tag(
            "form",
            class_="poll-form",
            data_element_id=element.id,
            data_allow_multiple="true" if payload.allow_multiple else "false",
        )
        for option in payload.options:
            input_id = f"poll-option-{element.id}-{option.id}"
            row = tag(
                "div",
                tag("input", type=input_type, id=input_id, name="poll-option", value=option.id),
                tag("label", option.text, for_=input_id),
                class_="poll-option",
            )
            if option.image:
                row.append(tag("img", src=safe_url(option.image), alt=option.text, class_="poll-option-image"))
            form.append(row)
        if payload.allow_comments:
            form.append(tag("textarea", name="comment", rows="3", placeholder="Add a comment (optional)"))
        form.append(tag("button", "Submit Vote", type="submit", class_="poll-submit"))

        return [tag(
            "div",
            tag("p", payload.question, class_="poll-question"),
            form,
            tag(
                "div",
                class_="poll-results",
                data_show_results=payload.show_results,
                hidden=True,
            ),
            class_="poll-content",
        )]

    def check(self, payload: PollPayload, submission: PollSubmission) -> list[GradingIssue]:
        known = payload.option_ids()
        unknown = [oid for oid in submission.option_ids if oid not in known]
        if unknown:
            return [GradingIssue(ErrorKind.UNKNOWN_OPTION_ID, f"Unknown poll option(s): {', '.join(unknown)}")]
        if len(set(submission.option_ids)) != len(submission.option_ids):
            return [GradingIssue(ErrorKind.INVALID_SUBMISSION_SHAPE, "Duplicate poll options selected")]
        if not payload.allow_multiple and len(submission.option_ids) > 1:
            return [GradingIssue(ErrorKind.INVALID_SUBMISSION_SHAPE, "This poll accepts a single option")]
        return []

    def meets_minimum(self, payload: PollPayload, submission: PollSubmission) -> bool:
        return bool(submission.option_ids)

    def grade(self, element: Any, payload: PollPayload, submission: PollSubmission) -> Outcome:
        if not submission.option_ids:
            return Outcome.partial("Select an option")
        feedback: dict[str, Any] = {"selected": list(submission.option_ids)}
        if payload.allow_comments and submission.comment:
            feedback["comment"] = submission.comment
        return Outcome.completed(element.points_value, feedback=feedback)
