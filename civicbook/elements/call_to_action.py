"""Call-to-action handler."""
from __future__ import annotations

from typing import Any

from civicbook.errors import ErrorKind
from civicbook.rendering.html import Node, safe_url, tag
from civicbook.schema import CallToActionPayload, ElementType

from . import register
from .base import GradingIssue, Outcome, Submission


class CallToActionSubmission(Submission):
    action_type: str = ""
    action_data: str = ""

    def has_action(self) -> bool:
        return bool(self.action_type.strip()) and bool(self.action_data.strip())


@register(ElementType.CALL_TO_ACTION)
class CallToActionHandler:
    """Handler for call-to-action elements."""

    label = "call-to-action"
    submission_model = CallToActionSubmission

    def render(self, element: Any, payload: CallToActionPayload) -> list[Node]:
        content = tag("div", class_="cta-content")
        if payload.text:
            content.append(tag("p", payload.text, class_="cta-text"))
        if payload.secondary_text:
            content.append(tag("p", payload.secondary_text, class_="cta-secondary-text"))
        content.append(tag(
            "button",
            payload.button_text,
            type="button",
            class_="cta-button",
            data_action_type=payload.action_type,
            data_element_id=element.id,
            data_url=safe_url(payload.url) if payload.url else None,
            data_tracking_id=payload.tracking_id,
        ))
        return [content]

    def check(self, payload: CallToActionPayload, submission: CallToActionSubmission) -> list[GradingIssue]:
        if submission.action_type and submission.action_type != payload.action_type:
            return [GradingIssue(
                ErrorKind.INVALID_SUBMISSION_SHAPE,
                f"Action type '{submission.action_type}' does not match '{payload.action_type}'",
            )]
        return []

    def meets_minimum(self, payload: CallToActionPayload, submission: CallToActionSubmission) -> bool:
        return submission.has_action()

    def grade(self, element: Any, payload: CallToActionPayload, submission: CallToActionSubmission) -> Outcome:
        if not submission.has_action():
            return Outcome.partial("Both actionType and actionData are required")
        feedback = {"message": payload.completion_message} if payload.completion_message else {}
        return Outcome.completed(element.points_value, feedback=feedback)
