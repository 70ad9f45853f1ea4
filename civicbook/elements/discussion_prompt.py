"""Discussion prompt handler."""
from __future__ import annotations

from typing import Any

from civicbook.rendering.html import Node, tag
from civicbook.schema import DiscussionPromptPayload, ElementType
from civicbook.schema.payloads import Identifier

from . import register
from .base import GradingIssue, Outcome, Submission

DEFAULT_GUIDELINES = (
    "Be respectful of other viewpoints, support your points with evidence "
    "from the text, and keep the discussion on topic."
)


class DiscussionSubmission(Submission):
    response: str = ""
    topic_id: Identifier | None = None

    def is_complete(self) -> bool:
        return bool(self.response.strip()) and self.topic_id is not None


@register(ElementType.DISCUSSION_PROMPT)
class DiscussionPromptHandler:
    """Handler for discussion prompt elements."""

    label = "discussion prompt"
    submission_model = DiscussionSubmission

    def render(self, element: Any, payload: DiscussionPromptPayload) -> list[Node]:
        content = tag(
            "div",
            tag("h4", payload.topic, class_="discussion-topic"),
            tag("p", payload.initial_prompt, class_="discussion-initial-prompt"),
            class_="discussion-content",
        )
        if payload.supporting_points:
            points = tag("ul")
            for point in payload.supporting_points:
                points.append(tag("li", point))
            content.append(tag(
                "div",
                tag("h5", "Points to Consider"),
                points,
                class_="supporting-points",
            ))
        content.append(tag(
            "div",
            tag("h5", "Discussion Guidelines"),
            tag("p", payload.guidelines or DEFAULT_GUIDELINES),
            class_="discussion-guidelines",
        ))

        form = tag("form", class_="discussion-form", data_element_id=element.id)
        if payload.discussion_forum_id is not None:
            form.append(tag("input", type="hidden", name="topic-id", value=payload.discussion_forum_id))
        form.append(tag(
            "textarea",
            id=f"discussion-response-{element.id}",
            name="response",
            rows="5",
            placeholder="Share your thoughts...",
        ))
        form.append(tag("button", "Submit Response", type="submit", class_="discussion-submit"))
        content.append(form)
        return [content]

    def check(self, payload: DiscussionPromptPayload, submission: DiscussionSubmission) -> list[GradingIssue]:
        return []

    def meets_minimum(self, payload: DiscussionPromptPayload, submission: DiscussionSubmission) -> bool:
        return submission.is_complete()

    def grade(self, element: Any, payload: DiscussionPromptPayload, submission: DiscussionSubmission) -> Outcome:
        if not submission.is_complete():
            return Outcome.partial("A response and a topic id are required")
        return Outcome.completed(element.points_value)
