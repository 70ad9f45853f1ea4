"""
Import-time element generation.

When a book is imported, each section receives default interactive elements
chosen from its title:
- "forum topic" sections: a discussion prompt
- "actionable step" sections: a reflection and a call to action
- sections matching a configured poll keyword: a poll
- every other section: a "Check Your Understanding" quiz, when the quiz bank
  has questions for it

The quiz bank is a mapping of section title (case-insensitive) to a list of
question payloads, usually loaded from a JSON file.
"""
from __future__ import annotations

import json
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from loguru import logger

from config import get_settings
from civicbook.db.models import InteractiveElement, Section
from civicbook.schema import CompletionType, ElementType
from civicbook.service import ElementDraft, InteractiveElementService

QUIZ_POSITION = 99
QUIZ_PASS_SCORE = 75

DEFAULT_POLL_OPTIONS = [
    ("agree", "I strongly agree with this assessment"),
    ("partly", "I partly agree, with some reservations"),
    ("neutral", "I am not sure yet"),
    ("disagree", "I disagree with this assessment"),
    ("other", "I see the issue differently"),
]


def load_quiz_bank(path: Path) -> dict[str, list[dict[str, Any]]]:
    """Load a quiz bank file: {"Section title": [question, ...]}."""
    data = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise ValueError(f"Quiz bank must be a JSON object keyed by section title: {path}")
    return {title.strip().lower(): questions for title, questions in data.items()}


class ElementGenerator:
    """Build default element drafts for imported sections."""

    def __init__(
        self,
        quiz_bank: Mapping[str, list[dict[str, Any]]] | None = None,
        poll_keywords: list[str] | None = None,
        cta_url: str | None = None,
    ):
        settings = get_settings()
        self.quiz_bank = {k.strip().lower(): v for k, v in (quiz_bank or {}).items()}
        self.poll_keywords = [k.lower() for k in (poll_keywords or settings.generator_poll_keywords)]
        self.cta_url = cta_url or settings.generator_cta_url

    def drafts_for_section(self, section: Section) -> list[ElementDraft]:
        title = section.title.lower()
        drafts: list[ElementDraft] = []

        is_forum = "forum topic" in title
        is_actionable = "actionable step" in title
        if is_forum:
            drafts.append(self._discussion_prompt(section))
        if is_actionable:
            drafts.extend(self._reflection_and_action(section))
        if any(keyword in title for keyword in self.poll_keywords):
            drafts.append(self._poll(section))
        if not is_forum and not is_actionable:
            quiz = self._quiz(section)
            if quiz is not None:
                drafts.append(quiz)
        return drafts

    def _discussion_prompt(self, section: Section) -> ElementDraft:
        return ElementDraft(
            section_id=section.id,
            element_type=ElementType.DISCUSSION_PROMPT,
            title="Community Discussion",
            description="Join the conversation about this topic with other readers",
            payload={
                "topic": section.title,
                "initialPrompt": "What are your thoughts on the issues raised in this section?",
                "supportingPoints": [
                    "How does this relate to your own experience?",
                    "What solutions would you propose?",
                    "What obstacles do you see to reform?",
                ],
            },
            completion_type=CompletionType.NONE,
            points_value=10,
            position=1,
        )

    def _reflection_and_action(self, section: Section) -> list[ElementDraft]:
        reflection = ElementDraft(
            section_id=section.id,
            element_type=ElementType.REFLECTION,
            title="Personal Reflection",
            description="Reflect on how you can apply these actionable steps",
            payload={
                "prompt": "How can you implement these actionable steps in your community?",
                "guidingQuestions": [
                    "What specific step resonates most with you?",
                    "What resources would you need to take action?",
                    "Who could you collaborate with on this initiative?",
                ],
                "minResponseLength": 100,
                "sharingOptions": ["private", "peers", "public"],
            },
            completion_type=CompletionType.SELF_CHECK,
            points_value=15,
            position=1,
        )
        action = ElementDraft(
            section_id=section.id,
            element_type=ElementType.CALL_TO_ACTION,
            title="Take Action",
            description="Commit to implementing one of these steps",
            payload={
                "actionType": "click",
                "text": "Ready to make a difference?",
                "buttonText": "Join an Implementation Group",
                "url": self.cta_url,
                "trackingId": f"action_{section.id}",
                "secondaryText": "Connect with others working on this step",
            },
            completion_type=CompletionType.NONE,
            points_value=5,
            position=2,
        )
        return [reflection, action]

    def _poll(self, section: Section) -> ElementDraft:
        return ElementDraft(
            section_id=section.id,
            element_type=ElementType.POLL,
            title="Community Poll",
            description="Share your opinion on this issue",
            payload={
                "question": f"How do you assess the issue described in \"{section.title}\"?",
                "options": [{"id": oid, "text": text} for oid, text in DEFAULT_POLL_OPTIONS],
                "allowMultiple": False,
                "showResults": "after-vote",
                "allowComments": True,
            },
            completion_type=CompletionType.NONE,
            points_value=5,
            position=3,
        )

    def _quiz(self, section: Section) -> ElementDraft | None:
        questions = self.quiz_bank.get(section.title.strip().lower())
        if not questions:
            return None
        return ElementDraft(
            section_id=section.id,
            element_type=ElementType.QUIZ,
            title="Check Your Understanding",
            description="Test your knowledge of the key concepts in this section",
            payload={
                "questions": questions,
                "randomize": True,
                "passScore": QUIZ_PASS_SCORE,
            },
            completion_type=CompletionType.GRADED,
            points_value=20,
            position=QUIZ_POSITION,
        )


def generate_for_book(
    service: InteractiveElementService,
    book_id: int,
    generator: ElementGenerator | None = None,
    dry_run: bool = False,
) -> list[InteractiveElement | ElementDraft]:
    """
    Create default elements for every section of a book.

    Sections that already have elements are left alone, so the import can be
    re-run. With dry_run the drafts are returned without being stored.
    """
    generator = generator or ElementGenerator()
    created: list[InteractiveElement | ElementDraft] = []
    sections = service.repository.get_sections_by_book(book_id)
    if not sections:
        logger.warning(f"Book {book_id} has no sections")

    for section in sections:
        if service.list_elements(section.id):
            logger.debug(f"Section {section.id} already has elements, skipping")
            continue
        for draft in generator.drafts_for_section(section):
            if dry_run:
                created.append(draft)
            else:
                created.append(service.create_element(draft))

    logger.info(f"Generated {len(created)} elements for book {book_id}{' (dry run)' if dry_run else ''}")
    return created
