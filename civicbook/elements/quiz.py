"""
Quiz handler.

Grading counts correct answers C out of Q questions:
- multiple-choice: submitted option id equals the correct option id
- true-false: submitted boolean (or "true"/"false") equals the answer
- fill-blank / short-answer: normalized answer is in the accepted set
- unanswered: incorrect

score = round(100 * C / Q), half up. The quiz is completed when the score
reaches pass_score (inclusive), failed otherwise.
"""
from __future__ import annotations

from typing import Any, Union

from pydantic import Field, field_validator

from civicbook.rendering.html import Node, tag
from civicbook.rendering.media import media_embed
from civicbook.schema import (
    CompletionStatus,
    ElementType,
    MultipleChoiceQuestion,
    QuizPayload,
    TrueFalseQuestion,
    normalize_answer,
)
from civicbook.schema.payloads import Identifier

from . import register
from .base import GradingIssue, Outcome, Submission

AnswerValue = Union[bool, int, float, str, None]


class QuizAnswer(Submission):
    question_id: Identifier
    answer: AnswerValue = None
    time_spent: int = Field(default=0, ge=0)


class QuizSubmission(Submission):
    answers: list[QuizAnswer] = Field(default_factory=list)

    @field_validator("answers", mode="before")
    @classmethod
    def _accept_mapping(cls, value: Any) -> Any:
        # {"q1": "a", "q2": true} is shorthand for the list form
        if isinstance(value, dict):
            return [{"questionId": qid, "answer": answer} for qid, answer in value.items()]
        return value

    def by_question(self) -> dict[str, QuizAnswer]:
        return {answer.question_id: answer for answer in self.answers}

    def total_time(self) -> int:
        return sum(answer.time_spent for answer in self.answers)


def is_answered(answer: QuizAnswer | None) -> bool:
    if answer is None or answer.answer is None:
        return False
    if isinstance(answer.answer, str):
        return bool(answer.answer.strip())
    return True


def _as_bool(value: AnswerValue) -> bool | None:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ("true", "false"):
        return value.strip().lower() == "true"
    return None


def is_correct(question: Any, answer: QuizAnswer | None) -> bool:
    if not is_answered(answer):
        return False
    value = answer.answer
    if isinstance(question, MultipleChoiceQuestion):
        return not isinstance(value, bool) and str(value) == question.correct_option_id
    if isinstance(question, TrueFalseQuestion):
        return _as_bool(value) == question.correct_bool
    if isinstance(value, str):
        return normalize_answer(value) in question.correct_answers
    return False


def expected_answer(question: Any) -> Any:
    if isinstance(question, MultipleChoiceQuestion):
        return question.correct_option_id
    if isinstance(question, TrueFalseQuestion):
        return question.correct_bool
    return list(question.correct_answers)


def quiz_score(correct: int, total: int) -> int:
    """Percentage of correct answers, rounded half up."""
    if total <= 0:
        return 0
    return (200 * correct + total) // (2 * total)


def _format_time_limit(seconds: int) -> str:
    minutes, rest = divmod(seconds, 60)
    if minutes and not rest:
        return f"Time limit: {minutes} minute{'s' if minutes != 1 else ''}"
    return f"Time limit: {seconds} seconds"


@register(ElementType.QUIZ)
class QuizHandler:
    """Handler for quiz elements."""

    label = "quiz"
    submission_model = QuizSubmission

    def render(self, element: Any, payload: QuizPayload) -> list[Node]:
        instructions = tag("div", class_="quiz-instructions")
        if payload.time_limit_seconds:
            instructions.append(tag("p", _format_time_limit(payload.time_limit_seconds)))
        instructions.append(tag("p", f"Passing score: {payload.pass_score}%"))

        form = tag(
            "form",
            class_="quiz-form",
            data_element_id=element.id,
            data_randomize="true" if payload.randomize else None,
        )
        for question in payload.questions:
            form.append(self._render_question(question))
        form.append(tag("button", "Submit Answers", type="submit", class_="quiz-submit"))
        return [tag("div", instructions, form, class_="quiz-content")]

    def _render_question(self, question: Any) -> Node:
        block = tag(
            "div",
            tag("div", question.text, class_="question-text"),
            class_="quiz-question",
            data_question_id=question.id,
            data_question_type=question.kind,
        )
        if question.media is not None:
            block.append(tag(
                "div",
                media_embed(question.media.type, question.media.url, question.media.alt),
                class_="media-attachment",
            ))

        name = f"question-{question.id}"
        if isinstance(question, MultipleChoiceQuestion):
            options = tag("div", class_="question-options")
            for option in question.options:
                input_id = f"option-{question.id}-{option.id}"
                options.append(tag(
                    "div",
                    tag("input", type="radio", id=input_id, name=name, value=option.id),
                    tag("label", option.text, for_=input_id),
                    class_="option",
                ))
            block.append(options)
        elif isinstance(question, TrueFalseQuestion):
            options = tag("div", class_="question-options")
            for value, text in (("true", "True"), ("false", "False")):
                input_id = f"option-{question.id}-{value}"
                options.append(tag(
                    "div",
                    tag("input", type="radio", id=input_id, name=name, value=value),
                    tag("label", text, for_=input_id),
                    class_="option",
                ))
            block.append(options)
        elif question.kind == "fill-blank":
            block.append(tag("input", type="text", name=name, class_="fill-blank-input"))
        else:
            block.append(tag("textarea", name=name, rows="3", class_="short-answer-input"))
        return block

    def check(self, payload: QuizPayload, submission: QuizSubmission) -> list[GradingIssue]:
        return []

    def meets_minimum(self, payload: QuizPayload, submission: QuizSubmission) -> bool:
        answers = submission.by_question()
        return all(is_answered(answers.get(q.id)) for q in payload.questions)

    def grade(self, element: Any, payload: QuizPayload, submission: QuizSubmission) -> Outcome:
        answers = submission.by_question()
        results = []
        correct_count = 0
        for question in payload.questions:
            answer = answers.get(question.id)
            correct = is_correct(question, answer)
            correct_count += correct
            results.append((question, answer, correct))

        total = len(payload.questions)
        score = quiz_score(correct_count, total)
        passed = score >= payload.pass_score
        status = CompletionStatus.COMPLETED if passed else CompletionStatus.FAILED

        feedback_rows = []
        for question, answer, correct in results:
            row: dict[str, Any] = {
                "question_id": question.id,
                "correct": correct,
                "submitted": answer.answer if answer is not None else None,
            }
            if passed:
                row["expected"] = expected_answer(question)
            if question.explanation:
                row["explanation"] = question.explanation
            feedback_rows.append(row)

        return Outcome(
            score=score,
            status=status,
            points=element.points_value if passed else 0,
            feedback={
                "questions": feedback_rows,
                "correct_count": correct_count,
                "question_count": total,
                "pass_score": payload.pass_score,
            },
            time_spent_seconds=submission.total_time(),
        )
