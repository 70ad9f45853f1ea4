"""
Unit tests for the payload schema.

Covers parsing of every variant, the error kind reported for each class of
problem, canonical serialization and the forward-compatible extensions bag.
"""

import json

import pytest

from civicbook.errors import ErrorKind, PayloadError
from civicbook.schema import (
    ElementType,
    MultipleChoiceQuestion,
    QuizPayload,
    TextAnswerQuestion,
    canonical_dict,
    canonicalize,
    normalize_payload,
    parse_payload,
    serialize_payload,
)


def error_kind(element_type, payload):
    with pytest.raises(PayloadError) as exc_info:
        parse_payload(element_type, payload)
    return exc_info.value.kind


class TestParseVariants:
    """Each element type parses into its typed model."""

    def test_quiz(self, quiz_payload):
        quiz = parse_payload("quiz", quiz_payload)
        assert isinstance(quiz, QuizPayload)
        assert isinstance(quiz.questions[0], MultipleChoiceQuestion)
        assert quiz.questions[0].correct_option_id == "b"
        assert quiz.questions[1].correct_bool is True
        assert quiz.pass_score == 50

    def test_accepts_json_text(self, quiz_payload):
        quiz = parse_payload(ElementType.QUIZ, json.dumps(quiz_payload))
        assert len(quiz.questions) == 2

    def test_accepts_python_field_names(self):
        poll = parse_payload("poll", {
            "question": "Pick one",
            "options": [{"id": "x", "text": "X"}, {"id": "y", "text": "Y"}],
            "allow_multiple": True,
        })
        assert poll.allow_multiple is True

    def test_numeric_ids_become_strings(self):
        poll = parse_payload("poll", {
            "question": "Pick one",
            "options": [{"id": 1, "text": "X"}, {"id": 2, "text": "Y"}],
        })
        assert poll.option_ids() == {"1", "2"}

    def test_text_answers_normalized(self):
        quiz = parse_payload("quiz", {
            "questions": [{
                "id": "1",
                "kind": "fill-blank",
                "text": "The ___ interprets laws.",
                "correctAnswers": ["  Judiciary ", "judiciary", "Courts"],
            }],
            "passScore": 100,
        })
        question = quiz.questions[0]
        assert isinstance(question, TextAnswerQuestion)
        assert question.correct_answers == ["courts", "judiciary"]

    def test_reflection(self, reflection_payload):
        reflection = parse_payload("reflection", reflection_payload)
        assert reflection.min_response_length == 100
        assert reflection.sharing_options == ["private", "peers", "public"]

    def test_call_to_action(self, cta_payload):
        cta = parse_payload("call_to_action", cta_payload)
        assert cta.url == "/community/groups"

    def test_discussion_prompt(self, discussion_payload):
        prompt = parse_payload("discussion_prompt", discussion_payload)
        assert prompt.discussion_forum_id == 7
        assert prompt.guidelines is None

    def test_poll_defaults(self, poll_payload):
        poll = parse_payload("poll", poll_payload)
        assert poll.allow_comments is False
        assert poll.closing_date is None


class TestErrorKinds:
    """Validation failures map onto the documented error kinds."""

    def test_unknown_element_type(self, quiz_payload):
        assert error_kind("essay", quiz_payload) == ErrorKind.ENUM_OUT_OF_RANGE

    def test_not_json(self):
        assert error_kind("quiz", "{not json") == ErrorKind.SCHEMA_INVALID

    def test_not_an_object(self):
        assert error_kind("quiz", "[1, 2]") == ErrorKind.SCHEMA_INVALID

    def test_missing_field(self, quiz_payload):
        del quiz_payload["passScore"]
        assert error_kind("quiz", quiz_payload) == ErrorKind.MISSING_FIELD

    def test_empty_required_text(self, reflection_payload):
        reflection_payload["prompt"] = ""
        assert error_kind("reflection", reflection_payload) == ErrorKind.MISSING_FIELD

    def test_unknown_question_kind(self, quiz_payload):
        quiz_payload["questions"][1]["kind"] = "essay"
        assert error_kind("quiz", quiz_payload) == ErrorKind.ENUM_OUT_OF_RANGE

    def test_unknown_action_type(self, cta_payload):
        cta_payload["actionType"] = "teleport"
        assert error_kind("call_to_action", cta_payload) == ErrorKind.ENUM_OUT_OF_RANGE

    def test_unknown_field(self, poll_payload):
        poll_payload["colour"] = "red"
        assert error_kind("poll", poll_payload) == ErrorKind.SCHEMA_INVALID

    def test_pass_score_out_of_range(self, quiz_payload):
        quiz_payload["passScore"] = 101
        assert error_kind("quiz", quiz_payload) == ErrorKind.SCHEMA_INVALID

    def test_correct_option_must_exist(self, quiz_payload):
        quiz_payload["questions"][0]["correctOptionId"] = "z"
        assert error_kind("quiz", quiz_payload) == ErrorKind.REFERENCE_MISSING

    def test_duplicate_question_ids(self, quiz_payload):
        quiz_payload["questions"][1]["id"] = "q1"
        assert error_kind("quiz", quiz_payload) == ErrorKind.CROSS_FIELD_INVARIANT

    def test_duplicate_poll_options(self, poll_payload):
        poll_payload["options"][1]["id"] = "a"
        assert error_kind("poll", poll_payload) == ErrorKind.CROSS_FIELD_INVARIANT

    def test_poll_needs_two_options(self, poll_payload):
        poll_payload["options"] = poll_payload["options"][:1]
        assert error_kind("poll", poll_payload) == ErrorKind.SCHEMA_INVALID

    def test_min_above_max(self, reflection_payload):
        reflection_payload["minResponseLength"] = 500
        reflection_payload["maxResponseLength"] = 100
        assert error_kind("reflection", reflection_payload) == ErrorKind.CROSS_FIELD_INVARIANT

    @pytest.mark.parametrize("action_type", ["link", "external"])
    def test_url_required_for_link_actions(self, cta_payload, action_type):
        cta_payload["actionType"] = action_type
        del cta_payload["url"]
        assert error_kind("call_to_action", cta_payload) == ErrorKind.CROSS_FIELD_INVARIANT

    @pytest.mark.parametrize("action_type", ["click", "share"])
    def test_url_optional_for_other_actions(self, action_type):
        raw = {"actionType": action_type, "buttonText": "Find Groups", "url": "/community/implementation-groups"}
        payload = parse_payload("call_to_action", raw)
        assert payload.url == "/community/implementation-groups"
        del raw["url"]
        assert parse_payload("call_to_action", raw).url is None

    def test_kind_independent_of_key_order(self, quiz_payload):
        """Several problems at once report the same kind whatever the key order."""
        quiz_payload["passScore"] = "high"
        del quiz_payload["questions"][1]["text"]
        reordered = dict(reversed(list(quiz_payload.items())))
        assert error_kind("quiz", quiz_payload) == ErrorKind.MISSING_FIELD
        assert error_kind("quiz", reordered) == ErrorKind.MISSING_FIELD

    def test_error_details_listed(self, quiz_payload):
        del quiz_payload["passScore"]
        with pytest.raises(PayloadError) as exc_info:
            parse_payload("quiz", quiz_payload)
        assert exc_info.value.details[0]["loc"] == "passScore"


class TestCanonicalForm:
    """Canonical serialization and round-trips."""

    def test_serialized_keys_are_sorted_camel_case(self, poll_payload):
        data = json.loads(serialize_payload(parse_payload("poll", poll_payload)))
        assert list(data) == sorted(data)
        assert "allowMultiple" in data
        assert "allow_multiple" not in data

    def test_serialization_is_compact(self, poll_payload):
        text = serialize_payload(parse_payload("poll", poll_payload))
        assert '":' in text
        assert '": ' not in text

    def test_absent_optionals_dropped(self, poll_payload):
        data = canonical_dict(parse_payload("poll", poll_payload))
        assert "closingDate" not in data
        assert "extensions" not in data

    @pytest.mark.parametrize("fixture_name,element_type", [
        ("quiz_payload", "quiz"),
        ("reflection_payload", "reflection"),
        ("cta_payload", "call_to_action"),
        ("discussion_payload", "discussion_prompt"),
        ("poll_payload", "poll"),
    ])
    def test_round_trip(self, request, fixture_name, element_type):
        payload = request.getfixturevalue(fixture_name)
        canonical = canonicalize(parse_payload(element_type, payload))
        assert parse_payload(element_type, serialize_payload(canonical)) == canonical

    def test_normalize_is_idempotent(self, quiz_payload):
        once = normalize_payload("quiz", quiz_payload)
        assert normalize_payload("quiz", once) == once

    def test_extensions_preserved(self, poll_payload):
        poll_payload["extensions"] = {"theme": {"color": "teal"}, "version": 2}
        text = normalize_payload("poll", poll_payload)
        assert json.loads(text)["extensions"] == {"theme": {"color": "teal"}, "version": 2}
