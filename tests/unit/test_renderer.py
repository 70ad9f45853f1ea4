"""
Unit tests for the section renderer.

Uses an in-memory element source so no database is needed.
"""

import json
import random

import pytest

from civicbook.db.models import DiscussionTopic, InteractiveElement
from civicbook.elements import get_handler
from civicbook.rendering.media import youtube_id
from civicbook.rendering.renderer import SectionRenderer, render_element
from civicbook.schema import normalize_payload


class FakeSource:
    """Element source backed by dicts; counts lookups."""

    def __init__(self, elements=(), topics=()):
        self.elements = list(elements)
        self.topics = {t.id: t for t in topics}
        self.element_calls = 0

    def get_elements_by_section(self, section_id):
        self.element_calls += 1
        return [e for e in self.elements if e.section_id == section_id]

    def get_topic(self, topic_id):
        return self.topics.get(topic_id)


def make_element(element_id, element_type, payload, section_id=1, **fields):
    if not isinstance(payload, str):
        payload = normalize_payload(element_type, payload)
    return InteractiveElement(
        id=element_id,
        section_id=section_id,
        book_id=1,
        position=fields.pop("position", 0),
        element_type=element_type,
        title=fields.pop("title", "Element title"),
        description=fields.pop("description", ""),
        payload=payload,
        completion_type=fields.pop("completion_type", "graded"),
        points_value=fields.pop("points_value", 10),
        required=fields.pop("required", False),
    )


@pytest.fixture
def elements(quiz_payload, reflection_payload, cta_payload, discussion_payload, poll_payload):
    return [
        make_element(1, "quiz", quiz_payload, title="Check <yourself>"),
        make_element(2, "reflection", reflection_payload),
        make_element(3, "call_to_action", cta_payload),
        make_element(4, "discussion_prompt", discussion_payload),
        make_element(5, "poll", poll_payload),
        make_element(6, "poll", poll_payload, section_id=2),
    ]


@pytest.fixture
def renderer(elements):
    return SectionRenderer(FakeSource(elements, [DiscussionTopic(id=5, title="Budgets & <Accountability>")]))


class TestInteractivePlaceholders:
    """{{interactive:N}} substitution."""

    def test_quiz_widget(self, renderer):
        html = renderer.render_section(1, "{{interactive:1}}")
        assert html.startswith('<div class="interactive-element quiz-element" data-element-id="1"')
        assert '<h3 class="interactive-title">Check &lt;yourself&gt;</h3>' in html
        assert 'name="question-q1"' in html
        assert 'id="option-q1-b"' in html
        assert "Passing score: 50%" in html
        assert "Submit Answers" in html

    def test_answers_not_leaked(self, renderer):
        html = renderer.render_section(1, "{{interactive:1}}")
        assert "correctOptionId" not in html
        assert "Legislatures pass laws." not in html

    def test_reflection_widget(self, renderer):
        html = renderer.render_section(1, "{{interactive:2}}")
        assert 'minlength="100"' in html
        assert 'maxlength="2000"' in html
        assert 'id="reflection-response-2"' in html
        assert '<input type="radio" id="sharing-2-private" name="sharing" value="private" checked>' in html
        assert 'value="peers" checked' not in html

    def test_call_to_action_widget(self, renderer):
        html = renderer.render_section(1, "{{interactive:3}}")
        assert 'data-action-type="link"' in html
        assert 'data-url="/community/groups"' in html
        assert 'data-element-id="3"' in html
        assert 'data-tracking-id="cta_1"' in html
        assert "call-to-action-element" in html

    def test_discussion_widget(self, renderer):
        html = renderer.render_section(1, "{{interactive:4}}")
        assert "Points to Consider" in html
        assert "Discussion Guidelines" in html
        assert '<input type="hidden" name="topic-id" value="7">' in html

    def test_poll_widget(self, renderer):
        html = renderer.render_section(1, "{{interactive:5}}")
        assert 'type="radio" id="poll-option-5-a" name="poll-option" value="a"' in html
        assert 'class="poll-results" data-show-results="after-vote" hidden' in html

    def test_element_of_other_section_not_rendered(self, renderer):
        assert renderer.render_section(1, "{{interactive:6}}") == "<p>{{interactive:6}}</p>"

    def test_missing_element_kept_verbatim(self, renderer):
        html = renderer.render_section(1, "Intro\n\n{{interactive:999}}\n\nOutro")
        assert html == "<p>Intro</p>\n<p>{{interactive:999}}</p>\n<p>Outro</p>"

    def test_non_numeric_id_kept_verbatim(self, renderer):
        assert renderer.render_section(1, "{{interactive:abc}}") == "<p>{{interactive:abc}}</p>"

    def test_elements_loaded_once_per_render(self, elements):
        source = FakeSource(elements)
        SectionRenderer(source).render_section(1, "{{interactive:1}}\n{{interactive:2}}\n{{interactive:1}}")
        assert source.element_calls == 1

    def test_no_cache_between_renders(self, elements):
        source = FakeSource(elements)
        renderer = SectionRenderer(source)
        renderer.render_section(1, "{{interactive:1}}")
        renderer.render_section(1, "{{interactive:1}}")
        assert source.element_calls == 2


class TestCorruptPayload:
    """A payload that no longer parses renders an inline marker."""

    def test_error_marker(self):
        broken = make_element(7, "quiz", '{"questions": []}', title="Broken quiz")
        html = SectionRenderer(FakeSource([broken])).render_section(1, "Before\n{{interactive:7}}\nAfter")
        assert '<div class="error">Error loading quiz content</div>' in html
        assert "Broken quiz" in html
        assert html.startswith("<p>Before</p>")
        assert html.endswith("<p>After</p>")

    def test_unknown_type_marker(self):
        odd = make_element(8, "poll", "{}")
        odd.element_type = "survey"
        html = render_element(odd).render()
        assert "Error loading survey content" in html

    def test_widget_failure_marker(self, monkeypatch, poll_payload):
        """A widget that fails while rendering degrades to the marker, not a crash."""
        def boom(element, payload):
            raise RuntimeError("template bug")

        monkeypatch.setattr(get_handler("poll"), "render", boom)
        poll = make_element(9, "poll", poll_payload, title="Vote")
        html = SectionRenderer(FakeSource([poll])).render_section(1, "# Before\n{{interactive:9}}\nAfter")
        assert html.startswith("<h1>Before</h1>")
        assert '<div class="error">Error loading poll content</div>' in html
        assert '<h3 class="interactive-title">Vote</h3>' in html
        assert html.endswith("<p>After</p>")

    @pytest.mark.parametrize("element_id,element_type", [
        (1, "quiz"), (2, "reflection"), (3, "call_to_action"), (4, "discussion_prompt"), (5, "poll"),
    ])
    def test_every_widget_renders(self, renderer, element_id, element_type):
        html = renderer.render_section(1, f"# Intro\n{{{{interactive:{element_id}}}}}")
        assert f'data-element-type="{element_type}"' in html
        assert 'class="error"' not in html


class TestMediaAndTopics:
    """Media embeds and discussion topic cards."""

    def test_image(self, renderer):
        html = renderer.render_section(1, "{{image:/media/map.png}}")
        assert html == '<img src="/media/map.png" alt="Embedded image" class="embedded-image">'

    @pytest.mark.parametrize("url,video_id", [
        ("https://www.youtube.com/watch?v=abc123XYZ_-&t=10", "abc123XYZ_-"),
        ("https://youtu.be/abc123", "abc123"),
        ("/media/talk.mp4", None),
        ("https://www.youtube.com/watch?v=bad\"id", None),
    ])
    def test_youtube_id(self, url, video_id):
        assert youtube_id(url) == video_id

    def test_youtube_embed(self, renderer):
        html = renderer.render_section(1, "{{video:https://www.youtube.com/watch?v=abc123}}")
        assert 'src="https://www.youtube.com/embed/abc123"' in html
        assert "youtube-embed" in html

    def test_generic_video(self, renderer):
        html = renderer.render_section(1, "{{video:/media/talk.mp4}}")
        assert '<video controls><source src="/media/talk.mp4" type="video/mp4"></video>' in html

    def test_audio(self, renderer):
        html = renderer.render_section(1, "{{audio:/media/speech.mp3}}")
        assert '<audio controls><source src="/media/speech.mp3" type="audio/mpeg"></audio>' in html

    def test_empty_media_path_kept(self, renderer):
        assert renderer.render_section(1, "{{image:}}") == "<p>{{image:}}</p>"

    def test_media_path_escaped(self, renderer):
        html = renderer.render_section(1, '{{image:/a.png" onerror="x}}')
        assert 'src="/a.png&quot; onerror=&quot;x"' in html

    @pytest.mark.parametrize("kind", ["image", "video", "audio"])
    def test_unsafe_media_scheme(self, renderer, kind):
        html = renderer.render_section(1, f"{{{{{kind}:javascript:alert(1)}}}}")
        assert 'src="#"' in html
        assert "javascript" not in html

    def test_unsafe_poll_option_image(self, poll_payload):
        poll_payload["options"][0]["image"] = "javascript:alert(1)"
        html = render_element(make_element(10, "poll", poll_payload)).render()
        assert 'class="poll-option-image"' in html
        assert "javascript" not in html

    def test_topic_card(self, renderer):
        html = renderer.render_section(1, "{{topic:5}}")
        assert "Join the Discussion" in html
        assert "<p>Budgets &amp; &lt;Accountability&gt;</p>" in html
        assert 'href="/discussion/topic/5"' in html

    def test_unknown_topic_kept(self, renderer):
        assert renderer.render_section(1, "{{topic:77}}") == "<p>{{topic:77}}</p>"


class TestDeterminism:
    """Rendering depends only on markup, elements and topics."""

    def test_same_input_same_output(self, renderer):
        source = "# Title\n\n{{interactive:1}}\n\n- a\n- **b** {{topic:5}}\n{{interactive:42}}"
        assert renderer.render_section(1, source) == renderer.render_section(1, source)

    def test_user_does_not_change_output(self, renderer):
        source = "{{interactive:2}} and {{interactive:5}}"
        assert renderer.render_section(1, source, user_id=1) == renderer.render_section(1, source, user_id=2)

    def test_random_sources_deterministic(self, elements):
        """Random mixes of markup fragments render identically twice."""
        fragments = [
            "# Heading", "plain text", "- item", "**bold**", "*it*", "[l](/x)", "{{interactive:1}}",
            "{{interactive:3}}", "{{interactive:x}}", "{{topic:5}}", "{{image:/a.png}}", "{{video:",
            "", "<b>raw</b>", "{{poll:1}}",
        ]
        rng = random.Random(1234)
        for _ in range(50):
            source = "\n".join(rng.choice(fragments) for _ in range(rng.randint(1, 12)))
            first = SectionRenderer(FakeSource(elements, [DiscussionTopic(id=5, title="T")])).render_section(1, source)
            second = SectionRenderer(FakeSource(elements, [DiscussionTopic(id=5, title="T")])).render_section(1, source)
            assert first == second
            assert "<b>" not in first

    def test_malformed_placeholders_preserved(self, renderer):
        """Every malformed or unresolved token appears verbatim in the output."""
        tokens = ["{{interactive:abc}}", "{{interactive:}}", "{{topic:x}}", "{{nope:1}}", "{{interactive:404}}"]
        for token in tokens:
            html = renderer.render_section(1, f"before {token} after")
            assert token in html

    def test_malformed_placeholder_text_is_escaped(self, renderer):
        """Preserved tokens are literal text, so markup characters inside them are escaped."""
        html = renderer.render_section(1, "x {{nope:a&b<c>}} y")
        assert html == "<p>x {{nope:a&amp;b&lt;c&gt;}} y</p>"


def test_payload_fixture_is_json_serializable(quiz_payload):
    assert json.loads(json.dumps(quiz_payload)) == quiz_payload
