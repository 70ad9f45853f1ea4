"""
Section renderer.

Turns a section's markup into HTML, replacing placeholders:
- {{interactive:N}}: widget for element N when it belongs to the section
- {{image:PATH}}, {{video:PATH}}, {{audio:PATH}}: media embeds
- {{topic:N}}: discussion card when topic N exists

Unresolvable or malformed placeholders are kept as written. Element payloads
that fail to parse render an inline error marker instead of the widget body,
so a bad element never breaks the rest of the section.
"""
from __future__ import annotations

import re
from typing import Any, Protocol

from loguru import logger

from civicbook.elements import get_handler
from civicbook.errors import PayloadError
from civicbook.schema import parse_payload

from .html import Element, Node, tag
from .markup import MarkupRenderer
from .media import audio_embed, image_embed, video_embed

_INTEGER = re.compile(r"^[0-9]+$")

DEFAULT_TOPIC_URL = "/discussion/topic/{topic_id}"


class ElementSource(Protocol):
    """Read access the renderer needs from the element store."""

    def get_elements_by_section(self, section_id: int) -> list[Any]:
        ...

    def get_topic(self, topic_id: int) -> Any | None:
        ...


def element_css_class(element_type: str) -> str:
    return f"{element_type.replace('_', '-')}-element"


def render_element(element: Any) -> Element:
    """Build the full widget (wrapper, title, description, body) for an element."""
    element_type = getattr(element.element_type, "value", element.element_type)
    wrapper = tag(
        "div",
        class_=f"interactive-element {element_css_class(element_type)}",
        data_element_id=element.id,
        data_element_type=element_type,
    )
    wrapper.append(tag("h3", element.title, class_="interactive-title"))
    if element.description:
        wrapper.append(tag("div", element.description, class_="interactive-description"))

    handler = get_handler(element_type)
    label = handler.label if handler is not None else element_type.replace("_", " ")
    try:
        if handler is None:
            raise PayloadError(f"No handler for element type {element_type}")
        payload = parse_payload(element_type, element.payload)
        body = list(handler.render(element, payload))
    except PayloadError as e:
        logger.warning(f"Cannot render element {element.id}: {e.message}")
        body = [tag("div", f"Error loading {label} content", class_="error")]
    except Exception as e:
        # Any other widget failure degrades to the same marker
        logger.error(f"Rendering element {element.id} failed: {e.__class__.__name__}: {e}")
        body = [tag("div", f"Error loading {label} content", class_="error")]

    wrapper.append(*body)
    return wrapper


class _RenderPass:
    """State for one render: caches element and topic lookups."""

    def __init__(self, source: ElementSource, section_id: int, topic_url: str):
        self.source = source
        self.section_id = section_id
        self.topic_url = topic_url
        self._elements: dict[int, Any] | None = None
        self._topics: dict[int, Any | None] = {}

    def elements(self) -> dict[int, Any]:
        if self._elements is None:
            self._elements = {e.id: e for e in self.source.get_elements_by_section(self.section_id)}
        return self._elements

    def topic(self, topic_id: int) -> Any | None:
        if topic_id not in self._topics:
            self._topics[topic_id] = self.source.get_topic(topic_id)
        return self._topics[topic_id]

    def resolve(self, name: str, argument: str) -> Node | None:
        if name == "interactive":
            if not _INTEGER.match(argument):
                return None
            element = self.elements().get(int(argument))
            return render_element(element) if element is not None else None
        if name == "topic":
            if not _INTEGER.match(argument):
                return None
            return self._topic_card(int(argument))
        if name in ("image", "video", "audio"):
            path = argument.strip()
            if not path:
                return None
            if name == "image":
                return image_embed(path)
            if name == "video":
                return video_embed(path)
            return audio_embed(path)
        return None

    def _topic_card(self, topic_id: int) -> Node | None:
        topic = self.topic(topic_id)
        if topic is None:
            return None
        return tag(
            "div",
            tag("h4", "Join the Discussion"),
            tag("p", topic.title),
            tag(
                "a",
                "Go to discussion",
                href=self.topic_url.format(topic_id=topic_id),
                class_="discussion-link",
            ),
            class_="discussion-topic-link",
            data_topic_id=topic_id,
        )


class SectionRenderer:
    """Render section markup with interactive elements from the store."""

    def __init__(self, source: ElementSource, topic_url: str = DEFAULT_TOPIC_URL):
        self.source = source
        self.topic_url = topic_url

    def render_section(self, section_id: int, content: str, user_id: int | None = None) -> str:
        """
        Render one section.

        The output depends only on the markup, the section's elements and the
        topics it references. user_id is accepted for callers that track who
        viewed what; it does not change the HTML.
        """
        render_pass = _RenderPass(self.source, section_id, self.topic_url)
        html = MarkupRenderer(render_pass.resolve).render(content)
        logger.debug(f"Rendered section {section_id} for user {user_id}: {len(html)} chars")
        return html
