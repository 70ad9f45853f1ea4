"""
Restricted section markup.

Supported, line by line:
- ATX headings: ``#`` to ``######`` followed by a space
- unordered list items: ``- item`` (contiguous items share one <ul>)
- paragraphs: any other non-empty line

Inline, within one line: ``**bold**``, ``*italic*``, ``[text](url)``,
``![alt](url)`` and ``{{name:argument}}`` placeholders. Placeholders are
resolved through a callback; a placeholder the callback declines is kept as
literal text. Everything is rendered in one pass, so substituted markup is
never scanned again.
"""
from __future__ import annotations

import re
from collections.abc import Callable

from .html import Element, Node, render_all, safe_url, tag

# (name, argument) -> rendered node, or None to keep the token verbatim
Resolver = Callable[[str, str], "Node | None"]

PLACEHOLDER_PATTERN = r"\{\{(?P<ph_name>[a-z]+):(?P<ph_arg>[^{}]*)\}\}"

PLACEHOLDER = re.compile(PLACEHOLDER_PATTERN)
HEADING = re.compile(r"^(#{1,6})\s+(.+)$")
LIST_ITEM = re.compile(r"^-\s+(.+)$")
INLINE = re.compile(
    rf"(?P<placeholder>{PLACEHOLDER_PATTERN})"
    r"|(?P<image>!\[(?P<image_alt>[^\]]*)\]\((?P<image_url>[^)\s]+)\))"
    r"|(?P<link>\[(?P<link_text>[^\]]+)\]\((?P<link_url>[^)\s]+)\))"
    r"|(?P<bold>\*\*(?P<bold_text>.+?)\*\*)"
    r"|(?P<italic>\*(?P<italic_text>[^*]+)\*)"
)


def _no_placeholders(name: str, argument: str) -> None:
    return None


class MarkupRenderer:
    """Render restricted markup to HTML with placeholder substitution."""

    def __init__(self, resolve: Resolver | None = None):
        self.resolve = resolve or _no_placeholders

    def render(self, source: str) -> str:
        return render_all(self.blocks(source), sep="\n")

    def blocks(self, source: str) -> list[Node]:
        blocks: list[Node] = []
        current_list: Element | None = None

        for raw_line in source.splitlines():
            line = raw_line.strip()
            if not line:
                current_list = None
                continue

            item = LIST_ITEM.match(line)
            if item:
                if current_list is None:
                    current_list = tag("ul")
                    blocks.append(current_list)
                current_list.append(tag("li", *self.inline(item.group(1))))
                continue
            current_list = None

            heading = HEADING.match(line)
            if heading:
                level = len(heading.group(1))
                blocks.append(tag(f"h{level}", *self.inline(heading.group(2).strip())))
                continue

            whole = PLACEHOLDER.fullmatch(line)
            if whole:
                node = self.resolve(whole.group("ph_name"), whole.group("ph_arg"))
                if node is not None:
                    blocks.append(node)
                    continue

            blocks.append(tag("p", *self.inline(line)))
        return blocks

    def inline(self, text: str) -> list[Node]:
        nodes: list[Node] = []
        position = 0
        for match in INLINE.finditer(text):
            if match.start() > position:
                nodes.append(text[position:match.start()])
            nodes.append(self._inline_token(match))
            position = match.end()
        if position < len(text):
            nodes.append(text[position:])
        return nodes

    def _inline_token(self, match: re.Match) -> Node:
        if match.group("placeholder"):
            node = self.resolve(match.group("ph_name"), match.group("ph_arg"))
            return node if node is not None else match.group(0)
        if match.group("image"):
            return tag("img", src=safe_url(match.group("image_url")), alt=match.group("image_alt"))
        if match.group("link"):
            return tag("a", *self.inline(match.group("link_text")), href=safe_url(match.group("link_url")))
        if match.group("bold"):
            return tag("strong", *self.inline(match.group("bold_text")))
        return tag("em", *self.inline(match.group("italic_text")))
