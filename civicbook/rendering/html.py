"""
Minimal structured HTML builder.

Text children and attribute values are escaped when rendered. The only way
to emit unescaped markup is an explicit Raw node.
"""
from __future__ import annotations

import html
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any, Union

VOID_ELEMENTS = frozenset({"br", "hr", "img", "input", "source", "meta", "link"})
_UNSAFE_SCHEMES = ("javascript:", "vbscript:", "data:")


@dataclass(frozen=True)
class Raw:
    """Pre-rendered markup that must not be escaped again."""
    markup: str

    def render(self) -> str:
        return self.markup


@dataclass
class Element:
    name: str
    attrs: dict[str, Any] = field(default_factory=dict)
    children: list["Node"] = field(default_factory=list)

    def append(self, *children: "Node | None") -> "Element":
        self.children.extend(c for c in children if c is not None)
        return self

    def render(self) -> str:
        parts = [f"<{self.name}"]
        for key, value in self.attrs.items():
            if value is None or value is False:
                continue
            if value is True:
                parts.append(f" {key}")
            else:
                parts.append(f' {key}="{html.escape(str(value), quote=True)}"')
        parts.append(">")
        if self.name in VOID_ELEMENTS:
            return "".join(parts)
        parts.extend(render(child) for child in self.children)
        parts.append(f"</{self.name}>")
        return "".join(parts)


Node = Union[Element, Raw, str]


def tag(tag_name: str, /, *children: Node | None, **attrs: Any) -> Element:
    """
    Build an element. Trailing underscores are stripped from attribute names
    (``class_`` → ``class``) and remaining underscores become hyphens
    (``data_element_id`` → ``data-element-id``).
    """
    normalized = {key.rstrip("_").replace("_", "-"): value for key, value in attrs.items()}
    return Element(tag_name, normalized, [c for c in children if c is not None])


def safe_url(url: str) -> str:
    """Replace script-capable URLs with a dead link."""
    if url.strip().lower().startswith(_UNSAFE_SCHEMES):
        return "#"
    return url


def render(node: Node) -> str:
    if isinstance(node, str):
        return html.escape(node, quote=False)
    return node.render()


def render_all(nodes: Iterable[Node], sep: str = "") -> str:
    return sep.join(render(node) for node in nodes)
