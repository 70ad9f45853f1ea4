"""Media embeds shared by placeholders and question attachments."""
from __future__ import annotations

import re

from .html import Element, safe_url, tag

_YOUTUBE_ID = re.compile(r"^[A-Za-z0-9_-]+$")


def youtube_id(path: str) -> str | None:
    """Extract the video id from a YouTube share URL, if the path is one."""
    if "youtube.com" in path and "v=" in path:
        candidate = path.split("v=", 1)[1].split("&", 1)[0]
    elif "youtu.be/" in path:
        candidate = path.split("youtu.be/", 1)[1].split("?", 1)[0].split("&", 1)[0]
    else:
        return None
    if _YOUTUBE_ID.match(candidate):
        return candidate
    return None


def image_embed(path: str, alt: str | None = None) -> Element:
    return tag("img", src=safe_url(path), alt=alt or "Embedded image", class_="embedded-image")


def video_embed(path: str) -> Element:
    video_id = youtube_id(path)
    if video_id is not None:
        return tag(
            "div",
            tag(
                "iframe",
                src=f"https://www.youtube.com/embed/{video_id}",
                title="Embedded video",
                allowfullscreen=True,
                frameborder="0",
            ),
            class_="video-embed youtube-embed",
        )
    return tag(
        "div",
        tag("video", tag("source", src=safe_url(path), type="video/mp4"), controls=True),
        class_="video-embed",
    )


def audio_embed(path: str) -> Element:
    return tag(
        "div",
        tag("audio", tag("source", src=safe_url(path), type="audio/mpeg"), controls=True),
        class_="audio-embed",
    )


def media_embed(kind: str, path: str, alt: str | None = None) -> Element:
    if kind == "image":
        return image_embed(path, alt)
    if kind == "video":
        return video_embed(path)
    return audio_embed(path)
