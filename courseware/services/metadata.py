# services/metadata.py
"""Turn raw course files into canonical course/chapter/topic records.

None of the readers raise on bad input: a missing or corrupt file reads as an
empty mapping (or ``None`` for indexes) so callers can skip the entity.
"""
from __future__ import annotations

import re
from typing import Any, Optional

from markdown_it import MarkdownIt

from .content_store import ContentStore, decode_payload, is_data_path

# CommonMark with raw HTML disabled: inline tags are escaped, not passed through
_markdown = MarkdownIt("commonmark", {"html": False})

_NUMERIC_PREFIX = re.compile(r"^[0-9]+-")
_WORD_START = re.compile(r"(^|\s)(\S)")
_LINE_BREAK = re.compile(r"\r\n|\r|\n")


def text_or_none(value: Any) -> Optional[str]:
    """Keep string fields; anything else (objects, lists, numbers) reads as missing."""
    return value if isinstance(value, str) else None


def title_from_slug(slug: str) -> str:
    """'001-getting-started' -> 'Getting Started'."""
    title = _NUMERIC_PREFIX.sub("", slug or "", count=1)
    title = title.replace("-", " ")
    return _WORD_START.sub(lambda m: m.group(1) + m.group(2).upper(), title)


def split_markdown(contents: str) -> tuple[Optional[str], str]:
    """Split a leading ``# Title`` line off a markdown document.

    Blank lines before the first content line are dropped; everything after it
    (blank lines included) is kept verbatim as the body.
    """
    title: Optional[str] = None
    body_lines: list[str] = []
    seen_content = False

    for line in _LINE_BREAK.split(contents or ""):
        trimmed = line.strip()
        if not seen_content and trimmed == "":
            continue
        if not seen_content and trimmed.startswith("# "):
            title = trimmed[2:].strip()
            seen_content = True
            continue
        seen_content = True
        body_lines.append(line)

    return title, "\n".join(body_lines)


def render_markdown(body: str) -> str:
    return _markdown.render(body or "").strip()


def markdown_topic(contents: str) -> dict[str, Any]:
    title, body = split_markdown(contents)
    html = render_markdown(body)
    return {
        "title": title,
        "content_html": html or None,
    }


def object_topic(payload: Any) -> dict[str, Any]:
    if not isinstance(payload, dict):
        return {}
    return {
        "title": text_or_none(payload.get("title")),
        "content": payload.get("content"),
        "content_html": text_or_none(payload.get("contentHtml")),
    }


def normalize_topic_index(payload: Any) -> Optional[list[dict[str, Any]]]:
    """Topic index entries as ``{"file": ..., "title": ...}`` mappings.

    Bare strings become ``{"file": entry}``; anything that is neither a string
    nor an object becomes an empty mapping so positions stay aligned.
    """
    if not isinstance(payload, list):
        return None
    entries: list[dict[str, Any]] = []
    for entry in payload:
        if isinstance(entry, str):
            entries.append({"file": entry})
        elif isinstance(entry, dict):
            entries.append(entry)
        else:
            entries.append({})
    return entries


def read_course_metadata(store: ContentStore, slug: str) -> dict[str, Any]:
    payload = store.course_descriptor(slug)
    if not isinstance(payload, dict):
        return {}
    metadata = dict(payload)
    metadata["title"] = text_or_none(payload.get("title"))
    metadata["description"] = text_or_none(payload.get("description"))
    return metadata


def declared_chapters(metadata: dict[str, Any]) -> list[Any]:
    chapters = metadata.get("chapters")
    return chapters if isinstance(chapters, list) else []


def read_topics_index(store: ContentStore, course_slug: str, chapter_slug: str) -> Optional[list[dict[str, Any]]]:
    if ".." in chapter_slug:
        return None
    return normalize_topic_index(store.topic_index(course_slug, chapter_slug))


def read_topic_payload(store: ContentStore, course_slug: str, chapter_slug: str, topic_file: str) -> dict[str, Any]:
    if ".." in topic_file:
        return {}
    path = store.topic_path(course_slug, chapter_slug, topic_file)
    if not store.exists(path):
        return {}
    if topic_file.endswith(".md"):
        return markdown_topic(store.read_text(path))
    if is_data_path(topic_file):
        return object_topic(decode_payload(path, store.read(path)))
    return {}
