"""Frontmatter packaging for remote documents.

A published document is a YAML frontmatter block followed by the body::

    ---
    title: Hello
    tags: python
    ---
    body text

``package`` builds that layout from a ``Post``; ``extract`` takes it
apart again.  Extraction never fails on bad frontmatter: a block that is
not valid YAML or not a mapping is treated as part of the body.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any

import yaml

from letterman_sync.errors import DecodeError
from letterman_sync.sync.models import Post

logger = logging.getLogger(__name__)

DELIMITER = "---"

_FRONTMATTER_RE = re.compile(
    r"\A---[ \t]*\r?\n(?P<block>.*?)^---[ \t]*(?:\r?\n|\Z)",
    re.DOTALL | re.MULTILINE,
)

# PyYAML emits C1 controls raw and reads NEL back as a line break
_ESCAPE_RE = re.compile("[\x80-\x9f\u2028\u2029]")


@dataclass(frozen=True)
class ExtractedContent:
    """Parts recovered from a published document."""

    title: str | None
    metadata: dict[str, str] = field(default_factory=dict)
    body: str = ""


def package(post: Post) -> bytes:
    """Render ``post`` as frontmatter plus body, UTF-8 encoded.

    ``title`` is written first; a ``title`` key inside ``metadata`` is
    not published since the post title occupies that slot.
    """
    front: dict[str, str] = {"title": post.title}
    for key, value in post.metadata.items():
        if key != "title":
            front[key] = value
    needs_escape = any(
        _ESCAPE_RE.search(key) or _ESCAPE_RE.search(value)
        for key, value in front.items()
    )
    block = yaml.safe_dump(
        front,
        sort_keys=False,
        allow_unicode=not needs_escape,
        default_flow_style=False,
        width=1_000_000,
    )
    return f"{DELIMITER}\n{block}{DELIMITER}\n{post.content}".encode("utf-8")


def extract(data: bytes | str) -> ExtractedContent:
    """Split a published document into title, metadata and body.

    Raises:
        DecodeError: ``data`` is bytes that are not valid UTF-8.
    """
    if isinstance(data, bytes):
        try:
            text = data.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise DecodeError(f"Document is not valid UTF-8: {exc}") from exc
    else:
        text = data

    match = _FRONTMATTER_RE.match(text)
    if match is None:
        return ExtractedContent(title=None, metadata={}, body=text)

    try:
        parsed = yaml.safe_load(match.group("block"))
    except yaml.YAMLError as exc:
        logger.warning("Ignoring malformed frontmatter: %s", exc)
        return ExtractedContent(title=None, metadata={}, body=text)

    if parsed is None:
        parsed = {}
    if not isinstance(parsed, dict):
        logger.warning(
            "Ignoring frontmatter that is not a mapping (%s)",
            type(parsed).__name__,
        )
        return ExtractedContent(title=None, metadata={}, body=text)

    metadata = {str(key): _stringify(value) for key, value in parsed.items()}
    # A null or empty title counts as absent
    title = metadata.pop("title", None) or None
    return ExtractedContent(
        title=title, metadata=metadata, body=text[match.end():]
    )


def _stringify(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, (list, dict)):
        return json.dumps(value, ensure_ascii=False, default=str)
    return str(value)
