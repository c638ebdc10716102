"""Plain-text helpers derived from converted Markdown."""
from __future__ import annotations

import re

DESCRIPTION_MAX_LENGTH = 200

_HEADING_LINE = re.compile(r"^#+\s+.+$", re.MULTILINE)
_IMAGE = re.compile(r"!\[.*?\]\(.*?\)")
_LINK = re.compile(r"\[([^\]]+)\]\(.*?\)")
_PUNCTUATION = re.compile(r"[*_~`#>|-]")
_PARAGRAPH_SPLIT = re.compile(r"\n\n")


def extract_description(markdown: str) -> str:
    """Return the first prose paragraph of ``markdown``, at most 200 chars."""

    text = _HEADING_LINE.sub("", markdown)
    text = _IMAGE.sub("", text)
    text = _LINK.sub(r"\1", text)
    text = _PUNCTUATION.sub("", text).strip()
    first_paragraph = _PARAGRAPH_SPLIT.split(text)[0] if text else ""
    return first_paragraph[:DESCRIPTION_MAX_LENGTH].strip()


def clean_markdown(markdown: str) -> str:
    """Collapse runs of blank lines and trim trailing whitespace per line."""

    lines = [line.rstrip() for line in markdown.replace("\r\n", "\n").replace("\r", "\n").split("\n")]
    cleaned: list[str] = []
    blank = False
    for line in lines:
        if not line.strip():
            if not blank and cleaned:
                cleaned.append("")
            blank = True
            continue
        cleaned.append(line)
        blank = False
    return "\n".join(cleaned).strip()
