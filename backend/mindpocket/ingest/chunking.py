"""Split bookmark Markdown into overlapping windows for embedding."""
from __future__ import annotations

import re
from dataclasses import dataclass, field

DEFAULT_CHUNK_SIZE = 1000
DEFAULT_CHUNK_OVERLAP = 200
MAX_HEADINGS = 3

_HEADING = re.compile(r"^(#{1,6})\s+(.+?)\s*#*\s*$")


@dataclass(slots=True)
class MarkdownChunk:
    text: str
    start: int
    end: int
    headings: list[str] = field(default_factory=list)

    @property
    def embedding_text(self) -> str:
        """Chunk text prefixed with its heading trail."""

        if not self.headings:
            return self.text
        return " > ".join(self.headings) + "\n\n" + self.text


def chunk_markdown(
    markdown: str,
    *,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    overlap: int = DEFAULT_CHUNK_OVERLAP,
) -> list[MarkdownChunk]:
    """Slide a ``chunk_size`` window with ``overlap`` over the Markdown.

    Each chunk remembers the headings in force where it starts so search
    hits keep some document context.
    """

    if overlap >= chunk_size:
        raise ValueError("overlap must be smaller than chunk_size")

    text = _normalize(markdown)
    if not text:
        return []

    outline = _heading_outline(text)
    chunks: list[MarkdownChunk] = []
    start = 0
    length = len(text)
    while start < length:
        end = min(start + chunk_size, length)
        segment = text[start:end].strip()
        if segment:
            chunks.append(
                MarkdownChunk(text=segment, start=start, end=end, headings=_trail_at(outline, start))
            )
        if end >= length:
            break
        start = end - overlap
    return chunks


def _normalize(markdown: str) -> str:
    text = markdown.replace("\r\n", "\n").replace("\r", "\n")
    text = re.sub(r"[ \t]+\n", "\n", text)
    return re.sub(r"\n{3,}", "\n\n", text).strip()


def _heading_outline(text: str) -> list[tuple[int, int, str]]:
    """Return ``(offset, level, title)`` for every ATX heading."""

    outline: list[tuple[int, int, str]] = []
    offset = 0
    in_fence = False
    for line in text.split("\n"):
        if line.lstrip().startswith("```"):
            in_fence = not in_fence
        elif not in_fence:
            match = _HEADING.match(line)
            if match:
                outline.append((offset, len(match.group(1)), match.group(2)))
        offset += len(line) + 1
    return outline


def _trail_at(outline: list[tuple[int, int, str]], position: int) -> list[str]:
    trail: list[tuple[int, str]] = []
    for offset, level, title in outline:
        if offset > position:
            break
        while trail and trail[-1][0] >= level:
            trail.pop()
        trail.append((level, title))
    return [title for _, title in trail][-MAX_HEADINGS:]
