"""Ingest taxonomy, conversion result type and request schemas."""
from __future__ import annotations

import enum
import re
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field, field_validator


class BookmarkType(str, enum.Enum):
    LINK = "link"
    ARTICLE = "article"
    VIDEO = "video"
    IMAGE = "image"
    DOCUMENT = "document"
    AUDIO = "audio"
    SPREADSHEET = "spreadsheet"
    OTHER = "other"


class SourceType(str, enum.Enum):
    URL = "url"
    FILE = "file"
    EXTENSION = "extension"


class ClientSource(str, enum.Enum):
    WEB = "web"
    MOBILE = "mobile"
    EXTENSION = "extension"


class IngestStatus(str, enum.Enum):
    """Lifecycle of a bookmark: pending -> processing -> completed | failed."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


TERMINAL_STATUSES = frozenset({IngestStatus.COMPLETED, IngestStatus.FAILED})


EXTENSION_TYPE_MAP: dict[str, BookmarkType] = {
    ".pdf": BookmarkType.DOCUMENT,
    ".docx": BookmarkType.DOCUMENT,
    ".doc": BookmarkType.DOCUMENT,
    ".md": BookmarkType.DOCUMENT,
    ".markdown": BookmarkType.DOCUMENT,
    ".xlsx": BookmarkType.SPREADSHEET,
    ".xls": BookmarkType.SPREADSHEET,
    ".csv": BookmarkType.SPREADSHEET,
    ".mp3": BookmarkType.AUDIO,
    ".wav": BookmarkType.AUDIO,
    ".mp4": BookmarkType.VIDEO,
    ".jpg": BookmarkType.IMAGE,
    ".jpeg": BookmarkType.IMAGE,
    ".png": BookmarkType.IMAGE,
    ".gif": BookmarkType.IMAGE,
    ".webp": BookmarkType.IMAGE,
    ".html": BookmarkType.ARTICLE,
    ".htm": BookmarkType.ARTICLE,
    ".xml": BookmarkType.ARTICLE,
    ".ipynb": BookmarkType.DOCUMENT,
    ".zip": BookmarkType.OTHER,
}

URL_TYPE_PATTERNS: list[tuple[re.Pattern[str], BookmarkType]] = [
    (re.compile(r"youtube\.com|youtu\.be"), BookmarkType.VIDEO),
    (re.compile(r"bilibili\.com"), BookmarkType.VIDEO),
    (re.compile(r"mp\.weixin\.qq\.com"), BookmarkType.ARTICLE),
    (re.compile(r"\.(pdf)$", re.IGNORECASE), BookmarkType.DOCUMENT),
    (re.compile(r"\.(mp3|wav)$", re.IGNORECASE), BookmarkType.AUDIO),
    (re.compile(r"\.(jpg|jpeg|png|gif|webp)$", re.IGNORECASE), BookmarkType.IMAGE),
]

_FILE_EXTENSION = re.compile(r"\.[^.]+$")


def infer_type_from_url(url: str) -> BookmarkType:
    for pattern, bookmark_type in URL_TYPE_PATTERNS:
        if pattern.search(url):
            return bookmark_type
    return BookmarkType.LINK


def infer_type_from_extension(extension: str) -> BookmarkType:
    return EXTENSION_TYPE_MAP.get(extension.lower(), BookmarkType.OTHER)


def file_extension_of(file_name: str) -> str:
    """Return the lowercase extension including the dot, or ``""``."""

    match = _FILE_EXTENSION.search(file_name)
    return match.group(0).lower() if match else ""


@dataclass(slots=True)
class ConversionResult:
    """Output of a converter; only a non-blank ``markdown`` counts as success."""

    title: str | None
    markdown: str

    @property
    def is_empty(self) -> bool:
        return not (self.markdown or "").strip()


def _validate_http_url(value: str) -> str:
    candidate = value.strip()
    parsed = urlparse(candidate)
    if parsed.scheme not in {"http", "https"} or not parsed.netloc:
        raise ValueError("URL must be an absolute HTTP or HTTPS address")
    return candidate


class IngestUrlRequest(BaseModel):
    """JSON body for saving a URL."""

    model_config = ConfigDict(populate_by_name=True)

    url: str = Field(..., max_length=2048)
    folder_id: Optional[str] = Field(default=None, alias="folderId")
    title: Optional[str] = Field(default=None, max_length=512)
    client_source: ClientSource = Field(..., alias="clientSource")

    @field_validator("url")
    @classmethod
    def _check_url(cls, value: str) -> str:
        return _validate_http_url(value)

    @field_validator("folder_id")
    @classmethod
    def _check_folder_id(cls, value: str | None) -> str | None:
        if value is None:
            return None
        trimmed = value.strip()
        if not trimmed:
            raise ValueError("folderId must not be blank")
        return trimmed


class IngestExtensionRequest(IngestUrlRequest):
    """JSON body sent by the browser extension with a rendered HTML snapshot."""

    html: str = Field(..., min_length=1)
