from __future__ import annotations

import pytest
from pydantic import ValidationError

from backend.mindpocket.ingest.classifier import classify, needs_browser_rendering
from backend.mindpocket.ingest.converters.text import extract_description
from backend.mindpocket.ingest.errors import ERROR_MAX_LENGTH, sanitize_error
from backend.mindpocket.ingest.types import (
    BookmarkType,
    ClientSource,
    IngestExtensionRequest,
    IngestUrlRequest,
    file_extension_of,
    infer_type_from_extension,
    infer_type_from_url,
)


@pytest.mark.parametrize(
    ("url", "platform"),
    [
        ("https://mp.weixin.qq.com/s/abc", "wechat"),
        ("https://www.youtube.com/watch?v=1", "youtube"),
        ("https://youtu.be/xyz", "youtube"),
        ("https://github.com/org/repo", "github"),
        ("https://www.bilibili.com/video/BV1xx411c7mD", "bilibili"),
        ("https://www.xiaohongshu.com/explore/123", "xiaohongshu"),
        ("https://arxiv.org/abs/2401.00001", "arxiv"),
        ("https://example.com/post", None),
    ],
)
def test_classify_known_platforms(url: str, platform: str | None) -> None:
    assert classify(url) == platform


def test_classify_first_match_wins() -> None:
    # A GitHub URL that mentions youtube.com in its path still classifies as youtube.
    assert classify("https://github.com/foo/youtube.com-dl") == "youtube"


def test_needs_browser_rendering() -> None:
    assert needs_browser_rendering(None) is False
    assert needs_browser_rendering("bilibili") is False
    assert needs_browser_rendering("wechat") is True
    assert needs_browser_rendering("zhihu") is True


def test_infer_type_from_url() -> None:
    assert infer_type_from_url("https://www.bilibili.com/video/BV1") is BookmarkType.VIDEO
    assert infer_type_from_url("https://mp.weixin.qq.com/s/x") is BookmarkType.ARTICLE
    assert infer_type_from_url("https://example.com/paper.PDF") is BookmarkType.DOCUMENT
    assert infer_type_from_url("https://example.com/") is BookmarkType.LINK


def test_infer_type_from_extension_is_case_insensitive() -> None:
    assert infer_type_from_extension(".PDF") is BookmarkType.DOCUMENT
    assert infer_type_from_extension(".xlsx") is BookmarkType.SPREADSHEET
    assert infer_type_from_extension(".bin") is BookmarkType.OTHER


def test_file_extension_of() -> None:
    assert file_extension_of("Report.Final.PDF") == ".pdf"
    assert file_extension_of("README") == ""


def test_extract_description_first_paragraph() -> None:
    markdown = (
        "# Title\n\n"
        "![cover](https://img.example.com/a.png)\n"
        "Read the **[guide](https://example.com/guide)** before `starting`.\n\n"
        "Second paragraph."
    )
    assert extract_description(markdown) == "Read the guide before starting."


def test_extract_description_caps_length_and_is_idempotent() -> None:
    text = "word " * 100
    description = extract_description(text)
    assert len(description) <= 200
    assert extract_description(description) == description


def test_extract_description_empty() -> None:
    assert extract_description("") == ""
    assert extract_description("# Only a heading") == ""


def test_sanitize_error_strips_nul_and_truncates() -> None:
    message = "boom\x00" + "x" * 5000
    sanitized = sanitize_error(message)
    assert "\x00" not in sanitized
    assert len(sanitized) == ERROR_MAX_LENGTH
    assert sanitized.startswith("boomx")


def test_url_request_accepts_camel_and_snake_case() -> None:
    camel = IngestUrlRequest.model_validate(
        {"url": "https://example.com/a", "folderId": " f1 ", "clientSource": "web"}
    )
    snake = IngestUrlRequest.model_validate(
        {"url": "https://example.com/a", "folder_id": "f1", "client_source": "mobile"}
    )
    assert camel.folder_id == "f1"
    assert camel.client_source is ClientSource.WEB
    assert snake.client_source is ClientSource.MOBILE


@pytest.mark.parametrize(
    "payload",
    [
        {"url": "ftp://example.com/file", "clientSource": "web"},
        {"url": "not a url", "clientSource": "web"},
        {"url": "https://example.com", "clientSource": "desktop"},
        {"url": "https://example.com", "clientSource": "web", "folderId": "   "},
        {"url": "https://example.com"},
    ],
)
def test_url_request_rejects_invalid_payloads(payload: dict) -> None:
    with pytest.raises(ValidationError):
        IngestUrlRequest.model_validate(payload)


def test_extension_request_requires_html() -> None:
    with pytest.raises(ValidationError):
        IngestExtensionRequest.model_validate({"url": "https://example.com", "clientSource": "extension", "html": ""})
