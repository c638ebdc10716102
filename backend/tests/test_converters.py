from __future__ import annotations

import asyncio
import io
import json
import wave
import zipfile

import httpx
import pytest

from backend.mindpocket.ingest.converters import browser as browser_module
from backend.mindpocket.ingest.converters import engine as engine_module
from backend.mindpocket.ingest.converters.browser import BrowserRenderer
from backend.mindpocket.ingest.converters.engine import (
    BrowserConverter,
    ConverterEngine,
    GenericUrlConverter,
    is_browser_only,
)
from backend.mindpocket.ingest.converters.files import convert_buffer
from backend.mindpocket.ingest.converters.html import html_to_markdown
from backend.mindpocket.ingest.converters.platforms import convert_with_platform
from backend.mindpocket.ingest.converters.platforms.bilibili import BilibiliConverter, extract_bvid
from backend.mindpocket.ingest.errors import UnsupportedFormatError
from backend.mindpocket.ingest.types import ConversionResult

ARTICLE_HTML = """
<html>
  <head>
    <title>Fallback title</title>
    <meta property="og:title" content="Open Graph Title">
    <script>var tracking = true;</script>
  </head>
  <body>
    <nav>Home | About</nav>
    <article>
      <h1>Deep Dive</h1>
      <p>First paragraph with a <a href="/docs">relative link</a>.</p>
      <ul><li>one</li><li>two</li></ul>
    </article>
    <footer>Copyright</footer>
  </body>
</html>
"""


class FakeStrategy:
    def __init__(self, name: str, result: ConversionResult | None = None, error: Exception | None = None) -> None:
        self.name = name
        self.result = result
        self.error = error
        self.calls: list[str] = []

    async def attempt(self, url: str) -> ConversionResult | None:
        self.calls.append(url)
        if self.error is not None:
            raise self.error
        return self.result


def _engine(generic: FakeStrategy, browser: FakeStrategy, bilibili: FakeStrategy | None = None) -> ConverterEngine:
    platform_converters = {"bilibili": bilibili} if bilibili else {}
    return ConverterEngine(generic=generic, browser=browser, platform_converters=platform_converters)


def _mock_client(handler):
    return lambda: httpx.AsyncClient(transport=httpx.MockTransport(handler))


def test_html_to_markdown_keeps_article_content() -> None:
    result = html_to_markdown(ARTICLE_HTML, "https://example.com/posts/1")

    assert result is not None
    assert result.title == "Open Graph Title"
    assert "# Deep Dive" in result.markdown
    assert "[relative link](https://example.com/docs)" in result.markdown
    assert "- one" in result.markdown
    assert "Home | About" not in result.markdown
    assert "tracking" not in result.markdown


def test_html_to_markdown_empty_page() -> None:
    assert html_to_markdown("<html><body><script>x()</script></body></html>") is None


def test_wechat_article_conversion() -> None:
    html = """
    <html><head><meta property="og:title" content="OG"></head><body>
      <h1 id="activity-name"> 公众号文章 </h1>
      <a id="js_name">作者名</a>
      <div id="js_content">
        <p>正文内容</p>
        <img data-src="https://mmbiz.qpic.cn/pic.png">
      </div>
    </body></html>
    """
    result = convert_with_platform(html, "https://mp.weixin.qq.com/s/abc", "wechat")

    assert result is not None
    assert result.title == "公众号文章"
    assert result.markdown.startswith("# 公众号文章\n\n> 作者名")
    assert "正文内容" in result.markdown
    assert "https://mmbiz.qpic.cn/pic.png" in result.markdown


def test_xiaohongshu_note_conversion() -> None:
    html = """
    <html><head><meta name="og:image" content="https://sns-img.xhscdn.com/1.jpg"></head><body>
      <div id="detail-title">周末去哪儿</div>
      <div id="detail-desc">城市公园散步路线</div>
    </body></html>
    """
    url = "https://www.xiaohongshu.com/explore/123"
    result = convert_with_platform(html, url, "xiaohongshu")

    assert result is not None
    assert result.title == "周末去哪儿"
    assert "城市公园散步路线" in result.markdown
    assert "![](https://sns-img.xhscdn.com/1.jpg)" in result.markdown
    assert result.markdown.endswith(f"**原文链接**：{url}")


def test_convert_with_platform_falls_back_to_generic_html() -> None:
    result = convert_with_platform(ARTICLE_HTML, "https://github.com/org/repo", "github")
    assert result is not None
    assert result.title == "Open Graph Title"


def test_extract_bvid() -> None:
    assert extract_bvid("https://www.bilibili.com/video/BV1xx411c7mD?p=2") == "BV1xx411c7mD"
    assert extract_bvid("https://www.bilibili.com/read/cv123") is None


def test_bilibili_uses_api_title() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.params["bvid"] == "BV1xx411c7mD"
        return httpx.Response(200, json={"code": 0, "data": {"title": "测试视频_哔哩哔哩_bilibili"}})

    converter = BilibiliConverter(client_factory=_mock_client(handler))
    result = asyncio.run(converter.attempt("https://www.bilibili.com/video/BV1xx411c7mD"))

    assert result is not None
    assert result.title == "测试视频"
    assert result.markdown.startswith("# 测试视频")
    assert "**视频链接**：https://www.bilibili.com/video/BV1xx411c7mD" in result.markdown
    assert "player.bilibili.com/player.html?isOutside=true&bvid=BV1xx411c7mD" in result.markdown


def test_bilibili_api_failure_still_produces_embed() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("offline", request=request)

    converter = BilibiliConverter(client_factory=_mock_client(handler))
    result = asyncio.run(converter.attempt("https://www.bilibili.com/video/BV1abc"))

    assert result is not None
    assert result.title is None
    assert result.markdown.startswith("# B站视频")


def test_bilibili_without_bvid_is_a_miss() -> None:
    converter = BilibiliConverter(client_factory=_mock_client(lambda request: httpx.Response(500)))
    assert asyncio.run(converter.attempt("https://www.bilibili.com/")) is None


def test_generic_converter_html() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text=ARTICLE_HTML, headers={"content-type": "text/html; charset=utf-8"})

    converter = GenericUrlConverter(client_factory=_mock_client(handler))
    result = asyncio.run(converter.attempt("https://example.com/posts/1"))

    assert result is not None
    assert "# Deep Dive" in result.markdown


def test_generic_converter_routes_binary_bodies_to_buffer(monkeypatch: pytest.MonkeyPatch) -> None:
    seen: list[tuple[bytes, str]] = []

    def fake_convert_buffer(data: bytes, extension: str) -> ConversionResult:
        seen.append((data, extension))
        return ConversionResult(title="Paper", markdown="pdf text")

    monkeypatch.setattr(engine_module, "convert_buffer", fake_convert_buffer)

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=b"%PDF-1.7", headers={"content-type": "application/pdf"})

    converter = GenericUrlConverter(client_factory=_mock_client(handler))
    result = asyncio.run(converter.attempt("https://example.com/download?id=1"))

    assert result == ConversionResult(title="Paper", markdown="pdf text")
    assert seen == [(b"%PDF-1.7", ".pdf")]


def test_generic_converter_raises_on_http_error() -> None:
    converter = GenericUrlConverter(client_factory=_mock_client(lambda request: httpx.Response(404)))
    with pytest.raises(httpx.HTTPStatusError):
        asyncio.run(converter.attempt("https://example.com/missing"))


def test_engine_falls_back_to_browser_once_after_generic_error() -> None:
    generic = FakeStrategy("generic", error=RuntimeError("blocked"))
    browser = FakeStrategy("browser", result=ConversionResult(title="T", markdown="rendered"))
    engine = _engine(generic, browser)

    result = asyncio.run(engine.convert_from_url("https://example.com/page"))

    assert result is not None and result.markdown == "rendered"
    assert len(generic.calls) == 1
    assert len(browser.calls) == 1


def test_engine_treats_empty_markdown_as_miss() -> None:
    generic = FakeStrategy("generic", result=ConversionResult(title="T", markdown="   "))
    browser = FakeStrategy("browser", result=ConversionResult(title=None, markdown="body"))

    result = asyncio.run(_engine(generic, browser).convert_from_url("https://example.com/page"))

    assert result is not None and result.markdown == "body"
    assert len(browser.calls) == 1


def test_engine_browser_only_sites_skip_generic() -> None:
    generic = FakeStrategy("generic", result=ConversionResult(title=None, markdown="should not be used"))
    browser = FakeStrategy("browser", result=ConversionResult(title="WeChat", markdown="article"))
    url = "https://mp.weixin.qq.com/s/abcdef"

    assert is_browser_only(url)
    result = asyncio.run(_engine(generic, browser).convert_from_url(url))

    assert result is not None and result.title == "WeChat"
    assert generic.calls == []
    assert browser.calls == [url]


def test_engine_bilibili_short_circuits() -> None:
    generic = FakeStrategy("generic")
    browser = FakeStrategy("browser")
    bilibili = FakeStrategy("bilibili", result=ConversionResult(title="Video", markdown="# Video"))

    result = asyncio.run(
        _engine(generic, browser, bilibili).convert_from_url("https://www.bilibili.com/video/BV1xx")
    )

    assert result is not None and result.title == "Video"
    assert generic.calls == [] and browser.calls == []


def test_engine_returns_none_when_every_strategy_misses() -> None:
    generic = FakeStrategy("generic")
    browser = FakeStrategy("browser")
    assert asyncio.run(_engine(generic, browser).convert_from_url("https://example.com")) is None


def test_engine_reraises_last_error_when_nothing_converts() -> None:
    generic = FakeStrategy("generic", error=httpx.ConnectError("Name or service not known"))
    browser = FakeStrategy("browser")

    with pytest.raises(httpx.ConnectError, match="Name or service not known"):
        asyncio.run(_engine(generic, browser).convert_from_url("https://unreachable.invalid"))
    assert len(browser.calls) == 1


def test_engine_convert_from_html_uses_platform_rules() -> None:
    engine = _engine(FakeStrategy("generic"), FakeStrategy("browser"))
    html = '<html><body><h1 id="activity-name">标题</h1><div id="js_content"><p>内容</p></div></body></html>'

    result = asyncio.run(engine.convert_from_html(html, "https://mp.weixin.qq.com/s/x"))

    assert result is not None and result.title == "标题"


def test_convert_buffer_csv_table() -> None:
    result = convert_buffer(b"name,score\nalice,3\nbob,5\n", ".csv")

    assert result is not None
    assert result.markdown.splitlines() == [
        "| name | score |",
        "| --- | --- |",
        "| alice | 3 |",
        "| bob | 5 |",
    ]


def test_convert_buffer_markdown_title() -> None:
    result = convert_buffer("# Notes\n\n\n\nbody text\n".encode("utf-8"), ".MD")

    assert result is not None
    assert result.title == "Notes"
    assert result.markdown == "# Notes\n\nbody text"


def test_convert_buffer_notebook() -> None:
    notebook = {
        "metadata": {"kernelspec": {"language": "python"}},
        "cells": [
            {"cell_type": "markdown", "source": ["# Analysis\n", "Intro"]},
            {"cell_type": "code", "source": "print('hi')"},
        ],
    }
    result = convert_buffer(json.dumps(notebook).encode("utf-8"), ".ipynb")

    assert result is not None
    assert result.title == "Analysis"
    assert "```python\nprint('hi')\n```" in result.markdown


def test_convert_buffer_wav_metadata() -> None:
    buffer = io.BytesIO()
    with wave.open(buffer, "wb") as audio:
        audio.setnchannels(1)
        audio.setsampwidth(2)
        audio.setframerate(8000)
        audio.writeframes(b"\x00\x00" * 16000)

    result = convert_buffer(buffer.getvalue(), ".wav")

    assert result is not None
    assert "- Sample rate: 8000 Hz" in result.markdown
    assert "- Duration: 2.0 s" in result.markdown


def test_convert_buffer_zip_members() -> None:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as archive:
        archive.writestr("notes/readme.md", "# Readme\n\nhello")
        archive.writestr("data.bin", b"\x00\x01")

    result = convert_buffer(buffer.getvalue(), ".zip")

    assert result is not None
    assert "## notes/readme.md" in result.markdown
    assert "data.bin" not in result.markdown


def test_convert_buffer_empty_result_is_none() -> None:
    assert convert_buffer(b"   \n\n", ".txt") is None


@pytest.mark.parametrize("extension", [".exe", ".doc", ".xls", ".mp3"])
def test_convert_buffer_unknown_extension(extension: str) -> None:
    with pytest.raises(UnsupportedFormatError):
        convert_buffer(b"data", extension)


class FakeRenderer:
    def __init__(self, html: str | None) -> None:
        self.html = html
        self.urls: list[str] = []

    async def render(self, url: str) -> str | None:
        self.urls.append(url)
        return self.html


def test_browser_converter_converts_rendered_snapshot() -> None:
    renderer = FakeRenderer(ARTICLE_HTML)
    result = asyncio.run(BrowserConverter(renderer).attempt("https://example.com/app"))

    assert renderer.urls == ["https://example.com/app"]
    assert result is not None
    assert "# Deep Dive" in result.markdown


def test_browser_converter_miss_when_render_fails() -> None:
    assert asyncio.run(BrowserConverter(FakeRenderer(None)).attempt("https://example.com/app")) is None


def test_browser_renderer_returns_none_when_launch_fails(monkeypatch: pytest.MonkeyPatch) -> None:
    def broken_playwright():
        raise RuntimeError("Executable doesn't exist")

    monkeypatch.setattr(browser_module, "async_playwright", broken_playwright)
    renderer = BrowserRenderer(timeout_ms=1000)

    assert renderer.headers["Accept-Language"]
    assert asyncio.run(renderer.render("https://example.com")) is None
