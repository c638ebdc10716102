"""Ordered converter strategies for URLs, uploaded files and HTML snapshots."""
from __future__ import annotations

import asyncio
import logging
import re
from typing import Callable, Mapping, Protocol
from urllib.parse import urlparse

import httpx

from ...core.config import settings
from ...core.metrics import record_conversion
from ..classifier import classify, needs_browser_rendering
from ..types import ConversionResult
from .browser import DEFAULT_ACCEPT, BrowserRenderer
from .files import convert_buffer
from .html import html_to_markdown
from .platforms import BilibiliConverter, convert_with_platform
from .text import clean_markdown

logger = logging.getLogger(__name__)

# Sites that only serve real content to a JavaScript-capable browser.
BROWSER_ONLY_PATTERNS = [re.compile(r"^https?://mp\.weixin\.qq\.com/")]

HTML_TYPES = {"text/html", "application/xhtml+xml"}
CONTENT_TYPE_EXTENSIONS = {
    "application/pdf": ".pdf",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document": ".docx",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet": ".xlsx",
    "text/csv": ".csv",
    "text/markdown": ".md",
    "application/xml": ".xml",
    "text/xml": ".xml",
    "application/x-ipynb+json": ".ipynb",
    "image/jpeg": ".jpg",
    "image/png": ".png",
    "image/gif": ".gif",
    "image/webp": ".webp",
    "audio/wav": ".wav",
    "audio/x-wav": ".wav",
    "application/zip": ".zip",
}

ClientFactory = Callable[[], httpx.AsyncClient]


class ConversionStrategy(Protocol):
    """One step of the URL fallback chain."""

    name: str

    async def attempt(self, url: str) -> ConversionResult | None:
        """Return a result, or ``None`` to let the next strategy try."""


def is_browser_only(url: str) -> bool:
    return any(pattern.search(url) for pattern in BROWSER_ONLY_PATTERNS)


def _default_client() -> httpx.AsyncClient:
    headers = {
        "User-Agent": settings.BROWSER_USER_AGENT,
        "Accept": DEFAULT_ACCEPT,
        "Accept-Language": settings.BROWSER_ACCEPT_LANGUAGE,
    }
    timeout = httpx.Timeout(settings.FETCH_TIMEOUT, connect=10.0)
    return httpx.AsyncClient(timeout=timeout, headers=headers, follow_redirects=True)


class GenericUrlConverter:
    """Fetch the URL over HTTP and convert whatever comes back."""

    name = "generic"

    def __init__(self, client_factory: ClientFactory | None = None) -> None:
        self.client_factory = client_factory or _default_client

    async def attempt(self, url: str) -> ConversionResult | None:
        async with self.client_factory() as client:
            response = await client.get(url)
            response.raise_for_status()

        final_url = str(response.url)
        content_type = response.headers.get("content-type", "").split(";", 1)[0].strip().lower()

        if content_type in HTML_TYPES or not content_type:
            return html_to_markdown(response.text, final_url)

        extension = CONTENT_TYPE_EXTENSIONS.get(content_type) or _extension_from_path(final_url)
        if extension:
            return await asyncio.to_thread(convert_buffer, response.content, extension)
        if content_type.startswith("text/"):
            return ConversionResult(title=None, markdown=clean_markdown(response.text))

        logger.info("No converter for %s content from %s", content_type, final_url)
        return None


class BrowserConverter:
    """Render the page in a headless browser, then convert the snapshot."""

    name = "browser"

    def __init__(self, renderer: BrowserRenderer) -> None:
        self.renderer = renderer

    async def attempt(self, url: str) -> ConversionResult | None:
        html = await self.renderer.render(url)
        if not html:
            return None
        return await asyncio.to_thread(convert_with_platform, html, url, classify(url))


class ConverterEngine:
    """Entry point for all conversions; build once per process and inject."""

    def __init__(
        self,
        *,
        generic: ConversionStrategy,
        browser: ConversionStrategy,
        platform_converters: Mapping[str, ConversionStrategy] | None = None,
    ) -> None:
        self.generic = generic
        self.browser = browser
        self.platform_converters = dict(platform_converters or {})

    @classmethod
    def from_settings(cls) -> "ConverterEngine":
        return cls(
            generic=GenericUrlConverter(),
            browser=BrowserConverter(BrowserRenderer()),
            platform_converters={"bilibili": BilibiliConverter()},
        )

    def plan(self, url: str) -> list[ConversionStrategy]:
        """Return the strategies to try for ``url``, in order."""

        strategies: list[ConversionStrategy] = []
        platform = classify(url)
        if platform and not needs_browser_rendering(platform):
            converter = self.platform_converters.get(platform)
            if converter is not None:
                strategies.append(converter)
        if is_browser_only(url):
            strategies.append(self.browser)
            return strategies
        strategies.extend([self.generic, self.browser])
        return strategies

    async def convert_from_url(self, url: str) -> ConversionResult | None:
        """Try each planned strategy until one yields Markdown.

        Strategy exceptions only move the chain forward. If every strategy
        misses and at least one raised, the last exception is re-raised so
        the caller records a meaningful failure.
        """

        last_error: Exception | None = None
        for strategy in self.plan(url):
            try:
                result = await strategy.attempt(url)
            except Exception as exc:
                logger.warning("%s converter failed for %s: %s", strategy.name, url, exc)
                record_conversion(strategy.name, "error")
                last_error = exc
                continue
            if result is None or result.is_empty:
                logger.info("%s converter returned no markdown for %s", strategy.name, url)
                record_conversion(strategy.name, "miss")
                continue
            record_conversion(strategy.name, "hit")
            return result

        if last_error is not None:
            raise last_error
        return None

    async def convert_from_buffer(self, data: bytes, file_extension: str) -> ConversionResult | None:
        return await asyncio.to_thread(convert_buffer, data, file_extension)

    async def convert_from_html(self, html: str, source_url: str) -> ConversionResult | None:
        return await asyncio.to_thread(convert_with_platform, html, source_url, classify(source_url))


def _extension_from_path(url: str) -> str | None:
    path = urlparse(url).path.lower()
    for extension in (".pdf", ".docx", ".xlsx", ".csv", ".md", ".ipynb", ".zip"):
        if path.endswith(extension):
            return extension
    return None
