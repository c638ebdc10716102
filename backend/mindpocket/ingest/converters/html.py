"""Generic HTML to Markdown conversion."""
from __future__ import annotations

import logging
from urllib.parse import urljoin

from bs4 import BeautifulSoup, Tag
from markdownify import markdownify

from ..types import ConversionResult
from .text import clean_markdown

logger = logging.getLogger(__name__)

NOISE_TAGS = ["script", "style", "noscript", "template", "nav", "footer", "aside", "iframe", "form"]


def parse_html(html: str | bytes) -> BeautifulSoup:
    return BeautifulSoup(html, "html.parser")


def extract_title(soup: BeautifulSoup) -> str | None:
    """Pick ``og:title``, then ``<title>``, then the first ``<h1>``."""

    meta = soup.find("meta", attrs={"property": "og:title"})
    if isinstance(meta, Tag):
        content = (meta.get("content") or "").strip()
        if content:
            return content
    if soup.title and soup.title.string:
        title = soup.title.string.strip()
        if title:
            return title
    heading = soup.find("h1")
    if heading:
        text = heading.get_text(" ", strip=True)
        if text:
            return text
    return None


def meta_content(soup: BeautifulSoup, key: str) -> str | None:
    """Return a ``<meta>`` value looked up by ``property`` or ``name``."""

    for attr in ("property", "name"):
        meta = soup.find("meta", attrs={attr: key})
        if isinstance(meta, Tag):
            content = (meta.get("content") or "").strip()
            if content:
                return content
    return None


def absolutize_links(root: Tag, base_url: str | None) -> None:
    if not base_url:
        return
    for anchor in root.find_all("a", href=True):
        anchor["href"] = urljoin(base_url, anchor["href"].strip())
    for image in root.find_all("img", src=True):
        image["src"] = urljoin(base_url, image["src"].strip())


def fragment_to_markdown(fragment: Tag | str) -> str:
    return clean_markdown(markdownify(str(fragment), heading_style="ATX", bullets="-"))


def html_to_markdown(html: str | bytes, source_url: str | None = None) -> ConversionResult | None:
    """Convert a full HTML page into Markdown, keeping the main content only."""

    soup = parse_html(html)
    title = extract_title(soup)

    for element in soup(NOISE_TAGS):
        element.decompose()

    main = soup.find("article") or soup.find("main") or soup.body or soup
    absolutize_links(main, source_url)
    markdown = fragment_to_markdown(main)
    if not markdown:
        logger.debug("HTML from %s produced no markdown", source_url or "<inline>")
        return None
    return ConversionResult(title=title, markdown=markdown)
