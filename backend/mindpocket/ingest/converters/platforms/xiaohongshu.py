"""Xiaohongshu notes, whose markup is mostly app chrome."""
from __future__ import annotations

from bs4 import Tag

from ...types import ConversionResult
from ..html import html_to_markdown, meta_content, parse_html
from ..text import clean_markdown


def convert_xiaohongshu(html: str, url: str) -> ConversionResult | None:
    soup = parse_html(html)

    title = _text(soup.select_one("#detail-title")) or meta_content(soup, "og:title")
    description = _text(soup.select_one("#detail-desc")) or meta_content(soup, "og:description")
    if not title and not description:
        return html_to_markdown(html, url)

    images = [
        meta.get("content")
        for meta in soup.find_all("meta", attrs={"name": "og:image"})
        + soup.find_all("meta", attrs={"property": "og:image"})
        if meta.get("content")
    ]
    tags = [
        anchor.get_text(strip=True)
        for anchor in soup.select("#detail-desc a#hash-tag, #detail-desc a.tag")
        if anchor.get_text(strip=True)
    ]

    parts = [f"# {title}" if title else "# 小红书笔记"]
    if description:
        parts.append(description)
    parts.extend(f"![]({src})" for src in dict.fromkeys(images))
    if tags:
        parts.append(" ".join(tags))
    parts.append(f"**原文链接**：{url}")
    return ConversionResult(title=title, markdown=clean_markdown("\n\n".join(parts)))


def _text(tag: Tag | None) -> str | None:
    if not isinstance(tag, Tag):
        return None
    return tag.get_text("\n", strip=True) or None
