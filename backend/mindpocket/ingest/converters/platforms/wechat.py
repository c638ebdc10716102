"""WeChat official-account articles (``mp.weixin.qq.com``)."""
from __future__ import annotations

from bs4 import Tag

from ...types import ConversionResult
from ..html import absolutize_links, fragment_to_markdown, html_to_markdown, meta_content, parse_html


def convert_wechat(html: str, url: str) -> ConversionResult | None:
    soup = parse_html(html)

    title_tag = soup.select_one("#activity-name")
    title = title_tag.get_text(" ", strip=True) if title_tag else None
    title = title or meta_content(soup, "og:title")

    body = soup.select_one("#js_content")
    if not isinstance(body, Tag):
        return html_to_markdown(html, url)

    # Article images are lazy-loaded through data-src.
    for image in body.find_all("img"):
        lazy_src = image.get("data-src")
        if lazy_src:
            image["src"] = lazy_src
    for element in body(["script", "style", "noscript"]):
        element.decompose()
    absolutize_links(body, url)

    markdown = fragment_to_markdown(body)
    if not markdown:
        return None

    author_tag = soup.select_one("#js_name")
    author = author_tag.get_text(" ", strip=True) if author_tag else None
    header = []
    if title:
        header.append(f"# {title}")
    if author:
        header.append(f"> {author}")
    if header:
        markdown = "\n\n".join(header + [markdown])
    return ConversionResult(title=title, markdown=markdown)
