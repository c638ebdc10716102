"""Platform-specific converters and the HTML dispatch table."""
from __future__ import annotations

from typing import Callable

from ...types import ConversionResult
from ..html import html_to_markdown
from .bilibili import BilibiliConverter
from .wechat import convert_wechat
from .xiaohongshu import convert_xiaohongshu

HtmlConverter = Callable[[str, str], "ConversionResult | None"]

HTML_CONVERTERS: dict[str, HtmlConverter] = {
    "wechat": convert_wechat,
    "xiaohongshu": convert_xiaohongshu,
}


def convert_with_platform(html: str, url: str, platform: str | None) -> ConversionResult | None:
    """Use the platform's DOM rules when it has them, else generic conversion."""

    converter = HTML_CONVERTERS.get(platform or "")
    if converter is not None:
        return converter(html, url)
    return html_to_markdown(html, url)


__all__ = [
    "BilibiliConverter",
    "HTML_CONVERTERS",
    "convert_with_platform",
]
