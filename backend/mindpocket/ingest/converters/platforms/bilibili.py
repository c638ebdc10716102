"""Bilibili videos: metadata from the public web API, no page rendering."""
from __future__ import annotations

import logging
import re
from typing import Callable

import httpx

from ...types import ConversionResult

logger = logging.getLogger(__name__)

BV_URL_REGEX = re.compile(r"/video/(BV[A-Za-z0-9]+)")
TITLE_SUFFIX_REGEX = re.compile(r"_哔哩哔哩.*$")
VIEW_API_URL = "https://api.bilibili.com/x/web-interface/view"

ClientFactory = Callable[[], httpx.AsyncClient]


def extract_bvid(url: str) -> str | None:
    match = BV_URL_REGEX.search(url)
    return match.group(1) if match else None


def render_markdown(bvid: str, title: str | None) -> str:
    video_url = f"https://www.bilibili.com/video/{bvid}"
    iframe_src = f"//player.bilibili.com/player.html?isOutside=true&bvid={bvid}"
    return "\n".join(
        [
            f"# {title}" if title else "# B站视频",
            "",
            f"**视频链接**：{video_url}",
            "",
            f'<iframe src="{iframe_src}" scrolling="no" border="0" frameborder="no" '
            'framespacing="0" allowfullscreen="true"></iframe>',
        ]
    )


def _default_client() -> httpx.AsyncClient:
    return httpx.AsyncClient(timeout=httpx.Timeout(10.0), headers={"User-Agent": "Mozilla/5.0"})


class BilibiliConverter:
    """Converter strategy for ``bilibili.com/video/BV...`` URLs."""

    name = "bilibili"

    def __init__(self, client_factory: ClientFactory | None = None) -> None:
        self.client_factory = client_factory or _default_client

    async def attempt(self, url: str) -> ConversionResult | None:
        bvid = extract_bvid(url)
        if not bvid:
            return None
        title = await self.fetch_title(bvid)
        return ConversionResult(title=title, markdown=render_markdown(bvid, title))

    async def fetch_title(self, bvid: str) -> str | None:
        try:
            async with self.client_factory() as client:
                response = await client.get(VIEW_API_URL, params={"bvid": bvid})
                payload = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.error("Failed to fetch bilibili title for %s: %s", bvid, exc)
            return None
        data = payload.get("data") if isinstance(payload, dict) else None
        title = data.get("title") if isinstance(data, dict) else None
        if not title:
            return None
        return TITLE_SUFFIX_REGEX.sub("", title).strip() or None
