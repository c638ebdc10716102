"""Map URLs to the platform names used to pick specialised converters."""
from __future__ import annotations

import re

PLATFORM_PATTERNS: list[tuple[re.Pattern[str], str]] = [
    (re.compile(r"mp\.weixin\.qq\.com"), "wechat"),
    (re.compile(r"youtube\.com|youtu\.be"), "youtube"),
    (re.compile(r"github\.com"), "github"),
    (re.compile(r"zhihu\.com"), "zhihu"),
    (re.compile(r"bilibili\.com"), "bilibili"),
    (re.compile(r"xiaohongshu\.com|xhslink\.com"), "xiaohongshu"),
    (re.compile(r"twitter\.com|x\.com"), "twitter"),
    (re.compile(r"medium\.com"), "medium"),
    (re.compile(r"reddit\.com"), "reddit"),
    (re.compile(r"stackoverflow\.com"), "stackoverflow"),
    (re.compile(r"juejin\.cn"), "juejin"),
    (re.compile(r"jianshu\.com"), "jianshu"),
    (re.compile(r"notion\.so"), "notion"),
    (re.compile(r"arxiv\.org"), "arxiv"),
]

# Platforms whose content comes from a lightweight public API.
BROWSER_FREE_PLATFORMS = frozenset({"bilibili"})


def classify(url: str) -> str | None:
    """Return the first platform whose pattern matches ``url``."""

    for pattern, platform in PLATFORM_PATTERNS:
        if pattern.search(url):
            return platform
    return None


def needs_browser_rendering(platform: str | None) -> bool:
    if not platform:
        return False
    return platform not in BROWSER_FREE_PLATFORMS
