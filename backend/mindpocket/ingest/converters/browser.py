"""Headless Chromium rendering for pages that need JavaScript."""
from __future__ import annotations

import logging

from playwright.async_api import async_playwright

from ...core.config import settings

logger = logging.getLogger(__name__)

DEFAULT_ACCEPT = "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8"


class BrowserRenderer:
    """Render a URL in headless Chromium and return the final HTML."""

    def __init__(
        self,
        *,
        user_agent: str | None = None,
        accept_language: str | None = None,
        timeout_ms: int | None = None,
        executable_path: str | None = None,
    ) -> None:
        self.user_agent = user_agent or settings.BROWSER_USER_AGENT
        self.accept_language = accept_language or settings.BROWSER_ACCEPT_LANGUAGE
        self.timeout_ms = timeout_ms or settings.BROWSER_TIMEOUT_MS
        self.executable_path = executable_path or settings.BROWSER_EXECUTABLE_PATH

    @property
    def headers(self) -> dict[str, str]:
        return {"Accept-Language": self.accept_language, "Accept": DEFAULT_ACCEPT}

    async def render(self, url: str) -> str | None:
        """Return the rendered HTML, or ``None`` if launch or navigation fails."""

        try:
            async with async_playwright() as playwright:
                browser = await playwright.chromium.launch(
                    headless=True,
                    executable_path=self.executable_path,
                )
                try:
                    context = await browser.new_context(
                        user_agent=self.user_agent,
                        extra_http_headers=self.headers,
                    )
                    page = await context.new_page()
                    await page.goto(url, wait_until="networkidle", timeout=self.timeout_ms)
                    html = await page.content()
                finally:
                    await browser.close()
        except Exception as exc:
            logger.error("Browser rendering failed for %s: %s", url, exc)
            return None
        return html or None
