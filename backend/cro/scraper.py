# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20260206v1
# ---------------------------------------------------------------------------
"""Headless Chromium page capture."""

import time
from dataclasses import dataclass
from typing import Optional

from playwright.sync_api import sync_playwright

from core.logger import logger

_USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/136.0.0.0 Safari/537.36"
)

_EXTRA_HEADERS = {
    "accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,image/webp,*/*;q=0.8",
    "accept-language": "pt-PT,pt;q=0.9,en;q=0.8",
    "cache-control": "max-age=0",
    "upgrade-insecure-requests": "1",
    "sec-fetch-dest": "document",
    "sec-fetch-mode": "navigate",
    "sec-fetch-site": "none",
    "sec-fetch-user": "?1",
}


@dataclass
class PageSnapshot:
    html: str
    text: str
    title: Optional[str] = None
    screenshot_path: Optional[str] = None
    load_time: Optional[float] = None  # seconds until DOMContentLoaded


class PageScraper:
    def __init__(self, settle_ms: int = 7000, headless: bool = True):
        self.settle_ms = settle_ms
        self.headless = headless

    def scrape(self, url: str, screenshot_path: Optional[str] = None) -> PageSnapshot:
        """
        Load *url* and return its html, visible text, title and load time.
        Navigation and browser errors propagate.
        """
        with sync_playwright() as p:
            browser = p.chromium.launch(headless=self.headless)
            try:
                context = browser.new_context(
                    user_agent=_USER_AGENT,
                    locale="pt-PT",
                    extra_http_headers=_EXTRA_HEADERS,
                )
                page = context.new_page()

                start = time.perf_counter()
                page.goto(url, wait_until="domcontentloaded")
                load_time = time.perf_counter() - start

                # let client-side rendering finish
                page.wait_for_timeout(self.settle_ms)

                if screenshot_path:
                    page.screenshot(path=screenshot_path, full_page=True)
                    logger.info("Screenshot of %s saved to %s", url, screenshot_path)

                html = page.content()
                text = page.evaluate("() => document.body ? document.body.innerText : ''")
                title = page.title()
            finally:
                browser.close()

        logger.info("Scraped %s: %d html chars, %d text chars", url, len(html), len(text or ""))
        return PageSnapshot(
            html=html,
            text=text or "",
            title=title or None,
            screenshot_path=screenshot_path,
            load_time=load_time,
        )
