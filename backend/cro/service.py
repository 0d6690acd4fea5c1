# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20260206v1
# ---------------------------------------------------------------------------
"""
The three external stages of an analysis behind one interface.

Routers depend on :class:`CroPipeline` only, so tests (or another vendor)
can swap the whole pipeline through ``create_app(pipeline=...)``.
"""

from abc import ABC, abstractmethod
from typing import Optional

from fastapi import Request

from core.config import Settings
from cro.analyst import CroAnalyst
from cro.report import render_pdf
from cro.scraper import PageScraper, PageSnapshot

__all__ = ["CroPipeline", "CroService", "PageSnapshot", "get_cro_pipeline"]


class CroPipeline(ABC):
    @abstractmethod
    def scrape_page(self, url: str, screenshot_path: Optional[str] = None) -> PageSnapshot:
        ...

    @abstractmethod
    def analyze_page(self, text: str, html: str, url: str) -> str:
        ...

    @abstractmethod
    def render_report(self, text: str, path: str) -> None:
        ...


class CroService(CroPipeline):
    """Playwright scrape, OpenAI analysis, reportlab PDF."""

    def __init__(self, scraper: PageScraper, analyst: CroAnalyst):
        self.scraper = scraper
        self.analyst = analyst

    @classmethod
    def from_settings(cls, app_settings: Settings) -> "CroService":
        return cls(
            scraper=PageScraper(settle_ms=app_settings.scrape_settle_ms),
            analyst=CroAnalyst(
                api_key=app_settings.openai_api_key,
                model=app_settings.openai_model,
                temperature=app_settings.openai_temperature,
                sample_chars=app_settings.sample_char_budget,
            ),
        )

    def scrape_page(self, url: str, screenshot_path: Optional[str] = None) -> PageSnapshot:
        return self.scraper.scrape(url, screenshot_path)

    def analyze_page(self, text: str, html: str, url: str) -> str:
        return self.analyst.analyze(text, html, url)

    def render_report(self, text: str, path: str) -> None:
        render_pdf(text, path)


def get_cro_pipeline(request: Request) -> CroPipeline:
    """FastAPI dependency.  Use with Depends(get_cro_pipeline)."""
    return request.app.state.pipeline
