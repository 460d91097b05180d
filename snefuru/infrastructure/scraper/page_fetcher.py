"""
Page Fetcher - Raw HTML through ScraperAPI
==========================================

Fetches ranking pages for stored keyword positions so they can be
analysed later. ScraperAPI handles proxies and retries on its side.
"""

import logging
from typing import Optional

import requests

from ..config import get_settings

logger = logging.getLogger(__name__)


class PageFetchError(Exception):
    """Raised when a page could not be fetched."""


class PageFetcher:
    """
    USAGE:
        fetcher = PageFetcher()
        if fetcher.is_configured:
            html = fetcher.fetch("https://example.com/page")
    """

    def __init__(self, api_key: Optional[str] = None, session: Optional[requests.Session] = None):
        settings = get_settings().scraper
        self._api_key = api_key if api_key is not None else settings.api_key
        self._api_url = settings.api_url
        self._timeout = settings.timeout_seconds
        self._session = session or requests.Session()

    @property
    def is_configured(self) -> bool:
        return bool(self._api_key)

    def fetch(self, url: str) -> str:
        """Return the page body; raises PageFetchError on any failure."""
        if not self.is_configured:
            raise PageFetchError("ScraperAPI key not configured")

        logger.info(f"Scraping URL: {url}")
        try:
            response = self._session.get(
                self._api_url,
                params={"api_key": self._api_key, "url": url},
                timeout=self._timeout,
            )
        except requests.RequestException as e:
            # requests errors embed the full URL, api key included
            raise PageFetchError(f"Request failed for {url}: {type(e).__name__}") from e

        if not response.ok:
            raise PageFetchError(f"Failed to scrape {url}: {response.status_code} {response.reason}")

        return response.text
