"""Client fetching IMDb title pages for the HTML fact extractor."""

from __future__ import annotations

import logging
import re

import httpx

from ..config import Settings
from ..extractor import extract_facts
from ..models import ScrapedFacts
from .fetch import FetchPolicy, fetch

logger = logging.getLogger(__name__)

IMDB_ID_RE = re.compile(r"^tt\d{5,10}$")


class IMDbClient:
    """Downloads a single title page and hands it to the extractor."""

    def __init__(
        self,
        settings: Settings,
        http_client: httpx.AsyncClient,
        policy: FetchPolicy | None = None,
    ):
        self._settings = settings
        self._client = http_client
        self._policy = policy or settings.fetch_policy

    @staticmethod
    def validate_id(imdb_id: str) -> str:
        cleaned = (imdb_id or "").strip()
        if not IMDB_ID_RE.match(cleaned):
            raise ValueError(f"Invalid IMDb identifier: {imdb_id!r}")
        return cleaned

    async def fetch_page(self, imdb_id: str) -> str:
        imdb_id = self.validate_id(imdb_id)
        response = await fetch(
            self._client,
            "GET",
            f"/title/{imdb_id}/",
            policy=self._policy,
            headers={
                "User-Agent": self._settings.scraper_user_agent,
                "Accept-Language": self._settings.scraper_accept_language,
            },
            follow_redirects=True,
        )
        return response.text

    async def fetch_facts(self, imdb_id: str) -> ScrapedFacts:
        html = await self.fetch_page(imdb_id)
        facts = extract_facts(
            html,
            imdb_id=imdb_id,
            director_labels=self._settings.director_labels,
            writer_labels=self._settings.writer_labels,
        )
        if facts.is_empty():
            logger.info("No chips or credits found on IMDb page %s", imdb_id)
        return facts
