"""Client for The Movie Database (TMDB) v3 API."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from ..config import Settings
from ..errors import UpstreamFormatError
from .fetch import FetchPolicy, fetch

logger = logging.getLogger(__name__)

MOVIE_APPENDS = "credits,release_dates,external_ids"


class TMDBClient:
    """Keyed lookups of movies and collections, one locale per call."""

    def __init__(
        self,
        settings: Settings,
        http_client: httpx.AsyncClient,
        policy: FetchPolicy | None = None,
    ):
        self._settings = settings
        self._client = http_client
        self._policy = policy or settings.fetch_policy

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self._settings.tmdb_access_token:
            headers["Authorization"] = f"Bearer {self._settings.tmdb_access_token}"
        return headers

    async def _get(self, path: str, params: dict[str, Any]) -> dict[str, Any]:
        response = await fetch(
            self._client,
            "GET",
            path,
            policy=self._policy,
            params=params,
            headers=self._headers(),
        )
        try:
            payload = response.json()
        except ValueError as exc:
            raise UpstreamFormatError(f"TMDB returned non-JSON content for {path}") from exc
        if not isinstance(payload, dict):
            raise UpstreamFormatError(f"Unexpected TMDB payload for {path}")
        return payload

    async def get_movie(self, movie_id: int, language: str) -> dict[str, Any]:
        """Return movie details with credits, release dates and external ids."""

        payload = await self._get(
            f"/movie/{int(movie_id)}",
            {"language": language, "append_to_response": MOVIE_APPENDS},
        )
        if "id" not in payload:
            raise UpstreamFormatError(f"TMDB movie {movie_id} payload has no id")
        return payload

    async def get_collection(self, collection_id: int, language: str) -> dict[str, Any]:
        payload = await self._get(
            f"/collection/{int(collection_id)}", {"language": language}
        )
        if "id" not in payload:
            raise UpstreamFormatError(f"TMDB collection {collection_id} payload has no id")
        return payload

    async def search_movies(self, query: str, language: str) -> list[dict[str, Any]]:
        return await self._search("/search/movie", query, language)

    async def search_collections(self, query: str, language: str) -> list[dict[str, Any]]:
        return await self._search("/search/collection", query, language)

    async def _search(self, path: str, query: str, language: str) -> list[dict[str, Any]]:
        text = (query or "").strip()
        if not text:
            return []
        payload = await self._get(
            path,
            {"query": text, "language": language, "include_adult": "false", "page": 1},
        )
        results = payload.get("results") or []
        if not isinstance(results, list):
            raise UpstreamFormatError(f"TMDB search {path} returned malformed results")
        return [entry for entry in results if isinstance(entry, dict)]
