"""Client for the public Google Translate endpoint."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from ..config import Settings
from ..errors import UpstreamFormatError
from .fetch import FetchPolicy, fetch

logger = logging.getLogger(__name__)


class TranslationClient:
    """Translates short texts (taglines, synopses) into the library language."""

    def __init__(
        self,
        settings: Settings,
        http_client: httpx.AsyncClient,
        policy: FetchPolicy | None = None,
    ):
        self._settings = settings
        self._client = http_client
        self._policy = policy or settings.fetch_policy

    @property
    def enabled(self) -> bool:
        return self._settings.translate_enabled

    async def translate(self, text: str, *, target: str | None = None) -> str:
        """Return ``text`` translated to ``target``; the source is auto-detected."""

        if not text or not text.strip():
            return text
        response = await fetch(
            self._client,
            "GET",
            "/translate_a/single",
            policy=self._policy,
            params={
                "client": "gtx",
                "sl": "auto",
                "tl": target or self._settings.translate_target,
                "dt": "t",
                "q": text,
            },
        )
        try:
            data: Any = response.json()
        except ValueError as exc:
            raise UpstreamFormatError("Translation service returned non-JSON content") from exc

        segments = data[0] if isinstance(data, list) and data else None
        if not isinstance(segments, list):
            raise UpstreamFormatError("Translation payload has no segments")
        translated = "".join(
            segment[0]
            for segment in segments
            if isinstance(segment, list) and segment and isinstance(segment[0], str)
        )
        logger.debug("Translated %s characters", len(text))
        return translated or text
