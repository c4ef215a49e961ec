"""Integration helpers for the OpenRouter API."""

from __future__ import annotations

import logging
import re
from typing import Any, Iterable

import httpx

from ..config import Settings
from ..errors import UpstreamFormatError
from .fetch import FetchPolicy, fetch

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "Sei un archivista cinematografico. Rispondi solo con un elenco di generi "
    "separati da virgola, senza commenti né numerazione."
)

GENRE_REQUEST_TEMPLATE = """
Film: {title}
Trama: {synopsis}
Generi generici già noti: {generic_genres}
Generi già usati nella collezione: {collection_genres}

Suggerisci da 3 a 8 generi o sottogeneri specifici in italiano per questo film.
Riutilizza le etichette della collezione quando sono pertinenti.
"""

CODE_FENCE_RE = re.compile(r"```[a-zA-Z]*")
LIST_MARKER_RE = re.compile(r"^\s*(?:[-*•]+|\d+[.)])\s*")


def parse_label_list(content: str) -> list[str]:
    """Split free model text into raw genre tokens.

    The text is expected to be a comma separated list but bullet lists and
    line separated answers are accepted too.
    """

    text = CODE_FENCE_RE.sub("", content or "")
    tokens: list[str] = []
    for line in text.splitlines():
        line = LIST_MARKER_RE.sub("", line)
        for part in re.split(r"[,;]", line):
            token = part.strip().strip("\"'`“”«»").rstrip(".").strip()
            if token:
                tokens.append(token)
    return tokens


class OpenRouterClient:
    """Client responsible for talking to OpenRouter."""

    def __init__(
        self,
        settings: Settings,
        http_client: httpx.AsyncClient,
        policy: FetchPolicy | None = None,
    ):
        self._settings = settings
        self._client = http_client
        self._policy = policy or settings.generative_fetch_policy

    @property
    def enabled(self) -> bool:
        return bool(self._settings.openrouter_api_key)

    def _build_prompt(
        self,
        title: str,
        synopsis: str | None,
        generic_genres: Iterable[str],
        collection_genres: Iterable[str],
    ) -> str:
        return GENRE_REQUEST_TEMPLATE.format(
            title=title,
            synopsis=synopsis or "non disponibile",
            generic_genres=", ".join(generic_genres) or "nessuno",
            collection_genres=", ".join(collection_genres) or "nessuno",
        )

    async def suggest_genres(
        self,
        title: str,
        synopsis: str | None,
        generic_genres: Iterable[str] = (),
        collection_genres: Iterable[str] = (),
        *,
        model: str | None = None,
    ) -> list[str]:
        """Ask the model for genre labels and return them as raw tokens."""

        api_key = self._settings.openrouter_api_key
        if not api_key:
            raise RuntimeError("OpenRouter API key is required to suggest genres")

        payload = {
            "model": model or self._settings.openrouter_model,
            "temperature": 0.4,
            "max_tokens": 200,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {
                    "role": "user",
                    "content": self._build_prompt(
                        title, synopsis, generic_genres, collection_genres
                    ),
                },
            ],
        }
        headers = {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
            "X-Title": self._settings.app_name,
        }

        response = await fetch(
            self._client,
            "POST",
            "/chat/completions",
            policy=self._policy,
            json=payload,
            headers=headers,
        )
        try:
            data: Any = response.json()
        except ValueError as exc:
            raise UpstreamFormatError("OpenRouter returned non-JSON content") from exc

        choices = data.get("choices") if isinstance(data, dict) else None
        if not choices or not isinstance(choices, list):
            raise UpstreamFormatError("Model returned no choices")
        message = choices[0].get("message") if isinstance(choices[0], dict) else None
        content = message.get("content") if isinstance(message, dict) else None
        if not isinstance(content, str):
            raise UpstreamFormatError("Model response missing content")

        tokens = parse_label_list(content)
        logger.debug("Model suggested %s genre tokens for %s", len(tokens), title)
        return tokens
