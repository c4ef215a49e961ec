from __future__ import annotations

import json

import httpx
import pytest

from filmoteca.config import Settings
from filmoteca.errors import UpstreamFormatError
from filmoteca.services.fetch import FetchPolicy
from filmoteca.services.openrouter import OpenRouterClient, parse_label_list

NO_RETRY = FetchPolicy(timeout=5.0, max_retries=0, backoff_base=0.0)


@pytest.mark.parametrize(
    ("content", "expected"),
    [
        ("Noir, Poliziesco; Giallo.", ["Noir", "Poliziesco", "Giallo"]),
        ("- Noir\n- \"Poliziesco\"\n1. Giallo", ["Noir", "Poliziesco", "Giallo"]),
        ("```\nNoir, Spionaggio\n```", ["Noir", "Spionaggio"]),
        ("", []),
    ],
)
def test_parse_label_list(content: str, expected: list[str]) -> None:
    assert parse_label_list(content) == expected


def _client(handler, **overrides) -> tuple[OpenRouterClient, httpx.AsyncClient]:
    settings = Settings(_env_file=None, **overrides)
    http_client = httpx.AsyncClient(
        transport=httpx.MockTransport(handler), base_url="https://openrouter.ai/api/v1"
    )
    return OpenRouterClient(settings, http_client, policy=NO_RETRY), http_client


@pytest.mark.anyio("asyncio")
async def test_suggest_genres_sends_context_and_parses_answer() -> None:
    seen: list[dict] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(json.loads(request.content))
        assert request.headers["Authorization"] == "Bearer secret"
        return httpx.Response(
            200,
            json={"choices": [{"message": {"content": "Noir, Spionaggio"}}]},
        )

    client, http_client = _client(handler, OPENROUTER_API_KEY="secret")
    async with http_client:
        tokens = await client.suggest_genres(
            "Il grande sonno",
            "Un investigatore privato...",
            generic_genres=["Giallo"],
            collection_genres=["Noir"],
        )

    assert tokens == ["Noir", "Spionaggio"]
    prompt = seen[0]["messages"][1]["content"]
    assert "Il grande sonno" in prompt
    assert "Generi generici già noti: Giallo" in prompt
    assert "Generi già usati nella collezione: Noir" in prompt


@pytest.mark.anyio("asyncio")
async def test_suggest_genres_requires_api_key() -> None:
    def handler(request: httpx.Request) -> httpx.Response:  # pragma: no cover - not reached
        raise AssertionError("Network access should not be triggered without a key")

    client, http_client = _client(handler)
    assert client.enabled is False
    async with http_client:
        with pytest.raises(RuntimeError):
            await client.suggest_genres("Titolo", None)


@pytest.mark.anyio("asyncio")
async def test_suggest_genres_rejects_empty_choices() -> None:
    client, http_client = _client(
        lambda request: httpx.Response(200, json={"choices": []}),
        OPENROUTER_API_KEY="secret",
    )
    async with http_client:
        with pytest.raises(UpstreamFormatError):
            await client.suggest_genres("Titolo", None)


@pytest.mark.anyio("asyncio")
@pytest.mark.parametrize(
    "body",
    [
        {"choices": [{"message": None}]},
        {"choices": [{"message": {"content": None}}]},
        {"choices": "none"},
    ],
)
async def test_suggest_genres_rejects_malformed_messages(body: dict) -> None:
    client, http_client = _client(
        lambda request: httpx.Response(200, json=body),
        OPENROUTER_API_KEY="secret",
    )
    async with http_client:
        with pytest.raises(UpstreamFormatError):
            await client.suggest_genres("Titolo", None)


def test_model_calls_use_the_generative_timeout() -> None:
    settings = Settings(_env_file=None, GENERATIVE_TIMEOUT=45)
    client = OpenRouterClient(settings, httpx.AsyncClient())

    assert client._policy.timeout == 45
    assert client._policy.max_retries == settings.fetch_max_retries
