from __future__ import annotations

import httpx
import pytest

from filmoteca.config import Settings
from filmoteca.services.fetch import FetchPolicy
from filmoteca.services.imdb import IMDbClient

PAGE = """
<html><body>
  <div class="ipc-chip-list">
    <a class="ipc-chip"><span class="ipc-chip__text">Noir</span></a>
    <a class="ipc-chip"><span class="ipc-chip__text">Poliziesco</span></a>
  </div>
  <ul>
    <li data-testid="title-pc-principal-credit">
      <span class="ipc-metadata-list-item__label">Regia</span>
      <a href="/name/nm1/">Mario Bava</a>
    </li>
  </ul>
</body></html>
"""


@pytest.mark.anyio("asyncio")
async def test_fetch_facts_downloads_and_extracts_title_page() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, text=PAGE)

    settings = Settings(_env_file=None, SCRAPER_USER_AGENT="test-agent")
    async with httpx.AsyncClient(
        transport=httpx.MockTransport(handler), base_url="https://www.imdb.com"
    ) as http_client:
        client = IMDbClient(settings, http_client, policy=FetchPolicy(max_retries=0))
        facts = await client.fetch_facts("tt0056869")

    assert facts.imdb_id == "tt0056869"
    assert facts.topic_chips == ["Noir", "Poliziesco"]
    assert facts.directors == ["Mario Bava"]
    assert seen[0].url.path == "/title/tt0056869/"
    assert seen[0].headers["User-Agent"] == "test-agent"


@pytest.mark.parametrize("value", ["", "0056869", "tt12", "tt0056869/extra"])
def test_invalid_identifiers_are_rejected(value: str) -> None:
    with pytest.raises(ValueError, match="Invalid IMDb identifier"):
        IMDbClient.validate_id(value)
