"""HTML fact extraction from IMDb title pages."""

from __future__ import annotations

import pytest

from filmoteca.extractor import classify_role, extract_facts

TITLE_PAGE = """
<html><body>
  <div class="ipc-chip-list">
    <a class="ipc-chip"><span class="ipc-chip__text">Space Sci-Fi</span></a>
    <a class="ipc-chip"><span class="ipc-chip__text"> Action </span></a>
    <a class="ipc-chip"><span class="ipc-chip__text">Sci-Fi</span></a>
    <a class="ipc-chip"><span class="ipc-chip__text"></span></a>
    <a class="ipc-chip"><span class="ipc-chip__text">Back to top</span></a>
  </div>
  <ul>
    <li data-testid="title-pc-principal-credit">
      <span class="ipc-metadata-list-item__label">Regia</span>
      <div><a href="/name/nm0905154/">Lana Wachowski</a><a href="/name/nm0905152/">Lilly Wachowski</a></div>
    </li>
    <li data-testid="title-pc-principal-credit">
      <a class="ipc-metadata-list-item__label" href="/fullcredits">Writers</a>
      <div>
        <a href="/name/nm0905154/">Lana Wachowski</a>
        <a href="/name/nm0905152/">Lilly Wachowski (screenplay)</a>
      </div>
    </li>
    <li data-testid="title-pc-principal-credit">
      <span class="ipc-metadata-list-item__label">Star</span>
      <div><a href="/name/nm0000206/">Keanu Reeves</a></div>
    </li>
  </ul>
</body></html>
"""


def test_extract_facts_reads_chips_and_credits() -> None:
    facts = extract_facts(TITLE_PAGE, imdb_id="tt0133093")

    assert facts.imdb_id == "tt0133093"
    assert facts.topic_chips == ["Space Sci-Fi", "Action", "Sci-Fi"]
    assert facts.directors == ["Lana Wachowski", "Lilly Wachowski"]
    assert facts.writers == ["Lana Wachowski", "Lilly Wachowski"]


def test_extract_facts_serialises_with_wire_names() -> None:
    payload = extract_facts(TITLE_PAGE, imdb_id="tt0133093").model_dump(by_alias=True)

    assert payload["imdbId"] == "tt0133093"
    assert payload["chips"][0] == "Space Sci-Fi"


@pytest.mark.parametrize(
    "html",
    [
        "",
        None,
        "<html><body><p>Page redesigned</p></body></html>",
        "<div data-testid='title-pc-principal-credit'><a>Nobody</a>",
        "<<<not html at all",
    ],
)
def test_extract_facts_degrades_to_empty(html: str | None) -> None:
    facts = extract_facts(html)

    assert facts.is_empty()


@pytest.mark.parametrize(
    ("label", "expected"),
    [
        ("Director", "director"),
        ("Directors", "director"),
        ("REGIA", "director"),
        ("Sceneggiatura", "writer"),
        ("Writers", "writer"),
        ("Stars", "other"),
        ("", "other"),
    ],
)
def test_classify_role(label: str, expected: str) -> None:
    assert classify_role(label) == expected


def test_classify_role_uses_configured_labels() -> None:
    assert classify_role("Réalisation", director_labels=("réalisation",)) == "director"
    assert classify_role("Scénario", writer_labels=("scénario",)) == "writer"
