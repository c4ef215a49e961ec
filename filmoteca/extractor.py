"""Pull topic chips and principal credits out of an IMDb title page."""

from __future__ import annotations

from typing import Iterable, Literal

from bs4 import BeautifulSoup, Tag

from .models import ScrapedFacts
from .utils import dedupe_labels, sanitize_genre_list, strip_parenthetical

RoleKind = Literal["director", "writer", "other"]

CHIP_SELECTOR = ".ipc-chip__text"
PRINCIPAL_CREDIT_SELECTOR = '[data-testid="title-pc-principal-credit"]'
ROLE_LABEL_CLASS = "ipc-metadata-list-item__label"

DEFAULT_DIRECTOR_LABELS: tuple[str, ...] = ("director", "directors", "regia", "regista")
DEFAULT_WRITER_LABELS: tuple[str, ...] = (
    "writer",
    "writers",
    "sceneggiatura",
    "sceneggiatori",
    "autore",
)


def classify_role(
    label: str,
    *,
    director_labels: Iterable[str] = DEFAULT_DIRECTOR_LABELS,
    writer_labels: Iterable[str] = DEFAULT_WRITER_LABELS,
) -> RoleKind:
    """Bucket a credit block heading by substring match, directors first."""

    text = (label or "").casefold()
    if not text:
        return "other"
    if any(candidate.casefold() in text for candidate in director_labels if candidate):
        return "director"
    if any(candidate.casefold() in text for candidate in writer_labels if candidate):
        return "writer"
    return "other"


def _block_label(block: Tag) -> str:
    return " ".join(
        element.get_text(" ", strip=True) for element in block.select(f".{ROLE_LABEL_CLASS}")
    )


def _block_names(block: Tag) -> list[str]:
    names: list[str] = []
    for anchor in block.find_all("a"):
        if ROLE_LABEL_CLASS in (anchor.get("class") or []):
            continue
        name = strip_parenthetical(anchor.get_text(" ", strip=True))
        if name:
            names.append(name)
    return names


def extract_facts(
    html: str | None,
    *,
    imdb_id: str | None = None,
    director_labels: Iterable[str] = DEFAULT_DIRECTOR_LABELS,
    writer_labels: Iterable[str] = DEFAULT_WRITER_LABELS,
) -> ScrapedFacts:
    """Return chips, directors and writers found in ``html``.

    Markup that does not match the expected structure simply produces empty
    lists.
    """

    if not html:
        return ScrapedFacts(imdb_id=imdb_id)

    soup = BeautifulSoup(html, "html.parser")
    chips = sanitize_genre_list(
        element.get_text(" ", strip=True) for element in soup.select(CHIP_SELECTOR)
    )

    director_labels = tuple(director_labels)
    writer_labels = tuple(writer_labels)
    directors: list[str] = []
    writers: list[str] = []
    for block in soup.select(PRINCIPAL_CREDIT_SELECTOR):
        role = classify_role(
            _block_label(block),
            director_labels=director_labels,
            writer_labels=writer_labels,
        )
        if role == "director":
            directors.extend(_block_names(block))
        elif role == "writer":
            writers.extend(_block_names(block))

    return ScrapedFacts(
        imdb_id=imdb_id,
        topic_chips=chips,
        directors=dedupe_labels(directors),
        writers=dedupe_labels(writers),
    )
