"""Text helpers shared by the mapper, the extractor and the view builders."""

from __future__ import annotations

import re
import unicodedata
from typing import Iterable

_ARTICLES = (
    "the",
    "a",
    "an",
    "il",
    "lo",
    "la",
    "gli",
    "le",
    "un",
    "uno",
    "una",
    "el",
    "los",
    "las",
    "les",
    "der",
    "das",
    "ein",
    "eine",
)
_ELIDED_ARTICLES = ("l", "un", "gl")

LEADING_ARTICLE_RE = re.compile(
    r"^\s*(?:(?:{words})\s+|(?:{elided})['’]\s*)[\s\-:;,.]*".format(
        words="|".join(_ARTICLES),
        elided="|".join(_ELIDED_ARTICLES),
    ),
    re.IGNORECASE,
)
PARENTHETICAL_RE = re.compile(r"\s*\([^()]*\)\s*")
WHITESPACE_RE = re.compile(r"\s+")
APOSTROPHE_RE = re.compile(r"[‘’ʼ`]")

# Boilerplate picked up from page chrome rather than from the title itself.
GENRE_NOISE_TOKENS = frozenset(
    {
        "back to top",
        "torna all'inizio",
        "torna in alto",
        "torna su",
        "top",
    }
)


def _strip_article_once(title: str) -> str | None:
    match = LEADING_ARTICLE_RE.match(title)
    if not match:
        return None
    remainder = title[match.end():].strip()
    return remainder or None


def remove_leading_article(title: str) -> str:
    """Return ``title`` without a single leading determiner.

    Only used for sort keys. The original is kept when nothing would remain or
    when the remainder starts with another determiner ("The A-Team"), which
    keeps the operation idempotent.
    """

    if not title:
        return title
    stripped = title.strip()
    remainder = _strip_article_once(stripped)
    if remainder is None:
        return stripped
    if _strip_article_once(remainder) is not None:
        return stripped
    return remainder


def strip_parenthetical(text: str) -> str:
    """Drop ``(...)`` annotations such as ``(screenplay)`` from credit names."""

    if not text:
        return ""
    cleaned = PARENTHETICAL_RE.sub(" ", text)
    return WHITESPACE_RE.sub(" ", cleaned).strip()


def normalize_key(value: str) -> str:
    """Lookup key: trimmed, lowercased, single-spaced, straight apostrophes."""

    value = APOSTROPHE_RE.sub("'", value or "")
    return WHITESPACE_RE.sub(" ", value).strip().lower()


def fold_key(value: str) -> str:
    """Equality key ignoring case and diacritics (``Drammàtico`` == ``drammatico``)."""

    decomposed = unicodedata.normalize("NFKD", normalize_key(value))
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return stripped.casefold()


def collation_key(value: str) -> tuple[str, str, str]:
    """Sort key approximating Italian collation: base letters first, then case."""

    return (fold_key(value), value.casefold(), value)


def dedupe_labels(labels: Iterable[str]) -> list[str]:
    """Drop repeats under ``fold_key`` keeping the first spelling seen."""

    seen: set[str] = set()
    unique: list[str] = []
    for label in labels:
        key = fold_key(label)
        if not key or key in seen:
            continue
        seen.add(key)
        unique.append(label)
    return unique


def sort_labels(labels: Iterable[str]) -> list[str]:
    return sorted(labels, key=collation_key)


def sanitize_genre_list(labels: Iterable[str | None]) -> list[str]:
    """Trim entries, drop blanks and page chrome, and remove duplicates."""

    cleaned: list[str] = []
    for label in labels:
        if not isinstance(label, str):
            continue
        text = WHITESPACE_RE.sub(" ", label).strip()
        if not text:
            continue
        if normalize_key(text) in GENRE_NOISE_TOKENS:
            continue
        cleaned.append(text)
    return dedupe_labels(cleaned)


def parse_genre_text(text: str | None) -> list[str]:
    """Parse a user-edited ``"Fantasy, fantasy, Avventura"`` style list."""

    if not text:
        return []
    return sort_labels(sanitize_genre_list(text.split(",")))


def format_genre_list(labels: Iterable[str]) -> str:
    return ", ".join(sort_labels(dedupe_labels(labels)))
