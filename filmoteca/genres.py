"""Translate raw genre labels into internal genres."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable, Mapping

from .genre_table import COMPOSITE_RULES, GENRE_LABELS, NATIONALITY_TAGS, CompositeRule
from .utils import fold_key, normalize_key, sanitize_genre_list

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GenreTable:
    """One-to-many lookup data plus the derived-genre rules."""

    labels: Mapping[str, tuple[str, ...]]
    composites: tuple[CompositeRule, ...] = ()
    nationalities: Mapping[str, str] = field(default_factory=dict)

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "GenreTable":
        raw_labels = payload.get("labels")
        if not isinstance(raw_labels, Mapping):
            raise ValueError("Genre table requires a 'labels' object")

        labels: dict[str, tuple[str, ...]] = {}
        for raw, targets in raw_labels.items():
            if isinstance(targets, str):
                targets = [targets]
            if not isinstance(targets, list):
                raise ValueError(f"Genre table entry {raw!r} must be a list")
            labels[str(raw)] = tuple(str(target) for target in targets)

        composites: list[CompositeRule] = []
        for entry in payload.get("composites") or []:
            if not isinstance(entry, Mapping):
                continue
            requires = entry.get("requires") or []
            label = entry.get("label")
            if not label or not isinstance(requires, list) or len(requires) < 2:
                raise ValueError("Composite rules need a label and two or more genres")
            composites.append(
                CompositeRule(requires=tuple(str(item) for item in requires), label=str(label))
            )

        nationalities = {
            str(code).lower(): str(tag)
            for code, tag in (payload.get("nationalities") or {}).items()
            if tag
        }
        return cls(
            labels=labels,
            composites=tuple(composites),
            nationalities=nationalities,
        )


DEFAULT_GENRE_TABLE = GenreTable(
    labels=GENRE_LABELS,
    composites=COMPOSITE_RULES,
    nationalities=NATIONALITY_TAGS,
)


def load_genre_table(path: str | Path | None = None) -> GenreTable:
    """Return the JSON table at ``path`` or the built-in one."""

    if path is None:
        return DEFAULT_GENRE_TABLE
    payload = json.loads(Path(path).read_text(encoding="utf-8"))
    if not isinstance(payload, dict):
        raise ValueError("Genre table file must contain a JSON object")
    table = GenreTable.from_payload(payload)
    logger.info("Loaded %s genre mappings from %s", len(table.labels), path)
    return table


class GenreMapper:
    """Maps raw labels to internal genres using a normalised index."""

    def __init__(self, table: GenreTable = DEFAULT_GENRE_TABLE):
        self._table = table
        self._index: dict[str, tuple[str, ...]] = {}
        for raw, targets in table.labels.items():
            key = normalize_key(raw)
            if key:
                self._index[key] = tuple(targets)
        self._suppressed = frozenset(
            fold_key(raw) for raw, targets in self._index.items() if not targets
        )

    def map_one(self, label: str) -> list[str]:
        """Return the internal genres for ``label``.

        Unknown labels pass through unchanged; labels mapped to an empty list
        yield nothing.
        """

        text = (label or "").strip()
        if not text:
            return []
        targets = self._index.get(normalize_key(text))
        if targets is None:
            return [text]
        return list(targets)

    def map_many(self, labels: Iterable[str]) -> list[str]:
        mapped: list[str] = []
        for label in labels:
            mapped.extend(self.map_one(label))
        cleaned = [
            genre
            for genre in sanitize_genre_list(mapped)
            if fold_key(genre) not in self._suppressed
        ]
        return self.with_composites(cleaned)

    def is_suppressed(self, label: str) -> bool:
        return fold_key(label) in self._suppressed

    def with_composites(self, genres: Iterable[str]) -> list[str]:
        """Append composite genres whose constituents are all present."""

        result = list(genres)
        present = {fold_key(genre) for genre in result}
        for rule in self._table.composites:
            if fold_key(rule.label) in present:
                continue
            if all(fold_key(required) in present for required in rule.requires):
                result.append(rule.label)
                present.add(fold_key(rule.label))
        return result

    def satisfied_composites(self, present: Iterable[str]) -> list[CompositeRule]:
        """Rules satisfied by ``present``, regardless of whether the label exists."""

        keys = {fold_key(genre) for genre in present}
        return [
            rule
            for rule in self._table.composites
            if all(fold_key(required) in keys for required in rule.requires)
        ]

    def nationality_tag(
        self,
        *,
        language: str | None = None,
        countries: Iterable[str] = (),
    ) -> str | None:
        """Return the nationality genre signalled by language or country codes."""

        codes = [language or ""]
        codes.extend(countries)
        for code in codes:
            tag = self._table.nationalities.get(str(code).strip().lower())
            if tag:
                return tag
        return None

    def with_nationality(
        self,
        genres: Iterable[str],
        *,
        language: str | None = None,
        countries: Iterable[str] = (),
    ) -> list[str]:
        result = list(genres)
        tag = self.nationality_tag(language=language, countries=countries)
        if tag and fold_key(tag) not in {fold_key(genre) for genre in result}:
            result.append(tag)
        return result
