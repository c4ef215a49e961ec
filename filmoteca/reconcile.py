"""Merge genre and credit facts coming from several providers.

Every merge is a set union keyed by a folded label, so applying the same
facts twice, or applying facts from different sources in any order, always
converges on the same labels and the same per-label source sets. Only the
display spelling depends on which source happened to arrive first.
"""

from __future__ import annotations

from typing import Callable, Iterable

from .genres import GenreMapper
from .models import ScrapedFacts, SourceTag, TaggedLabel
from .utils import fold_key, sanitize_genre_list, sort_labels, strip_parenthetical

KeyFunc = Callable[[str], str]


def credit_key(name: str) -> str:
    return fold_key(strip_parenthetical(name))


class ProvenanceLedger:
    """Ordered set of labels, each tagged with the sources that produced it."""

    def __init__(self, key: KeyFunc = fold_key):
        self._key = key
        self._labels: dict[str, str] = {}
        self._sources: dict[str, set[SourceTag]] = {}

    def __contains__(self, label: object) -> bool:
        return isinstance(label, str) and self._key(label) in self._labels

    def __len__(self) -> int:
        return len(self._labels)

    def add(self, label: str, source: SourceTag) -> bool:
        """Record ``label`` from ``source``; return True when the label is new."""

        key = self._key(label)
        if not key:
            return False
        created = key not in self._labels
        if created:
            self._labels[key] = label.strip()
            self._sources[key] = set()
        self._sources[key].add(source)
        return created

    def merge(self, labels: Iterable[str], source: SourceTag) -> list[str]:
        return [label for label in labels if self.add(label, source)]

    def sources_for(self, label: str) -> set[SourceTag]:
        return set(self._sources.get(self._key(label), ()))

    def labels(self, *, only: Iterable[SourceTag] | None = None) -> list[str]:
        """Labels in first-seen order, optionally limited to some sources."""

        if only is None:
            return list(self._labels.values())
        wanted = set(only)
        return [
            label
            for key, label in self._labels.items()
            if self._sources[key] & wanted
        ]

    def tagged(self, labels: Iterable[str]) -> list[TaggedLabel]:
        return [
            TaggedLabel(
                label=label,
                sources=sorted(self.sources_for(label), key=lambda tag: tag.value),
            )
            for label in labels
        ]


MOVIE_SOURCES = (SourceTag.STRUCTURED, SourceTag.SCRAPED, SourceTag.GENERATIVE)


class GenreReconciler:
    """Genre state for one open movie.

    The collection genres are mapped and copied when the reconciler is
    created and never refreshed afterwards, so later collection edits cannot
    change what this movie shows as inherited from its collection.
    """

    def __init__(self, mapper: GenreMapper, collection_snapshot: Iterable[str] = ()):
        self._mapper = mapper
        self._snapshot: tuple[str, ...] = tuple(mapper.map_many(collection_snapshot))
        self._ledger = ProvenanceLedger()
        self._ledger.merge(self._snapshot, SourceTag.COLLECTION)
        self._applied: set[SourceTag] = set()

    @property
    def snapshot(self) -> tuple[str, ...]:
        return self._snapshot

    @property
    def applied_sources(self) -> frozenset[SourceTag]:
        return frozenset(self._applied)

    def apply_structured(
        self,
        raw_genres: Iterable[str],
        *,
        language: str | None = None,
        countries: Iterable[str] = (),
    ) -> list[str]:
        genres = self._mapper.with_nationality(
            self._mapper.map_many(raw_genres),
            language=language,
            countries=countries,
        )
        return self._merge(SourceTag.STRUCTURED, genres)

    def apply_scraped(self, facts: ScrapedFacts) -> list[str]:
        return self._merge(SourceTag.SCRAPED, self._mapper.map_many(facts.topic_chips))

    def apply_generated(self, tokens: Iterable[str]) -> list[str]:
        return self._merge(SourceTag.GENERATIVE, self._mapper.map_many(tokens))

    def _merge(self, source: SourceTag, genres: list[str]) -> list[str]:
        """Union ``genres`` under ``source``; return the mapped genres merged."""

        self._applied.add(source)
        self._ledger.merge(genres, source)
        self._derive_composites()
        return genres

    def _derive_composites(self) -> None:
        movie_specific = self._ledger.labels(only=MOVIE_SOURCES)
        for rule in self._mapper.satisfied_composites(movie_specific):
            contributors: set[SourceTag] = set()
            for required in rule.requires:
                contributors |= self._ledger.sources_for(required)
            for source in contributors & set(MOVIE_SOURCES):
                self._ledger.add(rule.label, source)

    def movie_genres(self) -> list[str]:
        """Genres contributed by the movie's own sources, sorted."""

        return sort_labels(self._ledger.labels(only=MOVIE_SOURCES))

    def collection_genres(self) -> list[str]:
        return sort_labels(self._snapshot)

    def all_genres(self) -> list[str]:
        return sort_labels(self._ledger.labels())

    def tagged_genres(self) -> list[TaggedLabel]:
        return self._ledger.tagged(self.all_genres())


class CreditReconciler:
    """Directors, writers and producers merged by name across providers."""

    def __init__(self) -> None:
        self.directors = ProvenanceLedger(key=credit_key)
        self.writers = ProvenanceLedger(key=credit_key)
        self.producers = ProvenanceLedger(key=credit_key)

    def apply_structured(
        self,
        *,
        directors: Iterable[str] = (),
        writers: Iterable[str] = (),
        producers: Iterable[str] = (),
    ) -> None:
        self.directors.merge(_clean_names(directors), SourceTag.STRUCTURED)
        self.writers.merge(_clean_names(writers), SourceTag.STRUCTURED)
        self.producers.merge(_clean_names(producers), SourceTag.STRUCTURED)

    def apply_scraped(self, facts: ScrapedFacts) -> None:
        self.directors.merge(_clean_names(facts.directors), SourceTag.SCRAPED)
        self.writers.merge(_clean_names(facts.writers), SourceTag.SCRAPED)


def _clean_names(names: Iterable[str]) -> list[str]:
    return [cleaned for cleaned in (strip_parenthetical(name) for name in names) if cleaned]


class CollectionGenreSet:
    """Live, user-editable genre set attached to a collection."""

    def __init__(self, genres: Iterable[str] = ()):
        self._ledger = ProvenanceLedger()
        self._ledger.merge(sanitize_genre_list(genres), SourceTag.COLLECTION)

    def __contains__(self, genre: object) -> bool:
        return genre in self._ledger

    def __len__(self) -> int:
        return len(self._ledger)

    def add_many(self, genres: Iterable[str]) -> list[str]:
        """Append genres discovered while viewing a member movie."""

        return self._ledger.merge(sanitize_genre_list(genres), SourceTag.COLLECTION)

    def replace(self, genres: Iterable[str]) -> None:
        """Apply a user edit; the only operation that may shrink the set."""

        self._ledger = ProvenanceLedger()
        self._ledger.merge(sanitize_genre_list(genres), SourceTag.COLLECTION)

    def remove(self, genre: str) -> bool:
        key = fold_key(genre)
        remaining = [label for label in self._ledger.labels() if fold_key(label) != key]
        if len(remaining) == len(self._ledger):
            return False
        self.replace(remaining)
        return True

    def snapshot(self) -> tuple[str, ...]:
        return tuple(sort_labels(self._ledger.labels()))
