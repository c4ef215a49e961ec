"""Order-insensitive merging of genres and credits."""

from __future__ import annotations

from itertools import permutations

import pytest

from filmoteca.genre_table import CompositeRule
from filmoteca.genres import GenreMapper, GenreTable
from filmoteca.models import ScrapedFacts, SourceTag
from filmoteca.reconcile import (
    CollectionGenreSet,
    CreditReconciler,
    GenreReconciler,
    ProvenanceLedger,
)

S = SourceTag.STRUCTURED
P = SourceTag.SCRAPED
G = SourceTag.GENERATIVE
C = SourceTag.COLLECTION


@pytest.fixture
def plain_mapper() -> GenreMapper:
    """Identity mapping apart from one suppressed label."""

    return GenreMapper(GenreTable(labels={"Ignore me": ()}))


def _tags(reconciler: GenreReconciler) -> dict[str, set[SourceTag]]:
    return {item.label: set(item.sources) for item in reconciler.tagged_genres()}


def test_ledger_keeps_first_spelling_and_accumulates_sources() -> None:
    ledger = ProvenanceLedger()

    assert ledger.add("Fantasy", S) is True
    assert ledger.add("fantasy", P) is False
    assert ledger.labels() == ["Fantasy"]
    assert ledger.sources_for("FANTASY") == {S, P}
    assert "fantàsy" in ledger


@pytest.mark.parametrize("order", list(permutations(["baseline", "scraped", "generated"])))
def test_final_genres_do_not_depend_on_arrival_order(
    plain_mapper: GenreMapper, order: tuple[str, ...]
) -> None:
    reconciler = GenreReconciler(plain_mapper)
    steps = {
        "baseline": lambda: reconciler.apply_structured(["A", "B"]),
        "scraped": lambda: reconciler.apply_scraped(ScrapedFacts(topic_chips=["B", "C"])),
        "generated": lambda: reconciler.apply_generated(["C", "D"]),
    }
    for name in order:
        steps[name]()

    assert reconciler.all_genres() == ["A", "B", "C", "D"]
    assert _tags(reconciler) == {
        "A": {S},
        "B": {S, P},
        "C": {P, G},
        "D": {G},
    }


def test_merges_are_idempotent(plain_mapper: GenreMapper) -> None:
    reconciler = GenreReconciler(plain_mapper)
    reconciler.apply_structured(["A"])
    reconciler.apply_generated(["B"])
    before = _tags(reconciler)

    reconciler.apply_generated(["B"])
    reconciler.apply_structured(["A"])

    assert _tags(reconciler) == before


def test_snapshot_is_frozen_and_tracked_separately(plain_mapper: GenreMapper) -> None:
    live = CollectionGenreSet(["Fantasy", "Avventura"])
    reconciler = GenreReconciler(plain_mapper, live.snapshot())
    reconciler.apply_structured(["Fantasy", "Magia"])

    live.replace(["Horror"])
    reconciler.apply_generated(["Draghi"])

    assert reconciler.collection_genres() == ["Avventura", "Fantasy"]
    assert reconciler.movie_genres() == ["Draghi", "Fantasy", "Magia"]
    assert reconciler.all_genres() == ["Avventura", "Draghi", "Fantasy", "Magia"]
    assert _tags(reconciler)["Fantasy"] == {C, S}
    assert _tags(reconciler)["Avventura"] == {C}


def test_suppressed_genres_never_reach_the_view(plain_mapper: GenreMapper) -> None:
    reconciler = GenreReconciler(plain_mapper, ["Ignore me", "Kept"])
    reconciler.apply_generated(["ignore ME", "Other"])

    assert reconciler.all_genres() == ["Kept", "Other"]


def test_failed_source_leaves_merged_genres_intact(plain_mapper: GenreMapper) -> None:
    reconciler = GenreReconciler(plain_mapper)
    reconciler.apply_structured(["A"])
    reconciler.apply_generated(["G1"])
    movie_genres = reconciler.movie_genres()

    # A scraped-page failure simply never calls apply_scraped.

    assert reconciler.movie_genres() == movie_genres == ["A", "G1"]
    assert reconciler.applied_sources == {S, G}


def test_composite_genres_span_sources() -> None:
    mapper = GenreMapper(
        GenreTable(
            labels={},
            composites=(CompositeRule(requires=("Commedia", "Romantico"), label="Commedia romantica"),),
        )
    )
    forward = GenreReconciler(mapper)
    forward.apply_structured(["Commedia"])
    forward.apply_generated(["Romantico"])

    backward = GenreReconciler(mapper)
    backward.apply_generated(["Romantico"])
    backward.apply_structured(["Commedia"])

    assert forward.all_genres() == backward.all_genres() == [
        "Commedia",
        "Commedia romantica",
        "Romantico",
    ]
    assert _tags(forward)["Commedia romantica"] == _tags(backward)["Commedia romantica"] == {S, G}


def test_nationality_added_from_origin() -> None:
    mapper = GenreMapper(GenreTable(labels={}, nationalities={"it": "Italiano"}))
    reconciler = GenreReconciler(mapper)

    reconciler.apply_structured(["Commedia"], language="it")

    assert reconciler.all_genres() == ["Commedia", "Italiano"]


def test_credits_merge_by_name_across_sources() -> None:
    credits = CreditReconciler()
    credits.apply_structured(directors=["Lana Wachowski"], writers=["Lilly Wachowski"], producers=["Joel Silver"])
    credits.apply_scraped(
        ScrapedFacts(directors=["lana wachowski", "Lilly Wachowski"], writers=["Lilly Wachowski (screenplay)"])
    )

    assert credits.directors.labels() == ["Lana Wachowski", "Lilly Wachowski"]
    assert credits.directors.sources_for("Lana Wachowski") == {S, P}
    assert credits.writers.labels() == ["Lilly Wachowski"]
    assert credits.writers.sources_for("Lilly Wachowski") == {S, P}
    assert credits.producers.labels() == ["Joel Silver"]


def test_collection_genre_set_grows_and_supports_removal() -> None:
    genres = CollectionGenreSet()

    assert genres.add_many(["Fantasy", "fantasy", "Avventura"]) == ["Fantasy", "Avventura"]
    assert genres.add_many(["FANTASY"]) == []
    assert genres.snapshot() == ("Avventura", "Fantasy")

    assert genres.remove("fantasy") is True
    assert genres.remove("Horror") is False
    assert genres.snapshot() == ("Avventura",)


def test_collection_snapshot_goes_through_the_mapper() -> None:
    reconciler = GenreReconciler(GenreMapper(), ["comedy", "Fantasy", "TV Movie"])
    reconciler.apply_structured(["Comedy"])

    assert reconciler.collection_genres() == ["Commedia", "Fantasy"]
    assert reconciler.all_genres() == ["Commedia", "Fantasy"]
    assert _tags(reconciler)["Commedia"] == {C, S}
