"""Built-in genre translation table.

Keys are raw labels as they arrive from TMDB (either locale), IMDb interest
chips or the generative service. Values are internal genre labels; an empty
tuple suppresses the raw label entirely.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class CompositeRule:
    """Adds ``label`` when every genre in ``requires`` is present."""

    requires: tuple[str, ...]
    label: str


GENRE_LABELS: dict[str, tuple[str, ...]] = {
    # TMDB, English
    "action": ("Azione",),
    "adventure": ("Avventura",),
    "animation": ("Animazione",),
    "comedy": ("Commedia",),
    "crime": ("Poliziesco",),
    "documentary": ("Documentario",),
    "drama": ("Drammatico",),
    "family": ("Per famiglie",),
    "fantasy": ("Fantasy",),
    "history": ("Storico",),
    "horror": ("Horror",),
    "music": ("Musicale",),
    "mystery": ("Mistero",),
    "romance": ("Romantico",),
    "science fiction": ("Fantascienza",),
    "thriller": ("Thriller",),
    "war": ("Guerra",),
    "western": ("Western",),
    "tv movie": (),
    "action & adventure": ("Azione", "Avventura"),
    "sci-fi & fantasy": ("Fantascienza", "Fantasy"),
    "war & politics": ("Guerra", "Politico"),
    # TMDB, Italian
    "azione": ("Azione",),
    "avventura": ("Avventura",),
    "animazione": ("Animazione",),
    "commedia": ("Commedia",),
    "documentario": ("Documentario",),
    "dramma": ("Drammatico",),
    "famiglia": ("Per famiglie",),
    "storia": ("Storico",),
    "musica": ("Musicale",),
    "mistero": ("Mistero",),
    "fantascienza": ("Fantascienza",),
    "guerra": ("Guerra",),
    "televisione film": (),
    "film tv": (),
    # IMDb interests
    "sci-fi": ("Fantascienza",),
    "biography": ("Biografico",),
    "musical": ("Musicale",),
    "sport": ("Sportivo",),
    "film-noir": ("Noir",),
    "superhero": ("Supereroi",),
    "epic": ("Epico",),
    "coming-of-age": ("Formazione",),
    "romantic comedy": ("Commedia", "Romantico"),
    "dark comedy": ("Commedia nera",),
    "teen comedy": ("Commedia", "Adolescenziale"),
    "period drama": ("Drammatico", "Storico"),
    "psychological thriller": ("Thriller", "Psicologico"),
    "space sci-fi": ("Fantascienza", "Spaziale"),
    "slasher horror": ("Horror", "Slasher"),
    "holiday": ("Natalizio",),
    "computer animation": ("Animazione",),
    "hand-drawn animation": ("Animazione",),
    "adult animation": ("Animazione",),
    "feel-good romance": ("Romantico",),
    "quest": ("Avventura",),
    "sword & sorcery": ("Fantasy",),
    "short": (),
    "news": (),
    "reality-tv": (),
    "talk-show": (),
}

COMPOSITE_RULES: tuple[CompositeRule, ...] = (
    CompositeRule(requires=("Commedia", "Romantico"), label="Commedia romantica"),
)

# ISO 639-1 language or ISO 3166-1 country code, lowercased.
NATIONALITY_TAGS: dict[str, str] = {
    "it": "Italiano",
}
