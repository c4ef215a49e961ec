"""Pydantic models describing the presentable movie and collection records."""

from __future__ import annotations

from datetime import date
from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from .utils import format_genre_list


class SourceTag(str, Enum):
    """Upstream that contributed a genre or a credit."""

    STRUCTURED = "structured"
    SCRAPED = "scraped"
    GENERATIVE = "generative"
    COLLECTION = "collection"


SourceState = Literal["pending", "ok", "failed", "skipped"]


class SourceStatus(BaseModel):
    """Inline status shown next to a source that resolves in the background."""

    state: SourceState = "pending"
    message: str | None = None


class TaggedLabel(BaseModel):
    """A genre or a person name together with the sources that produced it."""

    label: str
    sources: list[SourceTag] = Field(default_factory=list)

    def has_source(self, source: SourceTag) -> bool:
        return source in self.sources


class ScrapedFacts(BaseModel):
    """Facts extracted from a third-party title page."""

    model_config = ConfigDict(populate_by_name=True)

    imdb_id: str | None = Field(default=None, alias="imdbId")
    topic_chips: list[str] = Field(default_factory=list, alias="chips")
    directors: list[str] = Field(default_factory=list)
    writers: list[str] = Field(default_factory=list)

    def is_empty(self) -> bool:
        return not (self.topic_chips or self.directors or self.writers)


class TitleVariants(BaseModel):
    """Display title, the article-less sort key and the original-language title."""

    display: str
    sort_key: str
    original: str | None = None
    secondary: str | None = None


class Credits(BaseModel):
    directors: list[TaggedLabel] = Field(default_factory=list)
    writers: list[TaggedLabel] = Field(default_factory=list)
    producers: list[TaggedLabel] = Field(default_factory=list)


class MovieView(BaseModel):
    """Display-ready record for a single movie."""

    movie_id: int
    imdb_id: str | None = None
    collection_id: int | None = None
    collection_name: str | None = None
    title: TitleVariants
    release_date: date | None = None
    content_rating: str | None = None
    studio: str | None = None
    tagline: str | None = None
    synopsis: str | None = None
    poster: str | None = None
    countries: list[str] = Field(default_factory=list)
    credits: Credits = Field(default_factory=Credits)
    genres: list[TaggedLabel] = Field(default_factory=list)
    movie_genres: list[str] = Field(default_factory=list)
    collection_genres: list[str] = Field(default_factory=list)
    statuses: dict[str, SourceStatus] = Field(default_factory=dict)

    @property
    def year(self) -> int | None:
        return self.release_date.year if self.release_date else None

    @property
    def genre_names(self) -> list[str]:
        return [genre.label for genre in self.genres]

    def to_clipboard_text(self) -> str:
        """Plain-text summary copied by the UI."""

        heading = self.title.display
        if self.year:
            heading = f"{heading} ({self.year})"
        lines = [heading]
        if self.genres:
            lines.append(f"Genere: {format_genre_list(self.genre_names)}")
        if self.credits.directors:
            lines.append(
                "Regia: " + ", ".join(person.label for person in self.credits.directors)
            )
        if self.credits.writers:
            lines.append(
                "Sceneggiatura: "
                + ", ".join(person.label for person in self.credits.writers)
            )
        if self.countries:
            lines.append("Paese: " + ", ".join(self.countries))
        return "\n".join(lines)


class CollectionMember(BaseModel):
    movie_id: int
    title: str
    sort_title: str
    release_date: date | None = None
    poster: str | None = None

    @property
    def year(self) -> int | None:
        return self.release_date.year if self.release_date else None


class CollectionView(BaseModel):
    """Display-ready record for a movie collection."""

    collection_id: int
    title: TitleVariants
    synopsis: str | None = None
    poster: str | None = None
    members: list[CollectionMember] = Field(default_factory=list)
    genres: list[str] = Field(default_factory=list)

    @property
    def genre_text(self) -> str:
        return format_genre_list(self.genres)
