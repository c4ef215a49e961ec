"""Assemble provider payloads and reconciled state into display records."""

from __future__ import annotations

import re
from datetime import date
from typing import Any, Iterable, Mapping

from .models import (
    CollectionMember,
    CollectionView,
    Credits,
    MovieView,
    SourceStatus,
    TitleVariants,
)
from .reconcile import CreditReconciler, GenreReconciler
from .utils import remove_leading_article, sort_labels

WRITING_JOBS = frozenset({"screenplay", "writer", "story", "novel", "author", "characters"})
PRODUCER_JOBS = frozenset({"producer", "executive producer"})
THEATRICAL_RELEASE = 3
ADULT_RATING = "R (Adulti)"
UNKNOWN_RATING = "Non disponibile"
SAGA_SUFFIX_RE = re.compile(r"collection|collezione|raccolta", re.IGNORECASE)
TRAILING_SEPARATOR_RE = re.compile(r"[\s\-]+$")


def parse_release_date(value: Any) -> date | None:
    if not isinstance(value, str) or not value.strip():
        return None
    try:
        return date.fromisoformat(value.strip()[:10])
    except ValueError:
        return None


def build_image_url(path: Any, base_url: str) -> str | None:
    if not isinstance(path, str) or not path:
        return None
    if path.startswith("http"):
        return path
    return f"{base_url.rstrip('/')}/{path.lstrip('/')}"


def _text(payload: Mapping[str, Any] | None, key: str) -> str:
    if not payload:
        return ""
    value = payload.get(key)
    return value.strip() if isinstance(value, str) else ""


def _entries(
    primary: Mapping[str, Any],
    secondary: Mapping[str, Any] | None,
    key: str,
) -> list[Any]:
    """Non-empty list under ``key`` from the primary locale, else the secondary."""

    for payload in (primary, secondary or {}):
        value = payload.get(key)
        if isinstance(value, list) and value:
            return value
    return []


def localized_text(
    primary: Mapping[str, Any],
    secondary: Mapping[str, Any] | None,
    key: str,
) -> str | None:
    """Primary-locale text, falling back to the secondary locale when empty."""

    return _text(primary, key) or _text(secondary, key) or None


def fallback_text(
    primary: Mapping[str, Any],
    secondary: Mapping[str, Any] | None,
    key: str,
) -> str | None:
    """The secondary-locale text used when the primary locale has none."""

    if _text(primary, key):
        return None
    return _text(secondary, key) or None


def build_title(
    primary: Mapping[str, Any],
    secondary: Mapping[str, Any] | None = None,
    *,
    title_key: str = "title",
    original_key: str = "original_title",
) -> TitleVariants:
    display = _text(primary, title_key) or _text(secondary, title_key)
    if not display:
        display = _text(primary, original_key) or _text(primary, "name") or "Senza titolo"
    return TitleVariants(
        display=display,
        sort_key=remove_leading_article(display),
        original=_text(primary, original_key) or _text(secondary, original_key) or None,
        secondary=_text(secondary, title_key) or None,
    )


def saga_name(collection_name: str | None) -> str:
    """``"Harry Potter Collection"`` -> ``"Harry Potter"``."""

    name = SAGA_SUFFIX_RE.sub("", collection_name or "").strip()
    return TRAILING_SEPARATOR_RE.sub("", name).strip()


def collection_member_title(
    title: TitleVariants,
    movie_id: int,
    collection_name: str | None,
    parts: Iterable[Any],
) -> TitleVariants:
    """Prefix the saga name and sort by position inside the collection.

    The position is the 1-based index of the movie among the members ordered
    by release date; movies missing from ``parts`` count as the first one.
    """

    saga = saga_name(collection_name)
    if not saga:
        return title

    display = title.display
    if not display.startswith(saga.split(" ")[0]):
        display = f"{saga} - {display}"

    members = build_collection_members(parts)
    index = next(
        (position for position, member in enumerate(members, 1) if member.movie_id == movie_id),
        1,
    )
    ordering = f"{saga} {index}"
    return title.model_copy(
        update={
            "display": display,
            "sort_key": remove_leading_article(ordering) or ordering,
        }
    )


def structured_credits(payload: Mapping[str, Any]) -> dict[str, list[str]]:
    """Split TMDB crew entries into directors, writers and producers."""

    credits = payload.get("credits") or {}
    crew = credits.get("crew") if isinstance(credits, Mapping) else None
    buckets: dict[str, list[str]] = {"directors": [], "writers": [], "producers": []}
    if not isinstance(crew, list):
        return buckets
    for member in crew:
        if not isinstance(member, Mapping):
            continue
        name = member.get("name")
        if not isinstance(name, str) or not name.strip():
            continue
        job = str(member.get("job") or "").strip().lower()
        department = str(member.get("department") or "").strip().lower()
        if job == "director":
            buckets["directors"].append(name)
        elif department == "writing" or job in WRITING_JOBS:
            buckets["writers"].append(name)
        elif job in PRODUCER_JOBS:
            buckets["producers"].append(name)
    return buckets


def structured_genres(
    primary: Mapping[str, Any], secondary: Mapping[str, Any] | None = None
) -> list[str]:
    return [
        entry["name"]
        for entry in _entries(primary, secondary, "genres")
        if isinstance(entry, Mapping) and isinstance(entry.get("name"), str)
    ]


def origin_countries(
    primary: Mapping[str, Any], secondary: Mapping[str, Any] | None = None
) -> list[str]:
    codes: list[str] = []
    for entry in _entries(primary, secondary, "production_countries"):
        if isinstance(entry, Mapping) and entry.get("iso_3166_1"):
            codes.append(str(entry["iso_3166_1"]))
    for code in _entries(primary, secondary, "origin_country"):
        if isinstance(code, str) and code not in codes:
            codes.append(code)
    return codes


def country_names(
    primary: Mapping[str, Any], secondary: Mapping[str, Any] | None = None
) -> list[str]:
    names: list[str] = []
    for entry in _entries(primary, secondary, "production_countries"):
        if not isinstance(entry, Mapping):
            continue
        name = entry.get("name") or entry.get("iso_3166_1")
        if isinstance(name, str) and name.strip() and name not in names:
            names.append(name.strip())
    return names


def _releases_by_country(payload: Mapping[str, Any]) -> dict[str, list[Mapping[str, Any]]]:
    release_dates = payload.get("release_dates") or {}
    results = release_dates.get("results") if isinstance(release_dates, Mapping) else None
    by_country: dict[str, list[Mapping[str, Any]]] = {}
    if not isinstance(results, list):
        return by_country
    for entry in results:
        if isinstance(entry, Mapping) and entry.get("iso_3166_1"):
            by_country[str(entry["iso_3166_1"]).upper()] = [
                release
                for release in entry.get("release_dates") or []
                if isinstance(release, Mapping)
            ]
    return by_country


def release_date(
    primary: Mapping[str, Any],
    secondary: Mapping[str, Any] | None = None,
    *,
    country: str = "IT",
) -> date | None:
    """Official release date, else a per-country release.

    The fallback prefers the theatrical release in ``country`` (or its first
    release), then the first theatrical release found in any country.
    """

    for payload in (primary, secondary or {}):
        parsed = parse_release_date(payload.get("release_date"))
        if parsed:
            return parsed

    by_country = _releases_by_country(primary)
    local = by_country.get(country.upper(), [])
    if local:
        chosen = next(
            (release for release in local if release.get("type") == THEATRICAL_RELEASE),
            local[0],
        )
        parsed = parse_release_date(chosen.get("release_date"))
        if parsed:
            return parsed
    for releases in by_country.values():
        for release in releases:
            if release.get("type") == THEATRICAL_RELEASE:
                parsed = parse_release_date(release.get("release_date"))
                if parsed:
                    return parsed
    return None


def content_rating(payload: Mapping[str, Any], countries: Iterable[str]) -> str | None:
    """First non-empty certification for the preferred countries, in order."""

    by_country = _releases_by_country(payload)
    for country in countries:
        for release in by_country.get(country.upper(), []):
            certification = str(release.get("certification") or "").strip()
            if certification:
                return certification
    return None


def rating_label(payload: Mapping[str, Any], countries: Iterable[str]) -> str:
    certification = content_rating(payload, countries)
    if certification:
        return certification
    return ADULT_RATING if payload.get("adult") else UNKNOWN_RATING


def studio_name(
    primary: Mapping[str, Any], secondary: Mapping[str, Any] | None = None
) -> str | None:
    for payload in (primary, secondary or {}):
        for company in payload.get("production_companies") or []:
            if isinstance(company, Mapping) and isinstance(company.get("name"), str):
                name = company["name"].strip()
                if name:
                    return name
    return None


def imdb_identifier(payload: Mapping[str, Any]) -> str | None:
    external = payload.get("external_ids") or {}
    value = payload.get("imdb_id") or (
        external.get("imdb_id") if isinstance(external, Mapping) else None
    )
    return str(value) if value else None


def build_movie_view(
    primary: Mapping[str, Any],
    secondary: Mapping[str, Any] | None,
    *,
    genres: GenreReconciler,
    credits: CreditReconciler,
    statuses: Mapping[str, SourceStatus] | None = None,
    rating_countries: Iterable[str] = ("IT", "US"),
    image_base_url: str = "",
    title: TitleVariants | None = None,
    translated: Mapping[str, str] | None = None,
) -> MovieView:
    rating_countries = tuple(rating_countries)
    translated = translated or {}
    collection = primary.get("belongs_to_collection") or {}
    if not isinstance(collection, Mapping):
        collection = {}
    return MovieView(
        movie_id=int(primary["id"]),
        imdb_id=imdb_identifier(primary) or imdb_identifier(secondary or {}),
        collection_id=collection.get("id"),
        collection_name=collection.get("name"),
        title=title or build_title(primary, secondary),
        release_date=release_date(
            primary, secondary, country=rating_countries[0] if rating_countries else "IT"
        ),
        content_rating=rating_label(primary, rating_countries),
        studio=studio_name(primary, secondary),
        tagline=translated.get("tagline") or localized_text(primary, secondary, "tagline"),
        synopsis=translated.get("overview") or localized_text(primary, secondary, "overview"),
        poster=build_image_url(
            primary.get("poster_path") or (secondary or {}).get("poster_path"),
            image_base_url,
        ),
        countries=country_names(primary, secondary),
        credits=Credits(
            directors=credits.directors.tagged(credits.directors.labels()),
            writers=credits.writers.tagged(credits.writers.labels()),
            producers=credits.producers.tagged(credits.producers.labels()),
        ),
        genres=genres.tagged_genres(),
        movie_genres=genres.movie_genres(),
        collection_genres=genres.collection_genres(),
        statuses=dict(statuses or {}),
    )


def member_sort_key(member: CollectionMember) -> tuple[int, date, tuple[str, str]]:
    """Dated members by release date, undated last, then by sort title."""

    if member.release_date is None:
        return (1, date.max, (member.sort_title.casefold(), member.title))
    return (0, member.release_date, (member.sort_title.casefold(), member.title))


def build_collection_members(
    parts: Iterable[Any], *, image_base_url: str = ""
) -> list[CollectionMember]:
    members: list[CollectionMember] = []
    for part in parts:
        if not isinstance(part, Mapping) or part.get("id") is None:
            continue
        title = build_title(part)
        members.append(
            CollectionMember(
                movie_id=int(part["id"]),
                title=title.display,
                sort_title=title.sort_key,
                release_date=parse_release_date(part.get("release_date")),
                poster=build_image_url(part.get("poster_path"), image_base_url),
            )
        )
    return sorted(members, key=member_sort_key)


def build_collection_view(
    primary: Mapping[str, Any],
    secondary: Mapping[str, Any] | None,
    *,
    genres: Iterable[str],
    image_base_url: str = "",
    translated: Mapping[str, str] | None = None,
) -> CollectionView:
    title = build_title(primary, secondary, title_key="name", original_key="original_name")
    parts = primary.get("parts") or (secondary or {}).get("parts") or []
    return CollectionView(
        collection_id=int(primary["id"]),
        title=title,
        synopsis=(translated or {}).get("overview")
        or localized_text(primary, secondary, "overview"),
        poster=build_image_url(
            primary.get("poster_path") or (secondary or {}).get("poster_path"),
            image_base_url,
        ),
        members=build_collection_members(parts, image_base_url=image_base_url),
        genres=sort_labels(genres),
    )
