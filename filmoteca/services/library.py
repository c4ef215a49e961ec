"""Lookup sessions tying the providers to the reconciliation engine."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Mapping

from ..config import Settings
from ..errors import BaselineError, FetchError, HttpError, UpstreamFormatError
from ..genres import GenreMapper
from ..models import (
    CollectionView,
    MovieView,
    ScrapedFacts,
    SourceStatus,
    SourceTag,
    TitleVariants,
)
from ..reconcile import CollectionGenreSet, CreditReconciler, GenreReconciler
from ..utils import parse_genre_text, remove_leading_article
from ..views import (
    build_collection_view,
    build_image_url,
    build_movie_view,
    build_title,
    collection_member_title,
    fallback_text,
    imdb_identifier,
    localized_text,
    origin_countries,
    parse_release_date,
    structured_credits,
    structured_genres,
)
from .imdb import IMDbClient
from .openrouter import OpenRouterClient
from .tmdb import TMDBClient
from .translate import TranslationClient

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class Patch:
    """Result of one background source, posted to the session's merge queue."""

    generation: int
    source: SourceTag
    facts: ScrapedFacts | None = None
    tokens: list[str] = field(default_factory=list)
    error: str | None = None
    skipped: str | None = None


class MovieSession:
    """Mutable state behind one open movie, owned by a single merge task."""

    def __init__(
        self,
        generation: int,
        primary: Mapping[str, Any],
        secondary: Mapping[str, Any] | None,
        *,
        mapper: GenreMapper,
        collection_snapshot: tuple[str, ...] = (),
        rating_countries: tuple[str, ...] = ("IT", "US"),
        image_base_url: str = "",
        title: TitleVariants | None = None,
        translated: Mapping[str, str] | None = None,
    ):
        self.generation = generation
        self.primary = primary
        self.secondary = secondary
        self.genres = GenreReconciler(mapper, collection_snapshot)
        self.credits = CreditReconciler()
        self.statuses: dict[str, SourceStatus] = {
            SourceTag.STRUCTURED.value: SourceStatus(state="ok"),
            SourceTag.SCRAPED.value: SourceStatus(),
            SourceTag.GENERATIVE.value: SourceStatus(),
        }
        self.queue: asyncio.Queue[Patch | None] = asyncio.Queue()
        self._rating_countries = rating_countries
        self._image_base_url = image_base_url
        self.title_variants = title or build_title(primary, secondary)
        self._translated = dict(translated or {})
        self._producers: list[asyncio.Task[None]] = []
        self._merge_task: asyncio.Task[None] | None = None

        self.genres.apply_structured(
            structured_genres(primary, secondary),
            language=primary.get("original_language"),
            countries=origin_countries(primary, secondary),
        )
        self.credits.apply_structured(**structured_credits(primary))

    @property
    def movie_id(self) -> int:
        return int(self.primary["id"])

    @property
    def imdb_id(self) -> str | None:
        return imdb_identifier(self.primary)

    @property
    def collection_id(self) -> int | None:
        collection = self.primary.get("belongs_to_collection")
        if isinstance(collection, Mapping) and collection.get("id") is not None:
            return int(collection["id"])
        return None

    @property
    def title(self) -> str:
        return build_title(self.primary, self.secondary).display

    @property
    def synopsis(self) -> str | None:
        return self._translated.get("overview") or localized_text(
            self.primary, self.secondary, "overview"
        )

    def attach(self, producers: list[asyncio.Task[None]], merge_task: asyncio.Task[None]) -> None:
        self._producers = producers
        self._merge_task = merge_task

    async def wait_settled(self) -> None:
        """Wait until every background source has been merged or discarded."""

        if self._producers:
            await asyncio.gather(*self._producers, return_exceptions=True)
        if self._merge_task is not None:
            await self._merge_task

    def apply(self, patch: Patch) -> list[str]:
        """Merge one completion and return the genres it contributed."""

        key = patch.source.value
        if patch.skipped:
            self.statuses[key] = SourceStatus(state="skipped", message=patch.skipped)
            return []
        if patch.error:
            self.statuses[key] = SourceStatus(state="failed", message=patch.error)
            return []

        if patch.source is SourceTag.SCRAPED:
            facts = patch.facts or ScrapedFacts()
            self.credits.apply_scraped(facts)
            merged = self.genres.apply_scraped(facts)
            message = None if not facts.is_empty() else "Nessun dato trovato nella pagina"
        elif patch.source is SourceTag.GENERATIVE:
            merged = self.genres.apply_generated(patch.tokens)
            message = None if merged else "Nessun genere suggerito"
        else:
            raise ValueError(f"Unsupported background source: {patch.source}")

        self.statuses[key] = SourceStatus(state="ok", message=message)
        return merged

    def view(self) -> MovieView:
        return build_movie_view(
            self.primary,
            self.secondary,
            genres=self.genres,
            credits=self.credits,
            statuses={key: status.model_copy() for key, status in self.statuses.items()},
            rating_countries=self._rating_countries,
            image_base_url=self._image_base_url,
            title=self.title_variants,
            translated=self._translated,
        )


class LibraryService:
    """Coordinates provider calls, lookup sessions and collection genres."""

    def __init__(
        self,
        settings: Settings,
        tmdb_client: TMDBClient,
        imdb_client: IMDbClient,
        openrouter_client: OpenRouterClient,
        mapper: GenreMapper,
        translation_client: TranslationClient | None = None,
    ):
        self._settings = settings
        self._tmdb = tmdb_client
        self._imdb = imdb_client
        self._ai = openrouter_client
        self._mapper = mapper
        self._translator = translation_client
        self._generation = 0
        self._current: MovieSession | None = None
        self._collection_genres: dict[int, CollectionGenreSet] = {}
        self._open_collection: (
            tuple[int, dict[str, Any], dict[str, Any] | None, dict[str, str]] | None
        ) = None

    @property
    def current_session(self) -> MovieSession | None:
        return self._current

    def is_current(self, session: MovieSession) -> bool:
        return session.generation == self._generation

    @property
    def _rating_countries(self) -> tuple[str, ...]:
        preferred = self._settings.rating_country.upper()
        return (preferred,) if preferred == "US" else (preferred, "US")

    def collection_genres(self, collection_id: int) -> CollectionGenreSet:
        return self._collection_genres.setdefault(int(collection_id), CollectionGenreSet())

    async def _load_pair(
        self, loader: Any, identifier: int, label: str
    ) -> tuple[dict[str, Any], dict[str, Any]]:
        """Fetch the same record in both locales; any failure aborts the lookup."""

        try:
            primary, secondary = await asyncio.gather(
                loader(identifier, self._settings.primary_language),
                loader(identifier, self._settings.secondary_language),
            )
        except HttpError as exc:
            logger.warning("TMDB %s %s lookup failed: %s", label, identifier, exc)
            if exc.status == 404:
                raise BaselineError(
                    f"Nessun risultato per {label} {identifier}", status=404
                ) from exc
            raise BaselineError(
                f"TMDB non disponibile (HTTP {exc.status})", status=exc.status
            ) from exc
        except (FetchError, UpstreamFormatError) as exc:
            logger.warning("TMDB %s %s lookup failed: %s", label, identifier, exc)
            raise BaselineError(f"TMDB non raggiungibile: {exc}") from exc
        return primary, secondary

    async def open_movie(self, movie_id: int) -> MovieSession:
        """Start a new lookup, superseding any session still resolving."""

        self._generation += 1
        generation = self._generation
        try:
            primary, secondary = await self._load_pair(self._tmdb.get_movie, movie_id, "film")
        except BaselineError:
            if generation == self._generation:
                # The previous movie is already superseded and would never settle.
                self._current = None
            raise

        collection_id = None
        collection = primary.get("belongs_to_collection")
        if isinstance(collection, Mapping) and collection.get("id") is not None:
            collection_id = int(collection["id"])
        saga, translated = await asyncio.gather(
            self._collection_payload(collection_id),
            self._translate_fallbacks(primary, secondary, ("tagline", "overview")),
        )
        title = build_title(primary, secondary)
        if saga is not None:
            title = collection_member_title(
                title,
                int(primary["id"]),
                saga.get("name") or (collection or {}).get("name"),
                saga.get("parts") or [],
            )

        snapshot = (
            self.collection_genres(collection_id).snapshot()
            if collection_id is not None
            else ()
        )
        session = MovieSession(
            generation,
            primary,
            secondary,
            mapper=self._mapper,
            collection_snapshot=snapshot,
            rating_countries=self._rating_countries,
            image_base_url=self._settings.tmdb_image_url,
            title=title,
            translated=translated,
        )
        if generation != self._generation:
            logger.info("Lookup for movie %s superseded before its baseline resolved", movie_id)
            return session

        self._current = session
        self._propagate(session, session.genres.movie_genres())
        self._start_background(session)
        return session

    async def _collection_payload(self, collection_id: int | None) -> dict[str, Any] | None:
        """Primary-locale collection record used to title a member movie."""

        if collection_id is None:
            return None
        if self._open_collection is not None and self._open_collection[0] == collection_id:
            return self._open_collection[1]
        try:
            return await self._tmdb.get_collection(collection_id, self._settings.primary_language)
        except (FetchError, UpstreamFormatError) as exc:
            logger.warning("Collection %s unavailable for titling: %s", collection_id, exc)
            return None

    async def _translate_fallbacks(
        self,
        primary: Mapping[str, Any],
        secondary: Mapping[str, Any] | None,
        keys: tuple[str, ...],
    ) -> dict[str, str]:
        """Translate the texts that only the secondary locale provides."""

        if self._translator is None or not self._translator.enabled:
            return {}
        pending: dict[str, str] = {}
        for key in keys:
            text = fallback_text(primary, secondary, key)
            if text is not None:
                pending[key] = text
        if not pending:
            return {}
        results = await asyncio.gather(
            *(self._translator.translate(text) for text in pending.values()),
            return_exceptions=True,
        )
        translated: dict[str, str] = {}
        for key, result in zip(pending, results):
            if isinstance(result, (FetchError, UpstreamFormatError)):
                logger.warning("Translation of %s failed, keeping original: %s", key, result)
            elif isinstance(result, BaseException):
                raise result
            elif result:
                translated[key] = result
        return translated

    def _propagate(self, session: MovieSession, genres: list[str]) -> None:
        """Add genres found for ``session``'s movie to its collection's live set."""

        collection_id = session.collection_id
        if not genres or collection_id is None:
            return
        added = self.collection_genres(collection_id).add_many(genres)
        if added:
            logger.info(
                "Collection %s gained genres from movie %s: %s",
                collection_id,
                session.movie_id,
                ", ".join(added),
            )

    def current_movie_view(self) -> MovieView | None:
        if self._current is None:
            return None
        return self._current.view()

    def _start_background(self, session: MovieSession) -> None:
        producers = [
            asyncio.create_task(self._produce(session, SourceTag.SCRAPED, self._scrape(session))),
            asyncio.create_task(
                self._produce(session, SourceTag.GENERATIVE, self._generate(session))
            ),
        ]
        session.attach(producers, asyncio.create_task(self._merge_loop(session, producers)))

    async def _produce(
        self,
        session: MovieSession,
        source: SourceTag,
        work: Awaitable[Patch],
    ) -> None:
        try:
            patch = await work
        except (FetchError, UpstreamFormatError, ValueError) as exc:
            logger.warning(
                "%s source failed for movie %s: %s", source.value, session.movie_id, exc
            )
            patch = Patch(session.generation, source, error=str(exc))
        except Exception as exc:  # pragma: no cover - background safety net
            logger.exception(
                "Unexpected %s failure for movie %s", source.value, session.movie_id
            )
            patch = Patch(session.generation, source, error=str(exc))
        await session.queue.put(patch)

    async def _scrape(self, session: MovieSession) -> Patch:
        imdb_id = session.imdb_id
        if not imdb_id:
            return Patch(session.generation, SourceTag.SCRAPED, skipped="Nessun ID IMDb")
        facts = await self._imdb.fetch_facts(imdb_id)
        return Patch(session.generation, SourceTag.SCRAPED, facts=facts)

    async def _generate(self, session: MovieSession) -> Patch:
        if not self._ai.enabled:
            return Patch(
                session.generation,
                SourceTag.GENERATIVE,
                skipped="Servizio generativo non configurato",
            )
        collection_id = session.collection_id
        known = (
            self.collection_genres(collection_id).snapshot()
            if collection_id is not None
            else ()
        )
        tokens = await self._ai.suggest_genres(
            session.title,
            session.synopsis,
            generic_genres=session.genres.movie_genres(),
            collection_genres=known,
        )
        return Patch(session.generation, SourceTag.GENERATIVE, tokens=tokens)

    async def _merge_loop(
        self, session: MovieSession, producers: list[asyncio.Task[None]]
    ) -> None:
        async def _close() -> None:
            await asyncio.gather(*producers, return_exceptions=True)
            await session.queue.put(None)

        closer = asyncio.create_task(_close())
        while True:
            patch = await session.queue.get()
            if patch is None:
                break
            self.apply_patch(session, patch)
        await closer

    def apply_patch(self, session: MovieSession, patch: Patch) -> bool:
        """Apply ``patch`` unless its session has been superseded."""

        if patch.generation != session.generation or not self.is_current(session):
            logger.debug(
                "Discarding stale %s completion for movie %s",
                patch.source.value,
                session.movie_id,
            )
            return False
        self._propagate(session, session.apply(patch))
        return True

    async def open_collection(self, collection_id: int) -> CollectionView:
        primary, secondary = await self._load_pair(
            self._tmdb.get_collection, collection_id, "collezione"
        )
        translated = await self._translate_fallbacks(primary, secondary, ("overview",))
        self._open_collection = (int(collection_id), primary, secondary, translated)
        return self._build_collection_view()

    def collection_view(self, collection_id: int) -> CollectionView | None:
        """Rebuild the view of the open collection, if ``collection_id`` is it."""

        if self._open_collection is None or self._open_collection[0] != int(collection_id):
            return None
        return self._build_collection_view()

    def _build_collection_view(self) -> CollectionView:
        if self._open_collection is None:
            raise LookupError("No collection is open")
        collection_id, primary, secondary, translated = self._open_collection
        return build_collection_view(
            primary,
            secondary,
            genres=self.collection_genres(collection_id).snapshot(),
            image_base_url=self._settings.tmdb_image_url,
            translated=translated,
        )

    def set_collection_genres(self, collection_id: int, text: str | None) -> list[str]:
        """Replace a collection's genres with a user edited, comma separated list."""

        genres = self._mapper.map_many(parse_genre_text(text))
        self.collection_genres(collection_id).replace(genres)
        return list(self.collection_genres(collection_id).snapshot())

    def remove_collection_genre(self, collection_id: int, genre: str) -> bool:
        return self.collection_genres(collection_id).remove(genre)

    async def search_movies(self, query: str) -> list[dict[str, Any]]:
        results = await self._tmdb.search_movies(query, self._settings.primary_language)
        return [self._search_entry(entry, "title") for entry in results if entry.get("id")]

    async def search_collections(self, query: str) -> list[dict[str, Any]]:
        results = await self._tmdb.search_collections(query, self._settings.primary_language)
        return [self._search_entry(entry, "name") for entry in results if entry.get("id")]

    def _search_entry(self, entry: Mapping[str, Any], title_key: str) -> dict[str, Any]:
        title = str(entry.get(title_key) or entry.get("original_title") or "").strip()
        release = parse_release_date(entry.get("release_date"))
        return {
            "id": int(entry["id"]),
            "title": title,
            "sortTitle": remove_leading_article(title),
            "year": release.year if release else None,
            "poster": build_image_url(entry.get("poster_path"), self._settings.tmdb_image_url),
        }

    async def scrape(self, imdb_id: str) -> ScrapedFacts:
        return await self._imdb.fetch_facts(imdb_id)
