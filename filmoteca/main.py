"""Entry point for the FastAPI application."""

from __future__ import annotations

import logging
from contextlib import AsyncExitStack, asynccontextmanager
from typing import Any

import httpx
from fastapi import FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel

from .config import settings
from .errors import BaselineError, FetchError, HttpError, UpstreamFormatError
from .genres import GenreMapper, load_genre_table
from .services.imdb import IMDbClient
from .services.library import LibraryService
from .services.openrouter import OpenRouterClient
from .services.tmdb import TMDBClient
from .services.translate import TranslationClient

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

app: FastAPI


class GenreEdit(BaseModel):
    genres: str = ""


@asynccontextmanager
async def lifespan(fastapi_app: FastAPI):
    exit_stack = AsyncExitStack()
    tmdb_http = await exit_stack.enter_async_context(
        httpx.AsyncClient(
            base_url=str(settings.tmdb_api_url),
            timeout=httpx.Timeout(settings.fetch_timeout, connect=5.0),
        )
    )
    imdb_http = await exit_stack.enter_async_context(
        httpx.AsyncClient(
            base_url=str(settings.imdb_base_url),
            timeout=httpx.Timeout(settings.fetch_timeout, connect=5.0),
        )
    )
    openrouter_http = await exit_stack.enter_async_context(
        httpx.AsyncClient(
            base_url=str(settings.openrouter_api_url),
            timeout=httpx.Timeout(settings.generative_timeout, connect=10.0),
        )
    )
    translate_http = await exit_stack.enter_async_context(
        httpx.AsyncClient(
            base_url=str(settings.translate_api_url),
            timeout=httpx.Timeout(settings.fetch_timeout, connect=5.0),
        )
    )

    mapper = GenreMapper(load_genre_table(settings.genre_table_path))
    service = LibraryService(
        settings,
        TMDBClient(settings, tmdb_http),
        IMDbClient(settings, imdb_http),
        OpenRouterClient(settings, openrouter_http),
        mapper,
        TranslationClient(settings, translate_http),
    )
    fastapi_app.state.library_service = service

    try:
        yield
    finally:  # pragma: no cover - teardown path exercised at runtime
        await exit_stack.aclose()


def create_app() -> FastAPI:
    fastapi_app = FastAPI(
        title=settings.app_name,
        description="Movie and collection metadata reconciled from TMDB, IMDb and OpenRouter",
        version="1.0.0",
        lifespan=lifespan,
    )

    fastapi_app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "PUT", "DELETE"],
        allow_headers=["*"],
    )

    register_routes(fastapi_app)
    return fastapi_app


def get_library_service(fastapi_app: FastAPI) -> LibraryService:
    service = getattr(fastapi_app.state, "library_service", None)
    if not isinstance(service, LibraryService):
        raise RuntimeError("Library service not initialised")
    return service


def _baseline_http_error(exc: BaselineError) -> HTTPException:
    status_code = 404 if exc.status == 404 else 502
    return HTTPException(status_code=status_code, detail=str(exc))


def _upstream_http_error(exc: Exception) -> HTTPException:
    if isinstance(exc, HttpError) and exc.status == 404:
        return HTTPException(status_code=404, detail=str(exc))
    return HTTPException(status_code=502, detail=str(exc))


def register_routes(fastapi_app: FastAPI) -> None:
    @fastapi_app.get("/healthz")
    async def healthcheck() -> dict[str, str]:
        return {"status": "ok"}

    @fastapi_app.get("/api/search/movies")
    async def search_movies(q: str = Query(default="")) -> dict[str, Any]:
        service = get_library_service(fastapi_app)
        try:
            results = await service.search_movies(q)
        except (FetchError, UpstreamFormatError) as exc:
            raise _upstream_http_error(exc) from exc
        return {"results": results}

    @fastapi_app.get("/api/search/collections")
    async def search_collections(q: str = Query(default="")) -> dict[str, Any]:
        service = get_library_service(fastapi_app)
        try:
            results = await service.search_collections(q)
        except (FetchError, UpstreamFormatError) as exc:
            raise _upstream_http_error(exc) from exc
        return {"results": results}

    @fastapi_app.post("/api/movies/{movie_id}/open")
    async def open_movie(movie_id: int) -> dict[str, Any]:
        service = get_library_service(fastapi_app)
        try:
            session = await service.open_movie(movie_id)
        except BaselineError as exc:
            raise _baseline_http_error(exc) from exc
        return session.view().model_dump(mode="json")

    @fastapi_app.get("/api/movies/current")
    async def current_movie() -> dict[str, Any]:
        service = get_library_service(fastapi_app)
        view = service.current_movie_view()
        if view is None:
            raise HTTPException(status_code=404, detail="No movie is open")
        return view.model_dump(mode="json")

    @fastapi_app.get("/api/clipboard/movie", response_class=PlainTextResponse)
    async def movie_clipboard() -> PlainTextResponse:
        service = get_library_service(fastapi_app)
        view = service.current_movie_view()
        if view is None:
            raise HTTPException(status_code=404, detail="No movie is open")
        return PlainTextResponse(view.to_clipboard_text())

    @fastapi_app.get("/api/collections/{collection_id}")
    async def open_collection(collection_id: int) -> dict[str, Any]:
        service = get_library_service(fastapi_app)
        try:
            view = await service.open_collection(collection_id)
        except BaselineError as exc:
            raise _baseline_http_error(exc) from exc
        return view.model_dump(mode="json")

    @fastapi_app.put("/api/collections/{collection_id}/genres")
    async def edit_collection_genres(collection_id: int, edit: GenreEdit) -> dict[str, Any]:
        service = get_library_service(fastapi_app)
        genres = service.set_collection_genres(collection_id, edit.genres)
        view = service.collection_view(collection_id)
        return {
            "genres": genres,
            "text": ", ".join(genres),
            "collection": view.model_dump(mode="json") if view else None,
        }

    @fastapi_app.delete("/api/collections/{collection_id}/genres/{genre}")
    async def remove_collection_genre(collection_id: int, genre: str) -> dict[str, Any]:
        service = get_library_service(fastapi_app)
        if not service.remove_collection_genre(collection_id, genre):
            raise HTTPException(status_code=404, detail=f"Genre {genre!r} not in collection")
        return {"genres": list(service.collection_genres(collection_id).snapshot())}

    @fastapi_app.get("/api/imdb/{imdb_id}")
    async def scrape_imdb(imdb_id: str) -> dict[str, Any]:
        service = get_library_service(fastapi_app)
        try:
            facts = await service.scrape(imdb_id)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        except FetchError as exc:
            raise _upstream_http_error(exc) from exc
        return facts.model_dump(by_alias=True)


app = create_app()
