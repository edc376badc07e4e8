"""Entry point for the FastAPI-powered movie resolution service."""

from __future__ import annotations

import logging
from contextlib import AsyncExitStack, asynccontextmanager
from typing import Any

import httpx
from fastapi import FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from .config import SUPPORTED_LANGUAGES, settings
from .database import Database
from .errors import AlreadyInCollection, EmptySelection, ExhaustedRetries
from .models import MovieRecord, ResolvedSet, TitleCandidate
from .services.collection import CollectionService
from .services.jobs import JobRegistry
from .services.store import CollectionStore
from .services.tmdb import TMDBClient
from .utils import parse_title_lines

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

app: FastAPI


class ResolutionRequest(BaseModel):
    titles: list[str] | None = None
    text: str | None = None
    selected: list[int] | None = None
    language: str | None = None

    def to_candidates(self) -> list[TitleCandidate]:
        if self.text is not None:
            candidates = parse_title_lines(self.text)
        else:
            candidates = [
                TitleCandidate(id=index, text=title.strip())
                for index, title in enumerate(
                    title for title in self.titles or [] if title.strip()
                )
            ]
        if self.selected is not None:
            chosen = set(self.selected)
            candidates = [
                candidate.model_copy(update={"selected": candidate.id in chosen})
                for candidate in candidates
            ]
        return candidates


class MoviesRequest(BaseModel):
    movies: list[MovieRecord] = Field(default_factory=list)
    language: str | None = None


class FilterRequest(MoviesRequest):
    genre_ids: list[int] = Field(default_factory=list)


class AddMovieRequest(MoviesRequest):
    movie_id: int


class SaveRequest(MoviesRequest):
    name: str | None = None


@asynccontextmanager
async def lifespan(_: FastAPI):
    exit_stack = AsyncExitStack()
    tmdb_http_client = await exit_stack.enter_async_context(
        httpx.AsyncClient(
            base_url=str(settings.tmdb_api_url),
            timeout=httpx.Timeout(settings.http_timeout_seconds, connect=10.0),
        )
    )
    database = Database(settings.database_url)
    await database.create_all()

    tmdb = TMDBClient(settings, tmdb_http_client)
    store = CollectionStore(database.session_factory)
    collection_service = CollectionService(settings, tmdb, store)
    jobs = JobRegistry(
        retention_seconds=settings.job_retention_seconds,
        max_finished=settings.max_finished_jobs,
    )

    app.state.collection_service = collection_service
    app.state.jobs = jobs
    app.state.database = database

    try:
        yield
    finally:  # pragma: no cover - teardown path exercised at runtime
        await jobs.shutdown()
        await database.dispose()
        await exit_stack.aclose()


def create_app() -> FastAPI:
    fastapi_app = FastAPI(
        title=settings.app_name,
        description="Bulk movie title resolution and localisation backed by TMDB",
        version="1.0.0",
        lifespan=lifespan,
    )

    fastapi_app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    register_routes(fastapi_app)
    return fastapi_app


def get_collection_service(app: FastAPI) -> CollectionService:
    service = getattr(app.state, "collection_service", None)
    if not isinstance(service, CollectionService):
        raise RuntimeError("Collection service not initialised")
    return service


def get_job_registry(app: FastAPI) -> JobRegistry:
    jobs = getattr(app.state, "jobs", None)
    if not isinstance(jobs, JobRegistry):
        raise RuntimeError("Job registry not initialised")
    return jobs


def _resolved_set(movies: list[MovieRecord]) -> ResolvedSet:
    try:
        return ResolvedSet(movies)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


def register_routes(fastapi_app: FastAPI) -> None:
    @fastapi_app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    @fastapi_app.get("/languages")
    async def languages() -> dict[str, Any]:
        return {
            "default": settings.default_language,
            "languages": [
                {"code": code, "name": name} for code, name in SUPPORTED_LANGUAGES
            ],
        }

    @fastapi_app.get("/genres")
    async def genres(language: str | None = Query(default=None)) -> dict[str, Any]:
        service = get_collection_service(fastapi_app)
        try:
            result = await service.list_genres(language)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        except ExhaustedRetries as exc:
            logger.warning("Error fetching genres: %s", exc.cause)
            raise HTTPException(status_code=502, detail="Failed to fetch genres") from exc
        return {"genres": [genre.model_dump() for genre in result]}

    @fastapi_app.get("/search")
    async def search(
        query: str = Query(min_length=1),
        language: str | None = Query(default=None),
    ) -> dict[str, Any]:
        service = get_collection_service(fastapi_app)
        try:
            results = await service.search_titles(query, language)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        except ExhaustedRetries as exc:
            logger.warning("Error searching movies: %s", exc.cause)
            raise HTTPException(status_code=502, detail="Failed to search for movies") from exc
        return {"results": [result.model_dump(mode="json") for result in results]}

    @fastapi_app.post("/resolutions", status_code=202)
    async def start_resolution(request: ResolutionRequest) -> dict[str, Any]:
        service = get_collection_service(fastapi_app)
        jobs = get_job_registry(fastapi_app)
        try:
            handle = service.start_resolution(request.to_candidates(), request.language)
        except EmptySelection as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        job = jobs.submit(handle, language=service.locale_for(request.language))
        return job.to_status(include_movies=False)

    @fastapi_app.post("/refreshes", status_code=202)
    async def start_refresh(request: MoviesRequest) -> dict[str, Any]:
        service = get_collection_service(fastapi_app)
        jobs = get_job_registry(fastapi_app)
        current = _resolved_set(request.movies)
        try:
            handle = service.start_localization_refresh(current, request.language)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        job = jobs.submit(handle, language=service.locale_for(request.language))
        return job.to_status(include_movies=False)

    @fastapi_app.get("/jobs/{job_id}")
    async def job_status(job_id: str) -> dict[str, Any]:
        job = get_job_registry(fastapi_app).get(job_id)
        if job is None:
            raise HTTPException(status_code=404, detail="Job not found")
        return job.to_status()

    @fastapi_app.post("/jobs/{job_id}/cancel")
    async def cancel_job(job_id: str) -> dict[str, Any]:
        try:
            job = get_job_registry(fastapi_app).cancel(job_id)
        except KeyError as exc:
            raise HTTPException(status_code=404, detail="Job not found") from exc
        return job.to_status(include_movies=False)

    @fastapi_app.post("/movies/filter")
    async def filter_movies(request: FilterRequest) -> dict[str, Any]:
        service = get_collection_service(fastapi_app)
        visible = service.filter_by_genres(request.movies, request.genre_ids)
        return {"movies": [movie.model_dump(mode="json") for movie in visible]}

    @fastapi_app.post("/movies/add")
    async def add_movie(request: AddMovieRequest) -> dict[str, Any]:
        service = get_collection_service(fastapi_app)
        current = _resolved_set(request.movies)
        try:
            updated = await service.add_movie(current, request.movie_id, request.language)
        except AlreadyInCollection as exc:
            raise HTTPException(status_code=409, detail=str(exc)) from exc
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        except ExhaustedRetries as exc:
            logger.warning("Error adding movie %s: %s", request.movie_id, exc.cause)
            raise HTTPException(
                status_code=502, detail="Failed to add movie. Please try again."
            ) from exc
        return {"movies": updated.to_payload()}

    @fastapi_app.post("/collections", status_code=201)
    async def save_collection(request: SaveRequest) -> dict[str, Any]:
        service = get_collection_service(fastapi_app)
        current = _resolved_set(request.movies)
        collection_id = await service.save(current, request.language, name=request.name)
        return {"id": collection_id, "movie_count": len(current)}

    @fastapi_app.get("/collections/{collection_id}")
    async def load_collection(collection_id: str) -> dict[str, Any]:
        service = get_collection_service(fastapi_app)
        stored = await service.load(collection_id)
        if stored is None:
            raise HTTPException(status_code=404, detail="Collection not found")
        return {
            "id": stored.id,
            "name": stored.name,
            "language": stored.language,
            "created_at": stored.created_at.isoformat(),
            "movies": stored.movies.to_payload(),
        }


app = create_app()
