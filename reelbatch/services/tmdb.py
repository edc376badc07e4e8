"""Client for the movie endpoints of The Movie Database (TMDB)."""

from __future__ import annotations

import logging
from typing import Any

import httpx
from pydantic import ValidationError

from ..config import Settings
from ..errors import NotFound, TransientNetworkFailure
from ..models import Genre, MovieRecord, SearchCandidate

logger = logging.getLogger(__name__)


class TMDBClient:
    """Client responsible for searching TMDB and fetching movie details."""

    def __init__(self, settings: Settings, http_client: httpx.AsyncClient):
        if not (settings.tmdb_api_key or settings.tmdb_access_token):
            raise ValueError(
                "A TMDB API key or access token is required when initialising TMDBClient"
            )
        self._settings = settings
        self._client = http_client

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self._settings.tmdb_access_token:
            headers["Authorization"] = f"Bearer {self._settings.tmdb_access_token}"
        return headers

    def _params(self, **extra: Any) -> dict[str, Any]:
        params = dict(extra)
        if self._settings.tmdb_api_key:
            params["api_key"] = self._settings.tmdb_api_key
        return params

    async def _get(self, endpoint: str, params: dict[str, Any]) -> dict[str, Any]:
        try:
            response = await self._client.get(
                endpoint, params=self._params(**params), headers=self._headers()
            )
        except httpx.HTTPError as exc:
            raise TransientNetworkFailure(
                f"{exc.__class__.__name__} talking to TMDB ({endpoint})"
            ) from exc

        if response.status_code >= 400:
            logger.warning(
                "TMDB request %s failed: %s %s",
                endpoint,
                response.status_code,
                response.text,
            )
            raise TransientNetworkFailure(
                f"TMDB responded {response.status_code} for {endpoint}",
                status_code=response.status_code,
            )

        try:
            payload = response.json()
        except ValueError as exc:
            raise TransientNetworkFailure(
                f"Unexpected non-JSON TMDB response for {endpoint}",
                status_code=response.status_code,
            ) from exc
        if not isinstance(payload, dict):
            raise TransientNetworkFailure(
                f"Unexpected TMDB response structure for {endpoint}",
                status_code=response.status_code,
            )
        return payload

    async def search_movies(self, query: str, language: str) -> list[SearchCandidate]:
        """Return the first page of search results for ``query``."""

        data = await self._get(
            "/search/movie",
            {
                "query": query,
                "language": language,
                "page": 1,
                "include_adult": "false",
            },
        )
        candidates: list[SearchCandidate] = []
        for entry in data.get("results") or []:
            if not isinstance(entry, dict) or entry.get("id") is None:
                continue
            try:
                candidates.append(SearchCandidate.model_validate(entry))
            except ValidationError:
                logger.debug("Skipping malformed TMDB search result: %s", entry)
        return candidates

    async def get_details(self, movie_id: int, language: str) -> MovieRecord:
        """Fetch the full record for ``movie_id`` localised to ``language``."""

        endpoint = f"/movie/{movie_id}"
        try:
            data = await self._get(endpoint, {"language": language})
        except TransientNetworkFailure as exc:
            if exc.status_code == 404:
                raise NotFound(movie_id) from exc
            raise

        try:
            return MovieRecord.model_validate(data)
        except ValidationError as exc:
            raise TransientNetworkFailure(
                f"Malformed TMDB details payload for movie {movie_id}"
            ) from exc

    async def list_genres(self, language: str) -> list[Genre]:
        """Return the movie genre list localised to ``language``."""

        data = await self._get("/genre/movie/list", {"language": language})
        genres: list[Genre] = []
        for entry in data.get("genres") or []:
            if not isinstance(entry, dict):
                continue
            try:
                genres.append(Genre.model_validate(entry))
            except ValidationError:
                continue
        return genres
