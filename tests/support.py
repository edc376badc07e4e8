"""Shared fakes for engine tests."""

from __future__ import annotations

import asyncio
from typing import Any

from reelbatch.config import Settings
from reelbatch.errors import NotFound, TransientNetworkFailure
from reelbatch.models import Genre, MovieRecord, SearchCandidate
from reelbatch.services.retry import RetryExecutor


def build_settings(**overrides: Any) -> Settings:
    """Return a settings object with defaults suitable for tests."""

    base: dict[str, Any] = {"TMDB_API_KEY": "test-key"}
    base.update(overrides)
    return Settings(_env_file=None, **base)  # type: ignore[arg-type]


def instant_retry(max_attempts: int = 3) -> tuple[RetryExecutor, list[float]]:
    """Return a retry executor that records its waits instead of sleeping."""

    waits: list[float] = []

    async def sleep(delay: float) -> None:
        waits.append(delay)

    return RetryExecutor(max_attempts=max_attempts, sleep=sleep), waits


def make_record(movie_id: int, title: str | None = None, **fields: Any) -> MovieRecord:
    return MovieRecord(id=movie_id, title=title or f"Movie {movie_id}", **fields)


class FakeProvider:
    """In-memory stand-in for the TMDB client.

    ``search_map`` maps a query to the ids of its search hits. Details are
    generated per locale and remembered in ``served`` so tests can compare
    identities. ``detail_failures`` maps an id to the number of failing calls
    before success (``-1`` fails forever, ``"missing"`` raises NotFound).
    """

    def __init__(
        self,
        search_map: dict[str, list[int]] | None = None,
        *,
        detail_failures: dict[int, Any] | None = None,
        search_failures: dict[str, int] | None = None,
        delay: float = 0.0,
    ):
        self.search_map = search_map or {}
        self.detail_failures = dict(detail_failures or {})
        self.search_failures = dict(search_failures or {})
        self.delay = delay
        self.search_calls: list[str] = []
        self.detail_calls: list[tuple[int, str]] = []
        self.served: dict[tuple[int, str], MovieRecord] = {}
        self.in_flight = 0
        self.max_in_flight = 0

    async def _pause(self) -> None:
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delay)
        finally:
            self.in_flight -= 1

    async def search_movies(self, query: str, language: str) -> list[SearchCandidate]:
        self.search_calls.append(query)
        await self._pause()
        remaining = self.search_failures.get(query, 0)
        if remaining:
            self.search_failures[query] = remaining - 1 if remaining > 0 else remaining
            raise TransientNetworkFailure(f"search failed for {query}", status_code=503)
        return [
            SearchCandidate(id=movie_id, title=f"Movie {movie_id}")
            for movie_id in self.search_map.get(query, [])
        ]

    async def get_details(self, movie_id: int, language: str) -> MovieRecord:
        self.detail_calls.append((movie_id, language))
        await self._pause()
        remaining = self.detail_failures.get(movie_id, 0)
        if remaining == "missing":
            raise NotFound(movie_id)
        if remaining:
            self.detail_failures[movie_id] = remaining - 1 if remaining > 0 else remaining
            raise TransientNetworkFailure(f"details failed for {movie_id}", status_code=500)
        record = MovieRecord(
            id=movie_id,
            title=f"Movie {movie_id} [{language}]",
            overview=f"Overview in {language}",
            genres=[Genre(id=movie_id % 3, name=f"Genre {movie_id % 3}")],
        )
        self.served[(movie_id, language)] = record
        return record

    async def list_genres(self, language: str) -> list[Genre]:
        return [Genre(id=28, name=f"Action [{language}]"), Genre(id=18, name=f"Drama [{language}]")]
