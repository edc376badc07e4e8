"""Resolve free-text titles to enriched movie records."""

from __future__ import annotations

import logging
from typing import Container, Protocol, Sequence

from ..models import Genre, MovieRecord, SearchCandidate
from .retry import CancellationToken, RetryExecutor

logger = logging.getLogger(__name__)


class MetadataProvider(Protocol):
    """The subset of the metadata service the engine depends on."""

    async def search_movies(self, query: str, language: str) -> Sequence[SearchCandidate]:
        ...

    async def get_details(self, movie_id: int, language: str) -> MovieRecord:
        ...

    async def list_genres(self, language: str) -> Sequence[Genre]:
        ...


class ResolutionWorker:
    """Search for a title, keep the first hit and fetch its details."""

    def __init__(self, provider: MetadataProvider, retry: RetryExecutor):
        self._provider = provider
        self._retry = retry

    async def resolve(
        self,
        title: str,
        locale: str,
        *,
        token: CancellationToken | None = None,
        skip_ids: Container[int] = (),
    ) -> MovieRecord | None:
        """Return the record for ``title`` or ``None`` when nothing matches.

        Search and details form a single retried unit: a failure at either
        step starts the whole resolution for this title again. When the best
        match is listed in ``skip_ids`` the details fetch is skipped.
        """

        async def attempt() -> MovieRecord | None:
            candidates = await self._provider.search_movies(title, locale)
            if not candidates:
                return None
            movie_id = candidates[0].id
            if movie_id in skip_ids:
                return None
            return await self._provider.get_details(movie_id, locale)

        record = await self._retry.execute(attempt, token=token, label=f"title {title!r}")
        if record is None:
            logger.debug("No match found for %r", title)
        return record

    async def fetch(
        self,
        movie_id: int,
        locale: str,
        *,
        token: CancellationToken | None = None,
    ) -> MovieRecord:
        """Fetch the details of a known movie under the retry policy."""

        async def attempt() -> MovieRecord:
            return await self._provider.get_details(movie_id, locale)

        return await self._retry.execute(attempt, token=token, label=f"movie {movie_id}")
