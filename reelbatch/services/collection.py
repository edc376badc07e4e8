"""Entry points the presentation layer uses to build and maintain a movie set."""

from __future__ import annotations

import logging
from typing import Collection, Sequence

from ..config import Settings
from ..errors import AlreadyInCollection
from ..models import Genre, MovieRecord, ResolvedSet, SearchCandidate, TitleCandidate
from ..utils import build_locale
from .filtering import apply_genre_filter
from .jobs import EngineHandle
from .localization import LocalizationRefreshController
from .orchestrator import BatchOrchestrator, selected_titles
from .resolution import MetadataProvider, ResolutionWorker
from .retry import CancellationToken, RetryExecutor
from .store import CollectionStore, StoredCollection
from .tracking import ProgressTracker

logger = logging.getLogger(__name__)


class CollectionService:
    """Coordinates title resolution, language refreshes and collection edits.

    Every resolution or refresh gets a fresh token, tracker and working set
    exposed through the returned :class:`EngineHandle`. The only run state the
    service keeps is the token of the latest refresh, so that starting a new
    refresh cancels the previous one.
    """

    def __init__(
        self,
        settings: Settings,
        provider: MetadataProvider,
        store: CollectionStore | None = None,
        *,
        retry: RetryExecutor | None = None,
    ):
        self._settings = settings
        self._provider = provider
        self._store = store
        self._retry = retry or RetryExecutor.from_settings(settings)
        self._worker = ResolutionWorker(provider, self._retry)
        self._orchestrator = BatchOrchestrator(self._worker, batch_size=settings.batch_size)
        self._refresher = LocalizationRefreshController(
            self._worker, batch_size=settings.batch_size
        )
        self._active_refresh: CancellationToken | None = None

    def locale_for(self, language: str | None) -> str:
        return build_locale(
            language or self._settings.default_language, self._settings.tmdb_region
        )

    def start_resolution(
        self, titles: Sequence[TitleCandidate], language: str | None = None
    ) -> EngineHandle:
        """Begin resolving the selected titles.

        Raises :class:`EmptySelection` straight away when nothing is selected;
        in that case no progress state is created.
        """

        selected = selected_titles(titles)
        locale = self.locale_for(language)
        token = CancellationToken()
        tracker = ProgressTracker(len(selected))
        events = self._orchestrator.iter_run(titles, locale, token=token, tracker=tracker)
        return EngineHandle("resolution", events, token=token, tracker=tracker)

    def start_localization_refresh(
        self, current: ResolvedSet, language: str | None = None
    ) -> EngineHandle:
        """Begin swapping every record of ``current`` to ``language``.

        A refresh still running from an earlier call is cancelled first; it
        stops at its last completed batch.
        """

        locale = self.locale_for(language)
        if self._active_refresh is not None and not self._active_refresh.cancelled:
            logger.info("Cancelling superseded language refresh")
            self._active_refresh.cancel()
        token = CancellationToken()
        self._active_refresh = token
        tracker = ProgressTracker(len(current))
        events = self._refresher.refresh(current, locale, token=token, tracker=tracker)
        return EngineHandle(
            "refresh", events, token=token, tracker=tracker, initial=current
        )

    @staticmethod
    def filter_by_genres(
        records: ResolvedSet | Sequence[MovieRecord], genre_ids: Collection[int]
    ) -> list[MovieRecord]:
        return apply_genre_filter(records, genre_ids)

    async def search_titles(
        self, query: str, language: str | None = None
    ) -> list[SearchCandidate]:
        """Search for movies to add by hand."""

        locale = self.locale_for(language)
        query = query.strip()
        if not query:
            return []

        async def attempt() -> list[SearchCandidate]:
            return list(await self._provider.search_movies(query, locale))

        return await self._retry.execute(attempt, label=f"search {query!r}")

    async def list_genres(self, language: str | None = None) -> list[Genre]:
        locale = self.locale_for(language)

        async def attempt() -> list[Genre]:
            return list(await self._provider.list_genres(locale))

        return await self._retry.execute(attempt, label="genre list")

    async def add_movie(
        self,
        current: ResolvedSet,
        movie_id: int,
        language: str | None = None,
        *,
        token: CancellationToken | None = None,
    ) -> ResolvedSet:
        """Fetch ``movie_id`` and append it to the set."""

        existing = current.get(movie_id)
        if existing is not None:
            raise AlreadyInCollection(movie_id, existing.title)
        record = await self._worker.fetch(movie_id, self.locale_for(language), token=token)
        if record.id in current:
            raise AlreadyInCollection(record.id, record.title)
        return current.with_record(record)

    @staticmethod
    def remove_movie(current: ResolvedSet, movie_id: int) -> ResolvedSet:
        return current.without(movie_id)

    @staticmethod
    def reorder(current: ResolvedSet, movie_ids: Sequence[int]) -> ResolvedSet:
        return current.reordered(movie_ids)

    @staticmethod
    def replace_movie(current: ResolvedSet, record: MovieRecord) -> ResolvedSet:
        """Apply a manual edit, keeping the record's position."""

        return current.replace(record)

    async def save(
        self,
        current: ResolvedSet,
        language: str | None = None,
        *,
        name: str | None = None,
    ) -> str:
        if self._store is None:
            raise RuntimeError("No collection store configured")
        return await self._store.save(
            current,
            language=(language or self._settings.default_language).lower(),
            name=name,
        )

    async def load(self, collection_id: str) -> StoredCollection | None:
        if self._store is None:
            raise RuntimeError("No collection store configured")
        return await self._store.load(collection_id)
