"""Re-localise an already resolved set into another language."""

from __future__ import annotations

import asyncio
import logging
from typing import AsyncIterator

from ..errors import ExhaustedRetries, OperationCancelled
from ..models import MovieRecord, ProgressEvent, ResolvedSet
from ..utils import chunked
from .orchestrator import DEFAULT_BATCH_SIZE
from .resolution import ResolutionWorker
from .retry import CancellationToken
from .tracking import ProgressTracker

logger = logging.getLogger(__name__)


class LocalizationRefreshController:
    """Swap every record of a set to a new locale, batch by batch.

    The working map starts as a copy of the current set, so a record whose
    refresh fails keeps its previous (stale-language) data instead of
    disappearing. Snapshots keep the order of the input set.
    """

    def __init__(self, worker: ResolutionWorker, *, batch_size: int = DEFAULT_BATCH_SIZE):
        if batch_size < 1:
            raise ValueError("Batch size must be a positive integer")
        self._worker = worker
        self.batch_size = batch_size

    async def refresh(
        self,
        current: ResolvedSet,
        locale: str,
        *,
        token: CancellationToken | None = None,
        tracker: ProgressTracker | None = None,
    ) -> AsyncIterator[ProgressEvent]:
        """Yield a snapshot of the whole set after every refreshed batch.

        On cancellation the working map is left at the last completed batch
        and :class:`OperationCancelled` carries that snapshot.
        """

        order = current.ids()
        working: dict[int, MovieRecord] = {record.id: record for record in current}
        tracker = tracker if tracker is not None else ProgressTracker()
        tracker.reset(len(order))
        refreshed = 0

        def snapshot() -> ResolvedSet:
            return ResolvedSet(working[movie_id] for movie_id in order)

        if not order:
            yield ProgressEvent(
                progress=tracker.state,
                batch_size=0,
                updated=0,
                snapshot=snapshot(),
                final=True,
            )
            return

        records = list(current)
        batches = list(chunked(records, self.batch_size))
        logger.info(
            "Refreshing %s movie(s) into %s in %s batch(es)",
            len(records),
            locale,
            len(batches),
        )
        for index, batch in enumerate(batches):
            if token is not None and token.cancelled:
                raise OperationCancelled(snapshot())

            results = await asyncio.gather(
                *(self._fetch_one(record, locale, token) for record in batch),
                return_exceptions=True,
            )
            if token is not None and token.cancelled:
                logger.info("Language refresh cancelled during batch %s", index + 1)
                raise OperationCancelled(snapshot())

            for record, result in zip(batch, results):
                if isinstance(result, BaseException):
                    logger.warning(
                        "Unexpected failure refreshing %s: %s", record.title, result
                    )
                    continue
                if result is None:
                    continue
                if result.id != record.id:
                    logger.warning(
                        "TMDB returned movie %s when refreshing %s, keeping previous data",
                        result.id,
                        record.id,
                    )
                    continue
                working[record.id] = result
                refreshed += 1

            progress = tracker.advance(len(batch))
            yield ProgressEvent(
                progress=progress,
                batch_size=len(batch),
                updated=refreshed,
                snapshot=snapshot(),
                final=index == len(batches) - 1,
            )

    async def _fetch_one(
        self,
        record: MovieRecord,
        locale: str,
        token: CancellationToken | None,
    ) -> MovieRecord | None:
        try:
            return await self._worker.fetch(record.id, locale, token=token)
        except ExhaustedRetries as exc:
            logger.warning(
                "Error refreshing details for %s after retries: %s", record.title, exc.cause
            )
            return None
