"""Batch resolution of uploaded title lists."""

from __future__ import annotations

import asyncio
import logging
from typing import AsyncIterator, Sequence

from ..errors import EmptySelection, ExhaustedRetries, OperationCancelled
from ..models import MovieRecord, ProgressEvent, ResolvedSet, TitleCandidate
from ..utils import chunked
from .resolution import ResolutionWorker
from .retry import CancellationToken
from .tracking import Deduplicator, ProgressTracker

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 100


def selected_titles(titles: Sequence[TitleCandidate]) -> list[TitleCandidate]:
    """Return the selected titles, raising when there is nothing to run."""

    selected = [title for title in titles if title.selected]
    if not selected:
        raise EmptySelection()
    return selected


class BatchOrchestrator:
    """Resolve titles in fixed-size concurrent batches.

    Every member of a batch is in flight at the same time and the batch is a
    full barrier: accepted records, duplicate tracking and progress are only
    updated once the whole batch has settled.
    """

    def __init__(self, worker: ResolutionWorker, *, batch_size: int = DEFAULT_BATCH_SIZE):
        if batch_size < 1:
            raise ValueError("Batch size must be a positive integer")
        self._worker = worker
        self.batch_size = batch_size

    async def run(
        self,
        titles: Sequence[TitleCandidate],
        locale: str,
        *,
        token: CancellationToken | None = None,
        tracker: ProgressTracker | None = None,
    ) -> ResolvedSet:
        """Resolve every selected title and return the de-duplicated set."""

        selected_titles(titles)
        result = ResolvedSet()
        async for event in self.iter_run(titles, locale, token=token, tracker=tracker):
            result = event.snapshot
        return result

    async def iter_run(
        self,
        titles: Sequence[TitleCandidate],
        locale: str,
        *,
        token: CancellationToken | None = None,
        tracker: ProgressTracker | None = None,
    ) -> AsyncIterator[ProgressEvent]:
        """Yield one progress event per completed batch."""

        selected = selected_titles(titles)
        tracker = tracker if tracker is not None else ProgressTracker()
        tracker.reset(len(selected))
        deduplicator = Deduplicator()
        accepted: list[MovieRecord] = []
        batches = list(chunked(selected, self.batch_size))

        logger.info(
            "Resolving %s title(s) in %s batch(es) for %s",
            len(selected),
            len(batches),
            locale,
        )
        for index, batch in enumerate(batches):
            if token is not None and token.cancelled:
                raise OperationCancelled(ResolvedSet(accepted))

            # Read-only view of ids accepted by earlier batches.
            seen = deduplicator.seen
            results = await asyncio.gather(
                *(self._resolve_one(title, locale, seen, token) for title in batch),
                return_exceptions=True,
            )
            if token is not None and token.cancelled:
                logger.info("Resolution cancelled during batch %s", index + 1)
                raise OperationCancelled(ResolvedSet(accepted))

            for title, result in zip(batch, results):
                if isinstance(result, BaseException):
                    logger.warning("Unexpected failure resolving %r: %s", title.text, result)
                    continue
                if result is None:
                    continue
                if deduplicator.admit(result.id):
                    accepted.append(result)
                else:
                    logger.debug("Discarding duplicate movie %s for %r", result.id, title.text)

            progress = tracker.advance(len(batch))
            logger.debug(
                "Batch %s/%s resolved: %s/%s titles, %s record(s)",
                index + 1,
                len(batches),
                progress.processed,
                progress.total,
                len(accepted),
            )
            yield ProgressEvent(
                progress=progress,
                batch_size=len(batch),
                updated=len(accepted),
                snapshot=ResolvedSet(accepted),
                final=index == len(batches) - 1,
            )

    async def _resolve_one(
        self,
        title: TitleCandidate,
        locale: str,
        seen: frozenset[int],
        token: CancellationToken | None,
    ) -> MovieRecord | None:
        try:
            record = await self._worker.resolve(
                title.text, locale, token=token, skip_ids=seen
            )
        except ExhaustedRetries as exc:
            logger.warning(
                "Error fetching details for %r after retries: %s", title.text, exc.cause
            )
            return None
        return record
