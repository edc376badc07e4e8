"""Handles over running resolutions and refreshes, and a registry to poll them."""

from __future__ import annotations

import asyncio
import logging
import secrets
from contextlib import suppress
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, AsyncIterator, Literal

from ..errors import OperationCancelled
from ..models import ProgressEvent, ProgressState, ResolvedSet
from .retry import CancellationToken
from .tracking import ProgressTracker

logger = logging.getLogger(__name__)

JobKind = Literal["resolution", "refresh"]
JobStatus = Literal["running", "completed", "cancelled", "failed"]


class EngineHandle:
    """Async-iterable view of one run or refresh.

    Iterating yields a :class:`ProgressEvent` per completed batch; the last
    one carries the final set. ``snapshot`` always holds the most recent
    immutable snapshot, starting with ``initial``.
    """

    def __init__(
        self,
        kind: JobKind,
        events: AsyncIterator[ProgressEvent],
        *,
        token: CancellationToken,
        tracker: ProgressTracker,
        initial: ResolvedSet | None = None,
    ):
        self.kind = kind
        self.token = token
        self._events = events
        self._tracker = tracker
        self._snapshot = initial if initial is not None else ResolvedSet()
        self._finished = False

    @property
    def progress(self) -> ProgressState:
        return self._tracker.state

    @property
    def snapshot(self) -> ResolvedSet:
        return self._snapshot

    @property
    def finished(self) -> bool:
        return self._finished

    def cancel(self) -> None:
        self.token.cancel()

    def __aiter__(self) -> "EngineHandle":
        return self

    async def __anext__(self) -> ProgressEvent:
        if self._finished:
            raise StopAsyncIteration
        try:
            event = await self._events.__anext__()
        except StopAsyncIteration:
            self._finished = True
            raise
        except OperationCancelled as exc:
            self._finished = True
            if exc.snapshot is not None:
                self._snapshot = exc.snapshot
            raise
        except BaseException:
            self._finished = True
            raise
        self._snapshot = event.snapshot
        return event

    async def result(self) -> ResolvedSet:
        """Drain the remaining batches and return the final snapshot."""

        async for _ in self:
            pass
        return self._snapshot


@dataclass(slots=True)
class Job:
    """A handle driven in the background on behalf of an API caller."""

    id: str
    handle: EngineHandle
    language: str
    status: JobStatus = "running"
    error: str | None = None
    created_at: datetime = field(default_factory=datetime.utcnow)
    finished_at: datetime | None = None
    task: asyncio.Task[None] | None = None

    @property
    def kind(self) -> JobKind:
        return self.handle.kind

    def to_status(self, *, include_movies: bool = True) -> dict[str, Any]:
        progress = self.handle.progress
        payload: dict[str, Any] = {
            "job_id": self.id,
            "kind": self.kind,
            "status": self.status,
            "language": self.language,
            "processed": progress.processed,
            "total": progress.total,
            "error": self.error,
        }
        if include_movies:
            payload["movies"] = self.handle.snapshot.to_payload()
        return payload


class JobRegistry:
    """Keeps track of background jobs started through the HTTP API.

    Finished jobs are kept for ``retention_seconds`` so callers can poll the
    outcome. Each ``submit`` drops expired jobs and keeps only the newest
    ``max_finished`` finished ones.
    """

    def __init__(self, *, retention_seconds: float = 3600.0, max_finished: int = 100):
        if retention_seconds < 0:
            raise ValueError("Job retention must not be negative")
        if max_finished < 0:
            raise ValueError("max_finished must not be negative")
        self._retention = timedelta(seconds=retention_seconds)
        self._max_finished = max_finished
        self._jobs: dict[str, Job] = {}

    def submit(self, handle: EngineHandle, *, language: str) -> Job:
        """Start driving ``handle`` and return its job record.

        A new refresh supersedes any refresh still running.
        """

        self._evict_finished()
        if handle.kind == "refresh":
            for existing in self._jobs.values():
                if existing.kind == "refresh" and existing.status == "running":
                    logger.info("Refresh job %s superseded", existing.id)
                    existing.handle.cancel()

        job = Job(id=secrets.token_hex(8), handle=handle, language=language)
        self._jobs[job.id] = job
        job.task = asyncio.create_task(self._drive(job))
        return job

    async def _drive(self, job: Job) -> None:
        try:
            await job.handle.result()
        except OperationCancelled:
            job.status = "cancelled"
        except asyncio.CancelledError:
            job.status = "cancelled"
            raise
        except Exception as exc:  # pragma: no cover - background safety net
            logger.exception("Job %s failed: %s", job.id, exc)
            job.status = "failed"
            job.error = str(exc)
        else:
            job.status = "completed"
        finally:
            job.finished_at = datetime.utcnow()

    def _evict_finished(self) -> None:
        finished = sorted(
            (job for job in self._jobs.values() if job.finished_at is not None),
            key=lambda job: job.finished_at,
        )
        cutoff = datetime.utcnow() - self._retention
        overflow = len(finished) - self._max_finished
        for position, job in enumerate(finished):
            if position < overflow or job.finished_at < cutoff:
                logger.debug("Dropping finished job %s", job.id)
                self._jobs.pop(job.id, None)

    def get(self, job_id: str) -> Job | None:
        return self._jobs.get(job_id)

    def cancel(self, job_id: str) -> Job:
        job = self._jobs.get(job_id)
        if job is None:
            raise KeyError(job_id)
        job.handle.cancel()
        return job

    async def wait(self, job_id: str) -> Job:
        job = self._jobs.get(job_id)
        if job is None:
            raise KeyError(job_id)
        if job.task is not None:
            await asyncio.shield(job.task)
        return job

    async def shutdown(self) -> None:
        """Cancel every running job and wait for the tasks to settle."""

        running = [
            job
            for job in self._jobs.values()
            if job.task is not None and not job.task.done()
        ]
        for job in running:
            job.handle.cancel()
            job.task.cancel()
        for job in running:
            with suppress(asyncio.CancelledError):
                await job.task
            # A task cancelled before its first step never runs ``_drive``.
            if job.status == "running":
                job.status = "cancelled"
                job.finished_at = datetime.utcnow()
