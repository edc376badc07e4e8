"""Per-run bookkeeping: duplicate suppression and progress counters."""

from __future__ import annotations

from ..models import ProgressState


class Deduplicator:
    """Admit each movie id once per run."""

    def __init__(self) -> None:
        self._seen: set[int] = set()

    def admit(self, movie_id: int) -> bool:
        if movie_id in self._seen:
            return False
        self._seen.add(movie_id)
        return True

    @property
    def seen(self) -> frozenset[int]:
        return frozenset(self._seen)


class ProgressTracker:
    """Counts titles attempted in the current run.

    ``processed`` only moves forward and never exceeds ``total``.
    """

    def __init__(self, total: int = 0):
        self._state = ProgressState(0, max(0, total))

    @property
    def state(self) -> ProgressState:
        return self._state

    @property
    def processed(self) -> int:
        return self._state.processed

    @property
    def total(self) -> int:
        return self._state.total

    def reset(self, total: int) -> ProgressState:
        if total < 0:
            raise ValueError("Progress total must not be negative")
        self._state = ProgressState(0, total)
        return self._state

    def advance(self, count: int) -> ProgressState:
        if count < 0:
            raise ValueError("Progress can only move forward")
        processed = self._state.processed + count
        if processed > self._state.total:
            raise ValueError(
                f"Progress {processed} would exceed the run total {self._state.total}"
            )
        self._state = ProgressState(processed, self._state.total)
        return self._state

    @property
    def complete(self) -> bool:
        return self._state.processed >= self._state.total
