"""Pydantic models and snapshot containers describing movie payloads."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Iterator, Sequence

from pydantic import BaseModel, ConfigDict, field_validator


class Genre(BaseModel):
    """A TMDB genre as returned by the genre list and details endpoints."""

    model_config = ConfigDict(frozen=True)

    id: int
    name: str = ""


class TitleCandidate(BaseModel):
    """A free-text title taken from the uploaded title list."""

    id: int
    text: str
    selected: bool = True


class SearchCandidate(BaseModel):
    """First-page search hit for a title query."""

    model_config = ConfigDict(extra="allow", frozen=True)

    id: int
    title: str = ""
    overview: str | None = None
    release_date: str | None = None
    poster_path: str | None = None
    backdrop_path: str | None = None
    popularity: float | None = None
    genre_ids: tuple[int, ...] = ()


class MovieRecord(BaseModel):
    """Enriched movie snapshot keyed by its TMDB identifier.

    Records are immutable: a locale refresh or a manual edit produces a new
    record which replaces the previous one by ``id``. Fields the model does
    not name explicitly (budget, production companies, ...) are kept as extras
    so the saved payload matches what TMDB returned.
    """

    model_config = ConfigDict(extra="allow", frozen=True)

    id: int
    title: str = ""
    original_title: str | None = None
    overview: str | None = None
    tagline: str | None = None
    status: str | None = None
    release_date: str | None = None
    vote_average: float | None = None
    vote_count: int | None = None
    popularity: float | None = None
    runtime: int | None = None
    poster_path: str | None = None
    backdrop_path: str | None = None
    imdb_id: str | None = None
    original_language: str | None = None
    genre_ids: tuple[int, ...] = ()
    genres: tuple[Genre, ...] = ()

    @field_validator("genre_ids", mode="before")
    @classmethod
    def _coerce_genre_ids(cls, value: Any) -> Any:
        if value is None:
            return ()
        return value

    @field_validator("genres", mode="before")
    @classmethod
    def _coerce_genres(cls, value: Any) -> Any:
        if value is None:
            return ()
        return value

    def genre_id_set(self) -> frozenset[int]:
        """Return genre identifiers from both the raw and resolved shapes."""

        return frozenset(self.genre_ids) | {genre.id for genre in self.genres}


class ResolvedSet:
    """Ordered, id-unique snapshot of movie records.

    Insertion order is the order of first acceptance (or whatever order the
    user arranged). Every mutating helper returns a new snapshot, so a
    consumer can keep rendering an older snapshot while a run is in flight.
    """

    __slots__ = ("_records", "_index")

    def __init__(self, records: Iterable[MovieRecord] = ()):
        ordered = tuple(records)
        index: dict[int, int] = {}
        for position, record in enumerate(ordered):
            if record.id in index:
                raise ValueError(f"Duplicate movie id {record.id} in resolved set")
            index[record.id] = position
        self._records = ordered
        self._index = index

    @property
    def records(self) -> tuple[MovieRecord, ...]:
        return self._records

    def ids(self) -> list[int]:
        return [record.id for record in self._records]

    def get(self, movie_id: int) -> MovieRecord | None:
        position = self._index.get(movie_id)
        if position is None:
            return None
        return self._records[position]

    def with_record(self, record: MovieRecord) -> "ResolvedSet":
        """Return a snapshot with ``record`` appended."""

        if record.id in self._index:
            raise ValueError(f"Movie {record.id} is already in the resolved set")
        return ResolvedSet((*self._records, record))

    def replace(self, record: MovieRecord) -> "ResolvedSet":
        """Swap the record sharing ``record.id`` while keeping its position."""

        position = self._index.get(record.id)
        if position is None:
            raise KeyError(record.id)
        updated = list(self._records)
        updated[position] = record
        return ResolvedSet(updated)

    def without(self, movie_id: int) -> "ResolvedSet":
        return ResolvedSet(record for record in self._records if record.id != movie_id)

    def reordered(self, movie_ids: Sequence[int]) -> "ResolvedSet":
        """Return the same records arranged in the order of ``movie_ids``."""

        if len(movie_ids) != len(self._records) or set(movie_ids) != set(self._index):
            raise ValueError("Reordering must list every movie id exactly once")
        return ResolvedSet(self._records[self._index[movie_id]] for movie_id in movie_ids)

    def to_payload(self) -> list[dict[str, Any]]:
        return [record.model_dump(mode="json") for record in self._records]

    @classmethod
    def from_payload(cls, payload: Iterable[dict[str, Any]]) -> "ResolvedSet":
        return cls(MovieRecord.model_validate(entry) for entry in payload)

    def __contains__(self, movie_id: object) -> bool:
        return movie_id in self._index

    def __iter__(self) -> Iterator[MovieRecord]:
        return iter(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ResolvedSet):
            return NotImplemented
        return self._records == other._records

    def __repr__(self) -> str:
        return f"ResolvedSet({len(self._records)} records)"


@dataclass(frozen=True, slots=True)
class ProgressState:
    """Titles attempted so far against the size of the run."""

    processed: int = 0
    total: int = 0

    @property
    def fraction(self) -> float:
        if self.total <= 0:
            return 0.0
        return self.processed / self.total


@dataclass(frozen=True, slots=True)
class ProgressEvent:
    """Emitted at every batch boundary of a run or refresh."""

    progress: ProgressState
    batch_size: int
    updated: int
    snapshot: ResolvedSet
    final: bool = False

