"""Persistence of finished movie collections."""

from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..db_models import SavedCollection
from ..models import ResolvedSet

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class StoredCollection:
    """A saved collection read back from the store."""

    id: str
    name: str | None
    language: str
    movies: ResolvedSet
    created_at: datetime


class CollectionStore:
    """Save sink for resolved sets."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def save(
        self, movies: ResolvedSet, *, language: str, name: str | None = None
    ) -> str:
        """Persist ``movies`` as an opaque payload and return its identifier."""

        collection_id = secrets.token_hex(8)
        async with self._session_factory() as session:
            session.add(
                SavedCollection(
                    id=collection_id,
                    name=name,
                    language=language,
                    movie_count=len(movies),
                    payload=movies.to_payload(),
                    created_at=datetime.utcnow(),
                )
            )
            await session.commit()
        logger.info("Saved %s movie(s) as collection %s", len(movies), collection_id)
        return collection_id

    async def load(self, collection_id: str) -> StoredCollection | None:
        async with self._session_factory() as session:
            row = await session.get(SavedCollection, collection_id)
            if row is None:
                return None
            return StoredCollection(
                id=row.id,
                name=row.name,
                language=row.language,
                movies=ResolvedSet.from_payload(row.payload or []),
                created_at=row.created_at,
            )
