"""Genre filtering of resolved movie sets."""

from __future__ import annotations

from typing import Collection, Iterable

from ..models import MovieRecord


def apply_genre_filter(
    records: Iterable[MovieRecord], selected_genre_ids: Collection[int]
) -> list[MovieRecord]:
    """Return the records matching any selected genre, in their original order.

    An empty selection means no filter. Records are matched on both their raw
    ``genre_ids`` and their resolved ``genres`` entries. The input is never
    modified.
    """

    if not selected_genre_ids:
        return list(records)
    selection = frozenset(selected_genre_ids)
    return [record for record in records if not record.genre_id_set().isdisjoint(selection)]
