"""Tests for the collection service facade and the save sink."""

from __future__ import annotations

import pytest

from reelbatch.database import Database
from reelbatch.errors import AlreadyInCollection, EmptySelection, OperationCancelled
from reelbatch.models import ResolvedSet, TitleCandidate
from reelbatch.services.collection import CollectionService
from reelbatch.services.store import CollectionStore

from support import FakeProvider, build_settings, instant_retry, make_record


def build_service(provider: FakeProvider, store: CollectionStore | None = None, **overrides):
    retry, _ = instant_retry()
    return CollectionService(build_settings(**overrides), provider, store, retry=retry)


def test_start_resolution_rejects_empty_selection_immediately() -> None:
    service = build_service(FakeProvider())

    with pytest.raises(EmptySelection):
        service.start_resolution([TitleCandidate(id=0, text="Alien", selected=False)], "en")


@pytest.mark.anyio("asyncio")
async def test_resolution_handle_reports_progress_and_result() -> None:
    provider = FakeProvider({"Inception": [27205], "Heat": [949], "Alien": [348]})
    service = build_service(provider, BATCH_SIZE=2)
    titles = [
        TitleCandidate(id=0, text="Inception"),
        TitleCandidate(id=1, text="Heat"),
        TitleCandidate(id=2, text="Skipped", selected=False),
        TitleCandidate(id=3, text="Alien"),
    ]

    handle = service.start_resolution(titles, "fr")
    assert handle.progress.processed == 0
    assert handle.progress.total == 3

    processed = [event.progress.processed async for event in handle]
    result = await handle.result()

    assert processed == [2, 3]
    assert result.ids() == [27205, 949, 348]
    assert handle.finished is True
    assert {language for _, language in provider.detail_calls} == {"fr-US"}


@pytest.mark.anyio("asyncio")
async def test_refresh_handle_starts_from_current_set() -> None:
    provider = FakeProvider()
    service = build_service(provider)
    current = ResolvedSet([make_record(1), make_record(2)])

    handle = service.start_localization_refresh(current, "es")
    assert handle.snapshot is current

    final = await handle.result()

    assert final.ids() == [1, 2]
    assert final.get(1).title == "Movie 1 [es-US]"


@pytest.mark.anyio("asyncio")
async def test_cancelled_refresh_handle_keeps_current_snapshot() -> None:
    service = build_service(FakeProvider())
    current = ResolvedSet([make_record(1)])

    handle = service.start_localization_refresh(current, "es")
    handle.cancel()

    with pytest.raises(OperationCancelled):
        await handle.result()
    assert handle.snapshot == current


@pytest.mark.anyio("asyncio")
async def test_new_refresh_cancels_the_previous_one() -> None:
    provider = FakeProvider()
    service = build_service(provider, BATCH_SIZE=1)
    current = ResolvedSet([make_record(movie_id) for movie_id in (1, 2, 3)])

    first = service.start_localization_refresh(current, "fr")
    first_event = await first.__anext__()
    second = service.start_localization_refresh(current, "de")

    assert first.token.cancelled
    assert not second.token.cancelled
    with pytest.raises(OperationCancelled):
        await first.__anext__()
    assert first.snapshot == first_event.snapshot
    assert first.snapshot.get(1).title == "Movie 1 [fr-US]"
    assert first.snapshot.get(2).title == "Movie 2"

    final = await second.result()

    assert [record.title for record in final] == [
        "Movie 1 [de-US]",
        "Movie 2 [de-US]",
        "Movie 3 [de-US]",
    ]
    assert [call for call in provider.detail_calls if call[1] == "fr-US"] == [(1, "fr-US")]


@pytest.mark.anyio("asyncio")
async def test_add_movie_appends_fetched_record() -> None:
    provider = FakeProvider()
    service = build_service(provider)
    current = ResolvedSet([make_record(1)])

    updated = await service.add_movie(current, 603, "it")

    assert updated.ids() == [1, 603]
    assert updated.get(603).title == "Movie 603 [it-US]"


@pytest.mark.anyio("asyncio")
async def test_add_movie_rejects_duplicates_without_fetching() -> None:
    provider = FakeProvider()
    service = build_service(provider)
    current = ResolvedSet([make_record(1, "Inception")])

    with pytest.raises(AlreadyInCollection, match='"Inception" is already in your list.'):
        await service.add_movie(current, 1)
    assert provider.detail_calls == []


def test_collection_edits_return_new_snapshots() -> None:
    service = build_service(FakeProvider())
    current = ResolvedSet([make_record(1), make_record(2), make_record(3)])

    assert service.remove_movie(current, 2).ids() == [1, 3]
    assert service.reorder(current, [3, 2, 1]).ids() == [3, 2, 1]
    edited = service.replace_movie(current, make_record(2, "My title"))
    assert edited.get(2).title == "My title"
    assert current.get(2).title == "Movie 2"


def test_filter_by_genres_delegates_to_filter() -> None:
    service = build_service(FakeProvider())
    records = [make_record(1, genre_ids=[28]), make_record(2, genre_ids=[18])]

    assert [record.id for record in service.filter_by_genres(records, [18])] == [2]
    assert service.filter_by_genres(records, []) == records


@pytest.mark.anyio("asyncio")
async def test_search_and_genres_use_the_locale() -> None:
    provider = FakeProvider({"Heat": [949]})
    service = build_service(provider, DEFAULT_LANGUAGE="DE")

    results = await service.search_titles("  Heat ")
    genres = await service.list_genres()

    assert [result.id for result in results] == [949]
    assert genres[0].name == "Action [de-US]"
    assert await service.search_titles("   ") == []


@pytest.mark.anyio("asyncio")
async def test_save_and_load_round_trip(tmp_path) -> None:
    database = Database(f"sqlite+aiosqlite:///{tmp_path / 'collections.db'}")
    await database.create_all()
    try:
        service = build_service(FakeProvider(), CollectionStore(database.session_factory))
        current = ResolvedSet([make_record(2, "Second"), make_record(1, "First", budget=10)])

        collection_id = await service.save(current, "FR", name="Weekend")
        stored = await service.load(collection_id)
        missing = await service.load("does-not-exist")
    finally:
        await database.dispose()

    assert stored is not None
    assert stored.name == "Weekend"
    assert stored.language == "fr"
    assert stored.movies.ids() == [2, 1]
    assert stored.movies.get(1).model_dump()["budget"] == 10
    assert missing is None


@pytest.mark.anyio("asyncio")
async def test_save_without_store_is_an_error() -> None:
    service = build_service(FakeProvider())

    with pytest.raises(RuntimeError):
        await service.save(ResolvedSet())
