"""Tests for genre filtering."""

from __future__ import annotations

from reelbatch.models import Genre, ResolvedSet
from reelbatch.services.filtering import apply_genre_filter

from support import make_record


def sample_records():
    return [
        make_record(1, "Raw ids only", genre_ids=[28, 12]),
        make_record(2, "Resolved genres only", genres=[Genre(id=18, name="Drama")]),
        make_record(3, "No genres"),
        make_record(4, "Both shapes", genre_ids=[35], genres=[Genre(id=28, name="Action")]),
    ]


def test_empty_selection_returns_every_record_in_order() -> None:
    records = sample_records()

    filtered = apply_genre_filter(records, set())

    assert filtered == records
    assert all(left is right for left, right in zip(filtered, records))


def test_matches_either_genre_representation() -> None:
    records = sample_records()

    assert [record.id for record in apply_genre_filter(records, {28})] == [1, 4]
    assert [record.id for record in apply_genre_filter(records, {18})] == [2]
    assert [record.id for record in apply_genre_filter(records, {35, 18})] == [2, 4]


def test_unknown_genre_hides_everything() -> None:
    assert apply_genre_filter(sample_records(), {10752}) == []


def test_filter_leaves_input_untouched() -> None:
    records = sample_records()
    resolved = ResolvedSet(records)
    before = list(resolved)

    apply_genre_filter(resolved, [28])

    assert list(resolved) == before
    assert len(records) == 4
