"""Utility helpers for the ReelBatch service."""

from __future__ import annotations

import re
from typing import Iterator, Sequence, TypeVar

from .models import TitleCandidate

T = TypeVar("T")

LOCALE_RE = re.compile(r"^[A-Za-z]{2,3}-[A-Za-z]{2}$")


def parse_title_lines(text: str) -> list[TitleCandidate]:
    """Turn a one-title-per-line blob into selected title candidates."""

    lines = [line.strip() for line in text.splitlines()]
    return [
        TitleCandidate(id=index, text=line, selected=True)
        for index, line in enumerate(line for line in lines if line)
    ]


def build_locale(language: str, region: str = "US") -> str:
    """Return a TMDB language tag such as ``fr-US`` for a bare language code."""

    cleaned = (language or "").strip()
    if not cleaned:
        raise ValueError("A language code is required")
    if LOCALE_RE.match(cleaned):
        code, country = cleaned.split("-", 1)
        return f"{code.lower()}-{country.upper()}"
    if "-" in cleaned:
        raise ValueError(f"Unsupported locale {language!r}")
    return f"{cleaned.lower()}-{region.upper()}"


def chunked(items: Sequence[T], size: int) -> Iterator[Sequence[T]]:
    """Yield consecutive slices of at most ``size`` items."""

    if size < 1:
        raise ValueError("Batch size must be a positive integer")
    for start in range(0, len(items), size):
        yield items[start : start + size]
