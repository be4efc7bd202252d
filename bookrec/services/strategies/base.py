"""Scoring helpers shared by the strategy modules."""

from __future__ import annotations

from collections.abc import Iterable, Mapping

from bookrec.models.book import Book
from bookrec.models.recommendation import ScoredBook

POPULAR_TAG = "popular"


def dot(interests: Mapping[str, float], features: Mapping[str, float]) -> float:
    """Dot product over the dimensions both vectors carry."""
    if len(features) < len(interests):
        return sum(weight * interests.get(dim, 0.0) for dim, weight in features.items())
    return sum(weight * features.get(dim, 0.0) for dim, weight in interests.items())


def top_contributor(interests: Mapping[str, float], features: Mapping[str, float]) -> str | None:
    """Dimension contributing most to ``dot(interests, features)``."""
    best: tuple[float, str] | None = None
    for dim, feature in features.items():
        contribution = interests.get(dim, 0.0) * feature
        if contribution <= 0:
            continue
        if best is None or contribution > best[0] or (contribution == best[0] and dim < best[1]):
            best = (contribution, dim)
    return best[1] if best else None


def match_tag(interests: Mapping[str, float], features: Mapping[str, float]) -> str:
    dim = top_contributor(interests, features)
    return f"matches {dim}" if dim else "matches your interests"


def rank(items: Iterable[ScoredBook]) -> tuple[ScoredBook, ...]:
    """Order by raw score descending, ties by book id ascending."""
    return tuple(sorted(items, key=lambda item: (-item.raw_score, item.book_id)))


def popularity_fallback(books: Iterable[Book], tag: str = POPULAR_TAG) -> tuple[ScoredBook, ...]:
    """Score books by popularity normalized to [0, 1] (cold-start)."""
    books = list(books)
    peak = max((b.popularity for b in books), default=0.0)
    if peak <= 0:
        return rank(ScoredBook(book_id=b.book_id, raw_score=0.0, explanation=tag) for b in books)
    return rank(
        ScoredBook(book_id=b.book_id, raw_score=b.popularity / peak, explanation=tag)
        for b in books
    )
