"""Merge, filter and rank strategy outputs into candidates.

Pure functions; the orchestrator supplies the catalog view, the exclusion
set and the similarity lookup.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping, Sequence

from bookrec.models.book import Book
from bookrec.models.recommendation import Candidate, StrategyOutput
from bookrec.models.request import RecommendationFilters


def merge(outputs: Sequence[StrategyOutput], weights: Mapping[str, float]) -> list[Candidate]:
    """Union candidates by book id.

    ``combined_score = sum(weights[strategy] * raw_score)`` over the
    strategies that scored the book; a strategy missing from *weights*
    counts with weight 1.0.  Explanations and strategies keep the order in
    which *outputs* are given.
    """
    scores: dict[str, dict[str, float]] = {}
    explanations: dict[str, list[str]] = {}
    for output in outputs:
        for item in output.items:
            per_book = scores.setdefault(item.book_id, {})
            if output.strategy in per_book:
                continue
            per_book[output.strategy] = item.raw_score
            tags = explanations.setdefault(item.book_id, [])
            if item.explanation and item.explanation not in tags:
                tags.append(item.explanation)

    return [
        Candidate(
            book_id=book_id,
            scores=per_book,
            combined_score=sum(weights.get(name, 1.0) * raw for name, raw in per_book.items()),
            explanations=tuple(explanations.get(book_id, ())),
            strategies=tuple(per_book),
        )
        for book_id, per_book in scores.items()
    ]


def passes_filters(book: Book, filters: RecommendationFilters) -> bool:
    if filters.genres is not None and book.genre.lower() not in {g.lower() for g in filters.genres}:
        return False
    if filters.languages is not None and book.language.lower() not in {lang.lower() for lang in filters.languages}:
        return False
    if filters.max_word_count is not None and book.word_count > filters.max_word_count:
        return False
    return True


def apply_filters(
    candidates: Iterable[Candidate],
    books: Mapping[str, Book],
    filters: RecommendationFilters,
    excluded: frozenset[str],
) -> list[Candidate]:
    """Drop excluded books, books missing from the catalog and filter misses."""
    kept = []
    for candidate in candidates:
        if candidate.book_id in excluded:
            continue
        book = books.get(candidate.book_id)
        if book is None or not passes_filters(book, filters):
            continue
        kept.append(candidate)
    return kept


def sort_candidates(candidates: Iterable[Candidate]) -> list[Candidate]:
    """Combined score descending, book id ascending."""
    return sorted(candidates, key=lambda c: (-c.combined_score, c.book_id))


def diversify(
    candidates: Sequence[Candidate],
    weight: float,
    similarity: Callable[[str, str], float],
    limit: int,
) -> list[Candidate]:
    """Greedy diversity-aware selection.

    At each step the next pick maximises::

        combined_score + weight * (1 - mean similarity to already picked)

    with ties going to the earlier candidate in (score desc, id asc)
    order.  Pairs unknown to *similarity* count as 0.  Each picked
    candidate's ``combined_score`` becomes the value it was picked with,
    and the picks are returned sorted by that value (book id breaks ties).
    A dissimilar pick can lower the mean similarity of later picks, so
    greedy order alone is not score order.
    """
    remaining = sort_candidates(candidates)
    picked: list[Candidate] = []
    while remaining and len(picked) < limit:
        best_index = 0
        best_value: float | None = None
        for i, candidate in enumerate(remaining):
            if picked:
                mean_sim = sum(similarity(candidate.book_id, p.book_id) for p in picked) / len(picked)
            else:
                mean_sim = 0.0
            value = candidate.combined_score + weight * (1.0 - mean_sim)
            # Strict ">" keeps the earlier candidate on ties.
            if best_value is None or value > best_value:
                best_index, best_value = i, value
        chosen = remaining.pop(best_index)
        picked.append(chosen.model_copy(update={"combined_score": best_value}))
    return sort_candidates(picked)
