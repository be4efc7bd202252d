"""Book-to-book and user-to-user similarity, refreshed in bulk.

The index holds one immutable :class:`_Snapshot`.  ``refresh`` validates a
payload, builds a complete new snapshot off to the side and then swaps the
single reference, so readers either see the old index or the new one and
never block.  Reapplying a payload with the same content digest changes
nothing.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from types import MappingProxyType
from typing import Callable

import structlog

from bookrec.models.profile import utc_now
from bookrec.models.similarity import SimilarityPair, SimilarityPayload
from bookrec.utils.errors import ValidationError
from bookrec.utils.logging import get_logger

_Neighbours = tuple[tuple[str, float], ...]


@dataclass(frozen=True)
class _Snapshot:
    books: Mapping[str, _Neighbours] = field(default_factory=dict)
    users: Mapping[str, _Neighbours] = field(default_factory=dict)
    book_pairs: Mapping[tuple[str, str], float] = field(default_factory=dict)
    digest: str = ""
    refreshed_at: datetime | None = None


def _build_side(
    pairs: tuple[SimilarityPair, ...], kind: str
) -> tuple[Mapping[str, _Neighbours], Mapping[tuple[str, str], float]]:
    """Validate *pairs* and build sorted neighbour lists plus a pair map."""
    pair_scores: dict[tuple[str, str], float] = {}
    for pair in pairs:
        if not pair.a or not pair.b:
            raise ValidationError(f"{kind} similarity pair has an empty id")
        if pair.a == pair.b:
            raise ValidationError(f"{kind} similarity self-pair for {pair.a!r}")
        if not 0.0 <= pair.score <= 1.0:
            raise ValidationError(
                f"{kind} similarity score {pair.score} for ({pair.a!r}, {pair.b!r}) outside [0, 1]"
            )
        key = (pair.a, pair.b) if pair.a < pair.b else (pair.b, pair.a)
        pair_scores[key] = pair.score

    neighbours: dict[str, list[tuple[str, float]]] = {}
    for (a, b), score in pair_scores.items():
        neighbours.setdefault(a, []).append((b, score))
        neighbours.setdefault(b, []).append((a, score))

    ordered = {
        item_id: tuple(sorted(entries, key=lambda e: (-e[1], e[0])))
        for item_id, entries in neighbours.items()
    }
    return MappingProxyType(ordered), MappingProxyType(pair_scores)


class SimilarityIndex:
    """Read-mostly similarity store with copy-on-write refresh."""

    def __init__(self, clock: Callable[[], datetime] = utc_now) -> None:
        self._clock = clock
        self._snapshot = _Snapshot()
        self._logger: structlog.BoundLogger = get_logger(__name__)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def book_similarity(self, book_id: str, limit: int | None = None) -> _Neighbours:
        """Neighbours of *book_id*, score descending, ties by id ascending."""
        neighbours = self._snapshot.books.get(book_id, ())
        return neighbours if limit is None else neighbours[:limit]

    def user_similarity(self, user_id: str, limit: int | None = None) -> _Neighbours:
        """Most similar users to *user_id*, same ordering as books."""
        neighbours = self._snapshot.users.get(user_id, ())
        return neighbours if limit is None else neighbours[:limit]

    def pair_similarity(self, book_a: str, book_b: str) -> float:
        """Similarity of two books; 0.0 for unknown pairs."""
        if book_a == book_b:
            return 1.0
        key = (book_a, book_b) if book_a < book_b else (book_b, book_a)
        return self._snapshot.book_pairs.get(key, 0.0)

    @property
    def digest(self) -> str:
        return self._snapshot.digest

    @property
    def refreshed_at(self) -> datetime | None:
        return self._snapshot.refreshed_at

    # ------------------------------------------------------------------
    # Refresh
    # ------------------------------------------------------------------

    def refresh(self, payload: SimilarityPayload) -> bool:
        """Replace the index content with *payload*.

        Returns
        -------
        bool
            ``True`` if the content changed, ``False`` when the payload
            matches the current digest.

        Raises
        ------
        ValidationError
            If any pair is a self-pair or scores outside [0, 1].  The
            current snapshot is left untouched.
        """
        digest = payload.digest()
        current = self._snapshot
        if digest == current.digest:
            self._logger.info("similarity_refresh_unchanged", digest=digest[:12])
            return False

        books, book_pairs = _build_side(payload.books, "book")
        users, _ = _build_side(payload.users, "user")
        self._snapshot = _Snapshot(
            books=books,
            users=users,
            book_pairs=book_pairs,
            digest=digest,
            refreshed_at=self._clock(),
        )
        self._logger.info(
            "similarity_refreshed",
            digest=digest[:12],
            books=len(books),
            users=len(users),
        )
        return True
