"""Content-based similarity payloads computed with numpy.

Book similarity is the cosine similarity of catalog feature vectors; user
similarity is the cosine similarity of interest vectors.  Negative cosines
are clipped to 0 so every score lands in [0, 1].  Each item keeps at most
``top_n`` neighbours.
"""

from __future__ import annotations

from typing import Callable, Iterable, Sequence

import numpy as np

from bookrec.interfaces.book_catalog import IBookCatalog
from bookrec.interfaces.similarity_source import ISimilaritySource
from bookrec.models.profile import UserProfile
from bookrec.models.similarity import SimilarityPair, SimilarityPayload
from bookrec.utils.logging import get_logger


def cosine_pairs(
    ids: Sequence[str],
    vectors: Sequence[dict[str, float]],
    top_n: int = 20,
    min_score: float = 0.0,
) -> list[SimilarityPair]:
    """Return symmetric top-N cosine pairs for sparse dimension vectors.

    Pairs scoring ``<= min_score`` are dropped.  Output is sorted by
    ``(a, b)`` with ``a < b``.
    """
    dims = sorted({dim for vec in vectors for dim in vec})
    if len(ids) < 2 or not dims:
        return []

    column = {dim: i for i, dim in enumerate(dims)}
    matrix = np.zeros((len(ids), len(dims)), dtype=float)
    for row, vec in enumerate(vectors):
        for dim, weight in vec.items():
            matrix[row, column[dim]] = weight

    # All-zero rows stay zero after division and score 0 against everything.
    norms = np.linalg.norm(matrix, axis=1)
    norms[norms == 0.0] = 1.0
    unit = matrix / norms[:, None]
    sims = np.clip(unit @ unit.T, 0.0, 1.0)
    np.fill_diagonal(sims, 0.0)

    # A pair survives if either side keeps the other in its top N.
    best: dict[tuple[str, str], float] = {}
    for i in range(len(ids)):
        for j in np.argsort(-sims[i], kind="stable")[:top_n]:
            score = float(sims[i, j])
            if score <= min_score:
                continue
            a, b = sorted((ids[i], ids[int(j)]))
            best[(a, b)] = round(score, 6)

    return [SimilarityPair(a=a, b=b, score=score) for (a, b), score in sorted(best.items())]


class ContentSimilaritySource(ISimilaritySource):
    """Builds payloads from the catalog and the live profile snapshot.

    Parameters
    ----------
    catalog:
        Source of book feature vectors.
    profiles:
        Zero-argument callable returning the current profiles.
    top_n:
        Neighbours kept per item.
    """

    def __init__(
        self,
        catalog: IBookCatalog,
        profiles: Callable[[], Iterable[UserProfile]],
        top_n: int = 20,
        min_score: float = 0.0,
    ) -> None:
        self._catalog = catalog
        self._profiles = profiles
        self._top_n = top_n
        self._min_score = min_score
        self._logger = get_logger(__name__)

    async def build_payload(self) -> SimilarityPayload:
        books = await self._catalog.all_books()
        profiles = sorted(self._profiles(), key=lambda p: p.user_id)

        book_pairs = cosine_pairs(
            [b.book_id for b in books],
            [b.features for b in books],
            top_n=self._top_n,
            min_score=self._min_score,
        )
        user_pairs = cosine_pairs(
            [p.user_id for p in profiles],
            # Only positive interests: shared dislikes do not make readers alike.
            [{dim: w for dim, w in p.interests.items() if w > 0} for p in profiles],
            top_n=self._top_n,
            min_score=self._min_score,
        )
        self._logger.info(
            "similarity_payload_built",
            books=len(books),
            users=len(profiles),
            book_pairs=len(book_pairs),
            user_pairs=len(user_pairs),
        )
        return SimilarityPayload(books=tuple(book_pairs), users=tuple(user_pairs))

    def get_provider_name(self) -> str:
        return "content_similarity"
