"""Bulk similarity payloads consumed by ``SimilarityIndex.refresh``.

Pairs are symmetric: ``(a, b, s)`` implies ``(b, a, s)``.  Range and
self-pair checks happen in the index so that a bad payload is rejected as a
whole before anything is swapped.
"""

from __future__ import annotations

import hashlib
import json

from pydantic import BaseModel, ConfigDict


class SimilarityPair(BaseModel):
    model_config = ConfigDict(frozen=True)

    a: str
    b: str
    score: float


class SimilarityPayload(BaseModel):
    """Complete replacement content for the similarity index."""

    model_config = ConfigDict(frozen=True)

    books: tuple[SimilarityPair, ...] = ()
    users: tuple[SimilarityPair, ...] = ()

    def digest(self) -> str:
        """Order-independent content hash; equal payloads share a digest."""

        def _canonical(pairs: tuple[SimilarityPair, ...]) -> list[list]:
            rows = [[*sorted((p.a, p.b)), round(p.score, 9)] for p in pairs]
            return sorted(rows)

        encoded = json.dumps(
            {"books": _canonical(self.books), "users": _canonical(self.users)},
            separators=(",", ":"),
        )
        return hashlib.sha256(encoded.encode("utf-8")).hexdigest()
