"""Personalized strategy: interest/feature dot product, optionally refined
by the external scoring oracle.

The oracle runs under its own deadline.  Any timeout, transport error or
malformed answer falls back to the dot-product baseline for the affected
books and marks the output ``degraded``; the strategy itself never fails
because of the oracle.
"""

from __future__ import annotations

import math
from collections.abc import Mapping, Sequence

import structlog

from bookrec.interfaces.book_catalog import IBookCatalog
from bookrec.interfaces.scoring_oracle import IScoringOracle
from bookrec.interfaces.strategy import IStrategy
from bookrec.models.book import Book
from bookrec.models.profile import UserProfile
from bookrec.models.recommendation import ScoredBook, StrategyOutput
from bookrec.models.request import RecommendationRequest
from bookrec.services.similarity_index import SimilarityIndex
from bookrec.services.strategies.base import dot, match_tag, popularity_fallback, rank
from bookrec.utils.concurrency import call_with_timeout
from bookrec.utils.errors import ProviderUnavailableError, UpstreamTimeout
from bookrec.utils.logging import get_logger


class PersonalizedStrategy(IStrategy):
    """Dot-product scorer with optional oracle blending.

    Parameters
    ----------
    catalog:
        Book source.
    oracle:
        Optional scoring oracle; ``None`` or an unavailable oracle means
        baseline only.
    oracle_timeout:
        Deadline in seconds for one oracle call.
    blend:
        Oracle share of the blended score, in [0, 1].
    """

    name = "personalized"

    def __init__(
        self,
        catalog: IBookCatalog,
        oracle: IScoringOracle | None = None,
        oracle_timeout: float = 0.8,
        blend: float = 0.5,
    ) -> None:
        self._catalog = catalog
        self._oracle = oracle
        self._oracle_timeout = oracle_timeout
        self._blend = blend
        self._logger: structlog.BoundLogger = get_logger(__name__)

    async def generate(
        self,
        profile: UserProfile,
        index: SimilarityIndex,
        request: RecommendationRequest,
    ) -> StrategyOutput:
        books = await self._catalog.all_books()
        return await self.score_books(profile, profile.interests, books, strategy=self.name)

    async def score_books(
        self,
        profile: UserProfile,
        interests: Mapping[str, float],
        books: Sequence[Book],
        strategy: str,
    ) -> StrategyOutput:
        """Score *books* against *interests* (which may differ from the
        profile's own, e.g. an averaged group vector)."""
        if not any(weight > 0 for weight in interests.values()):
            self._logger.debug("personalized_cold_start", user_id=profile.user_id)
            return StrategyOutput(strategy=strategy, items=popularity_fallback(books))

        baseline: dict[str, float] = {}
        tags: dict[str, str] = {}
        for book in books:
            score = dot(interests, book.features)
            if score > 0:
                baseline[book.book_id] = score
                tags[book.book_id] = match_tag(interests, book.features)

        final, degraded = await self._refine(profile, baseline)
        items = rank(
            ScoredBook(book_id=book_id, raw_score=score, explanation=tags[book_id])
            for book_id, score in final.items()
        )
        return StrategyOutput(strategy=strategy, items=items, degraded=degraded)

    async def _refine(
        self, profile: UserProfile, baseline: dict[str, float]
    ) -> tuple[dict[str, float], bool]:
        """Blend oracle scores into *baseline*; returns (scores, degraded)."""
        if not baseline or self._oracle is None or not self._oracle.is_available():
            return baseline, False

        book_ids = sorted(baseline)
        try:
            answer = await call_with_timeout(
                self._oracle.score(profile, book_ids),
                timeout=self._oracle_timeout,
                provider_name=self._oracle.get_provider_name(),
            )
        except UpstreamTimeout:
            self._logger.warning("oracle_fallback", user_id=profile.user_id, reason="timeout")
            return baseline, True
        except ProviderUnavailableError as exc:
            self._logger.warning("oracle_fallback", user_id=profile.user_id, reason="error", error=str(exc))
            return baseline, True
        except Exception as exc:
            # A broken oracle never fails the strategy; the baseline stands.
            self._logger.warning(
                "oracle_fallback", user_id=profile.user_id, reason="error", error=repr(exc)
            )
            return baseline, True

        blended: dict[str, float] = {}
        invalid = 0
        for book_id, base in baseline.items():
            oracle_score = _valid_score(answer.get(book_id)) if isinstance(answer, dict) else None
            if oracle_score is None:
                invalid += 1
                blended[book_id] = base
            else:
                blended[book_id] = self._blend * oracle_score + (1.0 - self._blend) * base

        if invalid:
            self._logger.warning(
                "oracle_fallback",
                user_id=profile.user_id,
                reason="partial",
                invalid=invalid,
                requested=len(baseline),
            )
        return blended, invalid > 0


def _valid_score(value: object) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    value = float(value)
    if not math.isfinite(value) or not 0.0 <= value <= 1.0:
        return None
    return value
