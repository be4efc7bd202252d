"""Central orchestrator for recommendation runs.

``recommend`` answers from the recommendation cache when it can; on a miss
the cache's single-flight ``get_or_compute`` runs :meth:`_generate` at most
once per key:

    1. Select strategies from the request's strategy mix.
    2. Run them concurrently with an overall deadline; unfinished ones are
       cancelled and reported in ``failed_strategies``.
    3. Merge by book id with per-strategy weights.
    4. Drop completed/rejected books and request-filter misses.
    5. Rank (greedy diversity for multi-objective requests), truncate.
    6. Stamp generation/expiry times; the cache stores the result.

All strategies failing raises :class:`RecommendationUnavailable`; partial
success yields a ``degraded`` set.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from datetime import datetime, timedelta

import structlog

from bookrec.config.domain_knowledge import DEFAULT_STRATEGY_WEIGHTS
from bookrec.interfaces.book_catalog import IBookCatalog
from bookrec.interfaces.cache_provider import IRecommendationCache
from bookrec.interfaces.strategy import IStrategy
from bookrec.models.profile import UserProfile, utc_now
from bookrec.models.recommendation import RecommendationSet
from bookrec.models.request import RecommendationRequest, RecommendationType
from bookrec.pipeline.ranking import apply_filters, diversify, merge, sort_candidates
from bookrec.services.feedback_tracker import FeedbackTracker
from bookrec.services.profile_store import UserProfileStore
from bookrec.services.similarity_index import SimilarityIndex
from bookrec.utils.concurrency import fan_out
from bookrec.utils.errors import RecommendationUnavailable, ValidationError
from bookrec.utils.logging import bound_request, get_logger


class RecommendationOrchestrator:
    """Fans out to strategies and turns their outputs into a ranked set.

    All collaborators are injected; the cache in particular is passed in
    explicitly rather than living in module state.

    Parameters
    ----------
    strategies:
        Strategy name -> implementation.
    profiles:
        Profile store (read only here).
    index:
        Similarity index handed to every strategy.
    cache:
        Recommendation cache providing single-flight.
    catalog:
        Catalog used for filtering.
    feedback:
        Optional tracker supplying recently rejected books.
    strategy_weights:
        Merge weight per strategy; missing names weigh 1.0.
    timeout:
        Overall strategy deadline in seconds.
    ttl_seconds:
        Lifetime of a generated set.
    default_count:
        Count used when the request gives none.
    feedback_exclusion:
        How far back rejected feedback excludes a book.
    """

    def __init__(
        self,
        strategies: Mapping[str, IStrategy],
        profiles: UserProfileStore,
        index: SimilarityIndex,
        cache: IRecommendationCache,
        catalog: IBookCatalog,
        feedback: FeedbackTracker | None = None,
        strategy_weights: Mapping[str, float] | None = None,
        timeout: float = 3.0,
        ttl_seconds: int = 900,
        default_count: int = 10,
        feedback_exclusion: timedelta = timedelta(days=30),
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._strategies = dict(strategies)
        self._profiles = profiles
        self._index = index
        self._cache = cache
        self._catalog = catalog
        self._feedback = feedback
        self._weights = dict(DEFAULT_STRATEGY_WEIGHTS if strategy_weights is None else strategy_weights)
        self._timeout = timeout
        self._ttl = timedelta(seconds=ttl_seconds)
        self._default_count = default_count
        self._feedback_exclusion = feedback_exclusion
        self._clock = clock
        self._logger: structlog.BoundLogger = get_logger(__name__)

    @property
    def strategy_names(self) -> list[str]:
        return list(self._strategies)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def recommend(self, user_id: str, request: RecommendationRequest) -> RecommendationSet:
        """Return a ranked set for *user_id*, cached or freshly generated.

        Raises
        ------
        ValidationError
            Before any work, for an empty user id, an unregistered strategy
            or missing type-specific parameters.
        RecommendationUnavailable
            If every selected strategy failed or timed out.
        """
        self.validate(user_id, request)
        request_key = request.cache_key()
        with bound_request(user_id=user_id, request_key=request_key):
            return await self._cache.get_or_compute(
                user_id,
                request_key,
                lambda: self._generate(user_id, request, request_key),
                bypass=request.refresh,
            )

    def validate(self, user_id: str, request: RecommendationRequest) -> None:
        if not user_id or not user_id.strip():
            raise ValidationError("user_id must be a non-empty string")
        unknown = [name for name in request.strategy_mix() if name not in self._strategies]
        if unknown:
            raise ValidationError(f"unsupported strategies: {', '.join(unknown)}")
        mix = set(request.strategy_mix())
        if RecommendationType.SEQUENTIAL.value in mix and not request.last_book_id:
            raise ValidationError("sequential recommendations need last_book_id")
        if RecommendationType.GROUP.value in mix:
            if not request.group_members:
                raise ValidationError("group recommendations need group_members")
            if any(not member or not member.strip() for member in request.group_members):
                raise ValidationError("group member ids must be non-empty")

    # ------------------------------------------------------------------
    # Generation
    # ------------------------------------------------------------------

    async def _generate(
        self, user_id: str, request: RecommendationRequest, request_key: str
    ) -> RecommendationSet:
        profile = self._profiles.get(user_id)
        mix = request.strategy_mix()

        outcome = await fan_out(
            {name: self._strategies[name].generate(profile, self._index, request) for name in mix},
            timeout=self._timeout,
            logger=self._logger,
        )
        if not outcome.results:
            self._logger.error(
                "recommendation_unavailable",
                user_id=user_id,
                strategies=list(mix),
                timed_out=outcome.timed_out,
                errors=list(outcome.errors),
            )
            raise RecommendationUnavailable(
                f"all strategies failed: {', '.join(mix)}", provider_name="orchestrator"
            )

        # Strategies report raw scores on their own scales; the merge weights
        # are the only place they are traded off against each other.
        outputs = list(outcome.results.values())
        candidates = merge(outputs, self._weights)

        books = {b.book_id: b for b in await self._catalog.all_books()}
        excluded = await self._excluded_books(profile, request)
        candidates = apply_filters(candidates, books, request.filters, excluded)

        # Filtering runs before truncation so excluded books never take a slot.
        count = request.count or self._default_count
        diversity = request.objectives.get("diversity", 0.0)
        if RecommendationType.MULTI_OBJECTIVE.value in mix and diversity > 0:
            ranked = diversify(candidates, diversity, self._index.pair_similarity, count)
        else:
            ranked = sort_candidates(candidates)[:count]

        # A set built from partial results is still served and cached, but
        # flagged so callers can tell it apart from a full run.
        degraded = bool(outcome.failed) or any(o.degraded for o in outputs)
        warnings: list[str] = []
        for output in outputs:
            warnings.extend(w for w in output.warnings if w not in warnings)

        generated_at = self._clock()
        result = RecommendationSet(
            user_id=user_id,
            candidates=tuple(ranked),
            generated_at=generated_at,
            expires_at=generated_at + self._ttl,
            strategy_mix=mix,
            request_key=request_key,
            degraded=degraded,
            failed_strategies=tuple(outcome.failed),
            warnings=tuple(warnings),
        )
        self._logger.info(
            "recommendation_generated",
            user_id=user_id,
            request_key=request_key,
            candidates=len(ranked),
            excluded=len(excluded),
            degraded=degraded,
            failed_strategies=list(outcome.failed),
        )
        return result

    async def _excluded_books(self, profile: UserProfile, request: RecommendationRequest) -> frozenset[str]:
        """Completed books always; rejected ones unless the request opts in."""
        excluded = set(profile.completed_books)
        if not request.include_rejected:
            excluded |= profile.rejected_books
            if self._feedback is not None:
                excluded |= await self._feedback.rejected_books(profile.user_id, self._feedback_exclusion)
        return frozenset(excluded)
