"""bookrec FastAPI application entry point.

Wires together providers, services and routes via dependency injection.
Loads configuration from ``.env`` and ``config/config.yaml`` and configures
structured logging.

Composition (leaves first):

    catalog, ratings, oracle, feedback store      (providers)
    cache, profile store, similarity index        (state)
    strategies -> orchestrator                    (pipeline)
    feedback tracker, freshness coordinator       (services)
    RecommendationService                         (facade used by routes)

The profile store's listener is the cache invalidation hook, so every
profile update invalidates that user's cached sets before returning.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import timedelta
from typing import Any

import httpx
import structlog
import uvicorn
from fastapi import FastAPI

from bookrec.api.middleware import (
    ErrorHandlingMiddleware,
    RequestLoggingMiddleware,
    configure_cors,
    register_exception_handlers,
)
from bookrec.api.routes import router as api_router
from bookrec.config.loader import load_config
from bookrec.config.settings import Settings
from bookrec.interfaces.book_catalog import IBookCatalog
from bookrec.interfaces.feedback_provider import IFeedbackStore
from bookrec.interfaces.ratings_provider import IRatingsProvider
from bookrec.interfaces.scoring_oracle import IScoringOracle
from bookrec.interfaces.strategy import IStrategy
from bookrec.pipeline.orchestrator import RecommendationOrchestrator
from bookrec.providers.cache.memory_cache import MemoryRecommendationCache
from bookrec.providers.catalog.memory_catalog import InMemoryBookCatalog
from bookrec.providers.feedback.memory_feedback_store import InMemoryFeedbackStore
from bookrec.providers.feedback.sqlite_feedback_store import SQLiteFeedbackStore
from bookrec.providers.oracle.http_oracle import HttpScoringOracle
from bookrec.providers.ratings.memory_ratings import InMemoryRatingsProvider
from bookrec.providers.similarity.content_similarity_source import ContentSimilaritySource
from bookrec.services.feedback_tracker import FeedbackTracker
from bookrec.services.freshness_service import FreshnessCoordinator
from bookrec.services.profile_store import UserProfileStore
from bookrec.services.recommendation_service import RecommendationService
from bookrec.services.similarity_index import SimilarityIndex
from bookrec.services.strategies import (
    ContextualStrategy,
    ExploratoryStrategy,
    GroupStrategy,
    MultiObjectiveStrategy,
    PersonalizedStrategy,
    SequentialStrategy,
    SocialStrategy,
)
from bookrec.utils.logging import configure_logging, get_logger

settings = Settings()
configure_logging(settings.log_level, json_output=settings.app_env == "production")
_logger: structlog.BoundLogger = get_logger(__name__)


# ---------------------------------------------------------------------------
# Component wiring
# ---------------------------------------------------------------------------


def _build_feedback_store(app_settings: Settings) -> IFeedbackStore:
    if app_settings.feedback_db_path:
        return SQLiteFeedbackStore(app_settings.feedback_db_path)
    return InMemoryFeedbackStore()


def _build_all(
    app_settings: Settings,
    *,
    catalog: IBookCatalog | None = None,
    ratings: IRatingsProvider | None = None,
    oracle: IScoringOracle | None = None,
    feedback_store: IFeedbackStore | None = None,
) -> dict[str, Any]:
    """Construct every component.  Keyword overrides replace providers (tests)."""
    config = load_config(settings=app_settings)

    # -- Shared resources --
    # One AsyncClient for every outbound call; closed in the lifespan's
    # shutdown half.
    http_client = httpx.AsyncClient(timeout=httpx.Timeout(max(app_settings.oracle_timeout_seconds, 1.0)))
    # -- Providers (test overrides win) --
    if catalog is None:
        catalog = InMemoryBookCatalog.from_file(app_settings.catalog_path)
    if ratings is None:
        ratings = InMemoryRatingsProvider()
    if oracle is None:
        oracle = HttpScoringOracle(http_client, app_settings.oracle_url)
    if feedback_store is None:
        feedback_store = _build_feedback_store(app_settings)

    # -- Cache and profiles --
    cache = MemoryRecommendationCache(
        max_size=app_settings.cache_max_size,
        ttl=app_settings.cache_ttl_seconds,
    )
    profiles = UserProfileStore(
        catalog,
        alpha=app_settings.profile_alpha,
        window_capacity=app_settings.profile_window_capacity,
    )
    # Every profile write invalidates the user's cached sets before the
    # write returns.
    profiles.register_listener(lambda user_id, _profile: cache.invalidate(user_id))

    # -- Similarity and freshness --
    # The index starts empty; the lifespan fills it before the first request.
    index = SimilarityIndex()
    tracker = FeedbackTracker(feedback_store)
    source = ContentSimilaritySource(catalog, profiles.all_profiles)
    freshness = FreshnessCoordinator(
        index,
        cache,
        source,
        dedup_ttl=app_settings.signal_dedup_ttl_seconds,
    )

    # -- Strategies --
    # The group strategy reuses the personalized scorer on an averaged
    # interest vector, so both share one oracle configuration.
    personalized = PersonalizedStrategy(
        catalog,
        oracle=oracle,
        oracle_timeout=app_settings.oracle_timeout_seconds,
        blend=app_settings.oracle_blend,
    )
    strategies: dict[str, IStrategy] = {
        "personalized": personalized,
        "contextual": ContextualStrategy(catalog, boosts=config["context_boosts"]),
        "sequential": SequentialStrategy(),
        "multi_objective": MultiObjectiveStrategy(catalog),
        "exploratory": ExploratoryStrategy(
            catalog,
            quantile=app_settings.exploration_quantile,
            sample_size=app_settings.default_count,
        ),
        "social": SocialStrategy(ratings, top_k=app_settings.social_top_k),
        "group": GroupStrategy(catalog, profiles, personalized),
    }

    # -- Orchestration and facade --
    orchestrator = RecommendationOrchestrator(
        strategies,
        profiles=profiles,
        index=index,
        cache=cache,
        catalog=catalog,
        feedback=tracker,
        strategy_weights=config["strategy_weights"],
        timeout=app_settings.orchestration_timeout_seconds,
        ttl_seconds=app_settings.cache_ttl_seconds,
        default_count=app_settings.default_count,
        feedback_exclusion=timedelta(days=app_settings.feedback_exclusion_days),
    )
    service = RecommendationService(orchestrator, profiles, tracker, cache, freshness, index, catalog)

    # -- Provider registry for /health --
    provider_registry: dict[str, Any] = {
        "catalog": catalog.get_provider_name(),
        "catalog_books": len(catalog) if hasattr(catalog, "__len__") else None,
        "feedback_store": feedback_store.get_provider_name(),
        "cache": cache.get_provider_name(),
        "oracle": oracle.is_available(),
        "strategies": list(strategies),
    }

    return {
        "config": config,
        "http_client": http_client,
        "catalog": catalog,
        "ratings": ratings,
        "oracle": oracle,
        "feedback_store": feedback_store,
        "recommendation_cache": cache,
        "profile_store": profiles,
        "similarity_index": index,
        "feedback_tracker": tracker,
        "freshness": freshness,
        "orchestrator": orchestrator,
        "recommendation_service": service,
        "provider_registry": provider_registry,
    }


# ---------------------------------------------------------------------------
# Application lifespan (startup / shutdown)
# ---------------------------------------------------------------------------


@asynccontextmanager
async def _lifespan(application: FastAPI):  # noqa: ANN201
    """Initialise all providers and services on startup, clean up on shutdown."""
    components = _build_all(application.state.settings, **application.state.overrides)

    for key, value in components.items():
        setattr(application.state, key, value)

    # Create the feedback table, then build the first similarity snapshot
    # so sequential and social strategies have neighbours from request one.
    await components["feedback_store"].initialize()
    await components["freshness"].refresh_index(reason="startup")

    _logger.info(
        "app_startup",
        version="0.1.0",
        environment=application.state.settings.app_env,
        strategies=components["provider_registry"]["strategies"],
        oracle=components["provider_registry"]["oracle"],
    )

    yield

    http_client: httpx.AsyncClient = components["http_client"]
    await http_client.aclose()
    _logger.info("app_shutdown", message="HTTP client closed")


# ---------------------------------------------------------------------------
# FastAPI application factory
# ---------------------------------------------------------------------------


def create_app(app_settings: Settings | None = None, **overrides: Any) -> FastAPI:
    """Build and configure the FastAPI application.

    Keyword *overrides* (``catalog``, ``ratings``, ``oracle``,
    ``feedback_store``) replace the providers built from settings.
    """
    application = FastAPI(
        title="bookrec API",
        version="0.1.0",
        description=(
            "Book recommendations combining personalized, contextual, sequential, "
            "multi-objective, exploratory and social strategies, kept fresh by "
            "interaction, feedback and training-pipeline signals."
        ),
        lifespan=_lifespan,
    )
    application.state.settings = app_settings or settings
    application.state.overrides = overrides

    # -- Middleware (order matters: last added = first executed) --
    application.add_middleware(ErrorHandlingMiddleware)
    application.add_middleware(RequestLoggingMiddleware)
    configure_cors(application)
    register_exception_handlers(application)

    application.include_router(api_router)
    return application


app = create_app()

# ---------------------------------------------------------------------------
# CLI entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    uvicorn.run(
        "bookrec.main:app",
        host=settings.app_host,
        port=settings.app_port,
        reload=(settings.app_env == "development"),
    )
