"""FastAPI routes for bookrec.

Thin adapter over :class:`~bookrec.services.recommendation_service.RecommendationService`.
Dependencies are resolved from ``app.state`` (populated in
``bookrec.main._build_all``) through ``Annotated[..., Depends(...)]``.

    Endpoint                                   Method  Description
    ──────────────────────────────────────────────────────────────────
    /api/v1/users/{user_id}/recommendations    POST    Ranked recommendations
    /api/v1/users/{user_id}/interactions       POST    Stream an interaction
    /api/v1/users/{user_id}/feedback           POST    Record feedback
    /api/v1/users/{user_id}/accuracy           GET     Windowed accuracy
    /api/v1/users/{user_id}/refresh            POST    Invalidate cached sets
    /api/v1/users/{user_id}/profile            GET     Current interest profile
    /api/v1/users/{user_id}/preferences        PUT     Pin stated preferences
    /api/v1/books/{book_id}/similar            GET     Nearest neighbour books
    /api/v1/metrics/accuracy                   GET     Accuracy over all users
    /api/v1/signals                            POST    Training-pipeline signal
    /api/v1/health                             GET     Health + components
"""

from __future__ import annotations

from typing import Annotated, Any

import structlog
from fastapi import APIRouter, BackgroundTasks, Body, Depends, Query, Request
from fastapi.responses import JSONResponse

from bookrec.api.schemas import (
    AccuracyResponse,
    ErrorResponse,
    FeedbackRequest,
    FeedbackResponse,
    HealthResponse,
    InteractionRequest,
    PreferencesRequest,
    ProfileResponse,
    RecommendationRequestBody,
    RecommendationResponse,
    RefreshResponse,
    SignalResponse,
    SimilarBooksResponse,
)
from bookrec.models.signals import SignalStatus
from bookrec.services.recommendation_service import RecommendationService
from bookrec.utils.logging import get_logger

_logger: structlog.BoundLogger = get_logger(__name__)

router = APIRouter(prefix="/api/v1")

_VERSION = "0.1.0"


def _get_service(request: Request) -> RecommendationService:
    """Return the recommendation service from application state."""
    return request.app.state.recommendation_service


ServiceDep = Annotated[RecommendationService, Depends(_get_service)]


# ---------------------------------------------------------------------------
# Recommendations
# ---------------------------------------------------------------------------


@router.post(
    "/users/{user_id}/recommendations",
    response_model=RecommendationResponse,
    responses={400: {"model": ErrorResponse}, 503: {"model": ErrorResponse}},
    summary="Ranked recommendations for a user",
)
async def recommend(
    user_id: str,
    service: ServiceDep,
    body: RecommendationRequestBody | None = None,
) -> RecommendationResponse:
    request = (body or RecommendationRequestBody()).to_request()
    result = await service.recommend(user_id, request)
    return RecommendationResponse.from_set(result)


@router.post(
    "/users/{user_id}/refresh",
    response_model=RefreshResponse,
    summary="Drop cached recommendations for a user",
)
async def refresh(user_id: str, service: ServiceDep) -> RefreshResponse:
    service.refresh(user_id)
    return RefreshResponse(user_id=user_id)


# ---------------------------------------------------------------------------
# Profiles, interactions & feedback
# ---------------------------------------------------------------------------


@router.get(
    "/users/{user_id}/profile",
    response_model=ProfileResponse,
    responses={400: {"model": ErrorResponse}},
    summary="Current interest profile (empty for unknown users)",
)
async def get_profile(user_id: str, service: ServiceDep) -> ProfileResponse:
    return ProfileResponse.from_profile(service.get_profile(user_id))


@router.put(
    "/users/{user_id}/preferences",
    response_model=ProfileResponse,
    responses={400: {"model": ErrorResponse}},
    summary="Pin stated genre and author preferences",
)
async def update_preferences(user_id: str, body: PreferencesRequest, service: ServiceDep) -> ProfileResponse:
    profile = await service.update_preferences(user_id, body.to_update())
    return ProfileResponse.from_profile(profile)


@router.post(
    "/users/{user_id}/interactions",
    response_model=ProfileResponse,
    responses={400: {"model": ErrorResponse}},
    summary="Fold an interaction into the user's profile",
)
async def apply_interaction(user_id: str, body: InteractionRequest, service: ServiceDep) -> ProfileResponse:
    profile = await service.apply_interaction(user_id, body.to_event())
    return ProfileResponse.from_profile(profile)


@router.post(
    "/users/{user_id}/feedback",
    response_model=FeedbackResponse,
    responses={400: {"model": ErrorResponse}},
    summary="Record feedback on a recommended book",
)
async def record_feedback(user_id: str, body: FeedbackRequest, service: ServiceDep) -> FeedbackResponse:
    is_new = await service.record_feedback(user_id, body.book_id, body.action, body.timestamp)
    return FeedbackResponse(recorded=is_new, duplicate=not is_new)


@router.get(
    "/users/{user_id}/accuracy",
    response_model=AccuracyResponse,
    summary="Acceptance and click-through over a trailing window",
)
async def accuracy(
    user_id: str,
    service: ServiceDep,
    window_days: Annotated[int, Query(ge=1, le=365)] = 30,
) -> AccuracyResponse:
    metric = await service.accuracy(user_id, window_days)
    return AccuracyResponse.from_metric(metric)


@router.get(
    "/metrics/accuracy",
    response_model=AccuracyResponse,
    summary="Acceptance and click-through pooled over every user",
)
async def overall_accuracy(
    service: ServiceDep,
    window_days: Annotated[int, Query(ge=1, le=365)] = 30,
) -> AccuracyResponse:
    metric = await service.overall_accuracy(window_days)
    return AccuracyResponse.from_metric(metric)


# ---------------------------------------------------------------------------
# Books
# ---------------------------------------------------------------------------


@router.get(
    "/books/{book_id}/similar",
    response_model=SimilarBooksResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Books most similar to a catalog book",
)
async def similar_books(
    book_id: str,
    service: ServiceDep,
    limit: Annotated[int, Query(ge=1, le=50)] = 10,
) -> SimilarBooksResponse:
    pairs = await service.similar_books(book_id, limit)
    return SimilarBooksResponse.from_pairs(book_id, pairs)


# ---------------------------------------------------------------------------
# Signals
# ---------------------------------------------------------------------------


@router.post(
    "/signals",
    response_model=SignalResponse,
    status_code=202,
    responses={400: {"model": ErrorResponse}},
    summary="Training, embedding or similarity completion signal",
)
async def receive_signal(
    payload: Annotated[dict[str, Any], Body()],
    service: ServiceDep,
    background_tasks: BackgroundTasks,
) -> Any:
    status, signal = service.accept_signal(payload)
    if status is SignalStatus.REJECTED or signal is None:
        body = ErrorResponse(error="ValidationError", detail="malformed signal")
        return JSONResponse(status_code=400, content=body.model_dump())
    if status is SignalStatus.ACCEPTED:
        background_tasks.add_task(service.process_signal, signal)
    return SignalResponse(status=status.value)


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------


@router.get("/health", response_model=HealthResponse, summary="Application health check")
async def health_check(request: Request) -> HealthResponse:
    """Return application health, version and component status."""
    components: dict[str, Any] = dict(getattr(request.app.state, "provider_registry", {}))
    index = getattr(request.app.state, "similarity_index", None)
    if index is not None:
        components["similarity_refreshed_at"] = (
            index.refreshed_at.isoformat() if index.refreshed_at else None
        )
    catalog_size = components.get("catalog_books", 0)
    status = "healthy" if catalog_size else "degraded"
    return HealthResponse(status=status, version=_VERSION, components=components)
