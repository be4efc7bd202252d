"""Request and response schemas for the bookrec HTTP API.

These are the wire shapes; they convert to and from the domain models in
``bookrec.models`` so that the domain stays free of HTTP concerns.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from bookrec.models.feedback import AccuracyMetric, FeedbackAction
from bookrec.models.book import Book
from bookrec.models.profile import InteractionEvent, PreferenceUpdate, SignalType, UserProfile
from bookrec.models.recommendation import RecommendationSet
from bookrec.models.request import (
    RecommendationContext,
    RecommendationFilters,
    RecommendationRequest,
    RecommendationType,
)


# ---------------------------------------------------------------------------
# Recommendations
# ---------------------------------------------------------------------------
class RecommendationRequestBody(BaseModel):
    """Body of ``POST /users/{user_id}/recommendations``."""

    type: RecommendationType = RecommendationType.PERSONALIZED
    count: int | None = Field(default=None, ge=1, le=50)
    filters: RecommendationFilters = Field(default_factory=RecommendationFilters)
    context: RecommendationContext = Field(default_factory=RecommendationContext)
    objectives: dict[str, float] = Field(default_factory=dict)
    group_members: list[str] = Field(default_factory=list)
    last_book_id: str | None = None
    additional_strategies: list[RecommendationType] = Field(default_factory=list)
    include_rejected: bool = False
    seed: int | None = None
    refresh: bool = False

    def to_request(self) -> RecommendationRequest:
        return RecommendationRequest.model_validate(self.model_dump())


class CandidateResponse(BaseModel):
    book_id: str
    combined_score: float
    explanations: list[str]
    strategies: list[str]
    scores: dict[str, float]


class RecommendationResponse(BaseModel):
    """Ranked recommendations for one user."""

    user_id: str
    candidates: list[CandidateResponse]
    generated_at: datetime
    expires_at: datetime
    strategy_mix: list[str]
    degraded: bool
    failed_strategies: list[str]
    warnings: list[str]

    @classmethod
    def from_set(cls, result: RecommendationSet) -> RecommendationResponse:
        return cls(
            user_id=result.user_id,
            candidates=[
                CandidateResponse(
                    book_id=c.book_id,
                    combined_score=c.combined_score,
                    explanations=list(c.explanations),
                    strategies=list(c.strategies),
                    scores=dict(c.scores),
                )
                for c in result.candidates
            ],
            generated_at=result.generated_at,
            expires_at=result.expires_at,
            strategy_mix=list(result.strategy_mix),
            degraded=result.degraded,
            failed_strategies=list(result.failed_strategies),
            warnings=list(result.warnings),
        )


# ---------------------------------------------------------------------------
# Interactions & feedback
# ---------------------------------------------------------------------------
class InteractionRequest(BaseModel):
    book_id: str = Field(..., min_length=1)
    signal: SignalType
    weight: float | None = None
    value: float | None = Field(default=None, ge=-1.0, le=1.0)
    timestamp: datetime | None = None

    def to_event(self) -> InteractionEvent:
        data = self.model_dump(exclude_none=True)
        return InteractionEvent.model_validate(data)


class ProfileResponse(BaseModel):
    user_id: str
    interests: dict[str, float]
    recent_count: int
    updated_at: datetime | None = None

    @classmethod
    def from_profile(cls, profile: UserProfile) -> ProfileResponse:
        return cls(
            user_id=profile.user_id,
            interests=dict(profile.interests),
            recent_count=len(profile.recent),
            updated_at=profile.updated_at,
        )


class PreferencesRequest(BaseModel):
    """Body of ``PUT /users/{user_id}/preferences``."""

    preferred_genres: list[str] = Field(default_factory=list)
    preferred_authors: list[str] = Field(default_factory=list)
    avoided_genres: list[str] = Field(default_factory=list)

    def to_update(self) -> PreferenceUpdate:
        return PreferenceUpdate.model_validate(self.model_dump())


class FeedbackRequest(BaseModel):
    book_id: str = Field(..., min_length=1)
    action: FeedbackAction
    timestamp: datetime | None = None


class FeedbackResponse(BaseModel):
    recorded: bool
    duplicate: bool


class AccuracyResponse(BaseModel):
    """Per-user accuracy, or the aggregate when ``user_id`` is null."""

    user_id: str | None = None
    window_start: datetime
    window_end: datetime
    shown: int
    clicked: int
    accepted: int
    rejected: int
    acceptance_rate: float
    click_through_rate: float
    sample_size: int
    user_count: int

    @classmethod
    def from_metric(cls, metric: AccuracyMetric) -> AccuracyResponse:
        return cls.model_validate(metric.model_dump())


class RefreshResponse(BaseModel):
    user_id: str
    invalidated: bool = True


# ---------------------------------------------------------------------------
# Books
# ---------------------------------------------------------------------------
class SimilarBook(BaseModel):
    book_id: str
    title: str
    author: str
    genre: str
    score: float


class SimilarBooksResponse(BaseModel):
    book_id: str
    similar: list[SimilarBook]

    @classmethod
    def from_pairs(cls, book_id: str, pairs: list[tuple[Book, float]]) -> SimilarBooksResponse:
        return cls(
            book_id=book_id,
            similar=[
                SimilarBook(book_id=b.book_id, title=b.title, author=b.author, genre=b.genre, score=score)
                for b, score in pairs
            ],
        )


# ---------------------------------------------------------------------------
# Signals, health, errors
# ---------------------------------------------------------------------------
class SignalResponse(BaseModel):
    status: str


class HealthResponse(BaseModel):
    """Application health check response."""

    status: str
    version: str
    components: dict[str, Any]


class ErrorResponse(BaseModel):
    """Standard error response body."""

    error: str
    detail: str | None = None
    retryable: bool = False
