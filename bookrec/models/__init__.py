"""bookrec domain models — re-exports all public model classes.

Submodules by concern:
    - book.py           — catalog records
    - feedback.py       — feedback events and accuracy metrics
    - profile.py        — reader profiles and interaction events
    - recommendation.py — strategy outputs, candidates, recommendation sets
    - request.py        — recommendation request surface
    - signals.py        — training-pipeline completion signals
    - similarity.py     — bulk similarity payloads
"""

from __future__ import annotations

from bookrec.models.book import Book
from bookrec.models.feedback import AccuracyMetric, FeedbackAction, FeedbackEvent
from bookrec.models.profile import InteractionEvent, SignalType, UserProfile, utc_now
from bookrec.models.recommendation import (
    Candidate,
    RecommendationSet,
    ScoredBook,
    StrategyOutput,
)
from bookrec.models.request import (
    RecommendationContext,
    RecommendationFilters,
    RecommendationRequest,
    RecommendationType,
)
from bookrec.models.signals import SignalKind, SignalStatus, TrainingSignal
from bookrec.models.similarity import SimilarityPair, SimilarityPayload

__all__ = [
    "AccuracyMetric",
    "Book",
    "Candidate",
    "FeedbackAction",
    "FeedbackEvent",
    "InteractionEvent",
    "RecommendationContext",
    "RecommendationFilters",
    "RecommendationRequest",
    "RecommendationSet",
    "RecommendationType",
    "ScoredBook",
    "SignalKind",
    "SignalStatus",
    "SignalType",
    "SimilarityPair",
    "SimilarityPayload",
    "StrategyOutput",
    "TrainingSignal",
    "UserProfile",
    "utc_now",
]
