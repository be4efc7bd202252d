"""Interface definitions for bookrec's collaborators and strategies.

Business logic depends only on these ABCs; concrete adapters live in
``bookrec/providers/`` and ``bookrec/services/strategies/`` and are wired in
``bookrec/main.py``.

    Interface              →  Concrete implementations
    ──────────────────────────────────────────────────────────
    IRecommendationCache   →  MemoryRecommendationCache
    IFeedbackStore         →  InMemoryFeedbackStore, SQLiteFeedbackStore
    IScoringOracle         →  HttpScoringOracle
    IBookCatalog           →  InMemoryBookCatalog
    IRatingsProvider       →  InMemoryRatingsProvider
    ISimilaritySource      →  ContentSimilaritySource
    IStrategy              →  Personalized/Contextual/Sequential/
                              MultiObjective/Exploratory/Social/Group
"""

from bookrec.interfaces.book_catalog import IBookCatalog
from bookrec.interfaces.cache_provider import IRecommendationCache
from bookrec.interfaces.feedback_provider import IFeedbackStore
from bookrec.interfaces.ratings_provider import IRatingsProvider
from bookrec.interfaces.scoring_oracle import IScoringOracle
from bookrec.interfaces.similarity_source import ISimilaritySource
from bookrec.interfaces.strategy import IStrategy

__all__ = [
    "IBookCatalog",
    "IFeedbackStore",
    "IRatingsProvider",
    "IRecommendationCache",
    "IScoringOracle",
    "ISimilaritySource",
    "IStrategy",
]
