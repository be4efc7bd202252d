"""Recommendation models.

Strategies emit :class:`StrategyOutput` lists of :class:`ScoredBook`; the
orchestrator merges them into :class:`Candidate` objects and packages the
ranked result as a :class:`RecommendationSet`, which the cache stores and
the API returns.  All models are frozen: a set is superseded by the next
generation, never edited.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


# ---------------------------------------------------------------------------
# Strategy output
# ---------------------------------------------------------------------------
class ScoredBook(BaseModel):
    """One book scored by one strategy."""

    model_config = ConfigDict(frozen=True)

    book_id: str
    raw_score: float
    # Short tag such as "matches genre:mystery" or "popular".
    explanation: str


class StrategyOutput(BaseModel):
    """Ordered result of a single strategy run.

    ``degraded`` is set when the strategy fell back to a weaker signal
    (e.g. the scoring oracle timed out) but still produced a list.
    """

    model_config = ConfigDict(frozen=True)

    strategy: str
    items: tuple[ScoredBook, ...] = ()
    degraded: bool = False
    warnings: tuple[str, ...] = ()


# ---------------------------------------------------------------------------
# Merged result
# ---------------------------------------------------------------------------
class Candidate(BaseModel):
    """A book in a recommendation set, with per-strategy provenance."""

    model_config = ConfigDict(frozen=True)

    book_id: str
    # Strategy name -> raw score from that strategy.
    scores: dict[str, float] = Field(default_factory=dict)
    combined_score: float = 0.0
    explanations: tuple[str, ...] = ()
    strategies: tuple[str, ...] = ()


class RecommendationSet(BaseModel):
    """Ranked recommendations for one user and one request shape.

    ``candidates`` is in rank order: combined score descending, ties by
    ``book_id`` ascending (or greedy selection order for diversity-aware
    requests).
    """

    model_config = ConfigDict(frozen=True)

    user_id: str
    candidates: tuple[Candidate, ...] = ()
    generated_at: datetime
    expires_at: datetime
    strategy_mix: tuple[str, ...] = ()
    request_key: str = ""
    degraded: bool = False
    failed_strategies: tuple[str, ...] = ()
    warnings: tuple[str, ...] = ()

    def is_fresh(self, now: datetime) -> bool:
        """True while ``generated_at <= now < expires_at``."""
        return self.generated_at <= now < self.expires_at

    @property
    def book_ids(self) -> list[str]:
        return [c.book_id for c in self.candidates]
