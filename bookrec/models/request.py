"""Recommendation request models.

A :class:`RecommendationRequest` describes what the caller wants; its
:meth:`~RecommendationRequest.cache_key` is the canonical request key used
by the recommendation cache (strategy mix plus a digest of the request
shape).
"""

from __future__ import annotations

import hashlib
import json
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class RecommendationType(str, Enum):  # noqa: UP042 — StrEnum requires Python 3.11+
    """Strategy selected by a request; values double as strategy names."""

    PERSONALIZED = "personalized"
    CONTEXTUAL = "contextual"
    SEQUENTIAL = "sequential"
    MULTI_OBJECTIVE = "multi_objective"
    EXPLORATORY = "exploratory"
    SOCIAL = "social"
    GROUP = "group"


class RecommendationFilters(BaseModel):
    """Hard filters applied after merging.  ``None`` means no constraint."""

    model_config = ConfigDict(frozen=True)

    genres: tuple[str, ...] | None = None
    languages: tuple[str, ...] | None = None
    max_word_count: int | None = Field(default=None, ge=1)


class RecommendationContext(BaseModel):
    """Reading situation used by the contextual strategy."""

    model_config = ConfigDict(frozen=True)

    time_of_day: str | None = None
    mood: str | None = None
    location: str | None = None
    available_minutes: int | None = Field(default=None, ge=1)

    def lookup_fields(self) -> dict[str, str | None]:
        """The fields that index the context boost table."""
        return {
            "time_of_day": self.time_of_day,
            "mood": self.mood,
            "location": self.location,
        }


class RecommendationRequest(BaseModel):
    """Parameters of one ``recommend`` call."""

    model_config = ConfigDict(frozen=True)

    type: RecommendationType = RecommendationType.PERSONALIZED
    # None = service default.
    count: int | None = Field(default=None, ge=1, le=50)
    filters: RecommendationFilters = Field(default_factory=RecommendationFilters)
    context: RecommendationContext = Field(default_factory=RecommendationContext)
    # Objective name -> weight, e.g. {"accuracy": 0.7, "diversity": 0.3}.
    objectives: dict[str, float] = Field(default_factory=dict)
    group_members: tuple[str, ...] = ()
    last_book_id: str | None = None
    additional_strategies: tuple[RecommendationType, ...] = ()
    # Let previously rejected books back in (completed books stay out).
    include_rejected: bool = False
    seed: int | None = None
    # Skip the cache read and recompute.
    refresh: bool = False

    def strategy_mix(self) -> tuple[str, ...]:
        """Strategies to run: the primary type first, then extras, deduplicated."""
        mix: list[str] = [self.type.value]
        for extra in self.additional_strategies:
            if extra.value not in mix:
                mix.append(extra.value)
        return tuple(mix)

    def cache_key(self) -> str:
        """Canonical request key: ``"<mix>:<digest of request shape>"``."""
        shape = self.model_dump(mode="json", exclude={"refresh"})
        encoded = json.dumps(shape, sort_keys=True, separators=(",", ":"))
        digest = hashlib.sha256(encoded.encode("utf-8")).hexdigest()[:16]
        return f"{'+'.join(self.strategy_mix())}:{digest}"
