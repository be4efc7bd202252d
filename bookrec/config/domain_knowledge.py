"""Static domain knowledge for book scoring.

Hand-curated tables that turn signals and request context into numbers:

  - how strongly each interaction signal moves a reader's interests,
  - which feature dimensions a reading context (time of day, mood,
    location) boosts or dampens,
  - the default per-strategy weights used when merging candidates.

Everything here is plain data plus a couple of pure lookup helpers; the
YAML file may override the tables at startup (see
:func:`bookrec.config.loader.load_config`).
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Mapping


# ═════════════════════════════════════════════════════════════════════════
# 1. SIGNAL WEIGHTS
# ═════════════════════════════════════════════════════════════════════════
# Strength of each interaction type when folded into the interest vector.
# "rate" is not listed: it is derived from the rating value, see
# signal_weight_for_rating().

SIGNAL_WEIGHTS: Mapping[str, float] = MappingProxyType({
    "view": 0.1,
    "click": 0.3,
    "start": 0.4,
    "like": 0.8,
    "dislike": 0.2,
    "complete": 0.9,
    "reject": -0.5,
})


def signal_weight_for_rating(value: float) -> float:
    """Map a rating in [-1, 1] onto a signal weight in [0, 1]."""
    clamped = max(-1.0, min(1.0, value))
    return (clamped + 1.0) / 2.0


# Interest weight pinned by a stated preference: preferred dimensions are
# raised to at least +PREFERENCE_WEIGHT, avoided ones lowered to at most
# -PREFERENCE_WEIGHT.
PREFERENCE_WEIGHT: float = 0.8


# ═════════════════════════════════════════════════════════════════════════
# 2. CONTEXT BOOSTS
# ═════════════════════════════════════════════════════════════════════════
# context field -> context value -> {dimension: multiplier}.  Dimensions not
# listed keep multiplier 1.0; a context value that is absent from the table
# is neutral.

CONTEXT_BOOSTS: dict[str, dict[str, dict[str, float]]] = {
    "time_of_day": {
        "morning": {"genre:self-help": 1.3, "genre:business": 1.2, "genre:horror": 0.8},
        "afternoon": {"genre:history": 1.1, "genre:science": 1.1},
        "evening": {"genre:romance": 1.2, "genre:mystery": 1.1, "genre:literary": 1.1},
        "night": {"genre:horror": 1.3, "genre:thriller": 1.2, "genre:fantasy": 1.1},
    },
    "mood": {
        "relaxed": {"genre:romance": 1.2, "genre:poetry": 1.2, "genre:thriller": 0.9},
        "curious": {"genre:science": 1.3, "genre:history": 1.2, "genre:biography": 1.1},
        "adventurous": {"genre:fantasy": 1.3, "genre:science-fiction": 1.3, "genre:adventure": 1.3},
        "sad": {"genre:humor": 1.3, "genre:romance": 1.1, "genre:horror": 0.7},
        "tense": {"genre:thriller": 1.2, "genre:mystery": 1.2},
    },
    "location": {
        "commute": {"genre:short-stories": 1.3, "genre:thriller": 1.1},
        "home": {"genre:literary": 1.1, "genre:history": 1.1},
        "travel": {"genre:travel": 1.4, "genre:adventure": 1.2},
        "bedtime": {"genre:poetry": 1.1, "genre:horror": 0.7},
    },
}

# Reading speed used to turn word counts into minutes.
WORDS_PER_MINUTE: int = 200

# Multiplier for books whose estimated reading time fits the request's
# available_minutes.
TIME_BUDGET_BOOST: float = 1.2


def context_multipliers(
    context: Mapping[str, str | None],
    table: Mapping[str, Mapping[str, Mapping[str, float]]] | None = None,
) -> dict[str, float]:
    """Return the combined dimension multipliers for a request context.

    Multipliers from several context fields on the same dimension compound.
    Unknown fields and values contribute nothing.
    """
    boosts = CONTEXT_BOOSTS if table is None else table
    combined: dict[str, float] = {}
    for field_name, value in context.items():
        if value is None:
            continue
        per_value = boosts.get(field_name, {}).get(str(value).lower())
        if not per_value:
            continue
        for dimension, multiplier in per_value.items():
            combined[dimension] = combined.get(dimension, 1.0) * multiplier
    return combined


# ═════════════════════════════════════════════════════════════════════════
# 3. STRATEGY WEIGHTS
# ═════════════════════════════════════════════════════════════════════════
# Merge weight per strategy; equal unless configured otherwise.

DEFAULT_STRATEGY_WEIGHTS: dict[str, float] = {
    "personalized": 1.0,
    "contextual": 1.0,
    "sequential": 1.0,
    "multi_objective": 1.0,
    "exploratory": 1.0,
    "social": 1.0,
    "group": 1.0,
}

# Objectives understood by the multi-objective strategy.
KNOWN_OBJECTIVES: frozenset[str] = frozenset({"accuracy", "diversity", "novelty"})
