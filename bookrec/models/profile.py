"""Reader profile models.

A :class:`UserProfile` is the live interest representation of one reader.
It is owned by :class:`~bookrec.services.profile_store.UserProfileStore`
and replaced wholesale (``model_copy``) on every interaction; strategies
only ever see a frozen snapshot.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


def utc_now() -> datetime:
    """Timezone-aware current time in UTC."""
    return datetime.now(tz=timezone.utc)  # noqa: UP017


class SignalType(str, Enum):  # noqa: UP042 — StrEnum requires Python 3.11+
    """Kinds of reader interaction folded into the interest vector."""

    VIEW = "view"
    CLICK = "click"
    START = "start"
    LIKE = "like"
    DISLIKE = "dislike"
    COMPLETE = "complete"
    REJECT = "reject"
    RATE = "rate"


class InteractionEvent(BaseModel):
    """One reader interaction with a book.

    ``weight`` overrides the signal's default strength; ``value`` carries the
    rating in [-1, 1] for ``rate`` events.
    """

    model_config = ConfigDict(frozen=True)

    book_id: str
    signal: SignalType
    weight: float | None = None
    value: float | None = Field(default=None, ge=-1.0, le=1.0)
    timestamp: datetime = Field(default_factory=utc_now)


class UserProfile(BaseModel):
    """Frozen snapshot of a reader's interests and recent interactions."""

    model_config = ConfigDict(frozen=True)

    user_id: str
    # Dimension -> weight, dimensions named "genre:*", "topic:*", "author:*".
    interests: dict[str, float] = Field(default_factory=dict)
    # Oldest first; bounded by the store's window capacity.
    recent: tuple[InteractionEvent, ...] = ()
    updated_at: datetime | None = None

    @property
    def has_interests(self) -> bool:
        return any(weight > 0 for weight in self.interests.values())

    def top_dimension(self) -> str | None:
        """Strongest positive interest dimension, ties broken by name."""
        positive = [(dim, w) for dim, w in self.interests.items() if w > 0]
        if not positive:
            return None
        return sorted(positive, key=lambda item: (-item[1], item[0]))[0][0]

    def books_with_signal(self, signal: SignalType) -> frozenset[str]:
        return frozenset(e.book_id for e in self.recent if e.signal == signal)

    @property
    def completed_books(self) -> frozenset[str]:
        return self.books_with_signal(SignalType.COMPLETE)

    @property
    def rejected_books(self) -> frozenset[str]:
        return self.books_with_signal(SignalType.REJECT)


class PreferenceUpdate(BaseModel):
    """Preferences a reader states directly instead of through interactions.

    Names are matched case-insensitively against the catalog's ``genre:*``
    and ``author:*`` dimensions.
    """

    model_config = ConfigDict(frozen=True)

    preferred_genres: tuple[str, ...] = ()
    preferred_authors: tuple[str, ...] = ()
    avoided_genres: tuple[str, ...] = ()

    def dimensions(self) -> tuple[set[str], set[str]]:
        """Return ``(preferred, avoided)`` dimension names."""
        preferred = {f"genre:{_slug(g)}" for g in self.preferred_genres if _slug(g)}
        preferred |= {f"author:{_slug(a)}" for a in self.preferred_authors if _slug(a)}
        avoided = {f"genre:{_slug(g)}" for g in self.avoided_genres if _slug(g)}
        return preferred, avoided


def _slug(name: str) -> str:
    return "-".join(name.strip().lower().split())
