"""Feedback events and the accuracy metric derived from them."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator


class FeedbackAction(str, Enum):  # noqa: UP042 — StrEnum requires Python 3.11+
    """What the reader did with a recommended book."""

    SHOWN = "shown"
    CLICKED = "clicked"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class FeedbackEvent(BaseModel):
    """Append-only record of one reader reaction.

    Two events are identical (and deduplicated) when user, book, action and
    timestamp all match.
    """

    model_config = ConfigDict(frozen=True)

    user_id: str
    book_id: str
    action: FeedbackAction
    timestamp: datetime

    @field_validator("timestamp")
    @classmethod
    def _as_utc(cls, value: datetime) -> datetime:
        # Naive timestamps are taken to be UTC.
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)  # noqa: UP017
        return value.astimezone(timezone.utc)  # noqa: UP017

    @property
    def identity(self) -> tuple[str, str, str, datetime]:
        return (self.user_id, self.book_id, self.action.value, self.timestamp)


class AccuracyMetric(BaseModel):
    """Windowed acceptance and click-through rates.

    Derived on demand from the feedback log; a window with no events yields
    ``sample_size == 0`` and zero rates.  ``user_id`` is ``None`` for the
    aggregate over every user; ``user_count`` is the number of distinct
    users contributing events.
    """

    model_config = ConfigDict(frozen=True)

    user_id: str | None = None
    window_start: datetime
    window_end: datetime
    shown: int = Field(default=0, ge=0)
    clicked: int = Field(default=0, ge=0)
    accepted: int = Field(default=0, ge=0)
    rejected: int = Field(default=0, ge=0)
    acceptance_rate: float = 0.0
    click_through_rate: float = 0.0
    sample_size: int = Field(default=0, ge=0)
    user_count: int = Field(default=0, ge=0)
