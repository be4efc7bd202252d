"""Abstract base class for feedback event storage.

The store is an append-only log of :class:`FeedbackEvent` records.
Appending an event identical to a stored one (same user, book, action and
timestamp) must be a no-op so that at-least-once delivery is harmless.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime

from bookrec.models.feedback import FeedbackEvent


class IFeedbackStore(ABC):
    """Contract for feedback persistence backends."""

    async def initialize(self) -> None:
        """Prepare storage (create tables, open files).  Default: nothing."""

    @abstractmethod
    async def append(self, event: FeedbackEvent) -> bool:
        """Append *event* unless an identical one exists.

        Returns
        -------
        bool
            ``True`` if the event was new, ``False`` if it was a duplicate.
        """

    @abstractmethod
    async def events_for_user(
        self,
        user_id: str,
        since: datetime | None = None,
        until: datetime | None = None,
    ) -> list[FeedbackEvent]:
        """Return the user's events with ``since < timestamp <= until``.

        Either bound may be ``None`` for an open interval.  Events are
        ordered by timestamp ascending.
        """

    @abstractmethod
    async def events_between(
        self,
        since: datetime | None = None,
        until: datetime | None = None,
    ) -> list[FeedbackEvent]:
        """Return every user's events with ``since < timestamp <= until``.

        Same bounds and ordering as :meth:`events_for_user`.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a short identifier for this storage backend."""
