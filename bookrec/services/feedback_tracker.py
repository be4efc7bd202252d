"""Feedback recording and windowed accuracy metrics.

Feedback is appended to an :class:`IFeedbackStore`; identical events are
absorbed by the store, which makes ``record`` safe under at-least-once
delivery.  Accuracy is always recomputed from the log, never stored, so
duplicate deliveries cannot skew it.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Callable
from datetime import datetime, timedelta

import structlog

from bookrec.interfaces.feedback_provider import IFeedbackStore
from bookrec.models.feedback import AccuracyMetric, FeedbackAction, FeedbackEvent
from bookrec.models.profile import utc_now
from bookrec.utils.errors import ValidationError
from bookrec.utils.logging import get_logger


class FeedbackTracker:
    """Records feedback events and derives accuracy from them."""

    def __init__(self, store: IFeedbackStore, clock: Callable[[], datetime] = utc_now) -> None:
        self._store = store
        self._clock = clock
        self._logger: structlog.BoundLogger = get_logger(__name__)

    async def record(
        self,
        user_id: str,
        book_id: str,
        action: FeedbackAction | str,
        timestamp: datetime | None = None,
    ) -> bool:
        """Append a feedback event.

        Returns
        -------
        bool
            ``True`` for a new event, ``False`` for a duplicate (no-op).

        Raises
        ------
        ValidationError
            For empty ids or an unknown action.
        """
        if not user_id or not book_id:
            raise ValidationError("user_id and book_id must be non-empty")
        try:
            action = FeedbackAction(action)
        except ValueError as exc:
            raise ValidationError(f"unknown feedback action {action!r}") from exc

        event = FeedbackEvent(
            user_id=user_id,
            book_id=book_id,
            action=action,
            timestamp=timestamp if timestamp is not None else self._clock(),
        )
        is_new = await self._store.append(event)
        self._logger.info(
            "feedback_recorded" if is_new else "feedback_duplicate",
            user_id=user_id,
            book_id=book_id,
            action=action.value,
        )
        return is_new

    async def accuracy(self, user_id: str, window: timedelta) -> AccuracyMetric:
        """Acceptance and click-through over ``(now - window, now]``.

        A window without events yields a zero-sample metric.
        """
        if not user_id:
            raise ValidationError("user_id must be non-empty")
        if window <= timedelta(0):
            raise ValidationError("window must be positive")

        window_end = self._clock()
        window_start = window_end - window
        events = await self._store.events_for_user(user_id, since=window_start, until=window_end)
        return _metric(user_id, window_start, window_end, events)

    async def overall_accuracy(self, window: timedelta) -> AccuracyMetric:
        """Acceptance and click-through across every user over the window.

        Rates are pooled over all events, so heavy users weigh more than
        light ones.
        """
        if window <= timedelta(0):
            raise ValidationError("window must be positive")

        window_end = self._clock()
        window_start = window_end - window
        events = await self._store.events_between(since=window_start, until=window_end)
        metric = _metric(None, window_start, window_end, events)
        self._logger.debug("overall_accuracy_computed", users=metric.user_count, events=metric.sample_size)
        return metric

    async def rejected_books(self, user_id: str, window: timedelta) -> frozenset[str]:
        """Books the user rejected within ``(now - window, now]``."""
        now = self._clock()
        events = await self._store.events_for_user(user_id, since=now - window, until=now)
        return frozenset(e.book_id for e in events if e.action == FeedbackAction.REJECTED)

    async def events(self, user_id: str) -> list[FeedbackEvent]:
        return await self._store.events_for_user(user_id)


def _metric(
    user_id: str | None, window_start: datetime, window_end: datetime, events: list[FeedbackEvent]
) -> AccuracyMetric:
    counts = Counter(e.action for e in events)
    accepted = counts[FeedbackAction.ACCEPTED]
    rejected = counts[FeedbackAction.REJECTED]
    shown = counts[FeedbackAction.SHOWN]
    clicked = counts[FeedbackAction.CLICKED]
    decided = accepted + rejected
    return AccuracyMetric(
        user_id=user_id,
        window_start=window_start,
        window_end=window_end,
        shown=shown,
        clicked=clicked,
        accepted=accepted,
        rejected=rejected,
        acceptance_rate=accepted / decided if decided else 0.0,
        click_through_rate=clicked / shown if shown else 0.0,
        sample_size=len(events),
        user_count=len({e.user_id for e in events}),
    )
