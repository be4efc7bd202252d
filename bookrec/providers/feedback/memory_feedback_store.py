"""In-memory feedback log for tests and single-process runs."""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable
from datetime import datetime

from bookrec.interfaces.feedback_provider import IFeedbackStore
from bookrec.models.feedback import FeedbackEvent


class InMemoryFeedbackStore(IFeedbackStore):
    """Append-only per-user event lists with an identity set for dedup."""

    def __init__(self) -> None:
        self._events: defaultdict[str, list[FeedbackEvent]] = defaultdict(list)
        self._seen: set[tuple[str, str, str, datetime]] = set()

    async def append(self, event: FeedbackEvent) -> bool:
        if event.identity in self._seen:
            return False
        self._seen.add(event.identity)
        self._events[event.user_id].append(event)
        return True

    async def events_for_user(
        self,
        user_id: str,
        since: datetime | None = None,
        until: datetime | None = None,
    ) -> list[FeedbackEvent]:
        return _in_window(self._events.get(user_id, []), since, until)

    async def events_between(
        self,
        since: datetime | None = None,
        until: datetime | None = None,
    ) -> list[FeedbackEvent]:
        return _in_window((e for events in self._events.values() for e in events), since, until)

    def get_provider_name(self) -> str:
        return "memory"


def _in_window(
    events: Iterable[FeedbackEvent], since: datetime | None, until: datetime | None
) -> list[FeedbackEvent]:
    selected = [
        e
        for e in events
        if (since is None or e.timestamp > since) and (until is None or e.timestamp <= until)
    ]
    return sorted(selected, key=lambda e: e.timestamp)
