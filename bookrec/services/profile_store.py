"""Live reader-interest profiles, updated from interaction events.

Each interaction moves the interest weight of every dimension the book
carries towards ``signal_weight * feature`` with an exponentially weighted
update::

    new = alpha * (signal_weight * feature) + (1 - alpha) * old

Dimensions the book does not carry are left untouched.  The event is also
appended to a bounded window of recent interactions (oldest evicted).

Writes for one user are serialized by a per-user ``asyncio.Lock``; writes
for different users proceed independently.  A user's lock exists only
while a write for that user is queued or running.  Profiles are frozen pydantic
models, so a reader holding a snapshot never sees a half-applied update.

Registered listeners (the recommendation cache invalidation hook) are
called after every update and before ``apply_interaction`` or
``update_preferences`` returns, so a read issued after the call observes
the invalidation.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from datetime import datetime

import structlog

from bookrec.config.domain_knowledge import PREFERENCE_WEIGHT, SIGNAL_WEIGHTS, signal_weight_for_rating
from bookrec.interfaces.book_catalog import IBookCatalog
from bookrec.models.profile import InteractionEvent, PreferenceUpdate, SignalType, UserProfile, utc_now
from bookrec.utils.errors import ValidationError
from bookrec.utils.logging import get_logger

ProfileListener = Callable[[str, UserProfile], object]


def signal_weight(event: InteractionEvent) -> float:
    """Strength of *event*: explicit weight, rating-derived, or the default."""
    if event.weight is not None:
        return event.weight
    if event.signal == SignalType.RATE:
        return signal_weight_for_rating(event.value if event.value is not None else 0.0)
    return SIGNAL_WEIGHTS[event.signal.value]


class _LockEntry:
    __slots__ = ("lock", "holders")

    def __init__(self) -> None:
        self.lock = asyncio.Lock()
        self.holders = 0


class UserProfileStore:
    """Owns every :class:`UserProfile`; the only place they change.

    Parameters
    ----------
    catalog:
        Source of book feature vectors.
    alpha:
        Smoothing factor in (0, 1].
    window_capacity:
        Maximum number of recent interactions kept per user.
    clock:
        Returns the current UTC time; injectable for tests.
    """

    def __init__(
        self,
        catalog: IBookCatalog,
        alpha: float = 0.3,
        window_capacity: int = 200,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._catalog = catalog
        self._alpha = alpha
        self._capacity = window_capacity
        self._clock = clock
        self._profiles: dict[str, UserProfile] = {}
        self._locks: dict[str, _LockEntry] = {}
        self._listeners: list[ProfileListener] = []
        self._logger: structlog.BoundLogger = get_logger(__name__)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, user_id: str) -> UserProfile:
        """Return the user's profile, or a fresh empty one for unknown users."""
        _require_id(user_id, "user_id")
        profile = self._profiles.get(user_id)
        if profile is None:
            return UserProfile(user_id=user_id)
        return profile

    def all_profiles(self) -> list[UserProfile]:
        """Snapshot of every stored profile."""
        return list(self._profiles.values())

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def apply_interaction(self, user_id: str, event: InteractionEvent) -> UserProfile:
        """Fold *event* into the user's profile and return the new snapshot.

        Raises
        ------
        ValidationError
            If ``user_id`` or ``event.book_id`` is empty.
        """
        _require_id(user_id, "user_id")
        _require_id(event.book_id, "book_id")

        async with self._locked(user_id):
            book = await self._catalog.get_book(event.book_id)
            current = self.get(user_id)
            weight = signal_weight(event)

            interests = dict(current.interests)
            if book is None:
                self._logger.warning("interaction_unknown_book", user_id=user_id, book_id=event.book_id)
            else:
                for dimension, feature in book.features.items():
                    target = weight * feature
                    old = interests.get(dimension, 0.0)
                    interests[dimension] = _clamp(self._alpha * target + (1.0 - self._alpha) * old)

            recent = (*current.recent, event)[-self._capacity:]
            updated = current.model_copy(
                update={"interests": interests, "recent": recent, "updated_at": self._clock()}
            )
            self._profiles[user_id] = updated

        self._logger.debug(
            "profile_updated",
            user_id=user_id,
            book_id=event.book_id,
            signal=event.signal.value,
            weight=round(weight, 3),
            window=len(updated.recent),
        )
        await self._notify_listeners(user_id, updated)
        return updated

    async def update_preferences(self, user_id: str, update: PreferenceUpdate) -> UserProfile:
        """Pin stated preferences into the interest vector.

        Preferred dimensions are raised to at least ``PREFERENCE_WEIGHT`` and
        avoided ones lowered to at most ``-PREFERENCE_WEIGHT``; a stronger
        learned weight is kept.  The recent-interaction window is untouched.

        Raises
        ------
        ValidationError
            If ``user_id`` is empty or a dimension is both preferred and
            avoided.
        """
        _require_id(user_id, "user_id")
        preferred, avoided = update.dimensions()
        clash = preferred & avoided
        if clash:
            raise ValidationError(f"dimensions both preferred and avoided: {', '.join(sorted(clash))}")

        async with self._locked(user_id):
            current = self.get(user_id)
            interests = dict(current.interests)
            for dimension in preferred:
                interests[dimension] = max(interests.get(dimension, 0.0), PREFERENCE_WEIGHT)
            for dimension in avoided:
                interests[dimension] = min(interests.get(dimension, 0.0), -PREFERENCE_WEIGHT)
            updated = current.model_copy(update={"interests": interests, "updated_at": self._clock()})
            self._profiles[user_id] = updated

        self._logger.info(
            "preferences_updated",
            user_id=user_id,
            preferred=sorted(preferred),
            avoided=sorted(avoided),
        )
        await self._notify_listeners(user_id, updated)
        return updated

    def put_profile(self, profile: UserProfile) -> None:
        """Install *profile* as-is (bootstrap from an external store)."""
        _require_id(profile.user_id, "user_id")
        self._profiles[profile.user_id] = profile

    @asynccontextmanager
    async def _locked(self, user_id: str) -> AsyncIterator[None]:
        entry = self._locks.get(user_id)
        if entry is None:
            entry = self._locks[user_id] = _LockEntry()
        entry.holders += 1
        try:
            async with entry.lock:
                yield
        finally:
            entry.holders -= 1
            if entry.holders == 0 and self._locks.get(user_id) is entry:
                del self._locks[user_id]

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------

    def register_listener(self, callback: ProfileListener) -> None:
        """Register a sync or async ``callback(user_id, profile)``."""
        if callback not in self._listeners:
            self._listeners.append(callback)

    def unregister_listener(self, callback: ProfileListener) -> None:
        if callback in self._listeners:
            self._listeners.remove(callback)

    async def _notify_listeners(self, user_id: str, profile: UserProfile) -> None:
        for callback in list(self._listeners):
            try:
                result = callback(user_id, profile)
                if asyncio.iscoroutine(result):
                    await result
            except Exception as exc:
                self._logger.error(
                    "profile_listener_error",
                    user_id=user_id,
                    error=str(exc),
                    error_type=type(exc).__name__,
                )


def _require_id(value: str, field: str) -> None:
    if not value or not value.strip():
        raise ValidationError(f"{field} must be a non-empty string")


def _clamp(value: float) -> float:
    return max(-1.0, min(1.0, value))
