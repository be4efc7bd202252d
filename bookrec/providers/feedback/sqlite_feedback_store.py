"""SQLite-backed feedback store.

Persists the append-only feedback log to a local SQLite database using
``aiosqlite`` for async I/O.  Duplicate deliveries are absorbed by a
``UNIQUE(user_id, book_id, action, timestamp)`` constraint combined with
``INSERT OR IGNORE``.

Timestamps are stored as fixed-width UTC ISO-8601 strings so that string
comparison in SQL matches chronological order.
"""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

import aiosqlite
import structlog

from bookrec.interfaces.feedback_provider import IFeedbackStore
from bookrec.models.feedback import FeedbackAction, FeedbackEvent
from bookrec.utils.errors import ProviderUnavailableError

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_DB_PATH = Path("data/feedback.db")

_CREATE_TABLE_SQL = """\
CREATE TABLE IF NOT EXISTS feedback_events (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id     TEXT    NOT NULL,
    book_id     TEXT    NOT NULL,
    action      TEXT    NOT NULL,
    timestamp   TEXT    NOT NULL,
    recorded_at TEXT    NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now')),
    UNIQUE(user_id, book_id, action, timestamp)
);
"""

_CREATE_INDICES_SQL = [
    "CREATE INDEX IF NOT EXISTS idx_feedback_user_ts ON feedback_events(user_id, timestamp);",
    "CREATE INDEX IF NOT EXISTS idx_feedback_ts ON feedback_events(timestamp);",
]

_INSERT_SQL = """\
INSERT OR IGNORE INTO feedback_events (user_id, book_id, action, timestamp)
VALUES (?, ?, ?, ?);
"""

_SELECT_SQL = """\
SELECT user_id, book_id, action, timestamp
FROM feedback_events
WHERE user_id = ?
  AND (? IS NULL OR timestamp > ?)
  AND (? IS NULL OR timestamp <= ?)
ORDER BY timestamp ASC, id ASC;
"""

_SELECT_ALL_SQL = """\
SELECT user_id, book_id, action, timestamp
FROM feedback_events
WHERE (? IS NULL OR timestamp > ?)
  AND (? IS NULL OR timestamp <= ?)
ORDER BY timestamp ASC, id ASC;
"""


def _encode_ts(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)  # noqa: UP017
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")  # noqa: UP017


def _decode_ts(value: str) -> datetime:
    return datetime.strptime(value, "%Y-%m-%dT%H:%M:%S.%fZ").replace(tzinfo=timezone.utc)  # noqa: UP017


class SQLiteFeedbackStore(IFeedbackStore):
    """SQLite-backed feedback persistence."""

    def __init__(self, db_path: str | Path = _DEFAULT_DB_PATH) -> None:
        self._db_path = Path(db_path)

    async def initialize(self) -> None:
        """Create the feedback table and indices if they don't exist."""
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        async with aiosqlite.connect(str(self._db_path)) as db:
            await db.execute(_CREATE_TABLE_SQL)
            for idx_sql in _CREATE_INDICES_SQL:
                await db.execute(idx_sql)
            await db.commit()
        logger.info("feedback_db_initialized", path=str(self._db_path))

    async def append(self, event: FeedbackEvent) -> bool:
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                cursor = await db.execute(
                    _INSERT_SQL,
                    (event.user_id, event.book_id, event.action.value, _encode_ts(event.timestamp)),
                )
                await db.commit()
                # INSERT OR IGNORE reports rowcount 0 when the UNIQUE key matched.
                inserted = cursor.rowcount == 1
        except aiosqlite.Error as exc:
            raise ProviderUnavailableError(
                message=f"failed to store feedback: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        if not inserted:
            logger.debug(
                "feedback_duplicate_ignored",
                user_id=event.user_id,
                book_id=event.book_id,
                action=event.action.value,
            )
        return inserted

    async def events_for_user(
        self,
        user_id: str,
        since: datetime | None = None,
        until: datetime | None = None,
    ) -> list[FeedbackEvent]:
        since_s = _encode_ts(since) if since is not None else None
        until_s = _encode_ts(until) if until is not None else None
        return await self._select(_SELECT_SQL, (user_id, since_s, since_s, until_s, until_s))

    async def events_between(
        self,
        since: datetime | None = None,
        until: datetime | None = None,
    ) -> list[FeedbackEvent]:
        since_s = _encode_ts(since) if since is not None else None
        until_s = _encode_ts(until) if until is not None else None
        return await self._select(_SELECT_ALL_SQL, (since_s, since_s, until_s, until_s))

    async def _select(self, sql: str, params: tuple) -> list[FeedbackEvent]:
        # One connection per call; aiosqlite runs it on its own thread.
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                db.row_factory = aiosqlite.Row
                cursor = await db.execute(sql, params)
                rows = await cursor.fetchall()
        except aiosqlite.Error as exc:
            raise ProviderUnavailableError(
                message=f"failed to read feedback: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        return [
            FeedbackEvent(
                user_id=row["user_id"],
                book_id=row["book_id"],
                action=FeedbackAction(row["action"]),
                timestamp=_decode_ts(row["timestamp"]),
            )
            for row in rows
        ]

    def get_provider_name(self) -> str:
        return "sqlite_feedback"
