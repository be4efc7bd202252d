"""Feedback storage backends."""

from bookrec.providers.feedback.memory_feedback_store import InMemoryFeedbackStore
from bookrec.providers.feedback.sqlite_feedback_store import SQLiteFeedbackStore

__all__ = ["InMemoryFeedbackStore", "SQLiteFeedbackStore"]
