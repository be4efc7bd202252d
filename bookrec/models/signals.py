"""Completion signals from the external training pipeline."""

from __future__ import annotations

import hashlib
import json
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class SignalKind(str, Enum):  # noqa: UP042 — StrEnum requires Python 3.11+
    MODEL_TRAINING_COMPLETED = "model.training.completed"
    EMBEDDINGS_UPDATED = "embeddings.update.completed"
    SIMILARITY_COMPLETED = "similarity.calculation.completed"

    @property
    def refreshes_index(self) -> bool:
        """Whether this signal means new similarity data is available."""
        return self in (SignalKind.EMBEDDINGS_UPDATED, SignalKind.SIMILARITY_COMPLETED)


class SignalStatus(str, Enum):  # noqa: UP042 — StrEnum requires Python 3.11+
    """Outcome of handing a signal to the freshness coordinator."""

    ACCEPTED = "accepted"
    DUPLICATE = "duplicate"
    REJECTED = "rejected"


class TrainingSignal(BaseModel):
    """Notification that a model, embeddings or similarity run finished.

    ``scope`` is ``"global"`` or a non-empty list of affected user ids.
    """

    model_config = ConfigDict(frozen=True)

    event_id: str | None = None
    kind: SignalKind
    scope: str | tuple[str, ...] = "global"
    data: dict[str, Any] = Field(default_factory=dict)

    @field_validator("scope")
    @classmethod
    def _check_scope(cls, value: str | tuple[str, ...]) -> str | tuple[str, ...]:
        if isinstance(value, str):
            if value != "global":
                raise ValueError("scope must be 'global' or a list of user ids")
            return value
        if not value or any(not user_id for user_id in value):
            raise ValueError("scoped signals need at least one non-empty user id")
        return value

    @property
    def is_global(self) -> bool:
        return self.scope == "global"

    @property
    def user_ids(self) -> tuple[str, ...]:
        return () if isinstance(self.scope, str) else self.scope

    def dedup_key(self) -> str:
        """Event id when present, otherwise a hash of the signal content."""
        if self.event_id:
            return f"id:{self.event_id}"
        body = self.model_dump(mode="json", exclude={"event_id"})
        encoded = json.dumps(body, sort_keys=True, separators=(",", ":"), default=str)
        return "sha256:" + hashlib.sha256(encoded.encode("utf-8")).hexdigest()
