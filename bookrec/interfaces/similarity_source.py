"""Abstract base class for producers of similarity index payloads."""

from __future__ import annotations

from abc import ABC, abstractmethod

from bookrec.models.similarity import SimilarityPayload


class ISimilaritySource(ABC):
    """Builds complete book/user similarity payloads on demand."""

    @abstractmethod
    async def build_payload(self) -> SimilarityPayload:
        """Compute a full replacement payload for the similarity index."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a short identifier for this source."""
