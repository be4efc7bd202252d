"""HTTP client for the external personalized scoring model.

Posts the reader's interest vector and the candidate ids as JSON and
expects ``{"scores": {"<book_id>": <float>, ...}}`` back.  The
``httpx.AsyncClient`` is injected via the constructor for testability.
Timeouts are enforced by the caller (the personalized strategy), not here.
"""

from __future__ import annotations

from typing import Any, Sequence

import httpx

from bookrec.interfaces.scoring_oracle import IScoringOracle
from bookrec.models.profile import UserProfile
from bookrec.utils.errors import ProviderUnavailableError
from bookrec.utils.logging import get_logger


class HttpScoringOracle(IScoringOracle):
    """Scoring oracle reached over HTTP.

    Parameters
    ----------
    http_client:
        Shared async client.
    url:
        Scoring endpoint.  Empty string disables the oracle.
    """

    def __init__(self, http_client: httpx.AsyncClient, url: str) -> None:
        self._http = http_client
        self._url = url
        self._logger = get_logger(__name__)

    async def score(self, profile: UserProfile, book_ids: Sequence[str]) -> dict[str, float]:
        if not self._url:
            raise ProviderUnavailableError("oracle URL not configured", self.get_provider_name())

        body = {
            "user_id": profile.user_id,
            "interests": profile.interests,
            "book_ids": list(book_ids),
        }
        try:
            response = await self._http.post(self._url, json=body)
            response.raise_for_status()
            payload: Any = response.json()
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            self._logger.warning("oracle_request_failed", url=self._url, error=str(exc))
            raise ProviderUnavailableError(str(exc), self.get_provider_name()) from exc
        except ValueError as exc:
            raise ProviderUnavailableError(
                f"oracle returned invalid JSON: {exc}", self.get_provider_name()
            ) from exc

        scores = payload.get("scores") if isinstance(payload, dict) else None
        if not isinstance(scores, dict):
            raise ProviderUnavailableError("oracle response has no 'scores' mapping", self.get_provider_name())
        # Per-entry validation is the caller's job; pass raw values through.
        return {str(book_id): value for book_id, value in scores.items()}

    def get_provider_name(self) -> str:
        return "scoring_oracle"

    def is_available(self) -> bool:
        return bool(self._url)
