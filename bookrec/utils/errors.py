"""Custom exception hierarchy for bookrec.

All application exceptions inherit from :class:`BookRecError`, which
carries an optional ``provider_name`` so handlers can tell which collaborator
(e.g. "scoring_oracle", "sqlite_feedback", a strategy name) caused the
failure.

    BookRecError  (base)
    +-- ValidationError            malformed request / event, never retried
    +-- NotFoundError              a referenced book is not in the catalog
    +-- UpstreamTimeout            a generator or oracle exceeded its budget
    +-- ProviderUnavailableError   an external collaborator failed
    +-- RecommendationUnavailable  every selected generator failed (retryable)
    +-- ConfigurationError         invalid startup configuration

Unknown users are not an error: they get a default profile.
"""

from __future__ import annotations


class BookRecError(Exception):
    """Base exception for all bookrec errors.

    ``__str__`` prefixes the provider name in brackets for log scanning,
    e.g. ``[scoring_oracle] read timed out``.
    """

    retryable: bool = False

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        provider_name: str | None = None,
    ) -> None:
        self._message = message
        self._provider_name = provider_name
        super().__init__(self._message)

    @property
    def message(self) -> str:
        return self._message

    @property
    def provider_name(self) -> str | None:
        return self._provider_name

    def __str__(self) -> str:
        if self._provider_name:
            return f"[{self._provider_name}] {self._message}"
        return self._message


class ValidationError(BookRecError):
    """Raised for malformed request parameters or ingestion events.

    Rejected before any orchestration work starts.
    """

    def __init__(
        self,
        message: str = "Invalid input",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class NotFoundError(BookRecError):
    """Raised when a request names a book the catalog does not hold."""

    def __init__(
        self,
        message: str = "Resource not found",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class UpstreamTimeout(BookRecError):
    """Raised when a generator or oracle call exceeds its time budget.

    The orchestrator tolerates it: the contribution is dropped and the run
    continues with whatever else finished.
    """

    def __init__(
        self,
        message: str = "Upstream call timed out",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ProviderUnavailableError(BookRecError):
    """Raised when an external collaborator (oracle, store) fails or misbehaves."""

    def __init__(
        self,
        message: str = "External service is unavailable",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class RecommendationUnavailable(BookRecError):
    """Raised when every selected generator failed or timed out.

    Surfaced to callers as a retryable failure.
    """

    retryable = True

    def __init__(
        self,
        message: str = "No recommendation strategy produced a result",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ConfigurationError(BookRecError):
    """Raised when configuration is invalid or missing at startup."""

    def __init__(
        self,
        message: str = "Invalid or missing configuration",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
