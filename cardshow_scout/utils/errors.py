"""Custom exception hierarchy for cardshow_scout.

All application exceptions inherit from :class:`CardShowScoutError`, which
carries an optional ``provider_name`` so error handlers can identify which
external service (e.g. "openai", "sqlite", "fetcher") caused the failure.

The hierarchy is organized by pipeline stage:

    CardShowScoutError  (base -- catch-all for any cardshow_scout error)
    +-- ConfigurationError       (startup / missing credentials -- fatal)
    +-- StorageError             (database unreachable -- fatal for a run)
    +-- FetchError               (timeout / HTTP status / network)
    +-- LLMError                 (any LLM API call failure)
    |   +-- RateLimitError       (provider rate-limit exceeded)
    +-- ExtractionError          (LLM output could not be repaired)
    +-- StoreConflictError       (dedup key already held by a PENDING row)

Only ConfigurationError and StorageError abort a batch run.  Everything
else is isolated to the chunk or source that raised it.
"""

from __future__ import annotations

from enum import Enum


class CardShowScoutError(Exception):
    """Base exception for all cardshow_scout errors.

    The ``__str__`` method prefixes the provider name in brackets for
    structured log output, e.g. ``[openai] Rate limit exceeded``.
    """

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


# ---------------------------------------------------------------------------
# Fatal errors
# ---------------------------------------------------------------------------

class ConfigurationError(CardShowScoutError):
    """Raised when configuration is invalid or missing at startup."""

    def __init__(
        self,
        message: str = "Invalid or missing configuration",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class StorageError(CardShowScoutError):
    """Raised when the database cannot be opened, initialised or queried."""

    def __init__(
        self,
        message: str = "Storage backend unavailable",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Fetch errors
# ---------------------------------------------------------------------------

class FetchErrorKind(str, Enum):  # noqa: UP042
    """Why a page fetch failed."""

    TIMEOUT = "timeout"
    HTTP_STATUS = "http_status"
    NETWORK = "network"


class FetchError(CardShowScoutError):
    """Raised by the fetcher for a timeout, non-2xx status or network failure.

    The fetcher never retries; the next scheduled run is the retry.
    """

    def __init__(
        self,
        kind: FetchErrorKind,
        message: str = "Page fetch failed",
        status_code: int | None = None,
        provider_name: str | None = "fetcher",
    ) -> None:
        self._kind = kind
        self._status_code = status_code
        super().__init__(message=message, provider_name=provider_name)

    @property
    def kind(self) -> FetchErrorKind:
        return self._kind

    @property
    def status_code(self) -> int | None:
        return self._status_code


# ---------------------------------------------------------------------------
# LLM / extraction errors
# ---------------------------------------------------------------------------

class LLMError(CardShowScoutError):
    """Raised when an LLM API call fails or times out."""

    def __init__(
        self,
        message: str = "LLM API call failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class RateLimitError(LLMError):
    """Raised when an API rate limit is exceeded."""

    def __init__(
        self,
        message: str = "Rate limit exceeded",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ExtractionError(CardShowScoutError):
    """Raised when an LLM response cannot be parsed into candidate records."""

    def __init__(
        self,
        message: str = "Show extraction failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Store errors
# ---------------------------------------------------------------------------

class StoreConflictError(CardShowScoutError):
    """Raised when a PENDING row with the same dedup key already exists.

    Carries the id of the row holding the key so the caller can merge into it.
    """

    def __init__(
        self,
        dedup_key: str,
        existing_id: str | None = None,
        provider_name: str | None = "sqlite",
    ) -> None:
        self._dedup_key = dedup_key
        self._existing_id = existing_id
        super().__init__(
            message=f"Pending show already exists for key {dedup_key!r}",
            provider_name=provider_name,
        )

    @property
    def dedup_key(self) -> str:
        return self._dedup_key

    @property
    def existing_id(self) -> str | None:
        return self._existing_id
