"""Custom exception hierarchy for snowsense."""

from __future__ import annotations


class SnowSenseError(Exception):
    """Base exception for all snowsense errors."""


class SnowSenseConfigError(SnowSenseError):
    """Invalid or missing configuration."""


class FetchLockedError(SnowSenseError):
    """Another caller held the forecast fetch lock past the wait timeout.

    This is transient contention, not a fault. Callers should retry on
    their own schedule.
    """

    def __init__(self, message: str = "Weather fetch is locked") -> None:
        super().__init__(message)


class ForecastError(SnowSenseError):
    """Upstream forecast acquisition failed."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        url: str = "",
    ) -> None:
        self.status_code = status_code
        self.url = url
        super().__init__(message)


class ForecastTransportError(ForecastError):
    """HTTP-level failure (network, non-200 status)."""


class ForecastAuthError(ForecastError):
    """The weather API rejected the API key (HTTP 401/403)."""


class ForecastRateLimitError(ForecastError):
    """The weather API is throttling this API key (HTTP 429)."""


class ForecastPayloadError(ForecastError):
    """The weather API answered with JSON we cannot interpret."""


class LocationNotFoundError(ForecastError):
    """Geocoding returned no match for the configured location."""
